"""001 Initial schema - properties, customers, reservations, availability calendar, audit log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

The (property_id, date) unique constraint on availability_records is what
rejects the second of two concurrent bookings for the same night.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'properties',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price_per_night', sa.Numeric(12, 2), nullable=True),
        sa.Column('cleaning_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('service_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_rate_percent', sa.Numeric(5, 2), nullable=True),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('minimum_stay', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('maximum_stay', sa.Integer(), nullable=True),
        sa.Column('max_guests', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint('minimum_stay >= 1', name='ck_property_minimum_stay'),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(150), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('nationality', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index('ix_customers_phone', 'customers', ['phone'])

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('property_id', sa.String(36),
                  sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.String(36),
                  sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('guest_name', sa.String(255), nullable=False),
        sa.Column('guest_email', sa.String(255), nullable=True),
        sa.Column('guest_phone', sa.String(50), nullable=True),
        sa.Column('guest_nationality', sa.String(100), nullable=True),
        sa.Column('guest_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('cleaning_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('service_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('taxes', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.CheckConstraint('check_out_date > check_in_date', name='ck_reservation_date_order'),
        sa.CheckConstraint('guest_count >= 1', name='ck_reservation_guest_count'),
    )
    op.create_index(
        'ix_reservation_property_dates',
        'reservations',
        ['property_id', 'check_in_date', 'check_out_date']
    )
    op.create_index('ix_reservation_status', 'reservations', ['status'])
    op.create_index('ix_reservation_customer', 'reservations', ['customer_id'])

    op.create_table(
        'availability_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('property_id', sa.String(36),
                  sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('blocked_reason', sa.String(20), nullable=True),
        sa.Column('price_override', sa.Numeric(12, 2), nullable=True),
        sa.Column('minimum_stay', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('reservation_id', sa.String(36),
                  sa.ForeignKey('reservations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('property_id', 'date', name='uq_availability_property_date'),
        sa.CheckConstraint('minimum_stay >= 1', name='ck_availability_minimum_stay'),
    )
    op.create_index(
        'ix_availability_unavailable',
        'availability_records',
        ['property_id', 'is_available', 'date']
    )
    op.create_index('ix_availability_reservation', 'availability_records', ['reservation_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('user_role', sa.String(20), nullable=True),
        sa.Column('activity_type', sa.String(40), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_activity_type', 'audit_logs', ['activity_type'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_index('ix_availability_reservation', table_name='availability_records')
    op.drop_index('ix_availability_unavailable', table_name='availability_records')
    op.drop_table('availability_records')
    op.drop_index('ix_reservation_customer', table_name='reservations')
    op.drop_index('ix_reservation_status', table_name='reservations')
    op.drop_index('ix_reservation_property_dates', table_name='reservations')
    op.drop_table('reservations')
    op.drop_index('ix_customers_phone', table_name='customers')
    op.drop_index('ix_customers_email', table_name='customers')
    op.drop_table('customers')
    op.drop_table('properties')
