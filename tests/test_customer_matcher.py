"""
Tests for Customer Matcher

Test Coverage:
1. Normalization helpers (email, phone, name)
2. Lookup precedence: email before phone
3. Non-destructive merge
4. Idempotence for repeated input
5. Blocked customers
"""

import pytest

from reservation_engine.errors import ValidationError
from reservation_engine.models.customer import Customer, CustomerStatus
from reservation_engine.services.customer_matcher import (
    CustomerMatcher, normalize_email, normalize_phone, sanitize_name, split_name, validate_guest_info
)


class TestNormalization:

    def test_email_trimmed_and_lowercased(self):
        assert normalize_email("  Amina@Example.COM ") == "amina@example.com"

    def test_email_empty(self):
        assert normalize_email(None) == ""
        assert normalize_email("   ") == ""

    @pytest.mark.parametrize("raw,expected", [
        ("+213 555 12 34 56", "+213555123456"),
        ("00213555123456", "+213555123456"),
        ("(0555) 12-34-56", "0555123456"),
        ("0555.12.34.56", "0555123456"),
    ])
    def test_phone_formats(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_phone_without_digits(self):
        assert normalize_phone("n/a") == ""
        assert normalize_phone(None) == ""

    def test_name_whitespace_collapsed(self):
        assert sanitize_name("  Amina   Benali  ") == "Amina Benali"

    def test_split_name(self):
        assert split_name("Amina Benali") == ("Amina", "Benali")
        assert split_name("Amina") == ("Amina", "")
        assert split_name("Amina  El  Hadj") == ("Amina", "El Hadj")
        assert split_name("") == ("", "")


class TestGuestValidation:

    def test_valid_guest(self):
        validate_guest_info("Amina Benali", "amina@example.com", None)

    def test_name_required(self):
        with pytest.raises(ValidationError):
            validate_guest_info(" ", "amina@example.com", None)

    def test_contact_required(self):
        with pytest.raises(ValidationError):
            validate_guest_info("Amina Benali", None, "")

    def test_bad_email(self):
        with pytest.raises(ValidationError):
            validate_guest_info("Amina Benali", "not-an-email", None)

    def test_short_phone(self):
        with pytest.raises(ValidationError):
            validate_guest_info("Amina Benali", None, "123")


class TestFindOrCreate:

    def test_creates_active_customer(self, db_session):
        customer = CustomerMatcher(db_session).find_or_create(
            "Amina@Example.com", "+213 555 12 34 56", "Amina Benali", "Algerian"
        )
        db_session.commit()

        assert customer.status == CustomerStatus.ACTIVE.value
        assert customer.email == "amina@example.com"
        assert customer.phone == "+213555123456"
        assert customer.first_name == "Amina"
        assert customer.last_name == "Benali"
        assert customer.nationality == "Algerian"

    def test_repeated_input_is_idempotent(self, db_session):
        matcher = CustomerMatcher(db_session)
        first = matcher.find_or_create("amina@example.com", "0555123456", "Amina Benali", None)
        second = matcher.find_or_create("amina@example.com", "0555123456", "Amina Benali", None)
        db_session.commit()

        assert first.id == second.id
        assert db_session.query(Customer).count() == 1

    def test_matches_by_email_first(self, db_session):
        by_email = Customer(first_name="Email", email="amina@example.com", phone="0111111111")
        by_phone = Customer(first_name="Phone", email="other@example.com", phone="0555123456")
        db_session.add_all([by_email, by_phone])
        db_session.commit()

        found = CustomerMatcher(db_session).find_or_create("amina@example.com", "0555123456", "Amina", None)
        assert found.id == by_email.id

    def test_falls_back_to_phone(self, db_session):
        existing = Customer(first_name="Amina", phone="0555123456")
        db_session.add(existing)
        db_session.commit()

        found = CustomerMatcher(db_session).find_or_create("new@example.com", "0555 12 34 56", "Amina", None)
        assert found.id == existing.id
        assert found.email == "new@example.com"

    def test_merge_never_erases(self, db_session):
        existing = Customer(
            first_name="Amina", last_name="Benali",
            email="amina@example.com", phone="0555123456", nationality="Algerian"
        )
        db_session.add(existing)
        db_session.commit()

        found = CustomerMatcher(db_session).find_or_create("amina@example.com", None, "", None)
        db_session.commit()

        assert found.id == existing.id
        assert found.phone == "0555123456"
        assert found.first_name == "Amina"
        assert found.last_name == "Benali"
        assert found.nationality == "Algerian"

    def test_merge_updates_differing_fields(self, db_session):
        existing = Customer(first_name="A", last_name=None, email="amina@example.com", phone="0555123456")
        db_session.add(existing)
        db_session.commit()

        found = CustomerMatcher(db_session).find_or_create(
            "amina@example.com", "0666000000", "Amina Benali", "Algerian"
        )
        db_session.commit()

        assert found.phone == "0666000000"
        assert found.first_name == "Amina"
        assert found.last_name == "Benali"
        assert found.nationality == "Algerian"

    def test_no_match_creates_new(self, db_session):
        db_session.add(Customer(first_name="Other", email="other@example.com", phone="0111111111"))
        db_session.commit()

        CustomerMatcher(db_session).find_or_create("amina@example.com", "0555123456", "Amina", None)
        db_session.commit()

        assert db_session.query(Customer).count() == 2

    def test_blocked_customer_cannot_book(self, db_session):
        db_session.add(Customer(
            first_name="Blocked", email="blocked@example.com", status=CustomerStatus.BLOCKED.value
        ))
        db_session.commit()

        with pytest.raises(ValidationError):
            CustomerMatcher(db_session).find_or_create("blocked@example.com", None, "Blocked Guest", None)
