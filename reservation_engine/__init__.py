"""Reservation & availability engine for property rentals."""

__version__ = "1.0.0"
