"""Doctors portal backend: availability, booking admission, users, doctors and payments."""

__version__ = "1.0.0"
