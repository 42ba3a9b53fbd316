"""Lead Tracker: first-touch attribution and contact-click lead tracking."""

__version__ = "1.0.0"
