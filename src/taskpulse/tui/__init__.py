"""Textual dashboard for taskpulse."""
