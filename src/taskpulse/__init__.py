"""Live process and system resource monitor."""

__version__ = "0.1.0"
