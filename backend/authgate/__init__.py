"""authgate: token authentication and session management service."""

__version__ = "1.0.0"
