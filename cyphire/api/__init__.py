"""REST and Socket.IO API for the Cyphire marketplace."""

from .routes import create_app

__all__ = ["create_app"]
