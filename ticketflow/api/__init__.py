"""HTTP surface for the ticket workflow engine."""

from .app import create_app

__all__ = ["create_app"]
