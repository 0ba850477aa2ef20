"""REST API for the Metadata Assistant."""

from .app import create_app

__all__ = ["create_app"]
