"""REST API for the Pengu order lifecycle engine."""

from .routes import create_app

__all__ = ["create_app"]
