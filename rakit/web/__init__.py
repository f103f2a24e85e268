"""HTTP surface for rakit."""

from .app_setup import create_app

__all__ = ["create_app"]
