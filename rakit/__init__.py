"""Rack inventory and IP address dashboard service."""

__version__ = "1.0.0"
