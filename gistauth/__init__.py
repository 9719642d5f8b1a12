"""Authentication flows for a gist hosting service."""

__version__ = "0.1.0"
