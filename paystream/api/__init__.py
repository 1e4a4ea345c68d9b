"""HTTP interface for the paystream pipeline."""

from .app import create_app

__all__ = ["create_app"]
