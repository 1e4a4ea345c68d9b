"""Shared API dependencies."""

from __future__ import annotations

from fastapi import Request

from ..services import Services


def get_services(request: Request) -> Services:
    """Return the services built for this application."""
    return request.app.state.services


__all__ = ["get_services"]
