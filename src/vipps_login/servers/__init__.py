"""Starlette HTTP layer for the login broker."""

from .app import create_app  # noqa: F401

__all__ = ["create_app"]
