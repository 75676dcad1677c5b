"""Shared exception types."""

__all__ = ["exceptions"]
