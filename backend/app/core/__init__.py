"""Core application configuration."""

from app.core.config import settings

__all__ = [
    "settings",
]
