"""Route modules for the Multichat proxy API."""

from __future__ import annotations

from . import chat, health

__all__ = ["chat", "health"]
