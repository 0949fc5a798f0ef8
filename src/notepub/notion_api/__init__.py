"""Block source API wrapper."""

from __future__ import annotations

from .blocks import AsyncBlockAPI

__all__ = ["AsyncBlockAPI"]
