"""Editor actions and the IR-to-action compiler."""

from __future__ import annotations

from .compiler import ActionCompiler
from .model import NON_CRITICAL_TYPES, Action, ActionType

__all__ = [
    "NON_CRITICAL_TYPES",
    "Action",
    "ActionCompiler",
    "ActionType",
]
