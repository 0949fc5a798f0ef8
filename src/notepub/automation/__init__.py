"""Browser automation for the platform editor."""

from __future__ import annotations

from .adapter import MENU_LABELS, EditorAdapter, NoteEditorAdapter
from .executor import AutomationExecutor
from .locators import LocatorStrategy, LocatorTier, first_visible
from .session import (
    BrowserSession,
    Credential,
    CredentialProvider,
    SessionContext,
    StaticCredentialProvider,
    account_lock,
)
from .state import RunStateMachine

__all__ = [
    "MENU_LABELS",
    "AutomationExecutor",
    "BrowserSession",
    "Credential",
    "CredentialProvider",
    "EditorAdapter",
    "LocatorStrategy",
    "LocatorTier",
    "NoteEditorAdapter",
    "RunStateMachine",
    "SessionContext",
    "StaticCredentialProvider",
    "account_lock",
    "first_visible",
]
