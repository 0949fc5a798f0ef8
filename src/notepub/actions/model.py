"""Editor action model.

An :class:`Action` is one step the automation executor replays in the
browser editor.  Actions are immutable; the payload keys depend on the
type:

====================  =============================================
Type                  Payload
====================  =============================================
``insert-heading``    ``text``, ``level`` (2 or 3)
``insert-paragraph``  ``text``
``insert-list``       ``kind`` (``"bullet"``/``"numbered"``), ``items``
``insert-quote``      ``lines``
``insert-code``       ``text``, ``language``
``insert-image``      ``path``
``set-caption``       ``text``
``insert-divider``    (none)
``set-cover-image``   ``path``
====================  =============================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(str, Enum):
    """Every editor action the compiler can emit."""

    INSERT_HEADING = "insert-heading"
    INSERT_PARAGRAPH = "insert-paragraph"
    INSERT_LIST = "insert-list"
    INSERT_QUOTE = "insert-quote"
    INSERT_CODE = "insert-code"
    INSERT_IMAGE = "insert-image"
    SET_CAPTION = "set-caption"
    INSERT_DIVIDER = "insert-divider"
    SET_COVER_IMAGE = "set-cover-image"


# Failures of these actions are recorded and the run continues.
NON_CRITICAL_TYPES: frozenset[ActionType] = frozenset({
    ActionType.INSERT_IMAGE,
    ActionType.SET_CAPTION,
    ActionType.SET_COVER_IMAGE,
})


@dataclass(frozen=True)
class Action:
    """A single editor action.

    Attributes
    ----------
    type:
        What the executor should do.
    payload:
        Type-specific arguments (see the module docstring).
    """

    type: ActionType
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def critical(self) -> bool:
        """``False`` for image, caption and cover actions."""
        return self.type not in NON_CRITICAL_TYPES

    @property
    def is_image(self) -> bool:
        return self.type in (ActionType.INSERT_IMAGE, ActionType.SET_COVER_IMAGE)
