"""Prioritised locator strategies.

Each DOM target in the editor is described by a list of
:class:`LocatorStrategy` entries.  :func:`first_visible` tries them in tier
order (label, then role/text, then structural) and returns the first
element that becomes visible within its own timeout.  When every strategy
fails a :class:`~notepub.errors.NotePubLocatorError` is raised naming the
target and the strategies tried.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import IntEnum

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from notepub.errors import NotePubLocatorError
from notepub.observability import get_logger

log = get_logger("notepub.automation.locators")


class LocatorTier(IntEnum):
    """Strategy tiers, tried in ascending order."""

    LABEL = 1
    """Accessible name, placeholder or ``aria-label``."""

    ROLE_TEXT = 2
    """ARIA role combined with visible text."""

    STRUCTURAL = 3
    """DOM structure or geometry.  Most brittle, tried last."""


LocatorBuilder = Callable[[Page], "Locator | Awaitable[Locator | None]"]


@dataclass(frozen=True)
class LocatorStrategy:
    """One way of finding a DOM target.

    Attributes
    ----------
    name:
        Short description used in logs and error context.
    tier:
        Priority tier.
    build:
        Returns a :class:`Locator` for the target, either directly or as an
        awaitable.  An awaitable may resolve to ``None`` when the strategy
        finds nothing.
    """

    name: str
    tier: LocatorTier
    build: LocatorBuilder


def css(name: str, selector: str, tier: LocatorTier = LocatorTier.LABEL) -> LocatorStrategy:
    """Strategy for a plain CSS / Playwright selector."""
    return LocatorStrategy(name, tier, lambda page: page.locator(selector))


async def first_visible(
    page: Page,
    target: str,
    strategies: Sequence[LocatorStrategy],
    timeout_ms: int,
) -> Locator:
    """Return the first strategy's element that becomes visible.

    Parameters
    ----------
    page:
        The page to search.
    target:
        Name of the DOM target, for logs and errors.
    strategies:
        Candidate strategies.  They are tried in tier order; within a tier
        the given order is kept.
    timeout_ms:
        Visibility timeout for *each* strategy.

    Raises
    ------
    NotePubLocatorError
        If no strategy produced a visible element.
    """
    ordered = sorted(strategies, key=lambda s: s.tier)
    last_error: Exception | None = None
    for strategy in ordered:
        try:
            built = strategy.build(page)
            if inspect.isawaitable(built):
                built = await built
            if built is None:
                continue
            locator = built.first
            await locator.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightError as exc:
            # Covers playwright's TimeoutError, which subclasses Error.
            last_error = exc
            continue
        log.debug(
            "Locator resolved",
            extra={"extra_fields": {
                "op": "locate",
                "target": target,
                "strategy": strategy.name,
                "tier": strategy.tier.name,
            }},
        )
        return locator

    raise NotePubLocatorError(
        message=f"No locator strategy found a visible {target}",
        context={"target": target, "strategies": [s.name for s in ordered]},
        cause=last_error,
    )
