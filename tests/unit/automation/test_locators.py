"""Tests for tiered locator resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from notepub.automation import LocatorStrategy, LocatorTier, first_visible
from notepub.automation.locators import css
from notepub.errors import ErrorCode, NotePubLocatorError


def visible_locator():
    loc = MagicMock()
    loc.first = loc
    loc.wait_for = AsyncMock()
    return loc


def hidden_locator():
    loc = MagicMock()
    loc.first = loc
    loc.wait_for = AsyncMock(side_effect=PlaywrightError("Timeout 100ms exceeded"))
    return loc


class TestFirstVisible:
    @pytest.mark.asyncio
    async def test_returns_first_visible(self):
        good = visible_locator()
        strategies = [
            LocatorStrategy("hidden", LocatorTier.LABEL, lambda page: hidden_locator()),
            LocatorStrategy("good", LocatorTier.LABEL, lambda page: good),
        ]
        assert await first_visible(MagicMock(), "target", strategies, 100) is good
        good.wait_for.assert_awaited_once_with(state="visible", timeout=100)

    @pytest.mark.asyncio
    async def test_tiers_tried_in_order(self):
        label, structural = visible_locator(), visible_locator()
        strategies = [
            LocatorStrategy("structural", LocatorTier.STRUCTURAL, lambda page: structural),
            LocatorStrategy("label", LocatorTier.LABEL, lambda page: label),
        ]
        assert await first_visible(MagicMock(), "target", strategies, 100) is label
        structural.wait_for.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_awaitable_builder_returning_none_is_skipped(self):
        good = visible_locator()

        async def nothing(page):
            return None

        strategies = [
            LocatorStrategy("geometry", LocatorTier.STRUCTURAL, nothing),
            LocatorStrategy("role", LocatorTier.ROLE_TEXT, lambda page: good),
        ]
        assert await first_visible(MagicMock(), "target", strategies, 100) is good

    @pytest.mark.asyncio
    async def test_exhausted_raises_locator_error(self):
        strategies = [
            LocatorStrategy("a", LocatorTier.LABEL, lambda page: hidden_locator()),
            LocatorStrategy("b", LocatorTier.ROLE_TEXT, lambda page: hidden_locator()),
        ]
        with pytest.raises(NotePubLocatorError) as exc_info:
            await first_visible(MagicMock(), "save button", strategies, 100)
        err = exc_info.value
        assert err.code == ErrorCode.LOCATOR_EXHAUSTED
        assert err.context == {"target": "save button", "strategies": ["a", "b"]}
        assert isinstance(err.cause, PlaywrightError)

    @pytest.mark.asyncio
    async def test_css_strategy_uses_selector(self):
        page = MagicMock()
        page.locator.return_value = visible_locator()
        await first_visible(page, "x", [css("x", "button.x")], 100)
        page.locator.assert_called_once_with("button.x")
