"""Tests for SessionContext, credential providers, account locks and BrowserSession."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notepub.automation import (
    BrowserSession,
    Credential,
    CredentialProvider,
    SessionContext,
    StaticCredentialProvider,
    account_lock,
)
from notepub.automation.session import SESSION_COOKIE_NAME

CRED = Credential(session_cookie="cookie_abcdef", xsrf_token="xsrf_123456")


class TestSessionContext:
    def test_api_headers(self):
        headers = SessionContext("acct", CRED).api_headers()
        assert headers["Cookie"] == f"{SESSION_COOKIE_NAME}=cookie_abcdef; XSRF-TOKEN=xsrf_123456"
        assert headers["X-XSRF-TOKEN"] == "xsrf_123456"
        assert headers["X-Requested-With"] == "XMLHttpRequest"
        assert headers["Origin"] == "https://editor.note.com"

    def test_api_headers_without_xsrf(self):
        headers = SessionContext("acct", Credential("c")).api_headers()
        assert "X-XSRF-TOKEN" not in headers
        assert headers["Cookie"] == f"{SESSION_COOKIE_NAME}=c"

    def test_browser_cookies(self):
        cookies = SessionContext("acct", CRED).browser_cookies()
        assert [c["name"] for c in cookies] == [SESSION_COOKIE_NAME, "XSRF-TOKEN"]
        assert all(c["domain"] == ".note.com" for c in cookies)

    def test_secrets(self):
        assert SessionContext("a", CRED).secrets() == ("cookie_abcdef", "xsrf_123456")

    def test_credential_repr_masks(self):
        assert "cookie_abcdef" not in repr(CRED)
        assert "xsrf_123456" not in repr(SessionContext("a", CRED))


class TestCredentialProviders:
    @pytest.mark.asyncio
    async def test_static_provider(self, config):
        provider = StaticCredentialProvider(config)
        assert isinstance(provider, CredentialProvider)
        cred = await provider.get_credential()
        assert cred.session_cookie == config.session_cookie
        assert await provider.force_refresh() == cred

    @pytest.mark.asyncio
    async def test_account_lock_shared_per_account(self):
        assert account_lock("a") is account_lock("a")
        assert account_lock("a") is not account_lock("b")

    @pytest.mark.asyncio
    async def test_account_lock_serialises(self):
        order = []

        async def refresh(tag):
            async with account_lock("serial"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0)
                order.append(f"{tag}-out")

        await asyncio.gather(refresh("x"), refresh("y"))
        assert order == ["x-in", "x-out", "y-in", "y-out"]


# =========================================================================
# BrowserSession
# =========================================================================

def fake_playwright():
    page = MagicMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_cookies = AsyncMock()
    context.clear_cookies = AsyncMock()
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    return starter, pw, browser, context, page


class TestBrowserSession:
    @pytest.mark.asyncio
    async def test_lifecycle(self, config):
        starter, pw, browser, context, page = fake_playwright()
        session = SessionContext("acct", CRED)
        with patch("notepub.automation.session.async_playwright", return_value=starter):
            async with BrowserSession(config, session) as bs:
                assert bs.page is page
        pw.chromium.launch.assert_awaited_once_with(headless=True)
        kwargs = browser.new_context.await_args.kwargs
        assert kwargs["locale"] == "ja-JP"
        assert kwargs["viewport"] == {"width": 1280, "height": 900}
        context.add_cookies.assert_awaited_once()
        page.set_default_timeout.assert_called_once_with(config.action_timeout_ms)
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_on_error(self, config):
        starter, pw, browser, context, _ = fake_playwright()
        with patch("notepub.automation.session.async_playwright", return_value=starter):
            with pytest.raises(RuntimeError):
                async with BrowserSession(config, SessionContext("a", CRED)):
                    raise RuntimeError("boom")
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_launch_stops_driver(self, config):
        starter, pw, _, _, _ = fake_playwright()
        pw.chromium.launch.side_effect = RuntimeError("no chromium")
        with patch("notepub.automation.session.async_playwright", return_value=starter):
            with pytest.raises(RuntimeError, match="no chromium"):
                async with BrowserSession(config, SessionContext("a", CRED)):
                    pass
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_install_cookies_replaces(self, config):
        starter, _, _, context, _ = fake_playwright()
        with patch("notepub.automation.session.async_playwright", return_value=starter):
            async with BrowserSession(config, SessionContext("a", CRED)) as bs:
                await bs.install_cookies(SessionContext("a", Credential("fresh")))
                cookies = context.add_cookies.await_args.args[0]
        assert cookies[0]["value"] == "fresh"
        assert context.clear_cookies.await_count == 2
