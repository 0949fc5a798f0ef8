"""Session context, credential providers and the browser session.

Credentials are never read from globals.  A :class:`SessionContext` is
built from a :class:`CredentialProvider` and passed explicitly to every
API call and automation run.  Re-authentication for one account is
serialised through :func:`account_lock` so that concurrent runs do not
refresh the same session twice.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from notepub.config import NotePubConfig
from notepub.observability import get_logger

log = get_logger("notepub.automation.session")

SESSION_COOKIE_NAME = "_note_session_v5"
XSRF_COOKIE_NAME = "XSRF-TOKEN"
EDITOR_ORIGIN = "https://editor.note.com"

# Browser cookies are set on the platform's registrable domain.
_COOKIE_DOMAIN = ".note.com"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credential:
    """An authenticated platform session."""

    session_cookie: str
    xsrf_token: str = ""

    def __repr__(self) -> str:
        return "Credential(session_cookie='****', xsrf_token='****')"


@dataclass(frozen=True)
class SessionContext:
    """The session a single publish call runs under.

    Attributes
    ----------
    account_id:
        Account the credential belongs to.  Keys :func:`account_lock`.
    credential:
        The session cookie and XSRF token.
    """

    account_id: str
    credential: Credential

    def api_headers(self) -> dict[str, str]:
        """Headers for the platform's JSON API."""
        cookie = f"{SESSION_COOKIE_NAME}={self.credential.session_cookie}"
        headers = {
            "Cookie": cookie,
            "Origin": EDITOR_ORIGIN,
            "Referer": f"{EDITOR_ORIGIN}/",
            "X-Requested-With": "XMLHttpRequest",
            "Accept": "application/json",
        }
        if self.credential.xsrf_token:
            headers["X-XSRF-TOKEN"] = self.credential.xsrf_token
            headers["Cookie"] = f"{cookie}; {XSRF_COOKIE_NAME}={self.credential.xsrf_token}"
        return headers

    def browser_cookies(self, domain: str = _COOKIE_DOMAIN) -> list[dict[str, Any]]:
        """Cookies in the shape ``BrowserContext.add_cookies`` expects."""
        cookies: list[dict[str, Any]] = [{
            "name": SESSION_COOKIE_NAME,
            "value": self.credential.session_cookie,
            "domain": domain,
            "path": "/",
            "httpOnly": True,
            "secure": True,
        }]
        if self.credential.xsrf_token:
            cookies.append({
                "name": XSRF_COOKIE_NAME,
                "value": self.credential.xsrf_token,
                "domain": domain,
                "path": "/",
                "secure": True,
            })
        return cookies

    def secrets(self) -> tuple[str, ...]:
        """Secret values to scrub from debug output."""
        return tuple(
            s for s in (self.credential.session_cookie, self.credential.xsrf_token) if s
        )


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of platform credentials.

    Acquiring a session (logging in, reading a browser profile) is the
    provider's job.  notepub only asks for the current credential and, when
    the editor reports the session as expired, for a fresh one.
    """

    async def get_credential(self) -> Credential:
        ...

    async def force_refresh(self) -> Credential:
        ...


class StaticCredentialProvider:
    """Provider returning the credential held in a :class:`NotePubConfig`.

    :meth:`force_refresh` cannot obtain anything new and returns the same
    value, so a run that hits the login page with this provider fails with
    an authentication error after one retry.
    """

    def __init__(self, config: NotePubConfig) -> None:
        self._credential = Credential(
            session_cookie=config.session_cookie,
            xsrf_token=config.xsrf_token,
        )

    async def get_credential(self) -> Credential:
        return self._credential

    async def force_refresh(self) -> Credential:
        return self._credential


# ---------------------------------------------------------------------------
# Per-account re-authentication lock
# ---------------------------------------------------------------------------

_account_locks: dict[str, asyncio.Lock] = {}


def account_lock(account_id: str) -> asyncio.Lock:
    """Return the process-wide lock for *account_id*, creating it on first use."""
    lock = _account_locks.get(account_id)
    if lock is None:
        lock = asyncio.Lock()
        _account_locks[account_id] = lock
    return lock


# ---------------------------------------------------------------------------
# Browser session
# ---------------------------------------------------------------------------

class BrowserSession:
    """One Chromium browser, context and page for a single document.

    Use as an async context manager; the browser is always closed on exit,
    including on cancellation.

    Parameters
    ----------
    config:
        Supplies ``headless``, ``locale`` and the timeouts.
    session:
        Cookies from this session are installed before the first page load.
    """

    def __init__(self, config: NotePubConfig, session: SessionContext) -> None:
        self._config = config
        self._session = session
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self.page: Page | None = None

    async def start(self) -> Page:
        """Launch the browser and open a page with the session cookies."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._config.headless)
        self._context = await self._browser.new_context(
            locale=self._config.locale,
            viewport={"width": 1280, "height": 900},
        )
        await self.install_cookies(self._session)
        self.page = await self._context.new_page()
        self.page.set_default_timeout(self._config.action_timeout_ms)
        self.page.set_default_navigation_timeout(self._config.navigation_timeout_ms)
        log.info(
            "Browser session started",
            extra={"extra_fields": {
                "op": "browser_start",
                "account_id": self._session.account_id,
                "headless": self._config.headless,
            }},
        )
        return self.page

    async def install_cookies(self, session: SessionContext) -> None:
        """Replace the context's cookies with those of *session*."""
        if self._context is None:
            return
        self._session = session
        await self._context.clear_cookies()
        domain = urlparse(self._config.editor_base_url).hostname or _COOKIE_DOMAIN
        if domain.endswith("note.com"):
            domain = _COOKIE_DOMAIN
        await self._context.add_cookies(session.browser_cookies(domain))

    async def close(self) -> None:
        """Close the page, context, browser and driver, in that order."""
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self.page = None
        log.info(
            "Browser session closed",
            extra={"extra_fields": {"op": "browser_close", "account_id": self._session.account_id}},
        )

    async def __aenter__(self) -> BrowserSession:
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
