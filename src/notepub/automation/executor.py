"""Replay editor actions in a browser session.

:class:`AutomationExecutor` owns one run per call to :meth:`run`::

    IDLE -> NAVIGATING -> (LOGIN_REQUIRED -> REAUTHENTICATING -> NAVIGATING)
         -> FILLING_TITLE -> EMITTING_BODY -> SAVING_DRAFT -> DONE

Any step may end the run in ``FAILED``; cancellation ends it in
``INTERRUPTED``, closes the browser and re-raises.

Failure policy
--------------
* Image, caption and cover actions are non-critical.  When they fail after
  their retries they are recorded as :class:`FailedAction` and the run
  continues.
* Title, navigation, body focus and text actions are critical.  A failure
  ends the run as ``FAILED`` without clicking save.  A text action is not
  retried once any of its keystrokes reached the editor.
* On failure the result still carries the draft key read from the page,
  so a later run can overwrite the same draft.
* A missing local image file is governed by
  ``config.missing_image_policy``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from notepub.actions import Action, ActionType
from notepub.config import NotePubConfig
from notepub.errors import (
    NotePubAuthError,
    NotePubAutomationError,
    NotePubError,
    NotePubImageNotFoundError,
    NotePubLocatorError,
)
from notepub.models import (
    ActionPhase,
    DeliveryPath,
    FailedAction,
    PublishResult,
    RunState,
)
from notepub.observability import NoopMetricsHook, get_logger
from notepub.utils.backoff import compute_backoff

from .adapter import EditorAdapter, NoteEditorAdapter
from .session import (
    BrowserSession,
    CredentialProvider,
    SessionContext,
    account_lock,
)
from .state import RunStateMachine

log = get_logger("notepub.automation.executor")


class BrowserHandle(Protocol):
    """What the executor needs from a browser session."""

    page: Page | None

    async def install_cookies(self, session: SessionContext) -> None:
        ...

    async def __aenter__(self) -> BrowserHandle:
        ...

    async def __aexit__(self, *exc: object) -> None:
        ...


BrowserFactory = Callable[[NotePubConfig, SessionContext], BrowserHandle]


@dataclass
class _Run:
    """Mutable state of one run."""

    page: Page
    fsm: RunStateMachine
    failed: list[FailedAction] = field(default_factory=list)
    # Set once a keystroke of the current action has reached the editor.
    typed: bool = False
    # Index of the last image action that did not make it into the editor.
    skipped_image: int | None = None


class AutomationExecutor:
    """Drive the browser editor through a compiled action list.

    Parameters
    ----------
    config:
        Timeouts, retry settings, policies and the account id.
    credentials:
        Source of the session; asked once per run and again only when the
        editor redirects to the login page.
    adapter:
        Platform DOM operations.  Defaults to :class:`NoteEditorAdapter`.
    browser_factory:
        Builds the browser session for a run.  Defaults to
        :class:`BrowserSession`.
    sleep:
        Coroutine used between action retries.
    """

    def __init__(
        self,
        config: NotePubConfig,
        credentials: CredentialProvider,
        adapter: EditorAdapter | None = None,
        browser_factory: BrowserFactory | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._adapter = adapter or NoteEditorAdapter(config)
        self._browser_factory = browser_factory or BrowserSession
        self._sleep = sleep
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        title: str,
        actions: list[Action],
        draft_key: str | None = None,
        session: SessionContext | None = None,
        draft_id: str | None = None,
    ) -> PublishResult:
        """Write *title* and *actions* into a draft and save it.

        Parameters
        ----------
        title:
            Draft title.
        actions:
            Compiled actions, replayed strictly in order.
        draft_key:
            Existing draft to overwrite.  A new draft is opened when
            ``None``.
        session:
            Session to run under.  Built from the credential provider when
            omitted.
        draft_id:
            Carried into the result unchanged.

        Returns
        -------
        PublishResult
            ``DONE`` or ``FAILED``.  Cancellation re-raises instead.
        """
        if session is None:
            session = SessionContext(
                self._config.account_id,
                await self._credentials.get_credential(),
            )
        fsm = RunStateMachine(run_id=draft_key or "new")
        target_url = self._adapter.edit_url(draft_key) if draft_key else self._adapter.new_draft_url()

        if self._config.debug_dump_actions:
            log.debug(
                "Compiled actions",
                extra={"extra_fields": {
                    "op": "run",
                    "actions": [{"type": a.type.value, **a.payload} for a in actions],
                }},
            )

        t0 = time.monotonic()
        result = PublishResult(
            status=RunState.IDLE,
            path=DeliveryPath.UI,
            draft_id=draft_id,
            draft_key=draft_key,
            edit_url=target_url if draft_key else None,
        )

        async with self._browser_factory(self._config, session) as browser:
            page = browser.page
            if page is None:
                raise NotePubAutomationError(
                    message="Browser session has no page",
                    context={"state": fsm.state.value},
                )
            run = _Run(page=page, fsm=fsm)
            try:
                await self._navigate(run, browser, session, target_url)
                await self._fill_title(run, title)
                await self._emit_body(run, actions)
                await self._save(run, result)
            except asyncio.CancelledError:
                fsm.transition(RunState.INTERRUPTED)
                log.warning(
                    "Run interrupted, closing browser session",
                    extra={"extra_fields": {
                        "op": "run",
                        "run_id": fsm.run_id,
                        "history": [s.value for s in fsm.history],
                    }},
                )
                raise
            except (NotePubError, PlaywrightError) as raw:
                exc = raw if isinstance(raw, NotePubError) else NotePubAutomationError(
                    message=f"Browser error: {raw}",
                    context={"state": fsm.state.value},
                    cause=raw,
                )
                fsm.transition(RunState.FAILED)
                result.error = exc
                # A retry must resume against the draft this run reached.
                key = self._adapter.parse_draft_key(page.url) or result.draft_key
                if key:
                    result.draft_key = key
                    result.edit_url = self._adapter.edit_url(key)
                log.error(
                    "Run failed",
                    extra={"extra_fields": {
                        "op": "run",
                        "run_id": fsm.run_id,
                        "code": str(exc.code),
                        "error": exc.message,
                        "history": [s.value for s in fsm.history],
                    }},
                )
            finally:
                result.status = fsm.state
                result.failed_actions = list(run.failed)
                self._metrics.timing(
                    "notepub.run_duration_ms",
                    (time.monotonic() - t0) * 1000,
                    tags={"status": fsm.state.value},
                )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _navigate(
        self,
        run: _Run,
        browser: BrowserHandle,
        session: SessionContext,
        url: str,
    ) -> None:
        run.fsm.transition(RunState.NAVIGATING)
        await self._goto(run, url)
        if not self._adapter.is_login_page(run.page):
            run.fsm.transition(RunState.FILLING_TITLE)
            return

        run.fsm.transition(RunState.LOGIN_REQUIRED)
        run.fsm.transition(RunState.REAUTHENTICATING)
        self._metrics.increment("notepub.reauth_total", tags={"account_id": session.account_id})
        async with account_lock(session.account_id):
            credential = await self._credentials.get_credential()
            # Another run may have refreshed while this one waited.
            if credential == session.credential:
                credential = await self._credentials.force_refresh()
        refreshed = SessionContext(session.account_id, credential)
        await browser.install_cookies(refreshed)
        log.info(
            "Session refreshed after login redirect",
            extra={"extra_fields": {"op": "reauth", "account_id": session.account_id}},
        )

        run.fsm.transition(RunState.NAVIGATING)
        await self._goto(run, url)
        if self._adapter.is_login_page(run.page):
            raise NotePubAuthError(
                message="Editor still requires login after refreshing the session",
                context={"account_id": session.account_id, "url": run.page.url},
            )
        run.fsm.transition(RunState.FILLING_TITLE)

    async def _goto(self, run: _Run, url: str) -> None:
        try:
            await run.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._config.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise NotePubAutomationError(
                message=f"Could not open the editor at {url}",
                context={"state": run.fsm.state.value, "url": url},
                cause=exc,
            ) from exc

    async def _fill_title(self, run: _Run, title: str) -> None:
        try:
            await self._adapter.fill_title(run.page, title)
        except PlaywrightError as exc:
            raise NotePubAutomationError(
                message="Could not fill the title",
                context={"state": run.fsm.state.value},
                cause=exc,
            ) from exc
        run.fsm.transition(RunState.EMITTING_BODY)

    async def _emit_body(self, run: _Run, actions: list[Action]) -> None:
        try:
            await self._adapter.focus_body(run.page)
        except PlaywrightError as exc:
            raise NotePubAutomationError(
                message="Editor body is not reachable",
                context={"state": run.fsm.state.value},
                cause=exc,
            ) from exc

        for index, action in enumerate(actions):
            await self._emit(run, index, action)
            await run.page.wait_for_timeout(self._config.settle_delay_ms)
        run.fsm.transition(RunState.SAVING_DRAFT)

    async def _save(self, run: _Run, result: PublishResult) -> None:
        try:
            await self._adapter.save_draft(run.page)
        except PlaywrightError as exc:
            raise NotePubAutomationError(
                message="Could not save the draft",
                context={"state": run.fsm.state.value},
                cause=exc,
            ) from exc

        key = self._adapter.parse_draft_key(run.page.url) or result.draft_key
        result.draft_key = key
        result.edit_url = self._adapter.edit_url(key) if key else run.page.url
        run.fsm.transition(RunState.DONE)
        log.info(
            "Draft saved",
            extra={"extra_fields": {
                "op": "save_draft",
                "draft_key": key,
                "failed_actions": len(run.failed),
            }},
        )

    # ------------------------------------------------------------------
    # Per-action retry loop
    # ------------------------------------------------------------------

    async def _emit(self, run: _Run, index: int, action: Action) -> None:
        if action.type is ActionType.SET_CAPTION and run.skipped_image == index - 1:
            run.failed.append(FailedAction(index, action.type.value, "image_skipped"))
            return

        if action.is_image and not self._image_available(run, index, action):
            return

        handler = _ACTION_HANDLERS[action.type]
        max_attempts = self._config.action_max_attempts
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(max_attempts):
            attempts = attempt + 1
            run.typed = False
            run.fsm.enter_phase(ActionPhase.COMPOSING)
            try:
                await handler(self, run, action)
            except (PlaywrightError, NotePubAutomationError) as exc:
                last_error = exc
                log.warning(
                    "Action attempt failed",
                    extra={"extra_fields": {
                        "op": "emit_body",
                        "index": index,
                        "action": action.type.value,
                        "attempt": attempt + 1,
                        "phase": run.fsm.phase.value if run.fsm.phase else None,
                        "error": str(exc),
                    }},
                )
                if run.typed:
                    # Retyping would duplicate what already reached the editor.
                    break
                if attempt + 1 < max_attempts:
                    self._metrics.increment(
                        "notepub.action_retries_total",
                        tags={"action": action.type.value},
                    )
                    await self._sleep(compute_backoff(
                        attempt,
                        base=self._config.action_retry_base_delay,
                        maximum=self._config.action_retry_max_delay,
                        jitter=self._config.retry_jitter,
                    ))
                continue

            self._metrics.increment(
                "notepub.actions_total",
                tags={"action": action.type.value, "status": "ok"},
            )
            return

        self._metrics.increment(
            "notepub.action_failures_total",
            tags={"action": action.type.value, "critical": str(action.critical).lower()},
        )
        if action.critical:
            raise NotePubAutomationError(
                message=f"Action {action.type.value} failed after {attempts} attempts",
                context={
                    "action": action.type.value,
                    "index": index,
                    "state": run.fsm.state.value,
                    "attempts": attempts,
                    "partial": run.typed,
                },
                cause=last_error,
            )

        reason = "locator_exhausted" if isinstance(last_error, NotePubLocatorError) else "error"
        run.failed.append(FailedAction(index, action.type.value, reason, str(last_error or "")))
        if action.type is ActionType.INSERT_IMAGE:
            run.skipped_image = index
        # A failed image flow can leave a menu or dialog open.
        await run.page.keyboard.press("Escape")
        await self._adapter.focus_body(run.page)

    def _image_available(self, run: _Run, index: int, action: Action) -> bool:
        path = action.payload.get("path", "")
        if path and Path(path).is_file():
            return True
        if self._config.missing_image_policy == "fail":
            raise NotePubImageNotFoundError(
                message=f"Image file not found: {path}",
                context={"src": path, "resolved_path": path, "index": index},
            )
        log.warning(
            "Image file missing, action skipped",
            extra={"extra_fields": {"op": "emit_body", "index": index, "path": path}},
        )
        run.failed.append(FailedAction(index, action.type.value, "missing_file"))
        if action.type is ActionType.INSERT_IMAGE:
            run.skipped_image = index
        return False

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    async def _open_menu(self, run: _Run, kind: str) -> bool:
        """Open the insert menu for *kind*; ``False`` means use typed Markdown."""
        run.fsm.enter_phase(ActionPhase.INVOKING_INSERT_MENU)
        try:
            await self._adapter.invoke_insert_menu(run.page, kind)
        except NotePubLocatorError as exc:
            log.info(
                "Insert menu unavailable, typing Markdown instead",
                extra={"extra_fields": {"op": "emit_body", "kind": kind, "error": exc.message}},
            )
            await run.page.keyboard.press("Escape")
            run.fsm.enter_phase(ActionPhase.AWAITING_INPUT_SURFACE)
            return False
        run.fsm.enter_phase(ActionPhase.AWAITING_INPUT_SURFACE)
        return True

    async def _type_lines(self, run: _Run, lines: list[str], separator: str) -> None:
        for i, line in enumerate(lines):
            if i:
                await self._press(run, separator)
            await self._type(run, line)

    async def _type(self, run: _Run, text: str) -> None:
        await run.page.keyboard.type(text)
        run.typed = True

    async def _press(self, run: _Run, key: str) -> None:
        await run.page.keyboard.press(key)
        run.typed = True

    async def _commit(self, run: _Run, presses: int = 1) -> None:
        run.fsm.enter_phase(ActionPhase.COMMITTING)
        for _ in range(presses):
            await self._press(run, "Enter")

    async def _insert_heading(self, run: _Run, action: Action) -> None:
        level = action.payload.get("level", 2)
        text = action.payload.get("text", "")
        if await self._open_menu(run, "heading2" if level == 2 else "heading3"):
            await self._type(run, text)
        else:
            await self._type(run, f"{'#' * level} {text}")
        await self._commit(run)

    async def _insert_paragraph(self, run: _Run, action: Action) -> None:
        run.fsm.enter_phase(ActionPhase.AWAITING_INPUT_SURFACE)
        lines = action.payload.get("text", "").split("\n")
        await self._type_lines(run, lines, "Shift+Enter")
        await self._commit(run)

    async def _insert_list(self, run: _Run, action: Action) -> None:
        kind = action.payload.get("kind", "bullet")
        items: list[str] = action.payload.get("items", [])
        if await self._open_menu(run, kind):
            await self._type_lines(run, items, "Enter")
            await self._commit(run, presses=2)
            return
        for i, item in enumerate(items):
            marker = f"{i + 1}." if kind == "numbered" else "-"
            await self._type(run, f"{marker} {item}")
            await self._press(run, "Enter")
        await self._commit(run)

    async def _insert_quote(self, run: _Run, action: Action) -> None:
        lines: list[str] = action.payload.get("lines", [])
        if await self._open_menu(run, "quote"):
            await self._type_lines(run, lines, "Shift+Enter")
            await self._commit(run, presses=2)
            return
        await self._type_lines(run, [f"> {line}" for line in lines], "Shift+Enter")
        await self._commit(run, presses=2)

    async def _insert_code(self, run: _Run, action: Action) -> None:
        text = action.payload.get("text", "")
        if await self._open_menu(run, "code"):
            await self._type_lines(run, text.split("\n"), "Shift+Enter")
            await self._commit(run, presses=2)
            return
        await self._type(run, "```" + (action.payload.get("language") or ""))
        await self._press(run, "Enter")
        await self._type_lines(run, text.split("\n"), "Enter")
        await self._press(run, "Enter")
        await self._type(run, "```")
        await self._commit(run)

    async def _insert_divider(self, run: _Run, action: Action) -> None:
        if await self._open_menu(run, "divider"):
            run.fsm.enter_phase(ActionPhase.COMMITTING)
            return
        await self._type(run, "---")
        await self._commit(run)

    async def _insert_image(self, run: _Run, action: Action) -> None:
        run.fsm.enter_phase(ActionPhase.INVOKING_INSERT_MENU)
        await self._adapter.attach_file(run.page, action.payload["path"])
        run.fsm.enter_phase(ActionPhase.COMMITTING)

    async def _set_caption(self, run: _Run, action: Action) -> None:
        run.fsm.enter_phase(ActionPhase.AWAITING_INPUT_SURFACE)
        await self._adapter.set_caption(run.page, action.payload.get("text", ""))
        run.fsm.enter_phase(ActionPhase.COMMITTING)

    async def _set_cover_image(self, run: _Run, action: Action) -> None:
        run.fsm.enter_phase(ActionPhase.INVOKING_INSERT_MENU)
        await self._adapter.set_cover_image(run.page, action.payload["path"])
        run.fsm.enter_phase(ActionPhase.COMMITTING)
        await self._adapter.focus_body(run.page)


# ------------------------------------------------------------------
# Action handler dispatch table
# ------------------------------------------------------------------

_ActionHandler = Callable[[AutomationExecutor, _Run, Action], Awaitable[None]]

_ACTION_HANDLERS: dict[ActionType, _ActionHandler] = {
    ActionType.INSERT_HEADING: AutomationExecutor._insert_heading,
    ActionType.INSERT_PARAGRAPH: AutomationExecutor._insert_paragraph,
    ActionType.INSERT_LIST: AutomationExecutor._insert_list,
    ActionType.INSERT_QUOTE: AutomationExecutor._insert_quote,
    ActionType.INSERT_CODE: AutomationExecutor._insert_code,
    ActionType.INSERT_DIVIDER: AutomationExecutor._insert_divider,
    ActionType.INSERT_IMAGE: AutomationExecutor._insert_image,
    ActionType.SET_CAPTION: AutomationExecutor._set_caption,
    ActionType.SET_COVER_IMAGE: AutomationExecutor._set_cover_image,
}
