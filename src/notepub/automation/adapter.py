"""Editor adapter: every platform-specific DOM detail lives here.

The executor drives the editor only through the :class:`EditorAdapter`
protocol.  :class:`NoteEditorAdapter` implements it for the current
note.com editor, whose menus are labelled in Japanese (the browser
context is created with the ``ja-JP`` locale).

Selector lists are ordered label -> role/text -> structural.  The
geometric scan for the floating "+" button is the last structural
strategy and is never tried while a labelled control is visible.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from notepub.config import NotePubConfig
from notepub.errors import NotePubLocatorError
from notepub.observability import get_logger

from .locators import LocatorStrategy, LocatorTier, css, first_visible

log = get_logger("notepub.automation.adapter")

_DRAFT_KEY_RE = re.compile(r"/notes/(n\w+)/edit")

BODY_SELECTOR = 'div[contenteditable="true"][role="textbox"]'

# Insert-menu kind -> menu item label.
MENU_LABELS: dict[str, str] = {
    "heading2": "大見出し",
    "heading3": "小見出し",
    "bullet": "箇条書きリスト",
    "numbered": "番号付きリスト",
    "quote": "引用",
    "code": "コード",
    "divider": "区切り線",
    "image": "画像",
}

_TITLE_STRATEGIES: tuple[LocatorStrategy, ...] = (
    css("textarea placeholder", 'textarea[placeholder*="タイトル"]'),
    css("input placeholder", 'input[placeholder*="タイトル"]'),
    css("textarea aria-label", 'textarea[aria-label*="タイトル"]'),
    css("input aria-label", 'input[aria-label*="タイトル"]'),
    css("testid textarea", '[data-testid*="title"] textarea', LocatorTier.ROLE_TEXT),
    css("testid input", '[data-testid*="title"] input', LocatorTier.ROLE_TEXT),
    css(
        "contenteditable placeholder",
        '[contenteditable="true"][data-placeholder*="タイトル"]',
        LocatorTier.ROLE_TEXT,
    ),
    css("editable h1", 'h1[contenteditable="true"]', LocatorTier.STRUCTURAL),
    css("first textarea", "textarea", LocatorTier.STRUCTURAL),
    css("first text input", 'input[type="text"]', LocatorTier.STRUCTURAL),
)

_COVER_STRATEGIES: tuple[LocatorStrategy, ...] = (
    css("add image aria", 'button[aria-label="画像を追加"]'),
    css("upload image aria", 'button[aria-label*="画像をアップロード"]'),
    css("eyecatch aria", 'button[aria-label*="アイキャッチ"]'),
    css("thumbnail aria", 'button[aria-label*="サムネ"]'),
    css("cover aria", 'button[aria-label*="カバー"]'),
    css("add image text", 'button:has-text("画像を追加")', LocatorTier.ROLE_TEXT),
    css("upload image text", 'button:has-text("画像をアップロード")', LocatorTier.ROLE_TEXT),
    css("add image role", '[role="button"]:has-text("画像を追加")', LocatorTier.ROLE_TEXT),
    css(
        "upload image role",
        '[role="button"]:has-text("画像をアップロード")',
        LocatorTier.ROLE_TEXT,
    ),
    css("eyecatch role", '[role="button"][aria-label*="アイキャッチ"]', LocatorTier.ROLE_TEXT),
)

_COVER_MENU_STRATEGIES: tuple[LocatorStrategy, ...] = (
    css("upload menu item", '[role="menuitem"]:has-text("画像をアップロード")', LocatorTier.ROLE_TEXT),
    css("image menu item", '[role="menuitem"]:has-text("画像")', LocatorTier.ROLE_TEXT),
)

_SAVE_STRATEGIES: tuple[LocatorStrategy, ...] = (
    css("save draft text", 'button:has-text("下書き保存")', LocatorTier.ROLE_TEXT),
    css("save draft role", '[role="button"]:has-text("下書き保存")', LocatorTier.ROLE_TEXT),
)

_CAPTION_STRATEGIES: tuple[LocatorStrategy, ...] = (
    LocatorStrategy(
        "caption placeholder",
        LocatorTier.ROLE_TEXT,
        lambda page: page.locator("text=キャプションを入力").last,
    ),
)

_CROP_DIALOG = 'div[role="dialog"]'
_CROP_SAVE = 'button:has-text("保存")'


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class EditorAdapter(Protocol):
    """Platform-specific editor operations used by the executor."""

    def new_draft_url(self) -> str:
        ...

    def edit_url(self, draft_key: str) -> str:
        ...

    def is_login_page(self, page: Page) -> bool:
        ...

    async def fill_title(self, page: Page, title: str) -> None:
        ...

    async def focus_body(self, page: Page) -> None:
        ...

    async def invoke_insert_menu(self, page: Page, kind: str) -> None:
        ...

    async def attach_file(self, page: Page, path: str) -> None:
        ...

    async def set_caption(self, page: Page, text: str) -> None:
        ...

    async def set_cover_image(self, page: Page, path: str) -> None:
        ...

    async def save_draft(self, page: Page) -> bool:
        ...

    def parse_draft_key(self, url: str) -> str | None:
        ...


# ---------------------------------------------------------------------------
# note.com implementation
# ---------------------------------------------------------------------------

class NoteEditorAdapter:
    """:class:`EditorAdapter` for the note.com editor.

    Parameters
    ----------
    config:
        Supplies the editor URLs and the timeouts.
    """

    def __init__(self, config: NotePubConfig) -> None:
        self._config = config
        self._timeout = config.action_timeout_ms

    # -- addresses --------------------------------------------------------

    def new_draft_url(self) -> str:
        return f"{self._config.editor_base_url.rstrip('/')}/new"

    def edit_url(self, draft_key: str) -> str:
        key = draft_key if draft_key.startswith("n") else f"n{draft_key}"
        return f"{self._config.editor_base_url.rstrip('/')}/notes/{key}/edit/"

    def is_login_page(self, page: Page) -> bool:
        return "/login" in page.url

    def parse_draft_key(self, url: str) -> str | None:
        match = _DRAFT_KEY_RE.search(url)
        return match.group(1) if match else None

    # -- title and body ---------------------------------------------------

    async def fill_title(self, page: Page, title: str) -> None:
        """Locate the title field and replace its contents with *title*.

        Raises
        ------
        NotePubLocatorError
            If no title strategy finds a visible field within the title
            budget.
        """
        per_strategy = max(self._config.title_timeout_ms // len(_TITLE_STRATEGIES), 1_000)
        field = await first_visible(page, "title field", _TITLE_STRATEGIES, per_strategy)
        await field.click()
        try:
            await field.fill(title)
        except PlaywrightError:
            await page.keyboard.press("Control+A")
            await page.keyboard.press("Backspace")
            await page.keyboard.type(title)

    async def focus_body(self, page: Page) -> None:
        body = page.locator(BODY_SELECTOR).first
        await body.wait_for(state="visible", timeout=self._config.navigation_timeout_ms)
        await body.click()

    # -- insert menu ------------------------------------------------------

    async def invoke_insert_menu(self, page: Page, kind: str) -> None:
        """Open the "+" menu and choose the item for *kind*.

        Raises
        ------
        NotePubLocatorError
            If the menu or the item cannot be found.  The caller falls back
            to typing Markdown.
        KeyError
            If *kind* has no menu label.
        """
        label = MENU_LABELS[kind]
        await self._open_plus_menu(page)
        item = await first_visible(
            page,
            f"menu item {label}",
            (css(f"menu item {label}", f'[role="menuitem"]:has-text("{label}")', LocatorTier.ROLE_TEXT),),
            self._timeout,
        )
        await item.click()
        await page.wait_for_timeout(self._config.settle_delay_ms)

    async def _open_plus_menu(self, page: Page) -> None:
        strategies = (
            css("plus aria", f'{BODY_SELECTOR} ~ button[aria-label*="追加"]'),
            css("plus aria global", 'button[aria-label="メニューを開く"]'),
            LocatorStrategy(
                "plus geometry",
                LocatorTier.STRUCTURAL,
                _plus_button_by_geometry,
            ),
        )
        try:
            button = await first_visible(page, "insert menu button", strategies, self._timeout)
        except NotePubLocatorError:
            await self._click_beside_body(page)
            return
        await button.hover()
        await button.click()
        await page.wait_for_timeout(self._config.settle_delay_ms)

    async def _click_beside_body(self, page: Page) -> None:
        box = await page.locator(BODY_SELECTOR).first.bounding_box()
        if box is None:
            raise NotePubLocatorError(
                message="Body area has no bounding box",
                context={"target": "insert menu button", "strategies": ["body offset"]},
            )
        await page.mouse.click(box["x"] - 30, box["y"] + 50)
        await page.wait_for_timeout(self._config.settle_delay_ms)

    # -- images -----------------------------------------------------------

    async def attach_file(self, page: Page, path: str) -> None:
        """Insert the image at *path* below the current block."""
        await page.keyboard.press("Enter")
        await page.keyboard.press("Enter")
        await self._open_plus_menu(page)
        item = await first_visible(
            page,
            "image menu item",
            (css("image menu item", '[role="menuitem"]:has-text("画像")', LocatorTier.ROLE_TEXT),),
            self._timeout,
        )
        await self._choose_file(page, item, path)

    async def set_caption(self, page: Page, text: str) -> None:
        target = await first_visible(page, "caption field", _CAPTION_STRATEGIES, self._timeout)
        await target.click()
        await page.keyboard.type(text)
        await page.keyboard.press("Escape")

    async def set_cover_image(self, page: Page, path: str) -> None:
        button = await first_visible(page, "cover image button", _COVER_STRATEGIES, self._timeout)
        await button.click()
        try:
            item = await first_visible(
                page, "cover upload menu item", _COVER_MENU_STRATEGIES, self._timeout,
            )
        except NotePubLocatorError:
            # Some editor versions open the file chooser from the button itself.
            item = button
        await self._choose_file(page, item, path)

    async def _choose_file(self, page: Page, trigger: Locator, path: str) -> None:
        async with page.expect_file_chooser(timeout=self._timeout) as chooser_info:
            await trigger.click()
        chooser = await chooser_info.value
        await chooser.set_files(path)
        await self._confirm_crop_dialog(page)

    async def _confirm_crop_dialog(self, page: Page) -> None:
        dialog = page.locator(_CROP_DIALOG).first
        try:
            await dialog.wait_for(state="visible", timeout=self._timeout)
        except PlaywrightError:
            # No crop step for this image.
            return
        await dialog.locator(_CROP_SAVE).first.click()
        await dialog.wait_for(state="hidden", timeout=self._config.navigation_timeout_ms)

    # -- save -------------------------------------------------------------

    async def save_draft(self, page: Page) -> bool:
        """Click the save control if it is enabled.

        Returns
        -------
        bool
            ``True`` if the control was clicked.  A disabled control means
            the editor already auto-saved.
        """
        button = await first_visible(page, "save draft button", _SAVE_STRATEGIES, self._timeout)
        if not await button.is_enabled():
            log.info(
                "Save control disabled, relying on auto-save",
                extra={"extra_fields": {"op": "save_draft", "url": page.url}},
            )
            return False
        await button.click()
        await page.wait_for_timeout(self._config.settle_delay_ms)
        return True


async def _plus_button_by_geometry(page: Page) -> Locator | None:
    """Find the small button floating left of the body area."""
    body_box = await page.locator(BODY_SELECTOR).first.bounding_box()
    if body_box is None:
        return None
    buttons = page.locator("button")
    for index in range(await buttons.count()):
        candidate = buttons.nth(index)
        box = await candidate.bounding_box()
        if box is None:
            continue
        if (
            body_box["x"] - 100 < box["x"] < body_box["x"]
            and body_box["y"] < box["y"] < body_box["y"] + 300
            and box["width"] < 60
        ):
            return candidate
    return None
