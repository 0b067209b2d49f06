"""Live browser surface driven through Playwright.

Connects to an already running Chromium-based browser (started with
``--remote-debugging-port``) so the user's signed-in Gemini tab can be
exported as-is. Clicking the host's copy button writes to the OS clipboard,
which the clipboard tier then reads through pyperclip.
"""

from contextlib import contextmanager
from typing import List, Optional

from bs4 import BeautifulSoup, Tag
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .config import Selectors
from .errors import ExportError
from .log import log_debug
from .surface import ChatSurface, ConversationTurn

# Select the node's contents, read the selection string, then clear it again.
SELECTION_JS = """
el => {
    const selection = window.getSelection();
    const range = document.createRange();
    range.selectNodeContents(el);
    selection.removeAllRanges();
    selection.addRange(range);
    const text = selection.toString();
    selection.removeAllRanges();
    return text;
}
"""


def _parse(handle) -> Optional[Tag]:
    if handle is None:
        return None
    soup = BeautifulSoup(handle.evaluate("el => el.outerHTML"), "html.parser")
    return soup.find(True)


class BrowserTurn(ConversationTurn):
    def __init__(self, handle, selectors: Selectors):
        self._handle = handle
        self._selectors = selectors
        self._user = None
        self._assistant = None

    def _assistant_handle(self):
        return self._handle.query_selector(self._selectors.model_response)

    def user_node(self) -> Optional[Tag]:
        if self._user is None:
            self._user = _parse(self._handle.query_selector(self._selectors.user_query))
        return self._user

    def assistant_node(self) -> Optional[Tag]:
        if self._assistant is None:
            self._assistant = _parse(self._assistant_handle())
        return self._assistant

    def has_copy_affordance(self) -> bool:
        return self._handle.query_selector(self._selectors.copy_button) is not None

    def hover_assistant(self):
        try:
            handle = self._assistant_handle()
            if handle is not None:
                handle.dispatch_event("mouseover")
        except PlaywrightError as e:
            raise ExportError(f"Hover failed: {e}") from e

    def activate_copy(self):
        try:
            button = self._handle.query_selector(self._selectors.copy_button)
            if button is None:
                raise ExportError("Copy button disappeared")
            button.click()
        except PlaywrightError as e:
            raise ExportError(f"Copy button click failed: {e}") from e

    def select_assistant_text(self) -> str:
        handle = self._assistant_handle()
        if handle is None:
            return ""
        try:
            return handle.evaluate(SELECTION_JS) or ""
        except PlaywrightError as e:
            log_debug(f"Selection failed, using innerText: {e}")
            return handle.inner_text()


class BrowserSurface(ChatSurface):
    def __init__(self, page, selectors: Optional[Selectors] = None):
        self._page = page
        self._selectors = selectors or Selectors()

    def scroll_container(self):
        return self._page.query_selector(self._selectors.chat_container)

    def scroll_to_origin(self, container):
        container.evaluate("el => { el.scrollTop = 0; }")

    def scroll_offset(self, container) -> int:
        return int(container.evaluate("el => el.scrollTop") or 0)

    def turn_count(self) -> int:
        return len(self._page.query_selector_all(self._selectors.conversation_turn))

    def turns(self) -> List[ConversationTurn]:
        return [BrowserTurn(h, self._selectors)
                for h in self._page.query_selector_all(self._selectors.conversation_turn)]

    def title(self) -> str:
        node = self._page.query_selector(self._selectors.conversation_title)
        return node.text_content().strip() if node else ""


def _find_page(browser, url_hint: str):
    pages = [page for context in browser.contexts for page in context.pages]
    for page in pages:
        if url_hint in page.url:
            return page
    if pages:
        log_debug(f"No tab matching '{url_hint}', using {pages[0].url}")
        return pages[0]
    raise ExportError("No open browser tab found to export from.")


@contextmanager
def open_browser_surface(cdp_url: str, selectors: Optional[Selectors] = None,
                         url_hint: str = "gemini.google.com"):
    """Attach to a running browser over CDP and yield a surface for its chat tab."""
    with sync_playwright() as p:
        try:
            browser = p.chromium.connect_over_cdp(cdp_url)
        except PlaywrightError as e:
            raise ExportError(f"Could not connect to browser at {cdp_url}: {e}") from e
        try:
            page = _find_page(browser, url_hint)
            page.bring_to_front()
            log_debug(f"Exporting from {page.url}")
            yield BrowserSurface(page, selectors)
        finally:
            browser.close()
