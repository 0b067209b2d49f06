"""Host surfaces a transcript is exported from.

A surface exposes the scrollable conversation container, the list of turns
and the transcript title. Each turn hands out parsed BeautifulSoup trees for
its user and assistant nodes and, where the host supports it, the hover /
copy / selection affordances used by the fallback tiers.
"""

from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .config import Selectors
from .log import log_debug


class ConversationTurn:
    """One exchange: a user node and the assistant node answering it."""

    def user_node(self) -> Optional[Tag]:
        raise NotImplementedError

    def assistant_node(self) -> Optional[Tag]:
        raise NotImplementedError

    def has_copy_affordance(self) -> bool:
        return False

    def hover_assistant(self):
        """Many hosts only reveal the copy button while the answer is hovered."""

    def activate_copy(self):
        raise NotImplementedError("This surface has no copy affordance")

    def select_assistant_text(self) -> str:
        raise NotImplementedError


class ChatSurface:
    """Queryable view of a conversation."""

    def scroll_container(self):
        raise NotImplementedError

    def scroll_to_origin(self, container):
        raise NotImplementedError

    def scroll_offset(self, container) -> int:
        raise NotImplementedError

    def turn_count(self) -> int:
        return len(self.turns())

    def turns(self) -> List[ConversationTurn]:
        raise NotImplementedError

    def title(self) -> str:
        return ""


class StaticTurn(ConversationTurn):
    def __init__(self, tag: Tag, selectors: Selectors):
        self._tag = tag
        self._selectors = selectors

    def user_node(self) -> Optional[Tag]:
        return self._tag.select_one(self._selectors.user_query)

    def assistant_node(self) -> Optional[Tag]:
        return self._tag.select_one(self._selectors.model_response)

    def select_assistant_text(self) -> str:
        node = self.assistant_node()
        return node.get_text() if node is not None else ""


class StaticSurface(ChatSurface):
    """A saved page. Everything is already rendered, so scrolling is a no-op
    and there is no copy button to press."""

    def __init__(self, html: str, selectors: Optional[Selectors] = None):
        self._selectors = selectors or Selectors()
        self._soup = BeautifulSoup(html, "html.parser")
        self._turns = [StaticTurn(tag, self._selectors)
                       for tag in self._soup.select(self._selectors.conversation_turn)]
        log_debug(f"Static surface: {len(self._turns)} turns")

    @classmethod
    def from_file(cls, path: Path, selectors: Optional[Selectors] = None) -> "StaticSurface":
        raw = Path(path).read_bytes()
        try:
            html = raw.decode("utf-8")
        except UnicodeDecodeError:
            html = raw.decode("cp932", errors="replace")
        return cls(html, selectors)

    def scroll_container(self):
        return self._soup.select_one(self._selectors.chat_container)

    def scroll_to_origin(self, container):
        pass

    def scroll_offset(self, container) -> int:
        return 0

    def turn_count(self) -> int:
        return len(self._turns)

    def turns(self) -> List[ConversationTurn]:
        return list(self._turns)

    def title(self) -> str:
        node = self._soup.select_one(self._selectors.conversation_title)
        if node is not None:
            return node.get_text().strip()
        title_tag = self._soup.find("title")
        return title_tag.get_text().strip() if title_tag else ""
