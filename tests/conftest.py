"""Pytest fixtures and fakes for chat exporter tests."""

from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from chat_exporter.clipboard import Clipboard
from chat_exporter.config import RetryPolicy
from chat_exporter.errors import ClipboardError
from chat_exporter.surface import ChatSurface, ConversationTurn

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

SAVED_PAGE = r"""<html><head><title>Gemini</title></head><body>
<div class="conversation-title">Pi facts</div>
<div data-test-id="chat-history-container">
  <div class="conversation-container">
    <user-query><input type="checkbox" class="gemini-export-checkbox"><p>What is pi?</p></user-query>
    <model-response><message-content><p>Pi is <span class="math-inline" data-math="\pi \approx 3.14">π≈3.14</span>.</p></message-content></model-response>
  </div>
  <div class="conversation-container">
    <user-query><p>Show code</p></user-query>
    <model-response><pre><code class="language-python">print(3.14)</code></pre></model-response>
  </div>
</div>
</body></html>
"""


def parse(html):
    """First element of an HTML fragment."""
    return BeautifulSoup(html, "html.parser").find(True)


def no_sleep(seconds):
    pass


class FakeClipboard(Clipboard):
    """Records every call; ``reads`` are served in order, then empty strings."""

    def __init__(self, reads=None, fail_reads=False, fail_writes=False):
        self.reads = list(reads or [])
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.calls = []
        self.written = []

    def clear(self):
        self.calls.append("clear")

    def read(self):
        self.calls.append("read")
        if self.fail_reads:
            raise ClipboardError("clipboard locked")
        return self.reads.pop(0) if self.reads else ""

    def write(self, text):
        self.calls.append("write")
        if self.fail_writes:
            raise ClipboardError("clipboard unavailable")
        self.written.append(text)


class FakeTurn(ConversationTurn):
    def __init__(self, user_html=None, assistant_html=None, copy_button=False, selection=""):
        self._user = parse(user_html) if user_html else None
        self._assistant = parse(assistant_html) if assistant_html else None
        self._copy_button = copy_button
        self._selection = selection
        self.hovers = 0
        self.copies = 0

    def user_node(self):
        return self._user

    def assistant_node(self):
        return self._assistant

    def has_copy_affordance(self):
        return self._copy_button

    def hover_assistant(self):
        self.hovers += 1

    def activate_copy(self):
        self.copies += 1

    def select_assistant_text(self):
        return self._selection


class FakeSurface(ChatSurface):
    """Each scroll to the origin reveals the next entry of ``loads`` (turn counts)."""

    def __init__(self, turns=(), title="", has_container=True, loads=None, offsets=None):
        self._turns = list(turns)
        self._title = title
        self._has_container = has_container
        self._loads = list(loads) if loads is not None else [len(self._turns)]
        self._offsets = list(offsets) if offsets is not None else [0]
        self.scrolls = 0

    def scroll_container(self):
        return object() if self._has_container else None

    def scroll_to_origin(self, container):
        self.scrolls += 1

    def scroll_offset(self, container):
        return self._offsets[min(self.scrolls, len(self._offsets) - 1)]

    def turn_count(self):
        return self._loads[min(self.scrolls, len(self._loads) - 1)]

    def turns(self):
        return list(self._turns)

    def title(self):
        return self._title


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, delay=0, stability_threshold=1, hover_delay=0)


@pytest.fixture
def clipboard():
    return FakeClipboard()
