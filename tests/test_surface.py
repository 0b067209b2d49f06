"""Tests for host surfaces and the clipboard wrapper."""

from unittest.mock import Mock

import pyperclip
import pytest
from playwright.sync_api import Error as PlaywrightError

from chat_exporter.browser import SELECTION_JS, BrowserSurface, BrowserTurn, _find_page
from chat_exporter.clipboard import Clipboard
from chat_exporter.config import Selectors
from chat_exporter.errors import ClipboardError, ExportError
from chat_exporter.surface import StaticSurface
from conftest import SAVED_PAGE


class TestStaticSurface:
    def test_turns_and_nodes(self):
        surface = StaticSurface(SAVED_PAGE)
        turns = surface.turns()
        assert surface.turn_count() == 2
        assert turns[0].user_node().name == "user-query"
        assert turns[1].assistant_node().name == "model-response"
        assert not turns[0].has_copy_affordance()
        assert turns[1].select_assistant_text() == "print(3.14)"

    def test_container_and_title(self):
        surface = StaticSurface(SAVED_PAGE)
        assert surface.scroll_container() is not None
        assert surface.scroll_offset(surface.scroll_container()) == 0
        assert surface.title() == "Pi facts"

    def test_title_falls_back_to_page_title(self):
        assert StaticSurface("<html><head><title> Saved chat </title></head></html>").title() == "Saved chat"

    def test_missing_container(self):
        assert StaticSurface("<div></div>").scroll_container() is None

    def test_from_file_legacy_encoding(self, tmp_path):
        path = tmp_path / "page.html"
        path.write_bytes('<div class="conversation-title">日本語</div>'.encode("cp932"))
        assert StaticSurface.from_file(path).title() == "日本語"

    def test_custom_selectors(self):
        html = '<main id="log"><section class="turn"><q-user>hi</q-user></section></main>'
        surface = StaticSurface(html, Selectors(chat_container="#log", conversation_turn="section.turn",
                                                user_query="q-user"))
        assert surface.scroll_container() is not None
        assert surface.turns()[0].user_node().get_text() == "hi"


class TestClipboard:
    def test_errors_are_wrapped(self, monkeypatch):
        def fail(*args):
            raise pyperclip.PyperclipException("no clipboard mechanism")

        monkeypatch.setattr(pyperclip, "paste", fail)
        monkeypatch.setattr(pyperclip, "copy", fail)
        with pytest.raises(ClipboardError):
            Clipboard().read()
        with pytest.raises(ClipboardError):
            Clipboard().clear()

    def test_read_and_write(self, monkeypatch):
        store = {}
        monkeypatch.setattr(pyperclip, "copy", lambda text: store.update(text=text))
        monkeypatch.setattr(pyperclip, "paste", lambda: store.get("text"))
        clipboard = Clipboard()
        clipboard.write("hello")
        assert clipboard.read() == "hello"
        clipboard.clear()
        assert clipboard.read() == ""


def fake_handle(outer_html, selection=""):
    handle = Mock()
    handle.evaluate.side_effect = lambda script: selection if script == SELECTION_JS else outer_html
    return handle


class TestBrowserSurface:
    def make_turn(self, copy_button=True):
        user = fake_handle("<user-query><p>Question</p></user-query>")
        answer = fake_handle("<model-response><p>Answer</p></model-response>", selection="Answer")
        button = Mock() if copy_button else None
        lookup = {"user-query": user, "model-response": answer, Selectors().copy_button: button}
        container = Mock()
        container.query_selector.side_effect = lookup.get
        return BrowserTurn(container, Selectors()), answer, button

    def test_nodes_are_parsed(self):
        turn, _, _ = self.make_turn()
        assert turn.user_node().get_text() == "Question"
        assert turn.assistant_node().name == "model-response"

    def test_copy_affordance(self):
        turn, answer, button = self.make_turn()
        assert turn.has_copy_affordance()
        turn.hover_assistant()
        answer.dispatch_event.assert_called_once_with("mouseover")
        turn.activate_copy()
        button.click.assert_called_once_with()

    def test_missing_copy_button(self):
        turn, _, _ = self.make_turn(copy_button=False)
        assert not turn.has_copy_affordance()
        with pytest.raises(ExportError):
            turn.activate_copy()

    def test_host_errors_become_export_errors(self):
        turn, answer, button = self.make_turn()
        button.click.side_effect = PlaywrightError("Timeout 30000ms exceeded")
        with pytest.raises(ExportError, match="Timeout"):
            turn.activate_copy()
        answer.dispatch_event.side_effect = PlaywrightError("Element is not attached to the DOM")
        with pytest.raises(ExportError, match="not attached"):
            turn.hover_assistant()

    def test_selection_text(self):
        turn, _, _ = self.make_turn()
        assert turn.select_assistant_text() == "Answer"

    def test_page_queries(self):
        page = Mock()
        container = Mock()
        container.evaluate.return_value = 120
        page.query_selector.return_value = container
        page.query_selector_all.return_value = [Mock(), Mock()]
        surface = BrowserSurface(page)
        assert surface.scroll_container() is container
        assert surface.scroll_offset(container) == 120
        assert surface.turn_count() == 2
        assert len(surface.turns()) == 2

    def test_find_page_prefers_chat_tab(self):
        other, chat = Mock(url="https://example.org"), Mock(url="https://gemini.google.com/app/1")
        browser = Mock(contexts=[Mock(pages=[other, chat])])
        assert _find_page(browser, "gemini.google.com") is chat
        with pytest.raises(ExportError):
            _find_page(Mock(contexts=[]), "gemini.google.com")
