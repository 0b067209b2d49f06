"""Tests for the table of contents."""

import re

from chat_exporter.config import Labels
from chat_exporter.models import Message, MessageKind
from chat_exporter.toc import anchor_tag, build_toc, preview


def messages():
    return [
        Message(MessageKind.USER, "How do I [escape] brackets?", 0),
        Message(MessageKind.ASSISTANT, "Show thinking\nUse a backslash.\nThat is all.", 1),
        Message(MessageKind.USER, "x" * 80, 2),
    ]


def test_one_entry_per_message():
    toc = build_toc(messages(), Labels())
    entries = re.findall(r"^\d+\. \[.*\]\(#message-(\d+)\)$", toc, re.M)
    assert entries == ["1", "2", "3"]


def test_entry_format():
    toc = build_toc(messages(), Labels())
    assert toc.startswith("## 📑 Table of Contents\n\n")
    assert "1. [🧑 You: How do I escape brackets?...](#message-1)" in toc
    assert "2. [🤖 Gemini: Use a backslash. That is all....](#message-2)" in toc
    assert toc.endswith("\n\n---\n\n")


def test_preview_is_truncated():
    assert preview("x" * 80) == "x" * 50


def test_anchor_tag():
    assert anchor_tag(7) == '<a id="message-7"></a>'
