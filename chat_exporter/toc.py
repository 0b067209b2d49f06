"""Table of contents for exported transcripts."""

import re
from typing import Iterable, Sequence

from .config import Labels
from .models import Message

PREVIEW_CHARS = 50


def anchor_id(position: int) -> str:
    return f"message-{position}"


def anchor_tag(position: int) -> str:
    return f'<a id="{anchor_id(position)}"></a>'


def preview(content: str, noise_patterns: Iterable[str] = ("Show thinking",), limit: int = PREVIEW_CHARS) -> str:
    text = content
    for pattern in noise_patterns:
        text = re.sub(rf"^\s*{re.escape(pattern)}\s*", "", text, flags=re.I)
    text = text.strip()[:limit].replace("\n", " ")
    # brackets would end the link text early
    return text.replace("[", "").replace("]", "").strip()


def message_label(message: Message, labels: Labels) -> str:
    if message.is_user:
        return f"{labels.user_icon} {labels.user}"
    return f"{labels.assistant_icon} {labels.assistant}"


def build_toc(messages: Sequence[Message], labels: Labels,
              noise_patterns: Iterable[str] = ("Show thinking",)) -> str:
    """One numbered entry per message, linking to the anchor of its position."""
    noise_patterns = tuple(noise_patterns)
    lines = ["## 📑 Table of Contents", ""]
    for position, message in enumerate(messages, 1):
        text = preview(message.content, noise_patterns)
        lines.append(f"{position}. [{message_label(message, labels)}: {text}...](#{anchor_id(position)})")
    return "\n".join(lines) + "\n\n---\n\n"
