"""Turn a list of conversation turns into the canonical export document."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .config import ExportConfig
from .errors import ExportError
from .extraction import FENCED_CODE
from .fallback import PLACEHOLDER, FallbackChain
from .log import log_debug
from .models import Document, Message, MessageKind, Statistics
from .renderers import render_markdown_body
from .surface import ConversationTurn

# --- Cleanup transforms applied to assistant text ---

_CITATIONS = re.compile(r"\[cite_start\]|\[cite:\s*[^\]]*\]|\+\]")
_BROKEN_LIST = re.compile(r"^(\*|[-+]|\d+\.)[ \t]*\n\s*", re.M)
_MATH_EXPRESSION = re.compile(r"\$[^$]+\$")


def strip_citations(text: str) -> str:
    return _CITATIONS.sub("", text)


def strip_reasoning_labels(text: str, patterns: Iterable[str]) -> str:
    for pattern in patterns:
        text = re.sub(rf"^\s*{re.escape(pattern)}\s*$", "", text, flags=re.I | re.M)
        text = text.replace(pattern, "")
    return text


def collapse_blank_lines(text: str) -> str:
    return re.sub(r"\n{3,}", "\n\n", text)


def fix_broken_lists(text: str) -> str:
    """Join a list marker left alone on its line with the text that follows."""
    return _BROKEN_LIST.sub(r"\1 ", text)


def _clean_prose(text: str, noise_patterns: Iterable[str]) -> str:
    text = strip_citations(text)
    text = strip_reasoning_labels(text, noise_patterns)
    text = collapse_blank_lines(text)
    return fix_broken_lists(text)


def clean_assistant_text(text: str, noise_patterns: Iterable[str] = ("Show thinking",)) -> str:
    """Clean the prose of an answer. Fenced code is kept byte for byte."""
    parts = FENCED_CODE.split(text)
    return "".join(p if i % 2 else _clean_prose(p, noise_patterns) for i, p in enumerate(parts)).strip()


# --- Message selection ---

@dataclass(frozen=True)
class PlannedTurn:
    turn: ConversationTurn
    number: int
    include_user: bool
    include_assistant: bool


@dataclass(frozen=True)
class MessageSelection:
    """Which messages of which turns go into the export.

    ``custom`` selections name messages as ``u<N>`` (user) and ``a<N>``
    (assistant), N being the 1-based turn number.
    """

    mode: str = "all"
    users: FrozenSet[int] = frozenset()
    assistants: FrozenSet[int] = frozenset()

    @classmethod
    def parse(cls, mode: str = "all", include: Optional[str] = None) -> "MessageSelection":
        if include:
            users, assistants = set(), set()
            for token in re.split(r"[,\s]+", include.strip()):
                if not token:
                    continue
                m = re.fullmatch(r"([uUaA])(\d+)", token)
                if not m or int(m.group(2)) < 1:
                    raise ExportError(f"Invalid message reference '{token}' (expected u<N> or a<N>)")
                (users if m.group(1).lower() == "u" else assistants).add(int(m.group(2)))
            return cls("custom", frozenset(users), frozenset(assistants))

        mode = (mode or "all").lower()
        if mode not in ("all", "ai", "none"):
            raise ExportError(f"Unknown selection '{mode}' (expected all, ai or none)")
        return cls(mode)

    def includes(self, kind: MessageKind, number: int) -> bool:
        if self.mode == "all":
            return True
        if self.mode == "ai":
            return kind is MessageKind.ASSISTANT
        if self.mode == "none":
            return False
        pool = self.users if kind is MessageKind.USER else self.assistants
        return number in pool

    def resolve(self, turns: Sequence[ConversationTurn]) -> List[PlannedTurn]:
        """Plan only the messages that exist and are selected."""
        plan = []
        for number, turn in enumerate(turns, 1):
            include_user = self.includes(MessageKind.USER, number) and turn.user_node() is not None
            include_assistant = (self.includes(MessageKind.ASSISTANT, number)
                                 and turn.assistant_node() is not None)
            if include_user or include_assistant:
                plan.append(PlannedTurn(turn, number, include_user, include_assistant))
        return plan


# --- Statistics ---


def compute_content_stats(markdown: str) -> dict:
    return {
        "word_count": len(markdown.split()),
        "char_count": len(markdown),
        "line_count": markdown.count("\n") + 1,
        "code_block_count": markdown.count("```") // 2,
        "math_expression_count": len(_MATH_EXPRESSION.findall(markdown)),
    }


def _now() -> datetime:
    return datetime.now().astimezone()


class DocumentAssembler:
    def __init__(self, chain: FallbackChain, config: ExportConfig, clock: Callable[[], datetime] = _now):
        self._chain = chain
        self._config = config
        self._clock = clock

    def assemble(self, plan: Sequence[PlannedTurn], title_hint: str = "") -> Tuple[Document, Statistics]:
        messages: List[Message] = []
        processed = 0
        fallback_used = 0
        users = 0

        for planned in plan:
            label = f"Turn {planned.number}: "
            if planned.include_user:
                node = planned.turn.user_node()
                text = node.get_text().strip() if node is not None else ""
                messages.append(Message(MessageKind.USER, text, len(messages)))
                users += 1

            if planned.include_assistant:
                processed += 1
                extraction = self._chain.extract_assistant_message(planned.turn, label)
                if extraction.used_fallback:
                    fallback_used += 1
                text = extraction.text
                if not extraction.is_placeholder:
                    text = clean_assistant_text(text, self._config.noise_patterns) or PLACEHOLDER
                messages.append(Message(MessageKind.ASSISTANT, text, len(messages)))
                log_debug(f"{label}{extraction.tier or 'placeholder'} ({len(text)} chars)")

        document = Document(title_hint or None, self._clock(), messages)

        counts = compute_content_stats(render_markdown_body(document, self._config.labels))
        stats = Statistics(
            processed_count=processed,
            fallback_used_count=fallback_used,
            user_message_count=users,
            ai_message_count=processed,
            **counts,
        )
        return document, stats
