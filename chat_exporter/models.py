"""Document model shared by the assembler and the renderers."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class MessageKind(Enum):
    USER = "user"
    ASSISTANT = "ai"


@dataclass(frozen=True)
class Message:
    kind: MessageKind
    content: str
    sequence_index: int

    @property
    def is_user(self) -> bool:
        return self.kind is MessageKind.USER


@dataclass(frozen=True)
class Document:
    """Canonical export document. Messages are kept as a tuple so renderers
    only ever see a read-only view."""

    title: Optional[str]
    exported_at: datetime
    messages: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "messages", tuple(self.messages))


@dataclass(frozen=True)
class Statistics:
    word_count: int = 0
    char_count: int = 0
    line_count: int = 0
    code_block_count: int = 0
    math_expression_count: int = 0
    processed_count: int = 0
    fallback_used_count: int = 0
    user_message_count: int = 0
    ai_message_count: int = 0

    def to_dict(self) -> dict:
        return {
            "words": self.word_count,
            "chars": self.char_count,
            "lines": self.line_count,
            "codeBlocks": self.code_block_count,
            "mathExpressions": self.math_expression_count,
            "processed": self.processed_count,
            "fallbackUsed": self.fallback_used_count,
            "userMessages": self.user_message_count,
            "aiMessages": self.ai_message_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statistics":
        return cls(
            word_count=int(data.get("words", 0)),
            char_count=int(data.get("chars", 0)),
            line_count=int(data.get("lines", 0)),
            code_block_count=int(data.get("codeBlocks", 0)),
            math_expression_count=int(data.get("mathExpressions", 0)),
            processed_count=int(data.get("processed", 0)),
            fallback_used_count=int(data.get("fallbackUsed", 0)),
            user_message_count=int(data.get("userMessages", 0)),
            ai_message_count=int(data.get("aiMessages", 0)),
        )
