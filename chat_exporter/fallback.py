"""Three-tier extraction of assistant answers.

Tiers are tried in order of how much they disturb the host view:

1. ``structural`` - read the rendered tree directly.
2. ``clipboard``  - press the host's own copy button and read the clipboard.
3. ``selection``  - select the answer's rendered text and read it back.

The first tier that succeeds wins. If even the last tier comes back empty
the message gets an explicit placeholder instead of disappearing.
"""

import time
from dataclasses import dataclass
from typing import Optional, Sequence

from .clipboard import Clipboard
from .config import RetryPolicy
from .errors import ExportError
from .extraction import ExtractionEngine
from .log import log_debug, log_warn
from .surface import ConversationTurn

PLACEHOLDER = "[Content unavailable: all extraction methods failed.]"

STRUCTURAL = "structural"
CLIPBOARD = "clipboard"
SELECTION = "selection"


@dataclass(frozen=True)
class TierResult:
    text: str
    ok: bool

    @classmethod
    def failed(cls) -> "TierResult":
        return cls("", False)


@dataclass(frozen=True)
class Extraction:
    text: str
    tier: Optional[str]

    @property
    def used_fallback(self) -> bool:
        """True when the last-resort selection tier supplied the text."""
        return self.tier == SELECTION

    @property
    def is_placeholder(self) -> bool:
        return self.tier is None


class StructuralStrategy:
    name = STRUCTURAL

    def __init__(self, engine: ExtractionEngine):
        self._engine = engine

    def attempt(self, turn: ConversationTurn) -> TierResult:
        text = self._engine.extract(turn.assistant_node())
        return TierResult(text, bool(text.strip()))


class ClipboardStrategy:
    name = CLIPBOARD

    def __init__(self, clipboard: Clipboard, policy: RetryPolicy, sleep=time.sleep):
        self._clipboard = clipboard
        self._policy = policy
        self._sleep = sleep

    def attempt(self, turn: ConversationTurn) -> TierResult:
        if not turn.has_copy_affordance():
            log_debug("No copy button on this turn, skipping clipboard tier")
            return TierResult.failed()

        try:
            self._clipboard.clear()
        except ExportError as e:
            log_warn(f"Could not clear clipboard: {e}")

        for attempt in range(1, self._policy.max_attempts + 1):
            # hover + copy again on every attempt, the host may not have been ready
            try:
                turn.hover_assistant()
                self._sleep(self._policy.hover_delay)
                turn.activate_copy()
                self._sleep(self._policy.delay)
                text = self._clipboard.read()
            except Exception as e:
                log_warn(f"Clipboard attempt {attempt} failed: {e}")
                continue
            if text and text.strip():
                return TierResult(text, True)
            log_debug(f"Clipboard attempt {attempt}/{self._policy.max_attempts} came back empty")
        return TierResult.failed()


class SelectionStrategy:
    name = SELECTION

    def attempt(self, turn: ConversationTurn) -> TierResult:
        # last resort: whatever the selection yields is accepted
        return TierResult(turn.select_assistant_text() or "", True)


class FallbackChain:
    """Runs the strategies in order and records which one produced the text."""

    def __init__(self, strategies: Sequence):
        self._strategies = list(strategies)

    @classmethod
    def default(cls, engine: ExtractionEngine, clipboard: Clipboard, policy: RetryPolicy,
                sleep=time.sleep) -> "FallbackChain":
        return cls([
            StructuralStrategy(engine),
            ClipboardStrategy(clipboard, policy, sleep=sleep),
            SelectionStrategy(),
        ])

    @property
    def tier_names(self):
        return [s.name for s in self._strategies]

    def extract_assistant_message(self, turn: ConversationTurn, label: str = "") -> Extraction:
        for strategy in self._strategies:
            log_debug(f"{label}trying {strategy.name} extraction")
            try:
                result = strategy.attempt(turn)
            except Exception as e:
                log_warn(f"{label}{strategy.name} extraction failed: {e}")
                continue
            if result.ok:
                if not result.text.strip():
                    break
                log_debug(f"{label}{strategy.name} extraction used ({len(result.text)} chars)")
                return Extraction(result.text, strategy.name)
            log_debug(f"{label}{strategy.name} extraction returned nothing")

        log_warn(f"{label}all extraction methods failed")
        return Extraction(PLACEHOLDER, None)
