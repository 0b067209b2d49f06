"""One complete export: load, select, assemble, render, deliver."""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .assembler import DocumentAssembler, MessageSelection
from .clipboard import Clipboard
from .config import FORMATS, MODES, ExportConfig
from .errors import ClipboardError, ExportError, NothingSelected, SinkError
from .extraction import ExtractionEngine
from .fallback import FallbackChain
from .loader import ScrollLoader
from .log import log_debug
from .models import Document, Statistics
from .renderers import FILE_EXTENSIONS, render
from .surface import ChatSurface

_TURKISH = str.maketrans({
    "ç": "c", "Ç": "C", "ğ": "g", "Ğ": "G", "ı": "i",
    "İ": "I", "ö": "o", "Ö": "O", "ş": "s", "Ş": "S", "ü": "u", "Ü": "U",
})


def sanitize_filename(name: str) -> str:
    name = name.translate(_TURKISH)
    name = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", name)
    name = re.sub(r'[\\/:*?"<>|.#`]', "", name)
    name = re.sub(r"\s+", "_", name)
    return name.strip("_")[:80]


def generate_filename(custom: str, title: str, now: datetime, date_format: str = "%Y-%m-%d_%H%M%S") -> str:
    """Base name (no extension) for an export file."""
    date_str = now.strftime(date_format)
    fallback = f"gemini_chat_export_{date_str}"
    if custom and custom.strip():
        base = re.sub(r"\.[^/.]+$", "", custom.strip())
        base = re.sub(r"[^A-Za-z0-9_\-]", "_", base)
        return base or fallback
    if title:
        safe = sanitize_filename(title)
        if safe:
            return f"{safe}_{date_str}"
    return fallback


def resolve_output_dir(template: str, now: datetime, base_dir: Path) -> Path:
    resolved = (template.replace("{year}", now.strftime("%Y"))
                .replace("{month}", now.strftime("%m"))
                .replace("{date}", now.strftime("%Y%m%d")))
    out_path = Path(resolved)
    # Relative paths are anchored at the configured base directory
    return out_path if out_path.is_absolute() else base_dir / out_path


@dataclass(frozen=True)
class ExportRequest:
    mode: str = "file"
    format: str = "md"
    filename: str = ""
    include_toc: bool = True
    selection: MessageSelection = field(default_factory=MessageSelection)

    def __post_init__(self):
        if self.mode not in MODES:
            raise ExportError(f"Unknown export mode: {self.mode}")
        if self.format not in FORMATS:
            raise ExportError(f"Unsupported format: {self.format}")

    @classmethod
    def from_config(cls, config: ExportConfig) -> "ExportRequest":
        return cls(
            mode=config.output.mode,
            format=config.output.format,
            filename=config.output.filename,
            include_toc=config.output.toc,
            selection=MessageSelection.parse(config.selection),
        )

    @classmethod
    def quick(cls) -> "ExportRequest":
        """File export, Markdown, every message, with a table of contents."""
        return cls()


@dataclass(frozen=True)
class ExportResult:
    content: str
    filename: str
    document: Document
    statistics: Statistics
    path: Optional[Path] = None


def _now() -> datetime:
    return datetime.now().astimezone()


class ExportService:
    def __init__(self, surface: ChatSurface, config: ExportConfig, clipboard: Optional[Clipboard] = None,
                 sleep=time.sleep, clock: Callable[[], datetime] = _now):
        self._surface = surface
        self._config = config
        self._clipboard = clipboard or Clipboard()
        self._sleep = sleep
        self._clock = clock

    def _chain(self) -> FallbackChain:
        engine = ExtractionEngine(self._config.selectors.checkbox_class)
        return FallbackChain.default(engine, self._clipboard, self._config.clipboard, sleep=self._sleep)

    def execute(self, request: ExportRequest) -> ExportResult:
        ScrollLoader(self._surface, self._config.scroll, sleep=self._sleep).load()

        turns = self._surface.turns()
        plan = request.selection.resolve(turns)
        log_debug(f"{len(turns)} turns loaded, {len(plan)} selected")
        if not plan:
            raise NothingSelected()

        title = self._surface.title()
        assembler = DocumentAssembler(self._chain(), self._config, clock=self._clock)
        document, stats = assembler.assemble(plan, title)

        content = render(
            request.format, document, stats, self._config.labels,
            include_toc=request.include_toc,
            theme=self._config.output.theme,
            noise_patterns=self._config.noise_patterns,
        )
        filename = generate_filename(request.filename, title, document.exported_at, self._config.date_format)
        filename = f"{filename}.{FILE_EXTENSIONS[request.format]}"

        if request.mode == "clipboard":
            try:
                self._clipboard.write(content)
            except ClipboardError as e:
                raise SinkError(str(e)) from e
            return ExportResult(content, filename, document, stats)

        out_dir = resolve_output_dir(self._config.output.dir, document.exported_at, self._config.base_dir)
        path = out_dir / filename
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise SinkError(f"Error saving file: {e}") from e
        return ExportResult(content, filename, document, stats, path)
