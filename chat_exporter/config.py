"""Configuration loading.

Defaults live in ``config.default.yaml`` next to this module. A user
``config.yaml`` (in the working directory, else in the per-user config directory)
is deep-merged over them, and the result is frozen into an ``ExportConfig``
that is passed explicitly to every component.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .log import log_debug, log_warn

APP_DIR_NAME = "ai-chat-exporter"

FORMATS = ("md", "json", "html", "txt")
MODES = ("file", "clipboard")
THEMES = ("auto", "light", "dark")

# JS-like date tokens accepted in the YAML, mapped to strftime
_TOKEN_MAP = {
    "yyyy": "%Y", "MM": "%m", "dd": "%d",
    "HH": "%H", "mm": "%M", "ss": "%S",
}


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded polling policy: attempt count, delays and stability threshold."""

    max_attempts: int
    delay: float
    stability_threshold: int = 1
    hover_delay: float = 0.0

    @classmethod
    def from_dict(cls, data: dict, **defaults) -> "RetryPolicy":
        values = dict(defaults)
        values.update({k: v for k, v in (data or {}).items() if k in cls.__dataclass_fields__})
        return cls(
            max_attempts=max(1, int(values.get("max_attempts", 1))),
            delay=max(0.0, float(values.get("delay", 0.0))),
            stability_threshold=max(1, int(values.get("stability_threshold", 1))),
            hover_delay=max(0.0, float(values.get("hover_delay", 0.0))),
        )


@dataclass(frozen=True)
class Selectors:
    chat_container: str = '[data-test-id="chat-history-container"]'
    conversation_turn: str = "div.conversation-container"
    user_query: str = "user-query"
    model_response: str = "model-response"
    copy_button: str = 'button[data-test-id="copy-button"]'
    conversation_title: str = ".conversation-title"
    checkbox_class: str = "gemini-export-checkbox"


@dataclass(frozen=True)
class Labels:
    user: str = "You"
    assistant: str = "Gemini"
    user_icon: str = "🧑"
    assistant_icon: str = "🤖"
    default_title: str = "Gemini Chat Export"


@dataclass(frozen=True)
class OutputConfig:
    mode: str = "file"
    format: str = "md"
    dir: str = "outputs/chat_exports"
    filename: str = ""
    toc: bool = True
    theme: str = "auto"


@dataclass(frozen=True)
class ExportConfig:
    scroll: RetryPolicy = field(default_factory=lambda: RetryPolicy(60, 1.2, 4))
    clipboard: RetryPolicy = field(default_factory=lambda: RetryPolicy(15, 0.4, 1, 0.2))
    selectors: Selectors = field(default_factory=Selectors)
    labels: Labels = field(default_factory=Labels)
    output: OutputConfig = field(default_factory=OutputConfig)
    selection: str = "all"
    date_format: str = "%Y-%m-%d_%H%M%S"
    noise_patterns: tuple = ("Show thinking",)
    base_dir: Path = field(default_factory=lambda: Path.cwd())

    @classmethod
    def from_dict(cls, data: dict, base_dir: Optional[Path] = None) -> "ExportConfig":
        timing = data.get("timing", {}) or {}
        output = data.get("output", {}) or {}

        fmt = str(output.get("format", "md")).lower()
        if fmt not in FORMATS:
            log_warn(f"Unknown output format '{fmt}', using md")
            fmt = "md"
        mode = str(output.get("mode", "file")).lower()
        if mode not in MODES:
            log_warn(f"Unknown export mode '{mode}', using file")
            mode = "file"
        theme = str(output.get("theme", "auto")).lower()
        if theme not in THEMES:
            theme = "auto"

        noise = list(data.get("noise_patterns", []) or []) + list(data.get("removes", []) or [])
        return cls(
            scroll=RetryPolicy.from_dict(timing.get("scroll"), max_attempts=60, delay=1.2, stability_threshold=4),
            clipboard=RetryPolicy.from_dict(timing.get("clipboard"), max_attempts=15, delay=0.4, hover_delay=0.2),
            selectors=_build(Selectors, data.get("selectors")),
            labels=_build(Labels, data.get("labels")),
            output=OutputConfig(
                mode=mode,
                format=fmt,
                dir=str(output.get("dir", "outputs/chat_exports")),
                filename=str(output.get("filename") or ""),
                toc=bool(output.get("toc", True)),
                theme=theme,
            ),
            selection=str(data.get("selection", "all")),
            date_format=str(data.get("date_format", "%Y-%m-%d_%H%M%S")),
            noise_patterns=tuple(str(p) for p in noise if p),
            base_dir=base_dir or Path.cwd(),
        )


def _build(cls, data):
    """Instantiate a flat dataclass from the known keys of ``data``."""
    known = {k: str(v) for k, v in (data or {}).items() if k in cls.__dataclass_fields__}
    return cls(**known)


def get_config_paths(base_dir: Optional[Path] = None):
    """Get candidate paths for config.yaml and the packaged defaults."""
    base_dir = base_dir or Path.cwd()
    local_path = base_dir / "config.yaml"

    appdata = os.environ.get("APPDATA") or os.environ.get("XDG_CONFIG_HOME")
    if appdata:
        user_dir = Path(appdata) / APP_DIR_NAME
    else:
        user_dir = Path.home() / ".config" / APP_DIR_NAME

    return {
        "local": local_path,
        "user": user_dir / "config.yaml",
        "default": Path(__file__).resolve().parent / "config.default.yaml",
    }


def deep_merge(target, source):
    for k, v in source.items():
        if k in target and isinstance(target[k], dict) and isinstance(v, dict):
            deep_merge(target[k], v)
        else:
            target[k] = v
    return target


def _normalize(d):
    if isinstance(d, dict):
        return {k: _normalize(v) for k, v in d.items()}
    if isinstance(d, list):
        return [_normalize(i) for i in d]
    if isinstance(d, str) and d.lower() in ("true", "false"):
        return d.lower() == "true"
    return d


def load_file(path: Optional[Path]) -> dict:
    if not path or not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        log_warn(f"Failed to load {path.name}: {e}")
        return {}
    if not isinstance(data, dict):
        log_warn(f"Ignoring {path.name}: top level is not a mapping")
        return {}
    return _normalize(data)


def convert_date_tokens(fmt: str) -> str:
    for js_tok, py_tok in _TOKEN_MAP.items():
        fmt = fmt.replace(js_tok, py_tok)
    return fmt


def load_config_dict(config_path: Optional[Path] = None, base_dir: Optional[Path] = None) -> dict:
    """Load the defaults and merge the first user config found over them."""
    paths = get_config_paths(base_dir)

    # 1. Load defaults
    config = load_file(paths["default"])

    # 2. User overrides (Priority: explicit > local > per-user dir)
    if config_path is not None:
        if not config_path.exists():
            log_warn(f"Config file not found: {config_path}")
        user_path = config_path
    elif paths["local"].exists():
        user_path = paths["local"]
    else:
        user_path = paths["user"]

    user_data = load_file(user_path)
    if user_data:
        log_debug(f"Using config overrides from {user_path}")
    deep_merge(config, user_data)

    if "date_format" in config:
        config["date_format"] = convert_date_tokens(str(config["date_format"]))
    return config


def load_config(config_path: Optional[Path] = None, base_dir: Optional[Path] = None) -> ExportConfig:
    base_dir = base_dir or Path.cwd()
    return ExportConfig.from_dict(load_config_dict(config_path, base_dir), base_dir=base_dir)
