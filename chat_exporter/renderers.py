"""Output formats.

Markdown is the canonical rendering. JSON is a lossless dump of the document
and its statistics. HTML and plain text are derived from the Markdown with a
handful of regular expressions: they understand the constructs the
extraction engine emits, nothing more, and are not general Markdown parsers.
"""

import html
import json
import re
from datetime import datetime
from typing import List, Tuple

from .config import Labels
from .errors import ExportError
from .models import Document, Message, MessageKind, Statistics
from .toc import anchor_tag, build_toc, message_label

FILE_EXTENSIONS = {"md": "md", "json": "json", "html": "html", "txt": "txt"}
FORMAT_NAMES = {"md": "Markdown", "json": "JSON", "html": "HTML", "txt": "Text"}

# --- Markdown ---


def render_header(document: Document, labels: Labels) -> str:
    title = document.title or labels.default_title
    exported = document.exported_at.strftime("%Y-%m-%d %H:%M:%S")
    return f"# {title}\n\n> 📅 Exported on: {exported}\n\n---\n\n"


def render_sections(messages, labels: Labels, anchors: bool = False) -> str:
    parts = []
    for position, message in enumerate(messages, 1):
        if anchors:
            parts.append(f"{anchor_tag(position)}\n\n")
        parts.append(f"## {message_label(message, labels)}\n\n{message.content}\n\n---\n\n")
    return "".join(parts)


def render_markdown_body(document: Document, labels: Labels) -> str:
    """Header and message sections: the text statistics are computed over."""
    return render_header(document, labels) + render_sections(document.messages, labels)


def render_statistics_table(stats: Statistics) -> str:
    return (
        "\n---\n\n"
        "## 📊 Export Statistics\n\n"
        "| Metric | Value |\n"
        "|--------|-------|\n"
        f"| 📝 Total Words | {stats.word_count:,} |\n"
        f"| 🧑 User Messages | {stats.user_message_count} |\n"
        f"| 🤖 AI Responses | {stats.ai_message_count} |\n"
        f"| 💻 Code Blocks | {stats.code_block_count} |\n"
        f"| 🔢 Math Expressions | {stats.math_expression_count} |\n"
        f"| 📄 Total Lines | {stats.line_count:,} |\n"
        "\n> *Exported with AI Chat Exporter*\n"
    )


def render_markdown(document: Document, stats: Statistics, labels: Labels,
                    include_toc: bool = False, noise_patterns=("Show thinking",)) -> str:
    with_toc = include_toc and bool(document.messages)
    parts = [render_header(document, labels)]
    if with_toc:
        parts.append(build_toc(document.messages, labels, noise_patterns))
    parts.append(render_sections(document.messages, labels, anchors=with_toc))
    parts.append(render_statistics_table(stats))
    return "".join(parts)


# --- JSON ---


def render_json(document: Document, stats: Statistics, default_title: str = "Gemini Chat Export") -> str:
    payload = {
        "title": document.title or default_title,
        "exportDate": document.exported_at.isoformat(),
        "statistics": stats.to_dict(),
        "messages": [
            {"id": position, "type": message.kind.value, "content": message.content}
            for position, message in enumerate(document.messages, 1)
        ],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def parse_json(text: str) -> Tuple[Document, Statistics]:
    """Rebuild a document from ``render_json`` output."""
    try:
        data = json.loads(text)
        messages = [
            Message(MessageKind(item["type"]), item["content"], index)
            for index, item in enumerate(data["messages"])
        ]
        exported_at = datetime.fromisoformat(data["exportDate"])
    except (ValueError, KeyError, TypeError) as e:
        raise ExportError(f"Not a chat export JSON document: {e}") from e
    document = Document(data.get("title"), exported_at, messages)
    return document, Statistics.from_dict(data.get("statistics") or {})


# --- HTML ---

_PALETTES = {
    "light": {
        "bg": "#f8fafc", "text": "#1e293b", "card": "#ffffff", "border": "#e2e8f0",
        "pre-bg": "#f1f5f9", "code-bg": "#e2e8f0", "quote": "#64748b", "th-bg": "#f1f5f9",
    },
    "dark": {
        "bg": "#1a1a2e", "text": "#e2e8f0", "card": "#16213e", "border": "#334155",
        "pre-bg": "#0f172a", "code-bg": "#334155", "quote": "#94a3b8", "th-bg": "#1e293b",
    },
}
ACCENT_COLOR = "#6366f1"

_FENCED_CODE = re.compile(r"```([\w+#-]*)[^\n]*\n(.*?)```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_TABLE = re.compile(r"^(\|[^\n]*\|)\n\|[ \t:|-]*-[ \t:|-]*\|\n((?:\|[^\n]*\|(?:\n|$))*)", re.M)
_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)\)")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_BOLD = re.compile(r"\*\*([^*\n]+)\*\*")
_ITALIC = re.compile(r"(?<![*\w])\*(?![\s*])([^*\n]+?)(?<!\s)\*(?![*\w])")
_STRIKE = re.compile(r"~~([^~\n]+)~~")
_UNDERLINE = re.compile(r"(?<!\w)__([^_\n]+)__(?!\w)")
_HEADINGS = (
    (re.compile(r"^### (.+)$", re.M), r"<h3>\1</h3>"),
    (re.compile(r"^## (.+)$", re.M), r"<h2>\1</h2>"),
    (re.compile(r"^# (.+)$", re.M), r"<h1>\1</h1>"),
)
_QUOTE_LINE = re.compile(r"^&gt; ?(.*)$", re.M)
_RULE = re.compile(r"^---$", re.M)
_ANCHOR = re.compile(r'&lt;a id="(message-\d+)"&gt;&lt;/a&gt;')
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")
_BLOCK_START = re.compile(r"^(?:<h[1-6]>|<blockquote>|<hr>|<a id=|\x00\d+\x00$)")


def _split_cells(row: str) -> List[str]:
    cells = _CELL_SPLIT.split(row.strip()[1:-1])
    return [c.strip().replace("\\|", "|") for c in cells]


def _attr(value: str) -> str:
    # the text is already escaped with quote=False, only quotes are left
    return value.replace('"', "&quot;")


def _inline_html(text: str) -> str:
    text = _IMAGE.sub(
        lambda m: f'<img alt="{_attr(m.group(1))}" src="{_attr(m.group(2))}" style="max-width:100%;">', text)
    text = _LINK.sub(lambda m: f'<a href="{_attr(m.group(2))}">{m.group(1)}</a>', text)
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    text = _ITALIC.sub(r"<em>\1</em>", text)
    text = _STRIKE.sub(r"<del>\1</del>", text)
    return _UNDERLINE.sub(r"<u>\1</u>", text)


def markdown_to_html_fragment(markdown: str) -> str:
    """Single-pass conversion of the exporter's Markdown dialect."""
    stash: List[str] = []

    def keep(fragment: str) -> str:
        stash.append(fragment)
        return f"\x00{len(stash) - 1}\x00"

    text = html.escape(markdown.replace("\x00", ""), quote=False)
    text = _ANCHOR.sub(lambda m: keep(f'<a id="{m.group(1)}"></a>'), text)
    text = _FENCED_CODE.sub(
        lambda m: "\n\n" + keep(f'<pre><code class="language-{m.group(1)}">{m.group(2).rstrip()}</code></pre>') + "\n\n",
        text)
    text = _INLINE_CODE.sub(lambda m: keep(f"<code>{m.group(1)}</code>"), text)

    def table(m):
        head = "".join(f"<th>{_inline_html(c)}</th>" for c in _split_cells(m.group(1)))
        rows = "".join(
            "<tr>" + "".join(f"<td>{_inline_html(c)}</td>" for c in _split_cells(row)) + "</tr>"
            for row in m.group(2).strip("\n").split("\n") if row.strip()
        )
        return "\n\n" + keep(f"<table><thead><tr>{head}</tr></thead><tbody>{rows}</tbody></table>") + "\n\n"

    text = _TABLE.sub(table, text)
    for pattern, replacement in _HEADINGS:
        text = pattern.sub(replacement, text)
    text = _inline_html(text)
    text = _QUOTE_LINE.sub(r"<blockquote>\1</blockquote>", text)
    text = _RULE.sub("<hr>", text)

    blocks = []
    for chunk in re.split(r"\n{2,}", text):
        chunk = chunk.strip()
        if not chunk:
            continue
        if _BLOCK_START.match(chunk):
            blocks.append(chunk)
        else:
            blocks.append("<p>" + chunk.replace("\n", "<br>\n") + "</p>")
    body = "\n".join(blocks)

    # later stash entries may contain earlier ones (code inside tables)
    for _ in range(len(stash) + 1):
        if not _PLACEHOLDER.search(body):
            break
        body = _PLACEHOLDER.sub(lambda m: stash[int(m.group(1))], body)
    return body


def _palette_css(palette: dict) -> str:
    return " ".join(f"--{name}: {value};" for name, value in palette.items())


def _theme_css(theme: str) -> str:
    if theme in ("light", "dark"):
        return f":root {{ {_palette_css(_PALETTES[theme])} }}"
    return (
        f":root {{ {_palette_css(_PALETTES['light'])} }}\n"
        f"    @media (prefers-color-scheme: dark) {{ :root {{ {_palette_css(_PALETTES['dark'])} }} }}"
    )


def render_html(markdown: str, title: str = "", theme: str = "auto",
                default_title: str = "Gemini Chat Export") -> str:
    body = markdown_to_html_fragment(markdown)
    page_title = html.escape(title or default_title)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{page_title}</title>
  <style>
    {_theme_css(theme)}
    * {{ box-sizing: border-box; margin: 0; padding: 0; }}
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      background: var(--bg); color: var(--text); line-height: 1.7; padding: 40px 20px;
    }}
    .container {{ max-width: 900px; margin: 0 auto; }}
    h1 {{ color: {ACCENT_COLOR}; margin-bottom: 20px; font-size: 2em; }}
    h2 {{ margin: 30px 0 15px; padding-bottom: 10px; border-bottom: 2px solid var(--border); }}
    h3 {{ margin: 20px 0 10px; }}
    p {{ margin: 15px 0; }}
    pre {{ background: var(--pre-bg); padding: 16px; border-radius: 8px; overflow-x: auto; margin: 15px 0; }}
    code {{ font-family: 'Fira Code', 'Consolas', monospace; font-size: 0.9em; }}
    :not(pre) > code {{ background: var(--code-bg); padding: 2px 6px; border-radius: 4px; }}
    blockquote {{ border-left: 4px solid {ACCENT_COLOR}; padding-left: 16px; margin: 15px 0; color: var(--quote); }}
    table {{ border-collapse: collapse; width: 100%; margin: 15px 0; }}
    th, td {{ border: 1px solid var(--border); padding: 10px; text-align: left; }}
    th {{ background: var(--th-bg); }}
    a {{ color: {ACCENT_COLOR}; text-decoration: none; }}
    a:hover {{ text-decoration: underline; }}
    hr {{ border: none; border-top: 1px solid var(--border); margin: 30px 0; }}
    img {{ border-radius: 8px; margin: 10px 0; }}
  </style>
</head>
<body>
  <div class="container">
{body}
  </div>
</body>
</html>
"""


# --- Plain text ---

_FENCE_SPLIT = re.compile(r"(```[^\n]*\n.*?```)", re.DOTALL)
_RAW_ANCHOR = re.compile(r'<a id="message-\d+"></a>\n*')
_TABLE_SEPARATOR = re.compile(r"^\|[ \t:|-]*-[ \t:|-]*\|$")


def _is_table_row(line: str) -> bool:
    line = line.strip()
    return len(line) > 1 and line.startswith("|") and line.endswith("|")


def _reflow_table(rows: List[str]) -> List[str]:
    cells = [_split_cells(row) for row in rows if not _TABLE_SEPARATOR.match(row.strip())]
    if not cells:
        return []
    columns = max(len(row) for row in cells)
    widths = [max((len(row[i]) for row in cells if i < len(row)), default=0) for i in range(columns)]
    return [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip() for row in cells]


def _strip_prose(text: str) -> str:
    text = re.sub(r"^#+\s*", "", text, flags=re.M)
    text = _IMAGE.sub(r"[Image: \1]", text)
    text = _LINK.sub(r"\1", text)
    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    text = _STRIKE.sub(r"\1", text)
    text = _UNDERLINE.sub(r"\1", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = re.sub(r"^>\s?", "  ", text, flags=re.M)

    out: List[str] = []
    table: List[str] = []
    for line in text.split("\n"):
        if _is_table_row(line):
            table.append(line)
            continue
        if table:
            out.extend(_reflow_table(table))
            table = []
        out.append(line)
    out.extend(_reflow_table(table))
    return "\n".join(out)


def render_text(markdown: str) -> str:
    """Markdown with its syntax stripped. Lossy by design."""
    text = _RAW_ANCHOR.sub("", markdown)
    parts = _FENCE_SPLIT.split(text)
    for i, part in enumerate(parts):
        if i % 2:
            parts[i] = re.sub(r"^```[^\n]*\n", "\n", part).rstrip("`")
        else:
            parts[i] = _strip_prose(part)
    text = "".join(parts)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def render(fmt: str, document: Document, stats: Statistics, labels: Labels,
           include_toc: bool = True, theme: str = "auto", noise_patterns=("Show thinking",)) -> str:
    """Render ``document`` in one of the supported formats."""
    if fmt == "json":
        return render_json(document, stats, labels.default_title)
    if fmt == "md":
        return render_markdown(document, stats, labels, include_toc, noise_patterns)
    if fmt == "html":
        markdown = render_markdown(document, stats, labels, include_toc, noise_patterns)
        return render_html(markdown, document.title or "", theme, labels.default_title)
    if fmt == "txt":
        return render_text(render_markdown(document, stats, labels, False, noise_patterns))
    raise ExportError(f"Unsupported format: {fmt}")
