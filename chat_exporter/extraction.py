"""Structural extraction of Markdown from rendered message markup.

The engine walks a BeautifulSoup subtree and emits Markdown fragments. Every
node is classified into a ``NodeKind`` first and then handed to exactly one
handler, so each kind can be tested on its own. The input tree is never
modified; list numbering is computed up front into a side table keyed by
node identity.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

from bs4 import CData, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from .log import log_warn


class NodeKind(Enum):
    TEXT = auto()
    SKIP = auto()
    MATH = auto()
    MATH_GLYPHS = auto()
    HIDDEN = auto()
    TABLE = auto()
    LINK = auto()
    IMAGE = auto()
    BLOCKQUOTE = auto()
    STRIKE = auto()
    UNDERLINE = auto()
    CODE_BLOCK = auto()
    INLINE_CODE = auto()
    DEF_LIST = auto()
    DEF_TERM = auto()
    DEF_DESC = auto()
    HEADING = auto()
    LINE_BREAK = auto()
    RULE = auto()
    LIST = auto()
    LIST_ITEM = auto()
    BOLD = auto()
    ITALIC = auto()
    PARAGRAPH = auto()
    BLOCK = auto()
    INLINE = auto()


SKIP_TAGS = frozenset(("script", "style", "noscript", "svg", "button", "mat-icon", "input", "template"))
BLOCK_TAGS = frozenset(("div", "section", "article", "header", "footer", "main",
                        "figure", "figcaption", "response-element"))
SPECIAL_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)

_SIMPLE_KINDS = {
    "a": NodeKind.LINK,
    "img": NodeKind.IMAGE,
    "blockquote": NodeKind.BLOCKQUOTE,
    "del": NodeKind.STRIKE,
    "s": NodeKind.STRIKE,
    "strike": NodeKind.STRIKE,
    "u": NodeKind.UNDERLINE,
    "pre": NodeKind.CODE_BLOCK,
    "code-block": NodeKind.CODE_BLOCK,
    "dl": NodeKind.DEF_LIST,
    "dt": NodeKind.DEF_TERM,
    "dd": NodeKind.DEF_DESC,
    "br": NodeKind.LINE_BREAK,
    "hr": NodeKind.RULE,
    "ul": NodeKind.LIST,
    "ol": NodeKind.LIST,
    "li": NodeKind.LIST_ITEM,
    "strong": NodeKind.BOLD,
    "b": NodeKind.BOLD,
    "em": NodeKind.ITALIC,
    "i": NodeKind.ITALIC,
    "p": NodeKind.PARAGRAPH,
}

_HEADING_TAG = re.compile(r"^h([1-6])$")
_LANG_CLASS = re.compile(r"language-([\w+#-]+)")
_JSON_SHAPE = re.compile(r"^\s*\{[\s\S]*\}\s*$")

# Checked in order, first match wins. Only applied to snippets longer than
# 20 characters; shorter ones stay untagged.
LANGUAGE_SIGNATURES = (
    ("python", lambda c: "def " in c and ":" in c),
    ("javascript", lambda c: "function" in c or "=>" in c),
    ("java", lambda c: "public class" in c or "System.out" in c),
    ("cpp", lambda c: "#include" in c or "int main" in c),
    ("php", lambda c: "<?php" in c),
    ("sql", lambda c: "SELECT" in c and "FROM" in c),
    ("html", lambda c: "<html" in c or "</div>" in c),
    ("json", lambda c: _JSON_SHAPE.match(c) is not None),
    ("bash", lambda c: "#!/bin/" in c or "$ " in c),
)


def class_string(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


def is_math_container(tag: Tag) -> bool:
    if tag.name in ("math", "semantics"):
        return True
    classes = class_string(tag)
    return "katex" in classes or "math-inline" in classes or "math-block" in classes


def math_source(tag: Tag) -> Optional[str]:
    """Raw TeX behind a rendered formula, if this element carries it."""
    data_math = tag.get("data-math")
    if data_math and data_math.strip():
        return data_math.strip()
    if is_math_container(tag):
        annotation = tag.find("annotation", attrs={"encoding": "application/x-tex"})
        if annotation is not None:
            return annotation.get_text().strip() or None
    return None


def is_block_math(tag: Tag) -> bool:
    for el in [tag, *tag.parents]:
        if not isinstance(el, Tag):
            continue
        classes = class_string(el)
        if "math-block" in classes or "katex-display" in classes:
            return True
        if el.name == "math" and el.get("display") == "block":
            return True
    return tag.get("display") == "block"


def detect_language(block: Tag, code: Tag, content: str) -> str:
    for el in (block, code):
        match = _LANG_CLASS.search(class_string(el))
        if match:
            return match.group(1)
    for el in (block, code):
        hint = el.get("data-language")
        if hint:
            return hint.strip()
    # Gemini's code-block element shows the language in a decoration bar
    decoration = block.select_one(".code-block-decoration")
    if decoration is not None:
        for span in decoration.find_all("span"):
            label = " ".join(span.get_text().split())
            if label:
                return label.lower()
    if len(content) > 20:
        for lang, matches in LANGUAGE_SIGNATURES:
            if matches(content):
                return lang
    return ""


def classify(node, checkbox_class: str = "") -> NodeKind:
    if isinstance(node, NavigableString):
        return NodeKind.SKIP if isinstance(node, SPECIAL_STRINGS) else NodeKind.TEXT
    if not isinstance(node, Tag):
        return NodeKind.SKIP

    name = (node.name or "").lower()
    if name in SKIP_TAGS:
        return NodeKind.SKIP
    if checkbox_class and checkbox_class in (node.get("class") or []):
        return NodeKind.SKIP
    if math_source(node) is not None:
        return NodeKind.MATH
    if is_math_container(node):
        return NodeKind.MATH_GLYPHS
    if node.get("aria-hidden") == "true":
        return NodeKind.HIDDEN
    if name == "table":
        return NodeKind.TABLE if node.find("tr") is not None else NodeKind.INLINE
    if name == "code":
        return NodeKind.INLINE if node.find_parent("pre") is not None else NodeKind.INLINE_CODE
    if _HEADING_TAG.match(name) or node.get("role") == "heading":
        return NodeKind.HEADING
    if name in _SIMPLE_KINDS:
        return _SIMPLE_KINDS[name]
    if name in BLOCK_TAGS:
        return NodeKind.BLOCK
    return NodeKind.INLINE


def assign_list_ordinals(root: Tag) -> Dict[int, int]:
    """Number the items of every list under ``root``, keyed by ``id(li)``."""
    ordinals = {}
    lists = root.find_all(["ol", "ul"])
    if root.name in ("ol", "ul"):
        lists.insert(0, root)
    for lst in lists:
        n = 1
        if lst.name == "ol":
            try:
                n = int(lst.get("start", 1))
            except (TypeError, ValueError):
                n = 1
        for child in lst.children:
            if isinstance(child, Tag) and child.name == "li":
                ordinals[id(child)] = n
                n += 1
    return ordinals


# --- Whitespace normalization ---

FENCED_CODE = re.compile(r"(```[^\n]*\n.*?```)", re.DOTALL)
_SPACE_RUN = re.compile(r"[ \t\u00a0]+")
_INDENT = re.compile(r"^[ \t]*")
_LIST_BODY = re.compile(r"^(?:[*+-]|\d+\.)(?:\s|$)")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_BLOCK_MATH = re.compile(r"\$\$\s*(.+?)\s*\$\$", re.DOTALL)


def _normalize_prose(text: str) -> str:
    lines = []
    for line in text.split("\n"):
        body = _SPACE_RUN.sub(" ", line).strip()
        # list items keep their indentation, it carries the nesting depth
        if body and _LIST_BODY.match(body):
            body = _INDENT.match(line).group().replace("\t", "  ") + body
        lines.append(body)
    text = _MANY_NEWLINES.sub("\n\n", "\n".join(lines))
    return _BLOCK_MATH.sub(lambda m: f"$${m.group(1)}$$", text)


def normalize_whitespace(text: str) -> str:
    """Tidy extracted Markdown. Fenced code is left exactly as extracted."""
    parts = FENCED_CODE.split(text)
    return "".join(p if i % 2 else _normalize_prose(p) for i, p in enumerate(parts)).strip()


@dataclass
class _Walk:
    root: Tag
    ordinals: Dict[int, int]
    out: List[str] = field(default_factory=list)


class ExtractionEngine:
    """Converts one message subtree into Markdown text."""

    def __init__(self, checkbox_class: str = ""):
        self._checkbox_class = checkbox_class
        self._handlers = {
            NodeKind.TEXT: self._on_text,
            NodeKind.SKIP: self._on_skip,
            NodeKind.MATH: self._on_math,
            NodeKind.MATH_GLYPHS: self._on_skip,
            NodeKind.HIDDEN: self._on_skip,
            NodeKind.TABLE: self._on_table,
            NodeKind.LINK: self._on_link,
            NodeKind.IMAGE: self._on_image,
            NodeKind.BLOCKQUOTE: self._on_blockquote,
            NodeKind.STRIKE: lambda node, walk: self._wrap(node, walk, "~~"),
            NodeKind.UNDERLINE: lambda node, walk: self._wrap(node, walk, "__"),
            NodeKind.CODE_BLOCK: self._on_code_block,
            NodeKind.INLINE_CODE: self._on_inline_code,
            NodeKind.DEF_LIST: self._on_block,
            NodeKind.DEF_TERM: self._on_def_term,
            NodeKind.DEF_DESC: self._on_def_desc,
            NodeKind.HEADING: self._on_heading,
            NodeKind.LINE_BREAK: lambda node, walk: walk.out.append("\n"),
            NodeKind.RULE: lambda node, walk: walk.out.append("\n---\n"),
            NodeKind.LIST: self._on_block,
            NodeKind.LIST_ITEM: self._on_list_item,
            NodeKind.BOLD: lambda node, walk: self._wrap(node, walk, "**"),
            NodeKind.ITALIC: lambda node, walk: self._wrap(node, walk, "*"),
            NodeKind.PARAGRAPH: self._on_paragraph,
            NodeKind.BLOCK: self._on_block,
            NodeKind.INLINE: self._emit_children,
        }

    def handles(self, kind: NodeKind) -> bool:
        return kind in self._handlers

    def tokens(self, node: Tag) -> List[str]:
        """Ordered Markdown fragments for ``node``, before normalization."""
        walk = _Walk(root=node, ordinals=assign_list_ordinals(node))
        self._visit(node, walk)
        return walk.out

    def extract(self, node: Optional[Tag]) -> str:
        if node is None:
            return ""
        try:
            return normalize_whitespace("".join(self.tokens(node)))
        except Exception as e:
            log_warn(f"Structural extraction failed: {e}")
            return ""

    # --- traversal ---

    def _visit(self, node, walk: _Walk):
        self._handlers[classify(node, self._checkbox_class)](node, walk)

    def _emit_children(self, node: Tag, walk: _Walk):
        for child in node.children:
            self._visit(child, walk)

    def _capture(self, node: Tag, walk: _Walk) -> str:
        saved, walk.out = walk.out, []
        try:
            self._emit_children(node, walk)
            return "".join(walk.out)
        finally:
            walk.out = saved

    def _inside_math(self, node, walk: _Walk) -> bool:
        for parent in node.parents:
            if parent is walk.root:
                return False
            if isinstance(parent, Tag) and is_math_container(parent):
                return True
        return False

    # --- handlers ---

    def _on_skip(self, node, walk: _Walk):
        pass

    def _on_text(self, node, walk: _Walk):
        if self._inside_math(node, walk):
            return
        text = str(node)
        if text.strip():
            walk.out.append(text)
        elif text:
            walk.out.append(" ")

    def _on_math(self, node: Tag, walk: _Walk):
        source = math_source(node)
        if is_block_math(node):
            walk.out.append(f"\n$${source}$$\n")
        else:
            walk.out.append(f"${source}$")

    def _on_table(self, node: Tag, walk: _Walk):
        lines = []
        for row in node.find_all("tr"):
            cells = [" ".join(c.get_text().split()).replace("|", "\\|")
                     for c in row.find_all(["th", "td"])]
            if not cells:
                continue
            lines.append("| " + " | ".join(cells) + " |")
            if len(lines) == 1:
                lines.append("| " + " | ".join(["---"] * len(cells)) + " |")
        if lines:
            walk.out.append("\n\n" + "\n".join(lines) + "\n\n")

    def _on_link(self, node: Tag, walk: _Walk):
        href = (node.get("href") or "").strip()
        text = " ".join(node.get_text().split()) or href
        if href and not href.startswith("#"):
            walk.out.append(f"[{text}]({href})")
        else:
            walk.out.append(text)

    def _on_image(self, node: Tag, walk: _Walk):
        alt = (node.get("alt") or "").strip() or "image"
        src = (node.get("src") or "").strip()
        if src and not src.startswith("data:"):
            walk.out.append(f"\n![{alt}]({src})\n")
        elif alt != "image":
            walk.out.append(f"[📷 Image: {alt}]")

    def _on_blockquote(self, node: Tag, walk: _Walk):
        inner = normalize_whitespace(self._capture(node, walk))
        if not inner:
            return
        lines = [f"> {line}" if line else ">" for line in inner.split("\n")]
        walk.out.append("\n" + "\n".join(lines) + "\n")

    def _wrap(self, node: Tag, walk: _Walk, marker: str):
        inner = self._capture(node, walk)
        body = inner.strip()
        if not body:
            walk.out.append(inner)
            return
        lead = inner[:len(inner) - len(inner.lstrip())]
        trail = inner[len(inner.rstrip()):]
        walk.out.append(f"{lead}{marker}{body}{marker}{trail}")

    def _on_code_block(self, node: Tag, walk: _Walk):
        code = node.find(attrs={"data-test-id": "code-content"}) or node.find("code") or node
        content = code.get_text()
        if not content.strip():
            return
        lang = detect_language(node, code, content)
        walk.out.append(f"\n```{lang}\n{content.strip(chr(10)).rstrip()}\n```\n")

    def _on_inline_code(self, node: Tag, walk: _Walk):
        text = node.get_text()
        if text:
            walk.out.append(f"`{text}`")

    def _on_def_term(self, node: Tag, walk: _Walk):
        walk.out.append(f"\n**{self._capture(node, walk).strip()}**\n")

    def _on_def_desc(self, node: Tag, walk: _Walk):
        walk.out.append(f": {self._capture(node, walk).strip()}\n")

    def _on_heading(self, node: Tag, walk: _Walk):
        match = _HEADING_TAG.match(node.name or "")
        if match:
            level = int(match.group(1))
        else:
            try:
                level = int(node.get("aria-level", 3))
            except (TypeError, ValueError):
                level = 3
            level = max(1, min(6, level))
        walk.out.append(f"\n{'#' * level} ")
        self._emit_children(node, walk)
        walk.out.append("\n")

    def _on_list_item(self, node: Tag, walk: _Walk):
        depth = 0
        for parent in node.parents:
            if parent.name == "li":
                depth += 1
            if parent is walk.root:
                break

        parent = node.parent
        if parent is not None and parent.name == "ol":
            index = walk.ordinals.get(id(node))
            if index is None:
                siblings = [c for c in parent.children if isinstance(c, Tag) and c.name == "li"]
                index = next(i for i, c in enumerate(siblings, 1) if c is node)
            prefix = f"{index}. "
        else:
            prefix = "* "

        walk.out.append(f"\n{'  ' * depth}{prefix}")
        self._emit_children(node, walk)

    def _on_paragraph(self, node: Tag, walk: _Walk):
        # A paragraph opening a list item stays on the marker's line
        if not self._opens_list_item(node):
            walk.out.append("\n")
        self._emit_children(node, walk)
        walk.out.append("\n")

    def _opens_list_item(self, node: Tag) -> bool:
        parent = node.parent
        if parent is None or parent.name != "li":
            return False
        for sibling in parent.children:
            if sibling is node:
                return True
            if isinstance(sibling, Tag) or str(sibling).strip():
                return False
        return False

    def _on_block(self, node: Tag, walk: _Walk):
        walk.out.append("\n")
        self._emit_children(node, walk)
        walk.out.append("\n")
