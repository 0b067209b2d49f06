#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Chat Exporter - Export a Gemini conversation to Markdown, JSON, HTML or text

The conversation is read either from a saved HTML page (--html) or from a
live Gemini tab in a Chromium browser started with --remote-debugging-port
(--cdp-url). The result is written to a file or copied to the clipboard.
"""

import sys
import argparse
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path

from chat_exporter.assembler import MessageSelection
from chat_exporter.config import FORMATS, MODES, load_config
from chat_exporter.errors import ExportError
from chat_exporter.exporter import ExportRequest, ExportService
from chat_exporter.log import log_debug, log_warn, set_debug
from chat_exporter.renderers import FORMAT_NAMES
from chat_exporter.surface import StaticSurface


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export a Gemini chat to Markdown, JSON, HTML or text.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--html", help="Path to a saved Gemini chat page.")
    source.add_argument("--cdp-url", help="DevTools URL of a running browser, e.g. http://localhost:9222.")
    parser.add_argument("--mode", choices=MODES, help="Write a file or copy to the clipboard.")
    parser.add_argument("--format", choices=FORMATS, help="Output format.")
    parser.add_argument("--filename", help="Custom file name (without extension).")
    parser.add_argument("--toc", dest="toc", action="store_true", default=None, help="Include a table of contents.")
    parser.add_argument("--no-toc", dest="toc", action="store_false", help="Omit the table of contents.")
    parser.add_argument("--select", choices=("all", "ai", "none"), help="Which messages to export.")
    parser.add_argument("--include", help="Custom selection, e.g. u1,a1,a3 (u = your message, a = answer).")
    parser.add_argument("--quick", action="store_true", help="Markdown file with every message and a TOC.")
    parser.add_argument("--config", help="Path to a config.yaml with overrides.")
    parser.add_argument("--debug", action="store_true", help="Show debug information.")
    return parser


def build_request(args, config) -> ExportRequest:
    if args.quick:
        return ExportRequest.quick()
    request = ExportRequest.from_config(config)
    overrides = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.format:
        overrides["format"] = args.format
    if args.filename is not None:
        overrides["filename"] = args.filename
    if args.toc is not None:
        overrides["include_toc"] = args.toc
    if args.select or args.include:
        overrides["selection"] = MessageSelection.parse(args.select or "all", args.include)
    return replace(request, **overrides)


@contextmanager
def open_surface(args, config):
    if args.html:
        path = Path(args.html)
        if not path.exists():
            raise ExportError(f"HTML file not found: {args.html}")
        yield StaticSurface.from_file(path, config.selectors)
        return
    # Playwright is only needed for live exports
    from chat_exporter.browser import open_browser_surface
    with open_browser_surface(args.cdp_url, config.selectors) as surface:
        yield surface


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    set_debug(args.debug)

    # Fix Windows console encoding
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding='utf-8')
        except AttributeError:
            pass

    config = load_config(Path(args.config) if args.config else None, base_dir=Path.cwd())

    try:
        request = build_request(args, config)
        log_debug(f"Request: {request}")
        with open_surface(args, config) as surface:
            result = ExportService(surface, config).execute(request)
    except ExportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    stats = result.statistics
    print("-" * 40)
    print(f"Success! Exported {stats.user_message_count} messages and "
          f"{stats.ai_message_count} responses as {FORMAT_NAMES[request.format]}.")
    if result.path is not None:
        print(f"Saved to: {result.path}")
    else:
        print(f"{FORMAT_NAMES[request.format]} result has been copied to clipboard.")
    if stats.fallback_used_count:
        log_warn(f"{stats.fallback_used_count} response(s) were read with the text-selection fallback; "
                 "formatting may be incomplete.")
    print("-" * 40)
    return 0


if __name__ == "__main__":
    sys.exit(main())
