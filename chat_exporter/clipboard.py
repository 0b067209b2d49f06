"""System clipboard access through pyperclip."""

import pyperclip

from .errors import ClipboardError


class Clipboard:
    """Thin wrapper so the export code can be tested without a real clipboard."""

    def clear(self):
        self.write("")

    def read(self) -> str:
        try:
            return pyperclip.paste() or ""
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Could not read the clipboard: {e}") from e

    def write(self, text: str):
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Could not write to the clipboard: {e}") from e
