"""Exceptions raised by the exporter.

Every caller-visible failure derives from ExportError and carries a message
that can be shown to the user as-is.
"""


class ExportError(Exception):
    """Base class for export failures."""


class ContainerNotFound(ExportError):
    """No scrollable conversation container exists on the surface."""

    def __init__(self, message: str = "Chat history container not found."):
        super().__init__(message)


class NothingSelected(ExportError):
    """The selection did not include a single message."""

    def __init__(self, message: str = "Please select at least one message to export."):
        super().__init__(message)


class SinkError(ExportError):
    """Writing the final document to a file or the clipboard failed."""


class ClipboardError(ExportError):
    """The system clipboard could not be read or written."""
