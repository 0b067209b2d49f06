"""Export Gemini chat transcripts to Markdown, JSON, HTML or plain text."""

from .config import ExportConfig, load_config
from .errors import ContainerNotFound, ExportError, NothingSelected, SinkError
from .exporter import ExportRequest, ExportResult, ExportService

__version__ = "1.0.0"
