"""Turn uploaded documents into prompt payloads."""

from __future__ import annotations

import base64
import mimetypes
from enum import Enum
from pathlib import PurePath


class DocumentType(str, Enum):
    PDF = "pdf"
    POWERPOINT = "powerpoint"
    WORD = "word"
    SPREADSHEET = "spreadsheet"
    TEXT = "text"
    UNKNOWN = "unknown"


_EXTENSION_TYPES: dict[str, DocumentType] = {
    "pdf": DocumentType.PDF,
    "ppt": DocumentType.POWERPOINT,
    "pptx": DocumentType.POWERPOINT,
    "doc": DocumentType.WORD,
    "docx": DocumentType.WORD,
    "xls": DocumentType.SPREADSHEET,
    "xlsx": DocumentType.SPREADSHEET,
    "csv": DocumentType.SPREADSHEET,
    "txt": DocumentType.TEXT,
    "rtf": DocumentType.TEXT,
    "md": DocumentType.TEXT,
}

SUPPORTED_EXTENSIONS = frozenset(
    {"pdf", "ppt", "pptx", "doc", "docx", "txt", "rtf", "xls", "xlsx", "csv"}
)

# Sent instead of an empty document so the model still gets a prompt body
EMPTY_CONTENT_NOTICE = (
    "No text content could be extracted from this file. "
    "Please try a different file format."
)

# Extensions whose bytes are already readable text; csv is plain text too
_PLAIN_TEXT_EXTENSIONS = frozenset({"txt", "md", "csv"})


def _extension(file_name: str) -> str:
    return PurePath(file_name.strip().lower()).suffix.lstrip(".")


def classify_file_type(file_name: str) -> DocumentType:
    return _EXTENSION_TYPES.get(_extension(file_name), DocumentType.UNKNOWN)


def is_supported_file(file_name: str) -> bool:
    return _extension(file_name) in SUPPORTED_EXTENSIONS


def encode_document(data: bytes, file_name: str) -> str:
    """Encode raw file bytes as prompt content.

    Plain-text formats are decoded (invalid UTF-8 bytes replaced); everything
    else becomes a base64 data URL the model provider can ingest as-is.
    """
    if _extension(file_name) in _PLAIN_TEXT_EXTENSIONS:
        return normalize_content(data.decode("utf-8", errors="replace"))
    mime, _ = mimetypes.guess_type(file_name)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{encoded}"


def normalize_content(text: str | None) -> str:
    cleaned = (text or "").replace("\x00", "").strip()
    return cleaned or EMPTY_CONTENT_NOTICE
