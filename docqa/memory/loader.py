# docqa/memory/loader.py

"""
Document loader for uploaded files.

Architecture contract:
loader → chunker → embedder → vector_store

Supports:
- PDF files (pypdf)
- Plain text files
- Word documents (python-docx)

Every failure surfaces as DocumentProcessingError.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from docx import Document as DocxDocument
from pypdf import PdfReader

from docqa.config import DEFAULT_MAX_FILE_SIZE
from docqa.errors import DocumentProcessingError

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    PDF = "pdf"
    TXT = "txt"
    DOCX = "docx"


@dataclass
class LoadedDocument:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


# ============================================================
# TYPE DETECTION
# ============================================================

def detect_document_type(filename: str) -> DocumentType:

    ext = os.path.splitext(filename)[1].lower().lstrip(".")

    try:
        return DocumentType(ext)
    except ValueError:
        raise DocumentProcessingError(
            f"Unsupported file type: {ext}. Supported types are: PDF, TXT, DOCX"
        )


# ============================================================
# VALIDATION
# ============================================================

def validate_file(file_path: str, max_size_bytes: int = DEFAULT_MAX_FILE_SIZE) -> None:

    try:
        size = os.path.getsize(file_path)
    except OSError as e:
        raise DocumentProcessingError(f"File validation failed: {e}")

    if size == 0:
        raise DocumentProcessingError("File is empty")

    if size > max_size_bytes:

        max_mb = max_size_bytes / (1024 * 1024)
        size_mb = size / (1024 * 1024)

        raise DocumentProcessingError(
            f"File size ({size_mb:.2f}MB) exceeds maximum allowed size ({max_mb:.2f}MB)"
        )

    detect_document_type(os.path.basename(file_path))


# ============================================================
# PDF LOADER
# ============================================================

def load_pdf(file_path: str) -> LoadedDocument:

    try:

        reader = PdfReader(file_path)

        parts = []

        for page in reader.pages:

            text = page.extract_text()

            if text:
                parts.append(text)

        content = "\n".join(parts)
        page_count = len(reader.pages)

    except Exception as e:
        raise DocumentProcessingError(f"Failed to load PDF file: {e}")

    if not content.strip():
        raise DocumentProcessingError(
            "PDF document is empty or contains no extractable text"
        )

    return LoadedDocument(
        content=content,
        metadata={
            "filename": os.path.basename(file_path),
            "file_type": DocumentType.PDF.value,
            "file_size": os.path.getsize(file_path),
            "page_count": page_count,
        },
    )


# ============================================================
# TXT LOADER
# ============================================================

def load_txt(file_path: str) -> LoadedDocument:

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()
    except Exception as e:
        raise DocumentProcessingError(f"Failed to load TXT file: {e}")

    if not content.strip():
        raise DocumentProcessingError("TXT document is empty")

    return LoadedDocument(
        content=content,
        metadata={
            "filename": os.path.basename(file_path),
            "file_type": DocumentType.TXT.value,
            "file_size": os.path.getsize(file_path),
        },
    )


# ============================================================
# DOCX LOADER
# ============================================================

def load_docx(file_path: str) -> LoadedDocument:

    try:
        doc = DocxDocument(file_path)
        content = "\n".join(p.text for p in doc.paragraphs)
    except Exception as e:
        raise DocumentProcessingError(f"Failed to load DOCX file: {e}")

    if not content.strip():
        raise DocumentProcessingError(
            "DOCX document is empty or contains no extractable text"
        )

    return LoadedDocument(
        content=content,
        metadata={
            "filename": os.path.basename(file_path),
            "file_type": DocumentType.DOCX.value,
            "file_size": os.path.getsize(file_path),
        },
    )


_LOADERS = {
    DocumentType.PDF: load_pdf,
    DocumentType.TXT: load_txt,
    DocumentType.DOCX: load_docx,
}


# ============================================================
# MAIN ENTRY POINT (ARCHITECTURE CONTRACT)
# ============================================================

def load_document(file_path: str) -> LoadedDocument:

    if not os.path.isfile(file_path) or not os.access(file_path, os.R_OK):
        raise DocumentProcessingError(
            f"File not found or not accessible: {file_path}"
        )

    document_type = detect_document_type(os.path.basename(file_path))

    loaded = _LOADERS[document_type](file_path)

    logger.info(
        "Document loaded",
        extra={
            "source_file": loaded.metadata["filename"],
            "file_type": document_type.value,
            "characters": len(loaded.content),
        },
    )

    return loaded
