# docqa/memory/chunker.py

import logging
import math
from typing import Any, Dict, List, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

from docqa.config import RAGConfig
from docqa.errors import DocumentProcessingError
from docqa.memory.chunk import Chunk

logger = logging.getLogger(__name__)

# paragraph → line → word → character
SEPARATORS = ["\n\n", "\n", " ", ""]


def create_text_splitter(config: RAGConfig) -> RecursiveCharacterTextSplitter:

    return RecursiveCharacterTextSplitter(
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        separators=SEPARATORS,
    )


def split_text(
    text: str,
    config: RAGConfig,
    metadata: Optional[Dict[str, Any]] = None,
) -> List[Chunk]:
    """
    Split document text into overlapping chunks.

    Guarantees:
    • chunk_index values are 0..n-1
    • every chunk is at most chunk_size characters
    • a document no longer than chunk_size is kept whole (trimmed)
    """

    metadata = metadata or {}

    if not text or not text.strip():
        raise DocumentProcessingError("Cannot split empty document")

    trimmed = text.strip()

    if len(trimmed) <= config.chunk_size:

        logger.info(
            "Chunking skipped: document fits in one chunk",
            extra={"characters": len(trimmed), "chunk_size": config.chunk_size},
        )

        return [
            Chunk(
                content=trimmed,
                metadata={**metadata, "chunk_index": 0, "total_chunks": 1},
            )
        ]

    try:

        pieces = create_text_splitter(config).split_text(trimmed)

    except Exception as e:

        raise DocumentProcessingError(f"Failed to split text: {e}")

    total = len(pieces)

    chunks = [
        Chunk(
            content=piece,
            metadata={**metadata, "chunk_index": i, "total_chunks": total},
        )
        for i, piece in enumerate(pieces)
    ]

    logger.info(
        "Chunking completed",
        extra={
            "characters": len(trimmed),
            "chunk_size": config.chunk_size,
            "overlap": config.chunk_overlap,
            "chunks_created": total,
        },
    )

    return chunks


def validate_splitting_config(config: RAGConfig) -> None:

    if config.chunk_size <= 0:
        raise DocumentProcessingError(
            f"Invalid chunk size: {config.chunk_size}. Must be greater than 0."
        )

    if config.chunk_overlap < 0:
        raise DocumentProcessingError(
            f"Invalid chunk overlap: {config.chunk_overlap}. Must be non-negative."
        )

    if config.chunk_overlap >= config.chunk_size:
        raise DocumentProcessingError(
            f"Chunk overlap ({config.chunk_overlap}) must be less than "
            f"chunk size ({config.chunk_size})"
        )


def estimate_chunk_count(text_length: int, config: RAGConfig) -> int:
    """Rough count for progress reporting; split_text is authoritative."""

    if text_length <= config.chunk_size:
        return 1

    return math.ceil(text_length / (config.chunk_size - config.chunk_overlap))
