# docqa/errors.py

"""
Error taxonomy for the document Q&A system.

Every error raised by the core carries a human-readable message and an
ErrorKind tag. The HTTP layer translates errors by kind, so adding a kind
means adding one row to the translation table in docqa/api/routes.py.
"""

from enum import Enum


class ErrorKind(str, Enum):
    DOCUMENT_PROCESSING = "document_processing"
    VECTOR_STORE = "vector_store"
    LLM = "llm"
    RETRIEVAL = "retrieval"
    CONFIGURATION = "configuration"


class RAGError(Exception):
    """Root of all errors raised by the RAG core."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class DocumentProcessingError(RAGError):
    """Bad input file, unsupported type, empty content, chunking misconfiguration."""

    kind = ErrorKind.DOCUMENT_PROCESSING


class VectorStoreError(RAGError):
    """Index not initialized, invalid query or k, backend failure."""

    kind = ErrorKind.VECTOR_STORE


class LLMError(RAGError):
    """Model call failure or chain not initialized."""

    kind = ErrorKind.LLM


class RetrievalError(RAGError):
    """Empty question or malformed history."""

    kind = ErrorKind.RETRIEVAL


class ConfigurationError(RAGError):
    """Invalid configuration value or invariant-violating update."""

    kind = ErrorKind.CONFIGURATION
