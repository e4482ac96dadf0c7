# docqa/workflow/ingestion.py

"""
Document ingestion: validate → load → chunk, with per-document progress.

Indexing the resulting chunks is a separate step owned by the caller
(see docqa/api/routes.py). Ingestion never raises: failures are recorded
on the document's state and returned as IngestResult(success=False).
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from docqa.config import DEFAULT_MAX_FILE_SIZE, RAGConfig
from docqa.errors import DocumentProcessingError
from docqa.memory.chunk import Chunk
from docqa.memory.chunker import split_text, validate_splitting_config
from docqa.memory.loader import load_document, validate_file
from docqa.models import DocumentMetadata, IngestionStatus

logger = logging.getLogger(__name__)

PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class IngestResult:
    success: bool
    document_id: str
    chunk_count: int
    error: Optional[str] = None


@dataclass
class IngestionState:
    document_id: str
    status: str = PROCESSING
    progress: int = 0
    error: Optional[str] = None
    metadata: Optional[DocumentMetadata] = None
    chunks: List[Chunk] = field(default_factory=list)


class DocumentIngestionService:

    def __init__(self):
        self._states: Dict[str, IngestionState] = {}
        self._lock = threading.Lock()

    @staticmethod
    def generate_document_id() -> str:
        return str(uuid.uuid4())

    def _update_progress(
        self,
        document_id: str,
        status: str,
        progress: int,
        error: Optional[str] = None,
    ) -> None:

        with self._lock:

            state = self._states.get(document_id)

            if state is None:
                return

            state.status = status
            state.progress = progress

            if error:
                state.error = error

    # ============================================================
    # INGEST
    # ============================================================

    def ingest_document(
        self,
        file_path: str,
        config: RAGConfig,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> IngestResult:

        document_id = self.generate_document_id()

        with self._lock:
            self._states[document_id] = IngestionState(document_id=document_id)

        try:

            self._update_progress(document_id, PROCESSING, 10)
            validate_file(file_path, max_file_size)

            validate_splitting_config(config)

            self._update_progress(document_id, PROCESSING, 40)
            loaded = load_document(file_path)

            self._update_progress(document_id, PROCESSING, 70)
            chunks = split_text(
                loaded.content,
                config,
                {
                    "document_id": document_id,
                    "filename": loaded.metadata["filename"],
                    "file_type": loaded.metadata["file_type"],
                    "file_size": loaded.metadata["file_size"],
                    "page_count": loaded.metadata.get("page_count"),
                },
            )

            self._update_progress(document_id, PROCESSING, 90)
            metadata = DocumentMetadata(
                document_id=document_id,
                filename=loaded.metadata["filename"],
                file_type=loaded.metadata["file_type"],
                upload_date=datetime.now(timezone.utc),
                chunk_count=len(chunks),
                file_size=loaded.metadata["file_size"],
            )

            with self._lock:
                state = self._states.get(document_id)
                if state is not None:
                    state.metadata = metadata
                    state.chunks = chunks

            self._update_progress(document_id, COMPLETED, 100)

            logger.info(
                "Document ingestion complete",
                extra={"document_id": document_id, "chunks": len(chunks)},
            )

            return IngestResult(
                success=True,
                document_id=document_id,
                chunk_count=len(chunks),
            )

        except Exception as e:

            message = str(e)

            self._update_progress(document_id, FAILED, 0, message)

            logger.warning(
                "Document ingestion failed",
                extra={
                    "document_id": document_id,
                    "error": message,
                    "error_type": type(e).__name__,
                },
            )

            return IngestResult(
                success=False,
                document_id=document_id,
                chunk_count=0,
                error=message,
            )

    # ============================================================
    # LOOKUPS
    # ============================================================

    def get_ingestion_status(self, document_id: str) -> IngestionStatus:

        with self._lock:
            state = self._states.get(document_id)

            if state is None:
                raise DocumentProcessingError(
                    f"No ingestion record found for document ID: {document_id}"
                )

            return IngestionStatus(
                document_id=state.document_id,
                status=state.status,
                progress=state.progress,
                error=state.error,
            )

    def get_document_metadata(self, document_id: str) -> Optional[DocumentMetadata]:

        with self._lock:
            state = self._states.get(document_id)
            return state.metadata if state else None

    def get_document_chunks(self, document_id: str) -> Optional[List[Chunk]]:

        with self._lock:
            state = self._states.get(document_id)
            if state is None or state.status != COMPLETED:
                return None
            return list(state.chunks)

    def get_all_documents(self) -> List[DocumentMetadata]:

        with self._lock:
            return [
                state.metadata
                for state in self._states.values()
                if state.metadata is not None and state.status == COMPLETED
            ]

    def remove_document(self, document_id: str) -> bool:

        with self._lock:
            return self._states.pop(document_id, None) is not None

    def clear_all(self) -> None:

        with self._lock:
            self._states.clear()

    def get_document_count(self) -> int:
        return len(self._states)
