# docqa/memory/store.py

"""
Vector store manager.

Owns the index backend and the document registry
(document_id → chunk ids). The registry answers existence, counts and
stats; the backend answers similarity queries.

All backend reads and writes go through one re-entrant lock so that a
delete (full scan + rebuild on the FAISS backend) cannot interleave with an
add. Embedding calls are made outside the lock.
"""

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from docqa.errors import VectorStoreError
from docqa.memory.chunk import Chunk
from docqa.memory.embedder import Embedder
from docqa.memory.faiss_index import FaissIndex
from docqa.memory.qdrant_index import QdrantIndex
from docqa.memory.retriever import VectorStoreRetriever

logger = logging.getLogger(__name__)

DEFAULT_K = 4


class VectorStore:

    def __init__(
        self,
        embedder: Embedder,
        store_type: str = "memory",
        store_path: Optional[str] = None,
    ):

        if store_type not in ("memory", "qdrant"):
            raise VectorStoreError(
                f"Invalid vector store type: {store_type}. Must be either 'memory' or 'qdrant'."
            )

        self._embedder = embedder
        self._store_type = store_type
        self._store_path = store_path

        self._backend = None
        self._registry: Dict[str, List[str]] = {}
        self._lock = threading.RLock()

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def _create_backend(self):

        if self._store_type == "qdrant":
            return QdrantIndex(location=self._store_path)

        return FaissIndex()

    def initialize_store(self) -> None:

        with self._lock:

            if self._backend is not None:
                return

            try:
                self._backend = self._create_backend()
            except Exception as e:
                raise VectorStoreError(f"Failed to initialize vector store: {e}")

            logger.info(
                "VectorStore initialized",
                extra={"store_type": self._store_type},
            )

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    # ============================================================
    # VALIDATION HELPERS
    # ============================================================

    @staticmethod
    def _validate_query(query: str, k: int) -> None:

        if not query or not query.strip():
            raise VectorStoreError("Query cannot be empty")

        if k < 1:
            raise VectorStoreError("k must be at least 1")

    @staticmethod
    def _validate_document_id(document_id: str) -> None:

        if not document_id or not document_id.strip():
            raise VectorStoreError("Document ID cannot be empty")

    # ============================================================
    # ADD
    # ============================================================

    def add_documents(self, chunks: List[Chunk]) -> List[str]:
        """
        Embed and index chunks, returning one synthetic id per chunk.

        Re-adding a document without deleting it first indexes it twice.
        """

        try:

            self.initialize_store()

            if not chunks:
                return []

            embeddings = self._embedder.embed([c.content for c in chunks])

            with self._lock:

                self._backend.add(embeddings, chunks)

                timestamp = int(time.time() * 1000)

                ids = []

                for i, chunk in enumerate(chunks):

                    document_id = chunk.document_id
                    chunk_id = f"{document_id}_chunk_{i}_{timestamp}"

                    ids.append(chunk_id)

                    if document_id:
                        self._registry.setdefault(document_id, []).append(chunk_id)

            logger.info(
                "Chunks indexed",
                extra={
                    "chunks": len(chunks),
                    "documents": len({c.document_id for c in chunks}),
                },
            )

            return ids

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(f"Failed to add documents to vector store: {e}")

    # ============================================================
    # SEARCH
    # ============================================================

    def _search(self, query: str, k: int) -> List[Tuple[Chunk, float]]:

        self.initialize_store()

        self._validate_query(query, k)

        vector = self._embedder.embed_query(query)

        with self._lock:
            return self._backend.search(vector, k)

    def similarity_search(self, query: str, k: int = DEFAULT_K) -> List[Chunk]:

        try:
            return [chunk for chunk, _ in self._search(query, k)]

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(f"Failed to perform similarity search: {e}")

    def similarity_search_with_score(
        self,
        query: str,
        k: int = DEFAULT_K,
    ) -> List[Tuple[Chunk, float]]:

        try:
            return self._search(query, k)

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(
                f"Failed to perform similarity search with scores: {e}"
            )

    def search_within_document(
        self,
        document_id: str,
        query: str,
        k: int = DEFAULT_K,
    ) -> List[Chunk]:
        """
        Over-fetch k*3 globally, then keep the target document's chunks.

        May return fewer than k, or miss chunks of the document that rank
        below the global top k*3.
        """

        try:

            self.initialize_store()

            self._validate_document_id(document_id)

            if not query or not query.strip():
                raise VectorStoreError("Query cannot be empty")

            if document_id not in self._registry:
                return []

            results = self.similarity_search(query, k * 3)

            return [c for c in results if c.document_id == document_id][:k]

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(f"Failed to search within document: {e}")

    # ============================================================
    # DELETE
    # ============================================================

    def delete_document(self, document_id: str) -> bool:

        try:

            self.initialize_store()

            self._validate_document_id(document_id)

            with self._lock:

                if not self._registry.get(document_id):

                    logger.warning(
                        "Delete requested for unknown document",
                        extra={"document_id": document_id},
                    )

                    return False

                if self._backend.supports_point_delete:

                    self._backend.delete_document(document_id)

                else:

                    self._rebuild_without(document_id)

                del self._registry[document_id]

            logger.info(
                "Document deleted from vector store",
                extra={"document_id": document_id},
            )

            return True

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(f"Failed to delete document: {e}")

    def _rebuild_without(self, document_id: str) -> None:
        """Full scan of the index; O(total chunks) per delete."""

        records = self._backend.records()

        remaining = [
            (chunk, vector)
            for chunk, vector in records
            if chunk.document_id != document_id
        ]

        new_backend = self._create_backend()

        if remaining:
            new_backend.add(
                np.vstack([vector for _, vector in remaining]),
                [chunk for chunk, _ in remaining],
            )

        self._backend = new_backend

        logger.info(
            "Index rebuilt",
            extra={
                "document_id": document_id,
                "scanned": len(records),
                "kept": len(remaining),
            },
        )

    # ============================================================
    # DOCUMENT LOOKUPS
    # ============================================================

    def get_document_metadata(self, document_id: str) -> List[Chunk]:
        """All chunks of a document, ordered by chunk_index."""

        try:

            self.initialize_store()

            self._validate_document_id(document_id)

            with self._lock:

                if document_id not in self._registry:
                    return []

                chunks = [
                    chunk
                    for chunk, _ in self._backend.records()
                    if chunk.document_id == document_id
                ]

            return sorted(chunks, key=lambda c: c.chunk_index or 0)

        except VectorStoreError:
            raise

        except Exception as e:
            raise VectorStoreError(f"Failed to retrieve document metadata: {e}")

    def get_stored_document_ids(self) -> List[str]:
        return list(self._registry.keys())

    def has_document(self, document_id: str) -> bool:
        return document_id in self._registry

    def get_document_chunk_count(self, document_id: str) -> int:
        return len(self._registry.get(document_id, []))

    def get_store_stats(self) -> Dict:

        with self._lock:

            return {
                "total_documents": len(self._registry),
                "total_chunks": sum(len(ids) for ids in self._registry.values()),
                "document_ids": list(self._registry.keys()),
            }

    # ============================================================
    # CLEAR
    # ============================================================

    def clear_store(self) -> None:

        try:

            with self._lock:

                if self._backend is not None:
                    self._backend.reset()
                else:
                    self._backend = self._create_backend()

                self._registry.clear()

            logger.info("Vector store cleared")

        except Exception as e:
            raise VectorStoreError(f"Failed to clear vector store: {e}")

    # ============================================================
    # RETRIEVER
    # ============================================================

    def as_retriever(self, k: int = DEFAULT_K) -> VectorStoreRetriever:
        return VectorStoreRetriever(self, k)

