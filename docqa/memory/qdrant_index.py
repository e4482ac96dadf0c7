import logging
import uuid
from typing import List, Optional, Tuple

import numpy as np
from qdrant_client import QdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from docqa.memory.chunk import Chunk

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "documents"
SCROLL_PAGE_SIZE = 100


class QdrantIndex:
    """
    Qdrant backend for vector_store_type="qdrant".

    Runs in-process (":memory:") unless a location is given. Unlike the FAISS
    backend it deletes points natively by document_id payload filter.
    """

    supports_point_delete = True

    def __init__(self, location: Optional[str] = None, collection: str = DEFAULT_COLLECTION):

        location = location or ":memory:"

        if location.startswith(("http://", "https://")):
            self._client = QdrantClient(url=location, timeout=60.0)
        elif location == ":memory:":
            self._client = QdrantClient(location=":memory:")
        else:
            self._client = QdrantClient(path=location)

        self._collection = collection
        self._dimension: Optional[int] = None

        if self._collection_exists():
            info = self._client.get_collection(collection_name=collection)
            self._dimension = info.config.params.vectors.size

        logger.info(
            "Qdrant client initialized",
            extra={"collection": collection, "location": location},
        )

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _collection_exists(self) -> bool:

        collections = self._client.get_collections().collections

        return any(c.name == self._collection for c in collections)

    def _ensure_collection(self, dim: int) -> None:

        if self._dimension is not None:
            return

        if not self._collection_exists():

            self._client.create_collection(
                collection_name=self._collection,
                vectors_config=VectorParams(size=dim, distance=Distance.COSINE),
            )

            logger.info(
                "Qdrant collection created",
                extra={"collection": self._collection, "dimension": dim},
            )

        try:

            self._client.create_payload_index(
                collection_name=self._collection,
                field_name="document_id",
                field_schema=PayloadSchemaType.KEYWORD,
            )

        except Exception as e:
            # local mode has no payload indexes; server mode may already have it
            logger.debug(
                "Payload index skipped",
                extra={"error": str(e)},
            )

        self._dimension = dim

    @property
    def size(self) -> int:

        if self._dimension is None and not self._collection_exists():
            return 0

        return self._client.count(collection_name=self._collection, exact=True).count

    def add(self, vectors: np.ndarray, chunks: List[Chunk]) -> None:

        if len(chunks) == 0:
            return

        vectors = np.asarray(vectors, dtype="float32")

        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)

        self._ensure_collection(vectors.shape[1])

        points = [
            PointStruct(
                id=str(uuid.uuid4()),
                vector=vector.tolist(),
                payload={
                    "content": chunk.content,
                    "metadata": chunk.metadata,
                    "document_id": chunk.document_id,
                },
            )
            for vector, chunk in zip(vectors, chunks)
        ]

        self._client.upsert(collection_name=self._collection, points=points)

    def search(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:

        if self._dimension is None:
            return []

        response = self._client.query_points(
            collection_name=self._collection,
            query=np.asarray(vector, dtype="float32").tolist(),
            limit=k,
            with_payload=True,
        )

        return [
            (self._to_chunk(point.payload), float(point.score))
            for point in response.points
        ]

    def records(self) -> List[Tuple[Chunk, np.ndarray]]:

        if self._dimension is None:
            return []

        records = []

        offset = None

        while True:

            points, offset = self._client.scroll(
                collection_name=self._collection,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=True,
            )

            for point in points:
                records.append(
                    (self._to_chunk(point.payload), np.array(point.vector, dtype="float32"))
                )

            if offset is None:
                break

        return records

    def delete_document(self, document_id: str) -> None:

        self._client.delete(
            collection_name=self._collection,
            points_selector=FilterSelector(
                filter=Filter(
                    must=[
                        FieldCondition(
                            key="document_id",
                            match=MatchValue(value=document_id),
                        )
                    ]
                )
            ),
        )

    def reset(self) -> None:

        if self._collection_exists():
            self._client.delete_collection(collection_name=self._collection)

        self._dimension = None

    @staticmethod
    def _to_chunk(payload: Optional[dict]) -> Chunk:

        payload = payload or {}

        return Chunk(
            content=payload.get("content", ""),
            metadata=dict(payload.get("metadata") or {}),
        )
