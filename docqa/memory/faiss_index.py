import logging
from typing import List, Optional, Tuple

import faiss
import numpy as np

from docqa.memory.chunk import Chunk

logger = logging.getLogger(__name__)


class FaissIndex:
    """
    In-memory FAISS backend.

    Inner product over normalized vectors = cosine similarity.
    FAISS flat indexes have no point delete, so callers remove documents by
    scanning records() and building a new index from what remains.
    """

    supports_point_delete = False

    def __init__(self):
        self._index: Optional[faiss.IndexFlatIP] = None
        self._chunks: List[Chunk] = []

    @property
    def size(self) -> int:
        return 0 if self._index is None else self._index.ntotal

    @property
    def dimension(self) -> Optional[int]:
        return None if self._index is None else self._index.d

    def add(self, vectors: np.ndarray, chunks: List[Chunk]) -> None:

        if len(chunks) == 0:
            return

        vectors = np.ascontiguousarray(vectors, dtype="float32")

        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)

        if vectors.shape[0] != len(chunks):
            raise ValueError(
                f"Vector count ({vectors.shape[0]}) does not match chunk count ({len(chunks)})"
            )

        if self._index is None:

            self._index = faiss.IndexFlatIP(vectors.shape[1])

            logger.info(
                "New FAISS index created",
                extra={"dimension": vectors.shape[1]},
            )

        elif self._index.d != vectors.shape[1]:

            raise ValueError(
                f"FAISS index dimension mismatch: index.d={self._index.d} "
                f"vs embeddings.d={vectors.shape[1]}"
            )

        self._index.add(vectors)
        self._chunks.extend(chunks)

    def search(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:

        if self.size == 0:
            return []

        query = np.ascontiguousarray(vector, dtype="float32").reshape(1, -1)

        scores, idxs = self._index.search(query, min(k, self.size))

        hits = []

        for score, idx in zip(scores[0].tolist(), idxs[0].tolist()):

            if idx < 0 or idx >= len(self._chunks):
                continue

            hits.append((self._chunks[idx], float(score)))

        return hits

    def reset(self) -> None:
        self._index = None
        self._chunks = []

    def records(self) -> List[Tuple[Chunk, np.ndarray]]:
        """Every stored chunk with its vector, in insertion order."""

        return [
            (chunk, self._index.reconstruct(i))
            for i, chunk in enumerate(self._chunks)
        ]
