# docqa/memory/embedder.py

"""
Embedding wrapper with batching.

Architecture contract:
chunker → embedder → vector_store

Guarantees:
• Always returns numpy float32 array
• Always normalized (cosine-ready)
• Batched processing
• OpenAI client created on first use
"""

import logging
from typing import List, Optional

import numpy as np
from openai import OpenAI

from docqa.config import DEFAULT_EMBEDDING_MODEL

logger = logging.getLogger(__name__)

DEFAULT_EMBED_BATCH_SIZE = 32

KNOWN_DIMENSIONS = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}


def normalize(vectors: np.ndarray) -> np.ndarray:

    norms = np.linalg.norm(vectors, axis=1, keepdims=True)

    return vectors / np.clip(norms, 1e-10, None)


class Embedder:
    """
    OpenAI embedding generator.

    Responsibilities:
    • Call OpenAI embedding API
    • Batch requests
    • Return normalized float32 matrices
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        api_key: Optional[str] = None,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
    ):

        self.model = model
        self._api_key = api_key
        self._batch_size = batch_size
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:

        if self._client is None:

            self._client = OpenAI(api_key=self._api_key)

            logger.info(
                "Embedding client initialized",
                extra={"model": self.model},
            )

        return self._client

    def get_dimension(self) -> Optional[int]:
        return KNOWN_DIMENSIONS.get(self.model)

    # ============================================================
    # PUBLIC API
    # ============================================================

    def embed(self, texts: List[str]) -> np.ndarray:

        if not texts:

            logger.warning("Empty embedding request")

            return np.empty((0, self.get_dimension() or 0), dtype="float32")

        total = len(texts)

        logger.info(
            "Embedding started",
            extra={"chunks": total, "batch_size": self._batch_size},
        )

        try:

            all_embeddings = []

            for start in range(0, total, self._batch_size):

                batch = texts[start:start + self._batch_size]

                response = self.client.embeddings.create(
                    model=self.model,
                    input=batch,
                )

                all_embeddings.append(
                    np.array(
                        [item.embedding for item in response.data],
                        dtype="float32",
                    )
                )

            embeddings = normalize(np.vstack(all_embeddings))

        except Exception as e:

            logger.error(
                "Embedding generation failed",
                extra={"error": str(e)},
            )

            raise RuntimeError(f"Embedding generation failed: {e}")

        logger.info(
            "Embedding completed",
            extra={"chunks": total, "dimension": int(embeddings.shape[1])},
        )

        return embeddings

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]
