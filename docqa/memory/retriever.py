# docqa/memory/retriever.py
from typing import List

from docqa.memory.chunk import Chunk


class VectorStoreRetriever:
    """
    Retriever bound to a vector store with a fixed k.

    Args:
        store: VectorStore instance to search
        k: Number of chunks returned per query
    """

    def __init__(self, store, k: int = 4):
        self.store = store
        self.k = k

    def invoke(self, query: str) -> List[Chunk]:
        """
        Retrieve the k most similar chunks for a query, most similar first.
        """
        return self.store.similarity_search(query, self.k)
