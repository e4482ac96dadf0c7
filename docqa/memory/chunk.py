"""Chunk data model shared by ingestion, the vector store and the QA engine"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of a document's text plus its metadata"""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def document_id(self) -> Optional[str]:
        return self.metadata.get("document_id")

    @property
    def chunk_index(self) -> Optional[int]:
        return self.metadata.get("chunk_index")
