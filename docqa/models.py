from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ========== DOCUMENTS ==========

class DocumentMetadata(BaseModel):
    """Metadata recorded for a successfully ingested document."""
    document_id: str
    filename: str
    file_type: str
    upload_date: datetime
    chunk_count: int
    file_size: int


class IngestionStatus(BaseModel):
    document_id: str
    status: Literal["processing", "completed", "failed"]
    progress: int = Field(..., ge=0, le=100)
    error: Optional[str] = None


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    success: bool = True
    document_id: str
    chunk_count: int
    metadata: Optional[DocumentMetadata] = None


class ListDocumentsResponse(BaseModel):
    success: bool = True
    count: int
    documents: List[DocumentMetadata]


class IngestionStatusResponse(IngestionStatus):
    success: bool = True


class DeleteDocumentResponse(BaseModel):
    """Response after deleting a document."""
    success: bool
    message: str
    document_id: str


# ========== QUESTION ANSWERING ==========

class Message(BaseModel):
    """One turn of a conversation supplied by the caller."""
    role: Literal["user", "assistant"]
    content: str


class QAConfig(BaseModel):
    top_k: int
    temperature: float
    max_tokens: int


class QAConfigOverrides(BaseModel):
    """Per-request overrides merged over the global RAG configuration."""
    top_k: Optional[int] = Field(None, ge=1, le=20)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1, le=4000)


class AskRequest(BaseModel):
    """Request to ask a question across all indexed documents."""
    question: str
    config: Optional[QAConfigOverrides] = None


class ChatRequest(BaseModel):
    """Request to ask a follow-up question with prior turns."""
    question: str
    history: List[Message] = Field(default_factory=list)
    config: Optional[QAConfigOverrides] = None


class SourceDocument(BaseModel):
    document_id: str
    filename: str
    content: str
    chunk_index: int
    relevance_score: float


class QAResponse(BaseModel):
    answer: str
    sources: List[SourceDocument]
    confidence: float = Field(..., ge=0.0, le=1.0)
    processing_time: int  # milliseconds


class AskResponse(QAResponse):
    success: bool = True


# ========== CONFIGURATION ==========

class ConfigUpdateRequest(BaseModel):
    """
    Partial RAG configuration update.

    Ranges are checked by ConfigManager.update so that every write goes
    through the same validation.
    """
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    embedding_model: Optional[str] = None
    vector_store_type: Optional[str] = None
    vector_store_path: Optional[str] = None
    llm_model: Optional[str] = None
    llm_temperature: Optional[float] = None
    llm_max_tokens: Optional[int] = None
    top_k: Optional[int] = None
    score_threshold: Optional[float] = None


class ConfigResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    config: Dict[str, Any]


# ========== SYSTEM ==========

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    environment: str
    total_documents: int
    total_chunks: int


class ErrorResponse(BaseModel):
    error: str
    message: str
    request_id: Optional[str] = None
