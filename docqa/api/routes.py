import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import JSONResponse

from docqa.config import ConfigManager, Settings, load_settings
from docqa.errors import (
    DocumentProcessingError,
    ErrorKind,
    RAGError,
)
from docqa.llm.client import LLMClient
from docqa.memory.embedder import Embedder
from docqa.memory.store import VectorStore
from docqa.models import (
    AskRequest,
    AskResponse,
    ChatRequest,
    ConfigResponse,
    ConfigUpdateRequest,
    DeleteDocumentResponse,
    ErrorResponse,
    HealthResponse,
    IngestionStatusResponse,
    ListDocumentsResponse,
    QAResponse,
    UploadResponse,
)
from docqa.observability.logger import (
    log_request_complete,
    log_request_error,
    log_request_start,
)
from docqa.observability.metrics import metrics_tracker
from docqa.observability.posthog_client import posthog_client
from docqa.workflow.document_qa import QAEngine
from docqa.workflow.ingestion import DocumentIngestionService


# ============================================================
# LOGGER
# ============================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# ERROR TRANSLATION
# ============================================================

ERROR_STATUS: Dict[ErrorKind, Tuple[int, str]] = {
    ErrorKind.DOCUMENT_PROCESSING: (status.HTTP_400_BAD_REQUEST, "Document processing failed"),
    ErrorKind.CONFIGURATION: (status.HTTP_400_BAD_REQUEST, "Invalid configuration"),
    ErrorKind.VECTOR_STORE: (status.HTTP_503_SERVICE_UNAVAILABLE, "Vector store unavailable"),
    ErrorKind.LLM: (status.HTTP_503_SERVICE_UNAVAILABLE, "Language model API failure"),
    ErrorKind.RETRIEVAL: (status.HTTP_404_NOT_FOUND, "No relevant information found"),
}


async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:

    request_id = getattr(request.state, "request_id", None)

    status_code, error = ERROR_STATUS[exc.kind]

    logger.warning(
        "rag_error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "error_kind": exc.kind.value,
            "error": exc.message,
            "status_code": status_code,
        },
    )

    posthog_client.track_error(
        distinct_id=request_id or "unknown",
        error_type=type(exc).__name__,
        error_message=exc.message,
        endpoint=request.url.path,
    )

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=exc.message,
            request_id=request_id,
        ).model_dump(),
    )


# ============================================================
# SERVICES (ONE SET PER APP)
# ============================================================

@dataclass
class Services:
    settings: Settings
    config_manager: ConfigManager
    vector_store: VectorStore
    ingestion: DocumentIngestionService
    qa_engine: QAEngine


def build_services(
    settings: Optional[Settings] = None,
    embedder=None,
    llm_factory: Optional[Callable] = None,
) -> Services:

    settings = settings or load_settings()

    config_manager = ConfigManager(settings.rag_config())
    rag_config = config_manager.get()

    embedder = embedder or Embedder(
        model=rag_config.embedding_model,
        api_key=settings.openai_api_key,
    )

    vector_store = VectorStore(
        embedder,
        store_type=rag_config.vector_store_type,
        store_path=rag_config.vector_store_path,
    )

    qa_engine = QAEngine(
        vector_store,
        config_manager,
        llm_factory=llm_factory or LLMClient,
        api_key=settings.openai_api_key,
    )

    logger.info(
        "Services initialized",
        extra={
            "vector_store_type": rag_config.vector_store_type,
            "embedding_model": rag_config.embedding_model,
            "llm_model": rag_config.llm_model,
        },
    )

    return Services(
        settings=settings,
        config_manager=config_manager,
        vector_store=vector_store,
        ingestion=DocumentIngestionService(),
        qa_engine=qa_engine,
    )


services: Optional[Services] = None


def get_services() -> Services:

    global services

    if services is None:
        services = build_services()

    return services


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


# ============================================================
# HEALTH
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check():

    svc = get_services()

    stats = svc.vector_store.get_store_stats()

    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=svc.settings.environment,
        total_documents=stats["total_documents"],
        total_chunks=stats["total_chunks"],
    )


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

@router.post(
    "/api/documents/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(request: Request, file: Optional[UploadFile] = File(None)):

    if file is None or not file.filename:
        raise DocumentProcessingError("No file uploaded")

    svc = get_services()
    request_id = _request_id(request)

    start_time = time.time()

    filename = Path(file.filename).name

    log_request_start(logger, request_id, "upload", source_file=filename)

    # one directory per upload so identical filenames never collide
    upload_root = Path(svc.settings.upload_dir) / uuid.uuid4().hex
    file_path = upload_root / filename

    try:

        upload_root.mkdir(parents=True, exist_ok=True)

        with file_path.open("wb") as buffer:
            shutil.copyfileobj(file.file, buffer)

        result = svc.ingestion.ingest_document(
            str(file_path),
            svc.config_manager.get(),
            svc.settings.max_file_size,
        )

        if not result.success:
            raise DocumentProcessingError(result.error or "Document processing failed")

        chunks = svc.ingestion.get_document_chunks(result.document_id)

        if chunks:

            try:
                svc.vector_store.add_documents(chunks)

            except Exception:
                # the index holds none of these chunks, so neither may the registry
                svc.ingestion.remove_document(result.document_id)
                raise

        metadata = svc.ingestion.get_document_metadata(result.document_id)

        latency = time.time() - start_time

        log_request_complete(
            logger,
            request_id,
            "upload",
            latency,
            document_id=result.document_id,
            chunks=result.chunk_count,
        )

        posthog_client.track_document_upload(
            distinct_id=request_id,
            document_id=result.document_id,
            filename=filename,
            file_type=metadata.file_type if metadata else "unknown",
            chunks=result.chunk_count,
            latency=latency,
        )

        return UploadResponse(
            document_id=result.document_id,
            chunk_count=result.chunk_count,
            metadata=metadata,
        )

    except Exception as e:

        log_request_error(logger, request_id, "upload", e, source_file=filename)

        raise

    finally:

        shutil.rmtree(upload_root, ignore_errors=True)


# ============================================================
# LIST / STATUS / DELETE
# ============================================================

@router.get("/api/documents", response_model=ListDocumentsResponse)
def list_documents():

    documents = get_services().ingestion.get_all_documents()

    return ListDocumentsResponse(count=len(documents), documents=documents)


@router.get("/api/documents/{document_id}/status", response_model=IngestionStatusResponse)
def get_document_status(document_id: str):

    ingestion_status = get_services().ingestion.get_ingestion_status(document_id)

    return IngestionStatusResponse(**ingestion_status.model_dump())


@router.delete("/api/documents/{document_id}", response_model=DeleteDocumentResponse)
def delete_document(document_id: str):

    svc = get_services()

    deleted_from_store = svc.vector_store.delete_document(document_id)
    deleted_from_ingestion = svc.ingestion.remove_document(document_id)

    if not deleted_from_store and not deleted_from_ingestion:

        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "message": "Document not found"},
        )

    logger.info(
        "Document deleted",
        extra={
            "document_id": document_id,
            "from_index": deleted_from_store,
            "from_ingestion": deleted_from_ingestion,
        },
    )

    return DeleteDocumentResponse(
        success=True,
        message="Document deleted successfully",
        document_id=document_id,
    )


# ============================================================
# QUESTION ANSWERING
# ============================================================

def _track_answer(
    request_id: str,
    question: str,
    mode: str,
    response: QAResponse,
    latency: float,
    history_turns: int = 0,
):

    posthog_client.track_retrieval(
        distinct_id=request_id,
        chunks_retrieved=len(response.sources),
        document_ids=len({s.document_id for s in response.sources}),
    )

    posthog_client.track_question(
        distinct_id=request_id,
        question=question,
        mode=mode,
        latency=latency,
        confidence=response.confidence,
        history_turns=history_turns,
    )


@router.post("/api/qa/ask", response_model=AskResponse)
def ask_question(payload: AskRequest, request: Request):

    request_id = _request_id(request)

    start_time = time.time()

    log_request_start(logger, request_id, "ask", question_length=len(payload.question))

    try:

        response = get_services().qa_engine.ask_question(payload.question, payload.config)

    except Exception as e:

        log_request_error(logger, request_id, "ask", e)

        raise

    latency = time.time() - start_time

    log_request_complete(logger, request_id, "ask", latency, sources=len(response.sources))

    _track_answer(request_id, payload.question, "ask", response, latency)

    return AskResponse(**response.model_dump())


@router.post("/api/qa/chat", response_model=AskResponse)
def chat(payload: ChatRequest, request: Request):

    request_id = _request_id(request)

    start_time = time.time()

    log_request_start(
        logger,
        request_id,
        "chat",
        question_length=len(payload.question),
        history_turns=len(payload.history),
    )

    try:

        response = get_services().qa_engine.ask_with_history(
            payload.question,
            payload.history,
            payload.config,
        )

    except Exception as e:

        log_request_error(logger, request_id, "chat", e)

        raise

    latency = time.time() - start_time

    log_request_complete(logger, request_id, "chat", latency, sources=len(response.sources))

    _track_answer(
        request_id,
        payload.question,
        "chat",
        response,
        latency,
        history_turns=len(payload.history),
    )

    return AskResponse(**response.model_dump())


# ============================================================
# CONFIGURATION
# ============================================================

@router.get("/api/config", response_model=ConfigResponse)
def get_config():

    return ConfigResponse(config=get_services().config_manager.get().model_dump())


@router.put("/api/config", response_model=ConfigResponse)
def update_config(payload: ConfigUpdateRequest):

    updates = payload.model_dump(exclude_unset=True)

    config = get_services().config_manager.update(updates)

    logger.info("Configuration updated", extra={"fields": sorted(updates)})

    return ConfigResponse(
        message="Configuration updated successfully",
        config=config.model_dump(),
    )


# ============================================================
# METRICS ENDPOINT
# ============================================================

@router.get("/metrics")
def get_metrics():

    return metrics_tracker.get_metrics()
