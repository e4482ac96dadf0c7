# docqa/main.py
import os
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docqa.api import routes
from docqa.api.routes import rag_error_handler, router
from docqa.config import load_settings
from docqa.errors import RAGError
from docqa.models import ErrorResponse
from docqa.observability.logger import get_logger, setup_logging
from docqa.observability.metrics import metrics_tracker
from docqa.observability.posthog_client import posthog_client

APP_VERSION = "1.0.0"

settings = load_settings()

# Initialize logging FIRST
setup_logging(log_level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)

app = FastAPI(
    title="Document Q&A API",
    description="Upload documents and ask questions answered from their content",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _request_fields(request: Request, request_id: str) -> dict:
    return {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Tags every request with a request_id (also returned as X-Request-ID),
    logs its lifecycle and feeds the metrics tracker. 5xx responses count
    as failures.
    """

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id

    fields = _request_fields(request, request_id)

    posthog_client.identify_user(
        distinct_id=request_id,
        properties={"entry_point": fields["path"], "method": fields["method"]},
    )

    logger.info(
        "request_started",
        extra={**fields, "client_ip": request.client.host if request.client else None},
    )

    started = time.perf_counter()

    try:
        response = await call_next(request)

    except Exception as e:

        metrics_tracker.record_failure()

        logger.error(
            "request_failed",
            extra={
                **fields,
                "latency_seconds": round(time.perf_counter() - started, 3),
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )

        raise

    elapsed = time.perf_counter() - started

    if response.status_code >= 500:
        metrics_tracker.record_failure()
    else:
        metrics_tracker.record_success(elapsed)

    logger.info(
        "request_completed",
        extra={
            **fields,
            "status_code": response.status_code,
            "latency_seconds": round(elapsed, 3),
        },
    )

    response.headers["X-Request-ID"] = request_id

    return response


app.include_router(router)

app.add_exception_handler(RAGError, rag_error_handler)


@app.on_event("startup")
async def startup_event():

    if routes.services is None:
        routes.services = routes.build_services(settings)

    os.makedirs(settings.upload_dir, exist_ok=True)

    logger.info(
        "application_startup",
        extra={
            "version": APP_VERSION,
            "environment": settings.environment,
            "port": settings.port,
        },
    )

    if not (settings.openai_api_key or os.getenv("OPENAI_API_KEY")):

        logger.warning(
            "missing_api_key",
            extra={
                "warning_detail":
                "OPENAI_API_KEY not set. Embedding and LLM calls will fail."
            }
        )


@app.on_event("shutdown")
async def shutdown_event():

    posthog_client.shutdown()

    logger.info("application_shutdown")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):

    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "error": str(exc),
            "error_type": type(exc).__name__
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )

    posthog_client.track_error(
        distinct_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        endpoint=request.url.path,
    )

    message = (
        "An unexpected error occurred"
        if settings.environment == "production"
        else str(exc)
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            message=message,
            request_id=request_id,
        ).model_dump(),
    )


@app.get("/")
async def root():

    return {
        "message": "Document Q&A API",
        "version": APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }


if __name__ == "__main__":

    import uvicorn

    uvicorn.run("docqa.main:app", host="0.0.0.0", port=settings.port)
