# docqa/workflow/document_qa.py

"""
Question answering over the indexed documents.

Two protocols share one retrieval + generation shape:

• ask_question      → retrieve with the raw question, answer once
• ask_with_history  → condense the question with the prior turns,
                      retrieve, answer with the turns replayed

Each protocol owns a chain with an explicit lifecycle: uninitialized until
first use, then ready. A chain is rebuilt whenever the parameters it was
built with (top_k, model, temperature, max_tokens) no longer match the
request, or when the request overrides temperature / max_tokens.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel

from docqa.config import ConfigManager
from docqa.errors import LLMError, RetrievalError
from docqa.llm.client import LLMClient
from docqa.memory.chunk import Chunk
from docqa.memory.store import VectorStore
from docqa.models import Message, QAConfig, QAResponse, SourceDocument
from docqa.prompts.prompt_builder import (
    ChatMessage,
    build_conversational_messages,
    build_qa_messages,
    to_chat_history,
)
from docqa.workflow.chains import HistoryAwareRetriever, RetrievalChain, StuffDocumentsChain

logger = logging.getLogger(__name__)

QA_CHAIN = "qa"
CONVERSATIONAL_CHAIN = "conversational"

# Heuristic confidence when chunks carry no similarity score:
# min(n / SOURCES_FOR_FULL_CONFIDENCE, 1.0) * UNSCORED_CONFIDENCE_CAP
SOURCES_FOR_FULL_CONFIDENCE = 4
UNSCORED_CONFIDENCE_CAP = 0.8

DEFAULT_RELEVANCE_SCORE = 1.0

ConfigOverrides = Union[Dict[str, Any], BaseModel, None]


@dataclass(frozen=True)
class ChainSettings:
    top_k: int
    llm_model: str
    temperature: float
    max_tokens: int


# ============================================================
# SCORING AND SOURCES
# ============================================================

def calculate_confidence(chunks: Sequence[Chunk]) -> float:
    """
    Mean similarity score when the chunks carry one, clamped to [0, 1].

    Without scores: more sources → more confidence, capped at 0.8. This is
    a count heuristic, not a calibrated probability.
    """

    if not chunks:
        return 0.0

    scores = [
        c.metadata["score"]
        for c in chunks
        if c.metadata.get("score") is not None
    ]

    if scores:
        return min(1.0, max(0.0, sum(scores) / len(scores)))

    base = min(len(chunks) / SOURCES_FOR_FULL_CONFIDENCE, 1.0)

    return base * UNSCORED_CONFIDENCE_CAP


def format_source_documents(chunks: Sequence[Chunk]) -> List[SourceDocument]:
    """Missing scores default to 1.0, not 0."""

    sources = []

    for i, chunk in enumerate(chunks):

        metadata = chunk.metadata or {}

        chunk_index = metadata.get("chunk_index")
        score = metadata.get("score")

        sources.append(
            SourceDocument(
                document_id=metadata.get("document_id") or f"unknown_{i}",
                filename=metadata.get("filename") or "Unknown",
                content=chunk.content or "",
                chunk_index=chunk_index if chunk_index is not None else i,
                relevance_score=score if score is not None else DEFAULT_RELEVANCE_SCORE,
            )
        )

    return sources


# ============================================================
# ENGINE
# ============================================================

class QAEngine:

    def __init__(
        self,
        vector_store: VectorStore,
        config_manager: ConfigManager,
        llm_factory: Callable[..., Any] = LLMClient,
        api_key: Optional[str] = None,
    ):

        self._vector_store = vector_store
        self._config_manager = config_manager
        self._llm_factory = llm_factory
        self._api_key = api_key

        self._chains: Dict[str, RetrievalChain] = {}
        self._chain_settings: Dict[str, ChainSettings] = {}
        self._lock = threading.Lock()

        self._chat_history: List[ChatMessage] = []

    # ============================================================
    # CONFIGURATION
    # ============================================================

    def _resolve_config(self, overrides: ConfigOverrides):

        if isinstance(overrides, BaseModel):
            overrides = overrides.model_dump(exclude_none=True)

        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

        rag_config = self._config_manager.get()

        qa_config = QAConfig(
            top_k=overrides.get("top_k", rag_config.top_k),
            temperature=overrides.get("temperature", rag_config.llm_temperature),
            max_tokens=overrides.get("max_tokens", rag_config.llm_max_tokens),
        )

        settings = ChainSettings(
            top_k=qa_config.top_k,
            llm_model=rag_config.llm_model,
            temperature=qa_config.temperature,
            max_tokens=qa_config.max_tokens,
        )

        force_new_llm = "temperature" in overrides or "max_tokens" in overrides

        return qa_config, settings, force_new_llm

    def _create_llm(self, settings: ChainSettings):

        return self._llm_factory(
            model=settings.llm_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            api_key=self._api_key,
        )

    # ============================================================
    # CHAIN LIFECYCLE
    # ============================================================

    def _initialize_qa_chain(self, settings: ChainSettings) -> RetrievalChain:

        try:

            self._vector_store.initialize_store()

            llm = self._create_llm(settings)

            return RetrievalChain(
                retriever=self._vector_store.as_retriever(k=settings.top_k),
                combine_docs_chain=StuffDocumentsChain(llm, build_qa_messages),
            )

        except Exception as e:
            raise LLMError(f"Failed to initialize QA chain: {e}")

    def _initialize_conversational_chain(self, settings: ChainSettings) -> RetrievalChain:

        try:

            self._vector_store.initialize_store()

            llm = self._create_llm(settings)

            retriever = HistoryAwareRetriever(
                llm,
                self._vector_store.as_retriever(k=settings.top_k),
            )

            return RetrievalChain(
                retriever=retriever,
                combine_docs_chain=StuffDocumentsChain(llm, build_conversational_messages),
            )

        except Exception as e:
            raise LLMError(f"Failed to initialize conversational chain: {e}")

    def _get_chain(self, name: str, settings: ChainSettings, rebuild: bool) -> RetrievalChain:

        with self._lock:

            chain = self._chains.get(name)

            if chain is None or rebuild or self._chain_settings.get(name) != settings:

                if name == QA_CHAIN:
                    chain = self._initialize_qa_chain(settings)
                else:
                    chain = self._initialize_conversational_chain(settings)

                self._chains[name] = chain
                self._chain_settings[name] = settings

                logger.info(
                    "Chain initialized",
                    extra={
                        "chain": name,
                        "top_k": settings.top_k,
                        "model": settings.llm_model,
                        "temperature": settings.temperature,
                        "max_tokens": settings.max_tokens,
                    },
                )

            return chain

    def is_ready(self, name: str = QA_CHAIN) -> bool:
        return name in self._chains

    # ============================================================
    # PUBLIC API
    # ============================================================

    def _build_response(self, result: Dict[str, Any], start_time: float) -> QAResponse:

        context: List[Chunk] = result.get("context") or []

        return QAResponse(
            answer=result.get("answer") or "",
            sources=format_source_documents(context),
            confidence=calculate_confidence(context),
            processing_time=int((time.perf_counter() - start_time) * 1000),
        )

    def ask_question(self, question: str, config: ConfigOverrides = None) -> QAResponse:

        start_time = time.perf_counter()

        try:

            if not question or not question.strip():
                raise RetrievalError("Question cannot be empty")

            _, settings, force_new_llm = self._resolve_config(config)

            chain = self._get_chain(QA_CHAIN, settings, force_new_llm)

            result = chain.invoke({"input": question})

            response = self._build_response(result, start_time)

            logger.info(
                "Question answered",
                extra={
                    "sources": len(response.sources),
                    "confidence": response.confidence,
                    "processing_time_ms": response.processing_time,
                },
            )

            return response

        except (RetrievalError, LLMError):
            raise

        except Exception as e:
            raise LLMError(f"Failed to process question: {e}")

    def ask_with_history(
        self,
        question: str,
        chat_history: Sequence[Union[Message, dict]] = (),
        config: ConfigOverrides = None,
    ) -> QAResponse:

        start_time = time.perf_counter()

        try:

            if not question or not question.strip():
                raise RetrievalError("Question cannot be empty")

            _, settings, force_new_llm = self._resolve_config(config)

            chain = self._get_chain(CONVERSATIONAL_CHAIN, settings, force_new_llm)

            history = to_chat_history(chat_history)

            result = chain.invoke({"input": question, "chat_history": history})

            response = self._build_response(result, start_time)

            logger.info(
                "Question with history answered",
                extra={
                    "history_turns": len(history),
                    "sources": len(response.sources),
                    "confidence": response.confidence,
                    "processing_time_ms": response.processing_time,
                },
            )

            return response

        except (RetrievalError, LLMError):
            raise

        except Exception as e:
            raise LLMError(f"Failed to process question with history: {e}")

    # ============================================================
    # CONVERSATION BUFFER
    # ============================================================

    def add_to_history(self, role: str, content: str) -> None:
        self._chat_history.extend(to_chat_history([{"role": role, "content": content}]))

    def get_history(self) -> List[ChatMessage]:
        return list(self._chat_history)

    def clear_history(self) -> None:
        self._chat_history = []

    calculate_confidence = staticmethod(calculate_confidence)
    format_source_documents = staticmethod(format_source_documents)
