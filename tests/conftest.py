# tests/conftest.py
import os
import re
import sys
import zlib

import numpy as np
import pytest
from fastapi.testclient import TestClient

# Add repo root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Console logging only while testing
os.environ.setdefault("LOG_FILE", "")

from docqa.api import routes
from docqa.config import ConfigManager, RAGConfig, Settings
from docqa.main import app
from docqa.memory.chunk import Chunk
from docqa.memory.embedder import normalize
from docqa.memory.store import VectorStore
from docqa.observability.metrics import metrics_tracker
from docqa.prompts.system_prompts import CONTEXTUALIZE_QUESTION_SYSTEM_PROMPT
from docqa.workflow.document_qa import QAEngine


# ============================================================
# FAKE MODELS
# ============================================================

class FakeEmbedder:
    """
    Bag-of-words hashing embedder.

    Texts sharing words get similar vectors, so similarity ranking is
    predictable without calling OpenAI. Words can still share a bucket
    (crc32 % dimension), so ranking tests use query words unique to the
    expected chunk. Every embed() call is recorded.
    """

    def __init__(self, dimension: int = 4096):
        self.dimension = dimension
        self.calls = []

    def _vector(self, text):

        vector = np.zeros(self.dimension, dtype="float32")

        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vector[zlib.crc32(token.encode("utf-8")) % self.dimension] += 1.0

        return vector

    def embed(self, texts):

        self.calls.append(list(texts))

        if not texts:
            return np.empty((0, self.dimension), dtype="float32")

        return normalize(np.vstack([self._vector(t) for t in texts]))

    def embed_query(self, text):
        return self.embed([text])[0]

    @property
    def queries(self):
        """Texts embedded one at a time (search queries)."""
        return [call[0] for call in self.calls if len(call) == 1]


class ScriptedLLM:
    """
    Stand-in for LLMClient.

    Returns `rewrite` for question-contextualization prompts (the last user
    message when no rewrite is scripted) and `answer` for everything else.
    """

    def __init__(self, model, temperature, max_tokens, api_key=None,
                 answer="Scripted answer", rewrite=None, error=None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.answer = answer
        self.rewrite = rewrite
        self.error = error
        self.calls = []

    def chat(self, messages):

        self.calls.append(messages)

        if self.error is not None:
            raise self.error

        if messages and messages[0]["content"] == CONTEXTUALIZE_QUESTION_SYSTEM_PROMPT:
            return self.rewrite if self.rewrite is not None else messages[-1]["content"]

        return self.answer

    def generate(self, prompt):
        return self.chat([{"role": "user", "content": prompt}])


class LLMFactory:
    """Callable used as QAEngine's llm_factory; keeps every client it creates."""

    def __init__(self, answer="Scripted answer", rewrite=None, error=None):
        self.answer = answer
        self.rewrite = rewrite
        self.error = error
        self.created = []

    def __call__(self, **kwargs):

        llm = ScriptedLLM(
            answer=self.answer,
            rewrite=self.rewrite,
            error=self.error,
            **kwargs,
        )

        self.created.append(llm)

        return llm

    @property
    def last(self):
        return self.created[-1]


# ============================================================
# CORE FIXTURES
# ============================================================

@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def llm_factory():
    return LLMFactory()


@pytest.fixture
def config_manager():
    return ConfigManager(RAGConfig())


@pytest.fixture
def vector_store(fake_embedder):
    return VectorStore(fake_embedder)


@pytest.fixture
def qa_engine(vector_store, config_manager, llm_factory):
    return QAEngine(vector_store, config_manager, llm_factory=llm_factory)


@pytest.fixture
def make_chunks():
    """
    Build chunks for one document.

    Usage:
        make_chunks("doc_a", ["first text", "second text"])
    """

    def _make(document_id, texts, filename=None):
        return [
            Chunk(
                content=text,
                metadata={
                    "document_id": document_id,
                    "filename": filename or f"{document_id}.txt",
                    "chunk_index": i,
                    "total_chunks": len(texts),
                },
            )
            for i, text in enumerate(texts)
        ]

    return _make


@pytest.fixture
def write_file(tmp_path):
    """Write bytes or text under tmp_path and return the path as str."""

    def _write(name, content):
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


# ============================================================
# API FIXTURES
# ============================================================

@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        log_file=None,
        openai_api_key="test-key",
        environment="test",
    )


@pytest.fixture
def services(test_settings, fake_embedder, llm_factory):
    return routes.build_services(
        test_settings,
        embedder=fake_embedder,
        llm_factory=llm_factory,
    )


@pytest.fixture
def client(services):
    """
    FastAPI test client wired to fake models.

    Server exceptions become 500 responses instead of being re-raised.
    """
    routes.services = services
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def upload_text(client):
    """Upload a TXT document and return the response JSON."""

    def _upload(text, filename="notes.txt"):
        response = client.post(
            "/api/documents/upload",
            files={"file": (filename, text.encode("utf-8"), "text/plain")},
        )
        assert response.status_code == 201, f"Upload failed: {response.json()}"
        return response.json()

    return _upload


@pytest.fixture(autouse=True)
def reset_app_state():
    """
    Reset application state between tests.

    This ensures tests don't interfere with each other.
    """
    routes.services = None
    metrics_tracker.reset()

    yield

    routes.services = None
    metrics_tracker.reset()
