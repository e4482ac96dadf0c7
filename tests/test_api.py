# tests/test_api.py
import os

import pytest


HANDBOOK = (
    "Employees receive twenty five days of paid leave per year.\n\n"
    "Remote work is allowed two days per week with manager approval."
)


class TestHealthEndpoint:
    """Test the /health endpoint."""

    def test_health_check_no_documents(self, client):
        """Health check should work even with no documents uploaded."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["environment"] == "test"
        assert data["total_documents"] == 0
        assert data["total_chunks"] == 0
        assert data["timestamp"]

    def test_health_check_with_documents(self, client, upload_text):
        """Health check should reflect uploaded documents."""
        upload_text(HANDBOOK)

        data = client.get("/health").json()
        assert data["total_documents"] == 1
        assert data["total_chunks"] == 1


class TestUploadEndpoint:
    """Test POST /api/documents/upload with various inputs."""

    def test_upload_valid_txt(self, upload_text):
        data = upload_text(HANDBOOK, filename="handbook.txt")

        assert data["success"] is True
        assert data["chunk_count"] == 1
        assert data["metadata"]["document_id"] == data["document_id"]
        assert data["metadata"]["filename"] == "handbook.txt"
        assert data["metadata"]["file_type"] == "txt"
        assert data["metadata"]["file_size"] == len(HANDBOOK)

    def test_upload_indexes_chunks(self, upload_text, services):
        data = upload_text(HANDBOOK)

        assert services.vector_store.get_document_chunk_count(data["document_id"]) == 1

    def test_temporary_file_removed(self, upload_text, test_settings):
        upload_text(HANDBOOK)

        assert os.listdir(test_settings.upload_dir) == []

    def test_upload_wrong_file_extension(self, client, test_settings):
        response = client.post(
            "/api/documents/upload",
            files={"file": ("notes.md", b"# heading", "text/markdown")},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Document processing failed"
        assert "Unsupported file type" in data["message"]
        assert data["request_id"]
        assert os.listdir(test_settings.upload_dir) == []

    def test_upload_empty_file(self, client):
        response = client.post(
            "/api/documents/upload",
            files={"file": ("empty.txt", b"", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "File is empty"

    def test_upload_file_too_large(self, client, services):
        services.settings.max_file_size = 1024

        response = client.post(
            "/api/documents/upload",
            files={"file": ("big.txt", b"x" * 4096, "text/plain")},
        )

        assert response.status_code == 400
        assert "exceeds maximum allowed size" in response.json()["message"]

    def test_upload_without_file(self, client):
        response = client.post("/api/documents/upload")

        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"

    def test_failed_upload_not_listed(self, client):
        client.post(
            "/api/documents/upload",
            files={"file": ("empty.txt", b"", "text/plain")},
        )

        assert client.get("/api/documents").json()["count"] == 0

    def test_indexing_failure_not_listed(self, client, services, fake_embedder, monkeypatch):
        """A document whose chunks never reached the index is not registered."""

        def broken_embed(texts):
            raise RuntimeError("Embedding generation failed: service down")

        monkeypatch.setattr(fake_embedder, "embed", broken_embed)

        response = client.post(
            "/api/documents/upload",
            files={"file": ("a.txt", HANDBOOK.encode("utf-8"), "text/plain")},
        )

        assert response.status_code == 503
        assert response.json()["error"] == "Vector store unavailable"
        assert client.get("/api/documents").json()["count"] == 0
        assert services.vector_store.get_store_stats()["total_chunks"] == 0
        assert services.ingestion.get_document_count() == 0


class TestDocumentLifecycle:
    """Test upload → list → status → delete."""

    def test_list_documents(self, client, upload_text):
        first = upload_text(HANDBOOK, filename="a.txt")
        second = upload_text("Parking is free for staff.", filename="b.txt")

        data = client.get("/api/documents").json()

        assert data["success"] is True
        assert data["count"] == 2
        ids = {d["document_id"] for d in data["documents"]}
        assert ids == {first["document_id"], second["document_id"]}

    def test_status(self, client, upload_text):
        document_id = upload_text(HANDBOOK)["document_id"]

        data = client.get(f"/api/documents/{document_id}/status").json()

        assert data == {
            "success": True,
            "document_id": document_id,
            "status": "completed",
            "progress": 100,
            "error": None,
        }

    def test_status_unknown_document(self, client):
        response = client.get("/api/documents/nope/status")

        assert response.status_code == 400
        assert "No ingestion record found" in response.json()["message"]

    def test_delete_document(self, client, upload_text, services):
        document_id = upload_text(HANDBOOK)["document_id"]

        response = client.delete(f"/api/documents/{document_id}")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Document deleted successfully",
            "document_id": document_id,
        }
        assert not services.vector_store.has_document(document_id)
        assert client.get("/api/documents").json()["count"] == 0

        response = client.delete(f"/api/documents/{document_id}")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_delete_unknown_document(self, client):
        assert client.delete("/api/documents/nope").status_code == 404


class TestQAEndpoints:
    """Test POST /api/qa/ask and /api/qa/chat."""

    def test_ask(self, client, upload_text):
        document_id = upload_text(HANDBOOK, filename="handbook.txt")["document_id"]

        response = client.post("/api/qa/ask", json={"question": "How many days of leave?"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["answer"] == "Scripted answer"
        assert data["confidence"] == pytest.approx(0.2)
        assert isinstance(data["processing_time"], int)
        assert data["sources"] == [
            {
                "document_id": document_id,
                "filename": "handbook.txt",
                "content": HANDBOOK,
                "chunk_index": 0,
                "relevance_score": 1.0,
            }
        ]

    def test_ask_with_config_override(self, client, upload_text, llm_factory):
        upload_text(HANDBOOK)

        response = client.post(
            "/api/qa/ask",
            json={"question": "leave?", "config": {"temperature": 0.9, "max_tokens": 64}},
        )

        assert response.status_code == 200
        assert llm_factory.last.temperature == 0.9
        assert llm_factory.last.max_tokens == 64

    def test_ask_empty_question(self, client):
        response = client.post("/api/qa/ask", json={"question": "  "})

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "No relevant information found"
        assert data["message"] == "Question cannot be empty"

    def test_ask_invalid_override(self, client):
        response = client.post("/api/qa/ask", json={"question": "q?", "config": {"top_k": 50}})

        assert response.status_code == 422

    def test_ask_missing_question(self, client):
        assert client.post("/api/qa/ask", json={}).status_code == 422

    def test_chat(self, client, upload_text, llm_factory):
        upload_text(HANDBOOK)

        response = client.post(
            "/api/qa/chat",
            json={
                "question": "And remote work?",
                "history": [
                    {"role": "user", "content": "How many days of leave?"},
                    {"role": "assistant", "content": "Twenty five."},
                ],
            },
        )

        assert response.status_code == 200
        assert response.json()["answer"] == "Scripted answer"
        # one rewrite call and one answer call
        assert len(llm_factory.last.calls) == 2

    def test_chat_invalid_role(self, client):
        response = client.post(
            "/api/qa/chat",
            json={"question": "q?", "history": [{"role": "system", "content": "x"}]},
        )

        assert response.status_code == 422

    def test_llm_failure_is_503(self, client, upload_text, llm_factory):
        upload_text(HANDBOOK)
        llm_factory.error = RuntimeError("upstream down")

        response = client.post("/api/qa/ask", json={"question": "leave?"})

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "Language model API failure"
        assert "upstream down" in data["message"]


class TestConfigEndpoints:
    """Test GET/PUT /api/config."""

    def test_get_config(self, client):
        data = client.get("/api/config").json()

        assert data["success"] is True
        assert data["config"]["chunk_size"] == 1000
        assert data["config"]["top_k"] == 4

    def test_update_config(self, client):
        response = client.put("/api/config", json={"top_k": 6, "chunk_size": 1500})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Configuration updated successfully"
        assert data["config"]["top_k"] == 6
        assert client.get("/api/config").json()["config"]["chunk_size"] == 1500

    def test_invalid_update_rejected_atomically(self, client):
        response = client.put("/api/config", json={"chunk_size": 50, "chunk_overlap": 100})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid configuration"
        assert client.get("/api/config").json()["config"]["chunk_size"] == 1000

    def test_overlap_invariant_rejected(self, client):
        response = client.put("/api/config", json={"chunk_overlap": 1000})

        assert response.status_code == 400
        assert "must be less than chunk size" in response.json()["message"]

    def test_new_chunk_size_used_for_uploads(self, client, upload_text):
        client.put("/api/config", json={"chunk_size": 100, "chunk_overlap": 10})

        data = upload_text(HANDBOOK)

        assert data["chunk_count"] > 1


class TestObservability:

    def test_metrics_count_requests(self, client):
        client.get("/health")
        client.get("/api/documents")

        data = client.get("/metrics").json()

        assert data["total_requests"] >= 2
        assert data["successful_requests"] >= 2
        assert data["failed_requests"] == 0
        assert "p95_latency" in data

    def test_request_id_header(self, client):
        response = client.get("/health")

        assert response.headers["X-Request-ID"]

    def test_root(self, client):
        data = client.get("/").json()

        assert data["docs"] == "/docs"
        assert data["health"] == "/health"
