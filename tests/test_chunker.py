# tests/test_chunker.py
import pytest

from docqa.config import RAGConfig
from docqa.errors import DocumentProcessingError
from docqa.memory import chunker
from docqa.memory.chunker import estimate_chunk_count, split_text, validate_splitting_config


def _long_text(words=300):
    return " ".join(f"word{i}" for i in range(words))


class TestSplitText:
    """Test splitting document text into chunks."""

    def test_short_document_is_one_trimmed_chunk(self):
        """A document no longer than chunk_size is kept whole."""
        chunks = split_text("  short document body  \n", RAGConfig(), {"document_id": "d1"})

        assert len(chunks) == 1
        assert chunks[0].content == "short document body"
        assert chunks[0].metadata == {
            "document_id": "d1",
            "chunk_index": 0,
            "total_chunks": 1,
        }

    def test_document_exactly_chunk_size_is_one_chunk(self):
        config = RAGConfig(chunk_size=100, chunk_overlap=10)

        chunks = split_text("x" * 100, config)

        assert len(chunks) == 1

    def test_long_document_chunks_respect_size(self):
        config = RAGConfig(chunk_size=100, chunk_overlap=20)

        chunks = split_text(_long_text(), config)

        assert len(chunks) > 1
        assert all(len(c.content) <= 100 for c in chunks)

    def test_chunk_indices_are_contiguous(self):
        config = RAGConfig(chunk_size=100, chunk_overlap=20)

        chunks = split_text(_long_text(), config, {"document_id": "d1"})

        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.metadata["total_chunks"] == len(chunks) for c in chunks)
        assert all(c.document_id == "d1" for c in chunks)

    def test_neighbouring_chunks_overlap(self):
        config = RAGConfig(chunk_size=100, chunk_overlap=30)

        chunks = split_text(_long_text(), config)

        first_tail = chunks[0].content.split()[-1]
        assert first_tail in chunks[1].content

    def test_chunks_rebuild_original_text(self):
        """Dropping each chunk's overlap with what came before gives back the document."""
        config = RAGConfig(chunk_size=100, chunk_overlap=30)
        paragraphs = [
            " ".join(f"p{p}w{i}" for i in range(40))
            for p in range(4)
        ]
        text = "\n\n".join(paragraphs)

        chunks = split_text(text, config)

        words = []
        overlaps = []
        for chunk in chunks:
            piece = chunk.content.split()
            overlap = next(
                (
                    k for k in range(min(len(words), len(piece)), 0, -1)
                    if words[-k:] == piece[:k]
                ),
                0,
            )
            overlaps.append(overlap)
            words.extend(piece[overlap:])

        assert " ".join(words) == " ".join(text.split())
        assert any(overlaps)

    def test_paragraph_boundaries_preferred(self):
        """Paragraphs that fit are not cut mid-way."""
        config = RAGConfig(chunk_size=100, chunk_overlap=0)
        paragraphs = ["alpha " * 12, "beta " * 15, "gamma " * 10]

        chunks = split_text("\n\n".join(p.strip() for p in paragraphs), config)

        assert [c.content for c in chunks] == [p.strip() for p in paragraphs]

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_empty_text_rejected(self, text):
        with pytest.raises(DocumentProcessingError, match="Cannot split empty document"):
            split_text(text, RAGConfig())

    def test_splitter_failure_is_wrapped(self, monkeypatch):

        class BrokenSplitter:
            def split_text(self, text):
                raise RuntimeError("splitter exploded")

        monkeypatch.setattr(chunker, "create_text_splitter", lambda config: BrokenSplitter())

        with pytest.raises(DocumentProcessingError, match="Failed to split text: splitter exploded"):
            split_text(_long_text(), RAGConfig(chunk_size=100, chunk_overlap=20))


class TestSplittingConfig:
    """Test chunking parameter validation."""

    def test_valid_config_passes(self):
        validate_splitting_config(RAGConfig())

    def test_overlap_equal_to_size_rejected(self):
        config = RAGConfig.model_construct(chunk_size=100, chunk_overlap=100)

        with pytest.raises(DocumentProcessingError, match="must be less than chunk size"):
            validate_splitting_config(config)

    def test_negative_overlap_rejected(self):
        config = RAGConfig.model_construct(chunk_size=100, chunk_overlap=-1)

        with pytest.raises(DocumentProcessingError, match="Invalid chunk overlap"):
            validate_splitting_config(config)

    def test_zero_size_rejected(self):
        config = RAGConfig.model_construct(chunk_size=0, chunk_overlap=0)

        with pytest.raises(DocumentProcessingError, match="Invalid chunk size"):
            validate_splitting_config(config)


class TestEstimateChunkCount:

    def test_short_text_is_one_chunk(self):
        assert estimate_chunk_count(500, RAGConfig()) == 1

    def test_long_text_uses_stride(self):
        # stride = 1000 - 200
        assert estimate_chunk_count(2500, RAGConfig()) == 4
