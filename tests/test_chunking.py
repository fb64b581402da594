import uuid

import pytest
from langchain_core.documents import Document

from doc_chat.exception import ValidationError
from doc_chat.src.document_ingestion.chunking import DocumentChunker


def _long_text(words: int) -> str:
    paragraphs = []
    for p in range(0, words, 40):
        sentence = " ".join(f"word{i}" for i in range(p, min(p + 40, words)))
        paragraphs.append(sentence + ".")
    return "\n\n".join(paragraphs)


@pytest.fixture
def document_id():
    return str(uuid.uuid4())


def test_chunking_is_deterministic(document_id):
    docs = [Document(page_content=_long_text(600), metadata={"source": "a.pdf", "page": "0"})]
    chunker = DocumentChunker(chunk_size=1000, chunk_overlap=200)

    first = chunker.split(docs, document_id)
    second = chunker.split(docs, document_id)

    assert [c.page_content for c in first] == [c.page_content for c in second]
    assert [c.metadata for c in first] == [c.metadata for c in second]


def test_chunks_respect_size_and_carry_metadata(document_id):
    docs = [
        Document(page_content=_long_text(500), metadata={"source": "a.pdf", "source_type": "pdf", "page": 0}),
        Document(page_content=_long_text(300), metadata={"source": "a.pdf", "source_type": "pdf", "page": 1}),
    ]
    chunks = DocumentChunker(chunk_size=1000, chunk_overlap=200).split(docs, document_id)

    assert len(chunks) > 2
    assert all(len(c.page_content) <= 1000 for c in chunks)
    assert [c.metadata["chunk_index"] for c in chunks] == [str(i) for i in range(len(chunks))]
    for c in chunks:
        assert c.metadata["document_id"] == document_id
        assert c.metadata["source"] == "a.pdf"
        assert c.metadata["source_type"] == "pdf"
        assert all(isinstance(v, str) for v in c.metadata.values())
    assert {c.metadata["page"] for c in chunks} == {"0", "1"}


def test_chunks_cover_every_character_in_order(document_id):
    text = _long_text(700)
    chunks = DocumentChunker(chunk_size=500, chunk_overlap=100).split(
        [Document(page_content=text, metadata={})], document_id
    )

    covered = [False] * len(text)
    previous_start = -1
    for c in chunks:
        start = int(c.metadata["start_index"])
        assert start > previous_start
        assert text[start : start + len(c.page_content)] == c.page_content
        for i in range(start, start + len(c.page_content)):
            covered[i] = True
        previous_start = start

    assert all(covered[i] for i, ch in enumerate(text) if not ch.isspace())


def test_consecutive_chunks_overlap(document_id):
    text = " ".join(f"token{i}" for i in range(400))
    chunks = DocumentChunker(chunk_size=300, chunk_overlap=100).split(
        [Document(page_content=text, metadata={})], document_id
    )

    for prev, nxt in zip(chunks, chunks[1:]):
        prev_end = int(prev.metadata["start_index"]) + len(prev.page_content)
        assert int(nxt.metadata["start_index"]) < prev_end


def test_blank_pages_produce_no_chunks(document_id):
    docs = [
        Document(page_content="   \n\n ", metadata={"page": 0}),
        Document(page_content="Short page.", metadata={"page": 1}),
    ]
    chunks = DocumentChunker().split(docs, document_id)

    assert len(chunks) == 1
    assert chunks[0].metadata["page"] == "1"


def test_document_id_is_canonicalized():
    raw = uuid.uuid4()
    chunks = DocumentChunker().split(
        [Document(page_content="Some text.", metadata={})], str(raw).upper()
    )
    assert chunks[0].metadata["document_id"] == str(raw)


@pytest.mark.parametrize("size,overlap", [(100, 100), (100, 150), (0, 0)])
def test_invalid_parameters_rejected(size, overlap):
    with pytest.raises(ValidationError):
        DocumentChunker(chunk_size=size, chunk_overlap=overlap)
