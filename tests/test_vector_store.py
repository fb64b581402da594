from types import SimpleNamespace

import pytest

from conftest import DIM, RecordingEmbeddings
from db.document_repository import DocumentRepository
from db.vector_repository import (
    MATCH_BY_DOCUMENT_SQL,
    VectorRepository,
    _as_dict,
    _vector_literal,
    cosine_similarities,
)
from doc_chat.exception import StorageError
from doc_chat.schemas import ChunkMetadata, ChunkRecord

EMBED = RecordingEmbeddings(size=DIM)


@pytest.fixture
def documents(database):
    return DocumentRepository(database.session_factory)


@pytest.fixture
def store(database):
    return VectorRepository(database.session_factory, database.dialect_name, DIM)


def _records(document_id: str, texts: list[str]) -> list[ChunkRecord]:
    return [
        ChunkRecord(
            content=text,
            metadata=ChunkMetadata(document_id=document_id, source_type="pdf", source="a.pdf"),
            embedding=EMBED.embed_query(text),
            chunk_index=i,
        )
        for i, text in enumerate(texts)
    ]


def test_cosine_similarities_handles_zero_vectors():
    sims = cosine_similarities([1.0, 0.0], [[1.0, 0.0], [0.0, 1.0], [0.0, 0.0], [-2.0, 0.0]])
    assert sims == pytest.approx([1.0, 0.0, 0.0, -1.0])


async def test_search_returns_nearest_first_within_document(documents, store):
    doc_a = await documents.create_document("a.pdf", "text", "user123")
    doc_b = await documents.create_document("b.pdf", "text", "user123")
    texts = ["alpha chunk", "beta chunk", "gamma chunk"]
    await store.upsert_chunks(_records(doc_a, texts))
    await store.upsert_chunks(_records(doc_b, ["alpha chunk"]))

    results = await store.similarity_search(EMBED.embed_query("beta chunk"), doc_a, k=5)

    assert [r.content for r in results][0] == "beta chunk"
    assert len(results) == 3
    assert results[0].similarity == pytest.approx(1.0)
    assert all(r.metadata["document_id"] == doc_a for r in results)
    sims = [r.similarity for r in results]
    assert sims == sorted(sims, reverse=True)


async def test_search_respects_k_and_threshold(documents, store):
    doc = await documents.create_document("a.pdf", "text", "user123")
    await store.upsert_chunks(_records(doc, [f"chunk {i}" for i in range(8)]))
    query = EMBED.embed_query("chunk 3")

    assert len(await store.similarity_search(query, doc, k=5)) == 5

    strict = await store.similarity_search(query, doc, k=5, min_similarity=0.999)
    assert [r.content for r in strict] == ["chunk 3"]


async def test_search_unknown_document_is_empty(store):
    assert await store.similarity_search([0.1] * DIM, "nonexistent-id", k=5) == []


async def test_metadata_round_trip_uses_canonical_id(documents, store):
    doc = await documents.create_document("a.pdf", "text", "user123")
    await store.upsert_chunks(_records(doc.upper(), ["only chunk"]))

    results = await store.similarity_search(EMBED.embed_query("only chunk"), doc.upper(), k=5)

    assert len(results) == 1
    assert results[0].metadata["document_id"] == doc
    assert results[0].metadata["source_type"] == "pdf"
    assert await store.count_chunks(doc) == 1


async def test_invalid_rows_reported_and_nothing_written(documents, store):
    doc = await documents.create_document("a.pdf", "text", "user123")
    records = _records(doc, ["good", "bad dimension", "also good"])
    records[1].embedding = [0.0] * (DIM - 1)
    records.append(
        ChunkRecord(content="", metadata=ChunkMetadata(document_id=doc), embedding=[0.0] * DIM, chunk_index=3)
    )

    with pytest.raises(StorageError) as err:
        await store.upsert_chunks(records)

    assert err.value.failed_rows == [1, 3]
    assert await store.count_chunks(doc) == 0


async def test_batch_is_all_or_nothing_on_database_error(store):
    # Parent document does not exist: the foreign key rejects the whole batch
    records = _records("0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11", ["one", "two"])

    with pytest.raises(StorageError) as err:
        await store.upsert_chunks(records)

    assert err.value.failed_rows == [0, 1]
    assert await store.count_chunks("0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11") == 0


async def test_fetch_chunks_by_relational_key(documents, store):
    doc = await documents.create_document("a.pdf", "text", "user123")
    await store.upsert_chunks(_records(doc, ["c0", "c1", "c2", "c3", "c4"]))

    fetched = await store.fetch_chunks(doc, limit=3)

    assert [c.content for c in fetched] == ["c0", "c1", "c2"]
    assert all(c.similarity is None for c in fetched)


async def test_deleting_document_cascades_to_chunks(documents, store):
    doc = await documents.create_document("a.pdf", "text", "user123")
    await store.upsert_chunks(_records(doc, ["c0", "c1"]))

    assert await documents.delete_document(doc) is True
    assert await store.count_chunks(doc) == 0
    assert await documents.delete_document(doc) is False


async def test_list_documents_newest_first(documents):
    first = await documents.create_document("first.pdf", "text", "user123")
    second = await documents.create_document("second.pdf", "text", "user123")
    await documents.create_document("other.pdf", "text", "someone-else")

    listed = await documents.list_documents("user123")

    assert {d["id"] for d in listed} == {first, second}
    assert listed[0]["created_at"] >= listed[1]["created_at"]
    assert set(listed[0]) == {"id", "name", "created_at"}


class StubSession:
    """Records statements and replays canned result rows."""

    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    async def execute(self, statement, params=None):
        self.executed.append((statement, params))
        return iter(self.rows)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def test_vector_literal_is_pgvector_text():
    assert _vector_literal([1, 0.5, -2.25]) == "[1.0,0.5,-2.25]"
    assert _vector_literal([]) == "[]"


def test_as_dict_accepts_json_text_and_mappings():
    assert _as_dict('{"document_id": "abc", "page": "2"}') == {"document_id": "abc", "page": "2"}
    assert _as_dict({"document_id": "abc"}) == {"document_id": "abc"}
    assert _as_dict(None) == {}


async def test_postgres_search_calls_match_function():
    doc = "0B7E5AD2-3F5C-4A49-9A57-0D6F1A9A0C11"
    session = StubSession(
        [
            SimpleNamespace(
                id="c1",
                content="nearest",
                metadata='{"document_id": "0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11"}',
                similarity="0.93",
            ),
            SimpleNamespace(
                id="c2",
                content="next",
                metadata={"document_id": "0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11"},
                similarity=0.41,
            ),
        ]
    )
    store = VectorRepository(lambda: session, "postgresql", dimension=3)

    results = await store.similarity_search([0.1, 0.2, 0.3], doc, k=4, min_similarity=0.25)

    statement, params = session.executed[0]
    assert statement is MATCH_BY_DOCUMENT_SQL
    assert params == {
        "query_vector": "[0.1,0.2,0.3]",
        "document_id": "0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11",
        "match_limit": 4,
        "match_threshold": 0.25,
    }
    assert [r.id for r in results] == ["c1", "c2"]
    assert results[0].similarity == pytest.approx(0.93)
    assert results[0].metadata == {"document_id": "0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11"}
    assert results[1].metadata["document_id"] == "0b7e5ad2-3f5c-4a49-9a57-0d6f1a9a0c11"


async def test_postgres_search_without_threshold_sends_zero():
    session = StubSession([])
    store = VectorRepository(lambda: session, "postgresql", dimension=2)

    assert await store.similarity_search([1.0, 0.0], "doc-x", k=5) == []
    assert session.executed[0][1]["match_threshold"] == 0.0
