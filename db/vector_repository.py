import json
from typing import List, Optional

import numpy as np
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import Chunk
from doc_chat.exception import StorageError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import ChunkRecord, RetrievedChunk, canonical_document_id

MATCH_BY_DOCUMENT_SQL = text(
    "SELECT id, content, metadata, similarity "
    "FROM match_by_document(CAST(:query_vector AS vector), :document_id, :match_limit, :match_threshold)"
)


def _as_dict(value) -> dict:
    # jsonb may arrive as text when no codec is registered on the connection
    if isinstance(value, str):
        return json.loads(value)
    return dict(value or {})


def _vector_literal(vector: List[float]) -> str:
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def cosine_similarities(query_vector: List[float], vectors: List[List[float]]) -> List[float]:
    """Cosine similarity of the query against each row; zero-norm rows score 0."""
    if not vectors:
        return []
    a = np.asarray(vectors, dtype=np.float64)
    q = np.asarray(query_vector, dtype=np.float64)
    a_norm = np.linalg.norm(a, axis=1)
    q_norm = np.linalg.norm(q)
    denom = a_norm * q_norm
    dots = a @ q
    sims = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    return sims.tolist()


class VectorRepository:
    """
    Chunk rows with embeddings and metadata, searchable by document.

    On PostgreSQL the ranking runs inside the `match_by_document` SQL function;
    other dialects apply the same metadata filter in SQL and rank with NumPy.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dialect_name: str,
        dimension: int,
    ):
        self.session_factory = session_factory
        self.dialect_name = dialect_name
        self.dimension = dimension

    @staticmethod
    def _document_filter(document_id: str):
        return Chunk.chunk_metadata["document_id"].as_string() == document_id

    def invalid_rows(self, records: List[ChunkRecord]) -> List[int]:
        failed = []
        for i, record in enumerate(records):
            if (
                not record.content
                or not record.metadata.document_id
                or len(record.embedding) != self.dimension
            ):
                failed.append(i)
        return failed

    async def upsert_chunks(self, records: List[ChunkRecord]) -> int:
        """Write all rows in one transaction, or none of them."""
        if not records:
            return 0

        failed = self.invalid_rows(records)
        if failed:
            log.error("Rejected chunk batch | invalid_rows=%s | total=%d", failed, len(records))
            raise StorageError(
                f"{len(failed)} of {len(records)} chunks are invalid", failed_rows=failed
            )

        rows = [
            Chunk(
                id=r.id,
                document_id=r.document_id,
                chunk_index=r.chunk_index,
                content=r.content,
                embedding=r.embedding,
                chunk_metadata=r.metadata.to_record(),
            )
            for r in records
        ]

        try:
            async with self.session_factory() as db:
                db.add_all(rows)
                await db.commit()
        except SQLAlchemyError as e:
            log.error("Chunk batch insert failed | count=%d | error=%s", len(rows), str(e))
            raise StorageError(
                f"Failed to store {len(rows)} chunks",
                e,
                failed_rows=list(range(len(rows))),
            ) from e

        log.info("Chunks persisted | document_id=%s | count=%d", records[0].document_id, len(rows))
        return len(rows)

    async def count_chunks(self, document_id: str) -> int:
        document_id = canonical_document_id(document_id)
        try:
            async with self.session_factory() as db:
                out = await db.execute(
                    select(func.count(Chunk.id)).where(Chunk.document_id == document_id)
                )
                return int(out.scalar_one())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count chunks for {document_id}", e) from e

    async def fetch_chunks(self, document_id: str, limit: int) -> List[RetrievedChunk]:
        """Up to `limit` chunks of a document by relational key, without ranking."""
        document_id = canonical_document_id(document_id)
        try:
            async with self.session_factory() as db:
                out = await db.execute(
                    select(Chunk)
                    .where(Chunk.document_id == document_id)
                    .order_by(Chunk.chunk_index)
                    .limit(limit)
                )
                rows = out.scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch chunks for {document_id}", e) from e

        return [
            RetrievedChunk(id=r.id, content=r.content, metadata=dict(r.chunk_metadata or {}))
            for r in rows
        ]

    async def similarity_search(
        self,
        query_vector: List[float],
        document_id: str,
        k: int = 5,
        min_similarity: Optional[float] = None,
    ) -> List[RetrievedChunk]:
        document_id = canonical_document_id(document_id)
        threshold = float(min_similarity or 0.0)

        try:
            async with self.session_factory() as db:
                if self.dialect_name == "postgresql":
                    results = await self._match_by_document(db, query_vector, document_id, k, threshold)
                else:
                    results = await self._rank_in_process(db, query_vector, document_id, k, threshold)
        except SQLAlchemyError as e:
            log.error("Similarity search failed | document_id=%s | error=%s", document_id, str(e))
            raise StorageError(f"Similarity search failed for {document_id}", e) from e

        log.info(
            "Similarity search | document_id=%s | k=%d | threshold=%.3f | hits=%d",
            document_id,
            k,
            threshold,
            len(results),
        )
        return results

    async def _match_by_document(
        self, db: AsyncSession, query_vector, document_id: str, k: int, threshold: float
    ) -> List[RetrievedChunk]:
        out = await db.execute(
            MATCH_BY_DOCUMENT_SQL,
            {
                "query_vector": _vector_literal(query_vector),
                "document_id": document_id,
                "match_limit": k,
                "match_threshold": threshold,
            },
        )
        return [
            RetrievedChunk(
                id=row.id,
                content=row.content,
                metadata=_as_dict(row.metadata),
                similarity=float(row.similarity),
            )
            for row in out
        ]

    async def _rank_in_process(
        self, db: AsyncSession, query_vector, document_id: str, k: int, threshold: float
    ) -> List[RetrievedChunk]:
        out = await db.execute(
            select(Chunk)
            .where(self._document_filter(document_id))
            .order_by(Chunk.chunk_index)
        )
        rows = out.scalars().all()
        if not rows:
            return []

        sims = cosine_similarities(query_vector, [list(r.embedding) for r in rows])
        # Stable sort keeps chunk order among equal distances
        ranked = sorted(zip(rows, sims), key=lambda pair: 1.0 - pair[1])
        if threshold > 0:
            ranked = [(r, s) for r, s in ranked if s >= threshold]

        return [
            RetrievedChunk(
                id=r.id,
                content=r.content,
                metadata=dict(r.chunk_metadata or {}),
                similarity=float(s),
            )
            for r, s in ranked[:k]
        ]
