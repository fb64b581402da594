from typing import Optional

from db.vector_repository import VectorRepository
from doc_chat.exception import DocChatException, RetrievalError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import RetrievalResult, RetrievalState, canonical_document_id
from doc_chat.utils.embedding_client import EmbeddingClient


class DocumentRetriever:
    """
    Per-query retrieval over one document:

    COUNT_CHECK -> VECTOR_SEARCH -> HAVE_RESULTS | FALLBACK_SCAN

    - No chunks stored for the document: NOT_PROCESSED, nothing is embedded.
    - Chunks exist but the filtered search returns none: the first `fallback_k`
      chunks are read straight from the relational key, so a stored document
      always yields context.
    """

    def __init__(
        self,
        vector_store: VectorRepository,
        embedder: EmbeddingClient,
        top_k: int = 5,
        fallback_k: int = 3,
        score_threshold: Optional[float] = None,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.top_k = top_k
        self.fallback_k = fallback_k
        self.score_threshold = score_threshold

    async def retrieve(self, document_id: str, query: str) -> RetrievalResult:
        document_id = canonical_document_id(document_id)

        try:
            chunk_count = await self.vector_store.count_chunks(document_id)
            if chunk_count == 0:
                log.info("No chunks stored | document_id=%s", document_id)
                return RetrievalResult(RetrievalState.NOT_PROCESSED, [], 0)

            query_vector = await self.embedder.embed(query)
            chunks = await self.vector_store.similarity_search(
                query_vector,
                document_id,
                k=self.top_k,
                min_similarity=self.score_threshold,
            )
            if chunks:
                return RetrievalResult(RetrievalState.HAVE_RESULTS, chunks, chunk_count)

            log.warning(
                "Filtered search empty, scanning document | document_id=%s | chunk_count=%d",
                document_id,
                chunk_count,
            )
            chunks = await self.vector_store.fetch_chunks(document_id, limit=self.fallback_k)
            return RetrievalResult(RetrievalState.FALLBACK_SCAN, chunks, chunk_count)

        except DocChatException as e:
            log.error("Retrieval failed | document_id=%s | error=%s", document_id, str(e))
            raise RetrievalError(f"Retrieval failed for document {document_id}", e) from e
