from __future__ import annotations

from typing import List, Optional, Union

from langchain_core.documents import Document

from db.document_repository import DocumentRepository
from db.vector_repository import VectorRepository
from doc_chat.exception import LoadError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import ChunkMetadata, ChunkRecord, IngestResult, Outcome
from doc_chat.src.document_chat.generation import SummaryGenerator
from doc_chat.src.document_ingestion.chunking import DocumentChunker
from doc_chat.utils.document_ops import DocumentLoader
from doc_chat.utils.embedding_client import EmbeddingClient


def join_pages(docs: List[Document]) -> str:
    return "\n\n".join(d.page_content for d in docs if d.page_content and d.page_content.strip())


class DataIngestor:
    """
    Ingest one source (PDF bytes or URL) into the document and chunk stores.

    - load pages (temp file for PDFs is removed inside the loader)
    - store the full text as a Document row; this mints the document_id
    - chunk with document_id injected into every chunk's metadata
    - embed all chunks and write them in one batch
    - optionally summarize the already extracted text (best-effort)

    If anything fails after the Document row exists, the row is deleted again so a
    half-ingested document is never listed or queried.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        chunker: DocumentChunker,
        embedder: EmbeddingClient,
        documents: DocumentRepository,
        vector_store: VectorRepository,
        owner: str,
        summarizer: Optional[SummaryGenerator] = None,
        summarize_by_default: bool = True,
    ):
        self.loader = loader
        self.chunker = chunker
        self.embedder = embedder
        self.documents = documents
        self.vector_store = vector_store
        self.summarizer = summarizer
        self.owner = owner
        self.summarize_by_default = summarize_by_default

    async def ingest(
        self,
        source: Union[bytes, str],
        kind: str,
        name: Optional[str] = None,
        summarize: Optional[bool] = None,
        language: Optional[str] = None,
    ) -> IngestResult:
        # Step 1: load pages
        docs = await self.loader.load(source, kind, name)
        display_name = name or (source if isinstance(source, str) else "document.pdf")

        full_text = join_pages(docs)
        if not full_text.strip():
            log.error("No extractable text | name=%s | kind=%s", display_name, kind)
            raise LoadError(f"No extractable text in '{display_name}'")

        log.info(
            "Starting ingestion | name=%s | kind=%s | pages=%d | chars=%d",
            display_name,
            kind,
            len(docs),
            len(full_text),
        )

        # Step 2: the document row is the only place a document_id is created
        document_id = await self.documents.create_document(display_name, full_text, self.owner)

        try:
            # Step 3: chunk
            chunks = self.chunker.split(docs, document_id)
            if not chunks:
                raise LoadError(f"No chunks produced for '{display_name}'")

            # Step 4: embed
            vectors = await self.embedder.embed_batch([c.page_content for c in chunks])

            # Step 5: persist chunks in one batch
            records = [
                ChunkRecord(
                    content=chunk.page_content,
                    metadata=ChunkMetadata.from_mapping(chunk.metadata),
                    embedding=vector,
                    chunk_index=i,
                )
                for i, (chunk, vector) in enumerate(zip(chunks, vectors))
            ]
            await self.vector_store.upsert_chunks(records)

        except Exception as e:
            log.error(
                "Ingestion failed, removing document | document_id=%s | name=%s | error=%s",
                document_id,
                display_name,
                str(e),
            )
            await self._discard(document_id)
            raise

        # Step 6: optional summary (never fails the ingestion)
        summary_outcome: Outcome[str] = Outcome.skipped()
        wants_summary = self.summarize_by_default if summarize is None else summarize
        if wants_summary and self.summarizer is not None:
            summary_outcome = await self.summarizer.summarize(full_text, language)
            if not summary_outcome.ok:
                log.warning(
                    "Summary unavailable | document_id=%s | error=%s",
                    document_id,
                    str(summary_outcome.error),
                )

        log.info(
            "Ingestion complete | document_id=%s | chunks=%d | summary=%s",
            document_id,
            len(records),
            summary_outcome.value is not None,
        )
        return IngestResult(
            document_id=document_id,
            name=display_name,
            chunk_count=len(records),
            summary_outcome=summary_outcome,
        )

    async def _discard(self, document_id: str) -> None:
        try:
            await self.documents.delete_document(document_id)
        except Exception as cleanup_error:
            log.error(
                "Cleanup of partial document failed | document_id=%s | error=%s",
                document_id,
                str(cleanup_error),
            )

    async def summarize_document(self, document_id: str, language: Optional[str] = None) -> Outcome[str]:
        """Summary of an already stored document, from its saved full text."""
        if self.summarizer is None:
            return Outcome.skipped()

        doc = await self.documents.get_document(document_id)
        if doc is None:
            return Outcome.failure(LoadError(f"Document {document_id} not found"))
        return await self.summarizer.summarize(doc.content, language)
