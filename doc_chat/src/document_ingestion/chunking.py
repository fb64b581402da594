from __future__ import annotations

from typing import List

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from doc_chat.exception import ValidationError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import ChunkMetadata

# Paragraph, line, sentence, word, character
DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


class DocumentChunker:
    """
    Splits page-level Documents into overlapping windows.

    Each page is split on its own so every chunk keeps the page's metadata;
    `document_id`, `chunk_index` and `start_index` are added on top.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: List[str] | None = None,
    ):
        if chunk_size <= 0:
            raise ValidationError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValidationError("chunk_overlap must be >= 0 and smaller than chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=separators or DEFAULT_SEPARATORS,
            keep_separator="end",
            add_start_index=True,
        )

    def split(self, docs: List[Document], document_id: str) -> List[Document]:
        out_chunks: List[Document] = []

        for doc in docs:
            if not doc.page_content or not doc.page_content.strip():
                continue

            base = dict(doc.metadata or {})
            base["document_id"] = document_id

            for piece in self.splitter.create_documents([doc.page_content], metadatas=[base]):
                metadata = dict(piece.metadata)
                metadata["chunk_index"] = len(out_chunks)
                # Normalizes document_id and stringifies every value
                record = ChunkMetadata.from_mapping(metadata).to_record()
                out_chunks.append(Document(page_content=piece.page_content, metadata=record))

        log.info(
            "Chunking complete | document_id=%s | pages=%d | chunks=%d | size=%d | overlap=%d",
            document_id,
            len(docs),
            len(out_chunks),
            self.chunk_size,
            self.chunk_overlap,
        )
        return out_chunks
