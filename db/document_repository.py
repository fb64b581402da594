from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import Document
from doc_chat.exception import StorageError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import canonical_document_id, new_document_id


class DocumentRepository:
    """
    One full-text row per ingested source, kept apart from chunk storage.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_document(self, name: str, content: str, owner: str) -> str:
        document_id = new_document_id()
        try:
            async with self.session_factory() as db:
                db.add(Document(id=document_id, name=name, content=content, owner=owner))
                await db.commit()
        except SQLAlchemyError as e:
            log.error("Document insert failed | name=%s | error=%s", name, str(e))
            raise StorageError(f"Failed to store document '{name}'", e) from e

        log.info(
            "Document stored | document_id=%s | name=%s | chars=%d",
            document_id,
            name,
            len(content),
        )
        return document_id

    async def get_document(self, document_id: str) -> Optional[Document]:
        try:
            async with self.session_factory() as db:
                return await db.get(Document, canonical_document_id(document_id))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read document {document_id}", e) from e

    async def list_documents(self, owner: str) -> list[dict]:
        try:
            async with self.session_factory() as db:
                out = await db.execute(
                    select(Document.id, Document.name, Document.created_at)
                    .where(Document.owner == owner)
                    .order_by(Document.created_at.desc(), Document.id)
                )
                rows = out.all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list documents for {owner}", e) from e

        log.info("Listed documents | owner=%s | count=%d", owner, len(rows))
        return [{"id": r.id, "name": r.name, "created_at": r.created_at} for r in rows]

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document; chunks and chat turns go with it (ON DELETE CASCADE)."""
        document_id = canonical_document_id(document_id)
        try:
            async with self.session_factory() as db:
                out = await db.execute(delete(Document).where(Document.id == document_id))
                await db.commit()
        except SQLAlchemyError as e:
            log.error("Document delete failed | document_id=%s | error=%s", document_id, str(e))
            raise StorageError(f"Failed to delete document {document_id}", e) from e

        deleted = out.rowcount > 0
        log.info("Document delete | document_id=%s | deleted=%s", document_id, deleted)
        return deleted
