from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doc_chat.exception import StorageError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import canonical_document_id

from .models import ChatTurn


class ChatRepository:
    """
    Append-only question/answer log per document.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append_turn(
        self,
        document_id: str,
        owner: str,
        user_message: str,
        assistant_message: str,
    ) -> int:
        document_id = canonical_document_id(document_id)
        turn = ChatTurn(
            document_id=document_id,
            owner=owner,
            user_message=user_message,
            assistant_message=assistant_message,
        )
        try:
            async with self.session_factory() as db:
                db.add(turn)
                await db.commit()
                await db.refresh(turn)
        except SQLAlchemyError as e:
            log.error("Chat turn insert failed | document_id=%s | error=%s", document_id, str(e))
            raise StorageError(f"Failed to log chat turn for {document_id}", e) from e

        log.info("Chat turn persisted | document_id=%s | turn_id=%s", document_id, turn.id)
        return turn.id

    async def list_turns(self, document_id: str, limit: int | None = None) -> list[ChatTurn]:
        """
        Turns of one document in chronological order.
        With `limit`, only the most recent turns are returned (still oldest first).
        """
        document_id = canonical_document_id(document_id)
        stmt = (
            select(ChatTurn)
            .where(ChatTurn.document_id == document_id)
            .order_by(ChatTurn.created_at.desc(), ChatTurn.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)

        try:
            async with self.session_factory() as db:
                out = await db.execute(stmt)
                # restore chronological order
                rows = list(reversed(out.scalars().all()))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read chat history for {document_id}", e) from e

        log.info("Loaded chat history | document_id=%s | count=%d", document_id, len(rows))
        return rows
