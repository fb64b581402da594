import traceback

from db.chat_repository import ChatRepository
from doc_chat.exception import ValidationError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.prompts.prompt_library import APOLOGY_ANSWER, NOT_PROCESSED_ANSWER
from doc_chat.schemas import (
    Outcome,
    QueryResult,
    RetrievalState,
    canonical_document_id,
)
from doc_chat.src.document_chat.generation import AnswerGenerator
from doc_chat.src.document_chat.retrieval import DocumentRetriever


class QueryOrchestrator:
    """
    One question against one document:
    validate -> retrieve -> generate -> log the turn.

    Retrieval and generation failures become an apologetic answer (the chat
    never crashes on one bad turn) unless `surface_errors` is set.
    """

    def __init__(
        self,
        retriever: DocumentRetriever,
        generator: AnswerGenerator,
        chat_log: ChatRepository,
        owner: str,
        surface_errors: bool = False,
    ):
        self.retriever = retriever
        self.generator = generator
        self.chat_log = chat_log
        self.owner = owner
        self.surface_errors = surface_errors

    async def ask(self, document_id: str, query: str) -> QueryResult:
        if document_id is None or not str(document_id).strip():
            raise ValidationError("document_id is required")
        if query is None or not query.strip():
            raise ValidationError("query is required")

        document_id = canonical_document_id(document_id)
        query = query.strip()

        try:
            retrieval = await self.retriever.retrieve(document_id, query)

            if retrieval.state == RetrievalState.NOT_PROCESSED:
                return QueryResult(answer=NOT_PROCESSED_ANSWER, state=retrieval.state)

            answer = await self.generator.generate(query, retrieval.chunks)

        except Exception as e:
            log.error(
                "Query failed | document_id=%s | query=%s | error=%s | traceback=%s",
                document_id,
                query,
                str(e),
                traceback.format_exc(),
            )
            if self.surface_errors:
                raise
            return QueryResult(answer=APOLOGY_ANSWER, error=e)

        history = await self._log_turn(document_id, query, answer)

        log.info(
            "Query answered | document_id=%s | state=%s | chunks=%d | logged=%s",
            document_id,
            retrieval.state.value,
            len(retrieval.chunks),
            history.ok,
        )
        return QueryResult(
            answer=answer,
            state=retrieval.state,
            sources=[c.id for c in retrieval.chunks],
            history_outcome=history,
        )

    async def _log_turn(self, document_id: str, query: str, answer: str) -> Outcome[int]:
        try:
            turn_id = await self.chat_log.append_turn(document_id, self.owner, query, answer)
        except Exception as e:
            log.warning(
                "Chat history not saved | document_id=%s | query=%s | error=%s",
                document_id,
                query,
                str(e),
            )
            return Outcome.failure(e)
        return Outcome.success(turn_id)
