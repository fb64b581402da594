from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from db.chat_repository import ChatRepository
from db.database import Database
from db.document_repository import DocumentRepository
from db.vector_repository import VectorRepository
from doc_chat.exception import ConfigurationError
from doc_chat.logger import CustomLogger
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.src.document_chat.generation import AnswerGenerator, SummaryGenerator
from doc_chat.src.document_chat.orchestrator import QueryOrchestrator
from doc_chat.src.document_chat.retrieval import DocumentRetriever
from doc_chat.src.document_ingestion.chunking import DocumentChunker
from doc_chat.src.document_ingestion.data_ingestion import DataIngestor
from doc_chat.utils.config_loader import load_config
from doc_chat.utils.document_ops import DocumentLoader
from doc_chat.utils.embedding_client import EmbeddingClient
from doc_chat.utils.model_loader import ModelLoader


@dataclass
class PipelineContext:
    """Every long-lived object of the app, built once at startup and passed down."""

    config: dict
    database: Database
    documents: DocumentRepository
    vector_store: VectorRepository
    chat_log: ChatRepository
    ingestor: DataIngestor
    query: QueryOrchestrator

    @property
    def owner(self) -> str:
        return self.config["app"]["owner"]

    async def close(self) -> None:
        await self.database.dispose()


def assemble_context(
    config: dict,
    database: Database,
    embeddings: Embeddings,
    rag_llm: BaseChatModel,
    summary_llm: Optional[BaseChatModel] = None,
) -> PipelineContext:
    """Wire the pipeline from already constructed models and database."""
    app_cfg = config.get("app", {})
    emb_cfg = config["embedding_model"]
    chunk_cfg = config.get("chunking", {})
    retr_cfg = config.get("retriever", {})
    summary_cfg = config.get("summary", {})
    loader_cfg = config.get("loader", {})

    owner = app_cfg.get("owner")
    if not owner:
        raise ConfigurationError("app.owner is not set in config")
    llm_cfg = config.get("llm", {})

    documents = DocumentRepository(database.session_factory)
    vector_store = VectorRepository(
        database.session_factory,
        dialect_name=database.dialect_name,
        dimension=emb_cfg["dimension"],
    )
    chat_log = ChatRepository(database.session_factory)

    embedder = EmbeddingClient(
        embeddings,
        dimension=emb_cfg["dimension"],
        batch_size=emb_cfg.get("batch_size", 64),
        timeout=emb_cfg.get("timeout"),
    )

    summarizer = None
    if summary_llm is not None:
        summarizer = SummaryGenerator(
            summary_llm,
            max_chars=summary_cfg.get("max_chars", 32000),
            default_language=summary_cfg.get("default_language", "english"),
            timeout=llm_cfg.get("summary", {}).get("timeout"),
        )

    ingestor = DataIngestor(
        loader=DocumentLoader(request_timeout=loader_cfg.get("request_timeout", 30)),
        chunker=DocumentChunker(
            chunk_size=chunk_cfg.get("chunk_size", 1000),
            chunk_overlap=chunk_cfg.get("chunk_overlap", 200),
        ),
        embedder=embedder,
        documents=documents,
        vector_store=vector_store,
        summarizer=summarizer,
        owner=owner,
        summarize_by_default=summary_cfg.get("enabled", True),
    )

    query = QueryOrchestrator(
        retriever=DocumentRetriever(
            vector_store,
            embedder,
            top_k=retr_cfg.get("top_k", 5),
            fallback_k=retr_cfg.get("fallback_k", 3),
            score_threshold=retr_cfg.get("score_threshold"),
        ),
        generator=AnswerGenerator(rag_llm, timeout=llm_cfg.get("rag", {}).get("timeout")),
        chat_log=chat_log,
        owner=owner,
        surface_errors=bool(app_cfg.get("surface_errors", False)),
    )

    return PipelineContext(
        config=config,
        database=database,
        documents=documents,
        vector_store=vector_store,
        chat_log=chat_log,
        ingestor=ingestor,
        query=query,
    )


def build_context(config: Optional[dict] = None) -> PipelineContext:
    """Load config and providers, then wire the pipeline. Call once per process."""
    config = config if config is not None else load_config()

    if level := config.get("logging", {}).get("level"):
        CustomLogger.set_level(level)

    loader = ModelLoader(config)
    db_cfg = config["database"]
    database = Database(db_cfg["url"], echo=db_cfg.get("echo", False))

    context = assemble_context(
        config,
        database,
        embeddings=loader.load_embeddings(),
        rag_llm=loader.load_llm("rag"),
        summary_llm=loader.load_llm("summary") if "summary" in config.get("llm", {}) else None,
    )
    log.info(
        "Pipeline context ready | dialect=%s | owner=%s",
        database.dialect_name,
        context.owner,
    )
    return context
