from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import chat, documents, health, messages
from doc_chat.context import PipelineContext, build_context
from doc_chat.exception import (
    ConfigurationError,
    DocChatException,
    EmbeddingError,
    LoadError,
    StorageError,
    ValidationError,
)
from doc_chat.logger import GLOBAL_LOGGER as log

# Typed pipeline errors -> HTTP status
ERROR_STATUS = {
    ValidationError: 400,
    LoadError: 422,
    EmbeddingError: 502,
    StorageError: 500,
    ConfigurationError: 500,
}


def _status_for(exc: DocChatException) -> int:
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 500


def create_app(context: Optional[PipelineContext] = None) -> FastAPI:
    """
    Build the API. Without an injected context the lifespan loads config and
    providers and owns the database engine.
    """

    # Use lifespan instead of deprecated on_event
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Application startup initiated")
        owned = context is None
        ctx = build_context() if owned else context
        await ctx.database.init_db()
        app.state.context = ctx
        yield
        if owned:
            await ctx.close()
        log.info("Application shutdown")

    app = FastAPI(title="Document Chat RAG Backend", version="1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocChatException)
    async def doc_chat_error(request: Request, exc: DocChatException):
        status = _status_for(exc)
        log.error(
            "Request failed | path=%s | status=%d | error=%s",
            request.url.path,
            status,
            str(exc),
        )
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": exc.error_message},
        )

    # Router Registration
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(documents.router, tags=["documents"])
    app.include_router(chat.router, tags=["chat"])
    app.include_router(messages.router, tags=["messages"])

    @app.get("/")
    async def root():
        return {"message": "Backend is running"}

    return app


# uvicorn api.main:app
app = create_app()
