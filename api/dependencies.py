from fastapi import HTTPException, Request

from doc_chat.context import PipelineContext


def get_context(request: Request) -> PipelineContext:
    """PipelineContext built in the app lifespan."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(503, "Service not ready")
    return context
