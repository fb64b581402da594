from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_context
from doc_chat.context import PipelineContext
from doc_chat.logger import GLOBAL_LOGGER as log

router = APIRouter()


class ChatRequest(BaseModel):
    document_id: str
    message: str


class ChatResponse(BaseModel):
    answer: str
    state: Optional[str] = None


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, ctx: PipelineContext = Depends(get_context)):
    """
    Main chat endpoint.

    Missing document_id or message is a 400; any failure further down still
    returns 200 with an apologetic answer.
    """
    log.info("Chat request received | document_id=%s", req.document_id)

    result = await ctx.query.ask(req.document_id, req.message)

    return ChatResponse(
        answer=result.answer,
        state=result.state.value if result.state else None,
    )
