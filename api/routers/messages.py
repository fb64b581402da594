from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_context
from doc_chat.context import PipelineContext

router = APIRouter()


@router.get("/messages/{document_id}")
async def get_messages(document_id: str, ctx: PipelineContext = Depends(get_context)):
    if await ctx.documents.get_document(document_id) is None:
        raise HTTPException(404, "Document not found")

    turns = await ctx.chat_log.list_turns(document_id)

    return [
        {
            "user_message": t.user_message,
            "assistant_message": t.assistant_message,
            "created_at": str(t.created_at),
        }
        for t in turns
    ]
