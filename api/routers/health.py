from fastapi import APIRouter, Depends

from api.dependencies import get_context
from doc_chat.context import PipelineContext
from doc_chat.utils.model_loader import ApiKeyManager, required_keys

router = APIRouter()


@router.get("")
async def health(ctx: PipelineContext = Depends(get_context)):
    """Database reachability and which API keys are configured (never their values)."""
    db_ok = await ctx.database.ping()
    return {
        "status": "ok" if db_ok else "degraded",
        "database": db_ok,
        "api_keys": ApiKeyManager.status(required_keys(ctx.config)),
    }
