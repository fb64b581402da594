from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from api.dependencies import get_context
from doc_chat.context import PipelineContext
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import IngestResult

router = APIRouter()


class LinkRequest(BaseModel):
    url: str
    language: Optional[str] = None
    summarize: Optional[bool] = None


class IngestResponse(BaseModel):
    document_id: str
    name: str
    chunk_count: int
    summary: Optional[str] = None


class DocumentInfo(BaseModel):
    id: str
    name: str
    created_at: str


class SummaryResponse(BaseModel):
    document_id: str
    summary: Optional[str] = None


def _to_response(result: IngestResult) -> IngestResponse:
    return IngestResponse(
        document_id=result.document_id,
        name=result.name,
        chunk_count=result.chunk_count,
        summary=result.summary,
    )


@router.post("/documents/pdf", response_model=IngestResponse)
async def upload_pdf(
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    summarize: Optional[bool] = Form(None),
    ctx: PipelineContext = Depends(get_context),
):
    """
    Upload endpoint for PDFs:
      - stores the full text and the embedded chunks
      - returns the new document_id (and a summary when requested)
    """
    data = await file.read()
    name = file.filename or "document.pdf"
    log.info("PDF upload received | name=%s | bytes=%d", name, len(data))

    result = await ctx.ingestor.ingest(
        data, "pdf", name=name, summarize=summarize, language=language
    )
    return _to_response(result)


@router.post("/documents/link", response_model=IngestResponse)
async def upload_link(req: LinkRequest, ctx: PipelineContext = Depends(get_context)):
    log.info("Link upload received | url=%s", req.url)
    result = await ctx.ingestor.ingest(
        req.url, "link", summarize=req.summarize, language=req.language
    )
    return _to_response(result)


@router.get("/documents", response_model=list[DocumentInfo])
async def list_documents(ctx: PipelineContext = Depends(get_context)):
    docs = await ctx.documents.list_documents(ctx.owner)
    return [
        DocumentInfo(id=d["id"], name=d["name"], created_at=str(d["created_at"]))
        for d in docs
    ]


@router.get("/documents/{document_id}/summary", response_model=SummaryResponse)
async def document_summary(
    document_id: str,
    language: Optional[str] = None,
    ctx: PipelineContext = Depends(get_context),
):
    if await ctx.documents.get_document(document_id) is None:
        raise HTTPException(404, "Document not found")

    outcome = await ctx.ingestor.summarize_document(document_id, language)
    return SummaryResponse(document_id=document_id, summary=outcome.value if outcome.ok else None)


@router.delete("/documents/{document_id}")
async def delete_document(document_id: str, ctx: PipelineContext = Depends(get_context)):
    if not await ctx.documents.delete_document(document_id):
        raise HTTPException(404, "Document not found")
    return {"deleted": True}
