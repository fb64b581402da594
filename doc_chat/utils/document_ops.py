from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlparse

from langchain_community.document_loaders import PyPDFLoader, WebBaseLoader
from langchain_core.documents import Document

from doc_chat.exception import DocChatException, LoadError, ValidationError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.schemas import SOURCE_KINDS, SourceKind
from doc_chat.utils.file_io import temporary_upload
from doc_chat.utils.thread_pool import run_sync

# Loader fields worth keeping from PyPDFLoader output (the temp path in "source" is not)
PDF_METADATA_FIELDS = ("page", "page_label", "total_pages")
WEB_METADATA_FIELDS = ("title", "language")


def clean_text(text: str) -> str:
    """
    Common cleanup for extracted text.
    """
    if not text:
        return ""

    # remove null characters
    text = text.replace("\x00", "")

    # normalize spaces/tabs
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)

    # remove too many newlines (keep paragraphs)
    text = re.sub(r"\n\s*\n+", "\n\n", text)

    return text.strip()


def _pick(metadata: dict, keys: tuple[str, ...]) -> dict[str, str]:
    return {k: str(metadata[k]) for k in keys if metadata.get(k) not in (None, "")}


def validate_url(url: str) -> str:
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError(f"Not a valid http(s) URL: {url!r}")
    return url


class DocumentLoader:
    """
    Turns an uploaded PDF (bytes) or a web URL into page-level LangChain Documents.

    Every returned Document carries `source` (display name or URL) and
    `source_type` ("pdf" | "link") in its metadata.
    """

    def __init__(self, request_timeout: float = 30):
        self.request_timeout = request_timeout

    async def load(
        self,
        source: Union[bytes, str],
        kind: SourceKind,
        name: Optional[str] = None,
    ) -> List[Document]:
        if kind not in SOURCE_KINDS:
            raise ValidationError(f"Unsupported source kind: {kind!r}")
        if kind == "pdf":
            if not isinstance(source, (bytes, bytearray)):
                raise ValidationError("PDF source must be raw bytes")
            return await self.load_pdf(bytes(source), name or "document.pdf")
        if not isinstance(source, str):
            raise ValidationError("Link source must be a URL string")
        return await self.load_url(source)

    @staticmethod
    def _read_pdf(path: Path) -> List[Document]:
        loader = PyPDFLoader(str(path))
        return loader.load()

    async def load_pdf(self, data: bytes, name: str) -> List[Document]:
        if not data:
            raise ValidationError("Uploaded PDF is empty")

        try:
            # PyPDFLoader needs a filesystem path; the temp file lives only inside this block
            with temporary_upload(data, name, suffix=".pdf") as path:
                pages = await run_sync(self._read_pdf, path)
        except DocChatException:
            raise
        except Exception as e:
            log.error("PDF parsing failed | name=%s | error=%s", name, str(e))
            raise LoadError(f"Could not parse PDF '{name}'", e) from e

        docs = []
        for page in pages:
            metadata = _pick(page.metadata or {}, PDF_METADATA_FIELDS)
            metadata.update({"source": name, "source_type": "pdf"})
            docs.append(Document(page_content=clean_text(page.page_content), metadata=metadata))

        log.info("PDF loaded | name=%s | pages=%d", name, len(docs))
        return docs

    @staticmethod
    def _fetch(url: str, timeout: float) -> List[Document]:
        loader = WebBaseLoader(
            web_path=url,
            requests_kwargs={"timeout": timeout},
            raise_for_status=True,
        )
        return loader.load()

    async def load_url(self, url: str) -> List[Document]:
        url = validate_url(url)

        try:
            fetched = await run_sync(self._fetch, url, self.request_timeout)
        except Exception as e:
            log.error("URL fetch failed | url=%s | error=%s", url, str(e))
            raise LoadError(f"Could not load URL '{url}'", e) from e

        docs = []
        for doc in fetched:
            metadata = _pick(doc.metadata or {}, WEB_METADATA_FIELDS)
            metadata.update({"source": url, "source_type": "link"})
            docs.append(Document(page_content=clean_text(doc.page_content), metadata=metadata))

        log.info("URL loaded | url=%s | documents=%d", url, len(docs))
        return docs
