import asyncio
import copy
from typing import Any, List

import pytest
from langchain_core.documents import Document
from langchain_core.embeddings.fake import DeterministicFakeEmbedding
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from pydantic import Field

from db.database import Database
from doc_chat.context import assemble_context
from doc_chat.utils.config_loader import load_config
from doc_chat.utils.document_ops import DocumentLoader

DIM = 16


class RecordingEmbeddings(DeterministicFakeEmbedding):
    """Deterministic vectors plus a count of provider calls."""

    calls: int = 0

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return super().embed_documents(texts)

    def embed_query(self, text: str) -> List[float]:
        self.calls += 1
        return super().embed_query(text)


class BrokenEmbeddings(RecordingEmbeddings):
    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        raise RuntimeError("rate limited")

    def embed_query(self, text: str) -> List[float]:
        self.calls += 1
        raise RuntimeError("rate limited")


class HangingEmbeddings(RecordingEmbeddings):
    """Never answers; stands in for a stalled provider."""

    async def aembed_query(self, text: str) -> List[float]:
        self.calls += 1
        await asyncio.sleep(30)
        return []

    async def aembed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        await asyncio.sleep(30)
        return []


class RecordingChatModel(FakeListChatModel):
    """Canned answers; keeps every rendered prompt."""

    calls: int = 0
    prompts: List[str] = Field(default_factory=list)

    def _call(self, messages, stop=None, run_manager=None, **kwargs: Any) -> str:
        self.calls += 1
        self.prompts.append("\n".join(str(m.content) for m in messages))
        return super()._call(messages, stop=stop, run_manager=run_manager, **kwargs)


class FailingChatModel(RecordingChatModel):
    def _call(self, messages, stop=None, run_manager=None, **kwargs: Any) -> str:
        self.calls += 1
        raise RuntimeError("provider unavailable")


class HangingChatModel(RecordingChatModel):
    async def _agenerate(self, messages, stop=None, run_manager=None, **kwargs: Any):
        self.calls += 1
        await asyncio.sleep(30)
        raise RuntimeError("unreachable")


def build_pdf(pages: List[str]) -> bytes:
    """Minimal PDF with one line of Helvetica text per page."""
    n = len(pages)
    page_ids = [4 + 2 * i for i in range(n)]
    kids = " ".join(f"{p} 0 R" for p in page_ids)

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, text in enumerate(pages):
        content_id = page_ids[i] + 1
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {content_id} 0 R >>"
            ).encode()
        )
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        stream = f"BT /F1 10 Tf 20 700 Td ({escaped}) Tj ET".encode("latin-1")
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for num, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % num + body + b"\nendobj\n"

    xref = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref,
    )
    return bytes(out)


@pytest.fixture
def test_config(tmp_path):
    config = copy.deepcopy(load_config())
    config["database"]["url"] = f"sqlite+aiosqlite:///{tmp_path / 'doc_chat.db'}"
    config["embedding_model"]["dimension"] = DIM
    config["embedding_model"]["batch_size"] = 4
    return config


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Redirect temporary uploads so tests can check nothing is left behind."""
    import tempfile

    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(path))
    return path


@pytest.fixture
def web_pages(monkeypatch):
    """URL -> page text served instead of a real HTTP fetch."""
    pages: dict[str, str] = {}

    def fake_fetch(url, timeout):
        if url not in pages:
            raise ConnectionError(f"unreachable: {url}")
        return [Document(page_content=pages[url], metadata={"source": url, "title": "Test page"})]

    monkeypatch.setattr(DocumentLoader, "_fetch", staticmethod(fake_fetch))
    return pages


@pytest.fixture
async def database(test_config):
    db = Database(test_config["database"]["url"])
    await db.init_db()
    yield db
    await db.dispose()


@pytest.fixture
def embeddings():
    return RecordingEmbeddings(size=DIM)


@pytest.fixture
def rag_llm():
    return RecordingChatModel(responses=["The title is Quarterly Report."])


@pytest.fixture
def summary_llm():
    return RecordingChatModel(responses=["A short summary of the document."])


@pytest.fixture
def context(test_config, database, embeddings, rag_llm, summary_llm):
    return assemble_context(test_config, database, embeddings, rag_llm, summary_llm)
