from __future__ import annotations

import asyncio
from typing import List, Optional

from langchain_core.embeddings import Embeddings

from doc_chat.exception import EmbeddingError
from doc_chat.logger import GLOBAL_LOGGER as log


class EmbeddingClient:
    """
    Thin async wrapper over a LangChain Embeddings model.

    Every provider failure (including a call running past `timeout` seconds)
    surfaces as EmbeddingError, and every vector is checked against the
    configured dimension before it can reach storage.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        dimension: int,
        batch_size: int = 64,
        timeout: Optional[float] = None,
    ):
        self.embeddings = embeddings
        self.dimension = dimension
        self.batch_size = max(1, batch_size)
        self.timeout = timeout

    def _check(self, vectors: List[List[float]], expected: int) -> List[List[float]]:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"Embedding provider returned {len(vectors)} vectors for {expected} texts"
            )
        for i, vector in enumerate(vectors):
            if len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Vector {i} has dimension {len(vector)}, expected {self.dimension}"
                )
        return [[float(x) for x in v] for v in vectors]

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await asyncio.wait_for(self.embeddings.aembed_query(text), self.timeout)
        except asyncio.TimeoutError as e:
            log.error("Query embedding timed out | timeout=%s", self.timeout)
            raise EmbeddingError(f"Query embedding timed out after {self.timeout}s", e) from e
        except Exception as e:
            log.error("Query embedding failed | error=%s", str(e))
            raise EmbeddingError("Failed to embed query", e) from e
        return self._check([vector], 1)[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                vectors.extend(
                    await asyncio.wait_for(self.embeddings.aembed_documents(batch), self.timeout)
                )
            except asyncio.TimeoutError as e:
                log.error(
                    "Batch embedding timed out | offset=%d | size=%d | timeout=%s",
                    start,
                    len(batch),
                    self.timeout,
                )
                raise EmbeddingError(
                    f"Batch at offset {start} timed out after {self.timeout}s", e
                ) from e
            except Exception as e:
                log.error(
                    "Batch embedding failed | offset=%d | size=%d | error=%s",
                    start,
                    len(batch),
                    str(e),
                )
                raise EmbeddingError(f"Failed to embed batch at offset {start}", e) from e

        log.info("Embedded texts | count=%d | dimension=%d", len(texts), self.dimension)
        return self._check(vectors, len(texts))
