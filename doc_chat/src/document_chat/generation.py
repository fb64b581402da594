from __future__ import annotations

import asyncio
from typing import List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser

from doc_chat.exception import GenerationError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.prompts.prompt_library import (
    LANGUAGE_CONFIG,
    NO_INFORMATION_ANSWER,
    PROMPT_REGISTRY,
    resolve_language,
)
from doc_chat.schemas import Outcome, RetrievedChunk

SUMMARY_MAX_CHARS = 32000


def build_context(chunks: List[RetrievedChunk]) -> str:
    return "\n\n".join(c.content for c in chunks)


class AnswerGenerator:
    """
    Grounded answer from retrieved chunks.
    An empty context never reaches the model.
    """

    def __init__(self, llm: BaseChatModel, timeout: Optional[float] = None):
        self.llm = llm
        self.timeout = timeout
        self.qa_chain = PROMPT_REGISTRY["context_qa"] | llm | StrOutputParser()

    async def generate(self, query: str, chunks: List[RetrievedChunk]) -> str:
        if not chunks:
            log.info("No context chunks | skipping LLM call")
            return NO_INFORMATION_ANSWER

        context = build_context(chunks)
        log.info("Generating answer | chunks=%d | context_chars=%d", len(chunks), len(context))

        try:
            answer = await asyncio.wait_for(
                self.qa_chain.ainvoke({"context": context, "input": query}), self.timeout
            )
        except asyncio.TimeoutError as e:
            log.error("Answer generation timed out | timeout=%s", self.timeout)
            raise GenerationError(f"Answer generation timed out after {self.timeout}s", e) from e
        except Exception as e:
            log.error("Answer generation failed | error=%s", str(e))
            raise GenerationError("Answer generation failed", e) from e

        return answer.strip()


class SummaryGenerator:
    """Language-aware summary of a document's full text. Failures are returned, not raised."""

    def __init__(
        self,
        llm: BaseChatModel,
        max_chars: int = SUMMARY_MAX_CHARS,
        default_language: str = "english",
        timeout: Optional[float] = None,
    ):
        self.llm = llm
        self.timeout = timeout
        self.max_chars = max_chars
        self.default_language = resolve_language(default_language)
        self.summary_chain = PROMPT_REGISTRY["summary"] | llm | StrOutputParser()

    async def summarize(self, text: str, language: Optional[str] = None) -> Outcome[str]:
        lang = resolve_language(language or self.default_language)
        document = (text or "")[: self.max_chars]

        if not document.strip():
            return Outcome.failure(GenerationError("Nothing to summarize"))

        try:
            summary = await asyncio.wait_for(
                self.summary_chain.ainvoke({"document": document, **LANGUAGE_CONFIG[lang]}),
                self.timeout,
            )
        except asyncio.TimeoutError as e:
            log.warning("Summary generation timed out | language=%s | timeout=%s", lang, self.timeout)
            return Outcome.failure(
                GenerationError(f"Summary generation timed out after {self.timeout}s", e)
            )
        except Exception as e:
            log.warning(
                "Summary generation failed | language=%s | chars=%d | error=%s",
                lang,
                len(document),
                str(e),
            )
            return Outcome.failure(GenerationError("Summary generation failed", e))

        summary = summary.strip()
        if not summary:
            log.warning("Empty summary from model | language=%s", lang)
            return Outcome.failure(GenerationError("Empty summary"))

        log.info("Summary generated | language=%s | input_chars=%d", lang, len(document))
        return Outcome.success(summary)
