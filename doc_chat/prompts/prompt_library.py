from langchain_core.prompts import ChatPromptTemplate


# Fixed answers returned without (or instead of) a model call
NO_INFORMATION_ANSWER = "I could not find relevant information in this document to answer that."
NOT_PROCESSED_ANSWER = (
    "This document has not been processed yet. Please upload it again and retry your question."
)
APOLOGY_ANSWER = "Sorry, something went wrong while answering your question. Please try again."


# Prompt for answering strictly from the retrieved chunks
context_qa_prompt = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            (
                "You are a helpful assistant that answers questions about a single document.\n"
                "Use ONLY the provided context. Do not use outside knowledge.\n"
                "If the context does not contain the answer, say that the document does not "
                "provide enough information to answer. Never invent facts.\n"
                "Be concise and professional.\n\n"
                "Context:\n{context}"
            ),
        ),
        ("human", "{input}"),
    ]
)


# Prompt for summarizing a whole document in a chosen language
summary_prompt = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            (
                "You are an expert summarizer.\n"
                "Write a clear, well-structured summary of the document below.\n"
                "Cover the main topics, key facts and conclusions.\n"
                "Write the summary in {output_language}.\n"
                "Return ONLY the summary text."
            ),
        ),
        ("human", "Document:\n{document}"),
    ]
)


# Output languages for summaries; unknown names fall back to english
LANGUAGE_CONFIG = {
    "english": {"output_language": "English"},
    "telugu": {"output_language": "Telugu (తెలుగు)"},
}


def resolve_language(language: str | None) -> str:
    key = (language or "").strip().lower()
    return key if key in LANGUAGE_CONFIG else "english"


# Central dictionary to register prompts
PROMPT_REGISTRY = {
    "context_qa": context_qa_prompt,
    "summary": summary_prompt,
}
