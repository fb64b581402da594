from .custom_exception import (
    ConfigurationError,
    DocChatException,
    EmbeddingError,
    GenerationError,
    LoadError,
    RetrievalError,
    StorageError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "DocChatException",
    "EmbeddingError",
    "GenerationError",
    "LoadError",
    "RetrievalError",
    "StorageError",
    "ValidationError",
]
