import sys
import traceback
from typing import Optional


class DocChatException(Exception):
    """
    Base error for the document chat pipeline.

    Accepts the `sys` module, an exception instance, or nothing as error details,
    and records where the underlying error was raised so the log line points at
    the real failure instead of the re-raise site.
    """

    def __init__(self, error_message, error_details: Optional[object] = None):
        self.error_message = str(error_message)

        exc_type = exc_value = exc_tb = None
        if error_details is None:
            exc_type, exc_value, exc_tb = sys.exc_info()
        elif hasattr(error_details, "exc_info"):  # e.g. the sys module
            exc_type, exc_value, exc_tb = error_details.exc_info()
        elif isinstance(error_details, BaseException):
            exc_type, exc_value, exc_tb = (
                type(error_details),
                error_details,
                error_details.__traceback__,
            )
        else:
            exc_type, exc_value, exc_tb = sys.exc_info()

        # Walk to the last frame to report the most relevant location
        last_tb = exc_tb
        while last_tb and last_tb.tb_next:
            last_tb = last_tb.tb_next

        self.file_name = last_tb.tb_frame.f_code.co_filename if last_tb else "<unknown>"
        self.lineno = last_tb.tb_lineno if last_tb else -1
        self.cause_message = str(exc_value) if exc_value is not None else None

        if exc_type and exc_tb:
            self.traceback_str = "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
        else:
            self.traceback_str = ""

        super().__init__(self.error_message)

    def __str__(self) -> str:
        if self.cause_message and self.cause_message != self.error_message:
            return f"{self.error_message} | cause={self.cause_message}"
        return self.error_message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.error_message!r}, "
            f"file={self.file_name!r}, line={self.lineno})"
        )


class ConfigurationError(DocChatException):
    """Missing API keys or an unusable config file."""


class ValidationError(DocChatException):
    """Required input is missing or malformed."""


class LoadError(DocChatException):
    """The source could not be read: corrupt PDF, unreachable URL, non-2xx response."""


class EmbeddingError(DocChatException):
    """The embedding provider failed, timed out, rate limited, or returned bad vectors."""


class StorageError(DocChatException):
    """The persistence layer rejected a read or write."""

    def __init__(
        self,
        error_message,
        error_details: Optional[object] = None,
        failed_rows: Optional[list[int]] = None,
    ):
        self.failed_rows = list(failed_rows or [])
        super().__init__(error_message, error_details)


class RetrievalError(DocChatException):
    """Query embedding or similarity search failed."""


class GenerationError(DocChatException):
    """The chat model call failed."""
