from __future__ import annotations

import os
import re
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from doc_chat.logger import CustomLogger

# Local logger instance
log = CustomLogger().get_logger(__name__)


def safe_stem(name: str) -> str:
    """Clean file name (only alphanum, dash, underscore)."""
    stem = Path(name or "file").stem
    return re.sub(r"[^a-zA-Z0-9_\-]", "_", stem).lower() or "file"


@contextmanager
def temporary_upload(data: bytes, filename: str, suffix: str = ".pdf") -> Iterator[Path]:
    """
    Persist uploaded bytes to a temporary file for loaders that need a path.

    The file is removed when the block exits, whether it returns, returns nothing
    useful, or raises.
    """
    file_name = f"{safe_stem(filename)}_{uuid.uuid4().hex[:8]}_"
    fd, raw_path = tempfile.mkstemp(prefix=file_name, suffix=suffix)
    path = Path(raw_path)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        log.info("Temporary upload written | name=%s | bytes=%d | path=%s", filename, len(data), path)
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
            log.info("Temporary upload removed | path=%s", path)
        except OSError as e:
            log.error("Failed to remove temporary upload | path=%s | error=%s", path, str(e))
