"""Document loading helpers.

PDFs are never parsed here; the raw bytes are handed to the model as an
inline attachment. Reads run in a worker thread so concurrent analyses do not
block the event loop.
"""

import logging
from pathlib import Path

import anyio.to_thread

from .exceptions import DocumentReadError, DocumentTooLargeError

DEFAULT_MAX_SIZE_MB = 50.0

logger = logging.getLogger(__name__)


def check_document_size(file_path: Path | str, max_size_mb: float = DEFAULT_MAX_SIZE_MB) -> float:
    """Return the document size in MB, refusing files above ``max_size_mb``.

    Raises:
        DocumentTooLargeError: If file exceeds maximum size
        DocumentReadError: If the file cannot be stat'ed
    """
    file_path = Path(file_path)
    try:
        file_size_mb = file_path.stat().st_size / (1024 * 1024)
    except OSError as e:
        raise DocumentReadError(file_path, original_error=e) from e

    logger.debug(f"Document size check: {file_path.name} = {file_size_mb:.1f}MB")

    if file_size_mb > max_size_mb:
        raise DocumentTooLargeError(file_path, file_size_mb, max_size_mb)
    return file_size_mb


def read_pdf_bytes(file_path: Path | str, max_size_mb: float = DEFAULT_MAX_SIZE_MB) -> bytes:
    """Read a document into memory after the size check.

    Raises:
        DocumentTooLargeError: If file exceeds maximum size
        DocumentReadError: If the file is missing, unreadable or empty
    """
    file_path = Path(file_path)
    check_document_size(file_path, max_size_mb)

    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise DocumentReadError(file_path, original_error=e) from e

    if not data:
        raise DocumentReadError(file_path, "Document is empty")
    return data


async def load_document(file_path: Path | str, max_size_mb: float = DEFAULT_MAX_SIZE_MB) -> bytes:
    """Async wrapper around :func:`read_pdf_bytes`."""
    return await anyio.to_thread.run_sync(read_pdf_bytes, file_path, max_size_mb)
