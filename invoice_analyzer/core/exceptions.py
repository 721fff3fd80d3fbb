"""Exception hierarchy for invoice analysis."""

from pathlib import Path
from typing import Any, Optional


class InvoiceAnalyzerError(Exception):
    """Base exception for all invoice analysis errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(InvoiceAnalyzerError):
    """Raised when global or client configuration is malformed."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        self.source = source

        full_message = f"Configuration error in {source}: {message}" if source else f"Configuration error: {message}"
        details = {"source": source} if source else {}

        super().__init__(full_message, details)


class DocumentReadError(InvoiceAnalyzerError):
    """Raised when the source document cannot be read."""

    def __init__(
        self,
        file_path: Path | str,
        message: str = "Unable to read document",
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.original_error = original_error

        full_message = f"Document read failed for {self.file_path}: {message}"
        if original_error:
            full_message += f" (Original error: {original_error})"

        super().__init__(full_message, {"file_path": str(self.file_path), **(details or {})})


class DocumentTooLargeError(DocumentReadError):
    """Raised when a document exceeds the maximum allowed size."""

    def __init__(
        self,
        file_path: Path | str,
        file_size_mb: float,
        max_size_mb: float
    ) -> None:
        message = f"Document size ({file_size_mb:.1f}MB) exceeds maximum allowed size ({max_size_mb}MB)"
        super().__init__(
            file_path,
            message,
            details={"file_size_mb": file_size_mb, "max_size_mb": max_size_mb}
        )


class ModelInvocationError(InvoiceAnalyzerError):
    """Raised when the Gemini call fails at the network or provider level."""

    def __init__(
        self,
        file_path: Path | str,
        original_error: Exception,
        model_used: Optional[str] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.model_used = model_used
        self.original_error = original_error

        full_message = f"Model invocation failed for {self.file_path}: {original_error}"
        if model_used:
            full_message += f" (Model: {model_used})"

        details = {"file_path": str(self.file_path)}
        if model_used:
            details["model_used"] = model_used

        super().__init__(full_message, details)

    @property
    def is_rate_limited(self) -> bool:
        """Whether the provider rejected the call for quota reasons."""
        text = str(self.original_error)
        return any(marker in text for marker in ("429", "RATE_LIMIT", "RESOURCE_EXHAUSTED", "Resource has been exhausted"))


class ParseError(InvoiceAnalyzerError):
    """Raised when the model answer cannot be interpreted as structured data."""

    def __init__(
        self,
        message: str,
        response_text: str = "",
        original_error: Optional[Exception] = None
    ) -> None:
        self.response_text = response_text
        self.original_error = original_error
        # Filled in by the analyzer once the call context is known
        self.raw_response: Optional[str] = None
        self.token_usage: Optional[dict[str, int]] = None

        super().__init__(message, {"response_preview": response_text[:200]})


__all__ = [
    "InvoiceAnalyzerError",
    "ConfigError",
    "DocumentReadError",
    "DocumentTooLargeError",
    "ModelInvocationError",
    "ParseError",
]
