"""
Exception hierarchy for the translation pipeline.

Errors at the translation-unit level (BackendError, SegmentMismatchError) are
recoverable and absorbed by the fallback chain. Errors at the document level
(ExtractionError, CheckpointSaveError) abort the job.
"""

from enum import Enum
from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


# ============================================================================
# Extraction errors
# ============================================================================

class ExtractionFailure(Enum):
    """Why a document could not be turned into content blocks."""
    NO_CONTENT = "noContent"
    CORRUPT_ARCHIVE = "corruptArchive"
    IO_ERROR = "ioError"
    UNSUPPORTED_FORMAT = "unsupportedFormat"


class ExtractionError(TranslationError):
    """Raised when no readable content can be extracted from a source.

    Always fatal to the job.
    """

    def __init__(
        self,
        message: str,
        reason: ExtractionFailure = ExtractionFailure.NO_CONTENT,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        ctx['reason'] = reason.value
        super().__init__(message, ctx, recoverable=False)
        self.reason = reason


# ============================================================================
# Backend errors
# ============================================================================

class BackendErrorKind(Enum):
    """Classification produced once at the backend boundary."""
    AUTH_MISSING = "authMissing"
    RATE_LIMITED = "rateLimited"
    QUOTA_EXHAUSTED = "quotaExhausted"
    MALFORMED_RESPONSE = "malformedResponse"
    NETWORK = "network"


class BackendError(TranslationError):
    """Raised by a translation backend.

    Always recoverable at the block level: the fallback chain moves on to the
    next backend and ends at the offline simulator.

    Attributes:
        kind: Classified cause
        backend: Name of the backend that failed
        retry_after: Server-provided wait in seconds (rate limits only)
    """

    def __init__(
        self,
        message: str,
        kind: BackendErrorKind,
        backend: Optional[str] = None,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        ctx['kind'] = kind.value
        if backend:
            ctx['backend'] = backend
        if status_code is not None:
            ctx['status_code'] = status_code
        if retry_after is not None:
            ctx['retry_after'] = retry_after
        super().__init__(message, ctx, recoverable=True)
        self.kind = kind
        self.backend = backend
        self.retry_after = retry_after
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Whether waiting and retrying the same backend can help."""
        return self.kind in (BackendErrorKind.RATE_LIMITED, BackendErrorKind.NETWORK)


class SegmentMismatchError(TranslationError):
    """Raised when a batched response does not split back into one part per block.

    Internal signal only: triggers per-block translation.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if expected is not None:
            ctx['expected'] = expected
        if actual is not None:
            ctx['actual'] = actual
        super().__init__(message, ctx, recoverable=True)
        self.expected = expected
        self.actual = actual


# ============================================================================
# Checkpoint/Resume errors
# ============================================================================

class CheckpointError(TranslationError):
    """Base exception for checkpoint system errors."""
    pass


class CheckpointLoadError(CheckpointError):
    """Raised when loading checkpoint data fails."""
    pass


class CheckpointSaveError(CheckpointError):
    """Raised when a translated unit cannot be durably written.

    Fatal: a job that cannot record progress must stop.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class ResumeError(CheckpointError):
    """Raised when resuming a job fails.

    Attributes:
        job_id: ID of the job that failed to resume
    """

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, context, recoverable=False)
        self.job_id = job_id


# ============================================================================
# File/Format-specific errors
# ============================================================================

class FileFormatError(TranslationError):
    """Base exception for file format errors."""
    pass


class FileWriteError(FileFormatError):
    """Raised when writing output file fails."""
    pass


class RenderError(FileWriteError):
    """Raised when the headless browser cannot print the PDF."""

    def __init__(
        self,
        message: str,
        browser_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if browser_path:
            ctx['browser_path'] = browser_path
        super().__init__(message, ctx, recoverable=False)
        self.browser_path = browser_path


# ============================================================================
# Configuration errors
# ============================================================================

class ConfigurationError(TranslationError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


# ============================================================================
# Retry exhaustion
# ============================================================================

class RetryExhaustedError(TranslationError):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        original_error: The original error that triggered retries
        attempts: Number of retry attempts made
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
            ctx['original_error_type'] = type(original_error).__name__
        if attempts is not None:
            ctx['attempts'] = attempts
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error
        self.attempts = attempts
