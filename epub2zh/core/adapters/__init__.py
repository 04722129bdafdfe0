"""
Error taxonomy and retry policy shared by the pipeline stages.
"""
from .exceptions import (
    TranslationError,
    ExtractionError,
    ExtractionFailure,
    BackendError,
    BackendErrorKind,
    SegmentMismatchError,
    CheckpointError,
    CheckpointLoadError,
    CheckpointSaveError,
    ResumeError,
    FileFormatError,
    FileWriteError,
    RenderError,
    ConfigurationError,
    RetryExhaustedError,
)
from .retry_manager import RetryManager, RetryConfig, RetryStrategy, CircuitBreaker

__all__ = [
    'TranslationError',
    'ExtractionError',
    'ExtractionFailure',
    'BackendError',
    'BackendErrorKind',
    'SegmentMismatchError',
    'CheckpointError',
    'CheckpointLoadError',
    'CheckpointSaveError',
    'ResumeError',
    'FileFormatError',
    'FileWriteError',
    'RenderError',
    'ConfigurationError',
    'RetryExhaustedError',
    'RetryManager',
    'RetryConfig',
    'RetryStrategy',
    'CircuitBreaker',
]
