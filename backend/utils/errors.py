from enum import Enum


class ErrorKind(str, Enum):
    EXTRACTION_FAILURE = "extraction_failure"
    SAFETY_VIOLATION = "safety_violation"
    INVALID_URL = "invalid_url"
    CLONE_TIMEOUT = "clone_timeout"
    REPO_TOO_LARGE = "repo_too_large"
    REPO_NOT_FOUND_OR_PRIVATE = "repo_not_found_or_private"
    CLONE_FAILURE = "clone_failure"
    # Non-fatal: tag scan issues and cleanup log lines, never raised.
    PER_ITEM_IO_ERROR = "per_item_io_error"
    CLEANUP_FAILURE = "cleanup_failure"


class IngestionError(Exception):
    """
    Base class for every fatal ingestion failure.
    Callers branch on `kind`; the message is for diagnostics only.
    """

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExtractionFailure(IngestionError):
    kind = ErrorKind.EXTRACTION_FAILURE


class SafetyViolation(IngestionError):
    kind = ErrorKind.SAFETY_VIOLATION


class InvalidUrl(IngestionError):
    kind = ErrorKind.INVALID_URL


class CloneTimeout(IngestionError):
    kind = ErrorKind.CLONE_TIMEOUT


class RepoTooLarge(IngestionError):
    kind = ErrorKind.REPO_TOO_LARGE


class RepoNotFoundOrPrivate(IngestionError):
    kind = ErrorKind.REPO_NOT_FOUND_OR_PRIVATE


class CloneFailure(IngestionError):
    kind = ErrorKind.CLONE_FAILURE


class ScanRootError(ValueError):
    """Raised when a scan is started on something that is not a directory."""
