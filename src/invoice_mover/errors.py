"""Error taxonomy shared by every component.

Every failure raised by the pipeline is an :class:`InvoiceMoverError` tagged with an
:class:`ErrorKind`, so callers branch on ``error.kind`` instead of parsing messages.
"""
import logging
from enum import Enum
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Category of a pipeline failure"""
    VALIDATION = "validation"                              # bad input, never retried
    NOT_FOUND = "not_found"                                # tracking record missing
    TRANSIENT_INFRASTRUCTURE = "transient_infrastructure"  # store/queue call failed
    INCONSISTENCY = "inconsistency"                        # partial completion


class Inconsistency(str, Enum):
    """Shape of a partially completed move"""
    DUPLICATED_OBJECT = "duplicated_object"  # copied, source delete failed
    STALE_RECORD = "stale_record"            # moved, status update failed


class InvoiceMoverError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT_INFRASTRUCTURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ValidationError(InvoiceMoverError):
    kind = ErrorKind.VALIDATION


class NotFoundError(InvoiceMoverError):
    kind = ErrorKind.NOT_FOUND


class TransientInfrastructureError(InvoiceMoverError):
    kind = ErrorKind.TRANSIENT_INFRASTRUCTURE


class InconsistencyError(InvoiceMoverError):
    """The object copy succeeded but a later step of the move did not.

    Reported separately from ordinary failures: the object is either present in both
    folders or the tracking record no longer reflects where the object lives.
    """
    kind = ErrorKind.INCONSISTENCY

    def __init__(self, message: str, inconsistency: Inconsistency, cause: Optional[Exception] = None):
        super().__init__(message)
        self.inconsistency = inconsistency
        self.cause = cause


NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "ResourceNotFoundException", "NoSuchBucket"}


def error_code(exc: ClientError) -> str:
    """Return the AWS error code of a botocore ``ClientError``."""
    return exc.response.get("Error", {}).get("Code", "")


def translate_aws_error(exc: Exception, action: str) -> InvoiceMoverError:
    """Wrap a botocore failure into the pipeline taxonomy.

    Args:
        exc: The exception raised by a boto3 call
        action: Human readable description of what was being attempted

    Returns:
        The matching ``InvoiceMoverError`` (the caller raises it)
    """
    if isinstance(exc, InvoiceMoverError):
        return exc
    if isinstance(exc, ClientError):
        code = error_code(exc)
        if code in NOT_FOUND_CODES:
            return NotFoundError(f"{action}: {code}")
        return TransientInfrastructureError(f"{action}: {code or 'ClientError'} - {exc}")
    if isinstance(exc, BotoCoreError):
        return TransientInfrastructureError(f"{action}: {exc}")
    return TransientInfrastructureError(f"{action}: {exc}")


def report_inconsistency(error: InconsistencyError) -> None:
    """Log a partial completion distinctly from ordinary failures."""
    logger.error(f"INCONSISTENCY [{error.inconsistency.value}] {error.message}")
