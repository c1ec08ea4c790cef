# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    errors.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# errors.py
'''
Closed set of error kinds raised by the task token core.
Callers branch on `kind` (or the exception class), never on message text.
'''

from enum import Enum
from typing import Any, Optional

# Code the wallet reports while no identity is set up / the user has not logged in yet
NO_IDENTITY_CODE = "ERR_NO_METANET_IDENTITY"


class ErrorKind(Enum):
    VALIDATION = "validation"
    DECODE = "decode"
    DECRYPT = "decrypt"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SIGNING_SERVICE = "signing_service"
    UNLOCK = "unlock"
    VERIFICATION = "verification"
    WORKFLOW = "workflow"


class TodoTokenError(Exception):
    kind: ErrorKind = ErrorKind.WORKFLOW

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TodoTokenError):
    """User input rejected before any wallet call."""
    kind = ErrorKind.VALIDATION


class RecordDecodeError(TodoTokenError):
    kind = ErrorKind.DECODE


class DecryptError(TodoTokenError):
    kind = ErrorKind.DECRYPT


class SigningServiceError(TodoTokenError):
    """
    The wallet answered with an error. `message` is the wallet's own text, unchanged.
    """
    kind = ErrorKind.SIGNING_SERVICE

    def __init__(self, message: str, code: Optional[str] = None, call: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.call = call


class ServiceUnavailableError(SigningServiceError):
    """Wallet not running, not reachable, or no identity configured yet."""
    kind = ErrorKind.SERVICE_UNAVAILABLE


class UnlockError(TodoTokenError):
    kind = ErrorKind.UNLOCK


class VerificationError(TodoTokenError):
    kind = ErrorKind.VERIFICATION


class WorkflowError(TodoTokenError):
    """
    A create/redeem run failed. The message of the underlying error is kept verbatim
    and the underlying error is available as `cause` (and __cause__).
    """
    kind = ErrorKind.WORKFLOW

    def __init__(self, message: str, cause: Optional[BaseException] = None, result: Optional[Any] = None):
        super().__init__(message)
        self.cause = cause
        # WorkflowResult of the failed run (state FAILED), when available
        self.result = result

    @property
    def cause_kind(self) -> ErrorKind:
        if isinstance(self.cause, TodoTokenError):
            return self.cause.kind
        return ErrorKind.WORKFLOW


def is_service_unavailable(error: BaseException) -> bool:
    """True for the expected 'wallet not launched / not authorized yet' state."""
    if isinstance(error, ServiceUnavailableError):
        return True
    return isinstance(error, SigningServiceError) and error.code == NO_IDENTITY_CODE
