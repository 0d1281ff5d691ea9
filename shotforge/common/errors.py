"""Error taxonomy shared by the compiler, the engines and the orchestrator."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kind of failure, as recorded on generation records and results."""

    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    TRANSIENT_BACKEND = "transient_backend"
    POLICY_FILTERED = "policy_filtered"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    BACKEND_REJECTED = "backend_rejected"
    PERSISTENCE = "persistence"
    ILLEGAL_TRANSITION = "illegal_transition"


class ShotforgeError(Exception):
    """Base exception for all shotforge errors."""

    kind: ErrorKind = ErrorKind.BACKEND_REJECTED

    def __init__(
        self,
        message: str,
        recoverable: bool = False,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.detail = detail

    def describe(self) -> str:
        """Human-readable reason, with vendor detail when there is any."""
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidRequestError(ShotforgeError):
    """Raised when a request is rejected before any record is created."""

    kind = ErrorKind.VALIDATION


class UnauthorizedError(ShotforgeError):
    kind = ErrorKind.UNAUTHORIZED


class NotFoundError(ShotforgeError):
    """Raised when a shot, film or generation does not exist."""

    kind = ErrorKind.NOT_FOUND


class UpstreamUnavailableError(ShotforgeError):
    """Raised when a mandatory collaborator cannot be reached."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message, recoverable=True, detail=detail)


class PersistenceError(ShotforgeError):
    """Raised when the generation store or blob store rejects a write."""

    kind = ErrorKind.PERSISTENCE


class IllegalTransitionError(ShotforgeError):
    kind = ErrorKind.ILLEGAL_TRANSITION


class EngineError(ShotforgeError):
    """Base class for normalized generation-backend failures."""

    kind = ErrorKind.BACKEND_REJECTED


class BackendRejectedError(EngineError):
    """The backend refused the request or returned nothing usable."""


class TransientBackendError(EngineError):
    """Rate limiting or server errors that survived every retry."""

    kind = ErrorKind.TRANSIENT_BACKEND

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message, recoverable=True, detail=detail)


class PolicyFilteredError(EngineError):
    """The vendor safety filter rejected the prompt or the output."""

    kind = ErrorKind.POLICY_FILTERED

    def __init__(self, reasons: list[str], detail: str | None = None):
        self.reasons = list(reasons)
        message = "Content filtered by safety policy"
        if self.reasons:
            message = f"{message}: {', '.join(self.reasons)}"
        super().__init__(message, recoverable=False, detail=detail)


class EngineTimeoutError(EngineError):
    """A long-running job did not finish within the poll cap."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = "Generation timed out"):
        super().__init__(message, recoverable=True)


class GenerationCancelledError(EngineError):
    """The dispatch was cancelled or ran past its deadline."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Generation cancelled"):
        super().__init__(message, recoverable=True)
