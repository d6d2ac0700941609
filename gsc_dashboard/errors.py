from __future__ import annotations

from enum import Enum


class PipelineStage(str, Enum):
    START = "start"
    TOKEN_ACQUIRED = "token_acquired"
    QUERIES_ISSUED = "queries_issued"
    AGGREGATED = "aggregated"
    FAILED = "failed"


class ApiErrorKind(str, Enum):
    AUTH_REJECTED = "auth_rejected"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


class ConfigurationError(RuntimeError):
    """Required settings are missing or invalid."""


class AuthError(RuntimeError):
    """Refresh-token exchange failed. Not recoverable by retrying."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiError(RuntimeError):
    def __init__(
        self,
        message: str,
        kind: ApiErrorKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def auth_rejected(self) -> bool:
        return self.kind is ApiErrorKind.AUTH_REJECTED


class PipelineError(RuntimeError):
    """Snapshot could not be produced; `cause` is the AuthError or ApiError behind it."""

    def __init__(
        self,
        message: str,
        cause: AuthError | ApiError,
        stage: PipelineStage,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.stage = stage
