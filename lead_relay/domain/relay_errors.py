from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel


RelayErrorType = Literal["transport_error", "upstream_http_error", "unexpected_error", "missing_field"]

_MAX_BODY_CHARS = 2000


class ProviderErrorLike(Protocol):
    @property
    def kind(self) -> str: ...

    @property
    def status_code(self) -> int | None: ...

    @property
    def body(self) -> str | None: ...

    @property
    def retryable(self) -> bool: ...


class MissingFieldError(ValueError):
    """Raised when an inbound payload lacks a required field."""

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}")
        self.field = field


class RelayError(BaseModel):
    """Tagged error value returned in place of a successful relay result."""

    error: Literal[True] = True
    type: RelayErrorType
    operation: str
    message: str
    status: int | None = None
    body: str | None = None
    field: str | None = None
    retryable: bool = False


def relay_error_from_provider(*, operation: str, exc: ProviderErrorLike) -> RelayError:
    body = exc.body
    if body is not None and len(body) > _MAX_BODY_CHARS:
        body = body[:_MAX_BODY_CHARS]
    return RelayError(
        type=exc.kind,
        operation=operation,
        message=str(exc),
        status=exc.status_code,
        body=body,
        retryable=exc.retryable,
    )


def relay_error_from_exception(*, operation: str, exc: Exception) -> RelayError:
    return RelayError(
        type="unexpected_error",
        operation=operation,
        message=f"Unexpected error: {exc}",
    )


def relay_error_from_missing_field(exc: MissingFieldError) -> RelayError:
    return RelayError(
        type="missing_field",
        operation="prepare",
        message=str(exc),
        field=exc.field,
    )


def relay_error_http_status(error: RelayError) -> int:
    if error.type == "missing_field":
        return 422
    return 503 if error.retryable else 502
