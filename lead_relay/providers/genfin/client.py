from __future__ import annotations

import random
import time
from typing import Any

import httpx


GENFIN_DEFAULT_TIMEOUT_SECONDS = 15.0
_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_RETRY_BASE_DELAY_SECONDS = 0.25
_RETRY_MAX_DELAY_SECONDS = 2.0

_EP_AUTHENTICATION = "/authentication"
_EP_LEAD = "/lead"


class GenfinProviderError(Exception):
    """Provider-level exception for Genfin integration failures."""

    kind = "unexpected_error"

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def category(self) -> str:
        if self.kind == "transport_error":
            return "transient"
        if self.status_code in _RETRYABLE_STATUS_CODES:
            return "transient"
        if self.status_code is not None:
            return "terminal"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


class GenfinTransportError(GenfinProviderError):
    """Genfin could not be reached, or the call timed out."""

    kind = "transport_error"


class GenfinHttpError(GenfinProviderError):
    """Genfin answered with a non-2xx status."""

    kind = "upstream_http_error"


def _build_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


def _retry_delay(attempt: int) -> float:
    delay = min(_RETRY_BASE_DELAY_SECONDS * (2 ** (attempt - 1)), _RETRY_MAX_DELAY_SECONDS)
    return delay + random.uniform(0, delay * 0.2)


def _request_with_retry(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    timeout_seconds: float,
    max_attempts: int = 1,
    params: dict[str, Any] | None = None,
    json_payload: dict[str, Any] | None = None,
) -> httpx.Response:
    attempts = max(1, max_attempts)
    response: httpx.Response | None = None
    for attempt in range(1, attempts + 1):
        try:
            with httpx.Client(timeout=timeout_seconds) as client:
                response = client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json_payload,
                )
        except httpx.HTTPError:
            if attempt >= attempts:
                raise
            time.sleep(_retry_delay(attempt))
            continue

        if response.status_code in _RETRYABLE_STATUS_CODES and attempt < attempts:
            time.sleep(_retry_delay(attempt))
            continue
        return response

    assert response is not None
    return response


def _request_json(
    *,
    method: str,
    path: str,
    base_url: str,
    timeout_seconds: float,
    max_attempts: int = 1,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_payload: dict[str, Any] | None = None,
) -> tuple[int, Any]:
    if not base_url:
        raise GenfinProviderError("Missing Genfin base URL")

    request_headers = {"Accept": "application/json", "Content-Type": "application/json"}
    request_headers.update(headers or {})

    url = f"{_build_base_url(base_url)}{path}"
    try:
        response = _request_with_retry(
            method=method,
            url=url,
            headers=request_headers,
            timeout_seconds=timeout_seconds,
            max_attempts=max_attempts,
            params=params,
            json_payload=json_payload,
        )
    except httpx.TimeoutException as exc:
        raise GenfinTransportError(f"Genfin request timed out after {timeout_seconds:g}s: {path}") from exc
    except httpx.HTTPError as exc:
        # exception text omitted: the authentication URL carries credentials
        raise GenfinTransportError(f"Genfin connectivity error: {type(exc).__name__}") from exc

    if response.status_code < 200 or response.status_code >= 300:
        raise GenfinHttpError(
            f"Genfin API returned HTTP {response.status_code} for {path}",
            status_code=response.status_code,
            body=response.text,
        )

    try:
        return response.status_code, response.json()
    except ValueError as exc:
        raise GenfinProviderError(
            f"Genfin returned non-JSON response for {path}",
            status_code=response.status_code,
            body=response.text,
        ) from exc


def authenticate(
    *,
    base_url: str,
    username: str,
    password: str,
    timeout_seconds: float = GENFIN_DEFAULT_TIMEOUT_SECONDS,
    max_attempts: int = 1,
) -> dict[str, Any]:
    if not username or not password:
        raise GenfinProviderError("Missing Genfin credentials")
    _, data = _request_json(
        method="GET",
        path=_EP_AUTHENTICATION,
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        params={"username": username, "password": password},
    )
    if not isinstance(data, dict):
        raise GenfinProviderError("Unexpected Genfin authentication response type")
    missing = [key for key in ("apiGUID", "authenticationGUID") if not data.get(key)]
    if missing:
        raise GenfinProviderError(
            f"Unexpected Genfin authentication response: missing {', '.join(missing)}"
        )
    return data


def submit_lead(
    *,
    base_url: str,
    authentication_guid: str,
    lead: dict[str, Any],
    timeout_seconds: float = GENFIN_DEFAULT_TIMEOUT_SECONDS,
    max_attempts: int = 1,
) -> tuple[int, Any]:
    if not authentication_guid:
        raise GenfinProviderError("Missing Genfin authentication GUID")
    return _request_json(
        method="POST",
        path=_EP_LEAD,
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        headers={"Authorization": f"Bearer {authentication_guid}"},
        json_payload=lead,
    )
