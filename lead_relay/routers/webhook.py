from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from lead_relay.config import settings
from lead_relay.dependencies import get_relay_workflow
from lead_relay.domain.relay_errors import RelayError, relay_error_http_status
from lead_relay.models.relay import HealthResponse, RelayReceipt
from lead_relay.observability import incr_metric, log_event
from lead_relay.services.relay import RelayWorkflow


router = APIRouter(tags=["webhook"])
_FORM_CONTENT_TYPES = {"application/x-www-form-urlencoded", "multipart/form-data"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _verify_signature_or_raise(raw_body: bytes, signature_header: str | None, secret: str | None) -> None:
    if not secret:
        return
    if not signature_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    computed = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(computed, signature_header):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")


def _reject_json_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant: {name}")


async def _parse_payload(request: Request, raw_body: bytes) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in _FORM_CONTENT_TYPES:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    if not raw_body.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty webhook payload")
    try:
        payload = json.loads(raw_body.decode("utf-8"), parse_constant=_reject_json_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook payload must be an object")
    return payload


@router.get("/", response_model=HealthResponse)
async def root():
    return HealthResponse(message="Lead relay webhook is running", timestamp=_now_iso())


@router.get("/health")
async def health():
    return {"status": "healthy"}


@router.post("/webhook", response_model=RelayReceipt)
async def ingest_webhook(
    request: Request,
    workflow: RelayWorkflow = Depends(get_relay_workflow),
):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("webhook.events.received")
    _verify_signature_or_raise(raw_body, request.headers.get("X-Webhook-Signature"), settings.relay_webhook_secret)

    payload = await _parse_payload(request, raw_body)
    log_event(
        "webhook_received",
        request_id=req_id,
        field_count=len(payload),
        ip_address=payload.get("ipAddress"),
    )

    result = await run_in_threadpool(workflow.handle, payload)

    if isinstance(result, RelayError):
        status_code = relay_error_http_status(result) if settings.relay_surface_error_status else status.HTTP_200_OK
        incr_metric("webhook.events.failed", type=result.type)
        log_event(
            "webhook_relay_failed",
            level=logging.WARNING,
            request_id=req_id,
            error_type=result.type,
            operation=result.operation,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content=result.model_dump())

    incr_metric("webhook.events.processed")
    log_event(
        "webhook_processed",
        request_id=req_id,
        payload=payload,
        result=result.data,
    )
    return result
