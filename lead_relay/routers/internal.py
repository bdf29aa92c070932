import hmac

from fastapi import APIRouter, Header, HTTPException, Request, status

from lead_relay.config import settings
from lead_relay.models.relay import MetricsSnapshotResponse
from lead_relay.observability import incr_metric, log_event, metrics_snapshot


router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/metrics", response_model=MetricsSnapshotResponse)
async def get_metrics(
    request: Request,
    x_internal_secret: str | None = Header(default=None),
):
    request_id = getattr(request.state, "request_id", None)
    configured_secret = settings.internal_api_secret
    if not configured_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="internal api secret is not configured",
        )
    if not x_internal_secret or not hmac.compare_digest(x_internal_secret, configured_secret):
        incr_metric("internal.metrics.auth_failed")
        log_event("internal_metrics_auth_failed", request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid internal secret",
        )
    return MetricsSnapshotResponse(counters=metrics_snapshot())
