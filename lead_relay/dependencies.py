from fastapi import Depends, Request

from lead_relay.config import settings
from lead_relay.db import get_supabase
from lead_relay.services.audit import AuditStore, SupabaseAuditStore
from lead_relay.services.relay import RelayWorkflow


def get_audit_store() -> AuditStore:
    return SupabaseAuditStore(get_supabase())


def get_relay_workflow(
    request: Request,
    audit_store: AuditStore = Depends(get_audit_store),
) -> RelayWorkflow:
    """Build a workflow per request; credentials are shared and immutable."""
    return RelayWorkflow(
        settings.genfin_credentials(),
        audit_store=audit_store,
        affiliate_number=settings.genfin_affiliate_number,
        ext_link_id=settings.genfin_ext_link_id,
        timeout_seconds=settings.genfin_timeout_seconds,
        max_attempts=settings.genfin_max_attempts,
        audit_failed_submissions=settings.audit_failed_submissions,
        request_id=getattr(request.state, "request_id", None),
    )
