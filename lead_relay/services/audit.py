from __future__ import annotations

from typing import Any, Protocol

from lead_relay.models.relay import AuditRecord, OutboundLeadRecord


WEBHOOK_LOGS_TABLE = "webhook_logs"
LEAD_PAYLOADS_TABLE = "lead_payloads"


class AuditStore(Protocol):
    def append(self, record: AuditRecord) -> str | None: ...

    def append_lead_payload(self, webhook_log_id: str | None, lead: OutboundLeadRecord) -> None: ...


class SupabaseAuditStore:
    """Append-only writer for relay audit rows."""

    def __init__(self, client: Any):
        self._client = client

    def append(self, record: AuditRecord) -> str | None:
        result = self._client.table(WEBHOOK_LOGS_TABLE).insert(record.to_row()).execute()
        if result.data:
            return result.data[0].get("id")
        return None

    def append_lead_payload(self, webhook_log_id: str | None, lead: OutboundLeadRecord) -> None:
        row = lead.model_dump(exclude={"guid"}, exclude_none=True)
        row["webhook_log_id"] = webhook_log_id
        self._client.table(LEAD_PAYLOADS_TABLE).insert(row).execute()
