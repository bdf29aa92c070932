from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel


class GenfinCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str
    username: str
    password: SecretStr


class AuthSession(BaseModel):
    """Token pair returned by the upstream authentication endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_guid: str = Field(alias="apiGUID")
    authentication_guid: str = Field(alias="authenticationGUID")


class OutboundLeadRecord(BaseModel):
    """Lead body posted to the upstream `lead` endpoint.

    Field names serialize to the upstream camelCase wire names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ip_address: str
    guid: str
    loan_amount: int | float | str
    trade_history: bool
    turnover_history: bool
    company_trading_name: str
    nature_of_business: str
    loan_purpose: str
    premises: str
    number_employees: str
    website_address: str
    hear_about_us: str
    first_name: str
    last_name: str
    email_address: str
    primary_contact_number: str
    product_selection: str
    source: str
    company_reg_number: str
    affiliate_number: str
    auto_email: bool
    confirm_consent: bool
    ext_link_id: str = Field(alias="extLinkID")
    genfin_representative: str | None = None
    comments: str | None = None
    additional_contact_number: str | None = None
    utm_source: str | None = None
    utm_campaign: str | None = None
    utm_medium: str | None = None
    utm_content: str | None = None
    gc_lid: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UpstreamResponse(BaseModel):
    status_code: int
    data: Any = None


class AuditRecord(BaseModel):
    payload: dict[str, Any]
    response: Any = None
    status_code: int | None = None
    ip_address: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> dict[str, Any]:
        return {
            "payload": self.payload,
            "response": self.response,
            "status_code": self.status_code,
            "ip_address": self.ip_address,
            "created_at": self.created_at.isoformat(),
        }


class RelayReceipt(BaseModel):
    status: Literal["received"] = "received"
    data: Any = None
    payload: dict[str, Any]


class HealthResponse(BaseModel):
    message: str
    status: Literal["ok"] = "ok"
    timestamp: str


class MetricsSnapshotResponse(BaseModel):
    counters: dict[str, int]
