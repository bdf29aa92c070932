"""
Authenticate-then-forward relay for inbound lead webhooks.

One inbound event produces at most one upstream authentication call and one
lead submission. Upstream failures come back as `RelayError` values rather than
exceptions; the route decides how to render them.
"""

from __future__ import annotations

import logging
from typing import Any

from lead_relay.domain.normalization import as_text, coerce_loan_amount, coerce_truthy, optional_text
from lead_relay.domain.relay_errors import (
    MissingFieldError,
    RelayError,
    relay_error_from_exception,
    relay_error_from_missing_field,
    relay_error_from_provider,
)
from lead_relay.models.relay import (
    AuditRecord,
    AuthSession,
    GenfinCredentials,
    OutboundLeadRecord,
    RelayReceipt,
    UpstreamResponse,
)
from lead_relay.observability import incr_metric, log_event
from lead_relay.providers.genfin import client as genfin_client
from lead_relay.services.audit import AuditStore


REQUIRED_FIELDS: tuple[str, ...] = (
    "ipAddress",
    "loanAmount",
    "tradeHistory",
    "turnoverHistory",
    "companyTradingName",
    "natureOfBusiness",
    "loanPurpose",
    "premises",
    "numberEmployees",
    "websiteAddress",
    "hearAboutUs",
    "firstName",
    "lastName",
    "emailAddress",
    "primaryContactNumber",
    "productSelection",
    "source",
    "companyRegNumber",
    "autoEmail",
    "confirmConsent",
)

BOOLEAN_FIELDS: tuple[str, ...] = ("tradeHistory", "turnoverHistory", "autoEmail", "confirmConsent")

TEXT_FIELDS: dict[str, str] = {
    "ipAddress": "ip_address",
    "companyTradingName": "company_trading_name",
    "natureOfBusiness": "nature_of_business",
    "loanPurpose": "loan_purpose",
    "premises": "premises",
    "numberEmployees": "number_employees",
    "websiteAddress": "website_address",
    "hearAboutUs": "hear_about_us",
    "firstName": "first_name",
    "lastName": "last_name",
    "emailAddress": "email_address",
    "primaryContactNumber": "primary_contact_number",
    "productSelection": "product_selection",
    "source": "source",
    "companyRegNumber": "company_reg_number",
}

OPTIONAL_FIELDS: dict[str, str] = {
    "genfinRepresentative": "genfin_representative",
    "comments": "comments",
    "additionalContactNumber": "additional_contact_number",
    "utmSource": "utm_source",
    "utmCampaign": "utm_campaign",
    "utmMedium": "utm_medium",
    "utmContent": "utm_content",
    "gcLid": "gc_lid",
}


def require_fields(payload: dict[str, Any]) -> None:
    # absent boolean fields coerce to False rather than failing
    for field in REQUIRED_FIELDS:
        if field in BOOLEAN_FIELDS:
            continue
        if field not in payload or payload[field] is None:
            raise MissingFieldError(field)


class RelayWorkflow:
    def __init__(
        self,
        credentials: GenfinCredentials,
        *,
        audit_store: AuditStore,
        affiliate_number: str,
        ext_link_id: str,
        timeout_seconds: float = genfin_client.GENFIN_DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = 1,
        audit_failed_submissions: bool = False,
        request_id: str | None = None,
    ):
        self._credentials = credentials
        self._audit_store = audit_store
        self._affiliate_number = affiliate_number
        self._ext_link_id = ext_link_id
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max_attempts
        self._audit_failed_submissions = audit_failed_submissions
        self._request_id = request_id

    def authenticate(self) -> AuthSession | RelayError:
        try:
            data = genfin_client.authenticate(
                base_url=self._credentials.base_url,
                username=self._credentials.username,
                password=self._credentials.password.get_secret_value(),
                timeout_seconds=self._timeout_seconds,
                max_attempts=self._max_attempts,
            )
            session = AuthSession.model_validate(data)
        except genfin_client.GenfinProviderError as exc:
            error = relay_error_from_provider(operation="authenticate", exc=exc)
        except Exception as exc:
            error = relay_error_from_exception(operation="authenticate", exc=exc)
        else:
            log_event(
                "genfin_authentication_succeeded",
                request_id=self._request_id,
                response=data,
            )
            return session

        incr_metric("relay.authentication.failed", type=error.type)
        self._log_failure("genfin_authentication_failed", error)
        return error

    def prepare(self, payload: dict[str, Any], api_guid: str) -> OutboundLeadRecord:
        """Build the outbound lead from an inbound payload.

        Raises MissingFieldError naming the first absent required field.
        """
        require_fields(payload)

        values: dict[str, Any] = {
            attr: as_text(payload[field]) for field, attr in TEXT_FIELDS.items()
        }
        values.update(
            {
                attr: optional_text(payload.get(field))
                for field, attr in OPTIONAL_FIELDS.items()
            }
        )
        return OutboundLeadRecord(
            guid=api_guid,
            loan_amount=coerce_loan_amount(payload["loanAmount"]),
            trade_history=coerce_truthy(payload.get("tradeHistory")),
            turnover_history=coerce_truthy(payload.get("turnoverHistory")),
            auto_email=coerce_truthy(payload.get("autoEmail")),
            confirm_consent=coerce_truthy(payload.get("confirmConsent")),
            affiliate_number=self._affiliate_number,
            ext_link_id=self._ext_link_id,
            **values,
        )

    def submit(self, record: OutboundLeadRecord, authentication_guid: str) -> UpstreamResponse | RelayError:
        wire = record.to_wire()
        try:
            status_code, data = genfin_client.submit_lead(
                base_url=self._credentials.base_url,
                authentication_guid=authentication_guid,
                lead=wire,
                timeout_seconds=self._timeout_seconds,
                max_attempts=self._max_attempts,
            )
        except genfin_client.GenfinProviderError as exc:
            error = relay_error_from_provider(operation="submit", exc=exc)
        except Exception as exc:
            error = relay_error_from_exception(operation="submit", exc=exc)
        else:
            response = UpstreamResponse(status_code=status_code, data=data)
            incr_metric("relay.submission.succeeded")
            log_event(
                "genfin_lead_submitted",
                request_id=self._request_id,
                status_code=status_code,
                response=data,
            )
            self._write_audit(
                AuditRecord(
                    payload=wire,
                    response=data,
                    status_code=status_code,
                    ip_address=record.ip_address,
                ),
                lead=record,
            )
            return response

        incr_metric("relay.submission.failed", type=error.type)
        self._log_failure("genfin_lead_submission_failed", error)
        if self._audit_failed_submissions:
            self._write_audit(
                AuditRecord(
                    payload=wire,
                    response=error.model_dump(),
                    status_code=error.status,
                    ip_address=record.ip_address,
                ),
                lead=None,
            )
        return error

    def handle(self, payload: dict[str, Any]) -> RelayReceipt | RelayError:
        incr_metric("relay.requests.received")
        auth = self.authenticate()
        if isinstance(auth, RelayError):
            return auth

        try:
            record = self.prepare(payload, auth.api_guid)
        except MissingFieldError as exc:
            incr_metric("relay.payload.missing_field", field=exc.field)
            error = relay_error_from_missing_field(exc)
            self._log_failure("relay_payload_rejected", error, level=logging.WARNING)
            return error

        response = self.submit(record, auth.authentication_guid)
        if isinstance(response, RelayError):
            return response

        return RelayReceipt(data=response.data, payload=payload)

    def _write_audit(self, record: AuditRecord, *, lead: OutboundLeadRecord | None) -> None:
        try:
            webhook_log_id = self._audit_store.append(record)
            if lead is not None:
                self._audit_store.append_lead_payload(webhook_log_id, lead)
        except Exception as exc:
            incr_metric("relay.audit.write_failed")
            log_event(
                "relay_audit_write_failed",
                level=logging.ERROR,
                request_id=self._request_id,
                status_code=record.status_code,
                ip_address=record.ip_address,
                error=str(exc),
            )

    def _log_failure(self, event: str, error: RelayError, *, level: int = logging.ERROR) -> None:
        log_event(
            event,
            level=level,
            request_id=self._request_id,
            **error.model_dump(exclude={"error"}),
        )
