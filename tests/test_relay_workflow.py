from __future__ import annotations

import json
import logging

import httpx
import pytest
from pydantic import SecretStr

from lead_relay.domain.relay_errors import MissingFieldError, RelayError
from lead_relay.models.relay import AuthSession, GenfinCredentials, RelayReceipt, UpstreamResponse
from lead_relay.observability import metrics_snapshot, reset_metrics
from lead_relay.providers.genfin import client as genfin_client
from lead_relay.services.relay import BOOLEAN_FIELDS, REQUIRED_FIELDS, RelayWorkflow


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeAuditStore:
    def __init__(self, fail: bool = False):
        self.records = []
        self.lead_payloads = []
        self.fail = fail

    def append(self, record):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.records.append(record)
        return f"log-{len(self.records)}"

    def append_lead_payload(self, webhook_log_id, lead):
        self.lead_payloads.append((webhook_log_id, lead))


class FakeGenfin:
    """Routes fake upstream calls by endpoint path."""

    def __init__(self, auth=None, lead=None):
        self.auth = auth if auth is not None else _FakeResponse(200, {"apiGUID": "g1", "authenticationGUID": "a1"})
        self.lead = lead if lead is not None else _FakeResponse(200, {"id": 42})
        self.calls: list[dict] = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.auth if kwargs["url"].endswith("/authentication") else self.lead
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def lead_calls(self) -> list[dict]:
        return [c for c in self.calls if c["url"].endswith("/lead")]


def _payload(**overrides):
    payload = {
        "ipAddress": "1.2.3.4",
        "loanAmount": 50000,
        "tradeHistory": "1",
        "turnoverHistory": "0",
        "companyTradingName": "Acme Trading",
        "natureOfBusiness": "Retail",
        "loanPurpose": "Stock",
        "premises": "Rented",
        "numberEmployees": "10-20",
        "websiteAddress": "acme.example",
        "hearAboutUs": "Lead Provider",
        "firstName": "Thandi",
        "lastName": "Mokoena",
        "emailAddress": "thandi@acme.example",
        "primaryContactNumber": "0821234567",
        "productSelection": "OBL",
        "source": "WEB",
        "companyRegNumber": "2019/123456/07",
        "autoEmail": "yes",
        "confirmConsent": "on",
    }
    payload.update(overrides)
    return payload


def _workflow(audit_store=None, **kwargs) -> RelayWorkflow:
    return RelayWorkflow(
        GenfinCredentials(base_url="https://genfin.example/api", username="u", password=SecretStr("p")),
        audit_store=audit_store or FakeAuditStore(),
        affiliate_number="AFF0905",
        ext_link_id="ext-link-1",
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics()
    yield
    reset_metrics()


def test_successful_relay_returns_receipt_and_writes_one_audit_record(monkeypatch):
    fake = FakeGenfin()
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()
    payload = _payload()

    result = _workflow(store).handle(payload)

    assert isinstance(result, RelayReceipt)
    assert result.model_dump() == {"status": "received", "data": {"id": 42}, "payload": payload}
    assert len(store.records) == 1
    assert store.records[0].status_code == 200
    assert store.records[0].ip_address == "1.2.3.4"
    assert store.records[0].response == {"id": 42}
    assert store.records[0].payload["guid"] == "g1"
    assert store.lead_payloads[0][0] == "log-1"

    lead_call = fake.lead_calls()[0]
    assert lead_call["headers"]["Authorization"] == "Bearer a1"
    assert lead_call["timeout_seconds"] == 15.0
    body = lead_call["json_payload"]
    assert body["guid"] == "g1"
    assert body["loanAmount"] == 50000
    assert body["tradeHistory"] is True
    assert body["turnoverHistory"] is False
    assert body["autoEmail"] is True
    assert body["confirmConsent"] is True
    assert body["affiliateNumber"] == "AFF0905"
    assert body["extLinkID"] == "ext-link-1"
    assert body["companyTradingName"] == "Acme Trading"
    assert "comments" not in body
    assert metrics_snapshot()["relay.submission.succeeded"] == 1


def test_authentication_failure_short_circuits_without_submit_or_audit(monkeypatch):
    fake = FakeGenfin(auth=_FakeResponse(403, None, text="forbidden"))
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()

    result = _workflow(store).handle(_payload())

    assert isinstance(result, RelayError)
    dumped = result.model_dump()
    assert dumped["error"] is True
    assert dumped["type"] == "upstream_http_error"
    assert dumped["operation"] == "authenticate"
    assert dumped["status"] == 403
    assert dumped["body"] == "forbidden"
    assert "HTTP 403" in dumped["message"]
    assert fake.lead_calls() == []
    assert store.records == []
    assert metrics_snapshot()["relay.authentication.failed|type=upstream_http_error"] == 1


def test_authentication_transport_failure_is_tagged_not_raised(monkeypatch):
    fake = FakeGenfin(auth=httpx.ConnectError("refused"))
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)

    result = _workflow().authenticate()

    assert isinstance(result, RelayError)
    assert result.type == "transport_error"
    assert result.status is None
    assert result.retryable is True


def test_authenticate_returns_session(monkeypatch):
    monkeypatch.setattr(genfin_client, "_request_with_retry", FakeGenfin())

    result = _workflow().authenticate()

    assert result == AuthSession(apiGUID="g1", authenticationGUID="a1")


def test_submit_timeout_returns_transport_error_and_writes_no_audit(monkeypatch):
    fake = FakeGenfin(lead=httpx.ReadTimeout("timed out"))
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()

    result = _workflow(store).handle(_payload())

    assert isinstance(result, RelayError)
    assert result.type == "transport_error"
    assert result.operation == "submit"
    assert store.records == []
    assert store.lead_payloads == []


def test_submit_failure_is_audited_when_enabled(monkeypatch):
    fake = FakeGenfin(lead=_FakeResponse(422, None, text='{"errors":["loanAmount"]}'))
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()

    result = _workflow(store, audit_failed_submissions=True).handle(_payload())

    assert isinstance(result, RelayError)
    assert len(store.records) == 1
    assert store.records[0].status_code == 422
    assert store.records[0].response["type"] == "upstream_http_error"
    assert store.lead_payloads == []


def test_missing_required_field_is_rejected_before_submit(monkeypatch):
    fake = FakeGenfin()
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()
    payload = _payload()
    del payload["companyRegNumber"]

    result = _workflow(store).handle(payload)

    assert isinstance(result, RelayError)
    assert result.type == "missing_field"
    assert result.field == "companyRegNumber"
    assert "companyRegNumber" in result.message
    assert fake.lead_calls() == []
    assert store.records == []


@pytest.mark.parametrize("field", [f for f in REQUIRED_FIELDS if f not in BOOLEAN_FIELDS])
def test_prepare_names_each_missing_field(field):
    payload = _payload()
    del payload[field]
    with pytest.raises(MissingFieldError) as excinfo:
        _workflow().prepare(payload, "g1")
    assert excinfo.value.field == field


@pytest.mark.parametrize("field", BOOLEAN_FIELDS)
def test_prepare_maps_absent_boolean_field_to_false(field):
    payload = _payload(**{name: "1" for name in BOOLEAN_FIELDS})
    del payload[field]

    wire = _workflow().prepare(payload, "g1").to_wire()

    assert wire[field] is False
    for name in BOOLEAN_FIELDS:
        if name != field:
            assert wire[name] is True


def test_authenticate_logs_response_without_bearer_token(monkeypatch, caplog):
    fake = FakeGenfin(
        auth=_FakeResponse(200, {"apiGUID": "g1", "authenticationGUID": "token-a1", "expiresIn": 3600})
    )
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)

    with caplog.at_level(logging.INFO, logger="lead_relay"):
        _workflow().authenticate()

    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "lead_relay"]
    success = [e for e in events if e["event"] == "genfin_authentication_succeeded"]
    assert len(success) == 1
    assert success[0]["response"]["apiGUID"] == "g1"
    assert success[0]["response"]["expiresIn"] == 3600
    assert success[0]["response"]["authenticationGUID"] == "***"
    assert "token-a1" not in caplog.text


@pytest.mark.parametrize("field", BOOLEAN_FIELDS)
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1", True),
        ("true", True),
        ("True", True),
        ("yes", True),
        ("ON", True),
        (True, True),
        ("0", False),
        ("false", False),
        ("", False),
        (False, False),
    ],
)
def test_prepare_coerces_each_boolean_field_independently(field, raw, expected):
    others = {name: "0" for name in BOOLEAN_FIELDS if name != field}
    payload = _payload(**others, **{field: raw})

    wire = _workflow().prepare(payload, "g1").to_wire()

    assert wire[field] is expected
    for name in others:
        assert wire[name] is False


def test_prepare_forwards_optional_passthrough_fields():
    payload = _payload(comments="call after 10", utmSource="google", gcLid="abc", utmMedium="")

    wire = _workflow().prepare(payload, "g1").to_wire()

    assert wire["comments"] == "call after 10"
    assert wire["utmSource"] == "google"
    assert wire["gcLid"] == "abc"
    assert "utmMedium" not in wire
    assert "genfinRepresentative" not in wire


def test_handle_is_not_idempotent(monkeypatch):
    fake = FakeGenfin()
    monkeypatch.setattr(genfin_client, "_request_with_retry", fake)
    store = FakeAuditStore()
    workflow = _workflow(store)
    payload = _payload()

    first = workflow.handle(payload)
    second = workflow.handle(payload)

    assert isinstance(first, RelayReceipt)
    assert isinstance(second, RelayReceipt)
    assert len(fake.lead_calls()) == 2
    assert len(store.records) == 2


def test_audit_write_failure_keeps_successful_result(monkeypatch):
    monkeypatch.setattr(genfin_client, "_request_with_retry", FakeGenfin())

    result = _workflow(FakeAuditStore(fail=True)).handle(_payload())

    assert isinstance(result, RelayReceipt)
    assert metrics_snapshot()["relay.audit.write_failed"] == 1


def test_submit_returns_upstream_status_and_body(monkeypatch):
    monkeypatch.setattr(genfin_client, "_request_with_retry", FakeGenfin(lead=_FakeResponse(201, {"ref": "L-9"})))
    workflow = _workflow()
    record = workflow.prepare(_payload(), "g1")

    result = workflow.submit(record, "a1")

    assert result == UpstreamResponse(status_code=201, data={"ref": "L-9"})
