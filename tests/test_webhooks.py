from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from smilelink.config import Settings
from smilelink.main import create_app
from smilelink.signing import Credentials, generate_signature
from smilelink.webhooks.schemas import Outcome, VerificationRecord
from smilelink.webhooks.service import WebhookDispatcher, classify, normalize_payload

API_KEY = "test-api-key"
PARTNER_ID = "7790"
TIMESTAMP = "2025-01-31T09:15:02.120Z"


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, VerificationRecord]] = []

    async def on_success(self, record: VerificationRecord) -> None:
        self.calls.append(("success", record))

    async def on_failure(self, record: VerificationRecord) -> None:
        self.calls.append(("failure", record))

    async def on_other(self, record: VerificationRecord) -> None:
        self.calls.append(("other", record))


class ExplodingSink(RecordingSink):
    async def on_success(self, record: VerificationRecord) -> None:
        raise RuntimeError("database unavailable")


def _client(sink: RecordingSink) -> TestClient:
    settings = Settings(_env_file=None, smile_partner_id=PARTNER_ID, smile_api_key=API_KEY)
    return TestClient(create_app(settings=settings, sink=sink))


def _signed_headers(timestamp: str = TIMESTAMP) -> dict[str, str]:
    return {
        "content-type": "application/json",
        "x-signature": generate_signature(API_KEY, timestamp, PARTNER_ID),
        "x-timestamp": timestamp,
    }


def _payload(**overrides) -> dict:
    payload = {
        "job_id": "job-123",
        "user_id": "user_001",
        "job_type": 11,
        "result_code": "2814",
        "result_text": "Document Verified",
        "confidence": 99.5,
        "id_type": "IDENTITY_CARD",
        "country": "NG",
        "partner_params": {"user_name": "Alice Johnson"},
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(
    "code,expected",
    [("2814", "success"), ("2815", "failure"), ("0812", "other"), (None, "other")],
)
def test_signed_webhook_is_routed_by_result_code(code: str | None, expected: str) -> None:
    sink = RecordingSink()
    client = _client(sink)

    response = client.post("/webhook/smileid", content=json.dumps(_payload(result_code=code)), headers=_signed_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "received"
    assert body["message"] == "Webhook processed successfully"
    assert body["timestamp"].endswith("Z")
    assert [name for name, _ in sink.calls] == [expected]
    record = sink.calls[0][1]
    assert record.user_id == "user_001"
    assert record.job_id == "job-123"


def test_webhook_with_wrong_signature_is_rejected() -> None:
    sink = RecordingSink()
    client = _client(sink)
    headers = _signed_headers()
    headers["x-timestamp"] = "2025-01-31T09:15:03.000Z"

    response = client.post("/webhook/smileid", content=json.dumps(_payload()), headers=headers)

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert sink.calls == []


def test_webhook_accepts_fallback_header_names() -> None:
    sink = RecordingSink()
    client = _client(sink)
    headers = {
        "content-type": "application/json",
        "signature": generate_signature(API_KEY, TIMESTAMP, PARTNER_ID),
        "timestamp": TIMESTAMP,
    }

    response = client.post("/webhook/smileid", content=json.dumps(_payload(result_code="2815")), headers=headers)

    assert response.status_code == 200
    assert [name for name, _ in sink.calls] == ["failure"]


def test_unsigned_webhook_is_processed() -> None:
    # Callbacks without signature headers are accepted unverified.
    sink = RecordingSink()
    client = _client(sink)

    response = client.post(
        "/webhook/smileid",
        content=json.dumps(_payload()),
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 200
    assert [name for name, _ in sink.calls] == ["success"]


def test_webhook_with_only_signature_header_skips_verification() -> None:
    sink = RecordingSink()
    client = _client(sink)

    response = client.post(
        "/webhook/smileid",
        content=json.dumps(_payload()),
        headers={"content-type": "application/json", "x-signature": "bogus"},
    )

    assert response.status_code == 200
    assert len(sink.calls) == 1


def test_webhook_handler_failure_returns_500() -> None:
    client = _client(ExplodingSink())

    response = client.post("/webhook/smileid", content=json.dumps(_payload()), headers=_signed_headers())

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook processing failed"}


def test_webhook_with_malformed_body_returns_500() -> None:
    sink = RecordingSink()
    client = _client(sink)

    response = client.post("/webhook/smileid", content="{not json", headers=_signed_headers())

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook processing failed"}
    assert sink.calls == []


def test_webhook_with_non_string_fields_is_acknowledged() -> None:
    sink = RecordingSink()
    client = _client(sink)
    body = _payload(
        id_number=12345678901,
        timestamp=1700000000,
        result_text=None,
        ResultText=42,
        result_type=["DocumentVerification"],
        id_type=7,
        country=None,
        partner_params="not-a-dict",
        Actions=["Verify_Document"],
    )

    response = client.post("/webhook/smileid", content=json.dumps(body), headers=_signed_headers())

    assert response.status_code == 200
    assert [name for name, _ in sink.calls] == ["success"]
    record = sink.calls[0][1]
    assert record.result_text == "42"
    assert record.id_type == 7
    assert record.partner_params == {}
    assert record.raw["id_number"] == 12345678901


def test_health_endpoint() -> None:
    response = _client(RecordingSink()).get("/webhook/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "SmileID Webhook Server"
    assert "timestamp" in body


def test_test_endpoint_echoes_body() -> None:
    response = _client(RecordingSink()).post("/webhook/test", json={"hello": "world"})

    assert response.status_code == 200
    assert response.json() == {"message": "Test webhook received", "received": {"hello": "world"}}


def test_normalize_payload_prefers_snake_case_and_falls_back_to_pascal_case() -> None:
    record = normalize_payload({"user_id": "u1", "ResultCode": "2815", "ResultText": "Failed", "Actions": {}})

    assert record.result_code == "2815"
    assert record.result_text == "Failed"
    assert record.raw["Actions"] == {}

    both = normalize_payload({"result_code": "2814", "ResultCode": "2815"})
    assert both.result_code == "2814"


def test_normalize_payload_keeps_unknown_fields_in_raw() -> None:
    body = {"job_id": "j1", "ImageLinks": {"selfie_image": "https://example.com/s.jpg"}}

    record = normalize_payload(body)

    assert record.raw == body
    assert record.partner_params == {}


def test_classify_coerces_numeric_codes() -> None:
    assert classify(normalize_payload({"result_code": 2814})) is Outcome.SUCCESS
    assert classify(normalize_payload({"ResultCode": 2815})) is Outcome.FAILURE
    assert classify(normalize_payload({})) is Outcome.OTHER


@pytest.mark.parametrize(
    "body,expected",
    [
        ({"result_code": "0812", "ResultCode": "2814"}, Outcome.SUCCESS),
        ({"result_code": "2815", "ResultCode": "2814"}, Outcome.SUCCESS),
        ({"result_code": "1020", "ResultCode": "2815"}, Outcome.FAILURE),
        ({"result_code": "1020", "ResultCode": "0812"}, Outcome.OTHER),
    ],
)
def test_terminal_code_under_either_spelling_decides_outcome(body: dict, expected: Outcome) -> None:
    record = normalize_payload(body)

    assert classify(record) is expected
    if expected is Outcome.OTHER:
        assert record.result_code == "1020"


def test_extract_signature_headers_prefers_primary_names() -> None:
    headers = {"X-Signature": "primary", "signature": "fallback", "timestamp": "ts"}

    assert WebhookDispatcher.extract_signature_headers(headers) == ("primary", "ts")
    assert WebhookDispatcher.extract_signature_headers({}) == (None, None)


def test_authenticate_checks_signature_against_credentials() -> None:
    dispatcher = WebhookDispatcher(Credentials(partner_id=PARTNER_ID, api_key=API_KEY), RecordingSink())

    assert dispatcher.authenticate(_signed_headers()) is True
    assert dispatcher.authenticate({"x-signature": "wrong", "x-timestamp": TIMESTAMP}) is False
    assert dispatcher.authenticate({}) is True
