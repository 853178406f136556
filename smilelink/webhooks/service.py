"""SmileID webhook handling: signature check, result normalization and outcome dispatch."""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from smilelink.signing import Credentials, verify_signature

from .schemas import Outcome, VerificationRecord, WebhookPayload

logger = logging.getLogger(__name__)

SUCCESS_CODE = "2814"
FAILURE_CODE = "2815"

# Header names in lookup order
SIGNATURE_HEADERS = ("x-signature", "signature")
TIMESTAMP_HEADERS = ("x-timestamp", "timestamp")


def _first_present(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _result_code(payload: WebhookPayload) -> str | None:
    """A terminal code under either spelling wins over any other code."""
    codes = [str(code) for code in (payload.result_code, payload.ResultCode) if code not in (None, "")]
    for terminal in (SUCCESS_CODE, FAILURE_CODE):
        if terminal in codes:
            return terminal
    return codes[0] if codes else None


def normalize_payload(body: dict[str, Any]) -> VerificationRecord:
    payload = WebhookPayload.model_validate(body)
    result_text = _first_present(payload.result_text, payload.ResultText)
    partner_params = payload.partner_params if isinstance(payload.partner_params, dict) else {}
    return VerificationRecord(
        user_id=payload.user_id,
        job_id=payload.job_id,
        job_type=payload.job_type,
        result_code=_result_code(payload),
        result_text=str(result_text) if result_text is not None else None,
        confidence=payload.confidence,
        id_type=payload.id_type,
        country=payload.country,
        partner_params=partner_params,
        raw=body,
    )


def classify(record: VerificationRecord) -> Outcome:
    if record.result_code == SUCCESS_CODE:
        return Outcome.SUCCESS
    if record.result_code == FAILURE_CODE:
        return Outcome.FAILURE
    return Outcome.OTHER


class OutcomeSink(Protocol):
    async def on_success(self, record: VerificationRecord) -> None: ...

    async def on_failure(self, record: VerificationRecord) -> None: ...

    async def on_other(self, record: VerificationRecord) -> None: ...


class LoggingOutcomeSink:
    """Default sink: records each outcome in the log and nothing else."""

    async def on_success(self, record: VerificationRecord) -> None:
        logger.info(
            "Verification completed for user %s (job %s, %s %s, confidence %s)",
            record.user_id,
            record.job_id,
            record.country,
            record.id_type,
            record.confidence,
        )

    async def on_failure(self, record: VerificationRecord) -> None:
        logger.warning(
            "Verification failed for user %s (job %s): %s",
            record.user_id,
            record.job_id,
            record.result_text,
        )

    async def on_other(self, record: VerificationRecord) -> None:
        logger.info(
            "Verification status update for user %s (job %s): %s [%s]",
            record.user_id,
            record.job_id,
            record.result_text,
            record.result_code,
        )


class WebhookDispatcher:
    def __init__(self, credentials: Credentials, sink: OutcomeSink | None = None):
        self.credentials = credentials
        self.sink = sink or LoggingOutcomeSink()

    @staticmethod
    def extract_signature_headers(headers: Mapping[str, str]) -> tuple[str | None, str | None]:
        lowered = {key.lower(): value for key, value in headers.items()}
        signature = _first_present(*(lowered.get(name) for name in SIGNATURE_HEADERS))
        timestamp = _first_present(*(lowered.get(name) for name in TIMESTAMP_HEADERS))
        return signature, timestamp

    def authenticate(self, headers: Mapping[str, str]) -> bool:
        """Verify the callback signature.

        Callbacks that carry no signature or no timestamp are accepted
        unverified; only a present-but-wrong signature is rejected.
        """
        signature, timestamp = self.extract_signature_headers(headers)
        if not signature or not timestamp:
            logger.warning("Webhook received without signature headers; skipping verification")
            return True

        valid = verify_signature(
            self.credentials.api_key,
            timestamp,
            self.credentials.partner_id,
            signature,
        )
        logger.info("Webhook signature valid: %s", valid)
        return valid

    async def dispatch(self, body: dict[str, Any]) -> Outcome:
        record = normalize_payload(body)
        outcome = classify(record)
        logger.info(
            "SmileID result for user %s job %s (%s): %s [%s] -> %s",
            record.user_id,
            record.job_id,
            record.job_type,
            record.result_text,
            record.result_code,
            outcome.value,
        )

        if outcome is Outcome.SUCCESS:
            await self.sink.on_success(record)
        elif outcome is Outcome.FAILURE:
            await self.sink.on_failure(record)
        else:
            await self.sink.on_other(record)
        return outcome
