"""SmileID request signatures: HMAC-SHA256 over timestamp, partner id and "sid_request"."""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

SIGNATURE_SUFFIX = "sid_request"

API_BASE_URLS = {
    "sandbox": "https://testapi.smileidentity.com/v1/smile_links",
    "production": "https://api.smileidentity.com/v1/smile_links",
}

LINK_BASE_URLS = {
    "sandbox": "https://links.sandbox.usesmileid.com",
    "production": "https://links.usesmileid.com",
}


class SigningConfigError(ValueError):
    """Raised when a signature cannot be computed from the configured values."""


class Credentials(BaseModel):
    partner_id: str
    api_key: str
    environment: Literal["sandbox", "production"] = "sandbox"

    model_config = {"frozen": True}

    @property
    def base_url(self) -> str:
        return API_BASE_URLS[self.environment]

    @property
    def link_base_url(self) -> str:
        return LINK_BASE_URLS[self.environment]


def iso_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision, e.g. 2025-01-31T09:15:02.120Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_signature(api_key: str, timestamp: str, partner_id: str) -> str:
    if not api_key:
        raise SigningConfigError("SmileID API key is not configured")
    if not partner_id:
        raise SigningConfigError("SmileID partner id is not configured")
    if not timestamp:
        raise SigningConfigError("A timestamp is required to sign a request")

    mac = hmac.new(api_key.encode("utf-8"), digestmod=hashlib.sha256)
    mac.update(timestamp.encode("utf-8"))
    mac.update(partner_id.encode("utf-8"))
    mac.update(SIGNATURE_SUFFIX.encode("utf-8"))
    return base64.b64encode(mac.digest()).decode("ascii")


def verify_signature(api_key: str, timestamp: str, partner_id: str, signature: str) -> bool:
    """Check a received signature against the one we would have produced."""
    expected = generate_signature(api_key, timestamp, partner_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def sign_envelope(credentials: Credentials, timestamp: str | None = None) -> dict[str, str]:
    """The partner_id/signature/timestamp triple every SmileID request carries."""
    timestamp = timestamp or iso_timestamp()
    return {
        "partner_id": credentials.partner_id,
        "signature": generate_signature(credentials.api_key, timestamp, credentials.partner_id),
        "timestamp": timestamp,
    }
