from enum import Enum
from typing import Any

from pydantic import BaseModel


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    OTHER = "other"


class WebhookPayload(BaseModel):
    """SmileID job result callback.

    Field types are left open: the provider sends numbers, strings or
    objects depending on the product, and unknown fields are kept as extras.
    """

    job_id: Any = None
    user_id: Any = None
    job_type: Any = None
    result_type: Any = None
    result_code: Any = None
    result_text: Any = None
    ResultCode: Any = None
    ResultText: Any = None
    confidence: Any = None
    smile_job_id: Any = None
    partner_params: Any = None
    timestamp: Any = None
    id_type: Any = None
    country: Any = None
    id_number: Any = None
    Actions: Any = None

    model_config = {"extra": "allow"}


class VerificationRecord(BaseModel):
    user_id: Any = None
    job_id: Any = None
    job_type: Any = None
    result_code: str | None = None
    result_text: str | None = None
    confidence: Any = None
    id_type: Any = None
    country: Any = None
    partner_params: dict[str, Any] = {}
    raw: dict[str, Any] = {}

    model_config = {"frozen": True}
