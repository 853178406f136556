from datetime import datetime
from typing import Any

from pydantic import BaseModel


class IdTypeSpec(BaseModel):
    country: str
    id_type: str
    verification_method: str


class LinkDefaults(BaseModel):
    company_name: str
    logo_url: str | None = None
    privacy_policy_url: str | None = None
    callback_url: str | None = None
    id_types: list[IdTypeSpec]
    expiry_hours: int = 24

    model_config = {"frozen": True}


class LinkRequest(BaseModel):
    name: str | None = None
    company_name: str | None = None
    id_types: list[IdTypeSpec] | None = None
    callback_url: str | None = None
    privacy_policy_url: str | None = None
    logo_url: str | None = None
    is_single_use: bool = True
    user_id: str | None = None
    partner_params: dict[str, Any] | None = None
    expires_at: datetime | str | None = None


class LinkResult(BaseModel):
    success: bool
    link_id: str | None = None
    personal_link: str | None = None
    user_id: str | None = None
    expires_at: str | None = None
    full_response: Any = None
    error: str | None = None

    model_config = {"frozen": True}


class BatchUser(BaseModel):
    user_id: str | None = None
    name: str | None = None
    email: str | None = None
    company_name: str | None = None
    callback_url: str | None = None
    id_types: list[IdTypeSpec] | None = None
    custom_params: dict[str, Any] = {}


class BatchLinkResult(LinkResult):
    user_name: str | None = None
