from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

from smilelink.links.schemas import IdTypeSpec, LinkDefaults
from smilelink.signing import Credentials, iso_timestamp


class Settings(BaseSettings):
    # SmileID API
    smile_partner_id: str = ""
    smile_api_key: str = ""
    smile_environment: Literal["sandbox", "production"] = "sandbox"

    # Webhook
    webhook_port: int = 3000
    webhook_url: str | None = None

    # Company information
    company_name: str = "Afrimobile Technologies Limited"
    company_logo_url: str | None = None
    privacy_policy_url: str | None = None

    # Default ID configuration
    default_country: str = "NG"
    default_id_type: str = "IDENTITY_CARD"
    default_verification_method: str = "doc_verification"

    # Links
    link_expiry_hours: int = 24
    http_timeout_seconds: float = 30.0

    # Operator endpoints under /links; unset disables them
    operator_api_key: str | None = None

    # App
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "frozen": True, "extra": "ignore"}

    def credentials(self) -> Credentials:
        return Credentials(
            partner_id=self.smile_partner_id,
            api_key=self.smile_api_key,
            environment=self.smile_environment,
        )

    def default_id_types(self) -> list[IdTypeSpec]:
        return [
            IdTypeSpec(
                country=self.default_country,
                id_type=self.default_id_type,
                verification_method=self.default_verification_method,
            )
        ]

    def expiry_date(self, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        return iso_timestamp(now + timedelta(hours=self.link_expiry_hours))

    def link_defaults(self) -> LinkDefaults:
        return LinkDefaults(
            company_name=self.company_name,
            logo_url=self.company_logo_url,
            privacy_policy_url=self.privacy_policy_url,
            callback_url=self.webhook_url,
            id_types=self.default_id_types(),
            expiry_hours=self.link_expiry_hours,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
