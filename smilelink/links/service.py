"""SmileID personal links: create, batch-create, update and look up single-use verification links."""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from smilelink.signing import Credentials, iso_timestamp, sign_envelope

from .schemas import BatchLinkResult, BatchUser, LinkDefaults, LinkRequest, LinkResult

logger = logging.getLogger(__name__)

# Response fields that may carry the link identifier, in priority order.
LINK_ID_FIELDS = ("ref_id", "linkId", "id", "smile_link_id", "smile_job_id")

ERROR_MESSAGE_FIELDS = ("message", "error", "code")

BATCH_DELAY_SECONDS = 0.1


def generate_user_id() -> str:
    return f"user_{uuid.uuid4()}"


def find_link_id(response: Any) -> str | None:
    if not isinstance(response, dict):
        return None
    for field in LINK_ID_FIELDS:
        value = response.get(field)
        if value:
            return str(value)
    return None


def error_message(response: Any) -> str:
    if isinstance(response, dict):
        for field in ERROR_MESSAGE_FIELDS:
            value = response.get(field)
            if value:
                return str(value)
    return "Unknown error"


def _invalid_user_result(raw_user: Any, error: ValidationError) -> BatchLinkResult:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "record"
    user_id = name = None
    if isinstance(raw_user, dict):
        user_id = raw_user.get("user_id")
        name = raw_user.get("name")
    return BatchLinkResult(
        success=False,
        user_id=str(user_id) if user_id is not None else None,
        user_name=name if isinstance(name, str) else None,
        error=f"Invalid user record: {field}: {first['msg']}",
    )


def _read_json(response: httpx.Response) -> Any:
    """Parse the body; a non-JSON error body is treated as empty."""
    try:
        return response.json()
    except ValueError:
        if response.is_success:
            raise
        return None


class LinkIssuer:
    """Signs and sends link requests for one SmileID partner account.

    Every call is a single request/response round trip. Provider and transport
    failures come back as data (``LinkResult(success=False)`` or
    ``{"error": ...}``) rather than exceptions.
    """

    def __init__(
        self,
        credentials: Credentials,
        defaults: LinkDefaults,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.credentials = credentials
        self.defaults = defaults
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._sleep = sleep

    async def __aenter__(self) -> "LinkIssuer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def personal_link(self, link_id: str) -> str:
        return f"{self.credentials.link_base_url}/{self.credentials.partner_id}/{link_id}"

    def _default_expiry(self) -> str:
        expiry = datetime.now(timezone.utc) + timedelta(hours=self.defaults.expiry_hours)
        return iso_timestamp(expiry)

    def _build_body(self, request: LinkRequest) -> dict[str, Any]:
        id_types = request.id_types or self.defaults.id_types
        if not id_types:
            raise ValueError("At least one id type is required to create a link")

        expires_at = request.expires_at
        if isinstance(expires_at, datetime):
            expires_at = iso_timestamp(expires_at)

        body = {
            "name": request.name or f"Personal Link - {date.today().isoformat()}",
            "company_name": request.company_name or self.defaults.company_name,
            "id_types": [spec.model_dump() for spec in id_types],
            "callback_url": request.callback_url or self.defaults.callback_url,
            "data_privacy_policy_url": request.privacy_policy_url or self.defaults.privacy_policy_url,
            "logo_url": request.logo_url or self.defaults.logo_url,
            "is_single_use": request.is_single_use,
            "user_id": request.user_id or generate_user_id(),
            "partner_params": request.partner_params or {},
            "expires_at": expires_at or self._default_expiry(),
        }
        # Unset optional URLs are left out of the request entirely
        return {key: value for key, value in body.items() if value is not None}

    async def create_single_use_link(self, request: LinkRequest | None = None) -> LinkResult:
        request = request or LinkRequest()
        try:
            body = {**sign_envelope(self.credentials), **self._build_body(request)}
            response = await self._client.post(self.credentials.base_url, json=body)
            result = _read_json(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("SmileID link creation failed: %s", e)
            return LinkResult(success=False, error=str(e))

        if not response.is_success:
            message = error_message(result)
            logger.error("SmileID API error %s: %s", response.status_code, result)
            return LinkResult(success=False, error=message, full_response=result)

        link_id = find_link_id(result)
        if link_id is None:
            available = sorted(result) if isinstance(result, dict) else []
            logger.warning(
                "No link id in SmileID response; available fields: %s; response: %s",
                available,
                result,
            )
        else:
            logger.info("Created SmileID link %s for user %s", link_id, body["user_id"])

        return LinkResult(
            success=True,
            link_id=link_id,
            personal_link=self.personal_link(link_id) if link_id else None,
            user_id=body["user_id"],
            expires_at=body["expires_at"],
            full_response=result,
        )

    async def create_multiple_personal_links(
        self, users: Iterable[BatchUser | dict[str, Any]]
    ) -> list[BatchLinkResult]:
        """Create one link per user, strictly in order, pausing between calls."""
        results: list[BatchLinkResult] = []
        for raw_user in users:
            try:
                user = BatchUser.model_validate(raw_user)
            except ValidationError as e:
                logger.error("Skipping invalid batch user %r: %s", raw_user, e)
                results.append(_invalid_user_result(raw_user, e))
                continue

            user = user.model_copy(update={"user_id": user.user_id or generate_user_id()})
            partner_params = {"user_name": user.name, "user_email": user.email}
            partner_params = {key: value for key, value in partner_params.items() if value is not None}
            partner_params.update(user.custom_params)

            request = LinkRequest(
                name=f"Personal Link - {user.name or user.user_id}",
                user_id=user.user_id,
                company_name=user.company_name,
                callback_url=user.callback_url,
                id_types=user.id_types,
                partner_params=partner_params,
            )
            result = await self.create_single_use_link(request)
            results.append(
                BatchLinkResult(**{**result.model_dump(), "user_id": user.user_id, "user_name": user.name})
            )

            await self._sleep(BATCH_DELAY_SECONDS)

        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch link creation finished: %d/%d succeeded", succeeded, len(results))
        return results

    async def update_link(self, link_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        try:
            body = {**sign_envelope(self.credentials), **updates}
            response = await self._client.put(f"{self.credentials.base_url}/{link_id}", json=body)
            result = _read_json(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("SmileID link update failed for %s: %s", link_id, e)
            return {"error": str(e)}

        if not response.is_success:
            logger.error("SmileID API error %s updating %s: %s", response.status_code, link_id, result)
            return {"error": error_message(result)}
        return result

    async def get_link_info(self, link_id: str) -> dict[str, Any]:
        try:
            params = sign_envelope(self.credentials)
            response = await self._client.get(f"{self.credentials.base_url}/{link_id}", params=params)
            result = _read_json(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("SmileID link lookup failed for %s: %s", link_id, e)
            return {"error": str(e)}

        if not response.is_success:
            logger.error("SmileID API error %s fetching %s: %s", response.status_code, link_id, result)
            return {"error": error_message(result)}
        return result
