import hmac
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from .schemas import BatchLinkResult, LinkRequest, LinkResult
from .service import LinkIssuer

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_operator(request: Request, api_key: str | None = Depends(api_key_header)) -> None:
    expected = request.app.state.settings.operator_api_key
    if not expected or not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(prefix="/links", tags=["links"], dependencies=[Depends(require_operator)])


def get_link_issuer(request: Request) -> LinkIssuer:
    return request.app.state.link_issuer


@router.post("", response_model=LinkResult)
async def create_link(body: LinkRequest, issuer: LinkIssuer = Depends(get_link_issuer)):
    return await issuer.create_single_use_link(body)


@router.post("/batch", response_model=list[BatchLinkResult])
async def create_links(
    users: list[dict[str, Any]],
    issuer: LinkIssuer = Depends(get_link_issuer),
):
    # Records are validated one by one so a bad entry fails alone
    return await issuer.create_multiple_personal_links(users)


@router.put("/{link_id}")
async def update_link(
    link_id: str,
    updates: dict[str, Any] = Body(...),
    issuer: LinkIssuer = Depends(get_link_issuer),
):
    return await issuer.update_link(link_id, updates)


@router.get("/{link_id}")
async def get_link(link_id: str, issuer: LinkIssuer = Depends(get_link_issuer)):
    return await issuer.get_link_info(link_id)
