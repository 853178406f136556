import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from smilelink.signing import iso_timestamp

from .service import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])

SERVICE_NAME = "SmileID Webhook Server"


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.webhook_dispatcher


@router.post("/smileid")
async def receive(request: Request, dispatcher: WebhookDispatcher = Depends(get_dispatcher)):
    try:
        body = json.loads(await request.body())
        logger.info("SmileID webhook received")

        if not dispatcher.authenticate(request.headers):
            logger.warning("Invalid webhook signature; rejecting")
            return JSONResponse(status_code=401, content={"error": "Invalid signature"})

        await dispatcher.dispatch(body)
    except Exception:
        logger.exception("Webhook processing failed")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    # Acknowledge every processed callback so the provider does not retry
    return {
        "status": "received",
        "message": "Webhook processed successfully",
        "timestamp": iso_timestamp(),
    }


@router.get("/health")
async def health():
    return {"status": "ok", "service": SERVICE_NAME, "timestamp": iso_timestamp()}


@router.post("/test")
async def test_webhook(body: Any = Body(None)):
    logger.info("Test webhook called: %s", body)
    return {"message": "Test webhook received", "received": body}
