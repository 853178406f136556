import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smilelink.config import Settings, get_settings
from smilelink.links.router import router as links_router
from smilelink.links.service import LinkIssuer
from smilelink.webhooks.router import router as webhook_router
from smilelink.webhooks.service import OutcomeSink, WebhookDispatcher

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    link_issuer: LinkIssuer | None = None,
    sink: OutcomeSink | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    credentials = settings.credentials()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.link_issuer is None:
            owned = LinkIssuer(
                credentials,
                settings.link_defaults(),
                timeout=settings.http_timeout_seconds,
            )
            app.state.link_issuer = owned
        yield
        if owned is not None:
            await owned.aclose()
            app.state.link_issuer = None

    app = FastAPI(title="SmileID Links", lifespan=lifespan)
    app.state.settings = settings
    # Built at startup unless one is supplied
    app.state.link_issuer = link_issuer
    app.state.webhook_dispatcher = WebhookDispatcher(credentials, sink)

    app.include_router(webhook_router)
    app.include_router(links_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("SmileID webhook server starting on port %s (%s)", settings.webhook_port, settings.smile_environment)
    logger.info("Webhook URL: http://localhost:%s/webhook/smileid", settings.webhook_port)
    if not settings.operator_api_key:
        logger.info("OPERATOR_API_KEY is not set; /links endpoints will reject every request")
    if not settings.smile_api_key:
        logger.warning("SMILE_API_KEY is not set; signed requests will fail")
    uvicorn.run(app, host="0.0.0.0", port=settings.webhook_port)


if __name__ == "__main__":
    run()
