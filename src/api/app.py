"""FastAPI application factory"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.error import ClientError, client_error_handler
from src.api.routes import add_ons, subscriptions, usage, webhooks

logger = logging.getLogger(__name__)


def init_sentry(config) -> None:
    import sentry_sdk

    sentry_sdk.init(
        dsn=config.DSN_SENTRY,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1,
    )
    logger.info(f"Sentry enabled (environment={config.SENTRY_ENVIRONMENT})")


def create_app(config) -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        init_sentry(config)

    app = FastAPI(
        title="Messaging Entitlement Service",
        description="Subscription lifecycle, add-on credits and send entitlements",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.ENABLE_LOGGING_MIDDLEWARE:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
            )
            return response

    app.add_exception_handler(ClientError, client_error_handler)

    for module in (subscriptions, usage, add_ons, webhooks):
        app.include_router(module.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
