from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.api.routes import router
from app.config.settings import settings
from app.logging_config import setup_logging
from app.providers.http import build_client
from app.registry import Caches, build_caches


def create_app(
    caches: Caches | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http_client = build_client(transport)
        try:
            yield
        finally:
            await app.state.http_client.aclose()

    app = FastAPI(
        title="marketdesk",
        version="0.1.0",
        description="Cached crypto market data for the dashboard.",
        lifespan=lifespan,
    )
    app.state.caches = caches or build_caches(settings)
    app.include_router(router)
    return app


app = create_app()
