import asyncio
import logging
import time
from typing import Optional

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from .env file
load_dotenv()

from devstory.api.dependencies import AppServices, build_services
from devstory.api.endpoints import health_router, router
from devstory.api.errors import register_exception_handlers
from devstory.config.log_config import configure_logging
from devstory.config.settings import Settings, settings
from devstory.utils.helpers import run_periodically

logger = logging.getLogger("devstory")


def create_app(
    app_settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Builds the FastAPI application with its own services (GitHub client, cache, rate limiters).

    Args:
        app_settings: Settings to use; defaults to the environment-derived settings.
        transport: Optional httpx transport for the GitHub client (tests use a mock).
    """
    app_settings = app_settings or settings
    configure_logging(app_settings)

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Commit timeline and codebase statistics for GitHub repositories",
        version=app_settings.APP_VERSION,
    )
    app.state.services = build_services(app_settings, transport=transport)
    app.state.background_tasks = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=bool(app_settings.CORS_ORIGIN),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.monotonic()
        response = await call_next(request)
        logger.info(
            "%s %s from %s -> %d [%dms]",
            request.method,
            request.url.path,
            request.client.host if request.client else "unknown",
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response

    @app.on_event("startup")
    async def startup_event():
        """
        Starts the periodic sweeps of expired cache entries and rate-limit windows.
        """
        services: AppServices = app.state.services
        config = services.settings
        app.state.background_tasks = [
            asyncio.create_task(
                run_periodically(config.CACHE_SWEEP_INTERVAL_SECONDS, services.cache.cleanup, "cache-sweep")
            ),
            asyncio.create_task(
                run_periodically(
                    config.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
                    lambda: (services.api_limiter.cleanup(), services.analyze_limiter.cleanup()),
                    "rate-limit-sweep",
                )
            ),
        ]
        logger.info(
            "%s %s starting (environment=%s, authenticated=%s)",
            config.APP_NAME, config.APP_VERSION, config.ENVIRONMENT, bool(config.GITHUB_TOKEN),
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        tasks = app.state.background_tasks
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await app.state.services.github.aclose()
        logger.info("DevStory API stopped")

    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "devstory.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level="info",
    )


if __name__ == "__main__":
    print("Starting Uvicorn server for DevStory API...")
    run()
