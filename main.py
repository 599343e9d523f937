from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shortlink_app.api.v1 import analytics, links, redirect
from shortlink_app.config import settings
from shortlink_app.container import ServiceContainer
from shortlink_app.exceptions import ServiceUnavailableError
from shortlink_app.logging_config import setup_logging

logger = logging.getLogger("shortlink_app.main")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application around a service container.

    The container is attached to ``app.state`` right away; the lifespan
    starts it on startup and shuts it down on exit. Tests pass their own
    container built from test settings.
    """
    container = container or ServiceContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.start()
        yield
        await container.shutdown()

    app = FastAPI(
        title=container.settings.app_name,
        version=container.settings.app_version,
        description="A short link service with click analytics built with FastAPI",
        debug=container.settings.debug,
        lifespan=lifespan,
    )
    app.state.container = container

    @app.exception_handler(ServiceUnavailableError)
    async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError):
        logger.error("Store unavailable for %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service temporarily unavailable"},
        )

    @app.get("/")
    def read_root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {container.settings.app_name}",
            "version": container.settings.app_version,
            "docs": "/docs",
            "redoc": "/redoc"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint with store and cache status"""
        database_ok = await container.store.ping()
        cache_ok = await container.cache.ping() if container.cache is not None else False
        return {
            "status": "healthy" if database_ok else "degraded",
            "environment": container.settings.environment,
            "database": "ok" if database_ok else "unavailable",
            "cache": "ok" if cache_ok else "unavailable",
        }

    @app.get("/metrics")
    def metrics():
        """Prometheus exposition"""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    ######## Include routers
    # The redirect catch-all goes last so it never shadows the routes above
    app.include_router(links.router, prefix="/api/v1")
    app.include_router(analytics.router, prefix="/api/v1")
    app.include_router(redirect.router)

    return app


setup_logging(settings.log_level, settings.log_json)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
