"""Demo application serving routekit routes through FastAPI."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from routekit.asgi import RequestIdMiddleware, RequestLoggingMiddleware
from routekit.config import settings
from routekit.dispatchers import FastAPIDispatcher
from routekit.logging_config import configure_logging
from routekit.middleware import (
    AuditMiddleware,
    CachingMiddleware,
    JwtAuthMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
)
from routekit.models.context import RequestContext
from routekit.repositories.content import InMemoryContentRepository
from routekit.resource import Resource
from routekit.router import Router
from routekit.routes import components_from_sources, contracts_from_sources, health_router, register_openapi_route
from routekit.services.jwt_service import Hs256JwtVerifier
from routekit.services.metrics_service import PrometheusMetricSink
from routekit.services.openapi_service import OpenApiExporter

try:
    import uvicorn
except ImportError:  # pragma: no cover - uvicorn optional for ASGI deployments
    uvicorn = None

logger = logging.getLogger(__name__)

NAMESPACE = "routekit/v1"

metrics = PrometheusMetricSink()


def whoami(context: RequestContext):
    """Return the authenticated identity."""
    return {"data": context.attribute("auth")}


def build_router() -> Router:
    router = Router.make("routekit", "v1")
    router.middleware([AuditMiddleware(), MetricsMiddleware(metrics)])

    def secured(group: Router) -> None:
        group.middleware([JwtAuthMiddleware(Hs256JwtVerifier.from_settings()), RateLimitMiddleware()])
        group.get("/me", whoami).meta({"operationId": "getMe", "tags": ["Auth"]})

    router.group("/secure", secured)
    return router


def build_articles() -> Resource:
    repository = InMemoryContentRepository().seed(
        "article",
        [
            {"id": 1, "title": "Hello", "status": "publish"},
            {"id": 2, "title": "Draft", "status": "draft"},
        ],
    )
    return (
        Resource.make("articles")
        .namespace(NAMESPACE)
        .source_content("article")
        .fields(["id", "title", "status"])
        .filters(["status"])
        .sort(["id", "title"])
        .using_content_repository(repository)
        .middleware([MetricsMiddleware(metrics), CachingMiddleware()])
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info("Server: %s:%s", settings.HOST, settings.PORT)
    yield
    logger.info(f"{settings.APP_NAME} shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    # Last added is executed first
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics():
        return PlainTextResponse(metrics.render(), media_type=CONTENT_TYPE_LATEST)

    dispatcher = FastAPIDispatcher(app, prefix="/api")
    router = build_router()
    articles = build_articles()
    router.register(dispatcher)
    articles.register(dispatcher)

    sources = [router, articles]
    register_openapi_route(
        NAMESPACE,
        lambda: contracts_from_sources(sources),
        dispatcher,
        OpenApiExporter(components=components_from_sources(sources)),
    )
    return app


app = create_app()


if __name__ == "__main__" and uvicorn:
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
