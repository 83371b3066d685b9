"""
FastAPI application factory with middleware, CORS, and request tracing.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trafficsim import __version__
from trafficsim.config import get_settings
from trafficsim.connectors import TextGenerator, build_text_generator
from trafficsim.engine.actor import SimulationActor
from trafficsim.engine.errors import StorageUnavailable
from trafficsim.engine.explainer import ExplanationProvider
from trafficsim.engine.metric_generator import MetricGenerator
from trafficsim.routers import simulation, system
from trafficsim.storage import StorageBackend, get_storage
from trafficsim.utils.logging import configure_logging, get_logger

# Configure logging at module level
configure_logging()
logger = get_logger(__name__)


def create_app(
    storage: Optional[StorageBackend] = None,
    text_generator: Optional[TextGenerator] = None,
    metric_generator: Optional[MetricGenerator] = None,
) -> FastAPI:
    """
    Application factory.

    The simulation actor is built once per application in the lifespan hook
    and shared with handlers via app.state. Arguments override the storage
    backend, text generator and metric generator otherwise built from settings.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        backend = storage if storage is not None else get_storage()
        generator = text_generator if text_generator is not None else build_text_generator(settings)

        actor = SimulationActor(
            storage=backend,
            generator=metric_generator,
            explainer=ExplanationProvider(generator=generator),
        )
        app.state.storage = backend
        app.state.actor = actor

        logger.info(
            "application_startup",
            version=app.version,
            db_path=settings.db_path,
            inference_enabled=generator is not None,
        )

        try:
            await actor.start()
        except StorageUnavailable as e:
            # Requests retry the restore on first use.
            logger.error("actor_start_deferred", error=str(e))

        yield

        if generator is not None:
            await generator.aclose()
        logger.info("application_shutdown")

    app = FastAPI(
        title="Traffic Simulator API",
        description="Protected vs. unprotected traffic simulation with explanations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.exception_handler(RequestValidationError)
    async def body_validation_handler(request: Request, exc: RequestValidationError):
        """Unparseable request bodies are client errors; query errors keep 422."""
        if any(error["loc"] and error["loc"][0] == "body" for error in exc.errors()):
            logger.warning("request_body_invalid", path=request.url.path)
            return JSONResponse(status_code=400, content={"detail": "Invalid request body"})
        return await request_validation_exception_handler(request, exc)

    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Add request ID and timing to all requests."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )

            return response
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )

    app.include_router(system.router, tags=["System"])
    app.include_router(simulation.router, prefix="/api", tags=["Simulation"])

    logger.info("application_configured", routers_count=2)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "trafficsim.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
