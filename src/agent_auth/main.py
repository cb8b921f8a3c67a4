"""Agent Auth Service

Main FastAPI application entry point.
Device-side API over the provider factory, error classifier and recovery
orchestrator.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_auth.api.routes import auth, diagnostics, providers
from agent_auth.config.settings import get_settings
from agent_auth.container import build_container

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    try:
        container = await build_container(settings)
    except Exception as e:
        logger.error(f"Failed to build service container: {e}")
        raise

    app.state.container = container
    await container.start()

    yield

    # Shutdown
    logger.info("Shutting down Agent Auth Service")
    await container.shutdown()
    logger.info("Providers cleaned up")


def create_app() -> FastAPI:
    """Create the FastAPI application"""
    application = FastAPI(
        title="Agent Auth Service",
        version=settings.service_version,
        description="Dual-provider authentication with error classification and automatic recovery",
        lifespan=lifespan
    )

    # CORS configuration
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Health check endpoint
    @application.get("/health")
    async def root_health_check(request: Request):
        """Root health check endpoint"""
        body = {
            "status": "healthy",
            "service": settings.service_name,
            "version": settings.service_version,
            "environment": settings.environment
        }
        redis_client = request.app.state.container.redis_client
        if redis_client is not None:
            body["redis"] = "healthy" if await redis_client.health_check() else "unhealthy"
        return body

    application.include_router(auth.router)
    application.include_router(providers.router)
    application.include_router(diagnostics.router)

    # Global exception handler
    @application.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later."
            }
        )

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "agent_auth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
