"""
Main FastAPI application module.
Handles application lifecycle, middleware setup, and pipeline initialization.
"""

from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables before settings are read
load_dotenv()

from resume_pipeline.api.router import api_router  # noqa: E402
from resume_pipeline.core.config import get_settings  # noqa: E402
from resume_pipeline.core.logger import logger  # noqa: E402
from resume_pipeline.services.pipeline import DocumentPipeline  # noqa: E402


def build_lifespan(pipeline: Optional[DocumentPipeline] = None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup: assemble (unless injected) and start the pipeline.
        Shutdown: stop workers first, then close notification channels.
        """
        logger.info("Starting application initialization...")
        try:
            active = pipeline or DocumentPipeline.build()
            active.start()
        except Exception as e:
            logger.error(f"Critical error during application startup: {str(e)}")
            raise

        app.state.pipeline = active
        logger.info("Application startup completed successfully")

        yield

        logger.info("Starting application shutdown...")
        try:
            active.shutdown()
            logger.info("Application shutdown completed successfully")
        except Exception as e:
            logger.error(f"Error during application shutdown: {str(e)}")
        finally:
            app.state.pipeline = None

    return lifespan


def create_application(pipeline: Optional[DocumentPipeline] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        pipeline: pre-built pipeline to serve; built from settings when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Document extraction, storage and PDF rendering service",
        version="1.0.0",
        lifespan=build_lifespan(pipeline),
    )

    _configure_middleware(app)
    app.include_router(api_router)

    return app


def _configure_middleware(app: FastAPI) -> None:
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )


# Create application instance
app = create_application()


if __name__ == "__main__":
    """
    Development server entry point.
    For production deployment, use a proper ASGI server like uvicorn or gunicorn.
    """
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
