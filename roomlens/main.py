"""
FastAPI main application for RoomLens
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from roomlens import __version__
from roomlens.core.config import Settings, get_settings
from roomlens.core.exceptions import register_exception_handlers
from roomlens.core.logging import setup_logging
from roomlens.middleware.logging_middleware import RequestLoggingMiddleware
from roomlens.routers import design, products, render, spatial
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.chatgpt_service import ChatGPTService
from roomlens.services.design_suggestion_service import DesignSuggestionService
from roomlens.services.google_ai_service import GoogleAIStudioService
from roomlens.services.product_search_service import ProductSearchService
from roomlens.services.render_service import RenderService
from roomlens.services.spatial_analysis_service import SpatialAnalysisService

logger = logging.getLogger(__name__)


def _key_preview(key: str) -> str:
    return f"{key[:7]}...{key[-4:]}" if len(key) > 11 else "***"


def log_credentials(settings: Settings) -> None:
    """Report which provider credentials are present, without revealing them"""
    logger.info("=" * 60)
    logger.info("ENVIRONMENT VARIABLES CHECK")
    logger.info("=" * 60)
    for name, value, feature in (
        ("GOOGLE_AI_API_KEY", settings.google_ai_api_key, "Spatial analysis and smart lookup"),
        ("OPENAI_API_KEY", settings.openai_api_key, "Design suggestions"),
        ("FAL_KEY", settings.fal_key, "Renders (placeholder only)"),
        ("SERPAPI_KEY", settings.serpapi_key, "Lens lookup"),
        ("RAINFOREST_API_KEY", settings.rainforest_api_key, "Smart lookup"),
    ):
        if value:
            logger.info(f"✅ {name} is set: {_key_preview(value)}")
        else:
            logger.warning(f"❌ {name} is NOT set - {feature} will not work!")
    logger.info("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared HTTP session and provider services; close them on shutdown"""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name}...")
    log_credentials(settings)

    http_session = aiohttp.ClientSession()
    vision = GoogleAIStudioService(settings)
    chat = ChatGPTService(settings)
    cache = app.state.analysis_cache

    app.state.http_session = http_session
    app.state.spatial_service = SpatialAnalysisService(settings, vision, http_session, cache)
    app.state.design_service = DesignSuggestionService(chat, cache)
    app.state.render_service = RenderService(settings, http_session)
    app.state.product_service = ProductSearchService(settings, vision, http_session)
    logger.info("Application started")

    try:
        yield
    finally:
        logger.info(f"Shutting down {settings.app_name}...")
        await http_session.close()
        if chat.client is not None:
            await chat.client.close()
        logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Spatial layout analysis and proportion pipeline for room photos",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
    )
    app.state.settings = settings
    app.state.analysis_cache = SessionAnalysisCache()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers"""
        return {"status": "healthy", "timestamp": time.time(), "version": __version__}

    app.include_router(spatial.router, prefix="/api/spatial", tags=["spatial"])
    app.include_router(design.router, prefix="/api/design", tags=["design"])
    app.include_router(render.router, prefix="/api/render", tags=["render"])
    app.include_router(products.router, prefix="/api/products", tags=["products"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roomlens.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().environment == "development",
        log_level="info",
    )
