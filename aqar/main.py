"""
Aqar Search API - FastAPI application entry point.

Natural-language property search over an in-memory Saudi catalog: queries
in Arabic or English are parsed into structured criteria, matched exactly
against the catalog and ranked.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aqar.api import router
from aqar.config import Settings, get_settings
from aqar.data.catalog import load_or_generate
from aqar.data.embeddings import load_embedding_index
from aqar.models.lexicon import SUPPORTED_LOCALES, load_lexicon
from aqar.services.cache import ResultCache
from aqar.services.claude_service import get_claude_service
from aqar.services.embedding_service import EmbeddingService
from aqar.services.search_engine import SearchEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the catalog and optional embedding index of every locale once,
    builds one search engine per locale and the shared result cache.
    """
    settings: Settings = app.state.settings
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    embedding_service: Optional[EmbeddingService] = None
    if settings.embedding_api_key:
        embedding_service = EmbeddingService(settings)
    else:
        logger.info("EMBEDDING_API_KEY not set, semantic search disabled")

    engines = {}
    for locale in SUPPORTED_LOCALES:
        catalog = load_or_generate(settings.data_dir, locale)
        index = load_embedding_index(settings.data_dir, locale, catalog)
        engines[locale] = SearchEngine(
            catalog,
            load_lexicon(locale),
            embedding_index=index,
            embedding_provider=embedding_service,
        )
        logger.info(
            "Locale %r ready: %d properties, semantic search %s",
            locale,
            len(catalog),
            "on" if engines[locale].supports_semantic else "off",
        )

    app.state.engines = engines
    app.state.cache = ResultCache(settings.cache_max_size, settings.cache_ttl_seconds)
    app.state.claude = get_claude_service(settings)
    yield

    if embedding_service is not None:
        await embedding_service.close()
    logger.info("Shutting down %s", settings.app_name)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Natural-language property search for Arabic and English queries: "
            "criteria extraction, exact catalog matching and similarity ranking."
        ),
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Configure CORS for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Application status plus the loaded catalog of each locale."""
        engines = getattr(app.state, "engines", {})
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "locales": {
                locale: {
                    "properties": len(engine.catalog),
                    "semantic": engine.supports_semantic,
                    "lexicon_version": engine.lexicon.version,
                }
                for locale, engine in engines.items()
            },
            "voice": getattr(app.state, "claude", None) is not None,
        }

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    return app


# Create the application instance
app = create_app()
