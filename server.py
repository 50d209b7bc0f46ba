"""
FastAPI route layer for product extraction and duplicate checks.

- POST /api/extract                 -> ExtractedProduct for a retailer URL
- POST /api/duplicates              -> DuplicateFinding[] for a candidate item
- POST /api/duplicates/confirm      -> ConfirmedDuplicate[] (strict verdicts)
- POST /api/events/duplicates       -> DuplicateFinding[] across an event
- GET  /api/categories[/{id}], /api/colors -> lookup tables for clients
- GET  /api/health
"""

import logging

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

import colors
import taxonomy
from config import Settings, get_settings
from duplicates import DuplicateEngine
from extractor import (
    ExtractionError,
    InvalidProductURLError,
    ProductPageFetchError,
    extract_from_url,
)
from llm import LLMConfigSynthesizer, LLMSimilarityComparator
from models import (
    ConfirmedDuplicate,
    DuplicateCheckRequest,
    DuplicateFinding,
    EventScanRequest,
    ExtractedProduct,
    ExtractionRequest,
)
from retailers import RetailerResolver

logger = logging.getLogger("server")


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    resolver: RetailerResolver | None = None,
    engine: DuplicateEngine | None = None,
) -> FastAPI:
    """Build the app with one resolver (and its cache) and one engine."""
    settings = settings or get_settings()

    if resolver is None:
        synthesizer = LLMConfigSynthesizer(settings) if settings.synthesize_configs and settings.llm_configured else None
        resolver = RetailerResolver(cache={}, synthesizer=synthesizer)
    if engine is None:
        engine = DuplicateEngine(LLMSimilarityComparator(settings) if settings.llm_configured else None)

    app = FastAPI(
        title="Wardrobe Coordinator API",
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.resolver = resolver
    app.state.engine = engine
    app.state.http_client = None

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=86400,
    )

    @app.on_event("startup")
    async def startup() -> None:
        app.state.http_client = httpx.AsyncClient()
        logger.info(
            f"Started: LLM {'configured' if settings.llm_configured else 'not configured'}, "
            f"config synthesis {'on' if resolver.synthesizer else 'off'}"
        )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        if app.state.http_client is not None:
            await app.state.http_client.aclose()
            app.state.http_client = None

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ExtractionError)
    async def extraction_failed(request: Request, exc: ExtractionError):
        return ORJSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(InvalidProductURLError)
    async def invalid_url(request: Request, exc: InvalidProductURLError):
        return ORJSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ProductPageFetchError)
    async def fetch_failed(request: Request, exc: ProductPageFetchError):
        return ORJSONResponse(status_code=502, content={"error": str(exc)})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def _register_routes(app: FastAPI) -> None:
    @app.post("/api/extract", response_model=ExtractedProduct)
    async def extract_product(body: ExtractionRequest, request: Request):
        """Extract a product from a retailer page."""
        product, metrics = await extract_from_url(
            body.url,
            request.app.state.resolver,
            client=request.app.state.http_client,
        )
        if metrics.fields_missing:
            logger.info(f"{metrics.retailer}: missing {', '.join(metrics.fields_missing)} for {metrics.url}")
        return product

    @app.post("/api/duplicates", response_model=list[DuplicateFinding])
    async def find_duplicates(body: DuplicateCheckRequest, request: Request):
        return await request.app.state.engine.find_duplicates(body.candidate, body.existing_items)

    @app.post("/api/duplicates/confirm", response_model=list[ConfirmedDuplicate])
    async def confirm_duplicates(body: DuplicateCheckRequest, request: Request):
        return await request.app.state.engine.confirm_duplicates(body.candidate, body.existing_items)

    @app.post("/api/events/duplicates", response_model=list[DuplicateFinding])
    async def scan_event(body: EventScanRequest, request: Request):
        """Pairwise duplicate scan over every item of an event."""
        return await request.app.state.engine.scan_event(body.items)

    @app.get("/api/categories")
    async def list_categories():
        return taxonomy.all_categories()

    @app.get("/api/categories/{category_id}")
    async def get_category(category_id: str):
        subcategories = taxonomy.subcategories(category_id)
        if not subcategories:
            raise HTTPException(status_code=404, detail="Category not found")
        return {"id": category_id, "name": taxonomy.category_name(category_id), "subcategories": subcategories}

    @app.get("/api/colors")
    async def list_colors():
        return [{"name": name, "value": colors.color_value(name)} for name in colors.PALETTE]

    @app.get("/api/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "ok",
            "llm_configured": state.settings.llm_configured,
            "cached_retailers": state.resolver.cached_hosts(),
        }


app = create_app()
