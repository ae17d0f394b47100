"""
Main API module for the short-link engine.

Responsibilities:
    - Expose REST endpoints for creating and administering short links
    - Redirect `GET /s/{code}` to the target URL, counting the click and
      handing click capture to the background recorder
    - Expose click aggregates and summaries for dashboards

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - In-memory storage by default; PostgreSQL selected through configuration.
    - Domain errors are raised by the engine and translated to HTTP here, in
      one place. The three lookup failures (not found, expired, inactive)
      share a single 404 body so callers cannot tell them apart.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from shortlink_engine.analytics.aggregator import AnalyticsAggregator, AnalyticsScope
from shortlink_engine.analytics.geo import GeoLocator, get_geo_locator
from shortlink_engine.analytics.recorder import ClickRecorder
from shortlink_engine.config import Settings
from shortlink_engine.errors import (
    AllocationExhaustedError,
    DuplicateCodeError,
    LinkUnavailableError,
    ShortLinkError,
    StoreUnavailableError,
    ValidationError,
)
from shortlink_engine.manager.code_allocator import CodeAllocator
from shortlink_engine.manager.link_manager import LinkManager
from shortlink_engine.manager.resolver import RedirectResolver
from shortlink_engine.models import ClickContext
from shortlink_engine.schemas import (
    AggregatesResponse,
    ClickResponse,
    CreateMappingRequest,
    MappingResponse,
    StatusUpdateRequest,
)
from shortlink_engine.storage.storage_factory import get_storage

UNAVAILABLE_DETAIL = "Link not available"

_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (DuplicateCodeError, status.HTTP_409_CONFLICT),
    (LinkUnavailableError, status.HTTP_404_NOT_FOUND),
    (AllocationExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else X-Real-IP, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "")
    if real_ip.strip():
        return real_ip.strip()
    return request.client.host if request.client else None


def _click_context(request: Request) -> ClickContext:
    return ClickContext(
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") or None,
        referer=request.headers.get("referer") or "Direct",
    )


def create_app(
    settings: Optional[Settings] = None,
    storage=None,
    geo: Optional[GeoLocator] = None,
) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        settings (Settings, optional): Configuration; read from env if omitted.
        storage (optional): Store implementing BaseMappingStore and BaseEventLog;
            chosen by `get_storage()` if omitted.
        geo (GeoLocator, optional): Geo collaborator for click capture.

    Returns:
        FastAPI: A fully configured application with isolated storage, a
        running click recorder, and the engine components on `app.state`.
    """
    cfg = settings or Settings()
    log = logging.getLogger("shortlink.app")
    if not logging.getLogger().handlers:
        logging.basicConfig(level=cfg.LOG_LEVEL)

    # ----------------------------------------------------------------
    # Per-app instances (isolated for tests, swappable for production)
    # ----------------------------------------------------------------
    store = storage if storage is not None else get_storage(settings=cfg)
    recorder = ClickRecorder(
        store,
        geo=geo or get_geo_locator(cfg.GEO_LOOKUP_URL, cfg.GEO_LOOKUP_TIMEOUT),
        workers=cfg.RECORDER_WORKERS,
        queue_size=cfg.RECORDER_QUEUE_SIZE,
        task_deadline=cfg.RECORDER_TASK_DEADLINE,
    )
    allocator = CodeAllocator(store, length=cfg.CODE_LENGTH, max_attempts=cfg.CODE_MAX_ATTEMPTS)
    manager = LinkManager(store, allocator=allocator)
    resolver = RedirectResolver(store, recorder=recorder)
    aggregator = AnalyticsAggregator(store, store, max_days=cfg.ANALYTICS_MAX_DAYS)
    recorder.start()
    log.info("Short-link storage backend: %s", type(store).__name__)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        recorder.start()
        yield
        recorder.stop()

    app = FastAPI(
        title="Short-link engine",
        description="Short code allocation, redirect resolution and click analytics",
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.storage = store
    app.state.manager = manager
    app.state.resolver = resolver
    app.state.recorder = recorder
    app.state.aggregator = aggregator

    @app.exception_handler(ShortLinkError)
    async def _shortlink_error(request: Request, exc: ShortLinkError) -> JSONResponse:
        for exc_type, code in _ERROR_STATUS:
            if isinstance(exc, exc_type):
                break
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
        detail = UNAVAILABLE_DETAIL if isinstance(exc, LinkUnavailableError) else str(exc)
        if code >= 500:
            log.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": detail})

    # Health check
    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "recorder_running": recorder.running}

    # ----------------------------------------------------------------
    # Mappings
    # ----------------------------------------------------------------
    @app.post("/urls", status_code=status.HTTP_201_CREATED, response_model=MappingResponse)
    def create_mapping(req: CreateMappingRequest) -> MappingResponse:
        """
        Create a short link. A custom code is reserved atomically; without one
        a random code is generated.
        """
        mapping = manager.create_mapping(
            req.target_url,
            custom_code=req.custom_code,
            title=req.title,
            description=req.description,
            expires_at=req.expires_at,
            owner=req.owner,
        )
        return MappingResponse.from_mapping(mapping, cfg.BASE_URL)

    @app.get("/urls", response_model=List[MappingResponse])
    def list_mappings(owner: Optional[str] = Query(None, description="Restrict to one owner.")) -> List[MappingResponse]:
        return [MappingResponse.from_mapping(m, cfg.BASE_URL) for m in manager.list_mappings(owner)]

    @app.get("/urls/{code}", response_model=MappingResponse)
    def get_mapping(code: str) -> MappingResponse:
        return MappingResponse.from_mapping(manager.get_mapping(code), cfg.BASE_URL)

    @app.patch("/urls/{code}/status", response_model=MappingResponse)
    def set_status(code: str, req: StatusUpdateRequest) -> MappingResponse:
        return MappingResponse.from_mapping(manager.set_status(code, req.status), cfg.BASE_URL)

    @app.delete("/urls/{code}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_mapping(code: str) -> Response:
        manager.delete_mapping(code)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/urls/{code}/clicks", response_model=List[ClickResponse])
    def list_clicks(code: str, limit: int = Query(100, ge=1, le=1000)) -> List[ClickResponse]:
        return [ClickResponse.from_event(e) for e in aggregator.clicks_for_mapping(code, limit=limit)]

    # ----------------------------------------------------------------
    # Redirect
    # ----------------------------------------------------------------
    @app.get("/s/{code}")
    def redirect(code: str, request: Request) -> RedirectResponse:
        """Resolve the code and redirect; capture runs in the background."""
        target = resolver.resolve(code, _click_context(request))
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)

    # ----------------------------------------------------------------
    # Analytics
    # ----------------------------------------------------------------
    @app.get("/analytics/aggregates", response_model=AggregatesResponse)
    def aggregates(
        owner: Optional[str] = Query(None, description="Owner scope; global when omitted."),
        days: Optional[int] = Query(None, description="Lookback window in days."),
    ) -> AggregatesResponse:
        window = days if days is not None else cfg.ANALYTICS_DEFAULT_DAYS
        agg = aggregator.get_aggregates(AnalyticsScope(owner=owner), window_days=window)
        return AggregatesResponse.from_aggregates(agg, owner, window)

    @app.get("/analytics/summary")
    def summary(owner: Optional[str] = Query(None, description="Owner scope; global when omitted.")) -> Dict[str, int]:
        return aggregator.summary(AnalyticsScope(owner=owner))

    return app


# `uvicorn main:app` and `from main import app` continue to work.
app = create_app()
