"""HTTP trigger surface: start batch runs, cancel them and inspect progress."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from .config import ConfigRepository, CrawlMode
from .connectors import ConnectorRegistry
from .errors import PersistenceError, SiteDisabledError, UnknownSiteError
from .link_checker import LinkChecker
from .orchestrator import CrawlOrchestrator
from .store import ListingStore

logger = structlog.get_logger("estate_crawler.api")

router = APIRouter(tags=["scraping"])


class ScrapeBatchResponse(BaseModel):
    site: str
    mode: CrawlMode
    processed: int = Field(..., ge=0)
    inserted: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    filtered: int = Field(default=0, ge=0)
    areas_completed: int = Field(..., ge=0)
    areas_total: int = Field(..., ge=0)
    errors: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    completed: bool
    cancelled: bool = False
    message: str = ""


class CancelResponse(BaseModel):
    site: str
    cancelled_areas: int = Field(..., ge=0)


class DeleteListingsResponse(BaseModel):
    site: str
    deleted: int = Field(..., ge=0)


class LinkCheckResponse(BaseModel):
    checked: int = Field(..., ge=0)
    deleted: int = Field(..., ge=0)
    errors: list[str] = Field(default_factory=list)
    completed: bool
    message: str = ""


class ProgressEntry(BaseModel):
    site_key: str
    area_key: str
    area_name: str | None = None
    current_page: int
    page_offset: int = 0
    total_pages: int | None = None
    processed_count: int
    inserted_count: int
    skipped_count: int
    consecutive_skips: int
    status: str
    mode: str
    error_message: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    last_run_at: str | None = None


class PortalSite(BaseModel):
    key: str
    name: str
    base_url: str
    supports_area_search: bool
    enabled: bool
    listings: int = Field(default=0, ge=0)


def get_orchestrator(request: Request) -> CrawlOrchestrator:
    return request.app.state.crawler.orchestrator


def get_store(request: Request) -> ListingStore:
    return request.app.state.crawler.store


def get_registry(request: Request) -> ConnectorRegistry:
    return request.app.state.crawler.registry


def get_repository(request: Request) -> ConfigRepository:
    return request.app.state.crawler.repository


def get_link_checker(request: Request) -> LinkChecker:
    return request.app.state.crawler.link_checker


def _known_site(registry: ConnectorRegistry, site: str) -> str:
    connector = registry.get(site)
    if connector is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown portal site: {site}")
    return connector.key


@router.post("/jobs/scrape-batch", response_model=ScrapeBatchResponse)
def scrape_batch(
    site: str = Query(..., description="Portal site key, e.g. athome"),
    mode: CrawlMode = Query(default=CrawlMode.INITIAL, description="initial or incremental"),
    reset: bool = Query(default=False, description="Delete the site's progress rows first"),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> ScrapeBatchResponse:
    try:
        summary = orchestrator.run(site, mode=mode, reset=reset)
    except UnknownSiteError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SiteDisabledError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    logger.info("scrape_batch_finished", site=summary.site, inserted=summary.inserted)
    return ScrapeBatchResponse(**summary.to_dict())


@router.post("/portal-sites/{key}/cancel", response_model=CancelResponse)
def cancel_site(
    key: str,
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
    registry: ConnectorRegistry = Depends(get_registry),
) -> CancelResponse:
    site_key = _known_site(registry, key)
    try:
        count = orchestrator.tracker.request_cancel(site_key)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return CancelResponse(site=site_key, cancelled_areas=count)


@router.post("/portal-sites/{key}/delete-listings", response_model=DeleteListingsResponse)
def delete_listings(
    key: str,
    store: ListingStore = Depends(get_store),
    registry: ConnectorRegistry = Depends(get_registry),
) -> DeleteListingsResponse:
    site_key = _known_site(registry, key)
    try:
        deleted = store.delete_listings(site_key)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.info("listings_deleted", site=site_key, rows=deleted)
    return DeleteListingsResponse(site=site_key, deleted=deleted)


@router.post("/jobs/check-links", response_model=LinkCheckResponse)
def check_links(
    limit: int | None = Query(default=None, ge=1, description="Listings to check this run"),
    checker: LinkChecker = Depends(get_link_checker),
) -> LinkCheckResponse:
    return LinkCheckResponse(**checker.run(limit).to_dict())


@router.get("/scrape-progress", response_model=list[ProgressEntry])
def scrape_progress(
    site: str | None = Query(default=None, description="Restrict to one portal site"),
    store: ListingStore = Depends(get_store),
    registry: ConnectorRegistry = Depends(get_registry),
) -> list[ProgressEntry]:
    site_key = _known_site(registry, site) if site else None
    try:
        rows = store.list_progress(site_key)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ProgressEntry(**row.to_dict()) for row in rows]


@router.get("/portal-sites", response_model=list[PortalSite])
def portal_sites(
    store: ListingStore = Depends(get_store),
    registry: ConnectorRegistry = Depends(get_registry),
    repository: ConfigRepository = Depends(get_repository),
) -> list[PortalSite]:
    sites: list[PortalSite] = []
    for connector in registry:
        sites.append(
            PortalSite(
                **connector.describe(),
                enabled=repository.site_config(connector.key).enabled,
                listings=store.count_listings(connector.key),
            )
        )
    return sites


def create_app(state) -> FastAPI:
    """Build the FastAPI application around an already wired ``AppState``.

    ``state`` must expose ``orchestrator``, ``store``, ``registry``,
    ``repository`` and ``link_checker``; routes reach them through
    ``app.state.crawler``.
    """

    app = FastAPI(title="estate-crawler", version="0.1.0")
    app.state.crawler = state
    app.include_router(router)
    return app


__all__ = ["create_app", "router"]
