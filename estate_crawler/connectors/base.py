"""Connector contract every portal adapter implements."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from ..address import extract_city, normalize_address
from ..engine.dedup import canonical_url
from ..engine.fetcher import FetchOptions, Fetcher, LinkStatus
from . import extract
from .types import ListingCandidate, ListingDetail, NormalizedListing, PropertyFields, SearchParams

GONE_STATUSES = frozenset({404, 410})
# Portals redirect withdrawn listings to pages whose URL carries one of these.
SOLD_OUT_MARKERS = ("soldout", "not_found")


def looks_delisted(link: LinkStatus, listing_patterns: Iterable[re.Pattern[str]] = ()) -> bool:
    """True when a stored listing URL no longer leads to a listing page.

    Gone statuses and sold-out redirects always count. With ``listing_patterns``
    a redirect to any URL that is not a listing page counts as well.
    """

    if link.status_code in GONE_STATUSES:
        return True
    if any(marker in link.final_url.lower() for marker in SOLD_OUT_MARKERS):
        return True
    final = canonical_url(link.final_url)
    patterns = list(listing_patterns)
    if not patterns:
        return False
    return not any(pattern.search(final) for pattern in patterns)


def paginate_query(url: str, param: str, page: int, *, omit_first: bool = True) -> str:
    """Set ``param=page`` in the query string; page 1 keeps the bare URL when ``omit_first``."""

    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != param]
    if page > 1 or not omit_first:
        query.append((param, str(page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def paginate_path(url: str, segment: str, page: int) -> str:
    """Append a page segment such as ``n-{page}`` to the path for pages after the first."""

    if page <= 1:
        return url
    parts = urlsplit(url)
    path = parts.path if parts.path.endswith("/") else f"{parts.path}/"
    path = f"{path}{segment.format(page=page)}/"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


class Connector(ABC):
    """Site-specific adapter: one index page per ``search`` call, one listing per ``fetch_detail``."""

    key: str = ""
    name: str = ""
    base_url: str = ""
    supports_area_search: bool = False
    listing_patterns: tuple[re.Pattern[str], ...] = ()

    def __init__(self, fetcher: Fetcher, logger: structlog.BoundLogger | None = None) -> None:
        self.fetcher = fetcher
        self.logger = logger or structlog.get_logger(f"estate_crawler.connectors.{self.key}")

    # ------------------------------------------------------------------
    # URL building
    # ------------------------------------------------------------------
    @abstractmethod
    def search_url(self, params: SearchParams) -> str:
        """URL of one index page."""

    def area_slug(self, area_name: str) -> str | None:
        """Site-specific key of an area; only meaningful for per-area sites."""

        return None

    def request_options(self, referer: str | None = None) -> FetchOptions:
        headers = {"Referer": referer or f"{self.base_url}/"}
        return FetchOptions(headers=headers)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------
    @abstractmethod
    def parse_candidates(self, html: str) -> list[ListingCandidate]:
        """Deduplicated listing candidates of an index page."""

    @abstractmethod
    def parse_detail(self, url: str, html: str) -> ListingDetail:
        """Structured fields of a detail page."""

    # ------------------------------------------------------------------
    # Contract used by the orchestrator
    # ------------------------------------------------------------------
    def search(self, params: SearchParams) -> list[ListingCandidate]:
        url = self.search_url(params)
        html = self.fetcher.fetch_html(url, self.request_options())
        candidates = self.parse_candidates(html)
        self.logger.info(
            "search_page",
            url=url,
            area=params.area.name,
            page=params.page,
            candidates=len(candidates),
        )
        return candidates

    def fetch_detail(self, url: str) -> ListingDetail:
        html = self.fetcher.fetch_html(url, self.request_options())
        return self.parse_detail(url, html)

    def normalize(self, detail: ListingDetail) -> NormalizedListing:
        address = detail.address_raw or ""
        return NormalizedListing(
            url=detail.url,
            title=detail.title,
            price=detail.price,
            external_id=detail.external_id,
            raw=dict(detail.raw),
            property=PropertyFields(
                address_raw=detail.address_raw,
                normalized_address=normalize_address(address),
                city=extract_city(address),
                building_area=detail.building_area,
                land_area=detail.land_area,
                built_year=detail.built_year,
                rooms=detail.rooms,
                units=detail.units,
                property_type=detail.property_type,
                nearest_station=detail.nearest_station,
                walk_minutes=detail.walk_minutes,
            ),
        )

    def common_fields(self, url: str, html: str) -> dict[str, Any]:
        """Fields every portal labels the same way; site rules add the rest."""

        station = extract.optional_field(extract.extract_station, html, url=url)
        return {
            "url": url,
            "title": extract.optional_field(extract.extract_title, html, url=url)
            or extract.UNKNOWN_TITLE,
            "price": extract.optional_field(extract.extract_price, html, url=url),
            "address_raw": extract.optional_field(extract.extract_address, html, url=url),
            "building_area": extract.optional_field(extract.extract_building_area, html, url=url),
            "land_area": extract.optional_field(extract.extract_land_area, html, url=url),
            "built_year": extract.optional_field(extract.extract_built_year, html, url=url),
            "nearest_station": station[0] if station else None,
            "walk_minutes": station[1] if station else None,
        }

    def raw_payload(self, url: str, **extra: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": url,
            "site": self.key,
            "scraped_at": datetime.now(timezone.utc).isoformat(),
        }
        payload.update(extra)
        return payload

    def is_delisted(self, link: LinkStatus) -> bool:
        return looks_delisted(link, self.listing_patterns)

    def describe(self) -> Mapping[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "base_url": self.base_url,
            "supports_area_search": self.supports_area_search,
        }


__all__ = [
    "Connector",
    "GONE_STATUSES",
    "SOLD_OUT_MARKERS",
    "looks_delisted",
    "paginate_path",
    "paginate_query",
]
