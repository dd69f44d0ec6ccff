"""Value types exchanged between connectors, the orchestrator and the store."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class AreaTarget:
    """One crawl target: progress key plus the human-readable area name."""

    key: str
    name: str


@dataclass(slots=True)
class SearchParams:
    area: AreaTarget
    page: int = 1
    property_types: tuple[str, ...] = ()


@dataclass(slots=True)
class ListingCandidate:
    """A listing URL found on an index page, with whatever preview the page offered."""

    url: str
    title: str | None = None
    price: int | None = None
    location_text: str | None = None


@dataclass(slots=True, frozen=True)
class ListingDetail:
    """Fields extracted from one detail page. Missing values are None."""

    url: str
    title: str
    price: int | None = None
    address_raw: str | None = None
    building_area: float | None = None
    land_area: float | None = None
    built_year: int | None = None
    rooms: int | None = None
    units: int | None = None
    property_type: str | None = None
    nearest_station: str | None = None
    walk_minutes: int | None = None
    external_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(slots=True)
class PropertyFields:
    """Physical-property columns shared by every listing of the same building."""

    address_raw: str | None
    normalized_address: str
    city: str | None
    building_area: float | None = None
    land_area: float | None = None
    built_year: int | None = None
    rooms: int | None = None
    units: int | None = None
    property_type: str | None = None
    nearest_station: str | None = None
    walk_minutes: int | None = None


@dataclass(slots=True)
class NormalizedListing:
    url: str
    title: str
    price: int | None
    external_id: str | None
    property: PropertyFields
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "AreaTarget",
    "ListingCandidate",
    "ListingDetail",
    "NormalizedListing",
    "PropertyFields",
    "SearchParams",
]
