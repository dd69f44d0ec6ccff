"""Portal connectors: contract, field extraction rules and registry."""

from .base import Connector, looks_delisted, paginate_path, paginate_query
from .registry import ConnectorRegistry, build_registry
from .types import (
    AreaTarget,
    ListingCandidate,
    ListingDetail,
    NormalizedListing,
    PropertyFields,
    SearchParams,
)

__all__ = [
    "AreaTarget",
    "Connector",
    "ConnectorRegistry",
    "ListingCandidate",
    "ListingDetail",
    "NormalizedListing",
    "PropertyFields",
    "SearchParams",
    "build_registry",
    "looks_delisted",
    "paginate_path",
    "paginate_query",
]
