"""健美家: Hokkaido investment properties with ``/n-{page}/`` path pagination."""

from __future__ import annotations

import re

from .. import extract
from ..base import Connector, paginate_path
from ..types import ListingCandidate, ListingDetail, SearchParams

LIST_URL = "https://www.kenbiya.com/pp0/h/hokkaido/"

_LISTING = re.compile(r"/property/(\d+)/$")
_RE_LISTING = re.compile(r"/pp\d/h/hokkaido/[^/]+/re_([0-9a-z]+)/$")

APARTMENT = "アパート"


class KenbiyaConnector(Connector):
    key = "kenbiya"
    name = "健美家"
    base_url = "https://www.kenbiya.com"
    supports_area_search = False
    listing_patterns = (_LISTING, _RE_LISTING)

    def search_url(self, params: SearchParams) -> str:
        return paginate_path(LIST_URL, "n-{page}", params.page)

    def parse_candidates(self, html: str) -> list[ListingCandidate]:
        return extract.collect_links(html, self.base_url, self.listing_patterns)

    def parse_detail(self, url: str, html: str) -> ListingDetail:
        property_type = (
            extract.optional_field(extract.detect_property_type, html, url=url) or "一戸建て"
        )
        if property_type == APARTMENT:
            rooms = None
            units = extract.optional_field(extract.extract_units, html, url=url)
        else:
            rooms = extract.optional_field(extract.extract_rooms, html, url=url)
            units = 1
        pattern = _LISTING if _LISTING.search(url) else _RE_LISTING
        return ListingDetail(
            **self.common_fields(url, html),
            rooms=rooms,
            units=units,
            property_type=property_type,
            external_id=extract.optional_field(
                lambda _html: extract.extract_external_id(url, pattern), html, url=url
            ),
            raw=self.raw_payload(url),
        )


__all__ = ["KenbiyaConnector", "LIST_URL"]
