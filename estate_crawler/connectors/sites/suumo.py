"""SUUMO: Hokkaido-wide used-house search paginated with ``pn``."""

from __future__ import annotations

import re

from .. import extract
from ..base import Connector, paginate_query
from ..types import ListingCandidate, ListingDetail, SearchParams

SEARCH_URL = (
    "https://suumo.jp/jj/bukken/ichiran/JJ010FJ001/"
    "?ar=010&bs=021&ta=01&cb=0.0&ct=9999999&kb=0&kt=9999999"
    "&mb=0&mt=9999999&et=9999999&cn=9999999"
)

_LEGACY_LISTING = re.compile(r"/chukoikkodate/__JJ_([^/]+)$")
_LISTING = re.compile(r"/chukoikkodate/hokkaido_/sc_[^/]+/nc_(\d+)/$")


class SuumoConnector(Connector):
    key = "suumo"
    name = "SUUMO"
    base_url = "https://suumo.jp"
    supports_area_search = False
    listing_patterns = (_LISTING, _LEGACY_LISTING)

    def search_url(self, params: SearchParams) -> str:
        return paginate_query(SEARCH_URL, "pn", params.page)

    def parse_candidates(self, html: str) -> list[ListingCandidate]:
        return extract.collect_links(html, self.base_url, self.listing_patterns)

    def parse_detail(self, url: str, html: str) -> ListingDetail:
        pattern = _LISTING if _LISTING.search(url) else _LEGACY_LISTING
        return ListingDetail(
            **self.common_fields(url, html),
            rooms=extract.optional_field(extract.extract_rooms, html, url=url),
            units=1,
            property_type="一戸建て",
            external_id=extract.optional_field(
                lambda _html: extract.extract_external_id(url, pattern), html, url=url
            ),
            raw=self.raw_payload(url),
        )


__all__ = ["SEARCH_URL", "SuumoConnector"]
