"""at home: detached houses, searchable per municipality."""

from __future__ import annotations

import re

from .. import extract
from ..base import Connector, paginate_query
from ..types import ListingCandidate, ListingDetail, SearchParams

AREA_SLUGS = {
    "札幌市": "sapporo-city",
    "札幌市中央区": "sapporo_chuo-city",
    "札幌市北区": "sapporo_kita-city",
    "札幌市東区": "sapporo_higashi-city",
    "札幌市白石区": "sapporo_shiroishi-city",
    "札幌市豊平区": "sapporo_toyohira-city",
    "札幌市南区": "sapporo_minami-city",
    "札幌市西区": "sapporo_nishi-city",
    "札幌市厚別区": "sapporo_atsubetsu-city",
    "札幌市手稲区": "sapporo_teine-city",
    "札幌市清田区": "sapporo_kiyota-city",
    "小樽市": "otaru-city",
    "旭川市": "asahikawa-city",
    "函館市": "hakodate-city",
    "千歳市": "chitose-city",
    "江別市": "ebetsu-city",
    "苫小牧市": "tomakomai-city",
    "余市町": "yoichi-town",
    "ニセコ町": "niseko-town",
    "倶知安町": "kutchan-town",
}

_LISTING = re.compile(r"/kodate/(\d{10})/$")


class AthomeConnector(Connector):
    key = "athome"
    name = "アットホーム"
    base_url = "https://www.athome.co.jp"
    supports_area_search = True
    listing_patterns = (_LISTING,)
    list_url = "https://www.athome.co.jp/kodate/chuko/hokkaido/{slug}/list/"

    def area_slug(self, area_name: str) -> str | None:
        return AREA_SLUGS.get(area_name.strip())

    def search_url(self, params: SearchParams) -> str:
        return paginate_query(self.list_url.format(slug=params.area.key), "page", params.page)

    def parse_candidates(self, html: str) -> list[ListingCandidate]:
        return extract.collect_links(html, self.base_url, self.listing_patterns)

    def parse_detail(self, url: str, html: str) -> ListingDetail:
        return ListingDetail(
            **self.common_fields(url, html),
            rooms=extract.optional_field(extract.extract_rooms, html, url=url),
            units=1,
            property_type="一戸建て",
            external_id=extract.optional_field(
                lambda _html: extract.extract_external_id(url, _LISTING), html, url=url
            ),
            raw=self.raw_payload(url),
        )


__all__ = ["AREA_SLUGS", "AthomeConnector"]
