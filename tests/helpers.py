"""Test doubles shared across the suite."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from estate_crawler.connectors import Connector, ListingCandidate, ListingDetail, SearchParams
from estate_crawler.engine import LinkStatus
from estate_crawler.errors import FetchError


class FakeClock:
    """Monotonic clock whose ``sleep`` only moves time forward."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnector(Connector):
    """Connector answering from in-memory pages instead of the network.

    ``pages`` maps ``(area_key, page)`` to listing URLs; missing pages are empty.
    ``addresses`` maps a URL to its address; other URLs get a unique Otaru address.
    """

    key = "fake"
    name = "Fake Portal"
    base_url = "https://portal.example"
    supports_area_search = True

    def __init__(
        self,
        pages: Mapping[tuple[str, int], list[str]] | None = None,
        addresses: Mapping[str, str] | None = None,
        *,
        key: str | None = None,
        site_wide: bool = False,
        slugs: Mapping[str, str] | None = None,
        failing_pages: Iterable[tuple[str, int]] = (),
        failing_details: Iterable[str] = (),
        on_detail: Callable[[str], None] | None = None,
    ) -> None:
        if key is not None:
            self.key = key
        super().__init__(fetcher=None)  # type: ignore[arg-type]
        self.pages = dict(pages or {})
        self.addresses = dict(addresses or {})
        self.supports_area_search = not site_wide
        self.slugs = dict(slugs or {"小樽市": "otaru", "余市町": "yoichi"})
        self.failing_pages = set(failing_pages)
        self.failing_details = set(failing_details)
        self.on_detail = on_detail
        self.search_calls: list[tuple[str, int]] = []
        self.detail_calls: list[str] = []

    def area_slug(self, area_name: str) -> str | None:
        return self.slugs.get(area_name)

    def search_url(self, params: SearchParams) -> str:
        return f"{self.base_url}/list/{params.area.key}?page={params.page}"

    def parse_candidates(self, html: str) -> list[ListingCandidate]:
        return []

    def parse_detail(self, url: str, html: str) -> ListingDetail:
        return ListingDetail(url=url, title="fake")

    def search(self, params: SearchParams) -> list[ListingCandidate]:
        self.search_calls.append((params.area.key, params.page))
        if (params.area.key, params.page) in self.failing_pages:
            raise FetchError(self.search_url(params), 3)
        return [ListingCandidate(url=url) for url in self.pages.get((params.area.key, params.page), [])]

    def fetch_detail(self, url: str) -> ListingDetail:
        self.detail_calls.append(url)
        if self.on_detail is not None:
            self.on_detail(url)
        if url in self.failing_details:
            raise FetchError(url, 3)
        address = self.addresses.get(url)
        if address is None:
            address = f"北海道小樽市稲穂{len(self.detail_calls)}丁目{len(self.detail_calls)}番1号"
        return ListingDetail(
            url=url,
            title=f"物件 {url.rsplit('/', 2)[-2]}",
            price=19_800_000,
            address_raw=address,
            building_area=98.5,
            land_area=165.0,
            built_year=2005,
            rooms=4,
            units=1,
            property_type="一戸建て",
            external_id=url.rstrip("/").rsplit("/", 1)[-1],
        )


class FakeLinkFetcher:
    """Answers ``check_link`` from a URL to (status, final URL) map; unknown URLs are live."""

    def __init__(
        self,
        answers: Mapping[str, tuple[int, str]] | None = None,
        failing: Iterable[str] = (),
        on_check: Callable[[str], None] | None = None,
    ) -> None:
        self.answers = dict(answers or {})
        self.failing = set(failing)
        self.on_check = on_check
        self.calls: list[str] = []

    def check_link(self, url: str, options=None) -> LinkStatus:  # noqa: ANN001
        self.calls.append(url)
        if self.on_check is not None:
            self.on_check(url)
        if url in self.failing:
            raise FetchError(url, 3)
        status_code, final_url = self.answers.get(url, (200, url))
        return LinkStatus(url=url, status_code=status_code, final_url=final_url)


def listing_urls(prefix: str, count: int, start: int = 1) -> list[str]:
    return [f"https://portal.example/detail/{prefix}{index:03d}/" for index in range(start, start + count)]


