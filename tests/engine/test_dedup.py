from __future__ import annotations

from estate_crawler.engine import RunDedup, canonical_url


def test_canonical_url_strips_query_and_fragment() -> None:
    url = "HTTPS://WWW.Athome.co.jp/kodate/6978123456/?DOWN=1&BKLISTID=001#map"
    assert canonical_url(url) == "https://www.athome.co.jp/kodate/6978123456/"


def test_canonical_url_keeps_path_case() -> None:
    assert canonical_url("https://suumo.jp/chukoikkodate/__JJ_JJ010FJ100AbC") == (
        "https://suumo.jp/chukoikkodate/__JJ_JJ010FJ100AbC"
    )


def test_run_dedup_tracks_variants() -> None:
    seen = RunDedup()
    assert seen.check_and_add("https://www.kenbiya.com/property/123/?a=1") is False
    assert seen.check_and_add("https://www.kenbiya.com/property/123/") is True
    assert seen.check_and_add("https://www.kenbiya.com/property/123/#top") is True
    assert seen.check_and_add("https://www.kenbiya.com/property/124/") is False
