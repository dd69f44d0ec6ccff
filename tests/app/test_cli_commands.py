from __future__ import annotations

from typer.testing import CliRunner

from estate_crawler.app import app, scheduled_run
from estate_crawler.config import ScheduleConfig, ScheduleType, SiteConfig
from estate_crawler.engine import CrawlProgress, ProgressStatus

from tests.helpers import listing_urls

runner = CliRunner()


def test_cli_crawl_prints_summary(cli_state) -> None:
    result = runner.invoke(app, ["crawl", "fake", "--mode", "initial"])
    assert result.exit_code == 0, result.stdout
    assert "fake · initial" in result.stdout
    assert "inserted" in result.stdout
    assert cli_state.store.count_listings("fake") == 3


def test_cli_crawl_json(cli_state) -> None:
    result = runner.invoke(app, ["crawl", "fake", "--json"])
    assert result.exit_code == 0, result.stdout
    assert '"inserted": 3' in result.stdout
    assert '"completed": true' in result.stdout


def test_cli_crawl_unknown_site(cli_state) -> None:
    result = runner.invoke(app, ["crawl", "nope"])
    assert result.exit_code == 2
    assert "Unknown portal site: nope" in result.stdout


def test_cli_crawl_rejects_unknown_mode(cli_state) -> None:
    result = runner.invoke(app, ["crawl", "fake", "--mode", "weekly"])
    assert result.exit_code != 0
    assert cli_state.store.count_listings() == 0


def test_cli_progress(cli_state) -> None:
    empty = runner.invoke(app, ["progress"])
    assert empty.exit_code == 0
    assert "No progress recorded yet." in empty.stdout

    runner.invoke(app, ["crawl", "fake"])
    result = runner.invoke(app, ["progress", "fake"])
    assert result.exit_code == 0, result.stdout
    assert "小樽市" in result.stdout
    assert "completed" in result.stdout
    assert "2 (1 total)" in result.stdout


def test_cli_progress_unknown_site(cli_state) -> None:
    result = runner.invoke(app, ["progress", "homes"])
    assert result.exit_code == 2
    assert "Known sites: fake" in result.stdout


def test_cli_cancel(cli_state) -> None:
    nothing = runner.invoke(app, ["cancel", "fake"])
    assert nothing.exit_code == 0
    assert "Nothing to cancel for fake." in nothing.stdout

    cli_state.store.upsert_progress(
        CrawlProgress(site_key="fake", area_key="otaru", status=ProgressStatus.IN_PROGRESS)
    )
    result = runner.invoke(app, ["cancel", "fake"])
    assert result.exit_code == 0, result.stdout
    assert "Cancel requested for 1 area(s) of fake." in result.stdout
    assert cli_state.store.get_progress("fake", "otaru").status is ProgressStatus.CANCELLED


def test_cli_sites(cli_state) -> None:
    result = runner.invoke(app, ["sites"])
    assert result.exit_code == 0, result.stdout
    assert "Portal sites · 1" in result.stdout
    assert "Fake Portal" in result.stdout
    assert "per area" in result.stdout


def test_cli_disable_then_crawl(cli_state) -> None:
    result = runner.invoke(app, ["disable", "fake"])
    assert result.exit_code == 0, result.stdout
    assert "fake disabled (fake.yaml)" in result.stdout
    assert cli_state.repository.site_config("fake").enabled is False

    blocked = runner.invoke(app, ["crawl", "fake"])
    assert blocked.exit_code == 2
    assert "disabled" in blocked.stdout

    runner.invoke(app, ["enable", "fake"])
    assert cli_state.repository.site_config("fake").enabled is True


def test_cli_schedule_without_schedules(cli_state) -> None:
    result = runner.invoke(app, ["schedule", "--dry-run"])
    assert result.exit_code == 0
    assert "No site has a schedule" in result.stdout


def test_cli_schedule_dry_run(cli_state) -> None:
    cli_state.repository.save_site(
        SiteConfig(site_key="fake", schedule=ScheduleConfig(type=ScheduleType.INTERVAL, value=3600))
    )
    result = runner.invoke(app, ["schedule", "--dry-run"])
    assert result.exit_code == 0, result.stdout
    assert "Scheduled jobs" in result.stdout
    assert "site::fake" in result.stdout
    assert cli_state.scheduler.started is False


def test_cli_log_tail_and_list(cli_state, tmp_path) -> None:
    log_file = tmp_path / "logs" / "sites" / "fake.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.write_text("first\nsecond\nthird\n", encoding="utf-8")

    listed = runner.invoke(app, ["log", "list"])
    assert listed.exit_code == 0
    assert "fake.log" in listed.stdout

    result = runner.invoke(app, ["log", "tail", "--site", "fake", "-n", "2"])
    assert result.exit_code == 0, result.stdout
    assert "fake.log · last 2 lines" in result.stdout
    assert "second" in result.stdout
    assert "first" not in result.stdout


def test_cli_delete_listings_asks_first(cli_state) -> None:
    runner.invoke(app, ["crawl", "fake"])

    declined = runner.invoke(app, ["delete-listings", "fake"], input="n\n")
    assert declined.exit_code == 0
    assert "Nothing deleted." in declined.stdout
    assert cli_state.store.count_listings("fake") == 3

    result = runner.invoke(app, ["delete-listings", "fake", "--yes"])
    assert result.exit_code == 0, result.stdout
    assert "Deleted 3 listing(s) of fake." in result.stdout
    assert cli_state.store.count_listings("fake") == 0

    assert runner.invoke(app, ["delete-listings", "nope", "--yes"]).exit_code == 2


def test_cli_check_links(cli_state) -> None:
    runner.invoke(app, ["crawl", "fake"])
    sold = listing_urls("a", 1)[0]
    cli_state.fetcher.answers[sold] = (200, "https://portal.example/soldout/")

    result = runner.invoke(app, ["check-links", "--json"])

    assert result.exit_code == 0, result.stdout
    assert '"checked": 3' in result.stdout
    assert '"deleted": 1' in result.stdout
    assert cli_state.store.find_listing_by_url(sold) is None


def test_scheduled_run_drops_job_of_disabled_site(app_state) -> None:
    site = SiteConfig(site_key="fake", schedule=ScheduleConfig(type=ScheduleType.INTERVAL, value=3600))
    callback = scheduled_run(app_state)
    assert app_state.scheduler.schedule_site(site, callback) is True

    app_state.repository.save_site(site.model_copy(update={"enabled": False}))
    callback(site)

    assert app_state.scheduler.list_jobs() == []
    assert app_state.store.count_listings() == 0


def test_scheduled_run_crawls_enabled_site(app_state) -> None:
    site = SiteConfig(site_key="fake", schedule=ScheduleConfig(type=ScheduleType.INTERVAL, value=3600))
    callback = scheduled_run(app_state)
    app_state.scheduler.schedule_site(site, callback)

    callback(site)

    assert app_state.store.count_listings("fake") == 3
    assert [job["id"] for job in app_state.scheduler.list_jobs()] == ["site::fake"]
