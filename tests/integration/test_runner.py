from __future__ import annotations

import json
from pathlib import Path

import pytest

from eplan_extractor.common.config_loader import DeliverySettings, RunConfig
from eplan_extractor.common.errors import ConfigError, DeliveryError, SessionError
from eplan_extractor.common.logging import get_logger
from eplan_extractor.common.models import DeliveryResult, Selectors
from eplan_extractor.pipeline import runner
from tests.fakes import FakeBrowser, FakeElement, FakeResponse, FakeSession, row

ENDPOINT = "https://collector.example.test/exec"


def _config(**overrides) -> RunConfig:
    values = dict(
        dashboard_url="https://eplan.test/dashboard/dashboard",
        archived_url="https://eplan.test/dashboard/dashboard?Arc=True",
        username="ops@example.test",
        password="secret",
        delivery=DeliverySettings(endpoint=ENDPOINT, user_email="ops@example.test"),
        timeout_ms=50,
    )
    values.update(overrides)
    return RunConfig(**values)


def _dashboard(*rows: str, **kwargs) -> FakeSession:
    selectors = Selectors()
    return FakeSession(
        {
            selectors.button: [FakeElement("Continue")],
            selectors.record_row: [FakeElement(text) for text in rows],
        },
        **kwargs,
    )


@pytest.fixture
def sent(monkeypatch):
    requests_sent: list[dict] = []

    def fake_request(self, **kwargs):
        requests_sent.append(kwargs)
        return FakeResponse(200, '{"result":"ok"}')

    monkeypatch.setattr("requests.Session.request", fake_request)
    return requests_sent


def _run(config: RunConfig, tmp_path: Path):
    return runner.run_pipeline(config, run_id="run-test", data_dir=tmp_path, logger=get_logger("test"), run_date="2026-02-17")


@pytest.mark.integration
def test_run_success_delivers_scraped_records(monkeypatch, tmp_path: Path, sent):
    browser = FakeBrowser(_dashboard(row(1), "broken", row(3)))
    monkeypatch.setattr(runner, "BrowserManager", browser)

    outcome = _run(_config(), tmp_path)

    assert outcome.status == "success"
    assert outcome.records_scraped == 2
    assert outcome.records_skipped == 1
    assert outcome.delivered is True
    assert outcome.response_body == '{"result":"ok"}'
    assert browser.closed is True
    body = json.loads(sent[0]["data"])
    assert body["TotalProjects"] == 2
    assert body["UserEmail"] == "ops@example.test"
    assert body["SourceUrl"] == "https://eplan.test/dashboard/dashboard"
    assert {p["Archived"] for p in body["Projects"]} == {"Active"}

    summary = json.loads((tmp_path / "out" / "reports" / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["status"] == "success"
    assert (tmp_path / "out" / "run-test" / "batch.json").exists()


@pytest.mark.integration
def test_login_failure_aborts_before_scrape_and_releases_browser(monkeypatch, tmp_path: Path, sent):
    session = _dashboard(row(1), missing={Selectors().logged_in_marker})
    browser = FakeBrowser(session)
    monkeypatch.setattr(runner, "BrowserManager", browser)

    outcome = _run(_config(), tmp_path)

    assert outcome.status == "login_failed"
    assert outcome.error_code == "AUTH_ERROR"
    assert browser.closed is True
    assert sent == []
    assert ("query", Selectors().record_row) not in session.calls
    assert runner.EXIT_CODE_BY_STATUS[outcome.status] == 20


@pytest.mark.integration
def test_empty_batch_is_still_delivered(monkeypatch, tmp_path: Path, sent):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard()))

    outcome = _run(_config(), tmp_path)

    body = json.loads(sent[0]["data"])
    assert outcome.status == "success"
    assert body["TotalProjects"] == 0
    assert body["Projects"] == []


@pytest.mark.integration
def test_scrape_error_delivers_zero_records_as_partial(monkeypatch, tmp_path: Path, sent):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1))))
    monkeypatch.setattr(
        runner,
        "scrape_records",
        lambda *_args, **_kwargs: runner.ScrapeResult(error=runner.ScrapeError("navigated mid-scrape")),
    )

    outcome = _run(_config(), tmp_path)

    assert outcome.status == "partial"
    assert json.loads(sent[0]["data"])["TotalProjects"] == 0
    assert runner.EXIT_CODE_BY_STATUS[outcome.status] == 10


@pytest.mark.integration
def test_scrape_error_aborts_when_configured(monkeypatch, tmp_path: Path, sent):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1))))
    monkeypatch.setattr(
        runner,
        "scrape_records",
        lambda *_args, **_kwargs: runner.ScrapeResult(error=runner.ScrapeError("navigated mid-scrape")),
    )

    outcome = _run(_config(abort_on_scrape_error=True), tmp_path)

    assert outcome.status == "scrape_failed"
    assert sent == []


@pytest.mark.integration
def test_delivery_failure_is_terminal(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1))))
    monkeypatch.setattr(
        runner,
        "deliver",
        lambda *_args, **_kwargs: DeliveryResult(
            success=False, response_body="quota exceeded", status_code=429, error=DeliveryError("HTTP 429")
        ),
    )

    outcome = _run(_config(), tmp_path)

    assert outcome.status == "delivery_failed"
    assert outcome.response_body == "quota exceeded"
    assert outcome.error_code == "DELIVERY_ERROR"


@pytest.mark.integration
def test_archived_view_not_visited_by_default(monkeypatch, tmp_path: Path, sent):
    archived = _dashboard(row(9))
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1)), archived))

    outcome = _run(_config(), tmp_path)

    assert outcome.records_scraped == 1
    assert archived.calls == []


@pytest.mark.integration
def test_archived_view_harvested_when_enabled(monkeypatch, tmp_path: Path, sent):
    archived = _dashboard(row(9))
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1)), archived))

    outcome = _run(_config(harvest_archived=True), tmp_path)

    body = json.loads(sent[0]["data"])
    assert outcome.records_scraped == 2
    assert [(p["ReferenceId"], p["Archived"]) for p in body["Projects"]] == [(1, "Active"), (9, "Archived")]
    assert archived.calls[0] == ("navigate", "https://eplan.test/dashboard/dashboard?Arc=True")


@pytest.mark.integration
def test_browser_launch_failure_reports_session_failed(monkeypatch, tmp_path: Path, sent):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(fail_start=True))

    outcome = _run(_config(), tmp_path)

    assert outcome.status == "session_failed"
    assert outcome.error_code == SessionError.error_code
    assert sent == []


@pytest.mark.integration
def test_missing_credentials_fail_before_browser_launch(monkeypatch, tmp_path: Path):
    browser = FakeBrowser(_dashboard())
    monkeypatch.setattr(runner, "BrowserManager", browser)

    with pytest.raises(ConfigError):
        _run(_config(password=None), tmp_path)
    assert browser.init_kwargs == {}


@pytest.mark.integration
def test_optional_cookie_and_screenshot_uploads(monkeypatch, tmp_path: Path, sent):
    monkeypatch.setattr(runner, "BrowserManager", FakeBrowser(_dashboard(row(1))))
    delivery = DeliverySettings(
        endpoint=ENDPOINT,
        cookies_endpoint="https://collector.example.test/cookies",
        screenshot_endpoint="https://collector.example.test/shots",
    )

    outcome = _run(_config(delivery=delivery), tmp_path)

    assert outcome.status == "success"
    assert [request["url"] for request in sent] == [
        ENDPOINT,
        "https://collector.example.test/cookies",
        "https://collector.example.test/shots",
    ]
