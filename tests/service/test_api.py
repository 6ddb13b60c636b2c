"""
Service-level tests for the HTTP API.

Runs the real application lifespan against a temporary downloads directory:
the watcher, sweeper and pipeline are all live. Assertions are made on what a
client can observe through the API and on disk.
"""

import pytest
from fastapi.testclient import TestClient

from app.utils.config import get_settings
from domains.file_ingest.collectors.fragments import parse_fragment_path
from tests.helpers import write_zip

STAMP = "20260205T124843Z"


@pytest.fixture
def client(tmp_path, monkeypatch):
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    monkeypatch.setenv("INTAKE_DOWNLOADS_DIR", str(downloads))
    monkeypatch.setenv("INTAKE_OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.setenv("INTAKE_ROUTING_MANIFEST", str(tmp_path / "manifest.json"))
    monkeypatch.setenv("INTAKE_STOCK_METADATA_CACHE", str(tmp_path / "stock.json"))
    monkeypatch.setenv("INTAKE_USE_WEB_SCRAPING", "false")
    monkeypatch.setenv("INTAKE_USE_LOCAL_MODEL", "false")
    monkeypatch.setenv("INTAKE_USE_REMOTE_LLM", "false")
    monkeypatch.setenv("INTAKE_ANALYTICS_ENABLED", "false")
    get_settings.cache_clear()

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "The Intake"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["watcher_running"] is True
    assert health["pending_groups"] == 0


def test_pending_group_is_listed_then_abandoned_by_manual_sweep(client):
    pipeline = client.app.state.pipeline
    staging = get_settings().get_downloads_dir().parent / "staging"
    part = write_zip(staging / f"Shoot-{STAMP}-3-002.zip", {"a.wav": b"x"})
    pipeline.register_fragment(parse_fragment_path(part))

    groups = client.get("/admin/groups").json()
    assert len(groups) == 1
    assert groups[0]["folder_name"] == "Shoot"
    assert groups[0]["received_parts"] == [2]
    assert groups[0]["complete"] is False

    pipeline.sweeper.staleness_seconds = -1
    report = client.post("/admin/sweep").json()

    assert report == {"completed": [], "abandoned": [f"Shoot-{STAMP}-3"]}
    assert client.get("/admin/groups").json() == []
    assert any(e["event_type"] == "group_abandoned" for e in client.get("/admin/events").json())


def test_classify_on_demand(client, tmp_path):
    target = tmp_path / "Big Impact Hit.wav"
    target.write_bytes(b"RIFF")

    response = client.post("/admin/classify", json={"path": str(target)})

    assert response.status_code == 200
    body = response.json()
    assert body["asset_type"] == "SFX"
    assert body["method"] == "heuristic"
    assert body["confidence"] == "none"
    assert client.app.state.pipeline.router.get(str(target)) is not None


def test_classify_missing_file_is_404(client, tmp_path):
    response = client.post("/admin/classify", json={"path": str(tmp_path / "nope.wav")})

    assert response.status_code == 404


def test_events_limit_must_be_positive(client):
    assert client.get("/admin/events", params={"limit": -1}).status_code == 422
    assert client.get("/admin/events", params={"limit": 0}).status_code == 422
    assert client.get("/admin/events", params={"limit": 1}).status_code == 200
