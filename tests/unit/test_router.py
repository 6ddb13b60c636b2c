import json

from app.models.schemas import AssetType, ClassificationResult, Confidence
from domains.file_ingest.processors.router import LoggingRouter, ManifestRouter


def result(path: str, asset_type=AssetType.MUSIC) -> ClassificationResult:
    return ClassificationResult(
        asset_type=asset_type,
        confidence=Confidence.HIGH,
        method="web_lookup",
        duration_ms=12,
        asset_path=path,
        genre="Jazz",
    )


def test_manifest_records_results_keyed_by_path(tmp_path):
    manifest = tmp_path / "state" / "manifest.json"
    router = ManifestRouter(manifest)

    router.route(result("/out/b.wav"))
    router.route(result("/out/a.wav", AssetType.SFX))
    router.route(result("/out/b.wav", AssetType.VO))

    rows = json.loads(manifest.read_text())
    assert [row["asset_path"] for row in rows] == ["/out/a.wav", "/out/b.wav"]
    assert rows[1]["asset_type"] == "VO"
    assert rows[0]["confidence"] == "high"
    assert "routed_at" in rows[0]
    assert not manifest.with_name("manifest.json.tmp").exists()


def test_manifest_reloads_existing_entries(tmp_path):
    manifest = tmp_path / "manifest.json"
    ManifestRouter(manifest).route(result("/out/a.wav"))

    reopened = ManifestRouter(manifest)

    assert len(reopened) == 1
    assert reopened.get("/out/a.wav")["genre"] == "Jazz"


def test_unreadable_manifest_starts_fresh(tmp_path):
    manifest = tmp_path / "manifest.json"
    manifest.write_text("{broken")

    assert len(ManifestRouter(manifest)) == 0


def test_result_without_path_is_not_routed(tmp_path):
    router = ManifestRouter(tmp_path / "manifest.json")

    router.route(ClassificationResult(asset_type=AssetType.SFX, confidence=Confidence.NONE, method="heuristic", duration_ms=0))

    assert len(router) == 0


def test_logging_router_accepts_results():
    LoggingRouter().route(result("/out/a.wav"))
