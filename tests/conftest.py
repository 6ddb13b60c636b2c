import pytest

from app.utils.config import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to ``tmp_path`` with every network strategy off."""
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    return Settings(
        _env_file=None,
        downloads_dir=downloads,
        output_dir=tmp_path / "output",
        use_local_model=False,
        use_remote_llm=False,
        use_web_scraping=False,
        stock_metadata_cache=tmp_path / "stock_metadata.json",
        routing_manifest=tmp_path / "routing_manifest.json",
        analytics_enabled=False,
        analytics_queue_file=tmp_path / "analytics_queue.json",
        worker_threads=1,
    )
