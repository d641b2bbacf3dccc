from __future__ import annotations

import pytest

from morningstack.config import Settings


@pytest.fixture
def config(tmp_path):
    """Settings pointing at a temp database, with every key set."""
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "test.db"),
        redis_url="",
        cron_secret="s3cret",
        github_token="gh-token",
        youtube_api_key="yt-key",
        producthunt_api_token="ph-token",
        openweathermap_api_key="owm-key",
        source_timeout=2.0,
    )
