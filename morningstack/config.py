from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_path: str = "morningstack.db"

    # Empty means in-memory cache (single process only)
    redis_url: str = ""
    cache_stale_grace: int = 24 * 60 * 60

    # Shared secret the scheduler sends as "Authorization: Bearer <secret>"
    cron_secret: str = ""

    timezone: str = "Asia/Tokyo"
    edition_cutover_hour: int = 12
    empty_edition_policy: Literal["publish", "draft", "rollback"] = "publish"

    source_timeout: float = 30.0
    http_timeout: float = 15.0
    widget_cache_ttl: int = 30 * 60

    github_token: str = ""
    youtube_api_key: str = ""
    producthunt_api_token: str = ""
    openweathermap_api_key: str = ""

    # Combined into a single r/a+b+c listing request (comma-separated)
    reddit_subreddits: str = "programming,webdev,javascript,typescript"

    # Repositories tracked for pull requests (comma-separated owner/name)
    github_pr_repos: str = "facebook/react,vercel/next.js"

    bluesky_query: str = "tech OR programming OR developer OR software"
    weather_city: str = "Tokyo"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
