"""
backend/matchhub/config.py

Purpose:
    Central settings loading for the aggregation engine, provider adapters,
    cache layer and HTTP surface.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    BACKEND_CORS_ORIGINS: str = "http://localhost:8081"

    # Competition-API (football-data.org v4)
    COMPETITION_API_BASE_URL: str = "https://api.football-data.org/v4"
    COMPETITION_API_KEY: str = ""

    # Sports-Feed (MSN Sports)
    SPORTS_FEED_BASE_URL: str = "https://api.msn.com/sports"
    SPORTS_FEED_API_KEY: str = ""
    SPORTS_FEED_LOCALE: str = "en-us"
    SPORTS_FEED_TZ_OFFSET: str = "0"
    # League id substrings that mark a match as Sports-Feed owned (comma separated)
    SPORTS_FEED_SPORT_PREFIXES: str = "Soccer_,Basketball_"

    # Broadcast-Feed (ESPN public site API, no key)
    BROADCAST_FEED_BASE_URL: str = "https://site.api.espn.com/apis/site/v2/sports/soccer"

    # HTTP transport shared by all adapters
    PROVIDER_HTTP_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_HTTP_MAX_RETRIES: int = 1
    PROVIDER_HTTP_RETRY_BASE_DELAY: float = 0.5
    PROVIDER_CIRCUIT_FAILURE_THRESHOLD: int = 5
    PROVIDER_CIRCUIT_RECOVERY_SECONDS: int = 60

    # Orchestrator
    PROVIDER_CALL_TIMEOUT_SECONDS: float = 12.0
    PROVIDER_PREFERENCE: str = "sports_feed,competition_api,broadcast_feed"
    RECENT_MATCHES_LIMIT: int = 20
    H2H_HISTORY_LIMIT: int = 50

    # Team search
    TEAM_SEARCH_DEFAULT_LEAGUES: str = "BSA,CL,PD,PL"
    TEAM_SEARCH_MIN_QUERY_LENGTH: int = 2

    # Cache layer: "memory" or "mongo"
    CACHE_BACKEND: str = "memory"
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "matchhub"
    CACHE_COLLECTION: str = "provider_cache"

    # Cache TTLs per call kind
    CACHE_TTL_LIVE_SCHEDULE_SECONDS: int = 60
    CACHE_TTL_SCHEDULE_SECONDS: int = 600
    CACHE_TTL_EMPTY_SCHEDULE_SECONDS: int = 300
    CACHE_TTL_MATCH_DETAILS_SECONDS: int = 300
    CACHE_TTL_LINEUPS_SECONDS: int = 3600
    CACHE_TTL_STATISTICS_SECONDS: int = 300
    CACHE_TTL_TIMELINE_SECONDS: int = 300
    CACHE_TTL_INJURIES_SECONDS: int = 3600
    CACHE_TTL_STANDINGS_SECONDS: int = 3600
    CACHE_TTL_TEAM_HISTORY_SECONDS: int = 1800
    CACHE_TTL_TOP_PLAYERS_SECONDS: int = 21600
    CACHE_TTL_PLAYER_STATS_SECONDS: int = 43200
    CACHE_TTL_LEAGUE_TEAMS_SECONDS: int = 604800
    CACHE_TTL_POLL_SECONDS: int = 300

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }

    @staticmethod
    def split_csv(value: str) -> list[str]:
        return [part.strip() for part in str(value or "").split(",") if part.strip()]


settings = Settings()
