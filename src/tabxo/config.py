"""Runtime configuration, overridable through ``TABXO_*`` environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TABXO_", env_file=".env", extra="ignore")

    # Match rules
    WINNING_SCORE: int = 5
    COUNTDOWN_SECONDS: float = 5.0
    MATCH_WINNER_COUNTDOWN: float = 10.0

    # Liveness
    HEARTBEAT_INTERVAL: float = 3.0
    HEARTBEAT_CHECK_INTERVAL: float = 3.0
    HEARTBEAT_TIMEOUT: float = 9.0
    HEARTBEAT_GRACE: float = 2.0

    # Rooms
    ROOM_TTL_SECONDS: float = 600.0
    ROOM_CODE_LENGTH: int = 4
    KEY_PREFIX: str = "ttt_room_"
    LEADERBOARD_KEY: str = "ticTacToeLeaderboard"

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
