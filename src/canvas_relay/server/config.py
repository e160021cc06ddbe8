from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from canvas_relay.protocol.constants import MAX_HISTORY


class Settings(BaseSettings):
    """
    Runtime config for the relay.

    - Loaded from environment variables (`CANVAS_RELAY_*`)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CANVAS_RELAY_",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = "0.0.0.0"
    # Hosted platforms (Azure App Service etc.) hand us a bare PORT.
    port: int = Field(default=3000, validation_alias=AliasChoices("CANVAS_RELAY_PORT", "PORT"))
    ws_path: str = "/ws"

    # Replay log capacity; oldest events are evicted first.
    max_history: int = Field(default=MAX_HISTORY, ge=1)

    # Upper bound on one delivery so a stalled participant can't hold up fan-out.
    send_timeout_s: float = Field(default=5.0, gt=0)
    # Frames queued per participant before it is treated as stalled and dropped.
    max_pending: int = Field(default=256, ge=1)

    # Send `history` with an empty list when the log is empty (False: skip it).
    send_empty_history: bool = True

    # Debugging
    debug: bool = False
    debug_log_msgs: bool = False
    json_logs: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
