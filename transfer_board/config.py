from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from transfer_board.domain.rules.assignment import DEFAULT_ASSIGNMENT_TABLE
from transfer_board.domain.rules.time_slot import DEFAULT_CUTOFF_TEXT, SlotPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Transfer Board"
    host: str = "0.0.0.0"
    port: int = 8000

    transfers_api_url: str = (
        "https://rest.livo.ma/transfers?status=pending&products.refr=not_exists&_limit=1000&_sort=-timestamps.updated"
    )
    transfers_api_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    transfers_api_headers: dict[str, str] = Field(default_factory=dict)

    refresh_interval_seconds: float = Field(default=300.0, ge=1.0)
    time_cutoff: str = DEFAULT_CUTOFF_TEXT
    time_slot_policy: SlotPolicy = SlotPolicy.CALENDAR
    timezone: str = "Africa/Casablanca"
    assignment_table: dict[str, list[str]] = Field(
        default_factory=lambda: {name: list(cities) for name, cities in DEFAULT_ASSIGNMENT_TABLE.items()}
    )

    event_queue_size: int = Field(default=1000, ge=10, le=100000)

    log_level: str = "INFO"
    log_to_console: bool = True
    log_file: str = ""


settings = Settings()
