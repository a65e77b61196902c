from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | text

    # Google Calendar transport settings
    GOOGLE_CALENDAR_API_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    CALENDAR_REQUEST_TIMEOUT: float = 30.0
    CALENDAR_MAX_RETRIES: int = 3
    CALENDAR_MAX_RESULTS: int = 250
    CALENDAR_MAX_CONCURRENT_FETCHES: int = 8

    # =================================================================
    # LAYOUT SETTINGS - day/week grid geometry
    # =================================================================
    DEFAULT_TIMEZONE: str = "UTC"
    PIXELS_PER_HOUR: float = 44.0
    MIN_EVENT_MINUTES: int = 15
    STICKY_MARGIN: float = 8.0
    STICKY_BIAS_HOUR: int = 12

    # Task due-date markers
    TASK_MARKER_MINUTES: int = 30
    TASK_MARKER_COLORS: dict[str, str] = {
        "TO_DO": "#94a3b8",
        "IN_PROGRESS": "#60a5fa",
        "PAUSED": "#9ca3af",
        "IN_REVIEW": "#fbbf24",
    }

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_layout_config(self) -> dict:
        """
        Get grid geometry configuration.
        Request parameters override these values per call.
        """
        return {
            "pixels_per_hour": self.PIXELS_PER_HOUR,
            "min_event_minutes": self.MIN_EVENT_MINUTES,
            "sticky_margin": self.STICKY_MARGIN,
            "sticky_bias_hour": self.STICKY_BIAS_HOUR,
            "timezone": self.DEFAULT_TIMEZONE,
        }

    def marker_color(self, status: str) -> str | None:
        """Get the configured marker colour for a task status."""
        return self.TASK_MARKER_COLORS.get(status.upper())


settings = Settings()
