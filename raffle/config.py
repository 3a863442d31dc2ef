import os
from functools import lru_cache


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Settings:
    """Runtime configuration, read once from the environment."""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./raffle.db")
        self.admin_secret = os.getenv("ADMIN_SECRET")

        # Ingestion
        self.accepted_code = os.getenv("RAFFLE_ACCEPTED_CODE", "9")
        self.window_start_hour = _env_int("RAFFLE_WINDOW_START_HOUR", 19)
        self.window_end_hour = _env_int("RAFFLE_WINDOW_END_HOUR", 21)
        self.enforce_window = _env_bool("RAFFLE_ENFORCE_WINDOW", False)
        # Clock the window hours are read on, an IANA zone name
        self.window_timezone = os.getenv("RAFFLE_TIMEZONE", "UTC")

        # Draw
        self.default_winners = _env_int("RAFFLE_DEFAULT_WINNERS", 5)

        # External collaborators
        self.channel_id = os.getenv("CHANNEL_ID", "@my_raffle_channel")
        self.channel_check_url = os.getenv("CHANNEL_CHECK_URL")
        self.channel_check_token = os.getenv("CHANNEL_CHECK_TOKEN")
        self.sms_gateway_url = os.getenv("SMS_GATEWAY_URL")
        self.sms_gateway_token = os.getenv("SMS_GATEWAY_TOKEN")

        self.cors_origins = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
        ]
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
