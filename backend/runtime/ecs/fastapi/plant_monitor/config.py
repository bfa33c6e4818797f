from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import List, Mapping, Optional, Tuple

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` (24h, UTC) into an (hour, minute) pair."""
    try:
        hour_text, minute_text = value.strip().split(":", 1)
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM") from None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM")
    return hour, minute


@dataclass(frozen=True)
class AppConfig:
    """Holds process-level configuration for the API, scheduler and collaborators."""

    table_name: str
    aws_region: Optional[str] = None
    allowed_origins: str = "*"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0
    message_max_tokens: int = 120
    message_temperature: float = 0.8
    x_access_token: Optional[str] = None
    x_api_base_url: str = "https://api.twitter.com"
    social_timeout_seconds: float = 10.0
    auto_post_enabled: bool = False
    scheduler_enabled: bool = True
    daily_message_hour: int = 13
    daily_message_minute: int = 11
    evaluation_window_hours: int = 24
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ

        table_name = env.get("PLANT_TABLE")
        if not table_name:
            raise RuntimeError("Environment variable PLANT_TABLE is required.")

        hour, minute = parse_time_of_day(env.get("DAILY_MESSAGE_TIME", "13:11"))

        return cls(
            table_name=table_name,
            aws_region=env.get("AWS_REGION") or None,
            allowed_origins=env.get("ALLOWED_ORIGINS", "*"),
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
            openai_timeout_seconds=float(env.get("OPENAI_TIMEOUT_SECONDS", "30")),
            message_max_tokens=int(env.get("MESSAGE_MAX_TOKENS", "120")),
            message_temperature=float(env.get("MESSAGE_TEMPERATURE", "0.8")),
            x_access_token=env.get("X_ACCESS_TOKEN") or None,
            x_api_base_url=env.get("X_API_BASE_URL", "https://api.twitter.com"),
            social_timeout_seconds=float(env.get("SOCIAL_TIMEOUT_SECONDS", "10")),
            auto_post_enabled=_parse_bool(env.get("AUTO_POST_ENABLED"), False),
            scheduler_enabled=_parse_bool(env.get("SCHEDULER_ENABLED"), True),
            daily_message_hour=hour,
            daily_message_minute=minute,
            evaluation_window_hours=int(env.get("EVALUATION_WINDOW_HOURS", "24")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, **overrides: object) -> "AppConfig":
        # Unknown keys are ignored so callers can pass a loose mapping
        valid = {key: value for key, value in overrides.items() if hasattr(self, key)}
        return replace(self, **valid) if valid else self

    @property
    def cors_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        if not origins or origins == ["*"]:
            return ["*"]
        return origins

    @property
    def daily_message_time(self) -> str:
        return f"{self.daily_message_hour:02d}:{self.daily_message_minute:02d}"
