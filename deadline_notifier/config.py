"""Runtime configuration for the deadline notifier."""
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables from a local .env when present
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Settings resolved from environment variables."""

    database_url: str = "sqlite:///./deadline_notifier.db"
    sweep_interval_seconds: float = 60.0
    enable_sweep_worker: bool = False
    send_timeout_seconds: float = 10.0
    fanout_max_concurrency: int = 10
    overdue_grace_minutes: int = 60
    sender_email: str = "noreply@example.com"
    sms_gateway_url: str | None = None
    push_service_url: str | None = None
    app_base_url: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.environ.get("DATABASE_URL", cls.database_url),
            sweep_interval_seconds=float(os.environ.get("SWEEP_INTERVAL_SECONDS", cls.sweep_interval_seconds)),
            enable_sweep_worker=_env_bool("ENABLE_SWEEP_WORKER", cls.enable_sweep_worker),
            send_timeout_seconds=float(os.environ.get("SEND_TIMEOUT_SECONDS", cls.send_timeout_seconds)),
            fanout_max_concurrency=int(os.environ.get("FANOUT_MAX_CONCURRENCY", cls.fanout_max_concurrency)),
            overdue_grace_minutes=int(os.environ.get("OVERDUE_GRACE_MINUTES", cls.overdue_grace_minutes)),
            sender_email=os.environ.get("SENDER_EMAIL", cls.sender_email),
            sms_gateway_url=os.environ.get("SMS_GATEWAY_URL") or None,
            push_service_url=os.environ.get("PUSH_SERVICE_URL") or None,
            app_base_url=os.environ.get("APP_BASE_URL", cls.app_base_url).rstrip("/"),
        )

    def provider_config(self) -> dict:
        """Per-channel provider configuration."""
        return {
            "email": {"sender_email": self.sender_email},
            "sms": {"service_endpoint": self.sms_gateway_url, "timeout": self.send_timeout_seconds},
            "push": {"service_endpoint": self.push_service_url, "timeout": self.send_timeout_seconds},
            "in_app": {},
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings.from_env()
