import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    database_url: str
    jwt_secret_key: str
    jwt_expire_minutes: int = 60

    # object storage (Google Cloud Storage)
    storage_bucket: Optional[str] = None
    google_cloud_project: Optional[str] = None

    frontend_url: str = "http://localhost:3000"
    log_file: Optional[str] = "app.log"
    log_level: str = "INFO"
    rate_limit_enabled: bool = True

    # product policies
    clubs_auto_approve: bool = False
    allow_past_event_registration: bool = True
    allow_admin_signup: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL", "")
        if database_url == "":
            raise ValueError("DATABASE_URL is not configured. Please check env files")

        secret_key = os.getenv("JWT_SECRET_KEY", "")
        if secret_key == "":
            raise ValueError("JWT_SECRET_KEY must be set in environment variables")

        return cls(
            database_url=database_url,
            jwt_secret_key=secret_key,
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "60")),
            storage_bucket=os.getenv("STORAGE_BUCKET") or None,
            google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT") or None,
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
            log_file=os.getenv("LOG_FILE", "app.log") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            clubs_auto_approve=_env_bool("CLUBS_AUTO_APPROVE", False),
            allow_past_event_registration=_env_bool("ALLOW_PAST_EVENT_REGISTRATION", True),
            allow_admin_signup=_env_bool("ALLOW_ADMIN_SIGNUP", False),
        )
