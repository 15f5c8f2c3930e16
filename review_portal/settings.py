from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic so a fresh checkout runs as-is.
    - Every field can be overridden with an `APP_`-prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 3000

    session_secret: str = "dev-session-secret-change-me"
    session_max_age: int = 24 * 60 * 60

    admin_employee_id: str = "ADMIN001"
    admin_email: str = "admin@company.com"
    admin_password: str = "admin123"

    period_mode: Literal["quarter", "month"] = "quarter"
    bcrypt_rounds: int = 12

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "review_portal.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
