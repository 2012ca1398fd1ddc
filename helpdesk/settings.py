from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file + YAML files under `config/`).
    - Every value can be overridden with a `HELPDESK_` environment variable.
    """

    model_config = SettingsConfigDict(env_prefix="HELPDESK_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    seed_path: str | None = None
    seed_demo_data: bool = True
    log_level: str = "INFO"

    # Created together with every new client organization.
    default_client_departments: list[str] = Field(
        default_factory=lambda: ["Administration", "IT", "Support"],
    )

    default_page_size: int = 20
    max_page_size: int = 100

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "helpdesk.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"

    def resolved_seed_path(self) -> Path:
        if self.seed_path:
            return Path(self.seed_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "seed.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
