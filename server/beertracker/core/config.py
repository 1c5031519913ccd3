# pyright: reportMissingImports=false

from __future__ import annotations

from functools import lru_cache
import json
from typing import Annotated, ClassVar, cast

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings with local dev defaults."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
    )

    api_prefix: str = "/api"
    log_level: str = "INFO"

    env: str = "dev"

    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)
    trusted_hosts: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Session cookie
    session_cookie_name: str = "session"
    session_cookie_secure: bool = False
    session_ttl_days: int = 30

    public_base_url: str = "http://localhost:8000"

    password_reset_ttl_minutes: int = 30

    # Drink ledger
    drink_goal: int = 1_000_000
    drink_photo_required: bool = False
    drink_photo_max_bytes: int = 5 * 1024 * 1024
    drink_label_max_length: int = 100

    # "closed": a failed verification call rejects the drink; "open": it is accepted.
    verification_failure_policy: str = "closed"
    verification_timeout_seconds: float = 20.0

    flavor_text_enabled: bool = True
    flavor_text_timeout_seconds: float = 10.0

    openai_mode: str = "fake"
    openai_base_url: str | None = None
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Prefer DATABASE_URL when provided; otherwise construct from POSTGRES_* vars.
    database_url: str | None = None
    postgres_db: str = "beertracker"
    postgres_user: str = "beertracker"
    postgres_password: str = "beertracker"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @field_validator("cors_allowed_origins", "trusted_hosts", mode="before")
    @classmethod
    def _parse_listish_env(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, list):
            v_list = cast(list[object], v)
            return [str(x).strip() for x in v_list if str(x).strip()]
        if isinstance(v, str):
            raw = v.strip()
            if raw == "":
                return []
            if raw.lstrip().startswith("["):
                try:
                    parsed: object = cast(object, json.loads(raw))
                except Exception:
                    parsed = None
                if isinstance(parsed, list):
                    parsed_list = cast(list[object], parsed)
                    return [str(x).strip() for x in parsed_list if str(x).strip()]
            parts: list[str] = []
            for chunk in raw.replace("\n", ",").replace("\t", ",").split(","):
                s = chunk.strip()
                if s:
                    parts.append(s)
            return parts
        return [str(v).strip()] if str(v).strip() else []

    @field_validator("verification_failure_policy", "openai_mode", mode="before")
    @classmethod
    def _lower_strip(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def sqlalchemy_database_uri(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def session_max_age_seconds(self) -> int:
        return int(self.session_ttl_days) * 24 * 60 * 60

    def is_prod_env(self) -> bool:
        return self.env.strip().lower() in ("prod", "production")

    @model_validator(mode="after")
    def _validate_prod_config(self) -> "Settings":
        if not self.is_prod_env():
            return self

        problems: list[str] = []

        if self.openai_mode == "fake":
            problems.append("OPENAI_MODE=fake is forbidden in production. Set OPENAI_MODE=openai.")
        if not self.session_cookie_secure:
            problems.append("SESSION_COOKIE_SECURE must be true in production.")

        if problems:
            details = "\n".join(f"- {p}" for p in problems)
            raise ValueError(
                f"Production settings validation failed (ENV={self.env!r}). Fix the following before starting the server:\n"
                + details
            )

        return self

    @model_validator(mode="after")
    def _validate_collaborator_config(self) -> "Settings":
        if self.verification_failure_policy not in ("open", "closed"):
            raise ValueError("VERIFICATION_FAILURE_POLICY must be one of: open, closed")
        if self.openai_mode not in ("fake", "openai"):
            raise ValueError("OPENAI_MODE must be one of: fake, openai")
        if self.openai_mode == "openai":
            if not (self.openai_base_url and self.openai_base_url.strip()):
                raise ValueError("OPENAI_BASE_URL must be set when OPENAI_MODE=openai")
            if not (self.openai_api_key and self.openai_api_key.strip()):
                raise ValueError("OPENAI_API_KEY must be set when OPENAI_MODE=openai")
        if self.session_ttl_days <= 0:
            raise ValueError("SESSION_TTL_DAYS must be > 0")
        if self.drink_goal <= 0:
            raise ValueError("DRINK_GOAL must be > 0")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
