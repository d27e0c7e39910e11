"""Application configuration using pydantic-settings.

Precedence, highest first: constructor arguments, the system keychain
(credential fields only), environment variables, ``.env``.
"""

from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
MAX_FETCH_BATCH_SIZE = 100


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Settings source that reads credential fields from the keychain.

    Only fields named in ``CREDENTIAL_KEYS`` are looked up; a missing
    keychain entry leaves the field to the sources below this one.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        if field_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        return get_credential(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        found: dict[str, Any] = {}
        for name in sorted(CREDENTIAL_KEYS & set(self.settings_cls.model_fields)):
            value, _, _ = self.get_field_value(self.settings_cls.model_fields[name], name)
            if value is not None:
                found[name] = value
        return found


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # History log storage
    DATABASE_URL: str = "sqlite:///./ledger.db"

    # SnapTrade (credentials may come from the keychain)
    SNAPTRADE_CLIENT_ID: str = ""
    SNAPTRADE_CONSUMER_KEY: str = ""
    SNAPTRADE_USER_ID: str = ""
    SNAPTRADE_USER_SECRET: str = ""
    SNAPTRADE_BASE_URL: str = "https://api.snaptrade.com/api/v1"

    # Request execution
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    REQUEST_MAX_ATTEMPTS: int = 3
    REQUEST_BASE_DELAY_SECONDS: float = 1.0
    # Wall-clock cap on retry backoff; 0 disables the cap
    REQUEST_RETRY_BUDGET_SECONDS: float = 360.0

    # Concurrent requests per fetch batch
    FETCH_BATCH_SIZE: int = MAX_FETCH_BATCH_SIZE

    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("SNAPTRADE_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> Any:
        return v.rstrip("/") if isinstance(v, str) else v

    @field_validator("REQUEST_MAX_ATTEMPTS")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("REQUEST_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("FETCH_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if not 1 <= v <= MAX_FETCH_BATCH_SIZE:
            raise ValueError(
                f"FETCH_BATCH_SIZE must be between 1 and {MAX_FETCH_BATCH_SIZE}, got {v}"
            )
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(LOG_LEVELS)}, got {v!r}")
        return level


settings = Settings()
