from typing import Any, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator


class Settings(BaseSettings):
    QUOTE_API_BASE_URL: str = Field(
        default="http://localhost:5000/api",
        validation_alias=AliasChoices("QUOTE_API_BASE_URL", "API_BASE_URL"),
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=20.0,
        gt=0,
        validation_alias=AliasChoices("HTTP_TIMEOUT_SECONDS"),
    )
    AUTOSAVE_DEBOUNCE_SECONDS: float = Field(
        default=2.0,
        ge=0,
        validation_alias=AliasChoices("AUTOSAVE_DEBOUNCE_SECONDS"),
    )
    AUTOSAVE_ENABLED: bool = Field(
        default=True,
        validation_alias=AliasChoices("AUTOSAVE_ENABLED"),
    )
    DEBUG: bool = Field(default=False, validation_alias=AliasChoices("DEBUG"))
    LOG_LEVEL: Optional[str] = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL"),
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("QUOTE_API_BASE_URL", mode="before")
    @classmethod
    def _strip_base_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            s = v.strip().upper()
            return s or None
        return v


settings = Settings()
