from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from webtools.constants import MAX_RESULTS_RANGE, TIMEOUT_RANGE_SECONDS


def _clamp(value: int, bounds) -> int:
    low, high = bounds
    return max(low, min(high, value))


class Settings(BaseSettings):
    serper_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("serper_api_key", "SERPER_API_KEY", "WEBTOOLS_SERPER_API_KEY"),
    )
    enabled: bool = True
    max_results: int = 10
    timeout: int = 30
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="WEBTOOLS_", env_file=".env", extra="ignore")

    @field_validator("serper_api_key")
    @classmethod
    def strip_api_key(cls, v: str) -> str:
        return v.strip()

    @field_validator("max_results")
    @classmethod
    def clamp_max_results(cls, v: int) -> int:
        return _clamp(v, MAX_RESULTS_RANGE)

    @field_validator("timeout")
    @classmethod
    def clamp_timeout(cls, v: int) -> int:
        return _clamp(v, TIMEOUT_RANGE_SECONDS)

    @property
    def has_api_key(self) -> bool:
        return bool(self.serper_api_key)

    @property
    def timeout_ms(self) -> int:
        return self.timeout * 1000


settings = Settings()


def get_settings() -> Settings:
    return settings
