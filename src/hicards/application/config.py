from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from hicards.domain.calendar import Calendar
from hicards.domain.constants import (
    DAILY_STATS_RETENTION,
    DEFAULT_WEIGHTS,
    MAXIMUM_INTERVAL,
    MIN_WEIGHTS,
    NEW_CARDS_PER_DAY,
    REQUEST_RETENTION,
    REVIEWS_PER_DAY,
    SAVE_DELAY,
)
from hicards.domain.models import FsrsParameters


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/hicards/config.toml",
        Path.home() / ".hicards.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for hicards.
    Supports loading from:
    1. Manual overrides (CLI)
    2. Environment variables (HICARDS_*)
    3. Config file (~/.config/hicards/config.toml or ~/.hicards.toml)
    """

    model_config = SettingsConfigDict(
        env_prefix="HICARDS_",
        extra="ignore",
    )

    # Storage
    data_file: Path = Field(default_factory=lambda: Path.home() / ".config/hicards/data.json")
    save_delay: float = Field(default=SAVE_DELAY, ge=0)
    daily_stats_retention: int = Field(default=DAILY_STATS_RETENTION, ge=1)

    # FSRS
    request_retention: float = Field(default=REQUEST_RETENTION, gt=0, lt=1)
    maximum_interval: float = Field(default=MAXIMUM_INTERVAL, ge=1)
    weights: list[float] = Field(default_factory=lambda: list(DEFAULT_WEIGHTS))

    # Daily limits
    new_cards_per_day: int = Field(default=NEW_CARDS_PER_DAY, ge=0)
    reviews_per_day: int = Field(default=REVIEWS_PER_DAY, ge=0)

    # Day boundaries; None means the system local zone
    timezone: str | None = None

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_file", mode="before")
    @classmethod
    def expand_data_file(cls, v: Any) -> Any:
        if isinstance(v, str | Path):
            return Path(v).expanduser()
        return v

    @field_validator("weights")
    @classmethod
    def check_weights(cls, v: list[float]) -> list[float]:
        if len(v) < MIN_WEIGHTS:
            raise ValueError(f"expected at least {MIN_WEIGHTS} weights, got {len(v)}")
        return v

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if not v:
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v

    def fsrs_parameters(self) -> FsrsParameters:
        return FsrsParameters(
            request_retention=self.request_retention,
            maximum_interval=self.maximum_interval,
            w=tuple(self.weights),
            new_cards_per_day=self.new_cards_per_day,
            reviews_per_day=self.reviews_per_day,
        )

    def calendar(self) -> Calendar:
        return Calendar(ZoneInfo(self.timezone) if self.timezone else None)


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/hicards/config.toml (if exists)
    3. Environment variables (HICARDS_*)
    4. cli_overrides (passed from Typer)

    Raises:
        pydantic.ValidationError: If any layer supplies an invalid value.
    """
    # Typer passes options it did not receive as None
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
