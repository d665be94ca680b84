"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.availability import StudioHours
from .domain.cost_calculator import DEFAULT_MONTHLY_TIERS, DEFAULT_PACKAGE_RATES, PricingRules
from .domain.models import PackageTier


class HoursConfig(BaseModel):
    """Studio operating hours."""
    start_hour: int = 9
    end_hour: int = 19  # last slot is 18:00-19:00
    buffer_hours: int = 1

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("buffer_hours")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_hours must not be negative")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "HoursConfig":
        """Ensure the studio opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class MonthlyTier(BaseModel):
    """One step of the monthly volume schedule."""
    min_hours: float
    rate: float

    @field_validator("min_hours")
    @classmethod
    def validate_min_hours(cls, value: float) -> float:
        if value < 0:
            raise ValueError("min_hours must not be negative")
        return value

    @field_validator("rate")
    @classmethod
    def validate_rate(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("rate must be greater than zero")
        return value


class PricingConfig(BaseModel):
    """Package rates and the monthly volume tiers."""
    package_rates: Dict[PackageTier, float] = Field(
        default_factory=lambda: dict(DEFAULT_PACKAGE_RATES)
    )
    monthly_tiers: List[MonthlyTier] = Field(
        default_factory=lambda: [
            MonthlyTier(min_hours=min_hours, rate=rate)
            for min_hours, rate in DEFAULT_MONTHLY_TIERS
        ]
    )

    @field_validator("package_rates")
    @classmethod
    def validate_package_rates(cls, value: Dict[PackageTier, float]) -> Dict[PackageTier, float]:
        """Every tier needs a positive rate."""
        missing = [tier.value for tier in PackageTier if tier not in value]
        if missing:
            raise ValueError(f"package_rates is missing tier(s): {', '.join(missing)}")
        invalid = {tier.value: rate for tier, rate in value.items() if rate <= 0}
        if invalid:
            raise ValueError(f"package_rates must be positive, got {invalid}")
        return value

    @field_validator("monthly_tiers")
    @classmethod
    def validate_monthly_tiers(cls, value: List[MonthlyTier]) -> List[MonthlyTier]:
        """Sort tiers highest threshold first and require a 0-hour floor."""
        if not value:
            raise ValueError("monthly_tiers must not be empty")
        ordered = sorted(value, key=lambda tier: tier.min_hours, reverse=True)
        thresholds = [tier.min_hours for tier in ordered]
        if len(set(thresholds)) != len(thresholds):
            raise ValueError(f"Duplicate monthly tier thresholds: {thresholds}")
        if ordered[-1].min_hours != 0:
            raise ValueError("monthly_tiers needs a tier starting at 0 hours")
        return ordered

    def to_rules(self) -> PricingRules:
        return PricingRules(
            package_rates=dict(self.package_rates),
            monthly_tiers=[(tier.min_hours, tier.rate) for tier in self.monthly_tiers],
        )


class AppConfig(BaseModel):
    """Application configuration."""
    studio_name: str = "SessionSnap Studio"
    calendar_link: str = "https://example.com/calendar"
    timezone: str = "America/Sao_Paulo"
    currency: str = "R$"
    log_level: str = "WARNING"
    store_path: Path = Path("studiobook.json")
    internal_client_id: str = "client_internal_000"
    hours: HoursConfig = Field(default_factory=HoursConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def studio_hours(self) -> StudioHours:
        """Build the domain's operating hours from this configuration."""
        return StudioHours(
            start_hour=self.hours.start_hour,
            end_hour=self.hours.end_hour,
            buffer_hours=self.hours.buffer_hours,
            timezone=self.timezone,
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Load an explicit config file, or the default one when present.

    Without an explicit path and without a config.yaml on disk the
    built-in defaults are used.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()
