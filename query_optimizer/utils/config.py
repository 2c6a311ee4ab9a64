"""
Configuration loading utilities for the query optimizer.
"""
import logging
from typing import Dict, Any, Tuple
from pathlib import Path
from datetime import timedelta
import yaml
from dataclasses import dataclass, field


class ConfigurationError(ValueError):
    """Raised when detector configuration is invalid."""


@dataclass
class NPlusOneConfig:
    threshold: int = 3
    time_window: timedelta = timedelta(seconds=5)
    # Upper bounds (inclusive) of the low/medium/high severity bands
    severity_bands: Tuple[int, int, int] = (5, 15, 50)

    def validate(self) -> None:
        if self.threshold < 2:
            raise ConfigurationError(f"N+1 threshold must be at least 2, got {self.threshold}")
        if self.time_window < timedelta(0):
            raise ConfigurationError(f"N+1 time window must be non-negative, got {self.time_window}")
        if list(self.severity_bands) != sorted(self.severity_bands) or len(self.severity_bands) != 3:
            raise ConfigurationError(f"N+1 severity bands must be three ascending counts, got {self.severity_bands}")


@dataclass
class SlowQueryConfig:
    slow_ms: float = 200
    very_slow_ms: float = 1000
    critical_ms: float = 5000

    def validate(self) -> None:
        if self.slow_ms < 0:
            raise ConfigurationError(f"Slow query threshold must be non-negative, got {self.slow_ms}")
        if not self.slow_ms <= self.very_slow_ms <= self.critical_ms:
            raise ConfigurationError(
                "Slow query thresholds must be ascending: "
                f"slow={self.slow_ms}, very_slow={self.very_slow_ms}, critical={self.critical_ms}"
            )


@dataclass
class MissingIndexConfig:
    frequency_threshold: int = 3
    # Upper bounds (inclusive) of the frequency bands for priorities 1-4
    priority_bands: Tuple[int, int, int, int] = (2, 5, 10, 14)
    composite_bonus: int = 1
    foreign_key_bonus: int = 2

    def validate(self) -> None:
        if self.frequency_threshold < 1:
            raise ConfigurationError(
                f"Index frequency threshold must be at least 1, got {self.frequency_threshold}"
            )
        if list(self.priority_bands) != sorted(self.priority_bands) or len(self.priority_bands) != 4:
            raise ConfigurationError(f"Priority bands must be four ascending counts, got {self.priority_bands}")
        if self.composite_bonus < 0 or self.foreign_key_bonus < 0:
            raise ConfigurationError("Priority bonuses must be non-negative")


@dataclass
class AppConfig:
    """Application configuration."""
    n_plus_one: NPlusOneConfig = field(default_factory=NPlusOneConfig)
    slow_query: SlowQueryConfig = field(default_factory=SlowQueryConfig)
    missing_index: MissingIndexConfig = field(default_factory=MissingIndexConfig)
    log_level: str = 'INFO'

    def validate(self) -> None:
        self.n_plus_one.validate()
        self.slow_query.validate()
        self.missing_index.validate()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigurationError(f"Unknown log level: {self.log_level}")


class ConfigLoader:
    """Loads and validates configuration from YAML files."""

    @staticmethod
    def load_config(config_path: Path) -> AppConfig:
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

        return ConfigLoader.from_dict(config_data)

    @staticmethod
    def from_dict(config_data: Dict[str, Any]) -> AppConfig:
        """Build a validated AppConfig; missing sections fall back to defaults."""
        n_plus_one = ConfigLoader._section(config_data, 'n_plus_one')
        slow_query = ConfigLoader._section(config_data, 'slow_query')
        missing_index = ConfigLoader._section(config_data, 'missing_index')

        defaults = AppConfig()
        try:
            config = AppConfig(
                n_plus_one=NPlusOneConfig(
                    threshold=int(n_plus_one.get('threshold', defaults.n_plus_one.threshold)),
                    time_window=timedelta(seconds=float(
                        n_plus_one.get('time_window_seconds', defaults.n_plus_one.time_window.total_seconds())
                    )),
                    severity_bands=tuple(n_plus_one.get('severity_bands', defaults.n_plus_one.severity_bands)),
                ),
                slow_query=SlowQueryConfig(
                    slow_ms=float(slow_query.get('slow_ms', defaults.slow_query.slow_ms)),
                    very_slow_ms=float(slow_query.get('very_slow_ms', defaults.slow_query.very_slow_ms)),
                    critical_ms=float(slow_query.get('critical_ms', defaults.slow_query.critical_ms)),
                ),
                missing_index=MissingIndexConfig(
                    frequency_threshold=int(missing_index.get(
                        'frequency_threshold', defaults.missing_index.frequency_threshold
                    )),
                    priority_bands=tuple(missing_index.get('priority_bands', defaults.missing_index.priority_bands)),
                    composite_bonus=int(missing_index.get('composite_bonus', defaults.missing_index.composite_bonus)),
                    foreign_key_bonus=int(missing_index.get(
                        'foreign_key_bonus', defaults.missing_index.foreign_key_bonus
                    )),
                ),
                log_level=str(config_data.get('log_level', defaults.log_level)).upper(),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        config.validate()
        return config

    @staticmethod
    def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = config_data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"Config section '{name}' must be a mapping")
        return section
