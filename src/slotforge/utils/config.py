"""Configuration management for SlotForge."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field

from .logging import get_logger

logger = get_logger(__name__)


class SystemConfig(BaseModel):
    """Slot system an optimization run targets."""

    type: Literal["ams", "toolhead"] = "ams"
    unit_count: int = Field(default=1, ge=1, le=16)
    strategy: Literal["legacy", "groups", "intervals"] = "intervals"
    algorithm: Literal["greedy", "simulated_annealing"] = "greedy"

    @property
    def slots_per_unit(self) -> int:
        return 4 if self.type == "ams" else 1

    @property
    def total_slots(self) -> int:
        return self.unit_count * self.slots_per_unit


class Config(BaseModel):
    """Validated view of a full configuration file."""

    system: SystemConfig = SystemConfig()
    seconds_per_swap: int = 120
    timing_slack_layers: int = 10
    max_rgb_distance: float = 150.0
    low_usage_percentage: float = 5.0


class ConfigManager:
    """Manage configuration settings for SlotForge."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = Path(config_path) if config_path else None
        self._config = self.get_default_config()

        if self.config_path and self.config_path.exists():
            self.load_config()

    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "system": {
                "type": "ams",
                "unit_count": 1,
                "strategy": "intervals",
                "algorithm": "greedy",
            },
            "annealing": {
                "initial_temperature": 10000.0,
                "cooling_rate": 0.995,
                "iterations": 10000,
                "min_temperature": 0.1,
                "seed": None,
                "deadline_seconds": None,
            },
            "constraints": {
                "max_rgb_distance": 150.0,
                "low_usage_percentage": 5.0,
            },
            "swaps": {
                "seconds_per_swap": 120,
                "timing_slack_layers": 10,
            },
            "output": {
                "directory": ".",
                "format": "text",
            },
        }

    def load_config(self) -> None:
        """Load configuration from file."""
        if not self.config_path or not self.config_path.exists():
            return

        try:
            with open(self.config_path, "r") as f:
                if self.config_path.suffix.lower() in (".yaml", ".yml"):
                    loaded_config = yaml.safe_load(f) or {}
                else:
                    loaded_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ValueError(
                f"Failed to load configuration from {self.config_path}: {e}"
            ) from e

        self._config = self._deep_merge(self._config, loaded_config)
        logger.debug(f"Loaded configuration from {self.config_path}")

    def save_config(self, output_path: Optional[Union[str, Path]] = None) -> None:
        """Save current configuration to file.

        Args:
            output_path: Optional output path, defaults to current config_path
        """
        save_path = Path(output_path) if output_path else self.config_path

        if not save_path:
            raise ValueError("No output path specified")

        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, "w") as f:
            if save_path.suffix.lower() in (".yaml", ".yml"):
                yaml.dump(self._config, f, default_flow_style=False, indent=2)
            else:
                json.dump(self._config, f, indent=2)

    def get_config(self) -> Dict[str, Any]:
        """Get current configuration."""
        return self._config.copy()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self._config
        try:
            for k in key.split("."):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def update(self, updates: Dict[str, Any]) -> None:
        """Update configuration with dictionary of changes."""
        self._config = self._deep_merge(self._config, updates)

    def _deep_merge(self, base: Dict, update: Dict) -> Dict:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_system_config(self) -> SystemConfig:
        """Get the slot system configuration as a validated model."""
        return SystemConfig(**self.get("system", {}))

    def get_annealing_config(self):
        """Get annealing configuration object."""
        from ..core.annealing import AnnealingConfig

        ann = self.get("annealing", {})
        return AnnealingConfig(
            initial_temperature=ann.get("initial_temperature", 10000.0),
            cooling_rate=ann.get("cooling_rate", 0.995),
            iterations=ann.get("iterations", 10000),
            min_temperature=ann.get("min_temperature", 0.1),
            seed=ann.get("seed"),
            deadline_seconds=ann.get("deadline_seconds"),
        )

    def to_model(self) -> Config:
        """Validate the flat settings SlotForge consumes."""
        return Config(
            system=self.get_system_config(),
            seconds_per_swap=self.get("swaps.seconds_per_swap", 120),
            timing_slack_layers=self.get("swaps.timing_slack_layers", 10),
            max_rgb_distance=self.get("constraints.max_rgb_distance", 150.0),
            low_usage_percentage=self.get("constraints.low_usage_percentage", 5.0),
        )

    @classmethod
    def from_env(cls) -> "ConfigManager":
        """Create configuration manager from environment variables."""
        config_manager = cls()

        env_mappings = {
            "SLOTFORGE_PRINTER_TYPE": "system.type",
            "SLOTFORGE_UNIT_COUNT": "system.unit_count",
            "SLOTFORGE_STRATEGY": "system.strategy",
            "SLOTFORGE_ALGORITHM": "system.algorithm",
            "SLOTFORGE_ITERATIONS": "annealing.iterations",
            "SLOTFORGE_COOLING_RATE": "annealing.cooling_rate",
            "SLOTFORGE_SEED": "annealing.seed",
            "SLOTFORGE_OUTPUT_DIR": "output.directory",
            "SLOTFORGE_OUTPUT_FORMAT": "output.format",
        }

        for env_var, config_key in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                if value.isdigit():
                    value = int(value)
                elif "." in value:
                    value = float(value)
                elif value.lower() in ("true", "false"):
                    value = value.lower() == "true"
            except ValueError:
                pass  # Keep as string

            config_manager.set(config_key, value)

        return config_manager

    def validate_config(self) -> tuple[bool, list[str]]:
        """Validate current configuration.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors = []

        system = self.get("system", {})
        if system.get("type") not in ("ams", "toolhead"):
            errors.append("system.type must be 'ams' or 'toolhead'")
        unit_count = system.get("unit_count", 0)
        if not isinstance(unit_count, int) or not (1 <= unit_count <= 16):
            errors.append("system.unit_count must be between 1 and 16")
        if system.get("strategy") not in ("legacy", "groups", "intervals"):
            errors.append("system.strategy must be one of legacy, groups, intervals")
        if system.get("algorithm") not in ("greedy", "simulated_annealing"):
            errors.append("system.algorithm must be greedy or simulated_annealing")

        ann = self.get("annealing", {})
        if ann.get("iterations", 0) < 0:
            errors.append("annealing.iterations must be non-negative")
        if not (0 < ann.get("cooling_rate", 0.995) < 1):
            errors.append("annealing.cooling_rate must be between 0 and 1")
        if ann.get("initial_temperature", 0) <= 0:
            errors.append("annealing.initial_temperature must be positive")
        if ann.get("min_temperature", 0.1) <= 0:
            errors.append("annealing.min_temperature must be positive")

        if self.get("swaps.seconds_per_swap", 0) < 0:
            errors.append("swaps.seconds_per_swap must be non-negative")
        if self.get("output.format") not in ("text", "json", "csv"):
            errors.append("output.format must be one of text, json, csv")

        return len(errors) == 0, errors

    def get_profile_configs(self) -> Dict[str, Dict]:
        """Get predefined configuration profiles."""
        return {
            "fast": {
                "system": {"algorithm": "greedy", "strategy": "intervals"},
                "annealing": {"iterations": 1000},
            },
            "balanced": {
                "system": {"algorithm": "greedy", "strategy": "intervals"},
                "annealing": {"iterations": 10000, "cooling_rate": 0.995},
            },
            "thorough": {
                "system": {"algorithm": "simulated_annealing"},
                "annealing": {
                    "iterations": 50000,
                    "cooling_rate": 0.999,
                    "deadline_seconds": 30.0,
                },
            },
        }

    def apply_profile(self, profile_name: str) -> None:
        """Apply a predefined configuration profile.

        Args:
            profile_name: Name of profile to apply
        """
        profiles = self.get_profile_configs()

        if profile_name not in profiles:
            raise ValueError(
                f"Unknown profile: {profile_name}. Available: {list(profiles.keys())}"
            )

        self.update(profiles[profile_name])
