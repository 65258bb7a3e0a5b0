"""
Configuration Management for RoundSight

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables
- Command line arguments

Configuration precedence (highest to lowest):
1. Command line arguments
2. Environment variables (ROUNDSIGHT_*)
3. Configuration file
4. Default values
"""

import json
import logging
import logging.handlers
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from roundsight.core.constants import (
    ADR_THRESHOLD,
    CS2_TICK_RATE,
    FRAME_STRIDE_TICKS,
    HEATMAP_PRECISION,
    HEATMAP_TOP_HOTSPOTS,
    HS_RATE_THRESHOLD,
    KD_THRESHOLD,
    KNIFE_ROUND_MELEE_RATIO,
    KNIFE_ROUND_MIN_MELEE_KILLS,
    LEAGUE_WARMUP_MAX_ROUND,
    ROUND_TIME_SECONDS,
    SNAPSHOT_INTERVAL_TICKS,
)

logger = logging.getLogger(__name__)

SAMPLER_MODES = ("interval", "frames", "off")


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class EngineConfig:
    """Round classification settings."""

    # GC leagues: rounds up to this number are warmup once the format is detected
    league_warmup_max_round: int = LEAGUE_WARMUP_MAX_ROUND
    knife_min_melee_kills: int = KNIFE_ROUND_MIN_MELEE_KILLS
    knife_melee_ratio: float = KNIFE_ROUND_MELEE_RATIO
    # Extra weapon names counted as melee on top of knife/bayonet
    extra_melee_weapons: list[str] = field(default_factory=list)


@dataclass
class HeatmapConfig:
    """Heatmap binning settings."""

    precision: int = HEATMAP_PRECISION
    top_hotspots: int = HEATMAP_TOP_HOTSPOTS


@dataclass
class SamplerConfig:
    """Radar snapshot / frame sampling settings."""

    # "interval": snapshots during the event pass
    # "frames": second pass over the recording, events joined by tick
    # "off": no positional sampling
    mode: str = "interval"
    snapshot_interval_ticks: int = SNAPSHOT_INTERVAL_TICKS
    frame_stride_ticks: int = FRAME_STRIDE_TICKS
    tick_rate: int = CS2_TICK_RATE
    round_time_seconds: float = ROUND_TIME_SECONDS


@dataclass
class SummaryConfig:
    """Thresholds for coaching recommendations."""

    hs_rate_threshold: float = HS_RATE_THRESHOLD
    adr_threshold: float = ADR_THRESHOLD
    kd_threshold: float = KD_THRESHOLD


@dataclass
class ExportConfig:
    """Configuration for data export."""

    default_format: str = "json"
    json_indent: int = 2
    csv_delimiter: str = ","


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class RoundSightConfig:
    """Main configuration container."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


_SECTIONS = ("engine", "heatmap", "sampler", "summary", "export", "logging")


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "roundsight.yaml")
    paths.append(Path.cwd() / "roundsight.toml")
    paths.append(Path.cwd() / "roundsight.json")
    paths.append(Path.cwd() / ".roundsight.yaml")

    # User home directory
    home = Path.home()
    paths.append(home / ".config" / "roundsight" / "config.yaml")
    paths.append(home / ".config" / "roundsight" / "config.toml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "roundsight" / "config.yaml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "ROUNDSIGHT_LOG_LEVEL": ("logging", "level"),
        "ROUNDSIGHT_LOG_FILE": ("logging", "file"),
        "ROUNDSIGHT_EXPORT_FORMAT": ("export", "default_format"),
        "ROUNDSIGHT_SAMPLER_MODE": ("sampler", "mode"),
        "ROUNDSIGHT_SNAPSHOT_INTERVAL": ("sampler", "snapshot_interval_ticks"),
        "ROUNDSIGHT_FRAME_STRIDE": ("sampler", "frame_stride_ticks"),
        "ROUNDSIGHT_TICK_RATE": ("sampler", "tick_rate"),
        "ROUNDSIGHT_HEATMAP_PRECISION": ("heatmap", "precision"),
        "ROUNDSIGHT_LEAGUE_WARMUP_ROUNDS": ("engine", "league_warmup_max_round"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config:
                config[section] = {}

            # Type conversion
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"
            elif value.isdigit():
                value = int(value)
            else:
                try:
                    value = float(value)
                except ValueError:
                    pass

            config[section][key] = value

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> RoundSightConfig:
    """Convert a dictionary to RoundSightConfig, ignoring unknown keys."""
    config = RoundSightConfig()

    for section in _SECTIONS:
        values = data.get(section)
        if not isinstance(values, dict):
            continue
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug(f"Ignoring unknown config key: {section}.{key}")

    if config.sampler.mode not in SAMPLER_MODES:
        raise ValueError(
            f"Unknown sampler mode: {config.sampler.mode} (expected one of {SAMPLER_MODES})"
        )

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> RoundSightConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged RoundSightConfig
    """
    config_data: dict[str, Any] = {}

    # Try to find and load a config file
    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    # Merge environment variables
    if include_env:
        env_config = load_env_config()
        config_data = merge_configs(config_data, env_config)

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def config_to_dict(config: RoundSightConfig) -> dict[str, Any]:
    """Convert RoundSightConfig to a dictionary."""
    return asdict(config)


def save_config(config: RoundSightConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (.yaml/.yml or .json)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    else:
        raise ValueError(f"Unknown config format: {suffix}")

    logger.info(f"Saved config to: {path}")


# ============================================================================
# Logging
# ============================================================================


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure the root logger from a LoggingConfig."""
    level = logging.DEBUG if verbose else getattr(logging, str(config.level).upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)
