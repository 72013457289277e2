"""Layered configuration for the Vaultkeep engine.

Priority: explicit overrides > environment (incl. ``.env``) > config file > defaults.

The result is an immutable ``VaultkeepConfig`` value that callers build once
per invocation and pass into each component's constructor.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import dotenv_values

from ..utils.errors import ConfigurationError

logger = logging.getLogger("VAULTKEEP.Config")

ENV_PREFIX = "VAULTKEEP_"


@dataclass(frozen=True)
class SessionRetentionConfig:
    """Session retention policy."""
    enabled: bool = True
    retention_days: int = 90
    archive_after_days: int = 30
    max_storage_mb: float = 500.0
    keep_min_sessions: int = 100


@dataclass(frozen=True)
class BackupRetentionConfig:
    """Backup rotation policy."""
    max_count: int = 10
    max_age_days: int = 30


@dataclass(frozen=True)
class CleanupConfig:
    """Cleanup configuration (``cleanup.*`` in the config file)."""
    sessions: SessionRetentionConfig = field(default_factory=SessionRetentionConfig)
    backups: BackupRetentionConfig = field(default_factory=BackupRetentionConfig)
    auto_cleanup: bool = True
    warn_at_percent: int = 80  # advisory only; auto cleanup triggers above 95%


@dataclass(frozen=True)
class RankingConfig:
    """Weights for combining recency, quality and usage into one ranking score."""
    recency_weight: float = 0.40
    quality_weight: float = 0.45
    usage_weight: float = 0.15
    max_age_days: int = 365
    min_quality_score: float = 0.3

    @property
    def total_weight(self) -> float:
        return self.recency_weight + self.quality_weight + self.usage_weight


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    format: str = "standard"  # "standard" or "json"
    file_path: Optional[str] = None


@dataclass(frozen=True)
class VaultkeepConfig:
    """Master configuration."""
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert config to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VaultkeepConfig":
        """Build a config from a (possibly partial, possibly camelCase) mapping."""
        return _update_dataclass(cls(), data)


DEFAULT_CONFIG = VaultkeepConfig()
DEFAULT_RANKING_CONFIG = RankingConfig()


def _snake(key: str) -> str:
    """``retentionDays`` -> ``retention_days``, ``maxStorageMB`` -> ``max_storage_mb``."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", key).lower()


def _update_dataclass(obj: Any, data: Mapping[str, Any]) -> Any:
    """Recursively copy ``obj`` with values from ``data``. Unknown keys are ignored."""
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            f"Expected a mapping for {type(obj).__name__}, got {type(data).__name__}"
        )

    known = {f.name for f in fields(obj)}
    changes: Dict[str, Any] = {}
    for raw_key, value in data.items():
        key = _snake(str(raw_key))
        if key not in known:
            logger.debug(f"Ignoring unknown config key: {raw_key}")
            continue
        current = getattr(obj, key)
        if is_dataclass(current):
            changes[key] = _update_dataclass(current, value)
        else:
            changes[key] = value
    return replace(obj, **changes)


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into ``base`` (keys normalised to snake_case)."""
    for raw_key, value in override.items():
        key = _snake(str(raw_key))
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        elif isinstance(value, Mapping):
            base[key] = _deep_merge({}, value)
        else:
            base[key] = value
    return base


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML or JSON config file into a plain dict.

    A missing file yields ``{}``; an unreadable or malformed one raises
    ConfigurationError naming the file.
    """
    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning(f"Config file not found: {path_obj}, using defaults")
        return {}

    suffix = path_obj.suffix.lower()
    try:
        with open(path_obj, "r", encoding="utf-8") as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigurationError(
                    f"Unsupported config format: {suffix or '(none)'}",
                    context={"path": str(path_obj)},
                )
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Failed to load config file {path_obj}: {e}", context={"path": str(path_obj)}
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path_obj} must contain a mapping at the top level",
            context={"path": str(path_obj)},
        )
    logger.info(f"Config loaded from {path_obj}")
    return data


def _env_overrides(env: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    """Translate ``VAULTKEEP_*`` variables into a nested override dict."""

    def safe_int(key: str) -> Optional[int]:
        val = env.get(ENV_PREFIX + key)
        if val is None or val == "":
            return None
        try:
            return int(val)
        except ValueError:
            logger.warning(f"Invalid int for {ENV_PREFIX}{key}={val}, ignoring")
            return None

    def safe_float(key: str) -> Optional[float]:
        val = env.get(ENV_PREFIX + key)
        if val is None or val == "":
            return None
        try:
            return float(val)
        except ValueError:
            logger.warning(f"Invalid number for {ENV_PREFIX}{key}={val}, ignoring")
            return None

    def safe_bool(key: str) -> Optional[bool]:
        val = env.get(ENV_PREFIX + key)
        if val is None or val == "":
            return None
        lowered = val.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        logger.warning(f"Invalid bool for {ENV_PREFIX}{key}={val}, ignoring")
        return None

    def safe_str(key: str) -> Optional[str]:
        val = env.get(ENV_PREFIX + key)
        return val if val else None

    sessions = {
        "enabled": safe_bool("SESSIONS_ENABLED"),
        "retention_days": safe_int("RETENTION_DAYS"),
        "archive_after_days": safe_int("ARCHIVE_AFTER_DAYS"),
        "max_storage_mb": safe_float("MAX_STORAGE_MB"),
        "keep_min_sessions": safe_int("KEEP_MIN_SESSIONS"),
    }
    backups = {
        "max_count": safe_int("BACKUPS_MAX_COUNT"),
        "max_age_days": safe_int("BACKUPS_MAX_AGE_DAYS"),
    }
    cleanup = {
        "sessions": {k: v for k, v in sessions.items() if v is not None},
        "backups": {k: v for k, v in backups.items() if v is not None},
    }
    if (auto := safe_bool("AUTO_CLEANUP")) is not None:
        cleanup["auto_cleanup"] = auto
    if (warn := safe_int("WARN_AT_PERCENT")) is not None:
        cleanup["warn_at_percent"] = warn

    logging_section = {
        "level": safe_str("LOG_LEVEL"),
        "format": safe_str("LOG_FORMAT"),
        "file_path": safe_str("LOG_FILE"),
    }

    return {
        "cleanup": cleanup,
        "logging": {k: v for k, v in logging_section.items() if v is not None},
    }


def validate_config(config: VaultkeepConfig) -> VaultkeepConfig:
    """Reject values no component can work with."""
    sessions = config.cleanup.sessions
    problems = []
    for name in ("retention_days", "archive_after_days", "keep_min_sessions"):
        value = getattr(sessions, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            problems.append(f"cleanup.sessions.{name} must be a non-negative integer (got {value!r})")
    if not isinstance(sessions.max_storage_mb, (int, float)) or sessions.max_storage_mb <= 0:
        problems.append(f"cleanup.sessions.max_storage_mb must be positive (got {sessions.max_storage_mb!r})")

    backups = config.cleanup.backups
    for name in ("max_count", "max_age_days"):
        value = getattr(backups, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            problems.append(f"cleanup.backups.{name} must be a non-negative integer (got {value!r})")

    warn = config.cleanup.warn_at_percent
    if not isinstance(warn, (int, float)) or not 0 <= warn <= 100:
        problems.append(f"cleanup.warn_at_percent must be between 0 and 100 (got {warn!r})")

    try:
        validate_ranking_config(config.ranking)
    except ConfigurationError as e:
        problems.append(e.message)

    if problems:
        raise ConfigurationError("; ".join(problems), context={"problems": problems})
    return config


def validate_ranking_config(ranking: RankingConfig) -> RankingConfig:
    weights = (ranking.recency_weight, ranking.quality_weight, ranking.usage_weight)
    if any(w < 0 for w in weights) or sum(weights) <= 0:
        raise ConfigurationError(
            f"ranking weights must be non-negative with a positive sum (got {weights})"
        )
    if ranking.max_age_days < 1:
        raise ConfigurationError(f"ranking.max_age_days must be >= 1 (got {ranking.max_age_days})")
    if not 0.0 <= ranking.min_quality_score <= 1.0:
        raise ConfigurationError(
            f"ranking.min_quality_score must be within [0, 1] (got {ranking.min_quality_score})"
        )
    return ranking


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    use_env: bool = True,
    env: Optional[Mapping[str, Optional[str]]] = None,
    dotenv_path: Optional[Union[str, Path]] = None,
) -> VaultkeepConfig:
    """Build the configuration for one invocation.

    Args:
        config_path: Optional YAML/JSON file with ``cleanup``/``ranking``/``logging`` sections
        overrides: Explicit values that win over everything else
        use_env: Whether to read ``VAULTKEEP_*`` variables
        env: Environment mapping (defaults to ``os.environ``)
        dotenv_path: Optional ``.env`` file; process variables win over it

    Returns:
        Validated, immutable VaultkeepConfig
    """
    merged: Dict[str, Any] = {}

    if config_path:
        _deep_merge(merged, load_config_file(config_path))

    if use_env:
        layered_env: Dict[str, Optional[str]] = {}
        if dotenv_path and Path(dotenv_path).exists():
            layered_env.update(dotenv_values(dotenv_path))
        layered_env.update(os.environ if env is None else env)
        _deep_merge(merged, _env_overrides(layered_env))

    if overrides:
        _deep_merge(merged, overrides)

    config = validate_config(VaultkeepConfig.from_dict(merged))
    logger.debug(f"Effective configuration: {config.to_json()}")
    return config


__all__ = [
    "SessionRetentionConfig",
    "BackupRetentionConfig",
    "CleanupConfig",
    "RankingConfig",
    "LoggingConfig",
    "VaultkeepConfig",
    "DEFAULT_CONFIG",
    "DEFAULT_RANKING_CONFIG",
    "load_config",
    "load_config_file",
    "validate_config",
    "validate_ranking_config",
]
