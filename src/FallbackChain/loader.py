"""Configuration loader for fallback chains.

This module loads chain settings from multiple sources (YAML, environment
variables, CLI arguments) and merges them with proper precedence to produce a
validated :class:`~FallbackChain.settings.ChainSettings`.

Configuration Precedence (highest to lowest):
  1. CLI arguments (--timeout-ms, ...)
  2. Environment variables (FALLBACKCHAIN_*)
  3. YAML configuration (config/fallback.yaml)
  4. Built-in defaults

Example:
    ```python
    from FallbackChain.loader import load_settings

    settings = load_settings(
        yaml_path=Path("chain.yaml"),
        cli_overrides={"timeout_ms": 2_000},
    )
    ```
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from .errors import ConfigurationError
from .settings import ChainSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "fallback.yaml"

ENV_PREFIX = "FALLBACKCHAIN_"

_LIST_KEYS = ("attempt_timeouts_ms", "accept_status")


def load_from_yaml(yaml_path: Path) -> Dict[str, Any]:
    """Load settings from a YAML file.

    The file may hold the settings at top level or under a ``fallback:`` key.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the YAML is invalid or not a mapping
    """
    if not yaml_path.exists():
        msg = f"Fallback config YAML not found: {yaml_path}"
        raise FileNotFoundError(msg)

    try:
        with open(yaml_path, encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {yaml_path}: {e}"
        raise ConfigurationError(msg) from e

    if config is None:
        logger.debug(f"YAML file is empty: {yaml_path}")
        return {}
    if not isinstance(config, dict):
        msg = f"Expected a mapping in {yaml_path}, got {type(config).__name__}"
        raise ConfigurationError(msg)

    if "fallback" in config:
        section = config["fallback"] or {}
        if not isinstance(section, dict):
            msg = f"'fallback' section in {yaml_path} must be a mapping"
            raise ConfigurationError(msg)
        config = section

    logger.debug(f"Loaded fallback config from {yaml_path}")
    return dict(config)


def _parse_optional_float(raw: str) -> Optional[float]:
    value = raw.strip().lower()
    if value in ("", "none", "null", "off"):
        return None
    return float(value)


def load_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load settings from ``FALLBACKCHAIN_*`` environment variables.

    Environment variable to setting mapping:
      FALLBACKCHAIN_TIMEOUT_MS → timeout_ms ("none" disables)
      FALLBACKCHAIN_ATTEMPT_TIMEOUTS_MS → attempt_timeouts_ms (comma list)
      FALLBACKCHAIN_ACCEPT → accept
      FALLBACKCHAIN_ACCEPT_STATUS → accept_status (comma list)
      FALLBACKCHAIN_LOG_LEVEL → log_level
      FALLBACKCHAIN_TELEMETRY_PATH → telemetry_path

    Invalid numbers are logged and ignored.
    """
    env = os.environ if environ is None else environ
    config: Dict[str, Any] = {}

    key = f"{ENV_PREFIX}TIMEOUT_MS"
    if key in env:
        try:
            config["timeout_ms"] = _parse_optional_float(env[key])
        except ValueError:
            logger.warning(f"Invalid value for {key}: {env[key]}")

    key = f"{ENV_PREFIX}ATTEMPT_TIMEOUTS_MS"
    if key in env:
        try:
            config["attempt_timeouts_ms"] = [
                _parse_optional_float(part) for part in env[key].split(",") if part.strip()
            ]
        except ValueError:
            logger.warning(f"Invalid value for {key}: {env[key]}")

    key = f"{ENV_PREFIX}ACCEPT_STATUS"
    if key in env:
        try:
            config["accept_status"] = [
                int(part) for part in env[key].split(",") if part.strip()
            ]
        except ValueError:
            logger.warning(f"Invalid value for {key}: {env[key]}")

    for name in ("accept", "log_level", "telemetry_path"):
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env and env[key].strip():
            config[name] = env[key].strip()

    logger.debug(f"Loaded fallback config from environment: {len(config)} keys")
    return config


def load_from_cli(cli_dict: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Load settings from a CLI arguments dictionary.

    Keys whose value is ``None`` were not given on the command line and are
    dropped.
    """
    if not cli_dict:
        return {}
    config = {k: v for k, v in cli_dict.items() if v is not None}
    logger.debug(f"Loaded fallback config from CLI: {len(config)} keys")
    return config


def merge_configs(
    yaml_config: Mapping[str, Any],
    env_config: Mapping[str, Any],
    cli_config: Mapping[str, Any],
) -> Dict[str, Any]:
    """Merge configurations with proper precedence.

    Later sources override earlier ones key by key; list values are replaced
    entirely rather than concatenated.
    """
    merged: Dict[str, Any] = {}
    for source in (yaml_config, env_config, cli_config):
        for key, value in source.items():
            merged[key] = list(value) if key in _LIST_KEYS and value is not None else value

    logger.debug(f"Merged configuration: {len(merged)} keys")
    return merged


def build_settings(config: Mapping[str, Any]) -> ChainSettings:
    """Validate a merged configuration dictionary.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    try:
        return ChainSettings.model_validate(dict(config))
    except ValidationError as e:
        msg = f"Invalid fallback configuration: {e}"
        raise ConfigurationError(msg) from e


def load_settings(
    yaml_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> ChainSettings:
    """Load and merge configuration into a ChainSettings.

    Args:
        yaml_path: Path to YAML config (None uses the packaged default)
        env: Environment mapping (uses os.environ if None)
        cli_overrides: CLI overrides; ``None`` values are ignored

    Raises:
        FileNotFoundError: If ``yaml_path`` does not exist
        ConfigurationError: If the merged configuration is invalid
    """
    if yaml_path is None:
        yaml_path = DEFAULT_CONFIG_PATH

    yaml_config = load_from_yaml(yaml_path)
    env_config = load_from_env(env)
    cli_config = load_from_cli(cli_overrides)

    settings = build_settings(merge_configs(yaml_config, env_config, cli_config))

    logger.info(
        f"Loaded fallback settings from {yaml_path} "
        f"(+env={bool(env_config)} +cli={bool(cli_config)})"
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "build_settings",
    "load_from_cli",
    "load_from_env",
    "load_from_yaml",
    "load_settings",
    "merge_configs",
]
