"""Configuration loading and logging setup."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

# Configuration sections holding driver chains
STORAGE_SECTIONS = ("default_storage", "default_history_storage", "default_usage_storage")


def setup_logger(config_file: str | Path = "logging.conf") -> None:
    """Initialize logging from logging.conf.

    The log file path comes from the LOGS environment variable (default
    logs/context_storage.log). DEBUG=true switches the level to DEBUG,
    otherwise INFO is used.

    Args:
        config_file: Path of the fileConfig-format logging configuration

    """
    log_path = os.environ.get("LOGS", "logs/context_storage.log")
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)

    loglevel = "DEBUG" if os.environ.get("DEBUG", "").lower() == "true" else "INFO"

    logging.config.fileConfig(
        str(config_file),
        defaults={"LOGS": log_path, "loglevel": loglevel},
        disable_existing_loggers=False,
    )


def load_config(config_file: str | Path = "config.yaml") -> dict[str, Any]:
    """Read the configuration file and apply environment overrides.

    Overrides:
        DATABASE_URL: database.url
        REDIS_URL: redis.url
        CONTEXT_STORAGE_DIR: folder of every file driver
        TRUNCATION_THRESHOLD, TRUNCATION_BUFFER, TRUNCATION_STRATEGY:
            context_storage.truncation settings

    Args:
        config_file: Path of the YAML configuration

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the YAML cannot be parsed
        ConfigurationError: If the file does not hold a mapping or an
            override is not a number

    """
    logger = logging.getLogger(__name__)

    with Path(config_file).open(encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        msg = f"{config_file} must contain a mapping"
        raise ConfigurationError(msg)

    apply_env_overrides(config)
    logger.debug("Loaded configuration from %s", config_file)
    return config


def apply_env_overrides(config: dict[str, Any]) -> None:
    """Apply the environment overrides to a configuration in place."""
    _override_connection_config(config)
    _override_storage_dir(config)
    _override_truncation_config(config)


def _override_connection_config(config: dict[str, Any]) -> None:
    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config.setdefault("database", {})["url"] = database_url

    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        config.setdefault("redis", {})["url"] = redis_url


def _override_storage_dir(config: dict[str, Any]) -> None:
    storage_dir = os.environ.get("CONTEXT_STORAGE_DIR")
    if not storage_dir:
        return

    storage_config = config.get("context_storage", {})
    for section in STORAGE_SECTIONS:
        entries = storage_config.get(section)
        if isinstance(entries, dict):
            entries = [entries]
        for entry in entries or []:
            if isinstance(entry, dict) and entry.get("driver") == "file":
                entry["folder"] = storage_dir


def _override_truncation_config(config: dict[str, Any]) -> None:
    overrides = {
        "threshold": ("TRUNCATION_THRESHOLD", int),
        "buffer": ("TRUNCATION_BUFFER", float),
        "strategy": ("TRUNCATION_STRATEGY", str),
    }
    for key, (env_name, cast) in overrides.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        try:
            converted = cast(value)
        except ValueError as e:
            msg = f"{env_name} must be a {cast.__name__}, got {value!r}"
            raise ConfigurationError(msg) from e
        truncation = config.setdefault("context_storage", {}).setdefault("truncation", {})
        truncation[key] = converted
