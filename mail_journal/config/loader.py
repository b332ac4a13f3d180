"""Configuration loading utilities.

The config file is camelCase JSON (``~/.mail-journal/config.json``); the
in-memory model is snake_case.
"""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mail_journal.config.schema import Config
from mail_journal.errors import ConfigError
from mail_journal.utils.helpers import get_data_path


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return get_data_path() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Validated configuration object.

    Raises:
        ConfigError: If the file is missing, unreadable, or fails validation.
    """
    path = config_path or get_config_path()

    if not path.exists():
        raise ConfigError(f"No config file at {path}. Run `mail-journal onboard` to create one.")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    try:
        config = Config(**convert_keys(data))
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e

    logger.debug(f"Loaded config from {path}")
    return config


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.

    Returns:
        The path written.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "config"
        parts.append(f"{loc}: {err['msg']}")
    return "Config error! " + "; ".join(parts)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
