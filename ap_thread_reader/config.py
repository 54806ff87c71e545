from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError
from .retry import RetryConfig


def load_config(path: str | Path | None) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    `None` yields the defaults. Raises ConfigError with a readable validation
    message on failure.
    """
    if path is None:
        return AppConfig()

    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def retry_config(config: AppConfig) -> RetryConfig:
    return RetryConfig(**config.retry.model_dump())


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
