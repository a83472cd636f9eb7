"""
Bridge configuration loading.

Reads the YAML config file, overlays environment variables and
validates the result into a ``BridgeConfig``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from convobridge.core.domain.config_schema import BridgeConfig
from convobridge.core.domain.errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "bridge.yaml"

# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "LP_ACCOUNT": ("push", "account_id"),
    "LP_USER": ("push", "username"),
    "LP_PASS": ("push", "password"),
    "LP_APP_KEY": ("push", "app_key"),
    "LP_SECRET": ("push", "secret"),
    "LP_ACCESS_TOKEN": ("push", "access_token"),
    "LP_ACCESS_TOKEN_SECRET": ("push", "access_token_secret"),
    "PORT": ("turn", "port"),
    "LOGLEVEL": ("logging", "level"),
}


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a dict.

    Raises:
        ConfigError: If the file is missing, unparsable or not a mapping.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", details={"path": str(path)})

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Invalid YAML in config file {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping",
            details={"path": str(path), "type": type(data).__name__},
        )
    return data


def apply_env_overrides(
    data: dict[str, Any],
    env: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment variables applied."""
    env = os.environ if env is None else env
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}
    for variable, (section, field_name) in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value is None or value == "":
            continue
        target = merged.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigError(
                f"Config section '{section}' must be a mapping",
                details={"section": section},
            )
        target[field_name] = value.upper() if variable == "LOGLEVEL" else value
        logger.debug("config.env_override", variable=variable, field=f"{section}.{field_name}")
    return merged


def load_config(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> BridgeConfig:
    """Load and validate the bridge configuration.

    Args:
        path: YAML file; the packaged default is used when omitted.
        env: Environment to overlay (defaults to ``os.environ``).
        overrides: Top-level values applied last (e.g. from the CLI).

    Raises:
        ConfigError: If the file cannot be read or the values are invalid.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if path is None and not config_path.exists():
        data: dict[str, Any] = {}
    else:
        data = read_config_file(config_path)

    data = apply_env_overrides(data, env)
    for key, value in (overrides or {}).items():
        data[key] = value

    try:
        config = BridgeConfig.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ConfigError(
            f"Invalid bridge configuration in {config_path}",
            details={"path": str(config_path), "errors": errors},
        ) from exc

    logger.info(
        "config.loaded",
        path=str(config_path),
        mode=config.mode.value,
        push_credentials=config.push.has_credentials,
    )
    return config
