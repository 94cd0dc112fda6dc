"""Configuration for k3s-manager.

Values are resolved once at startup and passed explicitly into the gateway
and commands. Later sources override earlier ones:

    defaults < config file < K3S_MANAGER_* environment < command-line flags
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Optional

import yaml

from k3s_manager.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".k3s-manager.yaml"
ENV_PREFIX = "K3S_MANAGER_"
OUTPUT_FORMATS = ("text", "json", "yaml")


@dataclass(frozen=True)
class Config:
    """Resolved runtime configuration."""

    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    namespace: str = "default"
    timeout: float = 300.0
    poll_interval: float = 2.0
    output: str = "text"
    verbose: bool = False
    snapshot_dir: Optional[str] = None

    def merge(self, values: dict[str, Any]) -> "Config":
        """Return a copy with every non-None entry of `values` applied."""
        updates = {k: v for k, v in values.items() if v is not None}
        unknown = set(updates) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"unknown config keys: {sorted(unknown)}")
        return validate(replace(self, **{k: _coerce(k, v) for k, v in updates.items()}))


def _coerce(key: str, value: Any) -> Any:
    try:
        if key in ("timeout", "poll_interval"):
            return float(value)
        if key == "verbose":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {key}: {value!r}") from exc
    return value


def validate(cfg: Config) -> Config:
    if cfg.timeout <= 0:
        raise ConfigError("timeout must be positive")
    if cfg.poll_interval <= 0:
        raise ConfigError("poll_interval must be positive")
    if cfg.output not in OUTPUT_FORMATS:
        raise ConfigError(f"output must be one of {', '.join(OUTPUT_FORMATS)}")
    if not cfg.namespace:
        raise ConfigError("namespace must not be empty")
    return cfg


def find_config_file(explicit: Optional[str] = None) -> Optional[str]:
    if explicit:
        if not os.path.exists(explicit):
            raise ConfigError(f"config file not found: {explicit}")
        return explicit

    for directory in (os.path.expanduser("~"), os.getcwd()):
        candidate = os.path.join(directory, CONFIG_FILENAME)
        if os.path.exists(candidate):
            return candidate
    return None


def read_config_file(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def read_env(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for f in fields(Config):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw != "":
            values[f.name] = raw
    return values


def load_config(
    path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
    environ: Optional[dict[str, str]] = None,
) -> Config:
    cfg = Config()

    config_file = find_config_file(path)
    if config_file:
        cfg = cfg.merge(read_config_file(config_file))

    cfg = cfg.merge(read_env(environ))
    cfg = cfg.merge(overrides or {})

    if config_file:
        logger.debug("using config file: %s", config_file)
    return cfg
