"""Config file I/O for the transcript client.

The format follows the file extension:
  .json        → JSON
  .yaml / .yml → YAML  (pyyaml)
  .toml        → TOML  (read: stdlib tomllib; write: tomli-w)

``config.yml`` is the historical name, but any of the above works.
"""
from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
import yaml
from pydantic import ValidationError

import hidarishita.logger as log
import hidarishita.util as u
from hidarishita.config_schema import AppConfig
from hidarishita.error import ConfigError, raise_and_log

l = log.get_logger()

_YAML_EXTS = {".yaml", ".yml"}
_TOML_EXTS = {".toml"}

_CONFIG_NAMES = ["config.json", "config.yaml", "config.yml", "config.toml"]


def find_config(directory: Path) -> Path | None:
    """Return the first existing config file found in *directory*."""
    for name in _CONFIG_NAMES:
        p = directory / name
        if p.is_file():
            return p
    return None


def load_config(path: Path) -> dict[str, Any]:
    """Load a config file as a plain dict."""
    ext = path.suffix.lower()
    if ext in _YAML_EXTS:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    elif ext in _TOML_EXTS:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def save_config(data: dict[str, Any], path: Path) -> None:
    """Save *data* to *path* in the format its extension names."""
    path.parent.mkdir(parents=True, exist_ok=True)
    ext = path.suffix.lower()
    if ext in _YAML_EXTS:
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, allow_unicode=True, sort_keys=False, default_flow_style=False)
        return
    if ext in _TOML_EXTS:
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
        return
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_app_config(path: Path | None = None) -> AppConfig:
    """Load and validate the application config.

    With no *path*, the data directory is searched; a missing file yields the
    defaults (no mute rules). The token falls back to ``$SLACK_API_TOKEN``.
    """
    if path is None:
        path = find_config(Path(u.get_data_path()))

    raw: dict[str, Any] = {}
    if path is None:
        l.info(f"No config file found in {u.get_data_path()}, using defaults")
    else:
        l.info(f"Loading config from: {path}")
        try:
            raw = load_config(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Error reading {path}: {e}") from e

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Config error in {path}:\n{e}") from e

    if not config.token:
        token = u.get_env(u.TOKEN_ENV)
        if not token:
            raise_and_log(f"{u.TOKEN_ENV} not defined.", ConfigError)
        config = config.model_copy(update={"token": token})

    return config
