from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .settings import Settings

CONFIG_ENV_VAR = "DISCRETE_CONTROL_CONFIG"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    config_path: Path | None


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _resolve_config_path(project_root: Path, explicit: Path | None) -> Path | None:
    """Explicit path, then $DISCRETE_CONTROL_CONFIG, then ./config.yaml or ./config/config.yaml."""

    if explicit is not None:
        return explicit.expanduser()

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    for p in (project_root / "config.yaml", project_root / "config" / "config.yaml"):
        if p.is_file():
            return p
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"config file must contain a mapping at top level: {path}")
    return raw


def load_settings(*, project_root: Path, config_path: Path | None, cli_overrides: Mapping[str, Any]) -> LoadedSettings:
    resolved_path = _resolve_config_path(project_root, config_path)

    file_data: dict[str, Any] = {}
    if resolved_path is not None and resolved_path.is_file():
        file_data = _read_yaml(resolved_path)

    settings = Settings.model_validate(_deep_merge(file_data, cli_overrides))
    return LoadedSettings(settings=settings, config_path=resolved_path)
