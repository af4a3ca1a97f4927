"""Configuration loading helpers for the harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import InvalidConfiguration
from .models import HarvestConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "harvest_config.yaml"
HOME_ENV_VAR = "QUOTA_HARVESTER_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def default_home() -> Path:
    env_root = os.environ.get(HOME_ENV_VAR)
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        root = (self.project_root or default_home()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: HarvestConfig | None = None

    def load_config(self, path: Path | None = None) -> HarvestConfig:
        if path is None and self._cache is not None:
            return self._cache
        target = path or self.locator.config_path()
        if target.exists():
            if target.suffix not in CONFIG_EXTENSIONS:
                raise InvalidConfiguration(f"Unsupported configuration format: {target}")
            payload = _read_file(target)
            try:
                config = HarvestConfig.model_validate(payload)
            except ValidationError as exc:
                raise InvalidConfiguration(f"Invalid configuration in {target}: {exc}") from exc
        elif path is not None:
            raise InvalidConfiguration(f"Configuration file not found: {target}")
        else:
            config = HarvestConfig()
            self.save_config(config)
        if path is None:
            self._cache = config
        return config

    def save_config(self, config: HarvestConfig, path: Path | None = None) -> Path:
        target = path or self.locator.config_path()
        _write_file(target, config.model_dump(mode="json"))
        if path is None:
            self._cache = config
        return target

    # ------------------------------------------------------------------
    # Directory resolution
    # ------------------------------------------------------------------
    def chunks_dir(self, config: HarvestConfig | None = None) -> Path:
        config = config or self.load_config()
        return config.resolve(config.chunks_dir, self.locator.data_dir)

    def partials_dir(self, config: HarvestConfig | None = None) -> Path:
        config = config or self.load_config()
        return config.resolve(config.partials_dir, self.locator.data_dir)

    def master_output(self, config: HarvestConfig | None = None) -> Path:
        config = config or self.load_config()
        return config.resolve(config.master_output, self.locator.data_dir)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR", "default_home"]
