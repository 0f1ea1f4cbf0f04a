"""Configuration loading helpers for Maps Harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import HarvesterSettings, SearchRequest

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
SETTINGS_FILENAME = "settings.yaml"
HOME_ENV_VAR = "MAPS_HARVESTER_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.outputs_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def settings_path(self) -> Path:
        return self.data_dir / SETTINGS_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._settings_cache: HarvesterSettings | None = None

    # ------------------------------------------------------------------
    # Global settings
    # ------------------------------------------------------------------
    def load_settings(self) -> HarvesterSettings:
        if self._settings_cache is not None:
            return self._settings_cache
        path = self.locator.settings_path()
        if path.exists():
            settings = HarvesterSettings.model_validate(_read_file(path))
        else:
            settings = HarvesterSettings()
            self.save_settings(settings)
        self._settings_cache = settings
        return settings

    def save_settings(self, settings: HarvesterSettings) -> Path:
        path = self.locator.settings_path()
        _write_file(path, settings.model_dump(mode="json"))
        self._settings_cache = settings
        return path

    def resolved_outputs_dir(self, settings: HarvesterSettings) -> Path:
        """Return the outputs directory, relative paths anchored at the project root."""

        outputs = settings.outputs_dir
        if not outputs.is_absolute():
            return (self.locator.project_root / outputs).resolve()
        return outputs

    # ------------------------------------------------------------------
    # Search requests
    # ------------------------------------------------------------------
    def load_request(self, path: Path) -> SearchRequest:
        if not path.exists():
            raise FileNotFoundError(f"Request file not found: {path}")
        if path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported request file type: {path.suffix}")
        return SearchRequest.model_validate(_read_file(path))

    def save_request(self, request: SearchRequest, path: Path) -> Path:
        _write_file(path, request.model_dump(mode="json", by_alias=True))
        return path


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR"]
