"""YAML/JSON persistence for the global and per-site configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import yaml

from .models import GlobalConfig, SiteConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
HOME_ENV = "ESTATE_CRAWLER_HOME"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def read_mapping(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def write_mapping(path: Path, payload: dict[str, Any]) -> None:
    if path.suffix == ".json":
        text = json.dumps(payload, indent=2, ensure_ascii=False)
    else:
        text = yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
    path.write_text(text, encoding="utf-8")


@dataclass(slots=True)
class ConfigLocator:
    """Directory layout under the project home: ``data/``, ``data/sites/`` and ``logs/``.

    ``$ESTATE_CRAWLER_HOME`` wins over ``project_root``; without either the
    repository checkout is used.
    """

    project_root: Path | None = None
    data_dir: Path = field(init=False)
    sites_dir: Path = field(init=False)
    logs_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        home = os.environ.get(HOME_ENV)
        if home:
            root = Path(home).expanduser()
        else:
            root = self.project_root or Path(__file__).resolve().parents[2]
        self.project_root = root.resolve()
        self.data_dir = self.project_root / "data"
        self.sites_dir = self.data_dir / "sites"
        self.logs_dir = self.project_root / "logs"
        for directory in (self.data_dir, self.sites_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Load and save validated configuration models.

    The global config is cached after the first read and written with defaults
    when missing. Site configs are read on every call so CLI edits show up in a
    running scheduler or API process.
    """

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global: GlobalConfig | None = None

    # global -------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global is not None:
            return self._global
        path = self.locator.global_config_path()
        if not path.exists():
            config = GlobalConfig()
            self.save_global_config(config)
            return config
        self._global = GlobalConfig.model_validate(read_mapping(path))
        return self._global

    def save_global_config(self, config: GlobalConfig) -> None:
        write_mapping(self.locator.global_config_path(), config.model_dump(mode="json"))
        self._global = config

    def database_path(self) -> Path:
        return self.load_global_config().resolved_database_path(self.locator.project_root)

    # sites --------------------------------------------------------------
    def site_path(self, site_key: str) -> Path:
        return self.locator.sites_dir / f"{_slugify(site_key)}.yaml"

    def list_site_files(self) -> Iterator[Path]:
        for path in sorted(self.locator.sites_dir.iterdir()):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_sites(self) -> list[SiteConfig]:
        return [self.load_site(path) for path in self.list_site_files()]

    def load_site(self, identifier: str | Path) -> SiteConfig:
        path = identifier if isinstance(identifier, Path) else self.site_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Site configuration not found: {identifier}")
        return SiteConfig.model_validate(read_mapping(path))

    def site_config(self, site_key: str) -> SiteConfig:
        """Stored config of a site; enabled and unscheduled when no file exists."""

        try:
            return self.load_site(site_key)
        except FileNotFoundError:
            return SiteConfig(site_key=site_key)

    def save_site(self, config: SiteConfig) -> Path:
        path = self.site_path(config.site_key)
        write_mapping(path, config.model_dump(mode="json", exclude_none=True))
        return path

    def delete_site(self, site_key: str) -> bool:
        path = self.site_path(site_key)
        if not path.exists():
            return False
        path.unlink()
        return True


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "read_mapping",
    "write_mapping",
]
