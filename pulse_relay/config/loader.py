"""Configuration loading helpers for Pulse-Relay."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import RelayConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "relay_config.yaml"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the relay home directory."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("PULSE_RELAY_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    def env_file(self) -> Path:
        return self.project_root / ".env"


class ConfigRepository:
    """Repository encapsulating config IO, schema validation and credential lookup."""

    def __init__(self, locator: ConfigLocator | None = None, config_path: Path | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._config_path = config_path
        self._cache: RelayConfig | None = None

    @property
    def config_path(self) -> Path:
        return self._config_path or self.locator.config_path()

    def load_config(self) -> RelayConfig:
        if self._cache is not None:
            return self._cache
        path = self.config_path
        if path.exists():
            if path.suffix not in CONFIG_EXTENSIONS:
                raise ConfigurationError(f"Unsupported configuration format: {path}")
            payload = _read_file(path)
            try:
                config = RelayConfig.model_validate(payload)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid configuration in {path}:\n{exc}") from exc
        else:
            config = RelayConfig()
            self.save_config(config)
        self._cache = config
        return config

    def save_config(self, config: RelayConfig) -> Path:
        path = self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_file(path, config.model_dump(mode="json"))
        self._cache = config
        return path

    def resolve_api_key(self, config: RelayConfig | None = None) -> str:
        """Return the upstream credential or fail startup."""

        config = config or self.load_config()
        env_file = self.locator.env_file()
        if env_file.exists():
            load_dotenv(env_file, override=False)
        api_key = os.environ.get(config.upstream.api_key_env, "").strip()
        if not api_key:
            raise ConfigurationError(
                f"{config.upstream.api_key_env} is not set; the relay cannot poll without a credential"
            )
        return api_key


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
