"""Configuration management for nestzip."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import MarkerSpec, NestzipConfig
from .resolver import ENV_PREFIX, assign_dotted, env_overrides, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.nestzip/config.yaml")
_HEADER_LINES = (
    "# nestzip configuration file",
    "# Edit with `nestzip config edit` or `nestzip config set KEY --value VALUE`.",
)


class ConfigManager:
    """Read, validate, and write the nestzip YAML configuration file.

    The file only ever holds values that validate; :meth:`write` and
    :meth:`update` refuse anything that would not load back.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> NestzipConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted keys taken from command line flags.
            include_env: Whether ``NESTZIP__`` environment variables apply.

        Returns:
            NestzipConfig: Defaults overlaid with file, environment, and CLI values.

        Raises:
            ConfigError: If the file is unreadable or any value is invalid.
        """
        self.ensure_exists()
        return resolve_with_precedence(
            defaults=NestzipConfig(),
            file_overrides=self.read_overrides(),
            env_overrides=env_overrides(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def read_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the file (empty when absent)."""
        text = self.read_text()
        try:
            data = yaml.safe_load(text) if text else None
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self._config_path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._config_path} must contain a mapping at the top level.")
        return data

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def ensure_exists(self) -> Path:
        """Write the defaults if no configuration file exists yet."""
        if not self._config_path.exists():
            self._dump(NestzipConfig().model_dump(mode="python"))
        return self._config_path

    def write(self, data: NestzipConfig | Mapping[str, Any]) -> NestzipConfig:
        """Validate ``data`` and store it as the file's contents.

        Raises:
            ConfigError: If ``data`` does not describe a valid configuration.
        """
        if isinstance(data, NestzipConfig):
            stored = data.model_dump(mode="python")
        else:
            stored = dict(data)
        config = resolve_with_precedence(defaults=NestzipConfig(), file_overrides=stored)
        self._dump(stored)
        return config

    def update(self, key: str, value: Any) -> NestzipConfig:
        """Set the dotted ``key`` in the file to ``value``.

        Raises:
            ConfigError: If ``key`` is malformed or the new value is invalid.
        """
        segments = [segment.strip() for segment in key.split(".")]
        data = self.read_overrides()
        assign_dotted(data, segments, value, source="config set")
        return self.write(data)

    def _dump(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
        lines = [*_HEADER_LINES, f"# Last updated: {stamp}"]
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text("\n".join(lines) + "\n" + body, encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "MarkerSpec",
    "NestzipConfig",
    "resolve_with_precedence",
]
