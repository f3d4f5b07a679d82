"""DhdSettings: one frozen object built from flags, environment and ``dhd.toml``.

Highest priority first:
  1. CLI flags passed by Click (``None`` means "not given")
  2. ``DHD_*`` environment variables, sections nested with ``__``
     (``DHD_EXECUTION__CONCURRENCY=8``)
  3. ``dhd.toml``, see :mod:`dhdctl.config.discovery`
  4. defaults on the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from dhdctl.config.discovery import find_config
from dhdctl.config.models import (
    DownloadConfig,
    EscalationConfig,
    ExecutionConfig,
    ModulesConfig,
    PluginsConfig,
    ProbesConfig,
)


def load_toml(path: Path) -> dict[str, Any]:
    """Parse *path*, reporting syntax errors as a CLI error."""
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise click.ClickException(msg) from exc


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by an already-located ``dhd.toml``."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data = load_toml(toml_path) if toml_path is not None else {}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# pydantic-settings builds sources in a classmethod; the located file rides here.
_tls = threading.local()


def _locate(config_path: str | None, project_root: Path | None) -> Path | None:
    if not config_path:
        return find_config(project_root)
    path = Path(config_path).expanduser()
    if not path.is_file():
        msg = f"Config file not found: {config_path}"
        raise click.ClickException(msg)
    return path


class DhdSettings(BaseSettings):
    """Everything a dhdctl run is configured by.

    ``project_root`` is the directory of the loaded ``dhd.toml`` (or the
    working directory when there is none); a relative modules path is
    resolved against it.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "DHD_",
        "env_nested_delimiter": "__",
    }

    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    modules_path: Path | None = None

    modules: ModulesConfig = Field(default_factory=ModulesConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
    probes: ProbesConfig = Field(default_factory=ProbesConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @property
    def resolved_modules_path(self) -> Path:
        """``--modules-path`` if given, else ``[modules] path``, anchored at the project root."""
        path = self.modules_path or Path(self.modules.path).expanduser()
        return path if path.is_absolute() else self.project_root / path

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> DhdSettings:
        """Build settings for one invocation.

        An explicit *config_path* must exist. Otherwise ``dhd.toml`` is
        discovered from *project_root* (or the working directory).
        """
        toml_path = _locate(config_path, project_root)
        if project_root is None:
            project_root = toml_path.parent if toml_path else Path.cwd()
        flags = {key: value for key, value in cli_flags.items() if value is not None}

        _tls.toml_path = toml_path
        try:
            return cls(project_root=project_root, config_path=toml_path, **flags)
        finally:
            _tls.toml_path = None
