"""Locating ``dhd.toml``.

Lookup order:
  1. ``DHD_CONFIG``: used as given; a dangling path means "no config"
  2. the nearest ``dhd.toml`` in the start directory or an ancestor
  3. the per-user file, ``$XDG_CONFIG_HOME/dhd/dhd.toml``
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "dhd.toml"
CONFIG_ENV_VAR = "DHD_CONFIG"


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "dhd" / CONFIG_FILENAME


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file that applies to *start* (default: cwd), if any."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

    fallback = user_config_path()
    return fallback if fallback.is_file() else None
