"""Configuration source discovery.

Walks a modules directory for ``*.ts`` sources, skipping build output,
dependency folders, hidden entries and type declaration files.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from dhdctl.extraction.extractor import ConfigSource

SOURCE_SUFFIX = ".ts"

# Directories to skip when discovering configuration sources.
SKIP_DIRS = frozenset({"node_modules", "dist", "build", ".git", "target"})


def find_sources(root: Path, *, exclude_dirs: Iterable[str] = ()) -> list[Path]:
    """Return source files under *root* in sorted, deterministic order."""
    if root.is_file():
        return [root] if _is_source(root) else []
    if not root.is_dir():
        return []
    skip = SKIP_DIRS | set(exclude_dirs)
    found: list[Path] = []
    for path in sorted(root.rglob(f"*{SOURCE_SUFFIX}")):
        relative = path.relative_to(root)
        if any(part in skip or part.startswith(".") for part in relative.parts[:-1]):
            continue
        if _is_source(path):
            found.append(path)
    return found


def _is_source(path: Path) -> bool:
    name = path.name
    return (
        path.is_file()
        and name.endswith(SOURCE_SUFFIX)
        and not name.endswith(".d.ts")
        and not name.startswith(".")
    )


def load_sources(root: Path, *, exclude_dirs: Iterable[str] = ()) -> list[ConfigSource]:
    """Read every discovered source into a :class:`ConfigSource`."""
    return [
        ConfigSource(
            origin=str(path),
            text=path.read_text(encoding="utf-8"),
            base_dir=path.parent,
        )
        for path in find_sources(root, exclude_dirs=exclude_dirs)
    ]
