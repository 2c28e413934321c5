# File: schemaforge/registry.py
"""
Schemaforge - Profile Registry
==============================
A small YAML file mapping profile names to profile file paths, so that
``schemaforge run -p rust-backend`` works from any directory.

Location: ``$SCHEMAFORGE_CONFIG_DIR/profiles.yaml``, falling back to
``$XDG_CONFIG_HOME/schemaforge`` and then ``~/.config/schemaforge``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from schemaforge.errors import ProfileError
from schemaforge.models import Profile
from schemaforge.profile import load_profile
from schemaforge.utils import write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.registry")

CONFIG_DIR_ENV: str = "SCHEMAFORGE_CONFIG_DIR"
REGISTRY_FILENAME: str = "profiles.yaml"
PROFILE_NAME_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_-]+$")
DEFAULT_PROFILE_NAME: str = "default"


def default_config_dir() -> Path:
    explicit: Optional[str] = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        return Path(explicit).expanduser()
    xdg: Optional[str] = os.environ.get("XDG_CONFIG_HOME")
    base: Path = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "schemaforge"


class ProfileRegistry:
    """
    Named profile lookup backed by ``profiles.yaml``.

    Usage::

        registry = ProfileRegistry()
        registry.add(Path("./my-profile"))
        profile = registry.load("rust-backend")
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self._config_dir: Path = Path(config_dir) if config_dir else default_config_dir()
        self._path: Path = self._config_dir / REGISTRY_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    # -----------------------------------------------------------------
    # Storage
    # -----------------------------------------------------------------

    def _read(self) -> Dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ProfileError(f"Cannot read profile registry: {exc}", subject=str(self._path)) from exc
        profiles = raw.get("profiles", {}) if isinstance(raw, dict) else None
        if not isinstance(profiles, dict):
            raise ProfileError("Malformed profile registry.", subject=str(self._path))
        return {str(k): str(v) for k, v in profiles.items()}

    def _write(self, profiles: Dict[str, str]) -> None:
        content: str = yaml.safe_dump(
            {"profiles": dict(sorted(profiles.items()))},
            default_flow_style=False,
            sort_keys=False,
        )
        try:
            write_file(self._path, content)
        except OSError as exc:
            raise ProfileError(f"Cannot write profile registry: {exc}", subject=str(self._path)) from exc

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def list(self) -> Dict[str, str]:
        """All registered profiles, name -> file path."""
        return self._read()

    def add(self, path: Path, name: Optional[str] = None, *, default: bool = False) -> str:
        """
        Register the profile at *path* (a file or a directory holding the
        default profile file). Returns the registered name.

        With *default* the profile is registered as ``default`` instead of
        under its own name.

        Raises:
            ProfileError: invalid name, *name* combined with *default*, or
                a profile that does not load.
        """
        if default and name:
            raise ProfileError("A name cannot be given together with default.", subject=name)
        profile: Profile = load_profile(Path(path))
        name = DEFAULT_PROFILE_NAME if default else (name or profile.name)
        if not name or not PROFILE_NAME_RE.match(name):
            raise ProfileError(
                "Profile names may contain only letters, '-' and '_'.",
                subject=name or "(empty)",
            )

        profiles: Dict[str, str] = self._read()
        if name in profiles:
            logger.warning("Replacing registered profile '%s' (was %s).", name, profiles[name])
        profiles[name] = str(profile.source)
        self._write(profiles)
        logger.info("Registered profile '%s' -> %s", name, profile.source)
        return name

    def remove(self, name: str) -> None:
        profiles: Dict[str, str] = self._read()
        if name not in profiles:
            raise ProfileError("No such registered profile.", subject=name)
        del profiles[name]
        self._write(profiles)
        logger.info("Removed profile '%s'.", name)

    def resolve(self, name: str) -> Path:
        profiles: Dict[str, str] = self._read()
        if name not in profiles:
            known: str = ", ".join(sorted(profiles)) or "(none)"
            raise ProfileError(f"Unknown profile. Registered: {known}", subject=name)
        return Path(profiles[name])

    def load(self, name: str) -> Profile:
        return load_profile(self.resolve(name))


__all__: List[str] = [
    "CONFIG_DIR_ENV",
    "DEFAULT_PROFILE_NAME",
    "PROFILE_NAME_RE",
    "ProfileRegistry",
    "default_config_dir",
]
