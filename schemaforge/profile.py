# File: schemaforge/profile.py
"""
Schemaforge - Profile Loader
============================
Reads a profile file (TOML or YAML) into a ``Profile`` and resolves the
run configuration it describes: the database DSN and the target
directory, with command-line ``ProfileOverrides`` taking precedence.

Profile layout (TOML shown; YAML uses the same keys)::

    [profile]
    name = "rust-backend"
    env-file = ".env"
    env-var = "DATABASE_URL"
    target-dir = "generated"
    templates-dir = "templates"
    prompts = ["password_reset"]
    targets = ["backend"]

    [prompt.password_reset]
    prompt = "Enable password reset?"
    options = ["0", "1"]

    [target.backend]
    template = "backend"
    target = "{{ table_name }}.rs"
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from schemaforge.errors import ProfileError
from schemaforge.models import (
    Profile,
    ProfileOverrides,
    ProfileSettings,
    PromptDeclaration,
    TargetDeclaration,
)
from schemaforge.utils import ensure_directory, is_writable_directory

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.profile")

DEFAULT_PROFILE_FILENAMES: Tuple[str, ...] = (
    "Schemaforge.toml",
    "Schemaforge.yaml",
    "Schemaforge.yml",
)
_TOML_SUFFIXES: Tuple[str, ...] = (".toml",)
_YAML_SUFFIXES: Tuple[str, ...] = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def find_profile_file(directory: Path) -> Path:
    """Return the default profile file inside *directory*."""
    for filename in DEFAULT_PROFILE_FILENAMES:
        candidate: Path = directory / filename
        if candidate.is_file():
            return candidate
    raise ProfileError(
        f"No profile file found (looked for {', '.join(DEFAULT_PROFILE_FILENAMES)}).",
        subject=str(directory),
    )


def _read_raw(path: Path) -> Dict[str, Any]:
    suffix: str = path.suffix.lower()
    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileError(f"Cannot read profile: {exc}", subject=str(path)) from exc

    try:
        if suffix in _TOML_SUFFIXES:
            raw: Any = tomllib.loads(text)
        elif suffix in _YAML_SUFFIXES:
            raw = yaml.safe_load(text)
        else:
            raise ProfileError(
                f"Unsupported profile format '{suffix}'. Use .toml, .yaml or .yml.",
                subject=str(path),
            )
    except tomllib.TOMLDecodeError as exc:
        raise ProfileError(f"Invalid TOML: {exc}", subject=str(path)) from exc
    except yaml.YAMLError as exc:
        raise ProfileError(f"Invalid YAML: {exc}", subject=str(path)) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ProfileError(
            f"Profile root must be a mapping, got {type(raw).__name__}.",
            subject=str(path),
        )
    return raw


def _declaration_tables(raw: Mapping[str, Any], key: str) -> Dict[str, Dict[str, Any]]:
    section: Any = raw.get(key) or {}
    if not isinstance(section, dict):
        raise ProfileError(f"[{key}] must be a table of declarations.")

    tables: Dict[str, Dict[str, Any]] = {}
    for decl_id, body in section.items():
        if not isinstance(body, dict):
            raise ProfileError(f"[{key}.{decl_id}] must be a table.")
        body = dict(body)
        declared_id: Any = body.pop("id", decl_id)
        if declared_id != decl_id:
            raise ProfileError(f"[{key}.{decl_id}] declares a conflicting id '{declared_id}'.")
        tables[str(decl_id)] = body
    return tables


def _ordered_ids(
    listed: Optional[List[str]],
    declared: List[str],
    label: str,
) -> Tuple[List[str], List[str]]:
    """Resolve the run order; returns ``(ordered, unlisted)``."""
    if listed is None:
        return list(declared), []

    seen: set = set()
    for name in listed:
        if name not in declared:
            raise ProfileError(f"The [profile] {label}s list names an undeclared {label} '{name}'.")
        if name in seen:
            raise ProfileError(f"The [profile] {label}s list names '{name}' more than once.")
        seen.add(name)
    return list(listed), [d for d in declared if d not in seen]


def parse_profile(raw: Mapping[str, Any], *, source: Optional[Path] = None) -> Profile:
    """
    Build a ``Profile`` from an already-parsed document.

    Raises:
        ProfileError: on any structural or validation problem.
    """
    base_dir: Path = source.parent if source is not None else Path(".")
    try:
        settings: ProfileSettings = ProfileSettings.model_validate(raw.get("profile") or {})
        prompt_tables = _declaration_tables(raw, "prompt")
        target_tables = _declaration_tables(raw, "target")

        prompt_order, unlisted_prompts = _ordered_ids(settings.prompts, list(prompt_tables), "prompt")
        target_order, unlisted_targets = _ordered_ids(settings.targets, list(target_tables), "target")

        prompts: List[PromptDeclaration] = [
            PromptDeclaration.model_validate({"id": pid, **prompt_tables[pid]})
            for pid in prompt_order
        ]
        targets: List[TargetDeclaration] = [
            TargetDeclaration.model_validate({"id": tid, **target_tables[tid]})
            for tid in target_order
        ]

        profile: Profile = Profile(
            name=settings.name or (source.stem if source is not None else ""),
            source=str(source) if source is not None else None,
            base_dir=str(base_dir),
            settings=settings,
            prompts=prompts,
            targets=targets,
            unlisted_prompts=unlisted_prompts,
            unlisted_targets=unlisted_targets,
        )
    except ValidationError as exc:
        raise ProfileError(
            f"Invalid profile: {exc}",
            subject=str(source) if source is not None else None,
        ) from exc
    except ProfileError as exc:
        if exc.subject is None and source is not None:
            exc.subject = str(source)
        raise

    for label, ids in (("prompt", unlisted_prompts), ("target", unlisted_targets)):
        if ids:
            logger.warning("Declared %s(s) not listed in [profile] and ignored: %s", label, ", ".join(ids))

    logger.info(
        "Loaded profile '%s': %d prompt(s), %d target(s).",
        profile.name,
        len(profile.prompts),
        len(profile.targets),
    )
    return profile


def load_profile(path: Path) -> Profile:
    """
    Load a profile from a file, or from the default file in a directory.

    Raises:
        ProfileError: unreadable file, parse error, invalid content.
    """
    path = Path(path).expanduser()
    if path.is_dir():
        path = find_profile_file(path)
    if not path.is_file():
        raise ProfileError("Profile file not found.", subject=str(path))
    return parse_profile(_read_raw(path), source=path.resolve())


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------


def apply_overrides(
    settings: ProfileSettings,
    overrides: Optional[ProfileOverrides] = None,
) -> ProfileSettings:
    """Return a copy of *settings* with every non-None override applied."""
    if overrides is None:
        return settings.model_copy()
    updates: Dict[str, Any] = overrides.model_dump(exclude_none=True)
    return settings.model_copy(update=updates)


def resolve_dsn(
    settings: ProfileSettings,
    *,
    context_dir: Path = Path("."),
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Work out the database URL.

    Order: explicit ``dsn``; then ``env-var`` looked up in ``env-file``;
    then ``env-var`` in the process environment.

    Raises:
        ProfileError: no DSN can be determined.
    """
    if settings.dsn:
        return settings.dsn

    environ = os.environ if environ is None else environ

    if not settings.env_var:
        raise ProfileError(
            "No DSN configured. Set 'dsn', or 'env-file' and 'env-var'."
        )

    if settings.env_file:
        env_path: Path = Path(settings.env_file).expanduser()
        if not env_path.is_absolute():
            env_path = context_dir / env_path
        if not env_path.is_file():
            raise ProfileError("Env file not found.", subject=str(env_path))
        value: Optional[str] = dotenv_values(env_path).get(settings.env_var)
        if value:
            logger.debug("DSN taken from %s (%s).", env_path, settings.env_var)
            return value

    value = environ.get(settings.env_var)
    if not value:
        raise ProfileError(
            f"Environment variable '{settings.env_var}' is not set.",
            subject=settings.env_file or None,
        )
    return value


def resolve_target_dir(settings: ProfileSettings, *, context_dir: Path = Path(".")) -> Path:
    """
    Resolve ``target-dir`` against *context_dir*, creating it when missing.

    Raises:
        ProfileError: the directory cannot be created or is not writable.
    """
    raw: str = settings.target_dir.strip() or "."
    target: Path = Path(raw).expanduser()
    if not target.is_absolute():
        target = context_dir / target

    try:
        ensure_directory(target)
    except OSError as exc:
        raise ProfileError(f"Cannot create target directory: {exc}", subject=str(target)) from exc
    if not is_writable_directory(target):
        raise ProfileError("Target directory is not writable.", subject=str(target))
    return target.resolve()


__all__: List[str] = [
    "DEFAULT_PROFILE_FILENAMES",
    "apply_overrides",
    "find_profile_file",
    "load_profile",
    "parse_profile",
    "resolve_dsn",
    "resolve_target_dir",
]

logger.debug("schemaforge.profile loaded.")
