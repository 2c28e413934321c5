# File: schemaforge/utils.py
"""
Schemaforge - Utility Functions & Helpers
=========================================
String inflection used by the template helpers, file I/O used by the
emitter, and the ``Timer`` context manager used for step metrics.

Every inflection goes through ``_words()``, which splits any casing style
(``OrderItem``, ``order_item``, ``order-item``, ``getHTTPResponse``) into
lowercase words. The results are cached with ``lru_cache``: the same
table and column names are inflected over and over while rendering.
"""

from __future__ import annotations

import contextlib
import functools
import hashlib
import logging
import os
import re
import stat
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.utils")

# ---------------------------------------------------------------------------
# Word splitting
# ---------------------------------------------------------------------------

# Acronym followed by a capitalised word, a (capitalised) word, a bare
# acronym, or a run of digits.
_WORD_RE: Pattern[str] = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_TEMPLATE_MARKER_RE: Pattern[str] = re.compile(r"\{\{|\{%")


@functools.lru_cache(maxsize=None)
def _words(name: str) -> Tuple[str, ...]:
    return tuple(w.lower() for w in _WORD_RE.findall(name))


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    ``UserProfile`` -> ``user_profile``, ``getHTTPResponse`` -> ``get_http_response``.
    """
    return "_".join(_words(name))


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    return "".join(w.capitalize() for w in _words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    pascal: str = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    return "-".join(_words(name))


@functools.lru_cache(maxsize=None)
def to_title_case(name: str) -> str:
    """``order_item`` -> ``Order Item``."""
    return " ".join(w.capitalize() for w in _words(name))


# ---------------------------------------------------------------------------
# Plural / singular
# ---------------------------------------------------------------------------

_IRREGULAR: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "foot": "feet",
    "tooth": "teeth",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
}
_IRREGULAR_REVERSED: Dict[str, str] = {plural: singular for singular, plural in _IRREGULAR.items()}

# First matching rule wins. A word already ending in a single "s" is left alone.
_PLURAL_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"([^s])s$", re.IGNORECASE), r"\1s"),
    (re.compile(r"([^aeiou])y$", re.IGNORECASE), r"\1ies"),
    (re.compile(r"(ss|sh|ch|x|z)$", re.IGNORECASE), r"\1es"),
    (re.compile(r"fe$", re.IGNORECASE), "ves"),
    (re.compile(r"([^f])f$", re.IGNORECASE), r"\1ves"),
    (re.compile(r"([^aeiou])o$", re.IGNORECASE), r"\1oes"),
]
_SINGULAR_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"(\w{2})ies$", re.IGNORECASE), r"\1y"),
    (re.compile(r"ves$", re.IGNORECASE), "f"),
    (re.compile(r"([^aeiou])oes$", re.IGNORECASE), r"\1o"),
    (re.compile(r"(ss|sh|ch|x|z)es$", re.IGNORECASE), r"\1"),
    (re.compile(r"([^s])s$", re.IGNORECASE), r"\1"),
]


def _inflect_last_word(
    name: str,
    table: Dict[str, str],
    already: Dict[str, str],
    rules: List[Tuple[Pattern[str], str]],
    fallback,
) -> str:
    # Only the part after the last "_" changes: order_item -> order_items.
    head, sep, last = name.rpartition("_")
    lower: str = last.lower()
    if lower in table:
        replacement: str = table[lower]
        if last[:1].isupper():
            replacement = replacement.capitalize()
        return head + sep + replacement
    if lower in already:
        return name
    for pattern, repl in rules:
        if pattern.search(last):
            return head + sep + pattern.sub(repl, last)
    return head + sep + fallback(last)


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """Naive English pluralisation, good enough for table names."""
    if not name:
        return ""
    return _inflect_last_word(name, _IRREGULAR, _IRREGULAR_REVERSED, _PLURAL_RULES, lambda w: w + "s")


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    if not name:
        return ""
    return _inflect_last_word(name, _IRREGULAR_REVERSED, _IRREGULAR, _SINGULAR_RULES, lambda w: w)


# ---------------------------------------------------------------------------
# Template-string helpers
# ---------------------------------------------------------------------------


def has_template_markers(text: str) -> bool:
    """True when *text* contains ``{{`` or ``{%``."""
    return bool(_TEMPLATE_MARKER_RE.search(text))


def split_csv(text: str) -> List[str]:
    """Split on commas, strip each piece and drop empties."""
    return [piece.strip() for piece in text.split(",") if piece.strip()]


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create *path* and all missing parents."""
    path.mkdir(parents=True, exist_ok=True)


def _output_mode(path: Path) -> int:
    # Keep the mode of a file being replaced; new files follow the umask.
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask: int = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path* as UTF-8, overwriting any existing file.

    With *atomic* the bytes land in a hidden sibling first and are then
    renamed over *path*; readers never see a partial file. The temporary
    file is removed on any failure.

    Returns the number of bytes written.
    """
    data: bytes = content.encode("utf-8")
    ensure_directory(path.parent)

    if not atomic:
        path.write_bytes(data)
        return len(data)

    mode: int = _output_mode(path)
    tmp = tempfile.NamedTemporaryFile(
        mode="wb",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".partial",
        delete=False,
    )
    try:
        with tmp:
            tmp.write(data)
        os.chmod(tmp.name, mode)
        os.replace(tmp.name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp.name)
        raise

    logger.debug("Wrote %d bytes to %s", len(data), path)
    return len(data)


def is_writable_directory(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.W_OK)


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Hex SHA-256 of the UTF-8 encoding of *content*."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Number of lines; a trailing newline does not start a new one."""
    return len(content.splitlines())


@dataclass
class Timer:
    """
    Wall-clock timer for run steps::

        with Timer("resolve prompts") as t:
            ...
        t.elapsed
    """

    label: str = "operation"
    elapsed: float = 0.0
    _started: Optional[float] = field(default=None, repr=False)

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._started is not None:
            self.elapsed = time.perf_counter() - self._started
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_title_case",
    "to_plural",
    "to_singular",
    "has_template_markers",
    "split_csv",
    "ensure_directory",
    "write_file",
    "is_writable_directory",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("schemaforge.utils loaded - %d public symbols.", len(__all__))
