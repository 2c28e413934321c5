# File: schemaforge/rendering.py
"""
Schemaforge - Template Rendering Layer
======================================
Thin wrapper around a Jinja2 ``Environment`` that every other component
renders through: prompt conditions and texts, option lists, target
conditions and paths, formatter commands and the target templates
themselves.

Behaviour shared by all renders:

* ``autoescape`` is off; output is source code, not HTML.
* Undefined names render as ``""`` and attribute access on an undefined
  value stays undefined (``ChainableUndefined``), so
  ``{% if prompts.google_auth == "1" %}1{% endif %}`` simply renders empty
  when the prompt was never asked.
* Any failure surfaces as ``RenderError``.

Helpers available inside templates:

    filters   snake_case, pascal_case, camel_case, kebab_case, title_case,
              plural, singular, json, datetime
    globals   inflect(value, to_pascal_case=true, ...), concat(...),
              json(value), now(fmt)
"""

from __future__ import annotations

import functools
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from jinja2 import (
    ChainableUndefined,
    DictLoader,
    Environment,
    Template,
    TemplateError,
    TemplateSyntaxError,
    Undefined,
)

from schemaforge.errors import RenderError
from schemaforge.utils import (
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_singular,
    to_snake_case,
    to_title_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.rendering")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEMPLATE_EXTENSIONS: Tuple[str, ...] = (".j2", ".jinja", ".jinja2", ".tpl", ".tmpl")
ACTIVE_MARKER: str = "1"
DEFAULT_DATETIME_FORMAT: str = "%Y-%m-%d %H:%M:%S"
STRING_CACHE_SIZE: int = 512

_INFLECTIONS: Dict[str, Callable[[str], str]] = {
    "to_snake_case": to_snake_case,
    "to_pascal_case": to_pascal_case,
    "to_camel_case": to_camel_case,
    "to_kebab_case": to_kebab_case,
    "to_title_case": to_title_case,
    "to_plural": to_plural,
    "to_singular": to_singular,
}


# ---------------------------------------------------------------------------
# Template helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    if value is None or isinstance(value, Undefined):
        return ""
    return str(value)


def _inflect(value: Any, **operations: Any) -> str:
    """Apply every enabled inflection, in the order given."""
    result: str = _text(value)
    for op_name, enabled in operations.items():
        func: Optional[Callable[[str], str]] = _INFLECTIONS.get(op_name)
        if func is None:
            raise ValueError(
                f"Unknown inflection '{op_name}'. "
                f"Available: {', '.join(sorted(_INFLECTIONS))}"
            )
        if enabled:
            result = func(result)
    return result


def _flatten(items: Iterable[Any]) -> Iterable[Any]:
    for item in items:
        if isinstance(item, (list, tuple)):
            yield from _flatten(item)
        elif item is None or isinstance(item, Undefined):
            continue
        else:
            yield item


def _concat(
    *items: Any,
    separator: str = "",
    distinct: bool = False,
    quote: Optional[str] = None,
) -> str:
    """Join all arguments (lists are flattened) into one string."""
    pieces: List[str] = [str(item) for item in _flatten(items)]
    if distinct:
        pieces = list(dict.fromkeys(pieces))
    if quote:
        pieces = [f"{quote}{piece}{quote}" for piece in pieces]
    return separator.join(pieces)


def _to_json(value: Any, pretty: bool = False) -> str:
    """Serialise the first argument as JSON."""
    if isinstance(value, Undefined):
        return "null"
    return json.dumps(
        value,
        ensure_ascii=False,
        indent=2 if pretty else None,
        default=str,
    )


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text: str = _text(value).strip()
    if not text:
        raise ValueError("Empty datetime value.")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _format_datetime(value: Any, fmt: str = DEFAULT_DATETIME_FORMAT) -> str:
    return _coerce_datetime(value).strftime(fmt)


def _now(fmt: Optional[str] = None, utc: bool = True) -> str:
    moment: datetime = datetime.now(timezone.utc) if utc else datetime.now().astimezone()
    if fmt is None:
        return moment.isoformat()
    return moment.strftime(fmt)


# ---------------------------------------------------------------------------
# Template discovery
# ---------------------------------------------------------------------------


def template_name_for(relative_path: str) -> str:
    """``models/entity.rs.j2`` -> ``models/entity.rs``."""
    for ext in TEMPLATE_EXTENSIONS:
        if relative_path.endswith(ext):
            return relative_path[: -len(ext)]
    return relative_path


def load_template_directory(directory: Path) -> Dict[str, str]:
    """
    Read every template under *directory*.

    Each file is registered under its ``/``-separated relative path with
    the template extension stripped, and also under its full relative
    path so includes may name either. Hidden files and directories are
    skipped.
    """
    templates: Dict[str, str] = {}
    if not directory.is_dir():
        raise RenderError(f"Templates directory not found: {directory}")

    for path in sorted(directory.rglob("*")):
        rel_parts: Tuple[str, ...] = path.relative_to(directory).parts
        if not path.is_file() or any(part.startswith(".") for part in rel_parts):
            continue
        relative: str = "/".join(rel_parts)
        content: str = path.read_text(encoding="utf-8")
        name: str = template_name_for(relative)
        if name in templates and name != relative:
            logger.warning(
                "Template name '%s' is provided by more than one file; keeping the first.",
                name,
            )
        else:
            templates[name] = content
        templates.setdefault(relative, content)

    logger.info("Loaded %d template(s) from %s.", len(templates), directory)
    return templates


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class Renderer:
    """
    Renders template strings and named templates against a context.

    Named templates come from an in-memory ``name -> content`` mapping;
    use :meth:`from_directory` to build one from a templates directory.
    """

    def __init__(self, templates: Optional[Mapping[str, str]] = None) -> None:
        self._templates: Dict[str, str] = dict(templates or {})
        self._env: Environment = Environment(
            loader=DictLoader(self._templates),
            autoescape=False,
            undefined=ChainableUndefined,
            keep_trailing_newline=True,
        )
        self._compile_string: Callable[[str], Template] = functools.lru_cache(maxsize=STRING_CACHE_SIZE)(
            self._env.from_string
        )
        self._register_helpers()

    @classmethod
    def from_directory(cls, directory: Path) -> "Renderer":
        return cls(load_template_directory(directory))

    def _register_helpers(self) -> None:
        filters: Dict[str, Callable[..., Any]] = {
            "snake_case": lambda v: to_snake_case(_text(v)),
            "pascal_case": lambda v: to_pascal_case(_text(v)),
            "camel_case": lambda v: to_camel_case(_text(v)),
            "kebab_case": lambda v: to_kebab_case(_text(v)),
            "title_case": lambda v: to_title_case(_text(v)),
            "plural": lambda v: to_plural(_text(v)),
            "singular": lambda v: to_singular(_text(v)),
            "json": _to_json,
            "datetime": _format_datetime,
        }
        self._env.filters.update(filters)
        self._env.globals.update(
            {
                "inflect": _inflect,
                "concat": _concat,
                "json": _to_json,
                "now": _now,
            }
        )

    # -----------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------

    @property
    def template_names(self) -> List[str]:
        return sorted(self._templates)

    def has_template(self, name: str) -> bool:
        return name in self._templates

    def check_syntax(self, source: str) -> Optional[str]:
        """Return the syntax error message for *source*, or None when it parses."""
        try:
            self._env.parse(source)
        except TemplateSyntaxError as exc:
            return f"line {exc.lineno}: {exc.message}"
        return None

    def compile_template(self, name: str) -> Template:
        """Parse the named template without rendering it."""
        if not self.has_template(name):
            raise RenderError(f"Template not found: {name}", subject=name)
        try:
            return self._env.get_template(name)
        except TemplateError as exc:
            raise RenderError(f"{type(exc).__name__}: {exc}", subject=name) from exc

    # -----------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------

    def render_string(self, source: str, context: Any) -> str:
        """Render an inline template string."""
        try:
            return self._compile_string(source).render(_as_mapping(context))
        # Helpers and user templates can raise anything, including RecursionError.
        except Exception as exc:
            raise RenderError(f"{type(exc).__name__}: {exc}", subject=_preview(source)) from exc

    def render_template(self, name: str, context: Any) -> str:
        """Render the named template."""
        if not self.has_template(name):
            raise RenderError(f"Template not found: {name}", subject=name)
        try:
            return self._env.get_template(name).render(_as_mapping(context))
        except Exception as exc:
            raise RenderError(f"{type(exc).__name__}: {exc}", subject=name) from exc

    def is_active(self, condition: Optional[str], context: Any) -> bool:
        """
        Evaluate a declaration condition.

        No condition means active. Raises ``RenderError`` when the
        condition itself cannot be rendered; callers decide what that means.
        """
        if condition is None:
            return True
        return condition_met(self.render_string(condition, context))


def condition_met(rendered: str) -> bool:
    """A condition holds iff it rendered to ``"1"`` (surrounding whitespace ignored)."""
    return rendered.strip() == ACTIVE_MARKER


def _as_mapping(context: Any) -> Mapping[str, Any]:
    if context is None:
        return {}
    if isinstance(context, Mapping):
        return context
    to_dict: Optional[Callable[[], Mapping[str, Any]]] = getattr(context, "to_dict", None)
    if to_dict is None:
        raise TypeError(f"Cannot render against {type(context).__name__}")
    return to_dict()


def _preview(source: str, limit: int = 60) -> str:
    flat: str = " ".join(source.split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TEMPLATE_EXTENSIONS",
    "ACTIVE_MARKER",
    "STRING_CACHE_SIZE",
    "Renderer",
    "condition_met",
    "load_template_directory",
    "template_name_for",
]

logger.debug("schemaforge.rendering loaded.")
