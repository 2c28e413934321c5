# File: schemaforge/validators.py
"""
Schemaforge - Profile Validators
================================
Semantic checks on a loaded ``Profile`` that pydantic cannot express:
template references, template syntax of every condition/path/formatter,
and prompt ordering problems.

Each check returns a ``ValidationResult``; ``validate_profile`` merges
them all.

Usage::

    from schemaforge.validators import validate_profile
    result = validate_profile(profile)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from schemaforge.errors import RenderError
from schemaforge.models import Profile, PromptDeclaration
from schemaforge.rendering import Renderer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """One finding: level, short code, message and optional context."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    __str__ = __repr__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances. Truthy when error-free."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self._items if i.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self._items if not i.is_error]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self) -> List[str]:
        return [i.code for i in self._items]

    def summary(self) -> str:
        return f"Validation: {len(self.errors)} error(s), {len(self.warnings)} warning(s)."

    def format_report(self) -> str:
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "❌" if item.is_error else "⚠️"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)

    def __bool__(self) -> bool:
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_PROMPT_REF_RE: re.Pattern[str] = re.compile(
    r"prompts\s*(?:\.\s*([A-Za-z_][A-Za-z0-9_]*)|\[\s*['\"]([A-Za-z_][A-Za-z0-9_]*)['\"]\s*\])"
)


def referenced_prompts(source: str) -> List[str]:
    """Prompt ids a template reads through ``prompts.x`` or ``prompts['x']``."""
    found: List[str] = []
    for dotted, indexed in _PROMPT_REF_RE.findall(source):
        name: str = dotted or indexed
        if name not in found:
            found.append(name)
    return found


def _prompt_sources(decl: PromptDeclaration) -> Dict[str, str]:
    sources: Dict[str, str] = {"prompt": decl.prompt}
    if decl.condition:
        sources["condition"] = decl.condition
    if isinstance(decl.options, str):
        sources["options"] = decl.options
    return sources


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_templates_dir(profile: Profile) -> ValidationResult:
    result = ValidationResult()
    path = profile.templates_path
    if not path.is_dir():
        result.add_error(
            "TEMPLATES_DIR_MISSING",
            f"Templates directory '{path}' does not exist.",
        )
    return result


def validate_prompts(profile: Profile, renderer: Renderer) -> ValidationResult:
    """Syntax of every prompt template, plus references to unresolved answers."""
    result = ValidationResult()
    position: Dict[str, int] = {p.id: i for i, p in enumerate(profile.prompts)}

    for idx, decl in enumerate(profile.prompts):
        for field_name, source in _prompt_sources(decl).items():
            error: Optional[str] = renderer.check_syntax(source)
            if error:
                result.add_error(
                    "PROMPT_SYNTAX",
                    f"Prompt '{decl.id}' {field_name} does not parse: {error}",
                    {"prompt": decl.id, "field": field_name},
                )
            for ref in referenced_prompts(source):
                if ref not in position:
                    result.add_warning(
                        "PROMPT_UNKNOWN_REF",
                        f"Prompt '{decl.id}' {field_name} reads prompts.{ref}, which is never resolved.",
                        {"prompt": decl.id, "ref": ref},
                    )
                elif position[ref] >= idx:
                    result.add_warning(
                        "PROMPT_FORWARD_REF",
                        f"Prompt '{decl.id}' {field_name} reads prompts.{ref}, "
                        f"which is resolved later and will always be missing here.",
                        {"prompt": decl.id, "ref": ref},
                    )

        if isinstance(decl.options, (list, dict)) and not decl.options:
            result.add_warning(
                "PROMPT_EMPTY_OPTIONS",
                f"Prompt '{decl.id}' has an empty option list; it will be asked as free text.",
            )

    for prompt_id in profile.unlisted_prompts:
        result.add_warning(
            "PROMPT_UNLISTED",
            f"Prompt '{prompt_id}' is declared but not in the [profile] prompts list.",
        )
    return result


def validate_targets(profile: Profile, renderer: Renderer) -> ValidationResult:
    """Template references and syntax of conditions, paths and formatters."""
    result = ValidationResult()
    known_prompts = {p.id for p in profile.prompts}

    for decl in profile.targets:
        if not renderer.has_template(decl.template):
            result.add_error(
                "TARGET_TEMPLATE_MISSING",
                f"Target '{decl.id}' uses template '{decl.template}', which does not exist.",
                {"target": decl.id},
            )

        sources: Dict[str, Optional[str]] = {
            "condition": decl.condition,
            "target": decl.target,
            "formatter": decl.formatter,
        }
        for field_name, source in sources.items():
            if not source:
                continue
            error: Optional[str] = renderer.check_syntax(source)
            if error:
                result.add_error(
                    "TARGET_SYNTAX",
                    f"Target '{decl.id}' {field_name} does not parse: {error}",
                    {"target": decl.id, "field": field_name},
                )
            if field_name != "formatter":
                for ref in referenced_prompts(source):
                    if ref not in known_prompts:
                        result.add_warning(
                            "TARGET_UNKNOWN_REF",
                            f"Target '{decl.id}' {field_name} reads prompts.{ref}, which is never resolved.",
                            {"target": decl.id, "ref": ref},
                        )

    for target_id in profile.unlisted_targets:
        result.add_warning(
            "TARGET_UNLISTED",
            f"Target '{target_id}' is declared but not in the [profile] targets list.",
        )
    return result


def validate_template_sources(renderer: Renderer) -> ValidationResult:
    """Every loaded template body must at least parse."""
    result = ValidationResult()
    for name in renderer.template_names:
        try:
            renderer.compile_template(name)
        except RenderError as exc:
            result.add_error("TEMPLATE_SYNTAX", f"Template '{name}' does not parse: {exc.message}")
    return result


# ---------------------------------------------------------------------------
# Aggregate entry point
# ---------------------------------------------------------------------------


def validate_profile(profile: Profile, renderer: Optional[Renderer] = None) -> ValidationResult:
    """
    Run every profile check.

    Without an explicit *renderer*, templates are loaded from the
    profile's templates directory (when it exists).
    """
    result = ValidationResult()
    dir_result: ValidationResult = validate_templates_dir(profile)
    result.merge(dir_result)

    if renderer is None:
        renderer = Renderer.from_directory(profile.templates_path) if dir_result else Renderer()

    result.merge(validate_template_sources(renderer))
    result.merge(validate_prompts(profile, renderer))
    result.merge(validate_targets(profile, renderer))

    if result:
        logger.info("Profile '%s' valid. %s", profile.name, result.summary())
    else:
        logger.error("Profile '%s' invalid. %s", profile.name, result.summary())
    return result


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "referenced_prompts",
    "validate_profile",
    "validate_prompts",
    "validate_targets",
    "validate_template_sources",
    "validate_templates_dir",
]

logger.debug("schemaforge.validators loaded.")
