# File: schemaforge/prompts.py
"""
Schemaforge - Answer Resolver
=============================
Walks the profile's prompt declarations once, in declaration order, and
writes each answer into ``context.prompts`` before moving on, so the
condition, text and options of a later prompt can read any earlier answer.

Per declaration:

    1. Render ``condition``. Anything but ``"1"`` (including a render
       failure) skips the prompt: no key is written.
    2. Render ``options`` into a choice list (or free-text mode).
    3. An override for the id is validated and used as-is; the terminal
       is never touched for it.
    4. Otherwise the collector asks: free text, single select, or multi
       select.
    5. The answer is merged into the context immediately.

Invalid overrides and required prompts left empty raise ``PromptError``,
which is fatal for the run.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Set,
    TextIO,
    Tuple,
    Union,
)

from schemaforge.context import Answer, TemplateContext
from schemaforge.errors import PromptError, RenderError
from schemaforge.models import PromptDeclaration
from schemaforge.rendering import Renderer
from schemaforge.utils import has_template_markers, split_csv

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.prompts")

OverrideValue = Union[str, Sequence[str]]


# ---------------------------------------------------------------------------
# Rendered prompt data
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Choice:
    """One selectable option: the stored ``value`` and what the operator sees."""

    value: str
    label: str


@dataclass(frozen=False, slots=True)
class RenderedPrompt:
    """A prompt declaration with its text and options rendered."""

    prompt_id: str
    text: str = ""
    choices: List[Choice] = field(default_factory=list)
    default: Optional[str] = None
    multiple: bool = False
    ordered: bool = False
    required: bool = False

    @property
    def mode(self) -> str:
        if not self.choices:
            return "text"
        return "multiselect" if self.multiple else "select"

    @property
    def values(self) -> List[str]:
        return [c.value for c in self.choices]


@dataclass(frozen=True, slots=True)
class PromptOutcome:
    """What happened to one declaration during resolution."""

    prompt_id: str
    status: str  # "asked" | "overridden" | "skipped"
    answer: Optional[Answer] = None


# ---------------------------------------------------------------------------
# Collectors
# ---------------------------------------------------------------------------


class Collector(Protocol):
    """Interactive answer source. Implementations re-prompt on invalid input."""

    def ask_text(self, prompt: str, *, required: bool, default: Optional[str] = None) -> str:
        ...

    def ask_select(self, prompt: str, choices: Sequence[Choice], *, required: bool) -> str:
        ...

    def ask_multiselect(
        self,
        prompt: str,
        choices: Sequence[Choice],
        *,
        ordered: bool,
        required: bool,
    ) -> List[str]:
        ...


class ConsoleCollector:
    """
    Numbered-menu prompts on a text terminal.

    Selections accept either the menu number or the option value. Multi
    selections are comma-separated and kept in the order typed.
    """

    def __init__(
        self,
        *,
        input_func: Callable[[str], str] = input,
        output: Optional[TextIO] = None,
        max_attempts: int = 3,
    ) -> None:
        self._input: Callable[[str], str] = input_func
        self._output: TextIO = output or sys.stdout
        self._max_attempts: int = max(1, max_attempts)

    def _print(self, text: str = "") -> None:
        print(text, file=self._output)

    def _read(self, label: str) -> str:
        try:
            return self._input(label).strip()
        except EOFError as exc:
            raise PromptError("Input closed while waiting for an answer.") from exc

    def _show_menu(self, prompt: str, choices: Sequence[Choice], checkboxes: bool) -> None:
        self._print()
        self._print(prompt)
        self._print("-" * 50)
        for i, choice in enumerate(choices, start=1):
            box: str = "[ ] " if checkboxes else ""
            suffix: str = f" ({choice.value})" if choice.label != choice.value else ""
            self._print(f"  {i}. {box}{choice.label}{suffix}")
        self._print()

    @staticmethod
    def _pick(raw: str, choices: Sequence[Choice]) -> Optional[str]:
        for choice in choices:
            if raw == choice.value:
                return choice.value
        if raw.isdigit():
            idx: int = int(raw) - 1
            if 0 <= idx < len(choices):
                return choices[idx].value
        return None

    def ask_text(self, prompt: str, *, required: bool, default: Optional[str] = None) -> str:
        suffix: str = f" [{default}]" if default else ""
        for _ in range(self._max_attempts):
            raw: str = self._read(f"\n{prompt}{suffix}: ")
            if not raw and default:
                return default
            if raw or not required:
                return raw
            self._print("  An answer is required.")
        raise PromptError(f"No answer after {self._max_attempts} attempt(s).", subject=prompt)

    def ask_select(self, prompt: str, choices: Sequence[Choice], *, required: bool) -> str:
        self._show_menu(prompt, choices, checkboxes=False)
        for _ in range(self._max_attempts):
            raw: str = self._read(f"Enter choice [1-{len(choices)}]: ")
            if not raw and not required:
                return ""
            picked: Optional[str] = self._pick(raw, choices)
            if picked is not None:
                return picked
            self._print(f"  Please enter a number between 1 and {len(choices)}.")
        raise PromptError(f"No valid choice after {self._max_attempts} attempt(s).", subject=prompt)

    def ask_multiselect(
        self,
        prompt: str,
        choices: Sequence[Choice],
        *,
        ordered: bool,
        required: bool,
    ) -> List[str]:
        self._show_menu(prompt, choices, checkboxes=True)
        hint: str = "in the order you want them" if ordered else "separated by commas"
        self._print(f"  Enter numbers {hint} (e.g., 1,3).")
        for _ in range(self._max_attempts):
            raw: str = self._read("Your selection: ")
            pieces: List[str] = split_csv(raw)
            if not pieces:
                if not required:
                    return []
                self._print("  Select at least one option.")
                continue
            picked: List[Optional[str]] = [self._pick(p, choices) for p in pieces]
            if all(p is not None for p in picked):
                return [p for p in picked if p is not None]
            self._print("  Please enter valid numbers separated by commas.")
        raise PromptError(f"No valid selection after {self._max_attempts} attempt(s).", subject=prompt)


class NonInteractiveCollector:
    """Refuses every question; used when the terminal must not be touched."""

    def _refuse(self, prompt: str) -> Any:
        raise PromptError(
            "Interactive input is disabled and no override was supplied.",
            subject=prompt,
        )

    def ask_text(self, prompt: str, *, required: bool, default: Optional[str] = None) -> str:
        if default is not None and not required:
            return default
        return self._refuse(prompt)

    def ask_select(self, prompt: str, choices: Sequence[Choice], *, required: bool) -> str:
        return self._refuse(prompt)

    def ask_multiselect(
        self,
        prompt: str,
        choices: Sequence[Choice],
        *,
        ordered: bool,
        required: bool,
    ) -> List[str]:
        return self._refuse(prompt)


# ---------------------------------------------------------------------------
# Override parsing & validation
# ---------------------------------------------------------------------------


def parse_overrides(pairs: Iterable[str]) -> Dict[str, str]:
    """
    Parse ``id=value`` strings (later pairs win).

    Raises:
        PromptError: If a pair has no ``=`` or an empty id.
    """
    overrides: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise PromptError(f"Invalid override '{pair}'. Expected ID=VALUE.")
        overrides[key] = value
    return overrides


def _canonical_order(selected: List[str], choices: Sequence[Choice]) -> List[str]:
    wanted = set(selected)
    return [c.value for c in choices if c.value in wanted]


def finalize_answer(rendered: RenderedPrompt, raw: Any, *, source: str) -> Answer:
    """
    Validate *raw* against *rendered* and normalise it.

    Single answers become stripped strings, multi answers lists of strings
    (canonicalised to option order and de-duplicated unless ``ordered``).

    Raises:
        PromptError: required-but-empty, or a value outside the options.
    """
    values: List[str] = rendered.values

    if rendered.multiple:
        if raw is None:
            pieces: List[str] = []
        elif isinstance(raw, str):
            pieces = split_csv(raw)
        else:
            pieces = [str(item).strip() for item in raw if str(item).strip()]

        if rendered.required and not pieces:
            raise PromptError(f"A value is required ({source}).", subject=rendered.prompt_id)
        if values:
            invalid: List[str] = [p for p in pieces if p not in values]
            if invalid:
                raise PromptError(
                    f"Invalid value(s) {invalid} ({source}); expected any of {values}.",
                    subject=rendered.prompt_id,
                )
        if rendered.ordered:
            return pieces
        if not values:
            return list(dict.fromkeys(pieces))
        return _canonical_order(pieces, rendered.choices)

    if isinstance(raw, (list, tuple)):
        raise PromptError(
            f"Expected a single value ({source}), got a list.",
            subject=rendered.prompt_id,
        )
    value: str = "" if raw is None else str(raw).strip()
    if not value:
        if rendered.required:
            raise PromptError(f"A value is required ({source}).", subject=rendered.prompt_id)
        return ""
    if values and value not in values:
        raise PromptError(
            f"Invalid value '{value}' ({source}); expected one of {values}.",
            subject=rendered.prompt_id,
        )
    return value


def validate_override(rendered: RenderedPrompt, value: OverrideValue) -> Answer:
    """Check a caller-supplied value; failures are fatal, there is no retry."""
    return finalize_answer(rendered, value, source="override")


# ---------------------------------------------------------------------------
# AnswerResolver
# ---------------------------------------------------------------------------


class AnswerResolver:
    """
    Resolves prompt declarations into ``context.prompts``.

    Usage::

        resolver = AnswerResolver(renderer, ConsoleCollector())
        resolver.resolve(profile.prompts, {"auth": "jwt"}, context)
        resolver.outcomes  # what was asked, overridden or skipped
    """

    def __init__(self, renderer: Renderer, collector: Collector) -> None:
        self._renderer: Renderer = renderer
        self._collector: Collector = collector
        self.outcomes: List[PromptOutcome] = []

    # -----------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------

    def _render_options(
        self, decl: PromptDeclaration, context: TemplateContext
    ) -> Tuple[List[Choice], Optional[str]]:
        options: Any = decl.options

        if options is None or isinstance(options, bool):
            return [], None
        if isinstance(options, Mapping):
            return [Choice(str(k), str(v)) for k, v in options.items()], None
        if isinstance(options, (list, tuple)):
            return [Choice(str(v), str(v)) for v in options], None

        text: str = str(options)
        if not has_template_markers(text):
            return [], text
        rendered: str = self._renderer.render_string(text, context)
        return [Choice(v, v) for v in split_csv(rendered)], None

    def render_prompt(
        self,
        decl: PromptDeclaration,
        context: TemplateContext,
        *,
        with_text: bool = True,
    ) -> RenderedPrompt:
        """Render text and options of *decl* against the context so far."""
        try:
            choices, default = self._render_options(decl, context)
            text: str = (
                self._renderer.render_string(decl.prompt, context).strip()
                if with_text
                else decl.prompt
            )
        except RenderError as exc:
            raise PromptError(f"Failed to render prompt: {exc}", subject=decl.id) from exc

        return RenderedPrompt(
            prompt_id=decl.id,
            text=text,
            choices=choices,
            default=default,
            multiple=decl.multiple,
            ordered=decl.ordered and decl.multiple,
            required=decl.required,
        )

    def _condition_holds(self, decl: PromptDeclaration, context: TemplateContext) -> bool:
        try:
            return self._renderer.is_active(decl.condition, context)
        except RenderError as exc:
            logger.warning("Prompt '%s' condition failed to render; skipping: %s", decl.id, exc)
            return False

    # -----------------------------------------------------------------
    # Collection
    # -----------------------------------------------------------------

    def _collect(self, rendered: RenderedPrompt) -> Any:
        label: str = rendered.text or rendered.prompt_id
        if rendered.mode == "multiselect":
            return self._collector.ask_multiselect(
                label,
                rendered.choices,
                ordered=rendered.ordered,
                required=rendered.required,
            )
        if rendered.mode == "select":
            return self._collector.ask_select(label, rendered.choices, required=rendered.required)
        return self._collector.ask_text(label, required=rendered.required, default=rendered.default)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def resolve(
        self,
        prompts: Sequence[PromptDeclaration],
        overrides: Optional[Mapping[str, OverrideValue]],
        context: TemplateContext,
    ) -> TemplateContext:
        """
        Resolve every declaration in order, mutating and returning *context*.

        Raises:
            PromptError: invalid override, required prompt left empty, or
                a prompt whose text/options cannot be rendered.
        """
        overrides = dict(overrides or {})
        self.outcomes = []

        declared: Set[str] = {p.id for p in prompts}
        for unknown in sorted(set(overrides) - declared):
            logger.warning("Override '%s' does not match any declared prompt; ignored.", unknown)

        for decl in prompts:
            if not self._condition_holds(decl, context):
                logger.info("Prompt '%s' skipped (condition not met).", decl.id)
                self.outcomes.append(PromptOutcome(decl.id, "skipped"))
                continue

            if decl.id in overrides:
                rendered: RenderedPrompt = self.render_prompt(decl, context, with_text=False)
                answer: Answer = validate_override(rendered, overrides[decl.id])
                status: str = "overridden"
            else:
                rendered = self.render_prompt(decl, context)
                answer = finalize_answer(rendered, self._collect(rendered), source="answer")
                status = "asked"

            context.set_prompt_answer(decl.id, answer)
            self.outcomes.append(PromptOutcome(decl.id, status, answer))
            logger.info("Prompt '%s' %s: %r", decl.id, status, answer)

        return context

    @property
    def asked(self) -> List[str]:
        return [o.prompt_id for o in self.outcomes if o.status == "asked"]


__all__: List[str] = [
    "Choice",
    "RenderedPrompt",
    "PromptOutcome",
    "Collector",
    "ConsoleCollector",
    "NonInteractiveCollector",
    "AnswerResolver",
    "OverrideValue",
    "finalize_answer",
    "parse_overrides",
    "validate_override",
]
