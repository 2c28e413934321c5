# File: schemaforge/generator.py
"""
Schemaforge - Run Orchestrator
==============================
Connects the per-table phases together::

    Schema -> Context -> Prompt Answers -> Active Targets -> Files

Workflow for one table::

    1. Build the context for the selected table (context.py).
    2. Resolve every prompt in declaration order (prompts.py).
    3. Walk the target declarations in order: schedule (targets.py),
       then render, write and format (emitter.py).
    4. Return a ``RunReport`` with one ``EmitResult`` per target.

Error handling strategy:
    - ``SchemaError`` and ``PromptError`` are run-fatal: they are
      recorded on the report and no target is attempted.
    - Every target-local failure (``TargetError``, ``RenderError``,
      ``IoError``, ``FormatterError``) becomes a failed ``EmitResult``;
      the remaining targets still run.
    - Cancellation is honoured only between declarations, so a file is
      never left half-written. Files already emitted stay on disk.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from schemaforge import context as context_builder
from schemaforge.context import Answer, TemplateContext
from schemaforge.emitter import (
    STATUS_CANCELLED,
    STATUS_FAILED,
    CommandExecutor,
    EmitResult,
    TargetEmitter,
)
from schemaforge.errors import PromptError, SchemaError, SchemaForgeError
from schemaforge.models import DatabaseSchema, Profile, PromptDeclaration, TargetDeclaration
from schemaforge.prompts import AnswerResolver, Collector, NonInteractiveCollector, OverrideValue
from schemaforge.rendering import Renderer
from schemaforge.targets import ScheduledTarget, TargetScheduler
from schemaforge.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.generator")


class SuccessPolicy(str, enum.Enum):
    """When a run counts as successful."""

    ALL = "all"
    ANY = "any"


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class StepMetric:
    """Timing and outcome for a single run step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class RunReport:
    """
    Everything one per-table run produced.

    Iterating a report yields its ``EmitResult`` records in declaration
    order.
    """

    table_name: str = ""
    success: bool = False
    policy: SuccessPolicy = SuccessPolicy.ALL
    answers: Dict[str, Answer] = field(default_factory=dict)
    prompts_asked: List[str] = field(default_factory=list)
    prompts_skipped: List[str] = field(default_factory=list)
    results: List[EmitResult] = field(default_factory=list)
    inactive_targets: List[str] = field(default_factory=list)
    fatal_error: Optional[SchemaForgeError] = None
    step_metrics: List[StepMetric] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    def __iter__(self) -> Iterator[EmitResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> List[EmitResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[EmitResult]:
        return [r for r in self.results if r.status == STATUS_FAILED]

    @property
    def cancelled(self) -> List[EmitResult]:
        return [r for r in self.results if r.status == STATUS_CANCELLED]

    @property
    def written_paths(self) -> List[str]:
        return [r.path for r in self.succeeded if r.path]

    def evaluate(self, policy: Optional[SuccessPolicy] = None) -> bool:
        """Apply *policy* (default: the report's own) to the outcomes."""
        policy = policy or self.policy
        if self.fatal_error is not None:
            return False
        if policy is SuccessPolicy.ANY:
            return bool(self.succeeded) or not self.results
        return not self.failed and not self.cancelled

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'=' * 60}")
        lines.append(f"  Schemaforge - Run Report: {self.table_name}")
        lines.append(f"{'=' * 60}")
        lines.append(f"  Status:           {status} (policy: {self.policy.value})")
        lines.append(f"  Prompts asked:    {len(self.prompts_asked)}")
        lines.append(f"  Targets written:  {len(self.succeeded)}")
        lines.append(f"  Targets failed:   {len(self.failed)}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")

        if self.step_metrics:
            lines.append(f"{'─' * 60}")
            lines.append("  Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<20s} {step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        if self.fatal_error is not None:
            lines.append(f"{'─' * 60}")
            lines.append(f"  Fatal ({self.fatal_error.kind}): {self.fatal_error}")

        if self.results:
            lines.append(f"{'─' * 60}")
            lines.append("  Targets:")
            for res in self.results:
                icon = {"written": "✓", "rendered": "○", "cancelled": "⊘"}.get(res.status, "✗")
                where: str = res.path or "-"
                lines.append(f"    {icon} {res.target_id:<20s} {res.status:<10s} {where}")
                if res.error_kind:
                    lines.append(f"        {res.error_kind}: {res.message}")

        if self.inactive_targets:
            lines.append(f"  Inactive: {', '.join(self.inactive_targets)}")

        lines.append(f"{'=' * 60}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "success": self.success,
            "policy": self.policy.value,
            "answers": dict(self.answers),
            "prompts_asked": list(self.prompts_asked),
            "prompts_skipped": list(self.prompts_skipped),
            "results": [r.to_dict() for r in self.results],
            "inactive_targets": list(self.inactive_targets),
            "fatal_error": (
                {"kind": self.fatal_error.kind, "message": str(self.fatal_error)}
                if self.fatal_error is not None
                else None
            ),
            "elapsed_seconds": round(self.total_elapsed_seconds, 4),
        }


def overall_success(reports: Sequence[RunReport]) -> bool:
    """True when every per-table report succeeded."""
    return bool(reports) and all(r.success for r in reports)


# ---------------------------------------------------------------------------
# ProfileGenerator
# ---------------------------------------------------------------------------


class ProfileGenerator:
    """
    Runs prompt resolution and target emission for one or more tables.

    Usage::

        generator = ProfileGenerator(
            Renderer.from_directory(profile.templates_path),
            ConsoleCollector(),
            target_dir=Path("generated"),
        )
        report = generator.run(schema, "clients", profile.prompts, profile.targets)
        print(report.summary())

    The generator is reusable; each run owns a fresh context.
    """

    def __init__(
        self,
        renderer: Renderer,
        collector: Optional[Collector] = None,
        *,
        target_dir: Path = Path("."),
        executor: Optional[CommandExecutor] = None,
        policy: SuccessPolicy = SuccessPolicy.ALL,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
        timestamp: Optional[str] = None,
    ) -> None:
        self._renderer: Renderer = renderer
        self._collector: Collector = collector or NonInteractiveCollector()
        self._scheduler: TargetScheduler = TargetScheduler(renderer, Path(target_dir))
        self._emitter: TargetEmitter = TargetEmitter(renderer, executor, dry_run=dry_run)
        self._policy: SuccessPolicy = policy
        self._cancel_event: threading.Event = cancel_event or threading.Event()
        self._timestamp: Optional[str] = timestamp

        logger.debug(
            "ProfileGenerator initialised: target_dir=%s, policy=%s, dry_run=%s.",
            target_dir,
            policy.value,
            dry_run,
        )

    @classmethod
    def for_profile(
        cls,
        profile: Profile,
        collector: Optional[Collector] = None,
        **kwargs: Any,
    ) -> "ProfileGenerator":
        """Build a generator whose renderer reads the profile's templates directory."""
        return cls(Renderer.from_directory(profile.templates_path), collector, **kwargs)

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def cancel(self) -> None:
        """Stop at the next declaration boundary."""
        self._cancel_event.set()

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def run(
        self,
        schema: DatabaseSchema,
        table_name: str,
        prompts: Sequence[PromptDeclaration],
        targets: Sequence[TargetDeclaration],
        overrides: Optional[Mapping[str, OverrideValue]] = None,
    ) -> RunReport:
        """Run the full pipeline for one table."""
        report: RunReport = RunReport(table_name=table_name, policy=self._policy)
        started: float = time.perf_counter()

        ctx: Optional[TemplateContext] = self._step_build(schema, table_name, report)
        if ctx is not None and self._step_resolve(prompts, overrides, ctx, report):
            self._step_emit(targets, ctx, report)

        return self._finalise_report(report, time.perf_counter() - started)

    def run_tables(
        self,
        schema: DatabaseSchema,
        table_names: Sequence[str],
        prompts: Sequence[PromptDeclaration],
        targets: Sequence[TargetDeclaration],
        overrides: Optional[Mapping[str, OverrideValue]] = None,
    ) -> List[RunReport]:
        """
        Run each table independently against the same schema snapshot.

        Tables run one after another. Once cancellation is requested the
        remaining tables are not started.
        """
        reports: List[RunReport] = []
        for name in table_names:
            if self._cancel_event.is_set():
                logger.warning("Cancelled before table '%s'.", name)
                break
            reports.append(self.run(schema, name, prompts, targets, overrides))
        return reports

    # -----------------------------------------------------------------
    # Run steps
    # -----------------------------------------------------------------

    def _step_build(
        self,
        schema: DatabaseSchema,
        table_name: str,
        report: RunReport,
    ) -> Optional[TemplateContext]:
        with Timer("build_context") as t:
            try:
                ctx: Optional[TemplateContext] = context_builder.build(
                    schema, table_name, timestamp=self._timestamp
                )
            except SchemaError as exc:
                logger.error("%s", exc)
                report.fatal_error = exc
                ctx = None

        report.step_metrics.append(StepMetric(
            step_name="Build Context",
            success=ctx is not None,
            elapsed_seconds=t.elapsed,
            detail=f"{len(schema.tables)} table(s) in schema",
        ))
        return ctx

    def _step_resolve(
        self,
        prompts: Sequence[PromptDeclaration],
        overrides: Optional[Mapping[str, OverrideValue]],
        ctx: TemplateContext,
        report: RunReport,
    ) -> bool:
        resolver: AnswerResolver = AnswerResolver(self._renderer, self._collector)
        ok: bool = True
        with Timer("resolve_prompts") as t:
            try:
                resolver.resolve(prompts, overrides, ctx)
            except PromptError as exc:
                logger.error("Prompt resolution failed: %s", exc)
                report.fatal_error = exc
                ok = False

        report.answers = dict(ctx.snapshot()["prompts"])
        report.prompts_asked = resolver.asked
        report.prompts_skipped = [o.prompt_id for o in resolver.outcomes if o.status == "skipped"]
        report.step_metrics.append(StepMetric(
            step_name="Resolve Prompts",
            success=ok,
            elapsed_seconds=t.elapsed,
            detail=f"{len(report.answers)} answer(s), {len(report.prompts_asked)} asked",
        ))
        return ok

    def _step_emit(
        self,
        targets: Sequence[TargetDeclaration],
        ctx: TemplateContext,
        report: RunReport,
    ) -> None:
        with Timer("emit_targets") as t:
            for decl in targets:
                if self._cancel_event.is_set():
                    report.results.append(EmitResult(
                        target_id=decl.id,
                        status=STATUS_CANCELLED,
                        template_name=decl.template,
                        message="Run cancelled before this target.",
                    ))
                    continue
                result: Optional[EmitResult] = self._emit_one(decl, ctx)
                if result is None:
                    report.inactive_targets.append(decl.id)
                else:
                    report.results.append(result)

        report.step_metrics.append(StepMetric(
            step_name="Emit Targets",
            success=not report.failed,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{len(report.succeeded)} ok, {len(report.failed)} failed, "
                f"{len(report.inactive_targets)} inactive"
            ),
        ))

    def _emit_one(self, decl: TargetDeclaration, ctx: TemplateContext) -> Optional[EmitResult]:
        scheduled: Optional[ScheduledTarget] = None
        try:
            scheduled = self._scheduler.schedule(decl, ctx)
            if scheduled is None:
                return None
            return self._emitter.emit(scheduled, ctx)
        except SchemaForgeError as exc:
            logger.error("Target '%s' failed: %s", decl.id, exc)
            return EmitResult(
                target_id=decl.id,
                status=STATUS_FAILED,
                template_name=decl.template,
                path=str(scheduled.output_path) if scheduled is not None else None,
                error_kind=exc.kind,
                message=exc.message,
                formatter_output=getattr(exc, "output", ""),
            )

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: RunReport, total_elapsed: float) -> RunReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = report.evaluate()
        log = logger.info if report.success else logger.warning
        log(
            "Run for '%s' finished: %d ok, %d failed in %.3fs.",
            report.table_name,
            len(report.succeeded),
            len(report.failed),
            total_elapsed,
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ProfileGenerator",
    "RunReport",
    "StepMetric",
    "SuccessPolicy",
    "overall_success",
]

logger.debug("schemaforge.generator loaded.")
