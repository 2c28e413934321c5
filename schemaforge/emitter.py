# File: schemaforge/emitter.py
"""
Schemaforge - Render & Emit Pipeline
====================================
Turns one scheduled target into a file on disk:

    1. Render the template body against the full context.
    2. Create missing parent directories.
    3. Write the bytes (atomically), overwriting any existing file.
    4. If a formatter is declared, render it with only ``target`` in scope
       and run it through the command executor.

Each step is a hard failure point with no retry. A formatter failure
leaves the written file in place.

External commands go through a ``CommandExecutor`` so tests can record
them instead of spawning a shell.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

from schemaforge.context import TemplateContext, formatter_context
from schemaforge.errors import FormatterError, IoError, RenderError
from schemaforge.rendering import Renderer
from schemaforge.targets import ScheduledTarget
from schemaforge.utils import count_lines, sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.emitter")

DEFAULT_FORMATTER_TIMEOUT: float = 120.0


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExitResult:
    """Outcome of one external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class CommandExecutor(Protocol):
    def execute(self, command: str) -> ExitResult:
        """Run *command* to completion. Raise ``OSError`` if it cannot start."""
        ...


class ShellCommandExecutor:
    """Runs commands through the system shell (``sh -c`` on POSIX)."""

    def __init__(self, *, timeout: float = DEFAULT_FORMATTER_TIMEOUT, cwd: Optional[Path] = None) -> None:
        self._timeout: float = timeout
        self._cwd: Optional[Path] = cwd

    def execute(self, command: str) -> ExitResult:
        logger.debug("Executing: %s", command)
        try:
            proc: subprocess.CompletedProcess = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                cwd=str(self._cwd) if self._cwd else None,
            )
        except subprocess.TimeoutExpired as exc:
            raise OSError(f"Command timed out after {self._timeout:g}s: {command}") from exc
        return ExitResult(proc.returncode, proc.stdout or "", proc.stderr or "")


class NullCommandExecutor:
    """Records commands without running them; every command succeeds."""

    def __init__(self) -> None:
        self.commands: List[str] = []

    def execute(self, command: str) -> ExitResult:
        self.commands.append(command)
        return ExitResult(0)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

STATUS_WRITTEN: str = "written"
STATUS_RENDERED: str = "rendered"
STATUS_FAILED: str = "failed"
STATUS_CANCELLED: str = "cancelled"


@dataclass(frozen=False, slots=True)
class EmitResult:
    """Per-target outcome as reported to the caller."""

    target_id: str
    status: str
    template_name: str = ""
    path: Optional[str] = None
    error_kind: Optional[str] = None
    message: str = ""
    bytes_written: int = 0
    line_count: int = 0
    sha256: str = ""
    formatter_command: Optional[str] = None
    formatter_output: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (STATUS_WRITTEN, STATUS_RENDERED)

    def to_dict(self) -> dict:
        return {
            "target_id": self.target_id,
            "status": self.status,
            "template": self.template_name,
            "path": self.path,
            "error_kind": self.error_kind,
            "message": self.message,
            "bytes_written": self.bytes_written,
            "line_count": self.line_count,
            "sha256": self.sha256,
            "formatter_command": self.formatter_command,
            "formatter_output": self.formatter_output,
        }


# ---------------------------------------------------------------------------
# TargetEmitter
# ---------------------------------------------------------------------------


class TargetEmitter:
    """
    Renders and writes scheduled targets.

    Usage::

        emitter = TargetEmitter(renderer, ShellCommandExecutor())
        result = emitter.emit(scheduled, context)

    ``emit`` raises on failure; the orchestrator turns the exception into
    a failed ``EmitResult``. With ``dry_run`` nothing touches the disk and
    no formatter runs.
    """

    def __init__(
        self,
        renderer: Renderer,
        executor: Optional[CommandExecutor] = None,
        *,
        dry_run: bool = False,
        atomic_writes: bool = True,
    ) -> None:
        self._renderer: Renderer = renderer
        self._executor: CommandExecutor = executor or ShellCommandExecutor()
        self._dry_run: bool = dry_run
        self._atomic_writes: bool = atomic_writes

    def render(self, scheduled: ScheduledTarget, context: TemplateContext) -> str:
        return self._renderer.render_template(scheduled.template_name, context)

    def emit(self, scheduled: ScheduledTarget, context: TemplateContext) -> EmitResult:
        """
        Raises:
            RenderError: the template body fails to render.
            IoError: a directory or the file cannot be written.
            FormatterError: the formatter cannot be rendered, cannot start,
                or exits non-zero. The file is already on disk by then.
        """
        content: str = self.render(scheduled, context)
        path: Path = scheduled.output_path

        result: EmitResult = EmitResult(
            target_id=scheduled.target_id,
            status=STATUS_RENDERED if self._dry_run else STATUS_WRITTEN,
            template_name=scheduled.template_name,
            path=str(path),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
        )

        if self._dry_run:
            result.bytes_written = len(content.encode("utf-8"))
            logger.info("[dry-run] %s -> %s", scheduled.target_id, path)
            return result

        try:
            result.bytes_written = write_file(path, content, atomic=self._atomic_writes)
        except (OSError, ValueError) as exc:
            raise IoError(f"Cannot write file: {exc}", subject=str(path)) from exc
        logger.info("Wrote %s (%d bytes).", path, result.bytes_written)

        if scheduled.formatter:
            result.formatter_command, result.formatter_output = self._run_formatter(
                scheduled, path
            )

        return result

    def _run_formatter(self, scheduled: ScheduledTarget, path: Path) -> tuple:
        try:
            command: str = self._renderer.render_string(
                scheduled.formatter or "", formatter_context(str(path))
            ).strip()
        except RenderError as exc:
            raise FormatterError(
                f"Formatter failed to render: {exc}", subject=scheduled.target_id
            ) from exc
        if not command:
            logger.debug("Formatter for '%s' rendered empty; nothing to run.", scheduled.target_id)
            return None, ""

        try:
            outcome: ExitResult = self._executor.execute(command)
        except (OSError, ValueError) as exc:
            raise FormatterError(
                f"Formatter could not be started: {exc}",
                subject=scheduled.target_id,
            ) from exc

        if not outcome.ok:
            raise FormatterError(
                f"Formatter '{command}' exited with status {outcome.returncode}.",
                subject=scheduled.target_id,
                returncode=outcome.returncode,
                output=outcome.output,
            )
        logger.info("Formatted %s with '%s'.", path, command)
        return command, outcome.output


__all__: List[str] = [
    "ExitResult",
    "CommandExecutor",
    "ShellCommandExecutor",
    "NullCommandExecutor",
    "EmitResult",
    "TargetEmitter",
    "STATUS_WRITTEN",
    "STATUS_RENDERED",
    "STATUS_FAILED",
    "STATUS_CANCELLED",
]

logger.debug("schemaforge.emitter loaded.")
