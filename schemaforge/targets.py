# File: schemaforge/targets.py
"""
Schemaforge - Target Scheduler
==============================
Decides which target declarations are active for the current context and
computes, for each active one, the template to render and the output path.

The scheduler never writes anything. Creating missing directories and
rendering the template body is the emitter's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from schemaforge.context import TemplateContext
from schemaforge.errors import RenderError, TargetError
from schemaforge.models import TargetDeclaration
from schemaforge.rendering import Renderer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.targets")


@dataclass(frozen=True, slots=True)
class ScheduledTarget:
    """An active target with its output path resolved."""

    target_id: str
    template_name: str
    output_path: Path
    formatter: Optional[str] = None


class TargetScheduler:
    """
    Evaluates target conditions and path expressions.

    Relative paths are joined to *target_dir*; absolute paths are kept.
    """

    def __init__(self, renderer: Renderer, target_dir: Path) -> None:
        self._renderer: Renderer = renderer
        self._target_dir: Path = Path(target_dir)

    @property
    def target_dir(self) -> Path:
        return self._target_dir

    def schedule(
        self,
        declaration: TargetDeclaration,
        context: TemplateContext,
    ) -> Optional[ScheduledTarget]:
        """
        Schedule one declaration; ``None`` means its condition is off.

        Raises:
            TargetError: condition or path fails to render, the path renders
                empty or holds a NUL byte, or the template does not exist.
        """
        try:
            active: bool = self._renderer.is_active(declaration.condition, context)
        except RenderError as exc:
            raise TargetError(f"Condition failed to render: {exc}", subject=declaration.id) from exc
        if not active:
            logger.info("Target '%s' inactive (condition not met).", declaration.id)
            return None

        if not self._renderer.has_template(declaration.template):
            raise TargetError(
                f"Unknown template '{declaration.template}'.",
                subject=declaration.id,
            )

        try:
            rendered_path: str = self._renderer.render_string(declaration.target, context).strip()
        except RenderError as exc:
            raise TargetError(f"Target path failed to render: {exc}", subject=declaration.id) from exc
        if not rendered_path:
            raise TargetError("Target path rendered empty.", subject=declaration.id)
        if "\x00" in rendered_path:
            raise TargetError("Target path contains a NUL byte.", subject=declaration.id)

        output_path: Path = self._target_dir / Path(rendered_path).expanduser()
        logger.debug("Target '%s' -> %s", declaration.id, output_path)

        return ScheduledTarget(
            target_id=declaration.id,
            template_name=declaration.template,
            output_path=output_path,
            formatter=declaration.formatter,
        )

    def select(
        self,
        declarations: Sequence[TargetDeclaration],
        context: TemplateContext,
    ) -> List[ScheduledTarget]:
        """
        Schedule every declaration in order and return the active ones.

        The first failing declaration raises; callers wanting per-target
        isolation iterate with :meth:`schedule` themselves.
        """
        scheduled: List[ScheduledTarget] = []
        for decl in declarations:
            item: Optional[ScheduledTarget] = self.schedule(decl, context)
            if item is not None:
                scheduled.append(item)
        return scheduled


__all__: List[str] = [
    "ScheduledTarget",
    "TargetScheduler",
]
