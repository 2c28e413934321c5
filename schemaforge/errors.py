# File: schemaforge/errors.py
"""
Schemaforge - Error Taxonomy
============================

Every failure the engine can report derives from ``SchemaForgeError``.
The ``kind`` attribute is the short label written into run reports and
CLI summaries.

Scope of each error inside a run:

    ============== ================================================
    SchemaError    run-fatal, raised before any prompt is asked
    PromptError    run-fatal, raised before any target is attempted
    TargetError    target-local (condition / template lookup)
    RenderError    target-local (template evaluation)
    IoError        target-local (directory creation / file write)
    FormatterError target-local, the written file is kept
    ProfileError   invocation-fatal (profile load / configuration)
    ReflectionError invocation-fatal (database connection)
    ============== ================================================
"""

from __future__ import annotations

import logging
from typing import List, Optional

logger: logging.Logger = logging.getLogger("schemaforge.errors")


class SchemaForgeError(Exception):
    """Base class for all schemaforge failures."""

    kind: str = "error"

    def __init__(self, message: str, *, subject: Optional[str] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.subject: Optional[str] = subject

    def __str__(self) -> str:
        if self.subject:
            return f"{self.subject}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind} {str(self)!r}>"


class SchemaError(SchemaForgeError):
    """The selected table does not exist in the reflected schema."""

    kind = "schema"


class PromptError(SchemaForgeError):
    """An override is invalid, or a required prompt resolved to nothing."""

    kind = "prompt"


class TargetError(SchemaForgeError):
    """A target condition failed to render or its template is unknown."""

    kind = "target"


class RenderError(SchemaForgeError):
    """Template syntax or evaluation failure."""

    kind = "render"


class IoError(SchemaForgeError):
    """Creating directories or writing an output file failed."""

    kind = "io"


class FormatterError(SchemaForgeError):
    """The post-render formatter command failed to spawn or exited non-zero."""

    kind = "formatter"

    def __init__(
        self,
        message: str,
        *,
        subject: Optional[str] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message, subject=subject)
        self.returncode: Optional[int] = returncode
        self.output: str = output


class ProfileError(SchemaForgeError):
    """The profile file or its configuration is unusable."""

    kind = "profile"


class ReflectionError(SchemaForgeError):
    """The database could not be reached or inspected."""

    kind = "reflection"


__all__: List[str] = [
    "SchemaForgeError",
    "SchemaError",
    "PromptError",
    "TargetError",
    "RenderError",
    "IoError",
    "FormatterError",
    "ProfileError",
    "ReflectionError",
]
