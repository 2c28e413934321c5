# File: schemaforge/context.py
"""
Schemaforge - Schema Context Builder
====================================
Turns a reflected ``DatabaseSchema`` plus the name of the selected table
into the mapping every template is rendered against::

    {
      "database":            {name, tables[], constraints[], metadata{}},
      "table_name":          "<selected table>",
      "table":               {name, primary_key[], columns[], indexes[], metadata{}},
      "constraints_local":   [...],   # the selected table is the referencing side
      "constraints_foreign": [...],   # the selected table is the referenced side
      "prompts":             {<id>: str | [str, ...]},
      "timestamp":           "<ISO-8601 UTC>",
      "version":             "<schemaforge version>",
    }

A self-referencing foreign key lands in both constraint partitions.
The context only grows during a run: prompt answers are added, nothing
is ever removed.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from schemaforge.errors import SchemaError
from schemaforge.models import Constraint, DatabaseSchema, Table

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.context")

Answer = Union[str, List[str]]


class TemplateContext:
    """
    The owned, mutable rendering context of one per-table run.

    The schema snapshot is serialised once at construction; prompt answers
    are merged in through :meth:`set_prompt_answer` and are visible to the
    very next render.
    """

    def __init__(
        self,
        schema: DatabaseSchema,
        table: Table,
        constraints_local: List[Constraint],
        constraints_foreign: List[Constraint],
        *,
        timestamp: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        if version is None:
            from schemaforge import __version__ as version

        self._data: Dict[str, Any] = {
            "database": schema.model_dump(mode="json"),
            "table_name": table.name,
            "table": table.model_dump(mode="json"),
            "constraints_local": [c.model_dump(mode="json") for c in constraints_local],
            "constraints_foreign": [c.model_dump(mode="json") for c in constraints_foreign],
            "prompts": {},
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "version": version,
        }

    # -----------------------------------------------------------------
    # Accessors
    # -----------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self._data["table_name"]

    @property
    def prompts(self) -> Mapping[str, Answer]:
        return self._data["prompts"]

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    # -----------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------

    def set_prompt_answer(self, prompt_id: str, answer: Answer) -> None:
        """Record (or replace) the answer for *prompt_id*."""
        if isinstance(answer, (list, tuple)):
            answer = [str(item) for item in answer]
        self._data["prompts"][prompt_id] = answer
        logger.debug("Context answer %s = %r", prompt_id, answer)

    def merge_answers(self, answers: Mapping[str, Answer]) -> None:
        for prompt_id, answer in answers.items():
            self.set_prompt_answer(prompt_id, answer)

    # -----------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """The live mapping handed to the renderer."""
        return self._data

    def snapshot(self) -> Dict[str, Any]:
        """A deep copy, safe to keep after the run continues."""
        return copy.deepcopy(self._data)

    def __repr__(self) -> str:
        return (
            f"<TemplateContext table={self.table_name!r} "
            f"answers={sorted(self.prompts)}>"
        )


def formatter_context(target_path: str) -> Dict[str, str]:
    """The only variables a formatter command template can see."""
    return {"target": target_path}


def build(
    schema: DatabaseSchema,
    table_name: str,
    *,
    timestamp: Optional[str] = None,
    version: Optional[str] = None,
) -> TemplateContext:
    """
    Build the base context for *table_name*.

    Raises:
        SchemaError: If the table is not in the schema (exact,
            case-sensitive match). Nothing is built in that case.
    """
    table: Optional[Table] = schema.table(table_name)
    if table is None:
        raise SchemaError(
            f"Table not found in database '{schema.name}'. "
            f"Available tables: {', '.join(schema.table_names) or '(none)'}",
            subject=table_name,
        )

    constraints_local: List[Constraint] = schema.constraints_for(table_name, "local")
    constraints_foreign: List[Constraint] = schema.constraints_for(table_name, "foreign")

    logger.info(
        "Context for table '%s': %d column(s), %d local and %d foreign constraint(s).",
        table_name,
        len(table.columns),
        len(constraints_local),
        len(constraints_foreign),
    )

    return TemplateContext(
        schema,
        table,
        constraints_local,
        constraints_foreign,
        timestamp=timestamp,
        version=version,
    )


__all__: List[str] = [
    "Answer",
    "TemplateContext",
    "build",
    "formatter_context",
]
