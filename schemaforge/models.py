# File: schemaforge/models.py
"""
Schemaforge - Core Data Models
==============================
Pydantic V2 models for the two inputs of a generation run:

    1. The reflected database schema (``DatabaseSchema`` and its tables,
       columns, indexes and foreign-key constraints).  Built once per
       invocation by the reflector and never mutated afterwards, so the
       models are frozen.
    2. The profile declarations (``PromptDeclaration``,
       ``TargetDeclaration``, ``ProfileSettings``, ``Profile``) loaded from
       a profile file.

List order is significant everywhere: templates may rely on the ordinal
position of columns, indexes and declarations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.models")

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SCHEMA_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)

_DECLARATION_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)

DECLARATION_ID_PATTERN: str = r"^[A-Za-z_][A-Za-z0-9_]*$"

ConstraintSide = Literal["local", "foreign"]


# ---------------------------------------------------------------------------
# Schema snapshot
# ---------------------------------------------------------------------------


class Column(BaseModel):
    """A single table column as reported by the reflector."""

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    data_type: str = Field(default="", description="Database type as reported by the driver.")
    nullable: bool = Field(default=True, description="Whether the column allows NULL.")
    default: Optional[str] = Field(default=None, description="Server default expression.")
    auto_increment: bool = Field(default=False, description="AUTO_INCREMENT / IDENTITY / SERIAL.")
    max_length: Optional[int] = Field(default=None, ge=0, description="Length for character types.")
    precision: Optional[int] = Field(default=None, ge=0)
    scale: Optional[int] = Field(default=None, ge=0)
    comment: Optional[str] = Field(default=None, description="Column comment.")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Column {self.name} {self.data_type}{null_flag}>"


class Index(BaseModel):
    """A table index over an ordered list of columns."""

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1, description="Index name.")
    columns: List[str] = Field(default_factory=list, description="Ordered column names.")
    unique: bool = Field(default=False)
    primary: bool = Field(default=False)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Constraint(BaseModel):
    """
    A foreign-key relationship.

    ``local_*`` is the referencing side, ``foreign_*`` the referenced side.
    """

    model_config = _SCHEMA_CONFIG

    name: str = Field(default="", description="Constraint name (may be empty on SQLite).")
    local_table: str = Field(..., min_length=1)
    local_columns: List[str] = Field(..., min_length=1)
    foreign_table: str = Field(..., min_length=1)
    foreign_columns: List[str] = Field(..., min_length=1)
    on_update: Optional[str] = Field(default=None)
    on_delete: Optional[str] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _drop_computed(cls, data: Any) -> Any:
        # Dumped snapshots carry the computed flag; it is derived, not input.
        if isinstance(data, dict) and "self_referencing" in data:
            data = {k: v for k, v in data.items() if k != "self_referencing"}
        return data

    @computed_field  # type: ignore[misc]
    @property
    def self_referencing(self) -> bool:
        return self.local_table == self.foreign_table

    def references(self, table_name: str, side: ConstraintSide) -> bool:
        """Exact, case-sensitive match of *table_name* against one side."""
        if side == "local":
            return self.local_table == table_name
        return self.foreign_table == table_name

    def __repr__(self) -> str:
        return (
            f"<Constraint {self.name or '?'} "
            f"{self.local_table}({', '.join(self.local_columns)}) -> "
            f"{self.foreign_table}({', '.join(self.foreign_columns)})>"
        )


class Table(BaseModel):
    """A reflected table with its columns and indexes."""

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1, description="Table name.")
    primary_key: List[str] = Field(default_factory=list, description="Primary key column names.")
    columns: List[Column] = Field(default_factory=list)
    indexes: List[Index] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def __repr__(self) -> str:
        return f"<Table {self.name} ({len(self.columns)} cols, {len(self.indexes)} indexes)>"


class DatabaseSchema(BaseModel):
    """
    The root snapshot of a database: all tables plus every foreign key.

    Constraints are kept at database level (not per table) so that a table
    can find both the keys it declares and the keys pointing at it.
    """

    model_config = _SCHEMA_CONFIG

    name: str = Field(default="", description="Database name.")
    tables: List[Table] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_unique_table_names(self) -> "DatabaseSchema":
        names: List[str] = [t.name for t in self.tables]
        if len(names) != len(set(names)):
            dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate table names: {dupes}")
        return self

    def table(self, name: str) -> Optional[Table]:
        """Case-sensitive table lookup."""
        for tbl in self.tables:
            if tbl.name == name:
                return tbl
        return None

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def constraints_for(self, table_name: str, side: ConstraintSide) -> List[Constraint]:
        """Constraints where *table_name* is on *side*, in schema order."""
        return [c for c in self.constraints if c.references(table_name, side)]

    def __repr__(self) -> str:
        return (
            f"<DatabaseSchema {self.name!r} {len(self.tables)} tables, "
            f"{len(self.constraints)} constraints>"
        )


# ---------------------------------------------------------------------------
# Profile declarations
# ---------------------------------------------------------------------------

PromptOptions = Union[None, bool, str, List[Any], Dict[str, Any]]


class PromptDeclaration(BaseModel):
    """
    One question contributing an answer to ``prompts.<id>``.

    ``condition`` and ``prompt`` are templates rendered against the
    context as it stands when the prompt is reached.
    """

    model_config = _DECLARATION_CONFIG

    id: str = Field(..., pattern=DECLARATION_ID_PATTERN)
    condition: Optional[str] = Field(default=None)
    prompt: str = Field(..., description="Prompt text template.")
    options: PromptOptions = Field(default=None)
    multiple: bool = Field(default=False)
    ordered: bool = Field(default=False)
    required: bool = Field(default=False)

    @field_validator("condition")
    @classmethod
    def _blank_condition_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("options", mode="before")
    @classmethod
    def _mapping_keys_as_strings(cls, v: Any) -> Any:
        # YAML reads bare keys such as 0 as integers.
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def _check_ordered(self) -> "PromptDeclaration":
        if self.ordered and not self.multiple:
            logger.warning(
                "Prompt '%s' sets ordered=true without multiple=true; ignored.",
                self.id,
            )
        return self


class TargetDeclaration(BaseModel):
    """One output artifact: template + path expression + optional formatter."""

    model_config = _DECLARATION_CONFIG

    id: str = Field(..., pattern=DECLARATION_ID_PATTERN)
    condition: Optional[str] = Field(default=None)
    template: str = Field(..., min_length=1, description="Template name.")
    target: str = Field(..., min_length=1, description="Output path template.")
    formatter: Optional[str] = Field(
        default=None,
        description="Shell command template; only ``target`` is available to it.",
    )

    @field_validator("condition", "formatter")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ProfileSettings(BaseModel):
    """The ``[profile]`` table of a profile file."""

    model_config = _DECLARATION_CONFIG

    name: str = Field(default="")
    env_file: str = Field(default="", alias="env-file")
    env_var: str = Field(default="", alias="env-var")
    dsn: str = Field(default="")
    target_dir: str = Field(default=".", alias="target-dir")
    templates_dir: str = Field(default="templates", alias="templates-dir")
    prompts: Optional[List[str]] = Field(default=None, description="Prompt resolution order.")
    targets: Optional[List[str]] = Field(default=None, description="Target emission order.")


class ProfileOverrides(BaseModel):
    """Command-line values that win over ``ProfileSettings``."""

    model_config = _DECLARATION_CONFIG

    dsn: Optional[str] = None
    env_file: Optional[str] = None
    env_var: Optional[str] = None
    target_dir: Optional[str] = None


class Profile(BaseModel):
    """
    A loaded profile: settings plus the ordered prompt and target lists.

    ``base_dir`` is the directory of the profile file; relative
    ``templates-dir`` values resolve against it.
    """

    model_config = _DECLARATION_CONFIG

    name: str = Field(default="")
    source: Optional[str] = Field(default=None, description="Profile file path.")
    base_dir: str = Field(default=".")
    settings: ProfileSettings = Field(default_factory=ProfileSettings)
    prompts: List[PromptDeclaration] = Field(default_factory=list)
    targets: List[TargetDeclaration] = Field(default_factory=list)
    unlisted_prompts: List[str] = Field(
        default_factory=list,
        description="Declared prompts left out of the [profile] prompts list.",
    )
    unlisted_targets: List[str] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Profile":
        """Load a profile file; see :func:`schemaforge.profile.load_profile`."""
        from schemaforge.profile import load_profile

        return load_profile(Path(path))

    @model_validator(mode="after")
    def _validate_unique_ids(self) -> "Profile":
        for label, ids in (
            ("prompt", [p.id for p in self.prompts]),
            ("target", [t.id for t in self.targets]),
        ):
            if len(ids) != len(set(ids)):
                dupes: List[str] = sorted({i for i in ids if ids.count(i) > 1})
                raise ValueError(f"Duplicate {label} ids: {dupes}")
        return self

    def prompt(self, prompt_id: str) -> Optional[PromptDeclaration]:
        return next((p for p in self.prompts if p.id == prompt_id), None)

    def target(self, target_id: str) -> Optional[TargetDeclaration]:
        return next((t for t in self.targets if t.id == target_id), None)

    @property
    def templates_path(self) -> Path:
        path: Path = Path(self.settings.templates_dir).expanduser()
        if not path.is_absolute():
            path = Path(self.base_dir) / path
        return path

    def __repr__(self) -> str:
        return (
            f"<Profile {self.name!r} {len(self.prompts)} prompts, "
            f"{len(self.targets)} targets>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DECLARATION_ID_PATTERN",
    "ConstraintSide",
    "Column",
    "Index",
    "Constraint",
    "Table",
    "DatabaseSchema",
    "PromptOptions",
    "PromptDeclaration",
    "TargetDeclaration",
    "ProfileSettings",
    "ProfileOverrides",
    "Profile",
]

logger.debug("schemaforge.models loaded - %d public symbols.", len(__all__))
