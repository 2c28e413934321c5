# File: schemaforge/reflection.py
"""
Schemaforge - Schema Reflection
===============================
Produces the ``DatabaseSchema`` snapshot the generator works from.

Two sources:

    * a live database, through SQLAlchemy's ``inspect()`` (any dialect
      SQLAlchemy supports, given its driver is installed);
    * a JSON/YAML snapshot file with the same shape as the ``database``
      context entry, for offline runs and tests.

Connection or inspection failures raise ``ReflectionError``: a run cannot
start without a schema.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import CompileError, SQLAlchemyError

from schemaforge.errors import ReflectionError
from schemaforge.models import Column, Constraint, DatabaseSchema, Index, Table
from schemaforge.utils import write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.reflection")


# ---------------------------------------------------------------------------
# DSN helpers
# ---------------------------------------------------------------------------


def parse_dsn(dsn: str) -> URL:
    try:
        return make_url(dsn)
    except SQLAlchemyError as exc:
        raise ReflectionError(f"Invalid database URL: {exc}") from exc


def database_name(dsn: str) -> str:
    """The database named by *dsn*, or ``""`` when it names none."""
    url: URL = parse_dsn(dsn)
    if not url.database:
        return ""
    if url.get_backend_name() == "sqlite":
        return Path(url.database).stem
    return url.database


def with_database(dsn: str, name: str) -> str:
    """Return *dsn* pointing at database *name*."""
    url: URL = parse_dsn(dsn).set(database=name)
    return url.render_as_string(hide_password=False)


def _engine(dsn: str) -> Engine:
    try:
        return create_engine(parse_dsn(dsn))
    except (SQLAlchemyError, ImportError) as exc:
        raise ReflectionError(f"Cannot create database engine: {exc}") from exc


# ---------------------------------------------------------------------------
# Live reflection
# ---------------------------------------------------------------------------


def _type_name(engine: Engine, col_type: Any) -> str:
    try:
        return col_type.compile(dialect=engine.dialect)
    except (CompileError, NotImplementedError):
        return type(col_type).__name__.upper()


def _int_attr(obj: Any, name: str) -> Optional[int]:
    value: Any = getattr(obj, name, None)
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _reflect_columns(engine: Engine, inspector: Inspector, table: str, pk: List[str]) -> List[Column]:
    columns: List[Column] = []
    for raw in inspector.get_columns(table):
        col_type: Any = raw["type"]
        type_name: str = _type_name(engine, col_type)
        autoinc: Any = raw.get("autoincrement")
        if autoinc == "auto":
            # Single integer primary keys are implicitly auto-incrementing.
            autoinc = pk == [raw["name"]] and "INT" in type_name.upper()
        default: Any = raw.get("default")
        columns.append(Column(
            name=raw["name"],
            data_type=type_name,
            nullable=bool(raw.get("nullable", True)),
            default=str(default) if default is not None else None,
            auto_increment=bool(autoinc),
            max_length=_int_attr(col_type, "length"),
            precision=_int_attr(col_type, "precision"),
            scale=_int_attr(col_type, "scale"),
            comment=raw.get("comment"),
        ))
    return columns


def _reflect_indexes(inspector: Inspector, table: str, pk: List[str], pk_name: Optional[str]) -> List[Index]:
    indexes: List[Index] = []
    if pk:
        indexes.append(Index(name=pk_name or "PRIMARY", columns=pk, unique=True, primary=True))

    seen: set = {(True, tuple(pk))} if pk else set()
    for raw in inspector.get_indexes(table):
        cols: List[str] = [c for c in raw.get("column_names", []) if c]
        key = (bool(raw.get("unique")), tuple(cols))
        if key in seen:
            continue
        seen.add(key)
        indexes.append(Index(
            name=raw.get("name") or f"{table}_{'_'.join(cols)}_idx",
            columns=cols,
            unique=bool(raw.get("unique")),
        ))

    for raw in inspector.get_unique_constraints(table):
        cols = [c for c in raw.get("column_names", []) if c]
        if (True, tuple(cols)) in seen:
            continue
        seen.add((True, tuple(cols)))
        indexes.append(Index(
            name=raw.get("name") or f"{table}_{'_'.join(cols)}_key",
            columns=cols,
            unique=True,
        ))
    return indexes


def _reflect_constraints(inspector: Inspector, table: str) -> List[Constraint]:
    constraints: List[Constraint] = []
    for raw in inspector.get_foreign_keys(table):
        if not raw.get("constrained_columns") or not raw.get("referred_table"):
            continue
        options: Dict[str, Any] = raw.get("options") or {}
        constraints.append(Constraint(
            name=raw.get("name") or "",
            local_table=table,
            local_columns=list(raw["constrained_columns"]),
            foreign_table=raw["referred_table"],
            foreign_columns=list(raw["referred_columns"]),
            on_update=options.get("onupdate"),
            on_delete=options.get("ondelete"),
        ))
    return constraints


def _table_comment(inspector: Inspector, table: str) -> Optional[str]:
    try:
        return inspector.get_table_comment(table).get("text")
    except NotImplementedError:
        return None


def reflect_database(dsn: str, *, tables: Optional[List[str]] = None) -> DatabaseSchema:
    """
    Reflect every table (or only *tables*) of the database behind *dsn*.

    Raises:
        ReflectionError: invalid URL, missing driver, connection or
            inspection failure.
    """
    engine: Engine = _engine(dsn)
    try:
        inspector: Inspector = inspect(engine)
        names: List[str] = inspector.get_table_names()
        if tables is not None:
            names = [n for n in names if n in set(tables)]

        reflected: List[Table] = []
        constraints: List[Constraint] = []
        for name in names:
            pk_info: Dict[str, Any] = inspector.get_pk_constraint(name) or {}
            pk: List[str] = list(pk_info.get("constrained_columns") or [])
            comment: Optional[str] = _table_comment(inspector, name)
            reflected.append(Table(
                name=name,
                primary_key=pk,
                columns=_reflect_columns(engine, inspector, name, pk),
                indexes=_reflect_indexes(inspector, name, pk, pk_info.get("name")),
                metadata={"comment": comment} if comment else {},
            ))
            constraints.extend(_reflect_constraints(inspector, name))
    except SQLAlchemyError as exc:
        raise ReflectionError(f"Schema reflection failed: {exc}") from exc
    finally:
        engine.dispose()

    schema: DatabaseSchema = DatabaseSchema(
        name=database_name(dsn),
        tables=reflected,
        constraints=constraints,
        metadata={"dialect": engine.dialect.name},
    )
    logger.info(
        "Reflected database '%s': %d table(s), %d constraint(s).",
        schema.name,
        len(schema.tables),
        len(schema.constraints),
    )
    return schema


def list_table_names(dsn: str) -> List[str]:
    """Table names of the database behind *dsn*, in inspector order."""
    engine: Engine = _engine(dsn)
    try:
        return list(inspect(engine).get_table_names())
    except SQLAlchemyError as exc:
        raise ReflectionError(f"Cannot list tables: {exc}") from exc
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Snapshot files
# ---------------------------------------------------------------------------


def _load_raw(path: Path) -> Any:
    text: str = path.read_text(encoding="utf-8")
    suffix: str = path.suffix.lower()
    if suffix == ".json":
        return json.loads(text)
    if suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    logger.info("Unknown extension '%s'; trying JSON then YAML.", suffix)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def load_schema_file(path: Path) -> DatabaseSchema:
    """
    Load a schema snapshot (JSON or YAML).

    The document is either the schema mapping itself or a mapping with a
    single ``database`` key holding it.

    Raises:
        ReflectionError: missing file, parse error or invalid content.
    """
    path = Path(path)
    if not path.is_file():
        raise ReflectionError("Schema file not found.", subject=str(path))
    try:
        raw: Any = _load_raw(path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ReflectionError(f"Cannot parse schema file: {exc}", subject=str(path)) from exc

    if isinstance(raw, dict) and set(raw) == {"database"}:
        raw = raw["database"]
    if not isinstance(raw, dict):
        raise ReflectionError("Schema file must contain a mapping.", subject=str(path))

    try:
        schema: DatabaseSchema = DatabaseSchema.model_validate(raw)
    except ValidationError as exc:
        raise ReflectionError(f"Invalid schema file: {exc}", subject=str(path)) from exc

    logger.info("Loaded schema snapshot %s: %d table(s).", path, len(schema.tables))
    return schema


def dump_schema_file(schema: DatabaseSchema, path: Path) -> Path:
    """Write *schema* as JSON (``.json``) or YAML (anything else)."""
    path = Path(path)
    data: Dict[str, Any] = schema.model_dump(mode="json")
    if path.suffix.lower() == ".json":
        content: str = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    else:
        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    write_file(path, content)
    logger.info("Wrote schema snapshot to %s.", path)
    return path


__all__: List[str] = [
    "database_name",
    "dump_schema_file",
    "list_table_names",
    "load_schema_file",
    "parse_dsn",
    "reflect_database",
    "with_database",
]

logger.debug("schemaforge.reflection loaded.")
