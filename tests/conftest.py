"""
tests/conftest.py
Shared fixtures for the schemaforge test suite.

No external mocking libraries are used: prompts are answered by a
scripted collector, formatter commands go to a recording executor, and
real file I/O is performed inside pytest's tmp_path directories.
"""

from __future__ import annotations

import pathlib
import textwrap
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
import yaml

from schemaforge.emitter import ExitResult
from schemaforge.models import Column, Constraint, DatabaseSchema, Index, Table
from schemaforge.rendering import Renderer


# ---------------------------------------------------------------------------
# Schema fixtures
# ---------------------------------------------------------------------------


def _clients_table() -> Table:
    return Table(
        name="clients",
        primary_key=["id"],
        columns=[
            Column(name="id", data_type="INTEGER", nullable=False, auto_increment=True),
            Column(name="email", data_type="VARCHAR(120)", nullable=False, max_length=120),
        ],
        indexes=[Index(name="PRIMARY", columns=["id"], unique=True, primary=True)],
    )


@pytest.fixture()
def clients_schema() -> DatabaseSchema:
    """One table, ``clients(id, email)``, no foreign keys."""
    return DatabaseSchema(name="shop", tables=[_clients_table()])


@pytest.fixture()
def shop_schema() -> DatabaseSchema:
    """
    clients <- orders (FK orders.client_id -> clients.id)
    categories (self-referencing parent_id)
    """
    orders = Table(
        name="orders",
        primary_key=["id"],
        columns=[
            Column(name="id", data_type="INTEGER", nullable=False),
            Column(name="client_id", data_type="INTEGER", nullable=False),
            Column(name="total", data_type="NUMERIC(10, 2)", precision=10, scale=2),
        ],
    )
    categories = Table(
        name="categories",
        primary_key=["id"],
        columns=[
            Column(name="id", data_type="INTEGER", nullable=False),
            Column(name="parent_id", data_type="INTEGER"),
        ],
    )
    return DatabaseSchema(
        name="shop",
        tables=[_clients_table(), orders, categories],
        constraints=[
            Constraint(
                name="fk_orders_client",
                local_table="orders",
                local_columns=["client_id"],
                foreign_table="clients",
                foreign_columns=["id"],
                on_delete="CASCADE",
            ),
            Constraint(
                name="fk_categories_parent",
                local_table="categories",
                local_columns=["parent_id"],
                foreign_table="categories",
                foreign_columns=["id"],
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


BACKEND_TEMPLATE: str = textwrap.dedent(
    """\
    // {{ table_name | pascal_case }} generated by schemaforge {{ version }}
    pub struct {{ table_name | singular | pascal_case }} {
    {%- for column in table.columns %}
        pub {{ column.name }}: {{ column.data_type }},
    {%- endfor %}
    }
    """
)


@pytest.fixture()
def templates() -> Dict[str, str]:
    return {
        "backend": BACKEND_TEMPLATE,
        "google": "// google auth for {{ table_name }}\n",
        "frontend": "<h1>{{ table_name | title_case }}</h1>\n",
        "broken": "{{ table.columns[0].name | no_such_filter }}\n",
    }


@pytest.fixture()
def renderer(templates: Dict[str, str]) -> Renderer:
    return Renderer(templates)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class ScriptedCollector:
    """Answers prompts from a list, recording every question it was asked."""

    def __init__(self, answers: Optional[Sequence[Any]] = None) -> None:
        self.answers: List[Any] = list(answers or [])
        self.asked: List[Tuple[str, str]] = []
        self.choices: List[List[Tuple[str, str]]] = []
        self.defaults: List[Optional[str]] = []

    def _next(self, mode: str, prompt: str) -> Any:
        self.asked.append((mode, prompt))
        if not self.answers:
            raise AssertionError(f"Unexpected {mode} prompt: {prompt!r}")
        return self.answers.pop(0)

    def ask_text(self, prompt: str, *, required: bool, default: Optional[str] = None) -> str:
        self.defaults.append(default)
        return self._next("text", prompt)

    def ask_select(self, prompt: str, choices, *, required: bool) -> str:
        self.choices.append([(c.value, c.label) for c in choices])
        return self._next("select", prompt)

    def ask_multiselect(self, prompt: str, choices, *, ordered: bool, required: bool) -> List[str]:
        self.choices.append([(c.value, c.label) for c in choices])
        return self._next("multiselect", prompt)


class RecordingExecutor:
    """Records commands; fails those containing *fail_on*, raises for *raise_on*."""

    def __init__(
        self,
        fail_on: Optional[str] = None,
        raise_on: Optional[str] = None,
        on_execute=None,
    ) -> None:
        self.commands: List[str] = []
        self._fail_on = fail_on
        self._raise_on = raise_on
        self._on_execute = on_execute

    def execute(self, command: str) -> ExitResult:
        self.commands.append(command)
        if self._on_execute is not None:
            self._on_execute(command)
        if self._raise_on and self._raise_on in command:
            raise OSError("spawn failed")
        if self._fail_on and self._fail_on in command:
            return ExitResult(1, "", "formatter exploded")
        return ExitResult(0, "formatted", "")


@pytest.fixture()
def scripted_collector():
    """Factory: ``scripted_collector(["1", "0"])``."""
    return ScriptedCollector


@pytest.fixture()
def recording_executor():
    """Factory: ``recording_executor(fail_on="rustfmt")``."""
    return RecordingExecutor


# ---------------------------------------------------------------------------
# Profile on disk
# ---------------------------------------------------------------------------


PROFILE_TOML: str = textwrap.dedent(
    """\
    [profile]
    name = "rust-backend"
    dsn = "sqlite:///unused.db"
    target-dir = "generated"
    templates-dir = "templates"
    prompts = ["password_reset", "google_auth"]
    targets = ["backend", "google"]

    [prompt.password_reset]
    prompt = "Enable password reset for {{ table_name }}?"
    options = { 0 = "No", 1 = "Yes" }
    required = true

    [prompt.google_auth]
    condition = "{% if prompts.password_reset == '1' %}1{% endif %}"
    prompt = "Enable Google sign-in?"
    options = ["0", "1"]

    [target.backend]
    template = "backend"
    target = "{{ table_name }}.rs"

    [target.google]
    condition = "{% if prompts.google_auth == '1' %}1{% endif %}"
    template = "google"
    target = "auth/{{ table_name }}_google.rs"
    """
)


@pytest.fixture()
def profile_dir(tmp_path: pathlib.Path, templates: Dict[str, str]) -> pathlib.Path:
    """A directory holding ``Schemaforge.toml`` and its ``templates/``."""
    root = tmp_path / "profile"
    (root / "templates").mkdir(parents=True)
    (root / "Schemaforge.toml").write_text(PROFILE_TOML, encoding="utf-8")
    (root / "templates" / "backend.j2").write_text(templates["backend"], encoding="utf-8")
    (root / "templates" / "google.j2").write_text(templates["google"], encoding="utf-8")
    return root


@pytest.fixture()
def schema_yaml_path(tmp_path: pathlib.Path, shop_schema: DatabaseSchema) -> pathlib.Path:
    """The shop schema written as a YAML snapshot."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(shop_schema.model_dump(mode="json"), fh, default_flow_style=False)
    return path
