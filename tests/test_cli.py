"""
tests/test_cli.py
Tests for the schemaforge command line, driven through ``main(argv)``.

Runs use ``--schema-file`` so no database is needed, and
``--non-interactive`` so the terminal is never read.
"""

from __future__ import annotations

import pathlib
from typing import List

import pytest

from schemaforge.cli import (
    EXIT_GENERATION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_PROFILE_ERROR,
    EXIT_REFLECTION_ERROR,
    EXIT_SUCCESS,
    main,
)
from schemaforge.registry import CONFIG_DIR_ENV


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> pathlib.Path:
    config = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config))
    monkeypatch.delenv("SCHEMAFORGE_PROFILE", raising=False)
    return config


def _run_args(profile_dir: pathlib.Path, schema: pathlib.Path, out: pathlib.Path, *extra: str) -> List[str]:
    return [
        "-q",
        "run",
        "clients",
        "--profile-file",
        str(profile_dir),
        "--schema-file",
        str(schema),
        "--target-dir",
        str(out),
        "--non-interactive",
        *extra,
    ]


class TestRun:
    def test_generates_files(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path, capsys
    ) -> None:
        out = tmp_path / "out"
        code = main(_run_args(profile_dir, schema_yaml_path, out, "--set", "password_reset=0"))

        assert code == EXIT_SUCCESS
        assert (out / "clients.rs").is_file()
        assert not (out / "auth").exists()
        assert "Run Report: clients" in capsys.readouterr().out

    def test_conditional_target_from_answers(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        out = tmp_path / "out"
        code = main(
            _run_args(
                profile_dir, schema_yaml_path, out, "--set", "password_reset=1", "--set", "google_auth=1"
            )
        )
        assert code == EXIT_SUCCESS
        assert (out / "auth" / "clients_google.rs").is_file()

    def test_several_tables(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        out = tmp_path / "out"
        args = _run_args(profile_dir, schema_yaml_path, out, "--set", "password_reset=0")
        args.insert(3, "orders")
        assert main(args) == EXIT_SUCCESS
        assert sorted(p.name for p in out.iterdir()) == ["clients.rs", "orders.rs"]

    def test_dry_run(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        out = tmp_path / "out"
        code = main(_run_args(profile_dir, schema_yaml_path, out, "--set", "password_reset=0", "--dry-run"))
        assert code == EXIT_SUCCESS
        assert list(out.iterdir()) == []

    def test_missing_answer_is_generation_error(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        assert main(_run_args(profile_dir, schema_yaml_path, tmp_path / "out")) == EXIT_GENERATION_ERROR

    def test_unknown_table_is_generation_error(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        args = _run_args(profile_dir, schema_yaml_path, tmp_path / "out", "--set", "password_reset=0")
        args[2] = "invoices"
        assert main(args) == EXIT_GENERATION_ERROR

    def test_bad_set_pair(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        args = _run_args(profile_dir, schema_yaml_path, tmp_path / "out", "--set", "novalue")
        assert main(args) == EXIT_INPUT_ERROR

    def test_missing_schema_file(self, profile_dir: pathlib.Path, tmp_path: pathlib.Path) -> None:
        args = _run_args(profile_dir, tmp_path / "absent.yaml", tmp_path / "out", "--set", "password_reset=0")
        assert main(args) == EXIT_REFLECTION_ERROR

    def test_missing_profile(self, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        args = _run_args(tmp_path / "nowhere", schema_yaml_path, tmp_path / "out")
        assert main(args) == EXIT_PROFILE_ERROR

    def test_table_required_without_terminal(
        self, profile_dir: pathlib.Path, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        args = _run_args(profile_dir, schema_yaml_path, tmp_path / "out", "--set", "password_reset=0")
        del args[2]
        assert main(args) == EXIT_INPUT_ERROR

    def test_reflects_sqlite_dsn(
        self, profile_dir: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        import sqlite3

        db = tmp_path / "shop.db"
        conn = sqlite3.connect(db)
        conn.execute("CREATE TABLE clients (id INTEGER PRIMARY KEY, email TEXT)")
        conn.commit()
        conn.close()

        out = tmp_path / "out"
        code = main([
            "-q", "run", "clients",
            "--profile-file", str(profile_dir),
            "--dsn", f"sqlite:///{db}",
            "--target-dir", str(out),
            "--non-interactive",
            "--set", "password_reset=0",
        ])
        assert code == EXIT_SUCCESS
        assert "pub email: TEXT," in (out / "clients.rs").read_text(encoding="utf-8")


class TestValidate:
    def test_valid_profile(self, profile_dir: pathlib.Path, capsys) -> None:
        assert main(["-q", "validate", "--profile-file", str(profile_dir)]) == EXIT_SUCCESS
        assert "Valid:    Yes" in capsys.readouterr().out

    def test_invalid_profile(self, profile_dir: pathlib.Path) -> None:
        (profile_dir / "templates" / "backend.j2").unlink()
        assert main(["-q", "validate", "--profile-file", str(profile_dir)]) == EXIT_PROFILE_ERROR

    def test_unknown_registered_profile(self) -> None:
        assert main(["-q", "validate", "-p", "ghost"]) == EXIT_PROFILE_ERROR


class TestConfig:
    def test_add_list_rm(self, profile_dir: pathlib.Path, capsys) -> None:
        assert main(["-q", "config", "add", str(profile_dir)]) == EXIT_SUCCESS
        assert main(["-q", "config", "list"]) == EXIT_SUCCESS
        assert "rust-backend" in capsys.readouterr().out

        assert main(["-q", "validate", "-p", "rust-backend"]) == EXIT_SUCCESS

        assert main(["-q", "config", "rm", "rust-backend"]) == EXIT_SUCCESS
        assert main(["-q", "config", "rm", "rust-backend"]) == EXIT_PROFILE_ERROR

    def test_add_as_default(self, profile_dir: pathlib.Path, capsys) -> None:
        assert main(["-q", "config", "add", str(profile_dir), "--default"]) == EXIT_SUCCESS
        assert "Registered profile 'default'." in capsys.readouterr().out
        assert main(["-q", "validate", "-p", "default"]) == EXIT_SUCCESS

    def test_default_and_name_exclusive(self, profile_dir: pathlib.Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["config", "add", str(profile_dir), "--default", "--name", "rust"])
        assert exc_info.value.code == 2

    def test_profile_from_environment(
        self, profile_dir: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        main(["-q", "config", "add", str(profile_dir), "--name", "envprof"])
        monkeypatch.setenv("SCHEMAFORGE_PROFILE", "envprof")
        assert main(["-q", "validate"]) == EXIT_SUCCESS

    def test_empty_list(self, capsys) -> None:
        assert main(["-q", "config", "list"]) == EXIT_SUCCESS
        assert "No profiles registered." in capsys.readouterr().out


class TestParser:
    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "schemaforge" in capsys.readouterr().out

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2

    def test_profile_options_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            main(["run", "-p", "a", "--profile-file", "b"])
