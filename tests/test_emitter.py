"""
tests/test_emitter.py
Unit tests for schemaforge.emitter (Render & Emit Pipeline).

Tests cover:
- Writing files, creating parent directories, overwriting
- Formatter rendering with only ``target`` in scope
- Formatter failures leave the file on disk
- Render and I/O failures
- Dry-run mode
"""

from __future__ import annotations

import pathlib
import sys

import pytest

from schemaforge.context import TemplateContext, build
from schemaforge.emitter import (
    STATUS_RENDERED,
    STATUS_WRITTEN,
    ExitResult,
    NullCommandExecutor,
    ShellCommandExecutor,
    TargetEmitter,
)
from schemaforge.errors import FormatterError, IoError, RenderError
from schemaforge.models import DatabaseSchema
from schemaforge.rendering import Renderer
from schemaforge.targets import ScheduledTarget


@pytest.fixture()
def ctx(clients_schema: DatabaseSchema) -> TemplateContext:
    return build(clients_schema, "clients", version="1.2.3")


def _scheduled(path: pathlib.Path, template: str = "backend", formatter=None) -> ScheduledTarget:
    return ScheduledTarget(
        target_id="backend",
        template_name=template,
        output_path=path,
        formatter=formatter,
    )


class TestWrite:
    def test_writes_rendered_template(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "src" / "deep" / "clients.rs"
        result = TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(path), ctx)

        content = path.read_text(encoding="utf-8")
        assert content.startswith("// Clients generated by schemaforge 1.2.3\n")
        assert "pub struct Client {" in content
        assert "pub email: VARCHAR(120)," in content
        assert result.status == STATUS_WRITTEN
        assert result.path == str(path)
        assert result.bytes_written == len(content.encode("utf-8"))
        assert result.line_count == content.count("\n")
        assert len(result.sha256) == 64

    def test_overwrites_existing_file(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "clients.rs"
        path.write_text("stale content that is much longer than the template output" * 10, encoding="utf-8")
        TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(path, "google"), ctx)
        assert path.read_text(encoding="utf-8") == "// google auth for clients\n"

    def test_same_context_same_bytes(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "clients.rs"
        emitter = TargetEmitter(renderer, NullCommandExecutor())
        first = emitter.emit(_scheduled(path), ctx)
        before = path.read_bytes()
        second = emitter.emit(_scheduled(path), ctx)
        assert path.read_bytes() == before
        assert first.sha256 == second.sha256

    def test_non_atomic_write(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "clients.rs"
        TargetEmitter(renderer, NullCommandExecutor(), atomic_writes=False).emit(_scheduled(path, "google"), ctx)
        assert path.exists()

    def test_render_error_writes_nothing(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.rs"
        with pytest.raises(RenderError):
            TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(path, "broken"), ctx)
        assert not path.exists()

    def test_unwritable_location(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        with pytest.raises(IoError) as exc_info:
            TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(blocker / "clients.rs"), ctx)
        assert exc_info.value.kind == "io"

    def test_invalid_path_is_io_error(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        with pytest.raises(IoError):
            TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(tmp_path / "a\x00b.rs"), ctx)
        assert list(tmp_path.iterdir()) == []

    def test_to_dict(self, renderer: Renderer, ctx, tmp_path: pathlib.Path) -> None:
        result = TargetEmitter(renderer, NullCommandExecutor()).emit(_scheduled(tmp_path / "a.rs"), ctx)
        data = result.to_dict()
        assert data["status"] == "written"
        assert data["template"] == "backend"
        assert data["error_kind"] is None


class TestFormatter:
    def test_command_sees_only_target(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        path = tmp_path / "clients.rs"
        executor = recording_executor()
        result = TargetEmitter(renderer, executor).emit(
            _scheduled(path, formatter="rustfmt {{ target }} {{ table_name }}"), ctx
        )
        assert executor.commands == [f"rustfmt {path}"]
        assert result.formatter_command == f"rustfmt {path}"
        assert result.formatter_output == "formatted"

    def test_empty_command_is_not_run(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        executor = recording_executor()
        result = TargetEmitter(renderer, executor).emit(
            _scheduled(tmp_path / "a.rs", formatter="{{ table_name }}"), ctx
        )
        assert executor.commands == []
        assert result.formatter_command is None

    def test_non_zero_exit_keeps_file(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        path = tmp_path / "clients.rs"
        emitter = TargetEmitter(renderer, recording_executor(fail_on="rustfmt"))
        with pytest.raises(FormatterError) as exc_info:
            emitter.emit(_scheduled(path, formatter="rustfmt {{ target }}"), ctx)
        assert exc_info.value.returncode == 1
        assert "formatter exploded" in exc_info.value.output
        assert path.exists()

    def test_spawn_failure(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        emitter = TargetEmitter(renderer, recording_executor(raise_on="rustfmt"))
        with pytest.raises(FormatterError):
            emitter.emit(_scheduled(tmp_path / "a.rs", formatter="rustfmt {{ target }}"), ctx)

    def test_formatter_render_failure(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        with pytest.raises(FormatterError):
            TargetEmitter(renderer, recording_executor()).emit(
                _scheduled(tmp_path / "a.rs", formatter="{% if %}"), ctx
            )


class TestDryRun:
    def test_nothing_written_nothing_run(
        self, renderer: Renderer, ctx, tmp_path: pathlib.Path, recording_executor
    ) -> None:
        path = tmp_path / "src" / "clients.rs"
        executor = recording_executor()
        result = TargetEmitter(renderer, executor, dry_run=True).emit(
            _scheduled(path, formatter="rustfmt {{ target }}"), ctx
        )
        assert result.status == STATUS_RENDERED
        assert result.ok
        assert result.bytes_written > 0
        assert not path.exists()
        assert not (tmp_path / "src").exists()
        assert executor.commands == []


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell syntax")
class TestShellCommandExecutor:
    def test_captures_output(self) -> None:
        result = ShellCommandExecutor().execute("echo hi")
        assert result == ExitResult(0, "hi\n", "")
        assert result.output == "hi"

    def test_non_zero_exit(self) -> None:
        result = ShellCommandExecutor().execute("exit 3")
        assert result.returncode == 3
        assert not result.ok

    def test_runs_in_cwd(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "marker.txt").write_text("x", encoding="utf-8")
        assert "marker.txt" in ShellCommandExecutor(cwd=tmp_path).execute("ls").stdout

    def test_timeout_is_os_error(self) -> None:
        with pytest.raises(OSError):
            ShellCommandExecutor(timeout=0.2).execute("sleep 5")
