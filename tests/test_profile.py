"""
tests/test_profile.py
Unit tests for schemaforge.profile (profile loading and run configuration).
"""

from __future__ import annotations

import pathlib
import textwrap

import pytest

from schemaforge.errors import ProfileError
from schemaforge.models import Profile, ProfileOverrides, ProfileSettings
from schemaforge.profile import (
    apply_overrides,
    find_profile_file,
    load_profile,
    parse_profile,
    resolve_dsn,
    resolve_target_dir,
)


PROFILE_YAML: str = textwrap.dedent(
    """\
    profile:
      env-file: .env
      env-var: DATABASE_URL
      targets: [model]
    prompt:
      soft_delete:
        prompt: Soft delete?
        options: {0: "no", 1: "yes"}
    target:
      model:
        template: model
        target: "{{ table_name }}.py"
        formatter: "black {{ target }}"
      unused:
        template: model
        target: unused.py
    """
)


# ===========================================================================
# Loading
# ===========================================================================


class TestLoadProfile:
    def test_directory_with_toml(self, profile_dir: pathlib.Path) -> None:
        profile = load_profile(profile_dir)
        assert profile.name == "rust-backend"
        assert [p.id for p in profile.prompts] == ["password_reset", "google_auth"]
        assert [t.id for t in profile.targets] == ["backend", "google"]
        assert profile.settings.target_dir == "generated"
        assert profile.templates_path == profile_dir.resolve() / "templates"
        assert profile.prompts[0].options == {"0": "No", "1": "Yes"}

    def test_profile_classmethod(self, profile_dir: pathlib.Path) -> None:
        assert Profile.load(profile_dir / "Schemaforge.toml").name == "rust-backend"

    def test_yaml_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "backend.yaml"
        path.write_text(PROFILE_YAML, encoding="utf-8")
        profile = load_profile(path)

        assert profile.name == "backend"
        assert profile.prompts[0].options == {"0": "no", "1": "yes"}
        assert [t.id for t in profile.targets] == ["model"]
        assert profile.unlisted_targets == ["unused"]
        assert profile.targets[0].formatter == "black {{ target }}"

    def test_order_follows_profile_list(self) -> None:
        raw = {
            "profile": {"prompts": ["b", "a"]},
            "prompt": {"a": {"prompt": "A?"}, "b": {"prompt": "B?"}},
        }
        assert [p.id for p in parse_profile(raw).prompts] == ["b", "a"]

    def test_order_defaults_to_declaration_order(self) -> None:
        raw = {"prompt": {"z": {"prompt": "Z?"}, "a": {"prompt": "A?"}}}
        assert [p.id for p in parse_profile(raw).prompts] == ["z", "a"]

    def test_find_profile_file_prefers_toml(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "Schemaforge.yaml").write_text("{}", encoding="utf-8")
        (tmp_path / "Schemaforge.toml").write_text("", encoding="utf-8")
        assert find_profile_file(tmp_path).name == "Schemaforge.toml"

    def test_empty_yaml_is_empty_profile(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "Schemaforge.yml"
        path.write_text("", encoding="utf-8")
        profile = load_profile(tmp_path)
        assert profile.prompts == []
        assert profile.name == "Schemaforge"


class TestProfileErrors:
    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ProfileError):
            load_profile(tmp_path / "nope.toml")

    def test_directory_without_profile(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ProfileError):
            load_profile(tmp_path)

    def test_invalid_toml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "p.toml"
        path.write_text("[profile\n", encoding="utf-8")
        with pytest.raises(ProfileError) as exc_info:
            load_profile(path)
        assert "TOML" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "p.yaml"
        path.write_text("profile: [unclosed\n", encoding="utf-8")
        with pytest.raises(ProfileError):
            load_profile(path)

    def test_unsupported_suffix(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "p.ini"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(ProfileError):
            load_profile(path)

    def test_root_must_be_mapping(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "p.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ProfileError):
            load_profile(path)

    def test_undeclared_id_in_list(self) -> None:
        with pytest.raises(ProfileError):
            parse_profile({"profile": {"targets": ["ghost"]}})

    def test_duplicate_id_in_list(self) -> None:
        raw = {"profile": {"prompts": ["a", "a"]}, "prompt": {"a": {"prompt": "A?"}}}
        with pytest.raises(ProfileError):
            parse_profile(raw)

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ProfileError):
            parse_profile({"target": {"t": {"template": "x", "target": "y", "colour": "red"}}})

    def test_missing_required_field(self) -> None:
        with pytest.raises(ProfileError):
            parse_profile({"target": {"t": {"template": "x"}}})

    def test_bad_declaration_id(self) -> None:
        with pytest.raises(ProfileError):
            parse_profile({"prompt": {"has-dash": {"prompt": "?"}}})

    def test_conflicting_inline_id(self) -> None:
        with pytest.raises(ProfileError):
            parse_profile({"prompt": {"a": {"id": "b", "prompt": "?"}}})

    def test_error_carries_source(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "p.toml"
        path.write_text('[profile]\ntargets = ["ghost"]\n', encoding="utf-8")
        with pytest.raises(ProfileError) as exc_info:
            load_profile(path)
        assert exc_info.value.subject == str(path.resolve())


# ===========================================================================
# Run configuration
# ===========================================================================


class TestApplyOverrides:
    def test_only_given_values_win(self) -> None:
        settings = ProfileSettings(dsn="sqlite:///a.db", target_dir="out")
        merged = apply_overrides(settings, ProfileOverrides(target_dir="elsewhere"))
        assert merged.dsn == "sqlite:///a.db"
        assert merged.target_dir == "elsewhere"
        assert settings.target_dir == "out"

    def test_no_overrides_is_copy(self) -> None:
        settings = ProfileSettings(dsn="x")
        merged = apply_overrides(settings)
        assert merged == settings
        assert merged is not settings


class TestResolveDsn:
    def test_explicit_dsn_wins(self) -> None:
        settings = ProfileSettings(dsn="sqlite:///a.db", env_var="DATABASE_URL")
        assert resolve_dsn(settings, environ={"DATABASE_URL": "other"}) == "sqlite:///a.db"

    def test_env_file(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / ".env").write_text("DATABASE_URL=sqlite:///from_file.db\n", encoding="utf-8")
        settings = ProfileSettings(env_file=".env", env_var="DATABASE_URL")
        assert resolve_dsn(settings, context_dir=tmp_path, environ={}) == "sqlite:///from_file.db"

    def test_env_file_without_variable_falls_back_to_environ(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / ".env").write_text("OTHER=1\n", encoding="utf-8")
        settings = ProfileSettings(env_file=".env", env_var="DATABASE_URL")
        environ = {"DATABASE_URL": "sqlite:///env.db"}
        assert resolve_dsn(settings, context_dir=tmp_path, environ=environ) == "sqlite:///env.db"

    def test_missing_env_file(self, tmp_path: pathlib.Path) -> None:
        settings = ProfileSettings(env_file="absent.env", env_var="DATABASE_URL")
        with pytest.raises(ProfileError):
            resolve_dsn(settings, context_dir=tmp_path, environ={})

    def test_environ_only(self) -> None:
        settings = ProfileSettings(env_var="DATABASE_URL")
        assert resolve_dsn(settings, environ={"DATABASE_URL": "x://y"}) == "x://y"

    def test_nothing_configured(self) -> None:
        with pytest.raises(ProfileError):
            resolve_dsn(ProfileSettings(), environ={})

    def test_variable_unset(self) -> None:
        with pytest.raises(ProfileError):
            resolve_dsn(ProfileSettings(env_var="DATABASE_URL"), environ={})


class TestResolveTargetDir:
    def test_creates_relative_directory(self, tmp_path: pathlib.Path) -> None:
        target = resolve_target_dir(ProfileSettings(target_dir="gen/src"), context_dir=tmp_path)
        assert target == (tmp_path / "gen" / "src").resolve()
        assert target.is_dir()

    def test_absolute_directory(self, tmp_path: pathlib.Path) -> None:
        absolute = tmp_path / "abs"
        assert resolve_target_dir(ProfileSettings(target_dir=str(absolute))) == absolute.resolve()

    def test_blank_means_context_dir(self, tmp_path: pathlib.Path) -> None:
        assert resolve_target_dir(ProfileSettings(target_dir="  "), context_dir=tmp_path) == tmp_path.resolve()

    def test_file_in_the_way(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "taken").write_text("x", encoding="utf-8")
        with pytest.raises(ProfileError):
            resolve_target_dir(ProfileSettings(target_dir="taken"), context_dir=tmp_path)
