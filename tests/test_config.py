"""Tests for layered run configuration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pr_reviewer.config import (
    DEFAULT_TEMP_ROOT,
    ConfigError,
    RunConfig,
    load_config,
    merge_config,
    read_config_file,
)
from pr_reviewer.schema import PublishMode


@pytest.mark.unit
def test_merge_config_defaults() -> None:
    config = merge_config({}, {})

    assert config.bitbucket.base_url == "https://api.bitbucket.org/2.0"
    assert config.model.endpoint == "http://localhost:8080/v1/chat/completions"
    assert config.model.timeout_seconds == 600
    assert config.tool.max_diff_chars == 45_000
    assert config.tool.dry_run is False
    assert config.tool.publish_mode is PublishMode.PUBLISH
    assert config.tool.resolved_temp_root == DEFAULT_TEMP_ROOT


@pytest.mark.unit
def test_environment_overrides_file_values() -> None:
    file_layer = {
        "bitbucket": {"workspace": "file-ws", "username": "file-user"},
        "tool": {"max_diff_chars": 100},
    }
    environ = {
        "BITBUCKET_WORKSPACE": "env-ws",
        "TOOL_MAX_DIFF_CHARS": "200",
        "TOOL_DRY_RUN": "true",
        "TOOL_PUBLISH_MODE": "startreview",
    }

    config = merge_config(file_layer, environ)

    assert config.bitbucket.workspace == "env-ws"
    assert config.bitbucket.username == "file-user"
    assert config.tool.max_diff_chars == 200
    assert config.tool.dry_run is True
    assert config.tool.publish_mode is PublishMode.START_REVIEW


@pytest.mark.unit
def test_malformed_environment_values_are_ignored() -> None:
    file_layer = {"model": {"timeout_seconds": 30}, "tool": {"dry_run": True}}
    environ = {
        "TABBY_TIMEOUT_SECONDS": "soon",
        "TOOL_DRY_RUN": "maybe",
        "TOOL_PUBLISH_MODE": "Shout",
    }

    config = merge_config(file_layer, environ)

    assert config.model.timeout_seconds == 30
    assert config.tool.dry_run is True
    assert config.tool.publish_mode is PublishMode.PUBLISH


@pytest.mark.unit
def test_cli_overrides_win_over_environment() -> None:
    config = merge_config(
        {},
        {"TOOL_DRY_RUN": "false"},
        {"tool.dry_run": True, "tool.publish_mode": None},
    )

    assert config.tool.dry_run is True
    assert config.tool.publish_mode is PublishMode.PUBLISH


@pytest.mark.unit
def test_unknown_cli_override_is_rejected() -> None:
    with pytest.raises(ConfigError):
        merge_config({}, {}, {"nowhere.value": 1})


@pytest.mark.unit
def test_invalid_values_raise_config_error() -> None:
    with pytest.raises(ConfigError):
        merge_config({"tool": {"max_diff_chars": 0}}, {})


@pytest.mark.unit
def test_run_config_is_frozen() -> None:
    config = merge_config({}, {})
    with pytest.raises(ValueError):
        config.tool = config.tool  # type: ignore[misc]
    assert isinstance(config, RunConfig)


@pytest.mark.unit
def test_read_config_file_missing_returns_empty(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "absent.json") == {}


@pytest.mark.unit
def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "pr-reviewer.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        read_config_file(path)


@pytest.mark.unit
def test_load_config_reads_file_then_environment(tmp_path: Path) -> None:
    path = tmp_path / "custom.json"
    path.write_text(
        json.dumps({"bitbucket": {"repo_slug": "file-repo"}, "model": {"model": "gpt"}}),
        encoding="utf-8",
    )

    config = load_config(path, environ={"TABBY_API_KEY": "secret"})

    assert config.bitbucket.repo_slug == "file-repo"
    assert config.model.model == "gpt"
    assert config.model.api_key == "secret"


@pytest.mark.unit
def test_load_config_uses_path_from_environment(tmp_path: Path) -> None:
    path = tmp_path / "from-env.json"
    path.write_text(json.dumps({"tool": {"temp_root": str(tmp_path / "repos")}}), encoding="utf-8")

    config = load_config(environ={"PR_REVIEWER_CONFIG": str(path)})

    assert config.tool.resolved_temp_root == tmp_path / "repos"


@pytest.mark.unit
def test_clone_url_is_built_from_base() -> None:
    config = merge_config({"bitbucket": {"repo_base_clone_url": "https://bitbucket.org/"}}, {})
    assert config.bitbucket.clone_url("acme", "rocket") == "https://bitbucket.org/acme/rocket.git"
