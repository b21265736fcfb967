"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

import pytest
from pr_reviewer.config import CONFIG_PATH_ENV_VAR, ENV_BINDINGS
from pr_reviewer.git_sync import GitCommandError, GitCommandResult


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom pytest options for integration test execution."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that drive a real git binary in a temp directory.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly enabled."""
    run_integration = config.getoption("--run-integration")
    env_enabled = os.getenv("RUN_INTEGRATION_TESTS") == "1"
    if run_integration or env_enabled:
        return

    skip_marker = pytest.mark.skip(
        reason=(
            "Integration tests need a real git binary and are disabled by default. "
            "Use --run-integration or set RUN_INTEGRATION_TESTS=1."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run each test without reviewer env vars and from an empty directory."""
    for env_name, _section, _field, _kind in ENV_BINDINGS:
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.delenv(CONFIG_PATH_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class RecordingGitRunner:
    """Stand-in for ``run_git`` that records calls and returns canned output."""

    def __init__(
        self,
        *,
        outputs: dict[str, str] | None = None,
        failing: Sequence[str] = (),
    ) -> None:
        self.calls: list[tuple[tuple[str, ...], Path | None]] = []
        self._outputs = outputs or {}
        self._failing = tuple(failing)

    def __call__(self, args: Sequence[str], cwd: Path | None) -> GitCommandResult:
        command = tuple(args)
        self.calls.append((command, cwd))
        joined = " ".join(command)
        exit_code = 128 if any(joined.startswith(prefix) for prefix in self._failing) else 0
        result = GitCommandResult(
            args=command,
            exit_code=exit_code,
            stdout=self._outputs.get(command[0], ""),
            stderr="fatal: simulated failure" if exit_code else "",
        )
        if exit_code:
            raise GitCommandError(result)
        return result

    @property
    def commands(self) -> list[tuple[str, ...]]:
        """Return just the argument tuples, in call order."""
        return [command for command, _cwd in self.calls]


@pytest.fixture
def git_runner() -> RecordingGitRunner:
    """Provide a recording git runner with default empty output."""
    return RecordingGitRunner()


@pytest.fixture
def git_runner_factory() -> type[RecordingGitRunner]:
    """Provide the recording runner class for tests that need canned output."""
    return RecordingGitRunner
