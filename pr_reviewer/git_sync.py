"""Local working-copy synchronization and diff extraction via the git CLI."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from urllib.parse import urlsplit

from pr_reviewer.config import ConfigError
from pr_reviewer.logger import get_logger

logger = get_logger()

CREDENTIALS_IN_URL_PATTERN = re.compile(r"(https?://)[^/\s]*@")


class InvalidCloneUrlError(ConfigError):
    """Raised when a clone URL cannot carry embedded credentials."""


class DiffError(RuntimeError):
    """Raised when a diff cannot be computed from the local repository."""


class CheckoutMode(StrEnum):
    """Which checkout path synchronization took."""

    BRANCH = "branch"
    COMMIT = "commit"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class GitCommandResult:
    """Outcome of one git invocation."""

    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str


class GitCommandError(RuntimeError):
    """Raised when git exits with a non-zero status."""

    def __init__(self, result: GitCommandResult) -> None:
        command = redact_credentials(" ".join(result.args))
        super().__init__(
            f"git {command} failed with exit code {result.exit_code}. "
            f"Error: {redact_credentials(result.stderr.strip())}\n"
            f"Output: {redact_credentials(result.stdout.strip())}"
        )
        self.result = result


GitRunner = Callable[[Sequence[str], Path | None], GitCommandResult]


def redact_credentials(text: str) -> str:
    """Hide the user-info part of any URL in text."""
    return CREDENTIALS_IN_URL_PATTERN.sub(r"\1***@", text)


def run_git(args: Sequence[str], cwd: Path | None = None) -> GitCommandResult:
    """Run git with captured output and raise on non-zero exit."""
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    result = GitCommandResult(
        args=tuple(args),
        exit_code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if result.exit_code != 0:
        raise GitCommandError(result)
    return result


def inject_credentials_into_https_url(clone_url: str, username: str, password: str) -> str:
    """Embed raw (not percent-encoded) credentials into an HTTPS clone URL."""
    try:
        parts = urlsplit(clone_url)
    except ValueError as error:
        raise InvalidCloneUrlError(f"Invalid clone URL: {clone_url}") from error
    if not parts.scheme or not parts.hostname:
        raise InvalidCloneUrlError(f"Invalid clone URL: {clone_url}")
    if parts.scheme.lower() != "https":
        raise InvalidCloneUrlError("Only HTTPS clone URLs are supported for embedded credentials.")

    host = parts.hostname
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    path_and_query = parts.path or "/"
    if parts.query:
        path_and_query = f"{path_and_query}?{parts.query}"
    return f"https://{username}:{password}@{host}{path_and_query}"


def remove_directory(path: Path) -> bool:
    """Delete a directory tree; return False instead of raising when it fails."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as error:
        logger.warning("Could not remove {}: {}", path, error)
        return False
    return True


def prepare_temp_root(temp_root: Path) -> Path:
    """Create the checkout root if needed and return it."""
    temp_root.mkdir(parents=True, exist_ok=True)
    return temp_root


def synchronize_repository(
    *,
    clone_url: str,
    repo_dir: Path,
    git_username: str,
    api_token: str,
    branch_name: str | None,
    commit_sha: str | None,
    runner: GitRunner = run_git,
) -> CheckoutMode:
    """Leave ``repo_dir`` at the requested branch tip or commit.

    Clones on first use, otherwise rewrites the origin URL so rotated
    credentials take effect. Always fetches with pruning. A branch name takes
    precedence over a commit hash so force-pushed source branches are
    followed.
    """
    auth_url = inject_credentials_into_https_url(clone_url, git_username, api_token)

    if not (repo_dir / ".git").is_dir():
        logger.info("[GIT] Cloning using user '{}' into {}", git_username, repo_dir)
        if repo_dir.exists():
            remove_directory(repo_dir)
        repo_dir.parent.mkdir(parents=True, exist_ok=True)
        runner(["clone", auth_url, str(repo_dir)], None)
    else:
        logger.info("[GIT] Reusing existing repository folder {}", repo_dir)
        runner(["remote", "set-url", "origin", auth_url], repo_dir)

    runner(["fetch", "--all", "--prune"], repo_dir)

    if branch_name and branch_name.strip():
        logger.info(
            "[GIT] Checking out branch '{}' and hard resetting to origin/{}", branch_name, branch_name
        )
        runner(["checkout", "-B", branch_name, f"origin/{branch_name}"], repo_dir)
        runner(["reset", "--hard", f"origin/{branch_name}"], repo_dir)
        return CheckoutMode.BRANCH

    if commit_sha and commit_sha.strip():
        logger.info("[GIT] Checking out commit {} (detached) and hard resetting", commit_sha)
        runner(["checkout", "--detach", commit_sha], repo_dir)
        runner(["reset", "--hard", commit_sha], repo_dir)
        return CheckoutMode.COMMIT

    logger.warning("[GIT] No source branch or commit available; working tree left as-is")
    return CheckoutMode.NONE


def _ensure_commit_exists(repo_dir: Path, sha: str, *, label: str, runner: GitRunner) -> None:
    try:
        runner(["cat-file", "-e", f"{sha}^{{commit}}"], repo_dir)
    except GitCommandError as error:
        raise DiffError(f"{label} commit not found locally: {sha}") from error


def compute_diff(
    repo_dir: Path,
    base_sha: str | None,
    head_sha: str | None,
    *,
    runner: GitRunner = run_git,
) -> str:
    """Return the unified diff turning the base commit's tree into the head's."""
    if not base_sha or not base_sha.strip() or not head_sha or not head_sha.strip():
        raise DiffError("Missing base or head commit SHA for local diff computation.")

    _ensure_commit_exists(repo_dir, base_sha, label="Base", runner=runner)
    _ensure_commit_exists(repo_dir, head_sha, label="Head", runner=runner)

    result = runner(["diff", "--no-color", "--no-ext-diff", base_sha, head_sha], repo_dir)
    return result.stdout
