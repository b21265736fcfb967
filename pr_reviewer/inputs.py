"""Pull request reference resolution from CLI tokens, PR URLs, and defaults."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import urlsplit

PULL_REQUESTS_SEGMENT = "pull-requests"

USAGE_TEXT = """Usage:
  pr-reviewer --workspace <workspace> --repo <repo-slug> --pr <id>
  pr-reviewer --prUrl <bitbucket_pr_url>
  pr-reviewer --pr-url <bitbucket_pr_url>
  pr-reviewer <bitbucket_pr_url>

Quick check (no network):
  pr-reviewer --test-parse <bitbucket_pr_url>
  pr-reviewer --test-parse --prUrl <bitbucket_pr_url>

Auth: set BITBUCKET_USERNAME (account email or username) and BITBUCKET_API_TOKEN
(API token), or configure them in pr-reviewer.json.
Notes: BITBUCKET_WORKSPACE and BITBUCKET_REPO_SLUG supply defaults, so --pr alone is enough."""


class UsageError(ValueError):
    """Raised when a complete pull request reference cannot be resolved."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"{reason}\n\n{USAGE_TEXT}")
        self.reason = reason


@dataclass(frozen=True, slots=True)
class PullRequestRef:
    """Identifier of the pull request reviewed in one run."""

    workspace: str
    repo_slug: str
    pr_id: int

    def __str__(self) -> str:
        return f"{self.workspace}/{self.repo_slug}#{self.pr_id}"


def looks_like_url(value: str) -> bool:
    """Return whether a token looks like an absolute HTTP(S) URL."""
    lowered = value.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_pull_request_url(url: str) -> PullRequestRef | None:
    """Extract workspace, repo slug, and id from a Bitbucket PR URL.

    Expected shape: ``https://<host>/{workspace}/{repo}/pull-requests/{id}[/...]``.
    Returns None when the URL does not match.
    """
    if not looks_like_url(url):
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        return None

    segments = [segment for segment in path.split("/") if segment]
    if len(segments) < 4:
        return None

    marker_index = next(
        (
            index
            for index, segment in enumerate(segments)
            if segment.lower() == PULL_REQUESTS_SEGMENT
        ),
        None,
    )
    if marker_index is None or marker_index < 2 or marker_index + 1 >= len(segments):
        return None

    pr_id = _parse_int(segments[marker_index + 1])
    if pr_id is None:
        return None
    return PullRequestRef(workspace=segments[0], repo_slug=segments[1], pr_id=pr_id)


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def resolve_pull_request_ref(
    args: Sequence[str],
    *,
    default_workspace: str | None,
    default_repo_slug: str | None,
) -> PullRequestRef:
    """Resolve the run's pull request from raw CLI tokens.

    Explicit flags win over values parsed from a PR URL, which win over the
    defaults. Defaults never supply the PR id.
    """
    workspace: str | None = None
    repo_slug: str | None = None
    pr_id: int | None = None
    pr_url: str | None = None

    if len(args) == 1 and looks_like_url(args[0]):
        pr_url = args[0]

    index = 0
    while index < len(args):
        token = args[index]
        value = args[index + 1] if index + 1 < len(args) else None
        if token == "--workspace":
            workspace = value
            index += 1
        elif token == "--repo":
            repo_slug = value
            index += 1
        elif token == "--pr":
            pr_id = _parse_int(value)
            index += 1
        elif token in ("--prUrl", "--pr-url"):
            pr_url = value
            index += 1
        index += 1

    workspace = _blank_to_none(workspace)
    repo_slug = _blank_to_none(repo_slug)

    if pr_url:
        from_url = parse_pull_request_url(pr_url)
        if from_url is not None:
            workspace = workspace or from_url.workspace
            repo_slug = repo_slug or from_url.repo_slug
            pr_id = pr_id if pr_id is not None else from_url.pr_id

    workspace = workspace or _blank_to_none(default_workspace)
    repo_slug = repo_slug or _blank_to_none(default_repo_slug)

    missing = [
        name
        for name, value in (("workspace", workspace), ("repo slug", repo_slug), ("PR id", pr_id))
        if value is None
    ]
    if missing:
        raise UsageError(f"Missing {', '.join(missing)}.")

    return PullRequestRef(workspace=workspace, repo_slug=repo_slug, pr_id=pr_id)
