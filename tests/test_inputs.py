"""Tests for pull request reference resolution."""

from __future__ import annotations

import pytest
from pr_reviewer.inputs import (
    PullRequestRef,
    UsageError,
    looks_like_url,
    parse_pull_request_url,
    resolve_pull_request_ref,
)

PR_URL = "https://bitbucket.org/acme/rocket/pull-requests/42"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("url", "expected"),
    [
        (PR_URL, PullRequestRef("acme", "rocket", 42)),
        (
            "https://bitbucket.org/acme/rocket/pull-requests/42/diff",
            PullRequestRef("acme", "rocket", 42),
        ),
        (
            "https://bitbucket.org/acme/rocket/PULL-REQUESTS/7/overview?tab=activity",
            PullRequestRef("acme", "rocket", 7),
        ),
        ("http://bitbucket.org/acme/rocket/pull-requests/3/", PullRequestRef("acme", "rocket", 3)),
    ],
)
def test_parse_pull_request_url_extracts_segments(url: str, expected: PullRequestRef) -> None:
    assert parse_pull_request_url(url) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "url",
    [
        "https://bitbucket.org/acme/rocket/pulls/42",
        "https://bitbucket.org/acme/pull-requests/42",
        "https://bitbucket.org/acme/rocket/pull-requests/abc",
        "https://bitbucket.org/acme/rocket/pull-requests",
        "https://bitbucket.org/",
        "not a url",
    ],
)
def test_parse_pull_request_url_returns_none_for_non_matching(url: str) -> None:
    assert parse_pull_request_url(url) is None


@pytest.mark.unit
def test_looks_like_url_is_case_insensitive() -> None:
    assert looks_like_url("HTTPS://bitbucket.org")
    assert not looks_like_url("ftp://bitbucket.org")


@pytest.mark.unit
def test_resolve_accepts_single_positional_url() -> None:
    ref = resolve_pull_request_ref([PR_URL], default_workspace=None, default_repo_slug=None)
    assert ref == PullRequestRef("acme", "rocket", 42)


@pytest.mark.unit
@pytest.mark.parametrize("flag", ["--prUrl", "--pr-url"])
def test_resolve_accepts_pr_url_flags(flag: str) -> None:
    ref = resolve_pull_request_ref([flag, PR_URL], default_workspace=None, default_repo_slug=None)
    assert ref == PullRequestRef("acme", "rocket", 42)


@pytest.mark.unit
def test_resolve_flags_win_over_url_values() -> None:
    ref = resolve_pull_request_ref(
        ["--pr-url", PR_URL, "--workspace", "other", "--pr", "9"],
        default_workspace="default-ws",
        default_repo_slug="default-repo",
    )
    assert ref == PullRequestRef("other", "rocket", 9)


@pytest.mark.unit
def test_resolve_url_values_win_over_defaults() -> None:
    ref = resolve_pull_request_ref(
        [PR_URL], default_workspace="default-ws", default_repo_slug="default-repo"
    )
    assert ref.workspace == "acme"
    assert ref.repo_slug == "rocket"


@pytest.mark.unit
def test_resolve_uses_defaults_for_workspace_and_repo() -> None:
    ref = resolve_pull_request_ref(
        ["--pr", "5"], default_workspace="default-ws", default_repo_slug="default-repo"
    )
    assert ref == PullRequestRef("default-ws", "default-repo", 5)


@pytest.mark.unit
def test_resolve_defaults_never_supply_pr_id() -> None:
    with pytest.raises(UsageError) as excinfo:
        resolve_pull_request_ref([], default_workspace="ws", default_repo_slug="repo")
    assert "PR id" in excinfo.value.reason


@pytest.mark.unit
def test_resolve_ignores_malformed_pr_value() -> None:
    with pytest.raises(UsageError):
        resolve_pull_request_ref(
            ["--workspace", "ws", "--repo", "repo", "--pr", "abc"],
            default_workspace=None,
            default_repo_slug=None,
        )


@pytest.mark.unit
def test_resolve_malformed_pr_flag_falls_back_to_url_id() -> None:
    ref = resolve_pull_request_ref(
        ["--pr", "abc", "--pr-url", PR_URL], default_workspace=None, default_repo_slug=None
    )
    assert ref.pr_id == 42


@pytest.mark.unit
def test_resolve_unparseable_url_is_not_fatal_when_flags_complete() -> None:
    ref = resolve_pull_request_ref(
        ["--pr-url", "https://example.com/nothing", "--workspace", "ws", "--repo", "r", "--pr", "1"],
        default_workspace=None,
        default_repo_slug=None,
    )
    assert ref == PullRequestRef("ws", "r", 1)


@pytest.mark.unit
def test_usage_error_lists_invocation_forms_and_auth_variables() -> None:
    with pytest.raises(UsageError) as excinfo:
        resolve_pull_request_ref([], default_workspace=None, default_repo_slug=None)

    message = str(excinfo.value)
    assert "--workspace <workspace> --repo <repo-slug> --pr <id>" in message
    assert "--prUrl <bitbucket_pr_url>" in message
    assert "BITBUCKET_USERNAME" in message
    assert "BITBUCKET_API_TOKEN" in message


@pytest.mark.unit
def test_trailing_flag_without_value_leaves_field_unset() -> None:
    with pytest.raises(UsageError):
        resolve_pull_request_ref(["--pr"], default_workspace="ws", default_repo_slug="repo")
