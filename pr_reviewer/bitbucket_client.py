"""Bitbucket Cloud REST wrapper and credential helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from pr_reviewer.config import BitbucketSettings, ConfigError
from pr_reviewer.inputs import PullRequestRef

USER_AGENT = "pr-reviewer/1.0"
ERROR_BODY_LIMIT = 2000


class BitbucketAuthError(ConfigError):
    """Raised when required Bitbucket credentials are missing."""


class BitbucketApiError(RuntimeError):
    """Raised when a Bitbucket API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


@dataclass(frozen=True, slots=True)
class BitbucketCredentials:
    """Account identifier and API token used for API and git access."""

    username: str
    api_token: str

    @property
    def git_username(self) -> str:
        """Return the username form accepted by git over HTTPS."""
        return extract_git_username(self.username)


@dataclass(frozen=True, slots=True)
class PullRequestSnapshot:
    """Fields of the Bitbucket pull request consumed by the review pipeline."""

    title: str | None = None
    description: str | None = None
    author_name: str | None = None
    source_commit: str | None = None
    destination_commit: str | None = None
    source_branch: str | None = None


def extract_git_username(username: str) -> str:
    """Return the part before the first '@' when the account id is an email."""
    local_part, separator, _domain = username.partition("@")
    if separator and local_part:
        return local_part
    return username


def require_bitbucket_credentials(settings: BitbucketSettings) -> BitbucketCredentials:
    """Ensure username and API token are configured and return them."""
    if not settings.api_token or not settings.api_token.strip():
        raise BitbucketAuthError(
            "BITBUCKET_API_TOKEN is required. Set it in pr-reviewer.json or as an environment variable."
        )
    if not settings.username or not settings.username.strip():
        raise BitbucketAuthError(
            "BITBUCKET_USERNAME (your Bitbucket account email or username) is required "
            "for API token basic auth."
        )
    return BitbucketCredentials(username=settings.username, api_token=settings.api_token)


def truncate_body(body: str, limit: int = ERROR_BODY_LIMIT) -> str:
    """Shorten a response body for error messages."""
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


def _optional_str(payload: Any, *path: str) -> str | None:
    """Walk nested objects and return a string leaf, or None when absent."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current if isinstance(current, str) else None


def parse_pull_request_snapshot(payload: Any) -> PullRequestSnapshot:
    """Project a Bitbucket pull request JSON object onto the snapshot fields."""
    return PullRequestSnapshot(
        title=_optional_str(payload, "title"),
        description=_optional_str(payload, "description"),
        author_name=_optional_str(payload, "author", "display_name"),
        source_commit=_optional_str(payload, "source", "commit", "hash"),
        destination_commit=_optional_str(payload, "destination", "commit", "hash"),
        source_branch=_optional_str(payload, "source", "branch", "name"),
    )


def _pull_request_endpoint(ref: PullRequestRef) -> str:
    workspace = quote(ref.workspace, safe="")
    repo_slug = quote(ref.repo_slug, safe="")
    return f"/repositories/{workspace}/{repo_slug}/pullrequests/{ref.pr_id}"


def _raise_http_error(response: httpx.Response, endpoint: str) -> None:
    """Raise a typed error for a non-success Bitbucket API response."""
    message = (
        f"Bitbucket request failed. Status: {response.status_code} {response.reason_phrase}. "
        f"Body: {truncate_body(response.text)}"
    )
    raise BitbucketApiError(message, status_code=response.status_code, endpoint=endpoint)


def comments_endpoint(ref: PullRequestRef) -> str:
    """Return the API path for the pull request's comments."""
    return f"{_pull_request_endpoint(ref)}/comments"


def fetch_pull_request_snapshot(*, client: httpx.Client, ref: PullRequestRef) -> PullRequestSnapshot:
    """Fetch pull request metadata from Bitbucket."""
    endpoint = _pull_request_endpoint(ref)
    response = client.get(endpoint)
    if response.status_code >= 400:
        _raise_http_error(response, endpoint)
    try:
        payload = response.json()
    except ValueError as error:
        raise BitbucketApiError(
            f"Bitbucket returned a non-JSON pull request body: {truncate_body(response.text)}",
            status_code=response.status_code,
            endpoint=endpoint,
        ) from error
    if not isinstance(payload, dict):
        raise BitbucketApiError(
            "Expected JSON object for pull request.",
            status_code=response.status_code,
            endpoint=endpoint,
        )
    return parse_pull_request_snapshot(payload)


def post_pull_request_comment(
    *,
    client: httpx.Client,
    ref: PullRequestRef,
    content: str,
    pending: bool = False,
) -> None:
    """Post a comment on the pull request, optionally as a pending draft."""
    endpoint = comments_endpoint(ref)
    payload: dict[str, Any] = {"content": {"raw": content}}
    if pending:
        payload["pending"] = True
    response = client.post(endpoint, json=payload)
    if response.status_code >= 400:
        _raise_http_error(response, endpoint)


def build_bitbucket_client(
    settings: BitbucketSettings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build an authenticated Bitbucket HTTP client."""
    credentials = require_bitbucket_credentials(settings)
    headers = {
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    return httpx.Client(
        base_url=settings.normalized_base_url,
        auth=(credentials.username, credentials.api_token),
        headers=headers,
        timeout=settings.timeout_seconds or None,
        transport=transport,
    )
