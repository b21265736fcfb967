"""Publishing of the classified review to the pull request."""

from __future__ import annotations

from enum import StrEnum

import httpx
import typer

from pr_reviewer.bitbucket_client import (
    BitbucketApiError,
    comments_endpoint,
    post_pull_request_comment,
)
from pr_reviewer.inputs import PullRequestRef
from pr_reviewer.logger import get_logger
from pr_reviewer.schema import PublishMode, ReviewResult

logger = get_logger()

START_REVIEW_HINT = (
    "Hint: pending comments may be unsupported for this account or repository; "
    "set TOOL_PUBLISH_MODE=Publish to post a regular comment instead."
)


class PublishAction(StrEnum):
    """Externally visible outcome of the dispatch step."""

    SKIPPED_NO_ISSUES = "skipped_no_issues"
    DRY_RUN = "dry_run"
    PUBLISHED = "published"
    PENDING = "pending"


def render_dry_run(result: ReviewResult) -> str:
    """Return the console text shown instead of posting."""
    return f"[DRY-RUN] Would post the following comment:\n{result.text}"


def dispatch_review(
    *,
    result: ReviewResult,
    ref: PullRequestRef,
    mode: PublishMode,
    dry_run: bool,
    client: httpx.Client | None,
) -> PublishAction:
    """Perform at most one publishing action for the review."""
    if result.no_issues:
        logger.info("Review reports no actionable issues; nothing will be posted")
        return PublishAction.SKIPPED_NO_ISSUES

    if dry_run:
        typer.echo(render_dry_run(result))
        return PublishAction.DRY_RUN

    if client is None:
        raise ValueError("A Bitbucket client is required to publish a review.")

    if mode is PublishMode.START_REVIEW:
        try:
            post_pull_request_comment(client=client, ref=ref, content=result.text, pending=True)
        except BitbucketApiError as error:
            raise BitbucketApiError(
                f"{error} {START_REVIEW_HINT}",
                status_code=error.status_code,
                endpoint=error.endpoint,
            ) from error
        except httpx.HTTPError as error:
            # No HTTP status exists for transport failures.
            raise BitbucketApiError(
                f"{error} {START_REVIEW_HINT}",
                status_code=0,
                endpoint=comments_endpoint(ref),
            ) from error
        logger.info("Pending review comment created on {}", ref)
        return PublishAction.PENDING

    post_pull_request_comment(client=client, ref=ref, content=result.text)
    logger.info("Review comment posted on {}", ref)
    return PublishAction.PUBLISHED
