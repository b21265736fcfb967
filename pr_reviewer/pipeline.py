"""Review orchestration: one pull request from reference to published comment."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from pr_reviewer.bitbucket_client import (
    PullRequestSnapshot,
    build_bitbucket_client,
    fetch_pull_request_snapshot,
    require_bitbucket_credentials,
)
from pr_reviewer.classifier import is_no_issues_review
from pr_reviewer.config import RunConfig
from pr_reviewer.context import (
    SYSTEM_CONTEXT_HEADER,
    USER_CONTEXT_HEADER,
    ContextFolderOptions,
    aggregate_folder_context,
)
from pr_reviewer.git_sync import (
    CheckoutMode,
    GitRunner,
    compute_diff,
    prepare_temp_root,
    run_git,
    synchronize_repository,
)
from pr_reviewer.inputs import PullRequestRef
from pr_reviewer.logger import get_logger, log_timing
from pr_reviewer.model_client import build_model_client, request_review
from pr_reviewer.prompt import assemble_messages, truncate
from pr_reviewer.publish import PublishAction, dispatch_review
from pr_reviewer.schema import ReviewResult


class PipelineStage(StrEnum):
    """Ordered stages of one review run."""

    RESOLVE_INPUT = "resolve_input"
    FETCH_PR = "fetch_pr"
    SYNCHRONIZE = "synchronize"
    COMPUTE_DIFF = "compute_diff"
    ASSEMBLE_PROMPT = "assemble_prompt"
    CALL_MODEL = "call_model"
    CLASSIFY = "classify"
    DISPATCH = "dispatch"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class ReviewOutcome:
    """Everything one successful run produced."""

    ref: PullRequestRef
    snapshot: PullRequestSnapshot
    checkout_mode: CheckoutMode
    diff_truncated: bool
    result: ReviewResult
    action: PublishAction


def repository_dir(config: RunConfig, ref: PullRequestRef) -> Path:
    """Return the reusable working-copy path for the workspace/repo pair."""
    temp_root = prepare_temp_root(config.tool.resolved_temp_root)
    return temp_root / f"{ref.workspace}-{ref.repo_slug}"


def _system_context_options(config: RunConfig) -> ContextFolderOptions:
    tool = config.tool
    return ContextFolderOptions(
        folder=tool.system_context_folder,
        recursive=tool.system_context_recursive,
        max_file_chars=tool.system_context_max_file_chars,
        max_total_chars=tool.system_context_max_total_chars,
    )


def _extra_context_options(config: RunConfig) -> ContextFolderOptions:
    tool = config.tool
    return ContextFolderOptions(
        folder=tool.extra_context_folder,
        recursive=tool.extra_context_recursive,
        max_file_chars=tool.extra_context_max_file_chars,
        max_total_chars=tool.extra_context_max_total_chars,
    )


@contextmanager
def _stage(stage: PipelineStage, ref: PullRequestRef) -> Iterator[Any]:
    stage_logger = get_logger(stage=stage.value, pull_request=str(ref))
    with log_timing(stage_logger, stage.value) as timed_logger:
        yield timed_logger


def review_pull_request(
    config: RunConfig,
    ref: PullRequestRef,
    *,
    git_runner: GitRunner = run_git,
) -> ReviewOutcome:
    """Run every stage for one pull request; the first failure propagates."""
    logger = get_logger(pull_request=str(ref))
    logger.info("Starting review: {}/{} PR #{}", ref.workspace, ref.repo_slug, ref.pr_id)
    credentials = require_bitbucket_credentials(config.bitbucket)

    with build_bitbucket_client(config.bitbucket) as bitbucket:
        with _stage(PipelineStage.FETCH_PR, ref):
            snapshot = fetch_pull_request_snapshot(client=bitbucket, ref=ref)
        logger.info("PR found: {} by {}", snapshot.title, snapshot.author_name)

        with _stage(PipelineStage.SYNCHRONIZE, ref):
            repo_dir = repository_dir(config, ref)
            logger.info("Using checkout folder: {}", repo_dir)
            checkout_mode = synchronize_repository(
                clone_url=config.bitbucket.clone_url(ref.workspace, ref.repo_slug),
                repo_dir=repo_dir,
                git_username=credentials.git_username,
                api_token=credentials.api_token,
                branch_name=snapshot.source_branch,
                commit_sha=snapshot.source_commit,
                runner=git_runner,
            )

        with _stage(PipelineStage.COMPUTE_DIFF, ref):
            diff = compute_diff(
                repo_dir,
                snapshot.destination_commit,
                snapshot.source_commit,
                runner=git_runner,
            )
            limited_diff = truncate(diff, config.tool.max_diff_chars)
            diff_truncated = limited_diff != diff
            if diff_truncated:
                logger.warning(
                    "Diff truncated from {} to {} characters", len(diff), config.tool.max_diff_chars
                )

        with _stage(PipelineStage.ASSEMBLE_PROMPT, ref):
            messages = assemble_messages(
                snapshot,
                limited_diff,
                system_context=aggregate_folder_context(
                    _system_context_options(config), header=SYSTEM_CONTEXT_HEADER
                ),
                extra_context=aggregate_folder_context(
                    _extra_context_options(config), header=USER_CONTEXT_HEADER
                ),
            )

        with _stage(PipelineStage.CALL_MODEL, ref):
            logger.info("Asking the model for a code review...")
            with build_model_client(config.model) as model_client:
                review_text = request_review(
                    client=model_client, settings=config.model, messages=messages
                )

        with _stage(PipelineStage.CLASSIFY, ref):
            result = ReviewResult(text=review_text, no_issues=is_no_issues_review(review_text))

        with _stage(PipelineStage.DISPATCH, ref):
            action = dispatch_review(
                result=result,
                ref=ref,
                mode=config.tool.publish_mode,
                dry_run=config.tool.dry_run,
                client=bitbucket,
            )

    logger.info("Review finished: {}", action.value)
    return ReviewOutcome(
        ref=ref,
        snapshot=snapshot,
        checkout_mode=checkout_mode,
        diff_truncated=diff_truncated,
        result=result,
        action=action,
    )
