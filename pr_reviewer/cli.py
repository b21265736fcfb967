"""Typer CLI for the pull request reviewer."""

from __future__ import annotations

import traceback
from typing import Annotated

import typer

from pr_reviewer.config import load_config
from pr_reviewer.inputs import resolve_pull_request_ref
from pr_reviewer.logger import configure_logger, get_logger
from pr_reviewer.pipeline import PipelineStage, review_pull_request
from pr_reviewer.schema import PublishMode

app = typer.Typer(
    help="Review a Bitbucket pull request with an OpenAI-compatible model.",
    add_completion=False,
)

PASS_THROUGH_CONTEXT = {"allow_extra_args": True, "ignore_unknown_options": True}


def _report_failure(error: BaseException) -> None:
    """Write the short message and the full traceback to stderr."""
    typer.echo(f"[ERROR] {error}", err=True)
    typer.echo("".join(traceback.format_exception(error)).rstrip(), err=True)


@app.command(context_settings=PASS_THROUGH_CONTEXT)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        str | None,
        typer.Option("--config", help="Path to the JSON config file.", envvar="PR_REVIEWER_CONFIG"),
    ] = None,
    dry_run: Annotated[
        bool | None,
        typer.Option("--dry-run/--no-dry-run", help="Print the review instead of posting it."),
    ] = None,
    publish_mode: Annotated[
        PublishMode | None,
        typer.Option("--publish-mode", help="Publish a comment or start a pending review."),
    ] = None,
    test_parse: Annotated[
        bool,
        typer.Option("--test-parse", help="Only resolve the pull request reference, then exit."),
    ] = False,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Console log level (default INFO).")
    ] = None,
) -> None:
    """Fetch a pull request, review its diff, and publish the review.

    Remaining arguments are --workspace/--repo/--pr, --prUrl/--pr-url, or a
    single pull request URL.
    """
    configure_logger(level=log_level)
    logger = get_logger()
    args = list(ctx.args)

    try:
        config = load_config(
            config_path,
            cli_overrides={"tool.dry_run": dry_run, "tool.publish_mode": publish_mode},
        )
        ref = resolve_pull_request_ref(
            args,
            default_workspace=config.bitbucket.workspace,
            default_repo_slug=config.bitbucket.repo_slug,
        )
        logger.debug("Stage {} complete: {}", PipelineStage.RESOLVE_INPUT.value, ref)

        if test_parse:
            typer.echo(f"workspace={ref.workspace} repo={ref.repo_slug} pr={ref.pr_id}")
            return

        review_pull_request(config, ref)
    except Exception as error:
        _report_failure(error)
        raise typer.Exit(code=1) from error

    logger.info("Stage {} reached", PipelineStage.SUCCESS.value)
    typer.echo("[SUCCESS] Done.")


def run() -> None:
    """Console-script entry point."""
    app()


if __name__ == "__main__":
    run()
