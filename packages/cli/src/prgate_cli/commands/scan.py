"""scan command: scan one commit and review the pull requests it is part of."""

from __future__ import annotations

import logging

import click
from github import GithubException
from rich.console import Console

from prgate_core.errors import EXIT_GITHUB_PROBLEM, ConfigurationError, UpstreamUnavailable
from prgate_core.gh.pull_request import get_authenticated_login, get_client, get_repo
from prgate_core.pipeline import RunSummary, run_pipeline
from prgate_core.reporting import AlertQueue, Counters
from prgate_notify.models import AlertBatch, MetricsBatch

console = Console()
logger = logging.getLogger(__name__)


def _summary_to_batches(
    summary: RunSummary, alerts: AlertQueue, counters: Counters
) -> tuple[AlertBatch, MetricsBatch]:
    """Map what the pipeline reported onto notification payloads.

    The CLI owns this mapping: prgate_core knows nothing about sinks and
    prgate_notify knows nothing about the pipeline.
    """
    return (
        AlertBatch(repo=summary.repo, commit=summary.commit, messages=alerts.drain()),
        MetricsBatch(repo=summary.repo, counters=counters.snapshot()),
    )


def _flush(sinks: dict, alerts: AlertBatch, metrics: MetricsBatch) -> None:
    sinks["alerts"].send(alerts)
    sinks["metrics"].send(metrics)


@click.command("scan")
@click.option("--repo", default=None, help="GitHub repository in owner/name format.")
@click.option("--commit", default=None, help="Commit SHA to scan.")
@click.option(
    "--local-git-repo",
    "local_git_repo",
    default=None,
    help="Path to a local checkout of the repository, at the commit being scanned.",
)
@click.option("--token", default=None, help="GitHub token. Defaults to GITHUB_TOKEN, then `gh auth token`.")
@click.option("--branches-ignore", default=None, help="Comma-separated base branches whose PRs are ignored.")
@click.option("--skip-folders", default=None, help="Comma-separated folders that are not scanned.")
@click.option("--lint/--no-lint", default=None, help="Run the syntax checker.")
@click.option("--phpcs/--no-phpcs", default=None, help="Run PHPCS.")
@click.option("--svg-checks/--no-svg-checks", "svg_checks", default=None, help="Check SVG files.")
@click.option("--phpcs-path", default=None, help="Path to the phpcs executable.")
@click.option("--phpcs-standard", default=None, help="PHPCS standard to use.")
@click.option("--phpcs-severity", type=int, default=None, help="Minimum PHPCS severity (1-10).")
@click.option("--review-comments-max", type=int, default=None, help="Comments per review submission (5-100).")
@click.option(
    "--review-comments-total-max",
    type=int,
    default=None,
    help="Comments per pull request across all runs (0-500, 0 = unlimited).",
)
@click.option(
    "--review-comments-ignore",
    default=None,
    help="Issue messages never posted, separated by |||. Matched case-insensitively.",
)
@click.option("--informational-url", default=None, help="URL linked from every posted review.")
@click.option(
    "--dismiss-stale-reviews/--no-dismiss-stale-reviews",
    "dismiss_stale_reviews",
    default=None,
    help="Dismiss earlier change requests once their comments are obsolete.",
)
@click.option("--autoapprove/--no-autoapprove", default=None, help="Auto-approve PRs made of trusted files only.")
@click.option("--autoapprove-filetypes", default=None, help="Comma-separated file extensions that are trusted.")
@click.option("--autoapprove-label", default=None, help="Label added to auto-approved pull requests.")
@click.option(
    "--hashes-api/--no-hashes-api",
    "hashes_api",
    default=None,
    help="Auto-approve files whose content the hashes-to-hashes API knows as safe.",
)
@click.option("--hashes-api-url", default=None, help="Base URL of the hashes-to-hashes API.")
@click.option(
    "--dry-run/--no-dry-run",
    "dry_run",
    default=None,
    help="Do everything except writing to GitHub; print planned actions instead.",
)
@click.pass_context
def scan_cmd(ctx, token: str | None, **overrides):
    """Scan a commit and review every open pull request it belongs to.

    \b
    Exit codes:
      0    no errors found
      249  nothing to do (commit not part of any open pull request)
      250  errors found
      251  a scanner could not run
      252  GitHub problem
      253  usage or configuration error

    \b
    Environment variables:
      GITHUB_TOKEN              GitHub token (or use --token / gh CLI)
      PRGATE_HASHES_API_TOKEN   Token for the hashes-to-hashes API
      PRGATE_IRC_API_TOKEN      Token for the IRC relay API
    """
    from prgate_cli.auth import resolve_github_token
    from prgate_cli.cli import build_sinks
    from prgate_core.config import build_settings, load_config

    config_path = (ctx.obj or {}).get("config_path", ".prgate.yml")
    try:
        config = load_config(config_path, cli_overrides=overrides)
        config["github_token"] = resolve_github_token(token) or config.get("github_token")
        settings = build_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        ctx.exit(e.exit_code)
    logger.debug("Effective settings: %s", settings.to_loggable())

    sinks = build_sinks(settings.notify)
    for sink in sinks.values():
        ctx.call_on_close(sink.close)

    client = get_client(settings.repo.token.get_secret_value())
    try:
        login = get_authenticated_login(client)
        repo = get_repo(client, settings.repo.full_name)
    except UpstreamUnavailable as e:
        console.print(f"[red]{e}[/red]")
        ctx.exit(e.exit_code)
    except GithubException as e:
        console.print(f"[red]Could not access repository {settings.repo.full_name}: {e}[/red]")
        ctx.exit(EXIT_GITHUB_PROBLEM)
    logger.info("Authenticated to GitHub as %s", login)

    alerts = AlertQueue()
    counters = Counters()
    try:
        summary = run_pipeline(settings, repo, login, alerts, counters, client=client)
    except GithubException as e:
        console.print(f"[red]GitHub request failed: {e}[/red]")
        alerts.add(f"Run aborted by a GitHub error: {e}")
        summary = RunSummary(repo=settings.repo.full_name, commit=settings.repo.commit, exit_code=EXIT_GITHUB_PROBLEM)

    _flush(sinks, *_summary_to_batches(summary, alerts, counters))
    ctx.exit(summary.exit_code)
