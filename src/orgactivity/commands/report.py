from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from orgactivity.config import load_config
from orgactivity.errors import OrgActivityError
from orgactivity.pipeline import run_report
from orgactivity.window import resolve_window

console = Console()
logger = logging.getLogger(__name__)


def fail(error: Exception) -> NoReturn:
    """Report a fatal error the way the run's caller expects, then exit 1."""
    logger.error("%s: %s", type(error).__name__, error)
    console.print(f"[red]{escape(str(error))}[/red]")
    if os.environ.get("GITHUB_ACTIONS") == "true":
        # Workflow command: marks the step failed with this message as the reason.
        print(f"::error::{error}")
    raise typer.Exit(code=1)


def report_command(
    organization: str | None = typer.Option(
        None, "--organization", "--org", envvar="INPUT_ORGANIZATION", help="GitHub organization slug"
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        envvar=["INPUT_TOKEN", "GITHUB_TOKEN"],
        help="Bearer token for REST and GraphQL calls",
        show_default=False,
    ),
    output_dir: str | None = typer.Option(
        None, "--output-dir", envvar="INPUT_OUTPUTDIR", help="Directory for the JSON and CSV reports (created if absent)"
    ),
    since: str | None = typer.Option(
        None, "--since", envvar="INPUT_SINCE", help="Start date YYYY-MM-DD; overrides --activity-days"
    ),
    activity_days: str | None = typer.Option(
        None, "--activity-days", envvar="INPUT_ACTIVITY_DAYS", help="Trailing window size in days"
    ),
    max_retries: str | None = typer.Option(
        None, "--max-retries", envvar="INPUT_OCTOKIT_MAX_RETRIES", help="Retries per API request (default 3)"
    ),
    enterprise: str | None = typer.Option(
        None, "--enterprise", envvar="INPUT_ENTERPRISE", help="Enterprise slug whose SAML identities supply emails"
    ),
    directory_token: str | None = typer.Option(
        None,
        "--directory-token",
        envvar=["INPUT_DIRECTORY_TOKEN", "ORG_TOKEN"],
        help="Token for the SAML directory query (defaults to --token)",
        show_default=False,
    ),
    org_saml_directory: bool | None = typer.Option(
        None,
        "--org-saml-directory/--no-org-saml-directory",
        help="Use the organization's SAML identities when no enterprise is given",
    ),
    include_inactive: bool | None = typer.Option(
        None, "--include-inactive/--active-only", help="Also report members with no activity (marked isActive=false)"
    ),
    concurrency: int | None = typer.Option(None, min=1, max=64, help="Parallel profile lookups (default 8)"),
    run_timeout: float | None = typer.Option(
        None, "--run-timeout", min=0, help="Overall run timeout in seconds; 0 disables (default 3600)"
    ),
    api_url: str | None = typer.Option(None, "--api-url", envvar="GITHUB_API_URL", help="REST API base URL"),
    config_file: Path | None = typer.Option(None, "--config", help="TOML file with any of the above keys"),
    dry_run: bool = typer.Option(False, help="Print the resolved configuration and window, make no API call"),
) -> None:
    """
    Collect per-member activity for an organization and write the JSON + CSV reports.
    """
    try:
        cfg = load_config(
            config_file,
            organization=organization,
            token=token,
            output_dir=output_dir,
            since=since,
            activity_days=activity_days,
            max_retries=max_retries,
            enterprise=enterprise,
            directory_token=directory_token,
            org_saml_directory=org_saml_directory,
            include_inactive=include_inactive,
            concurrency=concurrency,
            run_timeout_s=run_timeout,
            api_url=api_url,
        )
        if dry_run:
            window = resolve_window(cfg.since, cfg.activity_days)
            console.print({**cfg.masked_dict(), "window_start": window.start.isoformat()})
            return
        paths = run_report(cfg)
    except OrgActivityError as e:
        fail(e)

    console.print(paths.as_outputs())
