from __future__ import annotations

import datetime as dt
import logging

from orgactivity.activity import OrganizationActivity
from orgactivity.config import ActivityConfig
from orgactivity.emails import EmailResolver
from orgactivity.github_client import GitHubClient
from orgactivity.report import (
    ReportPaths,
    ensure_output_dir,
    publish_output,
    write_csv_report,
    write_json_snapshot,
)
from orgactivity.window import resolve_window

logger = logging.getLogger(__name__)


def run_report(
    cfg: ActivityConfig,
    *,
    client: GitHubClient | None = None,
    today: dt.date | None = None,
) -> ReportPaths:
    """
    One full run: window -> output dir -> aggregate -> JSON -> emails -> CSV.

    The JSON snapshot is written before email resolution so raw data survives
    a failure in the later stages.
    """
    window = resolve_window(cfg.since, cfg.activity_days, today=today)
    output_dir = ensure_output_dir(cfg.output_path)

    owns_client = client is None
    if client is None:
        client = GitHubClient.from_config(cfg)
    try:
        logger.info("Attempting to generate organization user activity data, this could take some time...")
        records = OrganizationActivity(client, include_inactive=cfg.include_inactive).aggregate(
            cfg.organization, window
        )

        json_path = write_json_snapshot(output_dir, records)
        publish_output("report_json", str(json_path))

        logger.info("User activity data captured, resolving emails for %d users...", len(records))
        resolver = EmailResolver(
            client,
            organization=cfg.organization,
            enterprise=cfg.enterprise,
            org_saml_directory=cfg.org_saml_directory,
            directory_token=cfg.directory_token,
            concurrency=cfg.concurrency,
        )
        enriched = resolver.resolve_emails(records)

        csv_path = write_csv_report(output_dir, enriched)
        publish_output("report_csv", str(csv_path))
    finally:
        if owns_client:
            client.close()

    return ReportPaths(json_path=json_path, csv_path=csv_path)
