from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from orgactivity.commands.report import fail, report_command
from orgactivity.errors import InvalidWindowError
from orgactivity.window import resolve_window

app = typer.Typer(
    name="org-activity",
    help="GitHub organization user activity report (JSON + CSV).",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

app.command("report")(report_command)


@app.callback()
def _root_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug-level logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO; keep that for --verbose only.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command("window")
def window(
    since: str | None = typer.Option(None, "--since", envvar="INPUT_SINCE", help="Start date YYYY-MM-DD"),
    activity_days: str | None = typer.Option(
        None, "--activity-days", envvar="INPUT_ACTIVITY_DAYS", help="Trailing window size in days"
    ),
) -> None:
    """Print the first day that activity is counted from."""
    try:
        w = resolve_window(since, activity_days)
    except InvalidWindowError as e:
        fail(e)
    console.print({"window_start": w.start.isoformat(), "since": w.since_iso()})


def main() -> None:
    app()


if __name__ == "__main__":
    main()
