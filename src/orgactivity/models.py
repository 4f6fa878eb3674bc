from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from typing import Any

COUNTER_FIELDS: tuple[str, ...] = ("commits", "issues", "issue_comments", "pr_comments")

# CSV column -> record attribute; order is the report's column order.
REPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("login", "login"),
    ("email", "email"),
    ("isActive", "is_active"),
    ("commits", "commits"),
    ("issues", "issues"),
    ("issueComments", "issue_comments"),
    ("prComments", "pr_comments"),
)


def _parse_api_timestamp(value: str) -> dt.datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass(frozen=True)
class ActivityWindow:
    """Inclusive lower bound for every activity query of a run."""

    start: dt.date

    @property
    def start_at(self) -> dt.datetime:
        return dt.datetime.combine(self.start, dt.time.min, tzinfo=dt.timezone.utc)

    def since_iso(self) -> str:
        return self.start_at.isoformat().replace("+00:00", "Z")

    def contains(self, timestamp: str | None) -> bool:
        if not timestamp:
            return False
        try:
            return _parse_api_timestamp(timestamp) >= self.start_at
        except ValueError:
            return False


@dataclass(frozen=True)
class UserActivityRecord:
    login: str
    commits: int = 0
    issues: int = 0
    issue_comments: int = 0
    pr_comments: int = 0
    repositories: dict[str, dict[str, int]] = field(default_factory=dict)
    email: str = ""

    @property
    def total(self) -> int:
        return self.commits + self.issues + self.issue_comments + self.pr_comments

    @property
    def is_active(self) -> bool:
        return self.total > 0

    @property
    def json_payload(self) -> dict[str, Any]:
        return {
            "login": self.login,
            "isActive": self.is_active,
            "commits": self.commits,
            "issues": self.issues,
            "issueComments": self.issue_comments,
            "prComments": self.pr_comments,
            "repositories": {
                repo: {
                    "commits": counts.get("commits", 0),
                    "issues": counts.get("issues", 0),
                    "issueComments": counts.get("issue_comments", 0),
                    "prComments": counts.get("pr_comments", 0),
                }
                for repo, counts in sorted(self.repositories.items())
            },
        }

    def with_email(self, email: str) -> "UserActivityRecord":
        return replace(self, email=email)

    def to_row(self) -> dict[str, Any]:
        return {column: getattr(self, attr) for column, attr in REPORT_COLUMNS}


@dataclass(frozen=True)
class DirectoryEntry:
    login: str
    sso_email: str


@dataclass(frozen=True)
class EmailResolution:
    """
    Outcome of resolving one user's email.

    `error` is set when the profile lookup failed; the directory value (if any)
    still counts.
    """

    login: str
    profile_email: str | None = None
    directory_email: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def email(self) -> str:
        for candidate in (self.profile_email, self.directory_email):
            if candidate and candidate.strip():
                return candidate.strip()
        return ""
