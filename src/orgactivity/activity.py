from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from orgactivity.errors import RunTimeoutError, TransportError
from orgactivity.github_client import GitHubClient
from orgactivity.models import COUNTER_FIELDS, ActivityWindow, UserActivityRecord

logger = logging.getLogger(__name__)


def _repo_key(repo_obj: dict[str, Any], organization: str) -> str:
    full_name = repo_obj.get("full_name")
    if full_name:
        return str(full_name)
    name = repo_obj.get("name")
    return f"{organization}/{name}" if name else ""


def _login_of(obj: dict[str, Any], key: str) -> str | None:
    who = obj.get(key)
    if isinstance(who, dict):
        login = who.get("login")
        if isinstance(login, str) and login:
            return login
    return None


def _commit_authors(items: list[dict[str, Any]], window: ActivityWindow) -> Iterable[str]:
    # No window check here: the commits endpoint already filters by `since`.
    for c in items:
        # `author` is null when the commit email is not linked to an account.
        login = _login_of(c, "author")
        if login:
            yield login


def _issue_authors(items: list[dict[str, Any]], window: ActivityWindow) -> Iterable[str]:
    for it in items:
        if "pull_request" in it:
            continue
        login = _login_of(it, "user")
        if login and window.contains(it.get("created_at")):
            yield login


def _comment_authors(items: list[dict[str, Any]], window: ActivityWindow) -> Iterable[str]:
    for it in items:
        login = _login_of(it, "user")
        if login and window.contains(it.get("created_at")):
            yield login


@dataclass
class _Tally:
    login: str
    by_repo: dict[str, Counter[str]] = field(default_factory=lambda: defaultdict(Counter))

    def add(self, repo: str, counter: str, n: int) -> None:
        self.by_repo[repo][counter] += n

    def freeze(self) -> UserActivityRecord:
        totals: Counter[str] = Counter()
        repositories: dict[str, dict[str, int]] = {}
        for repo, counts in self.by_repo.items():
            totals.update(counts)
            repositories[repo] = {name: int(counts.get(name, 0)) for name in COUNTER_FIELDS}
        return UserActivityRecord(
            login=self.login,
            commits=totals["commits"],
            issues=totals["issues"],
            issue_comments=totals["issue_comments"],
            pr_comments=totals["pr_comments"],
            repositories=repositories,
        )


@dataclass
class OrganizationActivity:
    """
    Aggregates per-member activity across every repository of an organization.

    A repository whose listings fail (after the client's retries) contributes
    nothing at all. Member and repository listing failures propagate, and so
    does the run timeout.
    """

    client: GitHubClient
    include_inactive: bool = False
    skipped_repos: list[str] = field(default_factory=list, init=False)

    def _repo_activity(self, repo: str, window: ActivityWindow) -> dict[str, Counter[str]] | None:
        since = window.start_at
        sources: list[tuple[str, Callable[[], list[dict[str, Any]]], Callable[..., Iterable[str]]]] = [
            ("commits", lambda: self.client.list_commits(repo, since), _commit_authors),
            ("issues", lambda: self.client.list_issues(repo, since), _issue_authors),
            ("issue_comments", lambda: self.client.list_issue_comments(repo, since), _comment_authors),
            ("pr_comments", lambda: self.client.list_pr_review_comments(repo, since), _comment_authors),
        ]

        per_counter: dict[str, Counter[str]] = {}
        for counter, fetch, authors in sources:
            try:
                items = fetch()
            except RunTimeoutError:
                raise
            except TransportError as e:
                if counter == "commits" and e.status == 409:
                    # Empty repository: GitHub answers 409 Conflict for its commit list.
                    items = []
                else:
                    logger.warning("Skipping repo=%s: %s listing failed: %s", repo, counter, e)
                    return None
            per_counter[counter] = Counter(a.lower() for a in authors(items, window))
        return per_counter

    def aggregate(self, organization: str, window: ActivityWindow) -> list[UserActivityRecord]:
        members = self.client.list_org_members(organization)
        tallies: dict[str, _Tally] = {}
        for m in members:
            login = m.get("login")
            if isinstance(login, str) and login:
                tallies.setdefault(login.lower(), _Tally(login=login))

        repos = self.client.list_org_repos(organization)
        logger.info(
            "Collecting activity for %d members across %d repositories since %s",
            len(tallies),
            len(repos),
            window.start.isoformat(),
        )

        self.skipped_repos = []
        for r in repos:
            repo = _repo_key(r, organization)
            if not repo:
                continue
            per_counter = self._repo_activity(repo, window)
            if per_counter is None:
                self.skipped_repos.append(repo)
                continue
            for counter, authors in per_counter.items():
                for key, n in authors.items():
                    tally = tallies.get(key)
                    # Outside collaborators and former members are not reported.
                    if tally is not None:
                        tally.add(repo, counter, n)

        if self.skipped_repos:
            logger.warning("%d repositories contributed no data: %s", len(self.skipped_repos), ", ".join(self.skipped_repos))

        records = [t.freeze() for t in tallies.values()]
        if not self.include_inactive:
            records = [r for r in records if r.is_active]
        records.sort(key=lambda r: r.login.casefold())
        return records
