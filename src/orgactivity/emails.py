from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from orgactivity.config import DEFAULT_CONCURRENCY
from orgactivity.errors import RunTimeoutError, TransportError
from orgactivity.github_client import GitHubClient
from orgactivity.models import DirectoryEntry, EmailResolution, UserActivityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Directory:
    """Read-only SAML identity lookup keyed by case-folded login."""

    entries: dict[str, DirectoryEntry] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: Iterable[DirectoryEntry]) -> "Directory":
        table: dict[str, DirectoryEntry] = {}
        for e in entries:
            table.setdefault(e.login.casefold(), e)
        return cls(entries=table)

    def __len__(self) -> int:
        return len(self.entries)

    def email_for(self, login: str) -> str | None:
        entry = self.entries.get(login.casefold())
        return entry.sso_email if entry is not None else None


def _directory_entry(edge: dict[str, Any]) -> DirectoryEntry | None:
    node = edge.get("node") if isinstance(edge.get("node"), dict) else edge
    user = node.get("user") or {}
    identity = node.get("samlIdentity") or {}
    login = user.get("login") if isinstance(user, dict) else None
    name_id = identity.get("nameId") if isinstance(identity, dict) else None
    # Identities not yet linked to an account have user == null.
    if not login or not name_id:
        return None
    return DirectoryEntry(login=str(login), sso_email=str(name_id))


@dataclass
class EmailResolver:
    """
    Resolves one email per user: public profile email first, then the SAML
    directory's nameId, then "".
    """

    client: GitHubClient
    organization: str | None = None
    enterprise: str | None = None
    org_saml_directory: bool = False
    directory_token: str | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    _directory: Directory | None = field(default=None, init=False, repr=False)

    def load_directory(self) -> Directory:
        if self._directory is not None:
            return self._directory

        if self.enterprise:
            source = f"enterprise {self.enterprise}"
            edges = self.client.enterprise_external_identities(self.enterprise, token=self.directory_token)
        elif self.org_saml_directory and self.organization:
            source = f"organization {self.organization}"
            edges = self.client.org_external_identities(self.organization, token=self.directory_token)
        else:
            logger.info("No SAML directory configured; using profile emails only")
            self._directory = Directory()
            return self._directory

        entries = [e for e in (_directory_entry(edge) for edge in edges) if e is not None]
        self._directory = Directory.from_entries(entries)
        logger.info("Loaded %d SAML identities from %s", len(self._directory), source)
        return self._directory

    def _profile_email(self, login: str) -> str | None:
        email = self.client.get_user(login).get("email")
        return str(email) if email else None

    def resolve_one(self, login: str, directory: Directory) -> EmailResolution:
        directory_email = directory.email_for(login)
        try:
            profile_email = self._profile_email(login)
        except RunTimeoutError:
            raise
        except TransportError as e:
            return EmailResolution(login=login, directory_email=directory_email, error=str(e))
        return EmailResolution(login=login, profile_email=profile_email, directory_email=directory_email)

    def resolve_emails(self, records: Sequence[UserActivityRecord]) -> list[UserActivityRecord]:
        directory = self.load_directory()
        if not records:
            return []

        with ThreadPoolExecutor(max_workers=max(1, int(self.concurrency))) as ex:
            resolutions = list(ex.map(lambda r: self.resolve_one(r.login, directory), records))

        out: list[UserActivityRecord] = []
        failed = 0
        for record, res in zip(records, resolutions):
            if not res.ok:
                failed += 1
                logger.warning("Error fetching user info for %s: %s", res.login, res.error)
            logger.info(
                "Email for %s: profile=%r directory=%r chosen=%r",
                res.login,
                res.profile_email,
                res.directory_email,
                res.email,
            )
            out.append(record.with_email(res.email) if res.email else record)

        if failed:
            logger.warning("Profile lookup failed for %d of %d users", failed, len(records))
        return out
