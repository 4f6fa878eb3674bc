from __future__ import annotations

import datetime as dt
import logging
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from orgactivity.config import DEFAULT_API_URL, ActivityConfig
from orgactivity.errors import RunTimeoutError, TransportError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

_ENTERPRISE_IDENTITIES_QUERY = """
query($slug: String!, $first: Int!, $after: String) {
  enterprise(slug: $slug) {
    ownerInfo {
      samlIdentityProvider {
        externalIdentities(first: $first, after: $after) {
          pageInfo { hasNextPage endCursor }
          edges { node { samlIdentity { nameId } user { login } } }
        }
      }
    }
  }
}
"""

_ORG_IDENTITIES_QUERY = """
query($org: String!, $first: Int!, $after: String) {
  organization(login: $org) {
    samlIdentityProvider {
      externalIdentities(first: $first, after: $after) {
        pageInfo { hasNextPage endCursor }
        edges { node { samlIdentity { nameId } user { login } } }
      }
    }
  }
}
"""


def _since_param(moment: dt.datetime) -> str:
    """GitHub `since` query value, whole seconds in UTC (naive means UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt.timezone.utc)
    return moment.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        r = exc.response
        if r.status_code >= 500 or r.status_code == 429:
            return True
        if r.status_code == 403:
            # GitHub reports both primary and secondary rate limits as 403.
            return r.headers.get("x-ratelimit-remaining") == "0" or "rate limit" in r.text.lower()
        return False
    return isinstance(exc, httpx.TransportError)


@dataclass
class GitHubClient:
    token: str
    base_url: str = DEFAULT_API_URL
    max_retries: int = 3
    timeout_s: float = 30.0
    backoff_s: float = 1.0
    run_timeout_s: float = 0.0
    auth_prefix: str = "Bearer"
    transport: httpx.BaseTransport | None = None
    _http: httpx.Client | None = field(default=None, init=False, repr=False)
    _deadline: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.run_timeout_s > 0:
            self._deadline = time.monotonic() + self.run_timeout_s

    @classmethod
    def from_config(cls, cfg: ActivityConfig) -> "GitHubClient":
        return cls(
            token=cfg.token,
            base_url=cfg.api_url,
            max_retries=cfg.max_retries,
            run_timeout_s=cfg.run_timeout_s,
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    @property
    def graphql_url(self) -> str:
        base = self.base_url.rstrip("/")
        # GitHub Enterprise Server serves REST at /api/v3 and GraphQL at /api/graphql.
        if base.endswith("/api/v3"):
            return base[: -len("/v3")] + "/graphql"
        return base + "/graphql"

    def _auth_value(self, token: str) -> str:
        return token if not self.auth_prefix else f"{self.auth_prefix} {token}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self._auth_value(self.token),
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "orgactivity/0.1",
        }

    def _client(self) -> httpx.Client:
        # One pooled client per run; httpx.Client is safe to share across worker threads.
        if self._http is None:
            self._http = httpx.Client(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout_s,
                transport=self.transport,
            )
        return self._http

    def _check_deadline(self, url: str) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise RunTimeoutError(f"Run timeout of {self.run_timeout_s:g}s exceeded before {url}", url=url)

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff_s, max=60),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        token: str | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": self._auth_value(token)} if token else None
        try:
            for attempt in self._retrying():
                with attempt:
                    self._check_deadline(url)
                    r = self._client().request(method, url, params=params, json=json, headers=headers)
                    r.raise_for_status()
                    return r
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(f"{method} {url} failed: HTTP {status}", status=status, url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e
        raise TransportError(f"{method} {url} failed: no attempt was made", url=url)  # pragma: no cover

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params).json()

    def _paged_list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Follow `Link: rel="next"` until the API reports no further page."""
        next_params: dict[str, Any] | None = {**(params or {}), "per_page": PAGE_SIZE}
        url: str | None = path
        out: list[dict[str, Any]] = []

        while url is not None:
            r = self._request("GET", url, params=next_params)
            items = r.json()
            if not isinstance(items, list):
                raise TransportError(f"Unexpected paging response from {url}: {type(items).__name__}", url=url)
            out.extend(items)

            nxt = r.links.get("next")
            url = nxt.get("url") if nxt else None
            # The next link already carries every query parameter.
            next_params = None

        return out

    def graphql(self, query: str, variables: dict[str, Any] | None = None, *, token: str | None = None) -> dict[str, Any]:
        r = self._request("POST", self.graphql_url, json={"query": query, "variables": variables or {}}, token=token)
        body = r.json()
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise TransportError(f"GraphQL error: {messages}", url=self.graphql_url)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise TransportError("GraphQL response carried no data", url=self.graphql_url)
        return data

    def paginate_graphql(
        self,
        query: str,
        variables: dict[str, Any],
        path: Sequence[str],
        *,
        token: str | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Yield every edge/node of the connection found at `path`.

        A null somewhere along `path` (e.g. no identity provider configured)
        ends the iteration without error.
        """
        cursor: str | None = None
        while True:
            data = self.graphql(query, {**variables, "first": PAGE_SIZE, "after": cursor}, token=token)
            node: Any = data
            for key in path:
                node = node.get(key) if isinstance(node, dict) else None
                if node is None:
                    logger.debug("GraphQL path %s is null at %r", ".".join(path), key)
                    return
            yield from node.get("edges") or node.get("nodes") or []

            page_info = node.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return
            cursor = page_info.get("endCursor")
            if not cursor:
                raise TransportError("GraphQL pageInfo reported a next page without endCursor", url=self.graphql_url)

    def list_org_members(self, org: str) -> list[dict[str, Any]]:
        return self._paged_list(f"/orgs/{quote(org, safe='')}/members")

    def list_org_repos(self, org: str) -> list[dict[str, Any]]:
        return self._paged_list(f"/orgs/{quote(org, safe='')}/repos", params={"type": "all"})

    def list_commits(self, repo: str, since: dt.datetime) -> list[dict[str, Any]]:
        return self._paged_list(f"/repos/{quote(repo, safe='/')}/commits", params={"since": _since_param(since)})

    def list_issues(self, repo: str, since: dt.datetime) -> list[dict[str, Any]]:
        # `since` filters on update time; callers still check created_at.
        return self._paged_list(
            f"/repos/{quote(repo, safe='/')}/issues",
            params={"state": "all", "since": _since_param(since)},
        )

    def list_issue_comments(self, repo: str, since: dt.datetime) -> list[dict[str, Any]]:
        return self._paged_list(f"/repos/{quote(repo, safe='/')}/issues/comments", params={"since": _since_param(since)})

    def list_pr_review_comments(self, repo: str, since: dt.datetime) -> list[dict[str, Any]]:
        return self._paged_list(f"/repos/{quote(repo, safe='/')}/pulls/comments", params={"since": _since_param(since)})

    def get_user(self, login: str) -> dict[str, Any]:
        resp = self._get_json(f"/users/{quote(login, safe='')}")
        return resp if isinstance(resp, dict) else {}

    def enterprise_external_identities(self, enterprise: str, *, token: str | None = None) -> Iterator[dict[str, Any]]:
        return self.paginate_graphql(
            _ENTERPRISE_IDENTITIES_QUERY,
            {"slug": enterprise},
            ["enterprise", "ownerInfo", "samlIdentityProvider", "externalIdentities"],
            token=token,
        )

    def org_external_identities(self, org: str, *, token: str | None = None) -> Iterator[dict[str, Any]]:
        return self.paginate_graphql(
            _ORG_IDENTITIES_QUERY,
            {"org": org},
            ["organization", "samlIdentityProvider", "externalIdentities"],
            token=token,
        )
