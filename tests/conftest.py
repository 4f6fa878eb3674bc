from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from orgactivity.github_client import GitHubClient

Handler = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """
    In-memory GitHub API for httpx.MockTransport.

    A route value may be a list of pages (served with Link: rel="next"),
    a dict (served as one JSON body) or a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, value: Any, *, method: str = "GET") -> None:
        self.routes[(method, path)] = value

    def paths(self, method: str = "GET") -> list[str]:
        return [r.url.path for r in self.requests if r.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        if isinstance(route, dict):
            return httpx.Response(200, json=route)
        return _serve_pages(request, route)


def _serve_pages(request: httpx.Request, pages: list[list[dict[str, Any]]]) -> httpx.Response:
    page = int(request.url.params.get("page", "1"))
    body = pages[page - 1] if page <= len(pages) else []
    headers = {}
    if page < len(pages):
        next_url = request.url.copy_set_param("page", str(page + 1))
        headers["Link"] = f'<{next_url}>; rel="next", <{request.url.copy_set_param("page", "1")}>; rel="first"'
    return httpx.Response(200, json=body, headers=headers)


def user(login: str) -> dict[str, Any]:
    return {"login": login, "id": sum(map(ord, login))}


def commit(login: str | None) -> dict[str, Any]:
    return {"sha": f"sha-{login}", "author": user(login) if login else None}


def issue(login: str, created_at: str = "2024-02-01T10:00:00Z", *, pull_request: bool = False) -> dict[str, Any]:
    obj: dict[str, Any] = {"user": user(login), "created_at": created_at}
    if pull_request:
        obj["pull_request"] = {"url": "https://api.github.com/repos/acme/x/pulls/1"}
    return obj


def comment(login: str, created_at: str = "2024-02-01T10:00:00Z") -> dict[str, Any]:
    return {"user": user(login), "created_at": created_at, "body": "lgtm"}


def status(code: int, body: dict[str, Any] | None = None, headers: dict[str, str] | None = None) -> Handler:
    return lambda request: httpx.Response(code, json=body or {"message": "error"}, headers=headers)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_client(fake_github: FakeGitHub) -> Iterator[Callable[..., GitHubClient]]:
    created: list[GitHubClient] = []

    def _make(**kwargs: Any) -> GitHubClient:
        kwargs.setdefault("max_retries", 2)
        kwargs.setdefault("backoff_s", 0)
        c = GitHubClient(token="t0k3n-secret", transport=httpx.MockTransport(fake_github.handler), **kwargs)
        created.append(c)
        return c

    yield _make
    for c in created:
        c.close()


@pytest.fixture
def client(make_client: Callable[..., GitHubClient]) -> GitHubClient:
    return make_client()


@pytest.fixture(autouse=True)
def _isolated_actions_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_OUTPUT", "GITHUB_ACTIONS", "GITHUB_TOKEN", "ORG_TOKEN", "GITHUB_API_URL"):
        monkeypatch.delenv(name, raising=False)
