"""Shared fixtures: a fake GitHub REST API served through httpx.MockTransport."""

import asyncio
import base64
import re
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from devstory.config.settings import Settings
from devstory.main import create_app

OWNER = "octocat"
REPO = "Hello-World"
REPO_URL = f"https://github.com/{OWNER}/{REPO}"


def make_file(filename: str, status: str = "modified", additions: int = 1, deletions: int = 0, **extra) -> dict:
    data = {
        "filename": filename,
        "status": status,
        "additions": additions,
        "deletions": deletions,
        "changes": additions + deletions,
        "patch": f"@@ -1 +1 @@\n-old\n+new {filename}",
    }
    data.update(extra)
    return data


def make_commit(
    sha: str,
    date: Optional[str],
    author: Optional[str] = "Alice",
    login: Optional[str] = "alice",
    message: str = "Initial commit\n\nLonger body",
    files: Optional[List[dict]] = None,
    committer_date: Optional[str] = None,
) -> dict:
    """A GitHub single-commit payload."""
    return {
        "sha": sha,
        "commit": {
            "author": {"name": author, "email": "a@example.com", "date": date},
            "committer": {"name": "GitHub", "email": "noreply@github.com", "date": committer_date},
            "message": message,
        },
        "author": {"login": login, "avatar_url": ""} if login else None,
        "files": files if files is not None else [make_file("README.md")],
    }


def sha_for(n: int) -> str:
    return f"{n:040x}"


def sample_commits() -> List[dict]:
    """Three commits in GitHub listing order (newest first)."""
    return [
        make_commit(
            "c" * 40, "2024-01-03T15:00:00Z", author="Bob", login="bob",
            message="Add API route\n\nDetails",
            files=[
                make_file("src/api/users.ts", "added", 40, 0),
                make_file("src/components/Button.tsx", "modified", 10, 5),
            ],
        ),
        make_commit(
            "b" * 40, "2024-01-02T10:30:00Z",
            message="Update readme",
            files=[make_file("README.md", "modified", 3, 1)],
        ),
        make_commit(
            "a" * 40, "2024-01-01T09:00:00Z",
            message="Initial commit",
            files=[
                make_file("README.md", "added", 5, 0),
                make_file("Dockerfile", "added", 8, 0),
                make_file("old.txt", "removed", 0, 2),
            ],
        ),
    ]


class FakeGitHub:
    """
    In-memory stand-in for the GitHub endpoints the app uses.

    `commits` are detail payloads in listing order (newest first).
    """

    def __init__(self, commits: Optional[List[dict]] = None, owner: str = OWNER, repo: str = REPO):
        self.owner = owner
        self.repo = repo
        self.commits = commits if commits is not None else sample_commits()
        self.contents: Dict[Tuple[str, str], dict] = {}
        self.failing_shas: Dict[str, int] = {}
        self.rate_limited = False
        self.detail_delay = 0.0
        self.requests: List[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.default_branch = "main"
        self.tree: List[dict] = []
        self.workflows: Optional[List[dict]] = []

    def add_content(self, path: str, ref: str, text: Optional[str] = None, raw: Optional[bytes] = None, size=None):
        data = raw if raw is not None else (text or "").encode("utf-8")
        self.contents[(path, ref)] = {
            "type": "file",
            "path": path,
            "size": size if size is not None else len(data),
            "encoding": "base64",
            "content": base64.b64encode(data).decode("ascii"),
        }

    def count(self, pattern: str) -> int:
        return sum(1 for request in self.requests if re.search(pattern, request.url.path))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.rate_limited:
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "4102444800"},
            )

        if path == "/rate_limit":
            return httpx.Response(200, json={"resources": {"core": {"limit": 60, "remaining": 59, "reset": 4102444800}}})

        prefix = f"/repos/{self.owner}/{self.repo}"
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        rest = path[len(prefix):]

        if rest == "":
            return httpx.Response(
                200, json={"full_name": f"{self.owner}/{self.repo}", "default_branch": self.default_branch}
            )

        if rest == f"/git/trees/{self.default_branch}":
            return httpx.Response(200, json={"sha": "t" * 40, "tree": self.tree, "truncated": False})

        if rest == "/actions/workflows":
            if self.workflows is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"total_count": len(self.workflows), "workflows": self.workflows})

        if rest == "/commits":
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            chunk = self.commits[(page - 1) * per_page:page * per_page]
            return httpx.Response(200, json=[self._summary(c) for c in chunk])

        match = re.fullmatch(r"/commits/([0-9a-fA-F]+)", rest)
        if match:
            return await self._detail(match.group(1))

        if rest.startswith("/contents/"):
            file_path = rest[len("/contents/"):]
            payload = self.contents.get((file_path, request.url.params.get("ref", "")))
            if payload is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=payload)

        return httpx.Response(404, json={"message": "Not Found"})

    async def _detail(self, sha: str) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.detail_delay:
                await asyncio.sleep(self.detail_delay)
            if sha in self.failing_shas:
                return httpx.Response(self.failing_shas[sha], json={"message": "Server Error"})
            for commit in self.commits:
                if commit["sha"].startswith(sha):
                    return httpx.Response(200, json=commit)
            return httpx.Response(422, json={"message": "No commit found for SHA"})
        finally:
            self.in_flight -= 1

    @staticmethod
    def _summary(commit: dict) -> dict:
        return {
            "sha": commit["sha"],
            "commit": {"author": commit["commit"]["author"], "message": commit["commit"]["message"]},
            "author": commit["author"],
        }


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        GITHUB_TOKEN=None,
        GITHUB_API_URL="https://api.github.test",
        CORS_ORIGIN=None,
        STATS_TIMEZONE="UTC",
        API_RATE_LIMIT=100,
        ANALYZE_RATE_LIMIT=10,
    )


@pytest.fixture
def client(test_settings, fake_github):
    app = create_app(test_settings, transport=fake_github.transport)
    with TestClient(app) as test_client:
        yield test_client
