import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from devstory.core.exceptions import UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)

PER_PAGE = 100
USER_AGENT = "DevStory/1.0.0"

_STATUS_KINDS = {
    401: UpstreamErrorKind.UNAUTHORIZED,
    403: UpstreamErrorKind.FORBIDDEN,
    404: UpstreamErrorKind.NOT_FOUND,
    409: UpstreamErrorKind.UNPROCESSABLE,
    422: UpstreamErrorKind.UNPROCESSABLE,
}


def build_headers(token: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _reset_to_iso(reset: Any) -> Optional[str]:
    if not reset:
        return None
    try:
        return datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return None


def _retry_after_to_iso(retry_after: Any, now: Optional[datetime] = None) -> Optional[str]:
    try:
        seconds = int(retry_after)
    except (TypeError, ValueError):
        return None
    now = now or datetime.now(timezone.utc)
    return (now + timedelta(seconds=max(0, seconds))).isoformat()


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    # primary limit exhausted, or a secondary limit asking the client to back off
    return response.headers.get("x-ratelimit-remaining") == "0" or "retry-after" in response.headers


def error_from_response(response: httpx.Response) -> UpstreamError:
    """
    Translates a non-2xx GitHub response into an UpstreamError.

    Every 429, and a 403 that carries no remaining quota or a Retry-After header, becomes
    RATE_LIMITED. The reset time comes from X-RateLimit-Reset, else from Retry-After.
    """
    status = response.status_code
    try:
        body = response.json()
        detail = body.get("message") if isinstance(body, dict) else None
    except ValueError:
        detail = None
    message = f"GitHub API returned {status}" + (f": {detail}" if detail else "")

    kind = _STATUS_KINDS.get(status, UpstreamErrorKind.UPSTREAM)
    rate_limit_reset = None
    if _is_rate_limited(response):
        kind = UpstreamErrorKind.RATE_LIMITED
        rate_limit_reset = _reset_to_iso(response.headers.get("x-ratelimit-reset")) or _retry_after_to_iso(
            response.headers.get("retry-after")
        )
    return UpstreamError(kind, message, status=status, rate_limit_reset=rate_limit_reset)


class GitHubClient:
    """
    Thin async client for the GitHub REST API v3.

    Every failure leaves this class as an UpstreamError; no retries happen here.

    Args:
        token: Personal access token, or None for unauthenticated (60 req/hour) access.
        base_url: API root, overridable for GitHub Enterprise or tests.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass an httpx.MockTransport).
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=build_headers(token),
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )
        logger.debug("GitHub client initialized (authenticated=%s)", bool(token))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamError(UpstreamErrorKind.TIMEOUT, f"Request to GitHub timed out: {path}") from e
        except httpx.TransportError as e:
            raise UpstreamError(UpstreamErrorKind.NETWORK, f"Network error contacting GitHub: {e}") from e

        if response.is_error:
            error = error_from_response(response)
            logger.warning("GitHub request %s failed: %r", path, error)
            raise error
        return response

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._get(path, params=params)
        try:
            return response.json()
        except ValueError as e:
            logger.warning("GitHub request %s returned a non-JSON body (%s)", path, response.headers.get("content-type"))
            raise UpstreamError(
                UpstreamErrorKind.UPSTREAM,
                f"GitHub returned an unreadable response for {path}",
                status=response.status_code,
            ) from e

    async def _get_object(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = await self._get_json(path, params=params)
        if not isinstance(data, dict):
            raise UpstreamError(UpstreamErrorKind.UPSTREAM, f"Unexpected response shape from GitHub for {path}")
        return data

    async def list_commits(self, owner: str, repo: str, max_commits: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Pages through the list-commits endpoint, newest first.

        Stops on an empty or non-list page, on a short page, or once max_commits
        have been collected (the result is truncated to exactly max_commits).
        """
        commits: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = await self._get_json(
                f"/repos/{owner}/{repo}/commits",
                params={"per_page": PER_PAGE, "page": page},
            )
            if not isinstance(data, list) or not data:
                break

            commits.extend(data)
            if max_commits and len(commits) >= max_commits:
                return commits[:max_commits]
            if len(data) < PER_PAGE:
                break
            page += 1

        logger.debug("Listed %d commits from %s/%s in %d page(s)", len(commits), owner, repo, page)
        return commits

    async def get_commit_details(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        return await self._get_object(f"/repos/{owner}/{repo}/commits/{sha}")

    async def get_file_contents(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Any:
        """
        Fetches a file's metadata and base64 content, at `ref` or on the default branch.
        A directory path yields a list instead of a dict.
        """
        params = {"ref": ref} if ref else None
        return await self._get_json(f"/repos/{owner}/{repo}/contents/{quote(path)}", params=params)

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._get_object(f"/repos/{owner}/{repo}")

    async def get_tree(self, owner: str, repo: str, ref: str) -> List[Dict[str, Any]]:
        """
        Lists every entry of the tree at `ref`, recursively.
        """
        data = await self._get_object(f"/repos/{owner}/{repo}/git/trees/{quote(ref)}", params={"recursive": 1})
        if data.get("truncated"):
            logger.info("Tree for %s/%s@%s was truncated by GitHub", owner, repo, ref)
        return [entry for entry in data.get("tree") or [] if isinstance(entry, dict)]

    async def list_workflows(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        data = await self._get_object(f"/repos/{owner}/{repo}/actions/workflows", params={"per_page": PER_PAGE})
        return [workflow for workflow in data.get("workflows") or [] if isinstance(workflow, dict)]

    async def get_rate_limit(self) -> Dict[str, Any]:
        """
        Reads the core rate-limit bucket. This call does not count against the quota.
        """
        data = await self._get_object("/rate_limit")
        resources = data.get("resources")
        core = resources.get("core") if isinstance(resources, dict) else None
        if not isinstance(core, dict):
            raise UpstreamError(UpstreamErrorKind.UPSTREAM, "GitHub rate limit response has no core bucket")
        return {
            "limit": core.get("limit", 0),
            "remaining": core.get("remaining", 0),
            "reset": _reset_to_iso(core.get("reset")),
        }
