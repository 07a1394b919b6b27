from dataclasses import dataclass
from typing import Dict, Optional
from zoneinfo import ZoneInfo

import httpx
from fastapi import Depends, Request, Response

from devstory.config.settings import Settings
from devstory.services.analysis_service import RepositoryAnalyzer
from devstory.services.cache_service import ResultCache
from devstory.services.github_service import GitHubClient
from devstory.services.rate_limiter import RateLimiter


@dataclass
class AppServices:
    """
    Everything a request handler needs, built once per application.
    """
    settings: Settings
    github: GitHubClient
    cache: ResultCache
    api_limiter: RateLimiter
    analyze_limiter: RateLimiter
    analyzer: RepositoryAnalyzer


def build_services(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> AppServices:
    github = GitHubClient(
        token=settings.GITHUB_TOKEN,
        base_url=settings.GITHUB_API_URL,
        timeout=settings.GITHUB_TIMEOUT_SECONDS,
        transport=transport,
    )
    cache = ResultCache(default_ttl=settings.CACHE_TTL_SECONDS)
    stats_tz = ZoneInfo(settings.STATS_TIMEZONE) if settings.STATS_TIMEZONE else None
    return AppServices(
        settings=settings,
        github=github,
        cache=cache,
        api_limiter=RateLimiter(settings.API_RATE_LIMIT, settings.API_RATE_WINDOW_SECONDS, name="api"),
        analyze_limiter=RateLimiter(settings.ANALYZE_RATE_LIMIT, settings.ANALYZE_RATE_WINDOW_SECONDS, name="analyze"),
        analyzer=RepositoryAnalyzer(github, cache, concurrency=settings.DETAIL_CONCURRENCY, stats_tz=stats_tz),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def apply_rate_limit_headers(response: Response, headers: Dict[str, str]) -> None:
    """
    Sets X-RateLimit-* headers unless a stricter limiter already set them.
    On routes under two limiters the headers describe the one with fewer requests remaining.
    """
    current = response.headers.get("X-RateLimit-Remaining")
    if current is not None and int(current) <= int(headers["X-RateLimit-Remaining"]):
        return
    response.headers.update(headers)


async def enforce_api_rate_limit(
    request: Request,
    response: Response,
    services: AppServices = Depends(get_services),
) -> None:
    apply_rate_limit_headers(response, services.api_limiter.hit(client_key(request)))


async def enforce_analyze_rate_limit(
    request: Request,
    response: Response,
    services: AppServices = Depends(get_services),
) -> None:
    apply_rate_limit_headers(response, services.analyze_limiter.hit(client_key(request)))
