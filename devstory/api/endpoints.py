import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from devstory.api.dependencies import (
    AppServices,
    enforce_analyze_rate_limit,
    enforce_api_rate_limit,
    get_services,
)
from devstory.core.exceptions import InvalidInputError, UpstreamError
from devstory.core.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    CacheStats,
    CommitDetailResponse,
    DeveloperToolsResponse,
    GitHubProbe,
    HealthResponse,
    RateLimitStatus,
)
from devstory.services.analysis_service import paginate
from devstory.services.content_service import load_file_content
from devstory.services.developer_tools import analyze_developer_tools
from devstory.services.normalizer import normalize_commit
from devstory.utils.helpers import gather_bounded
from devstory.utils.validators import is_valid_name, is_valid_sha, sanitize_github_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(enforce_api_rate_limit)])
health_router = APIRouter()


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(enforce_analyze_rate_limit)],
)
async def analyze_endpoint(request: AnalyzeRequest, services: AppServices = Depends(get_services)):
    """
    Analyze a GitHub repository and return its commit timeline and codebase statistics.
    """
    repo_url = sanitize_github_url(request.url)
    result = await services.analyzer.analyze(repo_url, request.max_commits)
    commits, pagination = paginate(result.commits, request.page, request.page_size)

    return AnalyzeResponse(
        repo_url=repo_url,
        count=len(commits),
        commits=commits,
        codebase_stats=result.stats,
        pagination=pagination,
    )


@router.get("/commit/{owner}/{repo}/{sha}", response_model=CommitDetailResponse, response_model_exclude_none=True)
async def commit_detail_endpoint(
    owner: str,
    repo: str,
    sha: str,
    include_content: bool = Query(False, alias="includeContent"),
    services: AppServices = Depends(get_services),
):
    """
    Full detail for one commit, with diff patches and optionally each file's content at that commit.
    """
    if not is_valid_name(owner) or not is_valid_name(repo):
        raise InvalidInputError("Invalid owner or repository name format")
    if not is_valid_sha(sha):
        raise InvalidInputError("Invalid commit SHA format")

    detail = await services.github.get_commit_details(owner, repo, sha)
    commit = normalize_commit(detail, include_patch=True)

    if include_content and commit.changes:
        config = services.settings
        await gather_bounded(
            commit.changes,
            lambda change: load_file_content(
                services.github,
                owner,
                repo,
                commit.sha or sha,
                change,
                max_fetch_bytes=config.MAX_CONTENT_FETCH_BYTES,
                max_display_bytes=config.MAX_CONTENT_DISPLAY_BYTES,
            ),
            config.DETAIL_CONCURRENCY,
        )

    return CommitDetailResponse(owner=owner, repo=repo, commit=commit)


@router.get(
    "/developer-tools/{owner}/{repo}",
    response_model=DeveloperToolsResponse,
    response_model_exclude_none=True,
)
async def developer_tools_endpoint(owner: str, repo: str, services: AppServices = Depends(get_services)):
    """
    Scripts, dependencies, project layout and CI/CD overview from the repository's package.json and tree.
    """
    if not is_valid_name(owner) or not is_valid_name(repo):
        raise InvalidInputError("Invalid owner or repository name format")
    return await analyze_developer_tools(services.github, owner, repo)


@router.get("/info")
async def info_endpoint(services: AppServices = Depends(get_services)):
    """
    Static description of the API and its limits.
    """
    config = services.settings
    return {
        "name": config.APP_NAME,
        "version": config.APP_VERSION,
        "description": "GitHub repository analysis API",
        "endpoints": {
            "health": "GET /health",
            "analyze": "POST /api/analyze",
            "commit": "GET /api/commit/:owner/:repo/:sha?includeContent=true",
            "developerTools": "GET /api/developer-tools/:owner/:repo",
            "info": "GET /api/info",
        },
        "limits": {
            "maxCommits": 1000,
            "maxPageSize": 100,
            "apiRequests": {"limit": config.API_RATE_LIMIT, "windowSeconds": config.API_RATE_WINDOW_SECONDS},
            "analyzeRequests": {
                "limit": config.ANALYZE_RATE_LIMIT,
                "windowSeconds": config.ANALYZE_RATE_WINDOW_SECONDS,
            },
        },
        "authenticated": bool(config.GITHUB_TOKEN),
    }


@health_router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_endpoint(services: AppServices = Depends(get_services)):
    """
    Liveness, cache statistics and a live GitHub reachability probe.
    """
    try:
        rate_limit = await services.github.get_rate_limit()
        probe = GitHubProbe(reachable=True, rate_limit=RateLimitStatus(**rate_limit))
    except UpstreamError as e:
        logger.warning("GitHub health probe failed: %r", e)
        probe = GitHubProbe(reachable=False, error=e.message)

    return HealthResponse(
        ok=True,
        status="ok" if probe.reachable else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=services.settings.APP_VERSION,
        environment=services.settings.ENVIRONMENT,
        cache=CacheStats(**services.cache.stats()),
        github=probe,
    )


@health_router.get("/")
async def root():
    return {"message": "DevStory API is running"}
