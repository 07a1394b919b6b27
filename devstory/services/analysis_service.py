import logging
import math
import time
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import List, Optional, Tuple

from devstory.core.models import CodebaseStats, CommitItem, Pagination
from devstory.services.cache_service import ResultCache
from devstory.services.github_service import GitHubClient
from devstory.services.normalizer import normalize_commits
from devstory.services.stats_service import compute_codebase_stats
from devstory.utils.helpers import gather_bounded
from devstory.utils.validators import parse_github_repo_url

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


@dataclass
class AnalysisResult:
    """Full, unpaginated outcome of one repository analysis."""
    repo_url: str
    commits: List[CommitItem] = field(default_factory=list)
    stats: CodebaseStats = field(default_factory=CodebaseStats)


class RepositoryAnalyzer:
    """
    Runs the analysis pipeline for one repository URL:
    list commits, fetch each commit's detail with bounded concurrency,
    normalize, sort oldest first, and compute codebase statistics.

    Results are cached per (repo URL, commit limit).
    """

    def __init__(
        self,
        github: GitHubClient,
        cache: ResultCache,
        concurrency: int = 6,
        stats_tz: Optional[tzinfo] = None,
    ):
        self.github = github
        self.cache = cache
        self.concurrency = concurrency
        self.stats_tz = stats_tz

    async def analyze(self, repo_url: str, max_commits: Optional[int] = None) -> AnalysisResult:
        cached = self.cache.get(repo_url, max_commits)
        if cached is not None:
            logger.info("Cache hit for %s (maxCommits=%s)", repo_url, max_commits)
            return cached

        result = await self.run_pipeline(repo_url, max_commits)
        self.cache.set(repo_url, result, max_commits=max_commits)
        return result

    async def run_pipeline(self, repo_url: str, max_commits: Optional[int] = None) -> AnalysisResult:
        ref = parse_github_repo_url(repo_url)
        started = time.monotonic()

        summaries = await self.github.list_commits(ref.owner, ref.repo, max_commits=max_commits)
        if not summaries:
            logger.info("No commits found for %s/%s", ref.owner, ref.repo)
            return AnalysisResult(repo_url=repo_url)

        logger.info("Fetching details for %d commits of %s/%s", len(summaries), ref.owner, ref.repo)
        details = await gather_bounded(
            [summary["sha"] for summary in summaries],
            lambda sha: self.github.get_commit_details(ref.owner, ref.repo, sha),
            self.concurrency,
        )

        commits = normalize_commits(details)
        stats = compute_codebase_stats(commits, tz=self.stats_tz)
        logger.info(
            "Analyzed %s/%s: %d commits, %d files [%.2fs]",
            ref.owner, ref.repo, len(commits), stats.total_files, time.monotonic() - started,
        )
        return AnalysisResult(repo_url=repo_url, commits=commits, stats=stats)


def paginate(
    commits: List[CommitItem],
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> Tuple[List[CommitItem], Optional[Pagination]]:
    """
    Slices the sorted commit sequence. With neither argument the whole sequence is returned.
    """
    if page is None and page_size is None:
        return commits, None

    page = page or 1
    page_size = page_size or DEFAULT_PAGE_SIZE
    start = (page - 1) * page_size
    pagination = Pagination(
        page=page,
        page_size=page_size,
        total_pages=math.ceil(len(commits) / page_size),
        total_commits=len(commits),
    )
    return commits[start:start + page_size], pagination
