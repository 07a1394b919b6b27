from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """
    Base for every model that crosses the HTTP boundary (camelCase on the wire).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileStatus(str, Enum):
    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"


class RepoRef(BaseModel):
    """
    Owner/repository pair parsed from a GitHub URL.
    """
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str


class FileChange(ApiModel):
    """
    One file touched by a commit.
    """
    status: FileStatus
    file: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    previous_file: Optional[str] = None
    patch: Optional[str] = None
    content: Optional[str] = None
    size: Optional[int] = None


class CommitItem(ApiModel):
    """
    A normalized commit as shown on the timeline.
    """
    commit: str  # 7-char short SHA
    sha: str
    author: str
    date: str  # YYYY-MM-DD
    timestamp: str  # ISO-8601, as returned by GitHub
    message: str
    changes: List[FileChange] = []


class LanguageStats(ApiModel):
    language: str
    files: int
    lines: int
    percentage: float


class FileTypeStats(ApiModel):
    type: str
    count: int
    percentage: float


class ContributorStats(ApiModel):
    author: str
    commits: int
    lines_added: int
    lines_deleted: int
    percentage: float


class CommitFrequency(ApiModel):
    daily: float = 0.0
    weekly: float = 0.0
    monthly: float = 0.0


class LargestCommit(ApiModel):
    sha: str = ""
    files: int = 0
    lines: int = 0


class CodebaseStats(ApiModel):
    """
    Aggregates computed over the full commit sequence of one analysis.
    """
    total_files: int = 0
    total_lines: int = 0
    languages: List[LanguageStats] = []
    file_types: List[FileTypeStats] = []
    contributors: List[ContributorStats] = []
    commit_frequency: CommitFrequency = Field(default_factory=CommitFrequency)
    average_commit_size: float = 0.0
    largest_commit: LargestCommit = Field(default_factory=LargestCommit)
    most_active_day: int = 0  # 0 = Sunday
    most_active_hour: int = 0


class Pagination(ApiModel):
    page: int
    page_size: int
    total_pages: int
    total_commits: int


class AnalyzeRequest(ApiModel):
    """
    Body of POST /api/analyze.
    """
    url: str
    max_commits: Optional[StrictInt] = Field(None, ge=1, le=1000)
    page: Optional[StrictInt] = Field(None, ge=1)
    page_size: Optional[StrictInt] = Field(None, ge=1, le=100)


class AnalyzeResponse(ApiModel):
    repo_url: str
    count: int
    commits: List[CommitItem] = []
    codebase_stats: Optional[CodebaseStats] = None
    pagination: Optional[Pagination] = None


class CommitDetailResponse(ApiModel):
    owner: str
    repo: str
    commit: CommitItem


class RateLimitStatus(ApiModel):
    limit: int
    remaining: int
    reset: Optional[str] = None


class GitHubProbe(ApiModel):
    reachable: bool
    rate_limit: Optional[RateLimitStatus] = None
    error: Optional[str] = None


class CacheStats(ApiModel):
    total: int
    valid: int
    expired: int


class HealthResponse(ApiModel):
    ok: bool
    status: str
    timestamp: str
    version: str
    environment: str
    cache: CacheStats
    github: GitHubProbe


class ApiError(ApiModel):
    error: str
    status: Optional[int] = None
    retry_after: Optional[int] = None


class PackageJsonAnalysis(ApiModel):
    """
    The fields of a repository's package.json that the developer tools view uses.
    """
    name: str
    version: str = "0.0.0"
    description: Optional[str] = None
    main: Optional[str] = None
    scripts: Dict[str, str] = {}
    dependencies: Dict[str, str] = {}
    dev_dependencies: Dict[str, str] = {}
    peer_dependencies: Optional[Dict[str, str]] = None
    engines: Optional[Dict[str, str]] = None
    keywords: Optional[List[str]] = None
    # free-form in package.json: a string or an object
    author: Optional[Any] = None
    license: Optional[Any] = None
    repository: Optional[Any] = None
    homepage: Optional[str] = None
    bugs: Optional[Any] = None
    package_manager: Optional[str] = None


class ProjectStructure(ApiModel):
    files: List[str] = []
    directories: List[str] = []
    config_files: List[str] = []
    test_files: List[str] = []
    documentation_files: List[str] = []
    build_files: List[str] = []
    ci_files: List[str] = []


class CommandCategory(str, Enum):
    BUILD = "build"
    TEST = "test"
    DEV = "dev"
    DEPLOY = "deploy"
    LINT = "lint"
    FORMAT = "format"
    OTHER = "other"


class CommandAnalysis(ApiModel):
    script: str
    command: str
    description: str
    category: CommandCategory


class DependencyType(str, Enum):
    DEPENDENCY = "dependency"
    DEV_DEPENDENCY = "devDependency"
    PEER_DEPENDENCY = "peerDependency"


class DependencyAnalysis(ApiModel):
    name: str
    version: str
    type: DependencyType
    purpose: str


class Workflow(ApiModel):
    name: str
    file: str
    status: str  # "active" or "disabled"


class CiCdAnalysis(ApiModel):
    platforms: List[str] = []
    workflows: List[Workflow] = []


class ComplexityEstimate(ApiModel):
    cyclomatic: float
    cognitive: float
    maintainability: float


class QualityEstimate(ApiModel):
    test_coverage: Optional[float] = None
    linting_errors: int = 0
    security_issues: int = 0


class CodebaseInsights(ApiModel):
    """
    Rough, tree-derived heuristics; not measured metrics.
    """
    languages: Dict[str, int] = {}
    frameworks: List[str] = []
    architecture: List[str] = []
    patterns: List[str] = []
    complexity: ComplexityEstimate
    quality: QualityEstimate


class DeveloperToolsResponse(ApiModel):
    owner: str
    repo: str
    package_json: PackageJsonAnalysis
    project_structure: Optional[ProjectStructure] = None
    commands: List[CommandAnalysis] = []
    dependencies: List[DependencyAnalysis] = []
    ci_cd: Optional[CiCdAnalysis] = None
    insights: CodebaseInsights
    recommendations: List[str] = []
