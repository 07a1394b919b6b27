"""
Codebase statistics derived from a normalized commit timeline.

Everything here is computed from the file changes GitHub reports per commit;
nothing reads repository contents.
"""

import logging
import math
import os
from collections import Counter, defaultdict
from datetime import datetime, timezone, tzinfo
from typing import Dict, List, Optional, Set

from devstory.core.models import (
    CodebaseStats,
    CommitFrequency,
    CommitItem,
    ContributorStats,
    FileTypeStats,
    LanguageStats,
    LargestCommit,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

EXTENSION_TO_LANGUAGE = {
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".py": "Python",
    ".pyw": "Python",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".scala": "Scala",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".cxx": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".swift": "Swift",
    ".m": "Objective-C",
    ".dart": "Dart",
    ".lua": "Lua",
    ".r": "R",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".ps1": "PowerShell",
    ".html": "HTML",
    ".htm": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "SCSS",
    ".less": "Less",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".json": "JSON",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".toml": "TOML",
    ".xml": "XML",
    ".md": "Markdown",
    ".mdx": "Markdown",
    ".sql": "SQL",
    ".prisma": "Prisma",
    ".graphql": "GraphQL",
    ".gql": "GraphQL",
    ".tf": "HCL",
    ".tfvars": "HCL",
    ".dockerfile": "Dockerfile",
}

OTHER = "Other"


def get_language(path: str) -> str:
    name = os.path.basename(path).lower()
    if name == "dockerfile":
        return "Dockerfile"
    _, ext = os.path.splitext(name)
    return EXTENSION_TO_LANGUAGE.get(ext, OTHER)


def get_file_type(path: str) -> str:
    """
    Buckets a path into Backend, Frontend, Schema, Infra or Other.
    Rules are checked in that order and the first match wins.
    """
    lower = path.lower()

    if (
        "/api/" in lower
        or "/routes/" in lower
        or "/controllers/" in lower
        or "/services/" in lower
        or (lower.endswith(".ts") and ("server" in lower or "api" in lower))
        or (lower.endswith(".js") and "component" not in lower)
    ):
        return "Backend"

    if (
        "/app/" in lower
        or "/pages/" in lower
        or "/components/" in lower
        or "/ui/" in lower
        or lower.endswith((".tsx", ".jsx", ".vue", ".svelte"))
    ):
        return "Frontend"

    if (
        "prisma/" in lower
        or lower.endswith(("schema.prisma", ".sql"))
        or "/migrations/" in lower
        or "/database/" in lower
    ):
        return "Schema"

    if (
        "dockerfile" in lower
        or lower.endswith((".yml", ".yaml", ".tf", ".tfvars"))
        or "/infra/" in lower
        or "/deploy/" in lower
    ):
        return "Infra"

    return OTHER


def _percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def _parse_timestamp(timestamp: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable commit timestamp %r", timestamp)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _mode(counter: Counter, size: int) -> int:
    # ties go to the lowest index
    best, best_count = 0, 0
    for value in range(size):
        if counter[value] > best_count:
            best, best_count = value, counter[value]
    return best


def _commit_lines(commit: CommitItem) -> int:
    return sum(change.additions + change.deletions for change in commit.changes)


def compute_commit_frequency(timestamps: List[datetime], total_commits: int) -> CommitFrequency:
    """
    Commits per day, week and month over the span between the first and last commit.
    The span is at least one day; week and month spans are at least one unit.
    """
    if not total_commits or not timestamps:
        return CommitFrequency()
    span_seconds = (max(timestamps) - min(timestamps)).total_seconds()
    days_span = max(1, math.ceil(span_seconds / SECONDS_PER_DAY))
    weeks_span = max(1, days_span / 7)
    months_span = max(1, days_span / 30)
    return CommitFrequency(
        daily=round(total_commits / days_span, 2),
        weekly=round(total_commits / weeks_span, 2),
        monthly=round(total_commits / months_span, 2),
    )


def find_largest_commit(commits: List[CommitItem]) -> LargestCommit:
    """
    The commit touching the most files; ties go to the one with more changed lines.
    """
    largest = LargestCommit()
    for commit in commits:
        files, lines = len(commit.changes), _commit_lines(commit)
        if files > largest.files or (files == largest.files and lines > largest.lines):
            largest = LargestCommit(sha=commit.commit, files=files, lines=lines)
    return largest


def compute_codebase_stats(commits: List[CommitItem], tz: Optional[tzinfo] = None) -> CodebaseStats:
    """
    Builds the CodebaseStats for a full (unpaginated) commit sequence.

    Args:
        commits: Normalized commits, oldest first.
        tz: Time zone for most-active day/hour. None means the server's local zone.

    Returns:
        CodebaseStats; all zeros and empty lists when `commits` is empty.
    """
    if not commits:
        return CodebaseStats()

    all_files: Set[str] = set()
    language_files: Dict[str, Set[str]] = defaultdict(set)
    language_lines: Dict[str, int] = defaultdict(int)
    type_files: Dict[str, Set[str]] = defaultdict(set)
    contributor_commits: Counter = Counter()
    contributor_added: Dict[str, int] = defaultdict(int)
    contributor_deleted: Dict[str, int] = defaultdict(int)
    weekdays: Counter = Counter()
    hours: Counter = Counter()
    timestamps: List[datetime] = []
    total_lines = 0
    total_changes = 0

    for commit in commits:
        contributor_commits[commit.author] += 1
        total_changes += len(commit.changes)

        for change in commit.changes:
            lines = change.additions + change.deletions
            total_lines += lines
            all_files.add(change.file)

            language = get_language(change.file)
            language_files[language].add(change.file)
            language_lines[language] += lines
            type_files[get_file_type(change.file)].add(change.file)

            contributor_added[commit.author] += change.additions
            contributor_deleted[commit.author] += change.deletions

        parsed = _parse_timestamp(commit.timestamp)
        if parsed is not None:
            timestamps.append(parsed)
            local = parsed.astimezone(tz)
            # Sunday = 0, matching the timeline UI
            weekdays[(local.weekday() + 1) % 7] += 1
            hours[local.hour] += 1

    total_files = len(all_files)
    total_commits = len(commits)

    languages = [
        LanguageStats(
            language=language,
            files=len(files),
            lines=language_lines[language],
            percentage=_percentage(language_lines[language], total_lines),
        )
        for language, files in language_files.items()
    ]
    languages.sort(key=lambda stat: stat.lines, reverse=True)

    file_types = [
        FileTypeStats(type=file_type, count=len(files), percentage=_percentage(len(files), total_files))
        for file_type, files in type_files.items()
    ]
    file_types.sort(key=lambda stat: stat.count, reverse=True)

    contributors = [
        ContributorStats(
            author=author,
            commits=count,
            lines_added=contributor_added[author],
            lines_deleted=contributor_deleted[author],
            percentage=_percentage(count, total_commits),
        )
        for author, count in contributor_commits.items()
    ]
    contributors.sort(key=lambda stat: stat.commits, reverse=True)

    return CodebaseStats(
        total_files=total_files,
        total_lines=total_lines,
        languages=languages,
        file_types=file_types,
        contributors=contributors,
        commit_frequency=compute_commit_frequency(timestamps, total_commits),
        average_commit_size=round(total_changes / total_commits, 2),
        largest_commit=find_largest_commit(commits),
        most_active_day=_mode(weekdays, 7),
        most_active_hour=_mode(hours, 24),
    )
