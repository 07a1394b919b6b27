from datetime import timezone

import pytest

from devstory.core.models import CommitItem, FileChange, FileStatus
from devstory.services.stats_service import (
    compute_codebase_stats,
    find_largest_commit,
    get_file_type,
    get_language,
)


def commit(sha: str, timestamp: str, author: str = "alice", files=()) -> CommitItem:
    return CommitItem(
        commit=sha[:7],
        sha=sha,
        author=author,
        date=timestamp[:10],
        timestamp=timestamp,
        message="msg",
        changes=[
            FileChange(status=FileStatus.MODIFIED, file=name, additions=add, deletions=delete, changes=add + delete)
            for name, add, delete in files
        ],
    )


@pytest.mark.parametrize(
    "path, language",
    [
        ("src/index.ts", "TypeScript"),
        ("src/App.tsx", "TypeScript"),
        ("lib/util.js", "JavaScript"),
        ("web/Card.jsx", "JavaScript"),
        ("main.py", "Python"),
        ("Dockerfile", "Dockerfile"),
        ("LICENSE", "Other"),
        ("assets/logo.xyz", "Other"),
    ],
)
def test_get_language(path, language):
    assert get_language(path) == language


@pytest.mark.parametrize(
    "path, file_type",
    [
        ("src/api/users.py", "Backend"),
        ("server/routes/index.rb", "Backend"),
        ("lib/util.js", "Backend"),
        ("src/components/Button.tsx", "Frontend"),
        ("web/app/page.vue", "Frontend"),
        ("prisma/schema.prisma", "Schema"),
        ("db/migrations/001.sql", "Schema"),
        ("Dockerfile", "Infra"),
        (".github/workflows/ci.yml", "Infra"),
        ("infra/main.tf", "Infra"),
        ("README.md", "Other"),
    ],
)
def test_get_file_type(path, file_type):
    assert get_file_type(path) == file_type


def test_file_type_first_rule_wins():
    # matches both the Backend (/api/) and Frontend (.tsx) rules
    assert get_file_type("src/api/Widget.tsx") == "Backend"


def test_empty_commit_list_gives_zero_stats():
    stats = compute_codebase_stats([])
    assert stats.total_files == 0
    assert stats.total_lines == 0
    assert stats.languages == []
    assert stats.file_types == []
    assert stats.contributors == []
    assert stats.commit_frequency.daily == 0
    assert stats.average_commit_size == 0
    assert stats.largest_commit.files == 0
    assert stats.largest_commit.sha == ""
    assert stats.most_active_day == 0
    assert stats.most_active_hour == 0


@pytest.fixture
def commits():
    return [
        commit("a" * 40, "2024-01-01T09:00:00Z", "alice", [("README.md", 10, 0), ("src/main.py", 30, 0)]),
        commit("b" * 40, "2024-01-02T09:15:00Z", "bob", [("src/main.py", 5, 5)]),
        commit("c" * 40, "2024-01-08T14:00:00Z", "alice", [("web/App.tsx", 20, 0), ("README.md", 0, 10)]),
    ]


class TestComputeCodebaseStats:
    def test_totals(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        assert stats.total_files == 3
        assert stats.total_lines == 80
        assert stats.average_commit_size == round(5 / 3, 2)

    def test_languages_sorted_by_lines(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        assert [lang.language for lang in stats.languages] == ["Python", "Markdown", "TypeScript"]
        python = stats.languages[0]
        assert python.files == 1
        assert python.lines == 40
        assert python.percentage == 50.0

    def test_language_percentages_sum_to_100(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        assert sum(lang.percentage for lang in stats.languages) == pytest.approx(100, abs=0.05)

    def test_file_types(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        counts = {ft.type: ft.count for ft in stats.file_types}
        assert counts == {"Other": 2, "Frontend": 1}
        assert stats.file_types[0].type == "Other"

    def test_contributors(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        alice, bob = stats.contributors
        assert (alice.author, alice.commits, alice.lines_added, alice.lines_deleted) == ("alice", 2, 60, 10)
        assert (bob.author, bob.commits) == ("bob", 1)
        assert alice.percentage == pytest.approx(66.67)

    def test_commit_frequency(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        # span 2024-01-01T09:00 -> 2024-01-08T14:00 rounds up to 8 days
        assert stats.commit_frequency.daily == round(3 / 8, 2)
        assert stats.commit_frequency.weekly == round(3 / (8 / 7), 2)
        assert stats.commit_frequency.monthly == 3.0

    def test_single_commit_frequency_uses_one_day(self):
        stats = compute_codebase_stats([commit("a" * 40, "2024-01-01T00:00:00Z")], tz=timezone.utc)
        assert stats.commit_frequency.daily == 1.0
        assert stats.commit_frequency.weekly == 1.0
        assert stats.commit_frequency.monthly == 1.0

    def test_most_active_day_and_hour(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        # 2024-01-01 and 2024-01-08 are Mondays
        assert stats.most_active_day == 1
        assert stats.most_active_hour == 9

    def test_most_active_uses_given_time_zone(self):
        from zoneinfo import ZoneInfo

        stats = compute_codebase_stats(
            [commit("a" * 40, "2024-01-07T23:30:00Z")],
            tz=ZoneInfo("Asia/Tokyo"),
        )
        # Sunday 23:30 UTC is Monday 08:30 in Tokyo
        assert stats.most_active_day == 1
        assert stats.most_active_hour == 8

    def test_largest_commit(self, commits):
        stats = compute_codebase_stats(commits, tz=timezone.utc)
        assert stats.largest_commit.sha == "a" * 7
        assert stats.largest_commit.files == 2
        assert stats.largest_commit.lines == 40


def test_largest_commit_tie_broken_by_lines():
    small = commit("a" * 40, "2024-01-01T00:00:00Z", files=[("x.py", 1, 0), ("y.py", 1, 0)])
    big = commit("b" * 40, "2024-01-02T00:00:00Z", files=[("x.py", 50, 0), ("y.py", 1, 9)])
    assert find_largest_commit([small, big]).sha == "b" * 7
    assert find_largest_commit([big, small]).sha == "b" * 7
