import pytest

from devstory.core.exceptions import InvalidInputError
from devstory.core.models import RepoRef
from devstory.utils.validators import (
    is_valid_github_url,
    is_valid_sha,
    parse_github_repo_url,
    sanitize_github_url,
)


class TestParseGithubRepoUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/owner/repo",
            "https://github.com/owner/repo.git",
            "https://github.com/owner/repo/",
            "https://github.com/owner/repo.git/",
            "http://github.com/owner/repo",
            "https://github.com/owner/repo/tree/main/src",
        ],
    )
    def test_variants_resolve_to_same_ref(self, url):
        assert parse_github_repo_url(url) == RepoRef(owner="owner", repo="repo")

    @pytest.mark.parametrize(
        "url",
        [
            "https://gitlab.com/owner/repo",
            "https://bitbucket.org/owner/repo",
            "https://github.com.evil.com/owner/repo",
            "https://www.github.com/owner/repo",
        ],
    )
    def test_rejects_other_hosts(self, url):
        with pytest.raises(InvalidInputError):
            parse_github_repo_url(url)

    @pytest.mark.parametrize("url", ["not-a-url", "", "https://github.com/owner", "https://github.com/"])
    def test_rejects_malformed(self, url):
        with pytest.raises(InvalidInputError):
            parse_github_repo_url(url)

    def test_ref_is_immutable(self):
        ref = parse_github_repo_url("https://github.com/owner/repo")
        with pytest.raises(Exception):
            ref.owner = "other"


class TestRequestUrlValidation:
    def test_accepts_www_host(self):
        assert is_valid_github_url("https://www.github.com/owner/repo")

    def test_rejects_bad_characters(self):
        assert not is_valid_github_url("https://github.com/own$er/repo")

    def test_rejects_non_string(self):
        assert not is_valid_github_url(None)

    def test_sanitize_strips_suffixes(self):
        assert sanitize_github_url("  https://github.com/owner/repo.git ") == "https://github.com/owner/repo"
        assert sanitize_github_url("https://github.com/owner/repo/") == "https://github.com/owner/repo"

    def test_sanitize_folds_www_host(self):
        assert sanitize_github_url("https://www.github.com/owner/repo") == "https://github.com/owner/repo"

    def test_sanitize_rejects_missing_url(self):
        with pytest.raises(InvalidInputError, match='"url"'):
            sanitize_github_url("   ")

    def test_sanitize_rejects_foreign_host(self):
        with pytest.raises(InvalidInputError, match="Invalid GitHub repository URL"):
            sanitize_github_url("https://gitlab.com/owner/repo")


class TestShaValidation:
    @pytest.mark.parametrize("sha", ["abc1234", "A" * 40, "0123456789abcdef"])
    def test_valid(self, sha):
        assert is_valid_sha(sha)

    @pytest.mark.parametrize("sha", ["abc12", "g" * 7, "a" * 41, ""])
    def test_invalid(self, sha):
        assert not is_valid_sha(sha)
