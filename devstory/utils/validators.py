import re
from urllib.parse import urlparse

import validators

from devstory.core.exceptions import InvalidInputError
from devstory.core.models import RepoRef

GITHUB_HOSTS = ("github.com", "www.github.com")
NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")
SHA_PATTERN = re.compile(r"^[a-f0-9]{7,40}$", re.IGNORECASE)


def parse_github_repo_url(input_url: str) -> RepoRef:
    """
    Extracts owner and repo from a github.com URL.
    A trailing `.git` and surrounding slashes are ignored; extra path segments are allowed.
    """
    parsed = urlparse(input_url.strip() if input_url else "")
    if not parsed.scheme or not parsed.netloc:
        raise InvalidInputError(f"Invalid GitHub URL: {input_url!r} is not a URL")
    if parsed.hostname != "github.com":
        raise InvalidInputError("Invalid GitHub URL: Only github.com URLs are supported")

    path = re.sub(r"\.git$", "", parsed.path.strip("/")).strip("/")
    parts = path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise InvalidInputError("Invalid GitHub URL: Invalid GitHub repo URL")
    return RepoRef(owner=parts[0], repo=parts[1])


def is_valid_github_url(url: str) -> bool:
    """
    Checks that a string is a well-formed github.com (or www.github.com) repository URL.
    """
    if not isinstance(url, str) or not validators.url(url):
        return False
    parsed = urlparse(url)
    if parsed.hostname not in GITHUB_HOSTS:
        return False

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        return False
    owner, repo = parts[0], re.sub(r"\.git$", "", parts[1])
    return is_valid_name(owner) and is_valid_name(repo)


def sanitize_github_url(url: str) -> str:
    """
    Validates and normalizes a repository URL submitted for analysis.
    Trims whitespace, drops one trailing slash and a `.git` suffix, and folds
    www.github.com onto github.com.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError('Missing or invalid "url" in request body')
    url = url.strip()
    if not is_valid_github_url(url):
        raise InvalidInputError("Invalid GitHub repository URL. Must be in format: https://github.com/owner/repo")
    url = re.sub(r"\.git$", "", re.sub(r"/$", "", url))
    return re.sub(r"^(https?://)www\.github\.com", r"\1github.com", url, flags=re.IGNORECASE)


def is_valid_name(name: str) -> bool:
    return bool(name) and NAME_PATTERN.match(name) is not None


def is_valid_sha(sha: str) -> bool:
    return bool(sha) and SHA_PATTERN.match(sha) is not None
