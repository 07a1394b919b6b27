from datetime import datetime, timezone
from typing import Any, Dict, List

from devstory.core.models import CommitItem, FileChange, FileStatus

_STATUS_MAP = {
    "added": FileStatus.ADDED,
    "modified": FileStatus.MODIFIED,
    "removed": FileStatus.DELETED,
    "renamed": FileStatus.RENAMED,
    "copied": FileStatus.COPIED,
    "changed": FileStatus.MODIFIED,
}
_SHORT_CODES = {status.value: status for status in FileStatus}


def status_to_short(status: str) -> FileStatus:
    """
    Maps GitHub's verbose file status to its one-letter code.
    Unknown values fall back to their uppercased first letter when that is a known code, else M.
    """
    if status in _STATUS_MAP:
        return _STATUS_MAP[status]
    first = status[:1].upper() if status else ""
    return _SHORT_CODES.get(first, FileStatus.MODIFIED)


def truncate_commit_hash(sha: str) -> str:
    return sha[:7]


def get_first_line(message: str) -> str:
    return message.split("\n")[0]


def format_date(timestamp: str) -> str:
    return timestamp[:10]


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_file(raw: Dict[str, Any], include_patch: bool = False) -> FileChange:
    change = FileChange(
        status=status_to_short(raw.get("status") or ""),
        file=raw.get("filename") or "",
        additions=raw.get("additions") or 0,
        deletions=raw.get("deletions") or 0,
        changes=raw.get("changes") or 0,
        previous_file=raw.get("previous_filename"),
    )
    if include_patch:
        change.patch = raw.get("patch")
    return change


def normalize_commit(detail: Dict[str, Any], include_patch: bool = False) -> CommitItem:
    """
    Converts a GitHub single-commit payload into a CommitItem.
    """
    commit = detail.get("commit") or {}
    git_author = commit.get("author") or {}
    git_committer = commit.get("committer") or {}
    account = detail.get("author") or {}

    # the current-time fallback only covers malformed payloads
    timestamp = git_author.get("date") or git_committer.get("date") or _now_iso()
    author = git_author.get("name") or account.get("login") or "Unknown"
    sha = detail.get("sha") or ""
    files = detail.get("files")
    if not isinstance(files, list):
        files = []

    return CommitItem(
        commit=truncate_commit_hash(sha),
        sha=sha,
        author=author,
        date=format_date(timestamp),
        timestamp=timestamp,
        message=get_first_line(commit.get("message") or ""),
        changes=[normalize_file(f, include_patch=include_patch) for f in files],
    )


def normalize_commits(details: List[Dict[str, Any]]) -> List[CommitItem]:
    """
    Normalizes every detail payload and sorts the result oldest first.
    ISO-8601 strings are compared as strings; the sort is stable.
    """
    mapped = [normalize_commit(detail) for detail in details]
    mapped.sort(key=lambda item: item.timestamp)
    return mapped
