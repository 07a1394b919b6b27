import base64
import binascii
import logging
import os
from typing import Any, Dict, Optional, Tuple

from devstory.core.exceptions import UpstreamError, UpstreamErrorKind
from devstory.core.models import FileChange, FileStatus
from devstory.services.github_service import GitHubClient

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff", ".psd",
    ".pdf", ".zip", ".gz", ".tgz", ".tar", ".rar", ".7z", ".bz2", ".xz",
    ".exe", ".dll", ".so", ".dylib", ".bin", ".class", ".jar", ".war", ".o", ".a",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp3", ".mp4", ".wav", ".ogg", ".avi", ".mov", ".mkv", ".flac", ".webm",
    ".sqlite", ".db", ".pyc", ".wasm",
}

BINARY_MESSAGE = "Binary file not shown"
TOO_LARGE_MESSAGE = "File too large to display ({size} bytes)"
TRUNCATED_MESSAGE = "\n\n... (truncated: file exceeds {limit} KB, showing the first {limit} KB)"


def is_binary_path(path: str) -> bool:
    _, ext = os.path.splitext(path.lower())
    return ext in BINARY_EXTENSIONS


def decode_content(
    payload: Dict[str, Any],
    path: str,
    max_fetch_bytes: int,
    max_display_bytes: int,
) -> Tuple[str, Optional[int]]:
    """
    Turns a GitHub contents payload into displayable text.

    Returns:
        (text, size). Binary or oversized files yield a placeholder message instead of content.
    """
    size = payload.get("size")
    if is_binary_path(path):
        return BINARY_MESSAGE, size
    if size is not None and size > max_fetch_bytes:
        return TOO_LARGE_MESSAGE.format(size=size), size

    raw = payload.get("content") or ""
    if payload.get("encoding", "base64") != "base64":
        data = raw.encode("utf-8")
    else:
        try:
            data = base64.b64decode(raw)
        except (binascii.Error, ValueError):
            logger.warning("Could not decode base64 content for %s", path)
            return BINARY_MESSAGE, size

    if b"\x00" in data:
        return BINARY_MESSAGE, size
    if size is None:
        size = len(data)

    if len(data) > max_display_bytes:
        text = data[:max_display_bytes].decode("utf-8", errors="ignore")
        return text + TRUNCATED_MESSAGE.format(limit=max_display_bytes // 1024), size
    return data.decode("utf-8", errors="replace"), size


async def load_file_content(
    github: GitHubClient,
    owner: str,
    repo: str,
    sha: str,
    change: FileChange,
    max_fetch_bytes: int,
    max_display_bytes: int,
) -> FileChange:
    """
    Fills `content` and `size` on a FileChange with the file as of commit `sha`.
    Deleted files and files GitHub no longer serves keep no content.
    """
    if change.status == FileStatus.DELETED:
        return change
    if is_binary_path(change.file):
        change.content = BINARY_MESSAGE
        return change

    try:
        payload = await github.get_file_contents(owner, repo, change.file, ref=sha)
    except UpstreamError as e:
        if e.kind != UpstreamErrorKind.NOT_FOUND:
            raise
        logger.info("No content for %s at %s: %s", change.file, sha[:7], e.message)
        return change

    if not isinstance(payload, dict):
        # a directory listing, e.g. a submodule path
        return change
    change.content, change.size = decode_content(payload, change.file, max_fetch_bytes, max_display_bytes)
    return change
