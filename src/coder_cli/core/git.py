"""Git helpers - clone a public repository for use as chat context."""
from __future__ import annotations

import atexit
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from urllib.parse import urlparse

from coder_cli.core.errors import GitOperationError

logger = logging.getLogger(__name__)

GIT_HOSTS = {"github.com", "gitlab.com", "bitbucket.org"}
SSH_URL_PATTERN = re.compile(r"^[\w-]+@[\w.-]+:[\w./-]+\.git$")

# Seconds
CLONE_TIMEOUT = 300


def is_valid_repo_url(url: str) -> bool:
    """http(s) URL of a known host or ending in .git, or an scp-style SSH URL."""
    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.hostname:
        return url.endswith(".git") or parsed.hostname in GIT_HOSTS
    if parsed.scheme and parsed.netloc:
        return False
    return bool(SSH_URL_PATTERN.match(url))


def clone_repository(url: str) -> Path:
    """
    Shallow-clone ``url`` into a temporary directory.

    The directory is removed when the process exits.

    Raises:
        GitOperationError: invalid URL, git missing or clone failure
    """
    if not is_valid_repo_url(url):
        raise GitOperationError(f"Invalid repository URL: {url}")

    target = Path(tempfile.mkdtemp(prefix="coder-cli-repo-"))
    logger.info(f"Cloning repository from {url} into {target}")

    try:
        result = subprocess.run(
            ["git", "clone", "--depth", "1", url, str(target)],
            capture_output=True,
            text=True,
            timeout=CLONE_TIMEOUT,
        )
    except FileNotFoundError as e:
        shutil.rmtree(target, ignore_errors=True)
        raise GitOperationError("git is not installed or not on PATH") from e
    except subprocess.TimeoutExpired as e:
        shutil.rmtree(target, ignore_errors=True)
        raise GitOperationError(f"Cloning {url} timed out after {CLONE_TIMEOUT}s") from e

    if result.returncode != 0:
        shutil.rmtree(target, ignore_errors=True)
        raise GitOperationError(f"Failed to clone repository: {result.stderr.strip() or 'git clone failed'}")

    atexit.register(shutil.rmtree, target, ignore_errors=True)
    return target
