# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Optional

GIT_URL_RE = re.compile(r"^(https|git)(://|@)([^/:]+)[/:]([^/:]+)/([^/:]+?)(\.git)?$")


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["clone", url, dest])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero.
        FileNotFoundError: git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,   # return output as str instead of bytes
    )
    return out.strip()


def is_valid_git_url(url: str) -> bool:
    """True for HTTPS (https://host/owner/repo[.git]) and SSH (git@host:owner/repo[.git]) URLs."""
    return bool(GIT_URL_RE.match(url))


def input_type(value: str) -> str:
    """
    Classify what the user handed to `dev lift`.

    Returns:
        "url" for a git URL, "path" for an existing directory,
        "invalid" otherwise.
    """
    if is_valid_git_url(value):
        return "url"
    if Path(value).expanduser().is_dir():
        return "path"
    return "invalid"


def clone(url: str, dest: str | Path) -> Path:
    """
    Clone `url` into `dest` and return the destination path.

    The parent directory is created if needed.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    _git(["clone", url, str(dest)])
    return dest


def is_repo(path: str | Path) -> bool:
    """Whether `path` looks like the root of a git working tree."""
    return (Path(path) / ".git").exists()
