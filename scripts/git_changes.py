#!/usr/bin/env python3
"""
Git Changes - Changed files and commit metadata from the local git repository.

Thin adapter around the git CLI. Every query degrades to an empty result when
git is missing, the directory is not a repository or the base reference is
not available (for example in a shallow clone); callers treat "no changed
files" as a valid low-risk input.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from risk_scorer import CommitRecord

logger = logging.getLogger(__name__)

COMMIT_MARKER = "__SV_COMMIT__"
FIELD_SEPARATOR = "\x1f"


def run_git(args: list[str], repo_root: Path) -> Optional[str]:
    """
    Run a git command and return its stdout.

    Args:
        args: Arguments after ``git``
        repo_root: Working directory for the command

    Returns:
        Decoded stdout, or None if git failed or is not installed
    """
    try:
        return subprocess.check_output(
            ['git', *args],
            cwd=repo_root,
            stderr=subprocess.DEVNULL
        ).decode('utf-8', errors='replace')
    except (subprocess.CalledProcessError, FileNotFoundError, OSError) as e:
        logger.debug(f"git {' '.join(args)} failed: {e}")
        return None


def _split_paths(output: Optional[str]) -> list[str]:
    if not output:
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


def get_changed_files(repo_root: Path, base_branch: str = "main") -> list[str]:
    """
    List files changed relative to a base reference.

    Tries ``origin/<base>..HEAD``, then ``<base>..HEAD``, then the working
    tree against HEAD.

    Returns:
        Ordered, de-duplicated repository-relative paths; empty if git history
        is unavailable
    """
    attempts = [
        ['diff', '--name-only', f'origin/{base_branch}..HEAD'],
        ['diff', '--name-only', f'{base_branch}..HEAD'],
        ['diff', '--name-only', 'HEAD'],
    ]

    for args in attempts:
        files = _split_paths(run_git(args, repo_root))
        if files:
            return list(dict.fromkeys(files))

    logger.warning(f"No changed files found against {base_branch}; continuing with an empty change set")
    return []


def parse_git_log(output: str) -> list[CommitRecord]:
    """
    Parse ``git log --name-only`` output written with COMMIT_MARKER headers.

    Each header line is ``<marker><sha> US <author> US <date> US <subject>``
    followed by the commit's file names.
    """
    commits: list[CommitRecord] = []
    current: Optional[CommitRecord] = None

    for raw in (output or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith(COMMIT_MARKER):
            fields = line[len(COMMIT_MARKER):].split(FIELD_SEPARATOR)
            fields += [""] * (4 - len(fields))
            current = CommitRecord(
                sha=fields[0],
                author=fields[1],
                date=fields[2],
                message=fields[3]
            )
            commits.append(current)
            continue
        if current is not None and line not in current.files:
            current.files.append(line)

    return commits


def get_commits(repo_root: Path, base_branch: str = "main") -> list[CommitRecord]:
    """
    Commits between the base reference and HEAD, oldest first.

    Returns:
        CommitRecord list; empty if history is unavailable
    """
    log_format = f"--format={COMMIT_MARKER}%H{FIELD_SEPARATOR}%an{FIELD_SEPARATOR}%aI{FIELD_SEPARATOR}%s"

    for ref in (f'origin/{base_branch}', base_branch):
        output = run_git(['log', '--reverse', '--name-only', log_format, f'{ref}..HEAD'], repo_root)
        if output:
            return parse_git_log(output)

    logger.info(f"No commit history available against {base_branch}")
    return []


def get_codebase_version(repo_root: Path) -> str:
    """Get git commit info if available."""
    commit = run_git(['rev-parse', '--short', 'HEAD'], repo_root)
    branch = run_git(['rev-parse', '--abbrev-ref', 'HEAD'], repo_root)
    if not commit:
        return "Unknown (not a git repository)"
    return f"{commit.strip()} ({(branch or 'detached').strip()})"
