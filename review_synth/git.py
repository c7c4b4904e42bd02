"""Version-control subprocess helpers (git and the GitHub CLI)."""

from __future__ import annotations

from pathlib import Path
from subprocess import CalledProcessError, run

from loguru import logger


class GitError(RuntimeError):
    """Raised when a git or gh command fails."""


def get_worktree_diff(repo: Path) -> str:
    """Return staged and unstaged changes against HEAD."""
    if get_head_revision(repo) is None:
        return _run(repo, ["git", "diff", "--no-color", "--cached"])
    return _run(repo, ["git", "diff", "--no-color", "HEAD"])


def get_diff_between(repo: Path, base: str, head: str) -> str:
    """Return diff between two revisions."""
    return _run(repo, ["git", "diff", "--no-color", f"{base}..{head}"])


def get_pr_diff(repo: Path, pr: str) -> str:
    """Return the unified diff of a pull request via the GitHub CLI."""
    return _run(repo, ["gh", "pr", "diff", pr, "--color", "never"])


def get_head_revision(repo: Path) -> str | None:
    """Return HEAD revision if present."""
    try:
        return _run(repo, ["git", "rev-parse", "--verify", "HEAD"]).strip()
    except GitError:
        return None


def list_untracked_files(repo: Path) -> list[str]:
    output = _run(repo, ["git", "ls-files", "--others", "--exclude-standard", "-z"])
    return [item for item in output.split("\0") if item]


def list_tracked_files(repo: Path) -> list[str]:
    output = _run(repo, ["git", "ls-files", "-z"])
    return [item for item in output.split("\0") if item]


def is_git_repo(repo: Path) -> bool:
    try:
        return _run(repo, ["git", "rev-parse", "--is-inside-work-tree"]).strip() == "true"
    except GitError:
        return False


def _run(repo: Path, args: list[str]) -> str:
    logger.debug("running {} in {}", " ".join(args), repo)
    try:
        completed = run(
            args,
            cwd=repo,
            check=True,
            capture_output=True,
            text=True,
        )
    except CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitError(stderr or f"{' '.join(args)} failed") from exc
    except OSError as exc:
        raise GitError(f"cannot run {args[0]}: {exc}") from exc

    return completed.stdout
