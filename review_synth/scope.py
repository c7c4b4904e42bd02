"""Scope resolution: turn (scope kind, target, path filters) into a ChangeSet."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Sequence
from pathlib import Path, PurePosixPath
from typing import Protocol

from loguru import logger

from review_synth.diff_parser import added_file_hunk, parse_unified_diff
from review_synth.errors import (
    EvidenceSourceUnavailableError,
    InvalidScopeError,
    InvalidTargetFormatError,
    MissingTargetError,
    ScopeFileNotFoundError,
)
from review_synth.git import (
    GitError,
    get_diff_between,
    get_pr_diff,
    get_worktree_diff,
    is_git_repo,
    list_tracked_files,
    list_untracked_files,
)
from review_synth.models import SCOPE_KINDS, ChangedFile, ChangeSet

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".sql": "sql",
    ".sh": "shell",
    ".bash": "shell",
    ".tf": "terraform",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".toml": "toml",
    ".html": "html",
    ".vue": "vue",
    ".svelte": "svelte",
    ".css": "css",
    ".scss": "css",
    ".md": "markdown",
}
LANGUAGE_BY_NAME = {
    "Dockerfile": "dockerfile",
    "Makefile": "make",
}

SKIPPED_DIRS = {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv"}
BINARY_SNIFF_BYTES = 8192


class ChangeSource(Protocol):
    """Version-control collaborator consumed by the resolver."""

    def pr_diff(self, pr: str) -> str:
        """Unified diff of a pull request."""

    def range_diff(self, base: str, head: str) -> str:
        """Unified diff between two revisions."""

    def worktree_diff(self) -> str:
        """Uncommitted changes against HEAD."""

    def untracked_files(self) -> list[str]:
        """Repository-relative paths of untracked, non-ignored files."""

    def source_files(self) -> list[str]:
        """Repository-relative paths of every file under review for ``repo`` scope."""


class GitChangeSource:
    """ChangeSource backed by the local git repository and the GitHub CLI."""

    def __init__(self, repo: Path) -> None:
        self.repo = repo

    def pr_diff(self, pr: str) -> str:
        return get_pr_diff(self.repo, pr)

    def range_diff(self, base: str, head: str) -> str:
        return get_diff_between(self.repo, base, head)

    def worktree_diff(self) -> str:
        return get_worktree_diff(self.repo)

    def untracked_files(self) -> list[str]:
        return list_untracked_files(self.repo)

    def source_files(self) -> list[str]:
        if is_git_repo(self.repo):
            return list_tracked_files(self.repo)
        return _walk_files(self.repo)


class ScopeResolver:
    """Resolve a scope kind into a concrete, path-ordered ChangeSet."""

    def __init__(
        self,
        repo: Path,
        *,
        source: ChangeSource | None = None,
        exclude: Sequence[str] = (),
    ) -> None:
        self.repo = repo.resolve()
        self.source = source or GitChangeSource(self.repo)
        self.exclude = list(exclude)

    def resolve(
        self,
        scope_kind: str,
        target: str | Sequence[str] | None = None,
        path_filters: Sequence[str] | None = None,
    ) -> ChangeSet:
        scope = scope_kind.strip().lower()
        if scope not in SCOPE_KINDS:
            raise InvalidScopeError(
                f"unknown scope '{scope_kind}'; expected one of: {', '.join(SCOPE_KINDS)}"
            )

        skipped: list[str] = []
        try:
            if scope == "pr":
                pr = _require_single_target(scope, target).lstrip("#").strip()
                if not pr:
                    raise MissingTargetError(scope)
                files = self._from_diff(self.source.pr_diff(pr))
                target_label: str | None = pr
            elif scope == "diff":
                raw = _require_single_target(scope, target)
                base, head = parse_range_target(raw)
                files = self._from_diff(self.source.range_diff(base, head))
                target_label = raw
            elif scope == "worktree":
                files = self._from_diff(self.source.worktree_diff())
                known = {item.path for item in files}
                files.extend(self._untracked(known=known, skipped=skipped))
                target_label = None
            elif scope == "file":
                paths = _require_paths(scope, target)
                files = self._from_paths(paths, skipped=skipped)
                target_label = ",".join(paths)
            else:
                files = self._read_all(self.source.source_files(), skipped=skipped)
                target_label = None
        except GitError as exc:
            raise EvidenceSourceUnavailableError(f"change source unavailable: {exc}") from exc

        includes = list(path_filters or [])
        selected = filter_paths(files, includes=includes, excludes=self.exclude)
        selected.sort(key=lambda item: item.path)
        logger.info(
            "resolved scope {} ({}): {} of {} file(s) selected",
            scope,
            target_label or "-",
            len(selected),
            len(files),
        )
        warnings = tuple(
            f"file {path} skipped: binary or not UTF-8 text"
            for path in sorted(skipped)
            if path_selected(path, includes=includes, excludes=self.exclude)
        )
        return ChangeSet(
            scope=scope, target=target_label, files=tuple(selected), warnings=warnings
        )

    def _from_diff(self, diff_text: str) -> list[ChangedFile]:
        changed: list[ChangedFile] = []
        for file_diff in parse_unified_diff(diff_text):
            if file_diff.is_deleted_file:
                continue
            changed.append(
                ChangedFile(
                    path=file_diff.path,
                    language_hint=language_hint(file_diff.path),
                    diff_hunks=file_diff.hunks,
                )
            )
        return changed

    def _untracked(self, *, known: set[str], skipped: list[str]) -> list[ChangedFile]:
        changed: list[ChangedFile] = []
        for rel_path in self.source.untracked_files():
            if rel_path in known:
                continue
            content = read_source_text(self.repo / rel_path)
            if content is None:
                skipped.append(rel_path)
                continue
            changed.append(
                ChangedFile(
                    path=rel_path,
                    language_hint=language_hint(rel_path),
                    diff_hunks=(added_file_hunk(content),),
                )
            )
        return changed

    def _from_paths(self, paths: list[str], *, skipped: list[str]) -> list[ChangedFile]:
        missing: list[str] = []
        rel_paths: list[str] = []
        for raw in paths:
            candidate = Path(raw)
            resolved = candidate if candidate.is_absolute() else self.repo / candidate
            if not resolved.exists():
                missing.append(raw)
                continue
            if resolved.is_dir():
                rel_paths.extend(
                    self._relative(resolved / item) for item in _walk_files(resolved)
                )
            else:
                rel_paths.append(self._relative(resolved))
        if missing:
            raise ScopeFileNotFoundError(missing)
        return self._read_all(_unique(rel_paths), skipped=skipped)

    def _read_all(self, rel_paths: list[str], *, skipped: list[str]) -> list[ChangedFile]:
        changed: list[ChangedFile] = []
        for rel_path in rel_paths:
            content = read_source_text(self._absolute(rel_path))
            if content is None:
                logger.debug("skipping non-text file {}", rel_path)
                skipped.append(rel_path)
                continue
            changed.append(
                ChangedFile(
                    path=rel_path,
                    language_hint=language_hint(rel_path),
                    full_content=content,
                )
            )
        return changed

    def _relative(self, path: Path) -> str:
        resolved = path.resolve()
        try:
            return resolved.relative_to(self.repo).as_posix()
        except ValueError:
            return resolved.as_posix()

    def _absolute(self, rel_path: str) -> Path:
        candidate = Path(rel_path)
        return candidate if candidate.is_absolute() else self.repo / candidate


def parse_range_target(target: str) -> tuple[str, str]:
    """Split a ``ref1..ref2`` target into its two revisions."""
    expected = "a 'ref1..ref2' revision range"
    stripped = target.strip()
    if "..." in stripped or any(char.isspace() for char in stripped):
        raise InvalidTargetFormatError("diff", target, expected)
    base, sep, head = stripped.partition("..")
    if not sep or not base or not head or ".." in head:
        raise InvalidTargetFormatError("diff", target, expected)
    return (base, head)


def filter_paths(
    files: list[ChangedFile], *, includes: list[str], excludes: list[str]
) -> list[ChangedFile]:
    filtered: list[ChangedFile] = []
    for changed in files:
        if path_selected(changed.path, includes=includes, excludes=excludes):
            filtered.append(changed)
    return filtered


def path_selected(path: str, *, includes: Sequence[str], excludes: Sequence[str]) -> bool:
    if includes and not matches_any(path, includes):
        return False
    return not matches_any(path, excludes)


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    return any(path_matches(path, pattern) for pattern in patterns)


def path_matches(path: str, pattern: str) -> bool:
    """fnmatch where a ``**/`` segment may also stand for no directory at all.

    ``**/*.py`` matches ``app.py`` as well as ``src/app.py``, and ``src/**/x.py``
    matches ``src/x.py``.
    """
    return any(fnmatch.fnmatch(path, candidate) for candidate in _glob_variants(pattern))


def _glob_variants(pattern: str) -> set[str]:
    variants = {pattern}
    pending = [pattern]
    while pending:
        current = pending.pop()
        reduced: list[str] = []
        if current.startswith("**/"):
            reduced.append(current[3:])
        if "/**/" in current:
            reduced.append(current.replace("/**/", "/", 1))
        for candidate in reduced:
            if candidate not in variants:
                variants.add(candidate)
                pending.append(candidate)
    return variants


def language_hint(path: str) -> str | None:
    pure = PurePosixPath(path)
    if pure.name in LANGUAGE_BY_NAME:
        return LANGUAGE_BY_NAME[pure.name]
    return LANGUAGE_BY_SUFFIX.get(pure.suffix.lower())


def read_source_text(path: Path) -> str | None:
    """Read a text file; ``None`` for binary, undecodable, or unreadable files."""
    try:
        raw = path.read_bytes()
    except OSError:
        return None
    if b"\0" in raw[:BINARY_SNIFF_BYTES]:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _require_single_target(scope: str, target: str | Sequence[str] | None) -> str:
    if target is None:
        raise MissingTargetError(scope)
    if isinstance(target, str):
        value = target.strip()
    else:
        items = [item.strip() for item in target if item.strip()]
        if len(items) > 1:
            raise InvalidTargetFormatError(scope, " ".join(items), "a single target")
        value = items[0] if items else ""
    if not value:
        raise MissingTargetError(scope)
    return value


def _require_paths(scope: str, target: str | Sequence[str] | None) -> list[str]:
    if target is None:
        raise MissingTargetError(scope)
    raw_items = target.split(",") if isinstance(target, str) else list(target)
    paths = [item.strip() for item in raw_items if item.strip()]
    if not paths:
        raise MissingTargetError(scope)
    return paths


def _walk_files(root: Path) -> list[str]:
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIRS)
        base = Path(dirpath)
        for filename in sorted(filenames):
            found.append((base / filename).relative_to(root).as_posix())
    return found


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    output: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        output.append(item)
    return output
