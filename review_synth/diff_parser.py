"""Unified diff parsing into immutable file/hunk/line records."""

from __future__ import annotations

from dataclasses import dataclass, field
from re import Match, compile
from typing import Literal

HUNK_HEADER_RE = compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)

DEV_NULL = "/dev/null"


@dataclass(frozen=True, slots=True)
class DiffLine:
    """A single line within a diff hunk."""

    kind: Literal["context", "add", "delete", "meta"]
    content: str
    old_lineno: int | None
    new_lineno: int | None


@dataclass(frozen=True, slots=True)
class DiffHunk:
    """A line-ranged delta within one file."""

    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...] = ()

    @property
    def added_count(self) -> int:
        return sum(1 for line in self.lines if line.kind == "add")


@dataclass(frozen=True, slots=True)
class FileDiff:
    """A parsed file-level diff."""

    old_path: str | None
    new_path: str | None
    hunks: tuple[DiffHunk, ...] = ()

    @property
    def path(self) -> str:
        """Best-effort canonical path for reporting."""
        if self.new_path and self.new_path != DEV_NULL:
            return self.new_path
        if self.old_path and self.old_path != DEV_NULL:
            return self.old_path
        return "<unknown>"

    @property
    def is_deleted_file(self) -> bool:
        return self.new_path == DEV_NULL and self.old_path not in {None, DEV_NULL}


@dataclass(slots=True)
class _FileBuilder:
    old_path: str | None
    new_path: str | None
    hunks: list[DiffHunk] = field(default_factory=list)

    def build(self) -> FileDiff:
        return FileDiff(old_path=self.old_path, new_path=self.new_path, hunks=tuple(self.hunks))


@dataclass(slots=True)
class _HunkBuilder:
    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    old_lineno: int
    new_lineno: int
    lines: list[DiffLine] = field(default_factory=list)

    def feed(self, raw_line: str) -> None:
        if raw_line.startswith(" ") or raw_line == "":
            self.lines.append(
                DiffLine("context", raw_line[1:], self.old_lineno, self.new_lineno)
            )
            self.old_lineno += 1
            self.new_lineno += 1
        elif raw_line.startswith("+"):
            self.lines.append(DiffLine("add", raw_line[1:], None, self.new_lineno))
            self.new_lineno += 1
        elif raw_line.startswith("-"):
            self.lines.append(DiffLine("delete", raw_line[1:], self.old_lineno, None))
            self.old_lineno += 1
        elif raw_line.startswith("\\ "):
            self.lines.append(DiffLine("meta", raw_line[2:], None, None))
        else:
            self.lines.append(DiffLine("meta", raw_line, None, None))

    def build(self) -> DiffHunk:
        return DiffHunk(
            header=self.header,
            old_start=self.old_start,
            old_count=self.old_count,
            new_start=self.new_start,
            new_count=self.new_count,
            lines=tuple(self.lines),
        )


def parse_unified_diff(diff_text: str) -> list[FileDiff]:
    """Parse unified diff text (``git diff`` / ``gh pr diff`` output)."""
    files: list[FileDiff] = []
    current_file: _FileBuilder | None = None
    current_hunk: _HunkBuilder | None = None

    def flush_hunk() -> None:
        nonlocal current_hunk
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk.build())
        current_hunk = None

    def flush_file() -> None:
        nonlocal current_file
        flush_hunk()
        if current_file is not None:
            files.append(current_file.build())
        current_file = None

    for raw_line in diff_text.splitlines():
        if raw_line.startswith("diff --git "):
            flush_file()
            current_file = _start_file_from_diff_header(raw_line)
            continue

        if current_hunk is not None and _hunk_is_complete(current_hunk):
            flush_hunk()

        if current_hunk is None and raw_line.startswith("--- "):
            if current_file is not None and current_file.hunks:
                flush_file()
            if current_file is None:
                current_file = _FileBuilder(old_path=None, new_path=None)
            current_file.old_path = _parse_path(raw_line[4:])
            continue

        if current_hunk is None and raw_line.startswith("+++ "):
            if current_file is None:
                current_file = _FileBuilder(old_path=None, new_path=None)
            current_file.new_path = _parse_path(raw_line[4:])
            continue

        if raw_line.startswith("@@ "):
            if current_file is None:
                current_file = _FileBuilder(old_path=None, new_path=None)
            flush_hunk()
            current_hunk = _start_hunk(raw_line)
            continue

        if current_hunk is not None:
            current_hunk.feed(raw_line)

    flush_file()
    return files


def _hunk_is_complete(hunk: _HunkBuilder) -> bool:
    consumed_old = hunk.old_lineno - hunk.old_start
    consumed_new = hunk.new_lineno - hunk.new_start
    return consumed_old >= hunk.old_count and consumed_new >= hunk.new_count


def _start_file_from_diff_header(line: str) -> _FileBuilder:
    parts = line.split(maxsplit=3)
    old_path = _strip_ab_prefix(parts[2]) if len(parts) > 2 else None
    new_path = _strip_ab_prefix(parts[3]) if len(parts) > 3 else None
    return _FileBuilder(old_path=old_path, new_path=new_path)


def _start_hunk(header: str) -> _HunkBuilder:
    match: Match[str] | None = HUNK_HEADER_RE.match(header)
    if match is None:
        raise ValueError(f"Invalid hunk header: {header}")

    old_start = int(match.group("old_start"))
    new_start = int(match.group("new_start"))
    return _HunkBuilder(
        header=header,
        old_start=old_start,
        old_count=int(match.group("old_count")) if match.group("old_count") else 1,
        new_start=new_start,
        new_count=int(match.group("new_count")) if match.group("new_count") else 1,
        old_lineno=old_start,
        new_lineno=new_start,
    )


def _parse_path(value: str) -> str:
    token = value.strip().split("\t", 1)[0]
    return _strip_ab_prefix(token)


def _strip_ab_prefix(path: str) -> str:
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path


def added_file_hunk(content: str) -> DiffHunk:
    """Synthesize a hunk that adds ``content`` as a brand-new file."""
    lines = content.splitlines()
    return DiffHunk(
        header=f"@@ -0,0 +1,{len(lines)} @@",
        old_start=0,
        old_count=0,
        new_start=1,
        new_count=len(lines),
        lines=tuple(
            DiffLine("add", text, None, lineno) for lineno, text in enumerate(lines, start=1)
        ),
    )
