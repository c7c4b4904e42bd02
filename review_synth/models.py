"""Core data model shared by every pipeline stage."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from review_synth.diff_parser import DiffHunk
from review_synth.taxonomy import Confidence, MergeRecommendation, Severity

SCOPE_KINDS = ("pr", "worktree", "diff", "file", "repo")
DIFF_SCOPES = frozenset({"pr", "worktree", "diff"})


@dataclass(frozen=True, slots=True)
class LineRange:
    """Inclusive 1-based line range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"invalid line range [{self.start}, {self.end}]")

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def overlaps(self, other: LineRange) -> bool:
        return self.start <= other.end and other.start <= self.end

    def union(self, other: LineRange) -> LineRange:
        return LineRange(min(self.start, other.start), max(self.end, other.end))

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


@dataclass(frozen=True, slots=True)
class ChangedFile:
    """One file selected for review.

    Diff scopes carry ``diff_hunks``; whole-file scopes carry ``full_content``.
    """

    path: str
    language_hint: str | None = None
    diff_hunks: tuple[DiffHunk, ...] | None = None
    full_content: str | None = None

    @property
    def has_source(self) -> bool:
        return self.diff_hunks is not None or self.full_content is not None

    def reviewable_lines(self) -> list[tuple[int, str]]:
        """Return ``(line number, text)`` pairs rules are evaluated against.

        Whole-file content yields every line; a diff yields only added lines.
        """
        if self.full_content is not None:
            return list(enumerate(self.full_content.splitlines(), start=1))
        lines: list[tuple[int, str]] = []
        for hunk in self.diff_hunks or ():
            for line in hunk.lines:
                if line.kind == "add" and line.new_lineno is not None:
                    lines.append((line.new_lineno, line.content))
        return lines

    def first_line(self) -> int:
        for hunk in self.diff_hunks or ():
            for line in hunk.lines:
                if line.kind == "add" and line.new_lineno is not None:
                    return line.new_lineno
            if hunk.new_count:
                return max(hunk.new_start, 1)
        return 1


@dataclass(frozen=True, slots=True)
class ChangeSet:
    """Ordered, immutable set of files for one review invocation."""

    scope: str
    target: str | None
    files: tuple[ChangedFile, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def paths(self) -> list[str]:
        return [changed.path for changed in self.files]


@dataclass(frozen=True, slots=True)
class Evidence:
    """A located code excerpt matched by a rule."""

    file: str
    line_range: LineRange
    snippet: str
    rule_id: str
    partial: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "start_line": self.line_range.start,
            "end_line": self.line_range.end,
            "snippet": self.snippet,
            "rule_id": self.rule_id,
            "partial": self.partial,
        }


def finding_id(rule_id: str, file: str, line_range: LineRange) -> str:
    digest = hashlib.sha1(
        f"{rule_id}\0{file}\0{line_range.start}\0{line_range.end}".encode("utf-8")
    ).hexdigest()
    return f"F-{digest[:10]}"


@dataclass(frozen=True, slots=True)
class Finding:
    """A classified conclusion derived from one piece of evidence."""

    id: str
    rule_id: str
    category: str
    severity: Severity
    confidence: Confidence
    evidence: Evidence
    impact: str
    remediation: str | None = None
    escalated_by: tuple[str, ...] = ()
    occurrences: int = 1

    @property
    def file(self) -> str:
        return self.evidence.file

    @property
    def line_range(self) -> LineRange:
        return self.evidence.line_range

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "category": self.category,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "evidence": self.evidence.to_dict(),
            "impact": self.impact,
            "remediation": self.remediation,
            "escalated_by": list(self.escalated_by),
            "occurrences": self.occurrences,
        }


@dataclass(frozen=True, slots=True)
class ReportMetadata:
    """Front-matter of a report."""

    command: str
    scope: str
    target: str | None
    completed_at: str
    rulesets: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "scope": self.scope,
            "target": self.target,
            "completed_at": self.completed_at,
            "rulesets": list(self.rulesets),
            "warnings": list(self.warnings),
            "version": self.version,
        }


@dataclass(frozen=True, slots=True)
class Report:
    """Final, immutable review artifact for one invocation."""

    findings: tuple[Finding, ...]
    counts_by_severity: Mapping[Severity, int]
    counts_by_category: Mapping[str, int]
    merge_recommendation: MergeRecommendation
    metadata: ReportMetadata
    files_reviewed: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "counts_by_severity", MappingProxyType(dict(self.counts_by_severity))
        )
        object.__setattr__(
            self, "counts_by_category", MappingProxyType(dict(self.counts_by_category))
        )

    @property
    def total_findings(self) -> int:
        return len(self.findings)
