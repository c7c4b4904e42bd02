"""Tests for merging overlapping findings."""

from __future__ import annotations

from review_synth.dedupe import dedupe
from review_synth.models import LineRange, finding_id
from review_synth.taxonomy import Confidence, Severity
from tests.helpers_review import make_finding


def test_overlapping_ranges_merge_into_union() -> None:
    merged = dedupe([make_finding(start=10, end=12), make_finding(start=11, end=14)])

    assert len(merged) == 1
    finding = merged[0]
    assert finding.line_range == LineRange(10, 14)
    assert finding.occurrences == 2
    assert finding.id == finding_id("R1", "src/app.py", LineRange(10, 14))


def test_touching_ranges_overlap_inclusively() -> None:
    merged = dedupe([make_finding(start=1, end=3), make_finding(start=3, end=5)])
    assert [item.line_range for item in merged] == [LineRange(1, 5)]


def test_overlap_is_transitive() -> None:
    merged = dedupe(
        [
            make_finding(start=5, end=8),
            make_finding(start=1, end=3),
            make_finding(start=3, end=5),
        ]
    )
    assert [item.line_range for item in merged] == [LineRange(1, 8)]
    assert merged[0].occurrences == 3


def test_disjoint_ranges_stay_separate() -> None:
    merged = dedupe([make_finding(start=1, end=2), make_finding(start=4, end=5)])
    assert [item.line_range for item in merged] == [LineRange(1, 2), LineRange(4, 5)]


def test_same_line_occurrences_collapse() -> None:
    merged = dedupe([make_finding(start=7), make_finding(start=7), make_finding(start=7)])
    assert len(merged) == 1
    assert merged[0].occurrences == 3


def test_different_rules_or_files_never_merge() -> None:
    findings = [
        make_finding("R1", 1, 5),
        make_finding("R2", 1, 5),
        make_finding("R1", 1, 5, file="src/other.py"),
    ]
    merged = dedupe(findings)
    assert len(merged) == 3


def test_survivor_prefers_widest_then_most_severe() -> None:
    narrow_severe = make_finding(start=10, end=10, severity=Severity.BLOCKER, snippet="narrow")
    wide = make_finding(start=9, end=12, severity=Severity.HIGH, snippet="wide")
    merged = dedupe([narrow_severe, wide])
    assert merged[0].evidence.snippet == "wide"

    low = make_finding(start=1, end=2, severity=Severity.LOW, snippet="low")
    high = make_finding(start=2, end=3, severity=Severity.HIGH, snippet="high")
    merged = dedupe([low, high])
    assert merged[0].evidence.snippet == "high"
    assert merged[0].severity is Severity.HIGH
    assert merged[0].line_range == LineRange(1, 3)


def test_survivor_prefers_higher_confidence_on_ties() -> None:
    unsure = make_finding(start=4, end=5, confidence=Confidence.LOW, snippet="unsure")
    sure = make_finding(start=5, end=6, confidence=Confidence.HIGH, snippet="sure")
    merged = dedupe([unsure, sure])
    assert merged[0].evidence.snippet == "sure"


def test_dedupe_is_idempotent() -> None:
    findings = [
        make_finding("R1", 1, 3),
        make_finding("R1", 2, 6),
        make_finding("R1", 10, 10),
        make_finding("R2", 4, 4, file="a.py"),
        make_finding("R2", 4, 5, file="a.py"),
    ]
    once = dedupe(findings)
    assert dedupe(once) == once


def test_dedupe_is_order_independent() -> None:
    findings = [
        make_finding("R1", 1, 3, snippet="a"),
        make_finding("R1", 2, 6, snippet="b"),
        make_finding("R2", 4, 4, file="a.py"),
    ]
    assert dedupe(findings) == dedupe(list(reversed(findings)))


def test_empty_input() -> None:
    assert dedupe([]) == []
