"""Tests for report synthesis and the merge recommendation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from review_synth import __version__
from review_synth.report import build_metadata, recommend, synthesize
from review_synth.taxonomy import SEVERITY_ORDER, MergeRecommendation, Severity
from tests.helpers_review import make_finding


@pytest.mark.parametrize(
    ("severities", "expected"),
    [
        ([], MergeRecommendation.APPROVE),
        ([Severity.NIT], MergeRecommendation.APPROVE_WITH_COMMENTS),
        ([Severity.LOW, Severity.MED], MergeRecommendation.APPROVE_WITH_COMMENTS),
        ([Severity.MED, Severity.HIGH], MergeRecommendation.REQUEST_CHANGES),
        ([Severity.HIGH, Severity.BLOCKER, Severity.NIT], MergeRecommendation.BLOCK),
    ],
)
def test_recommendation_decision_table(
    severities: list[Severity], expected: MergeRecommendation
) -> None:
    findings = [
        make_finding(f"R{index}", index + 1, severity=severity)
        for index, severity in enumerate(severities)
    ]
    assert synthesize(findings).merge_recommendation is expected


def test_recommend_from_counts() -> None:
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    assert recommend(counts) is MergeRecommendation.APPROVE
    counts[Severity.BLOCKER] = 1
    assert recommend(counts) is MergeRecommendation.BLOCK


def test_counts_are_consistent_with_findings() -> None:
    findings = [
        make_finding("R1", 1, severity=Severity.HIGH, category="Secrets"),
        make_finding("R2", 2, severity=Severity.HIGH, category="Logging"),
        make_finding("R3", 3, severity=Severity.NIT, category="Logging"),
    ]
    report = synthesize(findings, files_reviewed=2)

    assert list(report.counts_by_severity) == list(SEVERITY_ORDER)
    assert report.counts_by_severity[Severity.HIGH] == 2
    assert report.counts_by_severity[Severity.BLOCKER] == 0
    assert sum(report.counts_by_severity.values()) == report.total_findings == 3
    assert report.counts_by_category == {"Logging": 2, "Secrets": 1}
    assert sum(report.counts_by_category.values()) == 3
    assert report.files_reviewed == 2


def test_report_counts_are_read_only() -> None:
    report = synthesize([make_finding("R1", 1, severity=Severity.HIGH, category="Secrets")])
    with pytest.raises(TypeError):
        report.counts_by_severity[Severity.HIGH] = 0  # type: ignore[index]
    with pytest.raises(TypeError):
        report.counts_by_category["Secrets"] = 0  # type: ignore[index]
    assert report.counts_by_severity[Severity.HIGH] == 1


def test_findings_are_ordered_by_severity_then_location() -> None:
    findings = [
        make_finding("R1", 9, file="b.py", severity=Severity.LOW),
        make_finding("R2", 5, file="b.py", severity=Severity.HIGH),
        make_finding("R3", 1, file="a.py", severity=Severity.HIGH),
        make_finding("R0", 1, file="a.py", severity=Severity.HIGH),
        make_finding("R4", 2, file="z.py", severity=Severity.BLOCKER),
    ]
    report = synthesize(findings)
    assert [item.rule_id for item in report.findings] == ["R4", "R0", "R3", "R2", "R1"]


def test_empty_findings_give_approve_with_zero_counts() -> None:
    report = synthesize([])
    assert report.findings == ()
    assert report.merge_recommendation is MergeRecommendation.APPROVE
    assert all(count == 0 for count in report.counts_by_severity.values())
    assert report.counts_by_category == {}


def test_build_metadata_formats_utc_timestamp() -> None:
    moment = datetime(2024, 5, 17, 9, 30, 15, 123456, tzinfo=UTC)
    meta = build_metadata(
        scope="diff",
        target="main..feature",
        rulesets=("secrets",),
        warnings=("w",),
        completed_at=moment,
    )
    assert meta.completed_at == "2024-05-17T09:30:15Z"
    assert meta.command == "review"
    assert meta.version == __version__
    assert meta.to_dict()["rulesets"] == ["secrets"]
