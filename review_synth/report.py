"""Report synthesis: counts, merge recommendation, and rendering order."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from datetime import UTC, datetime

from review_synth import __version__
from review_synth.models import Finding, Report, ReportMetadata
from review_synth.taxonomy import SEVERITY_ORDER, MergeRecommendation, Severity


def synthesize(
    findings: list[Finding],
    metadata: ReportMetadata | None = None,
    *,
    files_reviewed: int = 0,
) -> Report:
    """Aggregate findings into an immutable Report."""
    counts_by_severity = count_by_severity(findings)
    ordered = order_findings(findings)
    return Report(
        findings=tuple(ordered),
        counts_by_severity=counts_by_severity,
        counts_by_category=count_by_category(findings),
        merge_recommendation=recommend(counts_by_severity),
        metadata=metadata or build_metadata(scope="unknown", target=None),
        files_reviewed=files_reviewed,
    )


def count_by_severity(findings: list[Finding]) -> dict[Severity, int]:
    tally = Counter(finding.severity for finding in findings)
    return {severity: tally.get(severity, 0) for severity in SEVERITY_ORDER}


def count_by_category(findings: list[Finding]) -> dict[str, int]:
    tally = Counter(finding.category for finding in findings)
    return {category: tally[category] for category in sorted(tally)}


def recommend(counts_by_severity: Mapping[Severity, int]) -> MergeRecommendation:
    """Evaluate the decision table top-down; first match wins."""
    if counts_by_severity.get(Severity.BLOCKER, 0) > 0:
        return MergeRecommendation.BLOCK
    if counts_by_severity.get(Severity.HIGH, 0) > 0:
        return MergeRecommendation.REQUEST_CHANGES
    if sum(counts_by_severity.values()) > 0:
        return MergeRecommendation.APPROVE_WITH_COMMENTS
    return MergeRecommendation.APPROVE


def order_findings(findings: list[Finding]) -> list[Finding]:
    return sorted(
        findings,
        key=lambda item: (
            -item.severity.rank,
            item.file,
            item.line_range.start,
            item.rule_id,
            item.line_range.end,
        ),
    )


def build_metadata(
    *,
    scope: str,
    target: str | None,
    command: str = "review",
    rulesets: tuple[str, ...] = (),
    warnings: tuple[str, ...] = (),
    completed_at: datetime | None = None,
) -> ReportMetadata:
    moment = completed_at or datetime.now(tz=UTC)
    return ReportMetadata(
        command=command,
        scope=scope,
        target=target,
        completed_at=moment.replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        rulesets=rulesets,
        warnings=warnings,
        version=__version__,
    )
