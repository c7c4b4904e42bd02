"""Report rendering: colorized terminal summary, stable JSON, and markdown."""

from __future__ import annotations

import json
from typing import Any

import click

from review_synth.models import Finding, Report
from review_synth.taxonomy import MergeRecommendation, Severity

RENDER_FORMATS = ("human", "json", "markdown")

_SEVERITY_COLORS = {
    Severity.BLOCKER: "red",
    Severity.HIGH: "red",
    Severity.MED: "yellow",
    Severity.LOW: "cyan",
    Severity.NIT: "white",
}
_RECOMMENDATION_COLORS = {
    MergeRecommendation.BLOCK: "red",
    MergeRecommendation.REQUEST_CHANGES: "red",
    MergeRecommendation.APPROVE_WITH_COMMENTS: "yellow",
    MergeRecommendation.APPROVE: "green",
}


def render(report: Report, output_format: str) -> str:
    if output_format == "json":
        return render_json(report)
    if output_format == "markdown":
        return render_markdown(report)
    return render_human(report)


def render_human(report: Report, *, limit: int | None = None) -> str:
    """Render a compact colorized summary."""
    recommendation = report.merge_recommendation
    lines: list[str] = [
        click.style(
            f"Recommendation: {recommendation.value}",
            fg=_RECOMMENDATION_COLORS[recommendation],
            bold=True,
        ),
        _counts_line(report),
    ]

    shown = report.findings if limit is None else report.findings[:limit]
    if shown:
        lines.append(click.style("Findings:", bold=True))
        for index, finding in enumerate(shown, start=1):
            severity = click.style(
                finding.severity.value, fg=_SEVERITY_COLORS[finding.severity], bold=True
            )
            lines.append(
                f"{index}. [{severity}] {finding.rule_id} {finding.file}:{finding.line_range}"
                f" ({finding.category}, confidence {finding.confidence.value})"
            )
            lines.append(f"   evidence: {finding.evidence.snippet}")
            lines.append(f"   impact: {finding.impact}")
            if finding.remediation:
                lines.append(f"   fix: {finding.remediation}")
        hidden = len(report.findings) - len(shown)
        if hidden > 0:
            lines.append(f"... {hidden} more finding(s)")

    if report.metadata.warnings:
        lines.append(click.style("Warnings:", bold=True))
        lines.extend(f"- {warning}" for warning in report.metadata.warnings)
    return "\n".join(lines)


def render_json(report: Report) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(report), sort_keys=True)


def build_json_payload(report: Report) -> dict[str, Any]:
    return {
        "merge_recommendation": report.merge_recommendation.value,
        "counts_by_severity": {
            severity.value: count for severity, count in report.counts_by_severity.items()
        },
        "counts_by_category": dict(report.counts_by_category),
        "files_reviewed": report.files_reviewed,
        "findings": [finding.to_dict() for finding in report.findings],
        "meta": report.metadata.to_dict(),
    }


def render_markdown(report: Report) -> str:
    """Render the report document: front-matter, executive summary, findings."""
    meta = report.metadata
    lines: list[str] = [
        "---",
        f"command: {meta.command}",
        f"scope: {meta.scope}",
        f"target: {meta.target or '-'}",
        f"completed: {meta.completed_at}",
        f"rulesets: [{', '.join(meta.rulesets)}]",
        f"version: {meta.version}",
        "---",
        "",
        "# Review Report",
        "",
        "## Executive Summary",
        "",
        f"**Merge recommendation:** `{report.merge_recommendation.value}`",
        "",
        f"Files reviewed: {report.files_reviewed}. Findings: {report.total_findings}.",
        "",
        "| Severity | Count |",
        "|---|---|",
    ]
    lines.extend(
        f"| {severity.value} | {count} |" for severity, count in report.counts_by_severity.items()
    )

    if report.counts_by_category:
        lines.extend(["", "| Category | Count |", "|---|---|"])
        lines.extend(
            f"| {category} | {count} |" for category, count in report.counts_by_category.items()
        )

    if meta.warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"- {warning}" for warning in meta.warnings)

    lines.extend(["", "## Findings", ""])
    if not report.findings:
        lines.append("No findings.")
    for index, finding in enumerate(report.findings, start=1):
        lines.extend(_markdown_finding(index, finding))
    return "\n".join(lines) + "\n"


def _markdown_finding(index: int, finding: Finding) -> list[str]:
    location = f"{finding.file}:{finding.line_range}"
    lines = [
        f"### {index}. [{finding.severity.value}] {finding.rule_id} ({finding.category})",
        "",
        f"- **Location:** `{location}`",
        f"- **Confidence:** {finding.confidence.value}",
        f"- **Impact:** {finding.impact}",
    ]
    if finding.remediation:
        lines.append(f"- **Remediation:** {finding.remediation}")
    if finding.escalated_by:
        lines.append(f"- **Escalated by context:** {'; '.join(finding.escalated_by)}")
    if finding.occurrences > 1:
        lines.append(f"- **Occurrences merged:** {finding.occurrences}")
    lines.extend(["", "```", finding.evidence.snippet, "```", ""])
    return lines


def _counts_line(report: Report) -> str:
    parts = [f"{severity.value}={count}" for severity, count in report.counts_by_severity.items()]
    return f"Findings: {report.total_findings} ({', '.join(parts)})"
