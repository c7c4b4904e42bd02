"""Merge findings that report the same rule over overlapping lines."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace

from loguru import logger

from review_synth.models import Finding, LineRange, finding_id


def dedupe(findings: list[Finding]) -> list[Finding]:
    """Merge same-rule, same-file findings whose line ranges overlap.

    Overlap is an inclusive intersection test applied transitively, so a chain
    ``[1,3] [3,5] [5,8]`` collapses into one finding spanning ``[1,8]``. The
    surviving record is the one with the widest range, then highest severity,
    then highest confidence, then lowest start line; it takes the union range
    and the summed occurrence count. Output order is deterministic, and running
    ``dedupe`` on its own output changes nothing.
    """
    groups: dict[tuple[str, str], list[Finding]] = defaultdict(list)
    for finding in findings:
        groups[(finding.file, finding.rule_id)].append(finding)

    merged: list[Finding] = []
    for key in sorted(groups):
        for cluster in _overlap_clusters(groups[key]):
            merged.append(_merge(cluster))

    if len(merged) != len(findings):
        logger.debug("deduplicated {} finding(s) into {}", len(findings), len(merged))
    return merged


def _overlap_clusters(findings: list[Finding]) -> list[list[Finding]]:
    ordered = sorted(findings, key=lambda item: (item.line_range.start, item.line_range.end))
    clusters: list[list[Finding]] = []
    current: list[Finding] = []
    current_end = 0
    for finding in ordered:
        if current and finding.line_range.start <= current_end:
            current.append(finding)
            current_end = max(current_end, finding.line_range.end)
            continue
        if current:
            clusters.append(current)
        current = [finding]
        current_end = finding.line_range.end
    if current:
        clusters.append(current)
    return clusters


def _merge(cluster: list[Finding]) -> Finding:
    if len(cluster) == 1:
        return cluster[0]

    survivor = min(cluster, key=_survivor_key)
    span: LineRange = survivor.line_range
    for finding in cluster:
        span = span.union(finding.line_range)

    evidence = replace(survivor.evidence, line_range=span)
    return replace(
        survivor,
        id=finding_id(survivor.rule_id, survivor.file, span),
        evidence=evidence,
        occurrences=sum(finding.occurrences for finding in cluster),
    )


def _survivor_key(finding: Finding) -> tuple[int, int, int, int, int, str]:
    return (
        -finding.line_range.width,
        -finding.severity.rank,
        -finding.confidence.rank,
        finding.line_range.start,
        finding.line_range.end,
        finding.evidence.snippet,
    )
