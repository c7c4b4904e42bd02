"""One review invocation: scope -> evidence -> findings -> dedupe -> report."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from review_synth.classifier import classify_all
from review_synth.context import ContextConstraints
from review_synth.dedupe import dedupe
from review_synth.matcher import EvidenceMatcher, RuleSetMatcher
from review_synth.models import ChangeSet, Finding, Report
from review_synth.report import build_metadata, synthesize
from review_synth.rules import RuleSet
from review_synth.scope import ChangeSource, ScopeResolver
from review_synth.taxonomy import CategoryTaxonomy


@dataclass(slots=True)
class ReviewRequest:
    """Invocation parameters for one review run."""

    rule_set: RuleSet
    scope: str = "pr"
    target: str | Sequence[str] | None = None
    path_filters: list[str] = field(default_factory=list)
    context: ContextConstraints = field(default_factory=ContextConstraints)
    taxonomy: CategoryTaxonomy | None = None
    command: str = "review"


def run_review(
    request: ReviewRequest,
    *,
    repo: Path,
    exclude: Sequence[str] = (),
    source: ChangeSource | None = None,
    matcher: EvidenceMatcher | None = None,
) -> Report:
    """Resolve the scope and review it.

    Scope errors and ``EvidenceSourceUnavailableError`` propagate; no report is
    produced for them.
    """
    resolver = ScopeResolver(repo, source=source, exclude=exclude)
    change_set = resolver.resolve(request.scope, request.target, request.path_filters)
    return review_change_set(
        change_set,
        request.rule_set,
        context=request.context,
        taxonomy=request.taxonomy,
        matcher=matcher,
        command=request.command,
    )


def review_change_set(
    change_set: ChangeSet,
    rule_set: RuleSet,
    *,
    context: ContextConstraints | None = None,
    taxonomy: CategoryTaxonomy | None = None,
    matcher: EvidenceMatcher | None = None,
    command: str = "review",
) -> Report:
    """Run the matching, classification, dedupe, and synthesis stages."""
    warnings: list[str] = list(change_set.warnings)
    findings: list[Finding] = []
    if change_set.is_empty:
        logger.info("change set is empty; nothing to review")
    else:
        evidence = (matcher or RuleSetMatcher()).match(change_set, rule_set)
        classification = classify_all(evidence, rule_set, context, taxonomy)
        warnings.extend(classification.warnings)
        findings = dedupe(classification.findings)
        logger.info(
            "{} evidence record(s) -> {} finding(s) after dedupe",
            len(evidence),
            len(findings),
        )

    metadata = build_metadata(
        scope=change_set.scope,
        target=change_set.target,
        command=command,
        rulesets=tuple(rule_set.name.split("+")),
        warnings=tuple(warnings),
    )
    report = synthesize(findings, metadata, files_reviewed=len(change_set.files))
    logger.info("recommendation: {}", report.merge_recommendation.value)
    return report
