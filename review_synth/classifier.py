"""Finding classification: severity and confidence resolution per evidence."""

from __future__ import annotations

from dataclasses import dataclass, field
from string import Template

from loguru import logger

from review_synth.context import ContextConstraints
from review_synth.errors import UnknownCategoryError
from review_synth.models import Evidence, Finding, finding_id
from review_synth.rules import Rule, RuleSet
from review_synth.taxonomy import BUILTIN_CATEGORIES, CategoryTaxonomy, max_severity


@dataclass(slots=True)
class Classification:
    """Findings plus the non-fatal warnings produced while classifying."""

    findings: list[Finding] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_rules: list[str] = field(default_factory=list)


def classify(
    evidence: Evidence,
    rule: Rule,
    context: ContextConstraints | None = None,
    taxonomy: CategoryTaxonomy | None = None,
) -> Finding:
    """Map one (evidence, rule) pair to a Finding.

    Severity starts at the rule default. A non-negotiable rule is pinned to its
    floor and nothing else may move it; otherwise every matching context
    constraint can only raise it. Partial evidence costs one confidence step.
    """
    known = taxonomy or CategoryTaxonomy()
    if rule.category not in known:
        raise UnknownCategoryError(rule.id, rule.category)

    severity = rule.default_severity
    escalated_by: list[str] = []
    if rule.is_non_negotiable:
        severity = rule.non_negotiable_floor
    elif context:
        for item in context.floors_for(rule):
            if item.floor.rank > severity.rank:
                escalated_by.append(item.statement)
            severity = max_severity(severity, item.floor)

    confidence = rule.default_confidence
    if evidence.partial:
        confidence = confidence.downgraded()

    return Finding(
        id=finding_id(rule.id, evidence.file, evidence.line_range),
        rule_id=rule.id,
        category=rule.category,
        severity=severity,
        confidence=confidence,
        evidence=evidence,
        impact=_render(rule.impact, evidence) or rule.description,
        remediation=_render(rule.remediation, evidence),
        escalated_by=tuple(escalated_by),
    )


def classify_all(
    evidence: list[Evidence],
    rule_set: RuleSet,
    context: ContextConstraints | None = None,
    taxonomy: CategoryTaxonomy | None = None,
) -> Classification:
    """Classify every evidence record, isolating per-rule failures."""
    known = CategoryTaxonomy(taxonomy.names() if taxonomy else BUILTIN_CATEGORIES)
    known.extend(rule_set.categories)
    result = Classification()
    failed: dict[str, UnknownCategoryError] = {}
    unknown_rules: set[str] = set()

    for item in evidence:
        rule = rule_set.get(item.rule_id)
        if rule is None:
            if item.rule_id not in unknown_rules:
                unknown_rules.add(item.rule_id)
                result.warnings.append(f"evidence for unknown rule {item.rule_id} ignored")
                logger.warning("evidence references unknown rule {}", item.rule_id)
            continue
        if rule.id in failed:
            continue
        try:
            result.findings.append(classify(item, rule, context, known))
        except UnknownCategoryError as exc:
            failed[rule.id] = exc
            result.skipped_rules.append(rule.id)
            result.warnings.append(f"rule {rule.id} skipped: unknown category '{exc.category}'")
            logger.warning("{}; skipping rule", exc)

    logger.debug(
        "classified {} finding(s), {} rule(s) skipped",
        len(result.findings),
        len(result.skipped_rules),
    )
    return result


def _render(template: str | None, evidence: Evidence) -> str | None:
    if template is None:
        return None
    return Template(template).safe_substitute(
        file=evidence.file,
        line=str(evidence.line_range),
        snippet=evidence.snippet,
    )
