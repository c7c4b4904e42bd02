"""Tests for severity and confidence resolution."""

from __future__ import annotations

import pytest

from review_synth.classifier import classify, classify_all
from review_synth.context import ContextConstraints, constraint, parse_declarations
from review_synth.errors import UnknownCategoryError
from review_synth.models import finding_id
from review_synth.rules import RuleSet
from review_synth.taxonomy import CategoryTaxonomy, Confidence, Severity
from tests.helpers_review import make_evidence, make_rule, make_ruleset

MONEY_FLOOR = ContextConstraints((constraint("balance >= 0", Severity.BLOCKER, ["money"]),))


def test_default_severity_and_confidence_without_context() -> None:
    rule = make_rule(severity=Severity.MED, confidence=Confidence.MED)
    finding = classify(make_evidence(start=4), rule)

    assert finding.severity is Severity.MED
    assert finding.confidence is Confidence.MED
    assert finding.id == finding_id("R1", "src/app.py", finding.line_range)
    assert finding.escalated_by == ()
    assert finding.impact == "Hard-coded credential"


def test_context_floor_escalates_matching_rule() -> None:
    rule = make_rule("DATA003", category="Money", severity=Severity.MED)
    finding = classify(make_evidence("DATA003"), rule, MONEY_FLOOR)

    assert finding.severity is Severity.BLOCKER
    assert finding.escalated_by == ("balance >= 0",)


def test_context_floor_never_lowers_severity() -> None:
    rule = make_rule(category="Money", severity=Severity.HIGH)
    context = parse_declarations(["LOW: money rounding"])
    finding = classify(make_evidence(), rule, context)

    assert finding.severity is Severity.HIGH
    assert finding.escalated_by == ()


def test_highest_matching_floor_wins() -> None:
    rule = make_rule(category="Money", severity=Severity.LOW)
    context = parse_declarations(["MED: money", "BLOCKER: money ledger", "HIGH: money refunds"])
    finding = classify(make_evidence(), rule, context)

    assert finding.severity is Severity.BLOCKER
    assert finding.escalated_by == ("money", "money ledger")


def test_non_negotiable_rule_is_pinned_and_ignores_context() -> None:
    rule = make_rule(
        category="Money", severity=Severity.HIGH, non_negotiable=True, pinned=Severity.HIGH
    )
    finding = classify(make_evidence(), rule, MONEY_FLOOR)

    assert finding.severity is Severity.HIGH
    assert finding.escalated_by == ()


def test_non_negotiable_pinned_floor_above_default() -> None:
    rule = make_rule(severity=Severity.MED, non_negotiable=True, pinned=Severity.BLOCKER)
    assert classify(make_evidence(), rule).severity is Severity.BLOCKER


@pytest.mark.parametrize(
    ("default", "expected"),
    [
        (Confidence.HIGH, Confidence.MED),
        (Confidence.MED, Confidence.LOW),
        (Confidence.LOW, Confidence.LOW),
    ],
)
def test_partial_evidence_downgrades_confidence_one_step(
    default: Confidence, expected: Confidence
) -> None:
    rule = make_rule(confidence=default)
    assert classify(make_evidence(partial=True), rule).confidence is expected
    assert classify(make_evidence(partial=False), rule).confidence is default


def test_impact_template_is_rendered_with_location() -> None:
    rule = make_rule(impact="Credential at $file:$line leaks; cost $$5")
    finding = classify(make_evidence(start=3, end=5), rule)
    assert finding.impact == "Credential at src/app.py:3-5 leaks; cost $5"
    assert finding.remediation is None


def test_unknown_category_raises() -> None:
    rule = make_rule(category="Astrology")
    with pytest.raises(UnknownCategoryError) as excinfo:
        classify(make_evidence(), rule)
    assert excinfo.value.rule_id == "R1"
    assert excinfo.value.category == "Astrology"


def test_taxonomy_extension_accepts_custom_category() -> None:
    rule = make_rule(category="Payments")
    taxonomy = CategoryTaxonomy()
    taxonomy.extend(["payments"])
    assert classify(make_evidence(), rule, taxonomy=taxonomy).category == "Payments"


def test_classify_all_skips_rules_with_unknown_category_and_continues() -> None:
    good = make_rule("R1")
    bad = make_rule("R2", category="Astrology")
    evidence = [
        make_evidence("R1", 1),
        make_evidence("R2", 2),
        make_evidence("R2", 3),
        make_evidence("R9", 4),
    ]
    result = classify_all(evidence, make_ruleset(good, bad))

    assert [item.rule_id for item in result.findings] == ["R1"]
    assert result.skipped_rules == ["R2"]
    assert result.warnings == [
        "rule R2 skipped: unknown category 'Astrology'",
        "evidence for unknown rule R9 ignored",
    ]


def test_classify_all_accepts_categories_declared_by_ruleset() -> None:
    rule = make_rule(category="Payments")
    rule_set = RuleSet(name="payments", rules=(rule,), categories=("Payments",))
    result = classify_all([make_evidence()], rule_set)
    assert [item.category for item in result.findings] == ["Payments"]
    assert result.warnings == []


def test_classify_all_does_not_mutate_caller_taxonomy() -> None:
    taxonomy = CategoryTaxonomy()
    rule = make_rule(category="Payments")
    rule_set = RuleSet(name="p", rules=(rule,), categories=("Payments",))
    classify_all([make_evidence()], rule_set, taxonomy=taxonomy)
    assert "Payments" not in taxonomy


def test_severity_never_below_rule_default() -> None:
    context = parse_declarations(["NIT: money", "LOW: credential", "MED: secrets"])
    for default in Severity:
        rule = make_rule(category="Money", severity=default)
        finding = classify(make_evidence(), rule, context)
        assert finding.severity.rank >= default.rank
