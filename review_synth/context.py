"""Caller-declared context constraints used to escalate finding severity."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from review_synth.rules import Rule
from review_synth.taxonomy import Severity

DEFAULT_FLOOR = Severity.HIGH

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*(?:-[A-Za-z0-9_]+)*")
_FLOOR_PREFIX_RE = re.compile(r"^\s*(?P<floor>[A-Za-z]+)\s*:\s*(?P<statement>.+)$")
_STOPWORDS = frozenset(
    {
        "all",
        "and",
        "any",
        "are",
        "be",
        "for",
        "from",
        "has",
        "have",
        "into",
        "is",
        "least",
        "may",
        "must",
        "never",
        "not",
        "of",
        "on",
        "or",
        "should",
        "than",
        "that",
        "the",
        "this",
        "to",
        "with",
    }
)


@dataclass(frozen=True, slots=True)
class ContextConstraint:
    """One declared invariant, SLO, or compliance target with its severity floor."""

    statement: str
    floor: Severity
    keywords: frozenset[str]

    def matches(self, rule: Rule) -> bool:
        return bool(self.keywords & rule_terms(rule))


@dataclass(frozen=True, slots=True)
class ContextConstraints:
    """Read-only collection of constraints for one run."""

    constraints: tuple[ContextConstraint, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.constraints)

    def floors_for(self, rule: Rule) -> list[ContextConstraint]:
        return [constraint for constraint in self.constraints if constraint.matches(rule)]


def constraint(
    statement: str,
    floor: Severity | str = DEFAULT_FLOOR,
    keywords: Iterable[str] | None = None,
) -> ContextConstraint:
    """Build a constraint; keywords default to the statement's significant words."""
    text = statement.strip()
    if not text:
        raise ValueError("context statement must not be empty")
    if isinstance(floor, Severity):
        resolved_floor = floor
    else:
        resolved_floor = Severity.parse(floor, "context floor")
    terms = {term.lower() for term in keywords} if keywords else extract_terms(text)
    if not terms:
        raise ValueError(f"context statement '{text}' has no usable keywords")
    return ContextConstraint(statement=text, floor=resolved_floor, keywords=frozenset(terms))


def parse_declaration(raw: str) -> ContextConstraint:
    """Parse a free-text declaration ``[FLOOR:] statement``.

    ``"BLOCKER: balance >= 0"`` pins the floor; without a recognised prefix the
    whole text is the statement and the floor is HIGH.
    """
    match = _FLOOR_PREFIX_RE.match(raw)
    if match is not None:
        try:
            floor = Severity.parse(match.group("floor"))
        except ValueError:
            return constraint(raw)
        return constraint(match.group("statement"), floor)
    return constraint(raw)


def parse_declarations(raw_items: Iterable[str]) -> ContextConstraints:
    return ContextConstraints(
        tuple(parse_declaration(item) for item in raw_items if item.strip())
    )


def extract_terms(text: str) -> set[str]:
    terms: set[str] = set()
    for word in _WORD_RE.findall(text):
        lowered = word.lower()
        if lowered in _STOPWORDS or len(lowered) < 3:
            continue
        terms.add(lowered)
        if "-" in lowered:
            terms.update(part for part in lowered.split("-") if len(part) >= 3)
    return terms


def rule_terms(rule: Rule) -> set[str]:
    """Words a constraint keyword can match: rule id, category, and description."""
    terms = extract_terms(rule.category) | extract_terms(rule.description)
    terms.add(rule.id.lower())
    return terms
