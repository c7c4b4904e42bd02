"""Rule and RuleSet records with their tagged matcher variants."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from review_synth.errors import RuleSetError
from review_synth.taxonomy import Confidence, Severity


@dataclass(frozen=True, slots=True)
class RegexMatcher:
    """Match a regular expression against reviewable lines."""

    kind: ClassVar[str] = "regex"

    pattern: str
    paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    ignore_case: bool = False
    heuristic: bool = False


@dataclass(frozen=True, slots=True)
class PathMatcher:
    """Match files by path glob alone."""

    kind: ClassVar[str] = "path"

    paths: tuple[str, ...]
    exclude_paths: tuple[str, ...] = ()
    heuristic: bool = False


@dataclass(frozen=True, slots=True)
class CompanionMatcher:
    """Flag a changed file whose required companion file did not change.

    Optionally narrowed by ``pattern``: only files with a matching reviewable line
    need the companion. Always a heuristic match.
    """

    kind: ClassVar[str] = "companion"

    paths: tuple[str, ...]
    requires: tuple[str, ...]
    pattern: str | None = None
    exclude_paths: tuple[str, ...] = ()
    heuristic: bool = True


MatcherSpec = Union[RegexMatcher, PathMatcher, CompanionMatcher]


@dataclass(frozen=True, slots=True)
class Rule:
    """One checklist item expressed as data."""

    id: str
    category: str
    description: str
    default_severity: Severity
    default_confidence: Confidence
    matcher: MatcherSpec
    is_non_negotiable: bool = False
    pinned_severity: Severity | None = None
    impact: str | None = None
    remediation: str | None = None

    def __post_init__(self) -> None:
        pinned = self.pinned_severity
        if pinned is not None and pinned.rank < self.default_severity.rank:
            raise RuleSetError(
                f"rule {self.id}: pinned_severity {pinned.value} is below "
                f"default_severity {self.default_severity.value}"
            )
        if self.is_non_negotiable and self.non_negotiable_floor.rank < Severity.HIGH.rank:
            raise RuleSetError(
                f"rule {self.id}: non-negotiable floor {self.non_negotiable_floor.value} "
                "must be HIGH or BLOCKER"
            )

    @property
    def non_negotiable_floor(self) -> Severity:
        return self.pinned_severity or self.default_severity


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Rules for one review domain (or a combination of domains)."""

    name: str
    rules: tuple[Rule, ...]
    description: str = ""
    categories: tuple[str, ...] = ()
    source: str | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise RuleSetError(f"ruleset {self.name}: duplicate rule id {rule.id}")
            seen.add(rule.id)

    @property
    def rule_ids(self) -> list[str]:
        return [rule.id for rule in self.rules]

    def get(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def select(self, rule_ids: list[str]) -> RuleSet:
        wanted = set(rule_ids)
        return RuleSet(
            name=self.name,
            rules=tuple(rule for rule in self.rules if rule.id in wanted),
            description=self.description,
            categories=self.categories,
            source=self.source,
        )


def combine_rulesets(rulesets: list[RuleSet]) -> RuleSet:
    """Merge several domain RuleSets into one; rule ids must stay unique."""
    if len(rulesets) == 1:
        return rulesets[0]
    rules: list[Rule] = []
    categories: list[str] = []
    for ruleset in rulesets:
        rules.extend(ruleset.rules)
        categories.extend(ruleset.categories)
    return RuleSet(
        name="+".join(ruleset.name for ruleset in rulesets),
        rules=tuple(rules),
        description="; ".join(ruleset.description for ruleset in rulesets if ruleset.description),
        categories=tuple(categories),
    )
