"""Typed exception hierarchy for review-synth.

Hierarchy
---------
ReviewSynthError (base)
├── ScopeError                       – caller-input problems, surfaced immediately
│   ├── MissingTargetError
│   ├── InvalidTargetFormatError
│   ├── InvalidScopeError
│   └── ScopeFileNotFoundError       – also a builtin ``FileNotFoundError``
├── UnknownCategoryError             – per rule; the rule is skipped, the run continues
├── EvidenceSourceUnavailableError   – fatal; no report is produced
└── RuleSetError                     – malformed RuleSet data (also a ``ValueError``)
"""

from __future__ import annotations


class ReviewSynthError(Exception):
    """Base exception for review-synth."""


class ScopeError(ReviewSynthError):
    """Invalid scope or target input."""


class MissingTargetError(ScopeError):
    """A scope kind that requires a target was given none."""

    def __init__(self, scope: str) -> None:
        super().__init__(f"scope '{scope}' requires a target")
        self.scope = scope


class InvalidTargetFormatError(ScopeError):
    """The target does not have the format its scope kind expects."""

    def __init__(self, scope: str, target: str, expected: str) -> None:
        super().__init__(f"invalid target '{target}' for scope '{scope}': expected {expected}")
        self.scope = scope
        self.target = target


class InvalidScopeError(ScopeError, ValueError):
    """Unknown scope kind."""


class ScopeFileNotFoundError(ScopeError, FileNotFoundError):
    """One or more target paths of a ``file`` scope do not exist."""

    def __init__(self, paths: list[str]) -> None:
        joined = ", ".join(paths)
        super().__init__(f"file(s) not found: {joined}")
        self.paths = list(paths)

    def __str__(self) -> str:
        return f"file(s) not found: {', '.join(self.paths)}"


class UnknownCategoryError(ReviewSynthError):
    """A rule references a category outside every known taxonomy."""

    def __init__(self, rule_id: str, category: str) -> None:
        super().__init__(f"rule {rule_id} references unknown category '{category}'")
        self.rule_id = rule_id
        self.category = category


class EvidenceSourceUnavailableError(ReviewSynthError):
    """The change source or evidence matcher failed entirely."""


class RuleSetError(ReviewSynthError, ValueError):
    """A RuleSet definition is malformed."""
