"""Severity, confidence, recommendation, and category taxonomy."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Severity(str, Enum):
    """Severity tier of a finding, ordered NIT < LOW < MED < HIGH < BLOCKER."""

    BLOCKER = "BLOCKER"
    HIGH = "HIGH"
    MED = "MED"
    LOW = "LOW"
    NIT = "NIT"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, raw: object, field_name: str = "severity") -> Severity:
        value = str(raw).strip().upper()
        value = _SEVERITY_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(item.value for item in cls)
            raise ValueError(f"{field_name} must be one of: {choices}") from None


class Confidence(str, Enum):
    """Confidence that a finding is a true positive."""

    HIGH = "HIGH"
    MED = "MED"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def downgraded(self) -> Confidence:
        """Return the next lower confidence step; LOW stays LOW."""
        if self is Confidence.HIGH:
            return Confidence.MED
        return Confidence.LOW

    @classmethod
    def parse(cls, raw: object, field_name: str = "confidence") -> Confidence:
        value = str(raw).strip().upper()
        value = _CONFIDENCE_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(item.value for item in cls)
            raise ValueError(f"{field_name} must be one of: {choices}") from None


class MergeRecommendation(str, Enum):
    """Aggregate go/no-go signal for a reviewed change."""

    BLOCK = "BLOCK"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    APPROVE_WITH_COMMENTS = "APPROVE_WITH_COMMENTS"
    APPROVE = "APPROVE"


SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.BLOCKER,
    Severity.HIGH,
    Severity.MED,
    Severity.LOW,
    Severity.NIT,
)

_SEVERITY_RANK = {
    severity: len(SEVERITY_ORDER) - index for index, severity in enumerate(SEVERITY_ORDER)
}
_CONFIDENCE_RANK = {Confidence.HIGH: 3, Confidence.MED: 2, Confidence.LOW: 1}
_SEVERITY_ALIASES = {"MEDIUM": "MED", "CRITICAL": "BLOCKER", "INFO": "NIT"}
_CONFIDENCE_ALIASES = {"MEDIUM": "MED"}


def max_severity(*values: Severity) -> Severity:
    return max(values, key=lambda item: item.rank)


# Review domains the engine knows about out of the box. RuleSets and config may
# declare more.
BUILTIN_CATEGORIES: tuple[str, ...] = (
    "Accessibility",
    "Architecture",
    "Correctness",
    "Data-Integrity",
    "Developer-Experience",
    "Infrastructure-Security",
    "Logging",
    "Money",
    "Performance",
    "Refactor-Safety",
    "Reliability",
    "Secrets",
    "Security",
    "Style-Consistency",
    "Testing",
)


def normalize_category(name: str) -> str:
    """Canonical lookup key: case-insensitive, spaces/underscores read as hyphens."""
    return "-".join(name.strip().replace("_", " ").replace("-", " ").lower().split())


class CategoryTaxonomy:
    """Set of known finding categories."""

    def __init__(self, categories: Iterable[str] = BUILTIN_CATEGORIES) -> None:
        self._known: dict[str, str] = {}
        self.extend(categories)

    def extend(self, categories: Iterable[str]) -> None:
        for category in categories:
            key = normalize_category(category)
            if key:
                self._known.setdefault(key, category.strip())

    def __contains__(self, category: object) -> bool:
        return isinstance(category, str) and normalize_category(category) in self._known

    def names(self) -> list[str]:
        return sorted(self._known.values(), key=str.lower)
