"""RuleSet registry: builtin domains, file-based RuleSets, and rule selection."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path

from review_synth.errors import RuleSetError
from review_synth.rules.base import (
    CompanionMatcher,
    MatcherSpec,
    PathMatcher,
    RegexMatcher,
    Rule,
    RuleSet,
    combine_rulesets,
)
from review_synth.rules.loader import load_ruleset, loads_ruleset

__all__ = [
    "BUILTIN_PACKAGE",
    "CompanionMatcher",
    "MatcherSpec",
    "PathMatcher",
    "RegexMatcher",
    "Rule",
    "RuleInfo",
    "RuleSet",
    "build_ruleset",
    "builtin_ruleset_names",
    "list_rule_info",
    "load_builtin_ruleset",
    "load_ruleset",
    "loads_ruleset",
    "resolve_rulesets",
]

BUILTIN_PACKAGE = "review_synth.rulesets"


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    ruleset: str
    category: str
    description: str
    default_severity: str
    default_confidence: str
    non_negotiable: bool
    matcher_kind: str
    enabled: bool


def builtin_ruleset_names() -> list[str]:
    """Return the names of RuleSets shipped with the package."""
    root = resources.files(BUILTIN_PACKAGE)
    return sorted(
        entry.name[: -len(".toml")]
        for entry in root.iterdir()
        if entry.is_file() and entry.name.endswith(".toml")
    )


def load_builtin_ruleset(name: str) -> RuleSet:
    if name not in builtin_ruleset_names():
        choices = ", ".join(builtin_ruleset_names())
        raise RuleSetError(f"Unknown builtin ruleset '{name}'. Expected one of: {choices}")
    resource = resources.files(BUILTIN_PACKAGE).joinpath(f"{name}.toml")
    return loads_ruleset(resource.read_text(encoding="utf-8"), source=f"builtin:{name}")


def resolve_rulesets(specs: list[str] | None, *, repo: Path) -> list[RuleSet]:
    """Resolve builtin names and TOML paths to RuleSets; all builtins when empty."""
    names = specs or builtin_ruleset_names()
    builtin = set(builtin_ruleset_names())
    loaded: list[RuleSet] = []
    for spec in names:
        if spec in builtin:
            loaded.append(load_builtin_ruleset(spec))
            continue
        path = Path(spec)
        resolved = path if path.is_absolute() else repo / path
        if not resolved.exists():
            choices = ", ".join(sorted(builtin))
            raise RuleSetError(
                f"Ruleset '{spec}' is neither a builtin ({choices}) nor an existing file"
            )
        loaded.append(load_ruleset(resolved))
    return loaded


def build_ruleset(
    rulesets: list[RuleSet],
    *,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
) -> RuleSet:
    """Combine RuleSets and apply enable/disable filters."""
    if not rulesets:
        raise RuleSetError("At least one ruleset is required")
    combined = combine_rulesets(rulesets)
    known = set(combined.rule_ids)
    requested = set(enabled_rule_ids or []) | set(disabled_rule_ids or [])
    unknown = [rule_id for rule_id in requested if rule_id not in known]
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise RuleSetError(f"Unknown rule ids: {joined}")

    disabled = set(disabled_rule_ids or [])
    if enabled_rule_ids is None:
        selected = [rule_id for rule_id in combined.rule_ids if rule_id not in disabled]
    else:
        enabled = set(enabled_rule_ids)
        selected = [
            rule_id
            for rule_id in combined.rule_ids
            if rule_id in enabled and rule_id not in disabled
        ]
    return combined.select(selected)


def list_rule_info(rulesets: list[RuleSet], active: RuleSet) -> list[RuleInfo]:
    """Return metadata for every rule across ``rulesets``."""
    active_ids = set(active.rule_ids)
    info: list[RuleInfo] = []
    for ruleset in rulesets:
        for rule in ruleset.rules:
            info.append(
                RuleInfo(
                    rule_id=rule.id,
                    ruleset=ruleset.name,
                    category=rule.category,
                    description=rule.description,
                    default_severity=rule.default_severity.value,
                    default_confidence=rule.default_confidence.value,
                    non_negotiable=rule.is_non_negotiable,
                    matcher_kind=rule.matcher.kind,
                    enabled=rule.id in active_ids,
                )
            )
    return info
