"""Load RuleSets from TOML documents."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from review_synth.errors import RuleSetError
from review_synth.rules.base import (
    CompanionMatcher,
    MatcherSpec,
    PathMatcher,
    RegexMatcher,
    Rule,
    RuleSet,
)
from review_synth.taxonomy import Confidence, Severity

RULE_ID_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")


def load_ruleset(path: Path) -> RuleSet:
    """Load a RuleSet TOML file."""
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except OSError as exc:
        raise RuleSetError(f"Cannot read ruleset {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuleSetError(f"Invalid TOML in ruleset {path}: {exc}") from exc
    return parse_ruleset(loaded, source=str(path), default_name=path.stem)


def loads_ruleset(text: str, *, source: str = "<string>") -> RuleSet:
    try:
        loaded = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise RuleSetError(f"Invalid TOML in ruleset {source}: {exc}") from exc
    return parse_ruleset(loaded, source=source)


def parse_ruleset(
    mapping: dict[str, Any], *, source: str, default_name: str | None = None
) -> RuleSet:
    name = mapping.get("name", default_name)
    if not isinstance(name, str) or not name.strip():
        raise RuleSetError(f"{source}: ruleset name must be a non-empty string")

    raw_rules = mapping.get("rules")
    if not isinstance(raw_rules, list) or not raw_rules:
        raise RuleSetError(f"{source}: ruleset must define at least one [[rules]] table")

    rules: list[Rule] = []
    for index, item in enumerate(raw_rules):
        if not isinstance(item, dict):
            raise RuleSetError(f"{source}: rules[{index}] must be a table")
        rules.append(_parse_rule(item, where=f"{source}: rules[{index}]"))

    return RuleSet(
        name=name.strip(),
        rules=tuple(rules),
        description=_optional_str(mapping.get("description"), f"{source}: description") or "",
        categories=tuple(_str_list(mapping.get("categories"), f"{source}: categories")),
        source=source,
    )


def _parse_rule(item: dict[str, Any], *, where: str) -> Rule:
    rule_id = _required_str(item.get("id"), f"{where}.id")
    if not RULE_ID_RE.match(rule_id):
        raise RuleSetError(f"{where}.id '{rule_id}' is not a valid rule id")
    where = f"{where} ({rule_id})"

    default_severity = _severity(item.get("default_severity", "MED"), f"{where}.default_severity")
    pinned_raw = item.get("pinned_severity")
    non_negotiable = item.get("non_negotiable", False)
    if not isinstance(non_negotiable, bool):
        raise RuleSetError(f"{where}.non_negotiable must be a boolean")

    return Rule(
        id=rule_id,
        category=_required_str(item.get("category"), f"{where}.category"),
        description=_required_str(item.get("description"), f"{where}.description"),
        default_severity=default_severity,
        default_confidence=_confidence(
            item.get("default_confidence", "MED"), f"{where}.default_confidence"
        ),
        matcher=_parse_matcher(item.get("matcher"), where=f"{where}.matcher"),
        is_non_negotiable=non_negotiable,
        pinned_severity=(
            _severity(pinned_raw, f"{where}.pinned_severity") if pinned_raw is not None else None
        ),
        impact=_optional_str(item.get("impact"), f"{where}.impact"),
        remediation=_optional_str(item.get("remediation"), f"{where}.remediation"),
    )


def _parse_matcher(value: Any, *, where: str) -> MatcherSpec:
    if not isinstance(value, dict):
        raise RuleSetError(f"{where} must be a table")
    kind = str(value.get("kind", "regex")).lower()
    paths = tuple(_str_list(value.get("paths"), f"{where}.paths"))
    exclude_paths = tuple(_str_list(value.get("exclude_paths"), f"{where}.exclude_paths"))

    if kind == "regex":
        pattern = _pattern(value.get("pattern"), f"{where}.pattern")
        return RegexMatcher(
            pattern=pattern,
            paths=paths,
            exclude_paths=exclude_paths,
            ignore_case=_bool(value.get("ignore_case", False), f"{where}.ignore_case"),
            heuristic=_bool(value.get("heuristic", False), f"{where}.heuristic"),
        )
    if kind == "path":
        if not paths:
            raise RuleSetError(f"{where}.paths must list at least one glob")
        return PathMatcher(
            paths=paths,
            exclude_paths=exclude_paths,
            heuristic=_bool(value.get("heuristic", False), f"{where}.heuristic"),
        )
    if kind == "companion":
        requires = tuple(_str_list(value.get("requires"), f"{where}.requires"))
        if not paths or not requires:
            raise RuleSetError(f"{where} needs both paths and requires globs")
        raw_pattern = value.get("pattern")
        return CompanionMatcher(
            paths=paths,
            requires=requires,
            pattern=_pattern(raw_pattern, f"{where}.pattern") if raw_pattern is not None else None,
            exclude_paths=exclude_paths,
        )
    raise RuleSetError(f"{where}.kind must be one of: companion, path, regex")


def _pattern(value: Any, field_name: str) -> str:
    pattern = _required_str(value, field_name)
    try:
        re.compile(pattern)
    except re.error as exc:
        raise RuleSetError(f"{field_name} is not a valid regular expression: {exc}") from exc
    return pattern


def _severity(value: Any, field_name: str) -> Severity:
    try:
        return Severity.parse(value, field_name)
    except ValueError as exc:
        raise RuleSetError(str(exc)) from exc


def _confidence(value: Any, field_name: str) -> Confidence:
    try:
        return Confidence.parse(value, field_name)
    except ValueError as exc:
        raise RuleSetError(str(exc)) from exc


def _required_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise RuleSetError(f"{field_name} must be a non-empty string")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise RuleSetError(f"{field_name} must be a string")
    return value.strip() or None


def _str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise RuleSetError(f"{field_name} must be a list of strings")
    return list(value)


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise RuleSetError(f"{field_name} must be a boolean")
    return value
