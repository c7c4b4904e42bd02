"""Evidence matching: apply a RuleSet to a ChangeSet.

Any object with a ``match(change_set, rule_set)`` method returning ``Evidence``
records conforms. ``RuleSetMatcher`` evaluates the declarative matchers carried by
the rules themselves; ``ExternalCommandMatcher`` delegates to an external linter
that prints evidence as JSON.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from pathlib import Path
from subprocess import CalledProcessError, TimeoutExpired, run
from typing import Any, Protocol

from loguru import logger

from review_synth.errors import EvidenceSourceUnavailableError
from review_synth.models import ChangedFile, ChangeSet, Evidence, LineRange
from review_synth.rules import CompanionMatcher, PathMatcher, RegexMatcher, Rule, RuleSet
from review_synth.scope import matches_any, path_selected

SNIPPET_MAX_LEN = 120


class EvidenceMatcher(Protocol):
    """Contract for evidence sources."""

    def match(self, change_set: ChangeSet, rule_set: RuleSet) -> list[Evidence]:
        """Return one Evidence per match occurrence."""


class RuleSetMatcher:
    """Evaluate each rule's declarative matcher against every changed file."""

    def match(self, change_set: ChangeSet, rule_set: RuleSet) -> list[Evidence]:
        evidence: list[Evidence] = []
        all_paths = change_set.paths
        for changed in change_set.files:
            lines = changed.reviewable_lines()
            for rule in rule_set.rules:
                evidence.extend(_match_rule(rule, changed, lines, all_paths))
        logger.debug(
            "matched {} evidence record(s) across {} file(s) and {} rule(s)",
            len(evidence),
            len(change_set.files),
            len(rule_set.rules),
        )
        return sort_evidence(evidence)


class ExternalCommandMatcher:
    """Run an external command that reports evidence as a JSON array.

    The command receives the reviewed paths as trailing arguments and must print
    objects with ``file``, ``start_line``, ``rule_id`` and optionally ``end_line``,
    ``snippet`` and ``partial``.
    """

    def __init__(self, command: Sequence[str], *, cwd: Path, timeout: float = 120.0) -> None:
        if not command:
            raise ValueError("external matcher command must not be empty")
        self.command = list(command)
        self.cwd = cwd
        self.timeout = timeout

    def match(self, change_set: ChangeSet, rule_set: RuleSet) -> list[Evidence]:
        if change_set.is_empty:
            return []
        args = [*self.command, *change_set.paths]
        try:
            completed = run(
                args,
                cwd=self.cwd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise EvidenceSourceUnavailableError(
                f"external matcher exited with {exc.returncode}: {stderr or self.command[0]}"
            ) from exc
        except TimeoutExpired as exc:
            raise EvidenceSourceUnavailableError(
                f"external matcher timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise EvidenceSourceUnavailableError(
                f"cannot run external matcher {self.command[0]}: {exc}"
            ) from exc

        known_paths = set(change_set.paths)
        evidence = [
            item
            for item in parse_evidence_json(completed.stdout)
            if item.file in known_paths
        ]
        return sort_evidence(evidence)


class CompositeMatcher:
    """Concatenate the evidence of several matchers."""

    def __init__(self, matchers: Sequence[EvidenceMatcher]) -> None:
        self.matchers = list(matchers)

    def match(self, change_set: ChangeSet, rule_set: RuleSet) -> list[Evidence]:
        evidence: list[Evidence] = []
        for matcher in self.matchers:
            evidence.extend(matcher.match(change_set, rule_set))
        return sort_evidence(evidence)


def parse_evidence_json(text: str) -> list[Evidence]:
    """Decode the external matcher wire format."""
    try:
        payload = json.loads(text or "[]")
    except json.JSONDecodeError as exc:
        raise EvidenceSourceUnavailableError(
            f"external matcher produced invalid JSON: {exc}"
        ) from exc
    if not isinstance(payload, list):
        raise EvidenceSourceUnavailableError("external matcher output must be a JSON array")
    return [_evidence_from_item(item, index) for index, item in enumerate(payload)]


def sort_evidence(evidence: list[Evidence]) -> list[Evidence]:
    return sorted(
        evidence,
        key=lambda item: (item.file, item.line_range.start, item.line_range.end, item.rule_id),
    )


def _evidence_from_item(item: Any, index: int) -> Evidence:
    if not isinstance(item, dict):
        raise EvidenceSourceUnavailableError(f"external matcher item {index} is not an object")
    try:
        start = int(item["start_line"])
        end = int(item.get("end_line", start))
        return Evidence(
            file=str(item["file"]),
            line_range=LineRange(start, end),
            snippet=_clip(str(item.get("snippet", ""))),
            rule_id=str(item["rule_id"]),
            partial=bool(item.get("partial", False)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise EvidenceSourceUnavailableError(
            f"external matcher item {index} is malformed: {exc}"
        ) from exc


def _match_rule(
    rule: Rule,
    changed: ChangedFile,
    lines: list[tuple[int, str]],
    all_paths: list[str],
) -> list[Evidence]:
    matcher = rule.matcher
    if not path_selected(changed.path, includes=matcher.paths, excludes=matcher.exclude_paths):
        return []

    if isinstance(matcher, RegexMatcher):
        flags = re.IGNORECASE if matcher.ignore_case else 0
        compiled = re.compile(matcher.pattern, flags)
        found: list[Evidence] = []
        for lineno, text in lines:
            for _ in compiled.finditer(text):
                found.append(_evidence(rule, changed.path, lineno, text, matcher.heuristic))
        return found

    if isinstance(matcher, PathMatcher):
        return [
            _evidence(rule, changed.path, changed.first_line(), changed.path, matcher.heuristic)
        ]

    if isinstance(matcher, CompanionMatcher):
        return _match_companion(rule, matcher, changed, lines, all_paths)

    raise TypeError(f"unsupported matcher for rule {rule.id}: {matcher!r}")


def _match_companion(
    rule: Rule,
    matcher: CompanionMatcher,
    changed: ChangedFile,
    lines: list[tuple[int, str]],
    all_paths: list[str],
) -> list[Evidence]:
    # Only a diff tells us which other files changed alongside this one.
    if changed.diff_hunks is None:
        return []
    others = [path for path in all_paths if path != changed.path]
    if any(matches_any(path, matcher.requires) for path in others):
        return []

    if matcher.pattern is None:
        return [_evidence(rule, changed.path, changed.first_line(), changed.path, True)]

    compiled = re.compile(matcher.pattern)
    for lineno, text in lines:
        if compiled.search(text):
            return [_evidence(rule, changed.path, lineno, text, True)]
    return []


def _evidence(rule: Rule, path: str, lineno: int, text: str, partial: bool) -> Evidence:
    return Evidence(
        file=path,
        line_range=LineRange(lineno, lineno),
        snippet=_clip(text),
        rule_id=rule.id,
        partial=partial,
    )


def _clip(content: str, max_len: int = SNIPPET_MAX_LEN) -> str:
    stripped = content.strip()
    if len(stripped) <= max_len:
        return stripped
    return stripped[: max_len - 3] + "..."
