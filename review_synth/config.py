"""Configuration loading for review-synth."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from review_synth.context import ContextConstraint, ContextConstraints, constraint
from review_synth.models import SCOPE_KINDS
from review_synth.output import RENDER_FORMATS
from review_synth.taxonomy import Severity

CONFIG_FILENAMES = (".review-synth.toml", "review-synth.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("review_synth", "review-synth")
DEFAULT_SESSION_DIR = ".review-synth/reports"


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    scope: str = "pr"
    fail_on: Severity | None = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    rulesets: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    context: list[ContextConstraint] = field(default_factory=list)
    external_matcher: list[str] = field(default_factory=list)
    session_dir: str = DEFAULT_SESSION_DIR
    source: str | None = None

    def context_constraints(self) -> ContextConstraints:
        return ContextConstraints(tuple(self.context))

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "scope": self.scope,
            "fail_on": self.fail_on.value if self.fail_on is not None else None,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "rulesets": list(self.rulesets),
            "categories": list(self.categories),
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
            },
            "context": [
                {
                    "statement": item.statement,
                    "floor": item.floor.value,
                    "keywords": sorted(item.keywords),
                }
                for item in self.context
            ],
            "external_matcher": list(self.external_matcher),
            "session_dir": self.session_dir,
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "markdown"',
            'scope = "worktree"',
            'fail_on = "HIGH"',
            'include = ["src/**"]',
            'exclude = ["docs/**", "vendor/**"]',
            'rulesets = ["secrets", "data-integrity", "reliability", "logging"]',
            '# categories = ["Payments"]',
            'session_dir = ".review-synth/reports"',
            "# external_matcher = [\"my-linter\", \"--json\"]",
            "",
            "[rules]",
            "# enable = [\"SEC001\", \"DATA001\"]",
            'disable = ["LOG002"]',
            "",
            "[[context]]",
            'statement = "account balance >= 0"',
            'floor = "BLOCKER"',
            'keywords = ["money", "balance"]',
            "",
            "[[context]]",
            'statement = "99.9% uptime"',
            'floor = "HIGH"',
            'keywords = ["reliability", "timeout"]',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    rules_mapping = _as_table(mapping.get("rules"), "rules")

    raw_fail = mapping.get("fail_on")
    fail_on = Severity.parse(raw_fail, "fail_on") if raw_fail is not None else None

    return AppConfig(
        format=_as_choice(mapping.get("format", "human"), set(RENDER_FORMATS), "format"),
        scope=_as_choice(mapping.get("scope", "pr"), set(SCOPE_KINDS), "scope"),
        fail_on=fail_on,
        include=_as_str_list(mapping.get("include"), "include"),
        exclude=_as_str_list(mapping.get("exclude"), "exclude"),
        rulesets=_as_str_list(mapping.get("rulesets"), "rulesets"),
        categories=_as_str_list(mapping.get("categories"), "categories"),
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable"), "rules.enable"),
        rule_disable=_as_str_list(rules_mapping.get("disable"), "rules.disable"),
        context=_parse_context(mapping.get("context")),
        external_matcher=_as_str_list(mapping.get("external_matcher"), "external_matcher"),
        session_dir=_as_str(mapping.get("session_dir", DEFAULT_SESSION_DIR), "session_dir"),
        source=source,
    )


def _parse_context(value: Any) -> list[ContextConstraint]:
    items = _as_table_list(value, "context")
    parsed: list[ContextConstraint] = []
    for index, item in enumerate(items):
        field_name = f"context[{index}]"
        keywords = _as_str_list_or_none(item.get("keywords"), f"{field_name}.keywords")
        parsed.append(
            constraint(
                _as_str(item.get("statement"), f"{field_name}.statement"),
                Severity.parse(item.get("floor", "HIGH"), f"{field_name}.floor"),
                keywords,
            )
        )
    return parsed


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_table_list(value: Any, field_name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of tables")
    output: list[dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError(f"{field_name} must be a list of tables")
        output.append(item)
    return output


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any, field_name: str) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value, field_name)


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value
