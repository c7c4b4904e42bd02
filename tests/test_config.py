"""Tests for config file discovery and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from review_synth.config import AppConfig, default_config_template, load_app_config
from review_synth.taxonomy import Severity


def _write(path: Path, *lines: str) -> None:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_defaults_without_any_config(tmp_path: Path) -> None:
    config = load_app_config(tmp_path)
    assert config == AppConfig()
    assert config.format == "human"
    assert config.scope == "pr"
    assert config.fail_on is None
    assert config.rule_enable is None
    assert not config.context_constraints()


def test_dot_file_takes_precedence_over_pyproject(tmp_path: Path) -> None:
    _write(tmp_path / "pyproject.toml", "[tool.review_synth]", 'format = "json"')
    _write(
        tmp_path / ".review-synth.toml",
        'format = "markdown"',
        'scope = "worktree"',
        'fail_on = "medium"',
        'include = ["src/**"]',
        'rulesets = ["secrets"]',
        'categories = ["Payments"]',
        "",
        "[rules]",
        'enable = ["SEC001"]',
        'disable = ["SEC004"]',
    )

    config = load_app_config(tmp_path)
    assert config.format == "markdown"
    assert config.scope == "worktree"
    assert config.fail_on is Severity.MED
    assert config.include == ["src/**"]
    assert config.rulesets == ["secrets"]
    assert config.categories == ["Payments"]
    assert config.rule_enable == ["SEC001"]
    assert config.rule_disable == ["SEC004"]
    assert config.source == str(tmp_path.resolve() / ".review-synth.toml")


def test_pyproject_hyphenated_tool_key(tmp_path: Path) -> None:
    _write(
        tmp_path / "pyproject.toml",
        '[tool."review-synth"]',
        'format = "json"',
        "",
        '[tool."review-synth".rules]',
        'disable = ["DX001"]',
    )
    config = load_app_config(tmp_path)
    assert config.format == "json"
    assert config.rule_disable == ["DX001"]
    assert config.source == str(tmp_path.resolve() / "pyproject.toml")


def test_pyproject_without_tool_section_falls_back_to_defaults(tmp_path: Path) -> None:
    _write(tmp_path / "pyproject.toml", "[project]", 'name = "other"')
    assert load_app_config(tmp_path).source is None


def test_context_tables_become_constraints(tmp_path: Path) -> None:
    _write(
        tmp_path / "review-synth.toml",
        "[[context]]",
        'statement = "balance >= 0"',
        'floor = "BLOCKER"',
        'keywords = ["money"]',
        "",
        "[[context]]",
        'statement = "99.9% uptime"',
    )
    config = load_app_config(tmp_path)

    first, second = config.context
    assert (first.statement, first.floor, first.keywords) == (
        "balance >= 0",
        Severity.BLOCKER,
        frozenset({"money"}),
    )
    assert second.floor is Severity.HIGH
    assert second.keywords == frozenset({"uptime"})
    assert len(config.context_constraints().constraints) == 2


def test_explicit_config_path_relative_to_repo(tmp_path: Path) -> None:
    (tmp_path / "ci").mkdir()
    _write(tmp_path / "ci" / "review.toml", 'format = "json"')
    config = load_app_config(tmp_path, config_path=Path("ci/review.toml"))
    assert config.format == "json"


def test_explicit_missing_config_path_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="does not exist"):
        load_app_config(tmp_path, config_path=Path("nope.toml"))


@pytest.mark.parametrize(
    ("lines", "message"),
    [
        (['format = "xml"'], "format must be one of"),
        (['scope = "galaxy"'], "scope must be one of"),
        (['fail_on = "URGENT"'], "fail_on must be one of"),
        (['include = "src/**"'], "include must be a list of strings"),
        (["rules = 3"], "rules must be a table"),
        (['context = "x"'], "context must be a list of tables"),
        (["[[context]]", 'floor = "HIGH"'], r"context\[0\].statement must be a string"),
        (["[[context]]", 'statement = "x"', 'floor = "URGENT"'], "floor must be one of"),
        (["session_dir = 1"], "session_dir must be a string"),
        (["format = "], "Invalid TOML"),
    ],
)
def test_invalid_values_raise_value_error(
    tmp_path: Path, lines: list[str], message: str
) -> None:
    _write(tmp_path / ".review-synth.toml", *lines)
    with pytest.raises(ValueError, match=message):
        load_app_config(tmp_path)


def test_to_dict_round_trips_context_and_rules(tmp_path: Path) -> None:
    _write(
        tmp_path / ".review-synth.toml",
        'fail_on = "HIGH"',
        "[rules]",
        'disable = ["DX001"]',
        "[[context]]",
        'statement = "balance >= 0"',
        'keywords = ["Money"]',
    )
    payload = load_app_config(tmp_path).to_dict()
    assert payload["fail_on"] == "HIGH"
    assert payload["rules"] == {"enable": None, "disable": ["DX001"]}
    assert payload["context"] == [
        {"statement": "balance >= 0", "floor": "HIGH", "keywords": ["money"]}
    ]


def test_default_template_is_valid_config(tmp_path: Path) -> None:
    (tmp_path / ".review-synth.toml").write_text(default_config_template(), encoding="utf-8")
    config = load_app_config(tmp_path)
    assert config.format == "markdown"
    assert config.fail_on is Severity.HIGH
    assert [item.floor for item in config.context] == [Severity.BLOCKER, Severity.HIGH]
