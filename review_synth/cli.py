"""CLI entrypoint for review-synth."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from review_synth import __version__
from review_synth.config import AppConfig, default_config_template, load_app_config
from review_synth.context import ContextConstraints, parse_declarations
from review_synth.errors import ReviewSynthError
from review_synth.matcher import (
    CompositeMatcher,
    EvidenceMatcher,
    ExternalCommandMatcher,
    RuleSetMatcher,
)
from review_synth.models import SCOPE_KINDS, Report
from review_synth.output import RENDER_FORMATS, render
from review_synth.pipeline import ReviewRequest, run_review
from review_synth.rules import (
    RuleSet,
    build_ruleset,
    builtin_ruleset_names,
    list_rule_info,
    load_builtin_ruleset,
    resolve_rulesets,
)
from review_synth.sink import SessionDirectorySink
from review_synth.taxonomy import CategoryTaxonomy, Severity

app = typer.Typer(
    name="review-synth",
    no_args_is_help=True,
    help="Classify review findings and synthesize a merge recommendation.",
)

ERROR_EXIT_CODE = 2


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """Root command callback."""
    _ = version


@app.command("review")
def review_command(
    scope: Annotated[
        str | None,
        typer.Option(help="Scope kind: pr|worktree|diff|file|repo.", show_default="pr"),
    ] = None,
    target: Annotated[
        list[str] | None,
        typer.Option(help="PR number, BASE..HEAD range, or file path (repeatable)."),
    ] = None,
    path: Annotated[
        list[str] | None, typer.Option("--path", help="Include glob pattern.")
    ] = None,
    exclude: Annotated[list[str] | None, typer.Option(help="Exclude glob pattern.")] = None,
    context: Annotated[
        list[str] | None,
        typer.Option(help="Declared constraint '[FLOOR:] statement' (repeatable)."),
    ] = None,
    ruleset: Annotated[
        list[str] | None,
        typer.Option(help="Builtin ruleset name or TOML path (repeatable)."),
    ] = None,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[
        str | None,
        typer.Option(help="Output format: human|json|markdown.", show_default="human"),
    ] = None,
    save: Annotated[
        bool, typer.Option("--save", help="Also write the report to the session directory.")
    ] = False,
    fail_on: Annotated[
        str | None,
        typer.Option(help="Exit 1 if any finding is at or above this severity."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log pipeline progress.")] = False,
) -> None:
    """Review a scope and print the synthesized report."""
    _configure_logging(verbose)
    app_config = _load_config_or_raise(repo, config_file)

    output_format = (format or app_config.format).lower()
    if output_format not in RENDER_FORMATS:
        choices = ", ".join(RENDER_FORMATS)
        raise typer.BadParameter(f"format must be one of: {choices}", param_hint="--format")
    resolved_scope = (scope or app_config.scope).lower()
    if resolved_scope not in SCOPE_KINDS:
        choices = ", ".join(SCOPE_KINDS)
        raise typer.BadParameter(f"scope must be one of: {choices}", param_hint="--scope")
    threshold = _parse_severity_or_raise(fail_on, "--fail-on") or app_config.fail_on

    try:
        declared = parse_declarations(context or [])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--context") from exc
    constraints = ContextConstraints(tuple(app_config.context) + declared.constraints)

    rulesets = _resolve_rulesets_or_raise(ruleset or app_config.rulesets, repo=repo)
    active = _build_configured_ruleset_or_raise(rulesets, app_config)
    taxonomy = CategoryTaxonomy()
    taxonomy.extend(app_config.categories)

    request = ReviewRequest(
        rule_set=active,
        scope=resolved_scope,
        target=_single_or_many(target),
        path_filters=path if path is not None else app_config.include,
        context=constraints,
        taxonomy=taxonomy,
    )
    try:
        report = run_review(
            request,
            repo=repo,
            exclude=exclude if exclude is not None else app_config.exclude,
            matcher=_build_matcher(app_config, repo),
        )
    except ReviewSynthError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE) from exc

    typer.echo(render(report, output_format))

    if save:
        session_dir = Path(app_config.session_dir)
        if not session_dir.is_absolute():
            session_dir = repo / session_dir
        sink = SessionDirectorySink(session_dir, output_format=output_format)
        location = sink.write(report)
        typer.echo(f"Report saved to: {location}", err=True)

    if threshold is not None and _reaches_threshold(report, threshold):
        raise typer.Exit(code=1)


@app.command("rulesets")
def rulesets_command(
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """List builtin rulesets."""
    output_format = _human_or_json(format)
    loaded = [load_builtin_ruleset(name) for name in builtin_ruleset_names()]

    if output_format == "json":
        payload = {
            "rulesets": [
                {
                    "name": item.name,
                    "description": item.description,
                    "rule_count": len(item.rules),
                }
                for item in loaded
            ]
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Builtin rulesets:"]
    for item in loaded:
        lines.append(f"- {item.name} ({len(item.rules)} rules) - {item.description}")
    typer.echo("\n".join(lines))


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    ruleset: Annotated[
        list[str] | None,
        typer.Option(help="Builtin ruleset name or TOML path (repeatable)."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List rules of the active rulesets."""
    output_format = _human_or_json(format)
    app_config = _load_config_or_raise(repo, config_file)
    rulesets = _resolve_rulesets_or_raise(ruleset or app_config.rulesets, repo=repo)
    active = _build_configured_ruleset_or_raise(rulesets, app_config)
    rule_info = list_rule_info(rulesets, active)

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "ruleset": item.ruleset,
                    "category": item.category,
                    "description": item.description,
                    "default_severity": item.default_severity,
                    "default_confidence": item.default_confidence,
                    "non_negotiable": item.non_negotiable,
                    "matcher": item.matcher_kind,
                    "enabled": item.enabled,
                }
                for item in rule_info
            ],
            "meta": {"config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in rule_info:
        status = "enabled" if item.enabled else "disabled"
        pinned = ", non-negotiable" if item.non_negotiable else ""
        lines.append(
            f"- {item.rule_id} [{status}] {item.default_severity}{pinned}"
            f" ({item.category}) - {item.description}"
        )
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _human_or_json(format)
    app_config = _load_config_or_raise(repo, config_file)
    rulesets = _resolve_rulesets_or_raise(app_config.rulesets, repo=repo)
    active = _build_configured_ruleset_or_raise(rulesets, app_config)
    payload = app_config.to_dict()
    payload["active_rule_ids"] = list(active.rule_ids)

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- scope: {payload['scope']}",
        f"- fail_on: {payload['fail_on']}",
        f"- include: {payload['include']}",
        f"- exclude: {payload['exclude']}",
        f"- rulesets: {payload['rulesets'] or 'all builtin'}",
        f"- categories: {payload['categories']}",
        f"- session_dir: {payload['session_dir']}",
        f"- rules.enable: {payload['rules']['enable']}",
        f"- rules.disable: {payload['rules']['disable']}",
        f"- context: {[item['statement'] for item in payload['context']]}",
        f"- active_rule_ids: {payload['active_rule_ids']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".review-synth.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".review-synth.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file and report active rules."""
    output_format = _human_or_json(format)
    app_config = _load_config_or_raise(repo, config_file)
    rulesets = _resolve_rulesets_or_raise(app_config.rulesets, repo=repo)
    active = _build_configured_ruleset_or_raise(rulesets, app_config)
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": list(active.rule_ids),
        "context_constraints": len(app_config.context),
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- active_rule_ids: {payload['active_rule_ids']}",
                f"- context_constraints: {payload['context_constraints']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")
    logger.enable("review_synth")


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _resolve_rulesets_or_raise(specs: list[str], *, repo: Path) -> list[RuleSet]:
    try:
        return resolve_rulesets(specs, repo=repo.resolve())
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--ruleset") from exc


def _build_configured_ruleset_or_raise(rulesets: list[RuleSet], app_config: AppConfig) -> RuleSet:
    try:
        return build_ruleset(
            rulesets,
            enabled_rule_ids=app_config.rule_enable,
            disabled_rule_ids=app_config.rule_disable,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.rules") from exc


def _build_matcher(app_config: AppConfig, repo: Path) -> EvidenceMatcher:
    if not app_config.external_matcher:
        return RuleSetMatcher()
    external = ExternalCommandMatcher(app_config.external_matcher, cwd=repo.resolve())
    return CompositeMatcher([RuleSetMatcher(), external])


def _parse_severity_or_raise(raw: str | None, field_name: str) -> Severity | None:
    if raw is None:
        return None
    try:
        return Severity.parse(raw, field_name)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=field_name) from exc


def _reaches_threshold(report: Report, threshold: Severity) -> bool:
    return any(finding.severity.rank >= threshold.rank for finding in report.findings)


def _single_or_many(values: list[str] | None) -> str | list[str] | None:
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)


def _human_or_json(raw: str) -> str:
    output_format = raw.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format
