"""CLI interface using Typer."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from dietcoach.config import get_settings
from dietcoach.db import (
    SqliteGeneratorStorage,
    SqliteNutritionLookup,
    SqliteRuleStorage,
    SqliteUsageHistory,
    get_db,
)
from dietcoach.errors import DietCoachError
from dietcoach.rules.models import RuleSet

app = typer.Typer(
    help="Diet rule compliance checks and meal plan generation",
    no_args_is_help=True,
)
console = Console()

rules_app = typer.Typer(help="Inspect and import diet rule profiles")
app.add_typer(rules_app, name="rules")


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict, file=None) -> None:
    """Output JSON response to stdout or file."""
    json_str = json.dumps(response, indent=2)
    if file:
        file.write(json_str)
    else:
        print(json_str)


def setup_logging(verbose: bool) -> None:
    """Attach a RichHandler to the package logger (idempotent)."""
    level_name = "DEBUG" if verbose else get_settings().logging.level
    level = getattr(logging, level_name.upper(), logging.WARNING)
    package_logger = logging.getLogger("dietcoach")
    package_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def fail(command: str, error: DietCoachError, json_output: bool) -> None:
    """Report a dietcoach error and exit with status 1."""
    if json_output:
        output_json({
            "success": False,
            "command": command,
            "errors": [error.message],
            "error_code": error.code,
            "details": error.details,
        })
    else:
        console.print(f"[red]{error.message}[/red]")
        for key, value in error.details.items():
            console.print(f"  [dim]{key}: {value}[/dim]")
    raise typer.Exit(1)


def resolve_ruleset(
    profile_file: Optional[Path],
    diet: Optional[str],
    user: Optional[str],
    inflamed: bool,
) -> Optional[RuleSet]:
    """Load a rule set from a YAML file, a stored diet profile or a user's profile."""
    from dietcoach.rules.loader import load_ruleset, load_ruleset_for_user
    from dietcoach.rules.profiles import load_ruleset_from_yaml

    if profile_file:
        if not profile_file.exists():
            console.print(f"[red]Profile file not found: {profile_file}[/red]")
            raise typer.Exit(1)
        try:
            return load_ruleset_from_yaml(profile_file, is_inflamed=inflamed)
        except (ValueError, yaml.YAMLError) as exc:
            console.print(f"[red]Invalid rule profile {profile_file}: {exc}[/red]")
            raise typer.Exit(1)

    if diet or user:
        db = get_db()
        db.initialize_schema()
        storage = SqliteRuleStorage(db)
        if diet:
            return load_ruleset(storage, diet, is_inflamed=inflamed)
        ruleset = load_ruleset_for_user(storage, user)
        if ruleset is None:
            console.print(f"[red]User {user} has no active diet profile[/red]")
            raise typer.Exit(1)
        return ruleset

    return None


def parse_start(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Diet rule compliance checks and meal plan generation."""
    setup_logging(verbose)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def init(
    db_path: Optional[Path] = typer.Option(None, "--db", help="Custom database path"),
    seed: bool = typer.Option(
        False, "--seed", help="Insert built-in templates, pools and name patterns"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Initialize the database schema."""
    from dietcoach.db.connection import DatabaseConnection
    from dietcoach.generator.models import GeneratorLimits

    db = DatabaseConnection(db_path) if db_path else get_db()
    try:
        db.initialize_schema()
        if seed:
            limits = GeneratorLimits(**vars(get_settings().generator))
            SqliteGeneratorStorage(db).seed_defaults(limits)
    except DietCoachError as exc:
        fail("init", exc, json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "init",
            "data": {"db_path": str(db.db_path), "seeded": seed},
            "human_summary": f"Initialized database at {db.db_path}",
        })
        return

    console.print(f"[green]Database initialized at:[/green] {db.db_path}")
    if seed:
        console.print("[green]Seeded default templates, pools and name patterns[/green]")


@app.command()
def check(
    ingredients: list[str] = typer.Argument(..., help="Ingredient names to check"),
    profile_file: Optional[Path] = typer.Option(
        None, "--profile", "-p", help="YAML rule profile"
    ),
    diet: Optional[str] = typer.Option(None, "--diet", "-d", help="Stored diet profile id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Use this user's diet profile"),
    inflamed: bool = typer.Option(
        False, "--inflamed", help="Also drop inflammation-sensitive categories"
    ),
    week: bool = typer.Option(False, "--week", help="Check against weekly quotas"),
    output_format: Optional[str] = typer.Option(
        None, "--format", "-f", help="Output format: table, json, markdown"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON envelope"),
) -> None:
    """Check ingredient names against a diet's rules."""
    from dietcoach.export.formatters import get_formatter
    from dietcoach.rules.evaluator import evaluate_names

    if not (profile_file or diet or user):
        console.print("[red]Provide --profile, --diet or --user[/red]")
        raise typer.Exit(1)

    try:
        ruleset = resolve_ruleset(profile_file, diet, user, inflamed)
    except DietCoachError as exc:
        fail("check", exc, json_output)

    result = evaluate_names(ruleset, ingredients, per_day=not week)

    if json_output:
        output_json({
            "success": result.ok,
            "command": "check",
            "data": {"diet_profile_id": ruleset.diet_profile_id, **result.to_dict()},
            "human_summary": result.summary,
        })
    else:
        fmt = output_format or get_settings().defaults.output_format
        try:
            formatter = get_formatter(fmt, console)
        except ValueError as exc:
            raise typer.BadParameter(str(exc))
        rendered = formatter.format_evaluation(result)
        if rendered is not None:
            print(rendered)

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def generate(
    days: int = typer.Option(7, "--days", "-n", min=1, help="Number of days to plan"),
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)"),
    diet_key: str = typer.Option("default", "--diet", "-d", help="Generator diet key"),
    seed: int = typer.Option(0, "--seed", help="Retry seed; change it for an alternative plan"),
    profile_file: Optional[Path] = typer.Option(
        None, "--profile", "-p", help="YAML rule profile used to pre-filter pools"
    ),
    rules_diet: Optional[str] = typer.Option(
        None, "--rules", help="Stored diet profile used to pre-filter pools"
    ),
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-x", help="Ingredient term to exclude. Repeatable."
    ),
    strict_variety: bool = typer.Option(
        False, "--strict-variety", help="Fail when weekly variety targets are not met"
    ),
    record: bool = typer.Option(
        False, "--record", help="Add the plan's picks to the usage history"
    ),
    output_format: Optional[str] = typer.Option(
        None, "--format", "-f", help="Output format: table, json, markdown"
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Also write the plan JSON to this file"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON envelope"),
) -> None:
    """Generate a meal plan."""
    from dietcoach.export.formatters import get_formatter
    from dietcoach.generator.config_loader import load_generator_config
    from dietcoach.generator.definitions import default_config, default_pools
    from dietcoach.generator.models import GeneratorLimits, PlanRequest
    from dietcoach.generator.pools import filter_pools_by_ruleset, merge_pool_rows, sanitize_pools
    from dietcoach.generator.synthesizer import synthesize
    from dietcoach.rules.evaluator import evaluate_plan
    from dietcoach.validation.advisor import AdvisorConfig, get_tuning_suggestions
    from dietcoach.validation.sanity import validate_plan
    from dietcoach.validation.variety import (
        VarietyTargets,
        build_variety_scorecard,
        raise_if_variety_targets_not_met,
    )

    settings = get_settings()
    start_date = parse_start(start)
    fmt = output_format or settings.defaults.output_format
    if not json_output and fmt not in ("table", "json", "markdown"):
        raise typer.BadParameter(f"Unknown output format: {fmt}")

    db = get_db()
    nutrition = None
    usage_history = None
    try:
        ruleset = resolve_ruleset(profile_file, rules_diet, None, False)

        use_stored = db.table_exists("meal_templates") and db.get_table_count("meal_templates") > 0
        if use_stored:
            config = load_generator_config(SqliteGeneratorStorage(db), diet_key, settings.generator)
            nutrition = SqliteNutritionLookup(db)
            usage_history = SqliteUsageHistory(db)
        else:
            config = default_config(GeneratorLimits(**vars(settings.generator)))
            if not json_output:
                console.print("[yellow]No stored templates; using built-in defaults[/yellow]")

        pools = merge_pool_rows(config.pool_rows, default_pools())
        pools, pool_metrics = sanitize_pools(pools, exclude or [])
        if ruleset is not None:
            pools = filter_pools_by_ruleset(pools, ruleset)

        request = PlanRequest.for_days(
            start_date, days, tuple(settings.defaults.meal_slots), diet_key
        )
        result = synthesize(
            request,
            config,
            pools,
            retry_seed=seed,
            nutrition=nutrition,
            usage_history=usage_history,
        )

        sanity = validate_plan(result.plan)
        scorecard = build_variety_scorecard(result.plan, VarietyTargets())
        suggestions = get_tuning_suggestions(
            result, sanity, AdvisorConfig.from_config(config, pools, diet_key)
        )
        rule_failures = {}
        if ruleset is not None:
            rule_failures = {
                day: r for day, r in evaluate_plan(ruleset, result.plan).items() if not r.ok
            }
        if strict_variety:
            raise_if_variety_targets_not_met(scorecard)
        if record and usage_history is not None:
            usage_history.record_plan(result.plan)
    except DietCoachError as exc:
        fail("generate", exc, json_output)

    data = {
        **result.to_dict(),
        "sanity": sanity.to_dict(),
        "variety": scorecard.to_dict(),
        "pool_sanitization": pool_metrics.to_dict(),
        "suggestions": [s.to_dict() for s in suggestions],
        "rule_failures": {day: r.to_dict() for day, r in rule_failures.items()},
    }

    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w") as f:
            output_json(data, f)

    summary = (
        f"Generated {result.plan.metadata.total_meals} meals over "
        f"{result.plan.metadata.total_days} days"
    )
    if json_output:
        output_json({"success": True, "command": "generate", "data": data, "human_summary": summary})
        return

    formatter = get_formatter(fmt, console)
    rendered = formatter.format_plan(result, sanity)
    if rendered is not None:
        print(rendered)

    if fmt == "table":
        for suggestion in suggestions:
            color = "yellow" if suggestion.severity.value == "warn" else "dim"
            console.print(f"[{color}]{suggestion.code}[/{color}] {suggestion.title}")
        for day, day_result in rule_failures.items():
            console.print(f"[red]{day}:[/red] {day_result.summary}")
        if output_file:
            console.print(f"[dim]Plan written to {output_file}[/dim]")


@app.command()
def validate(
    plan_file: Path = typer.Argument(..., help="Plan JSON file (from generate --output)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON envelope"),
) -> None:
    """Run sanity checks on a saved plan."""
    from dietcoach.generator.models import Plan
    from dietcoach.validation.sanity import validate_plan

    if not plan_file.exists():
        console.print(f"[red]Plan file not found: {plan_file}[/red]")
        raise typer.Exit(1)

    try:
        with open(plan_file) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON in {plan_file}: {exc}[/red]")
        raise typer.Exit(1)

    try:
        plan = Plan.from_dict(data.get("plan", data) if isinstance(data, dict) else data)
    except ValueError as exc:
        console.print(f"[red]Invalid plan file {plan_file}: {exc}[/red]")
        raise typer.Exit(1)

    sanity = validate_plan(plan)
    summary = (
        "Plan passed all sanity checks"
        if sanity.ok
        else f"Plan has {len(sanity.issues)} sanity issue(s)"
    )

    if json_output:
        output_json({
            "success": sanity.ok,
            "command": "validate",
            "data": sanity.to_dict(),
            "human_summary": summary,
        })
    elif sanity.ok:
        console.print(f"[green]{summary}[/green]")
    else:
        table = Table(title=summary)
        table.add_column("Code", style="yellow")
        table.add_column("Date", style="cyan")
        table.add_column("Message")
        for issue in sanity.issues:
            table.add_row(issue.code.value, issue.date or "", issue.message)
        console.print(table)

    if not sanity.ok:
        raise typer.Exit(1)


# ============================================================================
# Rules subcommands
# ============================================================================


@rules_app.command("show")
def rules_show(
    profile_file: Optional[Path] = typer.Option(
        None, "--profile", "-p", help="YAML rule profile"
    ),
    diet: Optional[str] = typer.Option(None, "--diet", "-d", help="Stored diet profile id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Use this user's diet profile"),
    inflamed: bool = typer.Option(False, "--inflamed", help="Include inflammation-sensitive rules"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the rules of a diet profile in evaluation order."""
    if not (profile_file or diet or user):
        console.print("[red]Provide --profile, --diet or --user[/red]")
        raise typer.Exit(1)

    try:
        ruleset = resolve_ruleset(profile_file, diet, user, inflamed)
    except DietCoachError as exc:
        fail("rules show", exc, json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "rules show",
            "data": {
                "diet_profile_id": ruleset.diet_profile_id,
                "rules": [c.to_dict() for c in ruleset.constraints],
            },
            "human_summary": f"{len(ruleset)} rules for {ruleset.diet_profile_id}",
        })
        return

    if not len(ruleset):
        console.print(f"[yellow]No active rules for {ruleset.diet_profile_id}[/yellow]")
        return

    table = Table(title=f"Rules for {ruleset.diet_profile_id}")
    table.add_column("Priority", justify="right")
    table.add_column("Action", style="cyan")
    table.add_column("Category")
    table.add_column("Quota")
    table.add_column("Strictness")
    table.add_column("Terms", style="dim", max_width=50)

    for c in ruleset.constraints:
        quota = []
        if c.min_per_day is not None:
            quota.append(f">={c.min_per_day}/day")
        if c.min_per_week is not None:
            quota.append(f">={c.min_per_week}/week")
        if c.max_per_day is not None:
            quota.append(f"<={c.max_per_day}/day")
        if c.max_per_week is not None:
            quota.append(f"<={c.max_per_week}/week")
        table.add_row(
            str(c.priority),
            c.action.value.upper(),
            c.category_label,
            ", ".join(quota),
            c.strictness.value,
            ", ".join(c.terms),
        )
    console.print(table)


@rules_app.command("list")
def rules_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List stored diet profiles."""
    db = get_db()
    try:
        db.initialize_schema()
        profiles = SqliteRuleStorage(db).list_profiles()
    except DietCoachError as exc:
        fail("rules list", exc, json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "rules list",
            "data": {"profiles": profiles},
            "human_summary": f"{len(profiles)} diet profiles",
        })
        return

    if not profiles:
        console.print("[yellow]No diet profiles stored. Use 'dietcoach rules import'.[/yellow]")
        return

    table = Table(title="Diet profiles")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description", style="dim")
    for row in profiles:
        table.add_row(row["id"], row["name"], row.get("description") or "")
    console.print(table)


@rules_app.command("import")
def rules_import(
    profile_file: Path = typer.Argument(..., help="YAML rule profile"),
    assign_user: Optional[str] = typer.Option(
        None, "--assign", help="Make this the user's current diet profile"
    ),
    inflamed: bool = typer.Option(False, "--inflamed", help="Mark the assigned user as inflamed"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Store a YAML rule profile in the database."""
    if not profile_file.exists():
        console.print(f"[red]Profile file not found: {profile_file}[/red]")
        raise typer.Exit(1)

    try:
        with open(profile_file) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        console.print(f"[red]Invalid YAML in {profile_file}: {exc}[/red]")
        raise typer.Exit(1)

    db = get_db()
    storage = SqliteRuleStorage(db)
    try:
        db.initialize_schema()
        count = storage.save_profile(data)
        if assign_user:
            storage.assign_profile(assign_user, data["diet_profile_id"], inflamed)
    except ValueError as exc:
        console.print(f"[red]Invalid rule profile {profile_file}: {exc}[/red]")
        raise typer.Exit(1)
    except DietCoachError as exc:
        fail("rules import", exc, json_output)

    summary = f"Imported {count} rules for {data['diet_profile_id']}"
    if json_output:
        output_json({
            "success": True,
            "command": "rules import",
            "data": {"diet_profile_id": data["diet_profile_id"], "rules": count},
            "human_summary": summary,
        })
    else:
        console.print(f"[green]{summary}[/green]")
        if assign_user:
            console.print(f"Assigned to user {assign_user}")


if __name__ == "__main__":
    app()
