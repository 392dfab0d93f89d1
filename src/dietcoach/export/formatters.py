"""Output formatters for generated plans and rule evaluations."""

from __future__ import annotations

import json
from typing import Optional, Union

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dietcoach.generator.models import Plan, SynthesisResult
from dietcoach.rules.evaluator import PHASE_NAMES
from dietcoach.rules.models import EvaluationResult
from dietcoach.validation.sanity import SanityResult

OUTPUT_FORMATS = ("table", "json", "markdown")


def _ingredient_summary(meal) -> str:
    return ", ".join(
        f"{ref.display_name or ref.code} {ref.grams:.0f}g" for ref in meal.ingredient_refs
    )


class TableFormatter:
    """Format results as Rich tables for terminal display."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize the formatter.

        Args:
            console: Rich console for output. If None, creates a new one.
        """
        self.console = console or Console()

    def format_plan(
        self,
        result: Union[SynthesisResult, Plan],
        sanity: Optional[SanityResult] = None,
    ) -> None:
        """Print a plan (and its diagnostics, if any) to the console."""
        plan = result.plan if isinstance(result, SynthesisResult) else result
        meta = plan.metadata
        header = [
            f"[bold]MEAL PLAN[/bold] - diet: {meta.diet_key}",
            f"Days: {meta.total_days} | Meals: {meta.total_meals}",
        ]
        self.console.print(Panel("\n".join(header), title="Plan"))

        table = Table(title="Meals")
        table.add_column("Date", style="cyan")
        table.add_column("Slot")
        table.add_column("Meal", style="bold", max_width=40)
        table.add_column("Ingredients", max_width=60)
        table.add_column("kcal", justify="right")

        for day in plan.days:
            for meal in day.meals:
                kcal = f"{meal.macros.calories:.0f}" if meal.macros else "-"
                table.add_row(day.date, meal.slot, meal.name, _ingredient_summary(meal), kcal)
        self.console.print(table)

        if isinstance(result, SynthesisResult):
            q = result.quality
            self.console.print(
                f"[dim]Repeats avoided: {q.repeats_avoided} | forced: {q.repeats_forced} | "
                f"protein cap hits: {q.protein_repeats_forced} | "
                f"template cap hits: {q.template_repeats_forced}[/dim]"
            )

        if sanity is not None:
            if sanity.ok:
                self.console.print("[green]Sanity check passed[/green]")
            else:
                for issue in sanity.issues:
                    self.console.print(
                        f"[yellow]{issue.code.value}[/yellow] {issue.date or ''} {issue.message}"
                    )

    def format_evaluation(self, result: EvaluationResult) -> None:
        """Print an evaluation result with per-phase details."""
        color = "green" if result.ok else "red"
        self.console.print(Panel(f"[{color}]{result.summary}[/{color}]", title="Diet rules"))

        table = Table(title="Phases")
        table.add_column("Phase")
        table.add_column("Status", justify="center")
        table.add_column("Details", max_width=80)
        for phase in result.phase_results:
            status = "[green]OK[/green]" if phase.ok else "[red]FAIL[/red]"
            details = phase.violations + [f"(warning) {w}" for w in phase.warnings]
            table.add_row(
                f"{phase.phase} {PHASE_NAMES[phase.phase]}",
                status,
                "\n".join(details) or "-",
            )
        self.console.print(table)


class JSONFormatter:
    """Format results as JSON for programmatic use."""

    def format_plan(
        self,
        result: Union[SynthesisResult, Plan],
        sanity: Optional[SanityResult] = None,
    ) -> str:
        data = result.to_dict()
        if sanity is not None:
            data["sanity"] = sanity.to_dict()
        return json.dumps(data, indent=2)

    def format_evaluation(self, result: EvaluationResult) -> str:
        return json.dumps(result.to_dict(), indent=2)


class MarkdownFormatter:
    """Format results as Markdown for sharing or documentation."""

    def format_plan(
        self,
        result: Union[SynthesisResult, Plan],
        sanity: Optional[SanityResult] = None,
    ) -> str:
        plan = result.plan if isinstance(result, SynthesisResult) else result
        lines = [
            "# Meal Plan",
            "",
            f"**Diet:** {plan.metadata.diet_key}",
            f"**Days:** {plan.metadata.total_days}",
            "",
        ]
        for day in plan.days:
            lines.extend([f"## {day.date}", "", "| Slot | Meal | Ingredients |", "|------|------|-------------|"])
            for meal in day.meals:
                lines.append(f"| {meal.slot} | {meal.name} | {_ingredient_summary(meal)} |")
            lines.append("")

        if sanity is not None and not sanity.ok:
            lines.extend(["## Sanity issues", ""])
            for issue in sanity.issues:
                lines.append(f"- **{issue.code.value}** {issue.date or ''}: {issue.message}")

        return "\n".join(lines).rstrip() + "\n"

    def format_evaluation(self, result: EvaluationResult) -> str:
        lines = ["# Diet Rule Check", "", f"**Result:** {result.summary}", ""]
        for phase in result.phase_results:
            mark = "ok" if phase.ok else "FAILED"
            lines.append(f"## Phase {phase.phase} {PHASE_NAMES[phase.phase]} ({mark})")
            for violation in phase.violations:
                lines.append(f"- {violation}")
            for warning in phase.warnings:
                lines.append(f"- (warning) {warning}")
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def get_formatter(
    output_format: str, console: Optional[Console] = None
) -> Union[TableFormatter, JSONFormatter, MarkdownFormatter]:
    """Return the formatter for 'table', 'json' or 'markdown'.

    Raises:
        ValueError: On an unknown format name
    """
    if output_format == "table":
        return TableFormatter(console)
    elif output_format == "json":
        return JSONFormatter()
    elif output_format == "markdown":
        return MarkdownFormatter()
    else:
        raise ValueError(f"Unknown output format: {output_format}")
