"""
Typer CLI for the assessment engine.

Commands:
    assess run            - Replay a scripted session against a question bank
    assess validate-bank  - Load a question bank and report counts per subject and tier
    assess show-config    - Print the adaptive policy configuration

Usage:
    assess run --bank data/questions.json --script data/sample_session.json
    assess run --bank data/questions.json --lessons data/lessons.json --script s.json --json
    assess validate-bank data/questions.json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from assessment_engine.errors import AssessmentError
from assessment_engine.lesson_catalog import InMemoryLessonCatalog
from assessment_engine.models import Tier
from assessment_engine.question_bank import InMemoryQuestionBank
from assessment_engine.service import AssessmentService
from assessment_engine.session import AssessmentEngine
from config import Settings, get_settings

app = typer.Typer(
    help="Adaptive assessment engine: evaluate, adapt, detect, recommend",
    no_args_is_help=True,
)

console = Console()


def setup_logging(settings: Settings, verbose: bool = False) -> None:
    """Configure loguru sinks from settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def _load_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _build_service(bank_path: Path, lessons_path: Optional[Path], settings: Settings) -> AssessmentService:
    bank = InMemoryQuestionBank.from_file(bank_path)
    catalog = InMemoryLessonCatalog.from_file(lessons_path) if lessons_path else InMemoryLessonCatalog()
    return AssessmentService(AssessmentEngine.from_settings(settings, bank, catalog))


# ========================================
# RUN
# ========================================


@app.command("run")
def run(
    bank: Path = typer.Option(..., "--bank", "-b", exists=True, dir_okay=False, help="Question bank JSON"),
    script: Path = typer.Option(..., "--script", "-s", exists=True, dir_okay=False, help="Session script JSON"),
    lessons: Optional[Path] = typer.Option(
        None, "--lessons", "-l", exists=True, dir_okay=False, help="Lesson catalog JSON"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the results payload as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Replay a scripted session and print the results.

    The script holds a "session" object (the create payload) and a list of
    "responses". Each response answers the question currently issued unless it
    names a questionId.
    """
    settings = get_settings()
    setup_logging(settings, verbose)

    try:
        service = _build_service(bank, lessons, settings)
        data = _load_json(script)
        created = service.create_session(data.get("session", {}))
        results = _replay(service, created, data.get("responses", []), quiet=as_json)
    except AssessmentError as e:
        console.print(f"[red]✗[/red] {e.code}: {e}")
        raise typer.Exit(code=1)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗[/red] Could not read input: {e}")
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(results, indent=2, ensure_ascii=False))
        return
    _print_results(results["results"])


def _replay(service: AssessmentService, created: dict, responses: list[dict], quiet: bool) -> dict:
    assessment_id = created["assessment_id"]
    current = created["questions"][0] if created["questions"] else None

    table = Table(title=f"Session {assessment_id[:8]}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question", style="cyan")
    table.add_column("Tier")
    table.add_column("Correct", justify="center")
    table.add_column("Error")
    table.add_column("Quality", justify="right")
    table.add_column("Adjustment")

    for index, scripted in enumerate(responses, start=1):
        if current is None:
            logger.info("No question issued, stopping the replay")
            break
        payload = {"questionId": current["id"], **scripted, "assessmentId": assessment_id}
        outcome = service.submit_response(payload)
        evaluation = outcome["evaluation"]
        adjustment = outcome["difficulty_adjustment"]
        table.add_row(
            str(index),
            payload["questionId"],
            adjustment["previous_tier"],
            "[green]✓[/green]" if evaluation["correct"] else "[red]✗[/red]",
            evaluation["error_class"],
            f"{evaluation['quality_score']:.2f}",
            adjustment["direction"] if adjustment["direction"] == "hold"
            else f"{adjustment['direction']} -> {adjustment['new_tier']}",
        )
        current = outcome["next_question"]

    if not quiet:
        console.print(table)
    return service.complete_session({"assessmentId": assessment_id})


def _print_results(results: dict) -> None:
    console.print(Panel(results["summary"], title="Results", border_style="green"))

    if results["difficulties"]:
        table = Table(title="Difficulty signals (not a diagnosis)")
        table.add_column("Type", style="yellow")
        table.add_column("Severity")
        table.add_column("Confidence", justify="right")
        table.add_column("Indicators")
        for finding in results["difficulties"]:
            table.add_row(
                finding["type"],
                finding["severity"],
                f"{finding['confidence']:.2f}",
                ", ".join(finding["supporting_indicators"]),
            )
        console.print(table)

    table = Table(title="Recommendations")
    table.add_column("Lesson", style="cyan")
    table.add_column("Kind")
    table.add_column("Priority")
    table.add_column("Minutes", justify="right")
    table.add_column("Rationale")
    for rec in results["recommendations"]:
        table.add_row(
            rec["lesson_id"],
            rec["kind"],
            rec["priority"],
            str(rec["estimated_time_minutes"]),
            rec["rationale"],
        )
    console.print(table)

    if results["learning_path"]:
        console.print("[bold]Learning path:[/bold] " + " → ".join(results["learning_path"]))


# ========================================
# VALIDATE-BANK
# ========================================


@app.command("validate-bank")
def validate_bank(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Question bank JSON"),
) -> None:
    """Load a question bank and report question counts per subject and tier."""
    setup_logging(get_settings())

    try:
        bank = InMemoryQuestionBank.from_file(path)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗[/red] Could not read {path}: {e}")
        raise typer.Exit(code=1)

    if bank.total_questions == 0:
        console.print(f"[red]✗[/red] No valid questions in {path}")
        raise typer.Exit(code=1)

    table = Table(title=f"Question bank ({bank.total_questions} questions)")
    table.add_column("Subject", style="cyan")
    for tier in Tier:
        table.add_column(tier.value.title(), justify="right")
    table.add_column("Total", justify="right", style="bold")

    for subject in bank.subjects:
        counts = bank.count_by_tier(subject)
        row = [str(counts[tier.value]) for tier in Tier]
        table.add_row(subject, *row, str(sum(counts.values())))
        missing = [tier for tier, count in counts.items() if count == 0]
        if missing:
            logger.warning(f"{subject}: no {', '.join(missing)} questions")

    console.print(table)
    console.print(f"[green]✓[/green] {bank.total_questions} questions in {len(bank.subjects)} subjects")


@app.command("show-config")
def show_config() -> None:
    """Print the adaptive policy configuration."""
    typer.echo(json.dumps(get_settings().get_engine_config(), indent=2))


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
