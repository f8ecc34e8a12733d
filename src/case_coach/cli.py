"""
cli.py – Interactive CaseCoach session in the terminal
======================================================
Seeds the Apex Health Plan demo case (once), opens or resumes a learner
session and runs a chat loop through CoachingService.

    case-coach                        new session on the demo assignment
    case-coach --session <id>         resume a session
    case-coach --session <id> --reset clear its history and budget first
    python -m case_coach --join-code ABC123 --name "Dana"

In-loop commands: ``/reset`` clears the current session, ``/quit`` exits.
"""

from __future__ import annotations

import argparse
import logging
import sqlite3
from typing import Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from case_coach import database
from case_coach.config import get_settings
from case_coach.errors import (
    AssignmentNotFoundError,
    CaseCoachError,
    InputValidationError,
    TurnBudgetExhaustedError,
)
from case_coach.guardrails import GuardrailResult
from case_coach.models import Phase
from case_coach.service import CoachingService, TurnResponse

console = Console()
logger = logging.getLogger("case_coach")

_PHASE_STYLES = {
    Phase.CLARIFY:   ("Clarify",   "yellow"),
    Phase.CRITIQUE:  ("Critique",  "cyan"),
    Phase.DIRECTION: ("Direction", "green"),
    Phase.SAFETY:    ("Safety",    "red"),
}

_LEVEL_STYLES = {
    "weak":       "red",
    "developing": "yellow",
    "adequate":   "cyan",
    "strong":     "green",
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="case-coach",
        description="Socratic coaching gate in front of a simulated executive team.",
    )
    parser.add_argument("--db", help="SQLite database file (default: CASECOACH_DB_PATH)")
    parser.add_argument("--join-code", help="Join an assignment by code (default: the demo case)")
    parser.add_argument("--session", help="Resume an existing session id")
    parser.add_argument("--name", default="", help="Learner name stored on a new session")
    parser.add_argument("--reset", action="store_true", help="Clear the session before chatting")
    return parser.parse_args(argv)


# ─── Rendering ────────────────────────────────────────────────────────────────

def _render_banner(session_id: str, assignment: dict) -> None:
    table = Table(box=box.ROUNDED, show_header=False, padding=(0, 1))
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Assignment", assignment["title"])
    table.add_row("Join code", assignment["join_code"])
    table.add_row("Session", session_id)
    for key, value in get_settings().status_summary().items():
        table.add_row(key, value)
    console.print(Panel(table, title="[bold magenta]CaseCoach[/bold magenta]", border_style="magenta"))
    console.print("[dim]Type /reset to start over, /quit to exit.[/dim]\n")


def _render_rubric(rubric: dict[str, str]) -> Table:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Dimension")
    table.add_column("Level")
    for dim, label in rubric.items():
        style = _LEVEL_STYLES.get(label, "white")
        table.add_row(dim.replace("_", " ").title(), f"[{style}]{label.title()}[/{style}]")
    return table


def render_response(response: TurnResponse) -> None:
    title, colour = _PHASE_STYLES[response.phase]
    console.print(Panel(response.content, title=f"[bold]{title}[/bold]", border_style=colour))

    if response.rubric:
        console.print(_render_rubric(response.rubric))
    for question in response.questions:
        console.print(f"  [{colour}]?[/{colour}] {question}")

    for agent in response.agent_responses:
        subtitle = f"{agent.recommendation.value} · confidence {agent.confidence}"
        if agent.fallback:
            subtitle += " · fallback"
        console.print(Panel(
            agent.text,
            title=f"[bold]{agent.display_name}[/bold] [dim](authority {agent.authority_level})[/dim]",
            subtitle=subtitle,
            border_style="blue",
        ))
    if response.final_recommendation is not None:
        console.print(f"[bold]Final recommendation:[/bold] {response.final_recommendation.value}")
    if response.escalation_path:
        console.print(f"[dim]Escalation: {' | '.join(response.escalation_path)}[/dim]")

    if response.coaching_hint:
        console.print(f"[dim]Hint: {response.coaching_hint}[/dim]")
    for warning in response.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    if response.credits_warning:
        console.print(f"[bold yellow]{response.credits_warning}[/bold yellow]")
    else:
        console.print(f"[dim]{response.credits_remaining} turns remaining[/dim]")
    console.print()


# ─── Session setup ────────────────────────────────────────────────────────────

def _open_session(args: argparse.Namespace) -> tuple[str, dict]:
    if args.session:
        session = database.get_session(args.session)
        if session is None:
            raise CaseCoachError(f"Session '{args.session}' not found.")
        assignment = database.get_assignment(session["assignment_id"])
        if assignment is None:
            raise AssignmentNotFoundError(f"Assignment '{session['assignment_id']}' not found.")
        return args.session, assignment

    demo = database.seed_demo_data()
    code = args.join_code or demo["join_code"]
    assignment = database.get_assignment_by_join_code(code)
    if assignment is None:
        raise CaseCoachError(f"No active assignment with join code '{code}'.")
    return database.create_session(assignment["id"], args.name), assignment


def run_chat(service: CoachingService, session_id: str) -> None:
    while True:
        try:
            message = Prompt.ask("[bold cyan]You[/bold cyan]")
        except EOFError:
            break
        command = message.strip().lower()
        if command in ("/quit", "/exit"):
            break
        if command == "/reset":
            deleted = service.reset_session(session_id)
            console.print(f"[green]Session reset[/green] [dim]({deleted} messages cleared)[/dim]\n")
            continue

        try:
            with console.status("[bold blue]Thinking…"):
                response = service.handle_turn(session_id, message)
        except InputValidationError as exc:
            console.print(GuardrailResult(passed=False, violations=exc.violations).summary())
            continue
        except TurnBudgetExhaustedError as exc:
            console.print(f"[bold red]{exc}[/bold red]")
            break
        render_response(response)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    _configure_logging(settings.app.log_level)

    try:
        database.init_db(args.db or settings.app.db_path)
        session_id, assignment = _open_session(args)
        service = CoachingService(settings=settings)
        if args.reset:
            service.reset_session(session_id)
        _render_banner(session_id, assignment)
        run_chat(service, session_id)
    except CaseCoachError as exc:
        console.print(f"\n[bold red]Error:[/bold red] {exc}")
        return 1
    except sqlite3.Error:
        logger.exception("Database failure")
        console.print("\n[bold red]Something went wrong saving your turn. Please try again.[/bold red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    return 0
