"""
Exam CLI - terminal front end for the exam state core.

Usage:
    tma-exam status              # Session liveness, profile, theme
    tma-exam login --role student
    tma-exam login --init-data "<platform init data>"
    tma-exam logout
    tma-exam theme dark
    tma-exam take 1              # Start test 1, answer, submit

Session, profile and theme survive between invocations through the
persisted store. In mock mode (TMA_USE_MOCK_DATA=true, the default) the
backend lives inside the process, so ``take`` logs in as the demo student
before starting.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated, Any, Awaitable, Callable, TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config import Settings, get_settings
from src.core.api_client import ExamApiClient
from src.core.exceptions import ExamStateError
from src.core.models import AnswerInput, NotificationKind, StudentQuestion, Theme
from src.exam.access_guard import AccessGuard, AccessOutcome
from src.exam.exam_service import ExamService
from src.store.app_store import AppStore, create_store

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="tma-exam",
    help="Exam client - sessions, attempts and notifications from the terminal",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

T = TypeVar("T")

KIND_STYLES = {
    NotificationKind.INFO: "cyan",
    NotificationKind.SUCCESS: "green",
    NotificationKind.WARNING: "yellow",
    NotificationKind.ERROR: "red",
}


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def _print_notifications(store: AppStore) -> None:
    """Render and dismiss whatever the notification channel holds."""
    for notification in store.notifications.state.notifications:
        style = KIND_STYLES.get(notification.kind, "white")
        console.print(f"[{style}]{notification.kind.value.upper()}[/] {notification.message}")
        store.notifications.dismiss_notification(notification.id)


def _run(settings: Settings, action: Callable[[ExamService], Awaitable[T]]) -> T:
    async def runner() -> T:
        store = create_store(settings)
        async with ExamApiClient(settings) as client:
            service = ExamService.connect(store, client)
            service.expire_stale_session()
            try:
                return await action(service)
            finally:
                _print_notifications(store)
                store.close()

    return asyncio.run(runner())


# =============================================================================
# Session Commands
# =============================================================================


@app.command()
def status() -> None:
    """Show session liveness, cached profile and theme."""
    settings = get_settings()
    store = create_store(settings)
    state = store.state

    table = Table(title="Exam Client Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    alive = store.session.is_alive()
    table.add_row("Session", "Active" if alive else ("Expired" if state.session.has_token else "None"))
    table.add_row(
        "Expires At",
        state.session.expires_at.isoformat() if state.session.expires_at else "-",
    )
    profile = state.profile.profile
    table.add_row("User", f"{profile.display_name} ({profile.role})" if profile else "-")
    table.add_row("Theme", state.ui.theme.value)
    table.add_row("Backend", "mock" if settings.use_mock_data else settings.api_base_url)
    table.add_row("Storage", str(settings.storage_dir))

    console.print(table)


@app.command()
def login(
    role: Annotated[
        str, typer.Option("--role", "-r", help="Role hint: student or teacher")
    ] = "student",
    init_data: Annotated[
        str | None, typer.Option("--init-data", help="Platform init data")
    ] = None,
    username: Annotated[
        str | None, typer.Option("--username", "-u", help="Log in with credentials")
    ] = None,
    password: Annotated[
        str | None, typer.Option("--password", "-p", help="Password for --username")
    ] = None,
) -> None:
    """Log in and persist the session."""
    if role not in ("student", "teacher"):
        console.print(f"[red]Unknown role: {role}[/]")
        raise typer.Exit(1)

    settings = get_settings()

    async def action(service: ExamService) -> str | None:
        if username:
            ok = await service.login_with_credentials(username, password or "", role)
        else:
            fallback = "mock" if settings.use_mock_data else ""
            ok = await service.login_with_telegram(init_data or fallback, role)
        return None if ok else (service.store.session.state.error or "unknown error")

    error = _run(settings, action)
    if error:
        console.print(f"[red]Login failed: {error}[/]")
        raise typer.Exit(1)
    console.print("[green]✓ Logged in[/]")


@app.command()
def logout() -> None:
    """Log out. Local state is cleared even if the backend is unreachable."""
    _run(get_settings(), lambda service: service.logout())
    console.print("[green]✓ Logged out[/]")


@app.command()
def theme(
    value: Annotated[Theme, typer.Argument(help="light or dark")],
) -> None:
    """Persist the UI theme."""
    store = create_store(get_settings())
    store.notifications.set_theme(value)
    console.print(f"[green]Theme set to {value.value}[/]")


# =============================================================================
# Attempt Commands
# =============================================================================


def _prompt_answer(question: StudentQuestion) -> AnswerInput:
    console.print(f"\n[bold]{question.prompt}[/] [dim]({question.type}, {question.points:g} pts)[/]")
    for option in question.options:
        console.print(f"  [cyan]{option.id}[/] {option.text}")

    if question.type == "single":
        choice = typer.prompt("Option id", type=int)
        return AnswerInput(question_id=question.id, selected_option_ids=[choice])
    if question.type == "multiple":
        raw = typer.prompt("Option ids (comma separated)", default="")
        ids = [int(part) for part in raw.split(",") if part.strip()]
        return AnswerInput(question_id=question.id, selected_option_ids=ids)
    if question.type == "numeric":
        return AnswerInput(question_id=question.id, numeric_answer=typer.prompt("Number", type=float))
    return AnswerInput(question_id=question.id, text_answer=typer.prompt("Answer", default=""))


def _print_result(result: dict[str, Any]) -> None:
    table = Table(title=f"Result: {result.get('testTitle', 'Attempt')}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Score", f"{result.get('score', 0)} / {result.get('maxScore', 0)}")
    table.add_row("Percentage", f"{result.get('percentage', 0)}%")
    table.add_row("Passed", "✓ Yes" if result.get("passed") else "✗ No")
    console.print(table)


@app.command()
def take(
    test_id: Annotated[int, typer.Argument(help="Test to attempt")],
) -> None:
    """Start an attempt, answer every question, submit."""
    settings = get_settings()

    async def action(service: ExamService) -> dict[str, Any] | None:
        if service.client.mock_backend is not None:
            await service.login_with_telegram("mock", "student")
        else:
            await service.hydrate_profile()

        decision = AccessGuard(service.store).evaluate(["student"])
        if decision.outcome == AccessOutcome.REDIRECT_LOGIN:
            console.print("[yellow]Not logged in. Run 'tma-exam login' first.[/]")
            return None
        if not decision.granted:
            console.print("[yellow]Only students can take tests.[/]")
            return None

        bundle = await service.start_attempt(test_id)
        if bundle is None:
            console.print(f"[red]{service.store.attempt.state.error or 'Could not start attempt'}[/]")
            return None

        console.print(
            f"[bold cyan]{bundle.test.title}[/] - attempt {bundle.attempt.id}, "
            f"due {bundle.attempt.expires_at:%H:%M:%S}"
        )
        for question in bundle.test.questions:
            service.store.attempt.set_answer(_prompt_answer(question))

        try:
            return await service.submit_attempt()
        except ExamStateError as e:
            console.print(f"[red]{e}[/]")
            return None

    result = _run(settings, action)
    if result is None:
        raise typer.Exit(1)
    _print_result(result)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
) -> None:
    """
    Exam client - session and attempt state from the terminal.

    \b
    Quick Start:
      tma-exam login --role student
      tma-exam take 1
      tma-exam status
    """
    configure_logging("DEBUG" if verbose else get_settings().log_level)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
