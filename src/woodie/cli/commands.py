"""CLI commands for Woodie Campus.

Commands:
- init-db: create the SQLite schema
- serve: run the Web API with uvicorn
- add-user / deactivate-user: manage accounts
- add-problem: create a problem
- add-workbook / workbook-add-problem / workbook-remove-problem /
  workbook-reorder: build workbooks
- due: show a learner's review items due today
- jobs / run-job: inspect and run batch jobs
"""

import asyncio
import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from woodie.config import load_app_config
from woodie.core import review_repository
from woodie.core.scheduler import UnknownJobError, get_scheduler
from woodie.db.database import get_db_path, init_db
from woodie.db import RecordNotFoundError
from woodie.db.problems_repository import get_problem_by_id, insert_problem
from woodie.db.users_repository import deactivate_user as do_deactivate_user
from woodie.db.users_repository import get_user_by_id, insert_user
from woodie.db.workbooks_repository import (
    add_problem_to_workbook,
    get_workbook_by_id,
    insert_workbook,
    list_workbook_problem_ids,
    remove_problem_from_workbook,
    reorder_workbook_problems,
)

app = typer.Typer(
    name="woodie",
    help="Woodie Campus spaced-repetition review service.",
    no_args_is_help=True,
)

console = Console()


def _prepare_db(db: str | None) -> None:
    """Point the repositories at the requested database file."""
    init_db(Path(db).expanduser() if db else None)


# =============================================================================
# DATABASE AND SERVER
# =============================================================================


@app.command(name="init-db")
def init_db_command(
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create the database schema if it does not exist."""
    _prepare_db(db)
    console.print(f"[green]✓ Database ready[/green] [dim]{get_db_path()}[/dim]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    server = load_app_config().server
    uvicorn.run(
        "woodie.web.api:app",
        host=host or server.host,
        port=port or server.port,
        reload=reload,
    )


# =============================================================================
# USERS AND PROBLEMS
# =============================================================================


@app.command(name="add-user")
def add_user(
    username: str = typer.Argument(..., help="Login name"),
    email: str = typer.Argument(..., help="Email address"),
    role: str = typer.Option("student", "--role", "-r", help="admin, teacher or student"),
    full_name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create a user."""
    _prepare_db(db)
    try:
        user = insert_user(username=username, email=email, role=role, full_name=full_name)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    except sqlite3.IntegrityError:
        console.print(f"[red]✗ Username or email already exists: {username}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ User created[/green]")
    console.print(f"  [dim]id:[/dim]   {user.id}")
    console.print(f"  [dim]role:[/dim] {user.role}")


@app.command(name="deactivate-user")
def deactivate_user(
    user_id: int = typer.Argument(..., help="User ID"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Soft-delete a user."""
    _prepare_db(db)
    if not do_deactivate_user(user_id):
        console.print(f"[yellow]⚠ No active user with id {user_id}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ User {user_id} deactivated[/green]")


@app.command(name="add-problem")
def add_problem(
    title: str = typer.Argument(..., help="Problem title"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject"),
    content: str | None = typer.Option(None, "--content", "-c", help="Problem text (default: title)"),
    answer: str | None = typer.Option(None, "--answer", "-a", help="Correct answer"),
    problem_type: str = typer.Option(
        "short_answer", "--type", "-t", help="multiple_choice, true_false, short_answer, essay"
    ),
    difficulty: str = typer.Option("medium", "--difficulty", "-d", help="easy, medium, hard"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create a problem."""
    _prepare_db(db)
    try:
        problem = insert_problem(
            title=title,
            content=content or title,
            subject=subject,
            answer=answer,
            difficulty=difficulty,
            problem_type=problem_type,
        )
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Problem created[/green] [dim]id:[/dim] {problem.id}")


# =============================================================================
# WORKBOOKS
# =============================================================================


def _require_workbook(workbook_id: int) -> None:
    if get_workbook_by_id(workbook_id) is None:
        console.print(f"[red]✗ No workbook with id {workbook_id}[/red]")
        raise typer.Exit(code=1)


@app.command(name="add-workbook")
def add_workbook(
    title: str = typer.Argument(..., help="Workbook title"),
    description: str | None = typer.Option(None, "--description", help="Short description"),
    status: str = typer.Option("draft", "--status", help="draft, published or archived"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create an empty workbook."""
    _prepare_db(db)
    try:
        workbook = insert_workbook(title=title, description=description, status=status)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Workbook created[/green] [dim]id:[/dim] {workbook.id}")


@app.command(name="workbook-add-problem")
def workbook_add_problem(
    workbook_id: int = typer.Argument(..., help="Workbook ID"),
    problem_ids: list[int] = typer.Argument(..., help="Problem IDs, appended in order"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Append problems to the end of a workbook."""
    _prepare_db(db)
    _require_workbook(workbook_id)

    for problem_id in problem_ids:
        if get_problem_by_id(problem_id) is None:
            console.print(f"[red]✗ No active problem with id {problem_id}[/red]")
            raise typer.Exit(code=1)
        try:
            position = add_problem_to_workbook(workbook_id, problem_id)
        except RecordNotFoundError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1)
        except sqlite3.IntegrityError:
            console.print(f"[red]✗ Problem {problem_id} is already in workbook {workbook_id}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]✓ Problem {problem_id} added[/green] [dim]position:[/dim] {position}")


@app.command(name="workbook-remove-problem")
def workbook_remove_problem(
    workbook_id: int = typer.Argument(..., help="Workbook ID"),
    problem_id: int = typer.Argument(..., help="Problem ID"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Remove a problem from a workbook and renumber the rest."""
    _prepare_db(db)
    _require_workbook(workbook_id)
    if not remove_problem_from_workbook(workbook_id, problem_id):
        console.print(f"[yellow]⚠ Problem {problem_id} is not in workbook {workbook_id}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Problem {problem_id} removed[/green]")


@app.command(name="workbook-reorder")
def workbook_reorder(
    workbook_id: int = typer.Argument(..., help="Workbook ID"),
    problem_ids: list[int] = typer.Argument(
        ..., help="Every problem ID of the workbook, in the new order"
    ),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Set the problem order of a workbook."""
    _prepare_db(db)
    _require_workbook(workbook_id)
    try:
        reorder_workbook_problems(workbook_id, problem_ids)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        current = " ".join(map(str, list_workbook_problem_ids(workbook_id)))
        console.print(f"  Current order: {current}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Workbook {workbook_id} reordered[/green]")


# =============================================================================
# REVIEWS AND JOBS
# =============================================================================


@app.command()
def due(
    user_id: int = typer.Argument(..., help="User ID"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum rows"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Show review items due today for a user."""
    from rich.table import Table

    _prepare_db(db)
    if get_user_by_id(user_id) is None:
        console.print(f"[red]✗ No active user with id {user_id}[/red]")
        raise typer.Exit(code=1)

    result = review_repository.get_today_review_targets(user_id, page=1, limit=limit)
    targets = result["data"]
    if not targets:
        console.print("[green]Nothing to review today[/green]")
        return

    table = Table(title=f"Due today ({result['pagination']['total']})")
    table.add_column("Record", justify="right")
    table.add_column("Problem")
    table.add_column("Subject")
    table.add_column("Level", justify="right")
    table.add_column("Due")
    for target in targets:
        table.add_row(
            str(target["id"]),
            target["problem"]["title"],
            target["problem"]["subject"],
            str(target["mastery_level"]),
            target["next_review_date"],
        )
    console.print(table)


@app.command()
def jobs() -> None:
    """List batch jobs and their next run time."""
    from rich.table import Table

    scheduler = get_scheduler()
    table = Table(title="Batch jobs")
    table.add_column("Name")
    table.add_column("Cron")
    table.add_column("Next run")
    for task in scheduler.get_task_status():
        next_run = scheduler.next_run_time(task["name"]).isoformat()
        table.add_row(task["name"], task["cron"], next_run)
    console.print(table)


@app.command(name="run-job")
def run_job(
    name: str = typer.Argument(..., help="Job name (see: woodie jobs)"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Run a batch job once, now."""
    _prepare_db(db)
    try:
        result = asyncio.run(get_scheduler().run_task_manually(name))
    except UnknownJobError as e:
        console.print(f"[red]✗ {e}[/red]")
        console.print(f"  Available: {', '.join(get_scheduler().job_names)}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]✗ {name} failed: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {name} completed[/green]")
    for key, value in result.items():
        console.print(f"  [dim]{key}:[/dim] {value}")


if __name__ == "__main__":
    app()
