"""Dripfeed command line.

    dripfeed run SOURCE [TARGET]     plan, review, or execute the next day
    dripfeed status [TARGET]         progress and per-day breakdown
    dripfeed preview [TARGET]        the plan as day -> commit -> message
    dripfeed approve [TARGET]        flip the approval gate
    dripfeed reword TARGET ID MSG    change one planned commit message
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from dripfeed import __version__
from dripfeed.cli.error_handler import handle_error, handle_interrupt
from dripfeed.execution import (
    ExecutionEngine,
    Phase,
    ReviewEdit,
    apply_edit,
    open_stores,
    plan_table,
)
from dripfeed.foundation.config import COMMIT_MODES, PUSH_MODES, REVIEW_MODES, load_config
from dripfeed.foundation.errors import DripfeedError, ErrorCode
from dripfeed.foundation.logging import StepLog, configure_logging
from dripfeed.planning import render_preview

console = Console()


@contextmanager
def _halts(json_output: bool = False) -> Iterator[None]:
    """Map halts to exit statuses."""
    try:
        yield
    except DripfeedError as e:
        handle_error(e, json_output=json_output)
    except KeyboardInterrupt:
        handle_interrupt()


@click.group()
@click.option("--debug", is_flag=True, help="Verbose diagnostic logging")
@click.version_option(version=__version__, prog_name="dripfeed")
@click.pass_context
def main(ctx: click.Context, debug: bool) -> None:
    """Dripfeed - replay a source tree into a repository, a few commits a day."""
    configure_logging(debug=debug)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.argument("source", type=click.Path(path_type=Path))
@click.argument("target", type=click.Path(path_type=Path), default=".")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="YAML config file")
@click.option("--days", "total_days", type=int, help="Number of days to spread the commits over")
@click.option("--commits-per-day", type=int, help="Commit slots per day")
@click.option("--max-files", "max_files_per_commit", type=int, help="Fixed number of files per commit")
@click.option("--skip", "skip_patterns", multiple=True, help="Extra ignore pattern (repeatable)")
@click.option("--hours", "daily_run_hours", type=float, help="Time budget per run, in hours")
@click.option("--commit-mode", type=click.Choice(COMMIT_MODES), help="Ask before each commit or not")
@click.option("--review-mode", type=click.Choice(REVIEW_MODES), help="Review right after planning or later")
@click.option("--push-mode", type=click.Choice(PUSH_MODES), help="Push after each run or leave it to you")
@click.option("--author-name", help="Commit author name override")
@click.option("--author-email", help="Commit author email override")
@click.option("--project-id", help="Identifier recorded in the plan")
@click.option("--timezone", help="Timezone recorded in the plan")
@click.option("--dry-run", is_flag=True, help="Plan and preview without writing anything")
@click.option("--json", "json_output", is_flag=True, help="Report halts as JSON on stderr")
def run(
    source: Path,
    target: Path,
    config_path: Path | None,
    total_days: int | None,
    commits_per_day: int | None,
    max_files_per_commit: int | None,
    skip_patterns: tuple[str, ...],
    daily_run_hours: float | None,
    commit_mode: str | None,
    review_mode: str | None,
    push_mode: str | None,
    author_name: str | None,
    author_email: str | None,
    project_id: str | None,
    timezone: str | None,
    dry_run: bool,
    json_output: bool,
) -> None:
    """Run one invocation: plan, review, or execute the next day's commits.

    \b
    Examples:
        dripfeed run ../my-app ./replay --days 10 --commits-per-day 2
        dripfeed run ../my-app ./replay --commit-mode auto --hours 1
    """
    with _halts(json_output):
        config = load_config(
            config_path,
            overrides={
                "source_dir": source,
                "target_dir": target,
                "total_days": total_days,
                "commits_per_day": commits_per_day,
                "max_files_per_commit": max_files_per_commit,
                "skip_patterns": skip_patterns or None,
                "daily_run_hours": daily_run_hours,
                "commit_mode": commit_mode,
                "review_mode": review_mode,
                "push_mode": push_mode,
                "author_name": author_name,
                "author_email": author_email,
                "project_id": project_id,
                "timezone": timezone,
                "dry_run": True if dry_run else None,
            },
        )
        engine = ExecutionEngine(config, step_log=StepLog(console))
        outcome = engine.run()

    if outcome.phase is Phase.REVIEW:
        console.print(
            f"\n[yellow]Plan awaits approval.[/yellow] Re-run, or: dripfeed approve {config.target_dir}"
        )
    elif outcome.finished:
        console.print(f"\n[bold green]Done.[/bold green] {outcome.accounted}/{outcome.total} commits")
    elif outcome.phase is Phase.EXECUTION:
        console.print(
            f"\n[cyan]{outcome.accounted}/{outcome.total} commits.[/cyan] Run again to continue."
        )


@main.command()
@click.argument("target", type=click.Path(path_type=Path), default=".")
def status(target: Path) -> None:
    """Show progress against the plan."""
    with _halts():
        plan_store, state_store = open_stores(target)
        plan = plan_store.load()
        state = state_store.load()

    completed = state.completed_ids() if state else set()
    skipped = state.skipped_ids() if state else set()

    table = Table(title=f"{plan.project_id} ({'approved' if plan.approved else 'awaiting approval'})")
    table.add_column("Day", justify="right")
    table.add_column("Commits", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Summary")
    for day in plan.days:
        ids = {c.id for c in day.commits}
        table.add_row(
            str(day.day),
            str(len(day.commits)),
            str(len(ids & completed)),
            str(len(ids & skipped)),
            day.summary,
        )
    console.print(table)

    accounted = len(completed) + len(skipped)
    console.print(f"Progress: {accounted}/{plan.total_commits} commits ({len(skipped)} skipped)")
    if state and accounted < plan.total_commits:
        console.print(f"Next: d{state.next.day}-c{state.next.index}")


@main.command()
@click.argument("target", type=click.Path(path_type=Path), default=".")
@click.option("--table", "as_table", is_flag=True, help="Show a table instead of markdown")
def preview(target: Path, as_table: bool) -> None:
    """Print the commit plan."""
    with _halts():
        plan_store, _ = open_stores(target)
        plan = plan_store.load()
    if as_table:
        console.print(plan_table(plan))
    else:
        console.print(render_preview(plan), markup=False, highlight=False)


@main.command()
@click.argument("target", type=click.Path(path_type=Path), default=".")
def approve(target: Path) -> None:
    """Approve the plan without the interactive review."""
    with _halts():
        plan_store, _ = open_stores(target)
        plan = plan_store.load()
        if plan.approved:
            console.print("Plan already approved.")
            return
        plan.approved = True
        plan_store.save(plan)
    console.print(f"[green]Approved[/green] {plan.total_commits} commits over {len(plan.days)} days.")


@main.command()
@click.argument("target", type=click.Path(path_type=Path))
@click.argument("commit_id")
@click.argument("message")
def reword(target: Path, commit_id: str, message: str) -> None:
    """Change the message of one planned commit, before the plan is approved."""
    with _halts():
        plan_store, state_store = open_stores(target)
        plan = plan_store.load()
        state = state_store.load()
        if state and commit_id in state.completed_ids() | state.skipped_ids():
            raise DripfeedError(
                code=ErrorCode.PLAN_LOCKED,
                context={"commit_id": commit_id, "detail": "it has already been executed"},
            )
        commit = apply_edit(plan, ReviewEdit(commit_id=commit_id, message=message))
        plan_store.save(plan)
    console.print(f"{commit.id}: {commit.message}", markup=False, highlight=False)


if __name__ == "__main__":
    main()
