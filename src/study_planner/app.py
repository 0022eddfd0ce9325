"""Interactive CLI application."""
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from study_planner.catalog import get_subjects, is_seeded, load_catalog
from study_planner.config import get_settings
from study_planner.dashboard import get_progress_summary
from study_planner.db import init_db
from study_planner.errors import PlannerError, UserNotFoundError
from study_planner.leaderboard import get_leaderboard
from study_planner.locks import schedule_locks
from study_planner.logging_config import configure_logging
from study_planner.models import DaySchedule, PlanTier, Timeframe
from study_planner.scheduler import complete_scheduled_session, generate_schedule, get_today_schedule
from study_planner.streaks import update_user_streak
from study_planner.targets import calculate_study_plans
from study_planner.users import (
    create_user, get_user, list_user_ids, select_plan, select_subjects,
    set_custom_target, set_deadline, set_subject_priority,
)

console = Console()


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    return f"{hours}h" if hours else f"{mins}m"


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("today", "Today's planned sessions"),
        ("complete", "Mark a session as done"),
        ("plan", "Recalculate daily targets"),
        ("generate", "Rebuild the schedule"),
        ("streak", "Check today's streak"),
        ("leaderboard", "Top learners"),
        ("progress", "Completion by subject"),
        ("settings", "Deadline, plan and subjects"),
        ("import", "Load a subject catalog"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_day(schedule: DaySchedule, title: str | None = None) -> None:
    if not schedule.planned_sessions:
        console.print(f"[yellow]Nothing planned for {schedule.date.isoformat()}.[/yellow]")
        return
    table = Table(title=title or schedule.date.isoformat())
    table.add_column("#", justify="right")
    table.add_column("Subject", style="cyan")
    table.add_column("Item")
    table.add_column("Type")
    table.add_column("Time", justify="right")
    table.add_column("Done")
    for entry in schedule.planned_sessions:
        table.add_row(
            str(entry.id or ""),
            entry.subject_name,
            entry.name,
            entry.type.value,
            format_minutes(entry.duration),
            "[green]✓[/green]" if entry.completed else "",
        )
    console.print(table)
    console.print(
        f"  Planned: [bold]{format_minutes(schedule.total_planned_duration)}[/bold]  |  "
        f"Completed: [bold]{format_minutes(schedule.total_completed_duration)}[/bold]"
    )


def cmd_today(db_path: str, user_id: str):
    show_day(get_today_schedule(db_path, user_id), title="Today's Study Plan")


def cmd_complete(db_path: str, user_id: str):
    entry_id = IntPrompt.ask("Session #")
    minutes = IntPrompt.ask("Minutes spent (0 = planned time)", default=0)
    entry, streak = complete_scheduled_session(db_path, user_id, entry_id, duration=minutes or None)
    console.print(f"[green]Completed {entry.name}.[/green]")
    if streak:
        color = "green" if streak.maintained else "yellow"
        console.print(f"[{color}]{streak.message}[/{color}] Streak: [bold]{streak.streak}[/bold]")


def cmd_plan(db_path: str, user_id: str):
    plan = calculate_study_plans(db_path, user_id)
    console.print(Panel(
        f"Days remaining: [bold]{plan.days_remaining}[/bold]\n"
        f"Content remaining: [bold]{format_minutes(plan.total_remaining_minutes)}[/bold]",
        title="Study Plan", border_style="blue",
    ))
    table = Table(title="Daily Targets")
    table.add_column("Plan")
    table.add_column("Per day", justify="right")
    for tier, minutes in plan.daily_targets.as_dict().items():
        marker = " ←" if tier == plan.selected_plan else ""
        table.add_row(f"{tier}{marker}", format_minutes(minutes))
    console.print(table)


def cmd_generate(db_path: str, user_id: str):
    days = IntPrompt.ask("Days to plan", default=get_settings().default_schedule_days)
    schedules = generate_schedule(db_path, user_id, date.today(), days)
    if not schedules:
        console.print("[yellow]Nothing to schedule. Select subjects in 'settings' first.[/yellow]")
        return
    table = Table(title=f"Schedule ({len(schedules)} days)")
    table.add_column("Date")
    table.add_column("Sessions", justify="right")
    table.add_column("Subjects")
    table.add_column("Time", justify="right")
    for day in schedules:
        subjects = ", ".join(dict.fromkeys(s.subject_name for s in day.planned_sessions))
        table.add_row(
            day.date.isoformat(), str(len(day.planned_sessions)), subjects,
            format_minutes(day.total_planned_duration),
        )
    console.print(table)


def cmd_streak(db_path: str, user_id: str):
    result = update_user_streak(db_path, user_id)
    color = "green" if result.maintained else "yellow"
    console.print(Panel(
        f"[bold]{result.streak}[/bold] day streak\n[{color}]{result.message}[/{color}]",
        title="Streak", border_style=color,
    ))


def cmd_leaderboard(db_path: str, user_id: str):
    timeframe = Prompt.ask("Timeframe", choices=[t.value for t in Timeframe], default=Timeframe.OVERALL.value)
    entries = get_leaderboard(db_path, limit=10, timeframe=timeframe)
    table = Table(title=f"Leaderboard ({timeframe})")
    table.add_column("Rank", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Streak", justify="right")
    table.add_column("Hours", justify="right")
    for e in entries:
        table.add_row(str(e.rank), e.name, str(e.streak), str(e.total_study_hours))
    console.print(table)


def cmd_progress(db_path: str, user_id: str):
    summary = get_progress_summary(db_path, user_id)
    overall = summary["overall"]
    console.print(
        f"\n  Overall: [bold]{overall['percent_complete']}%[/bold] of items, "
        f"[bold]{overall['percent_duration_complete']}%[/bold] of study time\n"
    )
    table = Table(title="Subjects")
    table.add_column("Subject", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Done", justify="right")
    for s in summary["subjects"]:
        table.add_row(
            s["name"],
            f"{s['completed_items']}/{s['total_items']}",
            f"{format_minutes(s['completed_duration'])} / {format_minutes(s['total_duration'])}",
            f"{s['percent_complete']}%",
        )
    console.print(table)


def cmd_settings(db_path: str, user_id: str):
    user = get_user(db_path, user_id)
    deadline = Prompt.ask("Exam deadline (YYYY-MM-DD)", default=user.deadline.isoformat() if user.deadline else "")
    if deadline:
        set_deadline(db_path, user_id, date.fromisoformat(deadline))
    plan = Prompt.ask("Plan", choices=[t.value for t in PlanTier], default=user.selected_plan)
    select_plan(db_path, user_id, plan)
    if plan == PlanTier.CUSTOM.value:
        set_custom_target(db_path, user_id, IntPrompt.ask("Custom minutes per day", default=user.daily_target.custom or 180))

    subjects = get_subjects(db_path)
    if not subjects:
        console.print("[yellow]The catalog is empty. Use 'import' to add subjects.[/yellow]")
        return
    for i, s in enumerate(subjects, 1):
        mark = "*" if s.id in user.selected_subjects else " "
        console.print(f"  {mark} [cyan]{i}[/cyan]) {s.name} ({format_minutes(s.total_duration)})")
    picked = Prompt.ask("Subjects to study (comma separated numbers, blank to keep)", default="")
    if picked.strip():
        chosen = [subjects[int(n) - 1] for n in picked.split(",") if n.strip().isdigit() and 0 < int(n) <= len(subjects)]
        select_subjects(db_path, user_id, [s.id for s in chosen])
        for s in chosen:
            priority = IntPrompt.ask(f"Priority for {s.name} (1-10)", default=user.subject_priorities.get(s.id, 5))
            set_subject_priority(db_path, user_id, s.id, priority)
    console.print("[green]Settings saved.[/green]")


def cmd_import(db_path: str, user_id: str):
    file_path = Prompt.ask("Catalog file (JSON or YAML)")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    added = load_catalog(db_path, file_path)
    console.print(f"[green]Imported {len(added)} subject(s).[/green]")


COMMANDS = {
    "today": cmd_today,
    "complete": cmd_complete,
    "plan": cmd_plan,
    "generate": cmd_generate,
    "streak": cmd_streak,
    "leaderboard": cmd_leaderboard,
    "progress": cmd_progress,
    "settings": cmd_settings,
    "import": cmd_import,
}


def choose_user(db_path: str) -> str:
    known = list_user_ids(db_path)
    if known:
        console.print(f"[dim]Known users: {', '.join(known)}[/dim]")
    user_id = Prompt.ask("User id", default="me").strip()
    try:
        get_user(db_path, user_id)
    except UserNotFoundError:
        name = Prompt.ask("New user. Your name", default=user_id)
        create_user(db_path, name=name, user_id=user_id)
        console.print("[dim]Profile created. Set your deadline and subjects under 'settings'.[/dim]")
    return user_id


def main():
    settings = get_settings()
    configure_logging()
    db_path = settings.db_path
    init_db(db_path)
    schedule_locks.timeout = settings.lock_timeout_seconds
    schedule_locks.start_sweeper(settings.lock_sweep_interval_seconds)

    console.print(Panel("[bold]Study Planner[/bold]\n[dim]Adaptive exam preparation[/dim]", title="Welcome", border_style="blue"))
    if not is_seeded(db_path):
        console.print("[dim]The subject catalog is empty. Use 'import' to load one.[/dim]")
    user_id = choose_user(db_path)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Good luck on your exam![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(db_path, user_id)
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (PlannerError, ValueError) as e:
            console.print(f"[red]Error: {e}[/red]")
    schedule_locks.stop_sweeper()


if __name__ == "__main__":
    main()
