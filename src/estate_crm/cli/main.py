"""Main CLI entry point for the estate-crm command."""

import logging
import time
import click
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import Confirm
from typing import Optional

from ..config import settings
from ..notifications.notices import Notice, NoticeBoard, NoticeLevel
from ..remote.client import RemoteService
from ..remote.errors import RemoteError, UnauthorizedActionError
from ..session import CrmSession
from ..storage.mirror import MirrorStore
from ..storage.models import LeadStatus
from ..sync.updates import UpdateResult
from ..tasks.scheduler import SessionScheduler

console = Console()

LEVEL_STYLES = {
    NoticeLevel.INFO: "cyan",
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.WARNING: "yellow",
    NoticeLevel.ERROR: "red",
}


def get_mirror(mirror_path: Optional[str] = None) -> MirrorStore:
    """Get an initialized mirror."""
    path = Path(mirror_path).expanduser() if mirror_path else settings.mirror_path
    return MirrorStore(path).init()


def get_session(mirror_path: Optional[str] = None, api_url: Optional[str] = None) -> CrmSession:
    """Build and load a session against the configured remote."""
    remote = RemoteService(api_url or settings.api_url, timeout=settings.request_timeout)
    notices = NoticeBoard(settings.notice_seconds, settings.long_notice_seconds)
    session = CrmSession(get_mirror(mirror_path), remote, notices)
    session.load()
    return session


def login(session: CrmSession, user: str):
    try:
        return session.login(user)
    except ValueError as e:
        raise click.ClickException(str(e))


def print_notice(notice: Notice):
    style = LEVEL_STYLES[notice.level]
    console.print(f"[{style}]{notice.message}[/{style}]")


def print_notices(session: CrmSession):
    for notice in session.notices.notices:
        print_notice(notice)
    session.notices.clear()


def print_update(session: CrmSession, result: UpdateResult):
    style = "green" if result.confirmed else "yellow"
    lead = result.lead
    console.print(Panel.fit(
        f"[bold]{lead.customer_name}[/bold] ({lead.id})\n"
        f"Status: {lead.status.value}\n"
        f"Assigned to: {session.user_name(lead.assigned_salesperson_id)}\n"
        f"Outcome: [{style}]{result.state.value}[/{style}]"
        + (" (after user resync)" if result.retried else ""),
        title="Lead Update",
    ))
    print_notices(session)


@click.group()
@click.version_option(version="1.0.0", prog_name="estate-crm")
@click.option("--mirror", "mirror_path", envvar="CRM_MIRROR_PATH", help="Mirror file path")
@click.option("--api-url", envvar="CRM_API_URL", help="Remote service base URL")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, mirror_path: Optional[str], api_url: Optional[str], verbose: bool):
    """Estate CRM - lead sync and assignment reconciliation.

    \b
    Quick Start:
      estate-crm serve                        # Run the dev remote service
      estate-crm users-sync                   # Register local users remotely
      estate-crm leads --as Admin             # View leads
      estate-crm assign <lead> "Pinki Sahu" --as Admin
    """
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["mirror_path"] = mirror_path
    ctx.obj["api_url"] = api_url


def _session(ctx) -> CrmSession:
    return get_session(ctx.obj.get("mirror_path"), ctx.obj.get("api_url"))


# ============================================================================
# MIRROR COMMANDS
# ============================================================================

@cli.command()
@click.pass_context
def init(ctx):
    """Create the local mirror, seeding demo data if it is missing."""
    mirror = get_mirror(ctx.obj.get("mirror_path"))
    data = mirror.snapshot()
    console.print(Panel.fit(
        f"[bold green]Mirror ready[/bold green]\n\n"
        f"Location: {mirror.data_path}\n"
        f"Users: {len(data.users)}  Leads: {len(data.leads)}  "
        f"Tasks: {len(data.tasks)}  Projects: {len(data.projects)}",
        title="Estate CRM",
    ))


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def reset(ctx, yes: bool):
    """Discard the mirror and restore demo data."""
    if not yes and not Confirm.ask("Replace all local data with demo data?"):
        return
    mirror = get_mirror(ctx.obj.get("mirror_path"))
    mirror.reset()
    console.print("[green]Mirror reset to demo data[/green]")


@cli.command()
@click.pass_context
def sync(ctx):
    """Load users and leads, merging the remote with the mirror."""
    session = _session(ctx)
    result = session.last_merge

    table = Table(title="Sync Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Remote available", "yes" if result.remote_available else "[red]no[/red]")
    table.add_row("Remote leads", str(result.remote_count))
    table.add_row("Matched in mirror", str(result.matched))
    table.add_row("New from remote", str(result.inserted))
    table.add_row("Local-only leads", str(result.local_only))
    table.add_row("Users", str(len(session.users)))
    console.print(table)
    print_notices(session)


# ============================================================================
# LEAD COMMANDS
# ============================================================================

@cli.command()
@click.option("--as", "as_user", required=True, help="User name or id to view as")
@click.option("--status", "-s", help="Filter by status")
@click.option("--search", "term", help="Search name, mobile or project")
@click.pass_context
def leads(ctx, as_user: str, status: Optional[str], term: Optional[str]):
    """List the leads visible to a user."""
    session = _session(ctx)
    user = login(session, as_user)
    rows = session.search(term) if term else session.visible_leads
    if status:
        rows = [l for l in rows if l.status.value.lower() == status.lower()]

    if not rows:
        console.print("[yellow]No leads found.[/yellow]")
        return

    table = Table(title=f"Leads for {user.name} ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("Customer", style="cyan", max_width=25)
    table.add_column("Mobile")
    table.add_column("Status")
    table.add_column("Assigned To")
    table.add_column("Last Activity")
    for lead in rows:
        table.add_row(
            lead.id,
            lead.customer_name,
            lead.mobile,
            lead.status.value,
            session.user_name(lead.assigned_salesperson_id),
            lead.last_activity_date[:16].replace("T", " "),
        )
    console.print(table)
    print_notices(session)


@cli.command()
@click.argument("lead_id")
@click.argument("assignee")
@click.option("--as", "as_user", default="Admin", help="Acting user")
@click.pass_context
def assign(ctx, lead_id: str, assignee: str, as_user: str):
    """Assign a lead to a salesperson (name or id), or 'none' to unassign."""
    session = _session(ctx)
    login(session, as_user)
    lead = session.find_lead(lead_id)
    if not lead:
        raise click.ClickException(f"Lead {lead_id} not found")

    if assignee.lower() == "none":
        lead.assigned_salesperson_id = None
    else:
        target = next(
            (u for u in session.users if u.id == assignee or u.name.lower() == assignee.lower()),
            None,
        )
        if not target:
            raise click.ClickException(f"Unknown user: {assignee}")
        lead.assigned_salesperson_id = target.id

    print_update(session, session.update_lead(lead))


@cli.command("set-status")
@click.argument("lead_id")
@click.argument("status")
@click.option("--as", "as_user", default="Admin", help="Acting user")
@click.option("--unit", "unit_id", help="Unit id to book")
@click.option("--project", help="Project name or id owning the unit")
@click.pass_context
def set_status(ctx, lead_id: str, status: str, as_user: str, unit_id: Optional[str], project: Optional[str]):
    """Move a lead to a new pipeline status, optionally booking a unit."""
    session = _session(ctx)
    login(session, as_user)
    lead = session.find_lead(lead_id)
    if not lead:
        raise click.ClickException(f"Lead {lead_id} not found")

    matches = [s for s in LeadStatus if s.value.lower() == status.lower()]
    if not matches:
        raise click.ClickException(
            f"Invalid status. Must be one of: {', '.join(s.value for s in LeadStatus)}"
        )
    lead.status = matches[0]

    if unit_id:
        for owner in session.inventory:
            if project and project not in (owner.id, owner.name):
                continue
            unit = owner.find_unit(unit_id)
            if unit:
                lead.booked_unit_id = unit.id
                lead.booked_unit_number = unit.unit_number
                lead.booked_project = owner.name
                break
        else:
            raise click.ClickException(f"Unit {unit_id} not found")

    print_update(session, session.update_lead(lead))


@cli.command()
@click.argument("lead_id")
@click.option("--as", "as_user", default="Admin", help="Acting user")
@click.pass_context
def delete(ctx, lead_id: str, as_user: str):
    """Delete a lead (admins only)."""
    session = _session(ctx)
    login(session, as_user)
    try:
        deleted = session.delete_lead(lead_id)
    except UnauthorizedActionError as e:
        raise click.ClickException(str(e))
    if deleted:
        console.print(f"[green]Deleted lead {lead_id}[/green]")
    print_notices(session)


# ============================================================================
# USER AND TASK COMMANDS
# ============================================================================

@cli.command()
@click.pass_context
def users(ctx):
    """List users in the mirror."""
    session = _session(ctx)
    table = Table(title=f"Users ({len(session.users)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Role")
    table.add_column("Identity")
    for user in session.users:
        table.add_row(
            user.id,
            user.name,
            user.role.value,
            "[yellow]local[/yellow]" if user.has_local_id else "[green]remote[/green]",
        )
    console.print(table)


@cli.command("users-sync")
@click.pass_context
def users_sync(ctx):
    """Register local users with the remote and adopt the issued ids."""
    session = _session(ctx)
    try:
        mapping = session.reconciler.resync()
    except RemoteError as e:
        raise click.ClickException(f"User sync failed ({e.kind.value}): {e.message}")

    if not mapping:
        console.print("[dim]All users already use remote ids[/dim]")
        return
    table = Table(title=f"Remapped Users ({len(mapping)})")
    table.add_column("Local ID", style="dim")
    table.add_column("Remote ID", style="green")
    for old_id, new_id in mapping.items():
        table.add_row(old_id, new_id)
    console.print(table)


@cli.command()
@click.option("--as", "as_user", required=True, help="User name or id")
@click.pass_context
def tasks(ctx, as_user: str):
    """List tasks visible to a user."""
    session = _session(ctx)
    login(session, as_user)
    rows = session.visible_tasks
    if not rows:
        console.print("[yellow]No tasks.[/yellow]")
        return
    table = Table(title=f"Tasks ({len(rows)})")
    table.add_column("Title", style="cyan")
    table.add_column("Assigned To")
    table.add_column("Due")
    table.add_column("Done", justify="center")
    for task in rows:
        table.add_row(
            task.title,
            session.user_name(task.assigned_to_id),
            task.due_date[:16].replace("T", " "),
            "x" if task.is_completed else "",
        )
    console.print(table)


@cli.command()
@click.option("--as", "as_user", required=True, help="User name or id")
@click.pass_context
def watch(ctx, as_user: str):
    """Run the refresh, notification and reminder jobs until Ctrl-C."""
    session = _session(ctx)
    user = login(session, as_user)
    print_notices(session)
    session.notices.add_handler(print_notice)

    scheduler = SessionScheduler(
        session,
        refresh_interval=settings.refresh_interval,
        notification_interval=settings.notification_interval,
        reminder_interval=settings.reminder_interval,
    )
    scheduler.start()
    console.print(f"[dim]Watching as {user.name}. Press Ctrl-C to stop.[/dim]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
        session.logout()


@cli.command()
@click.option("--host", default=None, help="Bind host")
@click.option("--port", default=None, type=int, help="Bind port")
@click.option("--no-users-table", is_flag=True, help="Simulate a missing users table")
def serve(host: Optional[str], port: Optional[int], no_users_table: bool):
    """Run the development remote service."""
    import uvicorn
    from ..server.main import create_app
    from ..server.services.store import RemoteStore

    store = RemoteStore(users_table_enabled=settings.users_table_enabled and not no_users_table)
    uvicorn.run(create_app(store), host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    cli()
