"""CLI commands for assho."""

import subprocess
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from assho import __version__
from assho import ssh
from assho.errors import AsshoError
from assho.log import configure_logging
from assho.models import Host
from assho.selector import Dashboard, row_detail, row_label
from assho.ssh_config import default_ssh_config_path
from assho.store import HostForm, Store
from assho.tree import flatten_hosts

app = typer.Typer(
    name="assho",
    help="Terminal dashboard for SSH hosts and their Docker containers.",
    add_completion=False,
)

# Group subcommand group
group_app = typer.Typer(help="Manage host groups.")
app.add_typer(group_app, name="group")

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"[bold cyan]assho[/bold cyan] version {__version__}")
        raise typer.Exit()


def fail(message: str) -> NoReturn:
    console.print(f"[bold red]✗[/bold red] {escape(message)}")
    raise typer.Exit(1)


def open_store() -> Store:
    """Load the store, reporting non-fatal load problems."""
    try:
        store, warning = Store.open()
    except AsshoError as e:
        fail(str(e))
    if warning is not None:
        console.print(f"[yellow]Warning:[/yellow] {escape(str(warning))}")
    return store


def resolve_host(store: Store, alias: str) -> Host:
    host = store.find_host_by_alias(alias)
    if host is None:
        fail(f"Host '{alias}' not found.")
    return host


def resolve_group(store: Store, name: str):
    group = store.find_group_by_name(name)
    if group is None:
        fail(f"Group '{name}' not found.")
    return group


def parse_direction(direction: str) -> int:
    direction = direction.lower()
    if direction not in ("up", "down"):
        fail(f"Invalid direction: {direction}. Use 'up' or 'down'.")
    return -1 if direction == "up" else 1


def connect_to(store: Store, host: Host) -> None:
    """Run ssh for host in the foreground and exit with its status."""
    parent = store.find_host(host.parent_id) if host.is_container else None
    try:
        cmd, password_used = ssh.build_connect_command(host, parent)
    except ValueError as e:
        fail(str(e))
    if not password_used:
        console.print("[yellow]sshpass not installed; ssh will prompt for the password.[/yellow]")

    console.print(f"[dim]Connecting to[/dim] [cyan]{escape(host.alias)}[/cyan]")
    try:
        result = subprocess.run(cmd)
    except FileNotFoundError:
        fail("ssh command not found. Please install OpenSSH.")
    raise typer.Exit(result.returncode)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Terminal dashboard for SSH hosts and their Docker containers.

    Run without a command to open the interactive dashboard.
    """
    configure_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return

    store = open_store()
    host = Dashboard(store, console).run()
    if host is None:
        raise typer.Exit()
    connect_to(store, host)


# ============================================================================
# Host Commands
# ============================================================================


@app.command("list")
def list_hosts(
    show_all: bool = typer.Option(
        False, "--all", "-a", help="Include collapsed groups and all containers"
    ),
):
    """Show groups and hosts as a tree."""
    store = open_store()
    rows = store.all_rows() if show_all else store.rows

    if not rows:
        console.print(
            Panel(
                "[yellow]No hosts saved[/yellow]\n\n"
                "Add one with [bold cyan]assho add <alias> --hostname <host>[/bold cyan]",
                title="Hosts",
                border_style="yellow",
            )
        )
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Target", style="dim")
    for row in rows:
        table.add_row(row_label(row), row_detail(row))

    console.print(Panel(table, title="[bold]Hosts[/bold]", border_style="cyan"))


@app.command()
def add(
    alias: str = typer.Argument(..., help="Unique display name"),
    hostname: str = typer.Option("", "--hostname", "-H", help="Address to connect to"),
    user: str = typer.Option("", "--user", "-u", help="Login user"),
    port: str = typer.Option("22", "--port", "-p", help="SSH port"),
    identity_file: str = typer.Option("", "--key", "-i", help="Identity file path"),
    proxy_jump: str = typer.Option("", "--jump", "-J", help="Jump host (ProxyJump)"),
    password: str = typer.Option("", "--password", help="Password (stored per policy)"),
    group: str = typer.Option("", "--group", "-g", help="Group name, created if new"),
):
    """Add a new host."""
    store = open_store()
    form = HostForm(
        alias=alias,
        hostname=hostname,
        user=user,
        port=port,
        identity_file=identity_file,
        proxy_jump=proxy_jump,
        password=password,
        group=group,
    )
    try:
        host = store.save_host(form)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Added [cyan]{escape(host.alias)}[/cyan] ({escape(host.display_name)})")


@app.command()
def edit(
    alias: str = typer.Argument(..., help="Host to edit"),
    new_alias: str | None = typer.Option(None, "--alias", help="New alias"),
    hostname: str | None = typer.Option(None, "--hostname", "-H"),
    user: str | None = typer.Option(None, "--user", "-u"),
    port: str | None = typer.Option(None, "--port", "-p"),
    identity_file: str | None = typer.Option(None, "--key", "-i"),
    proxy_jump: str | None = typer.Option(None, "--jump", "-J"),
    password: str | None = typer.Option(None, "--password"),
    group: str | None = typer.Option(None, "--group", "-g", help="Group name; '' for none"),
):
    """Edit a host. Options left out keep their current value."""
    store = open_store()
    host = resolve_host(store, alias)
    if host.is_container:
        fail("Containers cannot be edited; rescan the parent host instead.")

    form = HostForm.from_host(host, store.group_name(host.group_id))
    updates = {
        "alias": new_alias,
        "hostname": hostname,
        "user": user,
        "port": port,
        "identity_file": identity_file,
        "proxy_jump": proxy_jump,
        "password": password,
        "group": group,
    }
    for name, value in updates.items():
        if value is not None:
            setattr(form, name, value)

    try:
        updated = store.save_host(form, host_id=host.id)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Updated [cyan]{escape(updated.alias)}[/cyan]")


@app.command("rm")
def remove(
    alias: str = typer.Argument(..., help="Host or container to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a host or container."""
    store = open_store()
    host = resolve_host(store, alias)
    if not yes and not typer.confirm(f"Delete '{host.alias}'?"):
        raise typer.Exit(1)
    try:
        store.delete_host(host.id)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Deleted [cyan]{escape(host.alias)}[/cyan]")


@app.command()
def move(
    alias: str = typer.Argument(..., help="Host to move"),
    direction: str = typer.Argument(..., help="'up' or 'down'"),
):
    """Move a host past its neighbor within the same group."""
    store = open_store()
    host = resolve_host(store, alias)
    try:
        moved = store.move_host(host.id, parse_direction(direction))
    except AsshoError as e:
        fail(str(e))
    if moved:
        console.print(f"[bold green]✓[/bold green] Moved [cyan]{escape(host.alias)}[/cyan] {direction}")
    else:
        console.print(f"[dim]{escape(host.alias)} is already at the edge of its group[/dim]")


@app.command()
def expand(alias: str = typer.Argument(..., help="Host whose containers to show")):
    """Show a host together with its discovered containers."""
    store = open_store()
    host = resolve_host(store, alias)
    if host.is_container:
        fail("Containers have nothing to expand.")
    if not host.expanded:
        store.toggle_host(host.id)

    if not host.containers:
        console.print(
            f"[yellow]No containers known for {escape(host.alias)}[/yellow]; "
            f"run [bold cyan]assho scan {escape(host.alias)}[/bold cyan] first"
        )
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Target", style="dim")
    for row in flatten_hosts([], [host]):
        table.add_row(row_label(row), row_detail(row))
    console.print(Panel(table, title=f"[bold]{escape(host.alias)}[/bold]", border_style="cyan"))


# ============================================================================
# Group Commands
# ============================================================================


@group_app.command("add")
def group_add(name: str = typer.Argument(..., help="Group name")):
    """Create a group."""
    store = open_store()
    try:
        group = store.create_group(name)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Created group [magenta]{escape(group.name)}[/magenta]")


@group_app.command("rename")
def group_rename(
    name: str = typer.Argument(..., help="Current group name"),
    new_name: str = typer.Argument(..., help="New group name"),
):
    """Rename a group."""
    store = open_store()
    group = resolve_group(store, name)
    try:
        store.rename_group(group.id, new_name)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Renamed group to [magenta]{escape(new_name.strip())}[/magenta]")


@group_app.command("rm")
def group_rm(name: str = typer.Argument(..., help="Group to delete")):
    """Delete a group. Its hosts are kept and become ungrouped."""
    store = open_store()
    group = resolve_group(store, name)
    try:
        store.delete_group(group.id)
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Deleted group [magenta]{escape(group.name)}[/magenta]")


@group_app.command("move")
def group_move(
    name: str = typer.Argument(..., help="Group to move"),
    direction: str = typer.Argument(..., help="'up' or 'down'"),
):
    """Swap a group with its neighbor."""
    store = open_store()
    group = resolve_group(store, name)
    try:
        moved = store.move_group(group.id, parse_direction(direction))
    except AsshoError as e:
        fail(str(e))
    if moved:
        console.print(f"[bold green]✓[/bold green] Moved group [magenta]{escape(group.name)}[/magenta] {direction}")
    else:
        console.print(f"[dim]{escape(group.name)} is already at the edge[/dim]")


@group_app.command("toggle")
def group_toggle(name: str = typer.Argument(..., help="Group to expand or collapse")):
    """Expand or collapse a group in the default view."""
    store = open_store()
    group = resolve_group(store, name)
    try:
        expanded = store.toggle_group(group.id)
    except AsshoError as e:
        fail(str(e))
    state = "expanded" if expanded else "collapsed"
    console.print(f"[bold green]✓[/bold green] Group [magenta]{escape(group.name)}[/magenta] {state}")


# ============================================================================
# Connection Commands
# ============================================================================


@app.command()
def connect(alias: str = typer.Argument(..., help="Host or container to connect to")):
    """Open a shell on a host, or inside a container."""
    store = open_store()
    host = resolve_host(store, alias)
    try:
        store.record_history(host)
    except AsshoError as e:
        fail(f"Failed to save history: {e}")
    connect_to(store, host)


@app.command("test")
def test_host(alias: str = typer.Argument(..., help="Host to test")):
    """Check that a host accepts a non-interactive login."""
    store = open_store()
    host = resolve_host(store, alias)
    with console.status(f"Testing {escape(host.alias)}..."):
        result = ssh.test_connection(host)
    if not result.success:
        fail(result.message)
    console.print(f"[bold green]✓[/bold green] {escape(result.message)}")


@app.command()
def scan(alias: str = typer.Argument(..., help="Host to scan for Docker containers")):
    """Discover running Docker containers on a host."""
    store = open_store()
    host = resolve_host(store, alias)
    if host.is_container:
        fail("Cannot scan a container.")
    try:
        with console.status(f"Scanning {escape(host.alias)}..."):
            containers = ssh.scan_docker_containers(host)
        store.set_containers(host.id, containers)
    except AsshoError as e:
        fail(str(e))
    console.print(
        f"[bold green]✓[/bold green] Found {len(containers)} containers on [cyan]{escape(host.alias)}[/cyan]"
    )


@app.command()
def history():
    """Show recently used hosts."""
    store = open_store()
    hosts = store.history_hosts()
    if not hosts:
        console.print("[yellow]No connection history yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Host")
    table.add_column("Target", style="dim")
    for host in hosts:
        if host.hostname:
            table.add_row(escape(host.alias), escape(host.display_name))
        else:
            table.add_row(f"[dim]{escape(host.alias)}[/dim]", "")
    console.print(Panel(table, title="[bold]Recent[/bold]", border_style="cyan"))


# ============================================================================
# SSH Config Commands
# ============================================================================


@app.command("import")
def import_config(
    path: str | None = typer.Option(None, "--path", help="SSH config file (default ~/.ssh/config)"),
):
    """Import hosts from your SSH config."""
    store = open_store()
    try:
        result = store.import_ssh_config(_config_path(path))
    except AsshoError as e:
        fail(str(e))
    console.print(
        f"[bold green]✓[/bold green] Imported {len(result.imported)} hosts "
        f"({result.skipped} skipped)"
    )


@app.command("export")
def export_config(
    path: str | None = typer.Option(None, "--path", help="SSH config file (default ~/.ssh/config)"),
):
    """Append saved hosts to your SSH config."""
    store = open_store()
    try:
        exported, skipped = store.export_ssh_config(_config_path(path))
    except AsshoError as e:
        fail(str(e))
    console.print(f"[bold green]✓[/bold green] Exported {exported} hosts ({skipped} skipped)")


def _config_path(path: str | None) -> Path:
    return Path(path).expanduser() if path else default_ssh_config_path()


if __name__ == "__main__":
    app()
