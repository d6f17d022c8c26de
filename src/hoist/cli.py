"""hoist CLI entry point."""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hoist import __version__, context
from hoist.command import all_of, arg, raw
from hoist.config import load_inventory, load_settings
from hoist.context import UnknownVariable
from hoist.hosts import Host, HostCollection, HostNotFound
from hoist.log import configure_logging
from hoist.range import InvalidRange
from hoist.selector import HostResolutionError, HostSelector, NoHostsSpecified
from hoist.ssh import (
    ProxyCycleError,
    ProxyNotFound,
    build_connect_argv,
    render_connect_command,
)


logger = logging.getLogger(__name__)

# Errors reported to the user as "Error: <message>" with exit code 1.
USER_ERRORS = (
    HostNotFound,
    HostResolutionError,
    InvalidRange,
    NoHostsSpecified,
    ProxyNotFound,
    ProxyCycleError,
    UnknownVariable,
)


def _stdin_is_tty() -> bool:
    """Check if stdin is an interactive terminal.

    Returns:
        bool: True if stdin is a tty.
    """
    return sys.stdin.isatty()


app = typer.Typer(
    name="hoist",
    help="hoist: select fleet hosts and connect to them.",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"hoist {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    inventory: Optional[Path] = typer.Option(
        None, "--inventory", "-i", help="Inventory file (default: hoist.toml)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """hoist: select fleet hosts and connect to them."""
    settings = load_settings()
    configure_logging(settings, verbose=verbose)

    inventory_path = inventory or Path(settings.inventory)
    logger.debug("Loading inventory from %s", inventory_path)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["registry"] = load_inventory(inventory_path)


def _fail(exc: Exception) -> None:
    console.print(f"Error: {exc}", markup=False)
    raise typer.Exit(code=1)


def _base_selector(ctx: typer.Context) -> HostSelector:
    settings = ctx.obj["settings"]
    return HostSelector(
        ctx.obj["registry"],
        cluster=settings.default_cluster,
        stage=settings.default_stage,
    )


@app.command("hosts")
def list_hosts(
    ctx: typer.Context,
    cluster: Optional[str] = typer.Option(None, "--cluster", "-c", help="Only hosts of this cluster."),
    stage: Optional[str] = typer.Option(None, "--stage", "-s", help="Only hosts of this stage."),
    roles: Optional[str] = typer.Option(None, "--roles", "-r", help="Comma separated roles."),
    hostnames: Optional[str] = typer.Option(
        None, "--hosts", help="Comma separated aliases, range syntax allowed."
    ),
) -> None:
    """List declared hosts.

    Shows each host's ID, cluster, stage, description and roles. Filters
    narrow the list in the order hosts, stage, roles, cluster.
    """
    selector = _base_selector(ctx)

    try:
        if hostnames:
            selector = selector.get_by_hostnames(hostnames)
        if stage:
            selector = selector.get_by_stage(stage)
        if roles:
            selector = selector.get_by_roles(roles)
        if cluster:
            hosts = list(selector.get_hosts(cluster).values())
        else:
            hosts = selector.hosts()
    except USER_ERRORS as exc:
        _fail(exc)

    rows = []
    for host in hosts:
        if host.is_local:
            continue
        rows.append(
            (
                str(host.get("edge-id", "") or ""),
                str(host.get("cluster", "") or ""),
                str(host.get("stage", "") or ""),
                host.get_description(),
                ", ".join(host.get("roles") or []),
            )
        )

    if not rows:
        console.print("No hosts.")
        return

    rows.sort(key=lambda row: (row[1], row[2], row[3]))

    table = Table()
    for column in ("ID", "Cluster", "Stage", "Host", "Role"):
        table.add_column(column)
    for row in rows:
        table.add_row(*row)

    console.print(table)


def _find_host(registry: HostCollection, name: str) -> Host:
    """Find a host by alias, ``hostname`` or ``user@hostname``.

    Raises:
        HostNotFound: If nothing matches.
    """
    if registry.has(name):
        return registry.get(name)

    user = None
    hostname = name
    if "@" in name:
        user, hostname = name.split("@", 1)

    for host in registry:
        if user is not None and user != host.get_user():
            continue
        if hostname == host.get_real_hostname():
            return host

    raise HostNotFound(f"No such host: {name}")


def _pick_host(hosts: list[Host]) -> Host:
    """Let the user pick one of ``hosts`` with fzf.

    Raises:
        typer.Exit: If the selection is cancelled.
    """
    lines = [f"{host.alias} : {host.get_description()}" for host in hosts]
    result = subprocess.run(
        ["fzf", "--prompt", "Select host: "],
        input="\n".join(lines),
        text=True,
        capture_output=True,
    )
    if result.returncode != 0:
        console.print("Selection cancelled.")
        raise typer.Exit(code=1)

    alias = result.stdout.strip().split(" : ", 1)[0]
    for host in hosts:
        if host.alias == alias:
            return host
    raise HostNotFound(f"No such host: {alias}")


def build_login_command(host: Host) -> str:
    """Remote command for an interactive login shell on ``host``.

    Starts ``$SHELL`` (or the host's ``shell_path``) as a login shell, inside
    ``deploy_path`` when the host defines one.
    """
    with context.bound(host):
        if host.has("shell_path"):
            login = arg("exec", host.parse(host.get("shell_path")), "-l")
        else:
            login = raw("exec $SHELL -l")

        if host.has("deploy_path"):
            deploy_path = host.parse(host.get("deploy_path"))
            return str(all_of(arg("cd", deploy_path), login))
        return str(login)


@app.command("ssh")
def ssh_connect(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Host alias, hostname or user@hostname."),
    print_only: bool = typer.Option(
        False, "--print", help="Print the ssh command instead of running it."
    ),
) -> None:
    """Open an interactive shell on a host.

    Without a name, a single declared host is used directly; several hosts
    are offered through fzf when stdin is a terminal.
    """
    registry: HostCollection = ctx.obj["registry"]

    try:
        if name:
            host = _find_host(registry, name)
        else:
            remote = registry.select(lambda h: not h.is_local)
            if not remote:
                console.print("No remote hosts.")
                return
            if len(remote) == 1:
                host = remote[0]
            elif _stdin_is_tty():
                host = _pick_host(remote)
            else:
                console.print("Multiple hosts found:")
                for candidate in remote:
                    console.print(f"  {candidate.alias}", markup=False)
                console.print("Use: hoist ssh <host>")
                raise typer.Exit(code=1)

        login = build_login_command(host)
        if print_only:
            typer.echo(render_connect_command(host, login))
            return
        argv = build_connect_argv(host, login)
    except USER_ERRORS as exc:
        _fail(exc)

    logger.debug("Executing %s", argv)
    os.execvp(argv[0], argv)
