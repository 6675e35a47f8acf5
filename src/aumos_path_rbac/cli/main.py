"""CLI entry point for aumos-path-rbac.

Invoked as::

    rbac [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m aumos_path_rbac.cli.main

Commands
--------
- check        Evaluate one (path, action, stage) request for a role
- permissions  Show the compiled permission index for a role
- actions      List the workflow actions permitted on a path
- tree         Show the resource navigation tree
- version      Show version information

Every command reads an RBAC dataset (``--dataset``).  Defaults for the
dataset, role and workflow stage can be set in ``rbac.yaml``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from aumos_path_rbac.config import ConfigLoader, RbacConfig
from aumos_path_rbac.exceptions import DatasetConfigError, MetadataParseError
from aumos_path_rbac.hierarchy import ResourceNode, build_resource_tree
from aumos_path_rbac.permissions.loader import DatasetLoader, PermissionDataset
from aumos_path_rbac.permissions.store import PermissionSnapshot, PermissionStore

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("rbac.yaml")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _load_config(config_path: str) -> RbacConfig:
    loader = ConfigLoader()
    path = Path(config_path)
    if not path.exists():
        return loader.defaults()
    try:
        return loader.load(path)
    except (yaml.YAMLError, ValidationError) as exc:
        err_console.print(f"[red]Invalid config {escape(str(path))}:[/red] {escape(str(exc))}")
        sys.exit(2)


def _load_dataset(dataset_path: str | None, config: RbacConfig) -> PermissionDataset:
    path = Path(dataset_path) if dataset_path else config.dataset_path
    if path is None:
        err_console.print(
            "[red]No dataset given.[/red] Use --dataset or set dataset_path in rbac.yaml."
        )
        sys.exit(2)
    try:
        return DatasetLoader().load(path)
    except (FileNotFoundError, DatasetConfigError) as exc:
        err_console.print(f"[red]Could not load dataset:[/red] {escape(str(exc))}")
        sys.exit(2)


def _resolve_role(role_id: int | None, config: RbacConfig) -> int:
    effective = role_id if role_id is not None else config.default_role_id
    if effective is None:
        err_console.print(
            "[red]No role given.[/red] Use --role or set default_role_id in rbac.yaml."
        )
        sys.exit(2)
    return effective


def _snapshot_for(
    dataset: PermissionDataset, role_id: int, config: RbacConfig
) -> PermissionSnapshot:
    store = PermissionStore(
        on_metadata_error=config.on_metadata_error,
        default_workflow_stage=config.default_workflow_stage,
    )
    try:
        return store.load_dataset(dataset, role_id=role_id)
    except MetadataParseError as exc:
        err_console.print(f"[red]Malformed permission metadata:[/red] {escape(str(exc))}")
        sys.exit(2)


_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to rbac.yaml.",
)
_dataset_option = click.option(
    "--dataset",
    "-d",
    "dataset_path",
    default=None,
    type=click.Path(),
    help="RBAC dataset file (YAML or JSON).",
)
_role_option = click.option(
    "--role",
    "-r",
    "role_id",
    default=None,
    type=int,
    help="Active role id.",
)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aumos-path-rbac")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Path RBAC CLI — compile role permissions and evaluate access."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from aumos_path_rbac import __version__

    console.print(
        Panel(
            f"[bold]aumos-path-rbac[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Hierarchical path-based permission evaluation.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command(name="check")
@_dataset_option
@_role_option
@_config_option
@click.option("--path", "-p", "resource_path", required=True, help="Resource path.")
@click.option("--action", "-a", "action", required=True, help="Action name, e.g. READ.")
@click.option("--stage", "-s", "stage", default=None, help="Workflow stage.")
def check_command(
    dataset_path: str | None,
    role_id: int | None,
    config_path: str,
    resource_path: str,
    action: str,
    stage: str | None,
) -> None:
    """Evaluate one access request for a role."""
    config = _load_config(config_path)
    dataset = _load_dataset(dataset_path, config)
    snapshot = _snapshot_for(dataset, _resolve_role(role_id, config), config)

    decision = snapshot.check(resource_path, action.upper(), stage)
    status_str = "[green]ALLOWED[/green]" if decision.allowed else "[red]DENIED[/red]"
    console.print(Panel(status_str, title="Permission Check Result", border_style="blue"))
    console.print(f"  Role: [cyan]{snapshot.role_id}[/cyan]")
    if decision.workflow_stage:
        console.print(f"  Workflow stage: [cyan]{decision.workflow_stage}[/cyan]")
    if decision.matched_path:
        console.print(f"  Matched entry: [bold]{decision.matched_path}[/bold]")
    console.print(f"  Reason: {escape(decision.reason)}")

    sys.exit(0 if decision.allowed else 1)


# ---------------------------------------------------------------------------
# permissions
# ---------------------------------------------------------------------------


@cli.command(name="permissions")
@_dataset_option
@_role_option
@_config_option
def permissions_command(
    dataset_path: str | None, role_id: int | None, config_path: str
) -> None:
    """Show the compiled permission index for a role."""
    config = _load_config(config_path)
    dataset = _load_dataset(dataset_path, config)
    effective_role = _resolve_role(role_id, config)
    snapshot = _snapshot_for(dataset, effective_role, config)

    role = dataset.role(effective_role)
    title = f"Permissions for {role.name}" if role else f"Permissions for role {effective_role}"
    if not snapshot.permissions:
        console.print(f"[yellow]No permissions compiled for role {effective_role}.[/yellow]")
    else:
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Path", style="cyan")
        table.add_column("Actions", style="magenta")
        table.add_column("Override")
        table.add_column("Level", justify="right")
        table.add_column("Stages", style="dim")
        for permission in sorted(snapshot.permissions, key=lambda p: p.resource_path):
            stages = (
                ", ".join(sorted(permission.metadata.workflow_restrictions))
                if permission.metadata
                else ""
            )
            table.add_row(
                permission.resource_path,
                ", ".join(sorted(permission.actions)),
                "yes" if permission.is_override else "",
                str(permission.hierarchy_level),
                stages,
            )
        console.print(table)

    for error in snapshot.errors:
        err_console.print(f"[yellow]Dropped:[/yellow] {escape(str(error))}")


# ---------------------------------------------------------------------------
# actions
# ---------------------------------------------------------------------------


@cli.command(name="actions")
@_dataset_option
@_role_option
@_config_option
@click.option("--path", "-p", "resource_path", required=True, help="Resource path.")
@click.option("--stage", "-s", "stage", default=None, help="Workflow stage.")
def actions_command(
    dataset_path: str | None,
    role_id: int | None,
    config_path: str,
    resource_path: str,
    stage: str | None,
) -> None:
    """List the workflow actions permitted on a path."""
    config = _load_config(config_path)
    dataset = _load_dataset(dataset_path, config)
    snapshot = _snapshot_for(dataset, _resolve_role(role_id, config), config)

    permitted = snapshot.workflow_actions(resource_path, stage, config.workflow_actions)
    effective_stage = stage or snapshot.workflow_stage or "-"
    if not permitted:
        console.print(
            f"[yellow]No actions permitted on {resource_path} (stage {effective_stage}).[/yellow]"
        )
        return
    console.print(
        f"Actions on [bold]{resource_path}[/bold] (stage [cyan]{effective_stage}[/cyan]): "
        + ", ".join(f"[green]{action}[/green]" for action in permitted)
    )


# ---------------------------------------------------------------------------
# tree
# ---------------------------------------------------------------------------


def _add_branch(branch: Tree, node: ResourceNode) -> None:
    child = branch.add(
        f"[cyan]{node.path}[/cyan]  {node.resource.name} [dim]({node.resource.type})[/dim]"
    )
    for grandchild in node.children:
        _add_branch(child, grandchild)


@cli.command(name="tree")
@_dataset_option
@_config_option
def tree_command(dataset_path: str | None, config_path: str) -> None:
    """Show the resource navigation tree."""
    config = _load_config(config_path)
    dataset = _load_dataset(dataset_path, config)

    roots = build_resource_tree(dataset.resources)
    if not roots:
        console.print("[yellow]No resources defined.[/yellow]")
        return
    tree = Tree("[bold]Resources[/bold]")
    for root in roots:
        _add_branch(tree, root)
    console.print(tree)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
