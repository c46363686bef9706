"""
Volume provisioning commands.

Thin wrappers over the HTTP API of a running ``localvol serve``.
"""

from typing import Dict, List, Optional

import typer

from localvol.cli.lib.config import load_config
from localvol.cli.lib.validators import validate_name
from localvol.client import LocalVolClient
from localvol.models import StorageClass
from localvol.quantity import format_size, parse_size
from localvol.store import build_store

app = typer.Typer(help="Volume provisioning commands")

DEFAULT_ENDPOINT = "http://127.0.0.1:8080"


def _parse_params(values: List[str]) -> Dict[str, str]:
    params = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise ValueError(f"Parameter must be KEY=VALUE, got {value!r}")
        params[key] = val
    return params


@app.command()
def create(
    name: str = typer.Argument(..., help="Volume name"),
    size: str = typer.Option(..., "--size", help="Size in bytes or as a quantity (e.g. 10Gi)"),
    storage_class: Optional[str] = typer.Option(
        None, "--storage-class", help="Take parameters from this StorageClass"
    ),
    param: Optional[List[str]] = typer.Option(None, "--param", help="Storage class parameter KEY=VALUE (repeatable)"),
    node: Optional[str] = typer.Option(None, "--node", help="Preferred node (WaitForFirstConsumer)"),
    block: bool = typer.Option(False, "--block", help="Request raw block access"),
    endpoint: str = typer.Option(DEFAULT_ENDPOINT, "--endpoint", help="localvol API endpoint"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Call deadline in seconds"),
):
    """
    Create a volume.
    """
    try:
        validate_name(name)
        size_bytes = parse_size(size)
        cfg = load_config()

        params: Dict[str, str] = {}
        if storage_class:
            params.update(build_store(cfg).get(StorageClass, storage_class).parameters)
        params.update(_parse_params(param or []))

        typer.echo(f"Creating volume: {name} ({format_size(size_bytes)})")
        client = LocalVolClient(endpoint)
        volume = client.create_volume(
            name, size_bytes, params, node=node, topology_key=cfg.topology_key, block=block, deadline=timeout
        )
        context = volume.get("volume_context", {})
        topology = volume.get("accessible_topology", [{}])
        node_name = topology[0].get(cfg.topology_key, "-") if topology else "-"
        typer.echo(f"  Volume group: {context.get('vgname', '-')}")
        if context.get("thinPoolName"):
            typer.echo(f"  Thin pool: {context['thinPoolName']}")
        typer.echo(f"  Node: {node_name}")
        typer.echo(f"Volume {volume.get('volume_id', name)} created successfully")
    except Exception as e:
        typer.echo(f"Error creating volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def expand(
    name: str = typer.Argument(..., help="Volume name"),
    size: str = typer.Option(..., "--size", help="New size in bytes or as a quantity (e.g. 20Gi)"),
    block: bool = typer.Option(False, "--block", help="Volume is accessed as a raw block device"),
    endpoint: str = typer.Option(DEFAULT_ENDPOINT, "--endpoint", help="localvol API endpoint"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Call deadline in seconds"),
):
    """
    Expand a volume.
    """
    try:
        validate_name(name)
        size_bytes = parse_size(size)
        typer.echo(f"Expanding volume: {name} to {format_size(size_bytes)}")
        result = LocalVolClient(endpoint).expand_volume(name, size_bytes, block=block, deadline=timeout)
        typer.echo(f"  Capacity: {format_size(int(result.get('capacity_bytes', 0)))}")
        typer.echo(f"  Node expansion required: {result.get('node_expansion_required')}")
        typer.echo(f"Volume {name} expanded successfully")
    except Exception as e:
        typer.echo(f"Error expanding volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def delete(
    name: str = typer.Argument(..., help="Volume name"),
    endpoint: str = typer.Option(DEFAULT_ENDPOINT, "--endpoint", help="localvol API endpoint"),
):
    """
    Delete a volume.
    """
    try:
        validate_name(name)
        LocalVolClient(endpoint).delete_volume(name)
        typer.echo(f"Volume {name} deleted successfully")
    except Exception as e:
        typer.echo(f"Error deleting volume: {e}", err=True)
        raise typer.Exit(1)
