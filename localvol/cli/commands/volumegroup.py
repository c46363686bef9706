"""
LVMVolumeGroup inventory commands.

Volume groups are normally reported by node agents; ``apply`` loads them from
a manifest for clusterless setups and tests.
"""

from pathlib import Path

import typer

from localvol.cli.lib.config import load_config
from localvol.cli.lib.manifests import load_manifests
from localvol.exceptions import ResourceNotFound
from localvol.models import VolumeGroup
from localvol.quantity import format_size
from localvol.store import build_store, update_with_retry

app = typer.Typer(help="LVMVolumeGroup inventory commands")


@app.command()
def apply(path: Path = typer.Argument(..., help="YAML file with LVMVolumeGroup manifests")):
    """
    Create or replace LVMVolumeGroups from a manifest file.
    """
    try:
        cfg = load_config()
        store = build_store(cfg)
        for vg in load_manifests(path, VolumeGroup):
            try:
                store.get(VolumeGroup, vg.name)
            except ResourceNotFound:
                store.create(vg)
                typer.echo(f"LVMVolumeGroup {vg.name} created")
                continue

            def _replace(current: VolumeGroup, desired=vg) -> None:
                current.spec = desired.spec
                current.status = desired.status

            update_with_retry(store, VolumeGroup, vg.name, _replace, attempts=cfg.conflict_retries)
            typer.echo(f"LVMVolumeGroup {vg.name} configured")
    except Exception as e:
        typer.echo(f"Error applying {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command(name="list")
def list_volume_groups():
    """
    List LVMVolumeGroups with their capacity.
    """
    try:
        items = build_store(load_config()).list(VolumeGroup)
    except Exception as e:
        typer.echo(f"Error listing LVMVolumeGroups: {e}", err=True)
        raise typer.Exit(1)

    if not items:
        typer.echo("No LVMVolumeGroups found")
        return
    for vg in items:
        typer.echo(
            f"{vg.name} node={vg.node_name or '-'} vg={vg.vg_name} "
            f"size={format_size(vg.status.size)} free={format_size(vg.free_size)}"
        )
        for pool in vg.status.thin_pools:
            typer.echo(f"  thin pool {pool.name} size={format_size(pool.size)} free={format_size(pool.free_size)}")
