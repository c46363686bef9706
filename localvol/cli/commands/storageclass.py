"""
LocalStorageClass management commands.
"""

from pathlib import Path

import typer

from localvol.cli.lib.config import load_config
from localvol.cli.lib.manifests import load_manifests
from localvol.cli.lib.validators import validate_name
from localvol.exceptions import ResourceNotFound
from localvol.models import LocalStorageClass, StorageClass
from localvol.store import build_store, update_with_retry

app = typer.Typer(help="LocalStorageClass management commands")


@app.command()
def apply(path: Path = typer.Argument(..., help="YAML file with LocalStorageClass manifests")):
    """
    Create or update LocalStorageClasses from a manifest file.

    Only the spec of an existing LocalStorageClass is replaced.
    """
    try:
        cfg = load_config()
        store = build_store(cfg)
        for lsc in load_manifests(path, LocalStorageClass):
            validate_name(lsc.name)
            try:
                store.get(LocalStorageClass, lsc.name)
            except ResourceNotFound:
                store.create(lsc)
                typer.echo(f"LocalStorageClass {lsc.name} created")
                continue

            def _replace_spec(current: LocalStorageClass, spec=lsc.spec) -> bool:
                if current.spec == spec:
                    return False
                current.spec = spec
                return True

            update_with_retry(store, LocalStorageClass, lsc.name, _replace_spec, attempts=cfg.conflict_retries)
            typer.echo(f"LocalStorageClass {lsc.name} configured")
    except Exception as e:
        typer.echo(f"Error applying {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command(name="list")
def list_storage_classes():
    """
    List LocalStorageClasses and the state of their StorageClasses.
    """
    try:
        store = build_store(load_config())
        items = store.list(LocalStorageClass)
        derived = {sc.name: sc for sc in store.list(StorageClass)}
    except Exception as e:
        typer.echo(f"Error listing LocalStorageClasses: {e}", err=True)
        raise typer.Exit(1)

    if not items:
        typer.echo("No LocalStorageClasses found")
        return
    for lsc in items:
        phase = lsc.status.phase if lsc.status else "-"
        lvm_type = lsc.spec.lvm.type.value if lsc.spec.lvm else "-"
        groups = ",".join(b.name for b in lsc.bindings) or "-"
        storage_class = "yes" if lsc.name in derived else "no"
        deleting = " deleting" if lsc.is_deleting else ""
        typer.echo(
            f"{lsc.name} phase={phase} type={lvm_type} groups={groups} "
            f"binding={lsc.spec.volume_binding_mode.value} storageclass={storage_class}{deleting}"
        )


@app.command()
def get(name: str = typer.Argument(..., help="LocalStorageClass name")):
    """
    Show one LocalStorageClass with its status reason.
    """
    try:
        store = build_store(load_config())
        lsc = store.get(LocalStorageClass, name)
    except Exception as e:
        typer.echo(f"Error getting LocalStorageClass {name}: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Name: {lsc.name}")
    typer.echo(f"Reclaim policy: {lsc.spec.reclaim_policy.value}")
    typer.echo(f"Binding mode: {lsc.spec.volume_binding_mode.value}")
    if lsc.spec.lvm:
        typer.echo(f"LVM type: {lsc.spec.lvm.type.value}")
        for binding in lsc.bindings:
            pool = f" thin pool {binding.pool_name}" if binding.pool_name else ""
            typer.echo(f"  - {binding.name}{pool}")
    typer.echo(f"Finalizers: {', '.join(lsc.metadata.finalizers) or '-'}")
    if lsc.status:
        typer.echo(f"Phase: {lsc.status.phase}")
        if lsc.status.reason:
            typer.echo(f"Reason: {lsc.status.reason}")


@app.command()
def delete(name: str = typer.Argument(..., help="LocalStorageClass name")):
    """
    Delete a LocalStorageClass.

    While the reconciler finalizer is present the object is only marked for
    deletion; the reconciler removes its StorageClass and then the object.
    """
    try:
        store = build_store(load_config())
        store.delete(LocalStorageClass, name)
    except Exception as e:
        typer.echo(f"Error deleting LocalStorageClass {name}: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"LocalStorageClass {name} marked for deletion")
