"""
LocalStorageClass reconciler commands.
"""

import typer

from localvol.cli.lib.config import load_config
from localvol.cli.lib.logsetup import setup_logging
from localvol.controller.loop import ReconcileLoop
from localvol.controller.reconciler import LocalStorageClassReconciler
from localvol.store import build_store

app = typer.Typer(help="LocalStorageClass reconciler commands")


@app.command()
def run():
    """
    Run the reconcile loop until interrupted.
    """
    cfg = load_config()
    setup_logging(cfg.log_level)
    try:
        loop = ReconcileLoop(build_store(cfg), cfg=cfg)
    except Exception as e:
        typer.echo(f"Error starting reconciler: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Reconciling LocalStorageClasses for provisioner {cfg.provisioner}")
    try:
        loop.run()
    except KeyboardInterrupt:
        typer.echo("Stopping reconciler")
    finally:
        loop.stop()


@app.command()
def once(name: str = typer.Argument(..., help="LocalStorageClass name")):
    """
    Reconcile one LocalStorageClass and print the result.
    """
    try:
        cfg = load_config()
        reconciler = LocalStorageClassReconciler(build_store(cfg), cfg)
        result = reconciler.reconcile(name)
    except Exception as e:
        typer.echo(f"Error reconciling {name}: {e}", err=True)
        raise typer.Exit(1)

    if result.error is not None:
        typer.echo(f"Reconcile of {name} failed: {result.error}", err=True)
        typer.echo(f"Requeue after {result.requeue_after}s", err=True)
        raise typer.Exit(1)
    typer.echo(f"LocalStorageClass {name} reconciled")
