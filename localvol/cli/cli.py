#!/usr/bin/env python3
"""
Main CLI entry point using Typer.
"""

import sys
from typing import Optional

import typer

from localvol.cli.commands import reconcile, storageclass, volume, volumegroup

app = typer.Typer(
    name="localvol",
    help="localvol LVM volume provisioning control tool",
    add_completion=False,
)

# Add command groups
app.add_typer(reconcile.app, name="reconcile", help="LocalStorageClass reconciler commands")
app.add_typer(storageclass.app, name="storageclass", help="LocalStorageClass management commands")
app.add_typer(volumegroup.app, name="volumegroup", help="LVMVolumeGroup inventory commands")
app.add_typer(volume.app, name="volume", help="Volume provisioning commands")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host (default: from config or 127.0.0.1)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default: from config or 8080)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default: from config or INFO)"),
):
    """
    Run the provisioning API server.
    """
    from localvol.api.server import serve as run_server

    run_server(host, port, log_level)


def main() -> int:
    """Main entry point."""
    try:
        app()
        return 0
    except KeyboardInterrupt:
        typer.echo("\nOperation cancelled by user", err=True)
        return 130
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
