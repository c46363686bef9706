"""
Uvicorn server entrypoint for the localvol API.
"""

from __future__ import annotations

import argparse

import uvicorn

from localvol.api.main import app, configure
from localvol.cli.lib.config import load_config
from localvol.cli.lib.logsetup import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="localvol-api", description="localvol provisioning API server")
    parser.add_argument("--host", default=None, help="Bind host (default: from config or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: from config or 8080)")
    parser.add_argument("--log-level", default=None, help="Log level (default: from config or INFO)")
    return parser


def serve(host: str | None = None, port: int | None = None, log_level: str | None = None) -> None:
    cfg = load_config()
    level = (log_level or cfg.log_level).upper()
    setup_logging(level)
    configure(cfg=cfg)
    uvicorn.run(app, host=host or cfg.api_host, port=port or cfg.api_port, log_level=level.lower())


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    serve(args.host, args.port, args.log_level)
    return 0
