"""Module executed when running ``python -m cinexplorer``."""

from __future__ import annotations

import argparse
import getpass
from typing import Sequence

import uvicorn

from app.config import settings
from app.services.auth import hash_password


def serve() -> None:
    """Start the uvicorn server using the configured settings."""

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="cinexplorer")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="run the catalog API (default)")
    commands.add_parser(
        "hash-password", help="print an ADMIN_PASSWORD_HASH for a password"
    )
    args = parser.parse_args(argv)

    if args.command == "hash-password":
        password = getpass.getpass("Admin password: ")
        print(hash_password(password))
        return
    serve()


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
