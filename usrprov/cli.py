"""
usrprov CLI — entry point for all operations.

Usage:
    usrprov serve                   # Start the API server
    usrprov add-user alice          # Upsert a user and sync the Secret
    usrprov sync                    # Push the current htpasswd file
    usrprov seed users.htpasswd     # Replace the store file (and sync)
    usrprov status                  # Show configuration and store state
    usrprov version                 # Show version
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="usrprov",
        description="Provision htpasswd users and sync them into the cluster Secret.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: USRPROV_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: USRPROV_PORT)")

    # add-user
    add_parser = subparsers.add_parser("add-user", help="Create or update a user, then sync")
    add_parser.add_argument("username")
    add_parser.add_argument("--password", help="Password (prompted if omitted)")

    # sync
    subparsers.add_parser("sync", help="Push the current htpasswd file to the Secret")

    # seed
    seed_parser = subparsers.add_parser("seed", help="Replace the htpasswd file from FILE")
    seed_parser.add_argument("file", type=Path)
    seed_parser.add_argument("--no-sync", action="store_true", help="Only write the local file")

    # status
    subparsers.add_parser("status", help="Show configuration and store state")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from usrprov import __version__

        print(f"usrprov {__version__}")
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "add-user":
        return _cmd_add_user(args)
    elif args.command == "sync":
        return _run(_sync())
    elif args.command == "seed":
        return _cmd_seed(args)
    elif args.command == "status":
        return _cmd_status()
    else:
        parser.print_help()
        return 0


def _run(coro) -> int:
    """Run a pipeline coroutine, printing its outputs or the error."""
    from usrprov.errors import ProvisioningError

    try:
        outputs = asyncio.run(coro)
    except ProvisioningError as e:
        print(f"Error ({e.kind}): {e}")
        return 1
    for line in outputs:
        print(line)
    return 0


def _provisioner():
    from usrprov.config import get_config
    from usrprov.provisioning import Provisioner

    return Provisioner.from_config(get_config())


async def _add_user(username: str, password: str) -> list[str]:
    result = await _provisioner().provision(username, password)
    return result.outputs


async def _sync() -> list[str]:
    return [await _provisioner().sync_only()]


async def _seed(data: str, sync: bool) -> list[str]:
    return await _provisioner().seed(data, sync=sync)


def _cmd_add_user(args: argparse.Namespace) -> int:
    password = args.password
    if password is None:
        password = getpass.getpass(f"Password for {args.username}: ")
    return _run(_add_user(args.username, password))


def _cmd_seed(args: argparse.Namespace) -> int:
    try:
        data = args.file.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read {args.file}: {e}")
        return 1
    return _run(_seed(data, not args.no_sync))


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is required. Install with: pip install usrprov")
        return 1

    from usrprov.config import get_config
    from usrprov.errors import ProvisioningError

    try:
        cfg = get_config()
    except ProvisioningError as e:
        print(f"Error ({e.kind}): {e}")
        return 1
    host = args.host or cfg.host
    port = args.port or cfg.port
    print(f"Starting usrprov on {host}:{port}...")
    uvicorn.run("usrprov.api.service:app", host=host, port=port)
    return 0


def _cmd_status() -> int:
    import httpx

    from usrprov import __version__
    from usrprov.config import get_config
    from usrprov.errors import ProvisioningError
    from usrprov.htpasswd.fileio import usernames

    try:
        cfg = get_config()
    except ProvisioningError as e:
        print(f"Error ({e.kind}): {e}")
        return 1
    print(f"usrprov v{__version__}")
    print()

    store_path = cfg.store.path
    print(f"  Store:   {store_path}")
    if store_path.is_file():
        users = usernames(store_path.read_text(encoding="utf-8"))
        print(f"           {len(users)} users")
    else:
        print("           not created yet")
    print(f"  Hasher:  {cfg.store.hasher} (cost {cfg.store.bcrypt_cost})")
    print(f"  Secret:  {cfg.secret.namespace}/{cfg.secret.name} key '{cfg.secret.key}'")

    host = "127.0.0.1" if cfg.host == "0.0.0.0" else cfg.host
    print(f"  API:     http://{host}:{cfg.port}")
    try:
        resp = httpx.get(f"http://{host}:{cfg.port}/health", timeout=3)
        print(f"           {'OK' if resp.status_code == 200 else f'HTTP {resp.status_code}'}")
    except httpx.HTTPError as e:
        print(f"           UNREACHABLE: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
