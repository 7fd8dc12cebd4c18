"""
figdigest CLI — entry point for operators.

Usage:
    figdigest run                                  # Run one digest now
    figdigest serve                                # Start the HTTP entrypoint
    figdigest generate-key                         # Print a fresh encryption key
    figdigest accounts list --user alice
    figdigest accounts add --user alice work --teams 123,456
    figdigest accounts update-teams --user alice work --teams 789
    figdigest accounts rotate --user alice work
    figdigest accounts remove --user alice work
    figdigest version
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="figdigest",
        description="figdigest — Figma activity digests delivered to Slack.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")

    # run
    subparsers.add_parser("run", help="Run one digest and print the result")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP entrypoint")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port")

    # generate-key
    subparsers.add_parser("generate-key", help="Print a new 64-hex-character encryption key")

    # accounts
    acct_parser = subparsers.add_parser("accounts", help="Manage linked Figma accounts")
    acct_sub = acct_parser.add_subparsers(dest="accounts_command")

    acct_list = acct_sub.add_parser("list", help="List a user's accounts (PATs masked)")
    acct_list.add_argument("--user", required=True, help="Owning user id")

    acct_add = acct_sub.add_parser("add", help="Validate and link a Figma PAT")
    acct_add.add_argument("--user", required=True, help="Owning user id")
    acct_add.add_argument("account", help="Account name")
    acct_add.add_argument("--teams", default="", help="Comma-separated Figma team ids")

    acct_teams = acct_sub.add_parser("update-teams", help="Replace an account's team ids")
    acct_teams.add_argument("--user", required=True, help="Owning user id")
    acct_teams.add_argument("account", help="Account name")
    acct_teams.add_argument("--teams", required=True, help="Comma-separated Figma team ids")

    acct_rotate = acct_sub.add_parser("rotate", help="Replace an account's PAT")
    acct_rotate.add_argument("--user", required=True, help="Owning user id")
    acct_rotate.add_argument("account", help="Account name")

    acct_remove = acct_sub.add_parser("remove", help="Unlink an account")
    acct_remove.add_argument("--user", required=True, help="Owning user id")
    acct_remove.add_argument("account", help="Account name")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from figdigest import __version__

        print(f"figdigest {__version__}")
        return 0

    if args.command == "run":
        return _cmd_run()
    elif args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "generate-key":
        return _cmd_generate_key()
    elif args.command == "accounts":
        if not args.accounts_command:
            acct_parser.print_help()
            return 0
        return _cmd_accounts(args)
    else:
        parser.print_help()
        return 0


def _cmd_run() -> int:
    from figdigest.config import get_config
    from figdigest.digest.orchestrator import run_digest
    from figdigest.errors import ConfigError
    from figdigest.log import configure_logging

    try:
        configure_logging(get_config().log_level)
    except ConfigError:
        configure_logging()
    status, result = asyncio.run(run_digest())
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if status == 200 else 1


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is required. Install with: pip install figdigest[serve]")
        return 1

    print(f"Starting figdigest on {args.host}:{args.port}...")
    uvicorn.run("figdigest.api.app:app", host=args.host, port=args.port)
    return 0


def _cmd_generate_key() -> int:
    from figdigest.vault.crypto import generate_key

    print(generate_key())
    return 0


def _split_teams(raw: str) -> list[str]:
    return [t.strip() for t in raw.split(",") if t.strip()]


def _read_pat() -> str:
    pat = os.environ.get("FIGMA_PAT", "")
    if pat:
        return pat
    return getpass.getpass("Figma PAT: ").strip()


def _cmd_accounts(args: argparse.Namespace) -> int:
    from figdigest.config import get_config
    from figdigest.errors import FigDigestError

    try:
        cfg = get_config()
    except FigDigestError as e:
        print(f"Error: {e}")
        return 1
    if not cfg.encryption_key:
        print("Error: FIGDIGEST_ENCRYPTION_KEY is not set")
        return 1

    pat = _read_pat() if args.accounts_command in ("add", "rotate") else ""

    try:
        accounts = asyncio.run(_run_accounts(cfg, args, pat))
    except (FigDigestError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if args.accounts_command == "remove":
        print(f"Removed {args.account}")
        return 0

    if not accounts:
        print("No linked accounts.")
        return 0
    for account in accounts:
        teams = ", ".join(account.team_ids) or "-"
        expires = account.expires_at or "unknown"
        print(f"  {account.account_name:<20} {account.masked_pat:<14} teams: {teams}  expires: {expires}")
    return 0


async def _run_accounts(cfg, args: argparse.Namespace, pat: str):
    import functools

    import httpx

    from figdigest.accounts import AccountService
    from figdigest.figma.client import FigmaClient
    from figdigest.store import RedisStore
    from figdigest.vault.dal import CredentialVault

    store = RedisStore.from_url(cfg.redis.url)
    async with httpx.AsyncClient(timeout=cfg.figma.timeout_seconds) as http:
        try:
            service = AccountService(
                CredentialVault(cfg.encryption_key, store),
                client_factory=functools.partial(FigmaClient, base_url=cfg.figma.api_url, http_client=http),
            )
            command = args.accounts_command
            if command == "list":
                return await service.list_accounts(args.user)
            if command == "add":
                return [await service.add_account(args.user, args.account, pat, _split_teams(args.teams))]
            if command == "update-teams":
                return [await service.update_team_ids(args.user, args.account, _split_teams(args.teams))]
            if command == "rotate":
                return [await service.rotate_pat(args.user, args.account, pat)]
            await service.remove_account(args.user, args.account)
            return []
        finally:
            await store.close()


if __name__ == "__main__":
    sys.exit(main())
