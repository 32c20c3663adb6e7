from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable, Coroutine
from typing import Any

from thread_sync.cli import output as out
from thread_sync.cli.config import (
    STORE_PROVIDERS,
    Config,
    config_exists,
    config_path_display,
    load_config,
    save_config,
)
from thread_sync.remote import RemoteError
from thread_sync.store import StoreError

DESCRIPTION = """\
thread-sync: keep a local cache of discussion threads in sync

Mirrors the threads of a chat conversation into a local store:
a paginated first load, then cheap delta syncs since the last
successful run. Unread and mention badges are computed from the
stored subscription.

Quick start:
  thread-sync config set-server https://chat.example.com --user-id ID --token TOKEN
  thread-sync subscribe GENERAL
  thread-sync sync GENERAL --all"""


# ── Infrastructure helpers ──────────────────────────────────────────


def _build_sync(cfg: Config):
    from thread_sync import ThreadSync

    return ThreadSync.from_config(cfg.to_dict())


def _require_server(cfg: Config) -> None:
    """Exit with guidance if no server is configured."""
    if cfg.is_configured:
        return
    out.error(
        "Server not configured. "
        "Run 'thread-sync config set-server URL' or set THREAD_SYNC_SERVER."
    )
    sys.exit(1)


# ── config ──────────────────────────────────────────────────────────


async def cmd_config_show(args: argparse.Namespace) -> None:
    """Display current configuration."""
    cfg = load_config()

    out.header(f"Configuration ({config_path_display()})")
    print()

    out.kv("Server", cfg.server_url or out.dim("not set"))
    out.kv("User id", cfg.user_id or out.dim("not set"))
    if cfg.auth_token:
        masked = cfg.auth_token[:4] + "..." + cfg.auth_token[-4:]
        out.kv("Auth token", masked)
    else:
        out.kv("Auth token", out.dim("not set"))

    if cfg.store_provider == "postgres":
        out.kv("Store", f"postgres ({cfg.db_host}:{cfg.db_port}/{cfg.db_name})")
    elif cfg.store_provider == "sqlite":
        out.kv("Store", f"sqlite ({cfg.db_path})")
    else:
        out.kv("Store", "memory (in-memory, no persistence)")

    out.kv("Page size", cfg.page_size)

    print()
    out.info("To change settings:")
    out.next_step("thread-sync config set-server URL", "change the chat server")
    out.next_step("thread-sync config set-store sqlite", "cache in a local file")
    out.next_step("thread-sync config set-store postgres", "set up PostgreSQL")
    print()


async def cmd_config_set_server(args: argparse.Namespace) -> None:
    """Save the server URL and credentials."""
    cfg = load_config() if config_exists() else Config()

    cfg.server_url = args.url.rstrip("/")
    if args.user_id is not None:
        cfg.user_id = args.user_id
    if args.token is not None:
        cfg.auth_token = args.token

    path = save_config(cfg)
    out.success(f"Server saved to {path}")
    if not cfg.auth_token:
        out.warn("No auth token set; only public conversations will be readable.")


async def cmd_config_set_store(args: argparse.Namespace) -> None:
    """Configure the store backend (memory, sqlite or postgres)."""
    cfg = load_config() if config_exists() else Config()
    backend = args.backend
    cfg.store_provider = backend

    if backend == "memory":
        path = save_config(cfg)
        out.success(f"Store set to in-memory. Config written to {path}")
        out.info("Threads will only be cached for the duration of a single command.")
        return

    if backend == "sqlite":
        if args.path:
            cfg.db_path = args.path
        path = save_config(cfg)
        out.success(f"Store set to sqlite ({cfg.db_path}). Config written to {path}")
    else:
        host = input(f"  Database host [{cfg.db_host}]: ").strip() or cfg.db_host
        port = input(f"  Database port [{cfg.db_port}]: ").strip() or str(cfg.db_port)
        name = input(f"  Database name [{cfg.db_name}]: ").strip() or cfg.db_name
        user = input(f"  Database user [{cfg.db_user}]: ").strip() or cfg.db_user
        password = (
            input(f"  Database password [{cfg.db_password}]: ").strip()
            or cfg.db_password
        )
        cfg.db_host = host
        cfg.db_port = int(port)
        cfg.db_name = name
        cfg.db_user = user
        cfg.db_password = password

        path = save_config(cfg)
        out.success(f"PostgreSQL configured. Config written to {path}")

    if not cfg.is_configured:
        return
    try:
        async with _build_sync(cfg):
            pass
        out.success("Database initialised")
    except Exception as exc:
        out.warn(f"Could not initialise database: {exc}")
        out.info(f"You can retry later with: thread-sync config set-store {backend}")


async def cmd_config_path(args: argparse.Namespace) -> None:
    """Print the config file path."""
    print(config_path_display())


# ── subscribe ───────────────────────────────────────────────────────


async def cmd_subscribe(args: argparse.Namespace) -> None:
    """Store a parent subscription so its threads are cached persistently."""
    from thread_sync import ParentSubscription

    cfg = load_config()
    _require_server(cfg)

    subscription = ParentSubscription(
        id=args.parent_id,
        unread_all=frozenset(args.unread or ()),
        unread_mentioning_me=frozenset(args.mention or ()),
        unread_mentioning_group=frozenset(args.group_mention or ()),
    )
    async with _build_sync(cfg) as sync:
        stored = await sync.save_subscription(subscription)

    out.success(f"Subscribed to {stored.id}")
    if stored.last_sync_watermark is not None:
        out.kv("Last sync", stored.last_sync_watermark.isoformat())
    else:
        out.next_step(f"thread-sync sync {stored.id} --all", "run the first load")


# ── sync ────────────────────────────────────────────────────────────


async def cmd_sync(args: argparse.Namespace) -> None:
    cfg = load_config()
    _require_server(cfg)

    try:
        async with _build_sync(cfg) as sync:
            result = await sync.sync_parent(args.parent_id, all_pages=args.all)
    except (RemoteError, StoreError) as exc:
        out.error(str(exc))
        sys.exit(1)

    out.sync_summary(result)

    if not result.ok:
        out.error(f"Sync failed: {result.error}")
        sys.exit(1)
    out.success("Done")


# ── list ────────────────────────────────────────────────────────────


async def cmd_list(args: argparse.Namespace) -> None:
    from thread_sync import classify

    cfg = load_config()
    _require_server(cfg)

    async with _build_sync(cfg) as sync:
        subscription = await sync.get_subscription(args.parent_id)
        threads = await sync.list_threads(args.parent_id)

    if subscription is None:
        out.warn(
            f"{args.parent_id} is not subscribed. "
            f"Run 'thread-sync subscribe {args.parent_id}' first."
        )
        return
    if not threads:
        out.warn(f"No cached threads. Run 'thread-sync sync {args.parent_id}' first.")
        return

    if args.limit:
        threads = threads[: args.limit]
    out.header(f"Threads of {args.parent_id} ({len(threads):,})")
    print()
    for item in threads:
        print(out.thread_row(item, classify(item.id, subscription)))
    print()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thread-sync",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Caching:\n"
            "  thread-sync subscribe PARENT_ID             "
            "Persist threads of a conversation\n"
            "  thread-sync sync PARENT_ID [--all]          "
            "Load or delta-sync its threads\n"
            "  thread-sync list PARENT_ID                  "
            "Show cached threads with badges\n"
            "\n"
            "Configuration:\n"
            "  thread-sync config show                     "
            "Show current settings\n"
            "  thread-sync config set-server URL           "
            "Change the chat server\n"
            "  thread-sync config set-store sqlite         "
            "Choose the store backend\n"
            "  thread-sync config path                     "
            "Print config file location\n"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress logs (pages, reconcile counts)",
    )
    sub = parser.add_subparsers(dest="command", title="commands")

    # subscribe
    p_subscribe = sub.add_parser(
        "subscribe", help="Store a parent subscription (enables persistent caching)"
    )
    p_subscribe.add_argument("parent_id", help="Conversation (room) id")
    p_subscribe.add_argument(
        "--unread", action="append", metavar="THREAD_ID", help="Unread thread id"
    )
    p_subscribe.add_argument(
        "--mention",
        action="append",
        metavar="THREAD_ID",
        help="Thread id with an unread mention of you",
    )
    p_subscribe.add_argument(
        "--group-mention",
        action="append",
        metavar="THREAD_ID",
        help="Thread id with an unread group mention",
    )

    # sync
    p_sync = sub.add_parser("sync", help="Sync the threads of a conversation")
    p_sync.add_argument("parent_id", help="Conversation (room) id")
    p_sync.add_argument(
        "--all",
        action="store_true",
        help="Keep loading pages until the server runs out (first load only)",
    )

    # list
    p_list = sub.add_parser("list", help="List cached threads")
    p_list.add_argument("parent_id", help="Conversation (room) id")
    p_list.add_argument("--limit", type=int, default=None, help="Max threads to show")

    # config
    p_cfg = sub.add_parser("config", help="View and change settings")
    cfg_sub = p_cfg.add_subparsers(dest="config_command", title="config commands")

    cfg_sub.add_parser("show", help="Show current settings")

    p_cfg_server = cfg_sub.add_parser("set-server", help="Change the chat server")
    p_cfg_server.add_argument("url", help="Server base URL")
    p_cfg_server.add_argument("--user-id", default=None, help="X-User-Id header")
    p_cfg_server.add_argument("--token", default=None, help="X-Auth-Token header")

    p_cfg_store = cfg_sub.add_parser("set-store", help="Configure the store backend")
    p_cfg_store.add_argument(
        "backend",
        choices=STORE_PROVIDERS,
        help="Store backend to use",
    )
    p_cfg_store.add_argument("--path", default=None, help="SQLite database file")

    cfg_sub.add_parser("path", help="Print config file location")

    return parser


# ── Dispatch ────────────────────────────────────────────────────────

_CommandHandler = Callable[[argparse.Namespace], Coroutine[Any, Any, None]]

_COMMAND_MAP: dict[str, _CommandHandler] = {
    "subscribe": cmd_subscribe,
    "sync": cmd_sync,
    "list": cmd_list,
}

_CONFIG_MAP: dict[str, _CommandHandler] = {
    "show": cmd_config_show,
    "set-server": cmd_config_set_server,
    "set-store": cmd_config_set_store,
    "path": cmd_config_path,
}


def main() -> None:
    import logging

    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="  %(name)s: %(message)s",
        )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    if not args.command:
        parser.print_help()
        return

    if args.command == "config":
        if not args.config_command:
            parser.parse_args(["config", "--help"])
            return
        handler = _CONFIG_MAP.get(args.config_command)
    else:
        handler = _COMMAND_MAP.get(args.command)

    if handler is None:
        parser.print_help()
        return

    try:
        asyncio.run(handler(args))
    except KeyboardInterrupt:
        print()
