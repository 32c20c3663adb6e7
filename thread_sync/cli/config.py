"""Configuration management for the thread-sync CLI.

Reads/writes a TOML config file and provides a typed Config dataclass.
Default location: ``~/.config/thread-sync/config.toml``.
Override with the ``THREAD_SYNC_CONFIG`` environment variable.

Example file::

    [server]
    url = "https://chat.example.com"
    user_id = "aobEdbYhXfu5hkeqG"
    auth_token = "..."

    [store]
    provider = "sqlite"
    path = "threads.db"

    [sync]
    page_size = 50
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_DEFAULT_CONFIG_DIR = Path("~/.config/thread-sync").expanduser()
_DEFAULT_DB_PATH = "threads.db"

STORE_PROVIDERS = ("memory", "sqlite", "postgres")


def _config_path() -> Path:
    env = os.environ.get("THREAD_SYNC_CONFIG")
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    server_url: str = ""
    user_id: str = ""
    auth_token: str = ""

    # Store backend: "sqlite" (default), "memory" or "postgres"
    store_provider: str = "sqlite"
    db_path: str = _DEFAULT_DB_PATH

    # Postgres settings (only used when store_provider == "postgres")
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "thread_sync"
    db_user: str = "postgres"
    db_password: str = "postgres"

    page_size: int = 50

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url)

    @property
    def uses_postgres(self) -> bool:
        return self.store_provider == "postgres"

    def to_dict(self) -> dict[str, Any]:
        """Convert into the config dict accepted by ``ThreadSync.from_config``."""
        store_config: dict[str, Any] = {}
        if self.store_provider == "sqlite":
            store_config = {"path": self.db_path}
        elif self.store_provider == "postgres":
            store_config = {
                "host": self.db_host,
                "port": self.db_port,
                "database": self.db_name,
                "user": self.db_user,
                "password": self.db_password,
            }

        return {
            "store": {"provider": self.store_provider, "config": store_config},
            "remote": {
                "provider": "http",
                "config": {
                    "base_url": self.server_url,
                    "user_id": self.user_id or None,
                    "auth_token": self.auth_token or None,
                },
            },
            "sync": {"page_size": self.page_size},
        }


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        server_section = data.get("server", {})
        store_section = data.get("store", {})
        db_section = data.get("database", {})
        sync_section = data.get("sync", {})

        cfg.server_url = server_section.get("url", cfg.server_url)
        cfg.user_id = server_section.get("user_id", cfg.user_id)
        cfg.auth_token = server_section.get("auth_token", cfg.auth_token)

        cfg.store_provider = store_section.get("provider", cfg.store_provider)
        cfg.db_path = store_section.get("path", cfg.db_path)

        cfg.db_host = db_section.get("host", cfg.db_host)
        cfg.db_port = int(db_section.get("port", cfg.db_port))
        cfg.db_name = db_section.get("name", cfg.db_name)
        cfg.db_user = db_section.get("user", cfg.db_user)
        cfg.db_password = db_section.get("password", cfg.db_password)

        cfg.page_size = int(sync_section.get("page_size", cfg.page_size))

    # Environment variables always take precedence
    cfg.server_url = os.environ.get("THREAD_SYNC_SERVER", cfg.server_url)
    cfg.user_id = os.environ.get("THREAD_SYNC_USER_ID", cfg.user_id)
    cfg.auth_token = os.environ.get("THREAD_SYNC_TOKEN", cfg.auth_token)
    cfg.store_provider = os.environ.get("THREAD_SYNC_STORE", cfg.store_provider)
    cfg.db_path = os.environ.get("THREAD_SYNC_DB", cfg.db_path)
    cfg.db_host = os.environ.get("POSTGRES_HOST", cfg.db_host)
    cfg.db_port = int(os.environ.get("POSTGRES_PORT", str(cfg.db_port)))
    cfg.db_name = os.environ.get("POSTGRES_DB", cfg.db_name)
    cfg.db_user = os.environ.get("POSTGRES_USER", cfg.db_user)
    cfg.db_password = os.environ.get("POSTGRES_PASSWORD", cfg.db_password)

    return cfg


def save_config(cfg: Config) -> Path:
    """Write config to the TOML file. Returns the path written."""
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "[server]",
        f'url = "{cfg.server_url}"',
        f'user_id = "{cfg.user_id}"',
        f'auth_token = "{cfg.auth_token}"',
        "",
        "[store]",
        f'provider = "{cfg.store_provider}"',
        f'path = "{cfg.db_path}"',
        "",
    ]

    if cfg.uses_postgres:
        lines.extend(
            [
                "[database]",
                f'host = "{cfg.db_host}"',
                f"port = {cfg.db_port}",
                f'name = "{cfg.db_name}"',
                f'user = "{cfg.db_user}"',
                f'password = "{cfg.db_password}"',
                "",
            ]
        )

    lines.extend(
        [
            "[sync]",
            f"page_size = {cfg.page_size}",
            "",
        ]
    )

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def config_exists() -> bool:
    return _config_path().exists()


def config_path_display() -> str:
    return str(_config_path())
