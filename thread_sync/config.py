from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from thread_sync.remote.base import RemoteSource
from thread_sync.store.base import Store


@dataclass(frozen=True)
class SyncSettings:
    """Tunables of one thread list instance (seconds for the windows)."""

    page_size: int = 50
    debounce_seconds: float = 0.3
    press_debounce_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.debounce_seconds <= 0:
            raise ValueError(
                f"debounce_seconds must be positive, got {self.debounce_seconds}"
            )
        if self.press_debounce_seconds <= 0:
            raise ValueError(
                "press_debounce_seconds must be positive, "
                f"got {self.press_debounce_seconds}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        known = {"page_size", "debounce_seconds", "press_debounce_seconds"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown sync settings: {sorted(unknown)}")
        return cls(**data)


T = TypeVar("T")


class _Registry(Generic[T]):
    """Lazily-populated factory registry.

    Each backend module registers itself via :meth:`register`.
    :meth:`build` resolves a provider name to a factory, calling
    ``factory.from_config(config)`` if available, otherwise
    ``factory(**config)``.
    """

    def __init__(self, label: str) -> None:
        self._label = label
        self._factories: dict[str, type[T]] = {}
        self._defaults_loaded = False

    def register(self, name: str, cls: type[T]) -> None:
        self._factories[name] = cls

    def build(self, provider: str, config: dict[str, Any]) -> T:
        if not self._defaults_loaded:
            self._load_defaults()
            self._defaults_loaded = True

        factory = self._factories.get(provider)
        if factory is None:
            raise ValueError(
                f"Unknown {self._label} provider '{provider}'. "
                f"Available: {list(self._factories)}"
            )
        if hasattr(factory, "from_config"):
            return factory.from_config(config)  # type: ignore[return-value]
        return factory(**config)  # type: ignore[return-value]

    def _load_defaults(self) -> None:
        """Override point: subclasses populate built-in factories here."""


class _StoreRegistry(_Registry[Store]):
    def _load_defaults(self) -> None:
        from thread_sync.store.memory import InMemoryStore

        self.register("memory", InMemoryStore)

        try:
            from thread_sync.store.sql import PostgresStore, SqliteStore

            self.register("sqlite", SqliteStore)
            self.register("postgres", PostgresStore)
        except ImportError:
            pass


class _RemoteRegistry(_Registry[RemoteSource]):
    def _load_defaults(self) -> None:
        from thread_sync.remote.http import HttpRemoteSource

        self.register("http", HttpRemoteSource)


# Singleton instances
store_registry = _StoreRegistry("store")
remote_registry = _RemoteRegistry("remote")


def parse_config(
    config: dict[str, Any],
) -> tuple[Store, RemoteSource, SyncSettings]:
    """Parse a user config dict and return (store, remote, settings).

    Expected shape::

        {
            "store": {"provider": "sqlite", "config": {"path": "threads.db"}},
            "remote": {
                "provider": "http",
                "config": {
                    "base_url": "https://chat.example.com",
                    "user_id": "...",
                    "auth_token": "...",
                },
            },
            "sync": {"page_size": 50, "debounce_seconds": 0.3},
        }

    If no ``store`` key is present, defaults to in-memory.
    The ``remote`` section is required.
    """
    store_cfg = config.get("store", {})
    remote_cfg = config.get("remote")
    if not remote_cfg:
        raise ValueError(
            "Missing 'remote' config section. "
            'Provide at least {"remote": {"config": {"base_url": "https://..."}}}.'
        )

    store = store_registry.build(
        store_cfg.get("provider", "memory"),
        store_cfg.get("config", {}),
    )
    remote = remote_registry.build(
        remote_cfg.get("provider", "http"),
        remote_cfg.get("config", {}),
    )
    settings = SyncSettings.from_dict(config.get("sync", {}))

    return store, remote, settings
