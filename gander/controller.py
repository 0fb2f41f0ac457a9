"""Wrapper that gives a store optional capabilities."""

from __future__ import annotations

from typing import Any

__all__ = ["StoreController", "UnsupportedOperationError"]


class UnsupportedOperationError(NotImplementedError):
    """Raised when the wrapped store lacks an optional operation."""


class StoreController:
    """Wraps a store, forwarding its methods and adding optional ones.

    Optional methods the store may provide: ``table_exists(conn) -> bool``.
    """

    def __init__(self, store: Any) -> None:
        self.store = store

    def __getattr__(self, name: str) -> Any:
        if name == "store":
            raise AttributeError(name)
        return getattr(self.store, name)

    def table_exists(self, conn: Any) -> bool:
        """Ask the store whether its version table exists."""
        method = getattr(self.store, "table_exists", None)
        if not callable(method):
            raise UnsupportedOperationError("unsupported operation")
        return method(conn)