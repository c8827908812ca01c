"""Key-value preference store contract."""

from __future__ import annotations

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """Small string key-value store (browser storage or an equivalent)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...
