# src/storefront/repositories/memory_storage.py
from __future__ import annotations

from storefront.domain.ports import SessionStoragePort, StorageQuotaExceededError


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemorySessionStorage(SessionStoragePort):
    """
    Dict-basierter Session-Speicher mit Byte-Kontingent.

    Verhält sich wie der Session-Speicher eines Browsers: Inhalte leben nur
    so lange wie die Session, und Schreibzugriffe über das Kontingent hinaus
    werden abgelehnt statt alte Einträge zu verdrängen.
    """

    def __init__(self, capacity_bytes: int) -> None:
        self._capacity = capacity_bytes
        self._items: dict[str, str] = {}
        self._used = 0

    @property
    def used_bytes(self) -> int:
        return self._used

    async def get(self, key: str) -> str | None:
        return self._items.get(key)

    async def set(self, key: str, value: str) -> None:
        previous = self._items.get(key)
        freed = _entry_size(key, previous) if previous is not None else 0
        required = _entry_size(key, value)
        if self._used - freed + required > self._capacity:
            raise StorageQuotaExceededError(key, required, self._capacity)
        self._items[key] = value
        self._used += required - freed

    async def delete(self, key: str) -> None:
        value = self._items.pop(key, None)
        if value is not None:
            self._used -= _entry_size(key, value)

    async def keys(self) -> list[str]:
        return list(self._items)

    async def clear(self) -> None:
        self._items.clear()
        self._used = 0
