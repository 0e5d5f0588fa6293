from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from storefront.core.metrics import CACHE_HITS, CACHE_MISSES, CACHE_WRITE_FAILURES
from storefront.domain.ports import SessionStoragePort, StorageError, StorageQuotaExceededError

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    TTL-basierter Cache über einem Session-Speicher.
    Verhindert redundante Aufrufe des Remote-Modells.

    Der Cache ist reine Optimierung: Lese- und Schreibfehler werden geloggt
    und wie ein Cache-Miss bzw. ein No-Op behandelt, nie weitergereicht.
    """

    def __init__(self, storage: SessionStoragePort, ttl_seconds: int, key_prefix: str = "") -> None:
        self._storage = storage
        self._ttl = ttl_seconds
        # Nur Einträge mit diesem Präfix werden bei Kontingent-Problemen geräumt
        self._key_prefix = key_prefix

    async def get(self, key: str, validate: Callable[[Any], Any] | None = None) -> Any | None:
        """
        Holt einen Wert, sofern vorhanden und nicht abgelaufen (Grenze inklusive).

        Mit `validate` wird der Wert vor der Rückgabe geprüft bzw. umgewandelt;
        lehnt der Validator ihn ab (ValueError), wird der Eintrag verworfen
        und als Miss gezählt.
        """
        try:
            raw = await self._storage.get(key)
        except StorageError:
            logger.warning("Cache read failed for '%s'", key, exc_info=True)
            CACHE_MISSES.inc()
            return None

        if raw is None:
            CACHE_MISSES.inc()
            return None

        try:
            entry = json.loads(raw)
            timestamp = float(entry["timestamp"])
            data = entry["data"]
        except (ValueError, TypeError, KeyError):
            logger.warning("Discarding undecodable cache entry '%s'", key)
            await self._discard(key)
            CACHE_MISSES.inc()
            return None

        if (time.time() - timestamp) > self._ttl:
            await self._discard(key)
            CACHE_MISSES.inc()
            return None

        if validate is not None:
            try:
                data = validate(data)
            except ValueError:
                logger.warning("Discarding cache entry '%s' with an outdated shape", key)
                await self._discard(key)
                CACHE_MISSES.inc()
                return None

        CACHE_HITS.inc()
        return data

    async def set(self, key: str, value: Any) -> None:
        """Speichert einen JSON-serialisierbaren Wert mit aktuellem Zeitstempel."""
        try:
            payload = json.dumps({"timestamp": time.time(), "data": value})
        except (TypeError, ValueError):
            logger.warning("Value for '%s' is not JSON serializable, not cached", key)
            CACHE_WRITE_FAILURES.inc()
            return

        try:
            await self._storage.set(key, payload)
            return
        except StorageQuotaExceededError:
            logger.warning("Session storage full while caching '%s', evicting expired entries", key)
        except StorageError:
            logger.warning("Cache write failed for '%s'", key, exc_info=True)
            CACHE_WRITE_FAILURES.inc()
            return

        await self.evict_expired()
        try:
            await self._storage.set(key, payload)
        except StorageError:
            logger.warning("Cache write for '%s' rejected after eviction", key)
            CACHE_WRITE_FAILURES.inc()

    async def evict_expired(self) -> int:
        """Entfernt alle abgelaufenen oder unlesbaren Einträge des eigenen Präfixes."""
        evicted = 0
        try:
            keys = await self._storage.keys()
        except StorageError:
            logger.warning("Could not list session storage keys", exc_info=True)
            return 0

        now = time.time()
        for key in keys:
            if not key.startswith(self._key_prefix):
                continue
            try:
                raw = await self._storage.get(key)
                timestamp = float(json.loads(raw)["timestamp"]) if raw is not None else None
            except StorageError:
                continue
            except (ValueError, TypeError, KeyError):
                timestamp = None
            if timestamp is None or (now - timestamp) > self._ttl:
                await self._discard(key)
                evicted += 1

        if evicted:
            logger.info("Evicted %d expired cache entries", evicted)
        return evicted

    async def _discard(self, key: str) -> None:
        try:
            await self._storage.delete(key)
        except StorageError:
            logger.warning("Could not delete cache entry '%s'", key, exc_info=True)
