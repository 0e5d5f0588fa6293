from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from storefront.core.metrics import ACTIVE_SESSIONS
from storefront.domain.models import OperationFamily, SessionViewState
from storefront.domain.ports import SessionNotFoundError, SessionStoragePort, StorageError
from storefront.services.curation_service import CurationService

logger = logging.getLogger(__name__)


@dataclass
class StorefrontSession:
    id: str
    tenant_id: str
    storage: SessionStoragePort
    curation: CurationService
    last_access: float = field(default_factory=time.monotonic)

    def view_state(self) -> SessionViewState:
        state = self.curation.view_state()
        return SessionViewState(
            session_id=self.id,
            product_search=state[OperationFamily.PRODUCT_SEARCH],
            buying_options=state[OperationFamily.BUYING_OPTIONS],
            insights=state[OperationFamily.INSIGHTS],
            local_resources=state[OperationFamily.LOCAL_RESOURCES],
        )


class SessionRegistry:
    """
    Verwaltet die aktiven Storefront-Sessions.

    Jede Session erhält einen eigenen Speicher und eigenen Orchestrator, also
    auch eigene Request-Zähler. Beim Beenden wird der Speicher geleert.
    Sessions ohne Zugriff seit `idle_seconds` gelten als verlassen und werden
    bei `create`/`get` beendet.
    """

    def __init__(
        self,
        storage_factory: Callable[[str], SessionStoragePort],
        curation_factory: Callable[[SessionStoragePort], CurationService],
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._storage_factory = storage_factory
        self._curation_factory = curation_factory
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[str, StorefrontSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self, tenant_id: str) -> StorefrontSession:
        await self.evict_idle()
        session_id = str(uuid.uuid4())
        storage = self._storage_factory(session_id)
        session = StorefrontSession(
            id=session_id,
            tenant_id=tenant_id,
            storage=storage,
            curation=self._curation_factory(storage),
            last_access=self._clock(),
        )
        self._sessions[session_id] = session
        ACTIVE_SESSIONS.inc()
        logger.info("Started session %s for tenant %s", session_id, tenant_id)
        return session

    async def get(self, tenant_id: str, session_id: str) -> StorefrontSession:
        """
        Raises:
            SessionNotFoundError: Unbekannte, abgelaufene oder fremde Session.
        """
        await self.evict_idle()
        session = self._sessions.get(session_id)
        if session is None or session.tenant_id != tenant_id:
            raise SessionNotFoundError(session_id)
        session.last_access = self._clock()
        return session

    async def end(self, tenant_id: str, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or session.tenant_id != tenant_id:
            raise SessionNotFoundError(session_id)
        await self._close(session)
        logger.info("Ended session %s", session_id)

    async def evict_idle(self) -> int:
        """Beendet alle Sessions, die länger als `idle_seconds` unbenutzt sind."""
        if self._idle_seconds is None:
            return 0
        now = self._clock()
        idle = [s for s in self._sessions.values() if now - s.last_access > self._idle_seconds]
        for session in idle:
            await self._close(session)
            logger.info("Ended idle session %s", session.id)
        return len(idle)

    async def end_all(self) -> None:
        for session in list(self._sessions.values()):
            await self._close(session)

    async def _close(self, session: StorefrontSession) -> None:
        # Gleichzeitige Aufrufe können dieselbe Session schließen wollen
        if self._sessions.pop(session.id, None) is None:
            return
        ACTIVE_SESSIONS.dec()
        try:
            await session.storage.clear()
        except StorageError:
            logger.warning("Could not clear storage of session %s", session.id, exc_info=True)
