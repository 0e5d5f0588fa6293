# src/storefront/domain/ports.py
from abc import ABC, abstractmethod

from storefront.domain.models import GenerateOptions, GenerationResult


class ContentGeneratorPort(ABC):
    """
    Abstrakte Schnittstelle für das generative Remote-Modell.
    Die Core-Domain kennt ausschließlich dieses Interface.
    """

    @abstractmethod
    async def generate(self, prompt: str, options: GenerateOptions) -> GenerationResult:
        """
        Sendet eine Anweisung samt Strukturhinweisen und liefert Text
        (bei JSON-Schema: schema-konformes JSON) und ggf. Grounding-Links.

        Raises:
            RemoteContentError: Bei Netzwerk-, HTTP- oder Timeout-Fehlern.
        """
        ...


class SessionStoragePort(ABC):
    """
    Key/Value-Speicher mit begrenzter Kapazität, gültig für eine Session.
    Schreibfehler sind erwartbar und müssen vom Aufrufer toleriert werden.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Raises:
            StorageQuotaExceededError: Wenn die Kapazität überschritten würde.
            StorageError: Wenn der Speicher nicht verfügbar ist.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def keys(self) -> list[str]: ...

    @abstractmethod
    async def clear(self) -> None:
        """Entfernt alle Einträge der Session (Session-Ende)."""
        ...


# ---------------------------------------------------------------------------
# Custom Domain Exceptions
# ---------------------------------------------------------------------------


class RemoteContentError(Exception):
    def __init__(self, operation: str, detail: str):
        super().__init__(f"Remote content error during '{operation}': {detail}")
        self.operation = operation
        self.detail = detail


class MalformedResponseError(Exception):
    def __init__(self, detail: str, raw_text: str = ""):
        super().__init__(f"Malformed response: {detail}")
        self.detail = detail
        self.raw_text = raw_text


class StorageError(Exception):
    pass


class StorageQuotaExceededError(StorageError):
    def __init__(self, key: str, required: int, capacity: int):
        super().__init__(
            f"Storing '{key}' needs {required} bytes, capacity is {capacity} bytes"
        )
        self.key = key
        self.required = required
        self.capacity = capacity


class SessionNotFoundError(Exception):
    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id
