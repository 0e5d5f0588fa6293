from __future__ import annotations


class RequestEpoch:
    """
    Monotoner Zähler je Operationsfamilie ("neueste Anfrage gewinnt").

    Ein Aufruf merkt sich beim Start seine ID über ``begin()`` und prüft nach
    dem Remote-Aufruf mit ``is_current()``, ob inzwischen eine neuere Anfrage
    derselben Familie gestartet wurde. Alles läuft auf einer Event-Loop, daher
    ist kein Lock nötig.
    """

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def begin(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, request_id: int) -> bool:
        return request_id == self._current
