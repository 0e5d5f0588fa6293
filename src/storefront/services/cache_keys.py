from __future__ import annotations

from urllib.parse import quote

KEY_DELIMITER = "_"
# Platzhalter für fehlende Argumente. Ein wörtliches "*" wird zu "%2A" kodiert.
MISSING_ARGUMENT = "*"

DEFAULT_NAMESPACE = "silversage"
DEFAULT_VERSION = "v1"


def normalize_argument(value: str | None) -> str:
    """
    Trim + lowercase, dann so kodieren, dass der Trenner nie im Segment landet.

    Leere bzw. nur aus Leerzeichen bestehende Argumente gelten als "kein Filter"
    und teilen sich den Platzhalter mit fehlenden Argumenten.
    """
    if value is None:
        return MISSING_ARGUMENT
    cleaned = value.strip().lower()
    if not cleaned:
        return MISSING_ARGUMENT
    return quote(cleaned, safe="").replace(KEY_DELIMITER, "%5F")


def build_key(
    operation: str,
    *args: str | None,
    namespace: str = DEFAULT_NAMESPACE,
    version: str = DEFAULT_VERSION,
) -> str:
    """Builds ``<namespace>_<version>_<operation>_<arg>_...``; positions are significant."""
    segments = [namespace, version, operation, *(normalize_argument(a) for a in args)]
    return KEY_DELIMITER.join(segments)


def namespace_prefix(namespace: str = DEFAULT_NAMESPACE, version: str = DEFAULT_VERSION) -> str:
    return f"{namespace}{KEY_DELIMITER}{version}{KEY_DELIMITER}"
