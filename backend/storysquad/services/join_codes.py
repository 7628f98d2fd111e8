from __future__ import annotations
import time
import uuid
from storysquad.config import settings

_NAMESPACE = uuid.UUID(settings.uuid_namespace)

def generate_code(key: str, namespace: uuid.UUID | None = None) -> str:
    """
    uuid5 of `key` plus the current time inside the app namespace.
    Deterministic for a given (key, instant) and not guessable without the
    namespace, so two calls a nanosecond apart give unrelated codes.
    """
    return str(uuid.uuid5(namespace or _NAMESPACE, f"{key}-{time.time_ns()}"))
