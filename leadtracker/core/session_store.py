"""
Session store: browser-session scoped key/value storage for first-touch attribution.

The resolver never touches a global. It is handed a store, which is either
  - MemorySessionStore   → plain dict, one instance per simulated session
  - MappingSessionStore  → any mutable mapping, e.g. Starlette's request.session
                           (a signed cookie with no max_age, so it dies with the browser session)

No TTL, no eviction: the key set is small and fixed.
"""

from collections.abc import MutableMapping
from typing import Protocol


class SessionStore(Protocol):
    def get(self, key: str) -> str: ...

    def set(self, key: str, value: str) -> None: ...

    def has(self, key: str) -> bool: ...


class MemorySessionStore:
    """In-process store. One instance == one browser session."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str:
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def has(self, key: str) -> bool:
        return key in self._data

    def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class MappingSessionStore:
    """Adapts a mutable mapping, namespacing keys so they can share a cookie session."""

    def __init__(self, mapping: MutableMapping, namespace: str = "lt:"):
        self._mapping = mapping
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def get(self, key: str) -> str:
        value = self._mapping.get(self._key(key))
        return value if isinstance(value, str) else ""

    def set(self, key: str, value: str) -> None:
        self._mapping[self._key(key)] = str(value)

    def has(self, key: str) -> bool:
        return self._key(key) in self._mapping
