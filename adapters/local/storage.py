"""
In-process key-value storage.

Stands in for browser local storage or any other durable string store; the
stores in ``vitals.services.stores`` layer JSON records on top of it.
"""


class InMemoryKeyValueStore:
    """Dict-backed KeyValueStore."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
