import threading
from typing import Dict, FrozenSet, Iterable, Optional

from .preprocess import normalize_name


class ExpansionCache:
    """
    Process-lifetime map of normalized name -> expansion set.

    Entries are frozensets and are replaced whole, never edited in place.
    Every read and write goes through one lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, FrozenSet[str]] = {}

    def get(self, name: str) -> Optional[FrozenSet[str]]:
        key = normalize_name(name)
        with self._lock:
            return self._entries.get(key)

    def put(self, name: str, names: Iterable[str]) -> FrozenSet[str]:
        key = normalize_name(name)
        value = frozenset(names)
        with self._lock:
            self._entries[key] = value
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = normalize_name(name)
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
