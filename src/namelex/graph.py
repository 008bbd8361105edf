"""
Nickname equivalence graph.

The graph is an undirected adjacency map built once from a seed of
canonical -> [nicknames] entries. Expansion is the transitive closure of
a name: everything reachable by following edges, directly or not.
"""
from __future__ import annotations

import json
import logging
import os
from collections import deque
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import yaml

from .errors import GraphLoadError
from .preprocess import normalize_name
from .tables import read_table

logger = logging.getLogger(__name__)

DEFAULT_SEED: Dict[str, List[str]] = {
    "elizabeth": ["liz", "beth", "lizzy", "eliza"],
    "william": ["bill", "will", "billy"],
    "robert": ["rob", "bob", "bobby"],
    "margaret": ["maggie", "meg", "peggy"],
    "katherine": ["kat", "kate", "kathy", "cathy"],
    "john": ["jack"],
    "henry": ["harry"],
}

# first-row values that mark a header line in CSV/TSV seeds
_HEADER_WORDS = {"canonical", "name", "name1", "nickname", "nicknames", "name2", "alias"}


def _as_name_list(x: Any) -> List[Any]:
    if x is None:
        return []
    if isinstance(x, (list, tuple, set)):
        return list(x)
    return [x]


def _seed_pairs(seed: Mapping[Any, Any]) -> Iterable[Tuple[Any, Any]]:
    for canon, nicks in seed.items():
        for nick in _as_name_list(nicks):
            yield canon, nick


def _clean(name: Any) -> str:
    if not isinstance(name, str):
        return ""
    return normalize_name(name)


class NameEquivalenceGraph:
    def __init__(self, adjacency: Optional[Mapping[str, Iterable[str]]] = None):
        adj = adjacency or {}
        self._adj: Mapping[str, frozenset] = MappingProxyType(
            {k: frozenset(v) for k, v in adj.items()}
        )

    # ---------- construction ----------

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Any, Any]]) -> "NameEquivalenceGraph":
        adj: Dict[str, Set[str]] = {}
        skipped = 0
        for a, b in pairs:
            a, b = _clean(a), _clean(b)
            if not a or not b:
                skipped += 1
                continue
            adj.setdefault(a, set()).add(b)
            adj.setdefault(b, set()).add(a)
        # a name that is its own nickname is not an edge
        for name, neighbors in adj.items():
            neighbors.discard(name)
        if skipped:
            logger.debug("Skipped %d malformed nickname entries", skipped)
        return cls(adj)

    @classmethod
    def from_mapping(cls, seed: Mapping[Any, Any]) -> "NameEquivalenceGraph":
        if not isinstance(seed, Mapping):
            return cls()
        return cls.from_pairs(_seed_pairs(seed))

    @classmethod
    def default(cls) -> "NameEquivalenceGraph":
        return cls.from_mapping(DEFAULT_SEED)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "NameEquivalenceGraph":
        """
        Build the graph from a seed file, or from the built-in seed.

        Supported formats: .json and .yaml/.yml (canonical -> nicknames
        mapping), .csv/.tsv (canonical, nickname columns). A missing or
        corrupt file is logged and replaced by the built-in seed.
        """
        if not path:
            return cls.default()
        try:
            graph = cls.from_pairs(read_seed_pairs(path))
        except GraphLoadError as e:
            logger.warning("Nickname seed unusable, using built-in defaults: %s", e)
            return cls.default()
        if not len(graph):
            logger.warning("Nickname seed %s has no usable entries, using built-in defaults", path)
            return cls.default()
        logger.info("Loaded nickname graph from %s: %d names, %d links", path, len(graph), graph.edge_count)
        return graph

    # ---------- queries ----------

    def __len__(self) -> int:
        return len(self._adj)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._adj

    @property
    def edge_count(self) -> int:
        return sum(len(v) for v in self._adj.values()) // 2

    def neighbors(self, name: str) -> frozenset:
        return self._adj.get(normalize_name(name), frozenset())

    def expand(self, name: str) -> Set[str]:
        """
        Transitive closure of `name` over the nickname edges.

        The trimmed input is always part of the result; names found in the
        graph come back in their normalized (lower-case) form.
        """
        if not name or not name.strip():
            return set()
        start = name.strip()
        seen = {normalize_name(start)}
        out = {start}
        q = deque([normalize_name(start)])
        while q:
            cur = q.popleft()
            for n in self._adj.get(cur, ()):
                if n in seen:
                    continue
                seen.add(n)
                out.add(n)
                q.append(n)
        return out


def read_seed_pairs(path: str) -> List[Tuple[Any, Any]]:
    if not os.path.exists(path):
        raise GraphLoadError(f"seed file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in (".csv", ".tsv"):
        return _read_table_pairs(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f) if ext == ".json" else yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise GraphLoadError(f"cannot parse {path}: {e}") from e

    if not isinstance(raw, dict):
        raise GraphLoadError(f"{path}: top-level must be a mapping of canonical -> nicknames")
    return list(_seed_pairs(raw))


def _read_table_pairs(path: str) -> List[Tuple[Any, Any]]:
    try:
        df = read_table(path, header=None)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        # pandas parser errors are ValueError subclasses
        raise GraphLoadError(f"cannot read {path}: {e}") from e

    if df.shape[1] < 2:
        raise GraphLoadError(f"{path}: expected two columns (canonical, nickname)")

    rows = df.iloc[:, :2].values.tolist()
    if rows and str(rows[0][0]).strip().lower() in _HEADER_WORDS:
        rows = rows[1:]
    return [(a, b) for a, b in rows]
