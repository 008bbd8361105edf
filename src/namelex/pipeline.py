"""
Index-time enrichment and query-time expansion.

Indexing turns a NameRecord into a document whose ``tokens`` field holds every
known spelling of the first and last name plus their phonetic codes. Searching
turns free text into one space-joined list of OR terms built the same way, so
"Liz Smyth" finds a record stored as "Elizabeth Smith".
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Set

import requests

from .config import Config, IndexCfg
from .graph import NameEquivalenceGraph
from .phonetic import PhoneticCode, PhoneticEncoder
from .preprocess import dedupe_casefold, normalize_name, phonetic_input, tokenize
from .providers import ExpansionProvider, build_provider
from .records import EnrichedDocument, NameRecord, SearchHit

logger = logging.getLogger(__name__)


class SearchBackend(Protocol):
    def ensure_index(self, name: str, primary_key: str) -> None: ...

    def add_documents(self, index_name: str, documents: List[Dict[str, Any]]) -> Any: ...

    def search(self, index_name: str, query: str, limit: int) -> Mapping[str, Any]: ...


def _ordered(first: str, names: Iterable[str]) -> List[str]:
    """`first` (when non-empty) followed by the other names sorted, case-insensitively unique."""
    head = [first.strip()] if first and first.strip() else []
    return dedupe_casefold(head + sorted(names, key=str.casefold))


class EnrichmentPipeline:
    def __init__(
        self,
        provider: ExpansionProvider,
        encoder: Optional[PhoneticEncoder] = None,
        backend: Optional[SearchBackend] = None,
        index: Optional[IndexCfg] = None,
    ):
        self.provider = provider
        self.encoder = encoder or PhoneticEncoder()
        self.backend = backend
        self.index = index or IndexCfg()

    @classmethod
    def from_config(
        cls,
        config: Config,
        backend: Optional[SearchBackend] = None,
        session: Optional[requests.Session] = None,
    ) -> "EnrichmentPipeline":
        """Build graph, encoder and provider once; share them for the process lifetime."""
        graph = NameEquivalenceGraph.load(config.graph.nicknames_path)
        encoder = PhoneticEncoder(
            max_length=config.phonetic.max_length,
            use_alternate=config.phonetic.use_alternate,
        )
        provider = build_provider(config, graph, session=session)
        return cls(provider, encoder, backend=backend, index=config.index)

    # ---------- core operations ----------

    def expand_name(self, name: str) -> Set[str]:
        return self.provider.expand(name)

    def encode_phonetic(self, term: str) -> PhoneticCode:
        return self.encoder.encode(term)

    def phonetic_codes(self, variants: Iterable[str]) -> List[str]:
        """Codes of every variant, in variant order, without duplicates."""
        codes: List[str] = []
        for v in variants:
            codes.extend(self.encoder.codes(phonetic_input(v)))
        return dedupe_casefold(codes)

    def build_index_document(self, record: NameRecord) -> EnrichedDocument:
        first_variants = _ordered(record.first_name, self.expand_name(record.first_name))
        last_variants = _ordered(record.last_name, self.expand_name(record.last_name))
        phonetic_first = self.phonetic_codes(first_variants)
        phonetic_last = self.phonetic_codes(last_variants)

        extra: List[str] = []
        for value in (record.middle_name, record.city, record.state):
            extra.extend(tokenize(value or ""))

        tokens = dedupe_casefold(
            [normalize_name(v) for v in first_variants + last_variants]
            + phonetic_first
            + phonetic_last
            + [normalize_name(t) for t in extra]
        )
        return EnrichedDocument(
            record=record,
            first_variants=first_variants,
            last_variants=last_variants,
            phonetic_first=phonetic_first,
            phonetic_last=phonetic_last,
            tokens=tokens,
        )

    def expansion_terms(self, token: str) -> List[str]:
        """The token, its expansions and its phonetic codes."""
        variants = _ordered(token, self.expand_name(token))
        return dedupe_casefold(variants + self.encoder.codes(phonetic_input(token)))

    def build_search_terms(self, query: str) -> str:
        terms: List[str] = []
        for token in tokenize(query):
            terms.extend(self.expansion_terms(token))
        return " ".join(dedupe_casefold(terms))

    # ---------- backend orchestration ----------

    def _require_backend(self) -> SearchBackend:
        if self.backend is None:
            raise RuntimeError("no search backend configured for this pipeline")
        return self.backend

    def index_records(self, records: Iterable[NameRecord]) -> int:
        """Enrich and store records; returns how many were sent."""
        backend = self._require_backend()
        docs = [self.build_index_document(r).to_document() for r in records]
        backend.ensure_index(self.index.name, self.index.primary_key)
        if docs:
            backend.add_documents(self.index.name, docs)
        logger.info("Indexed %d records into %s", len(docs), self.index.name)
        return len(docs)

    def search(self, query: str, limit: int = 10) -> List[SearchHit]:
        terms = self.build_search_terms(query)
        if not terms:
            return []
        backend = self._require_backend()
        backend.ensure_index(self.index.name, self.index.primary_key)
        logger.debug("Search %r expanded to %r", query, terms)
        raw = backend.search(self.index.name, terms, limit) or {}
        hits = []
        for hit in raw.get("hits", []):
            if not str(hit.get("id") or "").strip():
                continue
            hits.append(SearchHit.from_hit(hit))
        return hits
