"""
Name expansion providers.

Every provider exposes ``expand(name) -> set[str]``. The graph is the local,
deterministic provider; the remote provider asks a hosted model and degrades
to the graph whenever anything goes wrong, so callers never see an error.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Set

import requests

from .cache import ExpansionCache
from .config import Config
from .errors import NameLexError
from .graph import NameEquivalenceGraph
from .loose_json import extract_names
from .remote import InferenceClient

logger = logging.getLogger(__name__)


class ExpansionProvider(Protocol):
    def expand(self, name: str) -> Set[str]: ...


class ModelExpansionSource:
    """One model round trip per call. Raises NameLexError subclasses on failure."""

    def __init__(self, client: InferenceClient):
        self.client = client

    def expand(self, name: str) -> Set[str]:
        text = self.client.complete_nicknames(name)
        return extract_names(text, name)


class FallbackProvider:
    """
    Two-tier strategy: ask `primary`, answer from `secondary` if it fails.

    `secondary` must itself be total (the graph is). The wrapper never raises.
    """

    def __init__(self, primary: ExpansionProvider, secondary: ExpansionProvider):
        self.primary = primary
        self.secondary = secondary

    def expand(self, name: str) -> Set[str]:
        try:
            return set(self.primary.expand(name))
        except NameLexError as e:
            logger.info("Using local nicknames for %r: %s", name, e)
        except Exception:
            logger.exception("Unexpected error expanding %r, using local nicknames", name)
        return set(self.secondary.expand(name))


class RemoteExpansionProvider:
    """
    Hybrid provider: cached model expansion with the graph as fallback.

    One instance is meant to be shared by all requests; the cache is
    the only mutable state and is lock-guarded.
    """

    def __init__(
        self,
        client: InferenceClient,
        fallback: ExpansionProvider,
        cache: Optional[ExpansionCache] = None,
    ):
        self.client = client
        self.fallback = fallback
        self.cache = cache if cache is not None else ExpansionCache()
        self._tiers = FallbackProvider(ModelExpansionSource(client), fallback)

    def expand(self, name: str) -> Set[str]:
        if not name or not name.strip():
            return set()

        cached = self.cache.get(name)
        if cached is not None:
            return set(cached)

        if not self.client.configured:
            # missing credentials: local answer, cached so later calls stay cheap
            result = self.fallback.expand(name)
        else:
            result = self._tiers.expand(name)
        return set(self.cache.put(name, result))


def build_provider(
    config: Config, graph: NameEquivalenceGraph, session: Optional[requests.Session] = None
) -> ExpansionProvider:
    """Active provider for `config.provider`: "hybrid" (default) or "local"."""
    if config.provider == "local":
        return graph
    r = config.remote
    client = InferenceClient(
        account_id=r.account_id,
        api_token=r.api_token,
        model=r.model,
        base_url=r.base_url,
        timeout=r.timeout,
        retry_shape=r.retry_shape,
        session=session,
    )
    if not client.configured:
        logger.info("Inference credentials not set; nickname expansion uses the local graph")
    return RemoteExpansionProvider(client, fallback=graph)
