from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from .remote import DEFAULT_BASE_URL, DEFAULT_MODEL, RETRY_SHAPES

PROVIDERS = ("hybrid", "local")


@dataclass
class GraphCfg:
    nicknames_path: Optional[str] = None


@dataclass
class PhoneticCfg:
    max_length: int = 4
    use_alternate: bool = True


@dataclass
class RemoteCfg:
    account_id: Optional[str] = None
    api_token: Optional[str] = field(default=None, repr=False)
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 12.0
    retry_shape: str = "prompt"


@dataclass
class IndexCfg:
    name: str = "persons"
    primary_key: str = "id"


@dataclass
class Config:
    provider: str = "hybrid"
    graph: GraphCfg = field(default_factory=GraphCfg)
    phonetic: PhoneticCfg = field(default_factory=PhoneticCfg)
    remote: RemoteCfg = field(default_factory=RemoteCfg)
    index: IndexCfg = field(default_factory=IndexCfg)


# environment variable -> (section, key)
ENV_OVERRIDES = {
    "NAMELEX_NICKNAMES_PATH": ("graph", "nicknames_path"),
    "CLOUDFLARE_ACCOUNT_ID": ("remote", "account_id"),
    "CLOUDFLARE_API_TOKEN": ("remote", "api_token"),
    "CLOUDFLARE_MODEL": ("remote", "model"),
}


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name, {}) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"Config error: '{name}' must be a mapping (dict).")
    return sec


def _opt_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def _as_int(sec: str, key: str, x: Any) -> int:
    try:
        return int(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config error: '{sec}.{key}' must be an integer, got {x!r}") from e


def _as_float(sec: str, key: str, x: Any) -> float:
    try:
        return float(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config error: '{sec}.{key}' must be a number, got {x!r}") from e


def parse_config(raw: Any, env: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config from an already-loaded YAML document plus environment overrides."""
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError("Config error: top-level YAML must be a mapping (dict).")

    # ---- provider ----
    provider = str(raw.get("provider", "hybrid")).strip().lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Config error: 'provider' must be one of {PROVIDERS}, got {provider!r}")

    # ---- graph ----
    g = _section(raw, "graph")
    graph = GraphCfg(nicknames_path=_opt_str(g.get("nicknames_path")))

    # ---- phonetic ----
    p = _section(raw, "phonetic")
    phonetic = PhoneticCfg()
    if "max_length" in p:
        phonetic.max_length = _as_int("phonetic", "max_length", p["max_length"])
        if phonetic.max_length < 1:
            raise ValueError("Config error: 'phonetic.max_length' must be >= 1.")
    if "use_alternate" in p:
        phonetic.use_alternate = bool(p["use_alternate"])

    # ---- remote ----
    r = _section(raw, "remote")
    remote = RemoteCfg(
        account_id=_opt_str(r.get("account_id")),
        api_token=_opt_str(r.get("api_token")),
        model=_opt_str(r.get("model")) or DEFAULT_MODEL,
        base_url=_opt_str(r.get("base_url")) or DEFAULT_BASE_URL,
    )
    if "timeout" in r:
        remote.timeout = _as_float("remote", "timeout", r["timeout"])
        if remote.timeout <= 0:
            raise ValueError("Config error: 'remote.timeout' must be positive.")
    if "retry_shape" in r:
        remote.retry_shape = str(r["retry_shape"]).strip().lower()
        if remote.retry_shape not in RETRY_SHAPES:
            raise ValueError(
                f"Config error: 'remote.retry_shape' must be one of {RETRY_SHAPES}, "
                f"got {remote.retry_shape!r}"
            )

    # ---- index ----
    i = _section(raw, "index")
    index = IndexCfg(
        name=_opt_str(i.get("name")) or "persons",
        primary_key=_opt_str(i.get("primary_key")) or "id",
    )

    cfg = Config(provider=provider, graph=graph, phonetic=phonetic, remote=remote, index=index)
    apply_env(cfg, os.environ if env is None else env)
    return cfg


def apply_env(cfg: Config, env: Mapping[str, str]) -> Config:
    for var, (sec, key) in ENV_OVERRIDES.items():
        val = _opt_str(env.get(var))
        if val is not None:
            setattr(getattr(cfg, sec), key, val)
    return cfg


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Config:
    if not path:
        return parse_config({}, env)
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return parse_config(raw, env)
