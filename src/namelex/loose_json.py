"""
Best-effort JSON extraction from free-form model output.

Language models asked for "JSON only" still wrap it in prose or code fences,
use single quotes, or leave bare words. This module finds the first balanced
object or array in the text and reads it as leniently as it can.
"""
from __future__ import annotations

import json
from typing import Any, Iterator, List, Optional, Set

import regex as re
import yaml

from .errors import ParseError
from .preprocess import dedupe_casefold

# balanced {...} or [...]; braces inside double-quoted strings don't count
_VALUE_RE = re.compile(
    r"""
    (?P<value>
        \{ (?: [^{}\[\]"]++ | "(?:\\.|[^"\\])*+" | (?&value) )*+ \}
      | \[ (?: [^{}\[\]"]++ | "(?:\\.|[^"\\])*+" | (?&value) )*+ \]
    )
    """,
    re.VERBOSE,
)


def iter_json_candidates(text: Optional[str]) -> Iterator[str]:
    if not text:
        return
    for m in _VALUE_RE.finditer(text):
        yield m.group("value")


def extract_json(text: Optional[str]) -> Optional[str]:
    """Return the first balanced JSON object or array substring of `text`, if any."""
    return next(iter_json_candidates(text), None)


def parse_strict(fragment: str) -> Any:
    try:
        return json.loads(fragment)
    except json.JSONDecodeError as e:
        raise ParseError(f"not JSON: {fragment[:80]!r}") from e


def parse_lenient(fragment: str) -> Any:
    """
    YAML flow syntax: single quotes and unquoted words are accepted.

    BaseLoader keeps every scalar a string, so names like "No" or "On"
    are not turned into booleans.
    """
    try:
        return yaml.load(fragment, Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        raise ParseError(f"not JSON or YAML: {fragment[:80]!r}") from e


def parse_loose(fragment: str) -> Any:
    """Strict JSON first, then YAML flow syntax."""
    try:
        return parse_strict(fragment)
    except ParseError:
        return parse_lenient(fragment)


def _strings(xs: Any) -> List[str]:
    if not isinstance(xs, list):
        return []
    return [x.strip() for x in xs if isinstance(x, str) and x.strip()]


def names_from_payload(data: Any) -> List[str]:
    """
    Names carried by a parsed payload.

    Accepts a bare array of strings or {"canonical": str, "nicknames": [str]}.
    Anything else carries no names.
    """
    if isinstance(data, list):
        return _strings(data)
    if isinstance(data, dict):
        out = []
        canon = data.get("canonical")
        if isinstance(canon, str) and canon.strip():
            out.append(canon.strip())
        out.extend(_strings(data.get("nicknames")))
        return out
    return []


def extract_names(text: Optional[str], name: str) -> Set[str]:
    """
    Names found in a model answer, plus `name` itself.

    Every candidate is tried as strict JSON before any is read leniently,
    and objects are tried before arrays, so a bracketed aside such as
    "[note]" never wins over the real answer.
    Raises ParseError when no candidate fragment yields at least one name.
    """
    # stable sort: objects first, text order otherwise
    candidates = sorted(iter_json_candidates(text), key=lambda c: not c.startswith("{"))

    not_json = []
    for fragment in candidates:
        try:
            data = parse_strict(fragment)
        except ParseError:
            not_json.append(fragment)
            continue
        found = names_from_payload(data)
        if found:
            return set(dedupe_casefold([name.strip()] + found))

    for fragment in not_json:
        try:
            data = parse_lenient(fragment)
        except ParseError:
            continue
        found = names_from_payload(data)
        if found:
            return set(dedupe_casefold([name.strip()] + found))
    raise ParseError(f"no usable names in model response for {name!r}")
