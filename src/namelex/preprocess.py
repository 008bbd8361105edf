from typing import List

import regex as re
from rapidfuzz.utils import default_process

_TOKEN_RE = re.compile(r"[\p{L}\p{N}]+")


def normalize_name(s: str) -> str:
    """Key form of a name: trimmed and case-folded."""
    return (s or "").strip().casefold()


def tokenize(text: str) -> List[str]:
    # alphanumeric runs, original casing kept
    return _TOKEN_RE.findall(text or "")


def phonetic_input(term: str) -> str:
    """
    Letters and digits of `term` joined together, lower-cased.

    "O'Brien" -> "obrien", "Mary Ann" -> "maryann".
    """
    return default_process(term or "").replace(" ", "")


def dedupe_casefold(items) -> List[str]:
    """Keep the first spelling of every case-insensitive duplicate, drop blanks."""
    seen = set()
    out = []
    for item in items:
        if not item:
            continue
        key = item.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
