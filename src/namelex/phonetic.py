from typing import List, NamedTuple, Optional

from metaphone import doublemetaphone


class PhoneticCode(NamedTuple):
    primary: Optional[str]
    alternate: Optional[str]


EMPTY_CODE = PhoneticCode(None, None)


class PhoneticEncoder:
    """
    Double-metaphone codec for a single term.

    Callers strip punctuation and split text into words before encoding;
    the encoder only trims surrounding whitespace.
    """

    def __init__(self, max_length: int = 4, use_alternate: bool = True):
        if max_length < 1:
            raise ValueError(f"max_length must be >= 1, got {max_length}")
        self.max_length = max_length
        self.use_alternate = use_alternate

    def encode(self, term: Optional[str]) -> PhoneticCode:
        if term is None or not term.strip():
            return EMPTY_CODE
        a, b = doublemetaphone(term.strip())
        primary = a[: self.max_length] or None
        alternate = b[: self.max_length] or None
        if not self.use_alternate or alternate == primary:
            alternate = None
        return PhoneticCode(primary, alternate)

    def codes(self, term: Optional[str]) -> List[str]:
        return [c for c in self.encode(term) if c]
