from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

# backend document key -> NameRecord attribute
_FIELDS = {
    "id": "id",
    "firstName": "first_name",
    "lastName": "last_name",
    "middleName": "middle_name",
    "city": "city",
    "state": "state",
    "dob": "dob",
}


def _opt(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


@dataclass
class NameRecord:
    id: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    dob: Optional[str] = None  # ISO yyyy-mm-dd

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "NameRecord":
        """Accepts camelCase (firstName) or snake_case (first_name) keys."""
        vals: Dict[str, Any] = {}
        for camel, snake in _FIELDS.items():
            if camel in row:
                vals[snake] = row[camel]
            elif snake in row:
                vals[snake] = row[snake]
        if _opt(vals.get("id")) is None:
            raise ValueError(f"record has no id: {dict(row)}")
        dob = _opt(vals.get("dob"))
        return cls(
            id=str(vals["id"]).strip(),
            first_name=_opt(vals.get("first_name")) or "",
            last_name=_opt(vals.get("last_name")) or "",
            middle_name=_opt(vals.get("middle_name")),
            city=_opt(vals.get("city")),
            state=_opt(vals.get("state")),
            # keep the date part of timestamps like 1980-04-02T00:00:00Z
            dob=dob[:10] if dob else None,
        )

    def to_document(self) -> Dict[str, Any]:
        return {camel: getattr(self, snake) for camel, snake in _FIELDS.items()}


@dataclass
class EnrichedDocument:
    record: NameRecord
    first_variants: List[str] = field(default_factory=list)
    last_variants: List[str] = field(default_factory=list)
    phonetic_first: List[str] = field(default_factory=list)
    phonetic_last: List[str] = field(default_factory=list)
    tokens: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        doc = self.record.to_document()
        doc.update(
            {
                "firstVariants": list(self.first_variants),
                "lastVariants": list(self.last_variants),
                "phoneticFirst": list(self.phonetic_first),
                "phoneticLast": list(self.phonetic_last),
                "tokens": list(self.tokens),
            }
        )
        return doc


@dataclass
class SearchHit:
    id: str
    score: float
    record: NameRecord

    @classmethod
    def from_hit(cls, hit: Mapping[str, Any]) -> "SearchHit":
        score = hit.get("_rankingScore")
        return cls(
            id=str(hit.get("id", "")),
            score=float(score) if isinstance(score, (int, float)) else 0.0,
            record=NameRecord.from_mapping(hit),
        )
