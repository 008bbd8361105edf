import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import load_config
from .pipeline import EnrichmentPipeline
from .records import NameRecord
from .tables import read_table

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("id", "firstName", "lastName")


def _records_from_table(path_in: str, sep_arg: str) -> List[NameRecord]:
    df = read_table(path_in, sep_arg)

    # accept snake_case headers too
    df = df.rename(columns={"first_name": "firstName", "last_name": "lastName"})
    for col in REQUIRED_COLUMNS:
        if col not in df.columns:
            raise SystemExit(
                f"Input must contain columns: {', '.join(REQUIRED_COLUMNS)} (missing: {col})"
            )

    return [NameRecord.from_mapping(r) for r in df.to_dict(orient="records")]


def cmd_expand(pipe: EnrichmentPipeline, a) -> int:
    for n in sorted(pipe.expand_name(a.name), key=str.casefold):
        print(n)
    return 0


def cmd_phonetic(pipe: EnrichmentPipeline, a) -> int:
    code = pipe.encode_phonetic(a.term)
    print(f"primary\t{code.primary or ''}")
    print(f"alternate\t{code.alternate or ''}")
    return 0


def cmd_terms(pipe: EnrichmentPipeline, a) -> int:
    print(pipe.build_search_terms(a.query))
    return 0


def cmd_enrich(pipe: EnrichmentPipeline, a) -> int:
    records = _records_from_table(a.path_in, a.sep)
    lines = [
        json.dumps(pipe.build_index_document(r).to_document(), ensure_ascii=False)
        for r in records
    ]

    if a.out_path in (None, "-"):
        for line in lines:
            sys.stdout.write(line + "\n")
    else:
        with open(a.out_path, "w", encoding="utf-8") as fh:
            for line in lines:
                fh.write(line + "\n")
    logger.info("Enriched %d records", len(records))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="namelex", description="nickname and phonetic name expansion")
    p.add_argument("--config", default=None, help="YAML config (defaults + env vars if omitted)")
    p.add_argument(
        "--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("expand", help="print every known spelling of a name")
    s.add_argument("name")
    s.set_defaults(func=cmd_expand)

    s = sub.add_parser("phonetic", help="print double-metaphone codes of a term")
    s.add_argument("term")
    s.set_defaults(func=cmd_phonetic)

    s = sub.add_parser("terms", help="print the expanded OR-term query string")
    s.add_argument("query")
    s.set_defaults(func=cmd_terms)

    s = sub.add_parser("enrich", help="enrich a CSV/TSV of records into JSON lines")
    s.add_argument(
        "--in", dest="path_in", required=True,
        help="Input CSV/TSV with columns: id,firstName,lastName[,middleName,city,state,dob]",
    )
    s.add_argument(
        "--out", dest="out_path", default="-", help="Output JSONL path (use '-' for stdout)"
    )
    s.add_argument(
        "--sep", dest="sep", default="auto", choices=["auto", "csv", "tsv"], help="Input delimiter"
    )
    s.set_defaults(func=cmd_enrich)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    a = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, a.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        cfg = load_config(a.config)
    except (OSError, ValueError) as e:
        raise SystemExit(str(e))
    pipe = EnrichmentPipeline.from_config(cfg)
    return a.func(pipe, a)


if __name__ == "__main__":
    sys.exit(main())
