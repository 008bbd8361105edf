import pandas as pd


def detect_sep(path: str) -> str:
    """
    Heuristic: prefer tab if tabs appear in the first line; otherwise comma.
    """
    try:
        with open(path, "rb") as fh:
            head = fh.read(2048).decode("utf-8", errors="ignore")
    except OSError:
        return ","
    first = head.splitlines()[0] if head else ""
    return "\t" if "\t" in first else ","


def resolve_sep(path: str, sep_arg: str = "auto") -> str:
    if sep_arg == "csv":
        return ","
    if sep_arg == "tsv":
        return "\t"
    if path.lower().endswith(".tsv"):
        return "\t"
    return detect_sep(path)


def read_table(path: str, sep_arg: str = "auto", **kwargs) -> pd.DataFrame:
    """Read a CSV/TSV file as strings; empty cells stay empty strings."""
    kwargs.setdefault("dtype", str)
    kwargs.setdefault("keep_default_na", False)
    return pd.read_csv(path, sep=resolve_sep(path, sep_arg), **kwargs)
