from __future__ import annotations

from pathlib import Path

import pandas as pd


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _sep_for(path: Path) -> str:
    return "," if path.suffix.lower() == ".csv" else "\t"


def read_table(path: Path, *, index_col: int | None = None) -> pd.DataFrame:
    """Read a TSV (or CSV, by extension; .gz accepted) table."""
    p = Path(path)
    inner = p.with_suffix("") if p.suffix.lower() == ".gz" else p
    return pd.read_csv(p, sep=_sep_for(inner), index_col=index_col)


def read_gene_names(path: Path) -> pd.Series:
    """Two-column gene id / gene symbol table -> Series indexed by gene id."""
    df = read_table(path)
    return pd.Series(df.iloc[:, 1].astype(str).to_numpy(), index=df.iloc[:, 0].astype(str), name="gene_name")


def write_tsv(df: pd.DataFrame, path: Path) -> None:
    ensure_dir(path.parent)
    df.to_csv(path, sep="\t", index=False)
