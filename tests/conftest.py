from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

CASES = [f"TCGA-AA-{i:04d}" for i in range(1, 9)]


@pytest.fixture
def clinical() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "submitter_id": CASES,
            "vital_status": ["Dead", "Alive", "Dead", "Alive", "Dead", "Dead", "Alive", "Dead"],
            "days_to_last_follow_up": [np.nan, 900, np.nan, 1500, 300, np.nan, 2000, np.nan],
            "days_to_death": [120, np.nan, 400, np.nan, 250, 800, np.nan, 60],
        }
    )


@pytest.fixture
def expr() -> pd.DataFrame:
    samples = [f"{c}-01A-11R-A00Z-07" for c in CASES]
    return pd.DataFrame(
        [
            [9.0, 2.0, 8.0, 1.0, 7.5, 3.0, 2.5, 8.5],
            [5.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0],
        ],
        index=["ENSG00000141510.17", "ENSG00000012048.23"],
        columns=samples,
    )


@pytest.fixture
def gene_names() -> pd.Series:
    return pd.Series(["TP53", "BRCA1"], index=["ENSG00000141510", "ENSG00000012048"], name="gene_name")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
