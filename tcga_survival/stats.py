from __future__ import annotations

import numpy as np
from statsmodels.stats.multitest import fdrcorrection


def fdr_bh(pvalues: np.ndarray) -> np.ndarray:
    p = np.asarray(pvalues, dtype=float)
    if p.size == 0:
        return p
    # Untestable entries count as p=1 so they never look significant.
    p = np.where(np.isfinite(p), p, 1.0)
    _, q = fdrcorrection(p, alpha=0.05, method="indep")
    return q
