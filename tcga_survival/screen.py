from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from tcga_survival.cohort import gene_expression, join_cohort
from tcga_survival.config import StratumLabels
from tcga_survival.errors import DegenerateStratification, SurvivalAnalysisError
from tcga_survival.records import DerivedSurvivalRecord
from tcga_survival.stats import fdr_bh
from tcga_survival.stratify import MedianSplit, assign_strata, observations_by_stratum, stratify
from tcga_survival.survival import compare_strata, fit_kaplan_meier


def median_split_screen(
    *,
    survival: Sequence[DerivedSurvivalRecord],
    expr: pd.DataFrame,
    genes: list[str],
    gene_names: pd.Series | None = None,
    primary_tumor_only: bool = True,
    min_events: int = 1,
    n_jobs: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """
    Per-gene median split of expression followed by a HIGH vs LOW log-rank test.

    Returns one row per gene that could be tested, with BH-adjusted p-values.
    Set n_jobs>1 to parallelize across genes (threading backend).
    """
    logger = logging.getLogger(__name__)
    n_jobs = max(1, int(n_jobs))
    degenerate: list[str] = []

    def test_one_gene(gene: str) -> dict | None:
        try:
            obs = gene_expression(expr, gene, gene_names=gene_names, primary_tumor_only=primary_tumor_only)
            cohort = join_cohort(survival, obs)
            strata = stratify(cohort, MedianSplit())
            by_stratum = observations_by_stratum(assign_strata(cohort, strata))
            res = compare_strata(by_stratum)
        except DegenerateStratification as e:
            logger.debug("screen: skipping %s: %s", gene, e)
            degenerate.append(gene)
            return None
        except (SurvivalAnalysisError, KeyError) as e:
            logger.debug("screen: skipping %s: %s", gene, e)
            return None

        events = int(sum(r.deceased for r in cohort))
        if events < min_events:
            return None
        # A successful median split always yields both HIGH and LOW.
        high = fit_kaplan_meier(by_stratum[StratumLabels.HIGH], label=StratumLabels.HIGH)
        low = fit_kaplan_meier(by_stratum[StratumLabels.LOW], label=StratumLabels.LOW)
        return {
            "gene": gene,
            "n": len(cohort),
            "events": events,
            "n_high": high.n,
            "n_low": low.n,
            "km_median_high_days": high.median_survival_time,
            "km_median_low_days": low.median_survival_time,
            "chi2": res.chi_square_statistic,
            "p": res.p_value,
        }

    if n_jobs > 1:
        from joblib import Parallel, delayed

        rows = Parallel(n_jobs=n_jobs, prefer="threads")(delayed(test_one_gene)(g) for g in genes)
    else:
        from tqdm import tqdm

        rows = [test_one_gene(g) for g in tqdm(genes, desc="Median-split screen", disable=not show_progress)]

    results = [r for r in rows if r is not None]
    if degenerate:
        # Median ties go HIGH: a gene whose median equals its minimum (e.g. mostly zeros) has no LOW stratum.
        logger.info(
            "screen: %d genes skipped with a degenerate median split (e.g. %s)",
            len(degenerate),
            ", ".join(sorted(degenerate)[:5]),
        )
    logger.info("screen: tested %d of %d genes", len(results), len(genes))
    if not results:
        return pd.DataFrame()

    out = pd.DataFrame(results)
    out["fdr"] = fdr_bh(out["p"].to_numpy())
    out = out.sort_values(["fdr", "p"]).reset_index(drop=True)
    return out
