from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import pandas as pd

from tcga_survival.cohort import (
    case_records_from_clinical,
    cohort_table,
    curves_table,
    gene_expression,
    join_cohort,
    logrank_table,
    read_group_labels,
    resolve_cohort_survival,
)
from tcga_survival.config import OutputFiles
from tcga_survival.io import ensure_dir, read_gene_names, read_table, write_tsv
from tcga_survival.records import (
    CohortRecord,
    DerivedSurvivalRecord,
    LogRankResult,
    StratifiedRecord,
    SurvivalCurveEstimate,
)
from tcga_survival.screen import median_split_screen
from tcga_survival.stratify import (
    MedianSplit,
    PredefinedGroups,
    QuantileSplit,
    StratificationRule,
    assign_strata,
    observations_by_stratum,
    stratify,
)
from tcga_survival.survival import compare_strata, fit_kaplan_meier, summarize_curves

SPLITS = ("median", "tertile")


@dataclass(frozen=True)
class GeneSurvivalResult:
    gene: str | None
    records: list[StratifiedRecord]
    curves: dict[str, SurvivalCurveEstimate]
    logrank: LogRankResult


def analyze_cohort(
    cohort: Sequence[CohortRecord], rule: StratificationRule, *, gene: str | None = None
) -> GeneSurvivalResult:
    logger = logging.getLogger(__name__)
    strata = stratify(cohort, rule)
    records = assign_strata(cohort, strata)
    by_stratum = observations_by_stratum(records)
    curves = {label: fit_kaplan_meier(obs, label=label) for label, obs in sorted(by_stratum.items())}
    logrank = compare_strata(by_stratum)
    logger.info(
        "%s: strata=%s chi2=%.3f df=%d p=%.3g",
        gene or "cohort",
        ", ".join(f"{label}(n={c.n}, events={c.events})" for label, c in curves.items()),
        logrank.chi_square_statistic,
        logrank.degrees_of_freedom,
        logrank.p_value,
    )
    return GeneSurvivalResult(gene=gene, records=records, curves=curves, logrank=logrank)


def _rule_for(split: str | None, groups: Mapping[str, str] | None) -> StratificationRule:
    if groups is not None:
        if split is not None:
            raise ValueError(f"split {split!r} cannot be combined with predefined groups")
        return PredefinedGroups(labels=dict(groups))
    if split is None or split == "median":
        return MedianSplit()
    if split == "tertile":
        return QuantileSplit()
    raise ValueError(f"unknown split {split!r}; expected one of {', '.join(SPLITS)}")


def analyze_gene(
    *,
    survival: Sequence[DerivedSurvivalRecord],
    expr: pd.DataFrame | None = None,
    gene: str | None = None,
    gene_names: pd.Series | None = None,
    groups: Mapping[str, str] | None = None,
    split: str | None = None,
    primary_tumor_only: bool = True,
) -> GeneSurvivalResult:
    """
    Stratify the cohort by one gene's expression (or by predefined groups) and compare survival.

    Without a gene, predefined groups are required and the cohort is every case with survival.
    """
    if gene is None:
        if groups is None:
            raise ValueError("either a gene or predefined groups are required")
        cohort = [
            CohortRecord(case_id=s.case_id, deceased=s.deceased, overall_survival=s.overall_survival)
            for s in survival
            if s.case_id in groups
        ]
    else:
        if expr is None:
            raise ValueError("an expression matrix is required to analyze a gene")
        obs = gene_expression(expr, gene, gene_names=gene_names, primary_tumor_only=primary_tumor_only)
        cohort = join_cohort(survival, obs)
        if groups is not None:
            labeled = [r for r in cohort if r.case_id in groups]
            if len(labeled) < len(cohort):
                logging.getLogger(__name__).warning(
                    "%d joined cases have no predefined group and are left out", len(cohort) - len(labeled)
                )
            cohort = labeled
    return analyze_cohort(cohort, _rule_for(split, groups), gene=gene)


def _check_out_dir(out_dir: Path, *, overwrite: bool) -> None:
    if out_dir.exists():
        if out_dir.is_file():
            raise FileExistsError(f"--out must be a directory, but got an existing file: {out_dir}")
        # The run log may already have been opened in out_dir.
        existing = [p for p in out_dir.iterdir() if p.name != OutputFiles.LOG]
        if existing and not overwrite:
            raise FileExistsError(
                f"Output directory is not empty: {out_dir} (use --overwrite or choose a new --out)"
            )


def run_pipeline(
    *,
    out_dir: Path,
    clinical_path: Path,
    expression_path: Path | None = None,
    gene: str | None = None,
    gene_names_path: Path | None = None,
    groups_path: Path | None = None,
    group_column: str | None = None,
    split: str | None = None,
    screen_genes: list[str] | None = None,
    primary_tumor_only: bool = True,
    skip_incomplete: bool = True,
    threads: int = 1,
    overwrite: bool = False,
    show_progress: bool = True,
) -> GeneSurvivalResult:
    logger = logging.getLogger(__name__)
    _check_out_dir(out_dir, overwrite=overwrite)
    if gene is not None and expression_path is None:
        raise ValueError("--gene requires --expression")
    if gene is None and groups_path is None:
        raise ValueError("nothing to stratify on: pass --gene or --groups")
    if groups_path is not None and split is not None:
        raise ValueError("--split cannot be combined with --groups")
    ensure_dir(out_dir)

    logger.info(
        "starting analysis: out=%s clinical=%s expression=%s gene=%s groups=%s split=%s primary_tumor_only=%s threads=%d",
        out_dir,
        clinical_path,
        expression_path,
        gene,
        groups_path,
        split,
        primary_tumor_only,
        threads,
    )

    t0 = time.perf_counter()
    clinical = read_table(clinical_path)
    survival = resolve_cohort_survival(case_records_from_clinical(clinical), skip_incomplete=skip_incomplete)
    logger.info("resolved overall survival for %d cases (%.1fs)", len(survival), time.perf_counter() - t0)

    expr = None
    if expression_path is not None:
        t1 = time.perf_counter()
        expr = read_table(expression_path, index_col=0)
        logger.info(
            "loaded expression: %d genes x %d samples (%.1fs)",
            expr.shape[0],
            expr.shape[1],
            time.perf_counter() - t1,
        )
    gene_names = read_gene_names(gene_names_path) if gene_names_path is not None else None
    groups = None
    if groups_path is not None:
        groups = read_group_labels(read_table(groups_path), label_col=group_column)
        logger.info("loaded %d predefined group labels from %s", len(groups), groups_path)

    result = analyze_gene(
        survival=survival,
        expr=expr,
        gene=gene,
        gene_names=gene_names,
        groups=groups,
        split=split,
        primary_tumor_only=primary_tumor_only,
    )

    write_tsv(cohort_table(result.records), out_dir / OutputFiles.COHORT)
    write_tsv(curves_table(result.curves), out_dir / OutputFiles.KM_CURVES)
    write_tsv(summarize_curves(result.curves), out_dir / OutputFiles.KM_SUMMARY)
    write_tsv(logrank_table(result.logrank, gene=gene), out_dir / OutputFiles.LOGRANK)
    logger.info("wrote cohort, curves and log-rank tables to %s", out_dir)

    if screen_genes:
        if expr is None:
            raise ValueError("a gene screen requires --expression")
        screen = median_split_screen(
            survival=survival,
            expr=expr,
            genes=screen_genes,
            gene_names=gene_names,
            primary_tumor_only=primary_tumor_only,
            n_jobs=threads,
            show_progress=show_progress,
        )
        if screen.empty:
            logger.warning("gene screen produced no testable genes")
        else:
            write_tsv(screen, out_dir / OutputFiles.SCREEN)
            logger.info("wrote screen: %d genes (%s)", screen.shape[0], out_dir / OutputFiles.SCREEN)

    return result
