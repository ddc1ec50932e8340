from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from tcga_survival.config import DEFAULT_COVARIATE, ClinicalColumns, CohortColumns
from tcga_survival.errors import MissingFollowUpData
from tcga_survival.records import (
    CaseRecord,
    CohortRecord,
    DerivedSurvivalRecord,
    ExpressionObservation,
    LogRankResult,
    StratifiedRecord,
    SurvivalCurveEstimate,
    parse_vital_status,
)
from tcga_survival.survival import resolve_survival_time
from tcga_survival.tcga_ids import dedupe_by_case, is_primary_tumor, is_tcga_barcode, tcga_case_id


def _to_numeric(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce")


def _optional_float(x: object) -> float | None:
    if x is None or (isinstance(x, float) and np.isnan(x)):
        return None
    return float(x)


def _strip_version(gene_id: str) -> str:
    # ENSG00000141510.17 -> ENSG00000141510
    return str(gene_id).split(".")[0]


def case_records_from_clinical(clinical: pd.DataFrame) -> list[CaseRecord]:
    logger = logging.getLogger(__name__)
    missing = [
        c
        for c in [
            ClinicalColumns.CASE_ID,
            ClinicalColumns.VITAL_STATUS,
            ClinicalColumns.DAYS_TO_LAST_FOLLOW_UP,
            ClinicalColumns.DAYS_TO_DEATH,
        ]
        if c not in clinical.columns
    ]
    if missing:
        raise KeyError(f"clinical table is missing columns: {', '.join(missing)}")

    df = clinical.copy()
    df[ClinicalColumns.DAYS_TO_LAST_FOLLOW_UP] = _to_numeric(df[ClinicalColumns.DAYS_TO_LAST_FOLLOW_UP])
    df[ClinicalColumns.DAYS_TO_DEATH] = _to_numeric(df[ClinicalColumns.DAYS_TO_DEATH])
    df = df.dropna(subset=[ClinicalColumns.CASE_ID])
    df = df.drop_duplicates(subset=[ClinicalColumns.CASE_ID], keep="first")

    records: list[CaseRecord] = []
    unknown = 0
    for _, row in df.iterrows():
        status = parse_vital_status(row[ClinicalColumns.VITAL_STATUS])
        if status is None:
            unknown += 1
            continue
        records.append(
            CaseRecord(
                case_id=str(row[ClinicalColumns.CASE_ID]),
                vital_status=status,
                days_to_last_follow_up=_optional_float(row[ClinicalColumns.DAYS_TO_LAST_FOLLOW_UP]),
                days_to_death=_optional_float(row[ClinicalColumns.DAYS_TO_DEATH]),
            )
        )
    if unknown:
        logger.warning("dropped %d clinical rows with unrecognized vital status", unknown)
    logger.info("clinical records: %d cases", len(records))
    return records


def resolve_cohort_survival(
    records: Iterable[CaseRecord], *, skip_incomplete: bool = True
) -> list[DerivedSurvivalRecord]:
    logger = logging.getLogger(__name__)
    out: list[DerivedSurvivalRecord] = []
    skipped: list[str] = []
    for rec in records:
        try:
            out.append(resolve_survival_time(rec))
        except MissingFollowUpData as e:
            if not skip_incomplete:
                raise
            logger.debug("skipping %s: %s", e.case_id, e)
            skipped.append(rec.case_id)
    if skipped:
        logger.warning(
            "skipped %d cases without usable follow-up (e.g. %s)",
            len(skipped),
            ", ".join(skipped[:5]),
        )
    return out


def pivot_long_expression(
    df: pd.DataFrame, *, gene_col: str = "gene_id", sample_col: str = "sample", value_col: str = "value"
) -> pd.DataFrame:
    """Long (gene, sample, value) table -> matrix with rows=genes, cols=samples."""
    d = df[[gene_col, sample_col, value_col]].copy()
    d[value_col] = _to_numeric(d[value_col])
    return d.pivot_table(index=gene_col, columns=sample_col, values=value_col, aggfunc="first")


def resolve_gene_ids(expr: pd.DataFrame, gene: str, gene_names: pd.Series | None = None) -> list[str]:
    """
    Map a gene id (version suffix ignored) or symbol onto row labels of `expr`.

    gene_names: Series indexed by gene id with gene symbols as values.
    """
    wanted = _strip_version(gene)
    hits = [g for g in expr.index if str(g) == gene or _strip_version(g) == wanted]
    if not hits and gene_names is not None:
        ids = {_strip_version(i) for i, name in gene_names.items() if str(name) == gene}
        hits = [g for g in expr.index if _strip_version(g) in ids]
    if not hits:
        raise KeyError(f"gene not found in expression matrix: {gene}")
    return hits


def gene_expression(
    expr: pd.DataFrame,
    gene: str,
    *,
    gene_names: pd.Series | None = None,
    primary_tumor_only: bool = True,
) -> list[ExpressionObservation]:
    """
    One observation per case for a single gene.

    expr: rows=gene ids, cols=sample barcodes. Barcodes are truncated to case ids; when a
    case has several samples the first (after the primary-tumor filter) is kept.
    """
    logger = logging.getLogger(__name__)
    hits = resolve_gene_ids(expr, gene, gene_names)
    gene_id = hits[0]
    if len(hits) > 1:
        logger.warning("gene %s maps to %d rows (%s); using %s", gene, len(hits), ", ".join(map(str, hits)), gene_id)

    samples = [str(s) for s in expr.columns if is_tcga_barcode(str(s))]
    if len(samples) < expr.shape[1]:
        logger.warning("ignoring %d expression columns that are not TCGA barcodes", expr.shape[1] - len(samples))
    if primary_tumor_only:
        samples = [s for s in samples if is_primary_tumor(s)]
    samples = dedupe_by_case(samples)

    row = _to_numeric(expr.loc[gene_id, samples] if samples else pd.Series(dtype=float))
    out: list[ExpressionObservation] = []
    for sample, value in row.items():
        if pd.isna(value):
            continue
        out.append(ExpressionObservation(gene_id=str(gene_id), case_id=tcga_case_id(str(sample)), value=float(value)))
    logger.info("expression for %s (%s): %d cases", gene, gene_id, len(out))
    return out


def join_cohort(
    survival: Sequence[DerivedSurvivalRecord],
    observations: Sequence[ExpressionObservation],
    *,
    covariate: str = DEFAULT_COVARIATE,
) -> list[CohortRecord]:
    logger = logging.getLogger(__name__)
    value_by_case = {o.case_id: o.value for o in observations}
    out = [
        CohortRecord(
            case_id=s.case_id,
            deceased=s.deceased,
            overall_survival=s.overall_survival,
            covariates={covariate: value_by_case[s.case_id]},
        )
        for s in survival
        if s.case_id in value_by_case
    ]
    logger.info(
        "joined cohort: %d cases (clinical=%d, expression=%d)",
        len(out),
        len(survival),
        len(value_by_case),
    )
    return out


def read_group_labels(groups: pd.DataFrame, *, label_col: str | None = None) -> dict[str, str]:
    """case_id -> label from a table whose first column (or `case_id`) holds case ids or barcodes."""
    case_col = CohortColumns.CASE_ID if CohortColumns.CASE_ID in groups.columns else groups.columns[0]
    if label_col is None:
        others = [c for c in groups.columns if c != case_col]
        if not others:
            raise KeyError("group table needs a label column")
        label_col = others[0]
    d = groups[[case_col, label_col]].dropna()
    return {tcga_case_id(str(c)): str(lab) for c, lab in zip(d[case_col], d[label_col])}


def cohort_table(records: Sequence[StratifiedRecord]) -> pd.DataFrame:
    rows: list[dict] = []
    for r in records:
        rows.append(
            {
                CohortColumns.CASE_ID: r.case_id,
                CohortColumns.STRATUM: r.stratum,
                CohortColumns.OVERALL_SURVIVAL: r.overall_survival,
                CohortColumns.DECEASED: int(r.deceased),
                **r.covariates,
            }
        )
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values([CohortColumns.STRATUM, CohortColumns.CASE_ID]).reset_index(drop=True)
    return df


def curves_table(curves: Mapping[str, SurvivalCurveEstimate]) -> pd.DataFrame:
    parts = [c.to_frame().assign(stratum=label) for label, c in curves.items()]
    if not parts:
        return pd.DataFrame()
    df = pd.concat(parts, axis=0, ignore_index=True)
    return df[["stratum", *[c for c in df.columns if c != "stratum"]]]


def logrank_table(result: LogRankResult, *, gene: str | None = None) -> pd.DataFrame:
    rows: list[dict] = []
    for label in result.observed:
        rows.append(
            {
                "gene": gene,
                "stratum": label,
                "observed_events": result.observed[label],
                "expected_events": result.expected[label],
                "chi2": result.chi_square_statistic,
                "df": result.degrees_of_freedom,
                "p": result.p_value,
            }
        )
    df = pd.DataFrame(rows)
    if gene is None and not df.empty:
        df = df.drop(columns=["gene"])
    return df
