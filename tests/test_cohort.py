from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tcga_survival.cohort import (
    case_records_from_clinical,
    cohort_table,
    curves_table,
    gene_expression,
    join_cohort,
    logrank_table,
    pivot_long_expression,
    read_group_labels,
    resolve_cohort_survival,
)
from tcga_survival.errors import MissingFollowUpData
from tcga_survival.records import CaseRecord, DerivedSurvivalRecord, ExpressionObservation, Observation, VitalStatus
from tcga_survival.stratify import MedianSplit, assign_strata, stratify
from tcga_survival.survival import compare_strata, fit_kaplan_meier


def test_case_records_from_clinical(clinical):
    clinical = pd.concat(
        [clinical, pd.DataFrame([{"submitter_id": "TCGA-AA-0099", "vital_status": "Not Reported"}])],
        ignore_index=True,
    )
    records = case_records_from_clinical(clinical)
    assert len(records) == 8
    assert records[0] == CaseRecord("TCGA-AA-0001", VitalStatus.DEAD, None, 120.0)
    assert records[1].days_to_last_follow_up == 900.0


def test_case_records_require_columns():
    with pytest.raises(KeyError):
        case_records_from_clinical(pd.DataFrame({"submitter_id": ["x"]}))


def test_resolve_cohort_survival_skips_or_raises():
    records = [
        CaseRecord("a", VitalStatus.DEAD, days_to_death=10),
        CaseRecord("b", VitalStatus.ALIVE),
    ]
    out = resolve_cohort_survival(records)
    assert [r.case_id for r in out] == ["a"]
    with pytest.raises(MissingFollowUpData):
        resolve_cohort_survival(records, skip_incomplete=False)


def test_resolve_cohort_survival_on_clinical(clinical):
    out = resolve_cohort_survival(case_records_from_clinical(clinical), skip_incomplete=False)
    assert [r.overall_survival for r in out] == [120.0, 900.0, 400.0, 1500.0, 250.0, 800.0, 2000.0, 60.0]
    assert sum(r.deceased for r in out) == 5


def test_gene_expression_by_id_and_symbol(expr, gene_names):
    by_id = gene_expression(expr, "ENSG00000141510")
    by_symbol = gene_expression(expr, "TP53", gene_names=gene_names)
    assert by_id == by_symbol
    assert by_id[0] == ExpressionObservation("ENSG00000141510.17", "TCGA-AA-0001", 9.0)
    assert len(by_id) == 8


def test_gene_expression_filters_and_dedupes_samples():
    expr = pd.DataFrame(
        [[1.0, 2.0, 3.0, np.nan, 5.0]],
        index=["GENE1"],
        columns=[
            "TCGA-AA-0001-01A-11R",
            "TCGA-AA-0001-01B-11R",
            "TCGA-AA-0002-11A-11R",
            "TCGA-AA-0003-01A-11R",
            "TCGA-AA-0004-01A-11R",
        ],
    )
    obs = gene_expression(expr, "GENE1")
    assert [(o.case_id, o.value) for o in obs] == [("TCGA-AA-0001", 1.0), ("TCGA-AA-0004", 5.0)]
    all_samples = gene_expression(expr, "GENE1", primary_tumor_only=False)
    assert "TCGA-AA-0002" in {o.case_id for o in all_samples}


def test_gene_expression_ignores_non_tcga_columns():
    expr = pd.DataFrame(
        [[1.0, 2.0, 3.0]],
        index=["GENE1"],
        columns=["TCGA-AA-0001-01A-11R", "GTEX-1117F-0226", "mean"],
    )
    obs = gene_expression(expr, "GENE1", primary_tumor_only=False)
    assert [(o.case_id, o.value) for o in obs] == [("TCGA-AA-0001", 1.0)]


def test_gene_expression_unknown_gene(expr, gene_names):
    with pytest.raises(KeyError):
        gene_expression(expr, "MYC", gene_names=gene_names)


def test_pivot_long_expression():
    long = pd.DataFrame(
        {
            "gene_id": ["G1", "G1", "G2", "G2"],
            "sample": ["S1", "S2", "S1", "S2"],
            "value": ["1.5", "2.5", "3", "4"],
        }
    )
    m = pivot_long_expression(long)
    assert m.loc["G1", "S2"] == 2.5
    assert m.shape == (2, 2)


def test_join_cohort_is_inner_join():
    survival = [
        DerivedSurvivalRecord("a", True, 10.0),
        DerivedSurvivalRecord("b", False, 20.0),
        DerivedSurvivalRecord("c", True, 30.0),
    ]
    obs = [ExpressionObservation("G1", "a", 1.0), ExpressionObservation("G1", "c", 3.0), ExpressionObservation("G1", "z", 9.0)]
    cohort = join_cohort(survival, obs, covariate="G1")
    assert [r.case_id for r in cohort] == ["a", "c"]
    assert cohort[1].covariates == {"G1": 3.0}
    assert cohort[1].overall_survival == 30.0


def test_read_group_labels_truncates_barcodes():
    groups = pd.DataFrame({"sample": ["TCGA-AA-0001-01A", "TCGA-AA-0002-01A"], "PAM50": ["LumA", "Basal"]})
    assert read_group_labels(groups) == {"TCGA-AA-0001": "LumA", "TCGA-AA-0002": "Basal"}
    with pytest.raises(KeyError):
        read_group_labels(groups[["sample"]])


def test_export_tables():
    survival = [DerivedSurvivalRecord(f"c{i}", i % 2 == 0, 10.0 * (i + 1)) for i in range(4)]
    obs = [ExpressionObservation("G1", f"c{i}", float(i)) for i in range(4)]
    cohort = join_cohort(survival, obs)
    records = assign_strata(cohort, stratify(cohort, MedianSplit()))

    table = cohort_table(records)
    assert list(table.columns) == ["case_id", "stratum", "overall_survival", "deceased", "expression"]
    assert table["stratum"].tolist() == ["HIGH", "HIGH", "LOW", "LOW"]
    assert table["deceased"].tolist() == [1, 0, 1, 0]

    curves = {
        "HIGH": fit_kaplan_meier([Observation(30.0, True), Observation(40.0, False)], label="HIGH"),
        "LOW": fit_kaplan_meier([Observation(10.0, True), Observation(20.0, False)], label="LOW"),
    }
    ct = curves_table(curves)
    assert ct.columns[0] == "stratum"
    assert ct.shape[0] == 6

    res = compare_strata({label: [Observation(p.time, p.events > 0) for p in c.points[1:]] for label, c in curves.items()})
    lt = logrank_table(res, gene="G1")
    assert set(lt["stratum"]) == {"HIGH", "LOW"}
    assert (lt["df"] == 1).all()
    assert "gene" not in logrank_table(res).columns
