from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from tcga_survival.config import DEFAULT_COVARIATE, StratumLabels
from tcga_survival.errors import (
    DegenerateStratification,
    DuplicateCase,
    EmptyCohort,
    UnlabeledCase,
)
from tcga_survival.records import CohortRecord, StratifiedRecord


def _covariate_values(records: Sequence[CohortRecord], name: str) -> np.ndarray:
    values = np.empty(len(records), dtype=float)
    for i, r in enumerate(records):
        raw = r.covariates.get(name)
        try:
            v = float(raw) if raw is not None else float("nan")
        except (TypeError, ValueError):
            v = float("nan")
        if not np.isfinite(v):
            raise UnlabeledCase(
                f"case {r.case_id}: covariate {name!r} is missing or not finite ({raw!r})",
                case_id=r.case_id,
                field=name,
            )
        values[i] = v
    return values


@dataclass(frozen=True)
class MedianSplit:
    """HIGH when value >= cohort median (ties go HIGH), LOW otherwise."""

    field: str = DEFAULT_COVARIATE
    high_label: str = StratumLabels.HIGH
    low_label: str = StratumLabels.LOW

    def assign(self, records: Sequence[CohortRecord]) -> dict[str, str]:
        values = _covariate_values(records, self.field)
        median = float(np.median(values))
        logging.getLogger(__name__).debug("median split on %s: median=%.4g", self.field, median)
        return {
            r.case_id: (self.high_label if v >= median else self.low_label)
            for r, v in zip(records, values)
        }


@dataclass(frozen=True)
class QuantileSplit:
    """
    Split at the given quantiles of a covariate (default tertiles).

    A value equal to a cut point goes to the upper group, matching MedianSplit.
    """

    field: str = DEFAULT_COVARIATE
    quantiles: tuple[float, ...] = (1 / 3, 2 / 3)
    labels: tuple[str, ...] = (StratumLabels.LOW, StratumLabels.MID, StratumLabels.HIGH)

    def __post_init__(self) -> None:
        if len(self.labels) != len(self.quantiles) + 1:
            raise ValueError("QuantileSplit needs exactly one more label than quantiles")
        if any(not 0.0 < q < 1.0 for q in self.quantiles) or list(self.quantiles) != sorted(self.quantiles):
            raise ValueError(f"quantiles must be increasing and inside (0, 1): {self.quantiles}")

    def assign(self, records: Sequence[CohortRecord]) -> dict[str, str]:
        values = _covariate_values(records, self.field)
        cuts = np.quantile(values, list(self.quantiles))
        idx = np.searchsorted(cuts, values, side="right")
        return {r.case_id: self.labels[int(i)] for r, i in zip(records, idx)}


@dataclass(frozen=True)
class PredefinedGroups:
    labels: Mapping[str, str] = field(default_factory=dict)

    def assign(self, records: Sequence[CohortRecord]) -> dict[str, str]:
        out: dict[str, str] = {}
        for r in records:
            label = self.labels.get(r.case_id)
            if label is None:
                raise UnlabeledCase(f"case {r.case_id} has no predefined group", case_id=r.case_id)
            out[r.case_id] = str(label)
        return out


StratificationRule = MedianSplit | QuantileSplit | PredefinedGroups


def stratify(records: Sequence[CohortRecord], rule: StratificationRule) -> dict[str, frozenset[str]]:
    records = list(records)
    if len(records) < 2:
        raise EmptyCohort(f"stratification needs at least 2 cases, got {len(records)}")

    seen: set[str] = set()
    for r in records:
        if r.case_id in seen:
            raise DuplicateCase(f"case {r.case_id} appears more than once", case_id=r.case_id)
        seen.add(r.case_id)

    assigned = rule.assign(records)
    groups: dict[str, set[str]] = {}
    for r in records:
        groups.setdefault(assigned[r.case_id], set()).add(r.case_id)

    if len(groups) < 2:
        raise DegenerateStratification(
            f"{type(rule).__name__} produced {len(groups)} non-empty stratum; need at least 2"
        )
    return {label: frozenset(ids) for label, ids in groups.items()}


def assign_strata(
    records: Sequence[CohortRecord], strata: Mapping[str, frozenset[str]]
) -> list[StratifiedRecord]:
    label_by_case = {cid: label for label, ids in strata.items() for cid in ids}
    out: list[StratifiedRecord] = []
    for r in records:
        if r.case_id not in label_by_case:
            raise UnlabeledCase(f"case {r.case_id} is not in any stratum", case_id=r.case_id)
        out.append(
            StratifiedRecord(
                case_id=r.case_id,
                deceased=r.deceased,
                overall_survival=r.overall_survival,
                covariates=dict(r.covariates),
                stratum=label_by_case[r.case_id],
            )
        )
    return out


def observations_by_stratum(records: Sequence[StratifiedRecord]) -> dict[str, list]:
    out: dict[str, list] = {}
    for r in records:
        out.setdefault(r.stratum, []).append(r.observation())
    return out
