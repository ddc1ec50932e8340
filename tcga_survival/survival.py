from __future__ import annotations

from typing import Iterable, Mapping

import numpy as np
import pandas as pd
from scipy import stats

from tcga_survival.config import ClinicalColumns
from tcga_survival.errors import InsufficientStrata, MissingFollowUpData, NoEventsObserved
from tcga_survival.records import (
    CaseRecord,
    CurvePoint,
    DerivedSurvivalRecord,
    LogRankResult,
    Observation,
    SurvivalCurveEstimate,
    VitalStatus,
    parse_vital_status,
)


def _safe_days(x: object) -> float | None:
    if x is None:
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if not np.isfinite(v) or v < 0:
        return None
    return v


def resolve_survival_time(record: CaseRecord) -> DerivedSurvivalRecord:
    status = parse_vital_status(record.vital_status)
    if status is None:
        raise MissingFollowUpData(
            f"case {record.case_id}: unknown vital status {record.vital_status!r}",
            case_id=record.case_id,
            field=ClinicalColumns.VITAL_STATUS,
        )
    deceased = status is VitalStatus.DEAD
    if deceased:
        field, raw = ClinicalColumns.DAYS_TO_DEATH, record.days_to_death
    else:
        field, raw = ClinicalColumns.DAYS_TO_LAST_FOLLOW_UP, record.days_to_last_follow_up
    days = _safe_days(raw)
    if days is None:
        raise MissingFollowUpData(
            f"case {record.case_id}: {field} is missing or negative ({raw!r})",
            case_id=record.case_id,
            field=field,
        )
    return DerivedSurvivalRecord(case_id=record.case_id, deceased=deceased, overall_survival=days)


def _as_arrays(observations: Iterable[Observation]) -> tuple[np.ndarray, np.ndarray]:
    obs = list(observations)
    time = np.array([float(o.time) for o in obs], dtype=float)
    event = np.array([bool(o.event) for o in obs], dtype=bool)
    if time.size and (not np.all(np.isfinite(time)) or np.any(time < 0)):
        raise ValueError("survival times must be finite and non-negative")
    return time, event


def fit_kaplan_meier(observations: Iterable[Observation], *, label: str | None = None) -> SurvivalCurveEstimate:
    time, event = _as_arrays(observations)
    if time.size == 0:
        raise ValueError("Kaplan-Meier needs at least one observation")

    n_at_risk = int(time.size)
    surv = 1.0
    points = [CurvePoint(time=0.0, survival_probability=1.0, at_risk=n_at_risk, events=0, censored=0)]
    for t in np.unique(time):
        at_t = time == t
        d = int(np.sum(event & at_t))
        c = int(np.sum(at_t)) - d
        # n_at_risk >= d + c > 0 here, so the ratio is always defined.
        if d:
            surv *= 1.0 - d / n_at_risk
        points.append(CurvePoint(time=float(t), survival_probability=surv, at_risk=n_at_risk, events=d, censored=c))
        n_at_risk -= d + c
    return SurvivalCurveEstimate(points=tuple(points), label=label)


def compare_strata(strata: Mapping[str, Iterable[Observation]]) -> LogRankResult:
    """
    Log-rank (Mantel-Haenszel) test of equal hazards across k strata.

    At every distinct event time the expected deaths per stratum are d * n_k / n and the
    hypergeometric covariance is accumulated; the statistic is (O-E)' V^- (O-E) on the
    first k-1 strata, chi-square with k-1 degrees of freedom.
    """
    times: list[np.ndarray] = []
    events: list[np.ndarray] = []
    labels: list[str] = []
    for label, obs in strata.items():
        t, e = _as_arrays(obs)
        if t.size == 0:
            continue
        labels.append(str(label))
        times.append(t)
        events.append(e)

    if len(labels) < 2:
        raise InsufficientStrata(f"log-rank needs at least 2 non-empty strata, got {len(labels)}")

    time = np.concatenate(times)
    event = np.concatenate(events)
    group = np.concatenate([np.full(t.size, i) for i, t in enumerate(times)])
    if not event.any():
        raise NoEventsObserved("no events observed across strata; log-rank statistic is undefined")

    k = len(labels)
    observed = np.zeros(k)
    expected = np.zeros(k)
    var = np.zeros((k, k))
    for t in np.unique(time[event]):
        at_risk = time >= t
        died = event & (time == t)
        n_k = np.array([np.sum(at_risk & (group == i)) for i in range(k)], dtype=float)
        d_k = np.array([np.sum(died & (group == i)) for i in range(k)], dtype=float)
        n = n_k.sum()
        d = d_k.sum()
        frac = n_k / n
        observed += d_k
        expected += d * frac
        if n > 1:
            var += d * (n - d) / (n - 1) * (np.diag(frac) - np.outer(frac, frac))

    z = (observed - expected)[:-1]
    stat = float(z @ np.linalg.pinv(var[:-1, :-1]) @ z)
    stat = max(stat, 0.0)
    dof = k - 1
    p = float(stats.chi2.sf(stat, dof))
    return LogRankResult(
        chi_square_statistic=stat,
        degrees_of_freedom=dof,
        p_value=min(max(p, 0.0), 1.0),
        observed={lab: float(o) for lab, o in zip(labels, observed)},
        expected={lab: float(e) for lab, e in zip(labels, expected)},
    )


def summarize_curves(curves: Mapping[str, SurvivalCurveEstimate]) -> pd.DataFrame:
    rows: list[dict] = []
    for label, curve in curves.items():
        rows.append(
            {
                "stratum": label,
                "n": curve.n,
                "events": curve.events,
                "km_median_days": curve.median_survival_time,
                "max_follow_up_days": curve.max_time,
            }
        )
    return pd.DataFrame(rows)
