from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import numpy as np
import pandas as pd


class VitalStatus(str, Enum):
    ALIVE = "Alive"
    DEAD = "Dead"


_VITAL_STATUS_ALIASES = {
    "alive": VitalStatus.ALIVE,
    "living": VitalStatus.ALIVE,
    "dead": VitalStatus.DEAD,
    "deceased": VitalStatus.DEAD,
}


def parse_vital_status(value: object) -> VitalStatus | None:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    if isinstance(value, VitalStatus):
        return value
    return _VITAL_STATUS_ALIASES.get(str(value).strip().lower())


@dataclass(frozen=True)
class CaseRecord:
    case_id: str
    vital_status: VitalStatus | None
    days_to_last_follow_up: float | None = None
    days_to_death: float | None = None


@dataclass(frozen=True)
class DerivedSurvivalRecord:
    case_id: str
    deceased: bool
    overall_survival: float


@dataclass(frozen=True)
class ExpressionObservation:
    gene_id: str
    case_id: str
    value: float


@dataclass(frozen=True)
class CohortRecord:
    """Derived survival for one case joined with its covariates (e.g. gene expression)."""

    case_id: str
    deceased: bool
    overall_survival: float
    covariates: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "covariates", MappingProxyType(dict(self.covariates)))

    def observation(self) -> Observation:
        return Observation(time=self.overall_survival, event=self.deceased)


@dataclass(frozen=True)
class StratifiedRecord(CohortRecord):
    stratum: str = ""


@dataclass(frozen=True)
class Observation:
    time: float
    event: bool


@dataclass(frozen=True)
class CurvePoint:
    time: float
    survival_probability: float
    at_risk: int
    events: int
    censored: int = 0


@dataclass(frozen=True)
class SurvivalCurveEstimate:
    """
    Kaplan-Meier step function.

    points[0] is the origin (time 0, probability 1.0, whole stratum at risk); each following
    point is a distinct observed time with the survival probability just after it.
    """

    points: tuple[CurvePoint, ...]
    label: str | None = None

    @property
    def times(self) -> np.ndarray:
        return np.array([p.time for p in self.points], dtype=float)

    @property
    def probabilities(self) -> np.ndarray:
        return np.array([p.survival_probability for p in self.points], dtype=float)

    @property
    def n(self) -> int:
        return int(self.points[0].at_risk) if self.points else 0

    @property
    def events(self) -> int:
        return int(sum(p.events for p in self.points))

    @property
    def max_time(self) -> float:
        return float(self.points[-1].time) if self.points else 0.0

    def survival_at(self, t: float) -> float:
        if t < 0:
            raise ValueError(f"survival is undefined for negative time: {t}")
        # Right-continuous: the drop at an event time applies at that time.
        steps = self.points[1:]
        prob = self.points[0].survival_probability
        for p in steps:
            if p.time > t:
                break
            prob = p.survival_probability
        return float(prob)

    @property
    def median_survival_time(self) -> float | None:
        for p in self.points[1:]:
            if p.survival_probability <= 0.5:
                return float(p.time)
        return None

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            [
                {
                    "time": p.time,
                    "survival_probability": p.survival_probability,
                    "at_risk": p.at_risk,
                    "events": p.events,
                    "censored": p.censored,
                }
                for p in self.points
            ]
        )
        if self.label is not None:
            df.insert(0, "stratum", self.label)
        return df


@dataclass(frozen=True)
class LogRankResult:
    chi_square_statistic: float
    degrees_of_freedom: int
    p_value: float
    observed: Mapping[str, float] = field(default_factory=dict)
    expected: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "observed", MappingProxyType(dict(self.observed)))
        object.__setattr__(self, "expected", MappingProxyType(dict(self.expected)))
