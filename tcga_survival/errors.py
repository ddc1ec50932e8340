from __future__ import annotations


class SurvivalAnalysisError(ValueError):
    """Base class for input validation failures in the survival analysis."""

    def __init__(self, message: str, *, case_id: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.case_id = case_id
        self.field = field


class MissingFollowUpData(SurvivalAnalysisError):
    pass


class EmptyCohort(SurvivalAnalysisError):
    pass


class DegenerateStratification(SurvivalAnalysisError):
    pass


class UnlabeledCase(SurvivalAnalysisError):
    pass


class DuplicateCase(SurvivalAnalysisError):
    pass


class InsufficientStrata(SurvivalAnalysisError):
    pass


class NoEventsObserved(SurvivalAnalysisError):
    pass
