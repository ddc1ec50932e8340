from __future__ import annotations


class ClinicalColumns:
    CASE_ID = "submitter_id"
    VITAL_STATUS = "vital_status"
    DAYS_TO_LAST_FOLLOW_UP = "days_to_last_follow_up"
    DAYS_TO_DEATH = "days_to_death"


class CohortColumns:
    CASE_ID = "case_id"
    STRATUM = "stratum"
    OVERALL_SURVIVAL = "overall_survival"
    DECEASED = "deceased"


class StratumLabels:
    HIGH = "HIGH"
    LOW = "LOW"
    MID = "MID"


class OutputFiles:
    COHORT = "cohort.tsv"
    KM_CURVES = "km_curves.tsv"
    KM_SUMMARY = "km_summary.tsv"
    LOGRANK = "logrank.tsv"
    SCREEN = "screen.tsv"
    LOG = "run.log"


DEFAULT_COVARIATE = "expression"
