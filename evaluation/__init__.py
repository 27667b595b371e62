"""Evaluation framework – metrics, validators and judge calibration."""

from evaluation.calibration import (
    CalibrationReport,
    GoldStandardDebate,
    JudgeCalibration,
    load_gold_standard,
)
from evaluation.metrics import (
    DebateMetrics,
    SideMetrics,
    argument_diversity_score,
    compute_all_metrics,
    evidence_strength_score,
    factuality_score,
    relevance_score,
)
from evaluation.validators import DebateValidator, ValidationResult

__all__ = [
    "CalibrationReport",
    "DebateMetrics",
    "DebateValidator",
    "GoldStandardDebate",
    "JudgeCalibration",
    "SideMetrics",
    "ValidationResult",
    "argument_diversity_score",
    "compute_all_metrics",
    "evidence_strength_score",
    "factuality_score",
    "load_gold_standard",
    "relevance_score",
]
