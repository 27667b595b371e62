"""Judge calibration against human-graded gold-standard debates.

A judge passes calibration when its single-pass winner agrees with the
human verdict on at least ``threshold`` of the gold debates.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import yaml
from pydantic import BaseModel, Field

from data.state import EvaluationOrder, Side, Turn, Winner

if TYPE_CHECKING:
    from agents.judge import Judge

logger = logging.getLogger(__name__)

_MIN_RECOMMENDED = 50


# ---------------------------------------------------------------------------
# Gold standard schema
# ---------------------------------------------------------------------------

class GoldTurn(BaseModel):
    round_number: int = Field(ge=1)
    side: Side
    statement: str
    model_id: str = "human"
    analysis: str | None = None
    critique: str | None = None

    def to_turn(self) -> Turn:
        return Turn(
            round_number=self.round_number,
            side=self.side,
            model_id=self.model_id,
            statement=self.statement,
            word_count=len(self.statement.split()),
            analysis=self.analysis,
            critique=self.critique,
        )


class GoldScores(BaseModel):
    coherence: float = Field(ge=1, le=10)
    rebuttal_strength: float = Field(ge=1, le=10)
    factual_grounding: float = Field(ge=1, le=10)


class GoldStandardDebate(BaseModel):
    id: str
    motion: str
    turns: list[GoldTurn]
    human_winner: Winner
    human_scores: GoldScores
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    category: str = "general"


def load_gold_standard(path: str | Path) -> list[GoldStandardDebate]:
    """Read gold debates from a YAML (or JSON) list."""
    with open(path) as f:
        raw = yaml.safe_load(f) or []
    if isinstance(raw, dict):
        raw = raw.get("debates", [])
    return [GoldStandardDebate.model_validate(item) for item in raw]


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class CalibrationResult:
    debate_id: str
    human_winner: Winner
    judge_winner: Winner
    score_differences: dict[str, float]

    @property
    def agreement(self) -> bool:
        return self.human_winner is self.judge_winner


@dataclass
class CalibrationReport:
    judge_model: str
    threshold: float
    results: list[CalibrationResult] = field(default_factory=list)
    by_difficulty: dict[str, dict[str, float]] = field(default_factory=dict)
    by_category: dict[str, dict[str, float]] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def agreement_rate(self) -> float:
        if not self.results:
            return 0.0
        return sum(1 for r in self.results if r.agreement) / len(self.results)

    @property
    def average_score_difference(self) -> float:
        if not self.results:
            return 0.0
        return sum(r.score_differences["average"] for r in self.results) / len(self.results)

    @property
    def passes_threshold(self) -> bool:
        return bool(self.results) and self.agreement_rate >= self.threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "judge_model": self.judge_model,
            "total_debates": self.total,
            "agreement_rate": round(self.agreement_rate, 3),
            "average_score_difference": round(self.average_score_difference, 3),
            "by_difficulty": self.by_difficulty,
            "by_category": self.by_category,
            "failed": self.failed,
            "passes_threshold": self.passes_threshold,
        }


def _grouped_agreement(
    pairs: list[tuple[str, CalibrationResult]],
) -> dict[str, dict[str, float]]:
    buckets: dict[str, list[CalibrationResult]] = defaultdict(list)
    for key, result in pairs:
        buckets[key].append(result)
    return {
        key: {
            "count": len(items),
            "agreement_rate": round(sum(1 for r in items if r.agreement) / len(items), 3),
        }
        for key, items in buckets.items()
    }


class JudgeCalibration:
    """Runs a judge over gold debates and reports agreement with humans."""

    def __init__(self, gold: list[GoldStandardDebate], threshold: float = 0.8) -> None:
        if not 0 <= threshold <= 1:
            raise ValueError("Agreement threshold must be between 0 and 1")
        if len(gold) < _MIN_RECOMMENDED:
            logger.warning(
                "Gold standard has %d debates; at least %d are recommended",
                len(gold),
                _MIN_RECOMMENDED,
            )
        self.gold = gold
        self.threshold = threshold

    async def validate(self, judge: Judge) -> CalibrationReport:
        if not self.gold:
            raise ValueError("Gold standard dataset is empty")

        report = CalibrationReport(judge_model=judge.config.model_id, threshold=self.threshold)
        difficulty: list[tuple[str, CalibrationResult]] = []
        category: list[tuple[str, CalibrationResult]] = []

        for item in self.gold:
            turns = [t.to_turn() for t in item.turns]
            try:
                verdict = await judge.evaluate(item.motion, turns, EvaluationOrder.PRO_FIRST)
            except Exception as exc:  # noqa: BLE001
                logger.error("Calibration debate %s failed: %s", item.id, exc)
                report.failed.append(item.id)
                continue

            diffs = {
                "coherence": abs(verdict.scores.coherence - item.human_scores.coherence),
                "rebuttal_strength": abs(
                    verdict.scores.rebuttal_strength - item.human_scores.rebuttal_strength
                ),
                "factual_grounding": abs(
                    verdict.scores.factual_grounding - item.human_scores.factual_grounding
                ),
            }
            diffs["average"] = sum(diffs.values()) / 3
            result = CalibrationResult(
                debate_id=item.id,
                human_winner=item.human_winner,
                judge_winner=verdict.winner,
                score_differences=diffs,
            )
            report.results.append(result)
            difficulty.append((item.difficulty, result))
            category.append((item.category, result))

        report.by_difficulty = _grouped_agreement(difficulty)
        report.by_category = _grouped_agreement(category)
        logger.info(
            "Calibration of %s: %.1f%% agreement over %d debate(s)",
            report.judge_model,
            report.agreement_rate * 100,
            report.total,
        )
        return report
