"""Debate state and the value types threaded through a debate run.

``DebateState`` is the single mutable record handed from component to
component while one debate executes. Accumulators (``turns``,
``verification_log``) are append-only; everything under "scratch" is
overwritten on every step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(str, Enum):
    """Debating positions. PRO always opens a round."""

    PRO = "pro"
    CON = "con"

    @property
    def opponent(self) -> Side:
        return Side.CON if self is Side.PRO else Side.PRO

    @property
    def position(self) -> str:
        return "FOR" if self is Side.PRO else "AGAINST"


class StrictnessMode(str, Enum):
    """How verification results affect turn acceptance."""

    DISABLED = "disabled"
    STANDARD = "standard"
    STRICT = "strict"


class DebateStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Verdict(str, Enum):
    """Outcome of checking a single assertion against evidence."""

    SUPPORTED = "supported"
    CONTRADICTED = "contradicted"
    INDETERMINATE = "indeterminate"


class Winner(str, Enum):
    PRO = "pro"
    CON = "con"
    TIE = "tie"


class EvaluationOrder(str, Enum):
    PRO_FIRST = "pro_first"
    CON_FIRST = "con_first"

    @property
    def first(self) -> Side:
        return Side.PRO if self is EvaluationOrder.PRO_FIRST else Side.CON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------

@dataclass
class TurnDraft:
    """A generated turn that has not been accepted yet."""

    statement: str
    word_count: int
    analysis: str = ""
    critique: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0


@dataclass
class Turn:
    """An accepted unit of debate content."""

    round_number: int
    side: Side
    model_id: str
    statement: str
    word_count: int
    analysis: str | None = None
    critique: str | None = None
    verifications_passed: int = 0
    verifications_failed: int = 0
    was_rejected: bool = False
    regenerations: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "side": self.side.value,
            "model_id": self.model_id,
            "analysis": self.analysis,
            "critique": self.critique,
            "statement": self.statement,
            "word_count": self.word_count,
            "verifications_passed": self.verifications_passed,
            "verifications_failed": self.verifications_failed,
            "was_rejected": self.was_rejected,
            "regenerations": self.regenerations,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

@dataclass
class VerificationResult:
    """One checked assertion."""

    assertion: str
    verdict: Verdict
    confidence: float
    evidence_refs: list[str] = field(default_factory=list)
    rationale: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "assertion": self.assertion,
            "verdict": self.verdict.value,
            "confidence": self.confidence,
            "evidence_refs": list(self.evidence_refs),
            "rationale": self.rationale,
        }


@dataclass
class VerificationLogEntry:
    round_number: int
    side: Side
    result: VerificationResult


# ---------------------------------------------------------------------------
# Judging
# ---------------------------------------------------------------------------

@dataclass
class RubricScores:
    coherence: float = 5
    rebuttal_strength: float = 5
    factual_grounding: float = 5

    @property
    def average(self) -> float:
        return (self.coherence + self.rebuttal_strength + self.factual_grounding) / 3


@dataclass
class ReasoningDefect:
    """A flagged fallacy or reasoning flaw."""

    type: str
    severity: str
    location: str
    description: str = ""


@dataclass
class JudgeVerdict:
    """A single judge pass over a finished transcript."""

    winner: Winner
    scores: RubricScores
    justification: str
    defects: list[ReasoningDefect] = field(default_factory=list)
    order: EvaluationOrder = EvaluationOrder.PRO_FIRST
    judge_model: str = ""
    evaluated_at: datetime = field(default_factory=_utcnow)
    parse_failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "winner": self.winner.value,
            "scores": {
                "coherence": self.scores.coherence,
                "rebuttal_strength": self.scores.rebuttal_strength,
                "factual_grounding": self.scores.factual_grounding,
            },
            "justification": self.justification,
            "defects": [
                {
                    "type": d.type,
                    "severity": d.severity,
                    "location": d.location,
                    "description": d.description,
                }
                for d in self.defects
            ],
            "order": self.order.value,
            "judge_model": self.judge_model,
            "evaluated_at": self.evaluated_at.isoformat(),
            "parse_failed": self.parse_failed,
        }


@dataclass
class ConsensusVerdict:
    """Outcome of the order-swapped evaluation protocol."""

    pro_first: JudgeVerdict
    con_first: JudgeVerdict
    consensus: bool
    final_winner: Winner
    tiebreaker: JudgeVerdict | None = None

    @property
    def tiebreaker_used(self) -> bool:
        return self.tiebreaker is not None

    @property
    def verdicts(self) -> list[JudgeVerdict]:
        passes = [self.pro_first, self.con_first]
        if self.tiebreaker is not None:
            passes.append(self.tiebreaker)
        return passes

    @property
    def degraded(self) -> bool:
        """True when any pass fell back to the default verdict."""
        return any(v.parse_failed for v in self.verdicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_winner": self.final_winner.value,
            "consensus": self.consensus,
            "tiebreaker_used": self.tiebreaker_used,
            "pro_first": self.pro_first.to_dict(),
            "con_first": self.con_first.to_dict(),
            "tiebreaker": self.tiebreaker.to_dict() if self.tiebreaker else None,
        }


# ---------------------------------------------------------------------------
# DebateState
# ---------------------------------------------------------------------------

@dataclass
class DebateState:
    """Everything one debate run reads and writes."""

    # Identity
    debate_id: str
    motion: str
    models: dict[Side, str]
    personas: dict[Side, str | None] = field(default_factory=dict)

    # Progress
    total_rounds: int = 3
    word_limit: int = 500
    strictness: StrictnessMode = StrictnessMode.STANDARD
    current_round: int = 0
    current_side: Side = Side.PRO

    # Accumulators
    turns: list[Turn] = field(default_factory=list)
    verification_log: list[VerificationLogEntry] = field(default_factory=list)

    # Scratch
    draft: TurnDraft | None = None
    verification_results: list[VerificationResult] = field(default_factory=list)
    reject: bool = False
    retry_count: int = 0
    complete: bool = False

    metadata: dict[str, Any] = field(default_factory=dict)

    def model_for(self, side: Side) -> str:
        return self.models[side]

    def persona_for(self, side: Side) -> str | None:
        return self.personas.get(side)

    def turns_in_round(self, round_number: int) -> list[Turn]:
        return [t for t in self.turns if t.round_number == round_number]

    def last_turn_by(self, side: Side) -> Turn | None:
        for turn in reversed(self.turns):
            if turn.side is side:
                return turn
        return None

    def clear_scratch(self) -> None:
        self.draft = None
        self.verification_results = []
        self.reject = False
        self.retry_count = 0

    def record(self, key: str, entry: Any) -> None:
        """Append a diagnostic entry under ``metadata[key]``."""
        self.metadata.setdefault(key, []).append(entry)
