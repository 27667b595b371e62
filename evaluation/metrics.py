"""Debate quality and process metrics.

Heuristic text metrics are computed locally from accepted turns; the
verification log and judge verdict contribute factuality and outcome
figures. Nothing here calls a model.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from data.state import ConsensusVerdict, DebateState, Side, Turn, Verdict, VerificationLogEntry

_EVIDENCE_KEYWORDS = frozenset({
    "study", "research", "data", "evidence", "according",
    "percent", "%", "statistic", "report", "survey",
    "for instance", "specifically", "demonstrates", "findings", "source",
})

_STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "be", "should", "of", "in", "to", "and", "or", "for", "this",
})


# ---------------------------------------------------------------------------
# Data container
# ---------------------------------------------------------------------------

@dataclass
class SideMetrics:
    turns: int = 0
    avg_word_count: float = 0.0
    regenerations: int = 0
    rejected_turns: int = 0
    supported: int = 0
    contradicted: int = 0
    indeterminate: int = 0
    factuality: float | None = None
    evidence_strength: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "turns": self.turns,
            "avg_word_count": round(self.avg_word_count, 1),
            "regenerations": self.regenerations,
            "rejected_turns": self.rejected_turns,
            "verifications": {
                "supported": self.supported,
                "contradicted": self.contradicted,
                "indeterminate": self.indeterminate,
            },
            "factuality": None if self.factuality is None else round(self.factuality, 3),
            "evidence_strength": round(self.evidence_strength, 3),
        }


@dataclass
class DebateMetrics:
    """Collection of quality, process and outcome metrics for a debate."""

    # Quality
    relevance: float = 0.0
    argument_diversity: float = 0.0

    # Process
    rounds_completed: int = 0
    total_turns: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    forced_acceptances: int = 0
    verification_errors: int = 0
    validation_warnings: int = 0
    sides: dict[Side, SideMetrics] = field(default_factory=dict)

    # Outcome
    winner: str | None = None
    consensus: bool | None = None
    tiebreaker_used: bool = False
    judging_degraded: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "quality": {
                "relevance": round(self.relevance, 3),
                "argument_diversity": round(self.argument_diversity, 3),
            },
            "process": {
                "rounds_completed": self.rounds_completed,
                "total_turns": self.total_turns,
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
                "total_tokens": self.total_tokens,
                "forced_acceptances": self.forced_acceptances,
                "verification_errors": self.verification_errors,
                "validation_warnings": self.validation_warnings,
            },
            "sides": {side.value: m.to_dict() for side, m in self.sides.items()},
            "outcome": {
                "winner": self.winner,
                "consensus": self.consensus,
                "tiebreaker_used": self.tiebreaker_used,
                "judging_degraded": self.judging_degraded,
            },
        }


# ---------------------------------------------------------------------------
# Individual metric functions
# ---------------------------------------------------------------------------

def evidence_strength_score(turns: Sequence[Turn]) -> float:
    """Heuristic 0-1 estimate of evidence use across statements.

    Counts evidence keywords and numeric references in each statement.
    """
    if not turns:
        return 0.0

    total = 0.0
    for turn in turns:
        text = turn.statement.lower()
        keyword_hits = sum(1 for kw in _EVIDENCE_KEYWORDS if kw in text)
        num_hits = len(re.findall(r"\b\d+\.?\d*%?", turn.statement))
        total += min(1.0, keyword_hits * 0.08 + min(num_hits, 5) * 0.04)
    return min(1.0, total / len(turns))


def relevance_score(turns: Sequence[Turn], motion: str) -> float:
    """Share of the motion's content words that each statement uses, averaged."""
    if not turns or not motion:
        return 0.5

    motion_words = set(motion.lower().split()) - _STOP_WORDS
    if not motion_words:
        return 0.5

    scores = [
        len(motion_words & set(t.statement.lower().split())) / len(motion_words)
        for t in turns
    ]
    return sum(scores) / len(scores)


def argument_diversity_score(turns: Sequence[Turn]) -> float:
    """Type-token ratio of all statements, scaled so 0.5 maps to 1.0."""
    words = [w for t in turns for w in t.statement.lower().split()]
    if not words:
        return 0.0
    return min(1.0, len(set(words)) / len(words) * 2)


def factuality_score(entries: Sequence[VerificationLogEntry], side: Side) -> float | None:
    """Supported / (supported + contradicted) for one side.

    ``None`` when no assertion of that side reached a definite verdict.
    """
    supported = sum(
        1 for e in entries if e.side is side and e.result.verdict is Verdict.SUPPORTED
    )
    contradicted = sum(
        1 for e in entries if e.side is side and e.result.verdict is Verdict.CONTRADICTED
    )
    if supported + contradicted == 0:
        return None
    return supported / (supported + contradicted)


def side_metrics(state: DebateState, side: Side) -> SideMetrics:
    turns = [t for t in state.turns if t.side is side]
    entries = [e for e in state.verification_log if e.side is side]
    verdicts = [e.result.verdict for e in entries]
    return SideMetrics(
        turns=len(turns),
        avg_word_count=sum(t.word_count for t in turns) / max(len(turns), 1),
        regenerations=sum(t.regenerations for t in turns),
        rejected_turns=sum(1 for t in turns if t.was_rejected),
        supported=verdicts.count(Verdict.SUPPORTED),
        contradicted=verdicts.count(Verdict.CONTRADICTED),
        indeterminate=verdicts.count(Verdict.INDETERMINATE),
        factuality=factuality_score(entries, side),
        evidence_strength=evidence_strength_score(turns),
    )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def compute_all_metrics(
    state: DebateState,
    verdict: ConsensusVerdict | None = None,
    judging_degraded: bool = False,
) -> DebateMetrics:
    """Compute the full suite of debate metrics."""
    completed = state.current_round if state.complete else state.current_round - 1
    metrics = DebateMetrics(
        relevance=relevance_score(state.turns, state.motion),
        argument_diversity=argument_diversity_score(state.turns),
        rounds_completed=max(completed, 0),
        total_turns=len(state.turns),
        input_tokens=sum(t.input_tokens for t in state.turns),
        output_tokens=sum(t.output_tokens for t in state.turns),
        forced_acceptances=len(state.metadata.get("forced_acceptances", [])),
        verification_errors=len(state.metadata.get("verification_errors", [])),
        validation_warnings=len(state.metadata.get("validation_warnings", [])),
        sides={side: side_metrics(state, side) for side in Side},
        judging_degraded=judging_degraded,
    )
    if verdict is not None:
        metrics.winner = verdict.final_winner.value
        metrics.consensus = verdict.consensus
        metrics.tiebreaker_used = verdict.tiebreaker_used
        metrics.judging_degraded = judging_degraded or verdict.degraded
    return metrics
