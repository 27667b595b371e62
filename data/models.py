"""Pydantic models mirroring the SQLite schema.

Each record converts to and from the in-memory value types in
:mod:`data.state` so that a debate can be rebuilt from storage alone.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from data.state import (
    DebateState,
    DebateStatus,
    JudgeVerdict,
    Side,
    StrictnessMode,
    Turn,
    Verdict,
    VerificationLogEntry,
    VerificationResult,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DebateRecord(BaseModel):
    """Row in the ``debates`` table."""

    id: str
    motion: str
    pro_model: str
    con_model: str
    pro_persona: str | None = None
    con_persona: str | None = None
    total_rounds: int = 3
    current_round: int = 0
    word_limit: int = 500
    strictness: StrictnessMode = StrictnessMode.STANDARD
    status: DebateStatus = DebateStatus.PENDING
    winner: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    metadata_json: str = "{}"

    @property
    def metadata(self) -> dict[str, Any]:
        return json.loads(self.metadata_json)

    @metadata.setter
    def metadata(self, value: dict[str, Any]) -> None:
        self.metadata_json = json.dumps(value, default=str)

    @classmethod
    def from_state(cls, state: DebateState, status: DebateStatus) -> DebateRecord:
        record = cls(
            id=state.debate_id,
            motion=state.motion,
            pro_model=state.model_for(Side.PRO),
            con_model=state.model_for(Side.CON),
            pro_persona=state.persona_for(Side.PRO),
            con_persona=state.persona_for(Side.CON),
            total_rounds=state.total_rounds,
            current_round=state.current_round,
            word_limit=state.word_limit,
            strictness=state.strictness,
            status=status,
        )
        record.metadata = state.metadata
        return record


class TurnRecord(BaseModel):
    """Row in the ``turns`` table."""

    id: int | None = None
    debate_id: str
    round_number: int
    side: Side
    model_id: str
    analysis: str | None = None
    critique: str | None = None
    statement: str
    word_count: int
    verifications_passed: int = 0
    verifications_failed: int = 0
    was_rejected: bool = False
    regenerations: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_turn(cls, debate_id: str, turn: Turn) -> TurnRecord:
        return cls(debate_id=debate_id, **turn.to_dict())

    def to_turn(self) -> Turn:
        return Turn(
            round_number=self.round_number,
            side=self.side,
            model_id=self.model_id,
            statement=self.statement,
            word_count=self.word_count,
            analysis=self.analysis,
            critique=self.critique,
            verifications_passed=self.verifications_passed,
            verifications_failed=self.verifications_failed,
            was_rejected=self.was_rejected,
            regenerations=self.regenerations,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


class VerificationRecord(BaseModel):
    """Row in the ``verifications`` table."""

    id: int | None = None
    debate_id: str
    round_number: int
    side: Side
    assertion: str
    verdict: Verdict
    confidence: float
    evidence_refs_json: str = "[]"
    rationale: str = ""

    @property
    def evidence_refs(self) -> list[str]:
        return json.loads(self.evidence_refs_json)

    @classmethod
    def from_result(
        cls, debate_id: str, round_number: int, side: Side, result: VerificationResult
    ) -> VerificationRecord:
        return cls(
            debate_id=debate_id,
            round_number=round_number,
            side=side,
            assertion=result.assertion,
            verdict=result.verdict,
            confidence=result.confidence,
            evidence_refs_json=json.dumps(result.evidence_refs),
            rationale=result.rationale,
        )

    def to_entry(self) -> VerificationLogEntry:
        return VerificationLogEntry(
            round_number=self.round_number,
            side=self.side,
            result=VerificationResult(
                assertion=self.assertion,
                verdict=self.verdict,
                confidence=self.confidence,
                evidence_refs=self.evidence_refs,
                rationale=self.rationale,
            ),
        )


class EvaluationRecord(BaseModel):
    """Row in the ``evaluations`` table: one judge pass."""

    id: int | None = None
    debate_id: str
    pass_name: str  # pro_first | con_first | tiebreaker
    judge_model: str
    winner: str
    coherence: float
    rebuttal_strength: float
    factual_grounding: float
    justification: str
    parse_failed: bool = False
    defects_json: str = "[]"
    evaluated_at: datetime = Field(default_factory=_utcnow)

    @property
    def defects(self) -> list[dict[str, Any]]:
        return json.loads(self.defects_json)

    @classmethod
    def from_verdict(
        cls, debate_id: str, pass_name: str, verdict: JudgeVerdict
    ) -> EvaluationRecord:
        data = verdict.to_dict()
        return cls(
            debate_id=debate_id,
            pass_name=pass_name,
            judge_model=verdict.judge_model,
            winner=verdict.winner.value,
            coherence=verdict.scores.coherence,
            rebuttal_strength=verdict.scores.rebuttal_strength,
            factual_grounding=verdict.scores.factual_grounding,
            justification=verdict.justification,
            parse_failed=verdict.parse_failed,
            defects_json=json.dumps(data["defects"]),
            evaluated_at=verdict.evaluated_at,
        )


def restore_state(
    record: DebateRecord,
    turns: list[TurnRecord],
    verifications: list[VerificationRecord],
) -> DebateState:
    """Rebuild a debate state from persisted rows with empty scratch fields."""
    state = DebateState(
        debate_id=record.id,
        motion=record.motion,
        models={Side.PRO: record.pro_model, Side.CON: record.con_model},
        personas={Side.PRO: record.pro_persona, Side.CON: record.con_persona},
        total_rounds=record.total_rounds,
        word_limit=record.word_limit,
        strictness=record.strictness,
        current_round=record.current_round,
        turns=[t.to_turn() for t in turns],
        verification_log=[v.to_entry() for v in verifications],
        complete=record.status is DebateStatus.COMPLETED,
        metadata=record.metadata,
    )
    placed = {t.side for t in state.turns_in_round(state.current_round)}
    state.current_side = Side.CON if placed == {Side.PRO} else Side.PRO
    return state
