"""Persistence interface used by the orchestration layer.

The orchestrator only needs append-style writes plus a snapshot read for
crash recovery. :class:`MemoryStore` keeps everything in process and is
used in tests and dry runs; :class:`data.database.DebateDatabase` is the
SQLite implementation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from data.models import (
    DebateRecord,
    EvaluationRecord,
    TurnRecord,
    VerificationRecord,
    restore_state,
)
from data.state import (
    ConsensusVerdict,
    DebateState,
    DebateStatus,
    Side,
    Turn,
    VerificationResult,
)

logger = logging.getLogger(__name__)


class DebateNotFound(LookupError):
    def __init__(self, debate_id: str) -> None:
        super().__init__(f"Debate {debate_id!r} not found")
        self.debate_id = debate_id


def evaluation_records(debate_id: str, consensus: ConsensusVerdict) -> list[EvaluationRecord]:
    records = [
        EvaluationRecord.from_verdict(debate_id, "pro_first", consensus.pro_first),
        EvaluationRecord.from_verdict(debate_id, "con_first", consensus.con_first),
    ]
    if consensus.tiebreaker is not None:
        records.append(
            EvaluationRecord.from_verdict(debate_id, "tiebreaker", consensus.tiebreaker)
        )
    return records


class DebateStore(ABC):
    """Storage operations the debate loop depends on."""

    @abstractmethod
    async def create_debate(
        self, state: DebateState, status: DebateStatus = DebateStatus.PENDING
    ) -> None: ...

    @abstractmethod
    async def append_turn(self, debate_id: str, turn: Turn) -> None: ...

    @abstractmethod
    async def append_verifications(
        self,
        debate_id: str,
        round_number: int,
        side: Side,
        results: list[VerificationResult],
    ) -> None: ...

    @abstractmethod
    async def set_round_and_status(
        self, debate_id: str, round_number: int, status: DebateStatus
    ) -> None: ...

    @abstractmethod
    async def update_metadata(self, debate_id: str, metadata: dict[str, Any]) -> None: ...

    @abstractmethod
    async def save_verdict(self, debate_id: str, consensus: ConsensusVerdict) -> None: ...

    @abstractmethod
    async def get_snapshot(self, debate_id: str) -> DebateState:
        """Rebuild the debate from stored turns and the round/status fields."""


class MemoryStore(DebateStore):
    """In-process store holding the same records the database would."""

    def __init__(self) -> None:
        self.debates: dict[str, DebateRecord] = {}
        self.turns: dict[str, list[TurnRecord]] = {}
        self.verifications: dict[str, list[VerificationRecord]] = {}
        self.evaluations: dict[str, list[EvaluationRecord]] = {}

    def _debate(self, debate_id: str) -> DebateRecord:
        try:
            return self.debates[debate_id]
        except KeyError:
            raise DebateNotFound(debate_id) from None

    async def create_debate(
        self, state: DebateState, status: DebateStatus = DebateStatus.PENDING
    ) -> None:
        self.debates[state.debate_id] = DebateRecord.from_state(state, status)
        self.turns[state.debate_id] = []
        self.verifications[state.debate_id] = []
        self.evaluations[state.debate_id] = []

    async def append_turn(self, debate_id: str, turn: Turn) -> None:
        self._debate(debate_id)
        self.turns[debate_id].append(TurnRecord.from_turn(debate_id, turn))

    async def append_verifications(
        self,
        debate_id: str,
        round_number: int,
        side: Side,
        results: list[VerificationResult],
    ) -> None:
        self._debate(debate_id)
        self.verifications[debate_id].extend(
            VerificationRecord.from_result(debate_id, round_number, side, r) for r in results
        )

    async def set_round_and_status(
        self, debate_id: str, round_number: int, status: DebateStatus
    ) -> None:
        record = self._debate(debate_id)
        record.current_round = round_number
        record.status = status

    async def update_metadata(self, debate_id: str, metadata: dict[str, Any]) -> None:
        self._debate(debate_id).metadata = metadata

    async def save_verdict(self, debate_id: str, consensus: ConsensusVerdict) -> None:
        record = self._debate(debate_id)
        record.winner = consensus.final_winner.value
        self.evaluations[debate_id] = evaluation_records(debate_id, consensus)

    async def get_snapshot(self, debate_id: str) -> DebateState:
        return restore_state(
            self._debate(debate_id),
            list(self.turns[debate_id]),
            list(self.verifications[debate_id]),
        )
