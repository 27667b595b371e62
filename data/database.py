"""Async SQLite database layer using aiosqlite.

Handles schema creation, the append-style writes the debate loop performs,
snapshot reads for resuming, and helper queries used by the CLI and
visualisation modules.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import aiosqlite

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
from data.store import DebateNotFound, DebateStore, evaluation_records

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS debates (
    id            TEXT    PRIMARY KEY,
    motion        TEXT    NOT NULL,
    pro_model     TEXT    NOT NULL,
    con_model     TEXT    NOT NULL,
    pro_persona   TEXT,
    con_persona   TEXT,
    total_rounds  INTEGER NOT NULL,
    current_round INTEGER NOT NULL DEFAULT 0,
    word_limit    INTEGER NOT NULL,
    strictness    TEXT    NOT NULL,
    status        TEXT    NOT NULL DEFAULT 'pending',
    winner        TEXT,
    created_at    TEXT    NOT NULL,
    metadata      TEXT    NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS turns (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    debate_id            TEXT    NOT NULL REFERENCES debates(id),
    round_number         INTEGER NOT NULL,
    side                 TEXT    NOT NULL,
    model_id             TEXT    NOT NULL,
    analysis             TEXT,
    critique             TEXT,
    statement            TEXT    NOT NULL,
    word_count           INTEGER NOT NULL,
    verifications_passed INTEGER NOT NULL DEFAULT 0,
    verifications_failed INTEGER NOT NULL DEFAULT 0,
    was_rejected         INTEGER NOT NULL DEFAULT 0,
    regenerations        INTEGER NOT NULL DEFAULT 0,
    input_tokens         INTEGER NOT NULL DEFAULT 0,
    output_tokens        INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT    NOT NULL,
    UNIQUE (debate_id, round_number, side)
);

CREATE TABLE IF NOT EXISTS verifications (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    debate_id     TEXT    NOT NULL REFERENCES debates(id),
    round_number  INTEGER NOT NULL,
    side          TEXT    NOT NULL,
    assertion     TEXT    NOT NULL,
    verdict       TEXT    NOT NULL,
    confidence    REAL    NOT NULL,
    evidence_refs TEXT    NOT NULL DEFAULT '[]',
    rationale     TEXT    NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS evaluations (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    debate_id         TEXT    NOT NULL REFERENCES debates(id),
    pass_name         TEXT    NOT NULL,
    judge_model       TEXT    NOT NULL,
    winner            TEXT    NOT NULL,
    coherence         REAL    NOT NULL,
    rebuttal_strength REAL    NOT NULL,
    factual_grounding REAL    NOT NULL,
    justification     TEXT    NOT NULL,
    parse_failed      INTEGER NOT NULL DEFAULT 0,
    defects           TEXT    NOT NULL DEFAULT '[]',
    evaluated_at      TEXT    NOT NULL
);
"""


class DebateDatabase(DebateStore):
    """Async wrapper around an SQLite database for debate persistence."""

    def __init__(self, db_path: str | Path = "data/debates.db") -> None:
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open connection and ensure schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()
        logger.info("Database connected: %s", self.db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    # ------------------------------------------------------------------
    # Debates
    # ------------------------------------------------------------------

    async def create_debate(
        self, state: DebateState, status: DebateStatus = DebateStatus.PENDING
    ) -> None:
        record = DebateRecord.from_state(state, status)
        await self.conn.execute(
            "INSERT INTO debates (id, motion, pro_model, con_model, pro_persona, "
            " con_persona, total_rounds, current_round, word_limit, strictness, "
            " status, created_at, metadata) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.motion,
                record.pro_model,
                record.con_model,
                record.pro_persona,
                record.con_persona,
                record.total_rounds,
                record.current_round,
                record.word_limit,
                record.strictness.value,
                record.status.value,
                record.created_at.isoformat(),
                record.metadata_json,
            ),
        )
        await self.conn.commit()

    async def set_round_and_status(
        self, debate_id: str, round_number: int, status: DebateStatus
    ) -> None:
        cur = await self.conn.execute(
            "UPDATE debates SET current_round = ?, status = ? WHERE id = ?",
            (round_number, status.value, debate_id),
        )
        await self.conn.commit()
        if cur.rowcount == 0:
            raise DebateNotFound(debate_id)

    async def update_metadata(self, debate_id: str, metadata: dict[str, Any]) -> None:
        record = await self._require_debate(debate_id)
        record.metadata = metadata
        await self.conn.execute(
            "UPDATE debates SET metadata = ? WHERE id = ?",
            (record.metadata_json, debate_id),
        )
        await self.conn.commit()

    async def get_debate(self, debate_id: str) -> DebateRecord | None:
        cur = await self.conn.execute("SELECT * FROM debates WHERE id = ?", (debate_id,))
        row = await cur.fetchone()
        if row is None:
            return None
        return self._debate_from_row(row)

    async def list_debates(
        self, limit: int = 20, status: DebateStatus | None = None
    ) -> list[DebateRecord]:
        if status is None:
            cur = await self.conn.execute(
                "SELECT * FROM debates ORDER BY created_at DESC LIMIT ?", (limit,)
            )
        else:
            cur = await self.conn.execute(
                "SELECT * FROM debates WHERE status = ? ORDER BY created_at DESC LIMIT ?",
                (status.value, limit),
            )
        rows = await cur.fetchall()
        return [self._debate_from_row(r) for r in rows]

    async def _require_debate(self, debate_id: str) -> DebateRecord:
        record = await self.get_debate(debate_id)
        if record is None:
            raise DebateNotFound(debate_id)
        return record

    @staticmethod
    def _debate_from_row(row: aiosqlite.Row) -> DebateRecord:
        return DebateRecord(
            id=row["id"],
            motion=row["motion"],
            pro_model=row["pro_model"],
            con_model=row["con_model"],
            pro_persona=row["pro_persona"],
            con_persona=row["con_persona"],
            total_rounds=row["total_rounds"],
            current_round=row["current_round"],
            word_limit=row["word_limit"],
            strictness=row["strictness"],
            status=row["status"],
            winner=row["winner"],
            created_at=row["created_at"],
            metadata_json=row["metadata"],
        )

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def append_turn(self, debate_id: str, turn: Turn) -> None:
        record = TurnRecord.from_turn(debate_id, turn)
        await self.conn.execute(
            "INSERT INTO turns "
            "(debate_id, round_number, side, model_id, analysis, critique, statement, "
            " word_count, verifications_passed, verifications_failed, was_rejected, "
            " regenerations, input_tokens, output_tokens, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.debate_id,
                record.round_number,
                record.side.value,
                record.model_id,
                record.analysis,
                record.critique,
                record.statement,
                record.word_count,
                record.verifications_passed,
                record.verifications_failed,
                int(record.was_rejected),
                record.regenerations,
                record.input_tokens,
                record.output_tokens,
                record.created_at.isoformat(),
            ),
        )
        await self.conn.commit()

    async def get_turns(self, debate_id: str) -> list[TurnRecord]:
        cur = await self.conn.execute(
            "SELECT * FROM turns WHERE debate_id = ? ORDER BY round_number, id",
            (debate_id,),
        )
        rows = await cur.fetchall()
        return [
            TurnRecord(
                id=r["id"],
                debate_id=r["debate_id"],
                round_number=r["round_number"],
                side=r["side"],
                model_id=r["model_id"],
                analysis=r["analysis"],
                critique=r["critique"],
                statement=r["statement"],
                word_count=r["word_count"],
                verifications_passed=r["verifications_passed"],
                verifications_failed=r["verifications_failed"],
                was_rejected=bool(r["was_rejected"]),
                regenerations=r["regenerations"],
                input_tokens=r["input_tokens"],
                output_tokens=r["output_tokens"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Verifications
    # ------------------------------------------------------------------

    async def append_verifications(
        self,
        debate_id: str,
        round_number: int,
        side: Side,
        results: list[VerificationResult],
    ) -> None:
        records = [
            VerificationRecord.from_result(debate_id, round_number, side, r) for r in results
        ]
        await self.conn.executemany(
            "INSERT INTO verifications "
            "(debate_id, round_number, side, assertion, verdict, confidence, "
            " evidence_refs, rationale) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    v.debate_id,
                    v.round_number,
                    v.side.value,
                    v.assertion,
                    v.verdict.value,
                    v.confidence,
                    v.evidence_refs_json,
                    v.rationale,
                )
                for v in records
            ],
        )
        await self.conn.commit()

    async def get_verifications(self, debate_id: str) -> list[VerificationRecord]:
        cur = await self.conn.execute(
            "SELECT * FROM verifications WHERE debate_id = ? ORDER BY id", (debate_id,)
        )
        rows = await cur.fetchall()
        return [
            VerificationRecord(
                id=r["id"],
                debate_id=r["debate_id"],
                round_number=r["round_number"],
                side=r["side"],
                assertion=r["assertion"],
                verdict=r["verdict"],
                confidence=r["confidence"],
                evidence_refs_json=r["evidence_refs"],
                rationale=r["rationale"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    async def save_verdict(self, debate_id: str, consensus: ConsensusVerdict) -> None:
        records = evaluation_records(debate_id, consensus)
        # A re-judged debate keeps only its latest set of passes.
        await self.conn.execute("DELETE FROM evaluations WHERE debate_id = ?", (debate_id,))
        await self.conn.executemany(
            "INSERT INTO evaluations "
            "(debate_id, pass_name, judge_model, winner, coherence, rebuttal_strength, "
            " factual_grounding, justification, parse_failed, defects, evaluated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    e.debate_id,
                    e.pass_name,
                    e.judge_model,
                    e.winner,
                    e.coherence,
                    e.rebuttal_strength,
                    e.factual_grounding,
                    e.justification,
                    int(e.parse_failed),
                    e.defects_json,
                    e.evaluated_at.isoformat(),
                )
                for e in records
            ],
        )
        await self.conn.execute(
            "UPDATE debates SET winner = ? WHERE id = ?",
            (consensus.final_winner.value, debate_id),
        )
        await self.conn.commit()

    async def get_evaluations(self, debate_id: str) -> list[EvaluationRecord]:
        cur = await self.conn.execute(
            "SELECT * FROM evaluations WHERE debate_id = ? ORDER BY id", (debate_id,)
        )
        rows = await cur.fetchall()
        return [
            EvaluationRecord(
                id=r["id"],
                debate_id=r["debate_id"],
                pass_name=r["pass_name"],
                judge_model=r["judge_model"],
                winner=r["winner"],
                coherence=r["coherence"],
                rebuttal_strength=r["rebuttal_strength"],
                factual_grounding=r["factual_grounding"],
                justification=r["justification"],
                parse_failed=bool(r["parse_failed"]),
                defects_json=r["defects"],
                evaluated_at=r["evaluated_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def get_snapshot(self, debate_id: str) -> DebateState:
        record = await self._require_debate(debate_id)
        turns = await self.get_turns(debate_id)
        verifications = await self.get_verifications(debate_id)
        return restore_state(record, turns, verifications)

    # ------------------------------------------------------------------
    # Aggregate helpers
    # ------------------------------------------------------------------

    async def get_debate_stats(self, debate_id: str) -> dict[str, Any]:
        """Return aggregate statistics for a given debate."""
        turn_cur = await self.conn.execute(
            "SELECT COUNT(*) as cnt, SUM(input_tokens) as input_tokens, "
            "SUM(output_tokens) as output_tokens, AVG(word_count) as avg_words, "
            "SUM(regenerations) as regenerations FROM turns WHERE debate_id = ?",
            (debate_id,),
        )
        turn_row = await turn_cur.fetchone()

        verdict_cur = await self.conn.execute(
            "SELECT verdict, COUNT(*) as cnt FROM verifications "
            "WHERE debate_id = ? GROUP BY verdict",
            (debate_id,),
        )
        verdict_rows = await verdict_cur.fetchall()

        return {
            "total_turns": turn_row["cnt"] if turn_row else 0,
            "input_tokens": turn_row["input_tokens"] or 0 if turn_row else 0,
            "output_tokens": turn_row["output_tokens"] or 0 if turn_row else 0,
            "avg_word_count": round(turn_row["avg_words"] or 0, 1) if turn_row else 0,
            "regenerations": turn_row["regenerations"] or 0 if turn_row else 0,
            "verdicts": {r["verdict"]: r["cnt"] for r in verdict_rows},
        }
