"""RoundCoordinator – turns accepted drafts into Turns and closes rounds."""

from __future__ import annotations

import logging

from data.state import (
    DebateState,
    DebateStatus,
    Side,
    Turn,
    Verdict,
    VerificationLogEntry,
)
from data.store import DebateStore

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """Owns the accumulators and the round counter.

    Every accepted turn is written through to *store* before the next side
    is generated, so a crash loses at most the draft in flight.
    """

    def __init__(self, store: DebateStore) -> None:
        self.store = store

    async def commit_draft(self, state: DebateState) -> Turn | None:
        """Accept the current draft as a Turn and persist it.

        A draft that is still rejected here has exhausted its retries; it is
        accepted anyway and flagged as rejected.
        """
        draft = state.draft
        if draft is None:
            return None

        side = state.current_side
        if state.reject:
            logger.warning(
                "Round %d %s: retries exhausted, accepting rejected draft",
                state.current_round,
                side.value,
            )
            state.record(
                "forced_acceptances",
                {"round": state.current_round, "side": side.value, "retries": state.retry_count},
            )

        results = list(state.verification_results)
        turn = Turn(
            round_number=state.current_round,
            side=side,
            model_id=state.model_for(side),
            statement=draft.statement,
            word_count=draft.word_count,
            analysis=draft.analysis or None,
            critique=draft.critique or None,
            verifications_passed=sum(1 for r in results if r.verdict is Verdict.SUPPORTED),
            verifications_failed=sum(1 for r in results if r.verdict is Verdict.CONTRADICTED),
            was_rejected=state.reject or state.retry_count > 0,
            regenerations=state.retry_count,
            input_tokens=draft.input_tokens,
            output_tokens=draft.output_tokens,
        )
        state.turns.append(turn)
        state.verification_log.extend(
            VerificationLogEntry(round_number=turn.round_number, side=side, result=r)
            for r in results
        )

        await self.store.append_turn(state.debate_id, turn)
        if results:
            await self.store.append_verifications(
                state.debate_id, turn.round_number, side, results
            )

        state.draft = None
        state.verification_results = []
        state.reject = False
        logger.info(
            "[Round %d] Accepted %s turn (%d words, %d regeneration(s))",
            turn.round_number,
            side.value,
            turn.word_count,
            turn.regenerations,
        )
        return turn

    async def complete_round(self, state: DebateState) -> bool:
        """Close the current round if both sides have spoken.

        Returns ``False`` without touching the state when the round is
        still missing a turn.
        """
        placed = {t.side for t in state.turns_in_round(state.current_round)}
        if placed != {Side.PRO, Side.CON}:
            logger.warning(
                "Round %d incomplete (sides present: %s)",
                state.current_round,
                sorted(s.value for s in placed),
            )
            return False

        state.clear_scratch()
        if state.current_round >= state.total_rounds:
            state.complete = True
            await self.store.set_round_and_status(
                state.debate_id, state.current_round, DebateStatus.COMPLETED
            )
            logger.info("Debate %s complete after %d round(s)", state.debate_id, state.current_round)
        else:
            state.current_round += 1
            state.current_side = Side.PRO
            await self.store.set_round_and_status(
                state.debate_id, state.current_round, DebateStatus.IN_PROGRESS
            )
        return True
