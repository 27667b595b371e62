"""Moderator – announces rounds, resets per-turn state, flags malformed drafts.

The moderator is purely rule based and never calls a model. Its validation
findings are warnings only; they are recorded on the debate state and never
stop the debate.
"""

from __future__ import annotations

import logging

from data.config import DebatePolicy
from data.state import DebateState, Side
from evaluation.validators import DebateValidator

logger = logging.getLogger(__name__)


def round_label(current_round: int, total_rounds: int) -> str:
    if total_rounds == 1:
        return "Single Round Debate"
    if current_round == 1:
        return "Opening Statements"
    if current_round == total_rounds:
        return "Closing Arguments"
    return "Rebuttals"


class Moderator:
    """Opens rounds and reviews drafts that are about to be discarded."""

    def __init__(
        self,
        policy: DebatePolicy | None = None,
        validator: DebateValidator | None = None,
    ) -> None:
        self.policy = policy or DebatePolicy()
        self.validator = validator or DebateValidator(self.policy)

    def announce(self, state: DebateState) -> str:
        return (
            f"Round {state.current_round} of {state.total_rounds}: "
            f"{round_label(state.current_round, state.total_rounds)}. "
            f'Motion: "{state.motion}". '
            f"Word limit: {state.word_limit} words per turn. "
            f"Verification: {state.strictness.value}."
        )

    def open_round(self, state: DebateState) -> None:
        """Announce the round and reset the scratch state for it."""
        announcement = self.announce(state)
        logger.info("[Moderator] %s", announcement)

        if state.draft is not None:
            self.review_draft(state)

        state.clear_scratch()
        state.current_side = Side.PRO
        state.metadata["last_announcement"] = announcement

    def review_draft(self, state: DebateState) -> list[str]:
        """Validate the current draft and record any issues as warnings."""
        if state.draft is None:
            return []
        result = self.validator.validate_draft(state.draft, state.word_limit)
        if not result.valid:
            logger.warning(
                "[Moderator] Round %d %s draft: %s",
                state.current_round,
                state.current_side.value,
                "; ".join(result.issues),
            )
            state.record(
                "validation_warnings",
                {
                    "round": state.current_round,
                    "side": state.current_side.value,
                    "issues": result.issues,
                },
            )
        return result.issues
