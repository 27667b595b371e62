"""Explicit finite-state machine driving one debate.

:func:`transition` is pure: it reads the debate state and returns the next
phase plus the bookkeeping action the caller must perform. It never calls
a model and never mutates its inputs, so every edge can be tested alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from data.config import DebatePolicy
from data.state import DebateState, Side, StrictnessMode


class Phase(str, Enum):
    ANNOUNCING = "announcing"
    GENERATING_TURN = "generating_turn"
    VERIFYING = "verifying"
    ROUTING_AFTER_VERIFY = "routing_after_verify"
    TRANSITIONING = "transitioning"
    COMPLETE = "complete"


class Action(str, Enum):
    """Side effect requested alongside a phase change."""

    NONE = "none"
    RETRY = "retry"          # discard the draft, bump the retry counter
    NEXT_SIDE = "next_side"  # commit the draft, hand over to the opponent
    END_ROUND = "end_round"  # commit the draft, then close the round


@dataclass(frozen=True)
class Step:
    phase: Phase
    action: Action = Action.NONE
    side: Side | None = None


def should_retry(state: DebateState, policy: DebatePolicy) -> bool:
    return (
        state.strictness is StrictnessMode.STRICT
        and state.reject
        and state.retry_count < policy.max_retries
    )


def transition(phase: Phase, state: DebateState, policy: DebatePolicy) -> Step:
    """Return the step that follows *phase* for the given state.

    Routing after verification is evaluated in a fixed precedence: retry the
    same side, then hand over from PRO to CON, then end the round.
    """
    if phase is Phase.ANNOUNCING:
        return Step(Phase.GENERATING_TURN, side=Side.PRO)

    if phase is Phase.GENERATING_TURN:
        return Step(Phase.VERIFYING)

    if phase is Phase.VERIFYING:
        return Step(Phase.ROUTING_AFTER_VERIFY)

    if phase is Phase.ROUTING_AFTER_VERIFY:
        if should_retry(state, policy):
            return Step(Phase.GENERATING_TURN, Action.RETRY, state.current_side)
        if state.current_side is Side.PRO:
            return Step(Phase.GENERATING_TURN, Action.NEXT_SIDE, Side.CON)
        return Step(Phase.TRANSITIONING, Action.END_ROUND)

    if phase is Phase.TRANSITIONING:
        if state.complete:
            return Step(Phase.COMPLETE)
        return resume_step(state)

    if phase is Phase.COMPLETE:
        return Step(Phase.COMPLETE)

    raise ValueError(f"Unknown phase: {phase!r}")


def resume_step(state: DebateState) -> Step:
    """Work out where to pick up from the accepted turns of the current round."""
    if state.complete:
        return Step(Phase.COMPLETE)
    placed = {t.side for t in state.turns_in_round(state.current_round)}
    if not placed:
        return Step(Phase.ANNOUNCING)
    if placed == {Side.PRO}:
        return Step(Phase.GENERATING_TURN, side=Side.CON)
    return Step(Phase.TRANSITIONING)
