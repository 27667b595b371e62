"""DebateManager – runs a debate through the state machine end to end.

Drives :func:`orchestration.state_machine.transition` one step at a time,
handing the single :class:`DebateState` to whichever component owns the
current phase, persisting every accepted turn, and judging the finished
transcript.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from agents.debater import Debater
from agents.fact_checker import FactChecker
from agents.judge import Judge
from agents.llm_provider import GenerationError, LLMClient
from agents.moderator import Moderator
from data.config import ConfigurationError, DebateConfig, DebatePolicy, Persona
from data.state import (
    ConsensusVerdict,
    DebateState,
    DebateStatus,
    Turn,
    VerificationLogEntry,
)
from data.store import DebateStore, MemoryStore
from evaluation.metrics import compute_all_metrics
from evaluation.validators import DebateValidator
from orchestration.round_coordinator import RoundCoordinator
from orchestration.state_machine import Action, Phase, Step, resume_step, transition

logger = logging.getLogger(__name__)


@dataclass
class DebateResult:
    """Outcome of a debate run.

    ``status`` is ``completed`` even when judging degraded; a debate that
    never finished raises instead of returning a result.
    """

    debate_id: str
    motion: str
    status: DebateStatus
    turns: list[Turn]
    verification_log: list[VerificationLogEntry]
    verdict: ConsensusVerdict | None = None
    judging_degraded: bool = False
    metrics: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def winner(self) -> str | None:
        return self.verdict.final_winner.value if self.verdict else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "debate_id": self.debate_id,
            "motion": self.motion,
            "status": self.status.value,
            "winner": self.winner,
            "judging_degraded": self.judging_degraded,
            "turns": [t.to_dict() for t in self.turns],
            "verification_log": [
                {"round": e.round_number, "side": e.side.value, **e.result.to_dict()}
                for e in self.verification_log
            ],
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "metrics": self.metrics,
            "warnings": self.warnings,
        }


def collect_warnings(state: DebateState) -> list[str]:
    """Flatten diagnostic metadata into readable lines."""
    lines = []
    for w in state.metadata.get("validation_warnings", []):
        lines.append(f"Round {w['round']} {w['side']}: " + "; ".join(w["issues"]))
    for e in state.metadata.get("verification_errors", []):
        lines.append(f"Round {e['round']} {e['side']}: verification failed open ({e['error']})")
    for f in state.metadata.get("forced_acceptances", []):
        lines.append(
            f"Round {f['round']} {f['side']}: accepted after {f['retries']} rejected regeneration(s)"
        )
    for j in state.metadata.get("judge_errors", []):
        lines.append(f"Judging failed: {j}")
    return lines


class DebateManager:
    """High-level controller that runs a debate to completion.

    Parameters
    ----------
    client : LLMClient
        Model client; its registered model ids are the ones a debate may use.
    debater : Debater
        Generates turns for both sides.
    fact_checker : FactChecker
        Verification gate run after every draft.
    store : DebateStore | None
        Persistence backend; defaults to an in-process :class:`MemoryStore`.
    judge : Judge | None
        Evaluates the finished transcript. ``None`` skips judging.
    on_turn : Callable[[Turn], None] | None
        Called with every accepted turn, after it is persisted.
    """

    def __init__(
        self,
        client: LLMClient,
        *,
        debater: Debater,
        fact_checker: FactChecker,
        moderator: Moderator | None = None,
        store: DebateStore | None = None,
        judge: Judge | None = None,
        policy: DebatePolicy | None = None,
        personas: dict[str, Persona] | None = None,
        on_turn: Callable[[Turn], None] | None = None,
    ) -> None:
        self.client = client
        self.policy = policy or DebatePolicy()
        self.debater = debater
        self.fact_checker = fact_checker
        self.validator = DebateValidator(self.policy)
        self.moderator = moderator or Moderator(self.policy, self.validator)
        self.store = store or MemoryStore()
        self.coordinator = RoundCoordinator(self.store)
        self.judge = judge
        self.personas = personas if personas is not None else debater.personas
        self.on_turn = on_turn

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, config: DebateConfig | dict[str, Any]) -> DebateConfig:
        """Return a checked config or raise :class:`ConfigurationError`."""
        if not isinstance(config, DebateConfig):
            config = DebateConfig.from_dict(config)
        result = self.validator.validate_debate_config(
            config, self.client.model_ids, self.personas.keys()
        )
        if not result.valid:
            raise ConfigurationError("; ".join(result.issues))
        return config

    async def run_debate(self, config: DebateConfig | dict[str, Any]) -> DebateResult:
        """Start a new debate and run it to completion."""
        config = self.validate(config)
        state = DebateState(
            debate_id=uuid4().hex,
            motion=config.motion,
            models=config.models,
            personas=config.personas,
            total_rounds=config.total_rounds,
            word_limit=config.word_limit,
            strictness=config.strictness,
        )
        await self.store.create_debate(state, DebateStatus.PENDING)

        state.current_round = 1
        await self.store.set_round_and_status(
            state.debate_id, state.current_round, DebateStatus.IN_PROGRESS
        )
        logger.info(
            "Starting debate %s: '%s' [%s vs %s, %d rounds, %s verification]",
            state.debate_id,
            state.motion,
            config.pro_model,
            config.con_model,
            state.total_rounds,
            state.strictness.value,
        )
        return await self._drive(state, Step(Phase.ANNOUNCING))

    async def resume_debate(self, debate_id: str) -> DebateResult:
        """Continue a persisted debate from its last round boundary."""
        state = await self.store.get_snapshot(debate_id)
        missing = [m for m in state.models.values() if not self.client.has_model(m)]
        if missing:
            raise ConfigurationError(f"Models not available to resume: {missing}")

        if state.current_round == 0:
            state.current_round = 1
        step = resume_step(state)
        if not state.complete:
            await self.store.set_round_and_status(
                state.debate_id, state.current_round, DebateStatus.IN_PROGRESS
            )
        logger.info(
            "Resuming debate %s at round %d (%s, %d turn(s) on record)",
            debate_id,
            state.current_round,
            step.phase.value,
            len(state.turns),
        )
        return await self._drive(state, step)

    # ------------------------------------------------------------------
    # State machine loop
    # ------------------------------------------------------------------

    async def _drive(self, state: DebateState, start: Step) -> DebateResult:
        phase = start.phase
        if start.side is not None:
            state.current_side = start.side

        try:
            while phase is not Phase.COMPLETE:
                await self._enter(phase, state)
                step = transition(phase, state, self.policy)
                await self._apply(step, state)
                phase = step.phase
        except Exception:
            logger.exception(
                "Debate %s failed in round %d (%s)",
                state.debate_id,
                state.current_round,
                state.current_side.value,
            )
            await self.store.update_metadata(state.debate_id, state.metadata)
            await self.store.set_round_and_status(
                state.debate_id, state.current_round, DebateStatus.FAILED
            )
            raise

        verdict, degraded = await self._judge(state)
        await self.store.update_metadata(state.debate_id, state.metadata)

        metrics = compute_all_metrics(state, verdict, degraded)
        logger.info(
            "Debate %s completed: %d turns, %d tokens, winner=%s",
            state.debate_id,
            len(state.turns),
            metrics.total_tokens,
            metrics.winner,
        )
        return DebateResult(
            debate_id=state.debate_id,
            motion=state.motion,
            status=DebateStatus.COMPLETED,
            turns=list(state.turns),
            verification_log=list(state.verification_log),
            verdict=verdict,
            judging_degraded=degraded,
            metrics=metrics.to_dict(),
            warnings=collect_warnings(state),
        )

    async def _enter(self, phase: Phase, state: DebateState) -> None:
        """Run the component that owns *phase*."""
        if phase is Phase.ANNOUNCING:
            self.moderator.open_round(state)
        elif phase is Phase.GENERATING_TURN:
            await self.debater.run(state)
        elif phase is Phase.VERIFYING:
            await self.fact_checker.run(state)
        elif phase is Phase.TRANSITIONING:
            await self.coordinator.complete_round(state)

    async def _apply(self, step: Step, state: DebateState) -> None:
        if step.action is Action.RETRY:
            self.moderator.review_draft(state)
            state.retry_count += 1
            state.draft = None
            state.verification_results = []
            state.reject = False
            logger.info(
                "[Round %d] %s draft rejected, regenerating (%d/%d)",
                state.current_round,
                state.current_side.value,
                state.retry_count,
                self.policy.max_retries,
            )
        elif step.action in (Action.NEXT_SIDE, Action.END_ROUND):
            self.moderator.review_draft(state)
            turn = await self.coordinator.commit_draft(state)
            if turn is not None and self.on_turn is not None:
                self.on_turn(turn)
            if step.action is Action.NEXT_SIDE:
                state.clear_scratch()

        if step.side is not None:
            state.current_side = step.side

    # ------------------------------------------------------------------
    # Judging
    # ------------------------------------------------------------------

    async def _judge(self, state: DebateState) -> tuple[ConsensusVerdict | None, bool]:
        if self.judge is None:
            return None, False
        try:
            verdict = await self.judge.evaluate_with_order_swap(state.motion, state.turns)
        except GenerationError as exc:
            logger.error("Judging debate %s failed: %s", state.debate_id, exc)
            state.record("judge_errors", str(exc))
            return None, True

        await self.store.save_verdict(state.debate_id, verdict)
        return verdict, verdict.degraded
