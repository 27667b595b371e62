"""Judge agent – scores a finished debate and mitigates position bias.

The transcript is evaluated twice, once with each side presented first in
every round. Agreement settles the winner; disagreement escalates to an
optional tiebreaker model, or defaults to a tie.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from agents.base import AgentRole, BaseAgent
from agents.llm_provider import LLMClient, ModelConfig
from agents.parsing import extract_json_object
from data.config import DebatePolicy
from data.state import (
    ConsensusVerdict,
    EvaluationOrder,
    JudgeVerdict,
    ReasoningDefect,
    RubricScores,
    Turn,
    Winner,
)

logger = logging.getLogger(__name__)

_RUBRIC = """\
EVALUATION RUBRIC:
1. Coherence (1-10): internal consistency, absence of contradictions,
   sound reasoning structure.
2. Rebuttal Strength (1-10): direct engagement with the opponent's points,
   effective counter-arguments, quality of clash.
3. Factual Grounding (1-10): accuracy of factual claims and use of
   evidence. Refer to the fact-check summary when provided.

CRITICAL INSTRUCTIONS:
- Do NOT use your own knowledge to fill gaps for the debaters
- Judge only what was actually argued
- Penalise logical fallacies (ad hominem, strawman, false dichotomy, ...)
- A tie is acceptable if both debaters performed equally well
"""

_TIEBREAKER_NOTE = (
    "\nNOTE: You are serving as a tiebreaker judge. Previous evaluations "
    "disagreed on the winner. Provide your independent assessment.\n"
)

_RESPONSE_FORMAT = """\
Evaluate this debate and respond with JSON in exactly this format:

{
  "winner": "pro" | "con" | "tie",
  "scores": {
    "coherence": <1-10>,
    "rebuttal_strength": <1-10>,
    "factual_grounding": <1-10>
  },
  "justification": "<at least 100 characters referencing specific arguments>",
  "defects": [
    {"type": "<fallacy type>", "severity": "minor" | "moderate" | "severe",
     "location": "<which debater and round>", "description": "<what happened>"}
  ]
}
"""


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

class _ScoresPayload(BaseModel):
    coherence: float = Field(ge=1, le=10)
    rebuttal_strength: float = Field(ge=1, le=10)
    factual_grounding: float = Field(ge=1, le=10)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> _ScoresPayload:
        return cls(
            coherence=raw.get("coherence", raw.get("logical_coherence")),
            rebuttal_strength=raw.get("rebuttal_strength"),
            factual_grounding=raw.get("factual_grounding", raw.get("factuality")),
        )


class _DefectPayload(BaseModel):
    type: str = "unspecified"
    severity: str = "minor"
    location: str = ""
    description: str = ""


class _VerdictPayload(BaseModel):
    winner: Literal["pro", "con", "tie"]
    scores: _ScoresPayload
    justification: str
    defects: list[_DefectPayload] = Field(default_factory=list)

    @field_validator("winner", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("defects", mode="before")
    @classmethod
    def _loose_defects(cls, value: Any) -> list[dict[str, Any]]:
        """Defects are optional detail; keep what is usable and skip the rest."""
        if not isinstance(value, list):
            return []
        defects = []
        for item in value:
            if isinstance(item, str):
                defects.append({"description": item})
            elif isinstance(item, dict):
                defects.append(item)
        return defects


class JudgeParseError(ValueError):
    """A judge response could not be turned into a verdict."""


def parse_judge_response(text: str, min_justification_chars: int = 100) -> _VerdictPayload:
    data = extract_json_object(text)
    if data is None:
        raise JudgeParseError("No JSON object found in judge response")

    defects = data.get("defects", data.get("flagged_fallacies")) or []
    scores = data.get("scores")
    if not isinstance(scores, dict):
        raise JudgeParseError("Missing scores in judge response")
    try:
        payload = _VerdictPayload(
            winner=data.get("winner"),
            scores=_ScoresPayload.from_raw(scores),
            justification=data.get("justification") or "",
            defects=defects,
        )
    except ValidationError as exc:
        raise JudgeParseError(str(exc)) from exc

    if len(payload.justification.strip()) < min_justification_chars:
        raise JudgeParseError(
            f"Justification shorter than {min_justification_chars} characters"
        )
    return payload


def default_verdict(order: EvaluationOrder, judge_model: str, reason: str) -> JudgeVerdict:
    """Canonical tie returned when a judge response cannot be parsed."""
    return JudgeVerdict(
        winner=Winner.TIE,
        scores=RubricScores(),
        justification=(
            "The judge response could not be parsed, so this evaluation "
            f"defaults to a tie. Reason: {reason}"
        ),
        order=order,
        judge_model=judge_model,
        parse_failed=True,
    )


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

def format_transcript(motion: str, turns: Sequence[Turn], order: EvaluationOrder) -> str:
    """Render turns grouped by round with ``order.first`` leading each round.

    Content is identical for both orders; only the in-round ordering moves.
    """
    lines = [f"DEBATE MOTION: {motion}", ""]
    first = order.first
    rounds = sorted({t.round_number for t in turns})
    for round_number in rounds:
        lines.append(f"=== ROUND {round_number} ===")
        lines.append("")
        in_round = sorted(
            (t for t in turns if t.round_number == round_number),
            key=lambda t: 0 if t.side is first else 1,
        )
        for turn in in_round:
            lines.append(f"[{turn.side.value.upper()} DEBATER]")
            if turn.analysis:
                lines.append(f"Analysis: {turn.analysis}")
                lines.append("")
            if turn.critique:
                lines.append(f"Critique: {turn.critique}")
                lines.append("")
            lines.append(f"Statement: {turn.statement}")
            lines.append("")
            lines.append("---")
            lines.append("")

    summary = _fact_check_summary(turns, order)
    if summary:
        lines.extend(["=== FACT-CHECK SUMMARY ===", *summary])
    return "\n".join(lines)


def _fact_check_summary(turns: Sequence[Turn], order: EvaluationOrder) -> list[str]:
    if not any(t.verifications_passed or t.verifications_failed for t in turns):
        return []
    out = []
    for side in (order.first, order.first.opponent):
        passed = sum(t.verifications_passed for t in turns if t.side is side)
        failed = sum(t.verifications_failed for t in turns if t.side is side)
        out.append(f"{side.value.capitalize()} Debater: {passed} supported, {failed} contradicted")
    return out


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------

class Judge(BaseAgent):
    """Agent that evaluates finished debates.

    Parameters
    ----------
    client:
        Model client shared with the rest of the debate.
    config:
        Model used for the two order-swapped passes.
    tiebreaker:
        Model consulted when the two passes disagree. ``None`` turns a
        disagreement into a tie.
    """

    def __init__(
        self,
        client: LLMClient,
        config: ModelConfig,
        *,
        tiebreaker: ModelConfig | None = None,
        policy: DebatePolicy | None = None,
        agent_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            role=AgentRole.JUDGE,
            client=client,
            config=config,
            agent_id=agent_id,
        )
        self.tiebreaker = tiebreaker
        self.policy = policy or DebatePolicy()

    async def evaluate(
        self,
        motion: str,
        turns: Sequence[Turn],
        order: EvaluationOrder = EvaluationOrder.PRO_FIRST,
        *,
        config: ModelConfig | None = None,
        tiebreaker: bool = False,
    ) -> JudgeVerdict:
        """Run one judge pass. Parse failures degrade to :func:`default_verdict`."""
        cfg = config or self.config
        response = await self.complete(
            f"{format_transcript(motion, turns, order)}\n\n{_RESPONSE_FORMAT}",
            config=cfg,
            system_prompt=self._system_prompt(tiebreaker),
        )
        try:
            payload = parse_judge_response(
                response.text, self.policy.min_justification_chars
            )
        except JudgeParseError as exc:
            logger.warning("[Judge] %s pass by %s unparsable: %s", order.value, cfg.model_id, exc)
            return default_verdict(order, cfg.model_id, str(exc))

        return JudgeVerdict(
            winner=Winner(payload.winner),
            scores=RubricScores(
                coherence=payload.scores.coherence,
                rebuttal_strength=payload.scores.rebuttal_strength,
                factual_grounding=payload.scores.factual_grounding,
            ),
            justification=payload.justification,
            defects=[ReasoningDefect(**d.model_dump()) for d in payload.defects],
            order=order,
            judge_model=cfg.model_id,
        )

    async def evaluate_with_order_swap(
        self, motion: str, turns: Sequence[Turn]
    ) -> ConsensusVerdict:
        pro_first = await self.evaluate(motion, turns, EvaluationOrder.PRO_FIRST)
        con_first = await self.evaluate(motion, turns, EvaluationOrder.CON_FIRST)

        if pro_first.winner is con_first.winner:
            logger.info("[Judge] Consensus: %s", pro_first.winner.value)
            return ConsensusVerdict(
                pro_first=pro_first,
                con_first=con_first,
                consensus=True,
                final_winner=pro_first.winner,
            )

        logger.info(
            "[Judge] Passes disagree (pro_first=%s, con_first=%s)",
            pro_first.winner.value,
            con_first.winner.value,
        )
        if self.tiebreaker is None:
            return ConsensusVerdict(
                pro_first=pro_first,
                con_first=con_first,
                consensus=False,
                final_winner=Winner.TIE,
            )

        decider = await self.evaluate(
            motion,
            turns,
            EvaluationOrder.PRO_FIRST,
            config=self.tiebreaker,
            tiebreaker=True,
        )
        logger.info("[Judge] Tiebreaker %s picks %s", self.tiebreaker.model_id, decider.winner.value)
        return ConsensusVerdict(
            pro_first=pro_first,
            con_first=con_first,
            consensus=False,
            final_winner=decider.winner,
            tiebreaker=decider,
        )

    @staticmethod
    def _system_prompt(tiebreaker: bool) -> str:
        role = "a tiebreaker judge" if tiebreaker else "an impartial debate adjudicator"
        prompt = (
            f"You are {role} with expertise in formal argumentation and "
            "critical thinking. Evaluate the debate objectively and decide the "
            "winner on the quality of the arguments presented.\n\n" + _RUBRIC
        )
        if tiebreaker:
            prompt += _TIEBREAKER_NOTE
        return prompt
