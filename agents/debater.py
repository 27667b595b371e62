"""Debater agent – produces one analysis / critique / statement turn."""

from __future__ import annotations

import logging
from typing import Any

from agents.base import AgentRole, BaseAgent
from agents.llm_provider import GenerationError, LLMClient, ModelConfig
from agents.moderator import round_label
from agents.parsing import count_words, extract_tagged, truncate_words
from data.config import DebatePolicy, Persona
from data.state import DebateState, Side, TurnDraft

logger = logging.getLogger(__name__)


class GenerationFailed(RuntimeError):
    """The model layer gave up while producing a debate turn."""

    def __init__(self, side: Side, round_number: int, model_id: str) -> None:
        super().__init__(
            f"Turn generation failed for {side.value} in round {round_number} "
            f"(model {model_id!r})"
        )
        self.side = side
        self.round_number = round_number
        self.model_id = model_id


_FORMAT_BLOCK = """\
FORMAT YOUR RESPONSE EXACTLY AS:
<analysis>
[Your analysis here]
</analysis>

<critique>
[Your critique here]
</critique>

<statement>
[Your statement here - {limit} words maximum]
</statement>
"""


class Debater(BaseAgent):
    """Generates turns for either side using that side's configured model.

    A single instance serves both sides; the model is looked up from the
    debate state on every call.
    """

    def __init__(
        self,
        client: LLMClient,
        *,
        personas: dict[str, Persona] | None = None,
        policy: DebatePolicy | None = None,
        agent_id: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            role=AgentRole.DEBATER,
            client=client,
            agent_id=agent_id,
        )
        self.personas = personas or {}
        self.policy = policy or DebatePolicy()
        self.temperature = temperature
        self.max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, state: DebateState) -> None:
        """Generate the current side's draft and store it on *state*."""
        state.draft = await self.generate(state, state.current_side)

    async def generate(self, state: DebateState, side: Side) -> TurnDraft:
        model_id = state.model_for(side)
        logger.info(
            "[Round %d] Generating %s turn with %s (attempt %d)",
            state.current_round,
            side.value,
            model_id,
            state.retry_count + 1,
        )
        persona = self._persona(state, side)
        config = ModelConfig(
            model_id=model_id,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        try:
            response = await self.complete(
                self._build_prompt(state, side, persona),
                config=config,
                system_prompt=self._build_system_prompt(state, side, persona),
            )
        except GenerationError as exc:
            raise GenerationFailed(side, state.current_round, model_id) from exc

        draft = parse_turn(response.text, state.word_limit)
        draft.input_tokens = response.input_tokens
        draft.output_tokens = response.output_tokens
        draft.latency_ms = response.latency_ms
        return draft

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def _persona(self, state: DebateState, side: Side) -> Persona | None:
        persona_id = state.persona_for(side)
        if persona_id is None:
            return None
        persona = self.personas.get(persona_id)
        if persona is None:
            logger.warning("Unknown persona %r for %s; ignoring", persona_id, side.value)
        return persona

    @staticmethod
    def _build_system_prompt(
        state: DebateState, side: Side, persona: Persona | None
    ) -> str:
        prompt = (
            f"You are a skilled debater arguing {side.position} the motion: "
            f'"{state.motion}"'
        )
        if persona and persona.system_prompt:
            prompt = f"{persona.system_prompt}\n\n{prompt}"
        return prompt

    def _build_prompt(
        self, state: DebateState, side: Side, persona: Persona | None
    ) -> str:
        label = round_label(state.current_round, state.total_rounds)
        lines = [
            "DEBATE CONTEXT:",
            f'- Motion: "{state.motion}"',
            f"- Your Position: {side.position}",
            f"- Round: {state.current_round} of {state.total_rounds} ({label})",
            f"- Word Limit: {state.word_limit} words",
            "",
        ]

        if state.turns:
            lines.append("DEBATE HISTORY:")
            for turn in sorted(state.turns, key=lambda t: t.round_number):
                lines.append(f"\n[Round {turn.round_number} - {turn.side.value.upper()}]")
                lines.append(turn.statement)
            lines.append("")

        opponent_turn = state.last_turn_by(side.opponent)
        if opponent_turn is not None:
            lines.append("OPPONENT'S LAST ARGUMENT:")
            lines.append(opponent_turn.statement)
            lines.append("")

        if state.current_round == 1:
            focus = "Present your opening argument with a clear thesis and supporting evidence"
        else:
            focus = "Address your opponent's strongest points directly"
        if state.current_round == state.total_rounds:
            closing = "Summarise your key points and make a compelling closing statement"
        else:
            closing = "Build your case systematically"

        lines.extend([
            "TASK:",
            "1. ANALYSIS – assess the state of the debate and the opponent's thesis "
            "and evidence. Output it in <analysis> tags.",
            "2. CRITIQUE – identify fallacies, unsupported claims and contradictions "
            "in the opponent's case, or anticipate counterarguments. Output it in "
            "<critique> tags.",
            f"3. STATEMENT – your {label.lower()}. Output it in <statement> tags.",
            f"- {focus}",
            f"- {closing}",
            "- Cite specific evidence when possible",
            "- Maintain a professional, respectful tone",
        ])
        if persona is not None:
            lines.append(f"- Stay in character as {persona.name}: {persona.description}")
        lines.extend([
            "",
            "CONSTRAINTS:",
            f"- Your statement MUST be between {self.policy.min_words} and "
            f"{state.word_limit} words",
            "",
            _FORMAT_BLOCK.format(limit=state.word_limit),
        ])
        return "\n".join(lines)


def parse_turn(text: str, word_limit: int) -> TurnDraft:
    """Split a raw debater response into its three segments.

    A response without a statement segment is used whole as the statement.
    """
    analysis = extract_tagged(text, "analysis", "reflection") or ""
    critique = extract_tagged(text, "critique") or ""
    statement = extract_tagged(text, "statement", "speech")
    if statement is None:
        logger.warning("No <statement> section found, using entire response")
        statement = text.strip()

    statement = truncate_words(statement, word_limit)
    return TurnDraft(
        statement=statement,
        word_count=count_words(statement),
        analysis=analysis,
        critique=critique,
    )
