"""FactChecker agent – extracts assertions from a draft and verifies them.

Two model calls per check: one to pull out checkable assertions, one per
assertion to weigh it against search evidence. The checker fails open: any
error inside it yields the results gathered so far and never rejects the
turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agents.base import AgentRole, BaseAgent
from agents.evidence import Evidence, EvidenceSource, NullEvidenceSource
from agents.llm_provider import LLMClient, ModelConfig
from agents.parsing import extract_json_array, extract_json_object
from data.config import DebatePolicy
from data.state import DebateState, StrictnessMode, Verdict, VerificationResult

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are an impartial **Fact Checker** for a structured debate. You only
assess verifiable factual content, never opinions, predictions or
rhetoric. Always answer in the exact JSON format requested.
"""

_EXTRACTION_PROMPT = """\
Extract the verifiable factual assertions from the following debate statement.

TEXT:
{text}

INSTRUCTIONS:
- Identify assertions that can be verified against external sources
- Focus on statistical data, historical facts, scientific claims and definitions
- Ignore opinions, predictions and subjective statements
- Classify each assertion as statistical, historical, scientific, definitional or general

OUTPUT FORMAT (JSON array):
[
  {{"text": "The exact assertion", "type": "statistical|historical|scientific|definitional|general"}}
]

If there are no verifiable assertions, return an empty array: []
"""

_VERDICT_PROMPT = """\
Analyse the following assertion against the provided evidence.

ASSERTION:
"{assertion}"

EVIDENCE FROM SEARCH:
{evidence}

Decide whether the assertion is SUPPORTED, CONTRADICTED or INDETERMINATE:
- supported: the evidence clearly supports it
- contradicted: the evidence clearly contradicts it
- indeterminate: the evidence is insufficient or ambiguous

OUTPUT FORMAT (JSON):
{{"verdict": "supported|contradicted|indeterminate", "confidence": 0.0-1.0, "rationale": "Brief explanation"}}
"""

# Older prompt vocabulary some models still answer with.
_VERDICT_ALIASES: dict[str, Verdict] = {
    "supported": Verdict.SUPPORTED,
    "true": Verdict.SUPPORTED,
    "contradicted": Verdict.CONTRADICTED,
    "false": Verdict.CONTRADICTED,
    "indeterminate": Verdict.INDETERMINATE,
    "unverifiable": Verdict.INDETERMINATE,
}


class VerificationError(RuntimeError):
    """Unusable output from the extraction or verdict step."""


class AssertionType(str, Enum):
    STATISTICAL = "statistical"
    HISTORICAL = "historical"
    SCIENTIFIC = "scientific"
    DEFINITIONAL = "definitional"
    GENERAL = "general"


@dataclass(frozen=True)
class Assertion:
    text: str
    type: AssertionType = AssertionType.GENERAL


@dataclass
class VerificationOutcome:
    results: list[VerificationResult] = field(default_factory=list)
    reject: bool = False
    error: str | None = None

    @property
    def contradicted(self) -> int:
        return sum(1 for r in self.results if r.verdict is Verdict.CONTRADICTED)


class FactChecker(BaseAgent):
    """Agent that verifies assertions and decides whether a draft is rejected."""

    def __init__(
        self,
        client: LLMClient,
        *,
        extraction_config: ModelConfig,
        verdict_config: ModelConfig | None = None,
        evidence: EvidenceSource | None = None,
        policy: DebatePolicy | None = None,
        agent_id: str | None = None,
        system_prompt: str = _SYSTEM_PROMPT,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            role=AgentRole.FACT_CHECKER,
            client=client,
            config=extraction_config,
            agent_id=agent_id,
            system_prompt=system_prompt,
        )
        self.verdict_config = verdict_config or extraction_config
        self.evidence = evidence or NullEvidenceSource()
        self.policy = policy or DebatePolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, state: DebateState) -> None:
        """Verify the current draft and set the reject flag on *state*."""
        if state.draft is None:
            logger.warning("[Fact Checker] No draft to check")
            state.verification_results = []
            state.reject = False
            return

        outcome = await self.verify(state.draft.statement, state.strictness)
        state.verification_results = outcome.results
        state.reject = outcome.reject
        if outcome.error:
            state.record(
                "verification_errors",
                {
                    "round": state.current_round,
                    "side": state.current_side.value,
                    "error": outcome.error,
                },
            )
        if outcome.reject:
            logger.info(
                "[Fact Checker] Rejecting %s draft in round %d: %d contradicted assertion(s)",
                state.current_side.value,
                state.current_round,
                outcome.contradicted,
            )

    async def verify(self, statement: str, strictness: StrictnessMode) -> VerificationOutcome:
        if strictness is StrictnessMode.DISABLED:
            return VerificationOutcome()

        results: list[VerificationResult] = []
        try:
            assertions = await self.extract_assertions(statement)
            logger.info("[Fact Checker] Extracted %d assertion(s)", len(assertions))
            for assertion in assertions:
                results.append(await self.check_assertion(assertion))
        except Exception as exc:  # noqa: BLE001
            logger.warning("[Fact Checker] Verification failed open: %s", exc)
            return VerificationOutcome(results=results, reject=False, error=str(exc))

        outcome = VerificationOutcome(results=results)
        outcome.reject = (
            strictness is StrictnessMode.STRICT
            and outcome.contradicted >= self.policy.rejection_threshold
        )
        return outcome

    async def extract_assertions(self, statement: str) -> list[Assertion]:
        if self.policy.max_assertions == 0:
            return []
        response = await self.complete(_EXTRACTION_PROMPT.format(text=statement))
        return parse_assertions(response.text)[: self.policy.max_assertions]

    async def check_assertion(self, assertion: Assertion) -> VerificationResult:
        evidence = (await self.evidence.search(assertion.text))[: self.policy.evidence_results]
        if not evidence:
            return VerificationResult(
                assertion=assertion.text,
                verdict=Verdict.INDETERMINATE,
                confidence=0.5,
                rationale="No relevant sources found to verify this assertion.",
            )

        response = await self.complete(
            _VERDICT_PROMPT.format(
                assertion=assertion.text, evidence=_format_evidence(evidence)
            ),
            config=self.verdict_config,
        )
        return parse_verdict(response.text, assertion, evidence)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _format_evidence(evidence: list[Evidence]) -> str:
    return "\n\n".join(
        f"[Source {i}] {item.title or item.source_ref}\n{item.snippet}"
        for i, item in enumerate(evidence, start=1)
    )


def parse_assertions(text: str) -> list[Assertion]:
    items = extract_json_array(text)
    if items is None:
        raise VerificationError("No JSON array found in assertion extraction response")

    assertions: list[Assertion] = []
    for item in items:
        if isinstance(item, str):
            body, kind = item, AssertionType.GENERAL.value
        elif isinstance(item, dict):
            body = item.get("text") or item.get("assertion") or item.get("claim") or ""
            kind = str(item.get("type", AssertionType.GENERAL.value)).lower()
        else:
            continue
        if not body.strip():
            continue
        try:
            atype = AssertionType(kind)
        except ValueError:
            atype = AssertionType.GENERAL
        assertions.append(Assertion(text=body.strip(), type=atype))
    return assertions


def parse_verdict(
    text: str, assertion: Assertion, evidence: list[Evidence]
) -> VerificationResult:
    data = extract_json_object(text)
    if data is None:
        raise VerificationError("No JSON object found in verdict response")

    verdict = _VERDICT_ALIASES.get(str(data.get("verdict", "")).strip().lower())
    if verdict is None:
        raise VerificationError(f"Unknown verdict {data.get('verdict')!r}")

    try:
        confidence = float(data.get("confidence", 0.5))
    except (TypeError, ValueError) as exc:
        raise VerificationError(f"Invalid confidence {data.get('confidence')!r}") from exc

    return VerificationResult(
        assertion=assertion.text,
        verdict=verdict,
        confidence=min(1.0, max(0.0, confidence)),
        evidence_refs=[item.source_ref for item in evidence],
        rationale=str(data.get("rationale") or data.get("reasoning") or ""),
    )
