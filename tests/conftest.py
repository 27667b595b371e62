"""Shared fixtures for the test suite.

Provides a MockProvider that simulates LLM responses without network calls,
a fake evidence source, and pre-wired debate components plus database
instances for integration tests.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio

from agents.debater import Debater
from agents.evidence import Evidence, EvidenceSource
from agents.fact_checker import FactChecker
from agents.judge import Judge
from agents.llm_provider import LLMClient, LLMProvider, ModelConfig
from data.config import DebatePolicy, Persona
from data.database import DebateDatabase
from data.state import DebateState, Side, StrictnessMode, Turn


# ---------------------------------------------------------------------------
# Mock LLM provider
# ---------------------------------------------------------------------------

class MockProvider(LLMProvider):
    """Deterministic mock provider for testing – no network calls.

    Responses come from *responder* when given (called with the message
    list), otherwise they cycle through *responses*. After ``fail_after``
    successful calls every further call raises.
    """

    name = "mock"

    def __init__(
        self,
        model: str = "mock-v1",
        responses: list[str] | None = None,
        responder: Callable[[list[dict[str, str]]], str] | None = None,
        fail_after: int | None = None,
        **kwargs: Any,
    ) -> None:
        # Bypass API-key validation
        self.model = model
        self.timeout = kwargs.get("timeout", 30)
        self.max_retries = kwargs.get("max_retries", 1)
        self.api_key = "mock-key"

        self._responses = responses or ["This is a mock response about the motion."]
        self._responder = responder
        self._fail_after = fail_after
        self._call_count = 0
        self.call_log: list[dict[str, Any]] = []

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        if self._fail_after is not None and self._call_count >= self._fail_after:
            raise ConnectionError("mock provider unavailable")
        if self._responder is not None:
            text = self._responder(messages)
        else:
            text = self._responses[self._call_count % len(self._responses)]
        self._call_count += 1
        self.call_log.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )
        prompt_words = sum(len(m["content"].split()) for m in messages)
        return {
            "text": text,
            "input_tokens": prompt_words,
            "output_tokens": len(text.split()),
            "raw": {},
        }


class FakeEvidence(EvidenceSource):
    """Returns the same snippets for every query and records the queries."""

    name = "fake"

    def __init__(self, items: list[Evidence] | None = None) -> None:
        self.items = (
            [Evidence(source_ref="https://example.org/report", snippet="A relevant finding.")]
            if items is None
            else items
        )
        self.queries: list[str] = []

    async def search(self, query: str) -> list[Evidence]:
        self.queries.append(query)
        return list(self.items)


# ---------------------------------------------------------------------------
# Canned model output
# ---------------------------------------------------------------------------

def turn_text(label: str, words: int = 250) -> str:
    """A well-formed debater response whose statement has *words* words."""
    statement = " ".join(f"{label}{i}" for i in range(words))
    return (
        f"<analysis>\nThe {label} side weighs the motion.\n</analysis>\n\n"
        f"<critique>\nThe opposing case leans on anecdotes.\n</critique>\n\n"
        f"<statement>\n{statement}\n</statement>"
    )


def judge_json(winner: str, justification: str | None = None, **scores: float) -> str:
    return json.dumps({
        "winner": winner,
        "scores": {
            "coherence": scores.get("coherence", 7),
            "rebuttal_strength": scores.get("rebuttal_strength", 6),
            "factual_grounding": scores.get("factual_grounding", 8),
        },
        "justification": justification or (
            f"The {winner} side engaged the strongest opposing points directly, "
            "supported its claims with cited evidence and avoided the fallacies "
            "that weakened the other side across every round."
        ),
        "defects": [
            {"type": "strawman", "severity": "minor", "location": "con round 1",
             "description": "Misstated the opponent's claim."}
        ],
    })


def verdict_json(verdict: str, confidence: float = 0.9) -> str:
    return json.dumps({"verdict": verdict, "confidence": confidence, "rationale": "Checked."})


def is_extraction(messages: list[dict[str, str]]) -> bool:
    return "Extract the verifiable" in messages[-1]["content"]


def scripted_fact_model(verdicts: list[str] | None = None, default: str = "supported"):
    """Responder for the fact-check model.

    Every extraction yields one assertion; verdict calls consume *verdicts*
    in order and fall back to *default* once the script is exhausted.
    """
    queue = list(verdicts or [])

    def respond(messages: list[dict[str, str]]) -> str:
        if is_extraction(messages):
            return '[{"text": "Unemployment fell by 3% last year", "type": "statistical"}]'
        return verdict_json(queue.pop(0) if queue else default)

    return respond


def is_pro_first(messages: list[dict[str, str]]) -> bool:
    content = messages[-1]["content"]
    return content.index("[PRO DEBATER]") < content.index("[CON DEBATER]")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def policy() -> DebatePolicy:
    return DebatePolicy()


@pytest.fixture
def personas() -> dict[str, Persona]:
    return {
        "economist": Persona(
            id="economist",
            name="The Economist",
            description="Argues from incentives and data",
            system_prompt="You reason like an economist.",
        )
    }


@pytest.fixture
def providers() -> dict[str, MockProvider]:
    return {
        "pro-model": MockProvider(model="pro-model", responses=[turn_text("pro")]),
        "con-model": MockProvider(model="con-model", responses=[turn_text("con")]),
        "fact-model": MockProvider(model="fact-model", responder=scripted_fact_model()),
        "judge-model": MockProvider(model="judge-model", responses=[judge_json("pro")]),
    }


@pytest.fixture
def client(providers: dict[str, MockProvider]) -> LLMClient:
    return LLMClient(dict(providers))


@pytest.fixture
def evidence() -> FakeEvidence:
    return FakeEvidence()


@pytest.fixture
def fact_checker(client: LLMClient, evidence: FakeEvidence, policy: DebatePolicy) -> FactChecker:
    return FactChecker(
        client,
        extraction_config=ModelConfig(model_id="fact-model", temperature=0.3),
        evidence=evidence,
        policy=policy,
    )


@pytest.fixture
def debater(
    client: LLMClient, personas: dict[str, Persona], policy: DebatePolicy
) -> Debater:
    return Debater(client, personas=personas, policy=policy)


@pytest.fixture
def judge(client: LLMClient, policy: DebatePolicy) -> Judge:
    return Judge(client, ModelConfig(model_id="judge-model", temperature=0.3), policy=policy)


@pytest.fixture
def sample_state() -> DebateState:
    return DebateState(
        debate_id="debate-1",
        motion="AI development should be regulated",
        models={Side.PRO: "pro-model", Side.CON: "con-model"},
        total_rounds=3,
        word_limit=300,
        strictness=StrictnessMode.STANDARD,
        current_round=1,
    )


@pytest.fixture
def sample_turns() -> list[Turn]:
    """A short finished transcript for judging, metrics and visualisation."""
    return [
        Turn(
            round_number=1,
            side=Side.PRO,
            model_id="pro-model",
            statement=(
                "AI regulation is essential. Studies show 80% of experts agree. "
                "For instance, the EU AI Act demonstrates feasibility."
            ),
            word_count=19,
            analysis="Opening the case.",
            verifications_passed=2,
            input_tokens=120,
            output_tokens=80,
        ),
        Turn(
            round_number=1,
            side=Side.CON,
            model_id="con-model",
            statement=(
                "Regulation could stifle innovation, as demonstrated by historical "
                "precedents in biotech. The 80% figure is misleading."
            ),
            word_count=18,
            critique="The survey sample was biased.",
            verifications_failed=1,
            was_rejected=True,
            regenerations=1,
            input_tokens=140,
            output_tokens=90,
        ),
    ]


@pytest_asyncio.fixture
async def test_db(tmp_path) -> DebateDatabase:
    """Temporary SQLite database for testing."""
    db = DebateDatabase(db_path=tmp_path / "test_debates.db")
    await db.connect()
    yield db
    await db.close()
