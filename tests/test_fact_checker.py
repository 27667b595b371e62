"""Tests for the FactChecker agent and its response parsers."""

from __future__ import annotations

import pytest

from agents.evidence import Evidence
from agents.fact_checker import (
    Assertion,
    AssertionType,
    FactChecker,
    VerificationError,
    parse_assertions,
    parse_verdict,
)
from agents.llm_provider import LLMClient, ModelConfig
from data.config import DebatePolicy
from data.state import DebateState, Side, StrictnessMode, TurnDraft, Verdict
from tests.conftest import FakeEvidence, MockProvider, is_extraction, scripted_fact_model

STATEMENT = "Unemployment fell by 3% last year. Cities with bike lanes saw fewer accidents."


def _checker(responder, *, evidence=None, policy=None, verdict_provider=None):
    providers = {"fact-model": MockProvider(model="fact-model", responder=responder)}
    verdict_config = None
    if verdict_provider is not None:
        providers["verdict-model"] = verdict_provider
        verdict_config = ModelConfig(model_id="verdict-model")
    client = LLMClient(providers)
    checker = FactChecker(
        client,
        extraction_config=ModelConfig(model_id="fact-model"),
        verdict_config=verdict_config,
        evidence=evidence if evidence is not None else FakeEvidence(),
        policy=policy or DebatePolicy(),
    )
    return checker, providers


class TestParseAssertions:
    def test_objects_with_types(self):
        text = '[{"text": "GDP grew 2%", "type": "statistical"}, {"text": "Rome fell in 476", "type": "historical"}]'
        assertions = parse_assertions(text)
        assert assertions == [
            Assertion("GDP grew 2%", AssertionType.STATISTICAL),
            Assertion("Rome fell in 476", AssertionType.HISTORICAL),
        ]

    def test_plain_strings_and_alternate_keys(self):
        text = '```json\n["Water boils at 100C", {"claim": "The sky is blue"}]\n```'
        assertions = parse_assertions(text)
        assert [a.text for a in assertions] == ["Water boils at 100C", "The sky is blue"]
        assert all(a.type is AssertionType.GENERAL for a in assertions)

    def test_unknown_type_falls_back_to_general(self):
        assertions = parse_assertions('[{"text": "x is y", "type": "anecdotal"}]')
        assert assertions[0].type is AssertionType.GENERAL

    def test_blank_items_skipped(self):
        assert parse_assertions('[{"text": "  "}, 42, "ok"]') == [Assertion("ok")]

    def test_empty_array(self):
        assert parse_assertions("[]") == []

    def test_no_array_raises(self):
        with pytest.raises(VerificationError):
            parse_assertions("There are no claims here.")


class TestParseVerdict:
    EVIDENCE = [Evidence("https://a.example", "snippet"), Evidence("https://b.example", "more")]

    def test_supported(self):
        result = parse_verdict(
            '{"verdict": "supported", "confidence": 0.8, "rationale": "Matches."}',
            Assertion("claim"),
            self.EVIDENCE,
        )
        assert result.verdict is Verdict.SUPPORTED
        assert result.confidence == 0.8
        assert result.evidence_refs == ["https://a.example", "https://b.example"]
        assert result.rationale == "Matches."

    @pytest.mark.parametrize(
        "raw, expected",
        [("TRUE", Verdict.SUPPORTED), ("false", Verdict.CONTRADICTED), ("unverifiable", Verdict.INDETERMINATE)],
    )
    def test_aliases(self, raw, expected):
        result = parse_verdict(f'{{"verdict": "{raw}"}}', Assertion("c"), self.EVIDENCE)
        assert result.verdict is expected

    def test_confidence_clamped(self):
        result = parse_verdict('{"verdict": "contradicted", "confidence": 7}', Assertion("c"), [])
        assert result.confidence == 1.0

    def test_unknown_verdict_raises(self):
        with pytest.raises(VerificationError):
            parse_verdict('{"verdict": "maybe"}', Assertion("c"), [])

    def test_bad_confidence_raises(self):
        with pytest.raises(VerificationError):
            parse_verdict('{"verdict": "supported", "confidence": "high"}', Assertion("c"), [])


class TestVerify:
    @pytest.mark.asyncio
    async def test_disabled_makes_no_calls(self):
        checker, providers = _checker(scripted_fact_model())
        outcome = await checker.verify(STATEMENT, StrictnessMode.DISABLED)
        assert outcome.results == []
        assert outcome.reject is False
        assert providers["fact-model"].call_log == []

    @pytest.mark.asyncio
    async def test_standard_never_rejects(self):
        checker, _ = _checker(scripted_fact_model(default="contradicted"))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STANDARD)
        assert outcome.contradicted == 1
        assert outcome.reject is False

    @pytest.mark.asyncio
    async def test_strict_rejects_on_contradiction(self):
        checker, _ = _checker(scripted_fact_model(default="contradicted"))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.reject is True

    @pytest.mark.asyncio
    async def test_strict_accepts_supported(self):
        checker, _ = _checker(scripted_fact_model(default="supported"))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.reject is False
        assert outcome.results[0].verdict is Verdict.SUPPORTED

    @pytest.mark.asyncio
    async def test_rejection_threshold(self):
        def respond(messages):
            if is_extraction(messages):
                return '["claim one", "claim two"]'
            return '{"verdict": "contradicted", "confidence": 0.9}'

        checker, _ = _checker(respond, policy=DebatePolicy(rejection_threshold=3))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.contradicted == 2
        assert outcome.reject is False

    @pytest.mark.asyncio
    async def test_no_evidence_is_indeterminate_without_verdict_call(self):
        checker, providers = _checker(scripted_fact_model(), evidence=FakeEvidence(items=[]))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.results[0].verdict is Verdict.INDETERMINATE
        assert outcome.results[0].confidence == 0.5
        assert outcome.reject is False
        # Extraction only
        assert len(providers["fact-model"].call_log) == 1

    @pytest.mark.asyncio
    async def test_max_assertions_limits_checks(self):
        def respond(messages):
            if is_extraction(messages):
                return '["a1", "a2", "a3", "a4"]'
            return '{"verdict": "supported"}'

        evidence = FakeEvidence()
        checker, _ = _checker(respond, evidence=evidence, policy=DebatePolicy(max_assertions=2))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STANDARD)
        assert [r.assertion for r in outcome.results] == ["a1", "a2"]
        assert evidence.queries == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_zero_max_assertions_skips_extraction(self):
        checker, providers = _checker(scripted_fact_model(), policy=DebatePolicy(max_assertions=0))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.results == []
        assert providers["fact-model"].call_log == []

    @pytest.mark.asyncio
    async def test_verdict_model_used_for_verdicts(self):
        verdict_provider = MockProvider(
            model="verdict-model", responses=['{"verdict": "supported", "confidence": 0.7}']
        )
        checker, providers = _checker(scripted_fact_model(), verdict_provider=verdict_provider)
        await checker.verify(STATEMENT, StrictnessMode.STANDARD)
        assert len(providers["fact-model"].call_log) == 1
        assert len(verdict_provider.call_log) == 1

    @pytest.mark.asyncio
    async def test_fails_open_on_bad_verdict(self):
        def respond(messages):
            if is_extraction(messages):
                return '["a1", "a2"]'
            return "cannot decide"

        checker, _ = _checker(respond)
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.reject is False
        assert outcome.error is not None
        assert outcome.results == []

    @pytest.mark.asyncio
    async def test_fails_open_keeps_partial_results(self):
        answers = iter(['{"verdict": "contradicted"}', "garbage"])

        def respond(messages):
            if is_extraction(messages):
                return '["a1", "a2"]'
            return next(answers)

        checker, _ = _checker(respond)
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert len(outcome.results) == 1
        assert outcome.reject is False

    @pytest.mark.asyncio
    async def test_fails_open_when_model_unavailable(self):
        client = LLMClient({})
        checker = FactChecker(client, extraction_config=ModelConfig(model_id="gone"))
        outcome = await checker.verify(STATEMENT, StrictnessMode.STRICT)
        assert outcome.reject is False
        assert "gone" in outcome.error


class TestRun:
    def _state(self, **kwargs) -> DebateState:
        return DebateState(
            debate_id="fc",
            motion="m",
            models={Side.PRO: "a", Side.CON: "b"},
            current_round=2,
            current_side=Side.CON,
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_sets_results_and_reject(self):
        checker, _ = _checker(scripted_fact_model(default="contradicted"))
        state = self._state(
            strictness=StrictnessMode.STRICT,
            draft=TurnDraft(statement=STATEMENT, word_count=14),
        )
        await checker.run(state)
        assert state.reject is True
        assert len(state.verification_results) == 1

    @pytest.mark.asyncio
    async def test_no_draft(self):
        checker, providers = _checker(scripted_fact_model())
        state = self._state(reject=True)
        await checker.run(state)
        assert state.reject is False
        assert state.verification_results == []
        assert providers["fact-model"].call_log == []

    @pytest.mark.asyncio
    async def test_records_verification_errors(self):
        checker, _ = _checker(lambda messages: "oops")
        state = self._state(draft=TurnDraft(statement=STATEMENT, word_count=14))
        await checker.run(state)
        assert state.metadata["verification_errors"][0]["round"] == 2
        assert state.metadata["verification_errors"][0]["side"] == "con"
