"""Tests for the DebateManager orchestration."""

from __future__ import annotations

import pytest

from agents.debater import Debater, GenerationFailed
from agents.fact_checker import FactChecker
from agents.judge import Judge
from agents.llm_provider import LLMClient, ModelConfig
from data.config import ConfigurationError, DebatePolicy, Persona
from data.database import DebateDatabase
from data.state import DebateStatus, Side, Winner
from data.store import MemoryStore
from orchestration.debate_manager import DebateManager, DebateResult
from tests.conftest import (
    FakeEvidence,
    MockProvider,
    judge_json,
    scripted_fact_model,
    turn_text,
)


class RecordingDebater(Debater):
    """Debater that remembers (round, side, retry_count) for every generation."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    async def run(self, state):
        self.calls.append((state.current_round, state.current_side, state.retry_count))
        await super().run(state)


def make_providers(**overrides) -> dict[str, MockProvider]:
    providers = {
        "pro-model": MockProvider(model="pro-model", responses=[turn_text("pro")]),
        "con-model": MockProvider(model="con-model", responses=[turn_text("con")]),
        "fact-model": MockProvider(model="fact-model", responder=scripted_fact_model()),
        "judge-model": MockProvider(model="judge-model", responses=[judge_json("pro")]),
    }
    providers.update(overrides)
    return providers


def build_manager(
    providers: dict[str, MockProvider],
    *,
    store=None,
    judge: bool = True,
    policy: DebatePolicy | None = None,
    personas: dict[str, Persona] | None = None,
    on_turn=None,
) -> DebateManager:
    client = LLMClient(dict(providers))
    policy = policy or DebatePolicy()
    return DebateManager(
        client,
        debater=RecordingDebater(client, personas=personas, policy=policy),
        fact_checker=FactChecker(
            client,
            extraction_config=ModelConfig(model_id="fact-model", temperature=0.3),
            evidence=FakeEvidence(),
            policy=policy,
        ),
        store=store,
        judge=Judge(client, ModelConfig(model_id="judge-model"), policy=policy) if judge else None,
        policy=policy,
        on_turn=on_turn,
    )


def debate_config(**kwargs) -> dict:
    config = {
        "motion": "Remote work is better than office work",
        "pro_model": "pro-model",
        "con_model": "con-model",
        "total_rounds": 2,
        "word_limit": 300,
        "strictness": "standard",
    }
    config.update(kwargs)
    return config


def sequence(result: DebateResult) -> list[tuple[int, Side]]:
    return [(t.round_number, t.side) for t in result.turns]


class TestDebateManagerTransient:
    """Tests with the in-memory store."""

    @pytest.mark.asyncio
    async def test_run_basic_debate(self):
        manager = build_manager(make_providers())
        result = await manager.run_debate(debate_config())
        assert isinstance(result, DebateResult)
        assert result.status is DebateStatus.COMPLETED
        assert result.motion == "Remote work is better than office work"
        assert len(result.turns) == 4
        assert result.winner == "pro"
        assert result.judging_degraded is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rounds", [1, 2, 3])
    async def test_turns_alternate_pro_then_con(self, rounds):
        manager = build_manager(make_providers(), judge=False)
        result = await manager.run_debate(debate_config(total_rounds=rounds))
        expected = [(r, side) for r in range(1, rounds + 1) for side in (Side.PRO, Side.CON)]
        assert sequence(result) == expected

    @pytest.mark.asyncio
    async def test_turns_use_side_models(self):
        manager = build_manager(make_providers(), judge=False)
        result = await manager.run_debate(debate_config())
        for turn in result.turns:
            expected = "pro-model" if turn.side is Side.PRO else "con-model"
            assert turn.model_id == expected
            assert turn.statement.startswith(turn.side.value)

    @pytest.mark.asyncio
    async def test_standard_mode_never_retries(self):
        providers = make_providers(
            **{"fact-model": MockProvider(
                model="fact-model", responder=scripted_fact_model(default="contradicted")
            )}
        )
        manager = build_manager(providers, judge=False)
        result = await manager.run_debate(debate_config(strictness="standard"))

        assert all(retries == 0 for _, _, retries in manager.debater.calls)
        assert len(manager.debater.calls) == 4
        assert all(not t.was_rejected for t in result.turns)
        assert all(t.verifications_failed == 1 for t in result.turns)
        assert len(result.verification_log) == 4

    @pytest.mark.asyncio
    async def test_disabled_mode_skips_fact_checking(self):
        providers = make_providers()
        manager = build_manager(providers, judge=False)
        result = await manager.run_debate(debate_config(total_rounds=1, strictness="disabled"))

        assert len(result.turns) == 2
        assert result.verification_log == []
        assert providers["fact-model"].call_log == []
        assert all(t.verifications_passed == 0 for t in result.turns)

    @pytest.mark.asyncio
    async def test_strict_mode_regenerates_rejected_drafts(self):
        providers = make_providers(
            **{"fact-model": MockProvider(
                model="fact-model",
                responder=scripted_fact_model(["contradicted", "contradicted", "supported"]),
            )}
        )
        manager = build_manager(providers, judge=False)
        result = await manager.run_debate(debate_config(total_rounds=1, strictness="strict"))

        pro, con = result.turns
        assert pro.regenerations == 2
        assert pro.was_rejected is True
        assert pro.verifications_passed == 1
        assert con.regenerations == 0
        assert con.was_rejected is False
        assert manager.debater.calls == [
            (1, Side.PRO, 0),
            (1, Side.PRO, 1),
            (1, Side.PRO, 2),
            (1, Side.CON, 0),
        ]
        # Only results for the accepted drafts are logged
        assert len(result.verification_log) == 2
        assert result.metrics["process"]["forced_acceptances"] == 0

    @pytest.mark.asyncio
    async def test_retry_cap_forces_acceptance(self):
        providers = make_providers(
            **{"fact-model": MockProvider(
                model="fact-model", responder=scripted_fact_model(default="contradicted")
            )}
        )
        policy = DebatePolicy(max_retries=3)
        manager = build_manager(providers, judge=False, policy=policy)
        result = await manager.run_debate(debate_config(total_rounds=2, strictness="strict"))

        assert len(result.turns) == 4
        assert max(retries for _, _, retries in manager.debater.calls) == 3
        assert len(manager.debater.calls) == 16
        for turn in result.turns:
            assert turn.regenerations == 3
            assert turn.was_rejected is True
        assert result.metrics["process"]["forced_acceptances"] == 4
        assert any("accepted after 3 rejected" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_zero_retries_accepts_first_draft(self):
        providers = make_providers(
            **{"fact-model": MockProvider(
                model="fact-model", responder=scripted_fact_model(default="contradicted")
            )}
        )
        manager = build_manager(providers, judge=False, policy=DebatePolicy(max_retries=0))
        result = await manager.run_debate(debate_config(total_rounds=1, strictness="strict"))
        assert len(manager.debater.calls) == 2
        assert all(t.regenerations == 0 and t.was_rejected for t in result.turns)

    @pytest.mark.asyncio
    async def test_verification_failure_fails_open(self):
        providers = make_providers(
            **{"fact-model": MockProvider(model="fact-model", responses=["no json here"])}
        )
        manager = build_manager(providers, judge=False)
        result = await manager.run_debate(debate_config(total_rounds=1, strictness="strict"))

        assert len(result.turns) == 2
        assert all(not t.was_rejected for t in result.turns)
        assert result.metrics["process"]["verification_errors"] == 2
        assert any("failed open" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_on_turn_sees_accepted_turns_in_order(self):
        seen = []
        manager = build_manager(make_providers(), judge=False, on_turn=seen.append)
        result = await manager.run_debate(debate_config())
        assert seen == result.turns

    @pytest.mark.asyncio
    async def test_short_statements_become_warnings(self):
        providers = make_providers(
            **{"pro-model": MockProvider(model="pro-model", responses=[turn_text("pro", 50)])}
        )
        manager = build_manager(providers, judge=False)
        result = await manager.run_debate(debate_config(total_rounds=1))
        assert result.status is DebateStatus.COMPLETED
        assert any("too short" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_result_to_dict(self):
        manager = build_manager(make_providers())
        result = await manager.run_debate(debate_config(total_rounds=1))
        d = result.to_dict()
        assert d["status"] == "completed"
        assert d["winner"] == "pro"
        assert len(d["turns"]) == 2
        assert d["verdict"]["consensus"] is True
        assert d["metrics"]["process"]["total_turns"] == 2


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_same_model_rejected_before_persistence(self):
        store = MemoryStore()
        manager = build_manager(make_providers(), store=store)
        with pytest.raises(ConfigurationError):
            await manager.run_debate(debate_config(con_model="pro-model"))
        assert store.debates == {}

    @pytest.mark.asyncio
    async def test_unknown_model_rejected(self):
        store = MemoryStore()
        manager = build_manager(make_providers(), store=store)
        with pytest.raises(ConfigurationError, match="Unknown con model"):
            await manager.run_debate(debate_config(con_model="missing-model"))
        assert store.debates == {}

    @pytest.mark.asyncio
    async def test_out_of_range_rounds_rejected(self):
        manager = build_manager(make_providers())
        with pytest.raises(ConfigurationError):
            await manager.run_debate(debate_config(total_rounds=11))

    @pytest.mark.asyncio
    async def test_unknown_persona_rejected(self, personas):
        manager = build_manager(make_providers(), personas=personas)
        with pytest.raises(ConfigurationError, match="persona"):
            await manager.run_debate(debate_config(pro_persona="poet"))

    @pytest.mark.asyncio
    async def test_known_persona_reaches_prompt(self, personas):
        providers = make_providers()
        manager = build_manager(providers, judge=False, personas=personas)
        await manager.run_debate(debate_config(total_rounds=1, pro_persona="economist"))
        system = providers["pro-model"].call_log[0]["messages"][0]["content"]
        assert "You reason like an economist." in system
        con_system = providers["con-model"].call_log[0]["messages"][0]["content"]
        assert "economist" not in con_system


class TestFailures:
    @pytest.mark.asyncio
    async def test_generation_failure_marks_debate_failed(self):
        store = MemoryStore()
        providers = make_providers(
            **{"con-model": MockProvider(model="con-model", fail_after=0)}
        )
        manager = build_manager(providers, store=store)
        with pytest.raises(GenerationFailed) as excinfo:
            await manager.run_debate(debate_config())

        assert excinfo.value.side is Side.CON
        record = next(iter(store.debates.values()))
        assert record.status is DebateStatus.FAILED
        assert record.current_round == 1
        # The PRO turn was persisted before CON failed
        assert len(store.turns[record.id]) == 1

    @pytest.mark.asyncio
    async def test_judge_failure_degrades_judging(self):
        providers = make_providers(
            **{"judge-model": MockProvider(model="judge-model", fail_after=0)}
        )
        store = MemoryStore()
        manager = build_manager(providers, store=store)
        result = await manager.run_debate(debate_config(total_rounds=1))

        assert result.status is DebateStatus.COMPLETED
        assert result.verdict is None
        assert result.judging_degraded is True
        assert any("Judging failed" in w for w in result.warnings)
        record = store.debates[result.debate_id]
        assert record.status is DebateStatus.COMPLETED
        assert "judge_errors" in record.metadata

    @pytest.mark.asyncio
    async def test_unparsable_judge_output_is_a_tie(self):
        providers = make_providers(
            **{"judge-model": MockProvider(model="judge-model", responses=["I refuse."])}
        )
        manager = build_manager(providers)
        result = await manager.run_debate(debate_config(total_rounds=1))
        assert result.verdict.final_winner is Winner.TIE
        assert result.judging_degraded is True


class TestResume:
    async def _interrupted(self, store) -> str:
        providers = make_providers(
            **{"con-model": MockProvider(
                model="con-model", responses=[turn_text("con")], fail_after=1
            )}
        )
        manager = build_manager(providers, store=store, judge=False)
        with pytest.raises(GenerationFailed):
            await manager.run_debate(debate_config(total_rounds=2))
        if isinstance(store, MemoryStore):
            return next(iter(store.debates))
        debates = await store.list_debates(limit=1)
        return debates[0].id

    @pytest.mark.asyncio
    async def test_resume_matches_uninterrupted_run(self):
        baseline = await build_manager(make_providers(), judge=False).run_debate(
            debate_config(total_rounds=2)
        )

        store = MemoryStore()
        debate_id = await self._interrupted(store)
        snapshot = await store.get_snapshot(debate_id)
        assert snapshot.current_round == 2
        assert snapshot.current_side is Side.CON
        assert len(snapshot.turns) == 3

        providers = make_providers()
        resumed = await build_manager(providers, store=store, judge=False).resume_debate(debate_id)

        assert resumed.debate_id == debate_id
        assert sequence(resumed) == sequence(baseline)
        assert [t.statement for t in resumed.turns] == [t.statement for t in baseline.turns]
        # Only the missing CON turn was generated
        assert providers["pro-model"].call_log == []
        assert len(providers["con-model"].call_log) == 1
        assert store.debates[debate_id].status is DebateStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_resume_from_database(self, test_db: DebateDatabase):
        debate_id = await self._interrupted(test_db)
        record = await test_db.get_debate(debate_id)
        assert record.status is DebateStatus.FAILED

        resumed = await build_manager(make_providers(), store=test_db).resume_debate(debate_id)
        assert len(resumed.turns) == 4
        assert resumed.winner == "pro"

        turns = await test_db.get_turns(debate_id)
        assert [(t.round_number, t.side) for t in turns] == sequence(resumed)
        record = await test_db.get_debate(debate_id)
        assert record.status is DebateStatus.COMPLETED
        assert record.winner == "pro"

    @pytest.mark.asyncio
    async def test_resume_completed_debate_only_rejudges(self):
        store = MemoryStore()
        first = await build_manager(make_providers(), store=store).run_debate(
            debate_config(total_rounds=1)
        )
        providers = make_providers()
        again = await build_manager(providers, store=store).resume_debate(first.debate_id)

        assert len(again.turns) == 2
        assert providers["pro-model"].call_log == []
        assert providers["con-model"].call_log == []
        assert len(providers["judge-model"].call_log) == 2

    @pytest.mark.asyncio
    async def test_rejudging_replaces_stored_evaluations(self, test_db: DebateDatabase):
        first = await build_manager(make_providers(), store=test_db).run_debate(
            debate_config(total_rounds=1)
        )
        providers = make_providers(
            **{"judge-model": MockProvider(model="judge-model", responses=[judge_json("con")])}
        )
        again = await build_manager(providers, store=test_db).resume_debate(first.debate_id)
        assert again.winner == "con"

        evaluations = await test_db.get_evaluations(first.debate_id)
        assert [e.pass_name for e in evaluations] == ["pro_first", "con_first"]
        assert {e.winner for e in evaluations} == {"con"}
        assert (await test_db.get_debate(first.debate_id)).winner == "con"

    @pytest.mark.asyncio
    async def test_resume_requires_models(self):
        store = MemoryStore()
        debate_id = await self._interrupted(store)
        providers = make_providers()
        del providers["con-model"]
        with pytest.raises(ConfigurationError):
            await build_manager(providers, store=store).resume_debate(debate_id)


class TestDebateManagerWithDB:
    """Tests with SQLite persistence."""

    @pytest.mark.asyncio
    async def test_debate_persisted(self, test_db: DebateDatabase):
        manager = build_manager(make_providers(), store=test_db)
        result = await manager.run_debate(debate_config())

        debate = await test_db.get_debate(result.debate_id)
        assert debate is not None
        assert debate.status is DebateStatus.COMPLETED
        assert debate.current_round == 2
        assert debate.winner == "pro"

    @pytest.mark.asyncio
    async def test_turns_and_verifications_persisted(self, test_db: DebateDatabase):
        manager = build_manager(make_providers(), store=test_db, judge=False)
        result = await manager.run_debate(debate_config())

        turns = await test_db.get_turns(result.debate_id)
        assert len(turns) == len(result.turns)
        verifications = await test_db.get_verifications(result.debate_id)
        assert len(verifications) == len(result.verification_log)

    @pytest.mark.asyncio
    async def test_evaluations_persisted(self, test_db: DebateDatabase):
        manager = build_manager(make_providers(), store=test_db)
        result = await manager.run_debate(debate_config(total_rounds=1))
        evaluations = await test_db.get_evaluations(result.debate_id)
        assert [e.pass_name for e in evaluations] == ["pro_first", "con_first"]
