"""Tests for evaluation validators."""

from __future__ import annotations

import pytest

from data.config import DebateConfig, DebatePolicy
from data.state import TurnDraft
from evaluation.validators import DebateValidator


@pytest.fixture
def validator():
    return DebateValidator()


def _draft(words: int, reported: int | None = None, **kwargs) -> TurnDraft:
    statement = " ".join(["word"] * words)
    return TurnDraft(
        statement=statement,
        word_count=words if reported is None else reported,
        analysis=kwargs.get("analysis", "analysis"),
        critique=kwargs.get("critique", "critique"),
    )


class TestValidateDraft:
    def test_valid_draft(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(250), word_limit=300)
        assert result.valid
        assert result
        assert len(result.issues) == 0

    def test_too_short(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(50), word_limit=300)
        assert not result.valid
        assert any("too short" in issue for issue in result.issues)

    def test_empty_statement(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(0), word_limit=300)
        assert not result.valid
        assert "Statement is empty or missing" in result.issues

    def test_over_limit(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(320), word_limit=300)
        assert any("exceeds word limit" in issue for issue in result.issues)

    def test_word_count_mismatch(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(250, reported=200), word_limit=300)
        assert any("mismatch" in issue for issue in result.issues)

    def test_mismatch_within_tolerance(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(250, reported=245), word_limit=300)
        assert result.valid

    def test_missing_sections_are_not_issues(self, validator: DebateValidator):
        result = validator.validate_draft(_draft(250, analysis="", critique=""), word_limit=300)
        assert result.valid

    def test_policy_min_words(self):
        validator = DebateValidator(DebatePolicy(min_words=10))
        assert validator.validate_draft(_draft(20), word_limit=300).valid


class TestValidateDebateConfig:
    CONFIG = DebateConfig(motion="m", pro_model="a", con_model="b", pro_persona="economist")

    def test_valid(self, validator: DebateValidator):
        result = validator.validate_debate_config(self.CONFIG, ["a", "b"], ["economist"])
        assert result.valid

    def test_unknown_models(self, validator: DebateValidator):
        result = validator.validate_debate_config(self.CONFIG, ["a"], ["economist"])
        assert result.issues == ["Unknown con model 'b'"]

    def test_unknown_persona(self, validator: DebateValidator):
        result = validator.validate_debate_config(self.CONFIG, ["a", "b"])
        assert not result.valid
        assert "Unknown pro persona 'economist'" in result.issues

    def test_same_model_caught_without_pydantic(self, validator: DebateValidator):
        config = DebateConfig.model_construct(
            motion="m", pro_model="a", con_model="a", pro_persona=None, con_persona=None
        )
        result = validator.validate_debate_config(config, ["a"])
        assert "Pro and con models must be different" in result.issues
