"""Validators for turn drafts and debate configurations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from data.config import DebateConfig, DebatePolicy
from data.state import TurnDraft

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    issues: list[str]

    def __bool__(self) -> bool:
        return self.valid


class DebateValidator:
    """Validates turn structure and debate setup against policy."""

    def __init__(self, policy: DebatePolicy | None = None) -> None:
        self.policy = policy or DebatePolicy()

    def validate_draft(self, draft: TurnDraft, word_limit: int) -> ValidationResult:
        """Check a draft's statement, length and reported word count."""
        issues: list[str] = []

        if not draft.statement.strip():
            issues.append("Statement is empty or missing")

        actual = len(draft.statement.split())
        if actual < self.policy.min_words:
            issues.append(
                f"Statement too short ({actual} words, minimum {self.policy.min_words})"
            )
        if actual > word_limit:
            issues.append(
                f"Statement exceeds word limit ({actual} words, maximum {word_limit})"
            )
        if abs(actual - draft.word_count) > self.policy.word_count_tolerance:
            issues.append(
                f"Word count mismatch: reported {draft.word_count}, actual {actual}"
            )

        if not draft.analysis.strip():
            logger.debug("Draft is missing its analysis section")
        if not draft.critique.strip():
            logger.debug("Draft is missing its critique section")

        return ValidationResult(valid=len(issues) == 0, issues=issues)

    def validate_debate_config(
        self,
        config: DebateConfig,
        available_models: Iterable[str],
        available_personas: Iterable[str] = (),
    ) -> ValidationResult:
        """Check that a config refers only to models and personas that exist."""
        issues: list[str] = []
        models = set(available_models)
        personas = set(available_personas)

        if config.pro_model == config.con_model:
            issues.append("Pro and con models must be different")
        for side, model_id in (("pro", config.pro_model), ("con", config.con_model)):
            if model_id not in models:
                issues.append(f"Unknown {side} model {model_id!r}")
        for side, persona_id in (("pro", config.pro_persona), ("con", config.con_persona)):
            if persona_id is not None and persona_id not in personas:
                issues.append(f"Unknown {side} persona {persona_id!r}")

        if issues:
            logger.warning("Invalid debate configuration: %s", "; ".join(issues))
        return ValidationResult(valid=len(issues) == 0, issues=issues)
