"""Debate configuration and policy knobs.

``DebateConfig`` describes one debate; ``DebatePolicy`` holds the constants
that shape retry frequency and validation strictness.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from data.state import Side, StrictnessMode


class ConfigurationError(ValueError):
    """Raised for debate configurations that must not start."""


class Persona(BaseModel):
    """Optional styling applied to a debater's prompt."""

    id: str
    name: str
    description: str = ""
    system_prompt: str = ""


class DebatePolicy(BaseModel):
    """Policy constants for retries, validation and judging."""

    max_retries: int = Field(default=3, ge=0)
    min_words: int = Field(default=200, ge=0)
    word_count_tolerance: int = Field(default=10, ge=0)
    rejection_threshold: int = Field(default=1, ge=1)
    max_assertions: int = Field(default=5, ge=0)
    evidence_results: int = Field(default=3, ge=1)
    min_justification_chars: int = Field(default=100, ge=0)


class DebateConfig(BaseModel):
    """Parameters for a single debate."""

    motion: str = Field(min_length=1)
    pro_model: str = Field(min_length=1)
    con_model: str = Field(min_length=1)
    pro_persona: str | None = None
    con_persona: str | None = None
    total_rounds: int = Field(default=3, ge=1, le=10)
    word_limit: int = Field(default=500, ge=200, le=1000)
    strictness: StrictnessMode = StrictnessMode.STANDARD

    @model_validator(mode="after")
    def _distinct_models(self) -> DebateConfig:
        if self.pro_model == self.con_model:
            raise ValueError("pro and con must use different models")
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DebateConfig:
        """Validate *data*, converting pydantic errors to ``ConfigurationError``."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @property
    def models(self) -> dict[Side, str]:
        return {Side.PRO: self.pro_model, Side.CON: self.con_model}

    @property
    def personas(self) -> dict[Side, str | None]:
        return {Side.PRO: self.pro_persona, Side.CON: self.con_persona}
