"""Debate agents and the model-invocation layer they share."""

from agents.base import AgentRole, BaseAgent
from agents.debater import Debater, GenerationFailed
from agents.evidence import EvidenceSource, NullEvidenceSource, TavilySearch, create_evidence_source
from agents.fact_checker import FactChecker, VerificationOutcome
from agents.judge import Judge
from agents.llm_provider import (
    AnthropicProvider,
    CohereProvider,
    GenerationError,
    LLMClient,
    LLMProvider,
    ModelConfig,
    OpenAIProvider,
    OpenRouterProvider,
    create_provider,
)
from agents.moderator import Moderator

__all__ = [
    "AgentRole",
    "AnthropicProvider",
    "BaseAgent",
    "CohereProvider",
    "Debater",
    "EvidenceSource",
    "FactChecker",
    "GenerationError",
    "GenerationFailed",
    "Judge",
    "LLMClient",
    "LLMProvider",
    "ModelConfig",
    "Moderator",
    "NullEvidenceSource",
    "OpenAIProvider",
    "OpenRouterProvider",
    "TavilySearch",
    "VerificationOutcome",
    "create_evidence_source",
    "create_provider",
]
