"""Base agent class with provider-agnostic interface.

Every model-backed debate participant inherits from ``BaseAgent`` which
provides:
- Injection of the shared ``LLMClient`` and a default ``ModelConfig``
- A single ``complete`` helper that assembles ``[system, user]`` messages
- Agent identity used in log lines

Agents keep no conversation memory: every call is built from the debate
state handed in, so one agent instance can serve many concurrent debates.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum

from agents.llm_provider import LLMClient, LLMResponse, ModelConfig

logger = logging.getLogger(__name__)


class AgentRole(str, Enum):
    """Well-known roles in the debate system."""

    DEBATER = "debater"
    FACT_CHECKER = "fact_checker"
    MODERATOR = "moderator"
    JUDGE = "judge"


class BaseAgent:
    """Provider-agnostic base class for model-backed agents.

    Parameters
    ----------
    role : AgentRole
        The functional role this agent plays in the debate.
    client : LLMClient
        Routes model ids to providers.
    config : ModelConfig | None
        Default model and sampling parameters. Debaters pass a per-call
        config instead because each side has its own model.
    agent_id : str | None
        Unique identifier; auto-generated if not supplied.
    system_prompt : str
        The root system prompt that defines agent behaviour.
    """

    role: AgentRole

    def __init__(
        self,
        *,
        role: AgentRole,
        client: LLMClient,
        config: ModelConfig | None = None,
        agent_id: str | None = None,
        system_prompt: str = "",
    ) -> None:
        self.agent_id = agent_id or f"{role.value}_{uuid.uuid4().hex[:8]}"
        self.role = role
        self.client = client
        self.config = config
        self.system_prompt = system_prompt

    async def complete(
        self,
        prompt: str,
        *,
        config: ModelConfig | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Send *prompt* to the configured model and return its response."""
        cfg = config or self.config
        if cfg is None:
            raise ValueError(f"{self.agent_id} has no model configured")
        messages = self._build_messages(
            prompt, self.system_prompt if system_prompt is None else system_prompt
        )
        return await self.client.generate(messages, cfg)

    @staticmethod
    def _build_messages(prompt: str, system_prompt: str) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def __repr__(self) -> str:
        model = self.config.model_id if self.config else None
        return (
            f"{type(self).__name__}(id={self.agent_id!r}, "
            f"role={self.role.value!r}, model={model!r})"
        )
