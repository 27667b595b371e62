"""Orchestration layer – the debate state machine and its driver."""

from orchestration.debate_manager import DebateManager, DebateResult
from orchestration.round_coordinator import RoundCoordinator
from orchestration.state_machine import Action, Phase, Step, resume_step, transition

__all__ = [
    "Action",
    "DebateManager",
    "DebateResult",
    "Phase",
    "RoundCoordinator",
    "Step",
    "resume_step",
    "transition",
]
