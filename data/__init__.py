"""Data layer – debate state, configuration, SQLite storage and Pydantic models."""

from data.config import ConfigurationError, DebateConfig, DebatePolicy, Persona
from data.database import DebateDatabase
from data.models import (
    DebateRecord,
    EvaluationRecord,
    TurnRecord,
    VerificationRecord,
)
from data.state import (
    ConsensusVerdict,
    DebateState,
    DebateStatus,
    EvaluationOrder,
    JudgeVerdict,
    Side,
    StrictnessMode,
    Turn,
    Verdict,
    VerificationResult,
    Winner,
)
from data.store import DebateNotFound, DebateStore, MemoryStore

__all__ = [
    "ConfigurationError",
    "ConsensusVerdict",
    "DebateConfig",
    "DebateDatabase",
    "DebateNotFound",
    "DebatePolicy",
    "DebateRecord",
    "DebateState",
    "DebateStatus",
    "DebateStore",
    "EvaluationOrder",
    "EvaluationRecord",
    "JudgeVerdict",
    "MemoryStore",
    "Persona",
    "Side",
    "StrictnessMode",
    "Turn",
    "TurnRecord",
    "Verdict",
    "VerificationRecord",
    "VerificationResult",
    "Winner",
]
