"""
Data models for the CaseCoach coaching pipeline.

Conversation state (turns, case context, professor directives and overrides)
is defined here; the structured per-turn agent record lives in
agent_trace.py.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


# ─── Enumerations ────────────────────────────────────────────────────────────

class Phase(str, Enum):
    """Coaching phase tag carried by system turns."""
    CLARIFY   = "clarify"    # does the learner have a formed position?
    CRITIQUE  = "critique"   # is the reasoning strong enough?
    DIRECTION = "direction"  # executive team unlocked (terminal)
    SAFETY    = "safety"     # sensitive content blocked; never changes phase


class TurnRole(str, Enum):
    STUDENT = "student"
    SYSTEM  = "system"


class AgentRole(str, Enum):
    """The five executive personas, in escalation order."""
    EMPLOYEE                = "Employee"              # operational base role
    CFO                     = "CFO"                   # finance
    CMO                     = "CMO"                   # stakeholder relations
    CHIEF_MEDICAL_OFFICER   = "ChiefMedicalOfficer"   # clinical safety
    CEO                     = "CEO"                   # top executive


class Intent(str, Enum):
    """Topical intents in classification priority order."""
    PHI_SENSITIVE = "phi_sensitive"
    ESCALATION    = "escalation"
    EXEC_DECISION = "exec_decision"
    COMPLIANCE    = "compliance"
    FINANCIAL     = "financial"
    CLINICAL      = "clinical"
    STRATEGIC     = "strategic"
    OPERATIONAL   = "operational"
    GENERAL       = "general"


class Recommendation(str, Enum):
    PROCEED        = "proceed"
    HOLD           = "hold"
    NEED_MORE_DATA = "need_more_data"
    DO_NOT_PROCEED = "do_not_proceed"
    ADVISORY       = "advisory"


class RubricLevel(IntEnum):
    WEAK       = 0
    DEVELOPING = 1
    ADEQUATE   = 2
    STRONG     = 3

    @property
    def label(self) -> str:
        return self.name.lower()


# ─── Executive registry ──────────────────────────────────────────────────────

AUTHORITY_LEVELS: dict[AgentRole, int] = {
    AgentRole.EMPLOYEE:              1,
    AgentRole.CFO:                   2,
    AgentRole.CMO:                   2,
    AgentRole.CHIEF_MEDICAL_OFFICER: 2,
    AgentRole.CEO:                   3,
}

DISPLAY_NAMES: dict[AgentRole, str] = {
    AgentRole.EMPLOYEE:              "Employee",
    AgentRole.CFO:                   "CFO",
    AgentRole.CMO:                   "CMO",
    AgentRole.CHIEF_MEDICAL_OFFICER: "Chief Medical Officer",
    AgentRole.CEO:                   "CEO",
}


def authority_of(role: AgentRole) -> int:
    return AUTHORITY_LEVELS.get(role, 1)


def display_name_of(role: AgentRole) -> str:
    return DISPLAY_NAMES.get(role, role.value)


# ─── Rubric ──────────────────────────────────────────────────────────────────

RUBRIC_DIMENSIONS = ("problem_framing", "evidence_use", "tradeoff_quality", "risk_compliance")


@dataclass(frozen=True)
class Rubric:
    """Four independent 0–3 scores, produced fresh for each evaluated message."""
    problem_framing:  RubricLevel
    evidence_use:     RubricLevel
    tradeoff_quality: RubricLevel
    risk_compliance:  RubricLevel

    def scores(self) -> dict[str, RubricLevel]:
        return {dim: getattr(self, dim) for dim in RUBRIC_DIMENSIONS}

    @property
    def average(self) -> float:
        values = [int(v) for v in self.scores().values()]
        return sum(values) / len(values)

    @property
    def minimum(self) -> int:
        return min(int(v) for v in self.scores().values())

    def labels(self) -> dict[str, str]:
        return {dim: level.label for dim, level in self.scores().items()}


# ─── Conversation ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Turn:
    """
    One logged message.  The conversation is the authoritative log: the
    current phase is derived from these, never stored separately.
    """
    role:        TurnRole
    content:     str
    phase:       Optional[Phase] = None
    agent_trace: Optional[dict[str, Any]] = None
    created_at:  str = ""


# ─── Case context & professor controls ──────────────────────────────────────

def _load_json(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


@dataclass(frozen=True)
class CaseContext:
    """Case material shown to every executive.  Immutable during a turn."""
    title:           str
    kpis:            dict[str, Any] = field(default_factory=dict)
    goals:           dict[str, Any] = field(default_factory=dict)
    red_lines:       list[str] = field(default_factory=list)
    background_text: Optional[str] = None

    @classmethod
    def from_record(cls, record: Optional[dict[str, Any]]) -> Optional["CaseContext"]:
        """Build from a case row whose mappings may still be JSON strings."""
        if not record:
            return None
        return cls(
            title           = record.get("title", ""),
            kpis            = _load_json(record.get("kpis"), {}),
            goals           = _load_json(record.get("goals"), {}),
            red_lines       = list(_load_json(record.get("red_lines"), [])),
            background_text = record.get("background_text") or record.get("pdf_text") or None,
        )


@dataclass(frozen=True)
class Directive:
    """Professor instruction injected into every agent prompt while active."""
    id:            str
    assignment_id: str
    content:       str
    active:        bool = True
    created_at:    str = ""


@dataclass(frozen=True)
class AgentOverride:
    """Per-case text appended to one role's base instructions (last write wins)."""
    case_id:         str
    agent_name:      AgentRole
    prompt_addition: str
