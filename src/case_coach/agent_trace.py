"""
agent_trace.py — Structured audit record for Direction-phase turns
==================================================================
Every executive that speaks during a Direction turn produces an
AgentResponse.  The orchestrator collects them into an AgentTrace, which is
the only structured artefact committed alongside the system Turn (as a JSON
blob in messages.agent_trace) for later analytics and audit.

Data model
----------
  AgentResponse   One executive's contribution: text, signal, confidence.
  AgentTrace      Full record for one turn: intent, PHI flag, activated
                  roles, responses, final recommendation, escalation path.

Key fields
----------
  AgentResponse.recommendation   proceed | hold | need_more_data |
                                 do_not_proceed | advisory
  AgentResponse.confidence       heuristic 0–100 ordering signal
  AgentResponse.escalate         True for hold / do_not_proceed
  AgentResponse.fallback         True when the gateway failed and the
                                 rule-based responder answered instead
  AgentResponse.model / tokens_used   pass-through gateway telemetry
  AgentTrace.escalation_path     ["Employee → CFO", "CFO → CEO", …]

Invariant: agent_responses is non-empty unless the PHI gate short-circuited
the turn.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from case_coach.models import AgentRole, Intent, Recommendation


class AgentResponse(BaseModel):
    """One executive's reply inside a Direction turn."""
    name:            AgentRole
    display_name:    str
    authority_level: int = Field(ge=1, le=3)
    text:            str
    recommendation:  Recommendation
    confidence:      int = Field(ge=0, le=100)
    escalate:        bool = False
    model:           Optional[str] = None
    tokens_used:     int = 0
    fallback:        bool = False
    duration_ms:     float = 0.0


class AgentTrace(BaseModel):
    """Structured record of one Direction-phase turn."""
    intent:               Intent
    phi:                  bool
    agents_activated:     list[AgentRole]
    agent_responses:      list[AgentResponse] = Field(default_factory=list)
    final_recommendation: Recommendation
    escalation_path:      list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _responses_present(self) -> "AgentTrace":
        if not self.phi and not self.agent_responses:
            raise ValueError("agent_responses must be non-empty unless the PHI gate blocked the turn")
        return self

    # ── Derived helpers ──────────────────────────────────────────────────────

    @property
    def fallback_used(self) -> bool:
        return any(r.fallback for r in self.agent_responses)

    def response_for(self, role: AgentRole) -> Optional[AgentResponse]:
        return next((r for r in self.agent_responses if r.name == role), None)

    # ── Persistence format ───────────────────────────────────────────────────

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "AgentTrace":
        return cls.model_validate_json(raw)
