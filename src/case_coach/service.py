"""
service.py – One learner turn, end to end
=========================================
CoachingService.handle_turn() is the only entry point a host (CLI, web
route, test) needs:

  1. Input guardrails (G-01/G-02/G-04)   → InputValidationError, no budget spent
  2. Per-session lock                      single writer per conversation
  3. Session + budget lookup               → SessionNotFoundError /
                                             TurnBudgetExhaustedError
  4. Sensitive-content gate (G-03)         → ``safety`` turn, phase unchanged
  5. Phase gate                            → clarify questions | critique
                                             feedback | executive hierarchy
  6. Atomic commit                         learner turn + system turn + 1 credit
  7. TurnResponse envelope

Every turn that reaches step 6 costs exactly one credit, whatever its
outcome.  If the commit fails nothing is written.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field

from case_coach import database
from case_coach.agent_trace import AgentResponse, AgentTrace
from case_coach.coaching import ReasoningEvaluator
from case_coach.config import Settings, get_settings
from case_coach.errors import (
    AssignmentNotFoundError,
    InputValidationError,
    SessionNotFoundError,
    TurnBudgetExhaustedError,
)
from case_coach.guardrails import GuardrailLevel, GuardrailsPipeline
from case_coach.llm import TextGenerationGateway
from case_coach.models import AgentRole, Intent, Phase, Recommendation
from case_coach.orchestrator import HierarchyOrchestrator
from case_coach.phase_gate import GateDecision, PhaseGate

logger = logging.getLogger(__name__)

SAFETY_CONTENT = (
    "Your message appears to contain personal health information (PHI). Please remove "
    "any identifying details and resubmit with anonymized facts."
)
SAFETY_QUESTION = "Remove all identifying details and restate the problem using anonymized facts."

CLARIFY_PREAMBLE = (
    "Before the executive team can analyze your question, I need to understand your reasoning."
)
CLARIFY_HINT  = 'Start with "I recommend..." or "I think we should..." and include at least one reason why.'
CRITIQUE_HINT = 'Strengthen the areas marked "Weak" or "Developing" in the rubric above.'


class TurnResponse(BaseModel):
    """What the learner sees after one turn."""
    session_id:           str
    phase:                Phase
    content:              str
    questions:            list[str] = Field(default_factory=list)
    rubric:               Optional[dict[str, str]] = None
    intent:               Optional[Intent] = None
    agents_activated:     list[AgentRole] = Field(default_factory=list)
    agent_responses:      list[AgentResponse] = Field(default_factory=list)
    final_recommendation: Optional[Recommendation] = None
    escalation_path:      list[str] = Field(default_factory=list)
    credits_remaining:    int
    credits_warning:      Optional[str] = None
    coaching_hint:        Optional[str] = None
    warnings:             list[str] = Field(default_factory=list)

    @property
    def unlocked(self) -> bool:
        return self.phase == Phase.DIRECTION


@dataclass
class _SessionLock:
    lock:  threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class CoachingService:
    """
    Wires guardrails, the phase gate, the executive hierarchy and the
    database into the per-turn pipeline.

    The gateway is shared: it serves both the optional LLM critique and the
    executive replies.  ``init_db`` must have been called by the host.
    """

    def __init__(
        self,
        gateway: TextGenerationGateway | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings     = settings or get_settings()
        self.gateway      = gateway or TextGenerationGateway(self.settings.llm, enabled=self.settings.live_mode)
        self.guardrails   = GuardrailsPipeline()
        self.gate         = PhaseGate(evaluator=ReasoningEvaluator(self.gateway))
        self.orchestrator = HierarchyOrchestrator(
            self.gateway,
            detector=self.guardrails.content_guard,
            case_text_limit=self.settings.app.case_text_char_limit,
        )
        self._locks: dict[str, _SessionLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _session_lock(self, session_id: str):
        """Serialise turns per session; the entry is dropped once no turn holds or waits on it."""
        with self._locks_guard:
            entry = self._locks.setdefault(session_id, _SessionLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[session_id]

    def _credits_warning(self, remaining: int) -> Optional[str]:
        if remaining <= self.settings.app.credits_warning_threshold:
            return f"{remaining} turns remaining"
        return None

    # ── Public interface ──────────────────────────────────────────────────────

    def handle_turn(self, session_id: str, message: str) -> TurnResponse:
        checked = self.guardrails.check_input(session_id, message)
        if checked.blocked:
            raise InputValidationError(
                "; ".join(v.message for v in checked.violations if v.level == GuardrailLevel.BLOCK),
                checked.violations,
            )
        warnings = [v.message for v in checked.warnings]
        if warnings:
            logger.warning("Turn accepted with %d input warning(s)", len(warnings))

        text = message.strip()
        with self._session_lock(session_id):
            return self._handle_locked(session_id, text, warnings)

    def reset_session(self, session_id: str) -> int:
        with self._session_lock(session_id):
            return database.reset_session(session_id)

    # ── Pipeline ──────────────────────────────────────────────────────────────

    def _handle_locked(self, session_id: str, text: str, warnings: list[str]) -> TurnResponse:
        session = database.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        if database.get_credits_remaining(session_id) <= 0:
            raise TurnBudgetExhaustedError(session_id)

        assignment = database.get_assignment(session["assignment_id"])
        if assignment is None:
            raise AssignmentNotFoundError(f"Assignment '{session['assignment_id']}' not found.")

        if self.guardrails.check_content(text).blocked:
            response, trace = self._safety_turn(session_id)
        else:
            case = database.get_case_context(assignment["case_id"])
            decision = self.gate.decide(database.get_turns(session_id), text, case)
            if decision.phase == Phase.CLARIFY:
                response, trace = self._clarify_turn(session_id, decision), None
            elif decision.phase == Phase.CRITIQUE:
                response, trace = self._critique_turn(session_id, decision), None
            else:
                response, trace = self._direction_turn(session_id, text, case, assignment)

        remaining = database.commit_turn(
            session_id,
            text,
            response.content,
            response.phase,
            trace.to_json() if trace is not None else None,
            rubric=response.rubric,
        )
        logger.info("Turn committed: phase=%s credits_remaining=%d", response.phase.value, remaining)
        return response.model_copy(update={
            "credits_remaining": remaining,
            "credits_warning":   self._credits_warning(remaining),
            "warnings":          warnings,
        })

    def _safety_turn(self, session_id: str) -> tuple[TurnResponse, AgentTrace]:
        result = self.orchestrator.phi_block()
        trace = result.trace
        response = TurnResponse(
            session_id           = session_id,
            phase                = Phase.SAFETY,
            content              = SAFETY_CONTENT,
            questions            = [SAFETY_QUESTION],
            intent               = trace.intent,
            agents_activated     = trace.agents_activated,
            agent_responses      = trace.agent_responses,
            final_recommendation = trace.final_recommendation,
            escalation_path      = trace.escalation_path,
            credits_remaining    = 0,
        )
        return response, trace

    def _clarify_turn(self, session_id: str, decision: GateDecision) -> TurnResponse:
        return TurnResponse(
            session_id        = session_id,
            phase             = Phase.CLARIFY,
            content           = f"{CLARIFY_PREAMBLE} {' '.join(decision.questions)}",
            questions         = decision.questions,
            credits_remaining = 0,
            coaching_hint     = CLARIFY_HINT,
        )

    def _critique_turn(self, session_id: str, decision: GateDecision) -> TurnResponse:
        evaluation = decision.evaluation
        content = evaluation.feedback
        if decision.llm_critique:
            content += f"\n\n{decision.llm_critique}"
        return TurnResponse(
            session_id        = session_id,
            phase             = Phase.CRITIQUE,
            content           = content,
            questions         = decision.questions,
            rubric            = evaluation.rubric.labels(),
            credits_remaining = 0,
            coaching_hint     = CRITIQUE_HINT,
        )

    def _direction_turn(self, session_id, text, case, assignment) -> tuple[TurnResponse, AgentTrace]:
        directives = database.get_active_directives(assignment["id"])
        overrides = database.get_agent_overrides(assignment["case_id"])
        result = self.orchestrator.run(text, case, directives, overrides)
        trace = result.trace
        response = TurnResponse(
            session_id           = session_id,
            phase                = Phase.DIRECTION,
            content              = result.final_summary,
            intent               = trace.intent,
            agents_activated     = trace.agents_activated,
            agent_responses      = trace.agent_responses,
            final_recommendation = trace.final_recommendation,
            escalation_path      = trace.escalation_path,
            credits_remaining    = 0,
        )
        return response, trace
