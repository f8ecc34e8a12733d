"""
orchestrator.py – Executive hierarchy run for one Direction turn
================================================================
Steps (strictly sequential; each executive is awaited before the next is
composed because the CEO reads everyone else's reply):

  1. Sensitive-content check → fixed two-role block, no gateway call
  2. classify_intent → route_to_agents
  3. For each role: compose prompt → gateway.generate → interpret signal and
     confidence → record escalation hop → accumulate text for the CEO
  4. Final recommendation = signal of the highest-authority executive
     (ties: the later invocation wins)
  5. Student-facing summary keyed off the final recommendation

Gateway failures never abort the turn: the role's reply is replaced by the
rule-based responder (mock_agents) and the response is flagged
``fallback=True``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from case_coach.agent_trace import AgentResponse, AgentTrace
from case_coach.errors import GatewayError
from case_coach.guardrails import SensitiveContentDetector
from case_coach.intent_classifier import classify_intent, route_to_agents
from case_coach.llm import GenerationResult, TextGenerationGateway
from case_coach.mock_agents import fallback_result
from case_coach.models import (
    AgentOverride,
    AgentRole,
    CaseContext,
    Directive,
    Intent,
    Recommendation,
    authority_of,
    display_name_of,
)
from case_coach.prompts import (
    DEFAULT_CASE_TEXT_LIMIT,
    build_agent_prompt,
    build_user_message,
    override_map,
)
from case_coach.response_interpreter import (
    estimate_confidence,
    extract_recommendation,
    should_escalate,
)

logger = logging.getLogger(__name__)


_SUMMARIES: dict[Recommendation, str] = {
    Recommendation.DO_NOT_PROCEED: (
        "Safety or compliance concerns were identified. Please address the flagged "
        "issues before proceeding."
    ),
    Recommendation.HOLD: (
        "The team recommends pausing to gather more evidence or address risks before "
        "committing to this direction."
    ),
    Recommendation.NEED_MORE_DATA: (
        "Additional information is needed before a recommendation can be made. See each "
        "team member's specific requests."
    ),
    Recommendation.ADVISORY: (
        "This is advisory guidance. Review the team's perspectives and formulate your "
        "own recommendation."
    ),
}

_PROCEED_TEAM = (
    "The executive team supports this direction. Review their individual perspectives "
    "for important conditions and monitoring requirements."
)
_PROCEED_INITIAL = (
    "This approach has initial support. Review the team's input for conditions and "
    "next steps."
)

PHI_SUMMARY = (
    "We cannot continue because the message appears to include sensitive personal "
    "health information. Please anonymize and resubmit."
)


def build_final_summary(recommendation: Recommendation, response_count: int) -> str:
    if recommendation == Recommendation.PROCEED:
        return _PROCEED_TEAM if response_count > 2 else _PROCEED_INITIAL
    return _SUMMARIES.get(recommendation, _SUMMARIES[Recommendation.ADVISORY])


def resolve_final_recommendation(responses: list[AgentResponse]) -> Recommendation:
    """Signal of the highest-authority executive; later invocation breaks ties."""
    if not responses:
        return Recommendation.ADVISORY
    _, top = max(enumerate(responses), key=lambda pair: (pair[1].authority_level, pair[0]))
    return top.recommendation


def _response(
    role: AgentRole,
    text: str,
    signal: Recommendation,
    confidence: int,
    **extra,
) -> AgentResponse:
    return AgentResponse(
        name            = role,
        display_name    = display_name_of(role),
        authority_level = authority_of(role),
        text            = text,
        recommendation  = signal,
        confidence      = confidence,
        escalate        = should_escalate(signal),
        **extra,
    )


@dataclass
class HierarchyResult:
    trace:         AgentTrace
    final_summary: str

    @property
    def final_recommendation(self) -> Recommendation:
        return self.trace.final_recommendation


@dataclass
class _RunState:
    """Accumulator carried across the ordered role list."""
    responses:       list[AgentResponse] = field(default_factory=list)
    escalation_path: list[str] = field(default_factory=list)
    prior_text:      str = ""
    previous:        Optional[AgentRole] = None


class HierarchyOrchestrator:
    """
    Runs the executive hierarchy for a single learner message.

    Usage::

        orchestrator = HierarchyOrchestrator(TextGenerationGateway())
        result = orchestrator.run(message, case, directives, overrides)
        result.trace.final_recommendation
    """

    def __init__(
        self,
        gateway: TextGenerationGateway | None = None,
        detector: SensitiveContentDetector | None = None,
        case_text_limit: int = DEFAULT_CASE_TEXT_LIMIT,
    ) -> None:
        self.gateway         = gateway or TextGenerationGateway()
        self.detector        = detector or SensitiveContentDetector()
        self.case_text_limit = case_text_limit

    # ── Safety short-circuit ──────────────────────────────────────────────────

    def phi_block(self) -> HierarchyResult:
        blocked = Recommendation.DO_NOT_PROCEED
        trace = AgentTrace(
            intent           = Intent.PHI_SENSITIVE,
            phi              = True,
            agents_activated = [AgentRole.EMPLOYEE, AgentRole.CHIEF_MEDICAL_OFFICER],
            agent_responses  = [
                _response(
                    AgentRole.EMPLOYEE,
                    "Potential PHI/PII detected. Cannot proceed until data is anonymized.",
                    blocked, 20,
                ),
                _response(
                    AgentRole.CHIEF_MEDICAL_OFFICER,
                    "Blocked: contains protected health information. Please remove all "
                    "identifying details and resubmit.",
                    blocked, 10,
                ),
            ],
            final_recommendation = blocked,
            escalation_path      = ["Employee → ChiefMedicalOfficer (PHI block)"],
        )
        return HierarchyResult(trace=trace, final_summary=PHI_SUMMARY)

    # ── One executive ─────────────────────────────────────────────────────────

    def _generate(
        self, role: AgentRole, system_prompt: str, user_msg: str, message: str,
    ) -> tuple[GenerationResult, bool]:
        try:
            return self.gateway.generate(system_prompt, user_msg), False
        except GatewayError as exc:
            logger.warning("Gateway failed for %s (%s); using fallback reply", role.value, exc.reason)
            return fallback_result(role, message, exc.reason), True

    def _invoke(
        self,
        state: _RunState,
        role: AgentRole,
        message: str,
        intent: Intent,
        case: Optional[CaseContext],
        directives: list[Directive],
        overrides: dict[AgentRole, str],
    ) -> _RunState:
        system_prompt = build_agent_prompt(
            role, case, directives, overrides.get(role), self.case_text_limit,
        )
        user_msg = build_user_message(role, message, state.prior_text)

        started = time.perf_counter()
        result, fell_back = self._generate(role, system_prompt, user_msg, message)
        elapsed_ms = (time.perf_counter() - started) * 1000

        signal = extract_recommendation(result.text)
        state.responses.append(_response(
            role,
            result.text,
            signal,
            estimate_confidence(result.text, role, intent),
            model       = result.model,
            tokens_used = result.tokens_used,
            fallback    = fell_back,
            duration_ms = round(elapsed_ms, 1),
        ))

        if state.previous is not None:
            state.escalation_path.append(
                f"{display_name_of(state.previous)} → {display_name_of(role)}"
            )
        if role != AgentRole.CEO:
            state.prior_text += f"[{display_name_of(role)}]: {result.text}\n\n"
        state.previous = role
        return state

    # ── Public interface ──────────────────────────────────────────────────────

    def run(
        self,
        message: str,
        case: Optional[CaseContext] = None,
        directives: Iterable[Directive] = (),
        overrides: Iterable[AgentOverride] = (),
    ) -> HierarchyResult:
        if self.detector.contains_sensitive(message):
            logger.warning("Hierarchy run blocked by sensitive-content gate")
            return self.phi_block()

        intent = classify_intent(message)
        roles  = route_to_agents(intent, message)
        directives = list(directives)
        role_overrides = override_map(overrides)

        state = _RunState()
        for role in roles:
            state = self._invoke(state, role, message, intent, case, directives, role_overrides)

        final = resolve_final_recommendation(state.responses)
        trace = AgentTrace(
            intent               = intent,
            phi                  = False,
            agents_activated     = roles,
            agent_responses      = state.responses,
            final_recommendation = final,
            escalation_path      = state.escalation_path,
        )
        if trace.fallback_used:
            logger.info("Turn completed with fallback replies for %s",
                        [r.name.value for r in state.responses if r.fallback])
        return HierarchyResult(trace=trace, final_summary=build_final_summary(final, len(state.responses)))
