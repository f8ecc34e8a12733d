"""
intent_classifier.py – Intent classification and executive routing
===================================================================
classify_intent
    Ordered keyword tests; the first match wins.  Safety and escalation
    always pre-empt topical intents:

      phi_sensitive → escalation → exec_decision → compliance → financial
      → clinical → strategic → operational → general

route_to_agents
    Intent (+ secondary keyword checks on the same message) → ordered,
    de-duplicated executive list, always starting with the Employee.
    Keeps agent invocation (and gateway cost) proportional to how many
    domains plausibly weigh in.
"""

from __future__ import annotations

import logging
import re

from case_coach.guardrails import contains_phi
from case_coach.models import AgentRole, Intent

logger = logging.getLogger(__name__)


# ─── Intent patterns (priority order; PHI is checked first, separately) ─────

_INTENT_PATTERNS: list[tuple[Intent, re.Pattern]] = [
    (Intent.ESCALATION, re.compile(
        r"\b(urgent|escalate|immediate|critical|blocker|emergency|asap)\b")),
    (Intent.EXEC_DECISION, re.compile(
        r"\b(should we|should|approve|go ahead|proceed|pursue|fund|funding|invest"
        r"|decision|sustainability|strategy)\b")),
    (Intent.COMPLIANCE, re.compile(
        r"\b(policy|manual|document|sop|procedure|hipaa|compliance|regulation)\b")),
    (Intent.FINANCIAL, re.compile(
        r"\b(budget|cost|roi|price|margin|revenue|profit|forecast|spend|pmpy|pmpm"
        r"|ebitda|investment)\b")),
    (Intent.CLINICAL, re.compile(
        r"\b(patient|clinical|triage|diagnosis|medication|care|provider|member"
        r"|admissions|quality|safety)\b")),
    (Intent.STRATEGIC, re.compile(
        r"\b(strategic|market|positioning|roadmap|growth|launch|board|bid cycle|competitive)\b")),
    (Intent.OPERATIONAL, re.compile(
        r"\b(how|process|steps|workflow|who|when|where|timeline|implement)\b")),
]

# Secondary checks used by the router
_STRATEGIC_APPROVAL = re.compile(r"\b(strategic|decision|approve|invest|fund)\b", re.I)
_RELATIONSHIP       = re.compile(r"\b(member|provider|trust|satisfaction|network)\b", re.I)
_BUDGET             = re.compile(r"\b(budget|cost|roi)\b", re.I)
_CLINICAL           = re.compile(r"\b(patient|clinical|safety)\b", re.I)


def classify_intent(message: str = "") -> Intent:
    text = (message or "").lower()
    if contains_phi(text):
        return Intent.PHI_SENSITIVE
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return Intent.GENERAL


_FULL_BOARD = [AgentRole.CFO, AgentRole.CMO, AgentRole.CEO]


def route_to_agents(intent: Intent, message: str = "") -> list[AgentRole]:
    """Return the executives to invoke, in invocation order."""
    agents: list[AgentRole] = [AgentRole.EMPLOYEE]

    if intent == Intent.PHI_SENSITIVE:
        agents.append(AgentRole.CHIEF_MEDICAL_OFFICER)

    elif intent in (Intent.ESCALATION, Intent.EXEC_DECISION, Intent.STRATEGIC):
        agents.extend(_FULL_BOARD)

    elif intent == Intent.FINANCIAL:
        agents.append(AgentRole.CFO)
        if _STRATEGIC_APPROVAL.search(message):
            agents.append(AgentRole.CEO)

    elif intent == Intent.CLINICAL:
        agents.append(AgentRole.CHIEF_MEDICAL_OFFICER)
        if _RELATIONSHIP.search(message):
            agents.append(AgentRole.CMO)

    elif intent == Intent.COMPLIANCE:
        # Compliance usually carries financial exposure too
        agents.extend([AgentRole.CHIEF_MEDICAL_OFFICER, AgentRole.CFO])

    elif intent == Intent.OPERATIONAL:
        if _BUDGET.search(message):
            agents.append(AgentRole.CFO)
        if _CLINICAL.search(message):
            agents.append(AgentRole.CHIEF_MEDICAL_OFFICER)

    routed = list(dict.fromkeys(agents))
    logger.debug("Intent %s routed to %s", intent.value, [r.value for r in routed])
    return routed
