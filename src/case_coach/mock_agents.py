"""
mock_agents.py – Rule-based executive replies (no LLM needed).

Used whenever the text-generation gateway is unconfigured or fails, so a
Direction turn always completes with a full trace.  Each role has a generic
reply and a keyword-triggered variant; the style mirrors what the persona
prompt asks the model for.
"""

from __future__ import annotations

import re

from case_coach.llm import GenerationResult
from case_coach.models import AgentRole

# role → (trigger pattern, triggered reply, default reply)
_FALLBACKS: dict[AgentRole, tuple[re.Pattern, str, str]] = {
    AgentRole.CFO: (
        re.compile(r"\b(cost|budget|roi|margin|revenue)\b"),
        "From a financial perspective, I need explicit cost and benefit assumptions with "
        "clear units (e.g., $5M, $900K) before I can evaluate ROI against our budget "
        "constraints and payback timeline. Please provide specific numbers.",
        "I need quantified financial assumptions (cost, expected benefit, and timeline) "
        "to assess this proposal against our budget and ROI requirements.",
    ),
    AgentRole.CMO: (
        re.compile(r"\b(provider|member|trust|satisfaction)\b"),
        "This touches provider and member relationships. I recommend a phased approach "
        "with clear communication plans to stakeholders before implementation. Provider "
        "trust is essential and must be protected.",
        "From a stakeholder perspective, we need to ensure any changes are communicated "
        "effectively and don't risk provider or member relationships. I recommend a "
        "phased rollout.",
    ),
    AgentRole.CHIEF_MEDICAL_OFFICER: (
        re.compile(r"\b(safety|clinical|quality|compliance|patient)\b"),
        "Clinical quality and patient safety are non-negotiable. Any proposed intervention "
        "needs evidence-based support and should be piloted before scaling. I recommend "
        "reviewing relevant quality benchmarks.",
        "I need to evaluate the clinical implications of this proposal. Please ensure it "
        "aligns with quality standards and doesn't compromise patient safety or regulatory "
        "compliance.",
    ),
    AgentRole.EMPLOYEE: (
        re.compile(r"\b(approve|budget|invest|fund|decision)\b"),
        "This requires executive review. I would flag this for CFO input on financial "
        "feasibility and CMO/CMedO input on stakeholder and clinical impact. Let me triage "
        "and escalate appropriately.",
        "I can help scope the operational aspects. Let me assess what resources, timeline, "
        "and stakeholders are involved, and determine if executive sign-off is needed.",
    ),
}

_CEO_FALLBACK = (
    "After weighing all executive inputs, I recommend a measured approach. We should "
    "proceed with a limited pilot that addresses financial requirements while protecting "
    "clinical quality and stakeholder relationships. The biggest risk needs active "
    "monitoring with clear checkpoints."
)


def fallback_text(role: AgentRole, message: str) -> str:
    if role == AgentRole.CEO:
        return _CEO_FALLBACK
    trigger, triggered, default = _FALLBACKS[role]
    return triggered if trigger.search(message.lower()) else default


def fallback_result(role: AgentRole, message: str, reason: str = "error") -> GenerationResult:
    """A GenerationResult tagged ``fallback-<reason>`` with zero tokens."""
    return GenerationResult(
        text=fallback_text(role, message),
        model=f"fallback-{reason}",
        tokens_used=0,
    )
