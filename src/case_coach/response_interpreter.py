"""
Turn an executive's free text into a recommendation signal and a confidence.

Both are lexical heuristics.  Confidence is an ordering signal between
executives, not a calibrated probability.
"""

from __future__ import annotations

import re

from case_coach.models import AgentRole, Intent, Recommendation

# Checked in order; the first match wins.
_SIGNAL_PATTERNS: list[tuple[Recommendation, re.Pattern]] = [
    (Recommendation.DO_NOT_PROCEED, re.compile(r"\b(do not proceed|block|blocked|cannot proceed)\b")),
    (Recommendation.PROCEED,        re.compile(r"\b(proceed|approve|support|endorse|green light)\b")),
    (Recommendation.HOLD,           re.compile(r"\b(hold|wait|pause|defer|delay)\b")),
    (Recommendation.NEED_MORE_DATA, re.compile(r"\b(need more data|more information|insufficient|clarify)\b")),
]

_UNCERTAIN = re.compile(r"\b(uncertain|unclear|need more|insufficient)\b", re.I)
_EXPLICIT  = re.compile(r"\b(recommend|strongly suggest|i advise)\b", re.I)

BASE_CONFIDENCE = 70
MIN_CONFIDENCE  = 20
MAX_CONFIDENCE  = 98

# (role, intents it owns) → baseline
_DOMAIN_BASELINES: list[tuple[AgentRole, tuple[Intent, ...] | None, int]] = [
    (AgentRole.CFO,                   (Intent.FINANCIAL,),                  85),
    (AgentRole.CMO,                   (Intent.CLINICAL,),                   85),
    (AgentRole.CHIEF_MEDICAL_OFFICER, (Intent.CLINICAL, Intent.COMPLIANCE), 88),
    (AgentRole.CEO,                   None,                                 82),
    (AgentRole.EMPLOYEE,              (Intent.OPERATIONAL,),                90),
]


def extract_recommendation(text: str) -> Recommendation:
    lower = (text or "").lower()
    for signal, pattern in _SIGNAL_PATTERNS:
        if pattern.search(lower):
            return signal
    return Recommendation.ADVISORY


def estimate_confidence(text: str, role: AgentRole, intent: Intent) -> int:
    score = BASE_CONFIDENCE
    for r, intents, baseline in _DOMAIN_BASELINES:
        if r == role and (intents is None or intent in intents):
            score = baseline
            break

    if _UNCERTAIN.search(text or ""):
        score -= 15
    if _EXPLICIT.search(text or ""):
        score += 8

    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, score))


def should_escalate(signal: Recommendation) -> bool:
    return signal in (Recommendation.HOLD, Recommendation.DO_NOT_PROCEED)
