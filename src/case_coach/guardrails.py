"""
guardrails.py – Input validation and sensitive-content safety gate
==================================================================
Implements the checks that wrap every learner turn before any coaching or
executive processing happens.

Guardrail levels
----------------
BLOCK   – Hard-stop: the turn is not processed further.
WARN    – Soft-stop: the turn proceeds with a logged warning.
INFO    – Advisory: informational note.

Guards implemented
------------------
Input guards (before budget is touched):
  G-01  Session id must be non-empty
  G-02  Message must be non-empty after trimming
  G-04  Very long messages (> 8000 chars) are flagged

Content guard (after validation, before the phase gate):
  G-03  Sensitive content: personally identifying health / financial data.
        ANY single pattern match is sufficient to block the turn.  False
        positives are acceptable; false negatives are the risk to avoid.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 8000


# ─── Enums & data models ─────────────────────────────────────────────────────

class GuardrailLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"
    INFO  = "INFO"


@dataclass
class GuardrailViolation:
    code:    str
    level:   GuardrailLevel
    message: str
    field:   str = ""   # which field triggered the violation


@dataclass
class GuardrailResult:
    passed:     bool
    violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(v.level == GuardrailLevel.BLOCK for v in self.violations)

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.WARN]

    def summary(self) -> str:
        if not self.violations:
            return "✅ All guardrails passed."
        icons = {GuardrailLevel.BLOCK: "🚫", GuardrailLevel.WARN: "⚠️", GuardrailLevel.INFO: "ℹ️"}
        return "\n".join(f"{icons[v.level]} [{v.code}] {v.message}" for v in self.violations)


def _result(violations: list[GuardrailViolation]) -> GuardrailResult:
    return GuardrailResult(
        passed=not any(v.level == GuardrailLevel.BLOCK for v in violations),
        violations=violations,
    )


# ─── Sensitive-content patterns ──────────────────────────────────────────────
# (guardrail_label, description, compiled_pattern); matched against the
# lower-cased message.

_PHI_PATTERNS: list[tuple[str, str, re.Pattern]] = [
    (
        "SSN",
        "Government ID number pattern (###-##-####) detected",
        re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    ),
    (
        "Date of birth",
        "Labelled date of birth detected",
        re.compile(r"\b(?:dob|date of birth)\s*[:\-]?\s*\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"),
    ),
    (
        "Medical record number",
        "Labelled medical record number detected",
        re.compile(r"\bmrn\s*[:\-]?\s*[a-z0-9\-]{4,}\b"),
    ),
    (
        "Account number",
        "Labelled account number of 8+ digits detected",
        re.compile(r"\b(?:account|acct)\s*(?:number|no)?\s*[:\-]?\s*\d{8,}\b"),
    ),
    (
        "Name with date of birth",
        "Personal name followed by a date-of-birth label detected",
        re.compile(r"\b[a-z]+\s+[a-z]+\b.*\b(?:dob|date of birth)\b"),
    ),
]


class SensitiveContentDetector:
    """G-03: pure predicate over message text; no history, no side effects."""

    def scan(self, text: str) -> list[str]:
        """Return the labels of every pattern class that matches *text*."""
        lower = (text or "").lower()
        return [label for label, _desc, pattern in _PHI_PATTERNS if pattern.search(lower)]

    def contains_sensitive(self, text: str) -> bool:
        lower = (text or "").lower()
        return any(pattern.search(lower) for _label, _desc, pattern in _PHI_PATTERNS)

    def check(self, text: str, field_name: str = "message") -> GuardrailResult:
        lower = (text or "").lower()
        violations = [
            GuardrailViolation(
                code="G-03", level=GuardrailLevel.BLOCK,
                field=field_name,
                message=f"{label}: {description}. Remove identifying details and resubmit.",
            )
            for label, description, pattern in _PHI_PATTERNS
            if pattern.search(lower)
        ]
        if violations:
            logger.warning("Sensitive content blocked (%d pattern class(es))", len(violations))
        return _result(violations)


_DETECTOR = SensitiveContentDetector()


def contains_phi(text: str) -> bool:
    """Module-level convenience used by the intent classifier and orchestrator."""
    return _DETECTOR.contains_sensitive(text)


# ─── Input validation ─────────────────────────────────────────────────────────

class InputGuardrails:
    """G-01, G-02, G-04: validates a raw chat request before any state is touched."""

    def check(self, session_id: str | None, message: str | None) -> GuardrailResult:
        violations: list[GuardrailViolation] = []

        # G-01 Session id
        if not session_id or not str(session_id).strip():
            violations.append(GuardrailViolation(
                code="G-01", level=GuardrailLevel.BLOCK,
                field="session_id",
                message="session_id is required.",
            ))

        # G-02 Message
        if not message or not message.strip():
            violations.append(GuardrailViolation(
                code="G-02", level=GuardrailLevel.BLOCK,
                field="message",
                message="message is required.",
            ))
        # G-04 Length
        elif len(message) > MAX_MESSAGE_CHARS:
            violations.append(GuardrailViolation(
                code="G-04", level=GuardrailLevel.WARN,
                field="message",
                message=(
                    f"Message is {len(message)} characters (> {MAX_MESSAGE_CHARS}). "
                    "Executives will see the full text but may answer less precisely."
                ),
            ))

        return _result(violations)


# ─── Convenience façade ───────────────────────────────────────────────────────

class GuardrailsPipeline:
    """
    Single entry-point for the per-turn guardrails.

    Usage::

        gp = GuardrailsPipeline()
        result = gp.check_input(session_id, message)   # G-01, G-02, G-04
        result = gp.check_content(message)             # G-03
    """

    def __init__(self):
        self.input_guard   = InputGuardrails()
        self.content_guard = SensitiveContentDetector()

    def check_input(self, session_id: str | None, message: str | None) -> GuardrailResult:
        return self.input_guard.check(session_id, message)

    def check_content(self, message: str) -> GuardrailResult:
        return self.content_guard.check(message)
