"""
Exception hierarchy for the CaseCoach turn pipeline.

  CaseCoachError
   ├── InputValidationError        missing / empty fields; nothing mutated
   ├── SessionNotFoundError
   ├── AssignmentNotFoundError
   ├── TurnBudgetExhaustedError    remaining budget is zero
   └── GatewayError                text generation failed (always recovered)
        ├── GatewayUnavailableError   no credentials / mock mode forced
        └── GatewayRequestError       network, auth, quota, timeout, empty reply

Persistence failures are not wrapped: ``sqlite3.Error`` propagates to the
caller as a fatal error for that turn.
"""

from __future__ import annotations


class CaseCoachError(Exception):
    """Base class for all errors raised by case_coach."""


class InputValidationError(CaseCoachError):
    def __init__(self, message: str, violations: list | None = None) -> None:
        super().__init__(message)
        self.violations = violations or []


class SessionNotFoundError(CaseCoachError):
    pass


class AssignmentNotFoundError(CaseCoachError):
    pass


class TurnBudgetExhaustedError(CaseCoachError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "No credits remaining. You have used all your available turns "
            "for this assignment."
        )
        self.session_id = session_id


class GatewayError(CaseCoachError):
    """The text-generation call did not produce usable text."""

    reason = "error"


class GatewayUnavailableError(GatewayError):
    reason = "no-key"


class GatewayRequestError(GatewayError):
    def __init__(self, message: str, reason: str = "network-error") -> None:
        super().__init__(message)
        self.reason = reason
