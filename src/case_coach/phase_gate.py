"""
phase_gate.py – Clarify → Critique → Direction state machine
============================================================
The current phase is a pure function of the logged conversation: the phase
tag of the most recent phase-tagged system turn.  Nothing else is stored,
so the gate can never drift from the log.

  no tagged system turn  → clarify
  latest tag clarify     → run ClarificationAssessor; on pass fall through to
                           the ReasoningEvaluator in the SAME turn
  latest tag critique    → run ReasoningEvaluator; pass → direction
  any tag direction      → direction, permanently (terminal)

Safety turns (sensitive content blocked) carry the ``safety`` tag and are
ignored by the derivation: they neither advance nor regress the learner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from case_coach.coaching import (
    ClarificationAssessment,
    ClarificationAssessor,
    ReasoningEvaluation,
    ReasoningEvaluator,
)
from case_coach.models import CaseContext, Phase, Turn, TurnRole

logger = logging.getLogger(__name__)

_GATING_PHASES = (Phase.CLARIFY, Phase.CRITIQUE, Phase.DIRECTION)


def determine_phase(turns: Iterable[Turn]) -> Phase:
    """Derive the governing phase from an ordered turn log (O(n) scan)."""
    phase = Phase.CLARIFY
    for turn in turns:
        if turn.role != TurnRole.SYSTEM or turn.phase not in _GATING_PHASES:
            continue
        if turn.phase == Phase.DIRECTION:
            return Phase.DIRECTION
        phase = turn.phase
    return phase


@dataclass
class GateDecision:
    """Outcome of running the gate on one learner message."""
    entry_phase:   Phase                      # phase derived from history
    phase:         Phase                      # tag for this turn's system reply
    clarification: Optional[ClarificationAssessment] = None
    evaluation:    Optional[ReasoningEvaluation] = None
    questions:     list[str] = field(default_factory=list)
    llm_critique:  str = ""

    @property
    def unlocked(self) -> bool:
        return self.phase == Phase.DIRECTION

    @property
    def advanced(self) -> bool:
        """True when this message moved the learner past at least one gate."""
        order = list(_GATING_PHASES)
        return order.index(self.phase) > order.index(self.entry_phase)


class PhaseGate:
    def __init__(
        self,
        assessor: ClarificationAssessor | None = None,
        evaluator: ReasoningEvaluator | None = None,
    ) -> None:
        self.assessor  = assessor or ClarificationAssessor()
        self.evaluator = evaluator or ReasoningEvaluator()

    def decide(
        self,
        turns: Iterable[Turn],
        message: str,
        case: Optional[CaseContext] = None,
    ) -> GateDecision:
        entry = determine_phase(turns)
        if entry == Phase.DIRECTION:
            return GateDecision(entry_phase=entry, phase=Phase.DIRECTION)

        clarification = None
        if entry == Phase.CLARIFY:
            clarification = self.assessor.assess(message)
            if not clarification.passed:
                logger.debug("Clarify gate failed (score=%d)", clarification.score)
                return GateDecision(
                    entry_phase   = entry,
                    phase         = Phase.CLARIFY,
                    clarification = clarification,
                    questions     = self.assessor.build_questions(clarification),
                )

        evaluation = self.evaluator.evaluate(message, case)
        if not evaluation.sufficient:
            logger.debug("Critique gate failed (avg=%.2f)", evaluation.avg_score)
            return GateDecision(
                entry_phase   = entry,
                phase         = Phase.CRITIQUE,
                clarification = clarification,
                evaluation    = evaluation,
                questions     = list(evaluation.missing),
                llm_critique  = self.evaluator.llm_critique(message, case, evaluation.rubric),
            )

        logger.info("Direction unlocked (entered at %s)", entry.value)
        return GateDecision(
            entry_phase   = entry,
            phase         = Phase.DIRECTION,
            clarification = clarification,
            evaluation    = evaluation,
        )
