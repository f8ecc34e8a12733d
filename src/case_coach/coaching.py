"""
coaching.py – Clarify and Critique evaluators
=============================================
Learners must show a reasoned position (Clarify) and then reasoning of
sufficient quality (Critique) before the executive team is unlocked.

ClarificationAssessor
    Lexical check for a formed opinion: rationale, risk, evidence and a
    minimum length.  Passes iff rationale AND length are present.

ReasoningEvaluator
    Scores the message on the four-dimension rubric (problem framing,
    evidence use, tradeoff quality, risk & compliance).  Sufficient iff the
    mean score ≥ 1.5 and no dimension scores 0.  Optionally asks the
    text-generation gateway for two Socratic follow-up questions; that call
    is best-effort and never blocks the lexical feedback.
"""

from __future__ import annotations

import json
import logging
import re
import textwrap
from dataclasses import dataclass, field
from typing import Optional

from case_coach.errors import GatewayError
from case_coach.models import CaseContext, Rubric, RubricLevel

logger = logging.getLogger(__name__)

MIN_SUBSTANCE_WORDS = 20
SUFFICIENT_AVERAGE  = 1.5
SUFFICIENT_MINIMUM  = 1


# ─────────────────────────────────────────────────────────────────────────────
# Phase 1 – CLARIFY
# ─────────────────────────────────────────────────────────────────────────────

_RATIONALE = re.compile(
    r"\b(because|since|therefore|my reasoning|i think|i believe|my rationale"
    r"|i recommend|my approach|i propose|i would|i suggest)\b"
)
_RISK = re.compile(
    r"\b(risks?|downsides?|concern(?:s|ed)?|worr(?:y|ied|ies)|problems?|challenges?"
    r"|threats?|limitations?|drawbacks?|issues?)\b"
)
_EVIDENCE = re.compile(
    r"(\d+(?:\.\d+)?\s?%"
    r"|\$\s?\d"
    r"|\b\d+(?:\.\d+)?\s*(?:million|billion|m|b|k|bps|basis)\b"
    r"|\b(?:mlr|roi|ebitda|admissions|benchmarks?|data|evidence|study|metrics?)\b)"
)


@dataclass
class ClarificationAssessment:
    has_rationale: bool
    has_risk:      bool
    has_evidence:  bool
    has_substance: bool
    word_count:    int

    @property
    def passed(self) -> bool:
        return self.has_rationale and self.has_substance

    @property
    def score(self) -> int:
        return sum([self.has_rationale, self.has_risk, self.has_evidence, self.has_substance])


class ClarificationAssessor:
    """Does the learner have a formed, reasoned position?"""

    def assess(self, message: str) -> ClarificationAssessment:
        lower = message.lower()
        words = len(message.split())
        return ClarificationAssessment(
            has_rationale = bool(_RATIONALE.search(lower)),
            has_risk      = bool(_RISK.search(lower)),
            has_evidence  = bool(_EVIDENCE.search(lower)),
            has_substance = words >= MIN_SUBSTANCE_WORDS,
            word_count    = words,
        )

    def build_questions(self, assessment: ClarificationAssessment) -> list[str]:
        """One clarifying question per unmet criterion; never empty."""
        questions: list[str] = []
        if not assessment.has_rationale:
            questions.append(
                'What is your proposed approach? Start with "I recommend..." '
                'or "I think we should..."'
            )
        if not assessment.has_risk:
            questions.append("What is one key risk or concern with your recommendation?")
        if not assessment.has_evidence:
            questions.append(
                "Can you support your reasoning with a specific number from the case "
                "(e.g., MLR, budget, admissions)?"
            )
        if not assessment.has_substance:
            questions.append(
                "Can you elaborate on your reasoning? Try to write at least 2-3 sentences."
            )
        return questions or ["Tell me more about your reasoning."]


# ─────────────────────────────────────────────────────────────────────────────
# Phase 2 – CRITIQUE
# ─────────────────────────────────────────────────────────────────────────────

DIMENSION_LEXICONS: dict[str, tuple[str, ...]] = {
    "problem_framing": (
        "problem", "issue", "challenge", "question", "decision", "objective",
        "situation", "context", "background", "currently", "facing",
    ),
    "evidence_use": (
        "data", "evidence", "study", "report", "number", "statistic",
        "mlr", "roi", "ebitda", "benchmark", "metric", "%", "$", "million", "billion",
    ),
    "tradeoff_quality": (
        "tradeoff", "trade-off", "however", "on the other hand", "versus", "balanced",
        "advantage", "disadvantage", "pro", "con", "compare", "alternatively",
        "downside", "upside",
    ),
    "risk_compliance": (
        "risk", "compliance", "regulatory", "legal", "safety", "cms", "stars",
        "violation", "penalty", "audit", "standard", "requirement", "patient safety",
    ),
}

DIMENSION_INSTRUCTIONS: dict[str, str] = {
    "problem_framing":  "Clearly define the problem or decision at hand",
    "evidence_use":     "Support your argument with specific data from the case",
    "tradeoff_quality": "Discuss at least one tradeoff or counterargument",
    "risk_compliance":  "Address compliance or risk considerations",
}


# Short tokens that also open unrelated words ("problem", "concern").
_WHOLE_WORD_KEYWORDS = frozenset({"pro", "con", "cms"})


def _keyword_pattern(keyword: str) -> re.Pattern:
    # Symbols match anywhere; words match at a word start with any suffix.
    if not keyword[0].isalnum():
        return re.compile(re.escape(keyword))
    if keyword in _WHOLE_WORD_KEYWORDS:
        return re.compile(rf"(?<!\w){re.escape(keyword)}s?(?!\w)")
    return re.compile(rf"(?<!\w){re.escape(keyword)}")


_COMPILED_LEXICONS: dict[str, list[re.Pattern]] = {
    dim: [_keyword_pattern(kw) for kw in keywords]
    for dim, keywords in DIMENSION_LEXICONS.items()
}


def count_hits(text: str, patterns: list[re.Pattern]) -> int:
    return sum(1 for p in patterns if p.search(text))


def score_hits(hits: int) -> RubricLevel:
    if hits == 0:
        return RubricLevel.WEAK
    if hits <= 2:
        return RubricLevel.DEVELOPING
    if hits <= 4:
        return RubricLevel.ADEQUATE
    return RubricLevel.STRONG


@dataclass
class ReasoningEvaluation:
    rubric:     Rubric
    sufficient: bool
    missing:    list[str] = field(default_factory=list)
    feedback:   str = ""

    @property
    def avg_score(self) -> float:
        return self.rubric.average


def _dimension_title(dim: str) -> str:
    return dim.replace("_", " ").title()


def build_critique_feedback(rubric: Rubric, sufficient: bool) -> str:
    parts = [
        f"**{_dimension_title(dim)}**: {level.label.title()}"
        for dim, level in rubric.scores().items()
    ]
    if sufficient:
        return f"Your reasoning is strong enough to proceed. {' · '.join(parts)}"
    return (
        "Your reasoning needs strengthening before the executive team can weigh in. "
        + " · ".join(parts)
    )


_CRITIQUE_SYSTEM_PROMPT = textwrap.dedent("""
    You are a Socratic business coach on the CaseCoach AI platform. Your job is to
    critique a student's reasoning and push them to think deeper. Be encouraging
    but rigorous.

    {case_block}The student's current rubric scores are:
    - Problem Framing: {problem_framing}/3
    - Evidence Use: {evidence_use}/3
    - Tradeoff Quality: {tradeoff_quality}/3
    - Risk & Compliance: {risk_compliance}/3

    Give exactly 2 specific, actionable questions that would improve their weakest
    areas. Be brief and direct.
""").strip()


class ReasoningEvaluator:
    """
    Four-dimension rubric scorer.

    *gateway* is optional; when present, failed evaluations can be enriched
    with two LLM-generated follow-up questions via ``llm_critique``.
    """

    def __init__(self, gateway=None) -> None:
        self._gateway = gateway

    def score(self, message: str) -> Rubric:
        lower = message.lower()
        levels = {
            dim: score_hits(count_hits(lower, patterns))
            for dim, patterns in _COMPILED_LEXICONS.items()
        }
        return Rubric(**levels)

    def evaluate(self, message: str, case: Optional[CaseContext] = None) -> ReasoningEvaluation:
        rubric = self.score(message)
        sufficient = rubric.average >= SUFFICIENT_AVERAGE and rubric.minimum >= SUFFICIENT_MINIMUM
        missing = [
            DIMENSION_INSTRUCTIONS[dim]
            for dim, level in rubric.scores().items()
            if level < SUFFICIENT_AVERAGE
        ]
        logger.debug("Rubric %s → sufficient=%s", rubric.labels(), sufficient)
        return ReasoningEvaluation(
            rubric=rubric,
            sufficient=sufficient,
            missing=missing,
            feedback=build_critique_feedback(rubric, sufficient),
        )

    def build_critique_prompt(self, case: Optional[CaseContext], rubric: Rubric) -> str:
        case_block = ""
        if case is not None and case.background_text:
            case_block = f"Case: {case.title}\nKPIs: {json.dumps(case.kpis)}\n\n"
        return _CRITIQUE_SYSTEM_PROMPT.format(
            case_block=case_block,
            **{dim: int(level) for dim, level in rubric.scores().items()},
        )

    def llm_critique(self, message: str, case: Optional[CaseContext], rubric: Rubric) -> str:
        """Best-effort follow-up questions; '' when no gateway or the call fails."""
        if self._gateway is None:
            return ""
        try:
            result = self._gateway.generate(
                self.build_critique_prompt(case, rubric),
                f"Here is the student's reasoning:\n\n{message}",
            )
        except GatewayError as exc:
            logger.info("LLM critique skipped: %s", exc)
            return ""
        return result.text.strip()
