"""
Tests for the Clarify assessor and the four-dimension reasoning rubric.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from factories import CLARIFY_PASS_MESSAGE, SHORT_MESSAGE, STRONG_MESSAGE, FakeGateway, make_case

from case_coach.coaching import (
    DIMENSION_LEXICONS,
    ClarificationAssessor,
    ReasoningEvaluator,
    count_hits,
    score_hits,
    _COMPILED_LEXICONS,
)
from case_coach.errors import GatewayRequestError
from case_coach.models import Rubric, RubricLevel


class TestClarificationAssessor:
    def setup_method(self):
        self.assessor = ClarificationAssessor()

    def test_short_message_fails_on_length(self):
        result = self.assessor.assess(SHORT_MESSAGE)
        assert result.has_rationale
        assert not result.has_substance
        assert not result.passed

    def test_short_message_gets_several_questions(self):
        questions = self.assessor.build_questions(self.assessor.assess(SHORT_MESSAGE))
        assert len(questions) >= 2

    def test_full_position_passes(self):
        result = self.assessor.assess(CLARIFY_PASS_MESSAGE)
        assert result.word_count == 25
        assert (result.has_rationale, result.has_risk, result.has_evidence, result.has_substance) == (
            True, True, True, True,
        )
        assert result.passed
        assert result.score == 4

    def test_long_message_without_rationale_fails(self):
        text = " ".join(["telehealth access matters for members in rural counties"] * 3)
        result = self.assessor.assess(text)
        assert result.has_substance
        assert not result.has_rationale
        assert not result.passed

    def test_questions_never_empty(self):
        result = self.assessor.assess(STRONG_MESSAGE)
        assert self.assessor.build_questions(result) == ["Tell me more about your reasoning."]

    @pytest.mark.parametrize("text", ["MLR is 91%", "a $5M budget", "150 bps of margin", "the benchmark"])
    def test_evidence_forms(self, text):
        assert self.assessor.assess(text).has_evidence


class TestHitScoring:
    @pytest.mark.parametrize("hits,level", [
        (0, RubricLevel.WEAK),
        (1, RubricLevel.DEVELOPING),
        (2, RubricLevel.DEVELOPING),
        (3, RubricLevel.ADEQUATE),
        (4, RubricLevel.ADEQUATE),
        (5, RubricLevel.STRONG),
        (9, RubricLevel.STRONG),
    ])
    def test_score_hits(self, hits, level):
        assert score_hits(hits) == level

    def test_whole_word_matching(self):
        # "problem" must not count as a "pro" hit for tradeoffs
        assert count_hits("the problem is clear", _COMPILED_LEXICONS["tradeoff_quality"]) == 0

    def test_plural_matches(self):
        assert count_hits("several risks remain", _COMPILED_LEXICONS["risk_compliance"]) == 1

    def test_symbol_keywords_match_inside_tokens(self):
        assert count_hits("a 4% gap at $2m", _COMPILED_LEXICONS["evidence_use"]) == 2

    @pytest.mark.parametrize("text,dim", [
        ("the plan is risky", "risk_compliance"),
        ("we are legally exposed", "risk_compliance"),
        ("the reported figure", "evidence_use"),
        ("compared with peers", "tradeoff_quality"),
        ("needs auditing", "risk_compliance"),
    ])
    def test_inflected_forms_count(self, text, dim):
        assert count_hits(text, _COMPILED_LEXICONS[dim]) == 1

    @pytest.mark.parametrize("text", ["a real concern", "we considered it", "a prototype"])
    def test_short_tokens_need_whole_words(self, text):
        assert count_hits(text, _COMPILED_LEXICONS["tradeoff_quality"]) == 0

    def test_pros_and_cons_count(self):
        assert count_hits("the pros and cons", _COMPILED_LEXICONS["tradeoff_quality"]) == 2


class TestReasoningEvaluator:
    def setup_method(self):
        self.evaluator = ReasoningEvaluator()

    def test_strong_message_sufficient(self):
        evaluation = self.evaluator.evaluate(STRONG_MESSAGE)
        assert evaluation.sufficient
        assert evaluation.avg_score >= 1.5
        assert evaluation.rubric.minimum >= 1
        assert "strong enough to proceed" in evaluation.feedback

    def test_inflected_reasoning_is_sufficient(self):
        text = (
            "The decision we are currently facing is how to close the MLR gap. Our data shows a "
            "4% gap to benchmark in the reported number. However, compared with peers and "
            "balancing access, the plan is risky, legally exposed and needs auditing."
        )
        evaluation = self.evaluator.evaluate(text)
        assert evaluation.rubric.risk_compliance == RubricLevel.ADEQUATE
        assert evaluation.rubric.tradeoff_quality == RubricLevel.DEVELOPING
        assert evaluation.sufficient

    def test_no_lexicon_hits_is_never_sufficient(self):
        evaluation = self.evaluator.evaluate("hello")
        assert evaluation.rubric.labels() == {
            "problem_framing":  "weak",
            "evidence_use":     "weak",
            "tradeoff_quality": "weak",
            "risk_compliance":  "weak",
        }
        assert evaluation.avg_score == 0
        assert not evaluation.sufficient
        assert len(evaluation.missing) == 4

    def test_missing_dimension_blocks_even_with_high_average(self):
        evaluation = self.evaluator.evaluate(CLARIFY_PASS_MESSAGE)
        assert evaluation.rubric.problem_framing == RubricLevel.WEAK
        assert not evaluation.sufficient
        assert "Clearly define the problem or decision at hand" in evaluation.missing

    def test_scores_stay_in_range(self):
        text = " ".join(kw for kws in DIMENSION_LEXICONS.values() for kw in kws)
        for level in self.evaluator.score(text).scores().values():
            assert 0 <= int(level) <= 3

    def test_feedback_lists_every_dimension(self):
        feedback = self.evaluator.evaluate("hello there").feedback
        for title in ("Problem Framing", "Evidence Use", "Tradeoff Quality", "Risk Compliance"):
            assert title in feedback

    def test_rubric_labels(self):
        rubric = Rubric(RubricLevel.WEAK, RubricLevel.DEVELOPING, RubricLevel.ADEQUATE, RubricLevel.STRONG)
        assert rubric.labels() == {
            "problem_framing":  "weak",
            "evidence_use":     "developing",
            "tradeoff_quality": "adequate",
            "risk_compliance":  "strong",
        }
        assert rubric.average == 1.5
        assert rubric.minimum == 0


class TestLLMCritique:
    def test_no_gateway_returns_empty(self):
        evaluator = ReasoningEvaluator()
        rubric = evaluator.score("hello")
        assert evaluator.llm_critique("hello", None, rubric) == ""

    def test_gateway_text_returned(self):
        gateway = FakeGateway(default="  1. What is the payback period?\n2. Who owns the risk?  ")
        evaluator = ReasoningEvaluator(gateway)
        rubric = evaluator.score("hello")
        assert evaluator.llm_critique("hello", make_case(), rubric).startswith("1. What is")
        system_prompt, user_msg = gateway.calls[0]
        assert "Problem Framing: 0/3" in system_prompt
        assert "hello" in user_msg

    def test_gateway_failure_is_swallowed(self):
        gateway = FakeGateway(fail="all", error=GatewayRequestError("boom", reason="timeout"))
        evaluator = ReasoningEvaluator(gateway)
        assert evaluator.llm_critique("hello", None, evaluator.score("hello")) == ""

    def test_prompt_includes_case_when_background_present(self):
        evaluator = ReasoningEvaluator()
        rubric = evaluator.score("hello")
        prompt = evaluator.build_critique_prompt(make_case(background_text="Long case text"), rubric)
        assert "Apex Health Plan" in prompt
        assert 'KPIs: {"mlr_current": 91' in prompt
