"""
Tests for recommendation-signal extraction and confidence estimation.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from case_coach.models import AgentRole, Intent, Recommendation
from case_coach.response_interpreter import (
    estimate_confidence,
    extract_recommendation,
    should_escalate,
)


class TestExtractRecommendation:
    @pytest.mark.parametrize("text,signal", [
        ("We cannot proceed with this plan.", Recommendation.DO_NOT_PROCEED),
        ("I would block this and then proceed later.", Recommendation.DO_NOT_PROCEED),
        ("I approve the pilot.", Recommendation.PROCEED),
        ("Let's pause and defer until Q3.", Recommendation.HOLD),
        ("The data is insufficient.", Recommendation.NEED_MORE_DATA),
        ("Interesting perspective.", Recommendation.ADVISORY),
        ("", Recommendation.ADVISORY),
    ])
    def test_signals(self, text, signal):
        assert extract_recommendation(text) == signal

    def test_proceed_outranks_hold(self):
        assert extract_recommendation("Hold the rollout but proceed with the pilot") == Recommendation.PROCEED


class TestEstimateConfidence:
    def test_baseline(self):
        assert estimate_confidence("plain text", AgentRole.CFO, Intent.CLINICAL) == 70

    @pytest.mark.parametrize("role,intent,expected", [
        (AgentRole.CFO,                   Intent.FINANCIAL,   85),
        (AgentRole.CMO,                   Intent.CLINICAL,    85),
        (AgentRole.CHIEF_MEDICAL_OFFICER, Intent.CLINICAL,    88),
        (AgentRole.CHIEF_MEDICAL_OFFICER, Intent.COMPLIANCE,  88),
        (AgentRole.CEO,                   Intent.GENERAL,     82),
        (AgentRole.EMPLOYEE,              Intent.OPERATIONAL, 90),
    ])
    def test_domain_baselines(self, role, intent, expected):
        assert estimate_confidence("plain text", role, intent) == expected

    def test_uncertainty_lowers(self):
        assert estimate_confidence("This is unclear.", AgentRole.CFO, Intent.GENERAL) == 55

    def test_explicit_recommendation_raises(self):
        assert estimate_confidence("I recommend it.", AgentRole.CFO, Intent.GENERAL) == 78

    def test_clamped_high(self):
        assert estimate_confidence("I recommend it.", AgentRole.EMPLOYEE, Intent.OPERATIONAL) == 98

    @pytest.mark.parametrize("role", list(AgentRole))
    @pytest.mark.parametrize("intent", list(Intent))
    def test_always_in_range(self, role, intent):
        for text in ("", "unclear, need more", "I recommend this strongly suggest"):
            assert 20 <= estimate_confidence(text, role, intent) <= 98


def test_escalate_only_for_hold_and_block():
    assert should_escalate(Recommendation.HOLD)
    assert should_escalate(Recommendation.DO_NOT_PROCEED)
    assert not should_escalate(Recommendation.PROCEED)
    assert not should_escalate(Recommendation.NEED_MORE_DATA)
    assert not should_escalate(Recommendation.ADVISORY)
