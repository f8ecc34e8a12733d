"""
Tests for executive prompt composition.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from factories import make_case, make_directive

from case_coach.models import AgentOverride, AgentRole
from case_coach.prompts import (
    BASE_PROMPTS,
    TRUNCATION_MARKER,
    build_agent_prompt,
    build_user_message,
    override_map,
    truncate_case_text,
)


class TestTruncation:
    def test_short_text_untouched(self):
        assert truncate_case_text("abc", 10) == "abc"

    def test_long_text_cut_at_limit(self):
        out = truncate_case_text("x" * 50, 10)
        assert out == "x" * 10 + TRUNCATION_MARKER


class TestBuildAgentPrompt:
    def test_base_only(self):
        assert build_agent_prompt(AgentRole.CFO) == BASE_PROMPTS[AgentRole.CFO]

    def test_section_order(self):
        prompt = build_agent_prompt(
            AgentRole.CFO,
            make_case(background_text="Apex background"),
            [make_directive("Focus on payback", n=1), make_directive("Cite the MLR", n=2)],
            "Be extra skeptical about vendor claims",
        )
        base   = prompt.index("Chief Financial Officer")
        case   = prompt.index("=== CASE CONTEXT ===")
        extra  = prompt.index("Be extra skeptical")
        first  = prompt.index("1. Focus on payback")
        second = prompt.index("2. Cite the MLR")
        assert base < case < extra < first < second

    def test_case_section_contents(self):
        prompt = build_agent_prompt(AgentRole.CMO, make_case(background_text="Apex background"))
        assert "Title: Apex Health Plan (Medicare Advantage)" in prompt
        assert "- Mlr Current: 91" in prompt
        assert "- Margin Bps Target: 150-250" in prompt
        assert "- No heavy member abrasion" in prompt
        assert "Full Case Text:\nApex background" in prompt

    def test_background_truncated(self):
        prompt = build_agent_prompt(AgentRole.CEO, make_case(background_text="y" * 100), text_limit=20)
        assert "y" * 20 + TRUNCATION_MARKER in prompt
        assert "y" * 21 not in prompt

    def test_inactive_directives_skipped_and_numbering_dense(self):
        prompt = build_agent_prompt(
            AgentRole.EMPLOYEE,
            directives=[
                make_directive("old rule", active=False, n=1),
                make_directive("current rule", n=2),
            ],
        )
        assert "old rule" not in prompt
        assert "1. current rule" in prompt


class TestOverrides:
    def test_last_override_wins(self):
        overrides = [
            AgentOverride("c-1", AgentRole.CFO, "first"),
            AgentOverride("c-1", AgentRole.CFO, "second"),
            AgentOverride("c-1", AgentRole.CMO, ""),
        ]
        assert override_map(overrides) == {AgentRole.CFO: "second"}


class TestBuildUserMessage:
    def test_non_ceo_gets_raw_message(self):
        assert build_user_message(AgentRole.CFO, "hi", "[CFO]: earlier") == "hi"

    def test_ceo_without_prior_gets_raw_message(self):
        assert build_user_message(AgentRole.CEO, "hi") == "hi"

    def test_ceo_synthesis_block(self):
        msg = build_user_message(AgentRole.CEO, "hi", "[CFO]: need numbers\n\n")
        assert msg.startswith("Student question: hi")
        assert "=== OTHER EXECUTIVE INPUTS ===" in msg
        assert "[CFO]: need numbers" in msg
