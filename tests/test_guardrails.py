"""
Tests for the per-turn guardrails: input validation and the sensitive-content gate.
Run: python -m pytest tests/ -v
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from case_coach.guardrails import (
    MAX_MESSAGE_CHARS,
    GuardrailLevel,
    GuardrailsPipeline,
    InputGuardrails,
    SensitiveContentDetector,
    contains_phi,
)


class TestG03SensitiveContent:
    """G-03: any single pattern class is enough to block."""

    def setup_method(self):
        self.detector = SensitiveContentDetector()

    def test_ssn_shape_detected(self):
        assert self.detector.contains_sensitive("Member 123-45-6789 called about a claim")

    def test_labelled_dob_detected(self):
        assert self.detector.contains_sensitive("Patient DOB: 04/12/1958 was readmitted")

    def test_mrn_detected(self):
        assert self.detector.contains_sensitive("See MRN: A12345 for the admission history")

    def test_account_number_detected(self):
        assert self.detector.contains_sensitive("Refund account number 123456789 today")

    def test_name_with_dob_detected(self):
        assert "Name with date of birth" in self.detector.scan("John Smith, date of birth on file")

    def test_case_metrics_not_flagged(self):
        text = "MLR is 91% versus an 87% target and admissions are 120 per 1000 members."
        assert not self.detector.contains_sensitive(text)
        assert self.detector.scan(text) == []

    def test_check_blocks_with_g03(self):
        result = self.detector.check("SSN 987-65-4321")
        assert result.blocked
        assert not result.passed
        assert [v.code for v in result.violations] == ["G-03"]
        assert result.violations[0].level == GuardrailLevel.BLOCK

    def test_one_violation_per_matching_class(self):
        result = self.detector.check("SSN 987-65-4321, MRN: 99887766")
        assert len(result.violations) == 2

    def test_module_level_helper(self):
        assert contains_phi("ssn 111-22-3333")
        assert not contains_phi("budget of $12 million")


class TestInputGuardrails:
    def setup_method(self):
        self.guard = InputGuardrails()

    def test_valid_input_passes(self):
        result = self.guard.check("sess-1", "I recommend a pilot")
        assert result.passed
        assert result.violations == []

    def test_g01_missing_session(self):
        result = self.guard.check("", "hello")
        assert result.blocked
        assert any(v.code == "G-01" and v.field == "session_id" for v in result.violations)

    def test_g02_blank_message(self):
        result = self.guard.check("sess-1", "   \n ")
        assert result.blocked
        assert any(v.code == "G-02" for v in result.violations)

    def test_g01_and_g02_together(self):
        codes = {v.code for v in self.guard.check(None, None).violations}
        assert codes == {"G-01", "G-02"}

    def test_g04_long_message_warns_only(self):
        result = self.guard.check("sess-1", "x" * (MAX_MESSAGE_CHARS + 1))
        assert result.passed
        assert not result.blocked
        assert [v.code for v in result.warnings] == ["G-04"]


class TestPipeline:
    def test_summary_lists_codes(self):
        gp = GuardrailsPipeline()
        assert "G-03" in gp.check_content("SSN 123-45-6789").summary()
        assert "passed" in gp.check_content("clean text").summary()
