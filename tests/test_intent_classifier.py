"""
Tests for intent priority and executive routing.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from case_coach.intent_classifier import classify_intent, route_to_agents
from case_coach.models import AgentRole, Intent

E, CFO, CMO, CMEDO, CEO = (
    AgentRole.EMPLOYEE,
    AgentRole.CFO,
    AgentRole.CMO,
    AgentRole.CHIEF_MEDICAL_OFFICER,
    AgentRole.CEO,
)


class TestClassifyIntent:
    @pytest.mark.parametrize("message,intent", [
        ("Member 123-45-6789 asked about budget", Intent.PHI_SENSITIVE),
        ("This is urgent, the budget is off", Intent.ESCALATION),
        ("Should we approve the care program budget?", Intent.EXEC_DECISION),
        ("Does the HIPAA policy cover the budget?", Intent.COMPLIANCE),
        ("Our budget and margin look tight this year", Intent.FINANCIAL),
        ("Readmissions affect patient care quality", Intent.CLINICAL),
        ("Our market positioning against competitors", Intent.STRATEGIC),
        ("What is the workflow for intake", Intent.OPERATIONAL),
        ("Hello there", Intent.GENERAL),
        ("", Intent.GENERAL),
    ])
    def test_priority(self, message, intent):
        assert classify_intent(message) == intent

    def test_case_insensitive(self):
        assert classify_intent("BUDGET REVIEW") == Intent.FINANCIAL


class TestRouteToAgents:
    def test_financial_without_strategic_words_is_base_plus_finance(self):
        message = "Our budget and margin look tight this year"
        assert route_to_agents(classify_intent(message), message) == [E, CFO]

    def test_financial_with_approval_adds_ceo(self):
        assert route_to_agents(Intent.FINANCIAL, "budget to invest") == [E, CFO, CEO]

    def test_phi_routes_to_clinical_safety(self):
        assert route_to_agents(Intent.PHI_SENSITIVE) == [E, CMEDO]

    @pytest.mark.parametrize("intent", [Intent.ESCALATION, Intent.EXEC_DECISION, Intent.STRATEGIC])
    def test_full_board(self, intent):
        assert route_to_agents(intent, "") == [E, CFO, CMO, CEO]

    def test_clinical_with_relationship_language(self):
        assert route_to_agents(Intent.CLINICAL, "provider trust and patient care") == [E, CMEDO, CMO]
        assert route_to_agents(Intent.CLINICAL, "patient care") == [E, CMEDO]

    def test_compliance(self):
        assert route_to_agents(Intent.COMPLIANCE, "") == [E, CMEDO, CFO]

    def test_operational_secondary_checks(self):
        assert route_to_agents(Intent.OPERATIONAL, "how do we run intake") == [E]
        assert route_to_agents(Intent.OPERATIONAL, "how much will it cost") == [E, CFO]
        assert route_to_agents(Intent.OPERATIONAL, "workflow cost and patient safety") == [E, CFO, CMEDO]

    def test_general_is_base_only(self):
        assert route_to_agents(Intent.GENERAL, "hello") == [E]

    @pytest.mark.parametrize("intent", list(Intent))
    def test_base_first_and_unique(self, intent):
        roles = route_to_agents(intent, "budget cost patient safety member approve")
        assert roles[0] == E
        assert len(roles) == len(set(roles))
