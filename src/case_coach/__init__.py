"""
case_coach — Case-method coaching with a simulated executive team
==================================================================
Package containing the coaching gate, the executive-agent orchestrator,
configuration, and persistence utilities for the CaseCoach pipeline.

Module map
----------
  models.py                Shared enums, dataclasses and case context.
  agent_trace.py           AgentResponse / AgentTrace audit record (Pydantic).
  config.py                Settings loaded from .env; live vs. fallback mode.
  errors.py                Exception hierarchy for the turn pipeline.
  database.py              SQLite persistence (cases, sessions, messages …).
  guardrails.py            Input validation + sensitive-content (PHI) scan.

  coaching.py              Clarification assessor + reasoning rubric.
  phase_gate.py            Clarify → Critique → Direction state machine.
  intent_classifier.py     Intent classification + agent routing.
  prompts.py               Executive personas and prompt composition.
  llm.py                   Text-generation gateway (OpenAI-compatible API).
  mock_agents.py           Rule-based fallback replies per executive role.
  response_interpreter.py  Recommendation signal + confidence heuristics.
  orchestrator.py          Sequential executive hierarchy run for one turn.
  service.py               End-to-end learner turn (budget, gate, commit).
  cli.py                   Rich terminal chat against the demo case.

Pipeline order
--------------
  InputGuardrails [G-01..G-04] → turn budget check
  → SensitiveContentDetector (safety short-circuit)
  → PhaseGate: ClarificationAssessor ─pass→ ReasoningEvaluator ─pass→
  → HierarchyOrchestrator: IntentClassifier → AgentRouter
      → for each role: PromptComposer → Gateway → ResponseInterpreter
  → final decision (highest authority) → atomic commit of both turns
"""
__version__ = "0.1.0"
