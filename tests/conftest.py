"""
Shared pytest fixtures for the CaseCoach test suite.
All fixtures run in fallback mode: no LLM credentials, no network.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Force fallback mode; never call a real model during tests
os.environ["FORCE_MOCK_MODE"] = "true"
os.environ.setdefault("LLM_API_KEY", "<placeholder>")


import pytest

from factories import FakeGateway, make_case

from case_coach import database
from case_coach.service import CoachingService


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def case():
    return make_case()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite file per test; restores the module default afterwards."""
    previous = database._DB_PATH
    database.init_db(tmp_path / "case_coach_test.db")
    yield database
    database._DB_PATH = previous


@pytest.fixture
def demo(db):
    return db.seed_demo_data()


@pytest.fixture
def session_id(db, demo):
    return db.create_session(demo["assignment_id"], "Test Learner")


@pytest.fixture
def service(db, fake_gateway):
    return CoachingService(gateway=fake_gateway)
