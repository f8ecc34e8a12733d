"""
case_coach/database.py — SQLite persistence layer
=================================================
Stores cases, assignments, learner sessions, the message log, professor
directives and per-role agent overrides.

Design decisions
----------------
- **The message log is authoritative**: there is no "current phase"
  column anywhere; phase_gate.determine_phase() derives it from messages.
- **JSON blobs as TEXT**: case KPIs / goals / red lines and the AgentTrace
  are stored as JSON text columns rather than normalised tables.
- **WAL journal mode**: concurrent readers while a turn commits.
- **All-or-nothing turns**: commit_turn() writes the learner message, the
  system reply and the budget decrement inside one ``BEGIN IMMEDIATE``
  transaction; the conditional UPDATE means two racing turns can never
  both spend the last credit.

Database file location
----------------------
Defaults to ``case_coach_data.db`` in the workspace root; override with
CASECOACH_DB_PATH or by passing a path to init_db().

Public API
----------
  init_db(path)                        create tables if they don't exist
  create_case / get_case / get_case_context
  create_assignment / get_assignment / get_assignment_by_join_code
  create_session / get_session / get_credits_remaining / reset_session
  get_turns(session_id)                → list[Turn] (oldest first)
  commit_turn(session_id, …)           → credits remaining after the turn
  get_sessions_by_assignment / get_messages_by_assignment   professor logs
  get_coaching_analytics(assignment_id) phase mix, rubric averages, weak areas
  create_directive / deactivate_directive / get_active_directives
  set_agent_override / get_agent_overrides
  seed_demo_data()                     Apex Health Plan demo case
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import string
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from case_coach.config import get_settings
from case_coach.errors import SessionNotFoundError, TurnBudgetExhaustedError
from case_coach.models import (
    AgentOverride,
    AgentRole,
    CaseContext,
    Directive,
    Phase,
    RUBRIC_DIMENSIONS,
    RubricLevel,
    Turn,
    TurnRole,
)

logger = logging.getLogger(__name__)

_DB_PATH = Path(get_settings().app.db_path)

_JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _get_conn() -> sqlite3.Connection:
    """Return an autocommit connection with row_factory set."""
    conn = sqlite3.connect(str(_DB_PATH), check_same_thread=False, isolation_level=None, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create tables if they don't exist (optionally switching database file)."""
    global _DB_PATH
    if db_path is not None:
        _DB_PATH = Path(db_path)
    _DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    conn = _get_conn()
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript("""
        CREATE TABLE IF NOT EXISTS cases (
            id              TEXT PRIMARY KEY,
            title           TEXT NOT NULL,
            background_text TEXT,
            kpis            TEXT,
            red_lines       TEXT,
            goals           TEXT,
            created_at      TEXT
        );
        CREATE TABLE IF NOT EXISTS assignments (
            id          TEXT PRIMARY KEY,
            case_id     TEXT REFERENCES cases(id),
            title       TEXT NOT NULL,
            join_code   TEXT UNIQUE,
            credits     INTEGER DEFAULT 25,
            active      INTEGER DEFAULT 1,
            created_at  TEXT
        );
        CREATE TABLE IF NOT EXISTS sessions (
            id            TEXT PRIMARY KEY,
            learner_name  TEXT,
            assignment_id TEXT REFERENCES assignments(id),
            credits_used  INTEGER DEFAULT 0,
            created_at    TEXT
        );
        CREATE TABLE IF NOT EXISTS messages (
            id          TEXT PRIMARY KEY,
            session_id  TEXT REFERENCES sessions(id),
            role        TEXT CHECK(role IN ('student','system')),
            content     TEXT,
            agent_trace TEXT,
            rubric      TEXT,
            phase       TEXT,
            created_at  TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, created_at);
        CREATE TABLE IF NOT EXISTS directives (
            id            TEXT PRIMARY KEY,
            assignment_id TEXT REFERENCES assignments(id),
            content       TEXT NOT NULL,
            active        INTEGER DEFAULT 1,
            created_at    TEXT
        );
        CREATE TABLE IF NOT EXISTS agent_overrides (
            id              TEXT PRIMARY KEY,
            case_id         TEXT REFERENCES cases(id),
            agent_name      TEXT NOT NULL,
            prompt_addition TEXT,
            UNIQUE(case_id, agent_name)
        );
        """)
        # Files created before rubric labels were stored
        columns = {r["name"] for r in conn.execute("PRAGMA table_info(messages)")}
        if "rubric" not in columns:
            conn.execute("ALTER TABLE messages ADD COLUMN rubric TEXT")
    finally:
        conn.close()


# ─── Cases ────────────────────────────────────────────────────────────────────

def create_case(
    title: str,
    kpis: Optional[dict] = None,
    goals: Optional[dict] = None,
    red_lines: Optional[list] = None,
    background_text: Optional[str] = None,
) -> str:
    case_id = _new_id()
    conn = _get_conn()
    try:
        conn.execute(
            "INSERT INTO cases (id, title, background_text, kpis, red_lines, goals, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (case_id, title, background_text, json.dumps(kpis or {}),
             json.dumps(red_lines or []), json.dumps(goals or {}), _now()),
        )
    finally:
        conn.close()
    return case_id


def get_case(case_id: str) -> Optional[dict]:
    conn = _get_conn()
    try:
        row = conn.execute("SELECT * FROM cases WHERE id = ?", (case_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    case = dict(row)
    case["kpis"] = json.loads(case["kpis"] or "{}")
    case["red_lines"] = json.loads(case["red_lines"] or "[]")
    case["goals"] = json.loads(case["goals"] or "{}")
    return case


def get_case_context(case_id: str) -> Optional[CaseContext]:
    return CaseContext.from_record(get_case(case_id))


# ─── Assignments ──────────────────────────────────────────────────────────────

def _join_code() -> str:
    return "".join(secrets.choice(_JOIN_CODE_ALPHABET) for _ in range(6))


def create_assignment(case_id: str, title: str, credits: Optional[int] = None) -> dict:
    assignment = {
        "id":        _new_id(),
        "case_id":   case_id,
        "title":     title,
        "join_code": _join_code(),
        "credits":   credits if credits is not None else get_settings().app.default_turn_budget,
    }
    conn = _get_conn()
    try:
        conn.execute(
            "INSERT INTO assignments (id, case_id, title, join_code, credits, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (assignment["id"], case_id, title, assignment["join_code"],
             assignment["credits"], _now()),
        )
    finally:
        conn.close()
    return assignment


def get_assignment(assignment_id: str) -> Optional[dict]:
    conn = _get_conn()
    try:
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


def get_assignment_by_join_code(code: str) -> Optional[dict]:
    conn = _get_conn()
    try:
        row = conn.execute(
            "SELECT * FROM assignments WHERE join_code = ? AND active = 1",
            (code.strip().upper(),),
        ).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


# ─── Sessions & turn budget ──────────────────────────────────────────────────

def create_session(assignment_id: str, learner_name: str = "") -> str:
    session_id = _new_id()
    conn = _get_conn()
    try:
        conn.execute(
            "INSERT INTO sessions (id, learner_name, assignment_id, created_at) VALUES (?, ?, ?, ?)",
            (session_id, learner_name, assignment_id, _now()),
        )
    finally:
        conn.close()
    return session_id


def get_session(session_id: str) -> Optional[dict]:
    conn = _get_conn()
    try:
        row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


_REMAINING_SQL = """
    SELECT MAX(0, a.credits - s.credits_used) AS remaining
    FROM sessions s JOIN assignments a ON a.id = s.assignment_id
    WHERE s.id = ?
"""


def get_credits_remaining(session_id: str) -> int:
    conn = _get_conn()
    try:
        row = conn.execute(_REMAINING_SQL, (session_id,)).fetchone()
    finally:
        conn.close()
    return int(row["remaining"]) if row else 0


def reset_session(session_id: str) -> int:
    """Delete the session's message log and restore its budget.  Returns rows deleted."""
    conn = _get_conn()
    try:
        conn.execute("BEGIN IMMEDIATE")
        if conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone() is None:
            conn.execute("ROLLBACK")
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        deleted = conn.execute("DELETE FROM messages WHERE session_id = ?", (session_id,)).rowcount
        conn.execute("UPDATE sessions SET credits_used = 0 WHERE id = ?", (session_id,))
        conn.execute("COMMIT")
    finally:
        conn.close()
    logger.info("Session reset: %d message(s) deleted", deleted)
    return deleted


# ─── Message log ──────────────────────────────────────────────────────────────

def _row_to_turn(row: sqlite3.Row) -> Turn:
    return Turn(
        role        = TurnRole(row["role"]),
        content     = row["content"] or "",
        phase       = Phase(row["phase"]) if row["phase"] else None,
        agent_trace = json.loads(row["agent_trace"]) if row["agent_trace"] else None,
        created_at  = row["created_at"] or "",
    )


def get_turns(session_id: str) -> list[Turn]:
    conn = _get_conn()
    try:
        rows = conn.execute(
            "SELECT * FROM messages WHERE session_id = ? ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        ).fetchall()
    finally:
        conn.close()
    return [_row_to_turn(r) for r in rows]


def commit_turn(
    session_id: str,
    student_content: str,
    system_content: str,
    phase: Phase,
    agent_trace_json: Optional[str] = None,
    rubric: Optional[dict[str, str]] = None,
) -> int:
    """
    Append the learner message and the system reply and consume one credit,
    atomically.  Returns the credits remaining afterwards.

    *rubric* holds the dimension labels of a critique turn; it is stored on
    the system message for get_coaching_analytics().

    Raises:
        TurnBudgetExhaustedError – no credit left (nothing is written).
        SessionNotFoundError     – unknown session id.
        sqlite3.Error            – persistence failure (rolled back).
    """
    conn = _get_conn()
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            spent = conn.execute(
                """
                UPDATE sessions SET credits_used = credits_used + 1
                WHERE id = ?
                  AND credits_used < (SELECT credits FROM assignments WHERE id = sessions.assignment_id)
                """,
                (session_id,),
            ).rowcount
            if spent != 1:
                if conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone() is None:
                    raise SessionNotFoundError(f"Session '{session_id}' not found.")
                raise TurnBudgetExhaustedError(session_id)

            student_at = _now()
            conn.execute(
                "INSERT INTO messages (id, session_id, role, content, agent_trace, phase, created_at) "
                "VALUES (?, ?, ?, ?, NULL, NULL, ?)",
                (_new_id(), session_id, TurnRole.STUDENT.value, student_content, student_at),
            )
            conn.execute(
                "INSERT INTO messages "
                "(id, session_id, role, content, agent_trace, rubric, phase, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (_new_id(), session_id, TurnRole.SYSTEM.value, system_content,
                 agent_trace_json, json.dumps(rubric) if rubric else None,
                 phase.value, max(_now(), student_at)),
            )
            remaining = conn.execute(_REMAINING_SQL, (session_id,)).fetchone()["remaining"]
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
    finally:
        conn.close()
    return int(remaining)


# ─── Professor logs & analytics ───────────────────────────────────────────────

_SESSION_STATS_SQL = """
    SELECT s.*,
           MAX(0, a.credits - s.credits_used) AS credits_remaining,
           COUNT(m.id)                        AS message_count
    FROM sessions s
    JOIN assignments a   ON a.id = s.assignment_id
    LEFT JOIN messages m ON m.session_id = s.id
    WHERE 1 = 1 {scope}
    GROUP BY s.id
    ORDER BY s.created_at DESC, s.rowid DESC
"""


def get_sessions_by_assignment(assignment_id: str) -> list[dict]:
    """Sessions of one assignment, newest first, with message count and credits left."""
    conn = _get_conn()
    try:
        rows = conn.execute(
            _SESSION_STATS_SQL.format(scope="AND s.assignment_id = ?"), (assignment_id,)
        ).fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]


def get_messages_by_assignment(assignment_id: str) -> list[dict]:
    """Every logged message of an assignment, newest first, JSON columns decoded."""
    conn = _get_conn()
    try:
        rows = conn.execute(
            """
            SELECT m.*, s.learner_name
            FROM messages m
            JOIN sessions s ON s.id = m.session_id
            WHERE s.assignment_id = ?
            ORDER BY m.created_at DESC, m.rowid DESC
            """,
            (assignment_id,),
        ).fetchall()
    finally:
        conn.close()
    messages = []
    for r in rows:
        msg = dict(r)
        msg["agent_trace"] = json.loads(msg["agent_trace"]) if msg["agent_trace"] else None
        msg["rubric"] = json.loads(msg["rubric"]) if msg["rubric"] else None
        messages.append(msg)
    return messages


def _average_label(avg: float) -> str:
    if avg < 0.5:
        return RubricLevel.WEAK.label
    if avg < 1.5:
        return RubricLevel.DEVELOPING.label
    if avg < 2.5:
        return RubricLevel.ADEQUATE.label
    return RubricLevel.STRONG.label


def get_coaching_analytics(assignment_id: Optional[str] = None) -> dict:
    """
    Coaching performance across all sessions, or one assignment's sessions.

    Returns a dict with:
      overview           – session / message counts and sessions reaching direction
      phase_distribution – {phase: system-turn count}
      rubric_averages    – {dimension: {average, label, count}} over critique turns (0–3 scale)
      weak_areas         – per dimension weak count and percentage, most often weak first
      session_stats      – per-session message count and credit use, newest first
    """
    scope, params = "", ()
    if assignment_id is not None:
        scope, params = "AND s.assignment_id = ?", (assignment_id,)

    conn = _get_conn()
    try:
        total_sessions = conn.execute(
            f"SELECT COUNT(*) AS n FROM sessions s WHERE 1 = 1 {scope}", params
        ).fetchone()["n"]
        counts = conn.execute(
            f"""
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(m.role = 'student'), 0) AS student
            FROM messages m JOIN sessions s ON s.id = m.session_id
            WHERE 1 = 1 {scope}
            """,
            params,
        ).fetchone()
        phase_rows = conn.execute(
            f"""
            SELECT m.phase, COUNT(*) AS n
            FROM messages m JOIN sessions s ON s.id = m.session_id
            WHERE m.role = 'system' AND m.phase IS NOT NULL {scope}
            GROUP BY m.phase
            """,
            params,
        ).fetchall()
        reached_direction = conn.execute(
            f"""
            SELECT COUNT(DISTINCT m.session_id) AS n
            FROM messages m JOIN sessions s ON s.id = m.session_id
            WHERE m.role = 'system' AND m.phase = 'direction' {scope}
            """,
            params,
        ).fetchone()["n"]
        rubric_rows = conn.execute(
            f"""
            SELECT m.rubric
            FROM messages m JOIN sessions s ON s.id = m.session_id
            WHERE m.role = 'system' AND m.phase = 'critique' AND m.rubric IS NOT NULL {scope}
            """,
            params,
        ).fetchall()
        session_rows = conn.execute(_SESSION_STATS_SQL.format(scope=scope), params).fetchall()
    finally:
        conn.close()

    scores: dict[str, list[int]] = {dim: [] for dim in RUBRIC_DIMENSIONS}
    for row in rubric_rows:
        labels = json.loads(row["rubric"])
        for dim in RUBRIC_DIMENSIONS:
            if dim in labels:
                scores[dim].append(int(RubricLevel[labels[dim].upper()]))

    rubric_averages = {}
    for dim, values in scores.items():
        if values:
            avg = sum(values) / len(values)
            rubric_averages[dim] = {"average": round(avg, 2), "label": _average_label(avg), "count": len(values)}

    weak_areas = []
    for dim, values in scores.items():
        weak = sum(1 for v in values if v == RubricLevel.WEAK)
        weak_areas.append({
            "dimension":    dim,
            "weak_count":   weak,
            "total_evals":  len(values),
            "weak_percent": round(100 * weak / len(values)) if values else 0,
        })
    weak_areas.sort(key=lambda w: w["weak_percent"], reverse=True)

    return {
        "overview": {
            "total_sessions":              total_sessions,
            "total_messages":              counts["total"],
            "total_student_messages":      counts["student"],
            "sessions_reaching_direction": reached_direction,
        },
        "phase_distribution": {r["phase"]: r["n"] for r in phase_rows},
        "rubric_averages":    rubric_averages,
        "weak_areas":         weak_areas,
        "session_stats":      [dict(r) for r in session_rows],
    }


# ─── Professor directives ─────────────────────────────────────────────────────

def _row_to_directive(row: sqlite3.Row) -> Directive:
    return Directive(
        id            = row["id"],
        assignment_id = row["assignment_id"],
        content       = row["content"],
        active        = bool(row["active"]),
        created_at    = row["created_at"] or "",
    )


def create_directive(assignment_id: str, content: str) -> Directive:
    directive = Directive(id=_new_id(), assignment_id=assignment_id, content=content, created_at=_now())
    conn = _get_conn()
    try:
        conn.execute(
            "INSERT INTO directives (id, assignment_id, content, active, created_at) VALUES (?, ?, ?, 1, ?)",
            (directive.id, assignment_id, content, directive.created_at),
        )
    finally:
        conn.close()
    return directive


def deactivate_directive(directive_id: str) -> None:
    conn = _get_conn()
    try:
        conn.execute("UPDATE directives SET active = 0 WHERE id = ?", (directive_id,))
    finally:
        conn.close()


def get_active_directives(assignment_id: str) -> list[Directive]:
    """Active directives, oldest first (the order they are numbered in prompts)."""
    conn = _get_conn()
    try:
        rows = conn.execute(
            "SELECT * FROM directives WHERE assignment_id = ? AND active = 1 "
            "ORDER BY created_at ASC, rowid ASC",
            (assignment_id,),
        ).fetchall()
    finally:
        conn.close()
    return [_row_to_directive(r) for r in rows]


# ─── Agent overrides ──────────────────────────────────────────────────────────

def set_agent_override(case_id: str, agent_name: AgentRole | str, prompt_addition: str) -> None:
    """Upsert the single override for (case, role); last write wins."""
    role = AgentRole(agent_name)
    conn = _get_conn()
    try:
        conn.execute(
            """
            INSERT INTO agent_overrides (id, case_id, agent_name, prompt_addition)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(case_id, agent_name) DO UPDATE SET prompt_addition = excluded.prompt_addition
            """,
            (_new_id(), case_id, role.value, prompt_addition),
        )
    finally:
        conn.close()


def get_agent_overrides(case_id: str) -> list[AgentOverride]:
    conn = _get_conn()
    try:
        rows = conn.execute(
            "SELECT * FROM agent_overrides WHERE case_id = ?", (case_id,)
        ).fetchall()
    finally:
        conn.close()
    return [
        AgentOverride(
            case_id         = r["case_id"],
            agent_name      = AgentRole(r["agent_name"]),
            prompt_addition = r["prompt_addition"] or "",
        )
        for r in rows
    ]


# ─── Demo data ────────────────────────────────────────────────────────────────

DEMO_CASE_TITLE = "Apex Health Plan (Medicare Advantage)"

DEMO_CASE: dict[str, Any] = {
    "title": DEMO_CASE_TITLE,
    "kpis": {
        "mlr_current": 91,
        "mlr_target": 87,
        "admissions_per_1000_current": 120,
        "admissions_per_1000_benchmark": 105,
        "hcc_gap_pct": "6-8",
        "members": 165000,
        "revenue_billion": 2.1,
        "ebitda_margin_pct": 3,
        "budget_million": "12-18",
    },
    "red_lines": [
        "No compliance risk or aggressive coding tactics",
        "No provider revolt or unilateral rate cuts",
        "No heavy member abrasion",
        "No long-payback investments without measurable 6-12 month impact",
    ],
    "goals": {
        "margin_bps_target": "150-250",
        "adherence_improvement_pct": "3-5",
        "gap_closure_pct": "2",
    },
}


def seed_demo_data() -> dict:
    """Create the demo case + assignment once; returns their ids and join code."""
    conn = _get_conn()
    try:
        row = conn.execute(
            "SELECT a.id AS assignment_id, a.join_code, c.id AS case_id "
            "FROM cases c JOIN assignments a ON a.case_id = c.id WHERE c.title = ? LIMIT 1",
            (DEMO_CASE_TITLE,),
        ).fetchone()
    finally:
        conn.close()
    if row is not None:
        return dict(row)

    case_id = create_case(**DEMO_CASE)
    assignment = create_assignment(case_id, "Spring 2026: Apex Health Analysis", credits=25)
    logger.info("Seeded demo case (join code %s)", assignment["join_code"])
    return {
        "assignment_id": assignment["id"],
        "join_code":     assignment["join_code"],
        "case_id":       case_id,
    }
