"""Shared test helpers: in-memory Supabase fake, seeded data, and API client fixtures."""

from __future__ import annotations

import copy
import itertools
import re
from datetime import date
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest


# ---------- Supabase query-builder fake ----------
def _ilike(value: Any, pattern: str) -> bool:
    """Case-insensitive SQL LIKE with % wildcards."""
    if value is None:
        return False
    regex = ".*".join(re.escape(part) for part in pattern.split("%"))
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


class FakeQuery:
    """Records PostgREST-style builder calls and applies them to a list of dict rows."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table_name = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self.window: Optional[tuple] = None
        self.max_rows: Optional[int] = None

    # --- actions ---
    def select(self, *_columns, count=None):  # pylint: disable=unused-argument
        """Select rows (column lists are ignored; full rows are returned)."""
        self.action = "select"
        return self

    def insert(self, data):
        """Insert one row or a list of rows."""
        self.action = "insert"
        self.payload = data
        return self

    def update(self, data):
        """Update matching rows."""
        self.action = "update"
        self.payload = data
        return self

    def upsert(self, data):
        """Insert or replace by primary key 'id'."""
        self.action = "upsert"
        self.payload = data
        return self

    # --- filters ---
    def eq(self, column, value):
        """Equality filter."""
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column, values):
        """Membership filter."""
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def ilike(self, column, pattern):
        """Case-insensitive LIKE filter."""
        self.filters.append(lambda r: _ilike(r.get(column), pattern))
        return self

    def gte(self, column, value):
        """Greater-or-equal filter (NULLs excluded)."""
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) >= value)
        return self

    def lte(self, column, value):
        """Less-or-equal filter (NULLs excluded)."""
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) <= value)
        return self

    def or_(self, expression: str):
        """Only 'col.ilike.pattern' terms are supported."""
        terms = []
        for term in expression.split(","):
            column, op, pattern = term.split(".", 2)
            assert op == "ilike", f"unsupported or_ operator: {op}"
            terms.append((column, pattern))
        self.filters.append(lambda r: any(_ilike(r.get(c), p) for c, p in terms))
        return self

    # --- modifiers ---
    def order(self, column, desc=False):
        """Order by column; NULLs last."""
        self.orders.append((column, desc))
        return self

    def range(self, start, end):
        """Inclusive row window."""
        self.window = (start, end)
        return self

    def limit(self, n):
        """Limit row count."""
        self.max_rows = n
        return self

    # --- execution ---
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        """Run the query against the in-memory table."""
        self.db.calls.append((self.table_name, self.action))
        if self.db.fail_tables and self.table_name in self.db.fail_tables:
            raise RuntimeError(f"simulated failure on {self.table_name}")

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.action in ("insert", "upsert"):
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in items:
                item = copy.deepcopy(item)
                existing = None
                if self.action == "upsert" and "id" in item:
                    existing = next((r for r in rows if r.get("id") == item["id"]), None)
                if existing is not None:
                    existing.update(item)
                    out.append(copy.deepcopy(existing))
                    continue
                item.setdefault("id", f"{self.table_name}-{next(self.db.ids)}")
                rows.append(item)
                out.append(copy.deepcopy(item))
            return SimpleNamespace(data=out, count=None)

        matched = [r for r in rows if self._matches(r)]

        if self.action == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)

        result = copy.deepcopy(matched)
        for column, desc in reversed(self.orders):
            present = [r for r in result if r.get(column) is not None]
            missing = [r for r in result if r.get(column) is None]
            present.sort(key=lambda r, c=column: r[c], reverse=desc)
            result = present + missing
        count = len(result)
        if self.window is not None:
            result = result[self.window[0]: self.window[1] + 1]
        if self.max_rows is not None:
            result = result[: self.max_rows]
        return SimpleNamespace(data=result, count=count)


class FakeAuth:
    """Stand-in for supabase.auth: token -> user."""

    def __init__(self) -> None:
        self.tokens: Dict[str, SimpleNamespace] = {}

    def get_user(self, token):
        """Return a response with .user, or raise like the real client on a bad JWT."""
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=self.tokens[token])


class FakeSupabase:
    """In-memory replacement for supabase.Client used via dependency override."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.auth = FakeAuth()
        self.calls: List[tuple] = []
        self.fail_tables: set = set()
        self.ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        """Start a query builder on a table."""
        return FakeQuery(self, name)

    def add_user(self, user_id: str, token: str, email: str = "", roles=()):
        """Register an auth user and its role rows."""
        self.auth.tokens[token] = SimpleNamespace(id=user_id, email=email or f"{user_id}@example.com")
        for role in roles:
            self.tables.setdefault("user_roles", []).append({"user_id": user_id, "role": role})

    def rows(self, name: str) -> List[Dict[str, Any]]:
        """Direct access to a table's rows."""
        return self.tables.setdefault(name, [])


# ---------- Seed data ----------
TODAY = date(2024, 1, 1)

STUDENT_TOKEN = "token-student"
OTHER_STUDENT_TOKEN = "token-other"
PARENT_TOKEN = "token-parent"
ADMIN_TOKEN = "token-admin"
NEWBIE_TOKEN = "token-newbie"


@pytest.fixture()
def fake_db() -> FakeSupabase:
    """Fake Supabase seeded with universities, a student, a parent, an admin and a new user."""
    db = FakeSupabase()

    db.tables["universities"] = [
        {
            "id": "u-harvard", "name": "Harvard University", "short_name": "Harvard",
            "country": "USA", "state": "MA", "city": "Cambridge", "us_news_ranking": 3,
            "acceptance_rate": 3.4, "application_fee": 85, "tuition_out_state": 57000,
            "deadlines": {"early_action": "2023-11-01", "regular_decision": "2024-01-01"},
        },
        {
            "id": "u-mit", "name": "Massachusetts Institute of Technology", "short_name": "MIT",
            "country": "USA", "state": "MA", "city": "Cambridge", "us_news_ranking": 2,
            "acceptance_rate": 4.0, "application_fee": 75, "tuition_out_state": 60000,
            "deadlines": {"early_action": "2023-11-01", "regular_decision": "2024-01-04"},
        },
        {
            "id": "u-ucla", "name": "University of California, Los Angeles", "short_name": "UCLA",
            "country": "USA", "state": "CA", "city": "Los Angeles", "us_news_ranking": 15,
            "acceptance_rate": 8.6, "application_fee": 80, "tuition_out_state": 44000,
            "deadlines": {"regular_decision": "2023-11-30", "fall_priority": "2023-11-01"},
        },
        {
            "id": "u-toronto", "name": "University of Toronto", "short_name": "UofT",
            "country": "Canada", "state": "ON", "city": "Toronto", "us_news_ranking": None,
            "acceptance_rate": 43.0, "application_fee": 180, "tuition_out_state": 45000,
            "deadlines": None,
        },
    ]

    db.add_user("user-student", STUDENT_TOKEN, roles=["student"])
    db.add_user("user-other", OTHER_STUDENT_TOKEN, roles=["student"])
    db.add_user("user-parent", PARENT_TOKEN, roles=["parent"])
    db.add_user("user-admin", ADMIN_TOKEN, roles=["admin"])
    db.add_user("user-newbie", NEWBIE_TOKEN)

    db.tables["profiles"] = [
        {"id": "user-student", "email": "amy@example.com", "full_name": "Amy Chen"},
        {"id": "user-other", "email": "bo@example.com", "full_name": "Bo Li"},
        {"id": "user-parent", "email": "parent@example.com", "full_name": "Mei Chen"},
    ]
    db.tables["students"] = [
        {"id": "s-amy", "user_id": "user-student", "graduation_year": 2024,
         "intended_majors": ["Computer Science"], "target_countries": ["USA"]},
        {"id": "s-bo", "user_id": "user-other", "graduation_year": 2025},
    ]
    db.tables["parent_student_relationships"] = [
        {"id": "rel-1", "parent_id": "user-parent", "student_id": "s-amy", "relationship_type": "parent"},
    ]
    db.tables["applications"] = []
    db.tables["application_requirements"] = []
    db.tables["application_events"] = []
    return db


@pytest.fixture()
def make_application(fake_db):
    """Factory inserting an application row for a student; returns the row."""
    counter = itertools.count(1)

    def make(student_id: str = "s-amy", **kw) -> Dict[str, Any]:
        row = {
            "id": f"app-{next(counter)}",
            "student_id": student_id,
            "university_id": "u-harvard",
            "application_type": "regular_decision",
            "deadline": "2024-01-15",
            "status": "not_started",
            "financial_aid_requested": False,
            "scholarship_applied": False,
            "priority_level": 3,
            "created_at": "2023-09-01T00:00:00+00:00",
        }
        row.update(kw)
        fake_db.rows("applications").append(row)
        return row

    return make


@pytest.fixture()
def make_requirement(fake_db):
    """Factory inserting a requirement row; returns the row."""
    counter = itertools.count(1)

    def make(application_id: str, **kw) -> Dict[str, Any]:
        n = next(counter)
        row = {
            "id": f"req-{n}",
            "application_id": application_id,
            "requirement_type": "personal_essay",
            "title": f"Requirement {n}",
            "status": "not_started",
            "is_required": True,
            "created_at": f"2023-09-01T00:00:{n:02d}+00:00",
        }
        row.update(kw)
        fake_db.rows("application_requirements").append(row)
        return row

    return make


# ---------- App/client fixtures ----------
@pytest.fixture()
def client(fake_db):
    """TestClient with Supabase and the clock overridden."""
    from fastapi.testclient import TestClient

    from app.api.deps import get_today
    from app.main import app
    from app.services.supabase_client import get_supabase

    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth(token: str) -> Dict[str, str]:
    """Bearer header for a seeded token."""
    return {"Authorization": f"Bearer {token}"}
