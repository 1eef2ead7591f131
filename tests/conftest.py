import uuid
from typing import Any, Callable, Dict, List, Optional

import pytest

from apps.familypoints.deps import build_container

CANON = "3f2b8c1e-5d4a-4e8b-9c7d-1a2b3c4d5e6f"
LEGACY = "7a1d9e2c-3b4f-4a6e-8d5c-9e8f7a6b5c4d"
UNKNOWN = "b5e4d3c2-a1f0-4e9d-8c7b-6a5f4e3d2c1b"
FAMILY = "c0ffee00-1111-4222-8333-444455556666"


class FakeAPIError(Exception):
    pass


class _FakeResponse:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self._client = client
        self._table = table
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None
        self._payload: Optional[List[Dict[str, Any]]] = None
        self.ops: List[tuple] = []

    def select(self, columns="*"):
        self.ops.append(("select", columns))
        return self

    def eq(self, col, val):
        self.ops.append(("eq", col, val))
        self._filters.append(lambda r: r.get(col) == val)
        return self

    def in_(self, col, values):
        values = list(values)
        self.ops.append(("in", col, values))
        self._filters.append(lambda r: r.get(col) in values)
        return self

    def or_(self, expr):
        self.ops.append(("or", expr))
        clauses = [part.split(".", 2) for part in expr.split(",")]
        self._filters.append(lambda r: any(op == "eq" and str(r.get(c)) == v for c, op, v in clauses))
        return self

    def gte(self, col, val):
        self.ops.append(("gte", col, val))
        self._filters.append(lambda r: str(r.get(col) or "") >= str(val))
        return self

    def order(self, col, desc=False):
        self._order = (col, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def insert(self, payload):
        self._payload = payload if isinstance(payload, list) else [payload]
        self.ops.append(("insert", self._payload))
        return self

    def execute(self):
        self._client.calls.append(("table", self._table, self.ops))
        if self._table in self._client.failing:
            raise FakeAPIError(f"relation {self._table} unavailable")

        store = self._client.tables.setdefault(self._table, [])
        if self._payload is not None:
            inserted = []
            for row in self._payload:
                row = dict(row)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", "2024-06-01T12:00:00+00:00")
                store.append(row)
                inserted.append(dict(row))
            return _FakeResponse(inserted)

        rows = [dict(r) for r in store if all(f(r) for f in self._filters)]
        if self._order:
            col, desc = self._order
            rows.sort(key=lambda r: str(r.get(col) or ""), reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        return _FakeResponse(rows)


class _FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: Dict[str, Any]):
        self._client = client
        self._name = name
        self._params = params

    def execute(self):
        self._client.calls.append(("rpc", self._name, self._params))
        handler = self._client.rpcs.get(self._name)
        if handler is None:
            raise FakeAPIError(f"function {self._name} does not exist")
        result = handler(self._params) if callable(handler) else handler
        if isinstance(result, Exception):
            raise result
        return _FakeResponse(result)


class FakeSupabase:
    """In-memory stand-in for the supabase-py query builder."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.rpcs: Dict[str, Any] = {}
        self.failing = set()
        self.calls: List[tuple] = []

    def table(self, name):
        return _FakeQuery(self, name)

    def rpc(self, name, params=None):
        return _FakeRpc(self, name, params or {})

    def add(self, table, *rows):
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def table_calls(self, name):
        return [c for c in self.calls if c[0] == "table" and c[1] == name]

    def rpc_calls(self, name):
        return [c for c in self.calls if c[0] == "rpc" and c[1] == name]


def idempotent_award_rpc(sb: FakeSupabase):
    """Behaves like award_points_idem_api: one points_ledger row per p_ref."""
    seen = {}

    def handler(params):
        ref = params.get("p_ref")
        if ref and ref in seen:
            return [{"awarded": False, "ledger_id": None}]
        row_id = str(uuid.uuid4())
        sb.add(
            "points_ledger",
            {
                "id": row_id,
                "child_uid": params["p_child"],
                "delta": params["p_delta"],
                "reason": params["p_reason"],
                "ref": ref,
                "created_at": "2024-06-01T12:00:00+00:00",
            },
        )
        if ref:
            seen[ref] = row_id
        return [{"awarded": True, "ledger_id": row_id}]

    return handler


@pytest.fixture
def sb():
    client = FakeSupabase()
    client.add("child_profiles", {"id": CANON, "child_uid": LEGACY, "family_id": FAMILY, "first_name": "Ava", "nick_name": "Avi"})
    return client


@pytest.fixture
def container(sb):
    return build_container(sb)
