"""
In-memory stand-ins for the Supabase and Gemini SDK clients.

Only the calls Didaur makes are implemented. Nothing here touches the
network.
"""

import copy
import itertools
import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import httpx
from supabase import AuthError as SupabaseAuthError

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)

TEXT_MODEL = "gemini-2.5-flash"
FALLBACK_MODEL = "gemini-2.0-flash"
IMAGE_MODEL = "gemini-2.5-flash-image"

SAMPLE_ANALYSIS = {
    "itemName": "Botol Plastik",
    "materialType": "Plastik",
    "difficulty": "Mudah",
    "estimatedPoints": 20,
    "co2Impact": 150,
    "diyIdeas": [
        {
            "title": "Pot Gantung",
            "description": "Pot tanaman gantung dari botol bekas.",
            "timeEstimate": "30 menit",
            "toolsNeeded": ["Gunting", "Tali"],
            "steps": ["Potong botol", "Lubangi sisi", "Pasang tali"],
        },
        {
            "title": "Tempat Pensil",
            "description": "Wadah alat tulis dari bagian bawah botol.",
            "timeEstimate": "15 menit",
            "toolsNeeded": ["Cutter"],
            "steps": ["Potong bagian bawah", "Hias"],
        },
    ],
}


class ProviderAuthError(SupabaseAuthError):
    """Auth error as raised by the hosted auth service."""

    def __init__(self, message: str, status: int = 400):
        Exception.__init__(self, message)
        self.message = message
        self.status = status


# Supabase: tables


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._filters: list[tuple[str, Any]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._payload: dict[str, Any] | None = None
        self._on_conflict = "id"

    def select(self, columns: str = "*") -> "FakeQuery":
        self._op = "select"
        self._columns = columns
        return self

    def insert(self, row: dict[str, Any]) -> "FakeQuery":
        self._op = "insert"
        self._payload = row
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = values
        return self

    def upsert(self, row: dict[str, Any], on_conflict: str = "id") -> "FakeQuery":
        self._op = "upsert"
        self._payload = row
        self._on_conflict = on_conflict
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(str(row.get(col)) == str(value) for col, value in self._filters)

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self._columns.strip() == "*":
            return copy.deepcopy(row)
        columns = [c.strip() for c in self._columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in columns}

    def execute(self) -> SimpleNamespace:
        self._db.calls.append((self._table, self._op))
        if (self._table, self._op) in self._db.failing:
            raise httpx.ConnectError("connection refused")

        with self._db.lock:
            rows = self._db.tables.setdefault(self._table, [])
            if self._op == "insert":
                return SimpleNamespace(data=[copy.deepcopy(self._db.add_row(self._table, self._payload))])

            if self._op == "upsert":
                key = self._payload.get(self._on_conflict)
                for row in rows:
                    if row.get(self._on_conflict) == key:
                        row.update(copy.deepcopy(self._payload))
                        return SimpleNamespace(data=[copy.deepcopy(row)])
                return SimpleNamespace(data=[copy.deepcopy(self._db.add_row(self._table, self._payload))])

            matched = [row for row in rows if self._matches(row)]
            if self._op == "update":
                for row in matched:
                    row.update(copy.deepcopy(self._payload))
                return SimpleNamespace(data=copy.deepcopy(matched))

            if self._order is not None:
                column, desc = self._order
                matched = sorted(matched, key=lambda r: r.get(column) or 0, reverse=desc)
            if self._limit is not None:
                matched = matched[: self._limit]
            return SimpleNamespace(data=[self._project(row) for row in matched])


# Supabase: auth


class FakeAdmin:
    def __init__(self, auth: "FakeAuth"):
        self._auth = auth

    def sign_out(self, token: str) -> None:
        self._auth.tokens.pop(token, None)


class FakeAuth:
    """Email/password accounts with a fixed OTP code."""

    OTP = "123456"

    def __init__(self, require_confirmation: bool = True):
        self.require_confirmation = require_confirmation
        self.accounts: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.resent: list[str] = []
        self.admin = FakeAdmin(self)
        self._ids = itertools.count(1)
        self._tokens = itertools.count(1)

    def _user(self, email: str) -> SimpleNamespace:
        account = self.accounts[email]
        return SimpleNamespace(id=account["id"], email=email, user_metadata=dict(account["metadata"]))

    def issue_session(self, email: str) -> SimpleNamespace:
        user = self._user(email)
        token = f"token-{user.id}-{next(self._tokens)}"
        self.tokens[token] = email
        return SimpleNamespace(
            access_token=token,
            refresh_token=f"refresh-{token}",
            expires_at=1_900_000_000,
            user=user,
        )

    def create_account(
        self, email: str, password: str, metadata: dict[str, Any] | None = None, confirmed: bool = True
    ) -> str:
        user_id = f"user-{next(self._ids)}"
        self.accounts[email] = {
            "id": user_id,
            "password": password,
            "confirmed": confirmed,
            "metadata": metadata or {},
        }
        return user_id

    def sign_up(self, credentials: dict[str, Any]) -> SimpleNamespace:
        email = credentials["email"]
        if email in self.accounts:
            raise ProviderAuthError("User already registered", 422)
        metadata = credentials.get("options", {}).get("data", {})
        self.create_account(email, credentials["password"], metadata, confirmed=not self.require_confirmation)
        session = None if self.require_confirmation else self.issue_session(email)
        return SimpleNamespace(user=self._user(email), session=session)

    def sign_in_with_password(self, credentials: dict[str, Any]) -> SimpleNamespace:
        account = self.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise ProviderAuthError("Invalid login credentials")
        if not account["confirmed"]:
            raise ProviderAuthError("Email not confirmed")
        session = self.issue_session(credentials["email"])
        return SimpleNamespace(user=session.user, session=session)

    def verify_otp(self, params: dict[str, Any]) -> SimpleNamespace:
        email = params["email"]
        if email not in self.accounts or params["token"] != self.OTP:
            raise ProviderAuthError("Token has expired or is invalid", 403)
        self.accounts[email]["confirmed"] = True
        session = self.issue_session(email)
        return SimpleNamespace(user=session.user, session=session)

    def resend(self, params: dict[str, Any]) -> None:
        self.resent.append(params["email"])

    def sign_in_with_oauth(self, credentials: dict[str, Any]) -> SimpleNamespace:
        provider = credentials["provider"]
        redirect = credentials.get("options", {}).get("redirect_to", "")
        return SimpleNamespace(
            provider=provider,
            url=f"https://auth.example.test/authorize?provider={provider}&redirect_to={redirect}",
        )

    def get_user(self, token: str) -> SimpleNamespace:
        email = self.tokens.get(token)
        if email is None:
            raise ProviderAuthError("invalid JWT: token is expired", 401)
        return SimpleNamespace(user=self._user(email))


class FakeSupabase:
    """
    Supabase client with in-memory tables.

    ``failing`` holds (table, operation) pairs whose execute() raises a
    connection error.
    """

    def __init__(self, require_confirmation: bool = True):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.auth = FakeAuth(require_confirmation)
        self.failing: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self.lock = threading.RLock()
        self._ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row, filling ``id`` and ``created_at`` like the database does."""
        n = next(self._ids)
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(n))
        stored.setdefault("created_at", (_EPOCH + timedelta(minutes=n)).isoformat())
        self.tables.setdefault(table, []).append(stored)
        return stored

    def rows(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        return [
            row
            for row in self.tables.get(table, [])
            if all(str(row.get(k)) == str(v) for k, v in filters.items())
        ]


# Gemini


def text_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(text=text, candidates=[])


def image_response(data: bytes = b"\x89PNG-fake", mime_type: str = "image/png") -> SimpleNamespace:
    part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(text=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class FakeModels:
    def __init__(self, script: dict[str, list[Any]]):
        self._script = script
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def generate_content(self, model: str, contents: Any, config: Any = None) -> Any:
        with self._lock:
            self.calls.append(model)
            queue = self._script.get(model)
            if not queue:
                raise AssertionError(f"unexpected call to model {model}")
            outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeGenAI:
    """
    Gemini SDK client answering from a per-model script.

    Each model's list is consumed in order; the last entry repeats. An
    exception entry is raised instead of returned.
    """

    def __init__(self, script: dict[str, list[Any]]):
        self.models = FakeModels(script)
