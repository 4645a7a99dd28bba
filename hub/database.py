# hub/database.py
import copy
import hashlib
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .baas import Query, Result
from .config import get_settings
from .errors import AuthError, BaaSError, NotFoundError
from .models import AuthResponse, AuthSession, AuthUser

# This file holds the in-memory stand-in for the hosted BaaS: tables, auth and storage.


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _columns(columns: str) -> Optional[List[str]]:
    names = [c.strip() for c in columns.split(",") if c.strip()]
    if not names or "*" in names:
        return None
    return names


def _like(pattern: str) -> "re.Pattern[str]":
    parts = [re.escape(p) for p in pattern.split("%")]
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches(row: Dict[str, Any], op: str, column, value) -> bool:
    if op == "eq":
        return row.get(column) == value
    if op == "neq":
        return row.get(column) != value
    if op == "ilike":
        cell = row.get(column)
        return cell is not None and bool(_like(value).match(str(cell)))
    if op == "or_ilike":
        term = value.lower()
        return any(term in str(row.get(c) or "").lower() for c in column)
    if op == "in":
        return row.get(column) in value
    raise BaaSError(f"unsupported filter {op}", code="PGRST100", status=400)


class MemoryQuery(Query):
    def __init__(self, store: "MemoryBaaS", table: str):
        super().__init__(table)
        self.store = store

    def _project(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        names = _columns(self.columns)
        if names is None:
            return [copy.deepcopy(r) for r in rows]
        return [{n: copy.deepcopy(r.get(n)) for n in names} for r in rows]

    def _sorted(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        out = list(rows)
        # stable sort: apply the least significant key first, nulls last
        for column, ascending in reversed(self.orders):
            present = [r for r in out if r.get(column) is not None]
            missing = [r for r in out if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=not ascending)
            out = present + missing
        return out

    def _finish(self, rows: List[Dict[str, Any]], count: Optional[int] = None) -> Result:
        data = self._project(rows)
        if self.want_single:
            if not data:
                raise NotFoundError(
                    "JSON object requested, multiple (or no) rows returned",
                    code="PGRST116",
                    details="The result contains 0 rows",
                )
            if len(data) > 1:
                raise BaaSError(
                    "JSON object requested, multiple (or no) rows returned",
                    code="PGRST116",
                    details=f"The result contains {len(data)} rows",
                    status=406,
                )
            return Result(data=data[0], count=count)
        return Result(data=data, count=count)

    async def execute(self) -> Result:
        table = self.store.tables.setdefault(self.table, [])
        matched = [r for r in table if all(_matches(r, op, c, v) for op, c, v in self.filters)]

        if self.action == "select":
            count = len(matched) if self.want_count else None
            if self.head:
                return Result(data=[], count=count)
            rows = self._sorted(matched)
            if self.row_limit is not None:
                rows = rows[: self.row_limit]
            return self._finish(rows, count)

        if self.action == "insert":
            created = []
            for row in self.payload:
                new = copy.deepcopy(row)
                new.setdefault("id", uuid.uuid4().hex)
                new.setdefault("created_at", _now())
                if any(r.get("id") == new["id"] for r in table):
                    raise BaaSError(
                        "duplicate key value violates unique constraint",
                        code="23505",
                        details=f"Key (id)=({new['id']}) already exists.",
                        status=409,
                    )
                table.append(new)
                created.append(new)
            return self._finish(created)

        if self.action == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return self._finish(matched)

        if self.action == "delete":
            ids = {id(r) for r in matched}
            self.store.tables[self.table] = [r for r in table if id(r) not in ids]
            return self._finish(matched)

        raise BaaSError(f"unsupported action {self.action}", status=400)


class MemoryAuth:
    def __init__(self, store: "MemoryBaaS"):
        self.store = store

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    @staticmethod
    def _public(user: Dict[str, Any]) -> AuthUser:
        return AuthUser(
            id=user["id"],
            email=user["email"],
            email_confirmed_at=user.get("email_confirmed_at"),
            user_metadata=dict(user.get("user_metadata") or {}),
        )

    def _new_session(self, user: Dict[str, Any]) -> AuthSession:
        token = uuid.uuid4().hex
        self.store.sessions[token] = user["id"]
        return AuthSession(access_token=token, user=self._public(user))

    def _by_token(self, token: Optional[str]) -> Dict[str, Any]:
        user_id = self.store.sessions.get(token or "")
        user = next((u for u in self.store.users.values() if u["id"] == user_id), None)
        if user is None:
            raise AuthError("invalid JWT: unable to parse or verify signature", code="bad_jwt")
        return user

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthResponse:
        email = email.strip().lower()
        if len(password or "") < 6:
            raise AuthError("Password should be at least 6 characters", code="weak_password", status=422)
        if email in self.store.users:
            raise AuthError("User already registered", code="user_already_exists", status=422)
        user = {
            "id": uuid.uuid4().hex,
            "email": email,
            "password": self._hash(password),
            "email_confirmed_at": _now() if self.store.auto_confirm else None,
            "user_metadata": dict(metadata or {}),
        }
        self.store.users[email] = user
        session = self._new_session(user) if self.store.auto_confirm else None
        return AuthResponse(user=self._public(user), session=session)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        user = self.store.users.get((email or "").strip().lower())
        if user is None or user["password"] != self._hash(password or ""):
            raise AuthError("Invalid login credentials", code="invalid_credentials", status=400)
        if not user.get("email_confirmed_at"):
            raise AuthError("Email not confirmed", code="email_not_confirmed", status=400)
        session = self._new_session(user)
        return AuthResponse(user=session.user, session=session)

    async def sign_out(self, token: str) -> None:
        self._by_token(token)
        self.store.sessions.pop(token, None)

    async def get_user(self, token: str) -> AuthUser:
        return self._public(self._by_token(token))

    async def reset_password_for_email(self, email: str) -> None:
        # unknown addresses are accepted silently, as the hosted service does
        self.store.outbox.append({"to": email, "kind": "recovery", "sent_at": _now()})

    async def update_user(
        self, token: str, password: Optional[str] = None, data: Optional[Dict[str, Any]] = None
    ) -> AuthUser:
        user = self._by_token(token)
        if password is not None:
            if len(password) < 6:
                raise AuthError("Password should be at least 6 characters", code="weak_password", status=422)
            user["password"] = self._hash(password)
        if data:
            user["user_metadata"].update(data)
        return self._public(user)

    def confirm_email(self, email: str) -> None:
        user = self.store.users.get(email.strip().lower())
        if user is None:
            raise AuthError("User not found", code="user_not_found", status=404)
        user["email_confirmed_at"] = _now()


class MemoryStorage:
    def __init__(self, store: "MemoryBaaS"):
        self.store = store

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
        cache_control: str = "3600",
    ) -> str:
        key = (bucket, path)
        if key in self.store.objects and not upsert:
            raise BaaSError("The resource already exists", code="Duplicate", status=409)
        self.store.objects[key] = (bytes(content), content_type or "application/octet-stream")
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.store.public_url}{get_settings().storage_public_prefix}{bucket}/{path}"

    async def remove(self, bucket: str, paths: List[str]) -> List[str]:
        removed = []
        for path in paths:
            if self.store.objects.pop((bucket, path), None) is not None:
                removed.append(path)
        return removed


class MemoryBaaS:
    """Tables, users and objects kept in process memory."""

    def __init__(self, public_url: str = "http://localhost:54321", auto_confirm: bool = False):
        self.public_url = public_url.rstrip("/")
        self.auto_confirm = auto_confirm
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, str] = {}
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}
        self.outbox: List[Dict[str, Any]] = []
        self.auth = MemoryAuth(self)
        self.storage = MemoryStorage(self)

    def table(self, name: str) -> MemoryQuery:
        return MemoryQuery(self, name)

    def reset(self) -> None:
        self.tables.clear()
        self.users.clear()
        self.sessions.clear()
        self.objects.clear()
        self.outbox.clear()
