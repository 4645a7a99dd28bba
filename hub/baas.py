# hub/baas.py
"""
Query interface over the hosted data tier plus its REST implementation.

Callers build a query with the same chain the BaaS client SDKs expose::

    rows = (await client.table("products")
            .select("id, name")
            .or_ilike(["name", "sku"], "cafe")
            .order("name")
            .execute()).data

`RestBaaS` turns the chain into PostgREST / GoTrue / Storage HTTP calls.
`hub.database.MemoryBaaS` runs the same chain against in-memory tables.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from loguru import logger
from pydantic import BaseModel

from .config import Settings, get_settings
from .errors import AuthError, BaaSError, NotFoundError
from .models import AuthResponse, AuthSession, AuthUser


class Result(BaseModel):
    data: Any = None
    count: Optional[int] = None


class Query:
    """Recorded query; backends implement `execute`."""

    def __init__(self, table: str):
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: List[Tuple[str, Any, Any]] = []
        self.orders: List[Tuple[str, bool]] = []
        self.row_limit: Optional[int] = None
        self.want_single = False
        self.want_count = False
        self.head = False

    # actions
    def select(self, columns: str = "*", count: bool = False, head: bool = False) -> "Query":
        # after insert/update/delete this only picks the returned columns
        self.columns = columns
        if self.action == "select":
            self.want_count = count
            self.head = head
        return self

    def insert(self, rows) -> "Query":
        self.action = "insert"
        self.payload = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def update(self, values: Dict[str, Any]) -> "Query":
        self.action = "update"
        self.payload = dict(values)
        return self

    def delete(self) -> "Query":
        self.action = "delete"
        return self

    # filters
    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self.filters.append(("neq", column, value))
        return self

    def ilike(self, column: str, pattern: str) -> "Query":
        self.filters.append(("ilike", column, pattern))
        return self

    def or_ilike(self, columns: Sequence[str], term: str) -> "Query":
        self.filters.append(("or_ilike", tuple(columns), term))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "Query":
        self.filters.append(("in", column, list(values)))
        return self

    # modifiers
    def order(self, column: str, ascending: bool = True) -> "Query":
        self.orders.append((column, ascending))
        return self

    def limit(self, n: int) -> "Query":
        self.row_limit = n
        return self

    def single(self) -> "Query":
        self.want_single = True
        return self

    async def execute(self) -> Result:
        raise NotImplementedError


# ---------------------------
# PostgREST encoding
# ---------------------------
def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _strip_columns(columns: str) -> str:
    return "".join(columns.split())


def encode_params(query: Query) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    if query.action == "select" or query.columns != "*":
        params.append(("select", _strip_columns(query.columns)))
    for op, column, value in query.filters:
        if op == "eq":
            params.append((column, "is.null" if value is None else f"eq.{_format_value(value)}"))
        elif op == "neq":
            params.append((column, "not.is.null" if value is None else f"neq.{_format_value(value)}"))
        elif op == "ilike":
            params.append((column, f"ilike.{value.replace('%', '*')}"))
        elif op == "or_ilike":
            parts = ",".join(f"{c}.ilike.*{value}*" for c in column)
            params.append(("or", f"({parts})"))
        elif op == "in":
            params.append((column, f"in.({','.join(_format_value(v) for v in value)})"))
    if query.orders:
        params.append(("order", ",".join(f"{c}.{'asc' if asc else 'desc'}" for c, asc in query.orders)))
    if query.row_limit is not None:
        params.append(("limit", str(query.row_limit)))
    return params


def parse_content_range(header: Optional[str]) -> Optional[int]:
    # "0-24/3573" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


# ---------------------------
# REST backend
# ---------------------------
class RestQuery(Query):
    def __init__(self, baas: "RestBaaS", table: str):
        super().__init__(table)
        self.baas = baas

    async def execute(self) -> Result:
        headers: Dict[str, str] = {}
        prefer: List[str] = []
        if self.want_single:
            headers["Accept"] = "application/vnd.pgrst.object+json"
        if self.want_count:
            prefer.append("count=exact")

        method = {"select": "GET", "insert": "POST", "update": "PATCH", "delete": "DELETE"}[self.action]
        if method == "GET" and self.head:
            method = "HEAD"
        if self.action != "select":
            prefer.append("return=representation")
        if prefer:
            headers["Prefer"] = ",".join(prefer)

        response = await self.baas.request(
            method,
            f"/rest/v1/{self.table}",
            params=encode_params(self),
            json=self.payload,
            headers=headers,
        )
        if response.status_code >= 400:
            body = _body(response)
            if self.want_single and isinstance(body, dict) and body.get("code") == "PGRST116":
                raise NotFoundError.from_body(body, 404)
            raise BaaSError.from_body(body, response.status_code)

        count = parse_content_range(response.headers.get("content-range")) if self.want_count else None
        if method == "HEAD":
            return Result(data=[], count=count)
        return Result(data=_body(response), count=count)


class RestAuth:
    def __init__(self, baas: "RestBaaS"):
        self.baas = baas

    async def _call(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        response = await self.baas.request(method, f"/auth/v1{path}", headers=headers, **kwargs)
        body = _body(response)
        if response.status_code >= 400:
            raise AuthError.from_body(body, response.status_code)
        return body

    @staticmethod
    def _session(body: Dict[str, Any]) -> Optional[AuthSession]:
        if not isinstance(body, dict) or not body.get("access_token"):
            return None
        return AuthSession(
            access_token=body["access_token"],
            token_type=body.get("token_type", "bearer"),
            user=AuthUser.model_validate(body["user"]),
        )

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthResponse:
        body = await self._call("POST", "/signup", json={"email": email, "password": password, "data": metadata or {}})
        session = self._session(body)
        user = session.user if session else AuthUser.model_validate(body.get("user") or body)
        return AuthResponse(user=user, session=session)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        body = await self._call(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        session = self._session(body)
        return AuthResponse(user=session.user if session else None, session=session)

    async def sign_out(self, token: str) -> None:
        await self._call("POST", "/logout", token=token)

    async def get_user(self, token: str) -> AuthUser:
        return AuthUser.model_validate(await self._call("GET", "/user", token=token))

    async def reset_password_for_email(self, email: str) -> None:
        await self._call("POST", "/recover", json={"email": email})

    async def update_user(
        self, token: str, password: Optional[str] = None, data: Optional[Dict[str, Any]] = None
    ) -> AuthUser:
        payload: Dict[str, Any] = {}
        if password is not None:
            payload["password"] = password
        if data is not None:
            payload["data"] = data
        return AuthUser.model_validate(await self._call("PUT", "/user", token=token, json=payload))


class RestStorage:
    def __init__(self, baas: "RestBaaS"):
        self.baas = baas

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
        cache_control: str = "3600",
    ) -> str:
        headers = {
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true" if upsert else "false",
            "cache-control": f"max-age={cache_control}",
        }
        response = await self.baas.request(
            "POST", f"/storage/v1/object/{bucket}/{path}", content=content, headers=headers
        )
        if response.status_code >= 400:
            raise BaaSError.from_body(_body(response), response.status_code)
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.baas.url}{self.baas.settings.storage_public_prefix}{bucket}/{path}"

    async def remove(self, bucket: str, paths: List[str]) -> List[str]:
        response = await self.baas.request("DELETE", f"/storage/v1/object/{bucket}", json={"prefixes": paths})
        if response.status_code >= 400:
            raise BaaSError.from_body(_body(response), response.status_code)
        return list(paths)


class RestBaaS:
    """Hosted BaaS reached over HTTP with the project's API key."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.baas_url or not settings.baas_key:
            raise ValueError("HUB_BAAS_URL and HUB_BAAS_KEY are required for the rest backend")
        self.settings = settings
        self.url = settings.baas_url.rstrip("/")
        self.key = settings.baas_key
        self.transport = transport
        self.auth = RestAuth(self)
        self.storage = RestStorage(self)

    def table(self, name: str) -> RestQuery:
        return RestQuery(self, name)

    async def request(self, method: str, path: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> httpx.Response:
        merged = {"apikey": self.key, "Authorization": f"Bearer {self.key}"}
        merged.update(headers or {})
        if kwargs.get("json") is None:
            kwargs.pop("json", None)
        async with httpx.AsyncClient(
            base_url=self.url, timeout=self.settings.baas_timeout, transport=self.transport
        ) as client:
            try:
                return await client.request(method, path, headers=merged, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"BaaS {method} {path} failed: {e}")
                raise BaaSError(f"BaaS unreachable: {e}", code="network_error", status=502) from e


# ---------------------------
# Process-wide client
# ---------------------------
_client = None


def get_baas():
    global _client
    if _client is None:
        settings = get_settings()
        if settings.baas_backend == "rest":
            _client = RestBaaS(settings)
        else:
            from .database import MemoryBaaS

            _client = MemoryBaaS(
                public_url=settings.baas_url or "http://localhost:54321",
                auto_confirm=settings.auth_auto_confirm,
            )
        logger.info(f"Using {settings.baas_backend} BaaS backend")
    return _client


def set_baas(client) -> None:
    global _client
    _client = client
