"""RemoteBackend — httpx client for the Supabase (PostgREST) REST API.

Tables are addressed by their remote name (see ``Collection.remote_table``).
Row filters use PostgREST syntax: ``?user_id=eq.<id>``, ``?id=eq.<id>``.
"""

import logging
from typing import Optional

import httpx

from pocket_stock.auth import AuthSession
from pocket_stock.config import Config

logger = logging.getLogger(__name__)

# PostgreSQL unique_violation, returned by PostgREST in the error body
DUPLICATE_KEY_CODE = "23505"


class RemoteError(Exception):
    """A backend request failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_duplicate_key(self) -> bool:
        return self.code == DUPLICATE_KEY_CODE


class RemoteBackend:
    """Thin request/response wrapper over the backend's REST endpoints."""

    def __init__(self, session: Optional[AuthSession] = None,
                 base_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.session = session
        self.api_key = api_key if api_key is not None else Config.SUPABASE_ANON_KEY
        self._client = httpx.Client(
            base_url=(base_url or Config.SUPABASE_URL).rstrip("/"),
            timeout=httpx.Timeout(timeout or Config.REQUEST_TIMEOUT),
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self._client.close()

    @property
    def access_token(self) -> Optional[str]:
        return self.session.access_token if self.session else None

    def _headers(self) -> dict:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = self._client.request(method, path, headers=headers,
                                            **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

        if response.is_success:
            return response

        code, message = None, response.text
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or body.get("msg") or message
        raise RemoteError(
            f"{method} {path} returned {response.status_code}: {message}",
            status_code=response.status_code,
            code=str(code) if code is not None else None,
        )

    # ── Auth ────────────────────────────────────────────────────

    def get_current_user_id(self) -> Optional[str]:
        """Ask the backend who the access token belongs to.

        Returns None when there is no token or the token is rejected.
        """
        if not self.access_token:
            return None
        try:
            response = self._request("GET", "/auth/v1/user")
        except RemoteError as e:
            if e.status_code in (401, 403):
                return None
            raise
        return response.json().get("id")

    # ── Tables ──────────────────────────────────────────────────

    def select_by_user(self, table: str, user_id: str) -> list[dict]:
        """All rows of *table* owned by *user_id*. Empty list means no rows."""
        response = self._request(
            "GET", f"/rest/v1/{table}",
            params={"user_id": f"eq.{user_id}", "select": "*"},
        )
        rows = response.json()
        return rows if isinstance(rows, list) else []

    def insert(self, table: str, row: dict):
        self._request("POST", f"/rest/v1/{table}", json=row,
                      headers={"Prefer": "return=minimal"})

    def update(self, table: str, record_id: str, row: dict):
        self._request("PATCH", f"/rest/v1/{table}",
                      params={"id": f"eq.{record_id}"}, json=row,
                      headers={"Prefer": "return=minimal"})

    def delete(self, table: str, record_id: str):
        self._request("DELETE", f"/rest/v1/{table}",
                      params={"id": f"eq.{record_id}"})
