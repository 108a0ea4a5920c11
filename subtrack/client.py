"""
Python client for the SubTrack API.

Expired access tokens are refreshed transparently. Refreshing is single-flight
per client: when several threads hit a 401 at once, one of them performs the
refresh and the others wait for its outcome.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional

import requests

LOGGER = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        detail = payload.get("detail") if isinstance(payload, dict) else payload
        super().__init__(f"HTTP {status_code}: {detail}")


class AuthenticationError(ApiError):
    """The session could not be refreshed; the caller must log in again."""


class _Flight:
    __slots__ = ("done", "result", "error")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """At most one in-flight call; concurrent callers share its result or error."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._flight: Optional[_Flight] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._flight is not None

    def do(self, fn: Callable[[], Any]) -> Any:
        with self._lock:
            flight = self._flight
            leader = flight is None
            if leader:
                flight = self._flight = _Flight()

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            flight.result = fn()
            return flight.result
        except Exception as exc:
            flight.error = exc
            raise
        finally:
            with self._lock:
                self._flight = None
            flight.done.set()


class SubTrackClient:
    """Thin wrapper around ``requests.Session`` for the ``/api/v1`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.session = session or requests.Session()
        self.timeout = timeout
        self._refresh_flight = SingleFlight()

    # ------------------------------------------------------------------ transport

    def _send(self, method: str, path: str, token: Optional[str], **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self.session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )

    @staticmethod
    def _payload(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def request(self, method: str, path: str, **kwargs) -> Any:
        token = self.access_token
        response = self._send(method, path, token, **kwargs)

        if response.status_code == 401 and not path.startswith(REFRESH_PATH):
            token = self.refresh(stale_token=token)
            response = self._send(method, path, token, **kwargs)

        if not response.ok:
            raise ApiError(response.status_code, self._payload(response))
        return self._payload(response)

    def refresh(self, stale_token: Optional[str] = None) -> str:
        """
        Return a fresh access token.

        If another caller already replaced ``stale_token`` the current token
        is returned without a new refresh round-trip.
        """
        if stale_token is not None and self.access_token and self.access_token != stale_token:
            return self.access_token
        return self._refresh_flight.do(self._do_refresh)

    def _do_refresh(self) -> str:
        if not self.refresh_token:
            self.logout()
            raise AuthenticationError(401, "No refresh token available")

        LOGGER.debug("Refreshing access token")
        response = self._send("POST", REFRESH_PATH, None, json={"refresh_token": self.refresh_token})
        if not response.ok:
            self.logout()
            raise AuthenticationError(response.status_code, self._payload(response))

        body = self._payload(response) or {}
        data = body.get("data", body) if isinstance(body, dict) else {}
        tokens = data.get("tokens", data)
        access = tokens.get("access_token")
        if not access:
            self.logout()
            raise AuthenticationError(response.status_code, "Refresh response carried no access token")

        self.access_token = access
        self.refresh_token = tokens.get("refresh_token") or self.refresh_token
        return access

    def logout(self) -> None:
        self.access_token = None
        self.refresh_token = None

    # ------------------------------------------------------------------ endpoints

    def list_subscriptions(self, user_id: int, status: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"user_id": user_id}
        if status:
            params["status"] = status
        return self.request("GET", "/api/v1/subscriptions", params=params)

    def create_subscription(self, user_id: int, **fields) -> Dict[str, Any]:
        return self.request("POST", "/api/v1/subscriptions", json={"user_id": user_id, **fields})

    def projection(
        self,
        user_id: int,
        months: Optional[int] = None,
        excluded_ids: Iterable = (),
        currency: Optional[str] = None,
    ) -> Any:
        params: Dict[str, Any] = {"user_id": user_id}
        if months:
            params["months"] = months
        excluded = ",".join(str(i) for i in excluded_ids)
        if excluded:
            params["excluded_ids"] = excluded
        if currency:
            params["currency"] = currency
        return self.request("GET", "/api/v1/finance/projection", params=params)["items"]

    def overview(self, user_id: int, excluded_ids: Iterable = ()) -> Dict[str, Any]:
        params: Dict[str, Any] = {"user_id": user_id}
        excluded = ",".join(str(i) for i in excluded_ids)
        if excluded:
            params["excluded_ids"] = excluded
        return self.request("GET", "/api/v1/finance/overview", params=params)

    def pending_bills(self, user_id: int) -> Dict[str, Any]:
        return self.request("GET", "/api/v1/finance/pending", params={"user_id": user_id})

    def confirm_payment(self, user_id: int, record_id: int, amount=None, date: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"user_id": user_id}
        if amount is not None:
            body["amount"] = amount
        if date:
            body["date"] = date
        return self.request("PATCH", f"/api/v1/finance/records/{record_id}/confirm", json=body)
