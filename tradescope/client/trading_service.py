"""Client facade over the TradeScope REST API.

Every call returns a ``ServiceResult``; nothing raises to the caller. The
underlying ``requests.Session`` keeps the session cookie between calls.

Usage:
    service = TradingService("http://localhost:3001")
    service.login("trader@example.com", "secret")
    result = service.get_trades({"status": "open"})
    if result.success:
        for trade in result.data:
            ...
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

import requests

from tradescope.config import get_settings
from tradescope.core.result import ServiceResult

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized or Session Expired"


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value

    return f"Request failed with status {response.status_code}"


def _query_params(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty filters and render dates as ISO strings."""
    params = {}
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        params[key] = value
    return params


class TradingService:
    """Typed access to the journal's trade, broker and analytics endpoints."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or get_settings().api_url).rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> ServiceResult:
        """Perform a request and normalize the outcome.

        401 always maps to ``"Unauthorized or Session Expired"``; other
        failures carry the server's message when it sends one.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            return ServiceResult.fail(str(e))

        if response.status_code == 401:
            return ServiceResult.fail(UNAUTHORIZED)

        if not response.ok:
            return ServiceResult.fail(_error_message(response))

        if response.status_code == 204 or not response.content:
            return ServiceResult.ok()

        try:
            body = response.json()
        except ValueError:
            return ServiceResult.fail("Invalid response from server")

        if isinstance(body, dict) and "success" in body and ("data" in body or "error" in body):
            if body["success"]:
                return ServiceResult.ok(body.get("data"))
            return ServiceResult.fail(body.get("error") or body.get("message") or "Request failed")

        return ServiceResult.ok(body)

    # Session

    def login(self, email: str, password: str) -> ServiceResult:
        return self._request("POST", "/api/auth/login", json={"email": email, "password": password})

    def logout(self) -> ServiceResult:
        return self._request("POST", "/api/auth/logout")

    # Accounts and brokers

    def get_trading_accounts(self) -> ServiceResult:
        return self._request("GET", "/api/trading/accounts")

    def get_brokers(self) -> ServiceResult:
        return self._request("GET", "/api/brokers")

    def add_broker(self, broker_data: Dict[str, Any]) -> ServiceResult:
        return self._request("POST", "/api/brokers", json=broker_data)

    def get_broker_status(self) -> ServiceResult:
        return self._request("GET", "/api/brokers/status")

    def get_upstox_profile(self) -> ServiceResult:
        return self._request("GET", "/api/upstox/profile")

    def get_upstox_holdings(self) -> ServiceResult:
        return self._request("GET", "/api/upstox/holdings")

    # Trades

    def get_trades(self, filters: Optional[Dict[str, Any]] = None) -> ServiceResult:
        """List trades.

        Args:
            filters: Any of status, symbol, date_from, date_to, limit, offset
        """
        return self._request("GET", "/api/trades", params=_query_params(filters))

    def create_trade(self, trade_data: Dict[str, Any]) -> ServiceResult:
        return self._request("POST", "/api/trades", json=trade_data)

    def update_trade(self, trade_id: str, trade_data: Dict[str, Any]) -> ServiceResult:
        return self._request("PUT", f"/api/trades/{trade_id}", json=trade_data)

    def delete_trade(self, trade_id: str) -> ServiceResult:
        return self._request("DELETE", f"/api/trades/{trade_id}")

    def close_trade(self, trade_id: str, exit_price: float) -> ServiceResult:
        return self._request("POST", f"/api/trades/close/{trade_id}", json={"exit_price": exit_price})

    # Portfolio and analytics

    def get_portfolio_summary(self) -> ServiceResult:
        return self._request("GET", "/api/portfolio/summary")

    def get_analytics_data(self, filters: Optional[Dict[str, Any]] = None) -> ServiceResult:
        return self._request("GET", "/api/analytics/data", params=_query_params(filters))

    def get_strategies(self) -> ServiceResult:
        return self._request("GET", "/api/strategies")

    def sync_from_brokers(self) -> ServiceResult:
        return self._request("POST", "/api/sync/brokers")
