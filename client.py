"""Python client for the Finance Tracker API.

Holds the bearer token in an explicit :class:`ApiSession` which is created on
login and cleared on logout, or as soon as the server answers a protected call
with 401/403 (missing, expired or rejected token).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from jose import jwt, JWTError

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class NotLoggedIn(Exception):
    pass


class ApiSession:
    def __init__(self, token: str, user: Dict[str, Any]):
        self.token = token
        self.user = user
        self.expires_at = self._read_expiry(token)

    @staticmethod
    def _read_expiry(token: str) -> Optional[datetime]:
        # the client has no signing key, it only reads the exp claim
        try:
            exp = jwt.get_unverified_claims(token).get("exp")
        except JWTError:
            return None
        if exp is None:
            return None
        return datetime.fromtimestamp(int(exp), tz=timezone.utc)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def _message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or ""
    if isinstance(body, dict):
        return str(body.get("message", ""))
    return ""


class FinanceClient:
    def __init__(self, base_url: str = "http://localhost:5000", http=None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.session: Optional[ApiSession] = None

    # ---------- transport ----------
    def _request(self, method: str, path: str, json=None, params=None, protected: bool = True):
        headers = {}
        if protected:
            if self.session is None:
                raise NotLoggedIn("Log in first.")
            if self.session.is_expired():
                logger.info("Session expired, clearing it")
                self.logout()
                raise NotLoggedIn("Session expired, log in again.")
            headers.update(self.session.headers)

        response = self.http.request(
            method, self.base_url + path, json=json, params=params, headers=headers, timeout=self.timeout
        )
        if protected and response.status_code in (401, 403):
            self.logout()
        if response.status_code >= 400:
            raise ApiError(response.status_code, _message(response))
        return response

    # ---------- auth ----------
    def register(self, username: str, email: str, password: str) -> int:
        r = self._request(
            "POST", "/auth/register",
            json={"username": username, "email": email, "password": password},
            protected=False,
        )
        return r.json()["userId"]

    def login(self, email: str, password: str) -> ApiSession:
        r = self._request("POST", "/auth/login", json={"email": email, "password": password}, protected=False)
        body = r.json()
        self.session = ApiSession(body["token"], body["user"])
        return self.session

    def logout(self):
        self.session = None

    @property
    def logged_in(self) -> bool:
        return self.session is not None and not self.session.is_expired()

    # ---------- categories ----------
    def categories(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/categories").json()

    def add_category(self, name: str, type_: str) -> int:
        return self._request("POST", "/categories", json={"name": name, "type": type_}).json()["categoryId"]

    def update_category(self, category_id: int, name: str, type_: str):
        self._request("PUT", f"/categories/{category_id}", json={"name": name, "type": type_})

    def delete_category(self, category_id: int):
        self._request("DELETE", f"/categories/{category_id}")

    # ---------- transactions ----------
    @staticmethod
    def _transaction_body(amount, type_, transaction_date, description=None, category_id=None):
        if hasattr(transaction_date, "isoformat"):
            transaction_date = transaction_date.isoformat()
        return {
            "amount": float(amount),
            "type": type_,
            "transaction_date": transaction_date,
            "description": description,
            "category_id": category_id,
        }

    def transactions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/transactions").json()

    def add_transaction(self, amount, type_, transaction_date, description=None, category_id=None) -> int:
        body = self._transaction_body(amount, type_, transaction_date, description, category_id)
        return self._request("POST", "/transactions", json=body).json()["transactionId"]

    def update_transaction(self, tx_id: int, amount, type_, transaction_date, description=None, category_id=None):
        body = self._transaction_body(amount, type_, transaction_date, description, category_id)
        self._request("PUT", f"/transactions/{tx_id}", json=body)

    def delete_transaction(self, tx_id: int):
        self._request("DELETE", f"/transactions/{tx_id}")

    def export_transactions(self, year: Optional[int] = None, month: Optional[int] = None) -> bytes:
        params = {k: v for k, v in (("year", year), ("month", month)) if v is not None}
        return self._request("GET", "/transactions/export", params=params).content

    # ---------- dashboard ----------
    def summary(self) -> Dict[str, float]:
        return self._request("GET", "/dashboard/summary").json()

    def monthly_trends(self) -> List[Dict[str, Any]]:
        body = self._request("GET", "/dashboard/monthly-trends").json()
        return merge_monthly_trends(body["incomeTrends"], body["expenseTrends"])

    def category_spending(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/dashboard/category-spending").json()


def merge_monthly_trends(income: List[Dict[str, Any]], expense: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Merge the two per-type series into one row per month.

    A month present in only one series gets 0 for the other.
    """
    months: Dict[str, Dict[str, Any]] = {}
    for key, series in (("income", income), ("expense", expense)):
        for item in series:
            row = months.setdefault(item["month"], {"month": item["month"], "income": 0.0, "expense": 0.0})
            row[key] = float(item["total_amount"] or 0)
    return [months[m] for m in sorted(months)]


def category_label(transaction: Dict[str, Any]) -> str:
    return transaction.get("category_name") or UNCATEGORIZED
