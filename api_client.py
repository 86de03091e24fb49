"""
HTTP client for the admin dashboard and log viewer.

The bearer token lives on the client instance and is attached per request by
``BearerAuth``, so two clients in one process never share credentials.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

import config

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    def __init__(self, message: str = "Error talking to the analytics API", status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class BearerAuth(httpx.Auth):
    """Reads the token from ``token_getter`` on every request."""

    def __init__(self, token_getter):
        self.token_getter = token_getter

    def auth_flow(self, request: httpx.Request):
        token = self.token_getter()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


class AdminApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.token = token
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=BearerAuth(lambda: self.token),
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[List[Tuple[str, Tuple[str, bytes, str]]]] = None,
    ) -> Dict[str, Any]:
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        logger.debug(f"Requesting {method} {endpoint} | Params: {params}")
        try:
            response = self._client.request(method, endpoint, params=params, json=json_data, data=data, files=files)
        except httpx.RequestError as e:
            logger.error(f"Network error on {method} {endpoint}: {e}")
            raise ApiClientError(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(f"{method} {endpoint} failed with {response.status_code}: {message}")
            raise ApiClientError(message or response.reason_phrase, response.status_code, body)
        return body

    # --- auth ---

    def login(self, email: str, password: str) -> Dict[str, Any]:
        body = self._request("POST", "/api/admin/users/login", json_data={"email": email, "password": password})
        self.token = body.get("token")
        return body

    def logout(self) -> None:
        self.token = None

    def profile(self) -> Dict[str, Any]:
        return self._request("GET", "/api/admin/users/profile")["user"]

    def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/admin/users/change-password",
            json_data={"currentPassword": current_password, "newPassword": new_password},
        )

    # --- statistics ---

    def overview(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", "/api/stats/overview", params={"startDate": start_date, "endDate": end_date})

    def dashboard(self) -> Dict[str, Any]:
        return self._request("GET", "/api/stats/dashboard")

    def trends(self, metric: Optional[str] = None, period: str = "30d") -> Dict[str, Any]:
        return self._request("GET", "/api/stats/trends", params={"metric": metric, "period": period})

    # --- logs ---

    def logs(self, page: int = 1, limit: int = 50, **filters) -> Dict[str, Any]:
        return self._request("GET", "/api/logs", params={"page": page, "limit": limit, **filters})

    def event_counts(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/logs/counts", params={"startDate": start_date, "endDate": end_date})["counts"]

    def funnel(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", "/api/logs/funnel", params={"startDate": start_date, "endDate": end_date})

    def most_viewed(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/logs/most-viewed", params={"limit": limit})["products"]

    # --- products ---

    def list_products(self, page: int = 1, limit: int = 10, **filters) -> Dict[str, Any]:
        return self._request("GET", "/api/admin/products", params={"page": page, "limit": limit, **filters})

    def get_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/admin/products/{product_id}")["product"]

    def create_product(self, fields: Dict[str, Any], images: Optional[List[Tuple[str, bytes, str]]] = None) -> Dict[str, Any]:
        files = [("images", image) for image in images or []] or None
        return self._request("POST", "/api/admin/products", data=fields, files=files)["product"]

    def update_product(
        self, product_id: str, fields: Dict[str, Any], images: Optional[List[Tuple[str, bytes, str]]] = None
    ) -> Dict[str, Any]:
        files = [("images", image) for image in images or []] or None
        return self._request("PUT", f"/api/admin/products/{product_id}", data=fields, files=files)["product"]

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/admin/products/{product_id}")

    # --- users ---

    def list_users(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/admin/users")["users"]

    def register_user(self, name: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/admin/users/register",
            json_data={"name": name, "email": email, "password": password, "role": role},
        )["user"]

    def update_user(self, user_id: str, **changes) -> Dict[str, Any]:
        return self._request("PUT", f"/api/admin/users/{user_id}", json_data=changes)["user"]
