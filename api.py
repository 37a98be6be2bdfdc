"""HTTP client for the Storefront API"""
import os
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

API_URL = os.getenv("STOREFRONT_API_URL", "http://localhost:8000")


class ApiError(Exception):
    """Non-2xx response, or a transport failure (status_code 0)"""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("msg")
        if isinstance(detail, list) and detail:
            # FastAPI validation errors
            first = detail[0]
            return first.get("msg", str(first)) if isinstance(first, dict) else str(first)
        if detail:
            return str(detail)
    return resp.reason_phrase


class ApiClient:
    def __init__(self, http: Optional[httpx.Client] = None, base_url: Optional[str] = None, token: Optional[str] = None):
        self.http = http or httpx.Client(base_url=base_url or API_URL)
        self.token = token

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            resp = self.http.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("api_unreachable", method=method, path=path, error=str(e))
            raise ApiError(0, str(e) or "Network error") from e
        if resp.is_error:
            message = _error_message(resp)
            logger.warning("api_error", method=method, path=path, status=resp.status_code, message=message)
            raise ApiError(resp.status_code, message)
        if not resp.content:
            return None
        return resp.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str, json: Any = None) -> Any:
        return self.request("DELETE", path, json=json)
