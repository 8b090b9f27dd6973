"""
FitLog REST API client
Thin requests.Session wrapper with bearer-token injection and typed errors
"""
from typing import Any, Callable, Dict, Optional

import requests

from fitlog.errors import APIError, NetworkError
from fitlog.logging import get_logger

logger = get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]


class FitLogAPIClient:
    """
    Client for the FitLog REST backend.

    The token provider plays the role of the auth provider's getToken():
    it is called before every request and, when it returns a token, the
    request carries "Authorization: Bearer <token>".

    Usage:
        client = FitLogAPIClient("http://localhost:3000", token_provider=get_token)
        workouts = client.request("GET", "/workouts")
    """

    DEFAULT_HEADERS = {"Content-Type": "application/json"}

    def __init__(
        self,
        base_url: str = "http://localhost",
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self.session = session or requests.Session()
        self.session.headers.update(self.DEFAULT_HEADERS)

    def set_token_provider(self, token_provider: Optional[TokenProvider]) -> None:
        """Install the auth token callback (call once after sign-in)."""
        self._token_provider = token_provider

    def url_for(self, path: str) -> str:
        """Build an absolute URL; absolute URLs pass through unchanged."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _auth_headers(self) -> Dict[str, str]:
        if self._token_provider is None:
            return {}
        token = self._token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: Path relative to base_url, or an absolute URL
            json: Request body (serialized as JSON)
            headers: Extra headers for this request

        Returns:
            Decoded JSON body, or None for empty responses (204)

        Raises:
            APIError: The server answered with a non-2xx status
            NetworkError: No response was received
        """
        url = self.url_for(path)
        request_headers = dict(headers or {})
        request_headers.update(self._auth_headers())

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"Request to {url} failed: {e}",
                original_error=e,
                endpoint=url,
            ) from e

        if not response.ok:
            raise APIError(
                f"HTTP {response.status_code}: {response.reason}",
                status=response.status_code,
                status_text=response.reason,
                endpoint=url,
                details={"body": self._error_body(response)},
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_body(response: requests.Response) -> Any:
        """Best-effort extraction of the server's error payload."""
        try:
            return response.json()
        except ValueError:
            return response.text[:500]

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def check_health(self, timeout: float = 5) -> bool:
        """HEAD the /health endpoint; True when the server answers 2xx."""
        try:
            response = self.session.head(self.url_for("/health"), timeout=timeout)
            return response.ok
        except requests.exceptions.RequestException as e:
            logger.debug(f"Server reachability check failed: {e}")
            return False

    def close(self) -> None:
        self.session.close()
