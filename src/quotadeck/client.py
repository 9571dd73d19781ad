"""HTTP client for the proxy's dashboard endpoints."""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

SNAPSHOT_PATH = "/account-limits"
HISTORY_PATH = "/api/stats/history"
MODEL_CONFIG_PATH = "/api/models/config"
PASSWORD_HEADER = "X-WebUI-Password"


class ApiError(Exception):
    """Raised when a request fails in transport or returns a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        new_password: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.new_password = new_password


class DashboardClient:
    """Talks to the snapshot, history and model-config endpoints.

    The web UI password is opaque to this client: callers pass the current
    value in and store whatever comes back as ``new_password``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        password_prompt: Optional[Callable[[], Optional[str]]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.password_prompt = password_prompt
        self.session = session or requests.Session()

    def _send(self, method, url, password, json_body):
        headers = {"Content-Type": "application/json"}
        if password:
            headers[PASSWORD_HEADER] = password
        return self.session.request(
            method, url, headers=headers, json=json_body, timeout=self.timeout
        )

    def request(
        self,
        path: str,
        password: Optional[str] = None,
        method: str = "GET",
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Tuple[requests.Response, Optional[str]]:
        """Send a request, re-prompting for the password once on 401.

        Returns:
            (response, new_password); new_password is None unless the prompt
            supplied a replacement

        Raises:
            ApiError: on connection errors or timeouts
        """
        url = f"{self.base_url}{path}"
        start = time.perf_counter()
        new_password = None
        try:
            response = self._send(method, url, password, json_body)
            if response.status_code == 401 and self.password_prompt:
                new_password = self.password_prompt()
                if new_password:
                    response = self._send(method, url, new_password, json_body)
        except requests.RequestException as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                f"[client] {method} {path} error elapsed_ms={elapsed_ms:.1f} err={e}"
            )
            raise ApiError(f"{method} {path} failed: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"[client] {method} {path} status={response.status_code} "
            f"elapsed_ms={elapsed_ms:.1f}"
        )
        return response, new_password

    def _get_json(
        self, path: str, password: Optional[str]
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        response, new_password = self.request(path, password)
        if not response.ok:
            raise ApiError(
                f"HTTP {response.status_code}", response.status_code, new_password
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON from {path}: {e}", new_password=new_password
            ) from e
        if not isinstance(data, dict):
            raise ApiError(
                f"Unexpected payload from {path}: {type(data).__name__}",
                new_password=new_password,
            )
        return data, new_password

    def fetch_snapshot(
        self, password: Optional[str] = None
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        """GET the account/model/config snapshot."""
        return self._get_json(SNAPSHOT_PATH, password)

    def fetch_history(
        self, password: Optional[str] = None
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        """GET the hourly usage-history series."""
        return self._get_json(HISTORY_PATH, password)

    def update_model_config(
        self,
        model_id: str,
        config: Dict[str, Any],
        password: Optional[str] = None,
    ) -> Optional[str]:
        """POST a partial model config. Returns the rotated password, if any."""
        response, new_password = self.request(
            MODEL_CONFIG_PATH,
            password,
            method="POST",
            json_body={"modelId": model_id, "config": config},
        )
        if not response.ok:
            raise ApiError(
                "Failed to update model config", response.status_code, new_password
            )
        return new_password
