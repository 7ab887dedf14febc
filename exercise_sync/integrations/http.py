from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from exercise_sync.integrations.identity import TokenResponse


class ApiClient:
    """Base for the thin Player, Gallery and CITE clients.

    - One httpx.Client per job, bound to the system's base URL
    - Bearer token from the worker's service account
    - Errors surface as httpx.HTTPStatusError
    """

    system = "api"

    def __init__(
        self,
        base_url: str,
        token: TokenResponse | None,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token is not None:
            headers["Authorization"] = token.authorization_header
        self._http = httpx.Client(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        resp = self._http.request(method, path, json=json)
        if resp.status_code >= 400:
            logger.warning(
                f"[{self.system.upper()}] {method} {path} failed",
                status_code=resp.status_code,
                body=resp.text[:500],
            )
        resp.raise_for_status()
        if not resp.content:
            return None
        return resp.json()

    def _get(self, path: str) -> Any:
        return self._request("GET", path)

    def _post(self, path: str, payload: Any = None) -> Any:
        return self._request("POST", path, json=payload)

    def _put(self, path: str, payload: Any = None) -> Any:
        return self._request("PUT", path, json=payload)

    def _delete(self, path: str) -> None:
        self._request("DELETE", path)
