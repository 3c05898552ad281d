"""HTTP transport to the bundle store."""

from __future__ import annotations

from typing import Any, Sequence

import requests

from ..runtime import get_upload_timeout

HEALTH_PATH = "/server/health"
UPLOAD_PATH = "/bundle/upload"


class StoreClient:
    def __init__(self, url: str, token: str, *, timeout: float | None = None):
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else get_upload_timeout()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "User-Agent": "ddf-tools",
        }

    def health(self) -> str:
        resp = requests.get(
            f"{self.url}{HEALTH_PATH}", headers=self._headers(), timeout=self.timeout
        )
        resp.raise_for_status()
        data = resp.json()
        return str(data.get("status") if isinstance(data, dict) else data)

    def upload(self, parts: Sequence[tuple[str, str, bytes]]) -> dict[str, Any]:
        """POST one multipart batch; ``parts`` are ``(field, filename, data)``."""
        files = [
            (field, (filename, data, "application/octet-stream"))
            for field, filename, data in parts
        ]
        resp = requests.post(
            f"{self.url}{UPLOAD_PATH}",
            headers=self._headers(),
            files=files,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise ValueError("Upload response has no 'result' mapping")
        return result
