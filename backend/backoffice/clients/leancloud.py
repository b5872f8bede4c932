from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_PREFIX = "/1.1"
OBJECT_NOT_FOUND = 101
DUPLICATE_VALUE = 137


@dataclass(frozen=True)
class LeanCloudError(Exception):
    message: str
    status_code: int | None = None
    body: str | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> int | None:
        if not self.body:
            return None
        try:
            payload = json.loads(self.body)
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("code"), int):
            return payload["code"]
        return None

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.code == OBJECT_NOT_FOUND

    @property
    def is_duplicate(self) -> bool:
        return self.code == DUPLICATE_VALUE


class LeanCloudClient:
    def __init__(
        self,
        *,
        app_id: str,
        app_key: str,
        master_key: str,
        server_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retries = retries
        self._client = httpx.AsyncClient(
            base_url=server_url,
            timeout=timeout,
            transport=transport,
            headers={
                "X-LC-Id": app_id,
                "X-LC-Key": f"{master_key},master",
                "Accept": "application/json",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self._retries + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                last_error = exc
            else:
                if response.status_code >= 500:
                    last_error = LeanCloudError(
                        f"LeanCloud error {response.status_code}",
                        status_code=response.status_code,
                        body=response.text,
                    )
                else:
                    return response
            if attempt < self._retries:
                logger.warning("Retrying %s %s after failure: %s", method, path, last_error)
        raise LeanCloudError("LeanCloud request failed") from last_error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        if not response.is_success:
            raise LeanCloudError(
                f"LeanCloud error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.text:
            return {}
        return response.json()

    async def get_json(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request_json("GET", path, **kwargs)

    async def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("POST", path, json=payload)

    async def put_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("PUT", path, json=payload)

    async def delete_json(self, path: str) -> dict[str, Any]:
        return await self.request_json("DELETE", path)

    async def batch(self, requests: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run several object operations in one round trip.

        Each entry of the result is either ``{"success": ...}`` or
        ``{"error": {"code": ..., "error": ...}}`` in request order.
        """
        if not requests:
            return []
        response = await self.request_json(
            "POST", f"{API_PREFIX}/batch", json={"requests": requests}
        )
        if not isinstance(response, list):
            raise LeanCloudError("LeanCloud batch response is not a list")
        return response
