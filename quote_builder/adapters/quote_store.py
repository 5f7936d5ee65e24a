from typing import Protocol, Optional, Dict, Any
import logging

import httpx

from quote_builder.core.config import settings
from quote_builder.core.exceptions import QuoteStoreError

logger = logging.getLogger(__name__)


class QuoteStorePort(Protocol):
    async def create_quote(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update_quote(self, quote_id: int, payload: Dict[str, Any]) -> Dict[str, Any]: ...


def error_message(resp: httpx.Response) -> str:
    """Pull the machine-readable message out of a non-2xx body."""
    text = resp.text or ""
    try:
        data = resp.json()
    except ValueError:
        return text[:800] or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            val = data.get(key)
            if isinstance(val, str) and val:
                return val
    return text[:800] or f"HTTP {resp.status_code}"


class HttpQuoteStore(QuoteStorePort):
    def __init__(
        self,
        base_url: Optional[str] = None,  # e.g. "http://localhost:5000/api"
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        base = (base_url or settings.QUOTE_API_BASE_URL).rstrip("/")
        self.base_url = base if base.endswith("/quotes") else f"{base}/quotes"
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self.headers = headers or {}
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, transport=self.transport
        )

    async def create_quote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send("POST", self.base_url, payload)

    async def update_quote(self, quote_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send("PUT", f"{self.base_url}/{quote_id}", payload)

    async def _send(self, method: str, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            try:
                resp = await client.request(method, url, json=payload)
            except httpx.HTTPError as e:
                raise QuoteStoreError(f"Quote store unreachable at {url}: {e}") from e

            if resp.is_error:
                raise QuoteStoreError(
                    error_message(resp) or "Failed to save quote",
                    status_code=resp.status_code,
                )
            if "application/json" not in (resp.headers.get("content-type") or "").lower():
                raise QuoteStoreError(
                    f"Quote store returned non-JSON (status={resp.status_code})",
                    status_code=resp.status_code,
                )
            try:
                data = resp.json()
            except ValueError as e:
                raise QuoteStoreError(
                    f"Quote store returned malformed JSON (status={resp.status_code})",
                    status_code=resp.status_code,
                ) from e

            if not isinstance(data, dict):
                raise QuoteStoreError(
                    f"Quote store returned {type(data).__name__}, expected an object",
                    status_code=resp.status_code,
                )
            logger.debug("%s %s -> %s", method, url, resp.status_code)
            return data
