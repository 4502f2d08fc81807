"""
Base payment client implementing shared concerns: http, retry, logging, mapping.

Concrete providers subclass it and implement the provider wire format.
"""
from __future__ import annotations

from typing import Any, Callable, Optional
from contextlib import asynccontextmanager

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


logger = get_logger(__name__)

_BODY_SNIPPET = 500


class BasePaymentClient:
    provider: str = "base"
    # provider result code -> internal state
    status_map: dict[str, str] = {}

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        # Kept open for reuse; aclose() releases it
        yield self._client

    async def aclose(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Any]):
        """Run `fn` with bounded exponential backoff on transport errors and 5xx."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError, PaymentRecoverableError)),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _send(self, method: str, url: str, **kwargs) -> dict:
        """Issue one request and return the decoded JSON object.

        5xx raises PaymentRecoverableError (retried), other non-2xx and
        non-JSON bodies raise PaymentProviderError.
        """
        async with self.client() as client:
            resp = await client.request(method, url, **kwargs)
        details = {"status_code": resp.status_code, "url": url}
        if resp.status_code >= 500:
            details["body"] = resp.text[:_BODY_SNIPPET]
            raise PaymentRecoverableError(
                f"{self.provider} returned HTTP {resp.status_code}",
                provider=self.provider,
                details=details,
            )
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.status_code >= 400:
            details["body"] = resp.text[:_BODY_SNIPPET]
            code = data.get("code") if isinstance(data, dict) else None
            code = None if code is None else str(code)
            raise PaymentProviderError(
                f"{self.provider} rejected the request with HTTP {resp.status_code}",
                provider=self.provider,
                provider_code=code,
                details=details,
            )
        if not isinstance(data, dict):
            details["body"] = resp.text[:_BODY_SNIPPET]
            raise PaymentProviderError(f"Invalid response from {self.provider}", provider=self.provider, details=details)
        return data

    # Helpers
    def _map_status(self, provider_status: Optional[str], default: str) -> str:
        return self.status_map.get(provider_status or "", default)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)
