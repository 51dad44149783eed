"""
Ledger RPC Client - aiohttp implementation of LedgerClient.

Endpoints (relative to the node base URL):
- POST /transaction/broadcast
- GET  /transaction/{id}
- GET  /program/{program}/mapping/{mapping}/{key}
- GET  /account/{address}/{resource}
- GET  /health

Retry rules:
- 5xx, 429, timeouts and connection errors: retried with
  exponential backoff up to the policy ceiling
- other 4xx: never retried; 404 raises LedgerNotFoundError
- broadcast: single attempt, a retried broadcast could land twice
"""

import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp

from core.constants import (
    HEALTH_TIMEOUT_SECONDS,
    RPC_BACKOFF_BASE_SECONDS,
    RPC_MAX_ATTEMPTS,
    RPC_TIMEOUT_SECONDS,
)
from core.retry import RetryPolicy
from ledger_client.base import LedgerClient
from ledger_client.exceptions import (
    LedgerClientError,
    LedgerNotFoundError,
    LedgerResponseError,
    LedgerRpcError,
    LedgerTimeoutError,
)
from ledger_client.models import LedgerTransaction


logger = logging.getLogger(__name__)


class LedgerRpcClient(LedgerClient):
    """
    HTTP JSON client for a ledger node.

    The session is created lazily and owned by the client unless
    one is passed in.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = RPC_TIMEOUT_SECONDS,
        retry_policy: Optional[RetryPolicy] = None,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._retry_policy = retry_policy or RetryPolicy.exponential(
            max_attempts=RPC_MAX_ATTEMPTS,
            base_seconds=RPC_BACKOFF_BASE_SECONDS,
        )
        self._session = session
        self._owns_session = session is None
        self._last_latency_ms: Optional[float] = None

    @property
    def name(self) -> str:
        return "ledger_rpc"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def last_latency_ms(self) -> Optional[float]:
        return self._last_latency_ms

    # ─────────────────────────────────────────────────────────────
    # LedgerClient interface
    # ─────────────────────────────────────────────────────────────

    async def broadcast_transaction(self, transaction: dict[str, Any]) -> str:
        body = await self._request(
            "POST",
            "/transaction/broadcast",
            json_body=transaction,
            retry=False,
        )
        if isinstance(body, str) and body:
            return body
        if isinstance(body, dict):
            tx_id = body.get("transaction_id") or body.get("id")
            if tx_id:
                return str(tx_id)
        raise LedgerResponseError(
            "Broadcast response carries no transaction id",
            request_url=self._url("/transaction/broadcast"),
            response_body=str(body)[:500],
        )

    async def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        body = await self._request("GET", f"/transaction/{transaction_id}")
        return LedgerTransaction.from_dict(body, transaction_id=transaction_id)

    async def get_mapping_value(
        self,
        program_id: str,
        mapping: str,
        key: str,
    ) -> Optional[str]:
        try:
            body = await self._request("GET", f"/program/{program_id}/mapping/{mapping}/{key}")
        except LedgerNotFoundError:
            return None

        if body is None:
            return None
        if isinstance(body, dict):
            value = body.get("value")
            return None if value is None else str(value)
        return str(body)

    async def get_account_resource(self, address: str, resource: str) -> dict[str, Any]:
        body = await self._request("GET", f"/account/{address}/{resource}")
        if not isinstance(body, dict):
            raise LedgerResponseError(
                f"Account resource '{resource}' is not an object",
                request_url=self._url(f"/account/{address}/{resource}"),
                response_body=str(body)[:500],
            )
        return body

    async def health(self, timeout: Optional[float] = None) -> bool:
        await self._request(
            "GET",
            "/health",
            timeout=timeout if timeout is not None else self._health_timeout,
            retry=False,
        )
        return True

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ─────────────────────────────────────────────────────────────
    # HTTP helpers
    # ─────────────────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "Accept": "application/json",
                    "User-Agent": "ProofScore/1.0",
                },
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        retry: bool = True,
    ) -> Any:
        """Make a request, retrying transient failures per the policy."""
        max_attempts = self._retry_policy.max_attempts if retry else 1
        attempt = 0

        while True:
            try:
                return await self._request_once(method, path, json_body, timeout)
            except LedgerClientError as e:
                if not self._is_transient(e) or attempt >= max_attempts - 1:
                    raise
                wait_time = self._retry_policy.delay_for(attempt)
                logger.warning(
                    f"[{self.name}] Retry {attempt + 1}/{max_attempts} "
                    f"in {wait_time:.1f}s: {e}"
                )
                await asyncio.sleep(wait_time)
            attempt += 1

    @staticmethod
    def _is_transient(error: LedgerClientError) -> bool:
        if isinstance(error, LedgerTimeoutError):
            return True
        if isinstance(error, LedgerResponseError):
            return False
        if error.status_code is None:
            # connection-level failure
            return True
        return error.status_code == 429 or error.status_code >= 500

    async def _request_once(
        self,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]],
        timeout: Optional[float],
    ) -> Any:
        session = await self._get_session()
        url = self._url(path)
        client_timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else self._timeout
        )

        start_time = time.monotonic()
        try:
            async with session.request(
                method,
                url,
                json=json_body,
                timeout=client_timeout,
            ) as response:
                self._last_latency_ms = (time.monotonic() - start_time) * 1000

                if response.status == 404:
                    raise LedgerNotFoundError(
                        "Resource not found",
                        request_url=url,
                        status_code=404,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise LedgerRpcError(
                        f"HTTP {response.status}",
                        request_url=url,
                        status_code=response.status,
                        response_body=body[:500],
                    )

                text = await response.text()
                if not text:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError:
                    # bare string bodies such as a transaction id
                    return text.strip().strip('"')

        except asyncio.TimeoutError as e:
            raise LedgerTimeoutError(
                f"Request timed out after {client_timeout.total}s",
                request_url=url,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise LedgerRpcError(
                f"Connection error: {e}",
                request_url=url,
                original_error=e,
            ) from e
