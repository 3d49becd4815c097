"""Async client for the seller-operations REST API.

Every dashboard number comes from this API; the client is a thin, logged
wrapper around ``httpx.AsyncClient`` that returns parsed JSON bodies and
raises :class:`SellerApiError` for anything that is not a 2xx answer.
Envelope unwrapping is left to the callers (see ``seller_hub.utils.envelope``).
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from seller_hub.config import settings
from seller_hub.services.errors import SellerApiError
from seller_hub.utils.logger import logger, upstream_call_log


class SellerApiClient:

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self.user_id = user_id
        self.base_url = (base_url or settings.seller_api_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.SELLER_API_TIMEOUT_SECONDS
        self._transport = transport
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "SellerApiClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout, connect=5.0),
                transport=self._transport,
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = self._ensure_client()
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        started = time.monotonic()

        try:
            response = await client.request(
                method,
                path,
                params=clean_params or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.RequestError as exc:
            upstream_call_log.record_call(
                self.user_id,
                method,
                path,
                params=clean_params,
                error=f"{type(exc).__name__}: {exc}",
            )
            raise SellerApiError(f"Seller API request failed: {type(exc).__name__}: {exc}", path=path) from exc

        elapsed_ms = int((time.monotonic() - started) * 1000)

        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("error") or body.get("detail")
            if not message:
                message = response.text[:500] or response.reason_phrase
            upstream_call_log.record_call(
                self.user_id,
                method,
                path,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
                params=clean_params,
                error=str(message),
            )
            raise SellerApiError(str(message), status_code=response.status_code, path=path)

        upstream_call_log.record_call(
            self.user_id,
            method,
            path,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
            params=clean_params,
        )

        if body is None:
            logger.warning("Seller API returned a non-JSON body for %s %s", method, path)
            return {}
        return body

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Any:
        return await self._request("POST", "/auth/login", json={"email": email, "password": password})

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def list_accounts(self) -> Any:
        return await self._request("GET", "/ml-accounts")

    async def sync_all_accounts(self) -> Any:
        return await self._request("POST", "/ml-accounts/sync-all")

    # ------------------------------------------------------------------
    # Per-account resources
    # ------------------------------------------------------------------

    async def get_product_stats(self, account_id: str) -> Any:
        return await self._request("GET", f"/products/{account_id}/stats")

    async def list_products(self, account_id: str, *, limit: int = 20, sort: Optional[str] = None) -> Any:
        return await self._request("GET", f"/products/{account_id}", params={"limit": limit, "sort": sort})

    async def list_orders(self, account_id: str, *, limit: int = 50) -> Any:
        return await self._request("GET", f"/orders/{account_id}", params={"limit": limit})

    async def list_questions(self, account_id: str, *, status: str = "unanswered", limit: int = 50) -> Any:
        return await self._request("GET", f"/questions/{account_id}", params={"status": status, "limit": limit})

    async def list_shipments(self, account_id: str, *, status: str = "ready_to_ship", limit: int = 50) -> Any:
        return await self._request("GET", f"/shipments/{account_id}", params={"status": status, "limit": limit})

    async def list_claims(self, account_id: str, *, status: str = "opened", limit: int = 50) -> Any:
        return await self._request("GET", f"/claims/{account_id}", params={"status": status, "limit": limit})

    async def get_reputation(self, account_id: str) -> Any:
        return await self._request("GET", f"/metrics/{account_id}/reputation")

    async def get_visits(self, account_id: str, *, days: int = 30) -> Any:
        return await self._request("GET", f"/metrics/{account_id}/visits", params={"days": days})
