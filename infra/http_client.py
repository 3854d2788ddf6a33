# infra/http_client.py
from __future__ import annotations

import aiohttp
import asyncio
import json
import random
from typing import Any, Dict, Mapping, Optional, Protocol
import logging
from utils.logger import logger

from exchange.errors import TransportError

JSON_SEPARATORS = (",", ":")

class HttpError(TransportError):
    def __init__(self, status: int, message: str, payload: Optional[dict] = None):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.payload = payload or {}


class ApiError(TransportError):
    """Venue answered {"status": "err", "response": "..."}."""
    def __init__(self, msg: str, payload: dict | None = None):
        super().__init__(f"Hyperliquid API error: {msg}")
        self.api_msg = msg
        self.payload = payload or {}


# 抽象端口：服务层依赖它，而非具体 HttpClient
class HttpPort(Protocol):
    async def post_info(self, body: Mapping[str, Any], *, path: str = "/info",
                        timeout_ms: Optional[int] = None) -> Any: ...
    async def post_exchange(self, payload: Mapping[str, Any], *, path: str = "/exchange",
                            timeout_ms: Optional[int] = None, retry: bool = False) -> Dict[str, Any]: ...


def _json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False)

class HttpClient:
    """
    Thin aiohttp transport for the venue's two POST endpoints:
    - /info      metadata queries (retried on 429/5xx/network errors)
    - /exchange  signed envelopes (not retried by default; the nonce makes
                 a blind resend fail as a duplicate anyway)
    """
    def __init__(self,
                 cfg: Mapping[str, Any],
                 logger: Optional[logging.Logger] = None,
                 *,
                 timeout_ms: Optional[int] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        self.cfg = cfg
        self.log = logger or logging.getLogger("HttpClient")
        self.session = session
        self._owned_session = session is None

        hl_cfg = cfg.get("hyperliquid", {})
        self.network = str(hl_cfg.get("network", "testnet")).lower()
        self.base_url = hl_cfg["rest_base"].get(self.network, "https://api.hyperliquid-testnet.xyz").rstrip("/")

        # timeouts & retries
        timeouts_cfg = cfg.get("timeouts", {})
        retries_cfg = cfg.get("retries", {})
        self.timeout_ms = int(timeout_ms or timeouts_cfg.get("rest_ms", 3000))
        self.max_attempts = int(retries_cfg.get("rest_max_attempts", 3))
        self.backoff_ms = int(retries_cfg.get("backoff_ms", 200))

        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)

        self.log.debug(f"HttpClient init base_url={self.base_url} network={self.network}")

    # ---- async context manager ----------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        if self._owned_session and (self.session is None or self.session.closed):
            timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def request(
            self,
            path: str,
            json_body: Mapping[str, Any],
            *,
            timeout_ms: Optional[int] = None,
            retry: bool = True,
            expect_status: bool = False,
        ) -> Any:
        """
        POST a compact JSON body and decode the JSON answer.
        - timeout_ms: overrides the session timeout for this call
        - retry: exponential backoff on 429/5xx and network errors
        - expect_status: body is {"status": "ok"|"err", "response": ...}; "err" raises ApiError
        """
        assert path.startswith("/"), "path must start with /"
        url = self.base_url + path
        body_str = _json_dumps_compact(json_body)
        req_headers = {"Content-Type": "application/json", "Accept": "application/json"}
        timeout_ctx = aiohttp.ClientTimeout(total=timeout_ms / 1000.0) if timeout_ms else self.session.timeout

        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session.request(
                    "POST",
                    url,
                    data=body_str,
                    headers=req_headers,
                    timeout=timeout_ctx,
                ) as resp:
                    text = await resp.text()
                    status = resp.status
                    if status >= 400:
                        if retry and (status >= 500 or status == 429) and attempt < self.max_attempts:
                            await self._sleep_backoff(attempt)
                            continue
                        raise HttpError(status, text)

                    try:
                        payload = json.loads(text) if text else {}
                    except json.JSONDecodeError:
                        raise HttpError(status, f"invalid json: {text[:256]}")

                    if expect_status and isinstance(payload, dict) and payload.get("status") == "err":
                        raise ApiError(str(payload.get("response", "")), payload)
                    return payload
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if retry and attempt < self.max_attempts:
                    await self._sleep_backoff(attempt)
                    logger.warning(f"Network error: {e} when requesting {url}, retrying...")
                    continue
                raise HttpError(599, f"Network error: {e}") from e

    async def _sleep_backoff(self, attempt: int) -> None:
        base = self.backoff_ms * (2 ** (attempt - 1))
        jitter = random.randint(0, self.backoff_ms)
        await asyncio.sleep((base + jitter) / 1000.0)

    # ---- 便捷包装 -----------------------------------------------------------------
    async def post_info(self, body: Mapping[str, Any], *, path: str = "/info",
                        timeout_ms: Optional[int] = None) -> Any:
        return await self.request(path, body, timeout_ms=timeout_ms, retry=True)

    async def post_exchange(self, payload: Mapping[str, Any], *, path: str = "/exchange",
                            timeout_ms: Optional[int] = None, retry: bool = False) -> Dict[str, Any]:
        return await self.request(path, payload, timeout_ms=timeout_ms,
                                  retry=retry, expect_status=True)
