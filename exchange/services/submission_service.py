# exchange/services/submission_service.py
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from exchange.models import SignedEnvelope
from exchange.services.endpoints import Endpoints
from utils.logger import logger

if TYPE_CHECKING:
    from infra.http_client import HttpPort


class ExchangeSubmitter:
    """Posts signed envelopes to /exchange; errors surface as TransportError subclasses."""

    def __init__(self, http_client: HttpPort, endpoints: Endpoints) -> None:
        self._http = http_client
        self._ep = endpoints

    async def submit(self, envelope: SignedEnvelope, *, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        payload = envelope.to_payload()
        logger.info(f"submit {payload['action'].get('type')} nonce={envelope.nonce} network={self._ep.network.value}")
        resp = await self._http.post_exchange(payload, path=self._ep.exchange, timeout_ms=timeout_ms)
        logger.debug(f"submit response nonce={envelope.nonce}: {resp}")
        return resp
