# tests/test_http_client.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import json
import pytest
from aioresponses import aioresponses, CallbackResult

from infra.http_client import ApiError, HttpClient, HttpError
from exchange.errors import TransportError

BASE = "https://api.hyperliquid-testnet.xyz"


def test_base_url_follows_network(test_cfg):
    cfg = dict(test_cfg)
    cfg["hyperliquid"] = dict(test_cfg["hyperliquid"], network="mainnet")

    async def _build():
        async with HttpClient(cfg) as client:
            return client.base_url

    assert asyncio.run(_build()) == "https://api.hyperliquid.xyz"


@pytest.mark.asyncio
async def test_post_info_sends_compact_json(http_client: HttpClient):
    def _assert_body(url, **kwargs):
        assert kwargs["data"] == '{"type":"meta"}'
        assert kwargs["headers"]["Content-Type"] == "application/json"
        return CallbackResult(status=200, payload={"universe": [{"name": "BTC", "szDecimals": 5}]})

    with aioresponses() as m:
        m.post(f"{BASE}/info", callback=_assert_body)
        resp = await http_client.post_info({"type": "meta"})
        assert resp["universe"][0]["name"] == "BTC"


@pytest.mark.asyncio
async def test_post_exchange_ok(http_client: HttpClient):
    body = {"status": "ok", "response": {"type": "order", "data": {"statuses": [{"resting": {"oid": 77}}]}}}
    with aioresponses() as m:
        m.post(f"{BASE}/exchange", payload=body)
        resp = await http_client.post_exchange({"action": {"type": "order"}, "nonce": 1})
        assert resp["response"]["data"]["statuses"][0]["resting"]["oid"] == 77


@pytest.mark.asyncio
async def test_post_exchange_err_status_raises_api_error(http_client: HttpClient):
    with aioresponses() as m:
        m.post(f"{BASE}/exchange", payload={"status": "err", "response": "Invalid nonce"})
        with pytest.raises(ApiError) as ei:
            await http_client.post_exchange({"action": {"type": "cancel"}, "nonce": 1})
        assert ei.value.api_msg == "Invalid nonce"
        assert isinstance(ei.value, TransportError)


@pytest.mark.asyncio
async def test_info_retry_on_429_and_5xx(http_client: HttpClient, monkeypatch):
    """
    首两次返回 429/500，第三次成功。backoff sleep 替换为 no-op。
    """
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))

    calls = {"n": 0}
    def _flaky(url, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return CallbackResult(status=429, body="rate limited")
        if calls["n"] == 2:
            return CallbackResult(status=500, body="server error")
        return CallbackResult(status=200, payload={"universe": []})

    with aioresponses() as m:
        m.post(f"{BASE}/info", callback=_flaky, repeat=True)
        resp = await http_client.post_info({"type": "meta"})
        assert resp == {"universe": []}
        assert calls["n"] == 3


@pytest.mark.asyncio
async def test_exchange_not_retried_by_default(http_client: HttpClient, monkeypatch):
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))

    calls = {"n": 0}
    def _down(url, **kwargs):
        calls["n"] += 1
        return CallbackResult(status=502, body="bad gateway")

    with aioresponses() as m:
        m.post(f"{BASE}/exchange", callback=_down, repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.post_exchange({"action": {"type": "order"}, "nonce": 1})
        assert ei.value.status == 502
        assert calls["n"] == 1


@pytest.mark.asyncio
async def test_client_error_status_raises(http_client: HttpClient):
    with aioresponses() as m:
        m.post(f"{BASE}/info", status=422, body="Failed to deserialize the JSON body")
        with pytest.raises(HttpError) as ei:
            await http_client.post_info({"type": "nope"})
        assert ei.value.status == 422


@pytest.mark.asyncio
async def test_invalid_json_raises(http_client: HttpClient):
    with aioresponses() as m:
        m.post(f"{BASE}/info", status=200, body="<html>")
        with pytest.raises(HttpError):
            await http_client.post_info({"type": "meta"})


def test_payload_roundtrips_through_json():
    from infra.http_client import _json_dumps_compact
    body = {"action": {"type": "order", "orders": []}, "nonce": 1, "vaultAddress": None}
    s = _json_dumps_compact(body)
    assert " " not in s
    assert json.loads(s) == body


@pytest.mark.asyncio
async def test_container_start_loads_directory(test_cfg):
    from infra import HttpContainer
    from conftest import META, SPOT_META

    with aioresponses() as m:
        m.post(f"{BASE}/info", payload=META)
        m.post(f"{BASE}/info", payload=SPOT_META)
        container = await HttpContainer.start(test_cfg)
        try:
            snap = container.directory.snapshot
            assert snap.version == 1
            assert snap.get("ETH").index == 1
            assert snap.get("PURR/USDC").index == 10000
        finally:
            await container.stop()
    assert container.http.session.closed


@pytest.mark.asyncio
async def test_container_start_failure_closes_session(test_cfg, monkeypatch):
    from infra import HttpContainer
    from exchange.errors import MetadataUnavailable

    monkeypatch.setattr(HttpClient, "_sleep_backoff", lambda self, attempt: asyncio.sleep(0))
    with aioresponses() as m:
        m.post(f"{BASE}/info", status=500, body="down", repeat=True)
        with pytest.raises(MetadataUnavailable):
            await HttpContainer.start(test_cfg)


def test_http_client_provides_port_methods():
    from infra import HttpPort
    for name in ("post_info", "post_exchange"):
        assert hasattr(HttpPort, name)
        assert asyncio.iscoroutinefunction(getattr(HttpClient, name))
