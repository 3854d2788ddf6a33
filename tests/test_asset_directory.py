# tests/test_asset_directory.py
import asyncio
from decimal import Decimal

import pytest

from exchange.errors import InvalidParameter, MetadataUnavailable, UnknownAsset
from exchange.services.asset_directory import AssetDirectoryService, directory_from_meta
from infra.http_client import HttpError
from conftest import META, SPOT_META


class Endpoints:
    info = "/info"


class FakeHttp:
    def __init__(self, meta, spot_meta, fail: bool = False):
        self._meta = meta
        self._spot_meta = spot_meta
        self.fail = fail
        self.calls = []

    async def post_info(self, body, path="/info", timeout_ms=None):
        assert path == Endpoints.info
        self.calls.append(body["type"])
        if self.fail:
            raise HttpError(503, "svc unavailable")
        return self._meta if body["type"] == "meta" else self._spot_meta


def test_perp_and_spot_indices(directory):
    assert directory.get("BTC").index == 0
    eth = directory.get("ETH")
    assert (eth.index, eth.size_decimals, eth.is_spot) == (1, 4, False)

    purr = directory.get("PURR/USDC")
    assert (purr.index, purr.size_decimals, purr.is_spot) == (10000, 0, True)
    assert directory.get("@0") is purr
    # 非 canonical 交易对按 base/quote 和 @N 两种名字都能查到
    assert directory.get("@1").index == 10001
    assert directory.get("HFUN/USDC") is directory.get("@1")


def test_spot_token_identifier(directory):
    assert directory.spot_token("PURR").identifier == "PURR:0xc1fb593aeffbeb02f85e0308e9956a90"
    with pytest.raises(UnknownAsset):
        directory.spot_token("DOGE")


def test_unknown_symbol(directory):
    with pytest.raises(UnknownAsset) as ei:
        directory.get("DOGE")
    assert ei.value.symbol == "DOGE"
    assert "DOGE" not in directory


def test_snapshot_is_read_only(directory):
    with pytest.raises(TypeError):
        directory.assets["DOGE"] = directory.get("BTC")
    with pytest.raises(TypeError):
        directory.spot_tokens["DOGE"] = directory.spot_token("PURR")


def test_round_size(directory):
    assert directory.round_size("ETH", 0.123456) == Decimal("0.1234")
    assert directory.round_size("PURR/USDC", 12.9) == Decimal("12")


@pytest.mark.parametrize("symbol, px, expected", [
    ("ETH", 2000.123, Decimal("2000.1")),      # 5 sig figs
    ("ETH", 2000.0, Decimal("2000")),          # integers pass through
    ("BTC", 67123.45, Decimal("67123")),
    ("SOL", 1.234567, Decimal("1.2346")),
    ("BTC", 0.1234567, Decimal("0.1")),        # 6 - szDecimals(5) = 1 decimal
    ("PURR/USDC", 0.000123456, Decimal("0.00012346")),
])
def test_round_price(directory, symbol, px, expected):
    assert directory.round_price(symbol, px) == expected


def test_validate_size(directory):
    directory.validate_size("ETH", Decimal("0.1"))
    with pytest.raises(InvalidParameter) as ei:
        directory.validate_size("ETH", 0.123456)
    assert ei.value.field == "sz"
    assert ei.value.ctx["suggestion"] == "0.1234"


@pytest.mark.parametrize("meta", [
    {},
    {"universe": [{"name": "BTC"}]},
    {"universe": [{"name": "BTC", "szDecimals": "five"}]},
])
def test_malformed_meta(meta):
    with pytest.raises(MetadataUnavailable):
        directory_from_meta(meta)


def test_malformed_spot_meta():
    bad = {"tokens": SPOT_META["tokens"], "universe": [{"name": "X/Y", "tokens": [9, 0], "index": 5}]}
    with pytest.raises(MetadataUnavailable):
        directory_from_meta(META, bad)


@pytest.mark.parametrize("spot_meta", [
    ["unexpected"],
    {"tokens": ["PURR"], "universe": []},
    {"tokens": SPOT_META["tokens"], "universe": ["PURR/USDC"]},
])
def test_spot_meta_of_wrong_shape(spot_meta):
    with pytest.raises(MetadataUnavailable):
        directory_from_meta({"universe": []}, spot_meta)


@pytest.mark.asyncio
async def test_refresh_installs_new_snapshot():
    http = FakeHttp(META, SPOT_META)
    svc = AssetDirectoryService(http, Endpoints)
    assert len(svc.snapshot) == 0

    first = await svc.refresh()
    assert svc.snapshot is first
    assert first.version == 1
    assert http.calls == ["meta", "spotMeta"]

    second = await svc.refresh()
    assert second.version == 2
    # 旧快照不受影响
    assert first.get("ETH").index == 1
    assert first is not second


@pytest.mark.asyncio
async def test_refresh_perp_only():
    http = FakeHttp(META, SPOT_META)
    svc = AssetDirectoryService(http, Endpoints, include_spot=False)
    snap = await svc.refresh()
    assert http.calls == ["meta"]
    assert "PURR/USDC" not in snap


@pytest.mark.asyncio
async def test_refresh_failure_keeps_previous_snapshot():
    http = FakeHttp(META, SPOT_META)
    svc = AssetDirectoryService(http, Endpoints)
    good = await svc.refresh()

    http.fail = True
    with pytest.raises(MetadataUnavailable):
        await svc.refresh()
    assert svc.snapshot is good


@pytest.mark.asyncio
async def test_concurrent_refreshes_serialize():
    svc = AssetDirectoryService(FakeHttp(META, SPOT_META), Endpoints)
    results = await asyncio.gather(*(svc.refresh() for _ in range(4)))
    assert sorted(r.version for r in results) == [1, 2, 3, 4]
    assert svc.snapshot.version == 4
