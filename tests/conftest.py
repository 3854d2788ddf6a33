# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import logging
import yaml
import pytest
import pytest_asyncio

from exchange.config import SigningSettings
from exchange.enums import Network
from exchange.services.asset_directory import directory_from_meta
from exchange.services.endpoints import make_endpoints_from_cfg
from infra.http_client import HttpClient

# 测试专用私钥，勿用于真实资金
TEST_PRIVATE_KEY = "0x0123456789012345678901234567890123456789012345678901234567890123"

META = {
    "universe": [
        {"name": "BTC", "szDecimals": 5, "maxLeverage": 50},
        {"name": "ETH", "szDecimals": 4, "maxLeverage": 50},
        {"name": "SOL", "szDecimals": 2, "maxLeverage": 20},
    ]
}

SPOT_META = {
    "tokens": [
        {"name": "USDC", "szDecimals": 8, "weiDecimals": 8, "index": 0,
         "tokenId": "0x6d1e7cde53ba9467b783cb7c530ce054", "isCanonical": True},
        {"name": "PURR", "szDecimals": 0, "weiDecimals": 5, "index": 1,
         "tokenId": "0xc1fb593aeffbeb02f85e0308e9956a90", "isCanonical": True},
        {"name": "HFUN", "szDecimals": 2, "weiDecimals": 8, "index": 2,
         "tokenId": "0xbaf265ef389da684513d98d68edf4eae", "isCanonical": False},
    ],
    "universe": [
        {"name": "PURR/USDC", "tokens": [1, 0], "index": 0, "isCanonical": True},
        {"name": "@1", "tokens": [2, 0], "index": 1, "isCanonical": False},
    ],
}


@pytest.fixture
def test_cfg():
    def load_cfg():
        with open(Path(__file__).resolve().parents[1] / "config.yaml", "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    return load_cfg()


@pytest.fixture
def endpoints(test_cfg):
    return make_endpoints_from_cfg(test_cfg)


@pytest.fixture
def directory():
    return directory_from_meta(META, SPOT_META, version=1)


@pytest.fixture
def settings():
    return SigningSettings(network=Network.TESTNET)


@pytest_asyncio.fixture
async def http_client(test_cfg):
    """
    以异步上下文管理 HttpClient，测试中自动清理 session。
    """
    logger = logging.getLogger("HttpClientTest")
    async with HttpClient(test_cfg, logger=logger) as client:
        yield client
