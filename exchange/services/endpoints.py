# exchange/services/endpoints.py
from dataclasses import dataclass

from exchange.enums import Network

@dataclass
class Endpoints:
    # 主机基址
    rest_base: str
    ws: str
    network: Network

    # REST 路径常量
    info: str = "/info"
    exchange: str = "/exchange"


def make_endpoints_from_cfg(cfg: dict) -> Endpoints:
    try:
        network = Network(str(cfg["hyperliquid"]["network"]).lower())
        key = network.value
        rest_base = cfg["hyperliquid"]["rest_base"][key].rstrip("/")
        ws = cfg["hyperliquid"]["ws"][key]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Invalid cfg missing key: {e}") from e

    return Endpoints(rest_base=rest_base, ws=ws, network=network)
