# exchange/enums.py
from enum import Enum

class Network(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"

    @property
    def is_mainnet(self) -> bool:
        return self is Network.MAINNET

    @property
    def chain_name(self) -> str:
        # value of the `hyperliquidChain` field in user-signed actions
        return "Mainnet" if self is Network.MAINNET else "Testnet"

class Tif(Enum):
    GTC = "Gtc"     # good til cancel
    IOC = "Ioc"     # immediate or cancel
    ALO = "Alo"     # add liquidity only (post-only)

class Tpsl(Enum):
    TP = "tp"
    SL = "sl"

class Grouping(Enum):
    NA = "na"
    NORMAL_TPSL = "normalTpsl"
    POSITION_TPSL = "positionTpsl"

class SigningKind(Enum):
    L1_AGENT = "l1_agent"          # phantom Agent over the msgpack action hash
    USER_SIGNED = "user_signed"    # EIP-712 directly over the action fields
