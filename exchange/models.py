# exchange/models.py
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from exchange.enums import Grouping, Network, SigningKind, Tif, Tpsl
from exchange.errors import InvalidParameter, MalformedSignature

Number = Union[int, float, Decimal]

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_CLOID_RE = re.compile(r"^0x[0-9a-fA-F]{32}$")

# signatureChainId used by user-signed actions (Arbitrum Sepolia, accepted on both networks)
DEFAULT_SIGNATURE_CHAIN_ID = 0x66EEE

_TIF_ALIASES = {
    "gtc": Tif.GTC, "goodtilcancel": Tif.GTC,
    "ioc": Tif.IOC, "immediateorcancel": Tif.IOC,
    "alo": Tif.ALO, "postonly": Tif.ALO,
}


# ---- validators ------------------------------------------------------------------

def check_number(name: str, value: Any, *, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidParameter(f"{name} must be numeric", field=name, actual=repr(value))
    if not Decimal(value).is_finite():
        raise InvalidParameter(f"{name} must be finite", field=name, actual=str(value))
    if value < 0 or (value == 0 and not allow_zero):
        expected = ">=0" if allow_zero else ">0"
        raise InvalidParameter(f"{name} out of range", field=name, expected=expected, actual=str(value))


def check_bool(name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a bool", field=name, actual=repr(value))


def check_int(name: str, value: Any, *, minimum: int = 0) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"{name} must be an integer", field=name, actual=repr(value))
    if value < minimum or value >= 2 ** 64:
        raise InvalidParameter(f"{name} out of range", field=name, expected=f">={minimum}", actual=str(value))


def check_amount(name: str, value: Any) -> None:
    """Amount given as a decimal string (transfers sign the string itself)."""
    if not isinstance(value, str):
        raise InvalidParameter(f"{name} must be a decimal string", field=name, actual=repr(value))
    try:
        parsed = Decimal(value)
    except InvalidOperation as e:
        raise InvalidParameter(f"{name} is not a decimal", field=name, actual=value) from e
    check_number(name, parsed)


def normalize_address(name: str, value: Any) -> str:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InvalidParameter(f"{name} is not a 20-byte hex address", field=name, actual=repr(value))
    return value.lower()


def normalize_cloid(value: Any) -> str:
    if not isinstance(value, str) or not _CLOID_RE.match(value):
        raise InvalidParameter("cloid must be 0x followed by 32 hex chars", field="cloid", actual=repr(value))
    return value.lower()


def parse_tif(value: Union[str, Tif]) -> Tif:
    if isinstance(value, Tif):
        return value
    tif = _TIF_ALIASES.get(str(value).replace("_", "").lower())
    if tif is None:
        raise InvalidParameter(f"Unrecognized time-in-force: {value}", field="tif",
                               expected="Gtc|Ioc|Alo", actual=str(value))
    return tif


def _set(obj, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


# ---- directory entries -----------------------------------------------------------

@dataclass(frozen=True)
class Asset:
    symbol: str
    index: int           # venue asset id (spot pairs are offset by 10000)
    size_decimals: int   # szDecimals
    is_spot: bool = False


@dataclass(frozen=True)
class SpotToken:
    name: str
    index: int
    token_id: str
    size_decimals: int
    wei_decimals: int

    @property
    def identifier(self) -> str:
        """Token string used by spotSend, e.g. ``PURR:0xc1fb...``."""
        return f"{self.name}:{self.token_id}"


# ---- order building blocks ------------------------------------------------------

@dataclass(frozen=True)
class LimitOrderType:
    tif: Tif = Tif.GTC

    def __post_init__(self):
        _set(self, "tif", parse_tif(self.tif))


@dataclass(frozen=True)
class TriggerOrderType:
    trigger_px: Number
    is_market: bool
    tpsl: Tpsl

    def __post_init__(self):
        check_number("trigger_px", self.trigger_px)
        check_bool("is_market", self.is_market)
        try:
            _set(self, "tpsl", Tpsl(self.tpsl))
        except ValueError as e:
            raise InvalidParameter(f"Unrecognized tpsl: {self.tpsl}", field="tpsl",
                                   expected="tp|sl", actual=str(self.tpsl)) from e


OrderType = Union[LimitOrderType, TriggerOrderType]


@dataclass(frozen=True)
class BuilderInfo:
    """Builder code attached to orders; fee is in tenths of a basis point."""
    builder: str
    fee: int

    def __post_init__(self):
        _set(self, "builder", normalize_address("builder", self.builder))
        check_int("fee", self.fee)


@dataclass(frozen=True)
class OrderWire:
    asset: int
    is_buy: bool
    limit_px: Number
    sz: Number
    reduce_only: bool
    order_type: OrderType
    cloid: Optional[str] = None

    def __post_init__(self):
        check_int("asset", self.asset)
        check_bool("is_buy", self.is_buy)
        check_number("limit_px", self.limit_px)
        check_number("sz", self.sz)
        check_bool("reduce_only", self.reduce_only)
        if not isinstance(self.order_type, (LimitOrderType, TriggerOrderType)):
            raise InvalidParameter("Unrecognized order type", field="order_type",
                                   actual=repr(self.order_type))
        if self.cloid is not None:
            _set(self, "cloid", normalize_cloid(self.cloid))


@dataclass(frozen=True)
class CancelRequest:
    asset: int
    oid: int

    def __post_init__(self):
        check_int("asset", self.asset)
        check_int("oid", self.oid)


@dataclass(frozen=True)
class CloidCancelRequest:
    asset: int
    cloid: str

    def __post_init__(self):
        check_int("asset", self.asset)
        _set(self, "cloid", normalize_cloid(self.cloid))


# ---- actions ---------------------------------------------------------------------

@dataclass(frozen=True)
class Order:
    orders: Tuple[OrderWire, ...]
    grouping: Grouping = Grouping.NA
    builder: Optional[BuilderInfo] = None

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        _set(self, "orders", tuple(self.orders))
        if not self.orders:
            raise InvalidParameter("order action needs at least one order", field="orders")
        try:
            _set(self, "grouping", Grouping(self.grouping))
        except ValueError as e:
            raise InvalidParameter(f"Unrecognized grouping: {self.grouping}", field="grouping",
                                   actual=str(self.grouping)) from e


@dataclass(frozen=True)
class Cancel:
    asset: int
    oid: int

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        check_int("asset", self.asset)
        check_int("oid", self.oid)


@dataclass(frozen=True)
class BulkCancel:
    cancels: Tuple[CancelRequest, ...]

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        _set(self, "cancels", tuple(self.cancels))
        if not self.cancels:
            raise InvalidParameter("bulk cancel needs at least one entry", field="cancels")


@dataclass(frozen=True)
class CancelByCloid:
    cancels: Tuple[CloidCancelRequest, ...]

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        _set(self, "cancels", tuple(self.cancels))
        if not self.cancels:
            raise InvalidParameter("cancel by cloid needs at least one entry", field="cancels")


@dataclass(frozen=True)
class Modify:
    oid: Union[int, str]    # exchange oid or cloid
    order: OrderWire

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        if isinstance(self.oid, str):
            _set(self, "oid", normalize_cloid(self.oid))
        else:
            check_int("oid", self.oid)


@dataclass(frozen=True)
class UpdateLeverage:
    asset: int
    is_cross: bool
    leverage: int

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        check_int("asset", self.asset)
        check_bool("is_cross", self.is_cross)
        check_int("leverage", self.leverage, minimum=1)


@dataclass(frozen=True)
class VaultTransfer:
    vault_address: str
    is_deposit: bool
    usd: int               # micro-USDC

    kind: ClassVar[SigningKind] = SigningKind.L1_AGENT

    def __post_init__(self):
        _set(self, "vault_address", normalize_address("vault_address", self.vault_address))
        check_bool("is_deposit", self.is_deposit)
        check_int("usd", self.usd, minimum=1)


@dataclass(frozen=True)
class UsdTransfer:
    destination: str
    amount: str
    time: int
    chain: Network = Network.MAINNET
    signature_chain_id: int = DEFAULT_SIGNATURE_CHAIN_ID

    kind: ClassVar[SigningKind] = SigningKind.USER_SIGNED

    def __post_init__(self):
        _set(self, "destination", normalize_address("destination", self.destination))
        check_amount("amount", self.amount)
        check_int("time", self.time)


@dataclass(frozen=True)
class SpotTransfer:
    destination: str
    token: str
    amount: str
    time: int
    chain: Network = Network.MAINNET
    signature_chain_id: int = DEFAULT_SIGNATURE_CHAIN_ID

    kind: ClassVar[SigningKind] = SigningKind.USER_SIGNED

    def __post_init__(self):
        _set(self, "destination", normalize_address("destination", self.destination))
        if ":" not in self.token:
            raise InvalidParameter("token must be NAME:tokenId", field="token", actual=self.token)
        check_amount("amount", self.amount)
        check_int("time", self.time)


@dataclass(frozen=True)
class Withdraw:
    destination: str
    amount: str
    time: int
    chain: Network = Network.MAINNET
    signature_chain_id: int = DEFAULT_SIGNATURE_CHAIN_ID

    kind: ClassVar[SigningKind] = SigningKind.USER_SIGNED

    def __post_init__(self):
        _set(self, "destination", normalize_address("destination", self.destination))
        check_amount("amount", self.amount)
        check_int("time", self.time)


@dataclass(frozen=True)
class ApproveBuilderFee:
    builder: str
    max_fee_rate: str      # percent string, e.g. "0.001%"
    nonce: int
    chain: Network = Network.MAINNET
    signature_chain_id: int = DEFAULT_SIGNATURE_CHAIN_ID

    kind: ClassVar[SigningKind] = SigningKind.USER_SIGNED

    def __post_init__(self):
        _set(self, "builder", normalize_address("builder", self.builder))
        if not isinstance(self.max_fee_rate, str) or not self.max_fee_rate.endswith("%"):
            raise InvalidParameter("max_fee_rate must be a percentage", field="max_fee_rate",
                                   actual=repr(self.max_fee_rate))
        check_amount("max_fee_rate", self.max_fee_rate[:-1])
        check_int("nonce", self.nonce)


Action = Union[
    Order, Cancel, BulkCancel, CancelByCloid, Modify, UpdateLeverage, VaultTransfer,
    UsdTransfer, SpotTransfer, Withdraw, ApproveBuilderFee,
]

ACTION_TYPES: Tuple[type, ...] = (
    Order, Cancel, BulkCancel, CancelByCloid, Modify, UpdateLeverage, VaultTransfer,
    UsdTransfer, SpotTransfer, Withdraw, ApproveBuilderFee,
)


# ---- caller intents (symbols, not indices) ---------------------------------------

@dataclass(frozen=True)
class OrderIntent:
    symbol: str
    is_buy: bool
    limit_px: Number
    sz: Number
    order_type: OrderType = field(default_factory=LimitOrderType)
    reduce_only: bool = False
    cloid: Optional[str] = None


@dataclass(frozen=True)
class CancelIntent:
    symbol: str
    oid: int


@dataclass(frozen=True)
class CloidCancelIntent:
    symbol: str
    cloid: str


# ---- signing artefacts -------------------------------------------------------------

@dataclass(frozen=True)
class UnsignedComponents:
    action: Action
    action_payload: Dict[str, Any]      # transport form, the "action" field of the envelope
    nonce: int
    digest: bytes
    typed_data: Dict[str, Any]          # full EIP-712 message behind `digest`
    vault_address: Optional[str] = None
    expires_after: Optional[int] = None
    is_l1_agent_signature: bool = True
    eip712_domain_chain_id: int = 1337
    hyperliquid_chain: Optional[str] = None

    @property
    def digest_hex(self) -> str:
        return "0x" + self.digest.hex()


def _to_bytes32(name: str, value: Union[bytes, str, int]) -> bytes:
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0 or value >= 2 ** 256:
            raise MalformedSignature(f"{name} out of range", field=name)
        return value.to_bytes(32, "big")
    if isinstance(value, str):
        s = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(s.rjust(64, "0"))
        except ValueError as e:
            raise MalformedSignature(f"{name} is not hex", field=name) from e
        value = raw
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise MalformedSignature(f"{name} must be 32 bytes", field=name, actual=repr(value))
    return bytes(value)


@dataclass(frozen=True)
class Signature:
    r: bytes
    s: bytes
    recovery_id: int

    def __post_init__(self):
        if not isinstance(self.r, bytes) or len(self.r) != 32:
            raise MalformedSignature("r must be 32 bytes", field="r")
        if not isinstance(self.s, bytes) or len(self.s) != 32:
            raise MalformedSignature("s must be 32 bytes", field="s")
        if isinstance(self.recovery_id, bool) or self.recovery_id not in (0, 1):
            raise MalformedSignature("recovery_id must be 0 or 1", field="recovery_id",
                                     actual=repr(self.recovery_id))

    @property
    def v(self) -> int:
        return 27 + self.recovery_id

    @classmethod
    def from_rsv(cls, r: Union[bytes, str, int], s: Union[bytes, str, int], v: int) -> "Signature":
        """Accept r/s as bytes, hex strings or ints and v as 0/1 or 27/28."""
        if isinstance(v, bool) or not isinstance(v, int) or v not in (0, 1, 27, 28):
            raise MalformedSignature("v must be 0, 1, 27 or 28", field="v", actual=repr(v))
        return cls(_to_bytes32("r", r), _to_bytes32("s", s), v - 27 if v >= 27 else v)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        """65-byte r || s || v form produced by most wallets."""
        if not isinstance(raw, (bytes, bytearray)) or len(raw) != 65:
            raise MalformedSignature("signature must be 65 bytes", field="signature")
        return cls.from_rsv(bytes(raw[:32]), bytes(raw[32:64]), raw[64])

    def to_wire(self) -> Dict[str, Any]:
        return {"r": "0x" + self.r.hex(), "s": "0x" + self.s.hex(), "v": self.v}


@dataclass(frozen=True)
class SignedEnvelope:
    action: Dict[str, Any]
    nonce: int
    signature: Signature
    vault_address: Optional[str] = None
    expires_after: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for POST /exchange."""
        payload: Dict[str, Any] = {
            "action": self.action,
            "nonce": self.nonce,
            "signature": self.signature.to_wire(),
            "vaultAddress": self.vault_address,
        }
        if self.expires_after is not None:
            payload["expiresAfter"] = self.expires_after
        return payload
