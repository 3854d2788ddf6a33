# exchange/encoding.py
"""
Canonical encoding of actions.

Two representations are derived from the same action value:

- ``action_to_wire``: the transport JSON dict (the ``action`` field of the
  envelope). Key order is fixed per variant and matters for hashing.
- ``encode_action``: the canonical bytes the signature scheme hashes.
  L1 actions are MessagePack of the wire dict; user-signed actions are the
  EIP-712 signing preimage of their typed struct (eth_account encodes it).

Numbers never reach the wire as floats: prices/sizes are normalized decimal
strings (at most 8 decimals) and vault USD amounts are micro-USDC integers.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Tuple

import msgpack
from eth_account.messages import encode_typed_data

from exchange.errors import InvalidParameter
from exchange.models import (
    ACTION_TYPES, Action, ApproveBuilderFee, BulkCancel, Cancel, CancelByCloid,
    LimitOrderType, Modify, Number, Order, OrderType, OrderWire, SpotTransfer,
    UpdateLeverage, UsdTransfer, VaultTransfer, Withdraw,
)
from exchange.enums import SigningKind

WIRE_DECIMALS = 8
USD_DECIMALS = 6

Eip712Fields = List[Tuple[str, str]]


# ---- numbers ----------------------------------------------------------------------

def _to_decimal(x: Number) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x))


def float_to_wire(x: Number) -> str:
    """Render a price/size as the venue expects: <=8 decimals, no trailing zeros."""
    exact = _to_decimal(x)
    try:
        rounded = exact.quantize(Decimal(1).scaleb(-WIRE_DECIMALS))
    except InvalidOperation as e:
        raise InvalidParameter("value out of wire range", field="wire", actual=str(x)) from e
    if abs(rounded - exact) >= Decimal("1e-12"):
        raise InvalidParameter("value has more than 8 decimals", field="wire",
                               actual=str(x), suggestion=str(rounded))
    if rounded == 0:
        return "0"
    return f"{rounded.normalize():f}"


def float_to_usd_int(x: Number) -> int:
    """USD amount -> integer micro-USDC; refuses sub-micro precision."""
    scaled = _to_decimal(x).scaleb(USD_DECIMALS)
    if scaled != scaled.to_integral_value():
        raise InvalidParameter("usd amount has more than 6 decimals", field="usd", actual=str(x))
    return int(scaled)


# ---- wire (transport) form ---------------------------------------------------------

def order_type_to_wire(order_type: OrderType) -> Dict[str, Any]:
    if isinstance(order_type, LimitOrderType):
        return {"limit": {"tif": order_type.tif.value}}
    return {
        "trigger": {
            "isMarket": order_type.is_market,
            "triggerPx": float_to_wire(order_type.trigger_px),
            "tpsl": order_type.tpsl.value,
        }
    }


def order_wire_to_dict(order: OrderWire) -> Dict[str, Any]:
    wire = {
        "a": order.asset,
        "b": order.is_buy,
        "p": float_to_wire(order.limit_px),
        "s": float_to_wire(order.sz),
        "r": order.reduce_only,
        "t": order_type_to_wire(order.order_type),
    }
    if order.cloid is not None:
        wire["c"] = order.cloid
    return wire


def _order(action: Order) -> Dict[str, Any]:
    wire = {
        "type": "order",
        "orders": [order_wire_to_dict(o) for o in action.orders],
        "grouping": action.grouping.value,
    }
    if action.builder is not None:
        wire["builder"] = {"b": action.builder.builder, "f": action.builder.fee}
    return wire


def _cancel(action: Cancel) -> Dict[str, Any]:
    return {"type": "cancel", "cancels": [{"a": action.asset, "o": action.oid}]}


def _bulk_cancel(action: BulkCancel) -> Dict[str, Any]:
    return {"type": "cancel", "cancels": [{"a": c.asset, "o": c.oid} for c in action.cancels]}


def _cancel_by_cloid(action: CancelByCloid) -> Dict[str, Any]:
    return {
        "type": "cancelByCloid",
        "cancels": [{"asset": c.asset, "cloid": c.cloid} for c in action.cancels],
    }


def _modify(action: Modify) -> Dict[str, Any]:
    return {
        "type": "batchModify",
        "modifies": [{"oid": action.oid, "order": order_wire_to_dict(action.order)}],
    }


def _update_leverage(action: UpdateLeverage) -> Dict[str, Any]:
    return {
        "type": "updateLeverage",
        "asset": action.asset,
        "isCross": action.is_cross,
        "leverage": action.leverage,
    }


def _vault_transfer(action: VaultTransfer) -> Dict[str, Any]:
    return {
        "type": "vaultTransfer",
        "vaultAddress": action.vault_address,
        "isDeposit": action.is_deposit,
        "usd": action.usd,
    }


def _user_signed_head(type_tag: str, action) -> Dict[str, Any]:
    return {
        "type": type_tag,
        "signatureChainId": hex(action.signature_chain_id),
        "hyperliquidChain": action.chain.chain_name,
    }


def _usd_transfer(action: UsdTransfer) -> Dict[str, Any]:
    wire = _user_signed_head("usdSend", action)
    wire.update(destination=action.destination, amount=action.amount, time=action.time)
    return wire


def _spot_transfer(action: SpotTransfer) -> Dict[str, Any]:
    wire = _user_signed_head("spotSend", action)
    wire.update(destination=action.destination, token=action.token,
                amount=action.amount, time=action.time)
    return wire


def _withdraw(action: Withdraw) -> Dict[str, Any]:
    wire = _user_signed_head("withdraw3", action)
    wire.update(destination=action.destination, amount=action.amount, time=action.time)
    return wire


def _approve_builder_fee(action: ApproveBuilderFee) -> Dict[str, Any]:
    wire = _user_signed_head("approveBuilderFee", action)
    wire.update(maxFeeRate=action.max_fee_rate, builder=action.builder, nonce=action.nonce)
    return wire


_WIRE_ENCODERS: Dict[type, Callable[[Any], Dict[str, Any]]] = {
    Order: _order,
    Cancel: _cancel,
    BulkCancel: _bulk_cancel,
    CancelByCloid: _cancel_by_cloid,
    Modify: _modify,
    UpdateLeverage: _update_leverage,
    VaultTransfer: _vault_transfer,
    UsdTransfer: _usd_transfer,
    SpotTransfer: _spot_transfer,
    Withdraw: _withdraw,
    ApproveBuilderFee: _approve_builder_fee,
}

# every action variant must have an encoder
assert set(_WIRE_ENCODERS) == set(ACTION_TYPES), "action encoders out of sync with ACTION_TYPES"


def action_to_wire(action: Action) -> Dict[str, Any]:
    """Transport JSON form of an action (fresh dict on every call)."""
    encoder = _WIRE_ENCODERS.get(type(action))
    if encoder is None:
        raise InvalidParameter(f"Unsupported action: {type(action).__name__}", field="action")
    return encoder(action)


# ---- EIP-712 typed data -----------------------------------------------------------

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
USER_SIGNED_DOMAIN_NAME = "HyperliquidSignTransaction"

EIP712_DOMAIN_FIELDS: Eip712Fields = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
]

USER_SIGNED_SCHEMAS: Dict[type, Tuple[str, Eip712Fields]] = {
    UsdTransfer: ("HyperliquidTransaction:UsdSend", [
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    ]),
    SpotTransfer: ("HyperliquidTransaction:SpotSend", [
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("token", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    ]),
    Withdraw: ("HyperliquidTransaction:Withdraw", [
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    ]),
    ApproveBuilderFee: ("HyperliquidTransaction:ApproveBuilderFee", [
        ("hyperliquidChain", "string"),
        ("maxFeeRate", "string"),
        ("builder", "address"),
        ("nonce", "uint64"),
    ]),
}

assert set(USER_SIGNED_SCHEMAS) == {t for t in ACTION_TYPES if t.kind is SigningKind.USER_SIGNED}


def fields_to_types(fields: Eip712Fields) -> List[Dict[str, str]]:
    return [{"name": n, "type": t} for n, t in fields]


def typed_data(domain: Dict[str, Any], primary_type: str, fields: Eip712Fields,
               message: Dict[str, Any]) -> Dict[str, Any]:
    """Full EIP-712 message, the shape wallets and `encode_typed_data` accept."""
    return {
        "domain": dict(domain),
        "types": {
            primary_type: fields_to_types(fields),
            "EIP712Domain": fields_to_types(EIP712_DOMAIN_FIELDS),
        },
        "primaryType": primary_type,
        "message": dict(message),
    }


def user_signed_domain(chain_id: int) -> Dict[str, Any]:
    return {
        "name": USER_SIGNED_DOMAIN_NAME,
        "version": "1",
        "chainId": chain_id,
        "verifyingContract": ZERO_ADDRESS,
    }


def user_signed_message(action: Action) -> Tuple[str, Eip712Fields, Dict[str, Any]]:
    """(primaryType, fields, message) of a user-signed action."""
    schema = USER_SIGNED_SCHEMAS.get(type(action))
    if schema is None:
        raise InvalidParameter(f"{type(action).__name__} is not a user-signed action", field="action")
    primary_type, fields = schema
    wire = action_to_wire(action)
    return primary_type, fields, {name: wire[name] for name, _ in fields}


def user_signed_typed_data(action: Action) -> Dict[str, Any]:
    primary_type, fields, message = user_signed_message(action)
    return typed_data(user_signed_domain(action.signature_chain_id), primary_type, fields, message)


def typed_data_preimage(full_message: Dict[str, Any]) -> bytes:
    """0x19 || 0x01 || domainSeparator || hashStruct(message); keccak of this is the digest."""
    try:
        signable = encode_typed_data(full_message=full_message)
    except (ValueError, TypeError) as e:
        raise InvalidParameter(f"typed data does not encode: {e}", field="typed_data") from e
    return b"\x19" + signable.version + signable.header + signable.body


# ---- canonical bytes ----------------------------------------------------------------

def encode_action(action: Action) -> bytes:
    """Canonical byte encoding hashed by the signature scheme."""
    if action.kind is SigningKind.USER_SIGNED:
        return typed_data_preimage(user_signed_typed_data(action))
    return msgpack.packb(action_to_wire(action))
