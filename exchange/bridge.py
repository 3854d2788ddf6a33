# exchange/bridge.py
"""
Arbitrum -> Hyperliquid USDC deposits.

A deposit is a plain ERC-20 `transfer(bridge, amount)` on the USDC contract;
the bridge credits the sender once the transfer lands. Amounts are integer
micro-USDC (6 decimals) and below MIN_DEPOSIT_USDC the funds are lost.
"""
from typing import Any, Dict

from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from exchange.errors import InvalidParameter
from exchange.models import check_int, normalize_address

BRIDGE_MAINNET = "0x2df1c51e09aecf9cacb7bc98cb1742757f163df7"
BRIDGE_TESTNET = "0x08cfc1B6b2dCF36A1480b99353A354AA8AC56f89"

USDC_MAINNET = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
USDC_TESTNET = "0x1baAbB04529D43a73232B713C0FE471f7c7334d5"

MIN_DEPOSIT_USDC = 5_000_000    # 5 USDC

TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")


def get_bridge_address(is_mainnet: bool) -> str:
    return to_checksum_address(BRIDGE_MAINNET if is_mainnet else BRIDGE_TESTNET)


def get_usdc_address(is_mainnet: bool) -> str:
    return to_checksum_address(USDC_MAINNET if is_mainnet else USDC_TESTNET)


def usdc_transfer_data(to: str, amount: int) -> str:
    """0x-hex calldata of `transfer(to, amount)`; `amount` in micro-USDC."""
    to = normalize_address("to", to)
    check_int("amount", amount)
    if amount < MIN_DEPOSIT_USDC:
        raise InvalidParameter("deposit below the bridge minimum", field="amount",
                               expected=f">={MIN_DEPOSIT_USDC}", actual=str(amount))
    return "0x" + (TRANSFER_SELECTOR + abi_encode(["address", "uint256"], [to, amount])).hex()


def deposit_call(amount: int, is_mainnet: bool) -> Dict[str, Any]:
    """Unsigned Arbitrum call moving `amount` micro-USDC into the bridge."""
    return {
        "to": get_usdc_address(is_mainnet),
        "data": usdc_transfer_data(get_bridge_address(is_mainnet), amount),
        "value": 0,
    }
