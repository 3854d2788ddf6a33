# exchange/digest.py
"""
Digest computation.

L1 actions (orders, cancels, leverage, vault moves) are not signed directly.
The msgpack bytes of the action are hashed together with the nonce, the
optional vault address and the optional expiration:

    action_hash = keccak(msgpack(action) || nonce(8, BE)
                         || 0x00                       (no vault)
                         || 0x01 || vault(20)          (vault)
                         [|| 0x00 || expires_after(8, BE)])

and the hash is wrapped in a phantom ``Agent{source, connectionId}`` record
signed under the fixed ``Exchange`` EIP-712 domain (chainId 1337). ``source``
is ``"a"`` on mainnet and ``"b"`` on testnet.

User-signed actions (usdSend, spotSend, withdraw3, approveBuilderFee) are
signed as EIP-712 structs under the ``HyperliquidSignTransaction`` domain,
whose chainId is the action's ``signatureChainId``.

Typed-data hashing itself is done by ``eth_account.messages.encode_typed_data``.
"""
from typing import Any, Dict, Optional

from eth_utils import keccak

from exchange.encoding import (
    Eip712Fields, ZERO_ADDRESS, action_to_wire, encode_action, typed_data,
    typed_data_preimage, user_signed_typed_data,
)
from exchange.enums import SigningKind
from exchange.errors import InvalidParameter
from exchange.models import (
    Action, ApproveBuilderFee, UnsignedComponents, check_int, normalize_address,
)
from utils.logger import logger

AGENT_FIELDS: Eip712Fields = [
    ("source", "string"),
    ("connectionId", "bytes32"),
]

L1_CHAIN_ID = 1337
L1_DOMAIN: Dict[str, Any] = {
    "name": "Exchange",
    "version": "1",
    "chainId": L1_CHAIN_ID,
    "verifyingContract": ZERO_ADDRESS,
}


def eip712_digest(full_message: Dict[str, Any]) -> bytes:
    return keccak(typed_data_preimage(full_message))


# ---- L1 -----------------------------------------------------------------------------

def action_hash(
    action: Action,
    nonce: int,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
) -> bytes:
    check_int("nonce", nonce)
    data = encode_action(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01" + bytes.fromhex(normalize_address("vault_address", vault_address)[2:])
    if expires_after is not None:
        check_int("expires_after", expires_after)
        data += b"\x00" + expires_after.to_bytes(8, "big")
    return keccak(data)


def phantom_agent(connection_id: bytes, is_mainnet: bool) -> Dict[str, Any]:
    return {"source": "a" if is_mainnet else "b", "connectionId": connection_id}


def l1_typed_data(agent: Dict[str, Any]) -> Dict[str, Any]:
    return typed_data(L1_DOMAIN, "Agent", AGENT_FIELDS, agent)


# ---- user-signed --------------------------------------------------------------------

def _user_signed_nonce(action: Action) -> int:
    return action.nonce if isinstance(action, ApproveBuilderFee) else action.time


def _check_user_signed_context(action, nonce, is_mainnet, vault_address, expires_after) -> None:
    if vault_address is not None:
        raise InvalidParameter("user-signed actions cannot be sent on behalf of a vault",
                               field="vault_address", action=type(action).__name__)
    if expires_after is not None:
        raise InvalidParameter("user-signed actions do not support expiration",
                               field="expires_after", action=type(action).__name__)
    if action.chain.is_mainnet != is_mainnet:
        raise InvalidParameter("action chain does not match signing network",
                               field="chain", expected="mainnet" if is_mainnet else "testnet",
                               actual=action.chain.value)
    if _user_signed_nonce(action) != nonce:
        raise InvalidParameter("user-signed action time must equal the nonce",
                               field="nonce", expected=str(nonce), actual=str(_user_signed_nonce(action)))


# ---- entry points -------------------------------------------------------------------

def compute_digest(
    action: Action,
    nonce: int,
    is_mainnet: bool,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
) -> bytes:
    """32-byte hash to sign for `action` under the given signing context."""
    if action.kind is SigningKind.USER_SIGNED:
        _check_user_signed_context(action, nonce, is_mainnet, vault_address, expires_after)
        return keccak(encode_action(action))
    agent = phantom_agent(action_hash(action, nonce, vault_address, expires_after), is_mainnet)
    return eip712_digest(l1_typed_data(agent))


def prepare_components(
    action: Action,
    nonce: int,
    is_mainnet: bool,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
) -> UnsignedComponents:
    """
    Run the pure half of the pipeline: wire form, digest and typed data.
    The result can be signed locally or handed to an external signer.
    """
    if vault_address is not None:
        vault_address = normalize_address("vault_address", vault_address)
    payload = action_to_wire(action)

    if action.kind is SigningKind.USER_SIGNED:
        digest = compute_digest(action, nonce, is_mainnet, vault_address, expires_after)
        typed = user_signed_typed_data(action)
        components = UnsignedComponents(
            action=action,
            action_payload=payload,
            nonce=nonce,
            digest=digest,
            typed_data=typed,
            is_l1_agent_signature=False,
            eip712_domain_chain_id=action.signature_chain_id,
            hyperliquid_chain=action.chain.chain_name,
        )
    else:
        agent = phantom_agent(action_hash(action, nonce, vault_address, expires_after), is_mainnet)
        digest = eip712_digest(l1_typed_data(agent))
        components = UnsignedComponents(
            action=action,
            action_payload=payload,
            nonce=nonce,
            digest=digest,
            typed_data=l1_typed_data(agent),
            vault_address=vault_address,
            expires_after=expires_after,
            is_l1_agent_signature=True,
            eip712_domain_chain_id=L1_CHAIN_ID,
        )

    logger.debug(
        f"prepared {payload['type']} nonce={nonce} l1={components.is_l1_agent_signature} "
        f"digest={components.digest_hex}"
    )
    return components
