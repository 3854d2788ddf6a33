# exchange/signer.py
"""
Signers turn a 32-byte digest into a recoverable secp256k1 signature.

`LocalSigner` holds a private key in-process. `CallbackSigner` hands the
unsigned components to caller code (hardware wallet, remote signing service)
and only checks the shape of what comes back; the caller is responsible for
signing exactly the digest it was given.
"""
from typing import Any, Callable, Mapping, Tuple, Union

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from exchange.errors import MalformedSignature, SigningFailed
from exchange.models import Signature, UnsignedComponents

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ExternalSignature = Union[Signature, bytes, Mapping[str, Any], Tuple[Any, Any, int]]


def _mask(s: str) -> str:
    if not s:
        return ""
    if len(s) <= 10:
        return "*" * len(s)
    return s[:6] + "*" * (len(s) - 10) + s[-4:]


def _check_digest(digest: bytes) -> None:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        raise SigningFailed("digest must be 32 bytes", field="digest")


def coerce_signature(value: ExternalSignature) -> Signature:
    """Accept a Signature, 65 raw bytes, {"r","s","v"} or (r, s, v)."""
    if isinstance(value, Signature):
        return value
    if isinstance(value, (bytes, bytearray)):
        return Signature.from_bytes(bytes(value))
    if isinstance(value, Mapping):
        try:
            return Signature.from_rsv(value["r"], value["s"], value["v"])
        except KeyError as e:
            raise MalformedSignature(f"signature missing field {e}", field="signature") from e
    if isinstance(value, tuple) and len(value) == 3:
        return Signature.from_rsv(*value)
    raise MalformedSignature("unrecognized signature value", field="signature",
                             actual=type(value).__name__)


def sign(digest: bytes, private_key: Union[str, bytes]) -> Signature:
    """Sign a digest with a raw secp256k1 key; low-s, recovery id 0/1."""
    _check_digest(digest)
    try:
        signed = Account.unsafe_sign_hash(bytes(digest), private_key)
    except (ValueError, TypeError, ValidationError) as e:
        # never echo the key material
        raise SigningFailed(f"could not sign digest: {type(e).__name__}") from None
    r, s, v = signed.r, signed.s, signed.v
    recovery_id = v - 27 if v >= 27 else v
    if s > SECP256K1_N // 2:
        s = SECP256K1_N - s
        recovery_id ^= 1
    return Signature(r.to_bytes(32, "big"), s.to_bytes(32, "big"), recovery_id)


def recover_signer(digest: bytes, signature: Signature) -> str:
    """Checksum address that produced `signature` over `digest`."""
    _check_digest(digest)
    try:
        sig = keys.Signature(vrs=(signature.recovery_id,
                                  int.from_bytes(signature.r, "big"),
                                  int.from_bytes(signature.s, "big")))
        return sig.recover_public_key_from_msg_hash(bytes(digest)).to_checksum_address()
    except (BadSignature, ValidationError) as e:
        raise MalformedSignature(f"signature does not recover: {e}", field="signature") from e


class LocalSigner:
    """In-process key; repr and logs only ever show the address."""

    def __init__(self, private_key: Union[str, bytes]) -> None:
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError, ValidationError):
            raise SigningFailed("invalid private key material") from None
        self._key = account.key
        self.address: str = account.address

    def sign(self, components: UnsignedComponents) -> Signature:
        return sign(components.digest, self._key)

    def sign_digest(self, digest: bytes) -> Signature:
        return sign(digest, self._key)

    def __repr__(self) -> str:
        return f"LocalSigner(address={_mask(self.address)})"


class CallbackSigner:
    """
    Delegates to `fn(components)`; the callback may return any shape accepted
    by `coerce_signature`. Errors raised by the callback propagate unchanged.
    """

    def __init__(self, fn: Callable[[UnsignedComponents], ExternalSignature]) -> None:
        self._fn = fn

    def sign(self, components: UnsignedComponents) -> Signature:
        return coerce_signature(self._fn(components))
