# exchange/envelope.py
import copy
from typing import Any, Dict, Optional

from exchange.models import SignedEnvelope, UnsignedComponents, normalize_address
from exchange.signer import ExternalSignature, coerce_signature


def assemble(
    action_payload: Dict[str, Any],
    nonce: int,
    signature: ExternalSignature,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
) -> SignedEnvelope:
    """
    Bundle transport action, nonce and signature into a submittable envelope.
    Raises MalformedSignature if the signature has the wrong shape; the
    digest is not re-derived here.
    """
    sig = coerce_signature(signature)
    if vault_address is not None:
        vault_address = normalize_address("vault_address", vault_address)
    return SignedEnvelope(
        action=copy.deepcopy(action_payload),
        nonce=nonce,
        signature=sig,
        vault_address=vault_address,
        expires_after=expires_after,
    )


def assemble_from_components(components: UnsignedComponents, signature: ExternalSignature) -> SignedEnvelope:
    return assemble(
        components.action_payload,
        components.nonce,
        signature,
        vault_address=components.vault_address,
        expires_after=components.expires_after,
    )
