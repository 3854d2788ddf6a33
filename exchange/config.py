# exchange/config.py
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from exchange.enums import Grouping, Network
from exchange.errors import InvalidParameter
from exchange.models import DEFAULT_SIGNATURE_CHAIN_ID, BuilderInfo, normalize_address
from utils.time import parse_duration_ms

@dataclass
class SigningSettings:
    """Signing context shared by every action a builder prepares."""
    network: Network
    vault_address: Optional[str] = None           # trade on behalf of a vault/sub-account
    signature_chain_id: int = DEFAULT_SIGNATURE_CHAIN_ID
    expires_after_ms: Optional[int] = None        # lifetime added to the nonce for L1 actions
    default_grouping: Grouping = Grouping.NA
    builder: Optional[BuilderInfo] = None         # attached to every order when set

    @property
    def is_mainnet(self) -> bool:
        return self.network.is_mainnet


def settings_from_cfg(cfg: Mapping[str, Any]) -> SigningSettings:
    try:
        network = Network(str(cfg["hyperliquid"]["network"]).lower())
    except (KeyError, ValueError) as e:
        raise InvalidParameter(f"Invalid cfg hyperliquid.network: {e}", field="network") from e

    signing = cfg.get("signing") or {}

    vault = signing.get("vault_address") or None
    if vault:
        vault = normalize_address("vault_address", vault)

    chain_id = signing.get("signature_chain_id", DEFAULT_SIGNATURE_CHAIN_ID)
    if isinstance(chain_id, str):
        chain_id = int(chain_id, 16) if chain_id.startswith("0x") else int(chain_id)

    expires = parse_duration_ms(signing.get("expires_after_ms") or 0) or None

    builder_cfg = signing.get("builder") or {}
    builder = None
    if builder_cfg.get("address"):
        builder = BuilderInfo(builder=builder_cfg["address"], fee=int(builder_cfg.get("fee", 0)))

    return SigningSettings(
        network=network,
        vault_address=vault,
        signature_chain_id=chain_id,
        expires_after_ms=expires,
        default_grouping=Grouping(signing.get("grouping", "na")),
        builder=builder,
    )
