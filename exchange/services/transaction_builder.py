# exchange/services/transaction_builder.py
from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence, Union

from exchange.config import SigningSettings
from exchange.digest import prepare_components
from exchange.encoding import float_to_usd_int
from exchange.enums import Grouping, Network, SigningKind
from exchange.envelope import assemble_from_components
from exchange.models import (
    Action, ApproveBuilderFee, BuilderInfo, BulkCancel, Cancel, CancelByCloid, CancelIntent,
    CancelRequest, CloidCancelIntent, CloidCancelRequest, Modify, Number, Order, OrderIntent,
    OrderWire, SignedEnvelope, SpotTransfer, UnsignedComponents, UpdateLeverage, UsdTransfer,
    VaultTransfer, Withdraw, check_number,
)
from exchange.nonce import NonceSource
from exchange.services.asset_directory import AssetDirectory
from utils.logger import logger


class TransactionBuilder:
    """
    Turns caller intents into UnsignedComponents.

    Symbols are resolved against the directory snapshot held by the builder;
    every validation runs before a nonce is drawn or anything is hashed.
    Signing is a separate step: `sign()` with any object exposing
    `sign(components) -> Signature` (LocalSigner, CallbackSigner, ...).
    """

    def __init__(self,
                 settings: SigningSettings,
                 directory: AssetDirectory,
                 nonce_source: Optional[NonceSource] = None) -> None:
        self.settings = settings
        self.directory = directory
        self.nonces = nonce_source or NonceSource()

    def with_directory(self, directory: AssetDirectory) -> "TransactionBuilder":
        """Same settings and nonce source, different snapshot."""
        return TransactionBuilder(self.settings, directory, self.nonces)

    # ---- helpers -------------------------------------------------------------------

    @property
    def _chain(self) -> Network:
        return self.settings.network

    def _order_wire(self, intent: OrderIntent) -> OrderWire:
        asset = self.directory.get(intent.symbol)
        check_number("sz", intent.sz)
        self.directory.validate_size(intent.symbol, intent.sz)
        return OrderWire(
            asset=asset.index,
            is_buy=intent.is_buy,
            limit_px=intent.limit_px,
            sz=intent.sz,
            reduce_only=intent.reduce_only,
            order_type=intent.order_type,
            cloid=intent.cloid,
        )

    def _finish(self, action: Action, nonce: Optional[int] = None) -> UnsignedComponents:
        if action.kind is SigningKind.USER_SIGNED:
            return prepare_components(action, nonce, self.settings.is_mainnet)
        nonce = self.nonces.next() if nonce is None else nonce
        expires_after = None
        if self.settings.expires_after_ms:
            expires_after = nonce + self.settings.expires_after_ms
        return prepare_components(
            action,
            nonce,
            self.settings.is_mainnet,
            vault_address=self.settings.vault_address,
            expires_after=expires_after,
        )

    # ---- L1 actions ----------------------------------------------------------------

    def prepare_order(self,
                      intent: OrderIntent,
                      *,
                      grouping: Optional[Grouping] = None,
                      builder: Optional[BuilderInfo] = None) -> UnsignedComponents:
        return self.prepare_bulk_orders([intent], grouping=grouping, builder=builder)

    def prepare_bulk_orders(self,
                            intents: Sequence[OrderIntent],
                            *,
                            grouping: Optional[Grouping] = None,
                            builder: Optional[BuilderInfo] = None) -> UnsignedComponents:
        wires = [self._order_wire(i) for i in intents]
        action = Order(
            orders=tuple(wires),
            grouping=grouping or self.settings.default_grouping,
            builder=builder or self.settings.builder,
        )
        return self._finish(action)

    def prepare_cancel(self, intent: CancelIntent) -> UnsignedComponents:
        asset = self.directory.get(intent.symbol)
        return self._finish(Cancel(asset=asset.index, oid=intent.oid))

    def prepare_bulk_cancel(self, intents: Sequence[CancelIntent]) -> UnsignedComponents:
        """One action, one nonce, one digest over the ordered list."""
        cancels = tuple(
            CancelRequest(asset=self.directory.get(i.symbol).index, oid=i.oid) for i in intents
        )
        return self._finish(BulkCancel(cancels=cancels))

    def prepare_cancel_by_cloid(self, intents: Sequence[CloidCancelIntent]) -> UnsignedComponents:
        cancels = tuple(
            CloidCancelRequest(asset=self.directory.get(i.symbol).index, cloid=i.cloid) for i in intents
        )
        return self._finish(CancelByCloid(cancels=cancels))

    def prepare_modify(self, oid: Union[int, str], intent: OrderIntent) -> UnsignedComponents:
        return self._finish(Modify(oid=oid, order=self._order_wire(intent)))

    def prepare_update_leverage(self, symbol: str, leverage: int, *, is_cross: bool = True) -> UnsignedComponents:
        asset = self.directory.get(symbol)
        return self._finish(UpdateLeverage(asset=asset.index, is_cross=is_cross, leverage=leverage))

    def prepare_vault_transfer(self, vault_address: str, is_deposit: bool, usd: Number) -> UnsignedComponents:
        """`usd` in USDC; carried on the wire as integer micro-USDC."""
        check_number("usd", usd)
        action = VaultTransfer(vault_address=vault_address, is_deposit=is_deposit, usd=float_to_usd_int(usd))
        return self._finish(action)

    # ---- user-signed actions -------------------------------------------------------
    # time/nonce of the signed struct doubles as the envelope nonce

    def _with_nonce(self, action: Action) -> UnsignedComponents:
        """`action` was built (and validated) with time 0; stamp the real nonce now."""
        nonce = self.nonces.next()
        stamp = {"nonce": nonce} if isinstance(action, ApproveBuilderFee) else {"time": nonce}
        return self._finish(replace(action, **stamp), nonce)

    def prepare_usd_transfer(self, destination: str, amount: str) -> UnsignedComponents:
        return self._with_nonce(UsdTransfer(destination=destination, amount=amount, time=0, chain=self._chain,
                                            signature_chain_id=self.settings.signature_chain_id))

    def prepare_spot_transfer(self, destination: str, token: str, amount: str) -> UnsignedComponents:
        """`token` is either a token name from the directory or a full NAME:tokenId."""
        if isinstance(token, str) and ":" not in token:
            token = self.directory.spot_token(token).identifier
        return self._with_nonce(SpotTransfer(destination=destination, token=token, amount=amount, time=0,
                                             chain=self._chain, signature_chain_id=self.settings.signature_chain_id))

    def prepare_withdraw(self, destination: str, amount: str) -> UnsignedComponents:
        return self._with_nonce(Withdraw(destination=destination, amount=amount, time=0, chain=self._chain,
                                         signature_chain_id=self.settings.signature_chain_id))

    def prepare_approve_builder_fee(self, builder: str, max_fee_rate: str) -> UnsignedComponents:
        return self._with_nonce(ApproveBuilderFee(builder=builder, max_fee_rate=max_fee_rate, nonce=0,
                                                  chain=self._chain,
                                                  signature_chain_id=self.settings.signature_chain_id))

    # ---- signing -------------------------------------------------------------------

    def sign(self, components: UnsignedComponents, signer) -> SignedEnvelope:
        envelope = assemble_from_components(components, signer.sign(components))
        logger.info(f"signed {components.action_payload['type']} nonce={components.nonce}")
        return envelope


def reprice(intent: OrderIntent, directory: AssetDirectory) -> OrderIntent:
    """Copy of `intent` with price and size snapped to the asset's precision."""
    return replace(
        intent,
        limit_px=directory.round_price(intent.symbol, intent.limit_px),
        sz=directory.round_size(intent.symbol, intent.sz),
    )
