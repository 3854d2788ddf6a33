# exchange/services/asset_directory.py
from __future__ import annotations

import asyncio
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional

from exchange.errors import ExchangeError, InvalidParameter, MetadataUnavailable, UnknownAsset
from exchange.models import Asset, Number, SpotToken
from exchange.services.endpoints import Endpoints
from utils.logger import logger

if TYPE_CHECKING:
    from infra.http_client import HttpPort

SPOT_ASSET_OFFSET = 10_000
PERP_PRICE_DECIMALS = 6
SPOT_PRICE_DECIMALS = 8
PRICE_SIG_FIGS = 5


def _d(x: Number) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x))


def _decimals(x: Decimal) -> int:
    exp = x.normalize().as_tuple().exponent
    return -exp if exp < 0 else 0


class AssetDirectory:
    """
    Immutable, versioned symbol -> Asset snapshot.

    Perps are keyed by coin name, spot pairs by pair name ("PURR/USDC") and
    by the venue alias ("@1"). Never mutated; a refresh builds a new one.
    """

    def __init__(self,
                 assets: Iterable[Asset],
                 spot_tokens: Iterable[SpotToken] = (),
                 *,
                 version: int = 0,
                 aliases: Optional[Mapping[str, str]] = None) -> None:
        by_symbol: Dict[str, Asset] = {}
        for a in assets:
            by_symbol[a.symbol] = a
        for alias, symbol in (aliases or {}).items():
            if symbol in by_symbol:
                by_symbol.setdefault(alias, by_symbol[symbol])
        self._assets = MappingProxyType(by_symbol)
        self._tokens = MappingProxyType({t.name: t for t in spot_tokens})
        self.version = version

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __repr__(self) -> str:
        return f"AssetDirectory(version={self.version}, assets={len(self._assets)}, tokens={len(self._tokens)})"

    @property
    def assets(self) -> Mapping[str, Asset]:
        return self._assets

    @property
    def spot_tokens(self) -> Mapping[str, SpotToken]:
        return self._tokens

    def get(self, symbol: str) -> Asset:
        """Return the asset or raise UnknownAsset."""
        asset = self._assets.get(symbol)
        if asset is None:
            raise UnknownAsset(symbol)
        return asset

    def spot_token(self, name: str) -> SpotToken:
        token = self._tokens.get(name)
        if token is None:
            raise UnknownAsset(name, f"Unknown spot token: {name}")
        return token

    # ---- precision helpers ---------------------------------------------------------

    def round_size(self, symbol: str, sz: Number) -> Decimal:
        """Floor size to the asset's szDecimals."""
        asset = self.get(symbol)
        step = Decimal(1).scaleb(-asset.size_decimals)
        return _d(sz).quantize(step, rounding=ROUND_DOWN)

    def round_price(self, symbol: str, px: Number) -> Decimal:
        """
        Snap a price to what the venue accepts: at most 5 significant figures
        and at most (6 - szDecimals) decimals for perps, (8 - szDecimals) for spot.
        Integer prices are always accepted as-is.
        """
        asset = self.get(symbol)
        value = _d(px)
        if value == value.to_integral_value():
            return value
        max_decimals = (SPOT_PRICE_DECIMALS if asset.is_spot else PERP_PRICE_DECIMALS) - asset.size_decimals
        # 5 significant figures
        shift = value.adjusted() - (PRICE_SIG_FIGS - 1)
        value = value.quantize(Decimal(1).scaleb(shift), rounding=ROUND_HALF_UP)
        if max_decimals >= 0 and _decimals(value) > max_decimals:
            value = value.quantize(Decimal(1).scaleb(-max_decimals), rounding=ROUND_HALF_UP)
        return value

    def validate_size(self, symbol: str, sz: Number) -> None:
        """Raise InvalidParameter when sz carries more decimals than szDecimals allows."""
        asset = self.get(symbol)
        value = _d(sz)
        if _decimals(value) > asset.size_decimals:
            raise InvalidParameter(
                f"Size {value} has more than {asset.size_decimals} decimals for {symbol}",
                field="sz", expected=f"<= {asset.size_decimals} decimals", actual=str(value),
                suggestion=str(self.round_size(symbol, value)), symbol=symbol,
            )


def directory_from_meta(meta: Mapping[str, Any],
                        spot_meta: Optional[Mapping[str, Any]] = None,
                        *,
                        version: int = 0) -> AssetDirectory:
    """Build a snapshot from /info `meta` and `spotMeta` responses."""
    assets = []
    aliases: Dict[str, str] = {}
    try:
        for idx, row in enumerate(meta["universe"]):
            assets.append(Asset(symbol=row["name"], index=idx, size_decimals=int(row["szDecimals"])))

        tokens = []
        if spot_meta:
            by_index: Dict[int, SpotToken] = {}
            for row in spot_meta.get("tokens") or []:
                t = SpotToken(
                    name=row["name"],
                    index=int(row["index"]),
                    token_id=row["tokenId"],
                    size_decimals=int(row["szDecimals"]),
                    wei_decimals=int(row["weiDecimals"]),
                )
                by_index[t.index] = t
                tokens.append(t)

            for row in spot_meta.get("universe") or []:
                base_idx, quote_idx = row["tokens"]
                base, quote = by_index[base_idx], by_index[quote_idx]
                pair_index = int(row["index"])
                pair = f"{base.name}/{quote.name}"
                assets.append(Asset(symbol=pair, index=SPOT_ASSET_OFFSET + pair_index,
                                    size_decimals=base.size_decimals, is_spot=True))
                # @N 是 venue 侧的现货别名
                if row["name"] != pair:
                    aliases[row["name"]] = pair
                aliases.setdefault(f"@{pair_index}", pair)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MetadataUnavailable(f"Malformed asset metadata: {e!r}") from e

    return AssetDirectory(assets, tokens, version=version, aliases=aliases)


class AssetDirectoryService:
    """
    Fetches venue metadata and publishes immutable AssetDirectory snapshots.
    `snapshot` is safe to read concurrently; `refresh()` swaps it atomically.
    """

    def __init__(self, http_client: HttpPort, endpoints: Endpoints, *, include_spot: bool = True) -> None:
        self._http = http_client
        self._ep = endpoints
        self._include_spot = include_spot
        self._snapshot = AssetDirectory((), version=0)
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> AssetDirectory:
        return self._snapshot

    async def fetch_meta(self) -> AssetDirectory:
        """Query /info and build a fresh snapshot without installing it."""
        try:
            meta = await self._http.post_info({"type": "meta"}, path=self._ep.info)
            spot_meta = None
            if self._include_spot:
                spot_meta = await self._http.post_info({"type": "spotMeta"}, path=self._ep.info)
        except ExchangeError as e:
            raise MetadataUnavailable(f"Asset metadata fetch failed: {e}") from e
        return directory_from_meta(meta, spot_meta, version=self._snapshot.version + 1)

    async def refresh(self) -> AssetDirectory:
        async with self._lock:
            directory = await self.fetch_meta()
            self._snapshot = directory
        logger.info(f"Asset directory refreshed: {directory!r}")
        return directory
