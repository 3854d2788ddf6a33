# exchange/errors.py
class ExchangeError(Exception):
    """Base error for the action pipeline."""

    def __init__(self, msg: str = "", **ctx):
        super().__init__(msg)
        self.msg = msg
        self.ctx = ctx

    def __str__(self):
        base = self.msg or self.__class__.__name__
        if self.ctx:
            details = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{base} [{details}]"
        return base


class UnknownAsset(ExchangeError):
    """Symbol is not present in the asset directory."""

    def __init__(self, symbol: str, msg: str = ""):
        super().__init__(msg or f"Unknown asset: {symbol}", symbol=symbol)
        self.symbol = symbol


class InvalidParameter(ExchangeError):
    """Out-of-range numeric field, malformed address/cloid or unrecognized tag."""

    def __init__(self, msg: str = "", *, field: str = "", **ctx):
        super().__init__(msg, field=field, **ctx)
        self.field = field


class MetadataUnavailable(ExchangeError):
    """Asset metadata could not be fetched or parsed."""


class MalformedSignature(ExchangeError):
    """Signature has the wrong shape (byte lengths, recovery id)."""


class SigningFailed(ExchangeError):
    """Internal signer error, e.g. invalid key material."""


class TransportError(ExchangeError):
    """Opaque failure surfaced by the submission/metadata transport."""
