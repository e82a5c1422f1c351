"""
Exception hierarchy for nutwallet.

Two families matter to callers:

- ``ValidationError``: the wallet refused the operation locally, before
  anything was sent to the mint (not enough funds, no key for a
  denomination, malformed preference).
- ``MintProtocolError``: the mint answered and rejected the request
  (unpaid invoice, unknown keyset, proofs already spent).  It carries the
  mint's own message.

Nothing in the package retries; retry policy belongs to the caller.
"""

from __future__ import annotations

from typing import Optional


class NutWalletError(Exception):
    """Base class for every error raised by this package."""


# ── local validation ────────────────────────────────────────────────────

class ValidationError(NutWalletError, ValueError):
    """Rejected locally, no network interaction took place."""


class InsufficientFundsError(ValidationError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Not enough funds available: requested {requested}, "
            f"available {available}"
        )
        self.requested = requested
        self.available = available


class MissingKeyError(ValidationError):
    """The keyset has no public key for a denomination."""

    def __init__(self, amount: int, keyset_id: Optional[str] = None) -> None:
        where = f" in keyset {keyset_id}" if keyset_id else ""
        super().__init__(f"no mint public key for amount {amount}{where}")
        self.amount = amount
        self.keyset_id = keyset_id


class TokenDecodeError(ValidationError):
    """A token string could not be decoded."""


# ── mint interaction ────────────────────────────────────────────────────

class MintProtocolError(NutWalletError):
    """The mint rejected a request."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail

    def __repr__(self) -> str:
        return f"MintProtocolError({self.message!r}, code={self.code!r})"


class BadResponseError(MintProtocolError):
    """The mint answered with a body of the wrong shape."""

    def __init__(self, message: str = "bad response") -> None:
        super().__init__(message)


# ── internal ────────────────────────────────────────────────────────────

class HashToCurveError(NutWalletError, RuntimeError):
    """Hash-to-curve ran out of attempts."""
