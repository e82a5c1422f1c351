"""
Wallet data model: proofs, blinded messages, blinded signatures, tokens.

Points are held as ``Point`` objects and only turn into hex strings at
the wire boundary (``to_dict`` / ``from_dict``).  ``from_dict`` raises
``ValueError`` on malformed input; the mint adapter and the token codec
translate that into their own error types.

Wire shapes
-----------
- Proof                 ``{"id", "amount", "secret", "C"}``
- BlindedMessage        ``{"amount", "B_"}``
- BlindedSignature      ``{"id", "amount", "C_"}``
- TokenEntry            ``{"mint", "proofs"}``
- Token                 ``{"token": [...], "memo"?}``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from .curve import Point

if TYPE_CHECKING:
    from .keys import MintKeys


# ── field helpers ───────────────────────────────────────────────────────

def is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


def _point_field(data: Mapping[str, Any], key: str) -> Point:
    return Point.from_hex(_str_field(data, key))


def _list_field(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list, got {value!r}")
    return value


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


# ── proofs ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Proof:
    """
    A spendable unit of value.

    ``secret`` is the base64 text of the random bytes chosen when the
    output was blinded; ``C`` is the unblinded mint signature on it.
    """

    id: str
    amount: int
    secret: str
    C: Point

    def __post_init__(self) -> None:
        if not is_power_of_two(self.amount):
            raise ValueError(
                f"proof amount must be a power of two, got {self.amount}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "secret": self.secret,
            "C": self.C.to_hex(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Proof:
        data = _mapping(data, "proof")
        return cls(
            id=_str_field(data, "id"),
            amount=_int_field(data, "amount"),
            secret=_str_field(data, "secret"),
            C=_point_field(data, "C"),
        )


@dataclass(frozen=True)
class BlindedMessage:
    """Output sent to the mint for signing; amount 0 marks a blank output."""

    amount: int
    B_: Point

    def __post_init__(self) -> None:
        if self.amount != 0 and not is_power_of_two(self.amount):
            raise ValueError(
                f"output amount must be 0 or a power of two, got {self.amount}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "B_": self.B_.to_hex()}


@dataclass(frozen=True)
class BlindedSignature:
    """Mint signature  C_ = k·B_  on a blinded message."""

    id: str
    amount: int
    C_: Point

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "C_": self.C_.to_hex()}

    @classmethod
    def from_dict(cls, data: Any) -> BlindedSignature:
        data = _mapping(data, "blinded signature")
        return cls(
            id=_str_field(data, "id"),
            amount=_int_field(data, "amount"),
            C_=_point_field(data, "C_"),
        )


# ── tokens ──────────────────────────────────────────────────────────────

@dataclass
class TokenEntry:
    """Proofs issued by a single mint."""

    mint: str
    proofs: List[Proof] = field(default_factory=list)

    @property
    def amount(self) -> int:
        return sum(p.amount for p in self.proofs)

    def to_dict(self) -> Dict[str, Any]:
        return {"mint": self.mint, "proofs": [p.to_dict() for p in self.proofs]}

    @classmethod
    def from_dict(cls, data: Any) -> TokenEntry:
        data = _mapping(data, "token entry")
        return cls(
            mint=_str_field(data, "mint"),
            proofs=[Proof.from_dict(p) for p in _list_field(data, "proofs")],
        )


@dataclass
class Token:
    token: List[TokenEntry] = field(default_factory=list)
    memo: Optional[str] = None

    @property
    def amount(self) -> int:
        return sum(entry.amount for entry in self.token)

    @property
    def proofs(self) -> List[Proof]:
        return [p for entry in self.token for p in entry.proofs]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"token": [e.to_dict() for e in self.token]}
        if self.memo is not None:
            out["memo"] = self.memo
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Token:
        data = _mapping(data, "token")
        memo = data.get("memo")
        if memo is not None and not isinstance(memo, str):
            raise ValueError("field 'memo' must be a string")
        return cls(
            token=[TokenEntry.from_dict(e) for e in _list_field(data, "token")],
            memo=memo,
        )


# ── request payloads ────────────────────────────────────────────────────

@dataclass
class SplitPayload:
    proofs: List[Proof]
    outputs: List[BlindedMessage]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proofs": [p.to_dict() for p in self.proofs],
            "outputs": [o.to_dict() for o in self.outputs],
        }


@dataclass
class PaymentPayload:
    """Invoice plus the proofs that pay for it."""

    pr: str
    proofs: List[Proof]


@dataclass
class MeltPayload:
    pr: str
    proofs: List[Proof]
    outputs: List[BlindedMessage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pr": self.pr,
            "proofs": [p.to_dict() for p in self.proofs],
            "outputs": [o.to_dict() for o in self.outputs],
        }


# ── mint responses ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class RequestMintResponse:
    pr: str
    hash: str

    @classmethod
    def from_dict(cls, data: Any) -> RequestMintResponse:
        data = _mapping(data, "mint request response")
        return cls(pr=_str_field(data, "pr"), hash=_str_field(data, "hash"))


@dataclass(frozen=True)
class MeltResponse:
    """
    ``paid`` False means the proofs were not invalidated and the payment
    can be retried later with the same proofs.
    """

    paid: bool
    preimage: Optional[str]
    change: List[BlindedSignature] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> MeltResponse:
        data = _mapping(data, "melt response")
        paid = data.get("paid")
        if not isinstance(paid, bool):
            raise ValueError("field 'paid' must be a boolean")
        preimage = data.get("preimage")
        if preimage is not None and not isinstance(preimage, str):
            raise ValueError("field 'preimage' must be a string or null")
        change = data.get("change") or []
        if not isinstance(change, list):
            raise ValueError("field 'change' must be a list")
        return cls(
            paid=paid,
            preimage=preimage,
            change=[BlindedSignature.from_dict(c) for c in change],
        )


def parse_promises(data: Any) -> List[BlindedSignature]:
    """``{"promises": [...]}`` as returned by the mint and split endpoints."""
    data = _mapping(data, "response")
    return [BlindedSignature.from_dict(p) for p in _list_field(data, "promises")]


def parse_fee(data: Any) -> int:
    return _int_field(_mapping(data, "fee response"), "fee")


def parse_spendable(data: Any) -> List[bool]:
    spendable = _list_field(_mapping(data, "check response"), "spendable")
    if not all(isinstance(s, bool) for s in spendable):
        raise ValueError("field 'spendable' must hold booleans")
    return spendable


# ── wallet results ──────────────────────────────────────────────────────

@dataclass
class MintResult:
    proofs: List[Proof]
    new_keys: Optional[MintKeys] = None


@dataclass
class SendResponse:
    """``return_change`` stays with the sender, ``send`` matches the amount."""

    return_change: List[Proof]
    send: List[Proof]
    new_keys: Optional[MintKeys] = None


@dataclass
class ReceiveTokenEntryResponse:
    proofs: List[Proof]
    proofs_with_error: Optional[List[Proof]] = None
    new_keys: Optional[MintKeys] = None


@dataclass
class ReceiveResponse:
    """
    Entries that failed are returned in ``tokens_with_errors`` rather
    than raised; they still hold whatever value their mint recognises.
    """

    token: Token
    tokens_with_errors: Optional[Token] = None
    new_keys: Optional[MintKeys] = None


@dataclass
class PayLnInvoiceResponse:
    is_paid: bool
    preimage: Optional[str]
    change: List[Proof] = field(default_factory=list)
    new_keys: Optional[MintKeys] = None

