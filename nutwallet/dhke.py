"""
Blind Diffie-Hellman key exchange (BDHKE), wallet side.

Notation
--------
    x       secret chosen by the wallet
    Y       hash_to_curve(x)
    r       blinding factor, uniform in Z_q
    k, A    mint private key and public key  A = k·G  for one denomination

Protocol
--------
    wallet:  B_ = Y + r·G                  → mint
    mint:    C_ = k·B_                     → wallet
    wallet:  C  = C_ - r·A  =  k·Y

The mint never sees Y, and (x, C) is a proof the mint can later check
with k.  A blinding factor must never be reused: two outputs blinded
with the same r leak the difference of their Y.

References
----------
- D. Wagner, "Chaumian ecash without RSA" (1996)
- Cashu NUT-00, NUT-08
"""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple, Union

from .curve import Scalar, Point, G
from .errors import ValidationError
from .hash import hash_to_curve
from .keys import MintKeys
from .models import BlindedMessage, BlindedSignature, Proof

SECRET_BYTES = 32


def encode_secret(secret: bytes) -> str:
    """Text form of a secret, as stored in ``Proof.secret``."""
    return base64.b64encode(secret).decode("ascii")


def blind_message(
    secret: bytes,
    r: Union[int, Scalar, None] = None,
) -> Tuple[Point, Scalar]:
    """
    Blind *secret*:  B_ = hash_to_curve(base64(secret)) + r·G.

    A fresh random *r* is drawn when none is given.  The returned scalar
    must be kept until the signature comes back; without it the
    signature cannot be unblinded.
    """
    Y = hash_to_curve(encode_secret(secret).encode("utf-8"))
    if r is None:
        r = Scalar.random()
    else:
        r = Scalar.coerce(r)
        if r.is_zero():
            raise ValidationError("blinding factor must be non-zero")
    B_ = Y + r * G
    return B_, r


def unblind_signature(C_: Point, r: Union[int, Scalar], A: Point) -> Point:
    """C = C_ - r·A."""
    return C_ - Scalar.coerce(r) * A


# ── blinding sessions ───────────────────────────────────────────────────

@dataclass(frozen=True)
class BlindedOutput:
    """One denomination unit of a blinding round, kept until unblinding."""

    amount: int
    secret: bytes
    r: Scalar
    B_: Point

    @classmethod
    def create(cls, amount: int) -> BlindedOutput:
        secret = secrets.token_bytes(SECRET_BYTES)
        B_, r = blind_message(secret)
        return cls(amount=amount, secret=secret, r=r, B_=B_)

    @property
    def message(self) -> BlindedMessage:
        return BlindedMessage(amount=self.amount, B_=self.B_)


@dataclass
class BlindedTransaction:
    """
    Ordered outputs of one round trip to the mint.

    Signature *i* of the mint's answer belongs to output *i*; the order
    must survive untouched until ``construct_proofs``.
    """

    outputs: List[BlindedOutput] = field(default_factory=list)

    @classmethod
    def for_amounts(cls, amounts: Iterable[int]) -> BlindedTransaction:
        return cls(outputs=[BlindedOutput.create(a) for a in amounts])

    @classmethod
    def blank(cls, count: int) -> BlindedTransaction:
        """``count`` zero-amount outputs for fee change (NUT-08)."""
        return cls.for_amounts([0] * count)

    def __add__(self, o: BlindedTransaction) -> BlindedTransaction:
        if not isinstance(o, BlindedTransaction):
            return NotImplemented
        return BlindedTransaction(outputs=self.outputs + o.outputs)

    def __len__(self) -> int:
        return len(self.outputs)

    @property
    def blinded_messages(self) -> List[BlindedMessage]:
        return [o.message for o in self.outputs]

    @property
    def secrets(self) -> List[bytes]:
        return [o.secret for o in self.outputs]

    @property
    def rs(self) -> List[Scalar]:
        return [o.r for o in self.outputs]

    @property
    def amounts(self) -> List[int]:
        return [o.amount for o in self.outputs]

    @property
    def amount(self) -> int:
        return sum(self.amounts)


def construct_proofs(
    promises: Sequence[BlindedSignature],
    rs: Sequence[Union[int, Scalar]],
    secrets: Sequence[bytes],
    keys: MintKeys,
) -> List[Proof]:
    """
    Unblind the mint's signatures into proofs.

    ``promises[i]`` is paired with ``rs[i]`` and ``secrets[i]``.  The mint
    may answer with fewer signatures than outputs (fee change fills only
    a prefix of the blank outputs); extra outputs are ignored.

    Raises ``MissingKeyError`` if *keys* has no key for a signed amount,
    and ``ValueError`` if there are more signatures than outputs.
    """
    if len(promises) > len(rs) or len(promises) > len(secrets):
        raise ValueError(
            f"{len(promises)} signatures for {min(len(rs), len(secrets))} outputs"
        )
    proofs = []
    for promise, r, secret in zip(promises, rs, secrets):
        A = keys.public_key(promise.amount)
        C = unblind_signature(promise.C_, r, A)
        proofs.append(Proof(
            id=promise.id,
            amount=promise.amount,
            secret=encode_secret(secret),
            C=C,
        ))
    return proofs
