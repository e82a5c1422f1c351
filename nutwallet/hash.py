"""
Hash functions for the blind Diffie-Hellman exchange.

``hash_to_curve`` maps an arbitrary byte string to a secp256k1 point
with unknown discrete log, by the try-and-increment method:

    h₀ = SHA-256(m)
    hᵢ = SHA-256(hᵢ₋₁)

returning the first ``0x02 ‖ hᵢ`` that decodes to a valid point.  About
half of all x-coordinates are on the curve, so the expected number of
attempts is 2; the loop is nevertheless bounded.

``derive_keyset_id`` names a mint's public key set so that a wallet can
notice when the mint rotates keys.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Mapping

from .curve import Point
from .errors import HashToCurveError

MAX_HASH_TO_CURVE_ATTEMPTS = 1 << 16
KEYSET_ID_LENGTH = 12


def hash_to_curve(message: bytes) -> Point:
    """
    Deterministically map *message* to a point with even y.

    Raises ``HashToCurveError`` after ``MAX_HASH_TO_CURVE_ATTEMPTS``
    candidates; the probability of reaching it is about 2⁻⁶⁵⁵³⁶.
    """
    digest = hashlib.sha256(message).digest()
    for _ in range(MAX_HASH_TO_CURVE_ATTEMPTS):
        try:
            return Point.from_bytes(b"\x02" + digest)
        except ValueError:
            digest = hashlib.sha256(digest).digest()
    raise HashToCurveError(
        f"no curve point after {MAX_HASH_TO_CURVE_ATTEMPTS} attempts"
    )


def derive_keyset_id(keys: Mapping[int, Point]) -> str:
    """
    Keyset id  =  base64( SHA-256( ‖ᵢ hex(Aᵢ) ) )[:12].

    Public keys are concatenated as lowercase compressed hex in order of
    increasing denomination.
    """
    concat = "".join(keys[amount].to_hex() for amount in sorted(keys))
    digest = hashlib.sha256(concat.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")[:KEYSET_ID_LENGTH]
