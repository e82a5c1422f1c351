"""
secp256k1 adapter for the blind Diffie-Hellman key exchange.

All group arithmetic runs in libsecp256k1 through ``coincurve``.  A
``Point`` is held as its 33-byte SEC 1 compressed encoding, which is also
the form every key, blinded message and signature takes on the wire, so
points compare and hash by encoding.  The wallet only ever needs:

    Y = hash_to_curve(x)            (see ``hash.py``)
    B_ = Y + r·G                    blinding
    C  = C_ - r·K                   unblinding

Install
-------
    pip install coincurve>=18.0.0

References
----------
- SEC 1 v2 §2.3.3    compressed point encoding
- SEC 2 v2 §2.4.1    secp256k1 domain parameters
"""

from __future__ import annotations

import secrets
from typing import Optional, Union

from coincurve import PrivateKey as _SK, PublicKey as _PK

ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SCALAR_BYTES = 32
COMPRESSED_BYTES = 33
UNCOMPRESSED_BYTES = 65

_EVEN, _ODD = 0x02, 0x03


# ── scalars ─────────────────────────────────────────────────────────────
class Scalar:
    """Integer mod ``ORDER``: a blinding factor or a mint private key."""

    __slots__ = ("_n",)

    def __init__(self, n: int) -> None:
        self._n = n % ORDER

    @classmethod
    def random(cls) -> Scalar:
        """Fresh non-zero scalar from the OS CSPRNG."""
        return cls(secrets.randbelow(ORDER - 1) + 1)

    @classmethod
    def coerce(cls, value: Union[int, Scalar]) -> Scalar:
        if isinstance(value, Scalar):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        raise TypeError(f"expected int or Scalar, got {type(value).__name__}")

    @property
    def value(self) -> int:
        return self._n

    def to_bytes(self) -> bytes:
        return self._n.to_bytes(SCALAR_BYTES, "big")

    def is_zero(self) -> bool:
        return not self._n

    def __mul__(self, other):
        if isinstance(other, Point):
            return other.multiply(self)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Scalar) and other._n == self._n

    def __hash__(self) -> int:
        return hash(("Scalar", self._n))

    def __repr__(self) -> str:
        return "Scalar(<hidden>)"


# ── points ──────────────────────────────────────────────────────────────
class Point:
    """
    Point on secp256k1, stored compressed.

    ``Point()`` with no encoding is the identity.  It appears only as the
    result of ``P - P`` and cannot be serialised.
    """

    __slots__ = ("_sec",)

    def __init__(self, sec: Optional[bytes] = None) -> None:
        self._sec = sec

    @classmethod
    def from_scalar(cls, k: Scalar) -> Point:
        """``k·G``."""
        if k.is_zero():
            return cls()
        return cls(_SK(k.to_bytes()).public_key.format(compressed=True))

    @classmethod
    def from_bytes(cls, data: bytes) -> Point:
        """
        Parse a SEC 1 encoding, compressed or uncompressed.

        Raises ``ValueError`` for anything that is not a point on the
        curve.
        """
        if len(data) not in (COMPRESSED_BYTES, UNCOMPRESSED_BYTES):
            raise ValueError(f"point encoding has {len(data)} bytes")
        return cls(_PK(data).format(compressed=True))

    @classmethod
    def from_hex(cls, text: str) -> Point:
        try:
            data = bytes.fromhex(text)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid point hex {text!r}") from exc
        return cls.from_bytes(data)

    def is_inf(self) -> bool:
        return self._sec is None

    def to_bytes(self) -> bytes:
        if self._sec is None:
            raise ValueError("cannot encode the identity point")
        return self._sec

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def multiply(self, k: Scalar) -> Point:
        if self._sec is None or k.is_zero():
            return Point()
        return Point(_PK(self._sec).multiply(k.to_bytes()).format(compressed=True))

    def __neg__(self) -> Point:
        if self._sec is None:
            return self
        prefix = _ODD if self._sec[0] == _EVEN else _EVEN
        return Point(bytes([prefix]) + self._sec[1:])

    def __add__(self, other: Point) -> Point:
        if not isinstance(other, Point):
            return NotImplemented
        if other._sec is None:
            return self
        if self._sec is None:
            return other
        if self == -other:
            return Point()
        combined = _PK.combine_keys([_PK(self._sec), _PK(other._sec)])
        return Point(combined.format(compressed=True))

    def __sub__(self, other: Point) -> Point:
        if not isinstance(other, Point):
            return NotImplemented
        return self + -other

    def __rmul__(self, k) -> Point:
        if isinstance(k, int) and not isinstance(k, bool):
            k = Scalar(k)
        if isinstance(k, Scalar):
            return self.multiply(k)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Point) and other._sec == self._sec

    def __hash__(self) -> int:
        return hash(("Point", self._sec))

    def __repr__(self) -> str:
        return "Point(identity)" if self._sec is None else f"Point({self._sec.hex()})"


G = Point.from_scalar(Scalar(1))
