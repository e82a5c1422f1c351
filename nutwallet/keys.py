"""
Mint public keys and the wallet-side keyset cache.

A mint signs each denomination with its own private scalar kₐ and
publishes Aₐ = kₐ·G.  The set {a ↦ Aₐ} is a *keyset*, named by
``derive_keyset_id``.  When the mint rotates keys, signatures start
arriving with a keyset id the wallet has not cached.

``KeysetCache`` is a two-state machine::

    UNINITIALIZED ──first use──▶ READY(keys, id)
    READY(keys, id) ──foreign id seen, mint now serves id'≠id──▶ READY(keys', id')

Superseded keysets stay reachable through ``keys_for`` because an
unblinding round may straddle a rotation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, Optional, Union

from .curve import Point
from .errors import MissingKeyError
from .hash import derive_keyset_id
from .models import is_power_of_two

if TYPE_CHECKING:
    from .mint import MintConnector

log = logging.getLogger(__name__)


class MintKeys(Mapping):
    """Immutable mapping  denomination → public key  for one keyset."""

    __slots__ = ("_keys", "_id")

    def __init__(self, keys: Mapping[int, Point]) -> None:
        for amount in keys:
            if not is_power_of_two(amount):
                raise ValueError(
                    f"keyset denomination must be a power of two, got {amount}"
                )
        self._keys: Dict[int, Point] = dict(keys)
        self._id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> MintKeys:
        """Parse the mint's ``{"1": "02…", "2": "03…", …}`` encoding."""
        if not isinstance(data, Mapping):
            raise ValueError("keyset must be an object")
        keys: Dict[int, Point] = {}
        for amount, pubkey in data.items():
            try:
                value = int(amount)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"bad keyset denomination {amount!r}") from exc
            if not isinstance(pubkey, str):
                raise ValueError(f"public key for {amount} must be a string")
            keys[value] = Point.from_hex(pubkey)
        return cls(keys)

    def to_dict(self) -> Dict[str, str]:
        return {str(a): self._keys[a].to_hex() for a in sorted(self._keys)}

    @property
    def keyset_id(self) -> str:
        if self._id is None:
            self._id = derive_keyset_id(self._keys)
        return self._id

    def public_key(self, amount: int) -> Point:
        """Key for *amount*; ``MissingKeyError`` if the keyset lacks it."""
        try:
            return self._keys[amount]
        except KeyError:
            raise MissingKeyError(amount, self.keyset_id) from None

    def __getitem__(self, amount: int) -> Point:
        return self._keys[amount]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, o: object) -> bool:
        if isinstance(o, MintKeys):
            return self._keys == o._keys
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.keyset_id)

    def __repr__(self) -> str:
        return f"MintKeys(id={self.keyset_id}, denominations={len(self)})"


# ── cache states ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Uninitialized:
    """No keys fetched yet."""


@dataclass(frozen=True)
class Ready:
    keys: MintKeys
    keyset_id: str


KeysetState = Union[Uninitialized, Ready]


class KeysetCache:
    """
    Active keyset of one mint, plus every keyset looked up by id.

    Parameters
    ----------
    mint : MintConnector
        Where keys are fetched from.
    keys : MintKeys or None
        Previously persisted keys; skips the initial fetch.
    """

    def __init__(self, mint: MintConnector, keys: Optional[MintKeys] = None):
        self._mint = mint
        self._state: KeysetState = Uninitialized()
        self._known: Dict[str, MintKeys] = {}
        if keys is not None:
            self._install(keys)

    @property
    def state(self) -> KeysetState:
        return self._state

    @property
    def keyset_id(self) -> Optional[str]:
        if isinstance(self._state, Ready):
            return self._state.keyset_id
        return None

    def _install(self, keys: MintKeys) -> Ready:
        self._state = Ready(keys=keys, keyset_id=keys.keyset_id)
        self._known[keys.keyset_id] = keys
        return self._state

    async def current(self) -> Ready:
        """Active keyset; fetches it from the mint on first use."""
        if isinstance(self._state, Ready):
            return self._state
        keys = await self._mint.get_keys()
        ready = self._install(keys)
        log.info("loaded keyset %s from %s", ready.keyset_id, self._mint.url)
        return ready

    async def keys_for(self, keyset_id: Optional[str] = None) -> MintKeys:
        """
        Keys of a specific keyset, falling back to the active one.

        Keysets other than the active one are fetched by id once and
        remembered.
        """
        ready = await self.current()
        if not keyset_id or keyset_id == ready.keyset_id:
            return ready.keys
        if keyset_id in self._known:
            return self._known[keyset_id]
        keys = await self._mint.get_keys(keyset_id)
        self._known[keyset_id] = keys
        log.debug("fetched keyset %s from %s", keyset_id, self._mint.url)
        return keys

    async def check_rotation(self, keyset_ids: Iterable[str]) -> Optional[MintKeys]:
        """
        Detect a key rotation from the ids carried by a signature batch.

        Returns the new active keys when the mint really rotated, else
        None.  A foreign id while the mint still serves the cached keyset
        is treated as transient and leaves the cache untouched.
        """
        ready = await self.current()
        ids = set(keyset_ids)
        if not ids or ids == {ready.keyset_id}:
            return None
        fetched = await self._mint.get_keys()
        if fetched.keyset_id == ready.keyset_id:
            log.debug(
                "keyset ids %s differ from active %s but mint keys are unchanged",
                sorted(ids), ready.keyset_id,
            )
            return None
        log.info(
            "mint %s rotated keys: %s -> %s",
            self._mint.url, ready.keyset_id, fetched.keyset_id,
        )
        self._install(fetched)
        return fetched
