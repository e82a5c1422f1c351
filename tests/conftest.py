"""
Test fixtures: an in-memory mint that really signs.

``FakeMint`` holds one private scalar per denomination, signs blinded
messages as  C_ = k·B_,  verifies presented proofs as  C == k·Y  and
tracks spent secrets, so wallet flows can be checked end to end.
"""

import asyncio
import hashlib
from typing import Any, Dict, List, Optional, Sequence

import pytest

from nutwallet.curve import Scalar, Point
from nutwallet.errors import MintProtocolError
from nutwallet.hash import hash_to_curve
from nutwallet.keys import MintKeys
from nutwallet.mint import MintConnector
from nutwallet.models import (
    BlindedMessage,
    BlindedSignature,
    MeltPayload,
    MeltResponse,
    Proof,
    RequestMintResponse,
    SplitPayload,
)
from nutwallet.split import split_amount
from nutwallet.wallet import Wallet

MINT_URL = "https://mint.test"
MAX_ORDER = 16


def run(coro):
    return asyncio.run(coro)


def make_private_keys(seed: bytes) -> Dict[int, Scalar]:
    return {
        1 << i: Scalar(int.from_bytes(
            hashlib.sha256(seed + i.to_bytes(1, "big")).digest(), "big"))
        for i in range(MAX_ORDER + 1)
    }


def public_keys(private: Dict[int, Scalar]) -> MintKeys:
    return MintKeys({a: Point.from_scalar(k) for a, k in private.items()})


class FakeMint(MintConnector):

    def __init__(self, url: str = MINT_URL, seed: bytes = b"keyset-0") -> None:
        self._url = url
        self.calls: List[str] = []
        self.fail_with: Dict[str, Exception] = {}
        self.fee_reserve = 4
        self.promise_id: Optional[str] = None
        self.spent: set = set()
        self._private: Dict[str, Dict[int, Scalar]] = {}
        self._invoices: Dict[str, Dict[str, Any]] = {}
        self._install(make_private_keys(seed))

    # ── test controls ──────────────────────────────────────────────────

    def _install(self, private: Dict[int, Scalar]) -> None:
        self.active_private = private
        self.active_keys = public_keys(private)
        self._private[self.active_keys.keyset_id] = private

    def rotate(self, seed: bytes = b"keyset-1") -> MintKeys:
        self._install(make_private_keys(seed))
        return self.active_keys

    def alias_keyset(self, alias: str) -> None:
        """Serve the active keyset under another id as well."""
        self._private[alias] = self.active_private

    def pay(self, hash: str) -> None:
        self._invoices[hash]["paid"] = True

    def add_invoice(self, pr: str, amount: int, actual_fee: int = 0) -> None:
        self._invoices[pr] = {"amount": amount, "fee": actual_fee, "paid": False}

    def verify(self, proof: Proof) -> bool:
        private = self._private.get(proof.id)
        if private is None or proof.amount not in private:
            return False
        Y = hash_to_curve(proof.secret.encode("utf-8"))
        return proof.C == private[proof.amount] * Y

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_with:
            raise self.fail_with.pop(name)

    def _sign(self, outputs: Sequence[BlindedMessage]) -> List[BlindedSignature]:
        keyset_id = self.promise_id or self.active_keys.keyset_id
        return [
            BlindedSignature(
                id=keyset_id,
                amount=o.amount,
                C_=self.active_private[o.amount] * o.B_,
            )
            for o in outputs
        ]

    def _spend(self, proofs: Sequence[Proof]) -> int:
        for proof in proofs:
            if proof.secret in self.spent:
                raise MintProtocolError("Token already spent.", code=11001)
            if not self.verify(proof):
                raise MintProtocolError("could not verify proofs.", code=10003)
        if len({p.secret for p in proofs}) != len(proofs):
            raise MintProtocolError("duplicate proofs.", code=10002)
        self.spent.update(p.secret for p in proofs)
        return sum(p.amount for p in proofs)

    # ── MintConnector ──────────────────────────────────────────────────

    @property
    def url(self) -> str:
        return self._url

    async def get_keys(self, keyset_id: Optional[str] = None) -> MintKeys:
        self._enter("get_keys")
        if keyset_id is None:
            return self.active_keys
        if keyset_id not in self._private:
            raise MintProtocolError("keyset does not exist", code=12001)
        return public_keys(self._private[keyset_id])

    async def request_mint(self, amount: int) -> RequestMintResponse:
        self._enter("request_mint")
        hash = hashlib.sha256(f"{amount}-{len(self._invoices)}".encode()).hexdigest()
        self._invoices[hash] = {"amount": amount, "paid": False, "issued": False}
        return RequestMintResponse(pr=f"lnbc{amount}n1fake{hash[:8]}", hash=hash)

    async def mint(self, outputs: Sequence[BlindedMessage], hash: str) -> List[BlindedSignature]:
        self._enter("mint")
        invoice = self._invoices.get(hash)
        if invoice is None:
            raise MintProtocolError("invoice not found.", code=20000)
        if not invoice["paid"]:
            raise MintProtocolError("Lightning invoice not paid yet.", code=20001)
        if invoice["issued"]:
            raise MintProtocolError("tokens already issued for this invoice.", code=20002)
        if sum(o.amount for o in outputs) != invoice["amount"]:
            raise MintProtocolError("amount mismatch.", code=20003)
        invoice["issued"] = True
        return self._sign(outputs)

    async def split(self, payload: SplitPayload) -> List[BlindedSignature]:
        self._enter("split")
        total_out = sum(o.amount for o in payload.outputs)
        total_in = sum(p.amount for p in payload.proofs)
        if total_in != total_out:
            raise MintProtocolError("split amount mismatch.", code=11000)
        self._spend(payload.proofs)
        return self._sign(payload.outputs)

    async def melt(self, payload: MeltPayload) -> MeltResponse:
        self._enter("melt")
        invoice = self._invoices.get(payload.pr)
        if invoice is None:
            raise MintProtocolError("invoice not found.", code=20000)
        total = sum(p.amount for p in payload.proofs)
        if total < invoice["amount"] + invoice["fee"]:
            raise MintProtocolError("proofs do not cover invoice and fee.", code=11000)
        self._spend(payload.proofs)
        invoice["paid"] = True
        overpaid = total - invoice["amount"] - invoice["fee"]
        change_amounts = split_amount(overpaid)[: len(payload.outputs)]
        blanks = [
            BlindedMessage(amount=a, B_=o.B_)
            for a, o in zip(change_amounts, payload.outputs)
        ]
        return MeltResponse(paid=True, preimage="00" * 32, change=self._sign(blanks))

    async def check_fees(self, pr: str) -> int:
        self._enter("check_fees")
        return self.fee_reserve

    async def check(self, secrets: Sequence[str]) -> List[bool]:
        self._enter("check")
        return [s not in self.spent for s in secrets]


@pytest.fixture
def mint() -> FakeMint:
    return FakeMint()


@pytest.fixture
def wallet(mint) -> Wallet:
    return Wallet(mint)


async def mint_proofs(wallet, mint: FakeMint, amount: int, preference=None) -> List[Proof]:
    quote = await wallet.request_mint(amount)
    mint.pay(quote.hash)
    result = await wallet.request_tokens(amount, quote.hash, preference)
    return result.proofs
