"""
Wallet orchestration on top of the BDHKE primitives.

Usage
-----
::

    from nutwallet import Wallet, HttpMint

    wallet = Wallet(HttpMint("https://mint.example.com"))

    quote = await wallet.request_mint(100)
    # ... pay quote.pr ...
    minted = await wallet.request_tokens(100, quote.hash)

    sent = await wallet.send(21, minted.proofs)
    token = encode_token(Token([TokenEntry(wallet.mint.url, sent.send)]))

Every flow that receives signatures finishes with a key-rotation check;
when the mint has switched keysets the new keys are returned as
``new_keys`` so the caller can persist them.

A wallet runs one flow at a time per proof set.  It does not reserve
proofs: concurrent flows over overlapping proofs must be serialised by
the caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .config import WalletConfig
from .dhke import BlindedTransaction, construct_proofs
from .errors import BadResponseError, InsufficientFundsError, ValidationError
from .keys import KeysetCache, MintKeys
from .mint import HttpMint, MintConnector
from .models import (
    BlindedSignature,
    MeltPayload,
    MintResult,
    PayLnInvoiceResponse,
    PaymentPayload,
    Proof,
    ReceiveResponse,
    ReceiveTokenEntryResponse,
    RequestMintResponse,
    SendResponse,
    SplitPayload,
    Token,
    TokenEntry,
)
from .proofs import sum_proofs
from .split import (
    AmountPreference,
    blank_output_count,
    default_amount_preference,
    split_amount,
)
from .token import clean_token, decode_token

log = logging.getLogger(__name__)

ConnectorFactory = Callable[[str], MintConnector]


def _normalise_url(url: str) -> str:
    return url.rstrip("/")


class Wallet:
    """
    Wallet bound to one mint.

    Parameters
    ----------
    mint : MintConnector
        The wallet's own mint.
    keys : MintKeys or None
        Persisted keys of the mint's active keyset, if any.
    connector_factory : callable or None
        Builds connectors for other mints met while receiving tokens.
        Defaults to ``HttpMint``.
    """

    def __init__(
        self,
        mint: MintConnector,
        keys: Optional[MintKeys] = None,
        connector_factory: Optional[ConnectorFactory] = None,
    ) -> None:
        self.mint = mint
        self._keysets = KeysetCache(mint, keys)
        self._connector_factory: ConnectorFactory = connector_factory or HttpMint
        self._foreign: Dict[str, KeysetCache] = {}
        self._foreign_mints: Dict[str, MintConnector] = {}

    @classmethod
    def from_config(
        cls,
        config: WalletConfig,
        keys: Optional[MintKeys] = None,
    ) -> Wallet:
        if not config.mint_url:
            raise ValidationError("mint_url is not configured")

        def factory(url: str) -> MintConnector:
            return HttpMint(url, timeout=config.request_timeout, verify=config.verify_tls)

        return cls(factory(config.mint_url), keys=keys, connector_factory=factory)

    # ── accessors ──────────────────────────────────────────────────────

    @property
    def keyset_cache(self) -> KeysetCache:
        return self._keysets

    @property
    def keyset_id(self) -> Optional[str]:
        return self._keysets.keyset_id

    async def get_keys(self) -> MintKeys:
        """Active keys of this wallet's mint."""
        return (await self._keysets.current()).keys

    def _is_own_mint(self, url: str) -> bool:
        return _normalise_url(url) == _normalise_url(self.mint.url)

    def _connector_for(self, url: str) -> Tuple[MintConnector, KeysetCache]:
        if self._is_own_mint(url):
            return self.mint, self._keysets
        key = _normalise_url(url)
        if key not in self._foreign:
            connector = self._connector_factory(url)
            self._foreign_mints[key] = connector
            self._foreign[key] = KeysetCache(connector)
        return self._foreign_mints[key], self._foreign[key]

    # ── simple mint queries ────────────────────────────────────────────

    async def check_proofs_spent(self, proofs: Sequence[Proof]) -> List[Proof]:
        """Proofs the mint reports as already spent."""
        if not proofs:
            return []
        spendable = await self.mint.check([p.secret for p in proofs])
        if len(spendable) != len(proofs):
            raise BadResponseError(
                f"check returned {len(spendable)} states for {len(proofs)} proofs"
            )
        return [p for p, ok in zip(proofs, spendable) if not ok]

    async def request_mint(self, amount: int) -> RequestMintResponse:
        """Invoice to pay before ``request_tokens`` can succeed."""
        if amount <= 0:
            raise ValidationError(f"mint amount must be positive, got {amount}")
        return await self.mint.request_mint(amount)

    async def get_fee(self, invoice: str) -> int:
        return await self.mint.check_fees(invoice)

    # ── unblinding ─────────────────────────────────────────────────────

    async def _construct(
        self,
        promises: Sequence[BlindedSignature],
        transaction: BlindedTransaction,
        cache: KeysetCache,
        exact: bool = True,
    ) -> List[Proof]:
        too_many = len(promises) > len(transaction)
        if too_many or (exact and len(promises) != len(transaction)):
            raise BadResponseError(
                f"mint returned {len(promises)} signatures "
                f"for {len(transaction)} outputs"
            )
        if not promises:
            return []
        ids = {p.id for p in promises}
        if len(ids) > 1:
            raise BadResponseError(f"signatures from several keysets: {sorted(ids)}")
        keys = await cache.keys_for(promises[0].id)
        return construct_proofs(promises, transaction.rs, transaction.secrets, keys)

    async def _check_denominations(
        self,
        transaction: BlindedTransaction,
        cache: KeysetCache,
    ) -> None:
        """Raise ``MissingKeyError`` before any output reaches the mint."""
        keys = (await cache.current()).keys
        for amount in transaction.amounts:
            keys.public_key(amount)

    def create_split_payload(
        self,
        amount: int,
        proofs: Sequence[Proof],
        preference: Optional[Sequence[AmountPreference]] = None,
    ) -> Tuple[SplitPayload, BlindedTransaction]:
        """
        Outputs for exchanging *proofs*: first the amount to keep
        (total − *amount*, default split), then *amount* to send
        (split by *preference*).
        """
        total = sum_proofs(proofs)
        keep = BlindedTransaction.for_amounts(split_amount(total - amount))
        send = BlindedTransaction.for_amounts(split_amount(amount, preference))
        transaction = keep + send
        payload = SplitPayload(
            proofs=list(proofs),
            outputs=transaction.blinded_messages,
        )
        return payload, transaction

    # ── minting ────────────────────────────────────────────────────────

    async def request_tokens(
        self,
        amount: int,
        hash: str,
        preference: Optional[Sequence[AmountPreference]] = None,
    ) -> MintResult:
        """
        Mint *amount* against the invoice tracked by *hash*.

        Raises ``MintProtocolError`` while the invoice is unpaid; the
        caller decides when to try again.
        """
        if amount <= 0:
            raise ValidationError(f"mint amount must be positive, got {amount}")
        transaction = BlindedTransaction.for_amounts(split_amount(amount, preference))
        await self._check_denominations(transaction, self._keysets)
        promises = await self.mint.mint(transaction.blinded_messages, hash)
        proofs = await self._construct(promises, transaction, self._keysets)
        log.info("minted %d in %d proofs", amount, len(proofs))
        return MintResult(
            proofs=proofs,
            new_keys=await self._keysets.check_rotation(p.id for p in promises),
        )

    # ── sending ────────────────────────────────────────────────────────

    async def send(
        self,
        amount: int,
        proofs: Sequence[Proof],
        preference: Optional[Sequence[AmountPreference]] = None,
    ) -> SendResponse:
        """
        Split off *amount* from *proofs*.

        The shortest prefix of *proofs* covering *amount* is spent; the
        rest is returned untouched in ``return_change``.  When that
        prefix already matches *amount* exactly and no *preference* is
        given, nothing is sent to the mint.

        Raises ``InsufficientFundsError`` before contacting the mint if
        all *proofs* together fall short of *amount*.  ``MissingKeyError`` is
        likewise raised early when an output denomination has no key.
        """
        if amount <= 0:
            raise ValidationError(f"send amount must be positive, got {amount}")

        available = 0
        selected: List[Proof] = []
        untouched: List[Proof] = []
        for proof in proofs:
            if available >= amount:
                untouched.append(proof)
                continue
            available += proof.amount
            selected.append(proof)

        if amount > available:
            raise InsufficientFundsError(amount, available)
        if amount == available and not preference:
            return SendResponse(return_change=untouched, send=selected)

        amount_keep = available - amount
        payload, transaction = self.create_split_payload(amount, selected, preference)
        await self._check_denominations(transaction, self._keysets)
        promises = await self.mint.split(payload)
        new_proofs = await self._construct(promises, transaction, self._keysets)

        keep: List[Proof] = []
        send: List[Proof] = []
        kept = 0
        for proof in new_proofs:
            if kept < amount_keep:
                kept += proof.amount
                keep.append(proof)
            else:
                send.append(proof)
        log.info(
            "split %d into %d to send and %d to keep", available, amount, amount_keep,
        )
        return SendResponse(
            return_change=keep + untouched,
            send=send,
            new_keys=await self._keysets.check_rotation(p.id for p in promises),
        )

    # ── receiving ──────────────────────────────────────────────────────

    async def receive_token_entry(
        self,
        entry: TokenEntry,
        preference: Optional[Sequence[AmountPreference]] = None,
    ) -> ReceiveTokenEntryResponse:
        """
        Swap the proofs of one entry for fresh proofs from its mint.

        Failures of any kind (mint rejection, network, malformed answer)
        are not raised: the entry's proofs come back in
        ``proofs_with_error`` instead.
        """
        try:
            connector, cache = self._connector_for(entry.mint)
            amount = entry.amount
            if not preference:
                preference = default_amount_preference(amount)
            payload, transaction = self.create_split_payload(
                amount, entry.proofs, preference,
            )
            await self._check_denominations(transaction, cache)
            promises = await connector.split(payload)
            proofs = await self._construct(promises, transaction, cache)
            new_keys = None
            if self._is_own_mint(entry.mint):
                new_keys = await cache.check_rotation(p.id for p in promises)
        except Exception:
            log.warning("could not receive %d from %s", entry.amount, entry.mint, exc_info=True)
            return ReceiveTokenEntryResponse(proofs=[], proofs_with_error=list(entry.proofs))
        return ReceiveTokenEntryResponse(proofs=proofs, new_keys=new_keys)

    async def receive(
        self,
        token: Union[str, Token],
        preference: Optional[Sequence[AmountPreference]] = None,
    ) -> ReceiveResponse:
        """
        Receive every entry of *token*, one mint at a time.

        Entries that fail are collected in ``tokens_with_errors``; the
        call only raises if *token* itself cannot be decoded.
        """
        if isinstance(token, str):
            token = decode_token(token)
        cleaned = clean_token(token)

        received: List[TokenEntry] = []
        failed: List[TokenEntry] = []
        new_keys: Optional[MintKeys] = None
        for entry in cleaned.token:
            result = await self.receive_token_entry(entry, preference)
            if result.proofs_with_error:
                failed.append(entry)
                continue
            received.append(TokenEntry(mint=entry.mint, proofs=list(result.proofs)))
            if new_keys is None:
                new_keys = result.new_keys

        if failed:
            log.warning("%d of %d token entries failed", len(failed), len(cleaned.token))
        return ReceiveResponse(
            token=Token(token=received),
            tokens_with_errors=Token(token=failed) if failed else None,
            new_keys=new_keys,
        )

    # ── melting ────────────────────────────────────────────────────────

    def create_payment_payload(self, invoice: str, proofs: Sequence[Proof]) -> PaymentPayload:
        return PaymentPayload(pr=invoice, proofs=list(proofs))

    async def pay_ln_invoice(
        self,
        invoice: str,
        proofs: Sequence[Proof],
        fee_reserve: Optional[int] = None,
    ) -> PayLnInvoiceResponse:
        """
        Pay a Lightning invoice with *proofs* (amount plus fee reserve).

        Blank outputs are attached so the mint can return overpaid fees
        as change.  When *fee_reserve* is None the mint is asked for it.
        """
        if not proofs:
            raise ValidationError("no proofs to pay with")
        payment = self.create_payment_payload(invoice, proofs)
        if fee_reserve is None:
            fee_reserve = await self.get_fee(invoice)
        transaction = BlindedTransaction.blank(blank_output_count(fee_reserve))
        response = await self.mint.melt(MeltPayload(
            pr=payment.pr,
            proofs=payment.proofs,
            outputs=transaction.blinded_messages,
        ))
        change = await self._construct(
            response.change, transaction, self._keysets, exact=False,
        )
        log.info(
            "melt of %d %s, %d change proofs",
            sum_proofs(proofs), "paid" if response.paid else "not paid", len(change),
        )
        return PayLnInvoiceResponse(
            is_paid=response.paid,
            preimage=response.preimage,
            change=change,
            new_keys=await self._keysets.check_rotation(c.id for c in response.change),
        )

    async def pay_ln_invoice_with_token(
        self,
        invoice: str,
        token: Union[str, Token],
    ) -> PayLnInvoiceResponse:
        """Pay *invoice* with the proofs of *token* issued by this mint."""
        if isinstance(token, str):
            token = decode_token(token)
        proofs = [
            p for entry in token.token if self._is_own_mint(entry.mint)
            for p in entry.proofs
        ]
        return await self.pay_ln_invoice(invoice, proofs)

    def __repr__(self) -> str:
        return f"Wallet({self.mint.url!r}, keyset={self.keyset_id})"
