"""
nutwallet: client-side engine of a Chaumian ecash wallet.

Tokens are bearer proofs signed by a mint through a blind
Diffie-Hellman key exchange (BDHKE) on secp256k1.  The wallet can:

- **mint** proofs after paying a Lightning invoice,
- **send**: split proofs into exact change,
- **receive**: swap someone else's proofs for fresh ones,
- **melt**: pay a Lightning invoice with proofs, getting fee change back.

Quick start
-----------
::

    import asyncio
    from nutwallet import Wallet, HttpMint, encode_token, Token, TokenEntry

    async def main():
        async with HttpMint("https://mint.example.com") as mint:
            wallet = Wallet(mint)
            quote = await wallet.request_mint(64)
            # ... pay quote.pr ...
            minted = await wallet.request_tokens(64, quote.hash)
            sent = await wallet.send(10, minted.proofs)
            print(encode_token(Token([TokenEntry(mint.url, sent.send)])))

    asyncio.run(main())
"""

import logging

__version__ = "0.4.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import Scalar, Point, G, ORDER

# ── BDHKE ───────────────────────────────────────────────────────────────
from .hash import hash_to_curve, derive_keyset_id
from .dhke import (
    blind_message,
    unblind_signature,
    construct_proofs,
    BlindedOutput,
    BlindedTransaction,
)

# ── model ───────────────────────────────────────────────────────────────
from .models import (
    Proof,
    BlindedMessage,
    BlindedSignature,
    Token,
    TokenEntry,
    SplitPayload,
    MeltPayload,
    PaymentPayload,
    RequestMintResponse,
    MeltResponse,
    MintResult,
    SendResponse,
    ReceiveResponse,
    ReceiveTokenEntryResponse,
    PayLnInvoiceResponse,
)
from .keys import MintKeys, KeysetCache
from .split import (
    AmountPreference,
    split_amount,
    default_amount_preference,
    blank_output_count,
)
from .token import encode_token, decode_token, clean_token, find_encoded_token
from .proofs import sum_proofs, find_exact_match, find_min_excess

# ── mint & wallet ───────────────────────────────────────────────────────
from .mint import MintConnector, HttpMint
from .wallet import Wallet
from .config import WalletConfig, LogConfig, setup_logging

# ── errors ──────────────────────────────────────────────────────────────
from .errors import (
    NutWalletError,
    ValidationError,
    InsufficientFundsError,
    MissingKeyError,
    TokenDecodeError,
    MintProtocolError,
    BadResponseError,
    HashToCurveError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # version
    "__version__",
    # core
    "Scalar", "Point", "G", "ORDER",
    # bdhke
    "hash_to_curve", "derive_keyset_id",
    "blind_message", "unblind_signature", "construct_proofs",
    "BlindedOutput", "BlindedTransaction",
    # model
    "Proof", "BlindedMessage", "BlindedSignature", "Token", "TokenEntry",
    "SplitPayload", "MeltPayload", "PaymentPayload",
    "RequestMintResponse", "MeltResponse",
    "MintResult", "SendResponse", "ReceiveResponse",
    "ReceiveTokenEntryResponse", "PayLnInvoiceResponse",
    "MintKeys", "KeysetCache",
    # splitting
    "AmountPreference", "split_amount", "default_amount_preference",
    "blank_output_count",
    # tokens & proofs
    "encode_token", "decode_token", "clean_token", "find_encoded_token",
    "sum_proofs", "find_exact_match", "find_min_excess",
    # mint & wallet
    "MintConnector", "HttpMint", "Wallet",
    "WalletConfig", "LogConfig", "setup_logging",
    # errors
    "NutWalletError", "ValidationError", "InsufficientFundsError",
    "MissingKeyError", "TokenDecodeError", "MintProtocolError",
    "BadResponseError", "HashToCurveError",
]
