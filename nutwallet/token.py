"""
Token text encoding.

A V3 token is the string ``"cashuA"`` followed by the URL-safe base64
(no padding) of the token's JSON.  Tokens found in the wild are often
wrapped in a URI (``cashu:…``, ``web+cashu://…``) and padded or
unpadded, standard or URL-safe; ``decode_token`` accepts all of those.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Dict, Optional

from .errors import TokenDecodeError
from .models import Token, TokenEntry

TOKEN_PREFIX = "cashuA"
URI_PREFIXES = ("web+cashu://", "cashu://", "cashu:")


def encode_token(token: Token) -> str:
    raw = json.dumps(token.to_dict(), separators=(",", ":")).encode("utf-8")
    body = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    return TOKEN_PREFIX + body


def _strip_prefixes(text: str) -> str:
    text = text.strip()
    for prefix in URI_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    if text.startswith(TOKEN_PREFIX):
        text = text[len(TOKEN_PREFIX):]
    return text


def decode_token(text: str) -> Token:
    """Inverse of ``encode_token``; raises ``TokenDecodeError``."""
    body = _strip_prefixes(text)
    if not body:
        raise TokenDecodeError("empty token")
    # accept both alphabets, with or without padding
    body = body.replace("+", "-").replace("/", "_").rstrip("=")
    body += "=" * (-len(body) % 4)
    try:
        raw = base64.urlsafe_b64decode(body)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise TokenDecodeError(f"token is not base64 JSON: {exc}") from exc
    try:
        return Token.from_dict(data)
    except ValueError as exc:
        raise TokenDecodeError(f"malformed token: {exc}") from exc


def clean_token(token: Token) -> Token:
    """
    Merge entries of the same mint and drop entries without proofs.

    URLs that differ only by a trailing slash name the same mint.  Mint
    order follows first appearance; the memo is kept.
    """
    merged: Dict[str, TokenEntry] = {}
    for entry in token.token:
        if not entry.proofs or not entry.mint:
            continue
        key = entry.mint.rstrip("/")
        if key in merged:
            merged[key].proofs.extend(entry.proofs)
        else:
            merged[key] = TokenEntry(mint=entry.mint, proofs=list(entry.proofs))
    return Token(token=list(merged.values()), memo=token.memo)


_TOKEN_WORD = re.compile(r"\S*" + TOKEN_PREFIX + r"\S*")


def find_encoded_token(content: str) -> Optional[str]:
    """First whitespace-separated word in *content* that holds a token."""
    match = _TOKEN_WORD.search(content)
    return match.group(0) if match else None
