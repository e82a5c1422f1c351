"""
The mint as seen by the wallet.

``MintConnector`` is the request/response contract the wallet relies
on.  Every method either returns a typed value or raises
``MintProtocolError``; untyped JSON never leaves this module.

``HttpMint`` implements the contract over HTTP with ``httpx``.  It is
deliberately thin: one request per call, no retries, no backoff.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from .errors import BadResponseError, MintProtocolError
from .keys import MintKeys
from .models import (
    BlindedMessage,
    BlindedSignature,
    MeltPayload,
    MeltResponse,
    RequestMintResponse,
    SplitPayload,
    parse_fee,
    parse_promises,
    parse_spendable,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 60.0


class MintConnector(abc.ABC):
    """Typed interface to one mint."""

    @property
    @abc.abstractmethod
    def url(self) -> str:
        ...

    @abc.abstractmethod
    async def get_keys(self, keyset_id: Optional[str] = None) -> MintKeys:
        """Active keyset, or the keyset named *keyset_id*."""

    async def get_keysets(self) -> List[str]:
        """
        Ids of all past and current keysets, unordered.

        Connectors without a listing endpoint report the active keyset only.
        """
        return [(await self.get_keys()).keyset_id]

    async def get_info(self) -> Dict[str, Any]:
        """Free-form mint description; empty unless the connector has one."""
        return {}

    @abc.abstractmethod
    async def request_mint(self, amount: int) -> RequestMintResponse:
        """Ask for an invoice that, once paid, allows minting *amount*."""

    @abc.abstractmethod
    async def mint(
        self,
        outputs: Sequence[BlindedMessage],
        hash: str,
    ) -> List[BlindedSignature]:
        """Sign *outputs* against the paid invoice tracked by *hash*."""

    @abc.abstractmethod
    async def split(self, payload: SplitPayload) -> List[BlindedSignature]:
        ...

    @abc.abstractmethod
    async def melt(self, payload: MeltPayload) -> MeltResponse:
        ...

    @abc.abstractmethod
    async def check_fees(self, pr: str) -> int:
        """Fee reserve the mint wants for paying invoice *pr*."""

    @abc.abstractmethod
    async def check(self, secrets: Sequence[str]) -> List[bool]:
        """Spendability of each secret, in order."""


def check_response(data: Any) -> None:
    """Raise ``MintProtocolError`` for an ``{error|detail, code}`` body."""
    if not isinstance(data, dict):
        return
    message = data.get("error") or data.get("detail")
    if message:
        code = data.get("code")
        raise MintProtocolError(
            str(message),
            code=code if isinstance(code, int) else None,
            detail=data.get("detail"),
        )


def parse_response(data: Any, parser: Callable[[Any], T]) -> T:
    """Resolve a body into its success shape, or raise."""
    check_response(data)
    try:
        return parser(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise BadResponseError(f"bad response: {exc}") from exc


def join_url(base: str, *parts: str) -> str:
    return "/".join([base.rstrip("/")] + [p.strip("/") for p in parts])


class HttpMint(MintConnector):
    """
    ``MintConnector`` over the mint's JSON HTTP API.

    Parameters
    ----------
    url : str
        Base URL of the mint.
    client : httpx.AsyncClient or None
        Shared client; one is created (and owned) when omitted.
    timeout : float
        Per-request timeout for an owned client, in seconds.
    """

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
    ) -> None:
        self._url = url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, verify=verify)

    @property
    def url(self) -> str:
        return self._url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpMint:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        endpoint = join_url(self._url, path)
        log.debug("%s %s", method, endpoint)
        response = await self._client.request(
            method,
            endpoint,
            params=params,
            json=body,
            headers={"Accept": "application/json, text/plain, */*"},
        )
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.is_error:
            check_response(data)
            raise MintProtocolError(
                f"mint returned HTTP {response.status_code}",
                code=response.status_code,
            )
        if data is None:
            raise BadResponseError("mint response is not JSON")
        return data

    # ── keys ───────────────────────────────────────────────────────────

    async def get_keys(self, keyset_id: Optional[str] = None) -> MintKeys:
        if keyset_id:
            # keyset ids are standard base64; make them path safe
            safe_id = keyset_id.replace("/", "_").replace("+", "-")
            data = await self._request("GET", f"keys/{safe_id}")
        else:
            data = await self._request("GET", "keys")
        return parse_response(data, MintKeys.from_dict)

    async def get_keysets(self) -> List[str]:
        def parse(data: Any) -> List[str]:
            keysets = data["keysets"]
            if not isinstance(keysets, list):
                raise ValueError("field 'keysets' must be a list")
            return [str(k) for k in keysets]

        return parse_response(await self._request("GET", "keysets"), parse)

    async def get_info(self) -> Dict[str, Any]:
        def parse(data: Any) -> Dict[str, Any]:
            if not isinstance(data, dict):
                raise ValueError("info must be an object")
            return data

        return parse_response(await self._request("GET", "info"), parse)

    # ── minting ────────────────────────────────────────────────────────

    async def request_mint(self, amount: int) -> RequestMintResponse:
        data = await self._request("GET", "mint", params={"amount": amount})
        return parse_response(data, RequestMintResponse.from_dict)

    async def mint(
        self,
        outputs: Sequence[BlindedMessage],
        hash: str,
    ) -> List[BlindedSignature]:
        data = await self._request(
            "POST", "mint",
            params={"hash": hash},
            body={"outputs": [o.to_dict() for o in outputs]},
        )
        return parse_response(data, parse_promises)

    async def split(self, payload: SplitPayload) -> List[BlindedSignature]:
        data = await self._request("POST", "split", body=payload.to_dict())
        return parse_response(data, parse_promises)

    # ── melting ────────────────────────────────────────────────────────

    async def melt(self, payload: MeltPayload) -> MeltResponse:
        data = await self._request("POST", "melt", body=payload.to_dict())
        return parse_response(data, MeltResponse.from_dict)

    async def check_fees(self, pr: str) -> int:
        data = await self._request("POST", "checkfees", body={"pr": pr})
        return parse_response(data, parse_fee)

    async def check(self, secrets: Sequence[str]) -> List[bool]:
        data = await self._request(
            "POST", "check",
            body={"proofs": [{"secret": s} for s in secrets]},
        )
        return parse_response(data, parse_spendable)

    def __repr__(self) -> str:
        return f"HttpMint({self._url!r})"
