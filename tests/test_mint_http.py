"""Tests for the HTTP mint adapter, against ``httpx.MockTransport``."""

import json

import httpx
import pytest

from conftest import run
from nutwallet.curve import G, Scalar
from nutwallet.errors import BadResponseError, MintProtocolError
from nutwallet.keys import MintKeys
from nutwallet.mint import HttpMint, check_response, join_url
from nutwallet.models import BlindedMessage, MeltPayload, Proof, SplitPayload

KEYS = MintKeys({1: Scalar(3) * G, 2: Scalar(5) * G})


def make_mint(handler) -> HttpMint:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpMint("https://mint.test/", client=client)


def sig(amount: int) -> dict:
    return {"id": KEYS.keyset_id, "amount": amount, "C_": (Scalar(amount) * G).to_hex()}


class TestHttpMint:

    def test_get_keys(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json=KEYS.to_dict())

        mint = make_mint(handler)
        assert run(mint.get_keys()) == KEYS
        assert run(mint.get_keys("ab/c+d")) == KEYS
        assert seen == ["/keys", "/keys/ab_c-d"]

    def test_mint_sends_outputs_and_hash(self):
        captured = {}

        def handler(request):
            captured["hash"] = request.url.params["hash"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"promises": [sig(1), sig(2)]})

        outputs = [BlindedMessage(amount=1, B_=G), BlindedMessage(amount=2, B_=G)]
        promises = run(make_mint(handler).mint(outputs, "h4sh"))
        assert captured["hash"] == "h4sh"
        assert captured["body"] == {"outputs": [o.to_dict() for o in outputs]}
        assert [p.amount for p in promises] == [1, 2]

    def test_split_and_melt(self):
        proof = Proof(id=KEYS.keyset_id, amount=2, secret="s", C=G)

        def handler(request):
            if request.url.path == "/split":
                return httpx.Response(200, json={"promises": [sig(2)]})
            return httpx.Response(200, json={"paid": True, "preimage": "ab", "change": [sig(1)]})

        mint = make_mint(handler)
        promises = run(mint.split(SplitPayload(proofs=[proof], outputs=[BlindedMessage(2, G)])))
        assert promises[0].C_ == Scalar(2) * G
        melt = run(mint.melt(MeltPayload(pr="lnbc1", proofs=[proof])))
        assert melt.paid and melt.preimage == "ab" and melt.change[0].amount == 1

    def test_fees_check_and_request_mint(self):
        def handler(request):
            path = request.url.path
            if path == "/checkfees":
                return httpx.Response(200, json={"fee": 3})
            if path == "/check":
                body = json.loads(request.content)
                return httpx.Response(200, json={"spendable": [True] * len(body["proofs"])})
            assert request.url.params["amount"] == "21"
            return httpx.Response(200, json={"pr": "lnbc21", "hash": "h"})

        mint = make_mint(handler)
        assert run(mint.check_fees("lnbc")) == 3
        assert run(mint.check(["a", "b"])) == [True, True]
        quote = run(mint.request_mint(21))
        assert (quote.pr, quote.hash) == ("lnbc21", "h")

    def test_error_body_becomes_protocol_error(self):
        def handler(request):
            return httpx.Response(200, json={"error": "Lightning invoice not paid yet.", "code": 0})

        with pytest.raises(MintProtocolError) as info:
            run(make_mint(handler).mint([], "h"))
        assert info.value.message == "Lightning invoice not paid yet."
        assert info.value.code == 0

    def test_http_error_with_detail(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "Token already spent.", "code": 11001})

        with pytest.raises(MintProtocolError) as info:
            run(make_mint(handler).split(SplitPayload(proofs=[], outputs=[])))
        assert info.value.message == "Token already spent."
        assert info.value.detail == "Token already spent."
        assert info.value.code == 11001

    def test_http_error_without_body(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(MintProtocolError) as info:
            run(make_mint(handler).get_keys())
        assert info.value.code == 502

    def test_wrong_shape_is_bad_response(self):
        def handler(request):
            return httpx.Response(200, json={"promises": "nope"})

        with pytest.raises(BadResponseError):
            run(make_mint(handler).split(SplitPayload(proofs=[], outputs=[])))

    def test_non_json_is_bad_response(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(BadResponseError):
            run(make_mint(handler).check_fees("x"))

    def test_url_is_normalised(self):
        assert make_mint(lambda r: httpx.Response(200)).url == "https://mint.test"


def test_check_response_ignores_success():
    check_response({"fee": 1})
    check_response([1, 2])
    with pytest.raises(MintProtocolError):
        check_response({"detail": "nope"})


def test_join_url():
    assert join_url("https://m.test/", "keys", "abc") == "https://m.test/keys/abc"
