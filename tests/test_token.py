"""Tests for the proof/token model and the token codec."""

import base64
import json

import pytest

from nutwallet.curve import G, Scalar
from nutwallet.errors import TokenDecodeError
from nutwallet.models import BlindedMessage, BlindedSignature, MeltResponse, Proof, Token, TokenEntry
from nutwallet.token import clean_token, decode_token, encode_token, find_encoded_token


def proof(amount: int, n: int = 1, keyset_id: str = "I2yN+iRYfkzT") -> Proof:
    return Proof(id=keyset_id, amount=amount, secret=f"secret-{n}", C=Scalar(n + 2) * G)


def sample_token() -> Token:
    return Token(
        token=[
            TokenEntry(mint="https://a.example", proofs=[proof(2, 1), proof(8, 2)]),
            TokenEntry(mint="https://b.example", proofs=[proof(1, 3)]),
        ],
        memo="thanks",
    )


class TestModel:

    def test_proof_amount_must_be_power_of_two(self):
        with pytest.raises(ValueError):
            proof(3)
        with pytest.raises(ValueError):
            proof(0)

    def test_proof_dict_round_trip(self):
        p = proof(4)
        data = p.to_dict()
        assert data["C"] == p.C.to_hex()
        assert Proof.from_dict(data) == p

    def test_proof_amount_must_be_int(self):
        data = proof(4).to_dict()
        data["amount"] = "4"
        with pytest.raises(ValueError):
            Proof.from_dict(data)
        data["amount"] = True
        with pytest.raises(ValueError):
            Proof.from_dict(data)

    def test_blank_message_allowed(self):
        assert BlindedMessage(amount=0, B_=G).to_dict() == {"amount": 0, "B_": G.to_hex()}
        with pytest.raises(ValueError):
            BlindedMessage(amount=6, B_=G)

    def test_signature_from_dict(self):
        sig = BlindedSignature.from_dict({"id": "abc", "amount": 2, "C_": G.to_hex()})
        assert sig == BlindedSignature(id="abc", amount=2, C_=G)

    def test_melt_response_without_change(self):
        resp = MeltResponse.from_dict({"paid": False, "preimage": None})
        assert resp.change == [] and not resp.paid
        with pytest.raises(ValueError):
            MeltResponse.from_dict({"paid": "yes", "preimage": None})

    def test_token_amount(self):
        assert sample_token().amount == 11
        assert len(sample_token().proofs) == 3


class TestCodec:

    def test_round_trip(self):
        token = sample_token()
        encoded = encode_token(token)
        assert encoded.startswith("cashuA")
        assert "=" not in encoded
        assert decode_token(encoded) == token

    def test_amounts_stay_integers(self):
        encoded = encode_token(sample_token())
        body = encoded[len("cashuA"):]
        data = json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))
        assert data["token"][0]["proofs"][1]["amount"] == 8

    @pytest.mark.parametrize("prefix", ["cashu:", "cashu://", "web+cashu://", "  "])
    def test_uri_prefixes(self, prefix):
        token = sample_token()
        assert decode_token(prefix + encode_token(token)) == token

    def test_standard_alphabet_with_padding(self):
        token = sample_token()
        raw = json.dumps(token.to_dict()).encode()
        encoded = "cashuA" + base64.b64encode(raw).decode()
        assert decode_token(encoded) == token

    def test_memo_optional(self):
        token = Token(token=[TokenEntry(mint="https://a.example", proofs=[proof(1)])])
        assert "memo" not in token.to_dict()
        assert decode_token(encode_token(token)).memo is None

    @pytest.mark.parametrize("text", [
        "", "cashuA", "cashuA!!!!", "cashuA" + base64.urlsafe_b64encode(b"[1,2]").decode(),
        "cashuA" + base64.urlsafe_b64encode(b'{"token": [{"mint": "x"}]}').decode(),
    ])
    def test_malformed(self, text):
        with pytest.raises(TokenDecodeError):
            decode_token(text)


class TestCleanToken:

    def test_merges_same_mint_and_drops_empty(self):
        token = Token(
            token=[
                TokenEntry(mint="https://a.example", proofs=[proof(1, 1)]),
                TokenEntry(mint="https://b.example", proofs=[]),
                TokenEntry(mint="https://a.example", proofs=[proof(2, 2)]),
                TokenEntry(mint="", proofs=[proof(4, 3)]),
            ],
            memo="m",
        )
        cleaned = clean_token(token)
        assert cleaned.memo == "m"
        assert [e.mint for e in cleaned.token] == ["https://a.example"]
        assert [p.amount for p in cleaned.token[0].proofs] == [1, 2]
        # the input is not modified
        assert len(token.token[0].proofs) == 1


def test_find_encoded_token():
    encoded = encode_token(sample_token())
    assert find_encoded_token(f"here you go:\n{encoded} enjoy") == encoded
    assert find_encoded_token(f"cashu:{encoded}") == f"cashu:{encoded}"
    assert find_encoded_token("nothing here") is None


def test_clean_token_ignores_trailing_slash():
    token = Token(token=[
        TokenEntry(mint="https://a.example", proofs=[proof(1, 1)]),
        TokenEntry(mint="https://a.example/", proofs=[proof(2, 2)]),
    ])
    cleaned = clean_token(token)
    assert len(cleaned.token) == 1
    assert cleaned.token[0].mint == "https://a.example"
    assert [p.amount for p in cleaned.token[0].proofs] == [1, 2]
