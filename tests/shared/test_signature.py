import base64
import hashlib
import hmac
import json

import pytest

from shared.signature import (
    InvalidSignatureError,
    MalformedBodyError,
    MissingCredentialsError,
    SignatureError,
    canonicalize,
    compute_signature,
    get_header,
    verify_signature,
)

SECRET = "chave-compartilhada"


def _sign(text: str, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode("utf-8"), text.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class TestCanonicalize:
    """Reserialização do corpo no formato compacto usado pela Yampi."""

    def test_removes_whitespace_and_keeps_key_order(self) -> None:
        raw = b'{ "zipcode" : "01310-100",\n  "amount": 10, "skus": [ ] }'
        assert canonicalize(raw) == '{"zipcode":"01310-100","amount":10,"skus":[]}'

    def test_keeps_non_ascii_unescaped(self) -> None:
        raw = '{"cidade": "São Paulo"}'.encode("utf-8")
        assert canonicalize(raw) == '{"cidade":"São Paulo"}'

    def test_integral_floats_render_as_integers(self) -> None:
        assert canonicalize(b'{"amount": 100.0, "weight": 1.5}') == '{"amount":100,"weight":1.5}'

    def test_invalid_json_raises_malformed(self) -> None:
        with pytest.raises(MalformedBodyError):
            canonicalize(b"{nao-e-json")

    def test_invalid_utf8_raises_malformed(self) -> None:
        with pytest.raises(MalformedBodyError):
            canonicalize(b"\xff\xfe")

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (b'{"weight":0.00005}', '{"weight":0.00005}'),
            (b'{"weight":0.000001}', '{"weight":0.000001}'),
            (b'{"weight":1e-7}', '{"weight":1e-7}'),
            (b'{"weight":1.5e-7}', '{"weight":1.5e-7}'),
            (b'{"amount":1e21}', '{"amount":1e+21}'),
            (b'{"amount":1e20}', '{"amount":100000000000000000000}'),
            (b'{"amount":-0.5}', '{"amount":-0.5}'),
            (b'{"amount":123.456}', '{"amount":123.456}'),
        ],
    )
    def test_numbers_follow_javascript_formatting(self, raw, expected) -> None:
        assert canonicalize(raw) == expected

    def test_overflowing_number_becomes_null(self) -> None:
        assert canonicalize(b'{"amount":1e400}') == '{"amount":null}'

    def test_lone_surrogate_is_escaped(self) -> None:
        raw = b'{"zipcode":"01310100","nome":"\\ud800"}'
        assert canonicalize(raw) == '{"zipcode":"01310100","nome":"\\ud800"}'

    def test_surrogate_pair_is_kept_as_character(self) -> None:
        assert canonicalize(b'{"nome":"\\ud83d\\ude00"}') == '{"nome":"\U0001F600"}'

    def test_nan_literal_is_malformed(self) -> None:
        with pytest.raises(MalformedBodyError):
            canonicalize(b'{"amount":NaN}')


class TestVerifySignature:
    """Validação HMAC-SHA256 base64 do webhook."""

    def test_accepts_signature_of_canonical_body(self) -> None:
        body = {"zipcode": "01310100", "amount": 150, "skus": [{"weight": 2, "quantity": 3}]}
        canonical = json.dumps(body, separators=(",", ":"))
        raw = json.dumps(body, indent=2).encode("utf-8")
        assert verify_signature(raw, _sign(canonical), SECRET) == _sign(canonical)

    def test_rejects_wrong_signature(self) -> None:
        raw = b'{"zipcode":"01310100"}'
        with pytest.raises(InvalidSignatureError) as exc_info:
            verify_signature(raw, _sign('{"zipcode":"99999999"}'), SECRET)
        assert exc_info.value.status_code == 401

    def test_rejects_signature_made_with_other_secret(self) -> None:
        raw = b'{"zipcode":"01310100"}'
        with pytest.raises(InvalidSignatureError):
            verify_signature(raw, _sign(raw.decode(), "outra-chave"), SECRET)

    @pytest.mark.parametrize("signature,secret", [(None, SECRET), ("", SECRET), ("abc", None), ("abc", "")])
    def test_missing_credentials_is_unauthorized(self, signature, secret) -> None:
        with pytest.raises(MissingCredentialsError) as exc_info:
            verify_signature(b"{nao-importa", signature, secret)
        assert exc_info.value.status_code == 401

    def test_malformed_body_is_internal_error(self) -> None:
        with pytest.raises(MalformedBodyError) as exc_info:
            verify_signature(b"{quebrado", "abc", SECRET)
        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value, SignatureError)

    def test_raw_mode_hashes_bytes_as_received(self) -> None:
        raw = b'{ "zipcode": "01310100" }'
        assert verify_signature(raw, _sign(raw.decode()), SECRET, mode="raw")
        with pytest.raises(InvalidSignatureError):
            verify_signature(raw, _sign('{"zipcode":"01310100"}'), SECRET, mode="raw")

    def test_accepts_body_with_lone_surrogate(self) -> None:
        raw = b'{"zipcode":"01310100","nome":"\\ud800"}'
        assert verify_signature(raw, _sign(raw.decode("ascii")), SECRET)

    def test_accepts_light_weight_signed_in_javascript_format(self) -> None:
        raw = b'{"skus":[{"weight":5e-05}]}'
        assert verify_signature(raw, _sign('{"skus":[{"weight":0.00005}]}'), SECRET)

    def test_compute_signature_matches_hmac_base64(self) -> None:
        assert compute_signature(b"abc", SECRET) == _sign("abc")


class TestGetHeader:
    def test_lookup_is_case_insensitive(self) -> None:
        headers = {"X-Yampi-Hmac-SHA256": "assinatura"}
        assert get_header(headers) == "assinatura"

    def test_missing_header_returns_none(self) -> None:
        assert get_header({"content-type": "application/json"}) is None
        assert get_header(None) is None
