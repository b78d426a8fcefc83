import gzip
import json

import pytest

pytestmark = pytest.mark.unit

from oauthbridge.core.auth.errors import CorruptPayload
from oauthbridge.core.session.codec import decode, encode


@pytest.mark.parametrize(
    "value",
    [
        "",
        "plain ascii",
        "ünïcødé ✓ 漢字",
        json.dumps({"auth_url": "https://github.com/login/oauth/authorize?state=abc", "access_token": ""}),
        "x" * 50_000,
    ],
)
def test_decode_reverses_encode(value):
    assert decode(encode(value)) == value


def test_encode_emits_gzip_stream():
    data = encode("hello")
    assert data[:2] == b"\x1f\x8b"
    assert gzip.decompress(data) == b"hello"


def test_encode_shrinks_repetitive_payloads():
    value = json.dumps({"auth_url": "https://example.com/authorize?" + "scope=read&" * 200})
    assert len(encode(value)) < len(value)


def test_encode_rejects_non_string():
    with pytest.raises(TypeError):
        encode(b"bytes are not accepted")


def test_decode_rejects_non_gzip_bytes():
    with pytest.raises(CorruptPayload) as exc:
        decode(b"definitely not gzip")
    assert exc.value.code == "corrupt_payload"


@pytest.mark.parametrize("data", [b"", bytearray(), b"\x1f\x8b"])
def test_decode_rejects_empty_or_headerless_value(data):
    with pytest.raises(CorruptPayload, match="failed to create gzip reader"):
        decode(data)


def test_decode_rejects_truncated_stream():
    data = encode("a provider session that gets cut short")
    with pytest.raises(CorruptPayload):
        decode(data[: len(data) // 2])


def test_decode_rejects_non_bytes_value():
    with pytest.raises(CorruptPayload):
        decode("H4sIAAAAAAAA")


def test_decode_rejects_invalid_utf8():
    with pytest.raises(CorruptPayload):
        decode(gzip.compress(b"\xff\xfe\xfd"))
