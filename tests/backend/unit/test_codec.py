import base64
import json
import os
import struct
import zlib

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from fogserver.backend.codec import INNER_MARKER, WIRE_MARKER, MalformedSaveError, SaveCodec, strip_padding, zero_pad

KEY = b"0123456789abcdef0123456789abcdef"


def _raw_decrypt(wire: str) -> bytes:
    ciphertext = base64.b64decode(wire[len(WIRE_MARKER):])
    decryptor = Cipher(algorithms.AES(KEY), modes.ECB()).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


@pytest.mark.parametrize(
    "plain",
    [
        b"",
        b"x",
        '{"characterData":[]}'.encode("utf-16-le"),
        bytes(range(256)) * 64,
    ],
)
def test_decode_reverses_encode(plain: bytes) -> None:
    codec = SaveCodec(key=KEY)

    assert codec.decode(codec.encode(plain)) == plain


def test_round_trip_handles_multi_megabyte_buffers() -> None:
    codec = SaveCodec(key=KEY)
    plain = os.urandom(1024 * 1024) + b"\x00" * (2 * 1024 * 1024)

    assert codec.decode(codec.encode(plain)) == plain


def test_encoded_output_starts_with_wire_marker() -> None:
    codec = SaveCodec(key=KEY)

    wire = codec.encode(b"hello")

    assert wire.startswith("DbdDAgAC")


def test_encoded_layout_matches_client_format() -> None:
    codec = SaveCodec(key=KEY)
    plain = "save".encode("utf-16-le")

    decrypted = _raw_decrypt(codec.encode(plain))

    assert len(decrypted) % 32 == 0
    assert decrypted.endswith(b"\x00")
    inner = bytes((value + 1) % 256 for value in decrypted.rstrip(b"\x00"))
    assert inner[:8] == b"DbdDAQEB"
    framed = base64.b64decode(inner[8:])
    assert struct.unpack("<i", framed[:4])[0] == len(plain)


def test_zero_pad_always_adds_at_least_one_block_remainder() -> None:
    assert len(zero_pad(b"a" * 31)) == 32
    assert len(zero_pad(b"a" * 32)) == 64
    assert zero_pad(b"a" * 32)[32:] == bytes(32)


def test_strip_padding_supports_zero_and_count_byte_schemes() -> None:
    assert strip_padding(b"abc\x00\x00\x00") == b"abc"
    assert strip_padding(b"abc\x03\x03\x03") == b"abc"


def test_decode_accepts_count_byte_padding() -> None:
    codec = SaveCodec(key=KEY)
    plain = b"legacy save"
    framed = struct.pack("<i", len(plain)) + zlib.compress(plain)
    inner = INNER_MARKER + base64.b64encode(framed)
    shifted = bytes((value - 1) % 256 for value in inner)
    pad_length = 32 - (len(shifted) % 32)
    padded = shifted + bytes([pad_length]) * pad_length
    encryptor = Cipher(algorithms.AES(KEY), modes.ECB()).encryptor()
    wire = WIRE_MARKER + base64.b64encode(encryptor.update(padded) + encryptor.finalize()).decode("ascii")

    assert codec.decode(wire) == plain


def test_decode_rejects_tampered_marker() -> None:
    codec = SaveCodec(key=KEY)
    wire = codec.encode(b"payload")

    with pytest.raises(MalformedSaveError):
        codec.decode("XbdDAgAC" + wire[8:])


def test_decode_rejects_corrupt_base64() -> None:
    codec = SaveCodec(key=KEY)

    with pytest.raises(MalformedSaveError):
        codec.decode(WIRE_MARKER + "not*base64!")


def test_decode_rejects_truncated_ciphertext() -> None:
    codec = SaveCodec(key=KEY)
    wire = codec.encode(b"payload")
    ciphertext = base64.b64decode(wire[8:])

    with pytest.raises(MalformedSaveError):
        codec.decode(WIRE_MARKER + base64.b64encode(ciphertext[:-5]).decode("ascii"))


def test_decode_with_wrong_key_is_malformed() -> None:
    wire = SaveCodec(key=KEY).encode(b"payload" * 20)

    with pytest.raises(MalformedSaveError):
        SaveCodec(key=b"f" * 32).decode(wire)


def test_codec_rejects_wrong_key_size() -> None:
    with pytest.raises(ValueError):
        SaveCodec(key=b"short")


def test_document_helpers_round_trip_save_documents() -> None:
    codec = SaveCodec(key=KEY)
    document = {
        "characterData": [{"key": 0, "data": {"inventory": [{"i": "Sprint_Burst,3"}]}}],
        "playerUId": "élève",
    }

    assert codec.decode_to_document(codec.encode_document(document)) == document


def test_decode_to_document_rejects_non_json_payload() -> None:
    codec = SaveCodec(key=KEY)

    with pytest.raises(MalformedSaveError):
        codec.decode_to_document(codec.encode("A".encode("utf-16-le")))


def test_load_file_and_encode_strips_byte_order_mark(tmp_path) -> None:
    codec = SaveCodec(key=KEY)
    body = json.dumps({"characterData": []}).encode("utf-16-le")
    path = tmp_path / "catalog.json"
    path.write_bytes(b"\xff\xfe" + body)

    wire = codec.load_file_and_encode(path)

    assert codec.decode(wire) == body


def test_load_file_and_encode_keeps_files_without_byte_order_mark(tmp_path) -> None:
    codec = SaveCodec(key=KEY)
    body = "{}".encode("utf-16-le")
    path = tmp_path / "plain.json"
    path.write_bytes(body)

    assert codec.decode(codec.load_file_and_encode(path)) == body


def _wire_from_inner(inner: bytes) -> str:
    shifted = bytes((value - 1) % 256 for value in inner)
    encryptor = Cipher(algorithms.AES(KEY), modes.ECB()).encryptor()
    return WIRE_MARKER + base64.b64encode(encryptor.update(zero_pad(shifted)) + encryptor.finalize()).decode("ascii")


def test_decode_rejects_payload_that_fails_to_inflate() -> None:
    framed = struct.pack("<i", 8) + b"not zlib"
    wire = _wire_from_inner(INNER_MARKER + base64.b64encode(framed))

    with pytest.raises(MalformedSaveError, match="decompress"):
        SaveCodec(key=KEY).decode(wire)


def test_decode_rejects_inner_payload_that_is_not_base64() -> None:
    wire = _wire_from_inner(INNER_MARKER + b"***not-base64***")

    with pytest.raises(MalformedSaveError, match="Inner save payload"):
        SaveCodec(key=KEY).decode(wire)


def test_decode_rejects_payload_shorter_than_length_prefix() -> None:
    wire = _wire_from_inner(INNER_MARKER + base64.b64encode(b"ab"))

    with pytest.raises(MalformedSaveError, match="length prefix"):
        SaveCodec(key=KEY).decode(wire)
