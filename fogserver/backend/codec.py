"""Save container codec compatible with the game client.

Layout of a wire string, outermost first::

    "DbdDAgAC" + base64(AES-256-ECB(zero-padded(
        bytes(b - 1 for b in b"DbdDAQEB" + base64(le_int32(len(plain)) + zlib(plain)))
    )))

The codec is pure: it holds only the read-only key, so a single instance can
be shared across threads.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
import json
from pathlib import Path
import struct
from typing import Any
import zlib

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

WIRE_MARKER = "DbdDAgAC"
INNER_MARKER = bytes((0x44, 0x62, 0x64, 0x44, 0x41, 0x51, 0x45, 0x42))
LENGTH_PREFIX = struct.Struct("<i")
PAD_BLOCK = 32
KEY_BYTES = 32
UTF16_BOM = b"\xff\xfe"

_DECREMENT = bytes((value - 1) % 256 for value in range(256))
_INCREMENT = bytes((value + 1) % 256 for value in range(256))


class MalformedSaveError(ValueError):
    """Raised when a wire string cannot be decoded into save data."""


def zero_pad(data: bytes) -> bytes:
    pad_length = PAD_BLOCK - (len(data) % PAD_BLOCK)
    return data + bytes(pad_length)


def strip_padding(data: bytes) -> bytes:
    """Remove zero padding, or count-byte padding when the last byte is non-zero."""
    if not data:
        return data
    last = data[-1]
    if last == 0:
        return data.rstrip(b"\x00")
    if last > len(data):
        raise MalformedSaveError("Padding count exceeds decrypted length")
    return data[:-last]


@dataclass(frozen=True)
class SaveCodec:
    key: bytes

    def __post_init__(self) -> None:
        if len(self.key) != KEY_BYTES:
            raise ValueError(f"Save key must be {KEY_BYTES} bytes, got {len(self.key)}")

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self.key), modes.ECB())

    def _encrypt(self, data: bytes) -> bytes:
        encryptor = self._cipher().encryptor()
        return encryptor.update(zero_pad(data)) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        if not data or len(data) % 16:
            raise MalformedSaveError("Ciphertext length is not a multiple of the AES block size")
        decryptor = self._cipher().decryptor()
        return strip_padding(decryptor.update(data) + decryptor.finalize())

    def encode(self, plain: bytes) -> str:
        """Encode a UTF-16LE save buffer into the client's wire string."""
        framed = LENGTH_PREFIX.pack(len(plain)) + zlib.compress(plain)
        inner = INNER_MARKER + base64.b64encode(framed)
        ciphertext = self._encrypt(inner.translate(_DECREMENT))
        return WIRE_MARKER + base64.b64encode(ciphertext).decode("ascii")

    def decode(self, wire: str) -> bytes:
        """Decode a wire string back into the original buffer."""
        if not wire.startswith(WIRE_MARKER):
            raise MalformedSaveError("Missing save marker")
        try:
            ciphertext = base64.b64decode(wire[len(WIRE_MARKER):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedSaveError("Save payload is not valid base64") from exc

        inner = self._decrypt(ciphertext).translate(_INCREMENT)
        if not inner.startswith(INNER_MARKER):
            raise MalformedSaveError("Missing inner save marker")

        try:
            framed = base64.b64decode(inner[len(INNER_MARKER):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedSaveError("Inner save payload is not valid base64") from exc
        if len(framed) < LENGTH_PREFIX.size:
            raise MalformedSaveError("Save payload is missing its length prefix")

        try:
            return zlib.decompress(framed[LENGTH_PREFIX.size:])
        except zlib.error as exc:
            raise MalformedSaveError("Save payload failed to decompress") from exc

    def decode_to_document(self, wire: str) -> dict[str, Any]:
        plain = self.decode(wire)
        try:
            document = json.loads(plain.decode("utf-16-le"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedSaveError("Save payload is not UTF-16LE JSON") from exc
        if not isinstance(document, dict):
            raise MalformedSaveError("Save payload is not a JSON object")
        return document

    def encode_document(self, document: dict[str, Any]) -> str:
        text = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
        return self.encode(text.encode("utf-16-le"))

    def load_file_and_encode(self, path: str | Path) -> str:
        """Encode a UTF-16LE JSON file as-is, dropping a leading byte-order mark."""
        contents = Path(path).read_bytes()
        if contents.startswith(UTF16_BOM):
            contents = contents[len(UTF16_BOM):]
        return self.encode(contents)
