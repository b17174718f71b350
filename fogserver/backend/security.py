"""Security helpers for session tokens and player ids."""

from __future__ import annotations

import hashlib
import re
import secrets
import uuid

TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
USER_ID_PREFIX = "00000000-0000-0000-0000-"
GUEST_SESSION_SUFFIX = "fftvtIJbNVAHHDFQLQeDHquBvH/hZ+Ywhf+/oOe34PM"
STEAM_TOKEN_MIN_LENGTH = 0x24
STEAM_ID_OFFSET = 0x0C
UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def generate_token(length: int) -> str:
    """Generate a random string using only characters valid in a session token part."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_session_token(now: int, valid_for: int) -> str:
    """Create the five-part session cookie value.

    The middle parts carry the creation time and validity window in
    milliseconds; the outer parts are random.
    """
    parts = [
        generate_token(22),
        generate_token(192),
        str(now * 1000),
        str(valid_for * 1000),
        generate_token(43),
    ]
    return ".".join(parts)


def generate_guest_session(token_id: str) -> str:
    return f"s:{token_id}.{GUEST_SESSION_SUFFIX}"


def hash_id(value: str, length: int) -> str:
    """Return the trailing `length` hex digits of md5(value)."""
    digest = hashlib.md5(value.encode("utf-8")).hexdigest()
    return digest[-length:]


def generate_user_id(provider: bool = False, provider_id: str = "") -> str:
    """Generate a player id; provider ids are stable and start their last group with 'f'."""
    if provider:
        return USER_ID_PREFIX + "f" + hash_id(provider_id, 11)
    first = secrets.choice("0123456789abcde")
    rest = "".join(secrets.choice("0123456789abcdef") for _ in range(11))
    return USER_ID_PREFIX + first + rest


def generate_match_id() -> str:
    return str(uuid.uuid4())


def last_part_of_id(user_id: str) -> str:
    if not UUID_PATTERN.match(user_id):
        raise ValueError("Invalid UUID provided.")
    return user_id[-12:]


def steam_id_from_token(token: str | None) -> str | None:
    """Extract the steam id embedded in a hex encoded provider login token."""
    if token is None or len(token) < STEAM_TOKEN_MIN_LENGTH:
        return None
    try:
        raw = bytes.fromhex(token)
    except ValueError:
        return None
    steam_id = raw[STEAM_ID_OFFSET:STEAM_ID_OFFSET + 8]
    if len(steam_id) < 8:
        return None
    return str(int.from_bytes(steam_id, "little"))
