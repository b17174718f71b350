"""Player save helpers built on the codec and the save store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import hjson

from fogserver.backend.codec import SaveCodec
from fogserver.backend.store import SaveStore

logger = logging.getLogger(__name__)

MIN_PERK_LEVEL = 1
MAX_PERK_LEVEL = 4


def load_default_save(codec: SaveCodec, path: Path, bonus_bloodpoints: int) -> str | None:
    """Encode the default save handed to players with no stored profile.

    The file is read as HJSON, so comments and unquoted keys are allowed.
    Returns None when the file is missing or cannot be parsed.
    """
    path = Path(path)
    if not path.is_file():
        logger.warning("Default save %s not found; new players start with an empty profile", path)
        return None
    try:
        document = hjson.loads(path.read_text(encoding="utf-8-sig"))
    except hjson.HjsonDecodeError as exc:
        logger.warning("Default save %s could not be parsed (%s); new players start with an empty profile", path, exc)
        return None
    if not isinstance(document, dict):
        logger.warning("Default save %s is not an object; new players start with an empty profile", path)
        return None
    document["bonusExperience"] = bonus_bloodpoints
    return codec.encode_document(document)


def set_perk_level_in_document(document: dict[str, Any], character_id: int, perk_id: str, level: int) -> bool:
    for character in document.get("characterData", []):
        if character.get("key") != character_id:
            continue
        for item in character.get("data", {}).get("inventory", []):
            perk_name = item.get("i", "").split(",")[0]
            if perk_name == perk_id:
                item["i"] = f"{perk_name},{level}"
                return True
        return False
    return False


def set_player_perk_level(
    store: SaveStore,
    codec: SaveCodec,
    user_id: str,
    character_id: int,
    perk_id: str,
    level: int,
) -> bool:
    """Rewrite one perk level in a stored save.

    Returns False when the player has no save or the character does not own
    the perk. Raises ValueError for levels outside 1..4.
    """
    if not isinstance(level, int) or isinstance(level, bool) or not MIN_PERK_LEVEL <= level <= MAX_PERK_LEVEL:
        raise ValueError("Invalid perk level provided")
    wire = store.load(user_id)
    if wire is None:
        return False
    document = codec.decode_to_document(wire)
    if not set_perk_level_in_document(document, character_id, perk_id, level):
        return False
    store.save(user_id, codec.encode_document(document))
    logger.info("Set perk %s to level %d for %s (character %d)", perk_id, level, user_id, character_id)
    return True
