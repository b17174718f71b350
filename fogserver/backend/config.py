"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from fogserver.backend.progression import StartingValues

SAVE_KEY_BYTES = 32


@dataclass(frozen=True)
class BackendSettings:
    host: str
    port: int
    save_key: bytes | None
    save_dir: Path
    save_to_file: bool
    default_save_path: Path
    session_length: int
    require_steam: bool
    reaper_interval: int
    log_level: str


def parse_save_key(raw: str | None) -> bytes | None:
    """Accept the AES key as 64 hex digits or as a 32 character string."""
    if not raw:
        return None
    if len(raw) == SAVE_KEY_BYTES * 2:
        try:
            return bytes.fromhex(raw)
        except ValueError:
            pass
    key = raw.encode("utf-8")
    if len(key) != SAVE_KEY_BYTES:
        raise ValueError(f"FOGSERVER_SAVE_KEY must be {SAVE_KEY_BYTES} bytes, got {len(key)}")
    return key


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> BackendSettings:
    port_raw = os.getenv("FOGSERVER_PORT", "8000")
    return BackendSettings(
        host=os.getenv("FOGSERVER_HOST", "127.0.0.1"),
        port=int(port_raw),
        save_key=parse_save_key(os.getenv("FOGSERVER_SAVE_KEY")),
        save_dir=Path(os.getenv("FOGSERVER_SAVE_DIR", "saves")),
        save_to_file=_env_flag("FOGSERVER_SAVE_TO_FILE", "1"),
        default_save_path=Path(os.getenv("FOGSERVER_DEFAULT_SAVE", os.path.join("json", "defaultSave.json"))),
        session_length=int(os.getenv("FOGSERVER_SESSION_LENGTH", "86400")),
        require_steam=_env_flag("FOGSERVER_REQUIRE_STEAM", "0"),
        reaper_interval=int(os.getenv("FOGSERVER_REAPER_INTERVAL", "600")),
        log_level=os.getenv("FOGSERVER_LOG_LEVEL", "INFO").upper(),
    )


def load_starting_values() -> StartingValues:
    """Starting values handed to new players (bonus bloodpoints, ranks, level)."""
    return StartingValues(
        bloodpoints=int(os.getenv("FOGSERVER_START_BLOODPOINTS", "1000000")),
        survivor_rank=int(os.getenv("FOGSERVER_START_SURVIVOR_RANK", "20")),
        survivor_pips=int(os.getenv("FOGSERVER_START_SURVIVOR_PIPS", "0")),
        killer_rank=int(os.getenv("FOGSERVER_START_KILLER_RANK", "20")),
        killer_pips=int(os.getenv("FOGSERVER_START_KILLER_PIPS", "0")),
        level=int(os.getenv("FOGSERVER_START_LEVEL", "1")),
        prestige_level=int(os.getenv("FOGSERVER_START_PRESTIGE", "0")),
        current_xp=int(os.getenv("FOGSERVER_START_XP", "0")),
    )
