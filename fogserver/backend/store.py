"""Session and save blob stores."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import Protocol

from fogserver.backend.models import ClientIds, Session
from fogserver.backend.security import (
    generate_guest_session,
    generate_session_token,
    generate_user_id,
)

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def create_session(self, now: int, valid_for: int, for_provider: bool = False, provider_id: str = "") -> Session:
        """Create and register a session valid for `valid_for` seconds."""

    def create_fake_session(self) -> Session:
        """Create an already-expired session for debugging."""

    def get_session(self, token: str | None) -> Session | None:
        """Return the active session for a cookie value."""

    def is_session_active(self, token: str | None) -> bool:
        """Return whether the cookie value maps to a session."""

    def delete_session(self, token: str | None) -> bool:
        """Delete a session and report whether it existed."""

    def find_session_by_user_id(self, user_id: str) -> Session | None:
        """Return the session belonging to a player id."""

    def remove_expired(self, ignore_fake: bool = False) -> int:
        """Drop expired sessions and return how many were removed."""


@dataclass
class InMemorySessionStore:
    starting_xp: int = 0

    def __post_init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create_session(self, now: int, valid_for: int, for_provider: bool = False, provider_id: str = "") -> Session:
        client_ids = ClientIds(
            token_id=generate_user_id(),
            user_id=generate_user_id(provider=for_provider, provider_id=provider_id),
            guest_token=None if for_provider else generate_user_id(),
        )
        session = Session(
            expires=now + valid_for,
            bhvr_session=generate_session_token(now, valid_for),
            guest_session=generate_guest_session(client_ids.token_id),
            client_ids=client_ids,
            total_xp=self.starting_xp,
            is_steam=for_provider,
        )
        self._sessions[session.bhvr_session] = session
        logger.info("Created %s session for %s", "provider" if for_provider else "guest", client_ids.user_id)
        return session

    def create_fake_session(self) -> Session:
        token_id = generate_user_id()
        session = Session(
            expires=0,
            bhvr_session=generate_session_token(0, 0),
            guest_session=generate_guest_session(token_id),
            client_ids=ClientIds(token_id=token_id, user_id=generate_user_id(), guest_token=generate_user_id()),
            total_xp=0,
            is_fake=True,
        )
        self._sessions[session.bhvr_session] = session
        return session

    def get_session(self, token: str | None) -> Session | None:
        if token is None:
            return None
        return self._sessions.get(token)

    def is_session_active(self, token: str | None) -> bool:
        return token is not None and token in self._sessions

    def delete_session(self, token: str | None) -> bool:
        if token is None:
            return False
        removed = self._sessions.pop(token, None)
        if removed is not None:
            logger.info("Deleted session for %s", removed.user_id)
        return removed is not None

    def find_session_by_user_id(self, user_id: str) -> Session | None:
        for session in self._sessions.values():
            if session.client_ids.user_id == user_id:
                return session
        return None

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def active_session_count(self) -> int:
        return len(self._sessions)

    def clear_fake_sessions(self) -> int:
        fake_tokens = [token for token, session in self._sessions.items() if session.is_fake]
        for token in fake_tokens:
            del self._sessions[token]
        return len(fake_tokens)

    def remove_expired(self, ignore_fake: bool = False) -> int:
        now = int(time.time())
        expired = [
            token
            for token, session in self._sessions.items()
            if session.expires < now and not (ignore_fake and session.is_fake)
        ]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Removed %d expired sessions", len(expired))
        return len(expired)


class SaveStore(Protocol):
    def load(self, user_id: str) -> str | None:
        """Return the stored wire string for a player."""

    def save(self, user_id: str, wire: str) -> None:
        """Persist a player's wire string, replacing any previous one."""

    def exists(self, user_id: str) -> bool:
        """Return whether a save is stored for the player."""


@dataclass
class InMemorySaveStore:
    def __post_init__(self) -> None:
        self._saves: dict[str, str] = {}

    def load(self, user_id: str) -> str | None:
        return self._saves.get(user_id)

    def save(self, user_id: str, wire: str) -> None:
        self._saves[user_id] = wire

    def exists(self, user_id: str) -> bool:
        return user_id in self._saves


@dataclass
class FileSaveStore:
    directory: Path

    def path_for(self, user_id: str) -> Path:
        if not user_id or "/" in user_id or "\\" in user_id or user_id.startswith("."):
            raise ValueError(f"Invalid user id for save path: {user_id!r}")
        return Path(self.directory) / f"save_{user_id}"

    def load(self, user_id: str) -> str | None:
        path = self.path_for(user_id)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, user_id: str, wire: str) -> None:
        path = self.path_for(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(wire, encoding="utf-8")
        logger.info("Wrote save file %s", path)

    def exists(self, user_id: str) -> bool:
        return self.path_for(user_id).is_file()


def create_save_store(directory: Path | None) -> SaveStore:
    if directory is not None:
        return FileSaveStore(directory=Path(directory))
    return InMemorySaveStore()
