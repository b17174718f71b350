"""Domain models for sessions, matchmaking queues and lobbies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Side = Literal["A", "B"]


@dataclass(frozen=True)
class PlayerIdentity:
    session_token: str
    user_id: str


@dataclass(frozen=True)
class QueueRequest:
    side: Side
    check_only: bool = False


@dataclass
class QueuedPlayer:
    session_token: str
    user_id: str
    side: Side
    queued_at: float


@dataclass
class Lobby:
    id: str
    host: QueuedPlayer
    non_hosts: list[QueuedPlayer] = field(default_factory=list)
    is_ready: bool = False
    has_started: bool = False
    session_settings: str | None = None
    reason: str | None = None


@dataclass
class KilledLobby(Lobby):
    killed_time: float = 0.0


@dataclass
class ClientIds:
    token_id: str
    user_id: str
    guest_token: str | None = None


@dataclass
class Session:
    expires: int
    bhvr_session: str
    guest_session: str
    client_ids: ClientIds
    total_xp: int
    profile: str | None = None
    profile_version: int | None = None
    is_fake: bool = False
    is_steam: bool = False

    @property
    def user_id(self) -> str:
        return self.client_ids.user_id

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(session_token=self.bhvr_session, user_id=self.client_ids.user_id)
