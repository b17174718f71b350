"""Matchmaking queue and lobby state machine.

One side-A player (the killer) hosts each lobby and up to four side-B players
(survivors) join it once the host has registered its session settings.
All state lives on a `MatchmakingEngine` instance; nothing here performs I/O.
"""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Callable

from fogserver.backend.models import KilledLobby, Lobby, PlayerIdentity, QueuedPlayer, QueueRequest, Side
from fogserver.backend.security import generate_match_id

logger = logging.getLogger(__name__)

MAX_NON_HOSTS = 4
KILLED_LOBBY_RETENTION_SECONDS = 5 * 60

MATCH_CATEGORY = "oman-100372-dev:None:Windows:::1:4:0:G:2"
MATCH_PROPS = {
    "countA": 1,
    "countB": 4,
    "EncryptionKey": "Rpqy9fgpIWrHxjJpiwnJJtoZ2hbUZZ4paU+0n4K/iZI=",
    "gameMode": "None",
    "platform": "Windows",
}
MATCH_SKILL = {
    "continent": "NA",
    "country": "US",
    "latitude": 0,
    "longitude": 0,
    "rank": 20,
    "rating": {
        "rating": 1500,
        "RD": 347.4356,
        "volatility": 0.06,
    },
    "regions": {
        "good": ["us-east-1"],
        "ok": ["us-east-1"],
    },
    "version": 2,
    "x": 20,
}
QUEUED_STATUS = {
    "queueData": {
        "ETA": -10000,
        "position": 0,
        "sizeA": 0,
        "sizeB": 1,
    },
    "status": "QUEUED",
}


def _match_payload(
    *,
    match_id: str,
    creator: str,
    side_b: list[str],
    created_ms: int,
    custom_data: dict[str, Any],
    reason: str,
    status: str,
    version: int,
) -> dict[str, Any]:
    return {
        "category": MATCH_CATEGORY,
        "churn": 0,
        "creationDateTime": created_ms,
        "creator": creator,
        "customData": custom_data,
        "geolocation": {},
        "matchId": match_id,
        "props": dict(MATCH_PROPS),
        "rank": 1,
        "reason": reason,
        "schema": 3,
        "sideA": [creator],
        "sideB": side_b,
        "skill": copy.deepcopy(MATCH_SKILL),
        "status": status,
        "version": version,
    }


class MatchmakingEngine:
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        match_id_factory: Callable[[], str] = generate_match_id,
    ) -> None:
        self._clock = clock
        self._match_id_factory = match_id_factory
        self._queue: list[QueuedPlayer] = []
        self._open_lobbies: dict[str, Lobby] = {}
        self._killed_lobbies: dict[str, KilledLobby] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def enqueue(self, request: QueueRequest, identity: PlayerIdentity) -> None:
        """Append a queue entry; repeated calls for one identity queue it again."""
        self._queue.append(
            QueuedPlayer(
                session_token=identity.session_token,
                user_id=identity.user_id,
                side=request.side,
                queued_at=self._clock(),
            )
        )
        logger.info("Queued %s on side %s (%d waiting)", identity.user_id, request.side, len(self._queue))

    def find_queued_player(self, session_token: str) -> QueuedPlayer | None:
        for queued in self._queue:
            if queued.session_token == session_token:
                return queued
        return None

    def queued_players(self) -> list[QueuedPlayer]:
        return list(self._queue)

    def cancel(self, identity: PlayerIdentity) -> None:
        queued = self.find_queued_player(identity.session_token)
        if queued is None:
            return
        self._queue.remove(queued)
        logger.info("Removed %s from the queue", identity.user_id)

    def poll_status(self, side: Side, identity: PlayerIdentity) -> dict[str, Any]:
        """Advance matchmaking for a polling player and describe where they stand."""
        queued = self.find_queued_player(identity.session_token)
        if queued is None:
            return {}

        if side == "A":
            return self._open_lobby_for(queued)

        for lobby in self._open_lobbies.values():
            if not lobby.is_ready or lobby.has_started:
                continue
            if len(lobby.non_hosts) >= MAX_NON_HOSTS:
                continue
            lobby.non_hosts.append(queued)
            self._queue.remove(queued)
            logger.info("Matched %s into lobby %s (%d joined)", queued.user_id, lobby.id, len(lobby.non_hosts))
            return self._queue_matched(lobby.host.user_id, lobby.id, queued.user_id)

        return copy.deepcopy(QUEUED_STATUS)

    def _open_lobby_for(self, host: QueuedPlayer) -> dict[str, Any]:
        match_id = self._match_id_factory()
        self._open_lobbies[match_id] = Lobby(id=match_id, host=host)
        logger.info("Opened lobby %s for host %s", match_id, host.user_id)
        return self._queue_matched(host.user_id, match_id)

    def _queue_matched(self, creator_id: str, match_id: str, joiner_id: str | None = None) -> dict[str, Any]:
        return {
            "status": "MATCHED",
            "matchData": _match_payload(
                match_id=match_id,
                creator=creator_id,
                side_b=[joiner_id] if joiner_id else [],
                created_ms=self._now_ms(),
                custom_data={},
                reason="",
                status="CREATED",
                version=1,
            ),
        }

    def get_lobby(self, match_id: str) -> Lobby | None:
        return self._open_lobbies.get(match_id)

    def get_killed_lobby(self, match_id: str) -> KilledLobby | None:
        return self._killed_lobbies.get(match_id)

    def open_lobbies(self) -> list[Lobby]:
        return list(self._open_lobbies.values())

    def register_match(self, match_id: str, session_settings: str) -> dict[str, Any] | None:
        lobby = self.get_lobby(match_id)
        if lobby is None:
            return None
        lobby.is_ready = True
        lobby.session_settings = session_settings
        logger.info("Lobby %s is ready", match_id)
        return self.build_match_descriptor(match_id)

    def is_owner(self, match_id: str, identity: PlayerIdentity) -> bool:
        lobby = self.get_lobby(match_id)
        return lobby is not None and lobby.host.session_token == identity.session_token

    def delete_match(self, match_id: str) -> None:
        lobby = self._open_lobbies.pop(match_id, None)
        if lobby is None:
            return
        self._killed_lobbies[match_id] = KilledLobby(
            id=lobby.id,
            host=lobby.host,
            non_hosts=lobby.non_hosts,
            is_ready=lobby.is_ready,
            has_started=lobby.has_started,
            session_settings=lobby.session_settings,
            reason=lobby.reason,
            killed_time=self._clock(),
        )
        logger.info("Killed lobby %s", match_id)

    def kill_match(self, match_id: str, identity: PlayerIdentity, reason: str = "") -> dict[str, Any] | None:
        """Kill a lobby on behalf of its host; anyone else is refused."""
        if not self.is_owner(match_id, identity):
            return None
        lobby = self._open_lobbies[match_id]
        lobby.reason = reason
        self.delete_match(match_id)
        return self.build_match_descriptor(match_id, killed=True)

    def remove_player_from_match(self, match_id: str, user_id: str) -> bool:
        lobby = self.get_lobby(match_id)
        if lobby is None:
            return False
        remaining = [player for player in lobby.non_hosts if player.user_id != user_id]
        if len(remaining) == len(lobby.non_hosts):
            return False
        lobby.non_hosts = remaining
        logger.info("Removed %s from lobby %s", user_id, match_id)
        return True

    def reap_expired(self) -> int:
        """Purge killed lobbies older than the retention window."""
        cutoff = self._clock() - KILLED_LOBBY_RETENTION_SECONDS
        expired = [match_id for match_id, lobby in self._killed_lobbies.items() if lobby.killed_time < cutoff]
        for match_id in expired:
            del self._killed_lobbies[match_id]
        if expired:
            logger.info("Purged %d killed lobbies", len(expired))
        return len(expired)

    def build_match_descriptor(self, match_id: str, killed: bool = False) -> dict[str, Any]:
        lobby: Lobby | None = self.get_lobby(match_id)
        if lobby is None:
            lobby = self.get_killed_lobby(match_id)
            killed = killed or lobby is not None
        if lobby is None:
            return {}
        return _match_payload(
            match_id=match_id,
            creator=lobby.host.user_id,
            side_b=[player.user_id for player in lobby.non_hosts],
            created_ms=self._now_ms(),
            custom_data={"SessionSettings": lobby.session_settings or ""},
            reason=lobby.reason or "",
            status="KILLED" if killed else "OPENED",
            version=2,
        )
