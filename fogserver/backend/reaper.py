"""Periodic purge of killed lobbies and expired sessions."""

from __future__ import annotations

import asyncio
import logging

from fogserver.backend.matchmaking import MatchmakingEngine
from fogserver.backend.store import InMemorySessionStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10 * 60


def reap_once(engine: MatchmakingEngine, sessions: InMemorySessionStore) -> tuple[int, int]:
    """Run one purge pass; fake sessions survive so debug tooling keeps them."""
    lobbies = engine.reap_expired()
    expired_sessions = sessions.remove_expired(ignore_fake=True)
    logger.debug("Reaper pass removed %d lobbies and %d sessions", lobbies, expired_sessions)
    return lobbies, expired_sessions


async def reap_forever(
    engine: MatchmakingEngine,
    sessions: InMemorySessionStore,
    interval: float = DEFAULT_INTERVAL_SECONDS,
) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            reap_once(engine, sessions)
        except Exception:
            logger.exception("Reaper pass failed")
