import asyncio
import time

from fogserver.backend import reaper
from fogserver.backend.matchmaking import MatchmakingEngine
from fogserver.backend.models import PlayerIdentity, QueueRequest
from fogserver.backend.reaper import reap_forever, reap_once
from fogserver.backend.store import InMemorySessionStore


def test_reap_once_purges_old_lobbies_and_expired_sessions() -> None:
    clock_value = [1000.0]
    engine = MatchmakingEngine(clock=lambda: clock_value[0], match_id_factory=lambda: "match-1")
    sessions = InMemorySessionStore()
    host = PlayerIdentity(session_token="token-a1", user_id="user-a1")
    engine.enqueue(QueueRequest(side="A"), host)
    engine.poll_status("A", host)
    engine.delete_match("match-1")
    sessions.create_session(0, 1)
    fake = sessions.create_fake_session()
    live = sessions.create_session(int(time.time()), 3600)

    clock_value[0] += 10 * 60

    assert reap_once(engine, sessions) == (1, 1)
    assert engine.build_match_descriptor("match-1") == {}
    assert sessions.get_session(fake.bhvr_session) is fake
    assert sessions.get_session(live.bhvr_session) is live


def test_reap_forever_runs_until_cancelled() -> None:
    engine = MatchmakingEngine()
    sessions = InMemorySessionStore()
    expired = sessions.create_session(0, 1)

    async def run() -> None:
        task = asyncio.create_task(reap_forever(engine, sessions, interval=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(run())

    assert sessions.get_session(expired.bhvr_session) is None


def test_reap_forever_survives_failing_pass(monkeypatch) -> None:
    calls = []

    def flaky_reap(engine, sessions):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0, 0

    monkeypatch.setattr(reaper, "reap_once", flaky_reap)

    async def run() -> None:
        task = asyncio.create_task(reaper.reap_forever(MatchmakingEngine(), InMemorySessionStore(), interval=0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(run())

    assert len(calls) >= 2
