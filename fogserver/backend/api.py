"""FastAPI endpoints for sessions, player saves and matchmaking."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
import logging
import time
from typing import Any, Literal

from fastapi import Cookie, Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from .codec import MalformedSaveError, SaveCodec
from .config import BackendSettings, load_settings, load_starting_values
from .matchmaking import MatchmakingEngine
from .models import QueueRequest, Session
from .progression import StartingValues, xp_to_player_level
from .reaper import reap_forever
from .saves import load_default_save
from .security import last_part_of_id, steam_id_from_token
from .store import InMemorySessionStore, SaveStore, create_save_store

logger = logging.getLogger(__name__)

BINARY_MEDIA_TYPE = "binary/octet-stream"
VERSIONS_BODY = (
    '{"availableVersions":{"2.6.0.100094":"2.6.0.100094-1557154926","2.6.0.84905":"2.6.0.84905-1554217487",'
    '"2.6.0.98545":"2.6.0.98545-1556291021","2.6.0.98763":"2.6.0.98763-1556301195",'
    '"2.7.0.1":"2.7.0.1-1557939464","3.0.0.13":"3.0.0.13-1561474922","3.0.0.16":"3.0.0.16-1562079672",'
    '"3.0.0.4":"3.0.0.4-1560778720","m_3.0.0.2":"m_3.0.0.2-1560873223"}}'
)


class QueueEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    side: Literal["A", "B"]
    check_only: bool = Field(default=False, alias="checkOnly")
    latencies: list[dict[str, Any]] = Field(default_factory=list)


class RegisterMatchEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    custom_data: dict[str, Any] = Field(default_factory=dict, alias="customData")


class MatchTimeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_time: int = Field(default=0, ge=0, alias="matchTime")


class EarnXpEnvelope(BaseModel):
    data: MatchTimeData


def _json_text(body: str, status_code: int = 200) -> Response:
    return Response(content=body, status_code=status_code, media_type="application/json")


def create_app(
    settings: BackendSettings | None = None,
    engine: MatchmakingEngine | None = None,
    sessions: InMemorySessionStore | None = None,
    save_store: SaveStore | None = None,
    codec: SaveCodec | None = None,
    starting_values: StartingValues | None = None,
) -> FastAPI:
    runtime = settings if settings is not None else load_settings()
    starting = starting_values if starting_values is not None else load_starting_values()
    match_engine = engine if engine is not None else MatchmakingEngine()
    session_store = sessions if sessions is not None else InMemorySessionStore(starting_xp=starting.total_xp)
    saves = save_store if save_store is not None else create_save_store(runtime.save_dir if runtime.save_to_file else None)
    save_codec = codec
    if save_codec is None and runtime.save_key is not None:
        save_codec = SaveCodec(key=runtime.save_key)
    default_save = (
        load_default_save(save_codec, runtime.default_save_path, starting.bloodpoints) if save_codec is not None else None
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        reaper = asyncio.create_task(reap_forever(match_engine, session_store, runtime.reaper_interval))
        try:
            yield
        finally:
            reaper.cancel()
            with suppress(asyncio.CancelledError):
                await reaper

    app = FastAPI(title="Fog Server", version="0.1.0", lifespan=lifespan)
    app.state.engine = match_engine
    app.state.sessions = session_store
    app.state.save_store = saves

    def get_engine() -> MatchmakingEngine:
        return match_engine

    def get_sessions() -> InMemorySessionStore:
        return session_store

    def require_session(
        bhvr_session: str | None = Cookie(default=None, alias="bhvrSession"),
        local_sessions: InMemorySessionStore = Depends(get_sessions),
    ) -> Session:
        session = local_sessions.get_session(bhvr_session)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def require_codec() -> SaveCodec:
        if save_codec is None:
            raise HTTPException(status_code=503, detail="Save key is not configured")
        return save_codec

    def stored_profile(session: Session) -> str | None:
        if session.profile:
            return session.profile
        return saves.load(session.user_id)

    @app.get("/api/v1/healthcheck")
    def healthcheck() -> dict[str, str]:
        return {"health": "Alive"}

    @app.get("/api/v1/version")
    @app.get("/api/v1/utils/contentVersion/version")
    def versions() -> Response:
        return _json_text(VERSIONS_BODY)

    @app.post("/api/v1/auth/login/guest")
    def login_guest(response: Response, local_sessions: InMemorySessionStore = Depends(get_sessions)) -> dict[str, Any]:
        if runtime.require_steam:
            raise HTTPException(status_code=404, detail="Guest logins are disabled")
        now = int(time.time())
        session = local_sessions.create_session(now, runtime.session_length)
        max_age = runtime.session_length
        response.set_cookie("bhvrSession", session.bhvr_session, max_age=max_age, httponly=True)
        response.set_cookie("GUEST_SESSION", session.guest_session, max_age=max_age, httponly=True)
        return {
            "triggerResults": {"success": [None], "error": []},
            "tokenId": session.client_ids.token_id,
            "generated": now,
            "expire": now + runtime.session_length,
            "userId": session.user_id,
            "guestToken": session.client_ids.guest_token,
        }

    @app.post("/api/v1/auth/provider/{provider}/login")
    def login_provider(
        provider: str,
        response: Response,
        token: str | None = Query(default=None),
        local_sessions: InMemorySessionStore = Depends(get_sessions),
    ) -> dict[str, Any]:
        provider_id = steam_id_from_token(token) if provider == "steam" else None
        if provider_id is None:
            return {"type": "Exception", "message": "Unable to login with provider."}
        now = int(time.time())
        session = local_sessions.create_session(now, runtime.session_length, for_provider=True, provider_id=provider_id)
        response.set_cookie("bhvrSession", session.bhvr_session, max_age=runtime.session_length, httponly=True)
        provider_info = {"providerName": "steam", "providerId": provider_id}
        return {
            "triggerResults": {"error": [], "success": [None]},
            "id": session.user_id,
            "creationDate": now,
            "provider": provider_info,
            "providers": [provider_info],
            "friends": [],
            "tokenId": session.client_ids.token_id,
            "generated": now,
            "expire": now + runtime.session_length,
            "userId": session.user_id,
            "token": session.client_ids.token_id,
        }

    @app.post("/api/v1/me/logout", status_code=204)
    def logout(
        bhvr_session: str | None = Cookie(default=None, alias="bhvrSession"),
        local_sessions: InMemorySessionStore = Depends(get_sessions),
    ) -> Response:
        if not local_sessions.delete_session(bhvr_session):
            raise HTTPException(status_code=404, detail="Session not found")
        return Response(status_code=204)

    @app.get("/api/v1/players/me/states/FullProfile/binary")
    def get_full_profile(
        bhvr_session: str | None = Cookie(default=None, alias="bhvrSession"),
        local_sessions: InMemorySessionStore = Depends(get_sessions),
    ) -> Response:
        session = local_sessions.get_session(bhvr_session)
        profile = ""
        if session is not None:
            profile = stored_profile(session) or default_save or ""
        return Response(content=profile, media_type=BINARY_MEDIA_TYPE)

    @app.post("/api/v1/players/me/states/binary")
    async def post_profile(
        request: Request,
        version: int = Query(),
        session: Session = Depends(require_session),
    ) -> dict[str, Any]:
        try:
            wire = (await request.body()).decode("ascii")
        except UnicodeDecodeError as exc:
            logger.warning("Rejected non-ASCII save upload from %s", session.user_id)
            raise HTTPException(status_code=400, detail="Malformed save data") from exc
        if save_codec is not None:
            try:
                save_codec.decode(wire)
            except MalformedSaveError as exc:
                logger.warning("Rejected malformed save upload from %s: %s", session.user_id, exc)
                raise HTTPException(status_code=400, detail="Malformed save data") from exc
        session.profile = wire
        session.profile_version = version
        if runtime.save_to_file:
            saves.save(session.user_id, wire)
        logger.info("Pushed save data for %s (version %d)", session.user_id, version)
        return {
            "version": version + 1,
            "stateName": "FullProfile",
            "schemaVersion": 0,
            "playerId": session.user_id,
        }

    @app.post("/api/v1/queue")
    def queue(
        payload: QueueEnvelope,
        session: Session = Depends(require_session),
        local_engine: MatchmakingEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        if not payload.check_only:
            local_engine.enqueue(QueueRequest(side=payload.side), session.identity)
        status = local_engine.poll_status(payload.side, session.identity)
        if not status:
            raise HTTPException(status_code=404, detail="Player is not queued")
        return status

    @app.post("/api/v1/queue/cancel", status_code=204)
    def cancel_queue(
        session: Session = Depends(require_session),
        local_engine: MatchmakingEngine = Depends(get_engine),
    ) -> Response:
        local_engine.cancel(session.identity)
        return Response(status_code=204)

    @app.post("/api/v1/match/{match_id}/register")
    def register_match(
        match_id: str,
        payload: RegisterMatchEnvelope,
        local_engine: MatchmakingEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        session_settings = str(payload.custom_data.get("SessionSettings", ""))
        descriptor = local_engine.register_match(match_id, session_settings)
        if descriptor is None:
            raise HTTPException(status_code=404, detail="Match not found")
        return descriptor

    @app.get("/api/v1/match/{match_id}")
    def get_match(match_id: str, local_engine: MatchmakingEngine = Depends(get_engine)) -> dict[str, Any]:
        descriptor = local_engine.build_match_descriptor(match_id)
        if not descriptor:
            raise HTTPException(status_code=404, detail="Match not found")
        return descriptor

    @app.put("/api/v1/match/{match_id}/{reason}")
    def kill_match(
        match_id: str,
        reason: str,
        session: Session = Depends(require_session),
        local_engine: MatchmakingEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        if local_engine.get_lobby(match_id) is None:
            raise HTTPException(status_code=404, detail="Match not found")
        descriptor = local_engine.kill_match(match_id, session.identity, reason)
        if descriptor is None:
            raise HTTPException(status_code=403, detail="Only the match host can kill a match")
        return descriptor

    @app.delete("/api/v1/match/{match_id}/user/{user_id}", status_code=204)
    def remove_match_user(
        match_id: str,
        user_id: str,
        session: Session = Depends(require_session),
        local_engine: MatchmakingEngine = Depends(get_engine),
    ) -> Response:
        if local_engine.get_lobby(match_id) is None:
            raise HTTPException(status_code=404, detail="Match not found")
        if not local_engine.is_owner(match_id, session.identity):
            raise HTTPException(status_code=403, detail="Only the match host can remove players")
        if not local_engine.remove_player_from_match(match_id, user_id):
            raise HTTPException(status_code=404, detail="Player not in match")
        return Response(status_code=204)

    @app.get("/api/v1/ranks/pips")
    def get_pips() -> dict[str, int]:
        pips = starting.pips
        return {
            "killerPips": pips["killer"],
            "survivorPips": pips["survivor"],
            "highestAchievedSurvivorPips": 85,
            "highestAchievedKillerPips": 85,
        }

    @app.post("/api/v1/extensions/playerLevels/getPlayerLevel")
    def get_player_level() -> dict[str, Any]:
        return starting.player_level_object

    @app.post("/api/v1/extensions/playerLevels/earnPlayerXp")
    def earn_player_xp(payload: EarnXpEnvelope, session: Session = Depends(require_session)) -> dict[str, Any]:
        session.total_xp += payload.data.match_time
        return xp_to_player_level(session.total_xp)

    @app.get("/api/v1/wallet/currencies/BonusBloodpoints")
    def get_bonus_bloodpoints(session: Session = Depends(require_session)) -> dict[str, Any]:
        return {
            "userId": session.user_id,
            "balance": starting.bloodpoints,
            "currency": "BonusBloodpoints",
        }

    def session_for_user(user_id: str) -> Session:
        session = session_store.find_session_by_user_id(user_id)
        if session is None:
            raise HTTPException(status_code=404, detail="A user with that ID could not be found.")
        return session

    def attachment_header(session: Session, extension: str) -> dict[str, str]:
        filename = f"{last_part_of_id(session.user_id)}.{extension}"
        return {"Content-Disposition": f'attachment; filename="{filename}"'}

    @app.get("/user/{user_id}/saveData.bin")
    def get_user_save_binary(user_id: str) -> Response:
        session = session_for_user(user_id)
        return Response(
            content=stored_profile(session) or "",
            media_type=BINARY_MEDIA_TYPE,
            headers=attachment_header(session, "bin"),
        )

    @app.get("/user/{user_id}/saveData.json")
    def get_user_save(
        user_id: str,
        response: Response,
        local_codec: SaveCodec = Depends(require_codec),
    ) -> dict[str, Any]:
        session = session_for_user(user_id)
        response.headers.update(attachment_header(session, "json"))
        wire = stored_profile(session)
        if not wire:
            return {}
        try:
            return local_codec.decode_to_document(wire)
        except MalformedSaveError as exc:
            logger.error("Stored save for %s is malformed: %s", user_id, exc)
            raise HTTPException(status_code=500, detail="Stored save data is malformed") from exc

    return app


app = create_app()
