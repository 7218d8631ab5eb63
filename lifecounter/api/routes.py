from __future__ import annotations

import logging

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from lifecounter.api.deps import get_redis
from lifecounter.api.models import (
    LogEventRequest,
    PlayerUpdateRequest,
    SessionCreateRequest,
    SessionIdResponse,
    SessionJoinRequest,
    SessionSnapshot,
    VitalsChangeRequest,
)
from lifecounter.config import settings_from_env
from lifecounter.core.vitals import delta_from_kind
from lifecounter.session import GameSession
from lifecounter.session_store import (
    RedisSessionDirectory,
    create_session,
    join_session,
    list_sessions,
    load_snapshot,
    publish_snapshot,
)
from lifecounter.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_session(*, r: redis.Redis, session_id: str) -> GameSession:
    snapshot = load_snapshot(r=r, session_id=session_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return GameSession(snapshot)


def _commit(*, r: redis.Redis, session_id: str, session: GameSession, changed: bool) -> SessionSnapshot:
    # The API is one more client of the shared document: publish right away, no coalescing.
    # Watchers hear about it through the updates channel.
    snapshot = session.snapshot()
    if changed:
        publish_snapshot(r=r, session_id=session_id, snapshot=snapshot)
    else:
        logger.debug("no-op request on session %s; nothing published", session_id)
    return snapshot


@router.websocket("/ws/session/{session_id}")
async def session_snapshots_ws(websocket: WebSocket, session_id: str, r: redis.Redis = Depends(get_redis)) -> None:
    directory = RedisSessionDirectory(r, poll_interval=settings_from_env().subscribe_poll_interval)
    await hub.serve(websocket, directory=directory, session_id=session_id)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session", response_model=SessionIdResponse, status_code=status.HTTP_201_CREATED)
async def create_session_route(payload: SessionCreateRequest, r: redis.Redis = Depends(get_redis)) -> SessionIdResponse:
    session_id = create_session(r=r, initiator_id=payload.initiator_id)
    if session_id is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not create session")
    return SessionIdResponse(session_id=session_id)


@router.get("/session")
async def list_sessions_route(r: redis.Redis = Depends(get_redis)) -> dict[str, list[str]]:
    return {"sessions": list_sessions(r=r)}


@router.post("/session/{session_id}/join", response_model=SessionSnapshot)
async def join_session_route(
    session_id: str,
    payload: SessionJoinRequest,
    r: redis.Redis = Depends(get_redis),
) -> SessionSnapshot:
    if not join_session(r=r, session_id=session_id, participant_id=payload.participant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return _load_session(r=r, session_id=session_id).snapshot()


@router.get("/session/{session_id}", response_model=SessionSnapshot)
async def get_session_route(session_id: str, r: redis.Redis = Depends(get_redis)) -> SessionSnapshot:
    return _load_session(r=r, session_id=session_id).snapshot()


@router.post("/session/{session_id}/players", response_model=SessionSnapshot)
async def add_player_route(session_id: str, r: redis.Redis = Depends(get_redis)) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    # A full table is a silent no-op.
    added = session.add_player()
    return _commit(r=r, session_id=session_id, session=session, changed=added is not None)


@router.delete("/session/{session_id}/players/{player_id}", response_model=SessionSnapshot)
async def remove_player_route(session_id: str, player_id: int, r: redis.Redis = Depends(get_redis)) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    removed = session.remove_player(player_id)
    return _commit(r=r, session_id=session_id, session=session, changed=removed is not None)


@router.put("/session/{session_id}/players/{player_id}", response_model=SessionSnapshot)
async def update_player_route(
    session_id: str,
    player_id: int,
    payload: PlayerUpdateRequest,
    r: redis.Redis = Depends(get_redis),
) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    player = session.get_player(player_id)
    changes = payload.model_dump(exclude_none=True)
    changed = False
    if player is not None and changes:
        changed = session.update_player(player.model_copy(update=changes))
    return _commit(r=r, session_id=session_id, session=session, changed=changed)


@router.post("/session/{session_id}/players/{player_id}/vitals", response_model=SessionSnapshot)
async def change_vitals_route(
    session_id: str,
    player_id: int,
    payload: VitalsChangeRequest,
    r: redis.Redis = Depends(get_redis),
) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    # Rejected once the game has ended, for unknown ids and for zero amounts.
    changed = session.apply_vitals_delta(player_id, delta_from_kind(payload.kind, payload.amount))
    return _commit(r=r, session_id=session_id, session=session, changed=changed)


@router.post("/session/{session_id}/reset", response_model=SessionSnapshot)
async def reset_game_route(session_id: str, r: redis.Redis = Depends(get_redis)) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    session.reset_game()
    return _commit(r=r, session_id=session_id, session=session, changed=True)


@router.post("/session/{session_id}/events", response_model=SessionSnapshot)
async def log_event_route(
    session_id: str,
    payload: LogEventRequest,
    r: redis.Redis = Depends(get_redis),
) -> SessionSnapshot:
    session = _load_session(r=r, session_id=session_id)
    session.log_event(payload.message)
    return _commit(r=r, session_id=session_id, session=session, changed=True)
