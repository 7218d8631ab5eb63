"""Session directory: the shared Redis document every client reads and writes.

Each session is one JSON document (the full snapshot) plus a pub/sub channel
that carries every published snapshot to subscribers. There is no locking and
no compare-and-swap: the last publish to land wins.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol
from uuid import uuid4

import redis
from pydantic import ValidationError

from lifecounter.api.models import SessionSnapshot

logger = logging.getLogger(__name__)

SESSIONS_SET_KEY = "lifecounter:sessions"
SESSION_KEY_PREFIX = "lifecounter:session:"  # + {session_id}

SnapshotCallback = Callable[[SessionSnapshot], None]
Unsubscribe = Callable[[], None]


def _session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def _participants_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}:participants"


def _updates_channel(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}:updates"


def session_exists(*, r: redis.Redis, session_id: str) -> bool:
    return bool(r.exists(_session_key(session_id)))


def create_session(*, r: redis.Redis, initiator_id: str) -> str | None:
    session_id = str(uuid4())
    try:
        r.set(_session_key(session_id), SessionSnapshot().to_wire_json(), nx=True)
        r.sadd(SESSIONS_SET_KEY, session_id)
        r.sadd(_participants_key(session_id), initiator_id)
    except redis.RedisError:
        logger.exception("failed to create session for %s", initiator_id)
        return None
    logger.info("session %s created by %s", session_id, initiator_id)
    return session_id


def join_session(*, r: redis.Redis, session_id: str, participant_id: str) -> bool:
    try:
        if not session_exists(r=r, session_id=session_id):
            logger.info("join rejected: session %s not found", session_id)
            return False
        r.sadd(_participants_key(session_id), participant_id)
    except redis.RedisError:
        logger.exception("failed to join session %s", session_id)
        return False
    return True


def list_participants(*, r: redis.Redis, session_id: str) -> list[str]:
    return sorted(r.smembers(_participants_key(session_id)))


def list_sessions(*, r: redis.Redis) -> list[str]:
    return sorted(r.smembers(SESSIONS_SET_KEY))


def load_snapshot(*, r: redis.Redis, session_id: str) -> SessionSnapshot | None:
    raw = r.get(_session_key(session_id))
    if not raw:
        return None
    return SessionSnapshot.model_validate_json(raw)


def publish_snapshot(*, r: redis.Redis, session_id: str, snapshot: SessionSnapshot) -> None:
    """Store the snapshot as the session document and broadcast it.

    Best-effort: failures are logged and dropped. The next local change is
    the retry.
    """

    payload = snapshot.to_wire_json()
    try:
        r.set(_session_key(session_id), payload)
        r.publish(_updates_channel(session_id), payload)
    except redis.RedisError:
        logger.warning("publish to session %s failed; dropping snapshot", session_id, exc_info=True)


class SessionDirectory(Protocol):
    def create_session(self, initiator_id: str) -> str | None: ...

    def join_session(self, session_id: str, participant_id: str) -> bool: ...

    def publish_snapshot(self, session_id: str, snapshot: SessionSnapshot) -> None: ...

    def subscribe(self, session_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe: ...


class SnapshotSubscription:
    """Polls a session's pub/sub channel from an asyncio task.

    Callbacks therefore run on the event loop thread, in the order Redis
    delivers the messages. The current document, if any, is delivered first.
    """

    def __init__(self, *, r: redis.Redis, session_id: str, on_snapshot: SnapshotCallback, poll_interval: float) -> None:
        self._r = r
        self._session_id = session_id
        self._on_snapshot = on_snapshot
        self._poll_interval = poll_interval
        self._pubsub = r.pubsub(ignore_subscribe_messages=True)
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._pubsub.subscribe(_updates_channel(self._session_id))
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
        try:
            self._pubsub.unsubscribe()
            self._pubsub.close()
        except redis.RedisError:
            logger.debug("error closing pubsub for session %s", self._session_id, exc_info=True)

    def _deliver(self, raw: str) -> None:
        if self._closed:
            return
        try:
            snapshot = SessionSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("ignoring malformed snapshot on session %s", self._session_id)
            return
        self._on_snapshot(snapshot)

    async def _run(self) -> None:
        try:
            current = self._r.get(_session_key(self._session_id))
        except redis.RedisError:
            logger.warning("could not read session %s on subscribe", self._session_id, exc_info=True)
            current = None
        if current:
            self._deliver(current)

        while not self._closed:
            try:
                message = self._pubsub.get_message(timeout=0)
            except redis.RedisError:
                logger.warning("subscription to session %s errored", self._session_id, exc_info=True)
                message = None
            if message is None:
                await asyncio.sleep(self._poll_interval)
                continue
            if message.get("type") == "message":
                self._deliver(message["data"])


class RedisSessionDirectory:
    """`SessionDirectory` backed by a Redis client (real or fakeredis)."""

    def __init__(self, r: redis.Redis, *, poll_interval: float = 0.05) -> None:
        self.r = r
        self.poll_interval = poll_interval

    def create_session(self, initiator_id: str) -> str | None:
        return create_session(r=self.r, initiator_id=initiator_id)

    def join_session(self, session_id: str, participant_id: str) -> bool:
        return join_session(r=self.r, session_id=session_id, participant_id=participant_id)

    def publish_snapshot(self, session_id: str, snapshot: SessionSnapshot) -> None:
        publish_snapshot(r=self.r, session_id=session_id, snapshot=snapshot)

    def session_exists(self, session_id: str) -> bool:
        return session_exists(r=self.r, session_id=session_id)

    def load_snapshot(self, session_id: str) -> SessionSnapshot | None:
        return load_snapshot(r=self.r, session_id=session_id)

    def subscribe(self, session_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
        sub = SnapshotSubscription(r=self.r, session_id=session_id, on_snapshot=on_snapshot, poll_interval=self.poll_interval)
        sub.start()
        return sub.close
