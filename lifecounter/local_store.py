"""Per-device persistence: opaque JSON blobs for the session and saved presets.

Writes are fire-and-forget. A failed save or load is logged and swallowed; the
in-memory session stays authoritative.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any

import redis
from pydantic import TypeAdapter, ValidationError

from lifecounter.api.models import Player, Preset, SessionSnapshot
from lifecounter.core import events
from lifecounter.session import GameSession, reset_vitals

logger = logging.getLogger(__name__)

GAME_STATE_KEY = "gameState"
PRESETS_KEY = "presets"

_presets_adapter = TypeAdapter(list[Preset])


class LocalStore:
    """save/load of JSON blobs under a device namespace."""

    def __init__(self, r: redis.Redis, *, namespace: str = "lifecounter:local") -> None:
        self.r = r
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def save(self, key: str, blob: Any) -> bool:
        try:
            self.r.set(self._key(key), json.dumps(blob))
        except (redis.RedisError, TypeError, ValueError):
            logger.exception("failed to save %s", key)
            return False
        return True

    def load(self, key: str) -> Any | None:
        try:
            raw = self.r.get(self._key(key))
        except redis.RedisError:
            logger.exception("failed to load %s", key)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("discarding unreadable blob %s", key)
            return None


class SessionAutosave:
    """Saves the session snapshot after every change and restores it at startup."""

    def __init__(self, store: LocalStore, *, key: str = GAME_STATE_KEY) -> None:
        self.store = store
        self.key = key
        self._session: GameSession | None = None

    def restore(self) -> SessionSnapshot | None:
        blob = self.store.load(self.key)
        if blob is None:
            return None
        try:
            return SessionSnapshot.model_validate(blob)
        except ValidationError:
            logger.warning("saved game state is invalid; starting fresh")
            return None

    def attach(self, session: GameSession) -> None:
        self._session = session
        session.add_listener(self.save)

    def detach(self) -> None:
        if self._session is not None:
            self._session.remove_listener(self.save)
        self._session = None

    def save(self) -> None:
        if self._session is None:
            return
        self.store.save(self.key, self._session.snapshot().to_wire())


def _new_preset_id(presets: list[Preset]) -> str:
    # Millisecond timestamp, bumped past any id already taken.
    pid = int(time.time() * 1000)
    taken = {p.id for p in presets}
    while str(pid) in taken:
        pid += 1
    return str(pid)


class PresetStore:
    """Saved tables. The whole list lives in one blob, like the session."""

    def __init__(self, store: LocalStore, *, key: str = PRESETS_KEY) -> None:
        self.store = store
        self.key = key

    def list_presets(self) -> list[Preset]:
        blob = self.store.load(self.key)
        if blob is None:
            return []
        try:
            return _presets_adapter.validate_python(blob)
        except ValidationError:
            logger.warning("saved presets are invalid; ignoring them")
            return []

    def get(self, preset_id: str) -> Preset | None:
        return next((p for p in self.list_presets() if p.id == preset_id), None)

    def _write(self, presets: list[Preset]) -> None:
        self.store.save(self.key, [p.to_wire() for p in presets])

    def save_from_session(self, name: str, session: GameSession) -> Preset | None:
        """Save the roster as a fresh table: vitals reset, no game in progress."""

        if not name.strip():
            return None
        presets = self.list_presets()
        preset = Preset(
            id=_new_preset_id(presets),
            name=name,
            players=[reset_vitals(p) for p in session.players],
            game_state=None,
        )
        self._write([*presets, preset])
        return preset

    def save_current_game(self, session: GameSession, *, preset_id: str | None = None) -> Preset:
        """Save roster and the game in progress, updating `preset_id` if it exists."""

        presets = self.list_presets()
        snapshot = session.snapshot()
        existing = next((p for p in presets if p.id == preset_id), None) if preset_id else None

        if existing is not None:
            preset = existing.model_copy(update={"players": snapshot.players, "game_state": snapshot})
            presets = [preset if p.id == preset.id else p for p in presets]
        else:
            pid = _new_preset_id(presets)
            preset = Preset(id=pid, name=f"Game {pid}", players=snapshot.players, game_state=snapshot)
            presets.append(preset)

        self._write(presets)
        session.log_event(events.game_state_saved() if existing is not None else events.preset_created())
        return preset

    def record_roster(self, preset_id: str, players: list[Player]) -> Preset | None:
        """Store the roster (and its stats) on a preset; any saved game in progress is cleared."""

        presets = self.list_presets()
        existing = next((p for p in presets if p.id == preset_id), None)
        if existing is None:
            return None
        preset = existing.model_copy(update={"players": players, "game_state": None})
        self._write([preset if p.id == preset_id else p for p in presets])
        return preset

    def rename(self, preset_id: str, name: str) -> Preset | None:
        presets = self.list_presets()
        existing = next((p for p in presets if p.id == preset_id), None)
        if existing is None or not name.strip():
            return None
        preset = existing.model_copy(update={"name": name})
        self._write([preset if p.id == preset_id else p for p in presets])
        return preset

    def delete(self, preset_id: str) -> bool:
        presets = self.list_presets()
        kept = [p for p in presets if p.id != preset_id]
        if len(kept) == len(presets):
            return False
        self._write(kept)
        return True
