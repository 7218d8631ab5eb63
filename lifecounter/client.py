from __future__ import annotations

import logging
from dataclasses import dataclass

import redis

from lifecounter.api.models import Preset
from lifecounter.config import Settings
from lifecounter.local_store import LocalStore, PresetStore, SessionAutosave
from lifecounter.session import GameSession, SessionEvent
from lifecounter.session_store import RedisSessionDirectory, SessionDirectory
from lifecounter.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TableClient:
    """One device at the table: its session plus everything wired to it.

    `current_preset_id` is the preset last loaded or saved. Finished games
    and resets write the roster, stats included, back into it.
    """

    session: GameSession
    sync: SyncEngine
    autosave: SessionAutosave
    presets: PresetStore
    current_preset_id: str | None = None

    def host(self, initiator_id: str) -> str | None:
        return self.sync.host(initiator_id)

    def join(self, session_id: str, participant_id: str) -> bool:
        return self.sync.join(session_id, participant_id)

    def leave(self) -> None:
        self.sync.detach()

    def load_preset(self, preset_id: str) -> bool:
        preset: Preset | None = self.presets.get(preset_id)
        if preset is None:
            return False
        self.session.load_preset(preset)
        self.current_preset_id = preset.id
        return True

    def save_current_game(self) -> Preset:
        preset = self.presets.save_current_game(self.session, preset_id=self.current_preset_id)
        self.current_preset_id = preset.id
        return preset

    def on_session_event(self, event: SessionEvent) -> None:
        if self.current_preset_id is None:
            return
        if self.presets.record_roster(self.current_preset_id, self.session.players) is None:
            logger.info("preset %s is gone; no longer tracking it", self.current_preset_id)
            self.current_preset_id = None
            return
        logger.debug("%s written back to preset %s", event, self.current_preset_id)

    def close(self) -> None:
        self.sync.detach()
        self.autosave.detach()
        self.session.remove_lifecycle_listener(self.on_session_event)


def build_client(
    *,
    settings: Settings,
    local: redis.Redis,
    directory: SessionDirectory,
    device_id: str = "default",
) -> TableClient:
    """Assemble a client: restore the saved game, then hook autosave, presets and sync to it."""

    store = LocalStore(local, namespace=f"lifecounter:local:{device_id}")
    autosave = SessionAutosave(store)
    session = GameSession(autosave.restore())
    autosave.attach(session)

    sync = SyncEngine(
        session,
        directory,
        window=settings.sync_window,
        flush_on_detach=settings.flush_on_detach,
        # Adopted snapshots skip the change listeners; save them too.
        on_remote_snapshot=lambda _snapshot: autosave.save(),
    )
    client = TableClient(session=session, sync=sync, autosave=autosave, presets=PresetStore(store))
    session.add_lifecycle_listener(client.on_session_event)
    return client


def build_redis_client(*, settings: Settings, r: redis.Redis, device_id: str = "default") -> TableClient:
    directory = RedisSessionDirectory(r, poll_interval=settings.subscribe_poll_interval)
    return build_client(settings=settings, local=r, directory=directory, device_id=device_id)
