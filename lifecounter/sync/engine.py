from __future__ import annotations

import logging
from collections.abc import Callable

from lifecounter.api.models import SessionSnapshot
from lifecounter.session import GameSession
from lifecounter.session_store import SessionDirectory, Unsubscribe
from lifecounter.sync.debounce import Debouncer

logger = logging.getLogger(__name__)


class SyncEngine:
    """Bridges one local GameSession to a shared session document.

    Outbound: every local change schedules a publish of the whole snapshot
    through a Debouncer; the snapshot is taken when the window closes, so a
    burst of changes goes out as one publish carrying the latest state.

    Inbound: each snapshot delivered by the directory replaces the local
    roster, log and `game_ended` wholesale. Concurrent edits from two clients
    are not merged; whichever publish lands last wins for everyone.
    """

    def __init__(
        self,
        session: GameSession,
        directory: SessionDirectory,
        *,
        window: float = 0.5,
        flush_on_detach: bool = False,
        on_remote_snapshot: Callable[[SessionSnapshot], None] | None = None,
    ) -> None:
        self.session = session
        self.directory = directory
        self.flush_on_detach = flush_on_detach
        self.on_remote_snapshot = on_remote_snapshot
        self._debouncer = Debouncer(window)
        self._session_id: str | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._last_published: SessionSnapshot | None = None
        self.publish_count = 0

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def attached(self) -> bool:
        return self._session_id is not None

    @property
    def publish_pending(self) -> bool:
        return self._debouncer.pending

    # ---- session directory ----

    def host(self, initiator_id: str) -> str | None:
        """Create a new session and attach to it. Returns None if the directory failed."""

        session_id = self.directory.create_session(initiator_id)
        if session_id is None:
            logger.warning("could not create session for %s", initiator_id)
            return None
        # The host's table becomes the first document before anyone, including
        # the host, is subscribed to it.
        snapshot = self.session.snapshot()
        self.directory.publish_snapshot(session_id, snapshot)
        self.attach(session_id)
        self._last_published = snapshot
        return session_id

    def join(self, session_id: str, participant_id: str) -> bool:
        if not self.directory.join_session(session_id, participant_id):
            return False
        self.attach(session_id)
        return True

    def attach(self, session_id: str) -> None:
        if self._session_id is not None:
            self.detach()
        self._session_id = session_id
        self.session.add_listener(self.notify_local_change)
        self._unsubscribe = self.directory.subscribe(session_id, self._on_snapshot)
        logger.debug("attached to session %s", session_id)

    def detach(self) -> None:
        """Stop syncing. A pending publish is flushed or dropped per `flush_on_detach`."""

        if self._session_id is None:
            return
        if self.flush_on_detach:
            self._debouncer.flush()
        else:
            self._debouncer.cancel()
        self.session.remove_listener(self.notify_local_change)
        if self._unsubscribe is not None:
            self._unsubscribe()
        logger.debug("detached from session %s", self._session_id)
        self._unsubscribe = None
        self._session_id = None
        self._last_published = None

    # ---- outbound ----

    def notify_local_change(self) -> None:
        if self._session_id is None:
            return
        self._debouncer.schedule(self._publish)

    def flush(self) -> bool:
        return self._debouncer.flush()

    def _publish(self) -> None:
        session_id = self._session_id
        if session_id is None:
            return
        snapshot = self.session.snapshot()
        try:
            self.directory.publish_snapshot(session_id, snapshot)
        except Exception:
            # The directory is best-effort; the next local change publishes again.
            logger.exception("publish to session %s failed", session_id)
            return
        self._last_published = snapshot
        self.publish_count += 1
        logger.debug("published snapshot to %s (%d players)", session_id, len(snapshot.players))

    # ---- inbound ----

    def _on_snapshot(self, snapshot: SessionSnapshot) -> None:
        if self._session_id is None:
            return
        if snapshot == self._last_published or snapshot == self.session.snapshot():
            # Our own publish coming back, or nothing to change.
            return
        # Once a remote snapshot is adopted, our last publish is superseded.
        self._last_published = None
        self.session.adopt_snapshot(snapshot)
        logger.debug("adopted remote snapshot for %s", self._session_id)
        if self.on_remote_snapshot is not None:
            self.on_remote_snapshot(snapshot)
