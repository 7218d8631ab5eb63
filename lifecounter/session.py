from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from enum import StrEnum

from lifecounter.api.models import (
    DEFAULT_ICON,
    MANA_COLORS,
    MAX_PLAYERS,
    STARTING_LIFE,
    Player,
    PlayerStats,
    Preset,
    SessionSnapshot,
)
from lifecounter.core import events
from lifecounter.core.events import EventLog, local_now
from lifecounter.core.vitals import (
    CommanderDamageDelta,
    LifeDelta,
    PoisonDelta,
    VitalsDelta,
    apply_delta,
)
from lifecounter.fsm import SessionFSM, SessionPhase

logger = logging.getLogger(__name__)


class SessionEvent(StrEnum):
    """Game boundaries that outlive the session, such as saved preset stats."""

    game_won = "game_won"
    game_reset = "game_reset"


def default_stats() -> PlayerStats:
    return PlayerStats()


def reset_vitals(player: Player) -> Player:
    """Fresh-game copy of a player; stats are kept."""

    return player.model_copy(
        update={
            "life": STARTING_LIFE,
            "commander_damage": 0,
            "poison_counters": 0,
            "is_dead": False,
            "has_crown": False,
        }
    )


def next_player_id(players: list[Player]) -> int:
    return max((p.id for p in players), default=0) + 1


def next_mana_color(players: list[Player]) -> str:
    used = {p.mana_color for p in players}
    for color in MANA_COLORS:
        if color not in used:
            return color
    return MANA_COLORS[len(players) % len(MANA_COLORS)]


def accumulate_stats(player: Player, *, won: bool) -> PlayerStats:
    """Fold one finished game into a player's lifetime stats."""

    s = player.stats
    return s.model_copy(
        update={
            "games_played": s.games_played + 1,
            "wins": s.wins + (1 if won else 0),
            "total_life_gained": s.total_life_gained + max(0, player.life - STARTING_LIFE),
            "total_life_lost": s.total_life_lost + max(0, STARTING_LIFE - player.life),
            # No per-source attribution is tracked, so each player's own counters feed both sides.
            "total_commander_damage_dealt": s.total_commander_damage_dealt + player.commander_damage,
            "total_commander_damage_received": s.total_commander_damage_received + player.commander_damage,
            "total_poison_counters_given": s.total_poison_counters_given + player.poison_counters,
            "total_poison_counters_received": s.total_poison_counters_received + player.poison_counters,
        }
    )


class GameSession:
    """The single owned session aggregate: roster, event log and `game_ended`.

    Every mutation runs to completion synchronously. Operations that change
    the snapshot call `on_change` once afterwards; `adopt_snapshot` does not,
    so a snapshot received from the remote store is never published back.
    """

    def __init__(
        self,
        snapshot: SessionSnapshot | None = None,
        *,
        on_change: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._state = SessionSnapshot()
        self._log = EventLog(clock=clock)
        self._listeners: list[Callable[[], None]] = []
        self._lifecycle_listeners: list[Callable[[SessionEvent], None]] = []
        if on_change is not None:
            self._listeners.append(on_change)
        if snapshot is not None:
            self.adopt_snapshot(snapshot)

    # ---- read side ----

    @property
    def players(self) -> list[Player]:
        return list(self._state.players)

    @property
    def game_history(self) -> list[str]:
        return self._log.entries

    @property
    def game_ended(self) -> bool:
        return self._state.game_ended

    @property
    def phase(self) -> SessionPhase:
        return SessionFSM(self._state).phase

    @property
    def winner(self) -> Player | None:
        return next((p for p in self._state.players if p.has_crown), None)

    def get_player(self, player_id: int) -> Player | None:
        return next((p for p in self._state.players if p.id == player_id), None)

    def snapshot(self) -> SessionSnapshot:
        return self._state.model_copy(update={"game_history": self._log.entries}, deep=True)

    # ---- change notification ----

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def add_lifecycle_listener(self, listener: Callable[[SessionEvent], None]) -> None:
        self._lifecycle_listeners.append(listener)

    def remove_lifecycle_listener(self, listener: Callable[[SessionEvent], None]) -> None:
        if listener in self._lifecycle_listeners:
            self._lifecycle_listeners.remove(listener)

    def _announce(self, event: SessionEvent) -> None:
        for listener in list(self._lifecycle_listeners):
            listener(event)

    def _index_of(self, player_id: int) -> int | None:
        for idx, p in enumerate(self._state.players):
            if p.id == player_id:
                return idx
        return None

    # ---- roster ----

    def add_player(self) -> Player | None:
        if len(self._state.players) >= MAX_PLAYERS:
            return None

        pid = next_player_id(self._state.players)
        player = Player(
            id=pid,
            name=f"Player {pid}",
            mana_color=next_mana_color(self._state.players),
            icon=DEFAULT_ICON,
            stats=default_stats(),
        )

        fsm = SessionFSM(self._state)
        self._state.players.append(player)
        fsm.player_added()
        fsm.sync_phase_to_model()

        self._log.append(events.player_joined(player.name))
        self._changed()
        return player

    def remove_player(self, player_id: int) -> Player | None:
        idx = self._index_of(player_id)
        if idx is None:
            return None

        fsm = SessionFSM(self._state)
        player = self._state.players.pop(idx)
        fsm.player_removed()
        fsm.sync_phase_to_model()

        self._log.append(events.player_removed(player.name))
        # Removing a player can leave a single survivor.
        self._evaluate_victory()
        self._changed()
        return player

    def update_player(self, player: Player) -> bool:
        """Replace a roster entry wholesale (name, icon, mana color edits)."""

        idx = self._index_of(player.id)
        if idx is None:
            return False
        self._state.players[idx] = player
        self._log.append(events.player_updated(player.name))
        self._changed()
        return True

    # ---- vitals ----

    def apply_vitals_delta(self, player_id: int, delta: VitalsDelta) -> bool:
        """Apply a delta to one player.

        Returns False (and changes nothing) once the game has ended or when
        the player is not in the roster.
        """

        fsm = SessionFSM(self._state)
        if not fsm.accepts_vitals:
            return False

        idx = self._index_of(player_id)
        if idx is None:
            return False

        outcome = apply_delta(self._state.players[idx], delta)
        if not outcome.messages:
            return False

        self._state.players[idx] = outcome.player
        self._log.extend(outcome.messages)
        if outcome.eliminated:
            logger.debug("player %s eliminated", player_id)

        self._evaluate_victory()
        self._changed()
        return True

    def change_life(self, player_id: int, amount: int) -> bool:
        return self.apply_vitals_delta(player_id, LifeDelta(amount))

    def change_commander_damage(self, player_id: int, amount: int) -> bool:
        return self.apply_vitals_delta(player_id, CommanderDamageDelta(amount))

    def change_poison(self, player_id: int, amount: int) -> bool:
        return self.apply_vitals_delta(player_id, PoisonDelta(amount))

    def _evaluate_victory(self) -> Player | None:
        fsm = SessionFSM(self._state)
        if fsm.phase != SessionPhase.active:
            return None

        players = self._state.players
        alive = [p for p in players if not p.is_dead]
        if len(players) <= 1 or len(alive) != 1:
            return None

        winner_id = alive[0].id
        self._state.players = [
            p.model_copy(
                update={
                    "has_crown": p.id == winner_id,
                    "stats": accumulate_stats(p, won=p.id == winner_id),
                }
            )
            for p in players
        ]
        winner = alive[0]

        fsm.game_won()
        fsm.sync_phase_to_model()

        self._log.append(events.game_won(winner.name))
        logger.debug("game won by player %s", winner_id)
        self._announce(SessionEvent.game_won)
        return winner

    # ---- whole-session operations ----

    def reset_game(self) -> None:
        self._state.players = [reset_vitals(p) for p in self._state.players]

        fsm = SessionFSM(self._state)
        fsm.game_reset()
        fsm.sync_phase_to_model()

        self._log.replace([])
        self._log.append(events.game_reset())
        self._announce(SessionEvent.game_reset)
        self._changed()

    def log_event(self, message: str) -> str:
        """Record something that happened outside the vitals rules (dice, timer)."""

        entry = self._log.append(message)
        self._changed()
        return entry

    def load_preset(self, preset: Preset) -> None:
        if preset.game_state is not None:
            self._replace(preset.game_state)
        else:
            self._replace(
                SessionSnapshot(
                    players=[reset_vitals(p) for p in preset.players],
                    game_history=[],
                    game_ended=False,
                )
            )
        self._log.append(events.preset_loaded(preset.name))
        self._changed()

    def adopt_snapshot(self, snapshot: SessionSnapshot) -> None:
        """Destructively replace roster, log and flag with a snapshot.

        Last full write wins: nothing from the current local state survives.
        """

        self._replace(snapshot)

    def _replace(self, snapshot: SessionSnapshot) -> None:
        copy = snapshot.model_copy(deep=True)
        self._log.replace(copy.game_history)
        self._state = SessionSnapshot(players=copy.players, game_history=[], game_ended=copy.game_ended)
