from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine

from lifecounter.api.models import SessionSnapshot


class SessionPhase(StrEnum):
    empty = "empty"
    active = "active"
    ended = "ended"


def phase_of(snapshot: SessionSnapshot) -> SessionPhase:
    if snapshot.game_ended:
        return SessionPhase.ended
    if not snapshot.players:
        return SessionPhase.empty
    return SessionPhase.active


class SessionFSM(StateMachine):
    """FSM wrapper around SessionSnapshot.

    The phase is not stored in the snapshot; it is derived from it each time
    the machine is built, and `sync_phase_to_model` writes `game_ended` back.
    - phases: empty -> active -> ended -> active (reset)
    - vitals changes are only accepted while active.
    """

    waiting = State(SessionPhase.empty.value, value=SessionPhase.empty.value, initial=True)
    playing = State(SessionPhase.active.value, value=SessionPhase.active.value)
    ended = State(SessionPhase.ended.value, value=SessionPhase.ended.value)

    player_added = waiting.to(playing) | playing.to.itself() | ended.to.itself()
    player_removed = playing.to(waiting, unless="has_players") | playing.to.itself() | ended.to.itself()
    game_won = playing.to(ended)
    game_reset = ended.to(playing, cond="has_players") | ended.to(waiting) | playing.to.itself() | waiting.to.itself()

    def __init__(self, snapshot: SessionSnapshot):
        self.snapshot = snapshot
        super().__init__(start_value=phase_of(snapshot).value)

    def has_players(self) -> bool:
        return bool(self.snapshot.players)

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state_value))

    @property
    def accepts_vitals(self) -> bool:
        return self.phase == SessionPhase.active

    def sync_phase_to_model(self) -> None:
        self.snapshot.game_ended = self.phase == SessionPhase.ended
