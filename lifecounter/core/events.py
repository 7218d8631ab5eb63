from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime


def local_now() -> datetime:
    return datetime.now().astimezone()


def format_entry(message: str, *, at: datetime) -> str:
    return f"[{at.strftime('%H:%M:%S')}] {message}"


class EventLog:
    """Append-only, human-readable history of a session.

    Entries are only ever appended, or replaced wholesale when a remote
    snapshot is adopted or the game is reset.
    """

    def __init__(self, entries: Iterable[str] | None = None, *, clock: Callable[[], datetime] = local_now) -> None:
        self._entries: list[str] = list(entries or [])
        self._clock = clock

    def append(self, message: str) -> str:
        entry = format_entry(message, at=self._clock())
        self._entries.append(entry)
        return entry

    def extend(self, messages: Iterable[str]) -> list[str]:
        return [self.append(m) for m in messages]

    def replace(self, entries: Iterable[str]) -> None:
        self._entries = list(entries)

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ---- canonical messages ----


def player_joined(name: str) -> str:
    return f"{name} has joined the game."


def player_removed(name: str) -> str:
    return f"{name} has been removed from the game."


def player_updated(name: str) -> str:
    return f"{name}'s information has been updated."


def life_changed(name: str, amount: int, total: int) -> str:
    action = "gained" if amount > 0 else "lost"
    return f"{name} {action} {abs(amount)} life. New total: {total}"


def commander_damage_changed(name: str, amount: int, total: int) -> str:
    if amount < 0:
        return f"{name} healed {abs(amount)} commander damage. New total: {total}"
    return f"{name} received {amount} commander damage. New total: {total}"


def poison_changed(name: str, amount: int, total: int) -> str:
    action = "gained" if amount > 0 else "lost"
    return f"{name} {action} {abs(amount)} poison counters. New total: {total}"


def eliminated_by_life_loss(name: str) -> str:
    return f"{name} has been eliminated due to loss of life!"


def eliminated_by_commander_damage(name: str) -> str:
    return f"{name} has been eliminated by commander damage!"


def eliminated_by_poison(name: str) -> str:
    return f"{name} has been eliminated by poison!"


def game_won(name: str) -> str:
    return f"{name} has won the game!"


def game_reset() -> str:
    return "Game has been reset. New game starting!"


def time_up() -> str:
    return "Time's up!"


def dice_rolled(result: int) -> str:
    return f"Dice roll result: {result}"


def preset_loaded(name: str) -> str:
    return f"Preset {name} loaded."


def game_state_saved() -> str:
    return "Current game state saved."


def preset_created() -> str:
    return "New preset created with current game state."
