from __future__ import annotations

import re
from datetime import datetime

from lifecounter.core import events
from lifecounter.core.events import EventLog, format_entry


def test_append_prefixes_local_time() -> None:
    log = EventLog(clock=lambda: datetime(2024, 5, 1, 9, 5, 7))
    entry = log.append("Alice has joined the game.")

    assert entry == "[09:05:07] Alice has joined the game."
    assert log.entries == [entry]


def test_default_clock_format() -> None:
    log = EventLog()
    entry = log.append("hello")
    assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] hello", entry)


def test_same_tick_appends_keep_program_order() -> None:
    log = EventLog(clock=lambda: datetime(2024, 5, 1, 9, 0, 0))
    log.extend(["first", "second", "third"])
    assert [e.split("] ", 1)[1] for e in log.entries] == ["first", "second", "third"]


def test_entries_is_a_copy_and_replace_is_wholesale() -> None:
    log = EventLog(["[00:00:00] a"])
    snapshot = log.entries
    snapshot.append("mutated")
    assert len(log) == 1

    log.replace(["[01:00:00] x", "[01:00:01] y"])
    assert log.entries == ["[01:00:00] x", "[01:00:01] y"]


def test_canonical_messages() -> None:
    assert events.player_joined("Bob") == "Bob has joined the game."
    assert events.player_removed("Bob") == "Bob has been removed from the game."
    assert events.player_updated("Bob") == "Bob's information has been updated."
    assert events.life_changed("Bob", -3, 37) == "Bob lost 3 life. New total: 37"
    assert events.commander_damage_changed("Bob", 7, 7) == "Bob received 7 commander damage. New total: 7"
    assert events.poison_changed("Bob", 2, 2) == "Bob gained 2 poison counters. New total: 2"
    assert events.game_won("Bob") == "Bob has won the game!"
    assert events.game_reset() == "Game has been reset. New game starting!"
    assert events.dice_rolled(17) == "Dice roll result: 17"
    assert format_entry("x", at=datetime(2024, 1, 1, 23, 59, 59)) == "[23:59:59] x"
