"""Vitals rules: pure functions from (player, delta) to the updated player.

Nothing here touches the roster or the log; callers write the returned player
back and append the returned messages.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from lifecounter.api.models import COMMANDER_DAMAGE_LETHAL, POISON_LETHAL, Player
from lifecounter.core import events


class EliminationCause(StrEnum):
    life = "life"
    commander_damage = "commanderDamage"
    poison = "poisonCounters"


@dataclass(frozen=True, slots=True)
class LifeDelta:
    amount: int


@dataclass(frozen=True, slots=True)
class CommanderDamageDelta:
    amount: int


@dataclass(frozen=True, slots=True)
class PoisonDelta:
    amount: int


VitalsDelta = LifeDelta | CommanderDamageDelta | PoisonDelta


@dataclass(frozen=True, slots=True)
class VitalsOutcome:
    player: Player
    messages: list[str] = field(default_factory=list)
    eliminated: bool = False


def delta_from_kind(kind: str, amount: int) -> VitalsDelta:
    """Map the wire tag used by clients onto a delta."""

    if kind == EliminationCause.life:
        return LifeDelta(amount)
    if kind == EliminationCause.commander_damage:
        return CommanderDamageDelta(amount)
    if kind == EliminationCause.poison:
        return PoisonDelta(amount)
    raise ValueError(f"Unknown vitals kind: {kind}")


def elimination_causes(player: Player) -> list[EliminationCause]:
    causes: list[EliminationCause] = []
    if player.life == 0:
        causes.append(EliminationCause.life)
    if player.commander_damage >= COMMANDER_DAMAGE_LETHAL:
        causes.append(EliminationCause.commander_damage)
    if player.poison_counters >= POISON_LETHAL:
        causes.append(EliminationCause.poison)
    return causes


def is_eliminated(player: Player) -> bool:
    return bool(elimination_causes(player))


def _elimination_message(player: Player, preferred: EliminationCause) -> str:
    causes = elimination_causes(player)
    cause = preferred if preferred in causes else causes[0]
    if cause == EliminationCause.commander_damage:
        return events.eliminated_by_commander_damage(player.name)
    if cause == EliminationCause.poison:
        return events.eliminated_by_poison(player.name)
    return events.eliminated_by_life_loss(player.name)


def _finish(before: Player, after: Player, change_message: str, cause: EliminationCause) -> VitalsOutcome:
    # isDead is re-derived from every predicate, but never cleared mid-game.
    dead = before.is_dead or is_eliminated(after)
    after = after.model_copy(update={"is_dead": dead})

    messages = [change_message]
    eliminated = dead and not before.is_dead
    if eliminated:
        messages.append(_elimination_message(after, cause))
    return VitalsOutcome(player=after, messages=messages, eliminated=eliminated)


def apply_life_delta(player: Player, amount: int) -> VitalsOutcome:
    if amount == 0:
        return VitalsOutcome(player=player)
    life = max(0, player.life + amount)
    after = player.model_copy(update={"life": life})
    return _finish(player, after, events.life_changed(player.name, amount, life), EliminationCause.life)


def apply_commander_damage_delta(player: Player, amount: int) -> VitalsOutcome:
    """Commander damage also depletes life one for one."""

    if amount == 0:
        return VitalsOutcome(player=player)
    commander_damage = max(0, player.commander_damage + amount)
    life = max(0, player.life - amount)
    after = player.model_copy(update={"commander_damage": commander_damage, "life": life})
    return _finish(
        player,
        after,
        events.commander_damage_changed(player.name, amount, commander_damage),
        EliminationCause.commander_damage,
    )


def apply_poison_delta(player: Player, amount: int) -> VitalsOutcome:
    if amount == 0:
        return VitalsOutcome(player=player)
    poison = max(0, player.poison_counters + amount)
    after = player.model_copy(update={"poison_counters": poison})
    return _finish(player, after, events.poison_changed(player.name, amount, poison), EliminationCause.poison)


def apply_delta(player: Player, delta: VitalsDelta) -> VitalsOutcome:
    match delta:
        case LifeDelta(amount=amount):
            return apply_life_delta(player, amount)
        case CommanderDamageDelta(amount=amount):
            return apply_commander_damage_delta(player, amount)
        case PoisonDelta(amount=amount):
            return apply_poison_delta(player, amount)
    raise TypeError(f"Unsupported vitals delta: {delta!r}")
