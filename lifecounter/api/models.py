from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

STARTING_LIFE = 40
COMMANDER_DAMAGE_LETHAL = 21
POISON_LETHAL = 10
MAX_PLAYERS = 4

MANA_COLORS: tuple[str, ...] = ("white", "blue", "black", "red", "green")
DEFAULT_ICON = "https://gatherer.wizards.com/Handlers/Image.ashx?type=card&multiverseid=0"


class _WireModel(BaseModel):
    # Blobs shared with other clients use camelCase keys.
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)

    def to_wire_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class PlayerStats(_WireModel):
    games_played: int = Field(0, ge=0, alias="gamesPlayed")
    wins: int = Field(0, ge=0)
    total_life_gained: int = Field(0, ge=0, alias="totalLifeGained")
    total_life_lost: int = Field(0, ge=0, alias="totalLifeLost")
    total_commander_damage_dealt: int = Field(0, ge=0, alias="totalCommanderDamageDealt")
    total_commander_damage_received: int = Field(0, ge=0, alias="totalCommanderDamageReceived")
    total_poison_counters_given: int = Field(0, ge=0, alias="totalPoisonCountersGiven")
    total_poison_counters_received: int = Field(0, ge=0, alias="totalPoisonCountersReceived")


class Player(_WireModel):
    id: int
    name: str
    life: int = Field(STARTING_LIFE, ge=0)
    commander_damage: int = Field(0, ge=0, alias="commanderDamage")
    poison_counters: int = Field(0, ge=0, alias="poisonCounters")

    # Derived from the vitals; only a reset clears it.
    is_dead: bool = Field(False, alias="isDead")
    has_crown: bool = Field(False, alias="hasCrown")

    mana_color: str = Field(MANA_COLORS[0], alias="manaColor")
    icon: str = DEFAULT_ICON

    # Older blobs were saved before stats existed.
    stats: PlayerStats = Field(default_factory=PlayerStats)

    @field_validator("stats", mode="before")
    @classmethod
    def _default_missing_stats(cls, value: object) -> object:
        return PlayerStats() if value is None else value


class SessionSnapshot(_WireModel):
    """The unit of synchronization: roster, event log and the ended flag."""

    players: list[Player] = Field(default_factory=list)
    game_history: list[str] = Field(default_factory=list, alias="gameHistory")
    game_ended: bool = Field(False, alias="gameEnded")

    @field_validator("game_history", mode="before")
    @classmethod
    def _drop_missing_entries(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [v for v in value if v is not None]
        return value


class Preset(_WireModel):
    id: str
    name: str
    players: list[Player] = Field(default_factory=list)
    game_state: SessionSnapshot | None = Field(None, alias="gameState")


VitalsKind = Literal["life", "commanderDamage", "poisonCounters"]


class VitalsChangeRequest(BaseModel):
    kind: VitalsKind
    amount: int


class PlayerUpdateRequest(_WireModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    icon: str | None = None
    mana_color: str | None = Field(None, alias="manaColor")

    @field_validator("mana_color")
    @classmethod
    def _known_mana_color(cls, value: str | None) -> str | None:
        if value is not None and value not in MANA_COLORS:
            raise ValueError(f"mana color must be one of {', '.join(MANA_COLORS)}")
        return value


class LogEventRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class SessionCreateRequest(BaseModel):
    initiator_id: str = Field(..., min_length=1)


class SessionJoinRequest(BaseModel):
    participant_id: str = Field(..., min_length=1)


class SessionIdResponse(BaseModel):
    session_id: str
