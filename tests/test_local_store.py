from __future__ import annotations

import json

import fakeredis
import pytest
import redis

from lifecounter.api.models import PlayerStats
from lifecounter.local_store import LocalStore, PresetStore, SessionAutosave
from lifecounter.session import GameSession


@pytest.fixture()
def store(r: fakeredis.FakeRedis) -> LocalStore:
    return LocalStore(r, namespace="test")


def test_autosave_writes_after_every_change_and_restores(store: LocalStore, r: fakeredis.FakeRedis) -> None:
    autosave = SessionAutosave(store)
    session = GameSession()
    autosave.attach(session)

    session.add_player()
    session.add_player()
    session.change_life(1, -4)

    blob = json.loads(r.get("test:gameState"))  # type: ignore[arg-type]
    assert blob["players"][0]["life"] == 36
    assert "gameHistory" in blob and "gameEnded" in blob

    restored = SessionAutosave(store).restore()
    assert restored == session.snapshot()


def test_autosave_detach_stops_saving(store: LocalStore) -> None:
    autosave = SessionAutosave(store)
    session = GameSession()
    autosave.attach(session)
    session.add_player()
    autosave.detach()

    session.change_life(1, -10)
    restored = autosave.restore()
    assert restored is not None
    assert restored.players[0].life == 40


def test_restore_backfills_stats_from_older_blob(store: LocalStore) -> None:
    store.save(
        "gameState",
        {
            "players": [{"id": 1, "name": "Old", "life": 12, "commanderDamage": 0, "poisonCounters": 0, "isDead": False}],
            "gameHistory": ["[09:00:00] Old has joined the game."],
            "gameEnded": False,
        },
    )
    restored = SessionAutosave(store).restore()
    assert restored is not None
    assert restored.players[0].stats == PlayerStats()
    assert restored.players[0].life == 12


def test_restore_ignores_missing_or_unreadable_state(store: LocalStore, r: fakeredis.FakeRedis) -> None:
    assert SessionAutosave(store).restore() is None

    r.set("test:gameState", "{not json")
    assert SessionAutosave(store).restore() is None

    store.save("gameState", {"players": "nope"})
    assert SessionAutosave(store).restore() is None


def test_save_and_load_failures_are_swallowed(
    store: LocalStore, r: fakeredis.FakeRedis, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def _boom(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise redis.ConnectionError("down")

    monkeypatch.setattr(r, "set", _boom)
    monkeypatch.setattr(r, "get", _boom)

    session = GameSession()
    SessionAutosave(store).attach(session)
    # The in-memory session is unaffected by a failing store.
    assert session.add_player() is not None
    assert store.save("gameState", {"a": 1}) is False
    assert store.load("gameState") is None
    assert "failed to save" in caplog.text


def test_preset_saved_from_session_resets_vitals(store: LocalStore) -> None:
    presets = PresetStore(store)
    session = GameSession()
    session.add_player()
    session.add_player()
    session.change_life(1, -40)

    assert presets.save_from_session("   ", session) is None

    preset = presets.save_from_session("Friday night", session)
    assert preset is not None
    assert preset.game_state is None
    assert [(p.life, p.is_dead) for p in preset.players] == [(40, False), (40, False)]
    assert presets.list_presets() == [preset]
    assert presets.get(preset.id) == preset


def test_preset_ids_are_unique(store: LocalStore) -> None:
    presets = PresetStore(store)
    session = GameSession()
    session.add_player()

    ids = {presets.save_from_session(f"t{i}", session).id for i in range(5)}  # type: ignore[union-attr]
    assert len(ids) == 5


def test_save_current_game_creates_then_updates(store: LocalStore) -> None:
    presets = PresetStore(store)
    session = GameSession()
    session.add_player()
    session.add_player()

    created = presets.save_current_game(session)
    assert created.game_state is not None
    assert created.name.startswith("Game ")
    assert session.game_history[-1].endswith("New preset created with current game state.")

    session.change_poison(2, 3)
    updated = presets.save_current_game(session, preset_id=created.id)
    assert updated.id == created.id
    assert updated.game_state is not None
    assert updated.game_state.players[1].poison_counters == 3
    assert session.game_history[-1].endswith("Current game state saved.")
    assert len(presets.list_presets()) == 1


def test_rename_and_delete(store: LocalStore) -> None:
    presets = PresetStore(store)
    session = GameSession()
    session.add_player()
    preset = presets.save_from_session("old", session)
    assert preset is not None

    renamed = presets.rename(preset.id, "new")
    assert renamed is not None and renamed.name == "new"
    assert presets.rename(preset.id, "") is None
    assert presets.rename("missing", "x") is None

    assert presets.delete("missing") is False
    assert presets.delete(preset.id) is True
    assert presets.list_presets() == []


def test_invalid_presets_blob_reads_as_empty(store: LocalStore) -> None:
    store.save("presets", [{"id": 1}])
    assert PresetStore(store).list_presets() == []


def test_record_roster_replaces_players_and_clears_saved_game(store: LocalStore) -> None:
    presets = PresetStore(store)
    session = GameSession()
    session.add_player()
    session.add_player()
    saved = presets.save_current_game(session)
    assert saved.game_state is not None

    session.change_life(1, -40)
    updated = presets.record_roster(saved.id, session.players)

    assert updated is not None
    assert updated.game_state is None
    assert updated.players[1].stats.wins == 1
    assert presets.get(saved.id) == updated
    assert presets.record_roster("missing", session.players) is None
