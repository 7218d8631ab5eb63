from __future__ import annotations

import asyncio

import fakeredis
import pytest

from lifecounter.client import build_redis_client
from lifecounter.config import Settings, settings_from_env


@pytest.fixture()
def settings() -> Settings:
    return Settings(redis_url="redis://unused", sync_window_ms=50, subscribe_poll_ms=10)


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://example:6379/2")
    monkeypatch.setenv("LIFECOUNTER_SYNC_WINDOW_MS", "1000")
    monkeypatch.setenv("LIFECOUNTER_FLUSH_ON_DETACH", "yes")
    monkeypatch.setenv("LIFECOUNTER_LOG_LEVEL", "debug")

    s = settings_from_env()
    assert s.redis_url == "redis://example:6379/2"
    assert s.sync_window == 1.0
    assert s.subscribe_poll_interval == 0.05
    assert s.flush_on_detach is True
    assert s.log_level == "DEBUG"


def test_client_restores_saved_game_per_device(settings: Settings, r: fakeredis.FakeRedis) -> None:
    first = build_redis_client(settings=settings, r=r, device_id="phone")
    first.session.add_player()
    first.session.change_life(1, -7)
    first.close()

    again = build_redis_client(settings=settings, r=r, device_id="phone")
    assert again.session.snapshot() == first.session.snapshot()

    other = build_redis_client(settings=settings, r=r, device_id="tablet")
    assert other.session.players == []


def test_client_loads_saved_preset(settings: Settings, r: fakeredis.FakeRedis) -> None:
    client = build_redis_client(settings=settings, r=r)
    client.session.add_player()
    client.session.add_player()
    preset = client.presets.save_from_session("Pod", client.session)
    assert preset is not None

    client.session.remove_player(2)
    assert client.load_preset(preset.id) is True
    assert len(client.session.players) == 2
    assert client.session.game_history[-1].endswith("Preset Pod loaded.")
    assert client.load_preset("missing") is False


@pytest.mark.asyncio
async def test_two_devices_share_one_table(settings: Settings, r: fakeredis.FakeRedis) -> None:
    host = build_redis_client(settings=settings, r=r, device_id="host")
    host.session.add_player()
    host.session.add_player()
    sid = host.host("host")
    assert sid is not None

    guest = build_redis_client(settings=settings, r=r, device_id="guest")
    assert guest.join(sid, "guest") is True
    await asyncio.sleep(0.05)
    assert guest.session.snapshot() == host.session.snapshot()

    guest.session.change_life(2, -3)
    await asyncio.sleep(0.2)
    assert host.session.get_player(2).life == 37  # type: ignore[union-attr]
    # The adopted table is autosaved on the host as well.
    restored = host.autosave.restore()
    assert restored is not None and restored.players[1].life == 37

    host.leave()
    guest.close()
    assert host.sync.attached is False
    assert guest.sync.attached is False


def test_finished_game_stats_are_written_back_to_loaded_preset(settings: Settings, r: fakeredis.FakeRedis) -> None:
    client = build_redis_client(settings=settings, r=r)
    client.session.add_player()
    client.session.add_player()
    preset = client.presets.save_from_session("Pod", client.session)
    assert preset is not None
    assert client.load_preset(preset.id) is True
    assert client.current_preset_id == preset.id

    client.session.change_poison(1, 10)

    stored = client.presets.get(preset.id)
    assert stored is not None
    assert [p.stats.wins for p in stored.players] == [0, 1]
    assert [p.stats.games_played for p in stored.players] == [1, 1]
    assert stored.players[1].has_crown is True
    assert stored.game_state is None

    client.session.reset_game()
    stored = client.presets.get(preset.id)
    assert stored is not None
    assert [p.poison_counters for p in stored.players] == [0, 0]
    assert [p.has_crown for p in stored.players] == [False, False]
    assert [p.stats.wins for p in stored.players] == [0, 1]


def test_saved_game_becomes_the_current_preset(settings: Settings, r: fakeredis.FakeRedis) -> None:
    client = build_redis_client(settings=settings, r=r)
    client.session.add_player()
    client.session.add_player()

    saved = client.save_current_game()
    assert client.current_preset_id == saved.id
    assert saved.game_state is not None

    client.session.change_life(2, -40)
    stored = client.presets.get(saved.id)
    assert stored is not None
    assert stored.players[0].stats.wins == 1
    assert stored.game_state is None


def test_deleted_preset_is_no_longer_tracked(settings: Settings, r: fakeredis.FakeRedis) -> None:
    client = build_redis_client(settings=settings, r=r)
    client.session.add_player()
    client.session.add_player()
    saved = client.save_current_game()
    client.presets.delete(saved.id)

    client.session.change_life(1, -40)
    assert client.current_preset_id is None
    assert client.presets.list_presets() == []


def test_games_without_a_preset_touch_no_presets(settings: Settings, r: fakeredis.FakeRedis) -> None:
    client = build_redis_client(settings=settings, r=r)
    client.session.add_player()
    client.session.add_player()
    client.session.change_life(1, -40)

    assert client.current_preset_id is None
    assert client.presets.list_presets() == []
