"""Tests for the playback state machine."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from course_player.exceptions import StorageError
from course_player.playback import (
    LoadingPhase,
    MediaEvent,
    PlaybackController,
    PlayerOptions,
    SimulatedEngine,
)
from course_player.progress import ProgressRecord


def tracked_options(source="lesson.mp4", **kwargs):
    kwargs.setdefault("on_progress", MagicMock())
    return PlayerOptions(
        source_reference=source,
        course_id="course-1",
        lesson_id="lesson-1",
        user_id="user-1",
        **kwargs,
    )


@pytest.fixture
def make_player(engine, resolver, test_settings):
    players = []

    def factory(options=None, **kwargs):
        kwargs.setdefault("settings", test_settings)
        player_engine = kwargs.pop("engine", engine)
        player = PlaybackController(options or tracked_options(), player_engine, resolver, **kwargs)
        players.append(player)
        return player

    yield factory

    for player in players:
        player.close()


async def ready_player(make_player, engine, **kwargs):
    player = make_player(**kwargs)
    await player.load()
    engine.become_ready()
    await player.settle()
    return player


# Loading lifecycle


@pytest.mark.asyncio
async def test_starts_initializing(make_player):
    player = make_player()
    assert player.phase is LoadingPhase.INITIALIZING
    assert player.session.is_loading


@pytest.mark.asyncio
async def test_load_moves_to_buffering(make_player, engine):
    player = make_player()

    await player.load()

    assert player.phase is LoadingPhase.BUFFERING
    assert player.session.resolved_url.endswith("lesson.mp4?token=abc")
    assert engine.src == player.session.resolved_url


@pytest.mark.asyncio
async def test_direct_url_skips_storage(make_player, engine, storage):
    player = make_player(PlayerOptions(source_reference="https://example.com/direct-video.mp4"))

    await player.load()

    assert player.session.resolved_url == "https://example.com/direct-video.mp4"
    storage.get_public_url.assert_not_called()
    storage.create_signed_url.assert_not_called()


@pytest.mark.asyncio
async def test_missing_reference_goes_to_error(make_player, storage):
    player = make_player(PlayerOptions(source_reference=""))

    await player.load()

    assert player.phase is LoadingPhase.ERROR
    assert player.session.error == "No video URL provided"
    storage.create_signed_url.assert_not_called()


@pytest.mark.asyncio
async def test_signed_url_failure_surfaces_message(make_player, storage):
    storage.create_signed_url.side_effect = StorageError("The resource was not found")
    player = make_player()

    await player.load()

    assert player.phase is LoadingPhase.ERROR
    assert "The resource was not found" in player.session.error
    assert player.session.resolved_url is None


@pytest.mark.asyncio
async def test_resolution_timeout(make_player, storage, test_settings):
    test_settings.resolution_timeout = 0.05

    async def hang(*args):
        await asyncio.sleep(10)

    storage.create_signed_url.side_effect = hang
    player = make_player()

    await player.load()

    assert player.phase is LoadingPhase.ERROR
    assert "Timed out" in player.session.error


@pytest.mark.asyncio
async def test_can_play_moves_to_ready(make_player, engine):
    player = await ready_player(make_player, engine)

    assert player.phase is LoadingPhase.READY
    assert player.session.duration == 1000.0
    assert player.session.is_playing is False


@pytest.mark.asyncio
async def test_can_play_ignored_without_url(make_player, engine):
    player = make_player()
    engine.emit(MediaEvent.CAN_PLAY)
    assert player.phase is LoadingPhase.INITIALIZING


@pytest.mark.asyncio
async def test_autoplay(make_player, engine):
    player = await ready_player(make_player, engine, options=tracked_options(auto_play=True))

    assert player.session.is_playing is True
    assert not engine.paused


@pytest.mark.asyncio
async def test_autoplay_rejection_is_not_an_error(make_player, test_settings):
    blocked = SimulatedEngine(duration=1000.0, allow_autoplay=False)
    player = make_player(tracked_options(auto_play=True), engine=blocked)

    await player.load()
    blocked.become_ready()
    await player.settle()

    assert player.phase is LoadingPhase.READY
    assert player.session.error is None
    assert player.session.is_playing is False


@pytest.mark.asyncio
async def test_autoplay_only_once_per_load(make_player, engine):
    player = await ready_player(make_player, engine, options=tracked_options(auto_play=True))
    player.pause()

    # Re-buffering after the viewer paused must not restart playback
    engine.stall()
    engine.resume_data()
    await player.settle()

    assert engine.play_calls == 1
    assert engine.paused


@pytest.mark.asyncio
async def test_waiting_rebuffers(make_player, engine):
    player = await ready_player(make_player, engine)
    await player.toggle_play()

    engine.stall()
    assert player.phase is LoadingPhase.BUFFERING
    assert player.session.error is None

    engine.resume_data()
    assert player.phase is LoadingPhase.READY


@pytest.mark.asyncio
async def test_engine_error(make_player, engine):
    player = await ready_player(make_player, engine)

    engine.fail("MEDIA_ERR_DECODE")

    assert player.phase is LoadingPhase.ERROR
    assert player.session.error == "Failed to load video: MEDIA_ERR_DECODE"


@pytest.mark.asyncio
async def test_engine_error_without_message(make_player, engine):
    player = await ready_player(make_player, engine)

    engine.fail()

    assert player.session.error == "Failed to load video: Unknown error"


@pytest.mark.asyncio
async def test_retry_resolves_again(make_player, storage):
    storage.create_signed_url.side_effect = [
        StorageError("temporarily unavailable"),
        "https://project.supabase.co/storage/v1/object/sign/videos/lesson.mp4?token=new",
    ]
    player = make_player()

    await player.load()
    assert player.phase is LoadingPhase.ERROR

    await player.retry()

    assert player.phase is LoadingPhase.BUFFERING
    assert player.session.error is None
    assert player.session.resolved_url.endswith("token=new")
    assert storage.create_signed_url.await_count == 2


@pytest.mark.asyncio
async def test_retry_after_engine_error_resets_playback(make_player, engine):
    player = await ready_player(make_player, engine)
    await player.toggle_play()
    engine.advance(3)
    engine.fail("MEDIA_ERR_NETWORK")

    await player.retry()
    engine.become_ready()

    assert player.session.is_playing is False
    assert player.session.current_time == 0.0

    await player.toggle_play()

    assert player.session.is_playing is True
    assert not engine.paused

@pytest.mark.asyncio
async def test_stale_resolution_is_discarded(make_player, storage, engine):
    release = asyncio.Event()

    async def slow(*args):
        await release.wait()
        return "https://example.com/late.mp4"

    storage.create_signed_url.side_effect = slow
    player = make_player()

    pending = asyncio.ensure_future(player.load())
    await asyncio.sleep(0)
    player.close()
    release.set()
    await pending

    assert player.session.resolved_url is None
    assert engine.src is None


# Manual controls


@pytest.mark.asyncio
async def test_toggle_play(make_player, engine):
    player = await ready_player(make_player, engine)

    await player.toggle_play()
    assert player.session.is_playing is True
    assert not engine.paused

    await player.toggle_play()
    assert player.session.is_playing is False
    assert engine.paused


@pytest.mark.asyncio
async def test_toggle_play_failure_is_logged(make_player):
    blocked = SimulatedEngine(duration=1000.0, allow_autoplay=False)
    player = make_player(engine=blocked)
    await player.load()
    blocked.become_ready()

    await player.toggle_play()

    assert player.session.error is None
    assert blocked.play_calls == 1


@pytest.mark.asyncio
async def test_set_volume(make_player, engine):
    player = make_player()

    player.set_volume(0.4)
    assert engine.volume == 0.4
    assert player.session.is_muted is False

    player.set_volume(0)
    assert player.session.is_muted is True

    player.set_volume(0.8)
    assert player.session.is_muted is False

    player.set_volume(1.7)
    assert player.session.volume == 1.0


@pytest.mark.asyncio
async def test_toggle_mute_restores_volume(make_player, engine):
    player = make_player()
    player.set_volume(0.35)

    player.toggle_mute()
    assert player.session.is_muted is True
    assert player.session.volume == 0.0
    assert engine.muted is True

    player.toggle_mute()
    assert player.session.is_muted is False
    assert player.session.volume == 0.35
    assert engine.volume == 0.35


@pytest.mark.asyncio
async def test_unmute_without_snapshot_uses_default(make_player):
    player = make_player()
    player.set_volume(0)

    player.toggle_mute()

    assert player.session.volume == 0.7
    assert player.session.is_muted is False


@pytest.mark.asyncio
async def test_seek_while_paused_reports_immediately(make_player, engine):
    options = tracked_options()
    player = await ready_player(make_player, engine, options=options)

    position = player.seek(0.5)

    assert position == 500.0
    assert engine.current_time == 500.0
    options.on_progress.assert_called_once_with(500.0)
    assert player.session.last_reported_time == 500.0


@pytest.mark.asyncio
async def test_seek_while_playing_uses_throttle(make_player, engine):
    options = tracked_options()
    player = await ready_player(make_player, engine, options=options)
    await player.toggle_play()

    player.seek(0.002)

    # 2s into a 1000s clip is below both thresholds
    options.on_progress.assert_not_called()
    assert engine.current_time == 2.0


@pytest.mark.asyncio
async def test_seek_without_duration_is_noop(make_player, engine):
    player = make_player()
    await player.load()

    assert player.seek(0.5) is None
    assert engine.seek_history == []


@pytest.mark.asyncio
async def test_toggle_full_screen(make_player, engine):
    player = await ready_player(make_player, engine)

    await player.toggle_full_screen()
    assert player.session.is_full_screen is True

    await player.toggle_full_screen()
    assert player.session.is_full_screen is False


@pytest.mark.asyncio
async def test_full_screen_denied_is_logged(make_player):
    denied = SimulatedEngine(allow_fullscreen=False)
    player = make_player(engine=denied)

    await player.toggle_full_screen()

    assert player.session.is_full_screen is False
    assert player.session.error is None


# Progress


@pytest.mark.asyncio
async def test_playback_reports_throttled_progress(make_player, engine):
    options = tracked_options()
    player = await ready_player(make_player, engine, options=options)
    await player.toggle_play()

    engine.advance(6)

    options.on_progress.assert_called_once_with(6.0)
    assert player.session.current_time == 6.0


@pytest.mark.asyncio
async def test_no_tracking_without_user(make_player, engine):
    on_progress = MagicMock()
    options = PlayerOptions(source_reference="lesson.mp4", lesson_id="lesson-1", on_progress=on_progress)
    player = await ready_player(make_player, engine, options=options)
    await player.toggle_play()

    engine.advance(30)
    engine.emit(MediaEvent.ENDED)

    on_progress.assert_not_called()


@pytest.mark.asyncio
async def test_completion_reported_once(make_player, engine):
    options = tracked_options()
    player = await ready_player(make_player, engine, options=options)
    await player.toggle_play()
    engine.advance(990)
    options.on_progress.reset_mock()

    engine.advance(20)

    completions = [c for c in options.on_progress.call_args_list if c.args[1:] == (True,)]
    assert completions == [call(1000.0, True)]
    assert player.session.is_playing is False


@pytest.mark.asyncio
async def test_async_progress_callback(make_player, engine):
    on_progress = AsyncMock()
    player = await ready_player(make_player, engine, options=tracked_options(on_progress=on_progress))

    player.seek(0.25)
    await player.settle()

    on_progress.assert_awaited_once_with(250.0)


@pytest.mark.asyncio
async def test_resumes_saved_position(make_player, engine):
    store = MagicMock()
    store.read_progress = AsyncMock(
        return_value=ProgressRecord(user_id="user-1", lesson_id="lesson-1", watch_time=500.0)
    )
    options = tracked_options()
    player = await ready_player(make_player, engine, options=options, progress_store=store)

    assert engine.seek_history == [500.0]
    assert player.session.current_time == 500.0
    # The resumed position is not written back
    options.on_progress.assert_not_called()

    # A second metadata event does not seek again
    engine.emit(MediaEvent.LOADED_METADATA)
    await player.settle()
    assert engine.seek_history == [500.0]
    store.read_progress.assert_awaited_once_with("user-1", "lesson-1")


@pytest.mark.asyncio
async def test_does_not_resume_near_end(make_player, engine):
    store = MagicMock()
    store.read_progress = AsyncMock(
        return_value=ProgressRecord(user_id="user-1", lesson_id="lesson-1", watch_time=950.0)
    )
    player = await ready_player(make_player, engine, progress_store=store)

    assert engine.seek_history == []
    assert player.session.current_time == 0.0


# Controls auto-hide


@pytest.mark.asyncio
async def test_controls_hide_while_playing(make_player, engine, test_settings):
    test_settings.controls_hide_delay = 0.01
    player = await ready_player(make_player, engine)
    await player.toggle_play()

    player.pointer_moved()
    assert player.session.controls_visible is True

    await asyncio.sleep(0.05)
    assert player.session.controls_visible is False


@pytest.mark.asyncio
async def test_controls_stay_while_paused(make_player, engine, test_settings):
    test_settings.controls_hide_delay = 0.01
    player = await ready_player(make_player, engine)

    player.pointer_moved()
    await asyncio.sleep(0.05)

    assert player.session.controls_visible is True


# Teardown


@pytest.mark.asyncio
async def test_close_removes_listeners_and_timers(make_player, engine):
    player = await ready_player(make_player, engine)
    await player.toggle_play()
    player.pointer_moved()

    player.close()

    assert engine.listener_count() == 0
    assert len(player.timers) == 0


@pytest.mark.asyncio
async def test_pointer_after_close_arms_no_timer(make_player, engine):
    player = await ready_player(make_player, engine)
    await player.toggle_play()
    player.close()

    player.pointer_moved()
    player.pointer_left()

    assert len(player.timers) == 0


@pytest.mark.asyncio
async def test_context_manager(engine, resolver, test_settings):
    async with PlaybackController(tracked_options(), engine, resolver, settings=test_settings) as player:
        assert player.phase is LoadingPhase.BUFFERING

    assert engine.listener_count() == 0
