"""
Tests for the multi-track transport, driven through fake playback handles.
"""
import pytest

from trackeditor.core.config import PlaybackState
from trackeditor.core.errors import EmptyOperation, PlaybackFailed
from trackeditor.core.transport import TransportController

from conftest import FakePlayer, make_sine


@pytest.fixture
def transport(store_with_track, player_factory):
    transport = TransportController(store_with_track, player_factory)
    yield transport
    transport.close()


class TestHandles:

    def test_handle_per_track(self, store_with_track, transport, players):
        track = store_with_track.current_track
        assert set(players) == {track.id}
        assert players[track.id].buffer is track.buffer

    def test_new_track_gets_handle(self, store_with_track, transport, players):
        other = store_with_track.add_track(make_sine(2.0), "Other")
        assert transport.handle_for(other.id) is players[other.id]

    def test_removed_track_handle_closed(self, store_with_track, transport, players):
        tid = store_with_track.current_track_id
        store_with_track.remove_track(tid)
        assert players[tid].closed
        assert transport.handle_for(tid) is None

    def test_levels_follow_store(self, store_with_track, transport, players):
        tid = store_with_track.current_track_id
        store_with_track.set_volume(tid, 0.5)
        store_with_track.set_pan(tid, -0.25)
        assert players[tid].levels == (0.5, -0.25)

    def test_edited_buffer_reloaded_while_playing(self, store_with_track, transport, players):
        tid = store_with_track.current_track_id
        transport.play_all()
        store_with_track.replace_buffers({tid: make_sine(4.0)}, "Edit")
        assert players[tid].buffer is store_with_track.current_track.buffer
        assert players[tid].is_playing


class TestPlayback:

    def test_play_pause_stop(self, store_with_track, transport, players):
        player = players[store_with_track.current_track_id]
        transport.play_all()
        assert transport.state == PlaybackState.PLAYING
        assert player.is_playing

        transport.pause_all()
        assert transport.state == PlaybackState.PAUSED
        assert not player.is_playing

        player.position = 4.0
        positions = []
        transport.add_position_listener(positions.append)
        transport.stop_all()
        assert transport.state == PlaybackState.STOPPED
        assert player.position == 0.0
        assert positions == [0.0]

    def test_play_without_tracks(self, store, player_factory):
        transport = TransportController(store, player_factory)
        with pytest.raises(EmptyOperation):
            transport.play_all()

    def test_solo_plays_only_soloed(self, store_with_track, transport, players):
        main = store_with_track.current_track
        other = store_with_track.add_track(make_sine(10.0), "Other")
        store_with_track.toggle_solo(other.id)
        transport.play_all()
        assert players[other.id].is_playing
        assert not players[main.id].is_playing

    def test_unsolo_while_playing_rejoins_at_playhead(self, store_with_track, transport, players):
        main = store_with_track.current_track
        other = store_with_track.add_track(make_sine(10.0), "Other")
        store_with_track.toggle_solo(other.id)
        transport.play_all()
        players[other.id].position = 6.0

        store_with_track.toggle_solo(other.id)
        assert players[main.id].is_playing
        assert players[main.id].position == pytest.approx(6.0)
        assert players[other.id].position == pytest.approx(6.0)

    def test_unmute_while_playing_rejoins_at_playhead(self, store_with_track, transport, players):
        main = store_with_track.current_track
        other = store_with_track.add_track(make_sine(10.0), "Other")
        store_with_track.set_muted(main.id, True)
        transport.play_all()
        players[other.id].position = 4.0

        store_with_track.set_muted(main.id, False)
        assert players[main.id].is_playing
        assert players[main.id].position == pytest.approx(4.0)

    def test_play_after_solo_change_realigns(self, store_with_track, transport, players):
        main = store_with_track.current_track
        other = store_with_track.add_track(make_sine(10.0), "Other")
        store_with_track.toggle_solo(other.id)
        transport.play_all()
        players[other.id].position = 6.0
        transport.pause_all()

        store_with_track.toggle_solo(other.id)
        assert not players[main.id].is_playing
        transport.play_all()
        assert players[main.id].position == pytest.approx(6.0)
        assert players[main.id].is_playing and players[other.id].is_playing

    def test_device_failure_leaves_transport_stopped(self, store_with_track, players):
        class BrokenPlayer(FakePlayer):
            def play(self):
                raise PlaybackFailed("Output device unavailable")

        def factory(track):
            player = BrokenPlayer(track) if track.name == "Broken" else FakePlayer(track)
            players[track.id] = player
            return player

        main = store_with_track.current_track
        store_with_track.add_track(make_sine(10.0), "Broken")
        transport = TransportController(store_with_track, factory)
        with pytest.raises(PlaybackFailed):
            transport.play_all()
        assert transport.state == PlaybackState.STOPPED
        assert not players[main.id].is_playing
        transport.close()

    def test_mute_while_playing_pauses(self, store_with_track, transport, players):
        tid = store_with_track.current_track_id
        transport.play_all()
        store_with_track.set_muted(tid, True)
        assert not players[tid].is_playing

    def test_seek_clamps_per_track(self, store_with_track, transport, players):
        main = store_with_track.current_track
        short = store_with_track.add_track(make_sine(2.0), "Short")
        transport.seek_all(5.0)
        assert players[main.id].position == pytest.approx(5.0)
        assert players[short.id].position == pytest.approx(2.0)
        assert transport.current_time == pytest.approx(5.0)

    def test_toggle(self, transport):
        transport.toggle_play_pause()
        assert transport.is_playing
        transport.toggle_play_pause()
        assert transport.state == PlaybackState.PAUSED

    def test_state_callback(self, store_with_track, player_factory):
        states = []
        transport = TransportController(store_with_track, player_factory, on_state_changed=states.append)
        transport.play_all()
        transport.stop_all()
        transport.close()
        assert states == [PlaybackState.PLAYING, PlaybackState.STOPPED]


class TestRepeatRegion:

    def test_loops_back_at_region_end(self, store_with_track, transport, players):
        store_with_track.set_repeat_region(5.0, 8.0)
        player = players[store_with_track.current_track_id]
        transport.seek_all(5.0)
        transport.play_all()

        player.position = 6.5
        assert transport.tick() == pytest.approx(6.5)
        player.position = 8.0
        assert transport.tick() == pytest.approx(5.0)
        assert player.position == pytest.approx(5.0)

    def test_no_loop_when_started_after_region(self, store_with_track, transport, players):
        store_with_track.set_repeat_region(2.0, 3.0)
        player = players[store_with_track.current_track_id]
        transport.seek_all(6.0)
        transport.play_all()
        player.position = 7.0
        assert transport.tick() == pytest.approx(7.0)

    def test_no_loop_when_paused(self, store_with_track, transport, players):
        store_with_track.set_repeat_region(5.0, 8.0)
        player = players[store_with_track.current_track_id]
        transport.seek_all(5.0)
        player.position = 9.0
        assert transport.tick() == pytest.approx(9.0)

    def test_tick_reports_position(self, transport):
        positions = []
        transport.add_position_listener(positions.append)
        transport.tick()
        assert positions == [0.0]

    def test_monitor_thread_starts_and_stops(self, transport):
        transport.start_monitor()
        transport.start_monitor()
        transport.stop_monitor()
