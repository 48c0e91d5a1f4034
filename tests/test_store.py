"""
Tests for TrackStore: history, editing commands and observers.
"""
import pytest
import numpy as np

from trackeditor.core.errors import EmptyOperation, InvalidParameter, InvalidRange, TrackNotFound
from trackeditor.core.store import (
    TOPIC_CLIPBOARD,
    TOPIC_CURRENT_TRACK,
    TOPIC_HISTORY,
    TOPIC_REPEAT_REGION,
    TOPIC_SELECTION,
    TOPIC_TRACKS,
    TrackStore,
)

from conftest import TEST_SR, make_sine


class TestTrackManagement:

    def test_add_track_becomes_current(self, store, sine_buffer):
        track = store.add_track(sine_buffer, "Drums")
        assert store.tracks == (track,)
        assert store.current_track_id == track.id
        assert track.version > 0

    def test_remove_track(self, store_with_track):
        track = store_with_track.current_track
        store_with_track.remove_track(track.id)
        assert store_with_track.tracks == ()
        assert store_with_track.current_track_id is None

    def test_remove_unknown_track(self, store):
        with pytest.raises(TrackNotFound):
            store.remove_track("missing")

    def test_remove_current_falls_back_to_last(self, store, sine_buffer):
        a = store.add_track(sine_buffer, "A")
        b = store.add_track(sine_buffer, "B")
        store.add_track(sine_buffer, "C")
        store.set_current_track(b.id)
        store.remove_track(b.id)
        assert store.current_track.name == "C"
        assert store.find_track(a.id) is not None

    def test_duplicate_track(self, store, sine_buffer):
        a = store.add_track(sine_buffer, "A")
        store.add_track(sine_buffer, "B")
        copy = store.duplicate_track(a.id)
        assert [t.name for t in store.tracks] == ["A", "A (Copy)", "B"]
        assert copy.id != a.id
        assert copy.buffer == a.buffer
        assert store.current_track_id == copy.id

    def test_rename_requires_name(self, store_with_track):
        with pytest.raises(InvalidParameter):
            store_with_track.rename_track(store_with_track.current_track_id, "  ")

    def test_mix_settings_validated(self, store_with_track):
        tid = store_with_track.current_track_id
        with pytest.raises(InvalidParameter):
            store_with_track.set_pan(tid, 2.0)
        with pytest.raises(InvalidParameter):
            store_with_track.set_volume(tid, -1.0)
        assert store_with_track.current_track.pan == 0.0

    def test_toggle_mute(self, store_with_track):
        tid = store_with_track.current_track_id
        assert store_with_track.toggle_mute(tid).muted
        assert not store_with_track.toggle_mute(tid).muted

    def test_toggle_solo_is_exclusive(self, store, sine_buffer):
        a = store.add_track(sine_buffer, "A")
        b = store.add_track(sine_buffer, "B")
        store.toggle_solo(a.id)
        store.toggle_solo(b.id)
        assert not store.get_track(a.id).soloed
        assert store.get_track(b.id).soloed
        store.toggle_solo(b.id)
        assert not any(t.soloed for t in store.tracks)

    def test_project_name(self, store):
        store.set_project_name("Demo")
        assert store.project_name == "Demo"
        store.undo()
        assert store.project_name == "Test Project"


class TestHistory:

    def test_undo_redo_restores_exact_state(self, store_with_track):
        tid = store_with_track.current_track_id
        before = store_with_track.state
        store_with_track.set_volume(tid, 0.5)
        after = store_with_track.state

        assert store_with_track.undo()
        assert store_with_track.state == before
        assert store_with_track.redo()
        assert store_with_track.state == after

    def test_undo_with_nothing_to_undo(self, store):
        assert not store.undo()
        assert not store.redo()

    def test_new_command_clears_redo(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_volume(tid, 0.5)
        store_with_track.undo()
        store_with_track.set_pan(tid, 0.5)
        assert not store_with_track.can_redo

    def test_descriptions(self, store_with_track):
        assert store_with_track.undo_description == "Add track Main"
        store_with_track.undo()
        assert store_with_track.redo_description == "Add track Main"

    def test_history_depth_is_bounded(self, sine_buffer):
        store = TrackStore(max_history=3)
        track = store.add_track(sine_buffer)
        for i in range(10):
            store.set_volume(track.id, i / 10)
        assert len(store.history) == 3

    def test_view_state_not_in_history(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_volume(tid, 0.5)
        store_with_track.set_selection(tid, 1.0, 2.0)
        store_with_track.undo()
        assert store_with_track.selection is not None
        assert store_with_track.current_track.volume == 1.0

    def test_reset_keeps_name(self, store_with_track):
        store_with_track.reset()
        assert store_with_track.tracks == ()
        assert store_with_track.project_name == "Test Project"
        assert not store_with_track.can_undo
        assert store_with_track.clipboard is None

    def test_load_state(self, store, sine_buffer):
        from trackeditor.core.track import AudioTrack
        tracks = (AudioTrack(name="X", buffer=sine_buffer), AudioTrack(name="Y"))
        store.load_state("Loaded", tracks, current_track_id=tracks[1].id)
        assert store.project_name == "Loaded"
        assert store.current_track.name == "Y"
        assert all(t.version > 0 for t in store.tracks)
        with pytest.raises(TrackNotFound):
            store.load_state("Bad", tracks, current_track_id="nope")


class TestSelectionEditing:

    def test_copy_does_not_change_history(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 1.0, 2.0)
        entries = len(store_with_track.history)
        clip = store_with_track.copy_selection()
        assert clip.frames == TEST_SR
        assert len(store_with_track.history) == entries

    def test_cut_then_paste_restores(self, store_with_track):
        original = store_with_track.current_track.buffer
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 2.0, 4.0)
        store_with_track.cut_selection()
        assert store_with_track.current_track.duration == pytest.approx(8.0)
        assert store_with_track.selection is None

        store_with_track.set_cursor(2.0)
        store_with_track.paste()
        assert store_with_track.current_track.buffer == original

    def test_cut_whole_track_leaves_it_empty(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 0.0, 10.0)
        store_with_track.cut_selection()
        assert store_with_track.current_track.buffer is None

    def test_delete_does_not_touch_clipboard(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 0.0, 1.0)
        store_with_track.delete_selection()
        assert store_with_track.clipboard is None
        assert store_with_track.current_track.duration == pytest.approx(9.0)

    def test_edit_without_selection(self, store_with_track):
        with pytest.raises(EmptyOperation):
            store_with_track.cut_selection()

    def test_paste_empty_clipboard(self, store_with_track):
        with pytest.raises(EmptyOperation):
            store_with_track.paste()

    def test_paste_into_empty_track(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 0.0, 1.0)
        clip = store_with_track.copy_selection()
        empty = store_with_track.add_track(None, "Empty")
        store_with_track.paste()
        assert store_with_track.get_track(empty.id).buffer == clip

    def test_paste_cursor_clamped_to_end(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 0.0, 1.0)
        clip = store_with_track.copy_selection()
        store_with_track.set_cursor(50.0)
        track = store_with_track.paste()
        assert track.duration == pytest.approx(11.0)
        assert np.array_equal(track.buffer.samples[-clip.frames:], clip.samples)

    def test_paste_resamples_clip(self, store_with_track):
        main_id = store_with_track.current_track_id
        hifi = store_with_track.add_track(make_sine(1.0, sr=2 * TEST_SR), "Hi-fi")
        store_with_track.set_selection(hifi.id, 0.0, 1.0)
        store_with_track.copy_selection()
        store_with_track.set_current_track(main_id)
        track = store_with_track.paste()
        assert track.buffer.sample_rate == TEST_SR
        assert track.duration == pytest.approx(11.0)

    def test_negative_cursor(self, store):
        with pytest.raises(InvalidParameter):
            store.set_cursor(-1.0)


class TestSplit:

    def test_split_reconstructs_original(self, store_with_track):
        original = store_with_track.current_track
        second = store_with_track.split_track(original.id, 3.0)
        first = store_with_track.get_track(original.id)

        assert first.duration == pytest.approx(3.0)
        assert second.duration == pytest.approx(7.0)
        assert second.name == "Main (2)"
        assert first.buffer.concat(second.buffer) == original.buffer
        assert [t.id for t in store_with_track.tracks] == [original.id, second.id]

    @pytest.mark.parametrize("offset", [0.0, 10.0, 12.0, -1.0])
    def test_split_outside_track(self, store_with_track, offset):
        with pytest.raises(InvalidRange):
            store_with_track.split_track(store_with_track.current_track_id, offset)

    def test_split_is_one_undo_step(self, store_with_track):
        before = store_with_track.state
        store_with_track.split_track(store_with_track.current_track_id, 5.0)
        store_with_track.undo()
        assert store_with_track.state == before


class TestReplaceBuffers:

    def test_bumps_versions(self, store_with_track):
        track = store_with_track.current_track
        store_with_track.replace_buffers({track.id: make_sine(1.0)}, "Edit")
        assert store_with_track.current_track.version > track.version

    def test_empty_mapping(self, store):
        with pytest.raises(EmptyOperation):
            store.replace_buffers({}, "Nothing")

    def test_selection_cleared(self, store_with_track):
        tid = store_with_track.current_track_id
        store_with_track.set_selection(tid, 1.0, 2.0)
        store_with_track.replace_buffers({tid: make_sine(1.0)}, "Edit")
        assert store_with_track.selection is None


class TestRepeatRegion:

    def test_set_and_clear(self, store):
        store.set_repeat_region(5.0, 8.0)
        assert (store.repeat_region.start, store.repeat_region.end) == (5.0, 8.0)
        store.clear_repeat_region()
        assert store.repeat_region is None
        store.undo()
        assert store.repeat_region is not None

    @pytest.mark.parametrize("start,end", [(8.0, 5.0), (3.0, 3.0), (-1.0, 2.0)])
    def test_invalid_region(self, store, start, end):
        with pytest.raises(InvalidRange):
            store.set_repeat_region(start, end)


class TestObservers:

    @pytest.fixture
    def events(self, store):
        events = []
        for topic in (TOPIC_TRACKS, TOPIC_CURRENT_TRACK, TOPIC_SELECTION,
                      TOPIC_REPEAT_REGION, TOPIC_CLIPBOARD, TOPIC_HISTORY):
            store.subscribe(topic, lambda s, topic=topic: events.append(topic))
        return events

    def test_add_track_topics(self, store, events, sine_buffer):
        store.add_track(sine_buffer)
        assert set(events) == {TOPIC_TRACKS, TOPIC_CURRENT_TRACK, TOPIC_HISTORY}

    def test_selection_only(self, store, events, sine_buffer):
        track = store.add_track(sine_buffer)
        events.clear()
        store.set_selection(track.id, 0.1, 0.2)
        assert events == [TOPIC_SELECTION]

    def test_copy_notifies_clipboard(self, store, events, sine_buffer):
        track = store.add_track(sine_buffer)
        store.set_selection(track.id, 0.1, 0.2)
        events.clear()
        store.copy_selection()
        assert events == [TOPIC_CLIPBOARD]

    def test_failed_command_notifies_nothing(self, store, events):
        with pytest.raises(TrackNotFound):
            store.set_volume("missing", 0.5)
        assert events == []

    def test_unsubscribe(self, store, sine_buffer):
        seen = []
        unsubscribe = store.subscribe(TOPIC_TRACKS, lambda s: seen.append(len(s.tracks)))
        store.add_track(sine_buffer)
        unsubscribe()
        unsubscribe()
        store.add_track(sine_buffer)
        assert seen == [1]

    def test_failing_observer_does_not_break_store(self, store, sine_buffer):
        def broken(_):
            raise RuntimeError("boom")
        store.subscribe(TOPIC_TRACKS, broken)
        store.add_track(sine_buffer)
        assert len(store.tracks) == 1

    def test_unknown_topic(self, store):
        with pytest.raises(InvalidParameter):
            store.subscribe("volume", lambda s: None)

    def test_observer_sees_new_state(self, store, sine_buffer):
        seen = []
        store.subscribe(TOPIC_REPEAT_REGION, lambda s: seen.append(s.repeat_region))
        store.set_repeat_region(1.0, 2.0)
        assert seen[0].end == 2.0
