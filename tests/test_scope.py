"""
Tests for effect scope resolution.
"""
import pytest

from trackeditor.core.config import Scope
from trackeditor.core.errors import InvalidParameter, InvalidRange
from trackeditor.core.scope import resolve
from trackeditor.core.types import EditTarget

from conftest import TEST_SR, make_sine


class TestResolve:

    def test_all_skips_empty_tracks(self, store_with_track):
        main = store_with_track.current_track
        store_with_track.add_track(None, "Empty")
        targets = resolve(Scope.ALL, store_with_track.view())
        assert targets == [EditTarget(main.id, 0, main.duration_samples)]

    def test_track_scope_uses_current_track(self, store_with_track):
        other = store_with_track.add_track(make_sine(2.0), "Other")
        targets = resolve("track", store_with_track.view())
        assert targets == [EditTarget(other.id, 0, 2 * TEST_SR)]

    def test_selection_to_samples(self, store_with_track):
        track = store_with_track.current_track
        store_with_track.set_selection(track.id, 2.0, 4.0)
        targets = resolve(Scope.SELECTION, store_with_track.view())
        assert targets == [EditTarget(track.id, 2 * TEST_SR, 4 * TEST_SR)]
        assert targets[0].length == 2 * TEST_SR

    def test_selection_clamped_to_duration(self, store_with_track):
        track = store_with_track.current_track
        store_with_track.set_selection(track.id, 8.0, 15.0)
        target = resolve(Scope.SELECTION, store_with_track.view())[0]
        assert target.end == track.duration_samples

    def test_selection_beyond_end_is_invalid(self, store_with_track):
        track = store_with_track.current_track
        store_with_track.set_selection(track.id, 11.0, 12.0)
        with pytest.raises(InvalidRange):
            resolve(Scope.SELECTION, store_with_track.view())

    def test_no_selection_falls_back_to_track(self, store_with_track):
        track = store_with_track.current_track
        targets = resolve(Scope.SELECTION, store_with_track.view())
        assert targets == [EditTarget(track.id, 0, track.duration_samples)]

    def test_nothing_current(self, store):
        assert resolve(Scope.TRACK, store.view()) == []
        assert resolve(Scope.ALL, store.view()) == []

    def test_unknown_scope(self, store):
        with pytest.raises(InvalidParameter):
            resolve("everything", store.view())
