"""
Scope resolver: turns an effect scope plus store state into concrete
(track, sample range) targets.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, Union

from .config import Scope
from .errors import InvalidParameter, InvalidRange
from .types import EditTarget

if TYPE_CHECKING:
    from .store import ProjectView


def parse_scope(scope: Union[Scope, str]) -> Scope:
    try:
        return Scope(scope)
    except ValueError:
        raise InvalidParameter("scope", scope, f"one of {[s.value for s in Scope]}") from None


def resolve(scope: Union[Scope, str], state: "ProjectView") -> list[EditTarget]:
    """
    Resolve ``scope`` against a store snapshot.

    - ``all``: every track with audio, full range
    - ``track``: the current track, full range (empty if none)
    - ``selection``: the selected range, clamped to the track duration;
      falls back to ``track`` when nothing is selected

    Raises:
        InvalidParameter: unknown scope
        InvalidRange: the selection is empty after clamping
    """
    scope = parse_scope(scope)

    if scope is Scope.ALL:
        return [EditTarget(t.id, 0, t.duration_samples) for t in state.tracks if t.has_audio]

    if scope is Scope.SELECTION and state.selection is not None:
        selection = state.selection
        track = state.find_track(selection.track_id)
        if track is None or not track.has_audio:
            return []
        buffer = track.buffer
        start = buffer.to_frame(selection.start)
        end = buffer.to_frame(min(selection.end, buffer.duration))
        if end <= start:
            raise InvalidRange(
                f"Selection [{selection.start}, {selection.end}] is empty on a "
                f"{buffer.duration:.3f}s track"
            )
        return [EditTarget(track.id, start, end)]

    track = state.current_track
    if track is None or not track.has_audio:
        return []
    return [EditTarget(track.id, 0, track.duration_samples)]
