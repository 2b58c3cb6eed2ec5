"""Playback adapter: media-element events → sync engine inputs.

WHY: The engine knows nothing about audio. Something has to translate the
media element's event stream (time progress, play/pause, buffering, end of
media, errors) into engine calls and expose transport controls to the UI.
The adapter is that seam; swapping the media element (a browser bridge, a
simulated clock) never touches the engine.

HOW: PlaybackAdapter.handle_event() dispatches on the event name through a
handler table. SimulatedMediaElement is a wall-clock driven element with no
audio; tick() returns the events a real element would have fired since the
previous call.

RULES:
- "ended" stops playback and resets engine time to 0
- "error" counts as a pause: loading cleared, message kept, sync untouched
- seek() clamps to [0, duration] and bypasses the engine throttle
- Unknown events are ignored (logged at DEBUG)
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Protocol

from narration_sync.core.ir import WordSegment
from narration_sync.core.sync import SyncEngine

logger = logging.getLogger(__name__)


class MediaElement(Protocol):
    """The subset of a media element the adapter drives."""

    @property
    def current_time(self) -> float: ...

    @property
    def duration(self) -> float: ...

    @property
    def paused(self) -> bool: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, t: float) -> None: ...


class PlaybackAdapter:
    """Bridges one media element to one SyncEngine.

    RULES:
    - is_playing follows play/playing/pause/ended/error events, not calls
    - is_loading is set by waiting/stalled and cleared by playing/canplay/error
    - play() clears a previous error before asking the element to play
    """

    def __init__(self, media: MediaElement, engine: SyncEngine) -> None:
        self.media = media
        self.engine = engine
        self.duration = media.duration or 0.0
        self.is_playing = not media.paused
        self.is_loading = False
        self.error: Optional[str] = None
        self._handlers: Dict[str, Callable[[Optional[str]], None]] = {
            "timeupdate": self._on_time_update,
            "loadedmetadata": self._on_duration,
            "durationchange": self._on_duration,
            "play": self._on_play,
            "playing": self._on_playing,
            "pause": self._on_pause,
            "ended": self._on_ended,
            "waiting": self._on_waiting,
            "stalled": self._on_waiting,
            "canplay": self._on_can_play,
            "error": self._on_error,
        }

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def handle_event(self, name: str, message: Optional[str] = None) -> bool:
        """Dispatch one media event. Returns False for unknown events."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.debug("Ignoring media event %r", name)
            return False
        handler(message)
        return True

    def _on_time_update(self, message: Optional[str]) -> None:
        self.engine.update_time(self.media.current_time)

    def _on_duration(self, message: Optional[str]) -> None:
        self.duration = self.media.duration or 0.0

    def _on_play(self, message: Optional[str]) -> None:
        self.is_playing = True

    def _on_playing(self, message: Optional[str]) -> None:
        self.is_playing = True
        self.is_loading = False

    def _on_pause(self, message: Optional[str]) -> None:
        self.is_playing = False

    def _on_ended(self, message: Optional[str]) -> None:
        self.is_playing = False
        self.engine.seek(0.0)

    def _on_waiting(self, message: Optional[str]) -> None:
        self.is_loading = True

    def _on_can_play(self, message: Optional[str]) -> None:
        self.is_loading = False

    def _on_error(self, message: Optional[str]) -> None:
        self.is_playing = False
        self.is_loading = False
        self.error = message or "Playback failed"
        logger.warning("Media error: %s", self.error)

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    def play(self) -> None:
        self.error = None
        self.media.play()

    def pause(self) -> None:
        self.media.pause()

    def toggle(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def seek(self, t: float) -> float:
        """Seek the element and the engine; returns the clamped time."""
        clamped = max(0.0, t)
        if self.duration > 0:
            clamped = min(clamped, self.duration)
        self.media.seek(clamped)
        self.engine.seek(clamped)
        return clamped

    def seek_to_word(self, word: WordSegment) -> float:
        return self.seek(word.start_time)

    def start_scrub(self) -> None:
        self.engine.start_scrub()

    def end_scrub(self) -> None:
        self.engine.end_scrub()


class SimulatedMediaElement:
    """A silent media element whose position advances with a clock.

    WHY: Lets the CLI follow along without an audio stack, and lets tests
    drive playback deterministically with a fake clock.

    HOW: While playing, position = anchor position + (clock - anchor) * rate.
    tick() reports "timeupdate" while playing and "pause" + "ended" once the
    position reaches the duration.
    """

    def __init__(
        self,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        rate: float = 1.0,
    ) -> None:
        self._duration = duration
        self._clock = clock
        self._rate = rate
        self._position = 0.0
        self._anchor: Optional[float] = None
        self._pending: List[str] = ["loadedmetadata"]

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._anchor is None

    @property
    def current_time(self) -> float:
        if self._anchor is None:
            return self._position
        elapsed = (self._clock() - self._anchor) * self._rate
        return min(self._position + elapsed, self._duration)

    def play(self) -> None:
        if self._anchor is None:
            if self._position >= self._duration:
                self._position = 0.0
            self._anchor = self._clock()
            self._pending.extend(["play", "playing"])

    def pause(self) -> None:
        if self._anchor is not None:
            self._position = self.current_time
            self._anchor = None
            self._pending.append("pause")

    def seek(self, t: float) -> None:
        self._position = max(0.0, min(t, self._duration))
        if self._anchor is not None:
            self._anchor = self._clock()
        self._pending.append("timeupdate")

    def tick(self) -> List[str]:
        """Events fired since the previous tick, in order."""
        events = self._pending
        self._pending = []
        if self._anchor is not None:
            events.append("timeupdate")
            if self.current_time >= self._duration:
                self._position = self._duration
                self._anchor = None
                events.extend(["pause", "ended"])
        return events
