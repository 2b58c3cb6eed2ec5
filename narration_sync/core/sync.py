"""Synchronization engine: playback time → current global word index.

WHY: This is the heart of the system. Media elements report time a few
times a second, words are a few hundred milliseconds long, and natural
pauses sit between them. A naive "which word contains t" lookup flickers
to nothing in every pause, flashes stale words while the user drags the
scrubber, and goes blank when playback overruns the last word.

HOW: resolve_word() is a pure, total function implementing the resolution
rules. SyncEngine owns the only mutable state (time, scrub flag, resolved
index), throttles incoming time updates, recomputes the index from scratch
on every accepted change, and notifies subscribers synchronously.

RULES:
- t before the first word's start → none (-1)
- t after the last word's end → last word (end pinning)
- start <= t <= end → that word (inclusive end; first match wins on ties)
- otherwise → the most recently ended word (gap-holdover)
- While scrubbing, time is still recorded but the current word is none
- Updates arriving within min_interval_s of the last accepted one are dropped
- resolve_word never raises and never returns an index outside [-1, len)
"""

from __future__ import annotations

import bisect
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from narration_sync.config import SYNC_MIN_INTERVAL_S
from narration_sync.core.ir import WordSegment

logger = logging.getLogger(__name__)

NO_WORD = -1


def timings_are_monotonic(words: Sequence[WordSegment]) -> bool:
    """True if start/end times never decrease and each start <= its end."""
    for i, word in enumerate(words):
        if word.start_time > word.end_time:
            return False
        if i and (
            word.start_time < words[i - 1].start_time
            or word.end_time < words[i - 1].end_time
        ):
            return False
    return True


def _resolve_linear(words: Sequence[WordSegment], t: float) -> int:
    """Scan-based resolution for timings that are not monotonic."""
    for i, word in enumerate(words):
        if word.start_time <= t <= word.end_time:
            return i
    if t > words[-1].end_time:
        return len(words) - 1
    if t < words[0].start_time:
        return NO_WORD
    last = NO_WORD
    for i, word in enumerate(words):
        if word.end_time <= t:
            last = i
        else:
            break
    return last


def resolve_word(
    words: Sequence[WordSegment],
    t: float,
    end_times: Optional[Sequence[float]] = None,
) -> int:
    """Resolve the index of the word being spoken at time ``t``.

    WHY: Every renderer needs the same answer for the same time; keeping the
    rules in one pure function makes them trivially testable.

    HOW: With monotonic timings, the first word whose end is >= t is the
    only candidate that can contain t (bisect over end times). If it does
    not start until later, t sits in a gap and the previous word is held.

    Args:
        words: Word segments in segment-index order.
        t: Playback time in seconds.
        end_times: Optional precomputed [w.end_time for w in words]; passing
                   it also asserts that the timings are monotonic.

    Returns:
        Index into ``words``, or -1 when no word is current.
    """
    if not words or t != t:  # empty, or NaN time
        return NO_WORD

    if end_times is None:
        if not timings_are_monotonic(words):
            return _resolve_linear(words, t)
        end_times = [w.end_time for w in words]

    if t < words[0].start_time:
        return NO_WORD
    if t > end_times[-1]:
        return len(words) - 1

    candidate = bisect.bisect_left(end_times, t)
    if candidate < len(words) and words[candidate].start_time <= t:
        return candidate
    # Gap-holdover: t is past candidate-1's end and before candidate's start.
    return candidate - 1


class SyncState(str, enum.Enum):
    """Observable states of the synchronization engine.

    RULES:
    - no_alignment: no words loaded; render static, unhighlighted text
    - idle: words loaded, time before the first word
    - tracking: a current word is resolved
    - scrubbing: highlighting suspended while the user drags
    """

    NO_ALIGNMENT = "no_alignment"
    IDLE = "idle"
    TRACKING = "tracking"
    SCRUBBING = "scrubbing"


@dataclass(frozen=True)
class SyncSnapshot:
    """Immutable view of the engine state handed to subscribers."""

    state: SyncState
    current_time: float
    is_scrubbing: bool
    current_word_index: int
    current_word: Optional[WordSegment] = field(default=None, compare=False)


SyncListener = Callable[[SyncSnapshot], None]


class SyncEngine:
    """Reactive state machine resolving the current word from playback time.

    WHY: Renderers must never patch sync state themselves; they subscribe
    and read. A single owner of (time, scrub flag, index) keeps every view
    consistent.

    HOW: ``update_time`` and ``seek`` record time, ``start_scrub`` and
    ``end_scrub`` toggle suppression; each accepted change calls
    ``_recompute`` which runs resolve_word and notifies listeners.

    RULES:
    - Single-threaded: handlers run to completion before the next update
    - update_time is throttled; seek and scrub toggles are not
    - Without words the state is NO_ALIGNMENT and the index is always -1
    """

    def __init__(
        self,
        words: Optional[Sequence[WordSegment]] = None,
        min_interval_s: float = SYNC_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval_s = min_interval_s
        self._clock = clock
        self._words: List[WordSegment] = []
        self._end_times: Optional[List[float]] = None
        self._listeners: List[SyncListener] = []
        self._current_time = 0.0
        self._is_scrubbing = False
        self._current_index = NO_WORD
        self._last_accepted: Optional[float] = None
        if words is not None:
            self.load(words)

    # ------------------------------------------------------------------
    # Word list lifecycle
    # ------------------------------------------------------------------

    def load(self, words: Sequence[WordSegment]) -> None:
        """Install the (immutable) word list and recompute."""
        self._words = list(words)
        if timings_are_monotonic(self._words):
            self._end_times = [w.end_time for w in self._words]
        else:
            logger.warning(
                "Word timings are not monotonic; falling back to linear resolution"
            )
            self._end_times = None
        self._recompute()

    def unload(self) -> None:
        """Drop the word list (back to NO_ALIGNMENT)."""
        self._words = []
        self._end_times = None
        self._recompute()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def update_time(self, t: float, now: Optional[float] = None) -> bool:
        """Record a time-progress notification, subject to throttling.

        Returns:
            True if the update was accepted and processed, False if dropped.
        """
        now = self._clock() if now is None else now
        if (
            self._last_accepted is not None
            and now - self._last_accepted < self._min_interval_s
        ):
            return False
        self._last_accepted = now
        self._current_time = max(0.0, float(t))
        self._recompute()
        return True

    def seek(self, t: float) -> None:
        """Jump to ``t`` immediately (explicit seek bypasses throttling)."""
        self._current_time = max(0.0, float(t))
        self._recompute()

    def start_scrub(self) -> None:
        if not self._is_scrubbing:
            self._is_scrubbing = True
            self._recompute()

    def end_scrub(self) -> None:
        if self._is_scrubbing:
            self._is_scrubbing = False
            self._recompute()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def words(self) -> List[WordSegment]:
        return list(self._words)

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def is_scrubbing(self) -> bool:
        return self._is_scrubbing

    @property
    def current_word_index(self) -> int:
        return self._current_index

    @property
    def current_word(self) -> Optional[WordSegment]:
        if self._current_index == NO_WORD:
            return None
        return self._words[self._current_index]

    @property
    def state(self) -> SyncState:
        if not self._words:
            return SyncState.NO_ALIGNMENT
        if self._is_scrubbing:
            return SyncState.SCRUBBING
        if self._current_index == NO_WORD:
            return SyncState.IDLE
        return SyncState.TRACKING

    @property
    def spoken_words(self) -> List[WordSegment]:
        """Words before the current one (empty when none is current)."""
        if self._current_index == NO_WORD:
            return []
        return self._words[:self._current_index]

    @property
    def unspoken_words(self) -> List[WordSegment]:
        """Words after the current one (all words when none is current)."""
        if self._current_index == NO_WORD:
            return list(self._words)
        return self._words[self._current_index + 1:]

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            state=self.state,
            current_time=self._current_time,
            is_scrubbing=self._is_scrubbing,
            current_word_index=self._current_index,
            current_word=self.current_word,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _recompute(self) -> None:
        if self._is_scrubbing or not self._words:
            self._current_index = NO_WORD
        else:
            self._current_index = resolve_word(
                self._words, self._current_time, self._end_times
            )
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
