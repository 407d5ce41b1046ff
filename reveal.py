# reveal.py
"""
Reveal engine: decides which inline code spans of a rendered note are shown
and which become blanks.

The decision for a span is a pure function of ``(seed, index, text)``:

    hide  <=>  hash01(f"{seed}::{index}::{text}") > ratio

``index`` is the span's appearance number in document order (1-based), handed
out by an ``IndexArena`` owned by the render. Moving the ratio only moves the
threshold; a reset bumps the seed, which reshuffles every blank at once.

A page is rendered twice. The first paint uses ``StaticView`` (plain text,
never an input). Once the browser has taken over it asks for the
``InteractiveView`` of the same text.
"""

import logging
import threading
from typing import NamedTuple

from answer_judge import Debouncer

logger = logging.getLogger(__name__)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_MASK32 = 0xFFFFFFFF

DEFAULT_RATIO = 0.5
RATIO_SETTLE = 0.05


def hash01(s: str):
    """32-bit FNV-1a over UTF-16 code units, scaled to [0, 1)."""
    data = s.encode("utf-16-le", "surrogatepass")
    h = FNV_OFFSET_BASIS
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & _MASK32
    return h / 2 ** 32


def clamp_ratio(value, default=DEFAULT_RATIO):
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if v != v:  # NaN
        return default
    return min(1.0, max(0.0, v))


class IndexArena:
    """Appearance numbers for one render, keyed by a stable token identity."""

    def __init__(self):
        self._assigned = {}
        self._counter = 0

    def __len__(self):
        return self._counter

    def next(self):
        self._counter += 1
        return self._counter

    def assign(self, key):
        if key not in self._assigned:
            self._assigned[key] = self.next()
        return self._assigned[key]

    def clear(self):
        self._assigned.clear()
        self._counter = 0


class RevealState:
    def __init__(self, ratio=DEFAULT_RATIO, seed: int = 1, reset_signal: int = 0):
        self.ratio = clamp_ratio(ratio)
        self.seed = seed
        self.reset_signal = reset_signal
        self.arena = IndexArena()
        self._subscribers = []

    def next_index(self):
        return self.arena.next()

    def should_hide(self, text: str, index: int):
        return hash01(f"{self.seed}::{index}::{text}") > self.ratio

    def set_ratio(self, value):
        # indices are kept: only the threshold moves
        self.ratio = clamp_ratio(value, default=self.ratio)
        return self.ratio

    def reset(self):
        self.seed += 1
        self.reset_signal += 1
        self.arena.clear()
        logger.debug("Reveal reset: seed=%d signal=%d", self.seed, self.reset_signal)
        for callback in list(self._subscribers):
            callback(self.reset_signal)
        return self.reset_signal

    def subscribe(self, callback):
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def to_dict(self):
        return {"seed": self.seed, "ratio": self.ratio, "reset_signal": self.reset_signal}


class RatioControl:
    """Slider in front of ``RevealState.ratio``.

    Dragging only moves ``local``; the state changes ``settle`` seconds after
    release (or an explicit commit), so hide decisions are not recomputed for
    every intermediate position.
    """

    def __init__(self, state: RevealState, settle: float = RATIO_SETTLE, timer_factory=threading.Timer):
        self.state = state
        self.local = state.ratio
        self.dragging = False
        self._debouncer = Debouncer(settle, timer_factory)

    @property
    def percent(self):
        return round(self.local * 100)

    def press(self):
        self.dragging = True

    def drag(self, value):
        self.local = clamp_ratio(value, default=self.local)

    def release(self):
        self.dragging = False
        self.commit()

    def commit(self, value=None):
        if value is not None:
            self.drag(value)
        self._debouncer.call(self.state.set_ratio, self.local)

    def sync(self):
        if not self.dragging:
            self.local = self.state.ratio

    def close(self):
        self._debouncer.cancel()


class InlineSpan(NamedTuple):
    text: str
    is_block: bool = False


class RevealDecision(NamedTuple):
    text: str
    index: int = None
    hidden: bool = False
    block: bool = False


class StaticView:
    """First paint: every span is plain text."""

    interactive = False

    def decide(self, span: InlineSpan, position: int):
        return RevealDecision(span.text, block=span.is_block)


class InteractiveView:
    interactive = True

    def __init__(self, state: RevealState):
        self.state = state

    def decide(self, span: InlineSpan, position: int):
        if span.is_block:
            return RevealDecision(span.text, block=True)
        index = self.state.arena.assign(position)
        return RevealDecision(span.text, index=index, hidden=self.state.should_hide(span.text, index))
