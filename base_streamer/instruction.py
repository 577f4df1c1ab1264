"""
Pulse instructions.

An ``Instr`` binds a function object to a start time and a duration on one
channel. Edge inclusion follows the hardware convention:

- ``start`` is *inclusive*, a sample at ``start`` is covered;
- ``end = start + dur`` is *exclusive*, the next instruction may start there;
- ``dur = None`` marks an open-ended ("go-something") instruction that spans
  until it is superseded by the next instruction;
- ``dur = 0`` is an instantaneous marker covering exactly ``t == start``.

The function is evaluated in the instruction's local frame, ``t - start``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Self

import numpy as np

from .errors import ConflictingSchedule, InvalidRange
from .fn_lib_tools.calc import Calc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instr:
    """指令: function + start/end edge data"""
    func: Calc
    start: float
    dur: float | None = None
    keep_val: bool = False

    def __post_init__(self):
        if not isinstance(self.func, Calc):
            raise TypeError(f"Instr.func must be a Calc function object, got {self.func!r}")
        if not math.isfinite(self.start) or self.start < 0:
            raise InvalidRange(f"Instruction start must be finite and non-negative, got {self.start}")
        if self.dur is not None:
            if not math.isfinite(self.dur) or self.dur < 0:
                raise InvalidRange(f"Instruction duration must be finite and non-negative, got {self.dur}")
            object.__setattr__(self, "dur", float(self.dur))
        elif self.keep_val:
            # an open-ended instruction has no end value to keep
            object.__setattr__(self, "keep_val", False)
        object.__setattr__(self, "start", float(self.start))

    @classmethod
    def create(cls, func: Calc, start: float, dur: float | None = None, keep_val: bool = False) -> Self:
        return cls(func, start, dur, keep_val)

    @property
    def end(self) -> float | None:
        """Exclusive end time, ``None`` for open-ended instructions."""
        return None if self.dur is None else self.start + self.dur

    @property
    def is_open_ended(self) -> bool:
        return self.dur is None

    @property
    def is_marker(self) -> bool:
        return self.dur == 0

    @property
    def sort_key(self) -> tuple[float, int]:
        # a marker sorts before a segment starting at the same time
        return (self.start, 0 if self.is_marker else 1)

    def _span_end(self) -> float:
        return math.inf if self.dur is None else self.end

    def covers(self, t: float) -> bool:
        if self.is_marker:
            return t == self.start
        return self.start <= t < self._span_end()

    def overlaps(self, other: "Instr") -> bool:
        """True if the two instructions' time spans intersect.

        Markers have an empty span and only collide with a marker at the
        same time.
        """
        if self.is_marker or other.is_marker:
            return self.is_marker and other.is_marker and self.start == other.start
        return self.start < other._span_end() and other.start < self._span_end()

    def trunc(self, end: float) -> "Instr":
        """Copy ending at ``end`` (``start < end``); open-ended instructions become finite."""
        if not end > self.start:
            raise InvalidRange(f"Cannot truncate {self} to end at {end}")
        return replace(self, dur=end - self.start)

    def trim_head(self, new_start: float) -> "Instr":
        """Copy starting at ``new_start`` that keeps the original waveform."""
        dur = None
        if self.dur is not None:
            dur = self.end - new_start
            if not dur > 0:
                raise InvalidRange(f"Cannot trim {self} to start at {new_start}")
        return Instr(self.func.shifted(new_start - self.start), new_start, dur, self.keep_val)

    def merge_with(self, older: "Instr") -> tuple["Instr", ...]:
        """Resolve an overlap of this (newer) instruction with an older one.

        Last write wins: the older instruction loses exactly the overlapped
        span. Returns the surviving pieces of ``older``:

        - ``()`` when this instruction fully contains it;
        - its head, truncated to end at ``self.start``;
        - its tail, moved to start at ``self.end`` (finite ``self`` only);
        - both when this instruction lies strictly inside it.

        An older open-ended instruction that starts before this one is only
        ever truncated, it does not resume afterwards.

        Raises:
            ConflictingSchedule: both are open-ended and start together.
        """
        if not self.overlaps(older):
            return (older,)
        if self.is_open_ended and older.is_open_ended and self.start == older.start:
            raise ConflictingSchedule(
                f"Two open-ended instructions at t={self.start}:\n"
                f"\texisting: {older}\n"
                f"\tnew:      {self}"
            )
        pieces = []
        if older.start < self.start:
            pieces.append(older.trunc(self.start))
        if self.dur is not None and older._span_end() > self.end:
            if not older.is_open_ended or older.start >= self.start:
                pieces.append(older.trim_head(self.end))
        logger.debug("Resolved %s against newer %s -> %s", older, self, pieces)
        return tuple(pieces)

    def sample_at(self, t: float) -> Any:
        return self.func.evaluate(t - self.start)

    def calc(self, t_arr: np.ndarray) -> np.ndarray:
        return self.func.calc(np.asarray(t_arr, dtype=np.float64) - self.start)

    def end_value(self) -> Any:
        """Value at the instruction's end, used when ``keep_val`` pads a gap."""
        if self.dur is None:
            raise InvalidRange(f"Open-ended {self} has no end value")
        return self.func.evaluate(self.dur)

    def __str__(self):
        end_spec = "no specified end" if self.dur is None else f"dur={self.dur}, keep_val={self.keep_val}"
        return f"Instr(func={self.func!r}, start={self.start}, {end_spec})"
