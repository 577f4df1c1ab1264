"""
Channels: named output lines owning an instruction timeline.

``BaseChan`` is the role other backends implement. It only asks for a few
field accessors (name, element type, default/reset values and the edit
cache storage); scheduling, overlap resolution and sampling are provided on
top of them. ``Channel`` is the plain in-memory implementation.

## Editing behavior
The edit cache is a list of ``Instr`` kept sorted by start time. ``schedule``
resolves overlaps with last-write-wins (see ``Instr.merge_with``) and only
stores the result once the whole insertion succeeded.

## Gaps
Before the first instruction, and after a finite instruction with
``keep_val=False``, the channel outputs its default value. After one with
``keep_val=True`` it holds that instruction's end value.
"""
from __future__ import annotations

import bisect
import logging
from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from .errors import InvalidRange
from .fn_lib_tools.calc import Calc, ConstFn
from .instruction import Instr
from .types import ElemType, F64

logger = logging.getLogger(__name__)


class BaseChan(ABC):
    """
    Base channel role.

    Implementors supply the field methods; everything else is shared.
    """

    # Field methods
    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def elem(self) -> ElemType: ...

    @property
    @abstractmethod
    def dflt_val(self) -> Any: ...

    @property
    @abstractmethod
    def rst_val(self) -> Any: ...

    @abstractmethod
    def instr_list(self) -> list[Instr]:
        """The edit cache, sorted by ``Instr.sort_key``. Treat as read-only."""

    @abstractmethod
    def _store_instr_list(self, instrs: list[Instr]) -> None:
        """Replace the edit cache in one step."""

    # Editing
    def timeline(self) -> tuple[Instr, ...]:
        """Read-only snapshot of the current timeline."""
        return tuple(self.instr_list())

    def got_instructions(self) -> bool:
        return bool(self.instr_list())

    def clear(self) -> None:
        self._store_instr_list([])

    def schedule(self, instr: Instr) -> None:
        """Insert ``instr``, resolving overlaps with last-write-wins.

        A new open-ended instruction is superseded by the first existing
        instruction starting after it and never removes it. Existing markers
        inside the new instruction's span are dropped.

        Raises:
            ConflictingSchedule: ``instr`` and an existing instruction are
                both open-ended and start at the same time. The timeline is
                left unchanged.
            TypeError: element type of ``instr.func`` differs from the channel's.
        """
        if instr.func.elem != self.elem:
            raise TypeError(
                f"[Channel {self.name}] expects {self.elem} functions, "
                f"got {instr.func.elem} function {instr.func!r}"
            )
        instrs = self.instr_list()
        if instr.is_open_ended:
            nxt = next(
                (old for old in instrs if not old.is_marker and old.start > instr.start),
                None
            )
            if nxt is not None:
                instr = instr.trunc(nxt.start)

        new_list: list[Instr] = []
        for old in instrs:
            if old.is_marker and not instr.is_marker and instr.covers(old.start):
                # the newer segment owns the marker's time
                continue
            if instr.overlaps(old):
                new_list.extend(instr.merge_with(old))
            else:
                new_list.append(old)
        new_list.append(instr)
        new_list.sort(key=lambda i: i.sort_key)

        self._store_instr_list(new_list)
        logger.debug("[Channel %s] scheduled %s (%d instructions)", self.name, instr, len(new_list))

    def add_instr(self, func: Calc, t: float, dur: float | None = None, keep_val: bool = False) -> Instr:
        instr = Instr(func, t, dur, keep_val)
        self.schedule(instr)
        return instr

    def constant(self, val: Any, t: float, dur: float | None = None, keep_val: bool = False) -> Instr:
        return self.add_instr(ConstFn(val, self.elem), t, dur, keep_val)

    def last_instr_end_time(self) -> float | None:
        """Latest instruction end; an open-ended instruction counts as its start."""
        ends = [instr.start if instr.end is None else instr.end for instr in self.instr_list()]
        return max(ends, default=None)

    def is_bounded(self) -> bool:
        """False if the timeline ends with an open-ended instruction."""
        return not any(instr.is_open_ended for instr in self.instr_list())

    def has_marker_at(self, t: float) -> bool:
        return any(instr.is_marker and instr.start == t for instr in self.instr_list())

    def add_reset_instr(self, reset_time: float) -> Instr:
        """Append an open-ended ``rst_val`` constant at ``reset_time``."""
        last_end = self.last_instr_end_time()
        if last_end is not None and reset_time < last_end:
            raise InvalidRange(
                f"Requested channel {self.name} to insert reset instruction at t={reset_time} "
                f"which is below the last instruction end time {last_end}"
            )
        return self.add_instr(ConstFn(self.rst_val, self.elem), reset_time)

    # Sampling
    def _segments(self) -> list[Instr]:
        return [instr for instr in self.instr_list() if not instr.is_marker]

    def sample_at(self, t: float) -> Any:
        """Channel output at time ``t``."""
        instrs = self.instr_list()
        for instr in instrs:
            if instr.is_marker and instr.start == t:
                return instr.sample_at(t)
        segments = self._segments()
        idx = bisect.bisect_right([seg.start for seg in segments], t) - 1
        if idx < 0:
            return self.dflt_val
        seg = segments[idx]
        if seg.covers(t):
            return seg.sample_at(t)
        if seg.keep_val:
            return seg.end_value()
        return self.dflt_val

    def calc_samps(self, t_arr) -> np.ndarray:
        """Vectorized ``sample_at`` over ``t_arr``; shape ``(n,) + elem.shape``."""
        t_arr = np.asarray(t_arr, dtype=np.float64).reshape(-1)
        res = self.elem.full(len(t_arr), self.dflt_val)
        segments = self._segments()
        for idx, seg in enumerate(segments):
            next_start = segments[idx + 1].start if idx + 1 < len(segments) else np.inf
            seg_end = next_start if seg.end is None else seg.end
            mask = (t_arr >= seg.start) & (t_arr < seg_end)
            if mask.any():
                if seg.func.is_constant():
                    res[mask] = seg.sample_at(seg.start)
                else:
                    res[mask] = seg.calc(t_arr[mask])
            if seg.end is not None and seg.keep_val:
                pad_mask = (t_arr >= seg.end) & (t_arr < next_start)
                if pad_mask.any():
                    res[pad_mask] = seg.end_value()
        for instr in self.instr_list():
            if instr.is_marker:
                mask = t_arr == instr.start
                if mask.any():
                    res[mask] = instr.sample_at(instr.start)
        return res


class Channel(BaseChan):
    """
    In-memory channel.

    Args:
        name: channel identifier as seen by the device, e.g. "ao0".
        elem: element type of the samples.
        dflt_val: value output where no instruction is active (zero by default).
        rst_val: value used by ``add_reset_instr`` (``dflt_val`` by default).
    """

    def __init__(self, name: str, elem: ElemType = F64, dflt_val: Any = None, rst_val: Any = None):
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Channel name must be a non-empty string, got {name!r}")
        self._name = name
        self._elem = elem
        self._dflt_val = elem.coerce(elem.zero if dflt_val is None else dflt_val)
        self._rst_val = self._dflt_val if rst_val is None else elem.coerce(rst_val)
        self._instr_list: list[Instr] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def elem(self) -> ElemType:
        return self._elem

    @property
    def dflt_val(self) -> Any:
        return self._dflt_val

    @property
    def rst_val(self) -> Any:
        return self._rst_val

    def instr_list(self) -> list[Instr]:
        return self._instr_list

    def _store_instr_list(self, instrs: list[Instr]) -> None:
        self._instr_list = instrs

    def __repr__(self) -> str:
        return f"<Channel: {self.name}>"
