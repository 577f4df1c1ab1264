from __future__ import annotations
from typing import Any, Iterator, Protocol, runtime_checkable

import numpy as np

# Structural contracts for backends that do not inherit from the base roles.
# Only imports types from base_streamer so any module can depend on it
# without creating circular imports.

from .instruction import Instr
from .types import ElemType


@runtime_checkable
class WaveformFunction(Protocol):
    """Any object that can stand in as an instruction's function."""
    elem: ElemType

    def calc(self, t_arr: np.ndarray) -> np.ndarray: ...
    def evaluate(self, t: float) -> Any: ...
    def is_constant(self) -> bool: ...


@runtime_checkable
class ChannelLike(Protocol):
    """A named output line with an instruction timeline."""
    @property
    def name(self) -> str: ...

    @property
    def elem(self) -> ElemType: ...

    def schedule(self, instr: Instr) -> None: ...
    def timeline(self) -> tuple[Instr, ...]: ...
    def got_instructions(self) -> bool: ...
    def last_instr_end_time(self) -> float | None: ...
    def is_bounded(self) -> bool: ...
    def sample_at(self, t: float) -> Any: ...
    def calc_samps(self, t_arr) -> np.ndarray: ...


@runtime_checkable
class DeviceLike(Protocol):
    """A named group of channels in insertion order."""
    @property
    def name(self) -> str: ...

    def chan_ids(self) -> list[str]: ...
    def channel(self, chan_id: str) -> ChannelLike: ...
    def got_instructions(self) -> bool: ...
    def last_instr_end_time(self) -> float | None: ...
    def is_bounded(self) -> bool: ...


@runtime_checkable
class StreamerLike(Protocol):
    """Drains a device into ``(channel_id, sample)`` pairs."""
    @property
    def samp_rate(self) -> float: ...

    def drain(self, device: DeviceLike, stop_time: float | None = None) -> Iterator[tuple[str, Any]]: ...
