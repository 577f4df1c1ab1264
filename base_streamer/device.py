"""
Devices: named groups of channels.

A device keeps its channels in insertion order; that order is the order in
which a streamer emits samples of one tick.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator, Unpack

import numpy as np

from .channel import BaseChan, Channel
from .config import ChannelConfig
from .errors import ChannelNotFound, DuplicateChannel, InvalidRange, StreamerError
from .instruction import Instr

logger = logging.getLogger(__name__)


class BaseDev(ABC):
    """
    Base device role.

    Implementors supply the name and channel storage; aggregation over the
    channels is shared.
    """

    # Field methods
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def chans_dict(self) -> dict[str, BaseChan]:
        """Channel id -> channel, in insertion order."""

    # Channel registry
    def add_chan(self, chan: BaseChan) -> BaseChan:
        chans = self.chans_dict()
        if chan.name in chans:
            raise DuplicateChannel(f"Device {self.name} already has a channel named '{chan.name}'")
        chans[chan.name] = chan
        logger.debug("[Device %s] added channel %r", self.name, chan)
        return chan

    def add_channel(self, name: str, **config: Unpack[ChannelConfig]) -> Channel:
        """Create a ``Channel`` from keyword configuration and register it."""
        return self.add_chan(Channel(name, **config))

    def channel(self, chan_id: str) -> BaseChan:
        try:
            return self.chans_dict()[chan_id]
        except KeyError:
            raise ChannelNotFound(
                f"Device {self.name} has no channel '{chan_id}'. "
                f"Available channels: {self.chan_ids()}"
            ) from None

    def __getitem__(self, chan_id: str) -> BaseChan:
        return self.channel(chan_id)

    def __contains__(self, chan_id: object) -> bool:
        return chan_id in self.chans_dict()

    def __iter__(self) -> Iterator[BaseChan]:
        return iter(self.chans())

    def __len__(self) -> int:
        return len(self.chans_dict())

    def chan_ids(self) -> list[str]:
        return list(self.chans_dict())

    def chans(self) -> list[BaseChan]:
        return list(self.chans_dict().values())

    # Aggregation
    def got_instructions(self) -> bool:
        return any(chan.got_instructions() for chan in self.chans())

    def active_chans(self) -> list[BaseChan]:
        """Channels holding at least one instruction."""
        return [chan for chan in self.chans() if chan.got_instructions()]

    def last_instr_end_time(self) -> float | None:
        ends = [chan.last_instr_end_time() for chan in self.active_chans()]
        return max(ends, default=None)

    def is_bounded(self) -> bool:
        return all(chan.is_bounded() for chan in self.chans())

    def ends_on_marker(self) -> bool:
        """True if a marker sits exactly at the last instruction end."""
        last_end = self.last_instr_end_time()
        if last_end is None:
            return False
        return any(chan.has_marker_at(last_end) for chan in self.active_chans())

    def clear(self) -> None:
        for chan in self.chans():
            chan.clear()

    def _snapshot(self) -> list[tuple[BaseChan, list[Instr]]]:
        # schedule stores a fresh list, so the old lists stay intact
        return [(chan, chan.instr_list()) for chan in self.chans()]

    def _restore(self, snapshot: list[tuple[BaseChan, list[Instr]]]) -> None:
        for chan, instrs in snapshot:
            chan._store_instr_list(instrs)

    def add_reset_instr(self, reset_time: float) -> None:
        """Append each channel's reset instruction at ``reset_time``.

        All or nothing: when any channel refuses the reset, every channel
        keeps its previous timeline.

        Raises:
            InvalidRange: ``reset_time`` is below the last instruction end.
            ConflictingSchedule: a channel already holds an open-ended
                instruction starting at ``reset_time``.
        """
        last_end = self.last_instr_end_time()
        if last_end is not None and reset_time < last_end:
            raise InvalidRange(
                f"[Device {self.name}] given reset_time {reset_time} "
                f"is below the last instruction end time {last_end}"
            )
        snapshot = self._snapshot()
        try:
            for chan in self.chans():
                chan.add_reset_instr(reset_time)
        except StreamerError:
            self._restore(snapshot)
            raise
        logger.debug("[Device %s] reset instructions added at t=%s", self.name, reset_time)

    def calc_samps(self, t_arr) -> np.ndarray:
        """Samples of every channel over ``t_arr``, one row per channel."""
        chans = self.chans()
        t_arr = np.asarray(t_arr, dtype=np.float64).reshape(-1)
        if not chans:
            return np.empty((0, len(t_arr)))
        for chan in chans:
            if not chan.elem.is_scalar:
                raise TypeError(
                    f"Device {self.name}: calc_samps stacks scalar channels only, "
                    f"channel '{chan.name}' is {chan.elem}"
                )
        return np.vstack([chan.calc_samps(t_arr) for chan in chans])


class Device(BaseDev):
    """In-memory device."""

    def __init__(self, name: str):
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Device name must be a non-empty string, got {name!r}")
        self._name = name
        self._chans: dict[str, BaseChan] = {}

    @property
    def name(self) -> str:
        return self._name

    def chans_dict(self) -> dict[str, BaseChan]:
        return self._chans

    def __repr__(self) -> str:
        return f"<Device: {self.name} [{', '.join(self._chans)}]>"
