"""
Streamers: drain a device's timelines into an ordered sample sequence.

A drain pass is lazy and pull-based. Samples are produced at
``t = k / samp_rate`` for ``k = 0, 1, ...``; within one tick the channels
come in the device's insertion order. Channel values are computed a chunk
of ticks at a time with ``calc_samps``.

A streamer runs at most one pass at a time:

    IDLE --drain()--> DRAINING --exhausted / close() / error--> IDLE

A pass never mutates the device, so draining an unchanged device twice
yields the same sequence.

A streamer also keeps a registry of devices for aggregate operations such
as a global reset; ``drain`` reads any device, registered or not.
"""
from __future__ import annotations

import logging
import math
import weakref
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterator, NamedTuple, Self, Unpack

import numpy as np

from .config import StreamerConfig
from .device import BaseDev
from .errors import Busy, DeviceNotFound, DuplicateDevice, InvalidParameter, InvalidRange, StreamerError
from .time_utils import DEFAULT_SAMP_RATE, ticks_before, ticks_through

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024


class StreamerState(Enum):
    IDLE = "idle"
    DRAINING = "draining"


class Sample(NamedTuple):
    """One output value of a channel at time ``t``."""
    t: float
    val: Any


def _iter_samples(chans, samp_rate: float, n_ticks: int | None, chunk_size: int) -> Iterator[tuple[str, Sample]]:
    tick = 0
    while n_ticks is None or tick < n_ticks:
        stop = tick + chunk_size
        if n_ticks is not None:
            stop = min(stop, n_ticks)
        t_arr = np.arange(tick, stop) / samp_rate
        blocks = [chan.calc_samps(t_arr) for chan in chans]
        for idx, t in enumerate(t_arr.tolist()):
            for chan, block in zip(chans, blocks):
                yield chan.name, Sample(t, chan.elem.item(block[idx]))
        tick = stop


class DrainPass:
    """
    Lazy iterator over ``(channel_id, Sample)`` pairs of one drain pass.

    The owning streamer stays ``DRAINING`` until the pass is exhausted,
    closed, left as a context manager, garbage collected, or a function
    raised during evaluation (the exception propagates to the caller).
    """

    def __init__(self, streamer: BaseStreamer, device: BaseDev, n_ticks: int | None, chunk_size: int):
        self._streamer = streamer
        self._chans = device.chans()
        self._samp_rate = streamer.samp_rate
        self._n_ticks = n_ticks
        self._chunk_size = chunk_size
        self._live = True
        self._gen = _iter_samples(self._chans, self._samp_rate, n_ticks, chunk_size)

    @property
    def n_ticks(self) -> int | None:
        """Number of ticks this pass covers, ``None`` if unbounded."""
        return self._n_ticks

    @property
    def live(self) -> bool:
        return self._live

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> tuple[str, Sample]:
        if not self._live:
            raise StopIteration
        try:
            return next(self._gen)
        except BaseException:
            # exhaustion (StopIteration) or a failing function
            self.close()
            raise

    def close(self) -> None:
        """Abandon the pass and return the streamer to ``IDLE``."""
        if not self._live:
            return
        self._live = False
        self._gen.close()
        self._streamer._release(self)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_live", False):
            self.close()


class BaseStreamer(ABC):
    """
    Base streamer role.

    Implementors supply the sampling rate and device storage; the device
    registry, aggregation, state handling and the drain pass are shared.
    """

    # weak: a collected pass leaves the streamer IDLE
    _active_ref: weakref.ref | None = None

    # Field methods
    @property
    @abstractmethod
    def samp_rate(self) -> float: ...

    @abstractmethod
    def devs_dict(self) -> dict[str, BaseDev]:
        """Device name -> device, in registration order."""

    # Device registry
    def check_can_add_dev(self, name: str) -> None:
        if name in self.devs_dict():
            raise DuplicateDevice(
                f"There is already a device with name {name} registered. "
                f"Registered devices are {self.dev_names()}"
            )

    def add_dev(self, dev: BaseDev) -> BaseDev:
        self.check_can_add_dev(dev.name)
        self.devs_dict()[dev.name] = dev
        logger.debug("%r: added device %r", self, dev)
        return dev

    def dev(self, name: str) -> BaseDev:
        try:
            return self.devs_dict()[name]
        except KeyError:
            raise DeviceNotFound(
                f"{self!r} has no device '{name}'. Registered devices: {self.dev_names()}"
            ) from None

    def __getitem__(self, name: str) -> BaseDev:
        return self.dev(name)

    def __contains__(self, name: object) -> bool:
        return name in self.devs_dict()

    def __iter__(self) -> Iterator[BaseDev]:
        return iter(self.devs())

    def __len__(self) -> int:
        return len(self.devs_dict())

    def dev_names(self) -> list[str]:
        return list(self.devs_dict())

    def devs(self) -> list[BaseDev]:
        return list(self.devs_dict().values())

    # Aggregation
    def got_instructions(self) -> bool:
        return any(dev.got_instructions() for dev in self.devs())

    def active_devs(self) -> list[BaseDev]:
        """Devices holding at least one instruction."""
        return [dev for dev in self.devs() if dev.got_instructions()]

    def last_instr_end_time(self) -> float | None:
        ends = [dev.last_instr_end_time() for dev in self.active_devs()]
        return max(ends, default=None)

    def clear(self) -> None:
        """Clear the timelines of every registered device."""
        for dev in self.devs():
            dev.clear()

    def add_reset_instr(self, reset_time: float | None = None) -> float:
        """Append the reset instruction of every channel of every device.

        Args:
            reset_time: defaults to the last instruction end over all
                devices, or 0 when none holds instructions.

        Returns:
            The reset time used.

        Raises:
            InvalidRange: ``reset_time`` is below the last instruction end.
                Nothing is changed.
        """
        last_end = self.last_instr_end_time()
        if reset_time is None:
            reset_time = 0.0 if last_end is None else last_end
        elif last_end is not None and reset_time < last_end:
            raise InvalidRange(
                f"Requested to insert the all-channel reset instruction at t={reset_time} "
                f"but some channels have instructions spanning until {last_end}. "
                f"Use reset_time=None to reset at the last instruction end"
            )
        snapshots = [(dev, dev._snapshot()) for dev in self.devs()]
        try:
            for dev in self.devs():
                dev.add_reset_instr(reset_time)
        except StreamerError:
            for dev, snapshot in snapshots:
                dev._restore(snapshot)
            raise
        return reset_time

    @property
    def chunk_size(self) -> int:
        return DEFAULT_CHUNK_SIZE

    @property
    def state(self) -> StreamerState:
        return StreamerState.IDLE if self._active() is None else StreamerState.DRAINING

    def _active(self) -> DrainPass | None:
        if self._active_ref is None:
            return None
        drain_pass = self._active_ref()
        if drain_pass is None or not drain_pass.live:
            return None
        return drain_pass

    def n_ticks(self, device: BaseDev, stop_time: float | None = None) -> int | None:
        """Ticks a pass over ``device`` covers; ``None`` when it never ends.

        The default stop is exclusive, except that a marker sitting exactly
        at the last instruction end is still emitted.
        """
        if stop_time is None:
            if not device.is_bounded():
                return None
            stop_time = device.last_instr_end_time()
            if stop_time is None:
                return 0
            if device.ends_on_marker():
                return ticks_through(stop_time, self.samp_rate)
        elif not math.isfinite(stop_time) or stop_time < 0:
            raise InvalidRange(f"stop_time must be finite and non-negative, got {stop_time}")
        return ticks_before(stop_time, self.samp_rate)

    def drain(self, device: BaseDev, stop_time: float | None = None) -> DrainPass:
        """
        Start a lazy drain pass over ``device``.

        Args:
            device: the device to read. It is not modified.
            stop_time: exclusive end of the pass. Defaults to the device's
                last instruction end; a device ending open-ended then yields
                an unbounded pass the caller stops by not pulling.

        Raises:
            Busy: a pass of this streamer is still live.
        """
        if self._active() is not None:
            raise Busy(f"{self!r} is already draining; close the running pass first")
        n_ticks = self.n_ticks(device, stop_time)
        drain_pass = DrainPass(self, device, n_ticks, self.chunk_size)
        self._active_ref = weakref.ref(drain_pass)
        logger.debug("%r: draining %r for %s ticks", self, device, "unbounded" if n_ticks is None else n_ticks)
        return drain_pass

    def _release(self, drain_pass: DrainPass) -> None:
        if self._active_ref is not None and self._active_ref() is drain_pass:
            self._active_ref = None
            logger.debug("%r: drain pass released", self)


class Streamer(BaseStreamer):
    """
    In-memory streamer.

    Args:
        samp_rate: sample clock rate in Hz.
        chunk_size: ticks computed per ``calc_samps`` call.
    """

    def __init__(self, samp_rate: float = DEFAULT_SAMP_RATE, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if not math.isfinite(samp_rate) or samp_rate <= 0:
            raise InvalidParameter(f"samp_rate must be positive and finite, got {samp_rate}")
        if chunk_size < 1:
            raise InvalidParameter(f"chunk_size must be >= 1, got {chunk_size}")
        self._samp_rate = float(samp_rate)
        self._chunk_size = int(chunk_size)
        self._devs: dict[str, BaseDev] = {}

    @classmethod
    def create(cls, **config: Unpack[StreamerConfig]) -> Self:
        return cls(**config)

    @property
    def samp_rate(self) -> float:
        return self._samp_rate

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def devs_dict(self) -> dict[str, BaseDev]:
        return self._devs

    def __repr__(self) -> str:
        return f"<Streamer: {self.samp_rate} Hz>"
