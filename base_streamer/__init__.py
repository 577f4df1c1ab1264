"""
base_streamer: waveform calculus and pulse timelines for hardware streaming

Shared foundation of a pulse-sequencing framework: immutable waveform
function objects, a code generator for new function types, and the
instruction timeline model that channels, devices and streamers manipulate.

Core concepts:
- Function objects: ``Calc`` implementors, composable with + - * and scalars
- Instr: a function bound to a start time and duration on one channel
- Channel / Device: timelines with last-write-wins overlap resolution
- Streamer: lazy, restartable drain of a device into ordered samples
"""

# Element types
from .types import ElemType, F64, C128, vec

# Errors
from .errors import (
    StreamerError,
    InvalidParameter,
    InvalidRange,
    MalformedFunctionSpec,
    ConflictingSchedule,
    Busy,
    ChannelNotFound,
    DuplicateChannel,
    DeviceNotFound,
    DuplicateDevice,
)

# Time utilities
from .time_utils import s, ms, us, ns, Hz, kHz, MHz, time_to_ticks, ticks_to_time

# Function objects
from .fn_lib_tools import Calc, ConstFn, Poly, fn_type, std_fn, usr_fn, std_lib, usr_lib, FnLib

# Timeline model
from .instruction import Instr
from .channel import BaseChan, Channel
from .device import BaseDev, Device
from .streamer import BaseStreamer, Streamer, DrainPass, Sample, StreamerState

__version__ = "0.1.0"

__all__ = [
    # Element types
    'ElemType',
    'F64',
    'C128',
    'vec',

    # Errors
    'StreamerError',
    'InvalidParameter',
    'InvalidRange',
    'MalformedFunctionSpec',
    'ConflictingSchedule',
    'Busy',
    'ChannelNotFound',
    'DuplicateChannel',
    'DeviceNotFound',
    'DuplicateDevice',

    # Time utilities
    's',
    'ms',
    'us',
    'ns',
    'Hz',
    'kHz',
    'MHz',
    'time_to_ticks',
    'ticks_to_time',

    # Function objects
    'Calc',
    'ConstFn',
    'Poly',
    'fn_type',
    'std_fn',
    'usr_fn',
    'std_lib',
    'usr_lib',
    'FnLib',

    # Timeline model
    'Instr',
    'BaseChan',
    'Channel',
    'BaseDev',
    'Device',
    'BaseStreamer',
    'Streamer',
    'DrainPass',
    'Sample',
    'StreamerState',
]
