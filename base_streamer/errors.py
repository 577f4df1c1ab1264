"""
Error taxonomy for base_streamer.

Every condition a caller may want to branch on has its own class. Each one
also derives from the builtin exception it most resembles so plain
``except ValueError`` / ``except KeyError`` handlers keep working.
"""
from __future__ import annotations


class StreamerError(Exception):
    """Base error for all base_streamer conditions."""


# ---- Construction errors ----
class InvalidParameter(StreamerError, ValueError):
    """Raised when a function object receives a parameter outside its domain."""


class InvalidRange(StreamerError, ValueError):
    """Raised when an instruction is given a negative start or duration."""


class MalformedFunctionSpec(StreamerError, TypeError):
    """Raised at definition time for a structurally invalid function description."""


# ---- Scheduling errors ----
class ConflictingSchedule(StreamerError):
    """Raised when two open-ended instructions start at the same time on one channel."""


# ---- Streaming errors ----
class Busy(StreamerError, RuntimeError):
    """Raised when a drain is requested on a streamer that is already draining."""


# ---- Device lookup / registration ----
class ChannelNotFound(StreamerError, KeyError):
    """Raised when a requested channel id is not present on a device."""


class DuplicateChannel(StreamerError, ValueError):
    """Raised when a channel id is registered twice on the same device."""


class DeviceNotFound(StreamerError, KeyError):
    """Raised when a requested device name is not registered on a streamer."""


class DuplicateDevice(StreamerError, ValueError):
    """Raised when a device name is registered twice on the same streamer."""
