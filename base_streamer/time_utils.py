"""
Time conversion utilities for base_streamer.

Uses International System of Units (SI) with seconds as base unit.
Instruction times are plain floats in seconds; streamers turn them into
sample-clock ticks at their own sampling rate.
"""
import math

# International unit constants (SI base: seconds)
s = 1.0           # 1 second (SI base unit)
ms = 1e-3         # 1 millisecond = 0.001 seconds
us = 1e-6         # 1 microsecond = 0.000001 seconds
ns = 1e-9         # 1 nanosecond = 0.000000001 seconds

# Frequency constants
Hz = 1.0
kHz = 1e3
MHz = 1e6

DEFAULT_SAMP_RATE = 1.0 * Hz


def time_to_ticks(time_seconds: float, samp_rate: float) -> int:
    """Convert SI time in seconds to sample-clock ticks.

    Args:
        time_seconds: Time value in seconds (SI unit)
        samp_rate: Sample clock rate in Hz

    Returns:
        Nearest tick index

    Examples:
        time_to_ticks(1.0, 1e3)     -> 1000
        time_to_ticks(2.5e-3, 1e3)  -> 2  # rounds half to even
    """
    return round(time_seconds * samp_rate)


def ticks_to_time(ticks: int, samp_rate: float) -> float:
    """Convert sample-clock ticks to SI time in seconds.

    Examples:
        ticks_to_time(1000, 1e3) -> 1.0
        ticks_to_time(1, 1e6)    -> 1e-6
    """
    return ticks / samp_rate


def ticks_before(time_seconds: float, samp_rate: float) -> int:
    """Number of ticks ``k`` with ``k / samp_rate < time_seconds``."""
    if time_seconds <= 0:
        return 0
    n = math.ceil(time_seconds * samp_rate)
    # float noise: 0.3 s at 10 Hz is 3 ticks, not 4
    while n > 0 and (n - 1) / samp_rate >= time_seconds:
        n -= 1
    while n / samp_rate < time_seconds:
        n += 1
    return n


def ticks_through(time_seconds: float, samp_rate: float) -> int:
    """Number of ticks ``k`` with ``k / samp_rate <= time_seconds``."""
    if time_seconds < 0:
        return 0
    n = ticks_before(time_seconds, samp_rate)
    if n / samp_rate == time_seconds:
        n += 1
    return n
