"""
The library of built-in waveform functions.

Every entry is generated by ``std_fn`` from a parameter list and a formula
and registered in ``std_lib``. ``Poly`` takes a variable-length coefficient
vector and is written by hand against ``Calc`` directly.
"""
import numpy as np

from ..types import C128
from .calc import Poly
from .codegen import std_fn, std_lib


# region F64 functions
@std_fn
class ConstF64:
    """
    Constant function:
        val: value
    """
    val: float

    checks = {"val": ["finite"]}

    def formula(t, val):
        return val

    def const_when():
        return True


@std_fn
class LinFn:
    """
    Linear function:
    `LinFn(t) = slope*t + offs`
    """
    slope: float
    offs: float

    checks = {"slope": ["finite"], "offs": ["finite"]}

    def formula(t, slope, offs):
        return slope * t + offs

    def const_when(slope):
        return slope == 0


@std_fn
class LinRamp:
    """
    Linear ramp from `start_val` at t=0 to `end_val` at t=dur:
    `LinRamp(t) = start_val + (end_val - start_val) * t / dur`
    """
    start_val: float
    end_val: float
    dur: float

    checks = {"start_val": ["finite"], "end_val": ["finite"], "dur": ["positive", "finite"]}

    def formula(t, start_val, end_val, dur):
        return start_val + (end_val - start_val) * (t / dur)

    def const_when(start_val, end_val):
        return start_val == end_val


@std_fn
class Sine:
    """
    Sine function:
        amp - amplitude (in Volts)
        freq - linear frequency (in Hz)
        phase - absolute phase (in radians)
        offs - offset (in Volts)
    `Sine(t) = amp * sin(2Pi * freq * t + phase) + offs`
    """
    amp: float
    freq: float
    phase: float = 0.0
    offs: float = 0.0

    checks = {
        "amp": ["finite"],
        "freq": ["nonnegative", "finite"],
        "phase": ["finite"],
        "offs": ["finite"],
    }

    def formula(t, amp, freq, phase, offs):
        return offs + amp * np.sin(2 * np.pi * freq * t + phase)

    def const_when(amp, freq):
        return amp == 0 or freq == 0


@std_fn
class Gaussian:
    """
    Gaussian function:
    `Gaussian(t) = scale * exp[-(t - t0)^2 / (2 * sigma^2)] + offs`
    """
    t0: float
    sigma: float
    scale: float
    offs: float = 0.0

    checks = {"t0": ["finite"], "sigma": ["positive", "finite"], "scale": ["finite"], "offs": ["finite"]}

    def formula(t, t0, sigma, scale, offs):
        return offs + scale * np.exp(-(t - t0) ** 2 / (2 * sigma ** 2))

    def const_when(scale):
        return scale == 0


@std_fn
class Lorentzian:
    """
    Lorentzian function:
    `Lorentzian(t) = scale / (((t-t0)/tau)^2 + 1) + offs`
    """
    t0: float
    tau: float
    scale: float
    offs: float = 0.0

    checks = {"t0": ["finite"], "tau": ["positive", "finite"], "scale": ["finite"], "offs": ["finite"]}

    def formula(t, t0, tau, scale, offs):
        return offs + scale / (((t - t0) / tau) ** 2 + 1.0)

    def const_when(scale):
        return scale == 0


@std_fn
class TanH:
    """
    Hyperbolic tangent function:
    `TanH(t) = scale * tanh[(t - t0)/tau] + offs`
    """
    t0: float
    tau: float
    scale: float
    offs: float = 0.0

    checks = {"t0": ["finite"], "tau": ["nonzero", "finite"], "scale": ["finite"], "offs": ["finite"]}

    def formula(t, t0, tau, scale, offs):
        return offs + scale * np.tanh((t - t0) / tau)

    def const_when(scale):
        return scale == 0


@std_fn
class Exp:
    """
    Exponential function:
    `Exp(t) = scale * exp(t/tau) + offs`
    """
    tau: float
    scale: float
    offs: float = 0.0

    checks = {"tau": ["nonzero", "finite"], "scale": ["finite"], "offs": ["finite"]}

    def formula(t, tau, scale, offs):
        return offs + scale * np.exp(t / tau)

    def const_when(scale):
        return scale == 0
# endregion


# region C128 functions
@std_fn(elem=C128)
class ConstC128:
    """
    Complex constant:
        val: value
    """
    val: complex

    checks = {"val": ["finite"]}

    def formula(t, val):
        return val

    def const_when():
        return True


@std_fn(elem=C128)
class CExp:
    """
    Rotating phasor:
    `CExp(t) = amp * exp[i * (2Pi * freq * t + phase)]`
    """
    amp: float
    freq: float
    phase: float = 0.0

    checks = {"amp": ["finite"], "freq": ["nonnegative", "finite"], "phase": ["finite"]}

    def formula(t, amp, freq, phase):
        return amp * np.exp(1j * (2 * np.pi * freq * t + phase))

    def const_when(amp, freq):
        return amp == 0 or freq == 0
# endregion


std_lib.register(Poly)
