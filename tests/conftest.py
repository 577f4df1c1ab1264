import matplotlib
matplotlib.use("Agg")

import pytest

from base_streamer.channel import Channel
from base_streamer.device import Device
from base_streamer.fn_lib_tools import std_lib
from base_streamer.instruction import Instr
from base_streamer.streamer import Streamer
from base_streamer.types import C128, vec

# --- Test Fixtures ---

@pytest.fixture
def chan() -> Channel:
    return Channel("ao0")

@pytest.fixture
def complex_chan() -> Channel:
    return Channel("iq0", elem=C128)

@pytest.fixture
def vec_chan() -> Channel:
    return Channel("xyz", elem=vec(3))

@pytest.fixture
def device() -> Device:
    dev = Device("dev0")
    dev.add_channel("ao0")
    dev.add_channel("ao1", dflt_val=-1.0)
    return dev

@pytest.fixture
def streamer() -> Streamer:
    return Streamer(samp_rate=1.0)

@pytest.fixture
def ramp_then_hold_device() -> Device:
    """ramp 0 -> 5 over [0, 2), then constant 5 over [2, 5)"""
    dev = Device("ramp_dev")
    ch = dev.add_channel("ao0")
    ch.schedule(Instr(std_lib.LinRamp(start_val=0.0, end_val=5.0, dur=2.0), 0.0, 2.0))
    ch.schedule(Instr(std_lib.ConstF64(val=5.0), 2.0, 3.0))
    return dev
