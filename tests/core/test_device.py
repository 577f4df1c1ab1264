"""
Tests for `base_streamer/device.py`: channel registry and aggregation.
"""

import numpy as np
import pytest

from base_streamer.channel import Channel
from base_streamer.device import Device
from base_streamer.errors import ChannelNotFound, ConflictingSchedule, DuplicateChannel, InvalidRange
from base_streamer.types import C128, vec


def test_channels_in_insertion_order(device):
    device.add_channel("aa")
    assert device.chan_ids() == ["ao0", "ao1", "aa"]
    assert [chan.name for chan in device.chans()] == ["ao0", "ao1", "aa"]
    assert len(device) == 3
    assert "aa" in device
    assert repr(device) == "<Device: dev0 [ao0, ao1, aa]>"


def test_add_channel_with_config():
    dev = Device("dev")
    ch = dev.add_channel("iq", elem=C128, dflt_val=1.0, rst_val=0.5j)
    assert isinstance(ch, Channel)
    assert ch.elem == C128
    assert ch.dflt_val == 1 + 0j
    assert dev.channel("iq") is ch


def test_add_existing_channel():
    dev = Device("dev")
    ch = Channel("ao0")
    assert dev.add_chan(ch) is ch
    assert dev["ao0"] is ch


def test_duplicate_channel(device):
    with pytest.raises(DuplicateChannel, match="ao0"):
        device.add_chan(Channel("ao0"))
    assert device.chan_ids() == ["ao0", "ao1"]


def test_channel_not_found(device):
    with pytest.raises(ChannelNotFound, match="no channel 'nope'"):
        device.channel("nope")
    # usable with plain KeyError handlers
    with pytest.raises(KeyError):
        device["nope"]


def test_device_name_validated():
    with pytest.raises(ValueError):
        Device("")


def test_aggregation(device):
    assert not device.got_instructions()
    assert device.last_instr_end_time() is None
    assert device.is_bounded()
    assert device.active_chans() == []

    device["ao1"].constant(2.0, 1.0, 4.0)
    assert device.got_instructions()
    assert device.active_chans() == [device["ao1"]]
    assert device.last_instr_end_time() == 5.0

    device["ao0"].constant(1.0, 7.0)
    assert device.last_instr_end_time() == 7.0
    assert not device.is_bounded()


def test_clear(device):
    device["ao0"].constant(1.0, 0.0, 1.0)
    device["ao1"].constant(1.0, 0.0, 1.0)
    device.clear()
    assert not device.got_instructions()


def test_add_reset_instr():
    dev = Device("dev")
    dev.add_channel("a", rst_val=1.0)
    dev.add_channel("b", rst_val=2.0)
    dev["a"].constant(5.0, 0.0, 3.0)
    dev.add_reset_instr(3.0)
    assert dev["a"].sample_at(10.0) == 1.0
    assert dev["b"].sample_at(10.0) == 2.0
    with pytest.raises(InvalidRange):
        dev.add_reset_instr(1.0)


def test_add_reset_instr_below_last_end_changes_nothing():
    dev = Device("dev")
    dev.add_channel("a")
    dev.add_channel("b").constant(1.0, 0.0, 5.0)
    with pytest.raises(InvalidRange):
        dev.add_reset_instr(3.0)
    assert dev["a"].timeline() == ()
    assert [(i.start, i.end) for i in dev["b"].timeline()] == [(0.0, 5.0)]


def test_add_reset_instr_rolls_back_on_conflict():
    dev = Device("dev")
    dev.add_channel("a")
    dev.add_channel("b").constant(1.0, 5.0)
    before = dev["b"].timeline()
    # "a" accepts the reset, "b" already has an open-ended at 5.0
    with pytest.raises(ConflictingSchedule):
        dev.add_reset_instr(5.0)
    assert dev["a"].timeline() == ()
    assert dev["b"].timeline() == before


def test_ends_on_marker(device):
    assert not device.ends_on_marker()
    device["ao0"].constant(1.0, 0.0, 2.0)
    assert not device.ends_on_marker()
    device["ao1"].constant(7.0, 2.0, 0.0)
    assert device.ends_on_marker()
    device["ao0"].constant(1.0, 2.0, 1.0)
    assert not device.ends_on_marker()


def test_calc_samps(device):
    device["ao0"].constant(1.0, 1.0, 1.0)
    samps = device.calc_samps([0.0, 1.0, 2.0])
    assert samps.shape == (2, 3)
    np.testing.assert_array_equal(samps, [[0.0, 1.0, 0.0], [-1.0, -1.0, -1.0]])


def test_calc_samps_rejects_vector_channels():
    dev = Device("dev")
    dev.add_channel("xyz", elem=vec(3))
    with pytest.raises(TypeError, match="scalar channels"):
        dev.calc_samps([0.0])


def test_calc_samps_empty_device():
    assert Device("dev").calc_samps([0.0, 1.0]).shape == (0, 2)
