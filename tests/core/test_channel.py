"""
Tests for `base_streamer/channel.py`: scheduling with last-write-wins,
gap padding and sampling.
"""

import numpy as np
import pytest

from base_streamer.channel import Channel
from base_streamer.errors import ConflictingSchedule, InvalidParameter, InvalidRange
from base_streamer.fn_lib_tools import ConstFn, std_lib
from base_streamer.instruction import Instr
from base_streamer.types import C128


def spans(chan):
    return [(instr.start, instr.end) for instr in chan.timeline()]


# --- Construction ---

def test_channel_defaults(chan):
    assert chan.name == "ao0"
    assert chan.dflt_val == 0.0
    assert chan.rst_val == 0.0
    assert not chan.got_instructions()
    assert chan.timeline() == ()
    assert repr(chan) == "<Channel: ao0>"


def test_channel_rst_val_defaults_to_dflt_val():
    ch = Channel("ao1", dflt_val=2.0)
    assert ch.rst_val == 2.0
    assert Channel("ao2", dflt_val=2.0, rst_val=-1.0).rst_val == -1.0


@pytest.mark.parametrize("name", ["", "   ", None, 3])
def test_channel_name_validated(name):
    with pytest.raises(ValueError):
        Channel(name)


def test_channel_default_value_validated():
    with pytest.raises(InvalidParameter):
        Channel("ao0", dflt_val="off")


# --- Scheduling ---

def test_add_instr_and_constant(chan):
    ramp = std_lib.LinFn(slope=1.0, offs=0.0)
    instr = chan.add_instr(ramp, 1.0, 2.0)
    assert instr == Instr(ramp, 1.0, 2.0)
    chan.constant(3.0, 5.0, 1.0)
    assert spans(chan) == [(1.0, 3.0), (5.0, 6.0)]
    assert chan.got_instructions()


def test_timeline_is_sorted_by_start(chan):
    chan.constant(1.0, 5.0, 1.0)
    chan.constant(2.0, 0.0, 1.0)
    chan.constant(3.0, 2.0, 1.0)
    assert spans(chan) == [(0.0, 1.0), (2.0, 3.0), (5.0, 6.0)]


def test_full_containment_removes_existing(chan):
    chan.constant(1.0, 2.0, 1.0)
    before = chan.timeline()
    chan.constant(2.0, 1.0, 5.0)
    after = chan.timeline()
    assert before == (Instr(ConstFn(1.0), 2.0, 1.0),)
    assert after == (Instr(ConstFn(2.0), 1.0, 5.0),)


def test_tail_overlap_truncates_existing(chan):
    chan.constant(1.0, 0.0, 5.0)
    before = chan.timeline()
    chan.constant(2.0, 3.0, 4.0)
    after = chan.timeline()
    assert [(i.start, i.end) for i in before] == [(0.0, 5.0)]
    assert [(i.start, i.end) for i in after] == [(0.0, 3.0), (3.0, 7.0)]
    assert after[0].func == ConstFn(1.0)


def test_new_instruction_inside_existing_splits_it(chan):
    chan.add_instr(std_lib.LinFn(slope=1.0, offs=0.0), 0.0, 10.0)
    chan.constant(-1.0, 4.0, 2.0)
    assert spans(chan) == [(0.0, 4.0), (4.0, 6.0), (6.0, 10.0)]
    assert chan.sample_at(7.0) == pytest.approx(7.0)


def test_new_instruction_covering_several(chan):
    for k in range(5):
        chan.constant(float(k), 2.0 * k, 1.0)
    chan.constant(9.0, 1.5, 5.0)
    assert spans(chan) == [(0.0, 1.0), (1.5, 6.5), (6.5, 7.0), (8.0, 9.0)]


def test_two_open_ended_at_same_start_conflict(chan):
    chan.constant(1.0, 1.0)
    before = chan.timeline()
    with pytest.raises(ConflictingSchedule):
        chan.constant(2.0, 1.0)
    assert chan.timeline() == before


def test_failed_schedule_leaves_timeline_unchanged(chan):
    chan.constant(1.0, 0.0, 2.0)
    chan.constant(2.0, 3.0)
    chan.constant(3.0, 5.0, 0.0)
    before = chan.timeline()
    with pytest.raises(ConflictingSchedule):
        chan.schedule(Instr(ConstFn(4.0), 3.0))
    assert chan.timeline() == before


def test_open_ended_truncated_by_later_instruction(chan):
    chan.constant(1.0, 1.0)
    chan.constant(2.0, 4.0, 1.0)
    assert spans(chan) == [(1.0, 4.0), (4.0, 5.0)]
    # the open-ended segment does not resume after the new one
    assert chan.sample_at(6.0) == 0.0


def test_new_open_ended_is_superseded_by_later_instructions(chan):
    chan.constant(2.0, 4.0, 1.0)
    chan.constant(1.0, 1.0)
    assert spans(chan) == [(1.0, 4.0), (4.0, 5.0)]
    assert chan.sample_at(3.0) == 1.0
    assert chan.sample_at(4.5) == 2.0


def test_new_open_ended_replaces_overlapped_part(chan):
    chan.constant(1.0, 0.0, 5.0)
    chan.constant(2.0, 3.0)
    assert spans(chan) == [(0.0, 3.0), (3.0, None)]
    assert not chan.is_bounded()


def test_elem_mismatch_rejected(chan, complex_chan):
    with pytest.raises(TypeError, match="expects f64"):
        chan.add_instr(std_lib.CExp(amp=1.0, freq=1.0), 0.0, 1.0)
    with pytest.raises(TypeError):
        complex_chan.add_instr(ConstFn(1.0), 0.0, 1.0)
    assert not chan.got_instructions()


def test_markers(chan):
    chan.constant(1.0, 0.0, 10.0)
    chan.constant(5.0, 3.0, 0.0)
    assert spans(chan) == [(0.0, 10.0), (3.0, 3.0)]
    assert chan.sample_at(3.0) == 5.0
    assert chan.sample_at(3.5) == 1.0
    chan.constant(6.0, 3.0, 0.0)
    assert len(chan.timeline()) == 2
    assert chan.sample_at(3.0) == 6.0


def test_segment_over_marker_overwrites_it(chan):
    chan.constant(9.0, 3.0, 0.0)
    chan.constant(2.0, 0.0, 10.0)
    assert spans(chan) == [(0.0, 10.0)]
    assert chan.sample_at(3.0) == 2.0
    np.testing.assert_array_equal(chan.calc_samps([2.0, 3.0, 4.0]), [2.0, 2.0, 2.0])


def test_marker_at_segment_end_survives(chan):
    chan.constant(9.0, 10.0, 0.0)
    chan.constant(2.0, 0.0, 10.0)
    assert spans(chan) == [(0.0, 10.0), (10.0, 10.0)]
    assert chan.sample_at(10.0) == 9.0


def test_open_ended_over_marker_overwrites_it(chan):
    chan.constant(9.0, 3.0, 0.0)
    chan.constant(4.0, 5.0, 1.0)
    chan.constant(2.0, 1.0)
    # truncated at the segment, the marker inside is gone
    assert spans(chan) == [(1.0, 5.0), (5.0, 6.0)]
    assert chan.sample_at(3.0) == 2.0


def test_has_marker_at(chan):
    chan.constant(1.0, 0.0, 2.0)
    chan.constant(7.0, 2.0, 0.0)
    assert chan.has_marker_at(2.0)
    assert not chan.has_marker_at(0.0)


def test_clear(chan):
    chan.constant(1.0, 0.0, 1.0)
    chan.clear()
    assert chan.timeline() == ()
    assert chan.last_instr_end_time() is None


# --- Bounds ---

def test_last_instr_end_time(chan):
    assert chan.last_instr_end_time() is None
    chan.constant(1.0, 0.0, 2.0)
    assert chan.last_instr_end_time() == 2.0
    chan.constant(1.0, 5.0)
    assert chan.last_instr_end_time() == 5.0
    assert not chan.is_bounded()


def test_reset_instruction():
    ch = Channel("ao0", dflt_val=0.0, rst_val=-2.0)
    ch.constant(1.0, 0.0, 3.0)
    with pytest.raises(InvalidRange):
        ch.add_reset_instr(2.0)
    reset = ch.add_reset_instr(3.0)
    assert reset.is_open_ended
    assert ch.sample_at(100.0) == -2.0
    assert ch.timeline()[-1] == reset


# --- Sampling ---

def test_gap_uses_default_value():
    ch = Channel("ao0", dflt_val=-1.0)
    ch.constant(1.0, 1.0, 1.0)
    assert ch.sample_at(0.5) == -1.0
    assert ch.sample_at(1.0) == 1.0
    assert ch.sample_at(2.0) == -1.0


def test_keep_val_holds_end_value(chan):
    chan.add_instr(std_lib.LinRamp(start_val=0.0, end_val=4.0, dur=2.0), 0.0, 2.0, keep_val=True)
    chan.constant(0.0, 5.0, 1.0)
    assert chan.sample_at(1.0) == pytest.approx(2.0)
    assert chan.sample_at(3.0) == pytest.approx(4.0)
    assert chan.sample_at(5.5) == 0.0
    assert chan.sample_at(7.0) == 0.0


def test_calc_samps_matches_sample_at():
    ch = Channel("ao0", dflt_val=-1.0)
    ch.add_instr(std_lib.LinRamp(start_val=0.0, end_val=4.0, dur=2.0), 0.0, 2.0, keep_val=True)
    ch.add_instr(std_lib.Sine(amp=1.0, freq=0.1), 3.0, 2.0)
    ch.constant(7.0, 4.0, 0.0)
    ch.constant(3.0, 6.0)
    t_arr = np.arange(0.0, 10.0, 0.25)
    samps = ch.calc_samps(t_arr)
    assert samps.shape == t_arr.shape
    np.testing.assert_allclose(samps, [ch.sample_at(t) for t in t_arr])


def test_calc_samps_evaluates_constant_segments_once(chan, mocker):
    chan.constant(1.0, 0.0, 100.0)
    spy = mocker.spy(ConstFn, "evaluate")
    samps = chan.calc_samps(np.arange(100.0))
    assert np.all(samps == 1.0)
    assert spy.call_count == 1


def test_complex_channel_sampling(complex_chan):
    complex_chan.add_instr(std_lib.CExp(amp=1.0, freq=0.25), 0.0, 4.0)
    assert complex_chan.sample_at(1.0) == pytest.approx(1j)
    assert complex_chan.sample_at(5.0) == 0j
    samps = complex_chan.calc_samps([0.0, 1.0, 5.0])
    assert samps.dtype == np.complex128
    np.testing.assert_allclose(samps, [1.0, 1j, 0.0], atol=1e-12)


def test_vector_channel_sampling(vec_chan):
    vec_chan.constant([1.0, 2.0, 3.0], 1.0, 1.0)
    samps = vec_chan.calc_samps([0.0, 1.5])
    assert samps.shape == (2, 3)
    np.testing.assert_array_equal(samps, [[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]])
    np.testing.assert_array_equal(vec_chan.sample_at(1.5), [1.0, 2.0, 3.0])


def test_complex_channel_default():
    ch = Channel("iq", elem=C128, dflt_val=1j)
    assert ch.sample_at(0.0) == 1j
