"""
Device timeline visualization.

``plot_device`` samples every channel of a device and draws one lane per
channel with instruction boundaries marked; ``text_timeline`` renders the
same timelines as plain text for logs and terminals.
"""

import logging
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from ..channel import BaseChan
from ..device import BaseDev
from ..instruction import Instr

logger = logging.getLogger(__name__)

# Span shown after the last edge of an unbounded timeline
OPEN_END_MARGIN = 1.0


# ==============================================================================
# PLOTTING
# ==============================================================================

def plot_device(device: BaseDev,
                t_end: Optional[float] = None,
                n_points: int = 1000,
                figsize: Tuple[int, int] = (15, 8),
                filename: Optional[str] = None,
                show_edges: bool = True) -> Tuple[plt.Figure, plt.Axes]:
    """使用 matplotlib 绘制设备各通道的波形"""
    fig, ax = plt.subplots(figsize=figsize)

    if not device.got_instructions():
        ax.text(0.5, 0.5, f'Empty Device {device.name}',
                ha='center', va='center', transform=ax.transAxes)
        return fig, ax

    if t_end is None:
        t_end = _default_end_time(device)
    t_arr = np.linspace(0.0, t_end, n_points, endpoint=False)

    lanes = device.chans()
    for lane_idx, chan in enumerate(lanes):
        y_base = len(lanes) - 1 - lane_idx
        _draw_channel(ax, chan, t_arr, y_base)
        if show_edges:
            _draw_edges(ax, chan.timeline(), y_base, t_end)

    ax.set_yticks(range(len(lanes)))
    ax.set_yticklabels([chan.name for chan in reversed(lanes)])
    _setup_plot_aesthetics(ax, device.name, t_end)

    if filename:
        fig.savefig(filename, dpi=300, bbox_inches='tight')
        logger.info("Timeline plot saved to %s", filename)

    return fig, ax


def _default_end_time(device: BaseDev) -> float:
    last_end = device.last_instr_end_time() or 0.0
    if not device.is_bounded() or last_end == 0.0:
        return last_end + OPEN_END_MARGIN
    return last_end


def _normalized_traces(chan: BaseChan, t_arr: np.ndarray) -> List[Tuple[str, np.ndarray]]:
    """Real-valued traces of a channel, each scaled into [-0.4, 0.4]."""
    samps = chan.calc_samps(t_arr)
    if np.iscomplexobj(samps):
        traces = [("re", samps.real), ("im", samps.imag)]
    elif samps.ndim == 2:
        traces = [(f"[{i}]", samps[:, i]) for i in range(samps.shape[1])]
    else:
        traces = [("", samps)]
    peak = max((float(np.max(np.abs(y))) for _, y in traces), default=0.0)
    scale = 0.4 / peak if peak > 0 else 1.0
    return [(label, y * scale) for label, y in traces]


def _draw_channel(ax: plt.Axes, chan: BaseChan, t_arr: np.ndarray, y_base: float):
    for label, y in _normalized_traces(chan, t_arr):
        linestyle = '--' if label == 'im' else '-'
        ax.plot(t_arr, y_base + y, linestyle=linestyle, linewidth=1.2,
                label=f"{chan.name}{'.' + label if label else ''}")
    ax.axhline(y_base, color='lightgray', linewidth=0.5, zorder=0)


def _draw_edges(ax: plt.Axes, timeline: Tuple[Instr, ...], y_base: float, t_end: float):
    for instr in timeline:
        if instr.start > t_end:
            continue
        if instr.is_marker:
            ax.plot([instr.start], [y_base + 0.45], marker='v', color='red', markersize=6)
        else:
            ax.vlines(instr.start, y_base - 0.45, y_base + 0.45, colors='gray', linestyles=':', linewidth=0.8)


def _setup_plot_aesthetics(ax: plt.Axes, device_name: str, t_end: float):
    ax.set_xlim(0, t_end)
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Channel')
    ax.set_title(f'Device {device_name} timeline')
    ax.grid(True, axis='x', alpha=0.3)


# ==============================================================================
# TEXT
# ==============================================================================

def text_timeline(device: BaseDev) -> str:
    """生成文本形式的时间轴"""
    if not device.got_instructions():
        return f"Empty Device {device.name}"
    lines = [f"Device {device.name} ({_format_end(device)})"]
    lines.extend(_channel_lines(device))
    return "\n".join(lines)


def _format_end(device: BaseDev) -> str:
    last_end = device.last_instr_end_time()
    if not device.is_bounded():
        return f"open-ended after {last_end}s"
    return f"ends at {last_end}s"


def _format_instr(instr: Instr) -> str:
    if instr.is_open_ended:
        span = f"[{instr.start}, ...)"
    elif instr.is_marker:
        span = f"@{instr.start}"
    else:
        span = f"[{instr.start}, {instr.end})"
    hold = " hold" if instr.keep_val else ""
    return f"{span} {instr.func!r}{hold}"


def _channel_lines(device: BaseDev) -> List[str]:
    name_width = max(len(chan.name) for chan in device.chans())
    lines = []
    for chan in device.chans():
        timeline = chan.timeline()
        if not timeline:
            lines.append(f"  {chan.name:<{name_width}} | (idle)")
            continue
        for idx, instr in enumerate(timeline):
            prefix = chan.name if idx == 0 else ""
            lines.append(f"  {prefix:<{name_width}} | {_format_instr(instr)}")
    return lines


def timeline_summary(device: BaseDev) -> Dict[str, int]:
    """Instruction count per channel."""
    return {chan.name: len(chan.timeline()) for chan in device.chans()}
