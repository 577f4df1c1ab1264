"""
base_streamer Visualization Module

Provides functions for plotting and printing device timelines.
"""

from .timeline import (
    plot_device,
    text_timeline,
    timeline_summary,
)

__all__ = [
    'plot_device',
    'text_timeline',
    'timeline_summary',
]
