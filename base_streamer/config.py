"""
类型化配置参数 (TypedDict)

Keyword configuration accepted by ``Device.add_channel`` and ``Streamer``.
"""

from typing import Any, TypedDict

from .types import ElemType


class ChannelConfig(TypedDict, total=False):
    """通道配置参数"""
    elem: ElemType
    dflt_val: Any
    rst_val: Any


class StreamerConfig(TypedDict, total=False):
    """Streamer 配置参数"""
    samp_rate: float
    chunk_size: int
