"""
Element types for base_streamer.

A channel's samples all share one element type ``T``: a real scalar, a
complex scalar or a fixed-length real vector. ``FnTraitSet`` is the
capability bundle such values must support; ``ElemType`` is its concrete
runtime description (numpy dtype, sample shape and zero value) used to size
buffers and coerce parameters.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Self, runtime_checkable

import numpy as np

from .errors import InvalidParameter


@runtime_checkable
class FnTraitSet(Protocol):
    """Capabilities every sample value must provide. All operations are total."""

    def __add__(self, other: Self) -> Self: ...
    def __sub__(self, other: Self) -> Self: ...
    def __mul__(self, k: float) -> Self: ...
    def __eq__(self, other: object) -> bool: ...
    def __repr__(self) -> str: ...


@dataclass(frozen=True)
class ElemType:
    """Runtime description of an element type ``T``."""
    name: str
    dtype: type
    shape: tuple[int, ...] = ()

    def __post_init__(self):
        if any(n < 1 for n in self.shape):
            raise ValueError(f"ElemType shape must be positive, got {self.shape}")

    def __str__(self):
        return self.name

    @property
    def is_scalar(self) -> bool:
        return self.shape == ()

    @property
    def zero(self) -> Any:
        """Default (zero) value of this element type."""
        return self.item(np.zeros(self.shape, dtype=self.dtype))

    def coerce(self, value: Any) -> Any:
        """Convert ``value`` to this element type or raise ``InvalidParameter``."""
        if self.is_scalar:
            py_type = complex if np.issubdtype(self.dtype, np.complexfloating) else float
            try:
                return py_type(value)
            except (TypeError, ValueError) as e:
                raise InvalidParameter(
                    f"Cannot represent {value!r} as {self.name}: {e}"
                ) from e
        try:
            arr = np.array(value, dtype=self.dtype)
        except (TypeError, ValueError) as e:
            raise InvalidParameter(f"Cannot represent {value!r} as {self.name}: {e}") from e
        if arr.shape != self.shape:
            raise InvalidParameter(
                f"{self.name} expects shape {self.shape}, got {arr.shape}"
            )
        arr.flags.writeable = False
        return arr

    def equal(self, a: Any, b: Any) -> bool:
        if self.is_scalar:
            return a == b
        return bool(np.array_equal(a, b))

    def add(self, a: Any, b: Any) -> Any:
        return self.coerce(np.add(a, b))

    def sub(self, a: Any, b: Any) -> Any:
        return self.coerce(np.subtract(a, b))

    def scale(self, a: Any, k: float) -> Any:
        return self.coerce(np.multiply(a, k))

    def empty(self, n: int) -> np.ndarray:
        """Zero-filled buffer for ``n`` samples."""
        return np.zeros((n,) + self.shape, dtype=self.dtype)

    def full(self, n: int, value: Any) -> np.ndarray:
        buf = self.empty(n)
        buf[...] = value
        return buf

    def item(self, row: np.ndarray) -> Any:
        """Turn one sample of a buffer into a standalone value."""
        if self.is_scalar:
            return np.asarray(row).item()
        arr = np.array(row, dtype=self.dtype)
        arr.flags.writeable = False
        return arr


F64 = ElemType("f64", np.float64)
C128 = ElemType("c128", np.complex128)


def vec(n: int) -> ElemType:
    """Real vector element type of length ``n``."""
    return ElemType(f"vec{n}", np.float64, (n,))
