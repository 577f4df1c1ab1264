"""
Waveform function calculus.

``Calc`` is the capability interface every function object implements:
vectorized evaluation over a time array, scalar evaluation, a constness
flag and arithmetic composition. Composition builds lazy, immutable nodes
(``SumFn``, ``DiffFn``, ``ProdFn``, ``ScaledFn``, ``ShiftedFn``) that are
themselves ``Calc`` values, so expressions nest without limit.
"""
from __future__ import annotations

import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Self

import numpy as np

from ..errors import InvalidParameter
from ..types import ElemType, F64


def _as_time_array(t_arr) -> np.ndarray:
    return np.asarray(t_arr, dtype=np.float64).reshape(-1)


def _check_same_elem(a: "Calc", b: "Calc") -> ElemType:
    if a.elem != b.elem:
        raise TypeError(
            f"Cannot combine functions of different element types: "
            f"{a.elem} ({a!r}) and {b.elem} ({b!r})"
        )
    return a.elem


def _is_scalar(k: Any) -> bool:
    return isinstance(k, numbers.Real) and not isinstance(k, bool)


class Calc(ABC):
    """
    Capability interface of a waveform function object.

    Implementors are immutable and must define ``elem`` (their element type)
    and ``calc``. Everything else, including the arithmetic operators, is
    provided here.
    """
    elem: ElemType

    @abstractmethod
    def calc(self, t_arr: np.ndarray) -> np.ndarray:
        """Evaluate at every time in ``t_arr``; returns shape ``(n,) + elem.shape``."""

    def evaluate(self, t: float) -> Any:
        """Evaluate at a single time value."""
        return self.elem.item(self.calc(np.array([t], dtype=np.float64))[0])

    def is_constant(self) -> bool:
        return False

    def copy(self) -> Self:
        # immutable, sharing is safe
        return self

    def shifted(self, dt: float) -> "Calc":
        """``g(t) = self(t + dt)``."""
        if dt == 0 or self.is_constant():
            return self
        return ShiftedFn(self, float(dt))

    def __add__(self, other):
        if not isinstance(other, Calc):
            return NotImplemented
        elem = _check_same_elem(self, other)
        return SumFn(_terms(self) + _terms(other), elem)

    def __sub__(self, other):
        if not isinstance(other, Calc):
            return NotImplemented
        return DiffFn(self, other, _check_same_elem(self, other))

    def __mul__(self, other):
        if isinstance(other, Calc):
            elem = _check_same_elem(self, other)
            return ProdFn(_factors(self) + _factors(other), elem)
        if _is_scalar(other):
            return ScaledFn(self, float(other), self.elem)
        return NotImplemented

    def __rmul__(self, other):
        if _is_scalar(other):
            return ScaledFn(self, float(other), self.elem)
        return NotImplemented

    def __truediv__(self, other):
        if _is_scalar(other):
            if other == 0:
                raise ZeroDivisionError(f"Cannot divide {self!r} by zero")
            return ScaledFn(self, 1.0 / other, self.elem)
        return NotImplemented

    def __neg__(self):
        return ScaledFn(self, -1.0, self.elem)


def _terms(fn: Calc) -> tuple[Calc, ...]:
    return fn.terms if isinstance(fn, SumFn) else (fn,)


def _factors(fn: Calc) -> tuple[Calc, ...]:
    return fn.factors if isinstance(fn, ProdFn) else (fn,)


@dataclass(frozen=True, eq=True)
class SumFn(Calc):
    """Point-wise sum. Nested sums are flattened, so ``+`` is exactly associative."""
    terms: tuple[Calc, ...]
    elem: ElemType

    def calc(self, t_arr):
        t_arr = _as_time_array(t_arr)
        res = self.terms[0].calc(t_arr)
        for term in self.terms[1:]:
            res = res + term.calc(t_arr)
        return res

    def is_constant(self) -> bool:
        return all(term.is_constant() for term in self.terms)

    def __repr__(self):
        return "(" + " + ".join(repr(term) for term in self.terms) + ")"


@dataclass(frozen=True, eq=True)
class DiffFn(Calc):
    """Point-wise difference ``lhs - rhs``."""
    lhs: Calc
    rhs: Calc
    elem: ElemType

    def calc(self, t_arr):
        t_arr = _as_time_array(t_arr)
        return self.lhs.calc(t_arr) - self.rhs.calc(t_arr)

    def is_constant(self) -> bool:
        return self.lhs.is_constant() and self.rhs.is_constant()

    def __repr__(self):
        return f"({self.lhs!r} - {self.rhs!r})"


@dataclass(frozen=True, eq=True)
class ProdFn(Calc):
    """Point-wise (element-wise for vectors) product."""
    factors: tuple[Calc, ...]
    elem: ElemType

    def calc(self, t_arr):
        t_arr = _as_time_array(t_arr)
        res = self.factors[0].calc(t_arr)
        for factor in self.factors[1:]:
            res = res * factor.calc(t_arr)
        return res

    def is_constant(self) -> bool:
        return all(factor.is_constant() for factor in self.factors)

    def __repr__(self):
        return "(" + " * ".join(repr(factor) for factor in self.factors) + ")"


@dataclass(frozen=True, eq=True)
class ScaledFn(Calc):
    """``k * func`` for a real scalar ``k``."""
    func: Calc
    k: float
    elem: ElemType

    def calc(self, t_arr):
        return self.k * self.func.calc(_as_time_array(t_arr))

    def is_constant(self) -> bool:
        return self.k == 0 or self.func.is_constant()

    def __repr__(self):
        return f"{self.k!r}*{self.func!r}"


@dataclass(frozen=True, eq=True)
class ShiftedFn(Calc):
    """Time-shifted view ``func(t + dt)``."""
    func: Calc
    dt: float

    @property
    def elem(self) -> ElemType:
        return self.func.elem

    def calc(self, t_arr):
        return self.func.calc(_as_time_array(t_arr) + self.dt)

    def is_constant(self) -> bool:
        return self.func.is_constant()

    def __repr__(self):
        return f"{self.func!r}.shifted({self.dt!r})"


@dataclass(frozen=True, eq=True)
class ConstFn(Calc):
    """Constant of any element type. Used for channel padding and reset values."""
    val: Any
    elem: ElemType = F64

    def __post_init__(self):
        object.__setattr__(self, "val", self.elem.coerce(self.val))

    def calc(self, t_arr):
        return self.elem.full(len(_as_time_array(t_arr)), self.val)

    def evaluate(self, t: float) -> Any:
        return self.val

    def is_constant(self) -> bool:
        return True

    def __eq__(self, other):
        if not isinstance(other, ConstFn):
            return NotImplemented
        return self.elem == other.elem and self.elem.equal(self.val, other.val)

    def __repr__(self):
        return f"ConstFn(val={self.val!r})"


@dataclass(frozen=True, eq=True)
class Poly(Calc):
    """
    Polynomial with coefficients in increasing order:
    `Poly(t; coeffs) = coeffs[0] + coeffs[1]*t + ... + coeffs[n-1]*t^(n-1)`
    """
    coeffs: tuple[float, ...]
    elem = F64

    def __post_init__(self):
        try:
            coeffs = tuple(float(c) for c in self.coeffs)
        except (TypeError, ValueError) as e:
            raise InvalidParameter(f"Poly coefficients must be real numbers: {e}") from e
        if not coeffs:
            raise InvalidParameter("Poly: empty coefficient vector passed")
        object.__setattr__(self, "coeffs", coeffs)

    def calc(self, t_arr):
        return np.polynomial.polynomial.polyval(_as_time_array(t_arr), self.coeffs)

    def is_constant(self) -> bool:
        return all(c == 0 for c in self.coeffs[1:])
