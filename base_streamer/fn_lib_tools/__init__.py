"""
Waveform function tools: the ``Calc`` capability interface, the code
generator for new function types and the built-in function library.
"""

from .calc import Calc, ConstFn, DiffFn, Poly, ProdFn, ScaledFn, ShiftedFn, SumFn
from .codegen import CHECKS, FnLib, fn_type, fn_type_from_class, std_fn, std_lib, usr_fn, usr_lib
from . import std_fn_lib  # registers the built-in functions in std_lib

__all__ = [
    # Calculus
    'Calc',
    'ConstFn',
    'Poly',
    'SumFn',
    'DiffFn',
    'ProdFn',
    'ScaledFn',
    'ShiftedFn',

    # Code generation
    'CHECKS',
    'fn_type',
    'fn_type_from_class',
    'std_fn',
    'usr_fn',
    'FnLib',
    'std_lib',
    'usr_lib',
]
