"""
Code generation for function types.

A function type is described declaratively: its parameters with their
types, optional defaults and validity checks, and a single ``formula`` of
time and those parameters. ``fn_type`` turns such a description into a
frozen-dataclass ``Calc`` implementor with a validating constructor; the
``std_fn`` / ``usr_fn`` decorators do the same for a class-body description
and register the result in the standard / user function library:

    @usr_fn
    class Chirp:
        \"\"\"Linear chirp: `amp * sin(2Pi * (f0 + k*t/2) * t)`\"\"\"
        amp: float
        f0: float
        k: float

        checks = {"f0": "nonnegative"}

        def formula(t, amp, f0, k):
            return amp * np.sin(2 * np.pi * (f0 + 0.5 * k * t) * t)

    usr_lib.Chirp(amp=1.0, f0=10.0, k=2.0)

Structural problems in a description raise ``MalformedFunctionSpec`` when the
type is generated (i.e. at import time of the defining module), never when a
value is constructed or evaluated.
"""
from __future__ import annotations

import builtins
import dis
import inspect
import keyword
import logging
import operator
import types
from dataclasses import field, fields, make_dataclass
from typing import Any, Callable, Iterator, Mapping

import numpy as np

from ..errors import InvalidParameter, MalformedFunctionSpec
from ..types import ElemType, F64
from .calc import Calc, _as_time_array

logger = logging.getLogger(__name__)

_MISSING = object()

# Attribute names of Calc a parameter must not shadow
_RESERVED = frozenset({
    "elem", "calc", "evaluate", "is_constant", "copy", "shifted",
    "formula", "checks", "const_when",
})

_SCALAR_PARAM_TYPES = (float, int, complex, bool)

# Declarative check vocabulary: name -> (predicate, message)
CHECKS: dict[str, tuple[Callable[[Any], bool], str]] = {
    "positive": (lambda v: bool(np.all(np.asarray(v) > 0)), "must be > 0"),
    "nonnegative": (lambda v: bool(np.all(np.asarray(v) >= 0)), "must be >= 0"),
    "nonzero": (lambda v: bool(np.all(np.asarray(v) != 0)), "must be nonzero"),
    "finite": (lambda v: bool(np.all(np.isfinite(v))), "must be finite"),
}


def _coerce_param(ty, value):
    """Convert a constructor argument to its declared type."""
    if isinstance(ty, ElemType):
        return ty.coerce(value)
    try:
        if ty is bool:
            if not isinstance(value, (bool, np.bool_)):
                raise TypeError(f"expected bool, got {type(value).__name__}")
            return bool(value)
        if ty is int:
            return operator.index(value)
        return ty(value)
    except (TypeError, ValueError) as e:
        raise InvalidParameter(f"expected {ty.__name__}, got {value!r}: {e}") from e


class _GeneratedFn(Calc):
    """Shared behavior of every generated function type."""
    _param_types: Mapping[str, Any] = {}
    _formula: Callable[..., Any]
    _formula_args: tuple[str, ...] = ()
    _checks: Mapping[str, tuple[tuple[Callable[[Any], bool], str], ...]] = {}
    _const_when: Callable[..., bool] | None = None
    _const_when_args: tuple[str, ...] = ()

    def __post_init__(self):
        cls_name = type(self).__name__
        for name, ty in self._param_types.items():
            try:
                value = _coerce_param(ty, getattr(self, name))
            except InvalidParameter as e:
                raise InvalidParameter(f"{cls_name}: parameter '{name}' {e}") from e
            object.__setattr__(self, name, value)
        for name, checks in self._checks.items():
            value = getattr(self, name)
            for predicate, message in checks:
                if not predicate(value):
                    raise InvalidParameter(f"{cls_name}: {name}={value!r} {message}")

    def _param_values(self, names) -> dict[str, Any]:
        return {name: getattr(self, name) for name in names}

    def calc(self, t_arr):
        t_arr = _as_time_array(t_arr)
        res = type(self)._formula(t_arr, **self._param_values(self._formula_args))
        res = np.asarray(res, dtype=self.elem.dtype)
        return np.broadcast_to(res, (len(t_arr),) + self.elem.shape).copy()

    def is_constant(self) -> bool:
        const_when = type(self)._const_when
        if const_when is None:
            return False
        return bool(const_when(**self._param_values(self._const_when_args)))


def _iter_code(code: types.CodeType) -> Iterator[types.CodeType]:
    yield code
    for const in code.co_consts:
        if isinstance(const, types.CodeType):
            yield from _iter_code(const)


def _undefined_globals(func) -> list[str]:
    """Global names loaded by ``func`` that resolve neither in its module nor in builtins."""
    missing = []
    for code in _iter_code(func.__code__):
        for instr in dis.get_instructions(code):
            if instr.opname in ("LOAD_GLOBAL", "LOAD_NAME"):
                name = instr.argval
                if name not in func.__globals__ and not hasattr(builtins, name):
                    missing.append(name)
    return missing


def _arg_names(name: str, what: str, func, params: Mapping[str, Any], leading: tuple[str, ...] = ()) -> tuple[str, ...]:
    """Names of declared parameters ``func`` takes (all of them if it has ``**kwargs``)."""
    if not callable(func):
        raise MalformedFunctionSpec(f"{name}: {what} must be callable, got {func!r}")
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError) as e:
        raise MalformedFunctionSpec(f"{name}: cannot inspect {what} signature: {e}") from e
    args = list(sig.parameters.values())
    for lead in leading:
        if not args or args[0].name != lead or args[0].kind not in (
            inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD
        ):
            raise MalformedFunctionSpec(
                f"{name}: the first argument of {what} must be '{lead}', got {sig}"
            )
        args = args[1:]
    names = []
    takes_all = False
    for arg in args:
        if arg.kind is inspect.Parameter.VAR_KEYWORD:
            takes_all = True
        elif arg.kind is inspect.Parameter.VAR_POSITIONAL:
            raise MalformedFunctionSpec(f"{name}: {what} must not take *{arg.name}")
        elif arg.name not in params:
            raise MalformedFunctionSpec(
                f"{name}: {what} references undeclared parameter '{arg.name}'. "
                f"Declared parameters: {list(params)}"
            )
        else:
            names.append(arg.name)
    missing = _undefined_globals(func)
    if missing:
        raise MalformedFunctionSpec(
            f"{name}: {what} references undefined name(s) {missing}"
        )
    return tuple(params) if takes_all else tuple(names)


def _normalize_checks(name: str, checks, params) -> dict[str, tuple[tuple[Callable, str], ...]]:
    result = {}
    for pname, spec in (checks or {}).items():
        if pname not in params:
            raise MalformedFunctionSpec(f"{name}: check given for undeclared parameter '{pname}'")
        specs = spec if isinstance(spec, list) else [spec]
        normalized = []
        for item in specs:
            if isinstance(item, str):
                if item not in CHECKS:
                    raise MalformedFunctionSpec(
                        f"{name}: unknown check '{item}' for '{pname}'. Known checks: {sorted(CHECKS)}"
                    )
                normalized.append(CHECKS[item])
            elif isinstance(item, tuple) and len(item) == 2 and callable(item[0]):
                normalized.append((item[0], str(item[1])))
            else:
                raise MalformedFunctionSpec(
                    f"{name}: check for '{pname}' must be a check name or a (predicate, message) pair, got {item!r}"
                )
        result[pname] = tuple(normalized)
    return result


def fn_type(
    name: str,
    params: Mapping[str, Any],
    formula: Callable[..., Any],
    *,
    elem: ElemType = F64,
    defaults: Mapping[str, Any] | None = None,
    checks: Mapping[str, Any] | None = None,
    const_when: Callable[..., bool] | None = None,
    doc: str | None = None,
    module: str | None = None,
    qualname: str | None = None,
) -> type[Calc]:
    """
    Generate a ``Calc`` implementor from a declarative description.

    Args:
        name: Type name, must be a valid identifier.
        params: Ordered mapping of parameter name to its type: ``float``,
            ``int``, ``complex``, ``bool`` or an ``ElemType`` for array-valued
            parameters.
        formula: ``formula(t, **params)`` returning values for a time array
            ``t``. It may take only a subset of the parameters.
        elem: Element type of the function's output.
        defaults: Default values for trailing parameters.
        checks: Parameter name -> check name / ``(predicate, message)`` /
            list of those; violations raise ``InvalidParameter`` on construction.
        const_when: Predicate on parameters telling when the output is
            time-independent.

    Raises:
        MalformedFunctionSpec: the description is structurally invalid.
    """
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise MalformedFunctionSpec(f"Function type name must be an identifier, got {name!r}")
    if not isinstance(elem, ElemType):
        raise MalformedFunctionSpec(f"{name}: elem must be an ElemType, got {elem!r}")
    params = dict(params)
    for pname, ty in params.items():
        if not isinstance(pname, str) or not pname.isidentifier() or pname.startswith("_"):
            raise MalformedFunctionSpec(f"{name}: invalid parameter name {pname!r}")
        if pname in _RESERVED:
            raise MalformedFunctionSpec(f"{name}: parameter name '{pname}' is reserved")
        if ty is None or ty is _MISSING:
            raise MalformedFunctionSpec(f"{name}: parameter '{pname}' has no declared type")
        if not (ty in _SCALAR_PARAM_TYPES or isinstance(ty, ElemType)):
            raise MalformedFunctionSpec(
                f"{name}: parameter '{pname}' has unsupported type {ty!r}. "
                f"Supported: float, int, complex, bool or an ElemType"
            )

    formula = getattr(formula, "__func__", formula)
    if formula is None:
        raise MalformedFunctionSpec(f"{name}: no formula given")
    formula_args = _arg_names(name, "formula", formula, params, leading=("t",))
    unused = [p for p in params if p not in formula_args]
    if unused:
        logger.warning("Function type %s: parameters %s are not used by its formula", name, unused)

    const_when_args: tuple[str, ...] = ()
    if const_when is not None:
        const_when = getattr(const_when, "__func__", const_when)
        const_when_args = _arg_names(name, "const_when", const_when, params)

    defaults = dict(defaults or {})
    for pname, value in defaults.items():
        if pname not in params:
            raise MalformedFunctionSpec(f"{name}: default given for undeclared parameter '{pname}'")
        try:
            defaults[pname] = _coerce_param(params[pname], value)
        except InvalidParameter as e:
            raise MalformedFunctionSpec(f"{name}: invalid default for '{pname}': {e}") from e

    dc_fields = []
    seen_default = None
    for pname, ty in params.items():
        annotation = np.ndarray if isinstance(ty, ElemType) else ty
        if pname in defaults:
            seen_default = pname
            default = defaults[pname]
            if isinstance(default, np.ndarray):
                dc_fields.append((pname, annotation, field(default_factory=lambda d=default: d)))
            else:
                dc_fields.append((pname, annotation, field(default=default)))
        else:
            if seen_default is not None:
                raise MalformedFunctionSpec(
                    f"{name}: parameter '{pname}' without default follows defaulted '{seen_default}'"
                )
            dc_fields.append((pname, annotation))

    namespace = {
        "elem": elem,
        "_param_types": params,
        "_formula": staticmethod(formula),
        "_formula_args": formula_args,
        "_checks": _normalize_checks(name, checks, params),
        "_const_when": staticmethod(const_when) if const_when is not None else None,
        "_const_when_args": const_when_args,
        "__doc__": inspect.cleandoc(doc) if doc else f"{name}({', '.join(params)})",
    }
    cls = make_dataclass(name, dc_fields, bases=(_GeneratedFn,), namespace=namespace, frozen=True)
    if module is not None:
        cls.__module__ = module
    cls.__qualname__ = qualname or name
    if any(isinstance(ty, ElemType) for ty in params.values()):
        cls.__hash__ = None
        cls.__eq__ = _array_param_eq
    logger.debug("Generated function type %s(%s) -> %s", name, ", ".join(params), elem)
    return cls


def _array_param_eq(self, other):
    if type(self) is not type(other):
        return NotImplemented
    for f in fields(self):
        ty = self._param_types[f.name]
        a, b = getattr(self, f.name), getattr(other, f.name)
        if isinstance(ty, ElemType):
            if not ty.equal(a, b):
                return False
        elif a != b:
            return False
    return True


def fn_type_from_class(cls: type, *, elem: ElemType | None = None, checks=None) -> type[Calc]:
    """Build a function type from a declarative class body (see module docstring)."""
    name = cls.__name__
    try:
        annotations = inspect.get_annotations(cls, eval_str=True)
    except Exception as e:
        raise MalformedFunctionSpec(f"{name}: cannot resolve parameter annotations: {e}") from e

    body = dict(vars(cls))
    formula = body.get("formula")
    if formula is None:
        raise MalformedFunctionSpec(f"{name}: missing 'formula'")
    const_when = body.get("const_when")
    if elem is None:
        elem = body.get("elem", F64)
    if checks is None:
        checks = body.get("checks")

    # anything else set in the body must be a typed parameter
    for attr, value in body.items():
        if attr.startswith("__") or attr in _RESERVED or attr in annotations:
            continue
        if callable(value) or isinstance(value, (staticmethod, classmethod, property)):
            continue
        raise MalformedFunctionSpec(f"{name}: parameter '{attr}' has no declared type")

    params = {pname: ty for pname, ty in annotations.items() if pname not in _RESERVED}
    defaults = {pname: body[pname] for pname in params if pname in body}
    return fn_type(
        name, params, formula,
        elem=elem,
        defaults=defaults,
        checks=checks,
        const_when=const_when,
        doc=cls.__doc__,
        module=cls.__module__,
        qualname=cls.__qualname__,
    )


class FnLib:
    """
    Registry of function types exposing their constructors by attribute:
    ``std_lib.Sine(amp=1.0, freq=10.0)``.
    """

    def __init__(self, name: str):
        self._name = name
        self._fns: dict[str, type[Calc]] = {}

    def register(self, fn_cls: type[Calc], name: str | None = None) -> type[Calc]:
        name = name or fn_cls.__name__
        if name in self._fns:
            raise MalformedFunctionSpec(
                f"Function library '{self._name}' already has a function named '{name}'"
            )
        self._fns[name] = fn_cls
        return fn_cls

    def get(self, name: str) -> type[Calc]:
        return self._fns[name]

    def names(self) -> list[str]:
        return list(self._fns)

    def __getattr__(self, name: str) -> type[Calc]:
        fns = self.__dict__.get("_fns", {})
        try:
            return fns[name]
        except KeyError:
            raise AttributeError(
                f"Function library '{self.__dict__.get('_name')}' has no function '{name}'"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._fns

    def __iter__(self):
        return iter(self._fns)

    def __len__(self) -> int:
        return len(self._fns)

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._fns))

    def __repr__(self) -> str:
        return f"<FnLib {self._name}: {', '.join(self._fns)}>"


std_lib = FnLib("std")
usr_lib = FnLib("usr")


def _lib_fn(lib: FnLib):
    def decorator(cls=None, /, *, elem: ElemType | None = None, checks=None):
        def wrap(cls):
            return lib.register(fn_type_from_class(cls, elem=elem, checks=checks))
        return wrap if cls is None else wrap(cls)
    decorator.__doc__ = f"Generate a function type from a class body and register it in ``{lib._name}_lib``."
    return decorator


std_fn = _lib_fn(std_lib)
usr_fn = _lib_fn(usr_lib)
