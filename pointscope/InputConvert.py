"""Numeric coercion for user-supplied configuration and coordinates.

Configuration values and raw record coordinates may arrive as numbers,
numeric strings (``"0.25"``) or small symbolic expressions (``"1/5"``,
``"sqrt(2)"``). ``InputConvert`` normalizes all of them to a real ``float``
or ``int``.
"""

from __future__ import annotations

import math
from typing import Any, Type, TypeVar

import sympy as sp

T = TypeVar("T", int, float)


def InputConvert(obj: Any, dest_type: Type[T] = float, truncate: bool = True) -> T:
    """
    Convert ``obj`` to ``dest_type`` (``float`` or ``int``).

    Rules:
    - Numbers (excluding ``bool``) are cast directly.
    - Strings are tried as plain floats first, then parsed and evaluated with
      SymPy.
    - Float -> int: with ``truncate=True`` the fractional part is dropped,
      otherwise the value must be an exact integer.

    Raises
    ------
    NotImplementedError
        If ``dest_type`` is unsupported.
    ValueError
        If conversion fails, the value is not real, or exactness is violated.
    """
    if dest_type not in (float, int):
        raise NotImplementedError(
            f"Unsupported destination type: {dest_type!r}. Only float and int are supported."
        )

    def _finish(value: float) -> T:
        if dest_type is float:
            return float(value)  # type: ignore[return-value]
        if not math.isfinite(value):
            raise ValueError(f"Could not convert {obj!r} to int: value is not finite.")
        if not float(value).is_integer() and not truncate:
            raise ValueError(f"Could not convert {obj!r} to int: value is not an exact integer.")
        return int(value)  # type: ignore[return-value]

    if isinstance(obj, bool):
        raise ValueError(f"Could not convert boolean {obj!r} to {dest_type.__name__}.")

    if isinstance(obj, (int, float)):
        return _finish(float(obj))

    if isinstance(obj, str):
        s = obj.strip()
        if s == "":
            raise ValueError(f"Cannot convert empty string to {dest_type.__name__}.")
        try:
            return _finish(float(s))
        except ValueError:
            pass
        try:
            value = complex(sp.sympify(s).evalf())
        except Exception as e:
            raise ValueError(
                f"Could not convert {obj!r} to {dest_type.__name__} (neither directly nor via SymPy)."
            ) from e
        if value.imag != 0:
            raise ValueError(
                f"Could not convert non-real {obj!r} to {dest_type.__name__}: imaginary part is non-zero."
            )
        return _finish(value.real)

    # numpy scalars and other numeric-like objects
    try:
        return _finish(float(obj))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Could not convert {obj!r} to {dest_type.__name__}.") from e
