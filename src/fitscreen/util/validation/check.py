import numpy as np
from typing import Any, Callable, Optional, TypeVar

_Numeric = TypeVar("_Numeric", int, float)


def check_number(
    value: Any,
    param_name: Optional[str] = None,
    cast_type: Callable[[Any], _Numeric] = float,
    min_allowed: Optional[_Numeric] = None,
    max_allowed: Optional[_Numeric] = None,
    inclusive_min: bool = True,
    inclusive_max: bool = True,
) -> _Numeric:
    """
    Validate and cast a scalar run setting (step size, step count, draws).

    Parameters
    ----------
    value : Any
        The value to validate.
    param_name : str, optional
        Name of the setting, used in error messages.
    cast_type : Callable, default: float
        Function used to cast the value (``int`` or ``float``).
    min_allowed, max_allowed : int or float, optional
        Bounds on the cast value. None means unbounded.
    inclusive_min, inclusive_max : bool, default: True
        Whether the bounds themselves are allowed.

    Returns
    -------
    int or float
        The cast value.

    Raises
    ------
    ValueError
        If the value is not a scalar, cannot be cast, loses information
        when cast to ``int``, or is out of range.
    """

    try:
        if value is None or not np.isscalar(value) or isinstance(value, (str, bool)):
            raise TypeError("Value must be a numeric scalar.")

        v_cast = cast_type(value)
        if cast_type is int and v_cast != value:
            raise ValueError("Value must be a whole number.")

        if min_allowed is not None:
            if inclusive_min and v_cast < min_allowed:
                raise ValueError(f"Value must be >= {min_allowed}.")
            if not inclusive_min and v_cast <= min_allowed:
                raise ValueError(f"Value must be > {min_allowed}.")
        if max_allowed is not None:
            if inclusive_max and v_cast > max_allowed:
                raise ValueError(f"Value must be <= {max_allowed}.")
            if not inclusive_max and v_cast >= max_allowed:
                raise ValueError(f"Value must be < {max_allowed}.")

    except (ValueError, TypeError) as e:
        raise ValueError(
            f"Could not process parameter '{param_name}' with value '{value}'.\n"
            f"Reason: {e}"
        ) from e

    return v_cast
