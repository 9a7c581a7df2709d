"""
Health checks for linearization results.

The differentiation engine passes numerical problems through untouched; a
Jacobian with NaN/Inf entries or abnormally large magnitudes is the only
symptom. Filters that care about divergence call check_jacobian_health on
H before using it.
"""

import numpy as np
from typing import Tuple
import warnings


# Entries above this magnitude usually mean a step size far too small for
# the function's precision, or a singular point of h
MAX_JACOBIAN_ENTRY = 1e8


def check_jacobian_health(
    J: np.ndarray,
    max_abs_entry: float = MAX_JACOBIAN_ENTRY,
    warn: bool = True
) -> Tuple[bool, str]:
    """
    Check a Jacobian for non-finite or abnormally large entries.

    Args:
        J: Jacobian matrix, shape (m, n)
        max_abs_entry: Largest acceptable absolute entry
        warn: If True, issue a RuntimeWarning when the check fails

    Returns:
        Tuple of (is_healthy, message):
            - is_healthy: True if all entries are finite and bounded
            - message: Description of the problem (empty if healthy)

    Example:
        >>> ok, msg = check_jacobian_health(np.eye(3))
        >>> ok
        True
        >>> ok, msg = check_jacobian_health(np.array([[np.nan, 1.0]]), warn=False)
        >>> 'non-finite' in msg
        True
    """
    J = np.asarray(J, dtype=float)

    n_bad = int(np.sum(~np.isfinite(J)))
    if n_bad > 0:
        msg = f"Jacobian has {n_bad} non-finite entr{'y' if n_bad == 1 else 'ies'}"
    else:
        largest = float(np.max(np.abs(J))) if J.size else 0.0
        if largest <= max_abs_entry:
            return True, ""
        msg = f"Jacobian entry magnitude {largest:.3e} exceeds {max_abs_entry:.1e}"

    if warn:
        warnings.warn(f"Linearization unstable: {msg}", RuntimeWarning)
    return False, msg
