"""
Finite-difference Jacobian engine.

Approximates the Jacobian J (n_out × n_in) of a vector function f at an
evaluation point x0 by evaluating f at perturbed points:

    Step size:  ε_j = max(ε_base, ε_rel · |x0_j|)
    Forward:    J[:, j] = (f(x0 + ε_j e_j) - f(x0)) / ε_j                 n_in + 1 evaluations, O(ε)
    Central:    J[:, j] = (f(x0 + ε_j e_j) - f(x0 - ε_j e_j)) / (2 ε_j)   2 n_in evaluations,   O(ε²)

ε_base is an absolute floor that protects near-zero coordinates from
catastrophic cancellation; ε_rel scales the step with the coordinate
magnitude. Both default to sqrt(machine epsilon), the usual choice for
forward differences in float64.

Nothing is cached between calls, so numerical_jacobian is reentrant and
each Jacobian is a pure function of (f, x0, config).
"""

import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from lie_ekf.errors import ConfigurationError, DimensionMismatchError


SQRT_EPS = float(np.sqrt(np.finfo(float).eps))  # ≈ 1.49e-8


class DifferenceMode(Enum):
    """Finite-difference scheme.

    Attributes:
        FORWARD: One-sided differences, n_in + 1 evaluations.
        CENTRAL: Symmetric differences, 2 n_in evaluations.
        AUTO: Central when the evaluation budget allows, forward otherwise.
    """

    FORWARD = "forward"
    CENTRAL = "central"
    AUTO = "auto"


@dataclass(frozen=True)
class NumericalDiffConfig:
    """
    Step-size and scheme parameters for numerical differentiation.

    Attributes:
        eps_base: Absolute step floor (> 0). Default: sqrt(machine eps).
        eps_rel: Relative step scale (> 0). Default: sqrt(machine eps).
        mode: Difference scheme, a DifferenceMode or its string value.
            Default: FORWARD.
        max_evaluations: Optional budget of function evaluations per
            Jacobian, consulted when mode is AUTO.

    Raises:
        ConfigurationError: If a step parameter is not a positive finite
            number, the mode is unknown, or the budget is not positive.

    Example:
        >>> cfg = NumericalDiffConfig(eps_base=1e-6, mode="central")
        >>> cfg.mode
        <DifferenceMode.CENTRAL: 'central'>
    """

    eps_base: float = SQRT_EPS
    eps_rel: float = SQRT_EPS
    mode: DifferenceMode = DifferenceMode.FORWARD
    max_evaluations: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("eps_base", "eps_rel"):
            value = getattr(self, name)
            if (isinstance(value, bool)
                    or not isinstance(value, (int, float, np.floating))
                    or not np.isfinite(value)):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        if not isinstance(self.mode, DifferenceMode):
            try:
                object.__setattr__(self, "mode", DifferenceMode(self.mode))
            except ValueError:
                raise ConfigurationError(
                    f"Unknown difference mode {self.mode!r}, expected one of "
                    f"{[m.value for m in DifferenceMode]}"
                ) from None

        if self.max_evaluations is not None and self.max_evaluations <= 0:
            raise ConfigurationError(
                f"max_evaluations must be positive, got {self.max_evaluations}"
            )


def evaluation_count(n_in: int, mode: DifferenceMode) -> int:
    """
    Number of function evaluations one Jacobian costs.

    Args:
        n_in: Input dimension.
        mode: FORWARD or CENTRAL.

    Returns:
        n_in + 1 for forward differences, 2 * n_in for central differences.
    """
    if mode is DifferenceMode.FORWARD:
        return n_in + 1
    if mode is DifferenceMode.CENTRAL:
        return 2 * n_in
    raise ConfigurationError(f"Resolve {mode} with select_difference_mode() first")


def select_difference_mode(n_in: int, config: NumericalDiffConfig) -> DifferenceMode:
    """
    Resolve the difference scheme for an n_in-dimensional input.

    FORWARD and CENTRAL are returned as configured. AUTO picks CENTRAL when
    no budget is set or 2 * n_in evaluations fit in it, FORWARD when only
    n_in + 1 fit.

    Raises:
        ConfigurationError: If the budget cannot afford the chosen scheme.
    """
    mode = config.mode
    if mode is DifferenceMode.AUTO:
        budget = config.max_evaluations
        if budget is None or evaluation_count(n_in, DifferenceMode.CENTRAL) <= budget:
            mode = DifferenceMode.CENTRAL
        else:
            mode = DifferenceMode.FORWARD

    needed = evaluation_count(n_in, mode)
    if config.max_evaluations is not None and needed > config.max_evaluations:
        raise ConfigurationError(
            f"{mode.value} differences on {n_in} inputs need {needed} evaluations, "
            f"budget is {config.max_evaluations}"
        )
    return mode


def step_sizes(x0: np.ndarray, config: Optional[NumericalDiffConfig] = None) -> np.ndarray:
    """
    Per-coordinate step sizes ε_j = max(ε_base, ε_rel · |x0_j|).

    Example:
        >>> cfg = NumericalDiffConfig(eps_base=1e-6, eps_rel=1e-3)
        >>> step_sizes(np.array([0.0, 1.0, -10.0]), cfg)
        array([1.e-06, 1.e-03, 1.e-02])
    """
    config = config or NumericalDiffConfig()
    x0 = np.asarray(x0, dtype=float)
    return np.maximum(config.eps_base, config.eps_rel * np.abs(x0))


def _check_output(y, n_out: int) -> np.ndarray:
    """Check that a function value is a 1D vector of length n_out."""
    y = np.asarray(y, dtype=float)
    if y.ndim == 0 and n_out == 1:
        y = y.reshape(1)
    if y.ndim != 1 or y.shape[0] != n_out:
        raise DimensionMismatchError(
            f"Function returned shape {y.shape}, declared output dimension is {n_out}"
        )
    return y


def numerical_jacobian(
    f: Callable[[np.ndarray], np.ndarray],
    x0: np.ndarray,
    n_in: Optional[int] = None,
    n_out: Optional[int] = None,
    config: Optional[NumericalDiffConfig] = None,
) -> np.ndarray:
    """
    Approximate the Jacobian of f at x0 by finite differences.

    Args:
        f: Vector function f(x) -> y with x of shape (n_in,), y of shape (n_out,).
            Called with fresh copies, so it may not rely on argument identity.
        x0: Evaluation point, shape (n_in,).
        n_in: Declared input dimension. Default: len(x0).
        n_out: Declared output dimension. Default: length of f(x0), which
            costs one extra evaluation in central mode.
        config: Step sizes and difference scheme. Default: forward
            differences with sqrt(machine eps) steps.

    Returns:
        Jacobian approximation, shape (n_out, n_in). A new array on every call.

    Raises:
        DimensionMismatchError: If x0 is not 1D of length n_in, or f returns
            anything other than a 1D vector of length n_out. Raised before any
            Jacobian is returned; partial results are discarded.
        ConfigurationError: If the evaluation budget cannot afford the scheme,
            or a step is too small to change its coordinate.

    Example:
        >>> A = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        >>> J = numerical_jacobian(lambda x: A @ x, np.array([0.5, -1.0]))
        >>> np.allclose(J, A, atol=1e-6)
        True
    """
    config = config or NumericalDiffConfig()
    x0 = np.asarray(x0, dtype=float)

    if x0.ndim != 1:
        raise DimensionMismatchError(f"Evaluation point must be 1D, got shape {x0.shape}")
    if n_in is None:
        n_in = x0.shape[0]
    elif x0.shape[0] != n_in:
        raise DimensionMismatchError(
            f"Evaluation point has {x0.shape[0]} entries, declared input dimension is {n_in}"
        )

    mode = select_difference_mode(n_in, config)
    eps = step_sizes(x0, config)

    if n_out is None or mode is DifferenceMode.FORWARD:
        f0 = np.asarray(f(x0.copy()), dtype=float)
        if n_out is None:
            n_out = 1 if f0.ndim == 0 else f0.shape[0]
        f0 = _check_output(f0, n_out)

    J = np.zeros((n_out, n_in))

    for j in range(n_in):
        x_plus = x0.copy()
        x_plus[j] += eps[j]

        # Use the representable step, not the requested one
        if mode is DifferenceMode.CENTRAL:
            x_minus = x0.copy()
            x_minus[j] -= eps[j]
            h = x_plus[j] - x_minus[j]
        else:
            h = x_plus[j] - x0[j]
        if h == 0.0:
            raise ConfigurationError(
                f"Step {eps[j]:.3e} for coordinate {j} vanishes at x={x0[j]:g}; "
                f"increase eps_base or eps_rel"
            )

        f_plus = _check_output(f(x_plus), n_out)
        if mode is DifferenceMode.CENTRAL:
            f_minus = _check_output(f(x_minus), n_out)
            J[:, j] = (f_plus - f_minus) / h
        else:
            J[:, j] = (f_plus - f0) / h

    return J


class NumericalDiffFunctor:
    """
    Differentiable function description bound to the model that evaluates it.

    Declares the (n_in, n_out) contract and forwards evaluations to
    ``owner.evaluate_coordinates(x)``. The owner is held through a weak
    reference: the functor never keeps its model alive, and calling it after
    the model is gone raises ReferenceError.

    Attributes:
        n_in: Declared input dimension.
        n_out: Declared output dimension.
        config: Step sizes and difference scheme used by df().

    Example:
        >>> functor = NumericalDiffFunctor(model, n_in=6, n_out=6)
        >>> H = functor.df(state.x)
    """

    def __init__(
        self,
        owner,
        n_in: int,
        n_out: int,
        config: Optional[NumericalDiffConfig] = None,
    ):
        if n_in <= 0 or n_out <= 0:
            raise DimensionMismatchError(
                f"Functor dimensions must be positive, got n_in={n_in}, n_out={n_out}"
            )
        self._owner = weakref.ref(owner)
        self.n_in = n_in
        self.n_out = n_out
        self.config = config or NumericalDiffConfig()

    def inputs(self) -> int:
        return self.n_in

    def values(self) -> int:
        return self.n_out

    def __call__(self, x: np.ndarray) -> np.ndarray:
        owner = self._owner()
        if owner is None:
            raise ReferenceError("Model backing this functor no longer exists")
        return owner.evaluate_coordinates(x)

    def df(self, x0: np.ndarray) -> np.ndarray:
        """Jacobian of the bound function at x0, shape (n_out, n_in)."""
        return numerical_jacobian(self, x0, self.n_in, self.n_out, self.config)
