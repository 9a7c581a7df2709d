"""
Numerical differentiation for measurement and system model linearization.

Available components:
    - DifferenceMode: forward / central / auto scheme selection
    - NumericalDiffConfig: step-size parameters (eps_base, eps_rel)
    - numerical_jacobian: finite-difference Jacobian of a vector function
    - NumericalDiffFunctor: (n_in, n_out) contract bound to a model
"""

from lie_ekf.differentiation.numerical_diff import (
    SQRT_EPS,
    DifferenceMode,
    NumericalDiffConfig,
    NumericalDiffFunctor,
    evaluation_count,
    numerical_jacobian,
    select_difference_mode,
    step_sizes,
)

__all__ = [
    "SQRT_EPS",
    "DifferenceMode",
    "NumericalDiffConfig",
    "NumericalDiffFunctor",
    "evaluation_count",
    "numerical_jacobian",
    "select_difference_mode",
    "step_sizes",
]
