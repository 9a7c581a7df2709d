"""Finite-difference linearization for manifold-state Extended Kalman Filters.

This package contains the components needed to correct a Lie-group-valued
state estimate from a nonlinear measurement:
- models: Manifold state container, measurement and system models
- differentiation: Finite-difference Jacobian engine
- estimators: Covariance representations and the Extended Kalman Filter
- utils: Caller-side checks on linearization results
"""

__version__ = "0.1.0"
