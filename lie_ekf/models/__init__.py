"""
State containers, measurement models and system models.

Measurement models share one linearization path: each binds its measurement
function to the finite-difference engine and exposes (h, H, V) to a filter.
"""

from .types import LieState, as_measurement

from .measurement_models import (
    LinearizedMeasurementModel,
    FunctionMeasurementModel,
    LiePositionMeasurementModel,
    LandmarkRangeMeasurementModel,
    validate_measurement_inputs
)

from .motion_models import ConstantVelocityLieModel

__all__ = [
    # State
    'LieState',
    'as_measurement',

    # Measurement models
    'LinearizedMeasurementModel',
    'FunctionMeasurementModel',
    'LiePositionMeasurementModel',
    'LandmarkRangeMeasurementModel',
    'validate_measurement_inputs',

    # Motion models
    'ConstantVelocityLieModel',
]
