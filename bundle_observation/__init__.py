"""
Bundle Observation Package

Models and corrects the time-varying position and orientation of an imaging
instrument across the images of one observation, as part of a photogrammetric
bundle adjustment.

Parameter Order (per observation):
    X, Y, Z, RA, DEC[, TWIST] coefficient blocks, lowest order first

Conventions:
    - Position coefficients in the time series' linear unit
    - Pointing coefficients in radians; a priori pointing sigmas and reports in degrees
    - Weights: 1 / (sigma² * 1e-6) for position, 1 / (sigma² * (π/180)²) for angles
"""

from .config import (
    SolveSettings,
    RunConfig,
    InterpolationType,
    InstrumentPositionSolveOption,
    InstrumentPointingSolveOption,
)
from .errors import (
    BundleObservationError,
    ConfigurationError,
    DimensionError,
    ObservationCorrectionError,
    CorrectionResult,
)
from .parameters import ParameterBlock, ParameterLayout, TermKind
from .weights import NULL_SIGMA, compute_weight, initialize_parameter_weights, is_null
from .polynomial import InstrumentPosition, InstrumentRotation
from .image import BundleImage, Camera, TargetBody
from .observation import BundleObservation
from .observation_vector import BundleObservationVector
from .report import ParameterRow, save_parameters_csv, save_report_json

__version__ = "1.0.0"
__all__ = [
    "SolveSettings",
    "RunConfig",
    "InterpolationType",
    "InstrumentPositionSolveOption",
    "InstrumentPointingSolveOption",
    "BundleObservationError",
    "ConfigurationError",
    "DimensionError",
    "ObservationCorrectionError",
    "CorrectionResult",
    "ParameterBlock",
    "ParameterLayout",
    "TermKind",
    "NULL_SIGMA",
    "compute_weight",
    "initialize_parameter_weights",
    "is_null",
    "InstrumentPosition",
    "InstrumentRotation",
    "BundleImage",
    "Camera",
    "TargetBody",
    "BundleObservation",
    "BundleObservationVector",
    "ParameterRow",
    "save_parameters_csv",
    "save_report_json",
]
