"""
A priori weighting of observation parameters.

Weights regularize the solve toward the a priori exterior orientation:

    weight = 1 / (sigma² * scale)

    - Position family (position, velocity, acceleration): scale = 1.0e-6
    - Angle family (angle, angular velocity, angular acceleration): scale = (π/180)²,
      since sigmas are given in degrees while corrections are solved in radians

A missing or non-positive sigma gives weight 0 (unconstrained).
"""

from typing import Sequence, Tuple
import logging

import numpy as np

from .errors import ConfigurationError
from .parameters import ParameterLayout, TermKind

logger = logging.getLogger(__name__)

# Reserved "no a priori sigma" value
NULL_SIGMA = float('nan')

POSITION_WEIGHT_SCALE = 1.0e-6
ANGLE_WEIGHT_SCALE = np.deg2rad(1.0) ** 2

_WEIGHTED_TERMS = (TermKind.VALUE, TermKind.RATE, TermKind.ACCELERATION)


def is_null(value) -> bool:
    """True if a sigma is the null sentinel (or missing)."""
    return value is None or bool(np.isnan(value))


def compute_weight(sigma, scale: float) -> float:
    """Weight for a single a priori sigma."""
    if is_null(sigma) or sigma <= 0.0:
        return 0.0
    return 1.0 / (sigma * sigma * scale)


def _family_weights(sigmas: Sequence[float], scale: float) -> Tuple[float, ...]:
    return tuple(
        compute_weight(sigmas[i], scale) if i < len(sigmas) else 0.0
        for i in range(len(_WEIGHTED_TERMS))
    )


def _check_sigmas(sigmas: Sequence[float], coefficients: int, family: str) -> None:
    needed = min(coefficients, len(_WEIGHTED_TERMS))
    if len(sigmas) < needed:
        raise ConfigurationError(
            f"{family} a priori sigmas have {len(sigmas)} values but "
            f"{needed} are needed for {coefficients} solved coefficients"
        )


def initialize_parameter_weights(
    settings,
    layout: ParameterLayout,
    weights: np.ndarray,
    apriori_sigmas: np.ndarray,
) -> None:
    """
    Fill weights and a priori sigmas in place from the solve settings.

    Args:
        settings: Solve settings providing the a priori sigma lists
        layout: Parameter layout the vectors are aligned to
        weights: Weight vector to fill (length = layout size)
        apriori_sigmas: A priori sigma vector to fill (length = layout size)

    Raises:
        ConfigurationError: If a sigma list is too short for the solved terms
    """
    position_sigmas = list(settings.apriori_position_sigmas)
    pointing_sigmas = list(settings.apriori_pointing_sigmas)

    _check_sigmas(position_sigmas, layout.position_coefficients, "Position")
    _check_sigmas(pointing_sigmas, layout.angle_coefficients, "Pointing")

    position_weights = _family_weights(position_sigmas, POSITION_WEIGHT_SCALE)
    pointing_weights = _family_weights(pointing_sigmas, ANGLE_WEIGHT_SCALE)

    for i, (block, kind) in enumerate(zip(layout.blocks(), layout.term_kinds())):
        # Terms beyond acceleration get no a priori constraint
        if kind is TermKind.HIGHER_ORDER:
            continue
        if block.is_angle:
            apriori_sigmas[i] = pointing_sigmas[kind.value]
            weights[i] = pointing_weights[kind.value]
        else:
            apriori_sigmas[i] = position_sigmas[kind.value]
            weights[i] = position_weights[kind.value]

    logger.debug(
        f"Position weights {position_weights}, pointing weights {pointing_weights}"
    )
