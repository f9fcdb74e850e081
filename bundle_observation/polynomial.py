"""
Polynomial time series for instrument position and rotation.

An image's exterior orientation is cached as a series of epochs (time plus three
values). For the adjustment the series is replaced by a polynomial in scaled time:

    s = (t - base_time) / time_scale
    value(t) = c0 + c1*s + c2*s² + ...

with one coefficient set per axis, lowest order first. Corrections from the
solver are added to these coefficients.

Evaluation Methods:
    - MEMCACHE: Linear interpolation between cached epochs
    - POLY_FUNCTION: Polynomial only
    - POLY_FUNCTION_OVER_CACHE: Polynomial plus the cached residual of the fit

Time Series File Format (CSV):
    Position: time, x, y, z            (meters)
    Rotation: time, ra, dec, twist     (degrees, stored in radians)
"""

import numpy as np
from numpy.polynomial import polynomial as P
from typing import Dict, List, Optional, Sequence, Tuple
from pathlib import Path
import csv
import logging

from .config import InterpolationType

logger = logging.getLogger(__name__)


class PolynomialTimeSeries:
    """
    Cached three-axis time series with a polynomial representation.

    Implements the narrow polynomial contract used by observations:
    get/set polynomial, polynomial degree, and base time override.
    """

    AXES: Tuple[str, str, str] = ('x', 'y', 'z')

    def __init__(
        self,
        times: Sequence[float],
        values: Sequence[Sequence[float]],
        degree: int = 2,
    ):
        """
        Initialize the time series with cached epochs.

        Args:
            times: Epoch times (will be sorted)
            values: One (a, b, c) triple per epoch
            degree: Initial polynomial degree
        """
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)

        if times.size == 0:
            raise ValueError("No time series epochs provided")
        if values.shape != (times.size, 3):
            raise ValueError(
                f"Expected {times.size} x 3 values, got shape {values.shape}"
            )

        order = np.argsort(times)
        self.times = times[order]
        self.values = self._prepare_values(values[order])

        self._degree = int(degree)
        self._coefficients: Optional[np.ndarray] = None  # (degree + 1, 3)
        self._residuals: Optional[np.ndarray] = None
        self._override: Optional[Tuple[float, float]] = None
        self.interpolation_type = InterpolationType.MEMCACHE

        logger.debug(
            f"{type(self).__name__} cached {self.times.size} epochs, "
            f"time range: {self.times[0]:.3f} to {self.times[-1]:.3f}"
        )

    def _prepare_values(self, values: np.ndarray) -> np.ndarray:
        return values

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def has_polynomial(self) -> bool:
        return self._coefficients is not None

    def set_polynomial_degree(self, degree: int) -> None:
        """
        Set the polynomial degree.

        Existing coefficients are padded with zeros or truncated.
        """
        if degree < 0:
            raise ValueError(f"Polynomial degree must be non-negative, got {degree}")

        if self._coefficients is not None:
            n_terms = degree + 1
            current = self._coefficients.shape[0]
            if n_terms > current:
                padding = np.zeros((n_terms - current, 3))
                self._coefficients = np.vstack([self._coefficients, padding])
            else:
                self._coefficients = self._coefficients[:n_terms].copy()

        self._degree = int(degree)

    def set_override_base_time(self, base_time: float, time_scale: float) -> None:
        """Use an externally chosen base time and scale instead of the cached span."""
        if time_scale == 0.0:
            raise ValueError("Time scale must be non-zero")
        self._override = (float(base_time), float(time_scale))

    def get_base_time(self) -> float:
        if self._override is not None:
            return self._override[0]
        return 0.5 * (self.times[0] + self.times[-1])

    def get_time_scale(self) -> float:
        if self._override is not None:
            return self._override[1]
        scale = self.get_base_time() - self.times[0]
        return scale if scale > 0.0 else 1.0

    def scaled_time(self, time):
        return (np.asarray(time, dtype=np.float64) - self.get_base_time()) / self.get_time_scale()

    def fit_polynomial(self, interpolation_type: InterpolationType) -> None:
        """
        Fit the polynomial of the current degree to the cached epochs.

        This is the a priori fit. With fewer epochs than terms the extra
        coefficients are zero.
        """
        fit_degree = min(self._degree, self.times.size - 1)
        coefficients = P.polyfit(self.scaled_time(self.times), self.values, fit_degree)
        coefficients = np.atleast_2d(coefficients)

        if fit_degree < self._degree:
            padding = np.zeros((self._degree - fit_degree, 3))
            coefficients = np.vstack([coefficients, padding])

        self._coefficients = coefficients
        self._residuals = None
        self.interpolation_type = interpolation_type
        self._update_residuals()

        logger.debug(
            f"{type(self).__name__} a priori fit of degree {self._degree} "
            f"({interpolation_type.value})"
        )

    def get_polynomial(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return copies of the three coefficient arrays, lowest order first."""
        if self._coefficients is None:
            raise ValueError(f"{type(self).__name__} has no polynomial set")
        return tuple(self._coefficients[:, axis].copy() for axis in range(3))

    def set_polynomial(
        self,
        coef_a: Sequence[float],
        coef_b: Sequence[float],
        coef_c: Sequence[float],
        interpolation_type: InterpolationType,
    ) -> None:
        """
        Replace the polynomial coefficients.

        The degree follows the length of the coefficient arrays.
        """
        coefficients = np.column_stack([
            np.asarray(coef_a, dtype=np.float64),
            np.asarray(coef_b, dtype=np.float64),
            np.asarray(coef_c, dtype=np.float64),
        ])
        if coefficients.shape[0] == 0:
            raise ValueError("Empty coefficient arrays")

        self._coefficients = coefficients
        self._degree = coefficients.shape[0] - 1
        self.interpolation_type = interpolation_type
        if self._residuals is None:
            self._update_residuals()

    def _update_residuals(self) -> None:
        if self.interpolation_type is InterpolationType.POLY_FUNCTION_OVER_CACHE:
            fitted = P.polyval(self.scaled_time(self.times), self._coefficients).T
            self._residuals = self.values - fitted

    def value_at(self, time: float) -> np.ndarray:
        """
        Evaluate the series at a time.

        Args:
            time: Query time

        Returns:
            Array of the three axis values
        """
        if self.interpolation_type is InterpolationType.MEMCACHE or self._coefficients is None:
            return np.array([
                np.interp(time, self.times, self.values[:, axis]) for axis in range(3)
            ])

        value = P.polyval(self.scaled_time(time), self._coefficients)
        if (
            self.interpolation_type is InterpolationType.POLY_FUNCTION_OVER_CACHE
            and self._residuals is not None
        ):
            value = value + np.array([
                np.interp(time, self.times, self._residuals[:, axis]) for axis in range(3)
            ])
        return value

    @classmethod
    def _read_csv(
        cls,
        filepath: str,
        time_col: str,
        columns: Sequence[str],
    ) -> Tuple[List[float], List[List[float]]]:
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Time series file not found: {filepath}")

        times = []
        values = []
        with open(path, 'r', newline='') as f:
            reader = csv.DictReader(f)
            for row in reader:
                times.append(float(row[time_col]))
                values.append([float(row[col]) for col in columns])

        logger.info(f"Loaded {len(times)} epochs from {filepath}")
        return times, values


class InstrumentPosition(PolynomialTimeSeries):
    """Instrument position (X, Y, Z) over time."""

    @classmethod
    def from_csv(
        cls,
        filepath: str,
        time_col: str = 'time',
        x_col: str = 'x',
        y_col: str = 'y',
        z_col: str = 'z',
        **kwargs,
    ) -> 'InstrumentPosition':
        """
        Load a position time series from CSV.

        Args:
            filepath: Path to CSV file
            time_col: Column name for time
            x_col: Column name for X
            y_col: Column name for Y
            z_col: Column name for Z
            **kwargs: Additional arguments passed to constructor
        """
        times, values = cls._read_csv(filepath, time_col, (x_col, y_col, z_col))
        return cls(times, values, **kwargs)


class InstrumentRotation(PolynomialTimeSeries):
    """
    Instrument pointing (RA, DEC, TWIST) over time, in radians.

    Also carries the target body's PCK polynomial when used as a body rotation.
    """

    AXES = ('ra', 'dec', 'twist')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pck_ra_coefficients: Optional[np.ndarray] = None
        self.pck_dec_coefficients: Optional[np.ndarray] = None
        self.pck_pm_coefficients: Optional[np.ndarray] = None

    def _prepare_values(self, values: np.ndarray) -> np.ndarray:
        # Remove 2π jumps so the polynomial fit sees continuous angles
        return np.unwrap(values, axis=0)

    def set_pck_polynomial(
        self,
        ra_coefficients: Sequence[float],
        dec_coefficients: Sequence[float],
        pm_coefficients: Sequence[float],
    ) -> None:
        """Set the body pole RA, pole DEC and prime meridian coefficients (radians)."""
        self.pck_ra_coefficients = np.asarray(ra_coefficients, dtype=np.float64)
        self.pck_dec_coefficients = np.asarray(dec_coefficients, dtype=np.float64)
        self.pck_pm_coefficients = np.asarray(pm_coefficients, dtype=np.float64)

    def get_pck_polynomial(self) -> Dict[str, Optional[np.ndarray]]:
        return {
            'ra': self.pck_ra_coefficients,
            'dec': self.pck_dec_coefficients,
            'pm': self.pck_pm_coefficients,
        }

    @classmethod
    def from_csv(
        cls,
        filepath: str,
        time_col: str = 'time',
        ra_col: str = 'ra',
        dec_col: str = 'dec',
        twist_col: str = 'twist',
        **kwargs,
    ) -> 'InstrumentRotation':
        """
        Load a pointing time series from CSV (angles in degrees).

        Args:
            filepath: Path to CSV file
            time_col: Column name for time
            ra_col: Column name for right ascension
            dec_col: Column name for declination
            twist_col: Column name for twist
            **kwargs: Additional arguments passed to constructor
        """
        times, values = cls._read_csv(filepath, time_col, (ra_col, dec_col, twist_col))
        return cls(times, np.deg2rad(values), **kwargs)
