"""
Bundle observation module.

A bundle observation groups the images acquired during one physical
observation. All of them share one instrument position and one instrument
rotation time series, taken from the primary (first) image, so a single set of
polynomial unknowns describes the exterior orientation of every image.

Workflow:
    1. Create with the primary image, append the other images
    2. Configure with solve settings (sizes vectors, derives weights)
    3. Fit the a priori polynomials (initialize_exterior_orientation)
    4. Apply the solver's correction slice once per iteration
    5. Report the adjusted parameters

Units:
    - Position coefficients in the time series' linear unit
    - Pointing coefficients in radians, reported in degrees
"""

from typing import List, Optional
import copy
import logging

import numpy as np

from .config import (
    SolveSettings,
    InstrumentPositionSolveOption,
    InstrumentPointingSolveOption,
)
from .errors import ConfigurationError, DimensionError, CorrectionResult
from .image import BundleImage, TargetBody
from .parameters import ParameterLayout, POSITION_BLOCKS, POINTING_BLOCKS
from .polynomial import InstrumentPosition, InstrumentRotation
from .report import build_parameter_rows, format_rows
from .weights import NULL_SIGMA, initialize_parameter_weights

logger = logging.getLogger(__name__)


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class BundleObservation:
    """
    Exterior orientation unknowns shared by the images of one observation.

    Example usage:
        observation = BundleObservation(image, "H0001", "HRSC")
        observation.set_solve_settings(settings)
        observation.initialize_exterior_orientation()
        result = observation.apply_parameter_corrections(corrections)
        print(observation.format_bundle_output_string(False))
    """

    def __init__(
        self,
        image: Optional[BundleImage] = None,
        observation_number: str = "",
        instrument_id: str = "",
        target_body: Optional[TargetBody] = None,
    ):
        """
        Initialize the observation.

        Args:
            image: Primary image; its position and rotation objects become the
                observation's (None if the image has no camera or objects)
            observation_number: Observation number
            instrument_id: Instrument id
            target_body: Target body whose rotation is pushed to the images
        """
        self.observation_number = observation_number
        self._instrument_id = instrument_id
        self.target_body = target_body

        self._images: List[BundleImage] = []
        self._serial_numbers: List[str] = []
        self._image_names: List[str] = []
        self._parameter_names: List[str] = []

        self._instrument_position: Optional[InstrumentPosition] = None
        self._instrument_rotation: Optional[InstrumentRotation] = None

        self._index = 0
        self._solve_settings: Optional[SolveSettings] = None
        self._layout = ParameterLayout(0, 0, False)
        self._reset_vectors()

        if image is not None:
            self._instrument_position = image.instrument_position
            self._instrument_rotation = image.instrument_rotation
            self._add(image)

    def _reset_vectors(self) -> None:
        n = self._layout.size
        self._weights = np.zeros(n)
        self._corrections = np.zeros(n)
        self._adjusted_sigmas = np.zeros(n)
        self._apriori_sigmas = np.full(n, NULL_SIGMA)

    def _add(self, image: BundleImage) -> None:
        self._images.append(image)
        self._serial_numbers.append(image.serial_number)
        self._image_names.append(image.file_name)

    def append(self, image: BundleImage) -> None:
        """
        Add an image to the observation.

        Raises:
            ConfigurationError: If the image does not use the observation's
                position and rotation objects
        """
        if not self._images:
            self._instrument_position = image.instrument_position
            self._instrument_rotation = image.instrument_rotation
        else:
            if image.instrument_position is not self._instrument_position:
                raise ConfigurationError(
                    f"Image {image.serial_number} does not share the instrument position "
                    f"of observation {self.observation_number}"
                )
            if image.instrument_rotation is not self._instrument_rotation:
                raise ConfigurationError(
                    f"Image {image.serial_number} does not share the instrument rotation "
                    f"of observation {self.observation_number}"
                )
        self._add(image)
        logger.debug(
            f"Added image {image.serial_number} to observation {self.observation_number}"
        )

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self):
        return iter(self._images)

    def __getitem__(self, i: int) -> BundleImage:
        return self._images[i]

    # Accessors

    @property
    def instrument_id(self) -> str:
        return self._instrument_id

    @property
    def instrument_position(self) -> Optional[InstrumentPosition]:
        return self._instrument_position

    @property
    def instrument_rotation(self) -> Optional[InstrumentRotation]:
        return self._instrument_rotation

    @property
    def solve_settings(self) -> Optional[SolveSettings]:
        """Copy of the settings in use; changing it does not reconfigure."""
        return copy.deepcopy(self._solve_settings)

    @property
    def layout(self) -> ParameterLayout:
        return self._layout

    @property
    def parameter_weights(self) -> np.ndarray:
        return _read_only(self._weights)

    @property
    def parameter_corrections(self) -> np.ndarray:
        return _read_only(self._corrections)

    @property
    def apriori_sigmas(self) -> np.ndarray:
        return _read_only(self._apriori_sigmas)

    @property
    def adjusted_sigmas(self) -> np.ndarray:
        return _read_only(self._adjusted_sigmas)

    @property
    def index(self) -> int:
        return self._index

    def set_index(self, n: int) -> None:
        self._index = n

    @property
    def serial_numbers(self) -> List[str]:
        return list(self._serial_numbers)

    @property
    def image_names(self) -> List[str]:
        return list(self._image_names)

    @property
    def parameter_names(self) -> List[str]:
        """Parameter names from the last report, for correlation matrix output."""
        return list(self._parameter_names)

    def set_adjusted_sigmas(self, sigmas) -> None:
        """Store post-solve sigmas from error propagation (radians for angles)."""
        sigmas = np.asarray(sigmas, dtype=np.float64)
        if sigmas.shape != (self._layout.size,):
            raise DimensionError(
                f"Observation {self.observation_number} has {self._layout.size} "
                f"parameters but {sigmas.size} adjusted sigmas were given"
            )
        self._adjusted_sigmas = sigmas.copy()

    # Configuration

    def set_solve_settings(self, settings: SolveSettings) -> bool:
        """
        Set solve settings and reinitialize every parameter vector.

        Weights, corrections and sigmas from any earlier configuration are
        discarded. The settings are copied, so later changes to `settings`
        do not reach the observation.

        Args:
            settings: Solve settings to use

        Returns:
            True if the weights were initialized, False otherwise
        """
        settings = copy.deepcopy(settings)
        self._solve_settings = settings
        self._layout = ParameterLayout.from_settings(settings)
        self._reset_vectors()
        self._parameter_names = self._layout.parameter_names()

        try:
            initialize_parameter_weights(
                settings, self._layout, self._weights, self._apriori_sigmas
            )
        except ConfigurationError as e:
            logger.error(
                f"Unable to initialize parameter weights for observation "
                f"{self.observation_number}: {e}"
            )
            return False

        logger.info(
            f"Observation {self.observation_number} configured with "
            f"{self._layout.size} parameters"
        )
        return True

    def _require_settings(self) -> SolveSettings:
        if self._solve_settings is None:
            raise ConfigurationError(
                f"Observation {self.observation_number} has no solve settings"
            )
        return self._solve_settings

    # Parameter counts

    def number_position_parameters(self) -> int:
        return self._layout.number_position_parameters

    def number_pointing_parameters(self) -> int:
        return self._layout.number_pointing_parameters

    def number_parameters(self) -> int:
        return self.number_position_parameters() + self.number_pointing_parameters()

    # Exterior orientation

    def _image_object(self, image: BundleImage, attribute: str, what: str):
        obj = getattr(image, attribute)
        if obj is None:
            raise ConfigurationError(
                f"Image {image.serial_number} of observation {self.observation_number} "
                f"has no {what}"
            )
        return obj

    def initialize_exterior_orientation(self) -> bool:
        """
        Fit the a priori polynomials and propagate them to every image.

        The primary image is fit with the a priori degree and then switched to
        the solve degree. Every other image receives the primary's base time,
        time scale and coefficients directly.

        Returns:
            True upon successful initialization

        Raises:
            ConfigurationError: If an image lacks the object being solved
        """
        settings = self._require_settings()

        if settings.position_option is not InstrumentPositionSolveOption.NONE:
            self._initialize_series(
                'instrument_position',
                'instrument position',
                settings.spk_degree,
                settings.spk_solve_degree,
                settings.position_interpolation_type,
            )

        if settings.pointing_option is not InstrumentPointingSolveOption.NONE:
            self._initialize_series(
                'instrument_rotation',
                'instrument rotation',
                settings.ck_degree,
                settings.ck_solve_degree,
                settings.pointing_interpolation_type,
            )

        logger.info(f"Exterior orientation initialized for observation {self.observation_number}")
        return True

    def _initialize_series(self, attribute, what, apriori_degree, solve_degree, interpolation):
        base_time = 0.0
        time_scale = 1.0
        coefficients = None

        for i, image in enumerate(self._images):
            series = self._image_object(image, attribute, what)

            if i == 0:
                series.set_polynomial_degree(apriori_degree)
                series.fit_polynomial(interpolation)
                series.set_polynomial_degree(solve_degree)

                base_time = series.get_base_time()
                time_scale = series.get_time_scale()
                coefficients = series.get_polynomial()
            else:
                series.set_polynomial_degree(solve_degree)
                series.set_override_base_time(base_time, time_scale)
                series.set_polynomial(*coefficients, interpolation)

            logger.debug(
                f"Set {what} polynomial of degree {solve_degree} on {image.serial_number}"
            )

    def initialize_body_rotation(self) -> None:
        """Push the target body's PCK coefficients to every image."""
        self._set_body_rotation()

    def update_body_rotation(self) -> None:
        """Push the (updated) target body's PCK coefficients to every image."""
        self._set_body_rotation()

    def _set_body_rotation(self) -> None:
        if self.target_body is None:
            raise ConfigurationError(
                f"Observation {self.observation_number} has no target body"
            )

        ra = self.target_body.pole_ra_coefs()
        dec = self.target_body.pole_dec_coefs()
        pm = self.target_body.pm_coefs()

        for image in self._images:
            body_rotation = self._image_object(image, 'body_rotation', 'body rotation')
            body_rotation.set_pck_polynomial(ra, dec, pm)

    # Corrections

    def apply_parameter_corrections(self, corrections) -> CorrectionResult:
        """
        Apply one iteration's corrections to every image of the observation.

        The slice is read in block order X, Y, Z, RA, DEC[, TWIST]. Every check
        runs before any polynomial is written, so a failed call leaves the
        images and the cumulative corrections untouched. On success the slice
        is added to the cumulative corrections.

        Args:
            corrections: Correction slice with one entry per parameter

        Returns:
            CorrectionResult; on failure nothing is accumulated and the
            message names the observation and the unmet solve option
        """
        corrections = np.asarray(corrections, dtype=np.float64)

        try:
            updates = self._corrected_polynomials(corrections)
        except (ConfigurationError, DimensionError, ValueError) as e:
            message = (
                f"Unable to apply parameter corrections to observation "
                f"{self.observation_number}: {e}"
            )
            logger.error(message)
            return CorrectionResult.failed(e, message)

        for attribute, coefficients, interpolation in updates:
            for image in self._images:
                getattr(image, attribute).set_polynomial(*coefficients, interpolation)

        self._corrections += corrections
        logger.debug(f"Applied corrections to observation {self.observation_number}")
        return CorrectionResult.ok()

    def check_parameter_corrections(self, corrections) -> CorrectionResult:
        """Run the checks of apply_parameter_corrections without writing anything."""
        try:
            self._corrected_polynomials(np.asarray(corrections, dtype=np.float64))
        except (ConfigurationError, DimensionError, ValueError) as e:
            return CorrectionResult.failed(
                e,
                f"Unable to apply parameter corrections to observation "
                f"{self.observation_number}: {e}",
            )
        return CorrectionResult.ok()

    def _corrected_polynomials(self, corrections):
        """
        Validate a correction slice and build the corrected polynomials.

        Returns:
            List of (image attribute, coefficients, interpolation type)
        """
        settings = self._require_settings()
        if corrections.shape != (self._layout.size,):
            raise DimensionError(
                f"Correction slice has {corrections.size} values but the "
                f"observation has {self._layout.size} parameters"
            )

        updates = []

        position_option = settings.position_option
        if position_option is not InstrumentPositionSolveOption.NONE:
            if self._instrument_position is None:
                raise ConfigurationError(
                    f"Instrument position is missing, but position solve option is "
                    f"{position_option.to_string()}"
                )
            updates.append((
                'instrument_position',
                self._corrected_coefficients(
                    self._instrument_position, corrections, POSITION_BLOCKS
                ),
                settings.position_interpolation_type,
            ))

        pointing_option = settings.pointing_option
        if pointing_option is not InstrumentPointingSolveOption.NONE:
            if self._instrument_rotation is None:
                raise ConfigurationError(
                    f"Instrument rotation is missing, but pointing solve option is "
                    f"{pointing_option.to_string()}"
                )
            updates.append((
                'instrument_rotation',
                self._corrected_coefficients(
                    self._instrument_rotation, corrections, POINTING_BLOCKS
                ),
                settings.pointing_interpolation_type,
            ))

        return updates

    def _corrected_coefficients(self, series, corrections, blocks):
        """Current coefficients of `series` with the blocks' corrections added."""
        coefficients = [c.copy() for c in series.get_polynomial()]

        for axis, block in enumerate(blocks):
            if block not in self._layout:
                continue
            delta = self._layout.block_values(corrections, block)
            if delta.size > coefficients[axis].size:
                raise ConfigurationError(
                    f"{block.name} has {delta.size} solved coefficients but the polynomial "
                    f"only has {coefficients[axis].size}"
                )
            coefficients[axis][:delta.size] += delta

        return coefficients

    # Reporting

    def format_bundle_output_string(self, include_adjusted_sigmas: bool) -> str:
        """
        Format the adjusted parameters as a fixed-width table.

        Columns: name, value before correction, correction, final value,
        a priori sigma, adjusted sigma. Angles are in degrees.

        Args:
            include_adjusted_sigmas: Report adjusted sigmas instead of 'N/A'

        Returns:
            One line per parameter
        """
        rows = build_parameter_rows(self, include_adjusted_sigmas)
        self._parameter_names = [row.name for row in rows]
        return format_rows(rows)

    def final_parameter_values(self) -> np.ndarray:
        """
        Current coefficient values in solver order (angles in radians).

        Values whose object, polynomial or coefficient is missing are NaN.
        """
        values = np.full(self._layout.size, np.nan)

        for series, blocks in (
            (self._instrument_position, POSITION_BLOCKS),
            (self._instrument_rotation, POINTING_BLOCKS),
        ):
            present = [b for b in blocks if b in self._layout]
            if not present:
                continue
            if series is None or not series.has_polynomial:
                logger.warning(
                    f"Observation {self.observation_number} has no polynomial for "
                    f"{', '.join(b.value for b in present)}; values are not available"
                )
                continue
            polynomial = series.get_polynomial()
            for axis, block in enumerate(blocks):
                if block not in self._layout:
                    continue
                span = self._layout.span(block)
                n = min(span.size, polynomial[axis].size)
                if n < span.size:
                    logger.warning(
                        f"Observation {self.observation_number} {block.value} polynomial has "
                        f"{n} of {span.size} solved coefficients"
                    )
                values[span.offset:span.offset + n] = polynomial[axis][:n]

        return values

    def __repr__(self) -> str:
        return (
            f"BundleObservation(observation_number={self.observation_number!r}, "
            f"instrument_id={self._instrument_id!r}, images={len(self._images)}, "
            f"parameters={self._layout.size})"
        )
