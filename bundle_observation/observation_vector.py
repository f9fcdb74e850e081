"""
Collection of all bundle observations in an adjustment.

The collection assigns each observation its index and its offset in the global
correction vector produced by the solver. Offsets follow insertion order, so the
solver's numbering of observation unknowns is:

    [observation 0 parameters][observation 1 parameters]...
"""

from typing import Dict, Iterator, List, Optional
import logging

import numpy as np

from .config import SolveSettings
from .errors import ConfigurationError, DimensionError
from .image import BundleImage, TargetBody
from .observation import BundleObservation

logger = logging.getLogger(__name__)


class BundleObservationVector:
    """
    Owns the observations of an adjustment.

    Args:
        observation_mode: If True, images with the same observation number
            share one observation; otherwise every image gets its own
        target_body: Target body passed to every new observation
    """

    def __init__(self, observation_mode: bool = True, target_body: Optional[TargetBody] = None):
        self.observation_mode = observation_mode
        self.target_body = target_body
        self._observations: List[BundleObservation] = []
        self._by_number: Dict[str, BundleObservation] = {}
        self._by_serial: Dict[str, BundleObservation] = {}

    def __len__(self) -> int:
        return len(self._observations)

    def __iter__(self) -> Iterator[BundleObservation]:
        return iter(self._observations)

    def __getitem__(self, i: int) -> BundleObservation:
        return self._observations[i]

    def add_new(
        self,
        image: BundleImage,
        observation_number: str,
        instrument_id: str,
        settings: SolveSettings,
    ) -> BundleObservation:
        """
        Add an image, creating its observation if needed.

        Args:
            image: Image to add
            observation_number: Observation the image belongs to
            instrument_id: Instrument id of the image
            settings: Solve settings for a new observation

        Returns:
            The observation the image was added to
        """
        if self.observation_mode and observation_number in self._by_number:
            observation = self._by_number[observation_number]
            observation.append(image)
        else:
            observation = BundleObservation(
                image, observation_number, instrument_id, self.target_body
            )
            observation.set_index(len(self._observations))
            if not observation.set_solve_settings(settings):
                raise ConfigurationError(
                    f"Unable to set solve settings for observation {observation_number}"
                )
            self._observations.append(observation)
            self._by_number.setdefault(observation_number, observation)

        self._by_serial[image.serial_number] = observation
        return observation

    def observation_by_serial(self, serial_number: str) -> Optional[BundleObservation]:
        return self._by_serial.get(serial_number)

    def observation_by_number(self, observation_number: str) -> Optional[BundleObservation]:
        return self._by_number.get(observation_number)

    def number_parameters(self) -> int:
        return sum(o.number_parameters() for o in self._observations)

    def parameter_offsets(self) -> List[int]:
        """Start of each observation's parameters in the global vector."""
        offsets = []
        offset = 0
        for observation in self._observations:
            offsets.append(offset)
            offset += observation.number_parameters()
        return offsets

    def initialize_exterior_orientation(self) -> None:
        for observation in self._observations:
            observation.initialize_exterior_orientation()

    def initialize_body_rotation(self) -> None:
        for observation in self._observations:
            observation.initialize_body_rotation()

    def update_body_rotation(self) -> None:
        for observation in self._observations:
            observation.update_body_rotation()

    def apply_corrections(self, corrections) -> None:
        """
        Apply one iteration of the global correction vector.

        Args:
            corrections: Observation part of the global correction vector

        Raises:
            DimensionError: If the vector length does not match
            ObservationCorrectionError: On the first observation that fails;
                the adjustment iteration should be aborted. Every slice is
                checked before any observation is changed.
        """
        corrections = np.asarray(corrections, dtype=np.float64)
        expected = self.number_parameters()
        if corrections.shape != (expected,):
            raise DimensionError(
                f"Correction vector has {corrections.size} values, expected {expected}"
            )

        slices = [
            (observation, corrections[offset:offset + observation.number_parameters()])
            for observation, offset in zip(self._observations, self.parameter_offsets())
        ]

        for observation, values in slices:
            observation.check_parameter_corrections(values).raise_for_error()

        for observation, values in slices:
            observation.apply_parameter_corrections(values).raise_for_error()

        logger.info(f"Applied corrections to {len(self._observations)} observations")

    def parameter_names(self) -> List[str]:
        """Qualified parameter names for correlation matrix output."""
        return [
            f"{observation.observation_number} {name}"
            for observation in self._observations
            for name in observation.parameter_names
        ]

    def image_names(self) -> List[str]:
        return [name for observation in self._observations for name in observation.image_names]
