"""
Images, cameras and target body used by bundle observations.

These are thin holders around the exterior orientation objects. Several images
of one observation reference the same position and rotation objects; an image
never owns them exclusively.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging

import numpy as np
import yaml

from .polynomial import InstrumentPosition, InstrumentRotation

logger = logging.getLogger(__name__)


@dataclass
class Camera:
    """Exterior orientation objects of one image's camera."""
    instrument_position: Optional[InstrumentPosition] = None
    instrument_rotation: Optional[InstrumentRotation] = None
    body_rotation: Optional[InstrumentRotation] = None


@dataclass
class BundleImage:
    """An image taking part in the adjustment."""
    serial_number: str
    file_name: str
    camera: Optional[Camera] = None

    @property
    def instrument_position(self) -> Optional[InstrumentPosition]:
        return self.camera.instrument_position if self.camera else None

    @property
    def instrument_rotation(self) -> Optional[InstrumentRotation]:
        return self.camera.instrument_rotation if self.camera else None

    @property
    def body_rotation(self) -> Optional[InstrumentRotation]:
        return self.camera.body_rotation if self.camera else None


@dataclass
class TargetBody:
    """
    Target body orientation model.

    Coefficients are in radians, lowest order first:
        pole_ra: Right ascension of the north pole
        pole_dec: Declination of the north pole
        prime_meridian: Prime meridian angle
    """
    name: str = ""
    pole_ra: List[float] = field(default_factory=list)
    pole_dec: List[float] = field(default_factory=list)
    prime_meridian: List[float] = field(default_factory=list)

    def pole_ra_coefs(self) -> np.ndarray:
        return np.asarray(self.pole_ra, dtype=np.float64)

    def pole_dec_coefs(self) -> np.ndarray:
        return np.asarray(self.pole_dec, dtype=np.float64)

    def pm_coefs(self) -> np.ndarray:
        return np.asarray(self.prime_meridian, dtype=np.float64)

    def body_rotation(self, epoch: float = 0.0) -> InstrumentRotation:
        """New body rotation object seeded with the constant terms at `epoch`."""
        constants = [
            coefs[0] if coefs.size else 0.0
            for coefs in (self.pole_ra_coefs(), self.pole_dec_coefs(), self.pm_coefs())
        ]
        rotation = InstrumentRotation([epoch], [constants], degree=0)
        rotation.set_pck_polynomial(self.pole_ra_coefs(), self.pole_dec_coefs(), self.pm_coefs())
        return rotation

    @classmethod
    def from_yaml(cls, config_path: str) -> "TargetBody":
        """
        Load a target body from YAML (coefficients in degrees).

        Example YAML structure:
            name: MARS
            pole_ra: [317.68143, -0.1061, 0.0]
            pole_dec: [52.88650, -0.0609, 0.0]
            prime_meridian: [176.630, 350.89198226, 0.0]
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Target body file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading target body from {config_path}")
        return cls(
            name=str(data.get('name', '')),
            pole_ra=np.deg2rad(data.get('pole_ra', [])).tolist(),
            pole_dec=np.deg2rad(data.get('pole_dec', [])).tolist(),
            prime_meridian=np.deg2rad(data.get('prime_meridian', [])).tolist(),
        )
