"""
Configuration module for bundle observation solve settings.

Handles loading and validation of solve settings and run configuration from
YAML files.

Solve settings decide, per instrument, which exterior orientation parameters
are unknowns in the adjustment:
    - Position: number of X/Y/Z polynomial coefficients solved per axis
    - Pointing: number of RA/DEC(/TWIST) polynomial coefficients solved per axis
    - A priori sigmas for position (m, m/s, m/s²) and pointing (deg, deg/s, deg/s²)
"""

import yaml
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import logging

from .weights import NULL_SIGMA, is_null

logger = logging.getLogger(__name__)


class InterpolationType(Enum):
    """How a time series is evaluated between cached epochs."""
    MEMCACHE = "memcache"  # Linear interpolation of cached epochs
    POLY_FUNCTION = "poly_function"  # Polynomial only
    POLY_FUNCTION_OVER_CACHE = "poly_function_over_cache"  # Polynomial plus fit residual


class _SolveOption(Enum):
    """Shared behaviour of the position and pointing solve options."""

    @classmethod
    def from_string(cls, value: str):
        key = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            valid = ", ".join(option.name for option in cls)
            raise ValueError(
                f"Unknown {cls.__name__} '{value}', expected one of: {valid}"
            ) from None

    def to_string(self) -> str:
        return self.name

    def coefficients_solved(self, solve_degree: int) -> int:
        """Number of polynomial coefficients solved per axis for this option."""
        if self.value == "all":
            return solve_degree + 1
        return self.value


class InstrumentPositionSolveOption(_SolveOption):
    NONE = 0
    POSITION_ONLY = 1
    POSITION_VELOCITY = 2
    POSITION_VELOCITY_ACCELERATION = 3
    ALL_COEFFICIENTS = "all"


class InstrumentPointingSolveOption(_SolveOption):
    NONE = 0
    ANGLES_ONLY = 1
    ANGLES_VELOCITY = 2
    ANGLES_VELOCITY_ACCELERATION = 3
    ALL_COEFFICIENTS = "all"


def _sigma_list(values: Optional[List[Any]], length: int) -> List[float]:
    """Convert YAML sigma values to floats, padding with the null sigma."""
    sigmas = [NULL_SIGMA if v is None else float(v) for v in (values or [])]
    while len(sigmas) < length:
        sigmas.append(NULL_SIGMA)
    return sigmas


@dataclass
class SolveSettings:
    """
    Solve settings for the observations of one instrument.

    Attributes:
        instrument_id: Instrument these settings apply to ('' for any)
        position_option: Position coefficients solved
        spk_degree: Degree of the a priori position polynomial fit
        spk_solve_degree: Degree of the position polynomial used in the solve
        position_over_existing: Solve a polynomial over the cached position
        apriori_position_sigmas: Position, velocity, acceleration sigmas (m, m/s, m/s²)
        pointing_option: Pointing coefficients solved
        ck_degree: Degree of the a priori pointing polynomial fit
        ck_solve_degree: Degree of the pointing polynomial used in the solve
        solve_twist: Whether twist (rotation about the boresight) is solved
        pointing_over_existing: Solve a polynomial over the cached pointing
        apriori_pointing_sigmas: Angle, angular velocity, angular acceleration sigmas (deg)
    """
    instrument_id: str = ""
    position_option: InstrumentPositionSolveOption = InstrumentPositionSolveOption.NONE
    spk_degree: int = 2
    spk_solve_degree: int = 2
    position_over_existing: bool = False
    apriori_position_sigmas: List[float] = field(default_factory=list)
    pointing_option: InstrumentPointingSolveOption = InstrumentPointingSolveOption.ANGLES_ONLY
    ck_degree: int = 2
    ck_solve_degree: int = 2
    solve_twist: bool = True
    pointing_over_existing: bool = False
    apriori_pointing_sigmas: List[float] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.position_option, str):
            self.position_option = InstrumentPositionSolveOption.from_string(self.position_option)
        if isinstance(self.pointing_option, str):
            self.pointing_option = InstrumentPointingSolveOption.from_string(self.pointing_option)

        for name in ('spk_degree', 'spk_solve_degree', 'ck_degree', 'ck_solve_degree'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

        # The solve polynomial must be able to hold every solved coefficient
        n_position = self.number_camera_position_coefficients_solved
        if n_position > self.spk_solve_degree + 1:
            self.spk_solve_degree = n_position - 1
        n_pointing = self.number_camera_angle_coefficients_solved
        if n_pointing > self.ck_solve_degree + 1:
            self.ck_solve_degree = n_pointing - 1

        self.apriori_position_sigmas = _sigma_list(self.apriori_position_sigmas, n_position)
        self.apriori_pointing_sigmas = _sigma_list(self.apriori_pointing_sigmas, n_pointing)

    @property
    def number_camera_position_coefficients_solved(self) -> int:
        return self.position_option.coefficients_solved(self.spk_solve_degree)

    @property
    def number_camera_angle_coefficients_solved(self) -> int:
        return self.pointing_option.coefficients_solved(self.ck_solve_degree)

    @property
    def position_interpolation_type(self) -> InterpolationType:
        if self.position_option is InstrumentPositionSolveOption.NONE:
            return InterpolationType.MEMCACHE
        if self.position_over_existing:
            return InterpolationType.POLY_FUNCTION_OVER_CACHE
        return InterpolationType.POLY_FUNCTION

    @property
    def pointing_interpolation_type(self) -> InterpolationType:
        if self.pointing_option is InstrumentPointingSolveOption.NONE:
            return InterpolationType.MEMCACHE
        if self.pointing_over_existing:
            return InterpolationType.POLY_FUNCTION_OVER_CACHE
        return InterpolationType.POLY_FUNCTION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolveSettings":
        """Build settings from a mapping as found in a YAML file."""
        return cls(
            instrument_id=str(data.get('instrument_id', '')),
            position_option=data.get('position_option', 'NONE'),
            spk_degree=int(data.get('spk_degree', 2)),
            spk_solve_degree=int(data.get('spk_solve_degree', 2)),
            position_over_existing=bool(data.get('position_over_existing', False)),
            apriori_position_sigmas=data.get('apriori_position_sigmas', []),
            pointing_option=data.get('pointing_option', 'ANGLES_ONLY'),
            ck_degree=int(data.get('ck_degree', 2)),
            ck_solve_degree=int(data.get('ck_solve_degree', 2)),
            solve_twist=bool(data.get('solve_twist', True)),
            pointing_over_existing=bool(data.get('pointing_over_existing', False)),
            apriori_pointing_sigmas=data.get('apriori_pointing_sigmas', []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'instrument_id': self.instrument_id,
            'position_option': self.position_option.to_string(),
            'spk_degree': self.spk_degree,
            'spk_solve_degree': self.spk_solve_degree,
            'position_over_existing': self.position_over_existing,
            'apriori_position_sigmas': [
                None if is_null(s) else s for s in self.apriori_position_sigmas
            ],
            'pointing_option': self.pointing_option.to_string(),
            'ck_degree': self.ck_degree,
            'ck_solve_degree': self.ck_solve_degree,
            'solve_twist': self.solve_twist,
            'pointing_over_existing': self.pointing_over_existing,
            'apriori_pointing_sigmas': [
                None if is_null(s) else s for s in self.apriori_pointing_sigmas
            ],
        }

    @classmethod
    def from_yaml(cls, config_path: str) -> "SolveSettings":
        """
        Load solve settings from a YAML file.

        Example YAML structure:
            instrument_id: HRSC
            position_option: POSITION_VELOCITY
            spk_degree: 2
            spk_solve_degree: 2
            apriori_position_sigmas: [1000.0, 10.0]
            pointing_option: ANGLES_ONLY
            ck_degree: 2
            ck_solve_degree: 2
            solve_twist: true
            apriori_pointing_sigmas: [2.0]
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Solve settings file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading solve settings from {config_path}")
        return cls.from_dict(data)

    def to_yaml(self, config_path: str) -> None:
        """Save solve settings to a YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Solve settings saved to {config_path}")


@dataclass
class ImageEntry:
    """One image of a run, with the observation it belongs to."""
    serial_number: str
    file_name: str
    observation_number: str
    instrument_id: str = ""
    trajectory: Optional[str] = None  # CSV time series shared by the observation


@dataclass
class RunConfig:
    """
    Configuration of a correction run driven from the command line.

    Attributes:
        settings: Solve settings, one entry per instrument ('' matches any)
        images: Images in insertion order
        observation_mode: Group images by observation number
        target_body: Optional target body file (YAML)
        corrections: Optional file with the global correction vector
    """
    settings: List[SolveSettings]
    images: List[ImageEntry]
    observation_mode: bool = True
    target_body: Optional[str] = None
    corrections: Optional[str] = None

    def settings_for(self, instrument_id: str) -> SolveSettings:
        """Return the solve settings for an instrument."""
        for settings in self.settings:
            if settings.instrument_id == instrument_id:
                return settings
        for settings in self.settings:
            if not settings.instrument_id:
                return settings
        raise ValueError(f"No solve settings for instrument '{instrument_id}'")

    @classmethod
    def from_yaml(cls, config_path: str) -> "RunConfig":
        """
        Load a run configuration from a YAML file.

        Relative paths are resolved against the configuration file location.

        Example YAML structure:
            observation_mode: true
            target_body: mars.yaml
            corrections: corrections.txt
            settings:
              - instrument_id: HRSC
                position_option: POSITION_ONLY
                apriori_position_sigmas: [10.0]
                pointing_option: NONE
            images:
              - serial_number: HRSC/S1/0001
                file_name: h0001_s1.cub
                observation_number: H0001
                instrument_id: HRSC
                trajectory: h0001.csv
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading run configuration from {config_path}")
        config_dir = path.parent

        def resolve(value: Optional[str]) -> Optional[str]:
            return str(config_dir / value) if value else None

        settings_data = data.get('settings', [])
        if isinstance(settings_data, dict):
            settings_data = [settings_data]
        if not settings_data:
            raise ValueError(f"No solve settings in {config_path}")

        images = []
        for entry in data.get('images', []):
            images.append(ImageEntry(
                serial_number=str(entry['serial_number']),
                file_name=str(entry.get('file_name', entry['serial_number'])),
                observation_number=str(entry.get('observation_number', entry['serial_number'])),
                instrument_id=str(entry.get('instrument_id', '')),
                trajectory=resolve(entry.get('trajectory')),
            ))

        return cls(
            settings=[SolveSettings.from_dict(s) for s in settings_data],
            images=images,
            observation_mode=bool(data.get('observation_mode', True)),
            target_body=resolve(data.get('target_body')),
            corrections=resolve(data.get('corrections')),
        )
