"""
Command-line interface for applying bundle observation corrections.

Usage:
    bundle-observation run.yaml [--corrections FILE] [--output-dir OUTPUT_DIR]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

from .config import RunConfig
from .errors import BundleObservationError
from .image import BundleImage, Camera, TargetBody
from .observation_vector import BundleObservationVector
from .polynomial import InstrumentPosition, InstrumentRotation
from .report import save_parameters_csv, save_report_json


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_corrections(filepath: str) -> np.ndarray:
    """Load a correction vector (whitespace or comma separated values)."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Corrections file not found: {filepath}")

    text = path.read_text().replace(',', ' ')
    return np.array([float(v) for v in text.split()], dtype=np.float64)


def build_observations(config: RunConfig) -> BundleObservationVector:
    """
    Build cameras and observations for every image of a run.

    Images of one observation that name the same trajectory file share one
    position and one rotation object.
    """
    target_body: Optional[TargetBody] = None
    if config.target_body:
        target_body = TargetBody.from_yaml(config.target_body)

    observations = BundleObservationVector(config.observation_mode, target_body)
    series: Dict[Tuple[str, str], Camera] = {}

    for entry in config.images:
        camera = None
        if entry.trajectory:
            key = (entry.observation_number if config.observation_mode else entry.serial_number,
                   entry.trajectory)
            if key not in series:
                body_rotation = target_body.body_rotation() if target_body else None
                series[key] = Camera(
                    instrument_position=InstrumentPosition.from_csv(entry.trajectory),
                    instrument_rotation=InstrumentRotation.from_csv(entry.trajectory),
                    body_rotation=body_rotation,
                )
            shared = series[key]
            camera = Camera(
                instrument_position=shared.instrument_position,
                instrument_rotation=shared.instrument_rotation,
                body_rotation=shared.body_rotation,
            )

        image = BundleImage(entry.serial_number, entry.file_name, camera)
        observations.add_new(
            image,
            entry.observation_number,
            entry.instrument_id,
            config.settings_for(entry.instrument_id),
        )

    return observations


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Apply solver corrections to bundle observations and report the result',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Fit a priori polynomials and report them
    bundle-observation run.yaml

    # Apply a correction vector and save reports
    bundle-observation run.yaml --corrections corrections.txt --output-dir ./results
'''
    )

    parser.add_argument(
        'config',
        type=str,
        help='Path to YAML run configuration'
    )

    parser.add_argument(
        '--corrections', '-c',
        type=str,
        default=None,
        help='Correction vector file (overrides the configuration)'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default=None,
        help='Output directory for JSON and CSV reports'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = RunConfig.from_yaml(args.config)
        observations = build_observations(config)
        observations.initialize_exterior_orientation()
        if observations.target_body is not None:
            observations.initialize_body_rotation()

        corrections_path = args.corrections or config.corrections
        if corrections_path:
            observations.apply_corrections(load_corrections(corrections_path))

        for observation in observations:
            print(f"\nObservation {observation.observation_number} "
                  f"({observation.instrument_id}, {len(observation)} images)")
            print(observation.format_bundle_output_string(False), end='')

        if args.output_dir:
            output_dir = Path(args.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            save_report_json(observations, str(output_dir / 'observations.json'))
            save_parameters_csv(observations, str(output_dir / 'parameters.csv'))

        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except BundleObservationError as e:
        logger.error(f"Adjustment error: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
