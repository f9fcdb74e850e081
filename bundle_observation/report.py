"""
Reporting of adjusted observation parameters.

Each parameter of an observation is reported as one row:

    name, value before correction, correction, final value,
    a priori sigma, adjusted sigma

Angles are solved in radians and reported in degrees. Missing sigmas and
unavailable values are shown as 'N/A' in text output, null in JSON and
empty in CSV.
"""

import csv
import json
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np

from .weights import is_null

logger = logging.getLogger(__name__)

RAD2DEG = np.rad2deg(1.0)

NOT_AVAILABLE = "N/A"


@dataclass
class ParameterRow:
    """One reported parameter of an observation."""
    name: str
    initial: Optional[float]  # Value before correction, None if not available
    correction: float  # Cumulative correction
    final: Optional[float]  # Value after correction, None if not available
    apriori_sigma: Optional[float] = None
    adjusted_sigma: Optional[float] = None
    is_angle: bool = False


def build_parameter_rows(observation, include_adjusted_sigmas: bool) -> List[ParameterRow]:
    """
    Build the report rows of an observation.

    Args:
        observation: Configured BundleObservation
        include_adjusted_sigmas: Whether adjusted sigmas are reported

    Returns:
        One ParameterRow per parameter, in solver order
    """
    layout = observation.layout
    finals = observation.final_parameter_values()
    corrections = observation.parameter_corrections
    apriori = observation.apriori_sigmas
    adjusted = observation.adjusted_sigmas

    rows = []
    for i, (name, block) in enumerate(zip(layout.parameter_names(), layout.blocks())):
        scale = RAD2DEG if block.is_angle else 1.0
        final = finals[i] * scale
        correction = corrections[i] * scale

        adjusted_sigma = None
        if include_adjusted_sigmas and not is_null(adjusted[i]):
            adjusted_sigma = float(adjusted[i] * scale)

        available = not np.isnan(final)

        rows.append(ParameterRow(
            name=name,
            initial=float(final - correction) if available else None,
            correction=float(correction),
            final=float(final) if available else None,
            apriori_sigma=None if is_null(apriori[i]) else float(apriori[i]),
            adjusted_sigma=adjusted_sigma,
            is_angle=block.is_angle,
        ))

    return rows


def format_rows(rows: Iterable[ParameterRow]) -> str:
    """Format rows as a fixed-width table, one line per row."""
    lines = []
    for row in rows:
        initial = NOT_AVAILABLE if row.initial is None else f"{row.initial:.8f}"
        final = NOT_AVAILABLE if row.final is None else f"{row.final:.8f}"
        apriori = NOT_AVAILABLE if row.apriori_sigma is None else f"{row.apriori_sigma:.8f}"
        adjusted = NOT_AVAILABLE if row.adjusted_sigma is None else f"{row.adjusted_sigma:.8f}"
        lines.append(
            f"{row.name:<10}"
            f"{initial:>17}"
            f"{row.correction:21.8f}"
            f"{final:>20}"
            f"{apriori:>18}"
            f"{adjusted:>18}\n"
        )
    return "".join(lines)


def save_report_json(
    observations,
    output_path: str,
    include_adjusted_sigmas: bool = False,
) -> None:
    """
    Save the adjusted parameters of all observations to a JSON file.

    Args:
        observations: Iterable of configured observations
        output_path: Path for output JSON file
        include_adjusted_sigmas: Whether adjusted sigmas are reported
    """
    data = []
    for observation in observations:
        rows = build_parameter_rows(observation, include_adjusted_sigmas)
        data.append({
            'observation_number': observation.observation_number,
            'instrument_id': observation.instrument_id,
            'index': observation.index,
            'images': observation.image_names,
            'serial_numbers': observation.serial_numbers,
            'parameters': [
                {
                    'name': r.name,
                    'initial': r.initial,
                    'correction': r.correction,
                    'final': r.final,
                    'apriori_sigma': r.apriori_sigma,
                    'adjusted_sigma': r.adjusted_sigma,
                    'units': 'degrees' if r.is_angle else 'linear',
                }
                for r in rows
            ],
        })

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)

    logger.info(f"Report saved to {output_path}")


def save_parameters_csv(
    observations,
    output_path: str,
    include_adjusted_sigmas: bool = False,
) -> None:
    """
    Save the adjusted parameters of all observations to CSV.

    Args:
        observations: Iterable of configured observations
        output_path: Path for output CSV file
        include_adjusted_sigmas: Whether adjusted sigmas are reported
    """
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow([
            'observation_number', 'instrument_id', 'parameter',
            'initial', 'correction', 'final',
            'apriori_sigma', 'adjusted_sigma',
        ])

        for observation in observations:
            for r in build_parameter_rows(observation, include_adjusted_sigmas):
                writer.writerow([
                    observation.observation_number, observation.instrument_id, r.name,
                    '' if r.initial is None else r.initial,
                    r.correction,
                    '' if r.final is None else r.final,
                    '' if r.apriori_sigma is None else r.apriori_sigma,
                    '' if r.adjusted_sigma is None else r.adjusted_sigma,
                ])

    logger.info(f"Parameters saved to {output_path}")
