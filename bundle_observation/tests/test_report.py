"""
Tests for the adjusted parameter report.
"""

import csv
import json
import logging

import pytest
import numpy as np

from bundle_observation.config import (
    SolveSettings,
    InstrumentPositionSolveOption,
    InstrumentPointingSolveOption,
)
from bundle_observation.image import BundleImage, Camera
from bundle_observation.observation import BundleObservation
from bundle_observation.polynomial import InstrumentPosition, InstrumentRotation
from bundle_observation.report import (
    RAD2DEG,
    build_parameter_rows,
    format_rows,
    save_parameters_csv,
    save_report_json,
)


@pytest.fixture
def observation():
    times = np.linspace(0.0, 10.0, 11)
    camera = Camera(
        instrument_position=InstrumentPosition(
            times, np.column_stack([100.0 + 2.0 * times, 200.0 - times, 300.0 + 0.5 * times]),
        ),
        instrument_rotation=InstrumentRotation(
            times, np.column_stack([0.1 + 0.01 * times, np.full_like(times, 0.2), 0.3 - 0.02 * times]),
        ),
    )
    observation = BundleObservation(BundleImage('S1', 's1.cub', camera), 'OBS1', 'HRSC')
    observation.set_solve_settings(SolveSettings(
        position_option=InstrumentPositionSolveOption.POSITION_VELOCITY,
        apriori_position_sigmas=[10.0],
        pointing_option=InstrumentPointingSolveOption.ANGLES_ONLY,
        apriori_pointing_sigmas=[2.0],
        solve_twist=True,
    ))
    observation.initialize_exterior_orientation()
    return observation


CORRECTIONS = [0.5, 0.01, -1.0, 0.0, 2.0, 0.0, 0.001, -0.002, 0.0]


class TestParameterRows:
    """Tests for report row values."""

    def test_names(self, observation):
        rows = build_parameter_rows(observation, False)

        assert [r.name for r in rows] == [
            'X(t0)', 'X(t1)', 'Y(t0)', 'Y(t1)', 'Z(t0)', 'Z(t1)',
            'RA(t0)', 'DEC(t0)', 'TWI(t0)',
        ]

    def test_position_values(self, observation):
        observation.apply_parameter_corrections(CORRECTIONS)
        row = build_parameter_rows(observation, False)[0]

        assert row.initial == pytest.approx(110.0)
        assert row.correction == pytest.approx(0.5)
        assert row.final == pytest.approx(110.5)
        assert row.apriori_sigma == 10.0
        assert not row.is_angle

    def test_angle_values_in_degrees(self, observation):
        observation.apply_parameter_corrections(CORRECTIONS)
        row = build_parameter_rows(observation, False)[6]

        assert row.is_angle
        assert row.correction == pytest.approx(0.001 * RAD2DEG)
        assert row.final == pytest.approx(0.151 * RAD2DEG)
        assert row.initial == pytest.approx(0.15 * RAD2DEG)
        assert row.final - row.initial == pytest.approx(row.correction)
        assert row.correction / 0.001 == pytest.approx(180.0 / np.pi)

    def test_null_sigma(self, observation):
        rows = build_parameter_rows(observation, True)

        assert rows[1].apriori_sigma is None
        assert rows[6].apriori_sigma == 2.0

    def test_adjusted_sigmas(self, observation):
        observation.set_adjusted_sigmas([0.1] * 6 + [0.001] * 3)

        with_sigmas = build_parameter_rows(observation, True)
        without = build_parameter_rows(observation, False)

        assert with_sigmas[0].adjusted_sigma == pytest.approx(0.1)
        assert with_sigmas[6].adjusted_sigma == pytest.approx(0.001 * RAD2DEG)
        assert all(r.adjusted_sigma is None for r in without)

    def test_missing_rotation_not_available(self, caplog):
        times = np.linspace(0.0, 1.0, 3)
        camera = Camera(instrument_position=InstrumentPosition(times, np.zeros((3, 3))))
        observation = BundleObservation(BundleImage('S1', 's1.cub', camera), 'OBS1')
        observation.set_solve_settings(SolveSettings())

        with caplog.at_level(logging.WARNING):
            rows = build_parameter_rows(observation, False)

        assert all(r.final is None and r.initial is None for r in rows)
        assert [r.correction for r in rows] == [0.0, 0.0, 0.0]
        assert 'not available' in caplog.text

        lines = format_rows(rows).splitlines()
        assert lines[0].split()[1:4] == ['N/A', '0.00000000', 'N/A']


class TestFormatBundleOutputString:
    """Tests for the fixed-width text report."""

    def test_one_line_per_parameter(self, observation):
        text = observation.format_bundle_output_string(False)
        lines = text.splitlines(keepends=True)

        assert len(lines) == observation.number_parameters()
        assert all(line.endswith('\n') for line in lines)

    def test_field_order(self, observation):
        observation.apply_parameter_corrections(CORRECTIONS)
        fields = observation.format_bundle_output_string(False).splitlines()[0].split()

        assert fields[0] == 'X(t0)'
        assert float(fields[1]) == pytest.approx(110.0)
        assert float(fields[2]) == pytest.approx(0.5)
        assert float(fields[3]) == pytest.approx(110.5)
        assert float(fields[4]) == pytest.approx(10.0)
        assert fields[5] == 'N/A'

    @pytest.mark.parametrize("include_adjusted", [True, False])
    def test_null_sigma_is_not_available(self, observation, include_adjusted):
        observation.set_adjusted_sigmas([0.1] * 9)
        fields = observation.format_bundle_output_string(include_adjusted).splitlines()[1].split()

        assert fields[0] == 'X(t1)'
        assert fields[4] == 'N/A'
        if include_adjusted:
            assert float(fields[5]) == pytest.approx(0.1)
        else:
            assert fields[5] == 'N/A'

    def test_fixed_widths(self, observation):
        line = observation.format_bundle_output_string(True).splitlines()[0]
        assert len(line) == 10 + 17 + 21 + 20 + 18 + 18

    def test_refreshes_parameter_names(self, observation):
        observation.format_bundle_output_string(False)
        assert observation.parameter_names[-1] == 'TWI(t0)'

    def test_format_rows_empty(self):
        assert format_rows([]) == ""


class TestReportFiles:
    """Tests for JSON and CSV export."""

    def test_save_report_json(self, observation, tmp_path):
        path = tmp_path / 'observations.json'
        save_report_json([observation], str(path))

        data = json.loads(path.read_text())
        assert data[0]['observation_number'] == 'OBS1'
        assert data[0]['images'] == ['s1.cub']
        assert len(data[0]['parameters']) == 9
        assert data[0]['parameters'][1]['apriori_sigma'] is None
        assert data[0]['parameters'][6]['units'] == 'degrees'

    def test_save_parameters_csv(self, observation, tmp_path):
        path = tmp_path / 'parameters.csv'
        save_parameters_csv([observation], str(path))

        with open(path, newline='') as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 9
        assert rows[0]['parameter'] == 'X(t0)'
        assert rows[0]['apriori_sigma'] == '10.0'
        assert rows[1]['apriori_sigma'] == ''
