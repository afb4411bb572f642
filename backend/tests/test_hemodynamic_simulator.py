"""Tests for the Hemodynamic Simulator."""

import math

import pytest

from detect_screening.services.detect_model import DetectStep
from detect_screening.services.hemodynamic_simulator import (
    SIMULATED_PATIENT,
    derive_hemodynamics,
    simulate,
)


class TestDeriveHemodynamics:
    """Test the simplified physiology."""

    def test_normal_pressure(self):
        """Test PAPs 25 mmHg, the upper limit of normal."""
        h = derive_hemodynamics(25.0)
        assert h.rap_mmhg == 5.0
        assert h.tr_velocity_ms == pytest.approx(math.sqrt(5.0))
        assert h.ra_area_cm2 == 16.0
        assert h.nt_probnp == pytest.approx(100.0 + math.e ** 2)

    def test_elevated_pressure(self):
        """Test PAPs 60 mmHg."""
        h = derive_hemodynamics(60.0)
        assert h.rap_mmhg == pytest.approx(10.25)
        assert h.tr_velocity_ms == pytest.approx(math.sqrt(12.4375))
        assert h.ra_area_cm2 == pytest.approx(30.0)

    def test_nt_probnp_cap(self):
        """Test NT-proBNP turns linear above 3000 pg/mL."""
        assert derive_hemodynamics(100.0).nt_probnp == pytest.approx(4000.0)
        assert derive_hemodynamics(99.0).nt_probnp == pytest.approx(100.0 + math.exp(7.92))

    def test_zero_pressure(self):
        """Test the pressure gradient never goes negative."""
        h = derive_hemodynamics(0.0)
        assert h.tr_velocity_ms == 0.0
        assert h.rap_mmhg == 5.0

    def test_negative_pressure(self):
        """Test a negative pressure raises."""
        with pytest.raises(ValueError, match="non-negative"):
            derive_hemodynamics(-1.0)


class TestSimulate:
    """Test the simulated patient."""

    def test_both_steps_computed(self):
        """Test Step 2 is computed regardless of Step 1."""
        result = simulate(25.0)
        assert result.step1.step == DetectStep.STEP1
        assert result.step2.step == DetectStep.STEP2

    def test_fixed_covariates(self):
        """Test the simulated patient's fixed covariates feed Step 1."""
        result = simulate(40.0)
        inputs = result.step1.inputs
        for key, value in SIMULATED_PATIENT.items():
            assert inputs[key] == value
        assert inputs["nt_probnp"] == pytest.approx(result.hemodynamics.nt_probnp)

    def test_echo_values_feed_step2(self):
        """Test derived echo values feed Step 2."""
        result = simulate(60.0)
        assert result.step2.inputs["ra_area_cm2"] == pytest.approx(30.0)
        assert result.step2.inputs["tr_velocity_ms"] == pytest.approx(result.hemodynamics.tr_velocity_ms)
        assert result.step2.inputs["step1_point_total"] == result.step1.point_total

    def test_risk_rises_with_pressure(self):
        """Test Step-2 points never fall as pressure rises."""
        totals = [simulate(float(paps)).step2.point_total for paps in range(20, 121, 10)]
        assert all(later >= earlier for earlier, later in zip(totals, totals[1:]))

    def test_high_pressure_is_high_risk(self):
        """Test a markedly raised pressure refers."""
        assert simulate(80.0).is_high_risk is True

    def test_to_dict(self):
        """Test serialization."""
        data = simulate(60.0).to_dict()
        assert data["hemodynamics"]["ra_area_cm2"] == pytest.approx(30.0)
        assert data["step2"]["step"] == "step2"
        assert "is_high_risk" in data
