"""Tests for raw form value normalization."""

import logging

import pytest

from detect_screening.services.detect_calculator import ClinicalInputStep1, ClinicalInputStep2
from detect_screening.services.input_normalization import (
    IMPUTED_TR_VELOCITY_MS,
    URATE_UMOL_PER_MG_DL,
    RawStep1Form,
    RawStep2Form,
    UrateUnit,
    compute_fvc_dlco_ratio,
    convert_urate_to_mg_dl,
    floor_nt_probnp,
    impute_tr_velocity,
    normalize_step1,
    normalize_step2,
    parse_urate_unit,
)


class TestFvcDlcoRatio:
    """Test the FVC/DLCO ratio."""

    def test_ratio(self):
        """Test a plain ratio."""
        assert compute_fvc_dlco_ratio(80.0, 50.0) == pytest.approx(1.6)

    def test_missing_values_default(self):
        """Test a missing percentage gives 1.0."""
        assert compute_fvc_dlco_ratio(None, 50.0) == 1.0
        assert compute_fvc_dlco_ratio(80.0, None) == 1.0
        assert compute_fvc_dlco_ratio(None, None) == 1.0

    def test_zero_dlco_default(self):
        """Test DLCO of zero gives 1.0 instead of dividing by zero."""
        assert compute_fvc_dlco_ratio(80.0, 0.0) == 1.0


class TestUrateUnits:
    """Test urate unit parsing and conversion."""

    @pytest.mark.parametrize(
        "alias,expected",
        [
            ("mg/dL", UrateUnit.MG_DL),
            ("mg/dl", UrateUnit.MG_DL),
            (" MG / DL ", UrateUnit.MG_DL),
            ("µmol/L", UrateUnit.UMOL_L),
            ("μmol/L", UrateUnit.UMOL_L),
            ("umol/l", UrateUnit.UMOL_L),
            ("umol", UrateUnit.UMOL_L),
        ],
    )
    def test_aliases(self, alias, expected):
        """Test unit aliases resolve."""
        assert parse_urate_unit(alias) == expected

    def test_enum_passthrough(self):
        """Test an enum member is returned unchanged."""
        assert parse_urate_unit(UrateUnit.UMOL_L) is UrateUnit.UMOL_L

    def test_unknown_unit(self):
        """Test an unknown unit raises."""
        with pytest.raises(ValueError, match="Unknown urate unit"):
            parse_urate_unit("mmol/L")

    def test_umol_conversion(self):
        """Test 300 µmol/L converts to about 5.04 mg/dL."""
        assert convert_urate_to_mg_dl(300.0, "µmol/L") == pytest.approx(300.0 / 59.48)
        assert convert_urate_to_mg_dl(300.0, UrateUnit.UMOL_L) == pytest.approx(5.0437, abs=1e-4)

    def test_conversion_factor(self):
        """Test the µmol/L per mg/dL factor."""
        assert URATE_UMOL_PER_MG_DL == 59.48

    def test_mg_dl_unchanged(self):
        """Test mg/dL values pass through."""
        assert convert_urate_to_mg_dl(5.0) == 5.0

    def test_missing_urate(self):
        """Test a missing urate becomes 0.0."""
        assert convert_urate_to_mg_dl(None, "umol") == 0.0


class TestFloorsAndImputation:
    """Test NT-proBNP floor and TR velocity imputation."""

    @pytest.mark.parametrize("value", [None, 0.0, -10.0, 0.99])
    def test_nt_probnp_floor(self, value):
        """Test missing or sub-1 values become 1 pg/mL."""
        assert floor_nt_probnp(value) == 1.0

    def test_nt_probnp_above_floor(self):
        """Test values at or above 1 pass through."""
        assert floor_nt_probnp(1.0) == 1.0
        assert floor_nt_probnp(200.0) == 200.0

    def test_nt_probnp_nan_floored(self):
        """Test a NaN NT-proBNP becomes the floor."""
        assert floor_nt_probnp(float("nan")) == 1.0

    def test_tr_velocity_imputed(self):
        """Test an undetectable TR jet is imputed."""
        assert impute_tr_velocity(None) == (IMPUTED_TR_VELOCITY_MS, True)
        assert IMPUTED_TR_VELOCITY_MS == 2.4

    def test_tr_velocity_measured(self):
        """Test a measured TR jet passes through."""
        assert impute_tr_velocity(2.8) == (2.8, False)


class TestNormalizeStep1:
    """Test Step-1 normalization."""

    def test_full_form(self):
        """Test a complete form."""
        inputs = normalize_step1(
            RawStep1Form(
                fvc_percent=80.0,
                dlco_percent=50.0,
                telangiectasia=True,
                anticentromere_antibody=True,
                nt_probnp=200.0,
                urate=5.0,
                right_axis_deviation=False,
            )
        )
        assert isinstance(inputs, ClinicalInputStep1)
        assert inputs.fvc_dlco_ratio == pytest.approx(1.6)
        assert inputs.telangiectasia is True
        assert inputs.anticentromere_antibody is True
        assert inputs.nt_probnp == 200.0
        assert inputs.urate_mg_dl == 5.0
        assert inputs.right_axis_deviation is False

    def test_empty_form(self):
        """Test an empty form gives the model defaults."""
        assert normalize_step1(RawStep1Form()) == ClinicalInputStep1()

    def test_umol_form(self):
        """Test a µmol/L urate is converted."""
        inputs = normalize_step1(RawStep1Form(urate=297.4, urate_unit="umol/L"))
        assert inputs.urate_mg_dl == pytest.approx(5.0)

    def test_bad_unit(self):
        """Test an unknown unit raises."""
        with pytest.raises(ValueError):
            normalize_step1(RawStep1Form(urate=5.0, urate_unit="grams"))


class TestNormalizeStep2:
    """Test Step-2 normalization."""

    def test_measured(self):
        """Test measured echo values."""
        normalized = normalize_step2(RawStep2Form(ra_area_cm2=18.0, tr_velocity_ms=2.8))
        assert normalized.inputs == ClinicalInputStep2(ra_area_cm2=18.0, tr_velocity_ms=2.8)
        assert normalized.tr_velocity_imputed is False

    def test_imputed(self, caplog):
        """Test an undetectable TR jet is imputed and logged."""
        caplog.set_level(logging.INFO, logger="detect_screening.services.input_normalization")
        normalized = normalize_step2(RawStep2Form(ra_area_cm2=18.0))
        assert normalized.inputs.tr_velocity_ms == 2.4
        assert normalized.tr_velocity_imputed is True
        assert "imputing" in caplog.text

    def test_missing_ra_area(self):
        """Test a missing RA area is treated as zero."""
        normalized = normalize_step2(RawStep2Form(tr_velocity_ms=2.8))
        assert normalized.inputs.ra_area_cm2 == 0.0
