"""Input Normalization for the DETECT engine.

Turns raw form values (optional numbers, free-text units) into the
immutable, normalized records the scorers consume. All boundary rules live
here so they are specified once:

- FVC/DLCO ratio from two % predicted values, 1.0 if either is missing or
  DLCO is zero.
- Serum urate in µmol/L is converted to mg/dL (divide by 59.48).
- NT-proBNP is floored at 1 pg/mL (log10 domain).
- Missing booleans are False.
- A TR jet reported as not detectable is imputed at 2.4 m/s.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from detect_screening.services.detect_calculator import ClinicalInputStep1, ClinicalInputStep2

logger = logging.getLogger(__name__)

# 1 mg/dL uric acid = 59.48 µmol/L
URATE_UMOL_PER_MG_DL = 59.48

NT_PROBNP_FLOOR = 1.0
DEFAULT_FVC_DLCO_RATIO = 1.0

# DETECT appendix: absent TR jets imputed as the mean of reported
# velocities <= 2.8 m/s.
IMPUTED_TR_VELOCITY_MS = 2.4


class UrateUnit(str, Enum):
    """Units accepted for serum urate."""

    MG_DL = "mg/dL"
    UMOL_L = "µmol/L"


# Unit normalization mapping
URATE_UNIT_ALIASES: dict[str, UrateUnit] = {
    "mg/dl": UrateUnit.MG_DL,
    "mg/100ml": UrateUnit.MG_DL,
    "mg": UrateUnit.MG_DL,
    "mgdl": UrateUnit.MG_DL,
    "µmol/l": UrateUnit.UMOL_L,
    "μmol/l": UrateUnit.UMOL_L,  # Greek mu
    "umol/l": UrateUnit.UMOL_L,
    "umol": UrateUnit.UMOL_L,
    "µmol": UrateUnit.UMOL_L,
    "micromol/l": UrateUnit.UMOL_L,
}


@dataclass(frozen=True)
class RawStep1Form:
    """Step-1 values as collected, before normalization."""

    fvc_percent: float | None = None
    dlco_percent: float | None = None
    telangiectasia: bool | None = None
    anticentromere_antibody: bool | None = None
    nt_probnp: float | None = None
    urate: float | None = None
    urate_unit: UrateUnit | str = UrateUnit.MG_DL
    right_axis_deviation: bool | None = None


@dataclass(frozen=True)
class RawStep2Form:
    """Step-2 echo values as collected. None TR velocity = not detectable."""

    ra_area_cm2: float | None = None
    tr_velocity_ms: float | None = None


@dataclass(frozen=True)
class NormalizedStep2:
    """Normalized Step-2 inputs plus whether TR velocity was imputed."""

    inputs: ClinicalInputStep2
    tr_velocity_imputed: bool


def compute_fvc_dlco_ratio(fvc_percent: float | None, dlco_percent: float | None) -> float:
    """FVC % predicted divided by DLCO % predicted.

    Returns:
        The ratio, or 1.0 if either value is missing or DLCO is zero.
    """
    if fvc_percent is None or dlco_percent is None or dlco_percent == 0:
        return DEFAULT_FVC_DLCO_RATIO
    return fvc_percent / dlco_percent


def parse_urate_unit(unit: UrateUnit | str) -> UrateUnit:
    """Resolve a urate unit or unit alias.

    Raises:
        ValueError: If the unit is not recognised.
    """
    if isinstance(unit, UrateUnit):
        return unit

    key = unit.strip().lower().replace(" ", "")
    if key in URATE_UNIT_ALIASES:
        return URATE_UNIT_ALIASES[key]

    raise ValueError(f"Unknown urate unit: {unit!r}. Expected mg/dL or µmol/L")


def convert_urate_to_mg_dl(value: float | None, unit: UrateUnit | str = UrateUnit.MG_DL) -> float:
    """Convert serum urate to mg/dL.

    A missing value becomes 0.0 mg/dL.
    """
    resolved = parse_urate_unit(unit)
    if value is None:
        return 0.0
    if resolved == UrateUnit.UMOL_L:
        return value / URATE_UMOL_PER_MG_DL
    return value


def floor_nt_probnp(value: float | None) -> float:
    """Floor NT-proBNP at 1 pg/mL; missing and NaN become the floor."""
    if value is None or not value >= NT_PROBNP_FLOOR:
        return NT_PROBNP_FLOOR
    return value


def impute_tr_velocity(value: float | None) -> tuple[float, bool]:
    """Return (velocity, imputed) for a possibly undetectable TR jet."""
    if value is None:
        return IMPUTED_TR_VELOCITY_MS, True
    return value, False


def normalize_step1(form: RawStep1Form) -> ClinicalInputStep1:
    """Build a ClinicalInputStep1 from raw form values.

    Raises:
        ValueError: If the urate unit is not recognised.
    """
    urate_mg_dl = convert_urate_to_mg_dl(form.urate, form.urate_unit)
    nt_probnp = floor_nt_probnp(form.nt_probnp)

    if form.nt_probnp is not None and nt_probnp != form.nt_probnp:
        logger.debug(f"NT-proBNP {form.nt_probnp} below floor, using {NT_PROBNP_FLOOR}")

    return ClinicalInputStep1(
        fvc_dlco_ratio=compute_fvc_dlco_ratio(form.fvc_percent, form.dlco_percent),
        telangiectasia=bool(form.telangiectasia),
        anticentromere_antibody=bool(form.anticentromere_antibody),
        nt_probnp=nt_probnp,
        urate_mg_dl=urate_mg_dl,
        right_axis_deviation=bool(form.right_axis_deviation),
    )


def normalize_step2(form: RawStep2Form) -> NormalizedStep2:
    """Build Step-2 inputs from raw echo values.

    A missing RA area is treated as 0 cm²; a missing TR velocity is
    imputed.
    """
    tr_velocity, imputed = impute_tr_velocity(form.tr_velocity_ms)
    if imputed:
        logger.info(f"TR velocity not detectable, imputing {IMPUTED_TR_VELOCITY_MS} m/s")

    return NormalizedStep2(
        inputs=ClinicalInputStep2(
            ra_area_cm2=form.ra_area_cm2 if form.ra_area_cm2 is not None else 0.0,
            tr_velocity_ms=tr_velocity,
        ),
        tr_velocity_imputed=imputed,
    )
