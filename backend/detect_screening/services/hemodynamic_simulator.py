"""Hemodynamic Simulator.

Didactic "simulated patient": derives echocardiographic and biomarker
values from a systolic pulmonary artery pressure (PAPs) and runs them
through both DETECT steps. The physiology is deliberately simple and for
teaching only; it has no bearing on the score itself.

Model (PAPs in mmHg):
    RAP      = 5 + max(0, PAPs - 25) * 0.15
    TR vel   = sqrt(max(0, PAPs - RAP) / 4)          simplified Bernoulli
    RA area  = 16 + max(0, PAPs - 25) * 0.4
    NT-proBNP = 100 + e^(0.08 * PAPs), linear above 3000 pg/mL
"""

import logging
import math
from dataclasses import dataclass
from typing import Any

from detect_screening.services.detect_calculator import (
    ClinicalInputStep1,
    ClinicalInputStep2,
    ScoreResult,
    Step1Carry,
    compute_step1,
    compute_step2,
)

logger = logging.getLogger(__name__)

NORMAL_PAPS_MMHG = 25.0
BASE_RAP_MMHG = 5.0
RAP_SLOPE = 0.15
BASE_RA_AREA_CM2 = 16.0
RA_AREA_SLOPE = 0.4
BASE_NT_PROBNP = 100.0
NT_PROBNP_EXPONENT = 0.08
NT_PROBNP_CAP = 3000.0
NT_PROBNP_CAP_SLOPE = 10.0

# Fixed covariates of the simulated systemic-sclerosis patient
SIMULATED_PATIENT = {
    "fvc_dlco_ratio": 1.6,
    "telangiectasia": True,
    "anticentromere_antibody": True,
    "urate_mg_dl": 5.0,
    "right_axis_deviation": False,
}


@dataclass(frozen=True)
class Hemodynamics:
    """Values derived from a systolic PA pressure."""

    paps_mmhg: float
    rap_mmhg: float
    tr_velocity_ms: float
    ra_area_cm2: float
    nt_probnp: float


@dataclass
class SimulationResult:
    """Hemodynamics plus the DETECT scores of the simulated patient."""

    hemodynamics: Hemodynamics
    step1: ScoreResult
    step2: ScoreResult

    @property
    def is_high_risk(self) -> bool:
        return self.step2.is_referral

    def to_dict(self) -> dict[str, Any]:
        h = self.hemodynamics
        return {
            "hemodynamics": {
                "paps_mmhg": h.paps_mmhg,
                "rap_mmhg": h.rap_mmhg,
                "tr_velocity_ms": h.tr_velocity_ms,
                "ra_area_cm2": h.ra_area_cm2,
                "nt_probnp": h.nt_probnp,
            },
            "step1": self.step1.to_dict(),
            "step2": self.step2.to_dict(),
            "is_high_risk": self.is_high_risk,
        }


def derive_hemodynamics(paps_mmhg: float) -> Hemodynamics:
    """Derive RAP, TR velocity, RA area and NT-proBNP from PAPs.

    Raises:
        ValueError: If the pressure is negative.
    """
    if paps_mmhg < 0:
        raise ValueError(f"PAPs must be non-negative, got {paps_mmhg}")

    excess = max(0.0, paps_mmhg - NORMAL_PAPS_MMHG)

    rap = BASE_RAP_MMHG + excess * RAP_SLOPE
    gradient = max(0.0, paps_mmhg - rap)
    tr_velocity = math.sqrt(gradient / 4)

    ra_area = BASE_RA_AREA_CM2 + excess * RA_AREA_SLOPE

    nt_probnp = BASE_NT_PROBNP + math.exp(paps_mmhg * NT_PROBNP_EXPONENT)
    if nt_probnp > NT_PROBNP_CAP:
        nt_probnp = NT_PROBNP_CAP + paps_mmhg * NT_PROBNP_CAP_SLOPE

    return Hemodynamics(
        paps_mmhg=paps_mmhg,
        rap_mmhg=rap,
        tr_velocity_ms=tr_velocity,
        ra_area_cm2=ra_area,
        nt_probnp=nt_probnp,
    )


def simulate(paps_mmhg: float) -> SimulationResult:
    """Score the simulated patient at a given systolic PA pressure.

    Step 2 is always computed so the panel can show how the echo findings
    move the score, whatever Step 1 decides.
    """
    hemo = derive_hemodynamics(paps_mmhg)

    step1 = compute_step1(ClinicalInputStep1(nt_probnp=hemo.nt_probnp, **SIMULATED_PATIENT))
    step2 = compute_step2(
        Step1Carry.from_result(step1),
        ClinicalInputStep2(ra_area_cm2=hemo.ra_area_cm2, tr_velocity_ms=hemo.tr_velocity_ms),
    )

    logger.debug(
        f"Simulated PAPs={paps_mmhg} mmHg: TR={hemo.tr_velocity_ms:.2f} m/s "
        f"RA={hemo.ra_area_cm2:.1f} cm² step2 points={step2.point_total}"
    )

    return SimulationResult(hemodynamics=hemo, step1=step1, step2=step2)
