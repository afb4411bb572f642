"""DETECT request/response schemas."""

import math

from pydantic import BaseModel, Field, field_serializer, field_validator

from detect_screening.services.detect_calculator import Recommendation
from detect_screening.services.detect_model import DecisionRule, DetectStep
from detect_screening.services.input_normalization import (
    RawStep1Form,
    RawStep2Form,
    UrateUnit,
    parse_urate_unit,
)


def finite_or_none(value: float) -> float | None:
    """JSON has no inf or NaN; saturated scores are sent as null."""
    return value if math.isfinite(value) else None


# ==============================================================================
# Requests
# ==============================================================================


class Step1Request(BaseModel):
    """Raw Step-1 form values."""

    fvc_percent: float | None = Field(None, description="FVC % predicted")
    dlco_percent: float | None = Field(None, description="DLCO % predicted")
    telangiectasia: bool = Field(default=False, description="Current/past telangiectasias")
    anticentromere_antibody: bool = Field(default=False, description="ACA seropositive")
    nt_probnp: float | None = Field(None, description="Serum NT-proBNP (pg/mL)")
    urate: float | None = Field(None, description="Serum urate")
    urate_unit: UrateUnit = Field(default=UrateUnit.MG_DL, description="Urate unit (mg/dL or µmol/L)")
    right_axis_deviation: bool = Field(default=False, description="Right axis deviation on ECG")

    model_config = {"allow_inf_nan": False}

    @field_validator("urate_unit", mode="before")
    @classmethod
    def resolve_unit_alias(cls, v: object) -> UrateUnit:
        """Accept unit aliases such as "umol" or "mg/dl"."""
        if isinstance(v, (str, UrateUnit)):
            return parse_urate_unit(v)
        raise ValueError("urate_unit must be a string")

    def to_form(self) -> RawStep1Form:
        return RawStep1Form(
            fvc_percent=self.fvc_percent,
            dlco_percent=self.dlco_percent,
            telangiectasia=self.telangiectasia,
            anticentromere_antibody=self.anticentromere_antibody,
            nt_probnp=self.nt_probnp,
            urate=self.urate,
            urate_unit=self.urate_unit,
            right_axis_deviation=self.right_axis_deviation,
        )


class Step1CarrySchema(BaseModel):
    """Step-1 values carried into Step 2. Copy from the Step-1 response."""

    linear_score: float = Field(..., description="Step-1 linear predictor")
    point_total: int = Field(..., description="Step-1 nomogram point total")

    model_config = {"from_attributes": True}

    @field_serializer("linear_score", when_used="json")
    def serialize_linear_score(self, value: float) -> float | None:
        return finite_or_none(value)


class Step1CarryInput(Step1CarrySchema):
    """Carry as submitted to Step 2. Both values must come from one Step-1 response."""

    model_config = {"from_attributes": True, "allow_inf_nan": False}


class EchoMeasurements(BaseModel):
    """Step-2 echocardiographic values."""

    ra_area_cm2: float | None = Field(None, description="Right atrium area (cm²)")
    tr_velocity_ms: float | None = Field(
        None, description="TR jet peak velocity (m/s); null if not detectable"
    )

    model_config = {"allow_inf_nan": False}

    def to_form(self) -> RawStep2Form:
        return RawStep2Form(ra_area_cm2=self.ra_area_cm2, tr_velocity_ms=self.tr_velocity_ms)


class Step2Request(EchoMeasurements):
    """Step-2 request: Step-1 carry plus echo values."""

    step1: Step1CarryInput = Field(..., description="Carry from the Step-1 response")


class PipelineRequest(BaseModel):
    """Run both steps in one call."""

    step1: Step1Request
    echo: EchoMeasurements | None = Field(None, description="Echo values, if already available")
    force_step2: bool = Field(default=False, description="Run Step 2 even if Step 1 is low risk")


class SimulationRequest(BaseModel):
    """Simulated patient driven by systolic PA pressure."""

    paps_mmhg: float = Field(..., ge=0.0, le=200.0, description="Systolic PA pressure (mmHg)")


# ==============================================================================
# Responses
# ==============================================================================


class ScoreResultSchema(BaseModel):
    """One DETECT step result."""

    step: DetectStep
    linear_score: float = Field(..., description="Log-odds linear predictor")
    probability: float = Field(..., description="Logistic transform of the linear score")
    point_total: int = Field(..., description="Sum of per-covariate points")
    points: dict[str, int] = Field(..., description="Points per covariate")
    contributions: dict[str, float] = Field(..., description="Log-odds contribution per covariate")
    point_threshold: int
    probability_threshold: float
    exceeds_threshold: bool = Field(..., description="Canonical decision (points rule)")
    probability_exceeds_threshold: bool = Field(..., description="Advisory probability rule")
    rules_agree: bool
    decision_rule: DecisionRule

    model_config = {"from_attributes": True}

    @field_serializer("linear_score", "probability", when_used="json")
    def serialize_score(self, value: float) -> float | None:
        return finite_or_none(value)

    @field_serializer("contributions", when_used="json")
    def serialize_contributions(self, value: dict[str, float]) -> dict[str, float | None]:
        return {key: finite_or_none(v) for key, v in value.items()}


class ContributionSchema(BaseModel):
    """Didactic per-covariate row."""

    key: str
    label: str
    unit: str | None = None
    contribution: float
    points: int

    model_config = {"from_attributes": True}

    @field_serializer("contribution", when_used="json")
    def serialize_contribution(self, value: float) -> float | None:
        return finite_or_none(value)


class Step1Response(BaseModel):
    """Step-1 result with the carry to pass into Step 2."""

    result: ScoreResultSchema
    breakdown: list[ContributionSchema]
    carry: Step1CarrySchema
    is_high_risk: bool = Field(..., description="Refer to echocardiography")


class Step2Response(BaseModel):
    """Step-2 result."""

    result: ScoreResultSchema
    breakdown: list[ContributionSchema]
    is_referral: bool = Field(..., description="Refer to right-heart catheterisation")
    tr_velocity_imputed: bool = False


class PipelineResponse(BaseModel):
    """Both steps and the final recommendation."""

    step1: Step1Response
    step2: Step2Response | None = None
    step2_forced: bool
    recommendation: Recommendation


class RcsResponse(BaseModel):
    """Spline basis value."""

    x: float
    knots: list[float]
    value: float


class HemodynamicsSchema(BaseModel):
    """Derived simulated hemodynamics."""

    paps_mmhg: float
    rap_mmhg: float
    tr_velocity_ms: float
    ra_area_cm2: float
    nt_probnp: float

    model_config = {"from_attributes": True}


class SimulationResponse(BaseModel):
    """Simulated patient scores."""

    hemodynamics: HemodynamicsSchema
    step1: ScoreResultSchema
    step2: ScoreResultSchema
    is_high_risk: bool
