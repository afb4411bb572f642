#!/usr/bin/env python3
"""
DETECT PAH Screening - Interactive Demo CLI

Score a patient through both DETECT steps and print the per-covariate
breakdown, or drive the simulated patient from a systolic PA pressure.

Usage:
    python demo_cli.py                              # Interactive mode
    python demo_cli.py --sample                     # Use sample patient
    python demo_cli.py --paps 60                    # Simulated patient
    python demo_cli.py --fvc 90 --dlco 50 --aca --nt-probnp 200 --urate 5.0 \\
        --ra-area 18 --tr-velocity 2.8              # Explicit values
"""

import argparse
import sys

from detect_screening.services.detect_calculator import (
    PipelineResult,
    Recommendation,
    ScoreResult,
    describe_contributions,
    get_detect_calculator_service,
)
from detect_screening.services.hemodynamic_simulator import simulate
from detect_screening.services.input_normalization import (
    RawStep1Form,
    RawStep2Form,
    normalize_step1,
    normalize_step2,
)

# ============================================================================
# Sample Patient
# ============================================================================

# FVC/DLCO 1.6, telangiectasia and ACA positive, NT-proBNP 200 pg/mL,
# urate 5.0 mg/dL, no right axis deviation.
SAMPLE_STEP1 = RawStep1Form(
    fvc_percent=80.0,
    dlco_percent=50.0,
    telangiectasia=True,
    anticentromere_antibody=True,
    nt_probnp=200.0,
    urate=5.0,
    urate_unit="mg/dL",
    right_axis_deviation=False,
)

SAMPLE_STEP2 = RawStep2Form(ra_area_cm2=18.0, tr_velocity_ms=2.8)

RECOMMENDATION_TEXT = {
    Recommendation.SURVEILLANCE: "Below Step 1 threshold: continue routine surveillance",
    Recommendation.ECHO_REFERRAL: "Refer to echocardiography",
    Recommendation.RHC_REFERRAL: "Refer to right-heart catheterisation",
    Recommendation.NO_RHC_INDICATION: "Below Step 2 threshold: no catheterisation indicated",
}

# ============================================================================
# Display Functions
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    GRAY = '\033[90m'

def print_header(text: str, char: str = "="):
    """Print a formatted header."""
    width = 80
    print()
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text.center(width)}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")

def print_subheader(text: str):
    """Print a formatted subheader."""
    print()
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")

def print_item(label: str, value: str, indent: int = 2):
    """Print a labeled item."""
    spaces = " " * indent
    print(f"{spaces}{Colors.GRAY}{label}:{Colors.END} {value}")

def print_success(text: str):
    """Print success message."""
    print(f"  {Colors.GREEN}✓{Colors.END} {text}")

def print_warning(text: str):
    """Print warning message."""
    print(f"  {Colors.YELLOW}!{Colors.END} {text}")

def print_error(text: str):
    """Print error message."""
    print(f"  {Colors.RED}✗{Colors.END} {text}")

def display_step(title: str, result: ScoreResult):
    """Display one step: breakdown table, totals and both decision rules."""
    print_subheader(title)

    for row in describe_contributions(result):
        unit = f" ({row.unit})" if row.unit else ""
        print(
            f"  {row.label + unit:45s} {row.contribution:+8.3f}  "
            f"{Colors.CYAN}{row.points:4d} pts{Colors.END}"
        )

    print()
    print_item("Linear score", f"{result.linear_score:.4f}")
    print_item("Probability", f"{result.probability:.1%}")
    print_item("Total points", f"{Colors.BOLD}{result.point_total}{Colors.END} (threshold > {result.point_threshold})")

    if result.exceeds_threshold:
        print_warning("Points rule: above threshold")
    else:
        print_success("Points rule: at or below threshold")

    advisory = "above" if result.probability_exceeds_threshold else "at or below"
    print_item("Probability rule (advisory)", f"{advisory} {result.probability_threshold:.0%}")
    if not result.rules_agree:
        print_warning("Points and probability rules disagree")

def display_pipeline(pipeline: PipelineResult, tr_velocity_imputed: bool = False):
    """Display a full two-step run and the final recommendation."""
    display_step("STEP 1: NON-ECHOCARDIOGRAPHIC SCREENING", pipeline.step1)

    if pipeline.step2 is not None:
        title = "STEP 2: ECHOCARDIOGRAPHY"
        if pipeline.step2_forced:
            title += " (FORCED)"
        display_step(title, pipeline.step2)
        if tr_velocity_imputed:
            print_warning("TR velocity not detectable, imputed")

    print_subheader("RECOMMENDATION")
    text = RECOMMENDATION_TEXT[pipeline.recommendation]
    if pipeline.recommendation == Recommendation.RHC_REFERRAL:
        print_error(f"{Colors.BOLD}{text}{Colors.END}")
    elif pipeline.recommendation == Recommendation.ECHO_REFERRAL:
        print_warning(text)
    else:
        print_success(text)

# ============================================================================
# Runners
# ============================================================================

def run_forms(step1_form: RawStep1Form, step2_form: RawStep2Form | None, force_step2: bool = False):
    """Normalize raw values and run both steps."""
    step1_inputs = normalize_step1(step1_form)
    normalized = normalize_step2(step2_form) if step2_form else None

    pipeline = get_detect_calculator_service().run_pipeline(
        step1_inputs,
        normalized.inputs if normalized else None,
        force_step2=force_step2,
    )
    display_pipeline(pipeline, tr_velocity_imputed=bool(normalized and normalized.tr_velocity_imputed))

def run_simulation(paps: float):
    """Score the simulated patient at a given systolic PA pressure."""
    simulation = simulate(paps)
    h = simulation.hemodynamics

    print_subheader("SIMULATED HEMODYNAMICS")
    print_item("PAPs", f"{h.paps_mmhg:.0f} mmHg")
    print_item("RAP", f"{h.rap_mmhg:.1f} mmHg")
    print_item("TR velocity", f"{h.tr_velocity_ms:.2f} m/s")
    print_item("RA area", f"{h.ra_area_cm2:.1f} cm²")
    print_item("NT-proBNP", f"{h.nt_probnp:.0f} pg/mL")

    display_step("STEP 1", simulation.step1)
    display_step("STEP 2", simulation.step2)

    print_subheader("RESULT")
    if simulation.is_high_risk:
        print_error(f"{Colors.BOLD}High risk: refer to right-heart catheterisation{Colors.END}")
    else:
        print_success("Low risk")

def prompt_float(label: str) -> float | None:
    """Read an optional number; empty input means missing."""
    while True:
        raw = input(f"  {label}: ").strip()
        if not raw:
            return None
        try:
            return float(raw)
        except ValueError:
            print_error(f"Not a number: {raw}")

def prompt_bool(label: str) -> bool:
    """Read a yes/no answer; default no."""
    return input(f"  {label} [y/N]: ").strip().lower() in ("y", "yes")

def interactive_mode():
    """Prompt for every covariate, then score."""
    print_header("DETECT PAH SCREENING - INTERACTIVE")
    print(f"  {Colors.GRAY}Leave a value empty if it is not available.{Colors.END}")

    print_subheader("STEP 1 VALUES")
    step1_form = RawStep1Form(
        fvc_percent=prompt_float("FVC % predicted"),
        dlco_percent=prompt_float("DLCO % predicted"),
        telangiectasia=prompt_bool("Telangiectasias"),
        anticentromere_antibody=prompt_bool("Anticentromere antibody"),
        nt_probnp=prompt_float("NT-proBNP (pg/mL)"),
        urate=prompt_float("Urate"),
        urate_unit=input("  Urate unit [mg/dL]: ").strip() or "mg/dL",
        right_axis_deviation=prompt_bool("Right axis deviation"),
    )

    step2_form = None
    if prompt_bool("Echo values available"):
        print_subheader("STEP 2 VALUES")
        step2_form = RawStep2Form(
            ra_area_cm2=prompt_float("RA area (cm²)"),
            tr_velocity_ms=prompt_float("TR velocity (m/s), empty if not detectable"),
        )

    try:
        run_forms(step1_form, step2_form)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

def main():
    parser = argparse.ArgumentParser(
        description="DETECT PAH Screening - Interactive Demo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python demo_cli.py                  # Interactive mode
  python demo_cli.py --sample         # Score sample patient
  python demo_cli.py --paps 60        # Simulated patient at PAPs 60 mmHg
  python demo_cli.py --fvc 90 --dlco 50 --aca --nt-probnp 200 --urate 5
"""
    )
    parser.add_argument('--sample', '-s', action='store_true', help='Use sample patient')
    parser.add_argument('--paps', type=float, help='Score the simulated patient at this systolic PA pressure (mmHg)')
    parser.add_argument('--force-step2', action='store_true', help='Run Step 2 even if Step 1 is below threshold')

    step1 = parser.add_argument_group('Step 1')
    step1.add_argument('--fvc', type=float, help='FVC %% predicted')
    step1.add_argument('--dlco', type=float, help='DLCO %% predicted')
    step1.add_argument('--telangiectasia', action='store_true', help='Current/past telangiectasias')
    step1.add_argument('--aca', action='store_true', help='Anticentromere antibody positive')
    step1.add_argument('--nt-probnp', type=float, help='NT-proBNP (pg/mL)')
    step1.add_argument('--urate', type=float, help='Serum urate')
    step1.add_argument('--urate-unit', default='mg/dL', help='Urate unit: mg/dL or umol/L')
    step1.add_argument('--rad', action='store_true', help='Right axis deviation on ECG')

    step2 = parser.add_argument_group('Step 2')
    step2.add_argument('--ra-area', type=float, help='Right atrium area (cm²)')
    step2.add_argument('--tr-velocity', type=float, help='TR velocity (m/s)')

    args = parser.parse_args()

    explicit = any(
        value is not None
        for value in (args.fvc, args.dlco, args.nt_probnp, args.urate, args.ra_area, args.tr_velocity)
    ) or args.telangiectasia or args.aca or args.rad

    try:
        if args.paps is not None:
            print_header(f"SIMULATED PATIENT - PAPs {args.paps:.0f} mmHg")
            run_simulation(args.paps)
        elif args.sample:
            print_header("SCORING SAMPLE PATIENT")
            run_forms(SAMPLE_STEP1, SAMPLE_STEP2, force_step2=args.force_step2)
        elif explicit:
            step1_form = RawStep1Form(
                fvc_percent=args.fvc,
                dlco_percent=args.dlco,
                telangiectasia=args.telangiectasia,
                anticentromere_antibody=args.aca,
                nt_probnp=args.nt_probnp,
                urate=args.urate,
                urate_unit=args.urate_unit,
                right_axis_deviation=args.rad,
            )
            step2_form = None
            if args.ra_area is not None or args.tr_velocity is not None:
                step2_form = RawStep2Form(ra_area_cm2=args.ra_area, tr_velocity_ms=args.tr_velocity)

            print_header("SCORING PATIENT")
            run_forms(step1_form, step2_form, force_step2=args.force_step2)
        else:
            interactive_mode()
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

if __name__ == "__main__":
    main()
