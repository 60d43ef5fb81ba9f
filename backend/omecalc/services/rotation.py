# backend/omecalc/services/rotation.py
import logging
from typing import Optional

from omecalc.schemas import (
    ConversionOptions,
    ConversionResult,
    Drug,
    ResultStatus,
    Route,
    ScheduledRegimen,
)
from omecalc.services.mme import get_target_factor
from omecalc.services.reference import (
    FENT_MCG_HR_UNIT,
    FENT_OME_HIGH,
    FENT_OME_LOW,
    FENT_PATCHES,
    FRAIL_FENTANYL_REDUCTION_FACTOR,
    FRAIL_HIGH_FACTOR,
    FRAIL_LOW_FACTOR,
    NONLINEAR_AGENTS,
    OPIOID_LABELS,
    ROUTE_LABELS,
    STANDARD_HIGH_FACTOR,
    STANDARD_LOW_FACTOR,
)
from omecalc.services.rounding import (
    fmt_dose,
    round_half_up,
    round_per_dose,
    round_to_patch,
    round_to_tenth,
)

log = logging.getLogger("rotation")


def rotate_to_target(ome: float, target_drug: Drug, target_route: Route,
                     options: Optional[ConversionOptions] = None) -> ConversionResult:
    """
    Convert a total OME/day into a daily range of the target opioid.

    Every arithmetic step is appended to `notes` in the order performed;
    the UI shows them verbatim as the calculation log.
    """
    options = options or ConversionOptions()
    ct = options.cross_tolerance_pct
    notes = []

    adjusted = ome * (1 - ct / 100)
    notes.append(
        f"1) Cross-tolerance reduction: {ome:.1f} OME × (1 - {fmt_dose(ct)}%) = {adjusted:.1f} OME/day"
    )

    if target_drug in NONLINEAR_AGENTS:
        notes.append(
            f"Special agent: {OPIOID_LABELS[target_drug]} conversion is complex and requires "
            "specialist guidance (e.g., pain/palliative consult)."
        )
        return ConversionResult(status=ResultStatus.UNSUPPORTED, adjusted_ome=adjusted, notes=notes)

    if target_drug == Drug.FENTANYL_TDS:
        standard_low = adjusted / FENT_OME_HIGH * FENT_MCG_HR_UNIT
        standard_high = adjusted / FENT_OME_LOW * FENT_MCG_HR_UNIT
        if options.frail:
            # lower bound stays put for frail patients
            standard_high *= FRAIL_FENTANYL_REDUCTION_FACTOR
            notes.append("Frail/Elderly: High end of patch range reduced by 25%.")
        lo = round_to_patch(standard_low)
        hi = round_to_patch(standard_high)
        notes.append(
            f"2) Fentanyl conversion: {standard_low:.1f}–{standard_high:.1f} mcg/h → ~{lo}–{hi} mcg/h patch. "
            f"(Based on {FENT_OME_LOW}–{FENT_OME_HIGH} OME/{FENT_MCG_HR_UNIT} mcg/h, then rounded to standard "
            f"patches: {', '.join(str(p) for p in FENT_PATCHES)})."
        )
        return ConversionResult(
            status=ResultStatus.OK,
            fentanyl_patch_mcg_hr=(lo, hi),
            adjusted_ome=adjusted,
            notes=notes,
        )

    factor = get_target_factor(target_drug, target_route)
    if not factor:
        log.warning("Missing target factor for %s %s", target_drug.value, target_route.value)
        notes.append(
            f"Error: Missing conversion factor for {OPIOID_LABELS[target_drug]} {ROUTE_LABELS[target_route]}."
        )
        return ConversionResult(status=ResultStatus.MISSING_REFERENCE_DATA, adjusted_ome=adjusted, notes=notes)

    target_daily = adjusted / factor
    notes.append(
        f"2) Target conversion factor is {fmt_dose(factor)}. Calculated daily dose: "
        f"{adjusted:.1f} OME / {fmt_dose(factor)} = {target_daily:.1f} mg/day"
    )

    low_factor, high_factor = STANDARD_LOW_FACTOR, STANDARD_HIGH_FACTOR
    if options.frail:
        low_factor, high_factor = FRAIL_LOW_FACTOR, FRAIL_HIGH_FACTOR
        notes.append("Frail/Elderly: Range uses a more conservative 75% to 90% of calculated dose.")

    low = max(0.0, round_to_tenth(target_daily * low_factor))
    high = max(0.0, round_to_tenth(target_daily * high_factor))
    notes.append(f"3) Suggested daily dose range: {low:.1f}–{high:.1f} mg/day.")

    return ConversionResult(status=ResultStatus.OK, range=(low, high), adjusted_ome=adjusted, notes=notes)


def build_scheduled_regimen(ome: float, target_drug: Drug, target_route: Route,
                            sched_freq_hours: float,
                            options: Optional[ConversionOptions] = None,
                            intensity_pct: float = 0.0,
                            opioid_naive: bool = False) -> ScheduledRegimen:
    """Turn the home OME into a scheduled per-dose order of the target opioid."""
    if opioid_naive:
        return ScheduledRegimen(
            status=ResultStatus.UNSUPPORTED,
            text="Scheduled regimen not calculated for opioid-naïve patient.",
        )
    if ome <= 0:
        return ScheduledRegimen(
            status=ResultStatus.NEEDS_MORE_INPUT,
            text="Enter home regimen (OME > 0) to calculate a scheduled dose.",
        )

    doses_per_day = max(1, int(round_half_up(24 / max(1, sched_freq_hours))))
    from_ome = ome * (1 + intensity_pct / 100)
    trace = [
        f"Total home OME ≈ {round_half_up(ome):.0f} mg/day",
        f"Intensity adjust: {ome:.1f} × (1 + {fmt_dose(intensity_pct)}/100) = {from_ome:.1f} OME/day",
    ]

    conversion = rotate_to_target(from_ome, target_drug, target_route, options)
    trace.extend(conversion.notes)

    if conversion.fentanyl_patch_mcg_hr:
        lo, hi = conversion.fentanyl_patch_mcg_hr
        return ScheduledRegimen(
            status=ResultStatus.OK,
            text=f"Fentanyl patch ~{lo}–{hi} mcg/h",
            fentanyl_patch_mcg_hr=(lo, hi),
            trace=trace,
        )
    if not conversion.range:
        return ScheduledRegimen(
            status=conversion.status,
            text=" ".join(conversion.notes[1:]) or "Conversion not available or requires specialist guidance.",
            trace=trace,
        )

    lo, hi = conversion.range
    per_dose = (
        round_per_dose(target_drug, target_route, max(0.0, lo / doses_per_day)),
        round_per_dose(target_drug, target_route, max(0.0, hi / doses_per_day)),
    )
    freq = fmt_dose(sched_freq_hours)
    dose = fmt_dose(per_dose[0])
    if per_dose[1] != per_dose[0]:
        dose += "–" + fmt_dose(per_dose[1])
    trace.append(
        f"4) Doses/day = {doses_per_day}. Adjusted per-dose: {fmt_dose(per_dose[0])}–{fmt_dose(per_dose[1])} mg q{freq}h"
    )
    return ScheduledRegimen(
        status=ResultStatus.OK,
        text=(
            f"{OPIOID_LABELS[target_drug]} {dose} {ROUTE_LABELS[target_route]} q{freq}h"
        ),
        per_dose=per_dose,
        trace=trace,
    )
