# backend/omecalc/services/quick_convert.py
from typing import Optional

from omecalc.schemas import (
    ConversionOptions,
    Drug,
    NotComputable,
    QuickConvertResult,
    QuickConvertSource,
    QuickConvertTarget,
    ResultStatus,
)
from omecalc.services.mme import mme_of
from omecalc.services.reference import NONLINEAR_AGENTS, OPIOID_LABELS, ROUTE_LABELS
from omecalc.services.rotation import rotate_to_target
from omecalc.services.rounding import fmt_dose, round_half_up, round_to_tenth


def _doses_per_day(freq_hours: Optional[float]) -> int:
    if not freq_hours:
        return 1
    return max(1, int(round_half_up(24 / max(1, freq_hours))))


def exact_quick_convert(source: QuickConvertSource, target: QuickConvertTarget,
                        options: Optional[ConversionOptions] = None,
                        include_frequency: bool = True) -> QuickConvertResult:
    """
    Convert one explicit dose of one opioid straight to another.

    With `include_frequency` the source is a per-dose amount given q`freq_hours`
    and the answer is per dose at the target frequency; without it both sides
    are daily totals. A fentanyl source is its patch rate in mcg/h.
    """
    if source.drug in NONLINEAR_AGENTS:
        return QuickConvertResult(
            status=ResultStatus.UNSUPPORTED,
            text=f"{OPIOID_LABELS[source.drug]} is not supported as a from-drug; seek specialist guidance.",
        )
    if source.dose_mg <= 0:
        return QuickConvertResult(
            status=ResultStatus.NEEDS_MORE_INPUT,
            text="Enter a from-dose greater than 0.",
        )

    steps = []
    if source.drug == Drug.FENTANYL_TDS:
        from_ome = mme_of(source.drug, source.route, source.dose_mg)
        steps.append(f"0) Input: {fmt_dose(source.dose_mg)} mcg/h patch → {from_ome:.1f} OME/day")
    else:
        doses_per_day = _doses_per_day(source.freq_hours) if include_frequency else 1
        daily_mg = source.dose_mg * doses_per_day
        from_ome = mme_of(source.drug, source.route, daily_mg)
        if isinstance(from_ome, NotComputable):
            return QuickConvertResult(
                status=ResultStatus.MISSING_REFERENCE_DATA,
                text="Missing factor for from-drug.",
            )
        factor = from_ome / daily_mg if daily_mg else 0
        steps.append(
            f"0) Input: {fmt_dose(source.dose_mg)} mg × {doses_per_day}/day × {fmt_dose(factor)} = {from_ome:.1f} OME/day"
        )

    conversion = rotate_to_target(from_ome, target.drug, target.route, options)
    steps.extend(conversion.notes)

    if conversion.fentanyl_patch_mcg_hr:
        lo, hi = conversion.fentanyl_patch_mcg_hr
        return QuickConvertResult(
            status=ResultStatus.OK,
            text=f"Fentanyl patch ~{lo}–{hi} mcg/h",
            low=lo,
            high=hi,
            steps=steps,
        )
    if not conversion.range:
        return QuickConvertResult(
            status=conversion.status,
            text=" ".join(conversion.notes[1:]) or "Conversion not available.",
            steps=steps,
        )

    lo, hi = conversion.range
    steps.append(f"4) Daily range of target drug: {lo:.2f}–{hi:.2f} mg/day")
    label = OPIOID_LABELS[target.drug]
    route = ROUTE_LABELS[target.route]

    if include_frequency and target.freq_hours:
        target_dpd = _doses_per_day(target.freq_hours)
        lo = round_to_tenth(lo / target_dpd)
        hi = round_to_tenth(hi / target_dpd)
        steps.append(f"5) Divide by doses/day ({target_dpd}) with exact 0.1 mg precision.")
        suffix = f" q{fmt_dose(target.freq_hours)}h"
    else:
        lo = round_to_tenth(lo)
        hi = round_to_tenth(hi)
        steps.append("5) No frequency: daily dose range reported as-is (exact, 0.1 mg).")
        suffix = "/day"

    dose = fmt_dose(lo) if hi == lo else f"{fmt_dose(lo)}–{fmt_dose(hi)}"
    return QuickConvertResult(
        status=ResultStatus.OK,
        text=f"{label} {dose} mg {route}{suffix}",
        low=lo,
        high=hi,
        steps=steps,
    )
