# backend/omecalc/services/prn.py
import logging
from typing import Dict, Optional

from omecalc.schemas import (
    Drug,
    PainRowSelection,
    PrnSuggestion,
    ResultStatus,
    Route,
    Severity,
)
from omecalc.services.mme import get_target_factor
from omecalc.services.reference import (
    APAP_CAUTION_MG_PER_DAY,
    COMBO_PRODUCTS,
    COMBO_TABLETS,
    NAIVE_STARTING_DOSES,
    NOT_PRN_AGENTS,
    OPIOID_LABELS,
    OPIOID_SHORT,
    PRN_FRACTIONS,
    PRN_MAX_FREQ_HOURS,
    PRN_MIN_FREQ_HOURS,
    ROUTE_LABELS,
)
from omecalc.services.regimen import apap_safety_warning
from omecalc.services.rounding import fmt_dose, round_half_up, round_per_dose

log = logging.getLogger("prn")


def clamp_prn_freq(freq_hours: float) -> int:
    return int(max(PRN_MIN_FREQ_HOURS, min(PRN_MAX_FREQ_HOURS, round_half_up(freq_hours))))


def prn_text(drug: Drug, route: Route, freq_hours: float, low: float, high: float) -> str:
    dose = fmt_dose(low)
    if high != low:
        dose += "–" + fmt_dose(high)
    return f"{OPIOID_SHORT[drug]} {dose} {ROUTE_LABELS[route].lower()} q{clamp_prn_freq(freq_hours)}h PRN"


def _pct(low_fraction: float, high_fraction: float) -> str:
    pct = f"{round_half_up(low_fraction * 100):.0f}"
    if high_fraction != low_fraction:
        pct += f"–{round_half_up(high_fraction * 100):.0f}"
    return pct + "%"


def fraction_note(low_fraction: float, high_fraction: float) -> str:
    return _pct(low_fraction, high_fraction) + " of target daily dose"


def _naive_suggestion(drug, route, freq_hours, severity) -> PrnSuggestion:
    tier = Severity.SEVERE if severity == Severity.BREAKTHROUGH else severity
    base = NAIVE_STARTING_DOSES.get((drug, route, tier))
    if not base:
        return PrnSuggestion(
            status=ResultStatus.MISSING_REFERENCE_DATA,
            text="Select common drug/route for naïve defaults",
        )
    lo, hi = base
    return PrnSuggestion(
        status=ResultStatus.OK,
        text=prn_text(drug, route, freq_hours, lo, hi),
        low=lo,
        high=hi,
        note=f"Opioid-naïve starting dose ({tier.value})",
    )


def _combo_suggestion(ome, drug, freq_hours, severity, apap_per_tab_mg) -> PrnSuggestion:
    factor = get_target_factor(drug, Route.ORAL) or 1
    low_fraction, _ = PRN_FRACTIONS[severity]
    doses_per_day = 24 / freq_hours
    target_daily = ome / factor
    needed = target_daily * low_fraction / doses_per_day
    trace = [
        f"Target daily opioid: {ome:.1f} OME / {fmt_dose(factor)} = {target_daily:.1f} mg/day",
        f"Needed per dose: {target_daily:.1f} × {fmt_dose(low_fraction * 100)}% / {fmt_dose(doses_per_day)} doses/day = {needed:.2f} mg",
    ]

    fitting = [t for t in COMBO_TABLETS[drug] if t.max_tabs_per_day >= doses_per_day]
    if not fitting:
        return PrnSuggestion(
            status=ResultStatus.UNSUPPORTED,
            text=f"{OPIOID_LABELS[drug]}: no tablet strength allows q{fmt_dose(freq_hours)}h dosing; choose a longer interval",
            trace=trace,
        )

    candidates = [t for t in fitting if t.opioid_mg >= needed]
    note = None
    if apap_per_tab_mg:
        preferred = [t for t in candidates if t.apap_mg == apap_per_tab_mg]
        if preferred:
            candidates = preferred
    if candidates:
        tablet = candidates[0]
    else:
        tablet = fitting[-1]
        note = "Needed dose exceeds the strongest tablet at this frequency; consider a plain opioid"
        log.debug("No %s tablet covers %.2f mg per dose", drug.value, needed)

    strength = f"{fmt_dose(tablet.opioid_mg)}/{fmt_dose(tablet.apap_mg)}"
    daily_apap = tablet.apap_mg * doses_per_day
    warning = apap_safety_warning(daily_apap)
    trace.append(
        f"Tablet {strength} mg × {fmt_dose(doses_per_day)}/day = {round_half_up(daily_apap):.0f} mg APAP/day"
    )
    if daily_apap >= APAP_CAUTION_MG_PER_DAY and note is None:
        note = warning
    return PrnSuggestion(
        status=ResultStatus.OK,
        text=f"{OPIOID_SHORT[drug]} {strength} 1 tab po q{clamp_prn_freq(freq_hours)}h PRN",
        low=tablet.opioid_mg,
        high=tablet.opioid_mg,
        note=note,
        tablet=strength,
        daily_apap_mg=daily_apap,
        apap_warning=warning,
        trace=trace,
    )


def prn_suggestion(ome: float, drug: Drug, route: Route, freq_hours: float, severity: Severity,
                   opioid_naive: bool = False,
                   apap_per_tab_mg: Optional[float] = None) -> PrnSuggestion:
    """
    Per-dose as-needed suggestion for one severity tier.

    Naive patients get fixed starting doses; everyone else gets a fraction of
    the home OME converted to the chosen drug, rounded to real product sizes.
    """
    if not freq_hours or freq_hours <= 0:
        return PrnSuggestion(status=ResultStatus.NEEDS_MORE_INPUT, text="Select drug, route, and frequency")

    if opioid_naive:
        return _naive_suggestion(drug, route, freq_hours, severity)

    if ome <= 0:
        return PrnSuggestion(
            status=ResultStatus.NEEDS_MORE_INPUT,
            text="Enter home regimen to calculate suggestions.",
        )
    if drug in NOT_PRN_AGENTS:
        return PrnSuggestion(
            status=ResultStatus.UNSUPPORTED,
            text=f"{OPIOID_LABELS[drug]} not suggested as PRN in this tool",
        )
    if drug in COMBO_PRODUCTS:
        return _combo_suggestion(ome, drug, freq_hours, severity, apap_per_tab_mg)

    # no factor: treat the target as morphine-equivalent mg
    factor = get_target_factor(drug, route) or 1
    target_daily = ome / factor
    low_fraction, high_fraction = PRN_FRACTIONS[severity]
    doses_per_day = 24 / freq_hours
    raw_low = target_daily * low_fraction / doses_per_day
    raw_high = target_daily * high_fraction / doses_per_day
    low = round_per_dose(drug, route, raw_low)
    high = round_per_dose(drug, route, raw_high)

    trace = [
        f"Target daily dose: {ome:.1f} OME / {fmt_dose(factor)} = {target_daily:.1f} mg/day",
        f"Per dose: {target_daily:.1f} × {_pct(low_fraction, high_fraction)} "
        f"/ {fmt_dose(doses_per_day)} doses/day = {raw_low:.2f}–{raw_high:.2f} mg",
        f"Practical rounding: {fmt_dose(low)}–{fmt_dose(high)} mg",
    ]
    return PrnSuggestion(
        status=ResultStatus.OK,
        text=prn_text(drug, route, freq_hours, low, high),
        low=low,
        high=high,
        note=fraction_note(low_fraction, high_fraction),
        trace=trace,
    )


def prn_rows(ome: float, selections: Dict[Severity, PainRowSelection],
             opioid_naive: bool = False,
             apap_per_tab_mg: Optional[float] = None) -> Dict[Severity, PrnSuggestion]:
    rows = {}
    for severity in Severity:
        sel = selections.get(severity)
        if not sel or not sel.drug or not sel.route or not sel.freq_hours:
            rows[severity] = PrnSuggestion(status=ResultStatus.NEEDS_MORE_INPUT, text="")
            continue
        rows[severity] = prn_suggestion(
            ome, sel.drug, sel.route, sel.freq_hours, severity,
            opioid_naive=opioid_naive, apap_per_tab_mg=apap_per_tab_mg,
        )
    return rows
