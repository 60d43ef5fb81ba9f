# backend/omecalc/services/regimen.py
import logging
from typing import List, Optional

from omecalc.schemas import (
    AggregateResult,
    HomeMedicationEntry,
    NotComputable,
    ResultStatus,
)
from omecalc.services.mme import mme_of
from omecalc.services.normalize import normalize_daily_dose
from omecalc.services.reference import (
    APAP_CAUTION_MG_PER_DAY,
    APAP_MAX_MG_PER_DAY,
    OPIOID_SHORT,
    ROUTE_LABELS,
)
from omecalc.services.rounding import fmt_dose, round_half_up

log = logging.getLogger("regimen")

NOT_COMPUTABLE_REASONS = {
    NotComputable.NONLINEAR_AGENT: "nonlinear agent, specialist guidance required",
    NotComputable.MISSING_FACTOR: "missing conversion factor",
}


def apap_safety_warning(apap_mg_per_day: float) -> Optional[str]:
    if apap_mg_per_day >= APAP_MAX_MG_PER_DAY:
        return f"⚠️ APAP max exceeded: {round_half_up(apap_mg_per_day):.0f} mg/day (max {APAP_MAX_MG_PER_DAY} mg/day)"
    if apap_mg_per_day >= APAP_CAUTION_MG_PER_DAY:
        return f"⚠️ APAP caution: {round_half_up(apap_mg_per_day):.0f} mg/day (caution at {APAP_CAUTION_MG_PER_DAY} mg/day)"
    return None


def apap_line(total_apap: float, warning: Optional[str]) -> str:
    line = f"APAP/day: {round_half_up(total_apap):.0f} mg"
    if warning:
        line += " — " + warning.replace("⚠️ ", "", 1)
    return line


def aggregate(entries: List[HomeMedicationEntry],
              default_apap_per_tab_mg: Optional[float] = None) -> AggregateResult:
    """
    Sum the home regimen into OME/day and APAP/day.

    Rows missing drug, route or dose are in-progress form rows and are skipped.
    Detail lines keep input order.
    """
    total_ome = 0.0
    total_apap = 0.0
    details: List[str] = []
    notes: List[str] = []

    for e in entries:
        if not e.drug or not e.route or not e.dose_mg:
            continue
        norm = normalize_daily_dose(e, default_apap_per_tab_mg)
        short = OPIOID_SHORT[e.drug]
        route_label = ROUTE_LABELS[e.route]

        if norm.status != ResultStatus.OK:
            if e.is_prn:
                notes.append(f"! {short} {fmt_dose(e.dose_mg)} {route_label} PRN: avg doses/day needed for calculation")
            continue

        total_apap += norm.daily_apap_mg
        daily_ome = mme_of(e.drug, e.route, norm.daily_opioid_mg)
        if isinstance(daily_ome, NotComputable):
            log.debug("OME not computable for %s: %s", e.drug.value, daily_ome.value)
            notes.append(
                f"! {short} {route_label} {norm.dose_type}: OME N/A ({NOT_COMPUTABLE_REASONS[daily_ome]})"
            )
            continue

        total_ome += daily_ome
        details.append(
            f"{short} {fmt_dose(e.dose_mg)} {route_label} {norm.dose_type}: ~{round_half_up(daily_ome):.0f} OME/day"
        )

    warning = apap_safety_warning(total_apap)
    return AggregateResult(
        total_ome=total_ome,
        total_apap=total_apap,
        apap_warning=warning,
        apap_line=apap_line(total_apap, warning),
        detail_lines=details,
        notes=notes,
    )
