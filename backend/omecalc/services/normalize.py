# backend/omecalc/services/normalize.py
from typing import Optional

from omecalc import config
from omecalc.schemas import Drug, HomeMedicationEntry, NormalizedDose, ResultStatus
from omecalc.services.reference import COMBO_PRODUCTS
from omecalc.services.rounding import fmt_dose


def normalize_daily_dose(entry: HomeMedicationEntry,
                         default_apap_per_tab_mg: Optional[float] = None) -> NormalizedDose:
    """
    Collapse one home-medication entry into a daily opioid figure
    (mg/day, or the mcg/h rate itself for transdermal fentanyl) and, for
    combination tablets, a daily acetaminophen figure.

    Incomplete entries come back with status NEEDS_MORE_INPUT and zero doses.
    """
    if not entry.drug or not entry.route or not entry.dose_mg or entry.dose_mg <= 0:
        return NormalizedDose(status=ResultStatus.NEEDS_MORE_INPUT)

    if entry.drug == Drug.FENTANYL_TDS:
        return NormalizedDose(
            status=ResultStatus.OK,
            daily_opioid_mg=entry.dose_mg,
            dose_type="patch (mcg/h)",
        )

    assumed = False
    if entry.is_prn:
        if not entry.avg_prn_doses_per_day or entry.avg_prn_doses_per_day <= 0:
            return NormalizedDose(
                status=ResultStatus.NEEDS_MORE_INPUT,
                dose_type="PRN (avg doses/day needed for calculation)",
            )
        doses_per_day = entry.avg_prn_doses_per_day
        dose_type = f"PRN (avg {fmt_dose(doses_per_day)}/day)"
    elif entry.freq_hours and entry.freq_hours > 0:
        doses_per_day = 24 / entry.freq_hours
        dose_type = f"Scheduled q{fmt_dose(entry.freq_hours)}h"
    else:
        # no frequency: the amount entered is already the daily total
        doses_per_day = 1.0
        dose_type = "Scheduled (Daily dose assumed)"
        assumed = True

    if entry.is_er and not entry.is_prn:
        dose_type += " ER/LA"

    daily_apap = 0.0
    if entry.drug in COMBO_PRODUCTS:
        if default_apap_per_tab_mg is None:
            default_apap_per_tab_mg = config.DEFAULT_APAP_PER_TAB_MG
        apap_per_tab = entry.apap_per_tab_mg or default_apap_per_tab_mg
        daily_apap = apap_per_tab * doses_per_day

    return NormalizedDose(
        status=ResultStatus.OK,
        daily_opioid_mg=entry.dose_mg * doses_per_day,
        daily_apap_mg=daily_apap,
        doses_per_day=doses_per_day,
        dose_type=dose_type,
        daily_dose_assumed=assumed,
    )
