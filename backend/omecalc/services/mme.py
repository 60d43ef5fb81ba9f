# backend/omecalc/services/mme.py
import logging
from typing import Optional, Union

from omecalc.schemas import Drug, NotComputable, Route
from omecalc.services.reference import (
    FENT_MCG_HR_UNIT,
    FENT_OME_MIDPOINT,
    MME_FACTORS,
    NONLINEAR_AGENTS,
    TARGET_FACTORS,
)

log = logging.getLogger("mme")


def mme_of(drug: Drug, route: Route, daily_dose: float) -> Union[float, NotComputable]:
    """
    Morphine-equivalent mg/day for a normalized daily dose.

    For transdermal fentanyl `daily_dose` is the patch rate in mcg/h and each
    25 mcg/h counts as 75 OME/day, the midpoint of the 60-90 band.
    Methadone and buprenorphine have no linear factor and are never approximated.
    """
    if drug in NONLINEAR_AGENTS:
        return NotComputable.NONLINEAR_AGENT
    if drug == Drug.FENTANYL_TDS:
        return (daily_dose / FENT_MCG_HR_UNIT) * FENT_OME_MIDPOINT
    factor = MME_FACTORS.get(drug)
    if factor is None:
        log.warning("No MME factor for %s %s", drug.value, route.value)
        return NotComputable.MISSING_FACTOR
    return daily_dose * factor


def get_target_factor(drug: Drug, route: Route) -> Optional[float]:
    if drug == Drug.FENTANYL_TDS or drug in NONLINEAR_AGENTS:
        return None
    by_route = TARGET_FACTORS.get(drug)
    if not by_route:
        return None
    return by_route.get(route, by_route.get(Route.ORAL))
