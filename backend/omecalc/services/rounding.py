# backend/omecalc/services/rounding.py
import math
from decimal import Decimal, ROUND_HALF_UP, localcontext

from omecalc.schemas import Drug, Route
from omecalc.services.reference import FENT_PATCHES

# (drug, route) -> (increment, minimum); doses ceil to the increment
PRACTICAL_INCREMENTS = {
    (Drug.HYDROMORPHONE, Route.IV): (0.2, 0.2),
    (Drug.HYDROMORPHONE, Route.ORAL): (2, 2),
    (Drug.OXYCODONE, Route.ORAL): (5, 5),
    (Drug.MORPHINE, Route.IV): (1, 1),
}


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a pharmacist would write it: halves go up, not to even."""
    if not math.isfinite(value):
        return 0.0
    q = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # quantize needs every integer digit plus the kept decimals
        ctx.prec = max(28, len(str(int(abs(value)))) + places + 2)
        return float(Decimal(value).quantize(q, rounding=ROUND_HALF_UP))


def round_to_tenth(mg: float) -> float:
    return round_half_up(mg, 1)


def fmt_dose(n: float) -> str:
    if not math.isfinite(n):
        return "0"
    rounded = round(n, 2)
    if abs(rounded - round(rounded)) < 1e-9:
        return str(int(round(rounded)))
    return str(rounded)


def round_per_dose(drug: Drug, route: Route, mg: float) -> float:
    if not math.isfinite(mg):
        return 0.0
    increment = PRACTICAL_INCREMENTS.get((drug, route))
    if increment is None:
        # decimal halves of the entered value go up: 0.35 -> 0.4
        return round(math.floor(mg * 10 + 0.5) / 10, 2)
    step, minimum = increment
    # guard against 0.6 / 0.2 == 3.0000000000000004
    steps = math.ceil(round(mg / step, 9))
    return round(max(minimum, steps * step), 2)


def round_to_patch(mcg_per_hr: float) -> int:
    best = FENT_PATCHES[0]
    best_diff = abs(mcg_per_hr - best)
    for patch in FENT_PATCHES:
        diff = abs(mcg_per_hr - patch)
        if diff < best_diff:
            best = patch
            best_diff = diff
    return best
