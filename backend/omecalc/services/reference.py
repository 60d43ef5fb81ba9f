# backend/omecalc/services/reference.py
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from omecalc.schemas import Drug, Route, Severity

OPIOID_LABELS: Dict[Drug, str] = {
    Drug.MORPHINE: "Morphine",
    Drug.OXYCODONE: "Oxycodone",
    Drug.HYDROCODONE: "Hydrocodone",
    Drug.HYDROMORPHONE: "Hydromorphone",
    Drug.OXYMORPHONE: "Oxymorphone",
    Drug.CODEINE: "Codeine",
    Drug.TRAMADOL: "Tramadol",
    Drug.TAPENTADOL: "Tapentadol",
    Drug.FENTANYL_TDS: "Fentanyl (transdermal)",
    Drug.METHADONE: "Methadone",
    Drug.BUPRENORPHINE: "Buprenorphine",
    Drug.OXYCODONE_APAP: "Oxycodone/APAP (Percocet)",
    Drug.HYDROCODONE_APAP: "Hydrocodone/APAP (Norco)",
}

OPIOID_SHORT: Dict[Drug, str] = {
    Drug.MORPHINE: "MS",
    Drug.OXYCODONE: "Oxy",
    Drug.HYDROCODONE: "Hydro",
    Drug.HYDROMORPHONE: "HM",
    Drug.OXYMORPHONE: "OxyM",
    Drug.CODEINE: "Codeine",
    Drug.TRAMADOL: "Tram",
    Drug.TAPENTADOL: "Tap",
    Drug.FENTANYL_TDS: "Fentanyl",
    Drug.METHADONE: "Methadone",
    Drug.BUPRENORPHINE: "Bupe",
    Drug.OXYCODONE_APAP: "Oxy/APAP",
    Drug.HYDROCODONE_APAP: "Hydro/APAP",
}

ROUTE_LABELS: Dict[Route, str] = {
    Route.ORAL: "PO",
    Route.IV: "IV/SC",
    Route.TDS: "Transdermal",
}

ALLOWED_ROUTES: Dict[Drug, List[Route]] = {
    Drug.MORPHINE: [Route.ORAL, Route.IV],
    Drug.OXYCODONE: [Route.ORAL],
    Drug.HYDROCODONE: [Route.ORAL],
    Drug.HYDROMORPHONE: [Route.ORAL, Route.IV],
    Drug.OXYMORPHONE: [Route.ORAL],
    Drug.CODEINE: [Route.ORAL],
    Drug.TRAMADOL: [Route.ORAL],
    Drug.TAPENTADOL: [Route.ORAL],
    Drug.FENTANYL_TDS: [Route.TDS],
    Drug.METHADONE: [Route.ORAL],
    Drug.BUPRENORPHINE: [Route.ORAL],
    Drug.OXYCODONE_APAP: [Route.ORAL],
    Drug.HYDROCODONE_APAP: [Route.ORAL],
}

# Daily mg of drug -> morphine mg/day. None: nonlinear or patch-mapped.
MME_FACTORS: Dict[Drug, Optional[float]] = {
    Drug.MORPHINE: 1,
    Drug.OXYCODONE: 1.5,
    Drug.HYDROCODONE: 1,
    Drug.HYDROMORPHONE: 4,
    Drug.OXYMORPHONE: 3,
    Drug.CODEINE: 0.15,
    Drug.TRAMADOL: 0.1,
    Drug.TAPENTADOL: 0.4,
    Drug.FENTANYL_TDS: None,
    Drug.METHADONE: None,
    Drug.BUPRENORPHINE: None,
    Drug.OXYCODONE_APAP: 1.5,
    Drug.HYDROCODONE_APAP: 1,
}

TARGET_FACTORS: Dict[Drug, Dict[Route, float]] = {
    Drug.MORPHINE: {Route.ORAL: 1, Route.IV: 3},
    Drug.OXYCODONE: {Route.ORAL: 1.5},
    Drug.HYDROCODONE: {Route.ORAL: 1},
    Drug.HYDROMORPHONE: {Route.ORAL: 4, Route.IV: 20},
    Drug.OXYMORPHONE: {Route.ORAL: 3},
    Drug.CODEINE: {Route.ORAL: 0.15},
    Drug.TRAMADOL: {Route.ORAL: 0.1},
    Drug.TAPENTADOL: {Route.ORAL: 0.4},
    Drug.OXYCODONE_APAP: {Route.ORAL: 1.5},
    Drug.HYDROCODONE_APAP: {Route.ORAL: 1},
    # fentanyl, methadone and buprenorphine are handled separately
}

NONLINEAR_AGENTS = (Drug.METHADONE, Drug.BUPRENORPHINE)
NOT_PRN_AGENTS = (Drug.FENTANYL_TDS, Drug.METHADONE, Drug.BUPRENORPHINE)
COMBO_PRODUCTS = (Drug.OXYCODONE_APAP, Drug.HYDROCODONE_APAP)

# --- Transdermal fentanyl ---
FENT_PATCHES = [12, 25, 37, 50, 62, 75, 100]
FENT_MCG_HR_UNIT = 25
FENT_OME_MIDPOINT = 75      # 60-90 OME/day per 25 mcg/h
FENT_OME_LOW = 60
FENT_OME_HIGH = 90

# --- Rotation range multipliers ---
STANDARD_LOW_FACTOR = 0.9
STANDARD_HIGH_FACTOR = 1.1
FRAIL_LOW_FACTOR = 0.75
FRAIL_HIGH_FACTOR = 0.9
FRAIL_FENTANYL_REDUCTION_FACTOR = 0.75

# --- PRN ---
PRN_FRACTIONS: Dict[Severity, tuple] = {
    Severity.MODERATE: (0.1, 0.1),
    Severity.SEVERE: (0.15, 0.15),
    Severity.BREAKTHROUGH: (0.1, 0.2),
}
PRN_MIN_FREQ_HOURS = 2
PRN_MAX_FREQ_HOURS = 12

# Opioid-naive starting doses, keyed by (drug, route, moderate|severe)
NAIVE_STARTING_DOSES: Dict[tuple, tuple] = {
    (Drug.OXYCODONE, Route.ORAL, Severity.MODERATE): (5, 10),
    (Drug.OXYCODONE, Route.ORAL, Severity.SEVERE): (10, 15),
    (Drug.HYDROMORPHONE, Route.IV, Severity.MODERATE): (0.2, 0.4),
    (Drug.HYDROMORPHONE, Route.IV, Severity.SEVERE): (0.4, 0.8),
    (Drug.HYDROMORPHONE, Route.ORAL, Severity.MODERATE): (2, 4),
    (Drug.HYDROMORPHONE, Route.ORAL, Severity.SEVERE): (4, 6),
    (Drug.MORPHINE, Route.ORAL, Severity.MODERATE): (5, 10),
    (Drug.MORPHINE, Route.ORAL, Severity.SEVERE): (10, 15),
    (Drug.MORPHINE, Route.IV, Severity.MODERATE): (1, 2),
    (Drug.MORPHINE, Route.IV, Severity.SEVERE): (2, 4),
}

# --- Acetaminophen ---
APAP_CAUTION_MG_PER_DAY = 3000
APAP_MAX_MG_PER_DAY = 4000


@dataclass(frozen=True)
class ComboTablet:
    opioid_mg: float
    apap_mg: float
    max_tabs_per_day: int


# Ascending opioid strength, 325 mg APAP first within a strength; one tablet per dose.
COMBO_TABLETS: Dict[Drug, List[ComboTablet]] = {
    Drug.OXYCODONE_APAP: [
        ComboTablet(2.5, 325, 12),
        ComboTablet(5, 325, 12),
        ComboTablet(7.5, 325, 8),
        ComboTablet(10, 325, 6),
    ],
    Drug.HYDROCODONE_APAP: [
        ComboTablet(5, 325, 8),
        ComboTablet(5, 300, 8),
        ComboTablet(7.5, 325, 6),
        ComboTablet(7.5, 300, 6),
        ComboTablet(10, 325, 6),
        ComboTablet(10, 300, 6),
    ],
}

# --- Multimodal adjuncts ---
MULTIMODAL_ADJUNCTS = {
    "general": "Add scheduled Tylenol 650–1000 mg PO q6h or NSAIDs (if no contraindications)",
    "neuropathic": "Add Gabapentin 100–300 mg PO q8–12h (renally adjust; caution oversedation)",
    "spasm": "Consider Methocarbamol 500 mg PO q8h for PRN spasm (sedation caution)",
    "localized": "Add Lidocaine 5% patch to affected areas up to 12 h/day (max 3; avoid broken skin)",
}


def is_allowed_route(drug: Drug, route: Route) -> bool:
    return route in ALLOWED_ROUTES.get(drug, [])


def reference_tables() -> dict:
    """Read-only snapshot of the tables, keyed by plain strings for JSON."""
    return {
        "opioid_labels": {d.value: v for d, v in OPIOID_LABELS.items()},
        "opioid_short": {d.value: v for d, v in OPIOID_SHORT.items()},
        "route_labels": {r.value: v for r, v in ROUTE_LABELS.items()},
        "allowed_routes": {d.value: [r.value for r in v] for d, v in ALLOWED_ROUTES.items()},
        "mme_factors": {d.value: v for d, v in MME_FACTORS.items()},
        "target_factors": {d.value: {r.value: f for r, f in v.items()} for d, v in TARGET_FACTORS.items()},
        "fentanyl_patches": list(FENT_PATCHES),
        "prn_fractions": {s.value: list(v) for s, v in PRN_FRACTIONS.items()},
        "apap_thresholds": {"caution": APAP_CAUTION_MG_PER_DAY, "max": APAP_MAX_MG_PER_DAY},
        "combo_tablets": {
            d.value: [asdict(t) for t in tabs] for d, tabs in COMBO_TABLETS.items()
        },
    }
