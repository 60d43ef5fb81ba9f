# backend/omecalc/schemas.py
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class Drug(str, Enum):
    MORPHINE = "morphine"
    OXYCODONE = "oxycodone"
    HYDROCODONE = "hydrocodone"
    HYDROMORPHONE = "hydromorphone"
    OXYMORPHONE = "oxymorphone"
    CODEINE = "codeine"
    TRAMADOL = "tramadol"
    TAPENTADOL = "tapentadol"
    FENTANYL_TDS = "fentanyl_tds"
    METHADONE = "methadone"
    BUPRENORPHINE = "buprenorphine"
    OXYCODONE_APAP = "oxycodone_apap"
    HYDROCODONE_APAP = "hydrocodone_apap"


class Route(str, Enum):
    ORAL = "oral"
    IV = "iv"
    TDS = "tds"


class Severity(str, Enum):
    MODERATE = "moderate"
    SEVERE = "severe"
    BREAKTHROUGH = "breakthrough"


class ResultStatus(str, Enum):
    OK = "ok"
    NEEDS_MORE_INPUT = "needs_more_input"
    UNSUPPORTED = "unsupported"
    MISSING_REFERENCE_DATA = "missing_reference_data"


class NotComputable(str, Enum):
    """Why a morphine equivalent could not be produced."""
    NONLINEAR_AGENT = "nonlinear_agent"
    MISSING_FACTOR = "missing_factor"


class HomeMedicationEntry(BaseModel):
    id: Optional[str] = None
    drug: Optional[Drug] = None
    route: Optional[Route] = None
    dose_mg: Optional[float] = None           # mg, or mcg/h for fentanyl_tds
    freq_hours: Optional[float] = None        # q?h for scheduled meds
    is_prn: bool = False
    avg_prn_doses_per_day: Optional[float] = None
    is_er: bool = False
    apap_per_tab_mg: Optional[float] = None   # combination products only


class ConversionOptions(BaseModel):
    cross_tolerance_pct: float = 0.0
    frail: bool = False

    @field_validator("cross_tolerance_pct")
    @classmethod
    def clamp_cross_tolerance(cls, v: float) -> float:
        return min(95.0, max(0.0, v))


class NormalizedDose(BaseModel):
    status: ResultStatus
    daily_opioid_mg: float = 0.0
    daily_apap_mg: float = 0.0
    doses_per_day: Optional[float] = None
    dose_type: str = ""
    daily_dose_assumed: bool = False


class AggregateResult(BaseModel):
    total_ome: float = 0.0
    total_apap: float = 0.0
    apap_warning: Optional[str] = None
    apap_line: str = ""
    detail_lines: List[str] = []
    notes: List[str] = []

    def summary_lines(self) -> List[str]:
        return [self.apap_line, *self.detail_lines, *self.notes]


class ConversionResult(BaseModel):
    status: ResultStatus
    range: Optional[Tuple[float, float]] = None
    fentanyl_patch_mcg_hr: Optional[Tuple[int, int]] = None
    adjusted_ome: Optional[float] = None
    notes: List[str] = []


class PrnSuggestion(BaseModel):
    status: ResultStatus
    text: str
    low: Optional[float] = None
    high: Optional[float] = None
    note: Optional[str] = None
    tablet: Optional[str] = None
    daily_apap_mg: Optional[float] = None
    apap_warning: Optional[str] = None
    trace: List[str] = []


class QuickConvertSource(BaseModel):
    drug: Drug
    route: Route
    dose_mg: float = Field(ge=0)
    freq_hours: Optional[float] = None


class QuickConvertTarget(BaseModel):
    drug: Drug
    route: Route
    freq_hours: Optional[float] = None


class QuickConvertResult(BaseModel):
    status: ResultStatus
    text: str
    low: Optional[float] = None
    high: Optional[float] = None
    steps: List[str] = []


class ScheduledRegimen(BaseModel):
    status: ResultStatus
    text: str
    per_dose: Optional[Tuple[float, float]] = None
    fentanyl_patch_mcg_hr: Optional[Tuple[int, int]] = None
    trace: List[str] = []


class PainRowSelection(BaseModel):
    drug: Optional[Drug] = None
    route: Optional[Route] = None
    freq_hours: Optional[float] = None


class MultimodalNeeds(BaseModel):
    general: bool = False
    neuropathic: bool = False
    spasm: bool = False
    localized: bool = False


# --- API payloads ---

class AggregateRequest(BaseModel):
    entries: List[HomeMedicationEntry] = []


class RotateRequest(BaseModel):
    ome: float
    target_drug: Drug
    target_route: Route
    options: ConversionOptions = ConversionOptions()


class PrnRequest(BaseModel):
    ome: float = 0.0
    selections: Dict[Severity, PainRowSelection] = {}
    opioid_naive: bool = False
    apap_per_tab_mg: Optional[float] = None


class QuickConvertRequest(BaseModel):
    source: QuickConvertSource
    target: QuickConvertTarget
    options: ConversionOptions = ConversionOptions()
    include_frequency: bool = True


class ScheduledSelection(BaseModel):
    target_drug: Drug
    target_route: Route
    sched_freq_hours: float = Field(gt=0)
    options: ConversionOptions = ConversionOptions()
    intensity_pct: float = 0.0


class ScheduledRequest(ScheduledSelection):
    ome: float
    opioid_naive: bool = False


class PlanRequest(BaseModel):
    entries: List[HomeMedicationEntry] = []
    opioid_naive: bool = False
    selections: Dict[Severity, PainRowSelection] = {}
    continue_er: Optional[bool] = None
    scheduled: Optional[ScheduledSelection] = None
    needs: MultimodalNeeds = MultimodalNeeds()
    apap_per_tab_mg: Optional[float] = None


class PlanResult(BaseModel):
    ome: float
    summary_lines: List[str] = []
    prn: Dict[Severity, PrnSuggestion] = {}
    scheduled: Optional[ScheduledRegimen] = None
    adjuncts: List[str] = []
    plan_text: str
