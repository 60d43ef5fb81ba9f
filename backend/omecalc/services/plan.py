# backend/omecalc/services/plan.py
from typing import Dict, List, Optional

from omecalc.schemas import (
    HomeMedicationEntry,
    MultimodalNeeds,
    PlanRequest,
    PlanResult,
    PrnSuggestion,
    ResultStatus,
    ScheduledRegimen,
    Severity,
)
from omecalc.services.prn import prn_rows
from omecalc.services.reference import MULTIMODAL_ADJUNCTS, OPIOID_LABELS, ROUTE_LABELS
from omecalc.services.regimen import aggregate
from omecalc.services.rotation import build_scheduled_regimen
from omecalc.services.rounding import fmt_dose


def multimodal_adjuncts(needs: MultimodalNeeds) -> List[str]:
    return [MULTIMODAL_ADJUNCTS[k] for k in ("general", "neuropathic", "spasm", "localized") if getattr(needs, k)]


def long_acting_lines(entries: List[HomeMedicationEntry]) -> List[str]:
    lines = []
    for e in entries:
        if not e.is_er or e.is_prn or not e.drug or not e.dose_mg:
            continue
        line = f"{OPIOID_LABELS[e.drug]} {fmt_dose(e.dose_mg)}"
        if e.route:
            line += f" {ROUTE_LABELS[e.route]}"
        if e.freq_hours:
            line += f" q{fmt_dose(e.freq_hours)}h"
        lines.append(line)
    return lines


def build_plan_text(scheduled: Optional[ScheduledRegimen],
                    er_lines: List[str],
                    continue_er: Optional[bool],
                    prn: Dict[Severity, PrnSuggestion],
                    adjuncts: List[str]) -> str:
    """Assessment-and-plan block ready to paste into a note."""
    parts = []
    if scheduled and scheduled.status == ResultStatus.OK:
        parts.append(scheduled.text)
    if continue_er is True and er_lines:
        parts.extend(er_lines)
    elif continue_er is False and not parts:
        parts.append("Scheduled Opioid: Held (home ER/LA held, no new basal ordered)")
    scheduled_line = " + ".join(parts) if parts else "Scheduled Opioid: None / Not Calculated"

    prn_lines = []
    for severity in Severity:
        row = prn.get(severity)
        prn_lines.append(f"> {row.text}" if row and row.text else "> —")

    mm_list = "\n".join(f">  * {a}" for a in adjuncts) if adjuncts else ">  * None selected"

    return (
        "# Pain Management\n"
        "Plan:\n"
        f"1. Continue {scheduled_line}\n"
        "2. For moderate, severe, and breakthrough pain:\n"
        + "\n".join(prn_lines) + "\n"
        "3. Multimodal regimen\n"
        f"{mm_list}\n"
    )


def build_plan(req: PlanRequest) -> PlanResult:
    """Recompute every derived value from the raw regimen and selections."""
    entries = [] if req.opioid_naive else req.entries
    agg = aggregate(entries)
    ome = agg.total_ome

    prn = prn_rows(ome, req.selections, opioid_naive=req.opioid_naive,
                   apap_per_tab_mg=req.apap_per_tab_mg)

    scheduled = None
    if req.scheduled:
        s = req.scheduled
        scheduled = build_scheduled_regimen(
            ome, s.target_drug, s.target_route, s.sched_freq_hours,
            options=s.options, intensity_pct=s.intensity_pct,
            opioid_naive=req.opioid_naive,
        )

    adjuncts = multimodal_adjuncts(req.needs)
    text = build_plan_text(scheduled, long_acting_lines(entries), req.continue_er, prn, adjuncts)
    return PlanResult(
        ome=ome,
        summary_lines=agg.summary_lines(),
        prn=prn,
        scheduled=scheduled,
        adjuncts=adjuncts,
        plan_text=text,
    )
