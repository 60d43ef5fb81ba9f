# backend/omecalc/main.py
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from omecalc import config
from omecalc.db import SessionLocal, CalculationAudit
from omecalc.schemas import (
    AggregateRequest,
    AggregateResult,
    ConversionResult,
    Drug,
    PlanRequest,
    PlanResult,
    PrnRequest,
    PrnSuggestion,
    QuickConvertRequest,
    QuickConvertResult,
    RotateRequest,
    Route,
    ScheduledRegimen,
    ScheduledRequest,
    Severity,
)
from omecalc.services import plan, prn, quick_convert, regimen, rotation
from omecalc.services.reference import ALLOWED_ROUTES, OPIOID_LABELS, ROUTE_LABELS, is_allowed_route, reference_tables

logging.basicConfig(level=config.LOG_LEVEL)
log = logging.getLogger("uvicorn.error")

app = FastAPI(title="Opioid Conversion API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _check_routes(pairs: Iterable[Tuple[Drug, Route]]):
    """Reject drug/route pairs the allowed-routes table does not list."""
    for drug, route in pairs:
        if drug and route and not is_allowed_route(drug, route):
            allowed = ", ".join(ROUTE_LABELS[r] for r in ALLOWED_ROUTES[drug])
            raise HTTPException(
                status_code=400,
                detail=f"{OPIOID_LABELS[drug]} cannot be given {ROUTE_LABELS[route]} (allowed: {allowed})",
            )


def _audit(kind: str, payload, status: str, text: str, trace: List[str]):
    if not config.AUDIT_ENABLED:
        return
    db = SessionLocal()
    try:
        db.add(CalculationAudit(
            kind=kind,
            request=payload.model_dump(mode="json"),
            status=status,
            result_text=text,
            trace=trace,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        log.error("Failed to save audit record: %s", e)
    finally:
        db.close()


@app.get("/reference")
def get_reference():
    return reference_tables()


@app.post("/aggregate", response_model=AggregateResult)
def route_aggregate(payload: AggregateRequest):
    _check_routes((e.drug, e.route) for e in payload.entries)
    result = regimen.aggregate(payload.entries)
    _audit("aggregate", payload, "ok", f"{result.total_ome:.1f} OME/day", result.summary_lines())
    return result


@app.post("/rotate", response_model=ConversionResult)
def route_rotate(payload: RotateRequest):
    _check_routes([(payload.target_drug, payload.target_route)])
    result = rotation.rotate_to_target(payload.ome, payload.target_drug, payload.target_route, payload.options)
    _audit("rotate", payload, result.status.value, str(result.range or result.fentanyl_patch_mcg_hr), result.notes)
    return result


@app.post("/prn", response_model=Dict[Severity, PrnSuggestion])
def route_prn(payload: PrnRequest):
    _check_routes((s.drug, s.route) for s in payload.selections.values())
    rows = prn.prn_rows(payload.ome, payload.selections, payload.opioid_naive, payload.apap_per_tab_mg)
    _audit("prn", payload, "ok", " | ".join(r.text for r in rows.values()),
           [line for r in rows.values() for line in r.trace])
    return rows


@app.post("/quick-convert", response_model=QuickConvertResult)
def route_quick_convert(payload: QuickConvertRequest):
    _check_routes([(payload.source.drug, payload.source.route), (payload.target.drug, payload.target.route)])
    result = quick_convert.exact_quick_convert(
        payload.source, payload.target, payload.options, payload.include_frequency
    )
    _audit("quick_convert", payload, result.status.value, result.text, result.steps)
    return result


@app.post("/scheduled", response_model=ScheduledRegimen)
def route_scheduled(payload: ScheduledRequest):
    _check_routes([(payload.target_drug, payload.target_route)])
    result = rotation.build_scheduled_regimen(
        payload.ome, payload.target_drug, payload.target_route, payload.sched_freq_hours,
        options=payload.options, intensity_pct=payload.intensity_pct, opioid_naive=payload.opioid_naive,
    )
    _audit("scheduled", payload, result.status.value, result.text, result.trace)
    return result


@app.post("/plan", response_model=PlanResult)
def route_plan(payload: PlanRequest):
    _check_routes((e.drug, e.route) for e in payload.entries)
    _check_routes((s.drug, s.route) for s in payload.selections.values())
    if payload.scheduled:
        _check_routes([(payload.scheduled.target_drug, payload.scheduled.target_route)])
    result = plan.build_plan(payload)
    _audit("plan", payload, "ok", result.plan_text, result.summary_lines)
    return result


@app.get("/history")
def list_history(kind: Optional[str] = None, limit: int = 50):
    """List recent audited calculations, newest first."""
    db = SessionLocal()
    try:
        q = db.query(CalculationAudit)
        if kind:
            q = q.filter(CalculationAudit.kind == kind)
        q = q.order_by(CalculationAudit.created_at.desc(), CalculationAudit.id.desc()).limit(limit)
        return [{
            "id": r.id,
            "date": r.created_at.isoformat(),
            "kind": r.kind,
            "request": r.request,
            "status": r.status,
            "result_text": r.result_text,
            "trace": r.trace,
        } for r in q]
    finally:
        db.close()
