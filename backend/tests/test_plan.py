from omecalc.schemas import (
    Drug,
    HomeMedicationEntry,
    MultimodalNeeds,
    PainRowSelection,
    PlanRequest,
    PrnSuggestion,
    ResultStatus,
    Route,
    ScheduledRegimen,
    ScheduledSelection,
    Severity,
)
from omecalc.services.plan import build_plan, build_plan_text, long_acting_lines, multimodal_adjuncts
from omecalc.services.reference import MULTIMODAL_ADJUNCTS

ER_MORPHINE = HomeMedicationEntry(drug=Drug.MORPHINE, route=Route.ORAL, dose_mg=30, freq_hours=12, is_er=True)
OXY_PRN = HomeMedicationEntry(drug=Drug.OXYCODONE, route=Route.ORAL, dose_mg=5,
                              is_prn=True, avg_prn_doses_per_day=2)
MODERATE_OXY = {Severity.MODERATE: PainRowSelection(drug=Drug.OXYCODONE, route=Route.ORAL, freq_hours=4)}


def test_long_acting_lines_only_scheduled_er():
    assert long_acting_lines([ER_MORPHINE, OXY_PRN]) == ["Morphine 30 PO q12h"]


def test_adjuncts_keep_fixed_order():
    needs = MultimodalNeeds(localized=True, general=True)
    assert multimodal_adjuncts(needs) == [MULTIMODAL_ADJUNCTS["general"], MULTIMODAL_ADJUNCTS["localized"]]


def test_plan_text_layout():
    prn = {Severity.MODERATE: PrnSuggestion(status=ResultStatus.OK, text="Oxy 5 po q4h PRN")}
    text = build_plan_text(None, ["Morphine 30 PO q12h"], True, prn, ["Lidocaine patch"])
    assert text == (
        "# Pain Management\n"
        "Plan:\n"
        "1. Continue Morphine 30 PO q12h\n"
        "2. For moderate, severe, and breakthrough pain:\n"
        "> Oxy 5 po q4h PRN\n"
        "> —\n"
        "> —\n"
        "3. Multimodal regimen\n"
        ">  * Lidocaine patch\n"
    )


def test_plan_text_joins_new_scheduled_and_continued_er():
    scheduled = ScheduledRegimen(status=ResultStatus.OK, text="Hydromorphone 2–4 PO q4h")
    text = build_plan_text(scheduled, ["Morphine 30 PO q12h"], True, {}, [])
    assert "1. Continue Hydromorphone 2–4 PO q4h + Morphine 30 PO q12h\n" in text
    assert ">  * None selected\n" in text


def test_plan_text_held_and_unset():
    held = build_plan_text(None, ["Morphine 30 PO q12h"], False, {}, [])
    assert "1. Continue Scheduled Opioid: Held (home ER/LA held, no new basal ordered)\n" in held
    unset = build_plan_text(None, ["Morphine 30 PO q12h"], None, {}, [])
    assert "1. Continue Scheduled Opioid: None / Not Calculated\n" in unset


def test_failed_scheduled_regimen_is_left_out():
    scheduled = ScheduledRegimen(status=ResultStatus.UNSUPPORTED, text="Methadone ...")
    text = build_plan_text(scheduled, [], None, {}, [])
    assert "Scheduled Opioid: None / Not Calculated" in text


def test_build_plan_recomputes_from_regimen():
    req = PlanRequest(
        entries=[ER_MORPHINE, OXY_PRN],
        selections=MODERATE_OXY,
        continue_er=True,
        needs=MultimodalNeeds(general=True),
    )
    result = build_plan(req)
    assert result.ome == 75
    assert result.summary_lines[0] == "APAP/day: 0 mg"
    assert result.prn[Severity.MODERATE].text == "Oxy 5 po q4h PRN"
    assert result.scheduled is None
    assert "1. Continue Morphine 30 PO q12h\n" in result.plan_text
    assert "> Oxy 5 po q4h PRN\n" in result.plan_text
    assert f">  * {MULTIMODAL_ADJUNCTS['general']}\n" in result.plan_text


def test_build_plan_with_scheduled_selection():
    req = PlanRequest(
        entries=[HomeMedicationEntry(drug=Drug.MORPHINE, route=Route.ORAL, dose_mg=15, freq_hours=4)],
        scheduled=ScheduledSelection(target_drug=Drug.MORPHINE, target_route=Route.ORAL, sched_freq_hours=4),
    )
    result = build_plan(req)
    assert result.scheduled.text == "Morphine 13.5–16.5 PO q4h"
    assert "1. Continue Morphine 13.5–16.5 PO q4h\n" in result.plan_text


def test_naive_plan_ignores_home_regimen():
    req = PlanRequest(
        entries=[ER_MORPHINE],
        opioid_naive=True,
        selections=MODERATE_OXY,
        continue_er=True,
    )
    result = build_plan(req)
    assert result.ome == 0
    assert result.prn[Severity.MODERATE].text == "Oxy 5–10 po q4h PRN"
    assert "Scheduled Opioid: None / Not Calculated" in result.plan_text
