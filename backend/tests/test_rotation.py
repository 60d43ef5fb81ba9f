import pytest

from omecalc.schemas import ConversionOptions, Drug, ResultStatus, Route
from omecalc.services import reference
from omecalc.services.rotation import build_scheduled_regimen, rotate_to_target

LINEAR_TARGETS = [
    (drug, route)
    for drug, by_route in reference.TARGET_FACTORS.items()
    for route in by_route
]


def opts(ct=0, frail=False):
    return ConversionOptions(cross_tolerance_pct=ct, frail=frail)


def test_hydromorphone_with_cross_tolerance():
    result = rotate_to_target(90, Drug.HYDROMORPHONE, Route.ORAL, opts(ct=25))
    assert result.status == ResultStatus.OK
    assert result.adjusted_ome == pytest.approx(67.5)
    assert result.range == (15.2, 18.6)
    assert result.notes[0] == "1) Cross-tolerance reduction: 90.0 OME × (1 - 25%) = 67.5 OME/day"
    assert result.notes[-1] == "3) Suggested daily dose range: 15.2–18.6 mg/day."


def test_frail_uses_conservative_multipliers():
    result = rotate_to_target(90, Drug.MORPHINE, Route.ORAL, opts(frail=True))
    assert result.range == (67.5, 81.0)
    assert any(n.startswith("Frail/Elderly") for n in result.notes)


def test_fentanyl_target_rounds_to_patches():
    result = rotate_to_target(90, Drug.FENTANYL_TDS, Route.TDS, opts())
    assert result.status == ResultStatus.OK
    assert result.range is None
    assert result.fentanyl_patch_mcg_hr == (25, 37)


def test_frail_fentanyl_trims_only_high_end():
    result = rotate_to_target(90, Drug.FENTANYL_TDS, Route.TDS, opts(frail=True))
    assert result.fentanyl_patch_mcg_hr == (25, 25)
    assert "Frail/Elderly: High end of patch range reduced by 25%." in result.notes


@pytest.mark.parametrize("drug", [Drug.METHADONE, Drug.BUPRENORPHINE])
@pytest.mark.parametrize("ome", [0, 1, 90, 1000])
def test_nonlinear_targets_are_never_computed(drug, ome):
    result = rotate_to_target(ome, drug, Route.ORAL, opts())
    assert result.status == ResultStatus.UNSUPPORTED
    assert result.range is None
    assert result.fentanyl_patch_mcg_hr is None
    assert "specialist guidance" in result.notes[-1]


def test_missing_target_factor(monkeypatch):
    monkeypatch.delitem(reference.TARGET_FACTORS, Drug.TAPENTADOL)
    result = rotate_to_target(90, Drug.TAPENTADOL, Route.ORAL, opts())
    assert result.status == ResultStatus.MISSING_REFERENCE_DATA
    assert result.range is None
    assert result.notes[-1] == "Error: Missing conversion factor for Tapentadol PO."


def test_cross_tolerance_is_clamped():
    assert ConversionOptions(cross_tolerance_pct=120).cross_tolerance_pct == 95
    assert ConversionOptions(cross_tolerance_pct=-10).cross_tolerance_pct == 0


@pytest.mark.parametrize("drug, route", LINEAR_TARGETS)
@pytest.mark.parametrize("ome", [10, 90, 400])
def test_range_invariants(drug, route, ome):
    standard = rotate_to_target(ome, drug, route, opts(ct=25)).range
    frail = rotate_to_target(ome, drug, route, opts(ct=25, frail=True)).range
    stronger_ct = rotate_to_target(ome, drug, route, opts(ct=50)).range

    assert 0 <= standard[0] <= standard[1]
    assert frail[0] <= standard[0]
    assert frail[1] <= standard[1]
    assert stronger_ct[0] <= standard[0]
    assert stronger_ct[1] <= standard[1]


def test_zero_ome_gives_zero_range():
    assert rotate_to_target(0, Drug.OXYCODONE, Route.ORAL, opts()).range == (0.0, 0.0)


# --- scheduled regimen ---

def test_scheduled_oral_morphine():
    result = build_scheduled_regimen(90, Drug.MORPHINE, Route.ORAL, 4, opts())
    assert result.status == ResultStatus.OK
    assert result.text == "Morphine 13.5–16.5 PO q4h"
    assert result.per_dose == (13.5, 16.5)
    assert result.trace[0] == "Total home OME ≈ 90 mg/day"
    assert result.trace[-1].startswith("4) Doses/day = 6.")


def test_scheduled_iv_hydromorphone_uses_practical_increments():
    result = build_scheduled_regimen(90, Drug.HYDROMORPHONE, Route.IV, 4, opts())
    assert result.per_dose == (0.8, 1.0)
    assert result.text == "Hydromorphone 0.8–1 IV/SC q4h"


def test_scheduled_collapses_equal_ends():
    result = build_scheduled_regimen(90, Drug.OXYCODONE, Route.ORAL, 12, opts())
    # 54-66 mg/day over 2 doses ceil to the 5 mg grid
    assert result.per_dose == (30, 35)
    result = build_scheduled_regimen(10, Drug.OXYCODONE, Route.ORAL, 12, opts())
    assert result.per_dose == (5, 5)
    assert result.text == "Oxycodone 5 PO q12h"


def test_intensity_adjustment_scales_ome():
    base = build_scheduled_regimen(90, Drug.MORPHINE, Route.ORAL, 4, opts())
    up = build_scheduled_regimen(90, Drug.MORPHINE, Route.ORAL, 4, opts(), intensity_pct=50)
    assert up.trace[1] == "Intensity adjust: 90.0 × (1 + 50/100) = 135.0 OME/day"
    assert up.per_dose[0] > base.per_dose[0]
    assert up.per_dose[1] > base.per_dose[1]


def test_scheduled_fentanyl():
    result = build_scheduled_regimen(90, Drug.FENTANYL_TDS, Route.TDS, 72, opts())
    assert result.text == "Fentanyl patch ~25–37 mcg/h"
    assert result.fentanyl_patch_mcg_hr == (25, 37)


def test_scheduled_methadone_is_unsupported():
    result = build_scheduled_regimen(90, Drug.METHADONE, Route.ORAL, 8, opts())
    assert result.status == ResultStatus.UNSUPPORTED
    assert "specialist guidance" in result.text


def test_scheduled_not_built_for_naive_or_empty_regimen():
    naive = build_scheduled_regimen(90, Drug.MORPHINE, Route.ORAL, 4, opts(), opioid_naive=True)
    assert naive.status == ResultStatus.UNSUPPORTED
    empty = build_scheduled_regimen(0, Drug.MORPHINE, Route.ORAL, 4, opts())
    assert empty.status == ResultStatus.NEEDS_MORE_INPUT


def test_very_large_ome_still_gives_a_range():
    result = rotate_to_target(1e27, Drug.MORPHINE, Route.ORAL, opts())
    assert result.status == ResultStatus.OK
    assert result.range[0] == pytest.approx(9e26)
    assert result.range[1] == pytest.approx(1.1e27)
