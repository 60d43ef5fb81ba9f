import pytest
from fastapi.testclient import TestClient

from omecalc.main import app

client = TestClient(app)


def test_reference_tables():
    r = client.get("/reference")
    assert r.status_code == 200
    body = r.json()
    assert body["mme_factors"]["oxycodone"] == 1.5
    assert body["allowed_routes"]["hydromorphone"] == ["oral", "iv"]
    assert body["fentanyl_patches"] == [12, 25, 37, 50, 62, 75, 100]


def test_aggregate():
    r = client.post("/aggregate", json={"entries": [
        {"drug": "morphine", "route": "oral", "dose_mg": 15, "freq_hours": 4},
        {"drug": "oxycodone", "route": "oral"},
    ]})
    assert r.status_code == 200
    body = r.json()
    assert body["total_ome"] == pytest.approx(90)
    assert body["detail_lines"] == ["MS 15 PO Scheduled q4h: ~90 OME/day"]


def test_rotate():
    r = client.post("/rotate", json={
        "ome": 90, "target_drug": "hydromorphone", "target_route": "oral",
        "options": {"cross_tolerance_pct": 25},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["range"] == [15.2, 18.6]


def test_rotate_clamps_cross_tolerance():
    r = client.post("/rotate", json={
        "ome": 100, "target_drug": "morphine", "target_route": "oral",
        "options": {"cross_tolerance_pct": 150},
    })
    assert r.status_code == 200
    assert r.json()["adjusted_ome"] == pytest.approx(5)


def test_disallowed_route_is_rejected():
    r = client.post("/rotate", json={"ome": 90, "target_drug": "oxycodone", "target_route": "iv"})
    assert r.status_code == 400
    assert "Oxycodone" in r.json()["detail"]


def test_unknown_drug_is_a_validation_error():
    r = client.post("/rotate", json={"ome": 90, "target_drug": "heroin", "target_route": "oral"})
    assert r.status_code == 422


def test_prn_rows():
    r = client.post("/prn", json={
        "ome": 90,
        "selections": {"moderate": {"drug": "oxycodone", "route": "oral", "freq_hours": 4}},
    })
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"moderate", "severe", "breakthrough"}
    assert body["moderate"]["text"] == "Oxy 5 po q4h PRN"
    assert body["severe"]["status"] == "needs_more_input"


def test_quick_convert():
    r = client.post("/quick-convert", json={
        "source": {"drug": "morphine", "route": "oral", "dose_mg": 5, "freq_hours": 6},
        "target": {"drug": "hydromorphone", "route": "oral", "freq_hours": 4},
        "options": {"cross_tolerance_pct": 25},
    })
    assert r.status_code == 200
    assert r.json()["text"] == "Hydromorphone 0.6–0.7 mg PO q4h"


def test_scheduled():
    r = client.post("/scheduled", json={
        "ome": 90, "target_drug": "morphine", "target_route": "oral", "sched_freq_hours": 4,
    })
    assert r.status_code == 200
    assert r.json()["text"] == "Morphine 13.5–16.5 PO q4h"


def test_plan():
    r = client.post("/plan", json={
        "entries": [{"drug": "morphine", "route": "oral", "dose_mg": 30, "freq_hours": 12, "is_er": True}],
        "selections": {"moderate": {"drug": "oxycodone", "route": "oral", "freq_hours": 4}},
        "continue_er": True,
    })
    assert r.status_code == 200
    text = r.json()["plan_text"]
    assert text.startswith("# Pain Management\nPlan:\n1. Continue Morphine 30 PO q12h\n")


def test_history_records_calculations():
    client.post("/scheduled", json={
        "ome": 60, "target_drug": "oxycodone", "target_route": "oral", "sched_freq_hours": 6,
    })
    r = client.get("/history", params={"kind": "scheduled", "limit": 1})
    assert r.status_code == 200
    rows = r.json()
    assert len(rows) == 1
    assert rows[0]["kind"] == "scheduled"
    assert rows[0]["request"]["ome"] == 60
    assert rows[0]["trace"][0] == "Total home OME ≈ 60 mg/day"


def test_huge_doses_still_answer():
    r = client.post("/aggregate", json={"entries": [
        {"drug": "morphine", "route": "oral", "dose_mg": 1e28, "freq_hours": 4},
    ]})
    assert r.status_code == 200
    assert r.json()["total_ome"] == pytest.approx(6e28)
    r = client.post("/rotate", json={"ome": 1e27, "target_drug": "morphine", "target_route": "oral"})
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
