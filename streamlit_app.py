# streamlit_app.py
import streamlit as st
import requests
import pandas as pd

try:
    API_BASE = st.secrets.get("api_base", "http://localhost:8000")
except FileNotFoundError:
    API_BASE = "http://localhost:8000"

SEVERITIES = ["moderate", "severe", "breakthrough"]
FREQ_CHOICES = [2, 3, 4, 6, 8, 12]

st.set_page_config(page_title="Opioid Conversion Calculator", layout="wide")
st.title("Opioid Conversion Calculator — Clinician Dashboard")
st.caption("Advisory ranges only. Verify every dose against clinical judgement before ordering.")


@st.cache_data
def load_reference():
    r = requests.get(f"{API_BASE}/reference", timeout=10)
    r.raise_for_status()
    return r.json()


try:
    ref = load_reference()
except Exception as e:
    st.error("Could not contact backend: " + str(e))
    st.stop()

labels = ref["opioid_labels"]
route_labels = ref["route_labels"]
allowed = ref["allowed_routes"]


def drug_select(label, key, exclude=()):
    options = [d for d in labels if d not in exclude]
    return st.selectbox(label, options, format_func=lambda d: labels[d], key=key)


def route_select(label, drug, key):
    return st.selectbox(label, allowed[drug], format_func=lambda r: route_labels[r], key=key)


def post(path, payload):
    try:
        r = requests.post(f"{API_BASE}{path}", json=payload, timeout=30)
    except Exception as e:
        st.error(f"Failed to call {path}: {e}")
        return None
    if r.status_code != 200:
        st.error(f"{path} failed: {r.text}")
        return None
    return r.json()


# Sidebar: patient-level toggles
with st.sidebar:
    st.header("Patient")
    opioid_naive = st.checkbox("Opioid-naïve", value=False)
    st.markdown("---")
    st.subheader("Rotation options")
    cross_tolerance = st.slider("Cross-tolerance reduction (%)", 0, 95, 25, step=5)
    frail = st.checkbox("Frail / elderly", value=False)
    options = {"cross_tolerance_pct": cross_tolerance, "frail": frail}

tab_home, tab_prn, tab_sched, tab_quick, tab_plan, tab_hist = st.tabs(
    ["Home regimen", "PRN suggestions", "Scheduled regimen", "Quick convert", "A&P plan", "Audit history"]
)

with tab_home:
    st.subheader("Home opioid regimen (editable)")
    if opioid_naive:
        st.info("Opioid-naïve: home regimen is not used.")
    empty = pd.DataFrame(columns=["drug", "route", "dose_mg", "freq_hours", "is_prn",
                                  "avg_prn_doses_per_day", "is_er", "apap_per_tab_mg"])
    home_df = st.data_editor(
        st.session_state.get("home_df", empty),
        num_rows="dynamic",
        key="home_editor",
        column_config={
            "drug": st.column_config.SelectboxColumn("Drug", options=list(labels)),
            "route": st.column_config.SelectboxColumn("Route", options=list(route_labels)),
            "is_prn": st.column_config.CheckboxColumn("PRN"),
            "is_er": st.column_config.CheckboxColumn("ER/LA"),
        },
        disabled=opioid_naive,
    )
    entries = [] if opioid_naive else [
        {k: v for k, v in row.items() if pd.notna(v)}
        for row in home_df.to_dict(orient="records")
    ]
    agg = post("/aggregate", {"entries": entries}) if entries else None
    ome = agg["total_ome"] if agg else 0.0
    st.metric("Total OME (mg/day)", f"{ome:.0f}")
    if agg:
        if agg.get("apap_warning"):
            st.warning(agg["apap_line"])
        else:
            st.write(agg["apap_line"])
        for line in agg["detail_lines"] + agg["notes"]:
            st.markdown(f"- {line}")

with tab_prn:
    st.subheader("PRN by pain severity")
    selections = {}
    for sev in SEVERITIES:
        c1, c2, c3 = st.columns(3)
        with c1:
            d = drug_select(f"{sev.title()} — drug", f"prn_drug_{sev}")
        with c2:
            r = route_select("Route", d, f"prn_route_{sev}")
        with c3:
            f = st.selectbox("Every (h)", FREQ_CHOICES, index=2, key=f"prn_freq_{sev}")
        selections[sev] = {"drug": d, "route": r, "freq_hours": f}
    rows = post("/prn", {"ome": ome, "selections": selections, "opioid_naive": opioid_naive})
    if rows:
        st.table(pd.DataFrame([
            {"severity": sev, "suggestion": rows[sev]["text"], "basis": rows[sev].get("note") or ""}
            for sev in SEVERITIES
        ]))

with tab_sched:
    st.subheader("Build scheduled regimen (opioid-tolerant only)")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        t_drug = drug_select("Target drug", "sched_drug")
    with c2:
        t_route = route_select("Route", t_drug, "sched_route")
    with c3:
        sched_freq = st.selectbox("Every (h)", FREQ_CHOICES + [24], index=4, key="sched_freq")
    with c4:
        intensity = st.number_input("Intensity adjust (%)", -50, 100, 0, step=10)
    sched = post("/scheduled", {
        "ome": ome, "target_drug": t_drug, "target_route": t_route,
        "sched_freq_hours": sched_freq, "options": options,
        "intensity_pct": intensity, "opioid_naive": opioid_naive,
    })
    if sched:
        st.code(sched["text"])
        with st.expander("Calculation log"):
            for step in sched["trace"]:
                st.write(step)

with tab_quick:
    st.subheader("Convert a specific dose of one opioid to another")
    include_freq = st.checkbox("Include frequency", value=True)
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        f_drug = drug_select("From drug", "qc_from", exclude=("methadone", "buprenorphine"))
    with c2:
        f_route = route_select("From route", f_drug, "qc_from_route")
    with c3:
        f_dose = st.number_input("Per-dose (mg, or mcg/h patch)", 0.0, 10000.0, 5.0)
    with c4:
        f_freq = st.selectbox("From freq (h)", FREQ_CHOICES, index=3, disabled=not include_freq)
    c1, c2, c3 = st.columns(3)
    with c1:
        q_drug = drug_select("To drug", "qc_to")
    with c2:
        q_route = route_select("To route", q_drug, "qc_to_route")
    with c3:
        q_freq = st.selectbox("To freq (h)", FREQ_CHOICES, index=2, disabled=not include_freq)
    qc = post("/quick-convert", {
        "source": {"drug": f_drug, "route": f_route, "dose_mg": f_dose, "freq_hours": f_freq},
        "target": {"drug": q_drug, "route": q_route, "freq_hours": q_freq},
        "options": options,
        "include_frequency": include_freq,
    })
    if qc:
        st.code(qc["text"])
        with st.expander("Calculation log"):
            for step in qc["steps"]:
                st.write(step)

with tab_plan:
    st.subheader("Final regimen summary")
    er_choice = st.radio("Continue long-acting home opioid?", ["Decide later", "YES — continue", "NO — hold"],
                         horizontal=True)
    continue_er = {"Decide later": None, "YES — continue": True, "NO — hold": False}[er_choice]
    include_sched = st.checkbox("Include new scheduled opioid", value=False)
    c1, c2, c3, c4 = st.columns(4)
    needs = {
        "general": c1.checkbox("Generalized pain?"),
        "neuropathic": c2.checkbox("Neuropathy?"),
        "spasm": c3.checkbox("Muscle spasms?"),
        "localized": c4.checkbox("Localized pain?"),
    }
    plan_payload = {
        "entries": entries,
        "opioid_naive": opioid_naive,
        "selections": selections,
        "continue_er": continue_er,
        "needs": needs,
    }
    if include_sched:
        plan_payload["scheduled"] = {
            "target_drug": t_drug, "target_route": t_route, "sched_freq_hours": sched_freq,
            "options": options, "intensity_pct": intensity,
        }
    result = post("/plan", plan_payload)
    if result:
        st.text_area("A&P block (copy into note)", value=result["plan_text"], height=260)

with tab_hist:
    st.subheader("Audited calculations")
    kind = st.selectbox("Kind", ["", "aggregate", "rotate", "prn", "quick_convert", "scheduled", "plan"])
    if st.button("Load History"):
        try:
            r = requests.get(f"{API_BASE}/history", params={"kind": kind or None, "limit": 50}, timeout=10)
            if r.status_code == 200:
                hist = r.json()
                if hist:
                    st.dataframe(pd.DataFrame(hist)[["date", "kind", "status", "result_text"]])
                else:
                    st.info("No history found.")
            else:
                st.error("History lookup failed: " + r.text)
        except Exception as e:
            st.error("Could not contact backend: " + str(e))
