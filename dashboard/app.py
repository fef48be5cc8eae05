import streamlit as st
import numpy as np
import matplotlib.pyplot as plt

from ecosphere.config import load_cfg
from ecosphere.data_simulator import ARCHETYPES, InvalidArgument, generate
from ecosphere.forecast import forecast, forecast_frame
from ecosphere.ingest_local import parse_csv
from ecosphere.insights import GeminiClient, InsightsFeed
from ecosphere.report import eco_index, protocol_targets, render_report, report_filename, trend

st.set_page_config(page_title="EcoSphere Sustainability Dashboard", layout="wide")

UNITS = {"energy": "kWh", "carbon": "kg CO2", "water": "L", "waste": "kg"}


@st.cache_resource
def load_config():
    return load_cfg()


@st.cache_resource
def insights_client():
    return GeminiClient.from_config(load_config())


cfg = load_config()
state = st.session_state
if "feed" not in state:
    state.feed = InsightsFeed()
    state.data = []
    state.forecast = {}
    state.loaded_for = None


def refresh_insights(building_type, metric):
    with st.spinner("Requesting AI recommendations..."):
        try:
            state.feed.refresh(state.data, building_type, metric, client=insights_client(),
                               window=cfg["insights"]["window_hours"])
        except InvalidArgument as e:
            st.warning(f"AI recommendations unavailable: {e}")


def load_data(building_type, records=None):
    seed = cfg["simulation"]["seed"]
    rng = np.random.default_rng(seed)
    data = records if records is not None else generate(building_type, cfg["simulation"]["history_hours"], rng=rng)
    state.forecast = forecast(data, cfg["simulation"]["forecast_hours"], rng=rng)
    state.data = data


st.title("🌿 EcoSphere Sustainability Dashboard")
st.caption("Simulated telemetry → forecast → AI optimization protocols")

types = sorted(ARCHETYPES)
building_type = st.sidebar.selectbox("Building type", types, index=types.index(cfg["simulation"]["default_archetype"]))
metric = st.sidebar.radio("Focus metric", list(UNITS), index=list(UNITS).index(cfg["dashboard"]["default_metric"]))

refresh = st.sidebar.button("Refresh data")

if refresh or state.loaded_for != building_type:
    load_data(building_type)
    state.loaded_for = building_type
    state.metric = metric
    refresh_insights(building_type, metric)
elif state.get("metric") != metric:
    state.metric = metric
    refresh_insights(building_type, metric)

upload = st.sidebar.file_uploader("Upload CSV data", type=["csv"])
if upload is not None and state.get("upload_name") != upload.name:
    state.upload_name = upload.name
    records = parse_csv(upload.getvalue().decode("utf-8"))
    if not records:
        st.sidebar.warning("The uploaded file has no rows; keeping the current data.")
    else:
        try:
            load_data(building_type, records)
        except InvalidArgument as e:
            st.sidebar.error(f"Could not use uploaded data: {e}")
        else:
            refresh_insights(building_type, metric)

current = state.data[-1]
prev = state.data[-2] if len(state.data) > 1 else current
recs = state.feed.recommendations
base = cfg["score"]["base"]

# Score
c1, c2 = st.columns(2)
c1.metric("Eco Index (current)", base)
c2.metric("Eco Index (optimized)", eco_index(recs, base), delta=eco_index(recs, base) - base)

# Metric cards
cols = st.columns(4)
for col, (name, title) in zip(cols, [("energy", "Energy Consumption"), ("carbon", "Carbon Footprint"),
                                     ("water", "Water Usage"), ("waste", "Waste Generation")]):
    col.metric(f"{title} ({UNITS[name]})", f"{current[name]:,}", delta=f"{trend(current[name], prev[name])}%",
               delta_color="inverse")

# Forecast
st.subheader(f"{metric.title()} forecast (next {cfg['simulation']['forecast_hours']} h)")
fc = forecast_frame(state.forecast, metric)
fig = plt.figure()
plt.plot(fc["timestamp"], fc["baseline"], label="baseline")
plt.plot(fc["timestamp"], fc["predicted"], label="optimized")
plt.xlabel("Time"); plt.ylabel(UNITS[metric])
plt.title(f"{building_type} — {metric} baseline vs optimized")
plt.legend()
st.pyplot(fig)

# Recommendations
st.subheader(f"{building_type} {metric} optimization")
active = [r for r in recs if r["type"] == metric]
if not active:
    st.info(f"No specific {metric} protocols detected for this cycle.")
for r in active:
    st.markdown(f"**{r['title']}** (-{r['impact']}%)  \n{r['description']}  \n_{r['action']}_")

st.subheader("Protocol simulation")
st.table(protocol_targets(current, building_type, metric))

st.download_button(
    "Export report",
    render_report(current, building_type, recs, metric, base),
    file_name=report_filename(building_type),
    mime="text/markdown",
)
