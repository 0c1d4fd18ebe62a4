# services/presentation_service.py
# -------------------------------
# Presentation Service - UI Layer
# Streamlit dashboard that drives the portfolio service over HTTP
# -------------------------------

import sys
import os
from datetime import datetime

import pandas as pd
import streamlit as st

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared.config import load_settings
from shared.insights import best_sharpe, hhi, insights_text, quantum_edge, top_weights
from shared.service_client import ServiceClient, ServiceClientError

DATASETS = {"NIFTY 50": "NIFTY50", "NASDAQ 100": "NASDAQ100", "Crypto 50": "CRYPTO50"}
DEMO_KEYS = {"NIFTY50": "nifty50", "NASDAQ100": "nasdaq", "CRYPTO50": "crypto"}
RISK_LEVELS = ["low", "medium", "high"]


def show_error(prefix: str, error: ServiceClientError):
    st.error(f"{prefix}: {error}")
    if error.details:
        details = error.details if isinstance(error.details, list) else [error.details]
        for detail in details:
            st.caption(f"- {detail}")


settings = load_settings()
client = ServiceClient(settings.portfolio_service_url)

# Initialize Streamlit app
st.set_page_config(page_title="Quantum Portfolio Demo", layout="wide")
st.title("⚛️ Quantum Portfolio Optimizer")
st.caption("QAOA asset selection with classical weighting, side by side with a classical baseline.")

if not client.check_service_health():
    st.error("Portfolio Service is not available. Please start it first.")
    st.code("python services/portfolio_service.py")
    st.stop()

quantum_status = client.quantum_health()
if quantum_status.get("mode") == "mock":
    st.sidebar.info("Running in mock mode: results are synthetic.")
elif quantum_status.get("quantumHealthy"):
    st.sidebar.success("Quantum optimizer reachable")
else:
    st.sidebar.warning(f"Quantum optimizer unavailable ({quantum_status.get('reason', quantum_status.get('code'))})")

# Input Parameters
st.sidebar.header("Inputs")
dataset_label = st.sidebar.selectbox("Dataset", list(DATASETS.keys()), index=0)
dataset = DATASETS[dataset_label]
risk_level = st.sidebar.selectbox("Risk level", RISK_LEVELS, index=1)
budget = st.sidebar.number_input("Investment amount", value=100_000, step=10_000, min_value=1)
max_assets = st.sidebar.slider("Assets to select", min_value=3, max_value=12, value=5, step=1)
time_horizon = st.sidebar.slider("Time horizon (days)", min_value=5, max_value=365, value=30, step=5)

tab_optimize, tab_compare, tab_analytics, tab_rebalance = st.tabs(
    ["📊 Optimize", "⚖️ Compare", "📈 Analytics", "🔁 Rebalance"]
)

with tab_optimize:
    st.header("Quantum Optimization")
    if st.button("Run optimization", type="primary"):
        payload = {
            "mode": "dataset",
            "dataset": dataset,
            "riskLevel": risk_level,
            "budget": budget,
            "maxAssets": max_assets,
            "timeHorizon": time_horizon,
        }
        try:
            with st.spinner("Optimizing portfolio..."):
                st.session_state["optimize_result"] = client.optimize(payload)
        except ServiceClientError as e:
            show_error("Optimization failed", e)

    result = st.session_state.get("optimize_result")
    if result:
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Assets selected", len(result["selected"]))
        with col2:
            expected = result.get("expectedReturn")
            st.metric("Expected return", f"{expected:.2f}%" if expected is not None else "n/a")
        with col3:
            st.metric("Backend", result.get("diagnostics", {}).get("backend") or "n/a")

        weights_df = pd.DataFrame(result["allocation"]).rename(columns={"name": "Asset", "value": "Weight (%)"})
        st.subheader("Allocation")
        st.bar_chart(weights_df.set_index("Asset"))
        st.dataframe(weights_df, use_container_width=True, hide_index=True)
        st.caption(f"Run {result['runId']}")

with tab_compare:
    st.header("Quantum vs Classical")
    try:
        accuracy = client.accuracy(risk_level)
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Quantum accuracy", f"{accuracy['quantum']}%")
        with col2:
            st.metric("Classical accuracy", f"{accuracy['classical']}%")

        optimized = st.session_state.get("optimize_result") or {}
        allocation = optimized.get("allocation") or []
        risk_return = client.risk_return(
            DEMO_KEYS[dataset],
            max_assets=max_assets,
            asset_names=[item["name"] for item in allocation],
            weights=[item["value"] for item in allocation],
        )
        points_df = pd.DataFrame([
            {
                "Asset": point["name"],
                "Classical risk": point["classical"]["risk"],
                "Classical return": point["classical"]["ret"],
                "Quantum risk": point["quantum"]["risk"],
                "Quantum return": point["quantum"]["ret"],
            }
            for point in risk_return["points"]
        ])
        st.subheader("Risk / return by asset")
        st.dataframe(points_df, use_container_width=True, hide_index=True)
    except ServiceClientError as e:
        show_error("Comparison unavailable", e)

with tab_analytics:
    st.header("Analytics")
    try:
        sharpe_bars = client.sharpe()
        frontier = client.frontier(risk_level)
        bits = client.qaoa_bits()
        alloc = client.allocation(DEMO_KEYS[dataset])
        evolution = client.evolution(budget, 12)
    except ServiceClientError as e:
        show_error("Analytics unavailable", e)
    else:
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Hybrid advantage", f"{quantum_edge(evolution):.1f}%")
        with col2:
            best = best_sharpe(sharpe_bars)
            st.metric("Best Sharpe", best["value"], help=best["name"])
        with col3:
            st.metric("Allocation concentration (HHI)", f"{hhi(alloc):.1f}%")

        st.markdown(insights_text(evolution, sharpe_bars, alloc))

        col1, col2 = st.columns(2)
        with col1:
            st.subheader("Efficient frontier")
            st.line_chart(pd.DataFrame(frontier).set_index("risk"))
        with col2:
            st.subheader("Sharpe ratio by model")
            st.bar_chart(pd.DataFrame(sharpe_bars).set_index("name"))

        st.subheader("Top QAOA bitstrings")
        st.dataframe(pd.DataFrame(bits), use_container_width=True, hide_index=True)

        col1, col2 = st.columns(2)
        with col1:
            st.subheader("Allocation")
            st.bar_chart(pd.DataFrame(alloc).set_index("name"))
            st.dataframe(pd.DataFrame(top_weights(alloc)), use_container_width=True, hide_index=True)
        with col2:
            st.subheader("Equity evolution")
            st.line_chart(pd.DataFrame(evolution).set_index("time"))

        st.subheader("Stress test")
        col1, col2, col3, col4, col5 = st.columns(5)
        with col1:
            rates_bps = st.number_input("Rates (bps)", value=100, step=25)
        with col2:
            oil_pct = st.number_input("Oil (%)", value=10, step=5)
        with col3:
            tech_pct = st.number_input("Tech (%)", value=-10, step=5)
        with col4:
            fx_pct = st.number_input("FX (%)", value=5, step=1)
        with col5:
            threshold = st.slider("Ruin threshold (%)", 0, 100, 60)
        try:
            stress = client.stress(
                alloc,
                budget,
                threshold,
                {"ratesBps": rates_bps, "oilPct": oil_pct, "techPct": tech_pct, "fxPct": fx_pct},
            )
            stress_df = pd.DataFrame(stress["bars"]).rename(columns={"name": "Asset", "value": "Equity after shock"})
            st.bar_chart(stress_df.set_index("Asset"))
            st.caption(f"Ruin line: {stress['ruinLine']:,}")
        except ServiceClientError as e:
            show_error("Stress test failed", e)

with tab_rebalance:
    st.header("Rebalance")
    if st.button("Run rebalance"):
        payload = {
            "dataset": dataset,
            "budget": max_assets,
            "risk": risk_level,
            "totalInvestment": budget,
            "timeHorizon": time_horizon,
        }
        try:
            with st.spinner("Rebalancing portfolio..."):
                st.session_state["rebalance_result"] = client.rebalance(payload)
        except ServiceClientError as e:
            show_error("Rebalance failed", e)

    rebalance = st.session_state.get("rebalance_result")
    if rebalance:
        summary = rebalance["summary"]
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Current expected return", f"{summary['muCurrent']:.2f}%")
        with col2:
            st.metric(
                "Rebalanced expected return",
                f"{summary['muFuture']:.2f}%",
                delta=f"{summary['muFuture'] - summary['muCurrent']:.2f}%",
            )

        st.subheader("Projected equity")
        st.line_chart(pd.DataFrame(rebalance["evolution"]).set_index("time"))

        st.subheader("Recommended actions")
        actions_df = pd.DataFrame(rebalance["actions"])
        st.dataframe(actions_df, use_container_width=True, hide_index=True)
        if not actions_df.empty:
            st.download_button(
                label="Download actions CSV",
                data=actions_df.to_csv(index=False),
                file_name=f"rebalance_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv",
                mime="text/csv",
            )

# Run with: streamlit run services/presentation_service.py
