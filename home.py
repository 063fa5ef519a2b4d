from __future__ import annotations

import streamlit as st

from retail_core.config import get_settings
from retail_core.db import get_conn, ensure_schema
from retail_core.services.demo_data import upsert_reference_data

st.set_page_config(page_title="Retail Core", page_icon="🏬", layout="wide")

st.title("🏬 Retail Core")
st.caption("Multi-branch sales, stock, dues and payments with a live analytics dashboard.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Currency:** {settings.currency}")

st.info(
    "Use the left sidebar navigation. Start with **🧪 Data Management** to load demo data, then try **Sales**, **Dues & Payments** and the **Dashboard**.",
    icon="ℹ️",
)
