from __future__ import annotations

import streamlit as st

from retail_core.config import get_settings
from retail_core.loggers import configure_logging

st.set_page_config(page_title="Retail Core", page_icon="🏬", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_🛒_Sales.py", title="Sales", icon="🛒"),
    st.Page("pages/2_📦_Products_&_Stock.py", title="Products & Stock", icon="📦"),
    st.Page("pages/3_💳_Dues_&_Payments.py", title="Dues & Payments", icon="💳"),
    st.Page("pages/4_📊_Dashboard.py", title="Dashboard", icon="📊"),
    st.Page("pages/5_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

configure_logging(get_settings().log_level)
st.navigation(pages).run()
