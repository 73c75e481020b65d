# app.py
# ------------------------------------------------------------
# Business-card scan: two sides -> OCR -> merge -> Cloudinary + Google Sheets
# (Streamlit + LangGraph)
# ------------------------------------------------------------
import logging

import streamlit as st

import auth
import config
from models import Phase
from ui import (
    controller, init_session_state, render_capture, render_error,
    render_login, render_logout, render_results,
)

logging.basicConfig(
    level=config.log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

st.set_page_config(page_title="Business Card Scanner", page_icon="📇")
st.title("📇 Business Card Scanner")
st.caption("Capture the front and back of a card")

init_session_state()

# ログインしていなければフォームだけ表示
if not auth.is_authenticated(st.session_state):
    render_login()
    st.stop()

render_logout()
render_error()

if controller().phase == Phase.READY:
    render_results()
else:
    render_capture()
