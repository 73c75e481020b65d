# ui.py
import asyncio
import json

import pandas as pd
import streamlit as st

import auth
from errors import CardScanError, ConfigurationError, PublishError
from models import CapturedImage, MERGE_FIELDS, Phase, SHEET_HEADER
from session import SessionController


FIELD_LABELS = {
    "name": "Name",
    "job_title": "Job Title",
    "company": "Company",
    "email": "Email",
    "phone": "Phone",
    "website": "Website",
    "address": "Address",
}

SAVE_MESSAGES = {
    "dispatched": "Sent to Google Sheets.",
    "skipped": "Already sent for this card.",
    "failed": "Could not send to Google Sheets. Copy or download the details below.",
}


def init_session_state():
    if "controller" not in st.session_state: st.session_state.controller = SessionController()
    if "widget_nonce" not in st.session_state: st.session_state.widget_nonce = {1: 0, 2: 0}
    if auth.AUTH_KEY not in st.session_state: st.session_state[auth.AUTH_KEY] = False


def controller() -> SessionController:
    return st.session_state.controller


def start_over():
    controller().start_over()
    # ウィジェットのキーを変えてアップロード済みファイルをクリア
    st.session_state.widget_nonce = {1: 0, 2: 0}
    st.rerun()


def render_login():
    st.subheader("🔐 Login")
    with st.form("login"):
        username = st.text_input("Username", placeholder="Enter username")
        password = st.text_input("Password", type="password", placeholder="Enter password")
        submitted = st.form_submit_button("Login")

    if submitted:
        try:
            ok = auth.login(st.session_state, username, password)
        except ConfigurationError as exc:
            st.error(str(exc))
            return
        if ok:
            st.rerun()
        else:
            st.error("Invalid username or password")


def render_logout():
    if st.sidebar.button("Logout"):
        auth.logout(st.session_state)
        controller().start_over()
        st.rerun()


def _widget_key(kind: str, slot: int) -> str:
    ctrl = controller()
    return f"{kind}_{slot}_{ctrl.session.session_id}_{st.session_state.widget_nonce[slot]}"


def render_capture_slot(slot: int):
    ctrl = controller()
    image = ctrl.state.get(f"image{slot}")

    if image is not None:
        st.image(image.data, caption=f"Image {slot}", width="stretch")
        if st.button("Retake", key=f"retake_{slot}"):
            ctrl.retake(slot)
            st.session_state.widget_nonce[slot] += 1
            st.rerun()
        return

    if slot == 2 and "image1" not in ctrl.state:
        st.info("🔒 Capture Image 1 first")
        return

    tab1, tab2 = st.tabs(["📁 Upload", "📷 Camera"])
    with tab1:
        uploaded = st.file_uploader(
            f"Image {slot}",
            type=["png", "jpg", "jpeg", "webp"],
            key=_widget_key("upload", slot),
        )
    with tab2:
        shot = st.camera_input(f"Take image {slot}", key=_widget_key("camera", slot))

    source = uploaded or shot
    if source is not None:
        ctrl.capture(slot, CapturedImage(
            data=source.getvalue(),
            mime_type=source.type or "image/jpeg",
            file_name=getattr(source, "name", None),
        ))
        st.rerun()


def render_capture():
    ctrl = controller()
    st.progress(
        {Phase.AWAITING_IMAGE1: 0, Phase.AWAITING_IMAGE2: 50}.get(ctrl.phase, 100),
        text=f"Step: {ctrl.phase.value.replace('_', ' ')}",
    )

    cols = st.columns(2)
    for slot, col in zip((1, 2), cols):
        with col:
            st.markdown(f"**Image {slot}**")
            render_capture_slot(slot)

    if ctrl.phase != Phase.BOTH_CAPTURED:
        return

    st.success("✅ Both images captured!")
    left, right = st.columns(2)
    with left:
        if st.button("Reset All"):
            ctrl.reset()
            st.session_state.widget_nonce = {1: 0, 2: 0}
            st.rerun()
    with right:
        if st.button("🖨️ Scan card", type="primary"):
            with st.spinner("Extracting and saving..."):
                run_async(ctrl.process())
            st.rerun()


def run_async(coro):
    try:
        return asyncio.run(coro)
    except PublishError as exc:
        st.session_state.last_error = f"{exc}\nCheck the Cloudinary settings in your .env file."
    except CardScanError as exc:
        st.session_state.last_error = str(exc)


def render_error():
    message = st.session_state.pop("last_error", None)
    if message:
        st.error(message)


def render_side(slot: int):
    ctrl = controller()
    image = ctrl.state[f"image{slot}"]
    card = ctrl.state.get(f"extracted{slot}", {})
    text = card.get("full_text", "")

    st.image(image.data, caption=f"Image {slot}", width="stretch")
    st.markdown("**Extracted Text**")
    st.code(text or "(no text)", language=None)
    st.download_button(
        "Download",
        data=text,
        file_name=f"extracted-text-{slot}.txt",
        mime="text/plain",
        key=f"download_text_{slot}",
    )


def render_save_status():
    ctrl = controller()
    status = ctrl.state.get("save_status", "pending")
    if status == "dispatched":
        st.success(SAVE_MESSAGES[status])
    elif status == "failed":
        st.error(SAVE_MESSAGES[status])
        # アップロード失敗なら保存はまだ試していないので再実行できる
        if not ctrl.session.save_attempted and st.button("Retry save"):
            with st.spinner("Saving..."):
                run_async(ctrl.save())
            st.rerun()
    elif status in SAVE_MESSAGES:
        st.info(SAVE_MESSAGES[status])


def render_merged_form():
    ctrl = controller()
    merged = ctrl.state["merged"]

    st.subheader("📝 Card details")
    cols = st.columns(2)
    edits = {}
    for i, field in enumerate(MERGE_FIELDS):
        with cols[i % 2]:
            edits[field] = st.text_input(
                FIELD_LABELS[field], merged.get(field, ""),
                key=f"{field}_{ctrl.session.session_id}",
            )
    if edits != {f: merged.get(f, "") for f in MERGE_FIELDS}:
        ctrl.update_merged(**edits)

    urls = ctrl.state.get("image_urls", [])
    row = [pd.Timestamp.now().isoformat()] + [merged[f] for f in MERGE_FIELDS] + (list(urls) + ["", ""])[:2]
    df = pd.DataFrame([row], columns=SHEET_HEADER)

    st.code("\n".join(f"{FIELD_LABELS[f]}: {merged[f]}" for f in MERGE_FIELDS if merged[f]), language=None)
    left, right = st.columns(2)
    with left:
        st.download_button("Download CSV", df.to_csv(index=False), "business-card.csv", "text/csv")
    with right:
        st.download_button(
            "Download JSON",
            json.dumps({**merged, "image_urls": urls}, ensure_ascii=False, indent=2),
            "business-card.json",
            "application/json",
        )


def render_results():
    st.subheader("📇 Results")
    render_save_status()

    cols = st.columns(2)
    for slot, col in zip((1, 2), cols):
        with col:
            render_side(slot)

    st.divider()
    render_merged_form()

    if st.button("📷 Capture New Images", type="primary"):
        start_over()
