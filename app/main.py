"""
Streamlit app for the electric-meter table checker.

Run with:
    streamlit run app/main.py

The page is a thin view over ``app.state.AppShell``: widgets call shell
operations and the page is re-rendered from the shell's state.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import streamlit as st
import streamlit.components.v1 as components

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.state import AppShell, Phase
from checkers import load_checker_from_config
from config import AppConfig, configure_logging, load_config
from errors import MeterCheckError
from imaging import decode_data_url
from presenter import (
    CSV_MIME,
    SortState,
    TableLabels,
    default_export_name,
    export_filename,
    labels_for,
    render_print_html,
    render_table_html,
    results_to_csv,
    sort_results,
    summarize,
)
from presenter.table import TABLE_CSS
from sessions import SessionStore, default_session_name

SORTABLE_COLUMNS = ("condition", "status")

st.set_page_config(page_title="เครื่องมือวิเคราะห์ค่ามิเตอร์ไฟฟ้า", layout="wide")


# ----------------------------
# Helpers
# ----------------------------

@st.cache_resource
def get_config() -> AppConfig:
    cfg = load_config()
    configure_logging(cfg.log_level)
    return cfg


def get_api_key(cfg: AppConfig) -> Optional[str]:
    key = cfg.model.api_key()
    if key:
        return key
    try:
        return str(st.secrets.get(cfg.model.api_key_env, "")).strip() or None
    except Exception:
        # st.secrets raises when no secrets.toml exists
        return None


def get_shell() -> AppShell:
    if "shell" not in st.session_state:
        cfg = get_config()
        store = SessionStore(cfg.storage.sessions_file)
        store.load_all()
        checker = load_checker_from_config(cfg, api_key=get_api_key(cfg))
        st.session_state["shell"] = AppShell(checker, store, cfg.image)
        st.session_state["sort_state"] = SortState()
        st.session_state["uploader_nonce"] = 0
        st.session_state["uploaded_sig"] = None
    return st.session_state["shell"]


def reset_uploader() -> None:
    st.session_state["uploader_nonce"] += 1
    st.session_state["uploaded_sig"] = None
    st.session_state["sort_state"] = SortState()


def run_action(action, *args) -> None:
    """Run a shell operation and show MeterCheckError/ValueError as a banner."""
    shell: AppShell = st.session_state["shell"]
    try:
        action(*args)
    except (MeterCheckError, ValueError) as exc:
        shell.error = getattr(exc, "message", None) or str(exc)


# ----------------------------
# Sidebar: saved sessions
# ----------------------------

def render_history(shell: AppShell) -> None:
    with st.sidebar:
        st.header("ประวัติการวิเคราะห์")
        if not shell.sessions:
            st.caption("ยังไม่มีข้อมูลที่บันทึกไว้")
            return

        for session in shell.sessions:
            is_active = session.id == shell.active_session_id
            label = f"{'▶ ' if is_active else ''}{session.name}"
            if st.button(label, key=f"load_{session.id}", disabled=shell.is_busy, use_container_width=True):
                if shell.load_session(session.id):
                    reset_uploader()
                st.rerun()
            st.caption(_format_timestamp(session.timestamp))

            with st.expander("จัดการ", expanded=False):
                new_name = st.text_input("ชื่อใหม่", value=session.name, key=f"rename_{session.id}")
                if st.button("แก้ไขชื่อ", key=f"rename_btn_{session.id}"):
                    run_action(shell.rename_session, session.id, new_name)
                    st.rerun()
                confirm = st.checkbox(f'ยืนยันการลบ "{session.name}"', key=f"confirm_{session.id}")
                if st.button("ลบ", key=f"delete_{session.id}", disabled=not confirm or shell.is_busy):
                    if session.id == shell.active_session_id:
                        reset_uploader()
                    run_action(shell.delete_session, session.id)
                    st.rerun()


def _format_timestamp(ts: str) -> str:
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00")).astimezone().strftime("%d/%m/%Y %H:%M")
    except ValueError:
        return ts


# ----------------------------
# Upload + analyze
# ----------------------------

def render_uploader(shell: AppShell) -> None:
    uploaded = st.file_uploader(
        "อัปโหลดรูปภาพตารางค่ามิเตอร์ (PNG, JPG, WEBP)",
        type=["png", "jpg", "jpeg", "webp"],
        key=f"uploader_{st.session_state['uploader_nonce']}",
        disabled=shell.is_busy,
    )

    sig = (uploaded.name, uploaded.size) if uploaded is not None else None
    if sig != st.session_state["uploaded_sig"]:
        st.session_state["uploaded_sig"] = sig
        st.session_state["sort_state"] = SortState()
        if uploaded is not None:
            run_action(shell.select_image, uploaded.getvalue(), uploaded.name)
        elif shell.phase in (Phase.IMAGE_SELECTED, Phase.RESULTS_READY):
            run_action(shell.clear_image)

    if shell.image_bytes is not None:
        st.image(shell.image_bytes, caption=shell.image_name, use_container_width=True)
    elif shell.image_data_url:
        st.image(decode_data_url(shell.image_data_url), use_container_width=True)

    if shell.error:
        st.error(shell.error)

    if shell.phase is Phase.VIEWING_SAVED_SESSION:
        if st.button("วิเคราะห์รูปใหม่"):
            shell.new_analysis()
            reset_uploader()
            st.rerun()
        return

    if st.button("วิเคราะห์รูปภาพ", type="primary", disabled=shell.is_busy):
        with st.spinner("กำลังวิเคราะห์..."):
            asyncio.run(shell.analyze())
        st.session_state["sort_state"] = SortState()
        st.rerun()


# ----------------------------
# Results
# ----------------------------

def render_results(shell: AppShell, labels: TableLabels) -> None:
    if not shell.results:
        return

    sort_state: SortState = st.session_state["sort_state"]
    rows = sort_results(shell.results, sort_state)
    counts = summarize(rows)

    st.subheader(labels.title)
    c1, c2, c3 = st.columns(3)
    c1.metric(labels.passed, f"{counts['passed']} / {counts['total']}")
    c2.metric(labels.failed, counts["failed"])
    c3.metric("อ่านค่าไม่ได้", counts["unreadable"])

    cols = st.columns(len(SORTABLE_COLUMNS))
    for col, key in zip(cols, SORTABLE_COLUMNS):
        arrow = {"asc": " ▲", "desc": " ▼", "none": ""}[sort_state.direction_for(key)]
        if col.button(f"เรียงตาม{getattr(labels, key)}{arrow}", key=f"sort_{key}"):
            st.session_state["sort_state"] = sort_state.request(key)
            st.rerun()

    with st.expander(labels.title, expanded=True):
        st.markdown(
            f"<style>{TABLE_CSS}</style>{render_table_html(rows, labels, sort_state)}",
            unsafe_allow_html=True,
        )

    export_col, print_col, save_col = st.columns(3)

    with export_col:
        name = st.text_input("ตั้งชื่อไฟล์สำหรับดาวน์โหลด", value=default_export_name(), key="export_name")
        try:
            filename = export_filename(name)
        except ValueError:
            filename = None
        st.download_button(
            "ดาวน์โหลด CSV",
            data=results_to_csv(rows, labels),
            file_name=filename or "analysis-results.csv",
            mime=CSV_MIME,
            disabled=filename is None,
        )

    with print_col:
        if st.button(labels.print_button):
            components.html(render_print_html(rows, labels=labels, sort_state=sort_state), height=0)

    with save_col:
        if shell.can_save:
            session_name = st.text_input("ชื่อการบันทึก", value=default_session_name(), key="session_name")
            if st.button("บันทึกผล"):
                run_action(shell.save_results, session_name)
                st.rerun()


# ----------------------------
# Page
# ----------------------------

def main() -> None:
    st.title("เครื่องมือวิเคราะห์ค่ามิเตอร์ไฟฟ้า")
    st.caption("อัปโหลดรูปภาพตารางค่ามิเตอร์ไฟฟ้าเพื่อตรวจสอบความถูกต้องของการคำนวณโดยอัตโนมัติด้วย AI")

    try:
        shell = get_shell()
        labels = labels_for(get_config().language)
    except MeterCheckError as exc:
        # Bad config file or prompt templates: nothing else can run.
        st.error(exc.message)
        if exc.detail:
            st.caption(exc.detail)
        st.stop()

    render_history(shell)
    render_uploader(shell)
    render_results(shell, labels)

    st.caption(labels.disclaimer)


main()
