import logging
from datetime import date

import pandas as pd
import streamlit as st

from constants.data_models import (
    DEFAULT_PAGE_SIZE,
    FILTER_FIELDS,
    PAGE_SIZE_OPTIONS,
    VIEW_ADMIN,
    VIEW_REPORT,
)
from constants.schemas import build_setup_sql
from utils.filter_engine import apply_filters, has_active_filters, unique_values
from utils.import_parsers import ImportParseError
from utils.report import (
    build_report_frame,
    export_filename,
    export_pdf,
    export_xlsx,
    paginate,
    summarize,
)
from utils.session_controller import STATUS_ERROR, STATUS_SUCCESS, ReportSession
from utils.supabase_gateway import RemoteError

logger = logging.getLogger(__name__)

VIEW_LABELS = {VIEW_REPORT: "📊 Delivery Report", VIEW_ADMIN: "🔐 Admin Upload"}


def _filter_key(field):
    return f"filter_{field}"


def render_header(session: ReportSession):
    """Render the title bar and the sidebar screen switch"""
    st.title("🧵 IOM Delivery Report")

    with st.sidebar:
        st.subheader("Screen")

        def _switch_view():
            session.set_view(st.session_state.view_selector)

        st.radio(
            "Choose screen:",
            list(VIEW_LABELS.keys()),
            format_func=VIEW_LABELS.get,
            index=list(VIEW_LABELS.keys()).index(session.view),
            key="view_selector",
            on_change=_switch_view,
        )

        if session.view == VIEW_REPORT:
            if st.button("🔄 Refresh Data", disabled=session.is_syncing, key="refresh_records"):
                with st.spinner("Fetching latest records..."):
                    session.refresh()

        if session.view == VIEW_ADMIN and session.is_logged_in:
            if st.button("🚪 Logout", key="logout"):
                session.logout()
                st.rerun()

        st.caption(f"Connected project: {session.config.project_ref}")


def render_connection_error(session: ReportSession):
    """Error box with a retry button, shown while there is nothing to display"""
    st.error(f"**Connection Status: Failed**\n\n{session.fetch_error}")
    if st.button("🔁 Retry Connection", key="retry_connection"):
        with st.spinner("Connecting to Cloud..."):
            session.load_records()
        st.rerun()


def render_summary_cards(records: pd.DataFrame):
    """Render the three summary metrics for the filtered records"""
    summary = summarize(records)
    col1, col2, col3 = st.columns(3)

    with col1:
        st.metric("IOM Count", f"{summary.total_records:,}", help="Count of IOM NO.")
    with col2:
        st.metric("Unique Buyers", f"{summary.unique_buyers:,}", help="Distinct Buyer Count")
    with col3:
        st.metric("Delivery Qty", summary.delivery_qty_label, help="Units (Yds)")


def _reset_filters():
    for field in FILTER_FIELDS:
        st.session_state[_filter_key(field)] = ""
    st.session_state.date_from = None
    st.session_state.date_to = None
    st.session_state.report_page = 1


def render_filters(records: pd.DataFrame):
    """
    Render the search and date filters.

    Returns:
        tuple: (text_filters, date_from, date_to)
    """
    st.subheader("🔎 Search & Filters")

    text_filters = {}
    cols = st.columns(len(FILTER_FIELDS))
    for col, (field, label) in zip(cols, FILTER_FIELDS.items()):
        options = [""] + unique_values(records, field)
        key = _filter_key(field)
        if st.session_state.get(key) not in options:
            st.session_state[key] = ""
        with col:
            text_filters[field] = st.selectbox(
                label,
                options,
                format_func=lambda v, label=label: v if v else f"All {label}s",
                key=key,
            )

    st.markdown("**📅 Date wise filter**")
    date_col1, date_col2, reset_col = st.columns([1, 1, 2])
    with date_col1:
        date_from = st.date_input("From Date", value=None, key="date_from", format="DD-MM-YYYY")
    with date_col2:
        date_to = st.date_input("To Date", value=None, key="date_to", format="DD-MM-YYYY")
    with reset_col:
        if has_active_filters(text_filters, date_from, date_to):
            st.button("✖ Reset all filters", on_click=_reset_filters, key="reset_filters")

    return text_filters, date_from, date_to


def render_export_buttons(records: pd.DataFrame):
    """Download buttons for the filtered records"""
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            label=f"📥 Export XLSX ({len(records)} records)",
            data=export_xlsx(records),
            file_name=export_filename("xlsx"),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            key="export_xlsx",
        )
    with col2:
        st.download_button(
            label=f"📄 PDF Download ({len(records)} records)",
            data=export_pdf(records),
            file_name=export_filename("pdf"),
            mime="application/pdf",
            key="export_pdf",
        )


def render_data_table(records: pd.DataFrame):
    """Paginated 13-column report table"""
    header_col, size_col = st.columns([4, 1])
    with header_col:
        st.subheader("Delivery Report Data")
    with size_col:
        page_size = st.selectbox(
            "Rows per page",
            PAGE_SIZE_OPTIONS,
            index=PAGE_SIZE_OPTIONS.index(DEFAULT_PAGE_SIZE),
            format_func=lambda n: f"{n} Rows",
            key="page_size",
        )

    page = paginate(records, st.session_state.get("report_page", 1), page_size)
    st.session_state.report_page = page.page

    st.dataframe(build_report_frame(page.rows), use_container_width=True, hide_index=True)

    def _go_to(page_number):
        st.session_state.report_page = page_number

    info_col, prev_col, page_col, next_col = st.columns([4, 1, 1, 1])
    with info_col:
        st.caption(f"Showing {page.start}-{page.end} of {page.total_records}")
    with prev_col:
        st.button(
            "◀ Prev",
            disabled=not page.has_prev,
            on_click=_go_to,
            args=(page.page - 1,),
            key="page_prev",
        )
    with page_col:
        st.markdown(f"**Page {page.page} of {page.page_count}**")
    with next_col:
        st.button(
            "Next ▶",
            disabled=not page.has_next,
            on_click=_go_to,
            args=(page.page + 1,),
            key="page_next",
        )


def render_report_view(session: ReportSession):
    """Viewer screen: cards, filters, exports and the table, all on the filtered set"""
    records = session.records
    if session.fetch_error:
        st.warning(f"Showing locally cached data. Cloud fetch failed: {session.fetch_error}")

    text_filters, date_from, date_to = render_filters(records)
    filtered = apply_filters(records, text_filters, date_from, date_to)

    st.divider()
    render_summary_cards(filtered)
    render_export_buttons(filtered)
    st.divider()
    render_data_table(filtered)


def render_login_form(session: ReportSession):
    """Admin login gate"""
    st.subheader("🔐 Admin Login")
    with st.form("admin_login"):
        username = st.text_input("User ID", placeholder="admin")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login")

    if submitted:
        if session.login(username, password):
            st.rerun()
        else:
            st.error("Invalid credentials. Please try again.")


def render_connection_settings(session: ReportSession):
    with st.expander("⚙️ Connection Settings"):
        url = st.text_input("Project URL", value=session.config.url, key="config_url")
        key = st.text_input("Anon Key", value=session.config.key, type="password", key="config_key")
        test_col, save_col = st.columns(2)
        with test_col:
            if st.button("Test Connection", key="test_connection"):
                session.update_config(url, key)
                with st.spinner("Testing Supabase..."):
                    session.test_connection()
        with save_col:
            if st.button("Save Credentials", key="save_config"):
                session.update_config(url, key)
                st.success("Credentials saved locally.")


def render_schema_setup(session: ReportSession):
    """Remediation box shown when the table or a column is missing"""
    st.warning(
        "**Cloud Table Missing**\n\n"
        "The database table needs to be created in your Supabase SQL Editor."
    )
    st.code(build_setup_sql(), language="sql")


def render_status(session: ReportSession):
    status = session.status
    if status is None:
        return
    if status.type == STATUS_ERROR:
        st.error(status.message)
    elif status.type == STATUS_SUCCESS:
        st.success(status.message)
    else:
        st.info(status.message)


def render_pending_upload(session: ReportSession):
    pending = session.pending_records
    st.info(f"**{len(pending)} Records Loaded**\n\nReady to overwrite cloud database.")
    st.dataframe(pending.head(20), use_container_width=True, hide_index=True)

    cancel_col, confirm_col = st.columns(2)
    with cancel_col:
        if st.button("Cancel", key="cancel_pending"):
            session.cancel_pending()
            st.rerun()
    with confirm_col:
        if st.button("✅ Confirm Sync", type="primary", key="confirm_sync"):
            with st.spinner("Syncing to cloud database..."):
                try:
                    session.commit_pending()
                except RemoteError as e:
                    logger.warning(f"Sync failed, pending records kept: {e}")
            st.rerun()


def render_upload_sources(session: ReportSession):
    file_tab, sheets_tab = st.tabs(["📁 Local File", "🟩 Google Sheets"])

    with file_tab:
        uploaded = st.file_uploader(
            "Upload your 65-column report file", type=["xlsx", "csv"], key="report_upload"
        )
        if uploaded is not None and st.button("📥 Load File", key="load_file"):
            with st.spinner("Reading file..."):
                try:
                    session.stage_file(uploaded)
                except ImportParseError as e:
                    logger.warning(f"Upload rejected: {e}")
            st.rerun()

    with sheets_tab:
        sheet_url = st.text_input(
            "Google Sheets CSV Export URL",
            value=session.settings.get_sheet_url(),
            placeholder="https://docs.google.com/...",
            key="sheet_url",
        )
        if st.button("Fetch", key="fetch_sheet"):
            with st.spinner("Fetching sheets data..."):
                try:
                    session.stage_sheet(sheet_url)
                except ImportParseError as e:
                    logger.warning(f"Sheet fetch rejected: {e}")
            st.rerun()


def render_admin_panel(session: ReportSession):
    """Admin screen: connection settings, import sources and the confirm step"""
    if session.status is not None and session.status.needs_schema_setup:
        render_schema_setup(session)

    st.subheader("☁️ Push to Cloud")
    st.caption(
        f"Upload your Excel report to overwrite the Supabase table. "
        f"Currently {len(session.records)} records on the dashboard."
    )
    render_connection_settings(session)

    if session.pending_records is None:
        render_upload_sources(session)
    else:
        render_pending_upload(session)

    render_status(session)


def render_footer(session: ReportSession):
    st.divider()
    st.caption(
        f"© {date.today().year} IOM Delivery Report System · "
        f"Project ID: {session.config.project_ref}"
    )
