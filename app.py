import logging

import streamlit as st
from dotenv import load_dotenv

from constants.data_models import VIEW_REPORT
from utils.session_controller import ReportSession
from utils.ui_components import (
    render_admin_panel,
    render_connection_error,
    render_footer,
    render_header,
    render_login_form,
    render_report_view,
)

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

# Set page configuration
st.set_page_config(
    page_title="IOM Delivery Report",
    page_icon="🧵",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for dashboard layout
st.markdown(
    """
<style>
.block-container {
    max-width: 1600px;
    padding-top: 2rem;
    padding-bottom: 2rem;
}
</style>
""",
    unsafe_allow_html=True,
)

# Initialize session state. A new browser session starts logged out on the report screen.
if "report_session" not in st.session_state:
    st.session_state.report_session = ReportSession()
if "report_page" not in st.session_state:
    st.session_state.report_page = 1


def main():
    """Main application function"""
    session = st.session_state.report_session

    # Initial load: remote fetch, local cache as fallback
    if session.is_loading:
        with st.spinner(f"Connecting to Cloud ({session.config.url})..."):
            session.load_records()

    render_header(session)

    if session.view == VIEW_REPORT:
        if not session.has_records and session.fetch_error:
            render_connection_error(session)
        else:
            render_report_view(session)
    elif not session.is_logged_in:
        render_login_form(session)
    else:
        render_admin_panel(session)

    render_footer(session)


if __name__ == "__main__":
    main()
