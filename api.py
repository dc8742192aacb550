"""
FastAPI endpoints for the delivery report.
This runs alongside the Streamlit app in the same container and serves the
same filtered report as JSON, XLSX and PDF.
"""

import logging
import threading
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, Response
import uvicorn

from constants.data_models import DEFAULT_PAGE_SIZE, FILTER_FIELDS, PAGE_SIZE_OPTIONS
from utils.filter_engine import apply_filters
from utils.record_mapper import frame_to_rows
from utils.report import (
    build_report_frame,
    export_filename,
    export_pdf,
    export_xlsx,
    paginate,
    summarize,
)
from utils.session_controller import ReportSession

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="IOM Delivery Report API",
    description="Read-only access to the IOM delivery report",
    version="1.0.0"
)

_report_session: Optional[ReportSession] = None
_report_session_lock = threading.Lock()


def get_report_session() -> ReportSession:
    """Process-wide session, loaded on first use"""
    global _report_session
    with _report_session_lock:
        if _report_session is None:
            _report_session = ReportSession()
        if _report_session.is_loading:
            _report_session.load_records()
        return _report_session


class ReportQuery:
    """Filter parameters shared by the records, summary and export endpoints"""

    def __init__(
        self,
        iom_no: str = Query("", description="IOM number contains"),
        buyer: str = Query("", description="Buyer contains"),
        fabric_composition: str = Query("", description="Fabric composition contains"),
        construction: str = Query("", description="Construction contains"),
        color: str = Query("", description="Color contains"),
        date_from: Optional[date] = Query(None, description="Delivery date from (inclusive)"),
        date_to: Optional[date] = Query(None, description="Delivery date to (inclusive)"),
    ):
        values = [iom_no, buyer, fabric_composition, construction, color]
        self.text_filters = dict(zip(FILTER_FIELDS.keys(), values))
        self.date_from = date_from
        self.date_to = date_to

    def apply(self, session: ReportSession):
        return apply_filters(session.records, self.text_filters, self.date_from, self.date_to)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"message": "IOM Delivery Report API is running", "status": "healthy"}


@app.get("/api/health")
def health_check(session: ReportSession = Depends(get_report_session)):
    """Detailed health check with data source information"""
    return {
        "status": "healthy" if session.fetch_error is None else "degraded",
        "project": session.config.project_ref,
        "records": len(session.records),
        "fetch_error": session.fetch_error,
    }


@app.get("/api/records")
def list_records(
    query: ReportQuery = Depends(),
    page: int = Query(1, description="1-based page number, clamped to the available pages"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, description="Rows per page (20, 50 or 100)"),
    session: ReportSession = Depends(get_report_session),
):
    """One page of the filtered report in the 13-column layout"""
    if page_size not in PAGE_SIZE_OPTIONS:
        raise HTTPException(
            status_code=422,
            detail=f"page_size must be one of {list(PAGE_SIZE_OPTIONS)}",
        )

    filtered = query.apply(session)
    report_page = paginate(filtered, page, page_size)
    summary = summarize(filtered)
    return {
        "records": frame_to_rows(build_report_frame(report_page.rows)),
        "page": report_page.page,
        "page_size": report_page.page_size,
        "page_count": report_page.page_count,
        "total_records": report_page.total_records,
        "summary": {
            "total_records": summary.total_records,
            "unique_buyers": summary.unique_buyers,
            "delivery_qty": summary.delivery_qty,
            "delivery_qty_label": summary.delivery_qty_label,
        },
        "fetch_error": session.fetch_error,
    }


@app.get("/api/summary")
def report_summary(
    query: ReportQuery = Depends(),
    session: ReportSession = Depends(get_report_session),
):
    summary = summarize(query.apply(session))
    return {
        "total_records": summary.total_records,
        "unique_buyers": summary.unique_buyers,
        "delivery_qty": summary.delivery_qty,
        "delivery_qty_label": summary.delivery_qty_label,
    }


@app.post("/api/refresh")
def refresh_records(session: ReportSession = Depends(get_report_session)):
    """Re-fetch from Supabase, keeping the current or cached records on failure"""
    session.refresh()
    if session.fetch_error and not session.has_records:
        return JSONResponse(
            status_code=502,
            content={"success": False, "error": session.fetch_error},
        )
    return {
        "success": session.fetch_error is None,
        "records": len(session.records),
        "fetch_error": session.fetch_error,
    }


@app.get("/api/export/xlsx")
def export_report_xlsx(
    query: ReportQuery = Depends(),
    session: ReportSession = Depends(get_report_session),
):
    filename = export_filename("xlsx")
    return Response(
        content=export_xlsx(query.apply(session)),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/export/pdf")
def export_report_pdf(
    query: ReportQuery = Depends(),
    session: ReportSession = Depends(get_report_session),
):
    filename = export_filename("pdf")
    return Response(
        content=export_pdf(query.apply(session)),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


if __name__ == "__main__":
    # This allows running the API standalone for testing
    uvicorn.run(app, host="0.0.0.0", port=8001)
