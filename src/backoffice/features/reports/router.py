import datetime
import logging
import math
from typing import Annotated, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth.models import User as AuthUser
from ..auth.security import get_current_active_user, get_current_staff_user
from .dependencies import get_report_engine
from .engine import ReportEngine
from .exceptions import (
    ReportError, ReportExportNotImplementedError, ReportNotFoundError,
    ReportNotReadyError, ReportValidationError, UnsupportedReportTypeError,
)
from .models import ReportFormat, ReportType
from .schemas import (
    Pagination, ReportCreate, ReportData, ReportFilters,
    ReportListResponse, ReportResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    # Every report route needs an authenticated user
    dependencies=[Depends(get_current_active_user)],
    responses={404: {"description": "Not found"}},
)

EngineDep = Annotated[ReportEngine, Depends(get_report_engine)]


def _raise_http(exc: ReportError) -> NoReturn:
    if isinstance(exc, ReportNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ReportNotReadyError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Report is not ready for download", "status": exc.status},
        )
    if isinstance(exc, ReportExportNotImplementedError):
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=str(exc))
    if isinstance(exc, (ReportValidationError, UnsupportedReportTypeError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.error(f"Unhandled report error: {exc}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Report engine error")


@router.post("/", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    report_in: ReportCreate,
    current_user: Annotated[AuthUser, Depends(get_current_staff_user)],
    engine: EngineDep,
):
    """Request a report. Returns immediately with status ``pending``; poll the report for the result."""
    try:
        report = await engine.create_report(
            name=report_in.name,
            report_type=report_in.type,
            filters=report_in.filters,
            owner=current_user,
            report_format=report_in.format,
        )
    except ReportError as e:
        _raise_http(e)
    return ReportResponse.from_report(report)


@router.get("/", response_model=ReportListResponse)
async def list_my_reports(
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    engine: EngineDep,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    reports, total = await engine.get_user_reports(current_user.id, page=page, page_size=limit)
    return ReportListResponse(
        reports=[ReportResponse.from_report(r) for r in reports],
        pagination=Pagination(
            page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)
        ),
    )


@router.get("/dashboard/{report_type}", response_model=ReportData)
async def get_dashboard_statistics(
    report_type: ReportType,
    engine: EngineDep,
    start_date: Optional[datetime.date] = Query(None, description="Inclusive start date (YYYY-MM-DD)"),
    end_date: Optional[datetime.date] = Query(None, description="Inclusive end date (YYYY-MM-DD)"),
    status_in: Optional[List[str]] = Query(None, alias="status"),
    payment_method: Optional[List[str]] = Query(None),
    product_category: Optional[List[str]] = Query(None),
    min_value: Optional[float] = Query(None),
    max_value: Optional[float] = Query(None),
):
    """Live statistics for dashboards. Nothing is stored and the report cache is not used."""
    filters = ReportFilters(
        start_date=start_date,
        end_date=end_date,
        status=status_in,
        payment_method=payment_method,
        product_category=product_category,
        min_value=min_value,
        max_value=max_value,
    )
    try:
        return await engine.compute_statistics(report_type, filters)
    except ReportError as e:
        _raise_http(e)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str, engine: EngineDep):
    try:
        report = await engine.get_report(report_id)
    except ReportError as e:
        _raise_http(e)
    return ReportResponse.from_report(report)


@router.get("/{report_id}/download", response_model=ReportData)
async def download_report(
    report_id: str,
    engine: EngineDep,
    format: Optional[ReportFormat] = Query(None, description="Defaults to the report's own format"),
):
    try:
        report = await engine.get_report(report_id)
        return engine.export_report(report, format)
    except ReportError as e:
        _raise_http(e)
