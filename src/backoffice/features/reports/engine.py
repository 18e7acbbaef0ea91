"""
Report Engine

Coordinates the report lifecycle:

1. ``create_report`` validates a request, persists a ``pending`` report and
   dispatches its computation without waiting for it.
2. ``generate_report_data`` moves the report to ``processing``, answers from
   the result cache or runs the type's aggregator, and finishes the report as
   ``completed`` or ``error``. Failures end up on the report, never with the
   caller.
3. ``get_report`` / ``get_user_reports`` read reports back.
4. ``compute_statistics`` runs an aggregator synchronously for dashboards,
   bypassing both the store and the cache.
5. ``export_report`` hands out the payload of a completed report.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..auth.models import User
from .aggregators import AGGREGATORS, Aggregator
from .cache import ReportResultCache, fingerprint
from .dispatcher import ReportTaskDispatcher
from .exceptions import (
    ReportError, ReportExportNotImplementedError, ReportNotFoundError,
    ReportNotReadyError, ReportValidationError, UnsupportedReportTypeError,
)
from .models import Report, ReportFormat, ReportStatus, ReportType
from .schemas import REPORT_DATA_MODELS, ReportData, ReportFilters, parse_report_data
from .sources import ReportSources
from .store import ReportStore

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error while generating report"
MIN_NAME_LENGTH = 3

FiltersInput = Union[ReportFilters, Mapping[str, Any], None]


def _coerce_filters(filters: FiltersInput) -> ReportFilters:
    if isinstance(filters, ReportFilters):
        return filters
    try:
        return ReportFilters.model_validate(dict(filters or {}))
    except ValidationError as e:
        raise ReportValidationError(f"Invalid report filters: {e}") from e


def _coerce_type(report_type: Union[ReportType, str, None]) -> ReportType:
    try:
        return ReportType(report_type)
    except ValueError:
        raise ReportValidationError(f"Unsupported report type: {report_type}") from None


def validate_filters(filters: ReportFilters) -> None:
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise ReportValidationError("Start date must be on or before end date.")
    if (
        filters.min_value is not None
        and filters.max_value is not None
        and filters.min_value > filters.max_value
    ):
        raise ReportValidationError("Minimum value must not exceed maximum value.")


class ReportEngine:
    def __init__(
        self,
        store: ReportStore,
        cache: ReportResultCache,
        dispatcher: ReportTaskDispatcher,
        sources: ReportSources,
        aggregators: Optional[Mapping[ReportType, Aggregator]] = None,
    ):
        self.store = store
        self.cache = cache
        self.dispatcher = dispatcher
        self.sources = sources
        self.aggregators: Dict[ReportType, Aggregator] = dict(
            AGGREGATORS if aggregators is None else aggregators
        )

    async def create_report(
        self,
        *,
        name: str,
        report_type: Union[ReportType, str],
        owner: User,
        filters: FiltersInput = None,
        report_format: Union[ReportFormat, str] = ReportFormat.JSON,
    ) -> Report:
        """Persist a pending report and schedule its computation.

        Returns as soon as the report is stored; the caller sees status
        ``pending``. Nothing is persisted when validation fails.

        Raises:
            ReportValidationError: bad name, type, format, filters or date range.
        """
        if not name or len(name.strip()) < MIN_NAME_LENGTH:
            raise ReportValidationError(f"Report name must have at least {MIN_NAME_LENGTH} characters.")
        report_type = _coerce_type(report_type)
        try:
            report_format = ReportFormat(report_format)
        except ValueError:
            raise ReportValidationError(f"Unsupported report format: {report_format}") from None
        filters = _coerce_filters(filters)
        validate_filters(filters)

        report = await self.store.create(
            name=name.strip(),
            report_type=report_type,
            filters=filters,
            owner=owner,
            report_format=report_format,
        )
        logger.info(
            "Report %s (%s) requested by %s", report.public_id, report_type.value, owner.username
        )
        self.dispatcher.submit(
            self.generate_report_data(report.public_id), name=f"report-{report.public_id}"
        )
        return report

    async def generate_report_data(self, report_id: str) -> None:
        """Run the computation for a pending report and record its outcome.

        Computation errors are stored on the report as ``error``. A report
        deleted before or during the run is skipped without a trace.
        """
        report = await self.store.get(report_id)
        if report is None:
            logger.info("Report %s no longer exists; skipping generation", report_id)
            return

        try:
            await self.store.update_status(report_id, ReportStatus.PROCESSING)
        except ReportNotFoundError:
            logger.info("Report %s was deleted before processing started", report_id)
            return

        try:
            data = await self._compute(report.type, ReportFilters.model_validate(report.filters or {}))
        except Exception as e:
            message = str(e) or UNKNOWN_ERROR_MESSAGE
            logger.error("Report %s (%s) failed: %s", report_id, report.type.value, message, exc_info=e)
            await self._finish(report_id, ReportStatus.ERROR, error_message=message)
            return

        try:
            await self._finish(report_id, ReportStatus.COMPLETED, data=data)
        except Exception as e:
            message = str(e) or UNKNOWN_ERROR_MESSAGE
            logger.error("Report %s (%s) could not be stored: %s", report_id, report.type.value, message, exc_info=e)
            await self._finish(report_id, ReportStatus.ERROR, error_message=message)
            return
        logger.info("Report %s (%s) completed", report_id, report.type.value)

    async def _finish(self, report_id: str, status: ReportStatus, **fields: Any) -> None:
        try:
            await self.store.update_status(report_id, status, **fields)
        except ReportNotFoundError:
            logger.info("Report %s was deleted while generating; result discarded", report_id)

    async def _compute(self, report_type: ReportType, filters: ReportFilters) -> ReportData:
        key = fingerprint(report_type, filters)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Report cache hit for %s", key)
            return cached

        data = await self._aggregate(report_type, filters)
        self.cache.put(key, data)
        return data

    async def _aggregate(self, report_type: ReportType, filters: ReportFilters) -> ReportData:
        aggregator = self.aggregators.get(report_type)
        if aggregator is None:
            raise UnsupportedReportTypeError(getattr(report_type, "value", report_type))

        data = await aggregator(filters, self.sources)
        expected = REPORT_DATA_MODELS[report_type]
        if not isinstance(data, expected):
            raise ReportError(
                f"Aggregator for '{report_type.value}' returned {type(data).__name__}, expected {expected.__name__}."
            )
        return data

    async def get_report(self, report_id: str) -> Report:
        report = await self.store.get(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)
        return report

    async def get_user_reports(self, owner_id: int, page: int = 1, page_size: int = 10) -> Tuple[list[Report], int]:
        if page < 1 or page_size < 1:
            raise ReportValidationError("Page and page size must be positive.")
        return await self.store.list_by_owner(owner_id, page=page, page_size=page_size)

    async def compute_statistics(
        self, report_type: Union[ReportType, str], filters: FiltersInput = None
    ) -> ReportData:
        """Compute a payload on the spot, without storing a report or touching the cache."""
        report_type = _coerce_type(report_type)
        filters = _coerce_filters(filters)
        validate_filters(filters)
        return await self._aggregate(report_type, filters)

    def export_report(
        self, report: Report, report_format: Union[ReportFormat, str, None] = None
    ) -> ReportData:
        """Payload of a completed report, in the requested format (default: the report's own).

        Raises:
            ReportNotReadyError: the report is not completed yet.
            ReportExportNotImplementedError: anything but JSON was requested.
        """
        if report.status != ReportStatus.COMPLETED:
            raise ReportNotReadyError(report.public_id, report.status.value)
        try:
            target = ReportFormat(report_format) if report_format else report.format
        except ValueError:
            raise ReportValidationError(f"Unsupported report format: {report_format}") from None
        if target != ReportFormat.JSON:
            raise ReportExportNotImplementedError(target.value)
        return parse_report_data(report.type, report.data)
