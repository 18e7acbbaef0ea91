"""Persistence of report records.

``ReportStore`` is the only place that writes reports. Status changes go
through ``update_status``, which enforces the lifecycle rules:

* transitions follow ``ReportStatus.can_transition_to``;
* ``data`` is set exactly when the report is ``completed`` and matches the
  payload model for the report's type;
* ``error_message`` is set exactly when the report is ``error``.

The write is a conditional update on the status read beforehand, so two
concurrent transitions of the same report cannot both succeed.
"""

import logging
from typing import List, Optional, Tuple

from tortoise import timezone

from ..auth.models import User
from .exceptions import InvalidStatusTransitionError, ReportError, ReportNotFoundError
from .models import Report, ReportFormat, ReportStatus, ReportType
from .schemas import REPORT_DATA_MODELS, ReportData, ReportFilters

logger = logging.getLogger(__name__)


class ReportStore:
    async def create(
        self,
        *,
        name: str,
        report_type: ReportType,
        filters: ReportFilters,
        owner: User,
        report_format: ReportFormat = ReportFormat.JSON,
    ) -> Report:
        report = await Report.create(
            name=name,
            type=report_type,
            format=report_format,
            filters=filters.to_storage(),
            status=ReportStatus.PENDING,
            data=None,
            error_message=None,
            created_by=owner,
        )
        logger.debug("Stored report %s for user %s", report.public_id, owner.username)
        return report

    async def get(self, report_id: str) -> Optional[Report]:
        return await Report.get_or_none(public_id=report_id).prefetch_related("created_by")

    async def list_by_owner(self, owner_id: int, page: int = 1, page_size: int = 10) -> Tuple[List[Report], int]:
        """One page of a user's reports, newest first, plus the user's total report count."""
        query = Report.filter(created_by_id=owner_id)
        total = await query.count()
        reports = await (
            query.order_by("-created_at", "-id")
            .offset((page - 1) * page_size)
            .limit(page_size)
            .prefetch_related("created_by")
        )
        return reports, total

    async def delete(self, report_id: str) -> bool:
        deleted = await Report.filter(public_id=report_id).delete()
        return deleted > 0

    async def update_status(
        self,
        report_id: str,
        status: ReportStatus,
        *,
        data: Optional[ReportData] = None,
        error_message: Optional[str] = None,
    ) -> Report:
        status = ReportStatus(status)
        report = await Report.get_or_none(public_id=report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        if not report.status.can_transition_to(status):
            raise InvalidStatusTransitionError(report_id, report.status.value, status.value)

        stored_data = None
        if status == ReportStatus.COMPLETED:
            expected = REPORT_DATA_MODELS[report.type]
            if not isinstance(data, expected):
                raise ReportError(
                    f"Report {report_id} of type '{report.type.value}' needs {expected.__name__} "
                    f"to complete, got {type(data).__name__}."
                )
            stored_data = data.model_dump(mode="json")
        elif data is not None:
            raise ReportError(f"Report data can only be stored with status '{ReportStatus.COMPLETED.value}'.")

        if status == ReportStatus.ERROR:
            if not error_message:
                raise ReportError(f"Report {report_id} needs an error message to move to '{status.value}'.")
        elif error_message is not None:
            raise ReportError(f"An error message can only be stored with status '{ReportStatus.ERROR.value}'.")

        updated = await Report.filter(public_id=report_id, status=report.status).update(
            status=status,
            data=stored_data,
            error_message=error_message,
            updated_at=timezone.now(),
        )
        if not updated:
            # Someone else moved the report (or deleted it) since we read it
            current = await Report.get_or_none(public_id=report_id)
            if current is None:
                raise ReportNotFoundError(report_id)
            raise InvalidStatusTransitionError(report_id, current.status.value, status.value)

        logger.debug("Report %s: %s -> %s", report_id, report.status.value, status.value)
        return await Report.get(public_id=report_id).prefetch_related("created_by")
