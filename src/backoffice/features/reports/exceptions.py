"""Domain errors raised by the report engine.

The router maps these to HTTP status codes; nothing in here knows about HTTP."""

from typing import Optional


class ReportError(Exception):
    """Base class for every report engine failure."""


class ReportValidationError(ReportError):
    """A report request was rejected before anything was persisted."""


class ReportNotFoundError(ReportError):
    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} not found.")
        self.report_id = report_id


class ReportNotReadyError(ReportError):
    def __init__(self, report_id: str, status: str):
        super().__init__(f"Report {report_id} is not ready for download (status: {status}).")
        self.report_id = report_id
        self.status = status


class ReportExportNotImplementedError(ReportError):
    def __init__(self, report_format: str):
        super().__init__(f"Export to '{report_format}' is not implemented yet.")
        self.report_format = report_format


class UnsupportedReportTypeError(ReportError):
    def __init__(self, report_type: Optional[str]):
        super().__init__(f"Unsupported report type: {report_type}")
        self.report_type = report_type


class InvalidStatusTransitionError(ReportError):
    def __init__(self, report_id: str, current: str, target: str):
        super().__init__(f"Report {report_id} cannot move from '{current}' to '{target}'.")
        self.report_id = report_id
        self.current = current
        self.target = target
