from typing import Optional

from fastapi import Request

from ...core.config import REPORT_CACHE_MAX_ENTRIES
from .cache import ReportResultCache
from .dispatcher import ReportTaskDispatcher
from .engine import ReportEngine
from .sources import ReportSources
from .store import ReportStore


def create_report_engine(
    cache_max_entries: int = REPORT_CACHE_MAX_ENTRIES,
    sources: Optional[ReportSources] = None,
) -> ReportEngine:
    """Wire an engine with its own cache and dispatcher."""
    return ReportEngine(
        store=ReportStore(),
        cache=ReportResultCache(max_entries=cache_max_entries),
        dispatcher=ReportTaskDispatcher(),
        sources=sources or ReportSources.default(),
    )


def get_report_engine(request: Request) -> ReportEngine:
    # Built once per process in the application lifespan
    return request.app.state.report_engine
